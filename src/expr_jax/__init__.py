"""expr-jax public API."""

from .errors import (
    ArityError,
    ConstantRedefinitionError,
    DimensionMismatchError,
    ExprError,
    LengthMismatchError,
    MissingParameterError,
    NoDerivativeRuleError,
    ParseError,
    SimplifyLimitError,
    UnboundVariableError,
    UnknownOperatorError,
    UnsupportedRankError,
)
from .expressions import NAN, ONE, ZERO, Array, Assign, Binary, Const, Expr, NamedConst, Unary, Variable, const
from .operations import BINARY_OPERATIONS, CONSTANTS, UNARY_OPERATIONS, lookup
from .rewrite import (
    add,
    array,
    as_expr,
    assign,
    binary,
    divide,
    equation,
    multiply,
    negate,
    power,
    simplify,
    substitute,
    subtract,
    sum_terms,
    symbols_of,
    unary,
    values_of,
)
from .parser import parse
from .formatting import format_expr
from .algebra import (
    cross,
    cross_matrix,
    diagonal,
    distance,
    dot,
    hypot,
    identity,
    inverse,
    norm,
    outer,
    product,
    solve,
    transpose,
    vector_of,
    zeros,
)
from .calculus import extract_linear_system, jacobian, partial, rate_symbol, total_derivative
from .values import Matrix, Quantity, Scalar, Vector, from_value
from .evaluator import Environment, evaluate
from .compiler import CompiledFunction, Program, compile_expression, compile_function, lower, run_bytecode
from .function import Function

__all__ = [
    "ArityError",
    "Array",
    "Assign",
    "BINARY_OPERATIONS",
    "Binary",
    "CONSTANTS",
    "CompiledFunction",
    "Const",
    "ConstantRedefinitionError",
    "DimensionMismatchError",
    "Environment",
    "Expr",
    "ExprError",
    "Function",
    "LengthMismatchError",
    "Matrix",
    "MissingParameterError",
    "NAN",
    "NamedConst",
    "NoDerivativeRuleError",
    "ONE",
    "ParseError",
    "Program",
    "Quantity",
    "Scalar",
    "SimplifyLimitError",
    "UNARY_OPERATIONS",
    "UnboundVariableError",
    "Unary",
    "UnknownOperatorError",
    "UnsupportedRankError",
    "Variable",
    "Vector",
    "ZERO",
    "add",
    "array",
    "as_expr",
    "assign",
    "binary",
    "compile_expression",
    "compile_function",
    "const",
    "cross",
    "cross_matrix",
    "diagonal",
    "distance",
    "divide",
    "dot",
    "equation",
    "evaluate",
    "extract_linear_system",
    "format_expr",
    "from_value",
    "hypot",
    "identity",
    "inverse",
    "jacobian",
    "lookup",
    "lower",
    "multiply",
    "negate",
    "norm",
    "outer",
    "parse",
    "partial",
    "power",
    "product",
    "rate_symbol",
    "run_bytecode",
    "simplify",
    "solve",
    "substitute",
    "subtract",
    "sum_terms",
    "symbols_of",
    "total_derivative",
    "transpose",
    "unary",
    "values_of",
    "vector_of",
    "zeros",
]
