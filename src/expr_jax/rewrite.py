"""Normalizing smart constructors.

Every tree-building call goes through the functions in this module. Each
constructor applies a fixed, ordered list of local rewrite rules once (first
match wins) and falls back to the raw node:

1. broadcast over arrays (cyclic tiling of the shorter operand),
2. distribute over equations,
3. fold plain numeric literals (named constants stay symbolic),
4. identities and annihilators,
5. sign propagation,
6. factor extraction and like-term collection,
7. re-association of products and quotients,
8. inverse-function cancellation (unary only).

``simplify`` is the only entry point that iterates, and it is bounded.
"""

from __future__ import annotations

import logging
import math
import numbers
import os
from typing import Callable, Iterable, Mapping, Sequence

import numpy as np

from .errors import (
    ConstantRedefinitionError,
    DimensionMismatchError,
    LengthMismatchError,
    SimplifyLimitError,
    UnsupportedRankError,
)
from .expressions import (
    MAX_RANK,
    ONE,
    ZERO,
    Array,
    Assign,
    Binary,
    Const,
    Expr,
    NamedConst,
    Unary,
    Variable,
    const,
    is_number,
)
from .operations import CONSTANTS, lookup_binary, lookup_unary

log = logging.getLogger(__name__)

_SIMPLIFY_MAX_ITER = int(os.environ.get("EXPR_JAX_SIMPLIFY_MAX_ITER", "64"))

TWO = Const(2.0)

# (outer, inner) -> result of outer(inner(x)): "arg" is x itself, "abs" is abs(x).
_INVERSES: dict[tuple[str, str], str] = {
    ("-", "-"): "arg",
    ("inv", "inv"): "arg",
    ("ln", "exp"): "arg",
    ("exp", "ln"): "arg",
    ("sqrt", "sqr"): "abs",
    ("sqr", "sqrt"): "arg",
    ("cbrt", "cub"): "arg",
    ("cub", "cbrt"): "arg",
    ("sin", "asin"): "arg",
    ("cos", "acos"): "arg",
    ("tan", "atan"): "arg",
    ("asin", "sin"): "arg",
    ("acos", "cos"): "arg",
    ("atan", "tan"): "arg",
    ("sind", "asind"): "arg",
    ("cosd", "acosd"): "arg",
    ("tand", "atand"): "arg",
    ("asind", "sind"): "arg",
    ("acosd", "cosd"): "arg",
    ("atand", "tand"): "arg",
    ("sinh", "asinh"): "arg",
    ("cosh", "acosh"): "arg",
    ("tanh", "atanh"): "arg",
    ("asinh", "sinh"): "arg",
    ("acosh", "cosh"): "abs",
    ("atanh", "tanh"): "arg",
}

# abs() is the identity on these results.
_NON_NEGATIVE = frozenset({"abs", "sqrt", "exp", "sqr", "cosh"})


def as_expr(value) -> Expr:
    """Coerce numbers, nested sequences, arrays and quantities to an ``Expr``."""
    if isinstance(value, Expr):
        return value
    if isinstance(value, numbers.Real):
        return const(float(value))
    if hasattr(value, "to_expr"):
        return value.to_expr()
    if hasattr(value, "ndim"):
        data = np.asarray(value, dtype=np.float64)
        if data.ndim == 0:
            return const(float(data))
        return array([as_expr(item) for item in data.tolist()])
    if isinstance(value, Sequence) and not isinstance(value, str):
        return array([as_expr(item) for item in value])
    raise TypeError(f"Cannot convert {type(value).__name__} to an expression")


def _fold(op: str, left: float, right: float) -> Const:
    return const(lookup_binary(op).function(left, right))


def _ieee_div(left: float, right: float) -> float:
    return lookup_binary("/").function(left, right)


def _plain_pair(a: Expr, b: Expr) -> bool:
    return isinstance(a, Const) and isinstance(b, Const)


def _negated(expr: Expr) -> Expr | None:
    if isinstance(expr, Unary) and expr.op == "-":
        return expr.arg
    return None


def _is_sum(expr: Expr) -> bool:
    return isinstance(expr, Binary) and expr.op in ("+", "-")


def _is_quotient(expr: Expr) -> bool:
    return isinstance(expr, Binary) and expr.op == "/"


def _const_product(expr: Expr) -> bool:
    return isinstance(expr, Binary) and expr.op == "*" and isinstance(expr.left, Const)


def _negative_product(expr: Expr) -> bool:
    return _const_product(expr) and expr.left.value < 0


def _as_power(expr: Expr) -> tuple[Expr, Expr]:
    if isinstance(expr, Binary) and expr.op == "^":
        return expr.left, expr.right
    return expr, ONE


def _is_power(expr: Expr) -> bool:
    return isinstance(expr, Binary) and expr.op == "^"


def as_factor(expr: Expr) -> tuple[float, Expr] | None:
    """Split ``expr`` into ``(coefficient, residual)``; ``None`` for plain literals."""
    if isinstance(expr, Const):
        return None
    if isinstance(expr, Binary):
        if expr.op == "*" and isinstance(expr.left, Const):
            return expr.left.value, expr.right
        if expr.op == "/" and isinstance(expr.right, Const):
            return _ieee_div(1.0, expr.right.value), expr.left
    if isinstance(expr, Unary) and expr.op == "-":
        inner = as_factor(expr.arg)
        if inner is None:
            return -1.0, expr.arg
        return -inner[0], inner[1]
    return 1.0, expr


def elementwise(combine: Callable[[Expr, Expr], Expr], a: Array, b: Array) -> Expr:
    """Combine two equal-length arrays element by element."""
    if len(a) != len(b):
        raise LengthMismatchError(f"elementwise operation on arrays of length {len(a)} and {len(b)}")
    return array([combine(x, y) for x, y in zip(a.elements, b.elements)])


def tile(elements: Sequence[Expr], length: int) -> tuple[Expr, ...]:
    """Repeat ``elements`` cyclically until ``length`` items are produced."""
    if not elements:
        return ()
    return tuple(elements[index % len(elements)] for index in range(length))


def _broadcast(a: Expr, b: Expr, combine: Callable[[Expr, Expr], Expr]) -> Expr | None:
    if isinstance(a, Array) and isinstance(b, Array):
        length = max(len(a), len(b)) if len(a) and len(b) else 0
        return elementwise(combine, Array(tile(a.elements, length)), Array(tile(b.elements, length)))
    if isinstance(a, Array):
        return array([combine(x, b) for x in a.elements])
    if isinstance(b, Array):
        return array([combine(a, y) for y in b.elements])
    return None


def _distribute(a: Expr, b: Expr, combine: Callable[[Expr, Expr], Expr]) -> Expr | None:
    if isinstance(a, Assign) and isinstance(b, Assign):
        return equation(combine(a.left, b.left), combine(a.right, b.right))
    if isinstance(a, Assign):
        return equation(combine(a.left, b), combine(a.right, b))
    if isinstance(b, Assign):
        return equation(combine(a, b.left), combine(a, b.right))
    return None


def _spread(a: Expr, b: Expr, combine: Callable[[Expr, Expr], Expr]) -> Expr | None:
    result = _broadcast(a, b, combine)
    if result is None:
        result = _distribute(a, b, combine)
    return result


def _collect_terms(expr: Expr, sign: float, out: list[tuple[float, Expr]]) -> None:
    if isinstance(expr, Binary) and expr.op in ("+", "-"):
        _collect_terms(expr.left, sign, out)
        _collect_terms(expr.right, sign if expr.op == "+" else -sign, out)
    elif isinstance(expr, Unary) and expr.op == "-":
        _collect_terms(expr.arg, -sign, out)
    else:
        out.append((sign, expr))


def sum_terms(terms: Iterable[tuple[float, Expr]]) -> Expr:
    """Flatten signed terms, group equal residuals and fold the numeric residue."""
    flat: list[tuple[float, Expr]] = []
    for sign, term in terms:
        _collect_terms(as_expr(term), sign, flat)

    residue = 0.0
    grouped: dict[Expr, float] = {}
    for sign, term in flat:
        if isinstance(term, Const):
            residue += sign * term.value
            continue
        coefficient, base = as_factor(term)
        grouped[base] = grouped.get(base, 0.0) + sign * coefficient

    result: Expr | None = None
    for base, coefficient in grouped.items():
        if coefficient == 0:
            continue
        term = multiply(const(abs(coefficient)), base)
        if result is None:
            result = term if coefficient > 0 else negate(term)
        else:
            result = Binary("+" if coefficient > 0 else "-", result, term)

    if residue != 0:
        if result is None:
            result = const(residue)
        else:
            result = Binary("+" if residue > 0 else "-", result, const(abs(residue)))
    return ZERO if result is None else result


def negate(x) -> Expr:
    x = as_expr(x)
    if isinstance(x, Array):
        return array([negate(element) for element in x.elements])
    if isinstance(x, Assign):
        return equation(negate(x.left), negate(x.right))
    if isinstance(x, Const):
        return const(-x.value)
    if isinstance(x, Unary) and x.op == "-":
        return x.arg
    if _const_product(x):
        return multiply(const(-x.left.value), x.right)
    return Unary("-", x)


def add(a, b) -> Expr:
    a, b = as_expr(a), as_expr(b)
    spread = _spread(a, b, add)
    if spread is not None:
        return spread
    if _plain_pair(a, b):
        return _fold("+", a.value, b.value)
    if is_number(a, 0):
        return b
    if is_number(b, 0):
        return a
    if a == b:
        return multiply(TWO, a)

    a_neg, b_neg = _negated(a), _negated(b)
    if a_neg is not None and b_neg is not None:
        return negate(add(a_neg, b_neg))
    if b_neg is not None:
        return subtract(a, b_neg)
    if a_neg is not None:
        return subtract(b, a_neg)
    if isinstance(b, Const) and b.value < 0:
        return subtract(a, const(-b.value))
    if _negative_product(b):
        return subtract(a, multiply(const(-b.left.value), b.right))

    fa, fb = as_factor(a), as_factor(b)
    if fa is not None and fb is not None and fa[1] == fb[1]:
        return multiply(const(fa[0] + fb[0]), fa[1])
    if _is_sum(a) or _is_sum(b):
        return sum_terms([(1.0, a), (1.0, b)])
    return Binary("+", a, b)


def subtract(a, b) -> Expr:
    a, b = as_expr(a), as_expr(b)
    spread = _spread(a, b, subtract)
    if spread is not None:
        return spread
    if _plain_pair(a, b):
        return _fold("-", a.value, b.value)
    if is_number(b, 0):
        return a
    if is_number(a, 0):
        return negate(b)
    if a == b:
        return ZERO

    a_neg, b_neg = _negated(a), _negated(b)
    if a_neg is not None and b_neg is not None:
        return subtract(b_neg, a_neg)
    if b_neg is not None:
        return add(a, b_neg)
    if a_neg is not None:
        return negate(add(a_neg, b))
    if isinstance(b, Const) and b.value < 0:
        return add(a, const(-b.value))
    if _negative_product(b):
        return add(a, multiply(const(-b.left.value), b.right))

    fa, fb = as_factor(a), as_factor(b)
    if fa is not None and fb is not None and fa[1] == fb[1]:
        return multiply(const(fa[0] - fb[0]), fa[1])
    if _is_sum(a) or _is_sum(b):
        return sum_terms([(1.0, a), (-1.0, b)])
    return Binary("-", a, b)


def multiply(a, b) -> Expr:
    a, b = as_expr(a), as_expr(b)
    spread = _spread(a, b, multiply)
    if spread is not None:
        return spread
    if _plain_pair(a, b):
        return _fold("*", a.value, b.value)
    if is_number(a, 0) or is_number(b, 0):
        return ZERO
    if is_number(a, 1):
        return b
    if is_number(b, 1):
        return a
    if is_number(a, -1):
        return negate(b)
    if is_number(b, -1):
        return negate(a)
    if isinstance(b, Const):
        a, b = b, a

    a_neg, b_neg = _negated(a), _negated(b)
    if a_neg is not None and b_neg is not None:
        return multiply(a_neg, b_neg)
    if a_neg is not None:
        return negate(multiply(a_neg, b))
    if b_neg is not None:
        return negate(multiply(a, b_neg))

    if isinstance(a, Const):
        c = a.value
        if isinstance(b, Binary):
            if b.op == "*" and isinstance(b.left, Const):
                return multiply(const(c * b.left.value), b.right)
            if b.op == "/" and isinstance(b.left, Const):
                return divide(const(c * b.left.value), b.right)
            if b.op == "/" and isinstance(b.right, Const):
                return multiply(const(_ieee_div(c, b.right.value)), b.left)
        return Binary("*", a, b)

    if _is_quotient(a) and _is_quotient(b):
        return divide(multiply(a.left, b.left), multiply(a.right, b.right))
    if _is_quotient(a):
        return divide(multiply(a.left, b), a.right)
    if _is_quotient(b):
        return divide(multiply(a, b.left), b.right)

    if a == b:
        return power(a, TWO)
    (base_a, exp_a), (base_b, exp_b) = _as_power(a), _as_power(b)
    if base_a == base_b and (_is_power(a) or _is_power(b)):
        return power(base_a, add(exp_a, exp_b))
    if isinstance(a, Unary) and isinstance(b, Unary) and a.op == b.op == "sqrt":
        return unary("sqrt", multiply(a.arg, b.arg))

    fa, fb = as_factor(a), as_factor(b)
    if fa[0] != 1 or fb[0] != 1:
        return multiply(const(fa[0] * fb[0]), multiply(fa[1], fb[1]))
    return Binary("*", a, b)


def divide(a, b) -> Expr:
    a, b = as_expr(a), as_expr(b)
    spread = _spread(a, b, divide)
    if spread is not None:
        return spread
    if _plain_pair(a, b):
        return _fold("/", a.value, b.value)
    if is_number(a, 0):
        return ZERO
    if is_number(b, 1):
        return a
    if is_number(b, -1):
        return negate(a)
    if a == b:
        return ONE

    a_neg, b_neg = _negated(a), _negated(b)
    if a_neg is not None and b_neg is not None:
        return divide(a_neg, b_neg)
    if a_neg is not None:
        return negate(divide(a_neg, b))
    if b_neg is not None:
        return negate(divide(a, b_neg))
    if isinstance(b, Const) and b.value < 0:
        return negate(divide(a, const(-b.value)))

    if isinstance(b, Const):
        c = b.value
        if isinstance(a, Binary):
            if a.op == "*" and isinstance(a.left, Const):
                return multiply(const(_ieee_div(a.left.value, c)), a.right)
            if a.op == "/" and isinstance(a.right, Const):
                return divide(a.left, const(a.right.value * c))
            if a.op == "/" and isinstance(a.left, Const):
                return divide(const(_ieee_div(a.left.value, c)), a.right)
        return Binary("/", a, b)
    if isinstance(a, Const):
        c = a.value
        if isinstance(b, Binary):
            if b.op == "*" and isinstance(b.left, Const):
                return divide(const(_ieee_div(c, b.left.value)), b.right)
            if b.op == "/" and isinstance(b.right, Const):
                return divide(const(c * b.right.value), b.left)
        return Binary("/", a, b)

    if _is_quotient(a) and _is_quotient(b):
        return divide(multiply(a.left, b.right), multiply(a.right, b.left))
    if _is_quotient(a):
        return divide(a.left, multiply(a.right, b))
    if _is_quotient(b):
        return divide(multiply(a, b.right), b.left)

    if isinstance(a, Unary) and a.op == "sqrt" and a.arg == b:
        return divide(ONE, a)
    if isinstance(b, Unary) and b.op == "sqrt" and b.arg == a:
        return b
    (base_a, exp_a), (base_b, exp_b) = _as_power(a), _as_power(b)
    if base_a == base_b and (_is_power(a) or _is_power(b)):
        return power(base_a, subtract(exp_a, exp_b))

    fa, fb = as_factor(a), as_factor(b)
    if fa[0] != 1:
        return multiply(const(_ieee_div(fa[0], fb[0])), divide(fa[1], fb[1]))
    return Binary("/", a, b)


def power(a, b) -> Expr:
    a, b = as_expr(a), as_expr(b)
    spread = _spread(a, b, power)
    if spread is not None:
        return spread
    if isinstance(b, Const):
        if b.value == 0:
            return ONE
        if b.value == 1:
            return a
        if b.value == -1:
            return divide(ONE, a)
    if _plain_pair(a, b):
        return _fold("^", a.value, b.value)
    if is_number(a, 1):
        return ONE
    if _is_power(a) and isinstance(b, Const) and float(b.value).is_integer():
        return power(a.left, multiply(a.right, b))
    if isinstance(a, Unary) and a.op == "sqrt" and is_number(b, 2):
        return a.arg
    return Binary("^", a, b)


def unary(op: str, x) -> Expr:
    definition = lookup_unary(op)
    x = as_expr(x)
    if isinstance(x, Array):
        return array([unary(op, element) for element in x.elements])
    if isinstance(x, Assign):
        return equation(unary(op, x.left), unary(op, x.right))
    if isinstance(x, Const):
        return const(definition.function(x.value))
    if op == "+":
        return x
    if op == "-":
        return negate(x)
    if op == "inv":
        return divide(ONE, x)

    if isinstance(x, Unary):
        cancel = _INVERSES.get((op, x.op))
        if cancel == "arg":
            return x.arg
        if cancel == "abs":
            return unary("abs", x.arg)
    if op == "sqrt":
        if _is_power(x) and is_number(x.right, 2):
            return unary("abs", x.left)
        if isinstance(x, Binary) and x.op == "*" and x.left == x.right:
            return unary("abs", x.left)
    if op == "abs" and isinstance(x, Unary):
        if x.op == "-":
            return unary("abs", x.arg)
        if x.op in _NON_NEGATIVE:
            return x
    return Unary(op, x)


def binary(op: str, a, b) -> Expr:
    """Build ``op(a, b)`` for any registered binary operator."""
    lookup_binary(op)
    if op == "+":
        return add(a, b)
    if op == "-":
        return subtract(a, b)
    if op == "*":
        return multiply(a, b)
    if op == "/":
        return divide(a, b)
    if op == "^":
        return power(a, b)
    if op == "=":
        return equation(a, b)

    a, b = as_expr(a), as_expr(b)
    spread = _spread(a, b, lambda left, right: binary(op, left, right))
    if spread is not None:
        return spread
    if _plain_pair(a, b):
        return _fold(op, a.value, b.value)
    return Binary(op, a, b)


def equation(left, right) -> Expr:
    """Build the equation ``left = right`` (an ``Assign`` node per element)."""
    left, right = as_expr(left), as_expr(right)
    broadcast = _broadcast(left, right, equation)
    if broadcast is not None:
        return broadcast
    return Assign(left, right)


def assign(left, right) -> Expr:
    """Bind ``left = right``; a variable bound to a literal becomes a named constant."""
    left, right = as_expr(left), as_expr(right)
    broadcast = _broadcast(left, right, assign)
    if broadcast is not None:
        return broadcast
    if isinstance(left, NamedConst) and isinstance(right, Const):
        _check_redefinition(left.name, left.value, right.value)
        return left
    if isinstance(left, Variable) and isinstance(right, Const):
        protected = CONSTANTS.get(left.name)
        if protected is not None:
            _check_redefinition(left.name, protected.value, right.value)
        return NamedConst(left.name, right.value)
    return Assign(left, right)


def _check_redefinition(name: str, current: float, value: float) -> None:
    if current == value or (math.isnan(current) and math.isnan(value)):
        return
    raise ConstantRedefinitionError(f"Cannot redefine constant {name!r} from {current!r} to {value!r}")


def array(elements) -> Expr:
    """Build a vector or matrix; ``[]`` is ``0`` and ``[e]`` is ``e``."""
    items = tuple(as_expr(element) for element in elements)
    if not items:
        return ZERO
    if len(items) == 1:
        return items[0]
    if not any(isinstance(item, Array) for item in items):
        return Array(items)

    for item in items:
        if item.rank >= MAX_RANK:
            raise UnsupportedRankError(f"arrays support rank <= {MAX_RANK}, got rank {item.rank + 1}")
    width = max(len(item) for item in items if isinstance(item, Array))
    rows: list[Expr] = []
    for index, item in enumerate(items):
        if isinstance(item, Array):
            if len(item) != width:
                raise DimensionMismatchError(f"matrix row {index} has length {len(item)}, expected {width}")
            rows.append(item)
        else:
            # A scalar among rows stands for that multiple of the identity row.
            rows.append(Array(tuple(item if column == index else ZERO for column in range(width))))
    return Array(tuple(rows))


def _rebuild(expr: Expr, leaf: Callable[[Expr], Expr | None] | None = None) -> Expr:
    if isinstance(expr, Unary):
        return unary(expr.op, _rebuild(expr.arg, leaf))
    if isinstance(expr, Binary):
        return binary(expr.op, _rebuild(expr.left, leaf), _rebuild(expr.right, leaf))
    if isinstance(expr, Assign):
        return equation(_rebuild(expr.left, leaf), _rebuild(expr.right, leaf))
    if isinstance(expr, Array):
        return array([_rebuild(element, leaf) for element in expr.elements])
    if leaf is not None:
        replacement = leaf(expr)
        if replacement is not None:
            return replacement
    return expr


def rebuild(expr: Expr) -> Expr:
    """Run every node of ``expr`` through the smart constructors once, bottom-up."""
    return _rebuild(expr)


def simplify(expr: Expr, *, max_iterations: int | None = None) -> Expr:
    """Rebuild ``expr`` until it stops changing.

    Raises ``SimplifyLimitError`` when no fixed point is reached within
    ``max_iterations`` passes (``EXPR_JAX_SIMPLIFY_MAX_ITER`` by default).
    """
    limit = _SIMPLIFY_MAX_ITER if max_iterations is None else max_iterations
    current = as_expr(expr)
    for iteration in range(1, limit + 1):
        rebuilt = _rebuild(current)
        if rebuilt == current:
            log.debug("simplify reached a fixed point after %d pass(es)", iteration)
            return rebuilt
        current = rebuilt
    raise SimplifyLimitError(limit)


def substitute(expr: Expr, mapping: Mapping[str | Variable, object]) -> Expr:
    """Replace variables by values or expressions; named constants are never replaced."""
    table = {
        (key.name if isinstance(key, Variable) else key): as_expr(value)
        for key, value in mapping.items()
    }

    def replace(node: Expr) -> Expr | None:
        if isinstance(node, Variable):
            return table.get(node.name)
        return None

    return _rebuild(as_expr(expr), replace)


def symbols_of(expr, alphabetical: bool = True) -> tuple[str, ...]:
    """Distinct free variable names of ``expr``."""
    return as_expr(expr).symbols(alphabetical=alphabetical)


def values_of(expr) -> tuple[float, ...]:
    """Numeric literals of ``expr`` in pre-order."""
    return as_expr(expr).values()
