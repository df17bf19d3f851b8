"""Symbolic differentiation built on the normalizing constructors."""

from __future__ import annotations

import math
from typing import Callable, Mapping, Sequence

from .errors import NoDerivativeRuleError
from .expressions import ONE, ZERO, Array, Assign, Binary, Const, Expr, NamedConst, Unary, Variable, is_number
from .operations import lookup_binary, lookup_unary
from .rewrite import (
    TWO,
    add,
    array,
    as_expr,
    divide,
    equation,
    multiply,
    negate,
    power,
    substitute,
    subtract,
    unary,
)

_PI = NamedConst("pi", math.pi)
_DEG = NamedConst("deg", math.pi / 180)
_RAD = NamedConst("rad", 180 / math.pi)
_THREE = Const(3.0)

RATE_MARKER = "p"


def rate_symbol(name: str) -> str:
    """Name of the time-rate of ``name``: ``x -> xp``, ``x_1 -> xp_1``."""
    head, sep, tail = name.partition("_")
    return f"{head}{RATE_MARKER}{sep}{tail}"


def _sqr(x: Expr) -> Expr:
    return unary("sqr", x)


def _root_of(x: Expr) -> Expr:
    return unary("sqrt", x)


UnaryRule = Callable[[Expr, Expr, Expr], Expr]
BinaryRule = Callable[[Expr, Expr, Expr, Expr, Expr], Expr]

# (arg, d_arg, node) -> derivative
_UNARY_RULES: dict[str, UnaryRule] = {
    "+": lambda u, du, node: du,
    "-": lambda u, du, node: negate(du),
    "pi": lambda u, du, node: multiply(_PI, du),
    "zero": lambda u, du, node: ZERO,
    "abs": lambda u, du, node: multiply(unary("sign", u), du),
    "inv": lambda u, du, node: negate(divide(du, power(u, TWO))),
    "sqr": lambda u, du, node: multiply(multiply(TWO, u), du),
    "cub": lambda u, du, node: multiply(multiply(_THREE, _sqr(u)), du),
    "exp": lambda u, du, node: multiply(node, du),
    "ln": lambda u, du, node: divide(du, u),
    "sqrt": lambda u, du, node: divide(du, multiply(TWO, node)),
    "cbrt": lambda u, du, node: divide(du, multiply(_THREE, _sqr(node))),
    "sin": lambda u, du, node: multiply(unary("cos", u), du),
    "cos": lambda u, du, node: negate(multiply(unary("sin", u), du)),
    "tan": lambda u, du, node: divide(du, _sqr(unary("cos", u))),
    "sind": lambda u, du, node: multiply(multiply(_DEG, unary("cosd", u)), du),
    "cosd": lambda u, du, node: negate(multiply(multiply(_DEG, unary("sind", u)), du)),
    "tand": lambda u, du, node: divide(multiply(_DEG, du), _sqr(unary("cosd", u))),
    "asin": lambda u, du, node: divide(du, _root_of(subtract(ONE, _sqr(u)))),
    "acos": lambda u, du, node: negate(divide(du, _root_of(subtract(ONE, _sqr(u))))),
    "atan": lambda u, du, node: divide(du, add(ONE, _sqr(u))),
    "asind": lambda u, du, node: divide(multiply(_RAD, du), _root_of(subtract(ONE, _sqr(u)))),
    "acosd": lambda u, du, node: negate(divide(multiply(_RAD, du), _root_of(subtract(ONE, _sqr(u))))),
    "atand": lambda u, du, node: divide(multiply(_RAD, du), add(ONE, _sqr(u))),
    "sinh": lambda u, du, node: multiply(unary("cosh", u), du),
    "cosh": lambda u, du, node: multiply(unary("sinh", u), du),
    "tanh": lambda u, du, node: divide(du, _sqr(unary("cosh", u))),
    "asinh": lambda u, du, node: divide(du, _root_of(add(_sqr(u), ONE))),
    "acosh": lambda u, du, node: divide(du, _root_of(subtract(_sqr(u), ONE))),
    "atanh": lambda u, du, node: divide(du, subtract(ONE, _sqr(u))),
}


def _power_rule(u: Expr, v: Expr, du: Expr, dv: Expr, node: Expr) -> Expr:
    # Symbolically assumes u > 0 when the exponent varies.
    if is_number(dv, 0):
        return multiply(multiply(v, power(u, subtract(v, ONE))), du)
    if is_number(du, 0):
        return multiply(multiply(node, unary("ln", u)), dv)
    return multiply(
        power(u, subtract(v, ONE)),
        add(multiply(v, du), multiply(multiply(u, unary("ln", u)), dv)),
    )


def _extremum_rule(sign: float) -> BinaryRule:
    def rule(u: Expr, v: Expr, du: Expr, dv: Expr, node: Expr) -> Expr:
        jump = multiply(unary("sign", subtract(u, v)), subtract(du, dv))
        total = add(add(du, dv), jump) if sign > 0 else subtract(add(du, dv), jump)
        return divide(total, TWO)

    return rule


# (left, right, d_left, d_right, node) -> derivative
_BINARY_RULES: dict[str, BinaryRule] = {
    "+": lambda u, v, du, dv, node: add(du, dv),
    "-": lambda u, v, du, dv, node: subtract(du, dv),
    "*": lambda u, v, du, dv, node: add(multiply(v, du), multiply(u, dv)),
    "/": lambda u, v, du, dv, node: divide(subtract(multiply(v, du), multiply(u, dv)), power(v, TWO)),
    "^": _power_rule,
    "=": lambda u, v, du, dv, node: equation(du, dv),
    "min": _extremum_rule(-1.0),
    "max": _extremum_rule(1.0),
    "atan2": lambda u, v, du, dv, node: divide(
        subtract(multiply(v, du), multiply(u, dv)), add(power(u, TWO), power(v, TWO))
    ),
    "log": lambda u, v, du, dv, node: _log_rule(u, v, du, dv),
}


def _log_rule(u: Expr, v: Expr, du: Expr, dv: Expr) -> Expr:
    # log(u, v) = ln(u) / ln(v)
    ln_u, ln_v = unary("ln", u), unary("ln", v)
    d_ln_u, d_ln_v = divide(du, u), divide(dv, v)
    return divide(subtract(multiply(ln_v, d_ln_u), multiply(ln_u, d_ln_v)), power(ln_v, TWO))


def _symbol_name(symbol: str | Variable) -> str:
    if isinstance(symbol, Variable):
        return symbol.name
    if isinstance(symbol, str):
        return symbol
    raise TypeError(f"Cannot differentiate with respect to {type(symbol).__name__}")


def _partial(expr: Expr, name: str) -> Expr:
    if isinstance(expr, (Const, NamedConst)):
        return ZERO
    if isinstance(expr, Variable):
        return ONE if expr.name == name else ZERO
    if isinstance(expr, Array):
        return array([_partial(element, name) for element in expr.elements])
    if isinstance(expr, Assign):
        return equation(_partial(expr.left, name), _partial(expr.right, name))
    if isinstance(expr, Unary):
        tag = lookup_unary(expr.op).derivative
        rule = _UNARY_RULES.get(tag) if tag is not None else None
        if rule is None:
            raise NoDerivativeRuleError(expr.op)
        du = _partial(expr.arg, name)
        if is_number(du, 0):
            return ZERO
        return rule(expr.arg, du, expr)
    if isinstance(expr, Binary):
        tag = lookup_binary(expr.op).derivative
        rule = _BINARY_RULES.get(tag) if tag is not None else None
        if rule is None:
            raise NoDerivativeRuleError(expr.op)
        du = _partial(expr.left, name)
        dv = _partial(expr.right, name)
        if is_number(du, 0) and is_number(dv, 0):
            return ZERO
        return rule(expr.left, expr.right, du, dv, expr)
    raise TypeError(f"Cannot differentiate node type {type(expr).__name__}")


def partial(expr, symbol: str | Variable) -> Expr:
    """Partial derivative of ``expr`` with respect to ``symbol``."""
    return _partial(as_expr(expr), _symbol_name(symbol))


def _rate_pairs(expr: Expr, rates) -> list[tuple[str, Expr]]:
    if rates is None:
        return [(name, Variable(rate_symbol(name))) for name in expr.symbols()]
    if isinstance(rates, Mapping):
        return [(_symbol_name(symbol), as_expr(rate)) for symbol, rate in rates.items()]
    pairs: list[tuple[str, Expr]] = []
    for item in rates:
        if isinstance(item, tuple):
            symbol, rate = item
            pairs.append((_symbol_name(symbol), as_expr(rate)))
        else:
            name = _symbol_name(item)
            pairs.append((name, Variable(rate_symbol(name))))
    return pairs


def total_derivative(expr, rates=None) -> Expr:
    """Chain rule ``sum(d expr/d s * rate_s)`` over the given symbols.

    ``rates`` is a mapping or a sequence of ``(symbol, rate)`` pairs; bare
    symbols (or ``None`` for every free symbol) get the rate variable named by
    :func:`rate_symbol`.
    """
    expr = as_expr(expr)
    total: Expr = ZERO
    for name, rate in _rate_pairs(expr, rates):
        total = add(total, multiply(_partial(expr, name), rate))
    return total


def rate_pairs(expr, rates=None) -> list[tuple[str, Expr]]:
    return _rate_pairs(as_expr(expr), rates)


def jacobian(expr, symbols: Sequence[str | Variable] | None = None) -> Expr:
    """Array of partial derivatives, one entry per symbol (alphabetical by default)."""
    expr = as_expr(expr)
    names = expr.symbols() if symbols is None else tuple(_symbol_name(symbol) for symbol in symbols)
    return array([_partial(expr, name) for name in names])


def extract_linear_system(expr, symbols: Sequence[str | Variable]):
    """Return numeric ``(A, b)`` with ``A @ symbols == b`` when ``expr`` is linear.

    Equations are moved to the form ``lhs - rhs``. Returns ``None`` when a
    coefficient or the constant term still depends on a variable.
    """
    from .algebra import transpose
    from .values import from_expr

    expr = as_expr(expr)
    if isinstance(expr, Array) and all(isinstance(element, Assign) for element in expr.elements):
        expr = array([subtract(element.left, element.right) for element in expr.elements])
    elif isinstance(expr, Assign):
        expr = subtract(expr.left, expr.right)
    names = tuple(_symbol_name(symbol) for symbol in symbols)

    coefficients = transpose(jacobian(expr, names))
    if coefficients.symbols():
        return None
    residual = negate(substitute(expr, {name: ZERO for name in names}))
    if residual.symbols():
        return None
    return from_expr(coefficients), from_expr(residual)
