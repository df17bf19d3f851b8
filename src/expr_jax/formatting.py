"""Infix rendering of expressions using the parser's precedence table."""

from __future__ import annotations

import math

from .expressions import Array, Assign, Binary, Const, Expr, NamedConst, Unary, Variable

_ASSIGN = 0
_ADDITIVE = 1
_MULTIPLICATIVE = 2
_POWER = 3
_PREFIX = 4
_ATOM = 5

_INFIX_PRECEDENCE = {
    "=": _ASSIGN,
    "+": _ADDITIVE,
    "-": _ADDITIVE,
    "*": _MULTIPLICATIVE,
    "/": _MULTIPLICATIVE,
    "^": _POWER,
}


def format_number(value: float) -> str:
    real = float(value)
    if math.isnan(real):
        return "nan"
    if math.isinf(real):
        return "inf" if real > 0 else "-inf"
    text = repr(real)
    if text.endswith(".0"):
        text = text[:-2]
    return text


def _precedence(expr: Expr) -> int:
    if isinstance(expr, Const):
        return _PREFIX if expr.value < 0 else _ATOM
    if isinstance(expr, Unary) and expr.op in ("+", "-"):
        return _PREFIX
    if isinstance(expr, Binary):
        return _INFIX_PRECEDENCE.get(expr.op, _ATOM)
    if isinstance(expr, Assign):
        return _ASSIGN
    return _ATOM


def _wrap(expr: Expr, parenthesize: bool) -> str:
    text = format_expr(expr)
    return f"({text})" if parenthesize else text


def format_expr(expr: Expr) -> str:
    """Render ``expr`` so that parsing the text rebuilds an equivalent tree."""
    if isinstance(expr, Const):
        return format_number(expr.value)
    if isinstance(expr, NamedConst):
        return expr.name
    if isinstance(expr, Variable):
        return expr.name
    if isinstance(expr, Array):
        return "[" + ", ".join(format_expr(element) for element in expr.elements) + "]"
    if isinstance(expr, Assign):
        return f"{format_expr(expr.left)}={format_expr(expr.right)}"
    if isinstance(expr, Unary):
        if expr.op in ("+", "-"):
            return expr.op + _wrap(expr.arg, _precedence(expr.arg) < _PREFIX)
        return f"{expr.op}({format_expr(expr.arg)})"
    if isinstance(expr, Binary):
        precedence = _INFIX_PRECEDENCE.get(expr.op)
        if precedence is None:
            return f"{expr.op}({format_expr(expr.left)},{format_expr(expr.right)})"
        left = _wrap(expr.left, _precedence(expr.left) < precedence)
        right = _wrap(expr.right, _precedence(expr.right) <= precedence)
        return f"{left}{expr.op}{right}"
    raise TypeError(f"Cannot format node type {type(expr).__name__}")
