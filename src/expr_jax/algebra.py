"""Vector and matrix operations on expression arrays."""

from __future__ import annotations

from typing import Sequence

from . import linalg
from .errors import DimensionMismatchError
from .expressions import ONE, ZERO, Array, Expr, Variable
from .rewrite import add, array, as_expr, divide, multiply, negate, subtract, unary

SYMBOLIC = linalg.Field(
    add=add,
    subtract=subtract,
    multiply=multiply,
    divide=divide,
    negate=negate,
    zero=ZERO,
    one=ONE,
)


def as_vector(expr: Expr) -> list[Expr] | None:
    if isinstance(expr, Array) and expr.rank == 1:
        return list(expr.elements)
    return None


def as_matrix(expr: Expr) -> list[list[Expr]] | None:
    if isinstance(expr, Array) and expr.rank == 2:
        return [list(row.elements) for row in expr.elements]
    return None


def from_matrix(rows: Sequence[Sequence[Expr]]) -> Expr:
    return array([array(row) for row in rows])


def vector_of(size: int, name: str) -> Expr:
    """Symbolic vector ``[name_1, ..., name_size]``."""
    return array([Variable(f"{name}_{index}") for index in range(1, size + 1)])


def zeros(rows: int, columns: int | None = None) -> Expr:
    if columns is None:
        return array([ZERO] * rows)
    return from_matrix(linalg.zeros(rows, columns, SYMBOLIC))


def identity(size: int) -> Expr:
    return from_matrix(linalg.identity(size, SYMBOLIC))


def diagonal(values) -> Expr:
    return from_matrix(linalg.diagonal([as_expr(value) for value in values], SYMBOLIC))


def transpose(expr) -> Expr:
    """Transpose a matrix; vectors and scalars are returned unchanged."""
    expr = as_expr(expr)
    matrix = as_matrix(expr)
    if matrix is None:
        return expr
    return from_matrix(linalg.transpose(matrix))


def dot(a, b) -> Expr:
    a, b = as_expr(a), as_expr(b)
    u, v = as_vector(a), as_vector(b)
    if u is not None and v is not None:
        return linalg.dot(u, v, SYMBOLIC)
    return product(transpose(a), b)


def outer(a, b) -> Expr:
    a, b = as_expr(a), as_expr(b)
    u, v = as_vector(a), as_vector(b)
    if u is not None and v is not None:
        return from_matrix(linalg.outer(u, v, SYMBOLIC))
    return multiply(a, transpose(b))


def cross(a, b) -> Expr:
    a, b = as_expr(a), as_expr(b)
    u, v = as_vector(a), as_vector(b)
    if u is None and v is None:
        raise DimensionMismatchError("cross product needs at least one vector operand")
    result = linalg.cross(u if u is not None else [a], v if v is not None else [b], SYMBOLIC)
    if isinstance(result, list):
        return array(result)
    return result


def cross_matrix(a) -> Expr:
    u = as_vector(as_expr(a))
    if u is None:
        raise DimensionMismatchError("cross-product operator needs a vector")
    return from_matrix(linalg.cross_matrix(u, SYMBOLIC))


def product(a, b) -> Expr:
    """Matrix/vector product; falls back to elementwise ``multiply`` for scalars."""
    a, b = as_expr(a), as_expr(b)
    left_matrix, right_matrix = as_matrix(a), as_matrix(b)
    left_vector, right_vector = as_vector(a), as_vector(b)
    if left_matrix is not None and right_matrix is not None:
        return from_matrix(linalg.mat_mat(left_matrix, right_matrix, SYMBOLIC))
    if left_matrix is not None and right_vector is not None:
        return array(linalg.mat_vec(left_matrix, right_vector, SYMBOLIC))
    if left_vector is not None and right_matrix is not None:
        return array(linalg.vec_mat(left_vector, right_matrix, SYMBOLIC))
    if left_vector is not None and right_vector is not None:
        return linalg.dot(left_vector, right_vector, SYMBOLIC)
    return multiply(a, b)


def solve(a, b) -> Expr:
    """Solve ``a @ x == b`` symbolically by block elimination."""
    a, b = as_expr(a), as_expr(b)
    matrix = as_matrix(a)
    if matrix is None:
        return divide(b, a)
    rhs_matrix = as_matrix(b)
    if rhs_matrix is not None:
        return from_matrix(linalg.solve_matrix(matrix, rhs_matrix, SYMBOLIC))
    rhs_vector = as_vector(b)
    if rhs_vector is None:
        rhs_vector = [b]
    return array(linalg.solve(matrix, rhs_vector, SYMBOLIC))


def inverse(a) -> Expr:
    a = as_expr(a)
    matrix = as_matrix(a)
    if matrix is None:
        return divide(ONE, a)
    return from_matrix(linalg.inverse(matrix, SYMBOLIC))


def norm(a) -> Expr:
    a = as_expr(a)
    u = as_vector(a)
    if u is None:
        return unary("abs", a)
    return unary("sqrt", linalg.dot(u, u, SYMBOLIC))


def distance(a, b) -> Expr:
    return norm(subtract(b, a))


def hypot(a, b) -> Expr:
    return norm(array([a, b]))
