"""Dense vector/matrix algorithms shared by symbolic and numeric arrays.

Vectors are sequences and matrices are sequences of rows. The element
arithmetic is supplied by a :class:`Field`, so the same code runs over
expression nodes (through the normalizing constructors) and over plain
floats (IEEE-754 semantics: division by zero yields ``inf``/``nan``).
"""

from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Any, Callable, Sequence

import numpy as np

from .errors import DimensionMismatchError, LengthMismatchError

Vector = Sequence[Any]
Matrix = Sequence[Sequence[Any]]


@dataclass(frozen=True)
class Field:
    add: Callable[[Any, Any], Any]
    subtract: Callable[[Any, Any], Any]
    multiply: Callable[[Any, Any], Any]
    divide: Callable[[Any, Any], Any]
    negate: Callable[[Any], Any]
    zero: Any
    one: Any


def _float_divide(x: float, y: float) -> float:
    with np.errstate(all="ignore"):
        return float(np.float64(x) / np.float64(y))


NUMERIC = Field(
    add=operator.add,
    subtract=operator.sub,
    multiply=operator.mul,
    divide=_float_divide,
    negate=operator.neg,
    zero=0.0,
    one=1.0,
)


def shape(matrix: Matrix) -> tuple[int, int]:
    """Return ``(rows, columns)``, rejecting ragged rows."""
    rows = len(matrix)
    columns = len(matrix[0]) if rows else 0
    for index, row in enumerate(matrix):
        if len(row) != columns:
            raise DimensionMismatchError(f"matrix row {index} has length {len(row)}, expected {columns}")
    return rows, columns


def zeros(rows: int, columns: int, field: Field = NUMERIC) -> list[list[Any]]:
    return [[field.zero] * columns for _ in range(rows)]


def identity(size: int, field: Field = NUMERIC) -> list[list[Any]]:
    return diagonal([field.one] * size, field)


def diagonal(values: Vector, field: Field = NUMERIC) -> list[list[Any]]:
    size = len(values)
    return [[values[i] if i == j else field.zero for j in range(size)] for i in range(size)]


def transpose(matrix: Matrix) -> list[list[Any]]:
    rows, columns = shape(matrix)
    return [[matrix[i][j] for i in range(rows)] for j in range(columns)]


def dot(u: Vector, v: Vector, field: Field = NUMERIC):
    if len(u) != len(v):
        raise LengthMismatchError(f"dot product of vectors of length {len(u)} and {len(v)}")
    total = field.zero
    for a, b in zip(u, v):
        total = field.add(total, field.multiply(a, b))
    return total


def outer(u: Vector, v: Vector, field: Field = NUMERIC) -> list[list[Any]]:
    return [[field.multiply(a, b) for b in v] for a in u]


def cross(u: Vector, v: Vector, field: Field = NUMERIC):
    """Cross product for 2-D (scalar result), 3-D and the 1x2 / 2x1 planar forms.

    A length-1 operand stands for a scalar rate about the plane normal.
    """
    mul, sub, neg = field.multiply, field.subtract, field.negate
    sizes = (len(u), len(v))
    if sizes == (2, 2):
        return sub(mul(u[0], v[1]), mul(u[1], v[0]))
    if sizes == (1, 2):
        return [neg(mul(u[0], v[1])), mul(u[0], v[0])]
    if sizes == (2, 1):
        return [mul(u[1], v[0]), neg(mul(u[0], v[0]))]
    if sizes == (3, 3):
        return [
            sub(mul(u[1], v[2]), mul(u[2], v[1])),
            sub(mul(u[2], v[0]), mul(u[0], v[2])),
            sub(mul(u[0], v[1]), mul(u[1], v[0])),
        ]
    raise DimensionMismatchError(f"cross product is undefined for lengths {sizes[0]} and {sizes[1]}")


def cross_matrix(u: Vector, field: Field = NUMERIC) -> list[list[Any]]:
    """Skew-symmetric matrix ``[u x]`` with ``[u x] @ v == cross(u, v)``."""
    if len(u) != 3:
        raise DimensionMismatchError(f"cross-product operator needs a 3-vector, got length {len(u)}")
    zero, neg = field.zero, field.negate
    return [
        [zero, neg(u[2]), u[1]],
        [u[2], zero, neg(u[0])],
        [neg(u[1]), u[0], zero],
    ]


def mat_vec(matrix: Matrix, vector: Vector, field: Field = NUMERIC) -> list[Any]:
    _, columns = shape(matrix)
    if columns != len(vector):
        raise DimensionMismatchError(f"cannot multiply a matrix with {columns} columns by a vector of length {len(vector)}")
    return [dot(row, vector, field) for row in matrix]


def vec_mat(vector: Vector, matrix: Matrix, field: Field = NUMERIC) -> list[Any]:
    rows, _ = shape(matrix)
    if rows != len(vector):
        raise DimensionMismatchError(f"cannot multiply a vector of length {len(vector)} by a matrix with {rows} rows")
    return mat_vec(transpose(matrix), vector, field)


def mat_mat(left: Matrix, right: Matrix, field: Field = NUMERIC) -> list[list[Any]]:
    _, inner = shape(left)
    rows, _ = shape(right)
    if inner != rows:
        raise DimensionMismatchError(f"cannot multiply matrices with inner dimensions {inner} and {rows}")
    columns = transpose(right)
    return [[dot(row, column, field) for column in columns] for row in left]


def _check_square(matrix: Matrix) -> int:
    rows, columns = shape(matrix)
    if rows != columns:
        raise DimensionMismatchError(f"solve needs a square matrix, got {rows}x{columns}")
    return rows


def _solve_columns(matrix: Matrix, columns: list[list[Any]], field: Field) -> list[list[Any]]:
    # Schur complement on the trailing row/column; no pivoting.
    n = len(matrix)
    if n == 0:
        return [[] for _ in columns]
    if n == 1:
        pivot = matrix[0][0]
        return [[field.divide(column[0], pivot)] for column in columns]

    inner = [row[:-1] for row in matrix[:-1]]
    last_column = [row[-1] for row in matrix[:-1]]
    last_row = list(matrix[-1][:-1])
    corner = matrix[-1][-1]

    # One recursive pass serves every right-hand side plus the last column.
    partial = _solve_columns(inner, [column[:-1] for column in columns] + [last_column], field)
    v2 = partial[-1]
    denominator = field.subtract(corner, dot(last_row, v2, field))

    solutions = []
    for column, v1 in zip(columns, partial[:-1]):
        x = field.divide(field.subtract(column[-1], dot(last_row, v1, field)), denominator)
        head = [field.subtract(p, field.multiply(x, q)) for p, q in zip(v1, v2)]
        solutions.append(head + [x])
    return solutions


def solve(matrix: Matrix, vector: Vector, field: Field = NUMERIC) -> list[Any]:
    """Solve ``matrix @ x == vector`` by recursive block elimination."""
    n = _check_square(matrix)
    if len(vector) != n:
        raise LengthMismatchError(f"right-hand side has length {len(vector)}, expected {n}")
    return _solve_columns(matrix, [list(vector)], field)[0]


def solve_matrix(matrix: Matrix, rhs: Matrix, field: Field = NUMERIC) -> list[list[Any]]:
    """Solve ``matrix @ X == rhs`` column by column."""
    n = _check_square(matrix)
    rows, _ = shape(rhs)
    if rows != n:
        raise DimensionMismatchError(f"right-hand side has {rows} rows, expected {n}")
    return transpose(_solve_columns(matrix, transpose(rhs), field))


def inverse(matrix: Matrix, field: Field = NUMERIC) -> list[list[Any]]:
    n = _check_square(matrix)
    return solve_matrix(matrix, identity(n, field), field)
