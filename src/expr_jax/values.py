"""Rank-tagged numeric values: scalars, vectors and matrices of float64."""

from __future__ import annotations

import numbers
from dataclasses import dataclass
from typing import Callable, Sequence

import jax.numpy as jnp
import numpy as np

from . import linalg
from .errors import DimensionMismatchError, UnsupportedRankError
from .expressions import MAX_RANK, Expr, const
from .operations import lookup_binary, lookup_unary


class Quantity:
    """Common behavior of :class:`Scalar`, :class:`Vector` and :class:`Matrix`."""

    rank: int = 0

    def items(self) -> tuple["Quantity", ...]:
        return ()

    def to_expr(self) -> Expr:
        raise NotImplementedError

    def to_numpy(self) -> np.ndarray:
        return np.asarray(self.value, dtype=np.float64)

    def to_jax(self):
        return jnp.asarray(self.to_numpy())

    def __array__(self, dtype=None, copy=None):
        data = self.to_numpy()
        return data if dtype is None else data.astype(dtype)

    def _binary(self, op: str, other, reverse: bool = False) -> "Quantity":
        other = from_value(other)
        fn = lookup_binary(op).function
        if reverse:
            return map_binary(fn, other, self)
        return map_binary(fn, self, other)

    def __add__(self, other):
        return self._binary("+", other)

    def __radd__(self, other):
        return self._binary("+", other, reverse=True)

    def __sub__(self, other):
        return self._binary("-", other)

    def __rsub__(self, other):
        return self._binary("-", other, reverse=True)

    def __mul__(self, other):
        return self._binary("*", other)

    def __rmul__(self, other):
        return self._binary("*", other, reverse=True)

    def __truediv__(self, other):
        return self._binary("/", other)

    def __rtruediv__(self, other):
        return self._binary("/", other, reverse=True)

    def __pow__(self, other):
        return self._binary("^", other)

    def __neg__(self):
        return map_unary(lookup_unary("-").function, self)

    def __matmul__(self, other):
        return product(self, from_value(other))

    def __rmatmul__(self, other):
        return product(from_value(other), self)


@dataclass(frozen=True)
class Scalar(Quantity):
    value: float
    rank = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", float(self.value))

    def __float__(self) -> float:
        return self.value

    def to_expr(self) -> Expr:
        return const(self.value)


@dataclass(frozen=True)
class Vector(Quantity):
    values: tuple[float, ...]
    rank = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(float(item) for item in self.values))

    @property
    def value(self) -> tuple[float, ...]:
        return self.values

    def items(self) -> tuple[Quantity, ...]:
        return tuple(Scalar(item) for item in self.values)

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self):
        return iter(self.values)

    def __getitem__(self, index):
        return self.values[index]

    def to_expr(self) -> Expr:
        from .rewrite import array

        return array([const(item) for item in self.values])

    def dot(self, other) -> float:
        return linalg.dot(self.values, _vector_values(other))

    def outer(self, other) -> "Matrix":
        return Matrix(linalg.outer(self.values, _vector_values(other)))

    def cross(self, other) -> "Quantity":
        return cross(self, other)

    def norm(self) -> float:
        return float(np.sqrt(self.dot(self)))


@dataclass(frozen=True)
class Matrix(Quantity):
    rows: tuple[tuple[float, ...], ...]
    rank = 2

    def __post_init__(self) -> None:
        rows = tuple(tuple(float(item) for item in row) for row in self.rows)
        linalg.shape(rows)
        object.__setattr__(self, "rows", rows)

    @property
    def value(self) -> tuple[tuple[float, ...], ...]:
        return self.rows

    @property
    def shape(self) -> tuple[int, int]:
        return linalg.shape(self.rows)

    def items(self) -> tuple[Quantity, ...]:
        return tuple(Vector(row) for row in self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def __getitem__(self, index):
        if isinstance(index, tuple):
            row, column = index
            return self.rows[row][column]
        return Vector(self.rows[index])

    def to_expr(self) -> Expr:
        from .rewrite import array

        return array([array([const(item) for item in row]) for row in self.rows])

    @property
    def T(self) -> "Matrix":
        return self.transpose()

    def transpose(self) -> "Matrix":
        return Matrix(linalg.transpose(self.rows))

    def solve(self, rhs) -> Quantity:
        return solve(self, rhs)

    def inverse(self) -> "Matrix":
        return Matrix(linalg.inverse(self.rows))


def _vector_values(value) -> tuple[float, ...]:
    quantity = from_value(value)
    if not isinstance(quantity, Vector):
        raise DimensionMismatchError(f"expected a vector, got rank {quantity.rank}")
    return quantity.values


def assemble(items: Sequence[Quantity]) -> Quantity:
    """Numeric counterpart of the ``array`` constructor (same degeneration rules)."""
    if not items:
        return Scalar(0.0)
    if len(items) == 1:
        return items[0]
    if all(isinstance(item, Scalar) for item in items):
        return Vector(tuple(item.value for item in items))
    if any(item.rank >= MAX_RANK for item in items):
        raise UnsupportedRankError(f"arrays support rank <= {MAX_RANK}, got rank {MAX_RANK + 1}")
    width = max(len(item) for item in items if isinstance(item, Vector))
    rows = []
    for index, item in enumerate(items):
        if isinstance(item, Vector):
            if len(item) != width:
                raise DimensionMismatchError(f"matrix row {index} has length {len(item)}, expected {width}")
            rows.append(item.values)
        else:
            rows.append(tuple(item.value if column == index else 0.0 for column in range(width)))
    return Matrix(tuple(rows))


def _tile(items: Sequence[Quantity], length: int) -> tuple[Quantity, ...]:
    if not items:
        return ()
    return tuple(items[index % len(items)] for index in range(length))


def map_unary(fn: Callable[[float], float], value: Quantity) -> Quantity:
    if isinstance(value, Scalar):
        return Scalar(fn(value.value))
    return assemble([map_unary(fn, item) for item in value.items()])


def map_binary(fn: Callable[[float, float], float], left: Quantity, right: Quantity) -> Quantity:
    """Apply ``fn`` elementwise, tiling the shorter array operand cyclically."""
    if isinstance(left, Scalar) and isinstance(right, Scalar):
        return Scalar(fn(left.value, right.value))
    if isinstance(left, Scalar):
        return assemble([map_binary(fn, left, item) for item in right.items()])
    if isinstance(right, Scalar):
        return assemble([map_binary(fn, item, right) for item in left.items()])
    left_items, right_items = left.items(), right.items()
    length = max(len(left_items), len(right_items)) if left_items and right_items else 0
    return assemble(
        [map_binary(fn, a, b) for a, b in zip(_tile(left_items, length), _tile(right_items, length))]
    )


def from_value(value) -> Quantity:
    """Coerce floats, nested sequences, numpy/JAX arrays and constant expressions."""
    if isinstance(value, Quantity):
        return value
    if isinstance(value, numbers.Real):
        return Scalar(float(value))
    if isinstance(value, Expr):
        return from_expr(value)
    if hasattr(value, "ndim"):
        data = np.asarray(value, dtype=np.float64)
        if data.ndim == 0:
            return Scalar(float(data))
        if data.ndim == 1:
            return Vector(tuple(data.tolist()))
        if data.ndim == 2:
            return Matrix(tuple(tuple(row) for row in data.tolist()))
        raise UnsupportedRankError(f"values support rank <= {MAX_RANK}, got rank {data.ndim}")
    if isinstance(value, Sequence) and not isinstance(value, str):
        return assemble([from_value(item) for item in value])
    raise TypeError(f"Cannot convert {type(value).__name__} to a quantity")


def from_expr(expr: Expr) -> Quantity:
    """Evaluate a variable-free expression."""
    from .evaluator import evaluate

    return evaluate(expr)


def identity(size: int) -> Matrix:
    return Matrix(linalg.identity(size))


def zeros(rows: int, columns: int | None = None) -> Quantity:
    if columns is None:
        return Vector((0.0,) * rows)
    return Matrix(linalg.zeros(rows, columns))


def transpose(value) -> Quantity:
    value = from_value(value)
    if isinstance(value, Matrix):
        return value.transpose()
    return value


def dot(left, right) -> float:
    return linalg.dot(_vector_values(left), _vector_values(right))


def outer(left, right) -> Matrix:
    return Matrix(linalg.outer(_vector_values(left), _vector_values(right)))


def cross(left, right) -> Quantity:
    left, right = from_value(left), from_value(right)
    u = left.values if isinstance(left, Vector) else (left.value,)
    v = right.values if isinstance(right, Vector) else (right.value,)
    if isinstance(left, Matrix) or isinstance(right, Matrix):
        raise DimensionMismatchError("cross product is undefined for matrices")
    result = linalg.cross(u, v)
    if isinstance(result, list):
        return Vector(tuple(result))
    return Scalar(result)


def product(left: Quantity, right: Quantity) -> Quantity:
    """Matrix/vector contraction; scalars fall back to elementwise multiplication."""
    if isinstance(left, Matrix) and isinstance(right, Matrix):
        return Matrix(linalg.mat_mat(left.rows, right.rows))
    if isinstance(left, Matrix) and isinstance(right, Vector):
        return Vector(tuple(linalg.mat_vec(left.rows, right.values)))
    if isinstance(left, Vector) and isinstance(right, Matrix):
        return Vector(tuple(linalg.vec_mat(left.values, right.rows)))
    if isinstance(left, Vector) and isinstance(right, Vector):
        return Scalar(linalg.dot(left.values, right.values))
    return left * right


def solve(matrix, rhs) -> Quantity:
    """Solve ``matrix @ x == rhs`` by block elimination (no pivoting)."""
    matrix, rhs = from_value(matrix), from_value(rhs)
    if not isinstance(matrix, Matrix):
        return rhs / matrix
    if isinstance(rhs, Matrix):
        return Matrix(linalg.solve_matrix(matrix.rows, rhs.rows))
    if isinstance(rhs, Vector):
        return Vector(tuple(linalg.solve(matrix.rows, rhs.values)))
    return Vector(tuple(linalg.solve(matrix.rows, (rhs.value,))))


def inverse(value) -> Quantity:
    value = from_value(value)
    if isinstance(value, Matrix):
        return value.inverse()
    return 1.0 / value
