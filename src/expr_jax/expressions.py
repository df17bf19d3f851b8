"""Immutable expression nodes for scalar, vector and matrix algebra.

Nodes are frozen dataclasses, so equality and hashing are structural; NaN
literals compare equal to one another. Every node should be built through
the smart constructors in :mod:`expr_jax.rewrite` (the Python operators
below route there); building the dataclasses directly yields a raw,
unnormalized node.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import cached_property
from typing import TYPE_CHECKING, Iterator, Mapping, Sequence

from .errors import DimensionMismatchError, UnsupportedRankError

if TYPE_CHECKING:
    from .function import Function
    from .values import Quantity


MAX_RANK = 2


class Expr:
    """Common behavior of all expression nodes."""

    @property
    def rank(self) -> int:
        raise NotImplementedError

    def children(self) -> tuple["Expr", ...]:
        return ()

    def walk(self) -> Iterator["Expr"]:
        """Pre-order traversal of the tree rooted at this node."""
        stack: list[Expr] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children()))

    def is_constant(self, include_named: bool = True) -> bool:
        return False

    def symbols(self, alphabetical: bool = True) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for node in self.walk():
            if isinstance(node, Variable):
                seen.setdefault(node.name, None)
        names = tuple(seen)
        return tuple(sorted(names)) if alphabetical else names

    def values(self) -> tuple[float, ...]:
        return tuple(node.value for node in self.walk() if isinstance(node, Const))

    def substitute(self, mapping: Mapping[str | "Variable", object]) -> "Expr":
        from .rewrite import substitute

        return substitute(self, mapping)

    def simplify(self, *, max_iterations: int | None = None) -> "Expr":
        from .rewrite import simplify

        return simplify(self, max_iterations=max_iterations)

    def partial(self, symbol: str | "Variable") -> "Expr":
        from .calculus import partial

        return partial(self, symbol)

    def total_derivative(self, rates=None) -> "Expr":
        from .calculus import total_derivative

        return total_derivative(self, rates)

    def jacobian(self, symbols: Sequence[str | "Variable"] | None = None) -> "Expr":
        from .calculus import jacobian

        return jacobian(self, symbols)

    def eval(self, bindings: Mapping[str, object] | None = None, *, defaults: Mapping[str, object] | None = None) -> "Quantity":
        from .evaluator import evaluate

        return evaluate(self, bindings, defaults=defaults)

    def function(self, name: str, parameters: Sequence[str | "Variable"] | None = None) -> "Function":
        from .function import Function

        return Function.create(name, self, parameters)

    def __str__(self) -> str:
        from .formatting import format_expr

        return format_expr(self)

    # Python operators are elementwise and normalizing; `@` is the matrix product.
    def __add__(self, other):
        from .rewrite import add, as_expr

        return add(self, as_expr(other))

    def __radd__(self, other):
        from .rewrite import add, as_expr

        return add(as_expr(other), self)

    def __sub__(self, other):
        from .rewrite import as_expr, subtract

        return subtract(self, as_expr(other))

    def __rsub__(self, other):
        from .rewrite import as_expr, subtract

        return subtract(as_expr(other), self)

    def __mul__(self, other):
        from .rewrite import as_expr, multiply

        return multiply(self, as_expr(other))

    def __rmul__(self, other):
        from .rewrite import as_expr, multiply

        return multiply(as_expr(other), self)

    def __truediv__(self, other):
        from .rewrite import as_expr, divide

        return divide(self, as_expr(other))

    def __rtruediv__(self, other):
        from .rewrite import as_expr, divide

        return divide(as_expr(other), self)

    def __pow__(self, other):
        from .rewrite import as_expr, power

        return power(self, as_expr(other))

    def __rpow__(self, other):
        from .rewrite import as_expr, power

        return power(as_expr(other), self)

    def __neg__(self):
        from .rewrite import negate

        return negate(self)

    def __pos__(self):
        return self

    def __matmul__(self, other):
        from .algebra import product
        from .rewrite import as_expr

        return product(self, as_expr(other))

    def __rmatmul__(self, other):
        from .algebra import product
        from .rewrite import as_expr

        return product(as_expr(other), self)


def _same_number(a: float, b: float) -> bool:
    return a == b or (math.isnan(a) and math.isnan(b))


def _number_hash(value: float) -> int:
    # float('nan') hashes by identity; every NaN literal must hash alike
    return hash("nan") if math.isnan(value) else hash(value)


@dataclass(frozen=True)
class Const(Expr):
    value: float

    def __eq__(self, other):
        if other.__class__ is not Const:
            return NotImplemented
        return _same_number(self.value, other.value)

    def __hash__(self) -> int:
        return hash((Const, _number_hash(self.value)))

    @property
    def rank(self) -> int:
        return 0

    def is_constant(self, include_named: bool = True) -> bool:
        return True


@dataclass(frozen=True)
class NamedConst(Expr):
    """A protected literal such as ``pi``; never substituted, kept symbolic."""

    name: str
    value: float

    def __eq__(self, other):
        if other.__class__ is not NamedConst:
            return NotImplemented
        return self.name == other.name and _same_number(self.value, other.value)

    def __hash__(self) -> int:
        return hash((NamedConst, self.name, _number_hash(self.value)))

    @property
    def rank(self) -> int:
        return 0

    def is_constant(self, include_named: bool = True) -> bool:
        return include_named


@dataclass(frozen=True)
class Variable(Expr):
    name: str

    @property
    def rank(self) -> int:
        return 0


@dataclass(frozen=True)
class Unary(Expr):
    op: str
    arg: Expr

    @cached_property
    def rank(self) -> int:
        return self.arg.rank

    def children(self) -> tuple[Expr, ...]:
        return (self.arg,)


@dataclass(frozen=True)
class Binary(Expr):
    op: str
    left: Expr
    right: Expr

    @cached_property
    def rank(self) -> int:
        return max(self.left.rank, self.right.rank)

    def children(self) -> tuple[Expr, ...]:
        return (self.left, self.right)


@dataclass(frozen=True)
class Assign(Expr):
    """An equation ``left = right``; evaluates to 1.0 where both sides agree."""

    left: Expr
    right: Expr

    @cached_property
    def rank(self) -> int:
        return max(self.left.rank, self.right.rank)

    def children(self) -> tuple[Expr, ...]:
        return (self.left, self.right)


@dataclass(frozen=True)
class Array(Expr):
    """A vector of scalars, or a matrix whose rows are equal-length vectors."""

    elements: tuple[Expr, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.elements, tuple):
            object.__setattr__(self, "elements", tuple(self.elements))
        inner = max((element.rank for element in self.elements), default=0)
        if inner + 1 > MAX_RANK:
            raise UnsupportedRankError(f"arrays support rank <= {MAX_RANK}, got rank {inner + 1}")
        if inner == 1:
            lengths = {len(row.elements) if isinstance(row, Array) else -1 for row in self.elements}
            if len(lengths) != 1 or -1 in lengths:
                raise DimensionMismatchError("matrix rows must be vectors of equal length")

    @cached_property
    def rank(self) -> int:
        return 1 + max((element.rank for element in self.elements), default=0)

    @property
    def shape(self) -> tuple[int, ...]:
        if self.rank == 2:
            return (len(self.elements), len(self.elements[0].elements))
        return (len(self.elements),)

    def children(self) -> tuple[Expr, ...]:
        return self.elements

    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self) -> Iterator[Expr]:
        return iter(self.elements)

    def __getitem__(self, index):
        if isinstance(index, tuple):
            row, column = index
            return self.elements[row].elements[column]
        return self.elements[index]


ZERO = Const(0.0)
ONE = Const(1.0)
NAN = Const(math.nan)


def const(value: float) -> Const:
    value = float(value)
    if value == 0.0:
        return ZERO
    if value == 1.0:
        return ONE
    if math.isnan(value):
        return NAN
    return Const(value)


def is_number(expr: Expr, value: float | None = None) -> bool:
    """True for a plain numeric literal (optionally equal to ``value``)."""
    if not isinstance(expr, Const):
        return False
    return value is None or expr.value == value
