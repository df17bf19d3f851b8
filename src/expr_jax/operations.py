"""Process-wide operation registry.

The registry is a static table: every operator identifier maps to a scalar
float64 implementation (numpy, IEEE-754 propagation, never raises), a
``jax.numpy`` kernel used by the compiled backend, a derivative rule tag
consumed by :mod:`expr_jax.calculus`, and a lowering strategy. Constants,
unary and binary operators live in disjoint namespaces keyed by the same
identifiers the parser and the formatter use.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Callable, Final, Mapping

import jax.numpy as jnp
import numpy as np

from .errors import UnknownOperatorError


class Lowering(str, Enum):
    PRIMITIVE = "primitive"
    CALL = "call"


@dataclass(frozen=True)
class ConstOp:
    identifier: str
    value: float


@dataclass(frozen=True)
class UnaryOp:
    identifier: str
    function: Callable[[float], float]
    kernel: Callable
    derivative: str | None
    lowering: Lowering = Lowering.CALL


@dataclass(frozen=True)
class BinaryOp:
    identifier: str
    function: Callable[[float, float], float]
    kernel: Callable
    derivative: str | None
    lowering: Lowering = Lowering.CALL


def _scalar(fn):
    def wrapped(*args: float) -> float:
        with np.errstate(all="ignore"):
            return float(fn(*(np.float64(arg) for arg in args)))

    wrapped.__name__ = getattr(fn, "__name__", "scalar")
    return wrapped


_DEG: Final[float] = math.pi / 180
_RAD: Final[float] = 180 / math.pi


def _equal(x, y):
    return np.float64(1.0) if x == y else np.float64(0.0)


def _equal_kernel(x, y):
    return jnp.where(x == y, 1.0, 0.0)


_CONSTANTS: Final[tuple[ConstOp, ...]] = (
    ConstOp("pi", math.pi),
    ConstOp("e", math.e),
    ConstOp("deg", _DEG),
    ConstOp("rad", _RAD),
    ConstOp("rpm", math.pi / 30),
    ConstOp("Φ", (1 + math.sqrt(5)) / 2),
    ConstOp("inf", math.inf),
    ConstOp("nan", math.nan),
)

_UNARY: Final[tuple[UnaryOp, ...]] = (
    UnaryOp("+", _scalar(lambda x: x), lambda x: x, "+", Lowering.PRIMITIVE),
    UnaryOp("-", _scalar(np.negative), jnp.negative, "-", Lowering.PRIMITIVE),
    UnaryOp("pi", _scalar(lambda x: math.pi * x), lambda x: math.pi * x, "pi"),
    UnaryOp("abs", _scalar(np.abs), jnp.abs, "abs"),
    UnaryOp("sign", _scalar(np.sign), jnp.sign, "zero"),
    UnaryOp("inv", _scalar(lambda x: np.divide(1.0, x)), lambda x: 1.0 / x, "inv"),
    UnaryOp("sqr", _scalar(lambda x: x * x), lambda x: x * x, "sqr"),
    UnaryOp("cub", _scalar(lambda x: x * x * x), lambda x: x * x * x, "cub"),
    UnaryOp("exp", _scalar(np.exp), jnp.exp, "exp"),
    UnaryOp("ln", _scalar(np.log), jnp.log, "ln"),
    UnaryOp("sqrt", _scalar(np.sqrt), jnp.sqrt, "sqrt"),
    UnaryOp("cbrt", _scalar(np.cbrt), jnp.cbrt, "cbrt"),
    UnaryOp("floor", _scalar(np.floor), jnp.floor, "zero"),
    UnaryOp("ceil", _scalar(np.ceil), jnp.ceil, "zero"),
    UnaryOp("round", _scalar(np.round), jnp.round, "zero"),
    UnaryOp("sin", _scalar(np.sin), jnp.sin, "sin"),
    UnaryOp("cos", _scalar(np.cos), jnp.cos, "cos"),
    UnaryOp("tan", _scalar(np.tan), jnp.tan, "tan"),
    UnaryOp("sind", _scalar(lambda x: np.sin(x * _DEG)), lambda x: jnp.sin(x * _DEG), "sind"),
    UnaryOp("cosd", _scalar(lambda x: np.cos(x * _DEG)), lambda x: jnp.cos(x * _DEG), "cosd"),
    UnaryOp("tand", _scalar(lambda x: np.tan(x * _DEG)), lambda x: jnp.tan(x * _DEG), "tand"),
    UnaryOp("asin", _scalar(np.arcsin), jnp.arcsin, "asin"),
    UnaryOp("acos", _scalar(np.arccos), jnp.arccos, "acos"),
    UnaryOp("atan", _scalar(np.arctan), jnp.arctan, "atan"),
    UnaryOp("asind", _scalar(lambda x: np.arcsin(x) * _RAD), lambda x: jnp.arcsin(x) * _RAD, "asind"),
    UnaryOp("acosd", _scalar(lambda x: np.arccos(x) * _RAD), lambda x: jnp.arccos(x) * _RAD, "acosd"),
    UnaryOp("atand", _scalar(lambda x: np.arctan(x) * _RAD), lambda x: jnp.arctan(x) * _RAD, "atand"),
    UnaryOp("sinh", _scalar(np.sinh), jnp.sinh, "sinh"),
    UnaryOp("cosh", _scalar(np.cosh), jnp.cosh, "cosh"),
    UnaryOp("tanh", _scalar(np.tanh), jnp.tanh, "tanh"),
    UnaryOp("asinh", _scalar(np.arcsinh), jnp.arcsinh, "asinh"),
    UnaryOp("acosh", _scalar(np.arccosh), jnp.arccosh, "acosh"),
    UnaryOp("atanh", _scalar(np.arctanh), jnp.arctanh, "atanh"),
)

_BINARY: Final[tuple[BinaryOp, ...]] = (
    BinaryOp("+", _scalar(np.add), jnp.add, "+", Lowering.PRIMITIVE),
    BinaryOp("-", _scalar(np.subtract), jnp.subtract, "-", Lowering.PRIMITIVE),
    BinaryOp("*", _scalar(np.multiply), jnp.multiply, "*", Lowering.PRIMITIVE),
    BinaryOp("/", _scalar(np.divide), jnp.divide, "/", Lowering.PRIMITIVE),
    BinaryOp("^", _scalar(np.power), jnp.power, "^"),
    BinaryOp("=", _scalar(_equal), _equal_kernel, "="),
    BinaryOp("min", _scalar(np.minimum), jnp.minimum, "min"),
    BinaryOp("max", _scalar(np.maximum), jnp.maximum, "max"),
    BinaryOp("atan2", _scalar(np.arctan2), jnp.arctan2, "atan2"),
    BinaryOp("log", _scalar(lambda x, b: np.log(x) / np.log(b)), lambda x, b: jnp.log(x) / jnp.log(b), "log"),
    BinaryOp("mod", _scalar(np.fmod), jnp.fmod, None),
)

CONSTANTS: Final[Mapping[str, ConstOp]] = MappingProxyType({op.identifier: op for op in _CONSTANTS})
UNARY_OPERATIONS: Final[Mapping[str, UnaryOp]] = MappingProxyType({op.identifier: op for op in _UNARY})
BINARY_OPERATIONS: Final[Mapping[str, BinaryOp]] = MappingProxyType({op.identifier: op for op in _BINARY})


def is_constant(identifier: str) -> bool:
    return identifier in CONSTANTS


def is_unary(identifier: str) -> bool:
    return identifier in UNARY_OPERATIONS


def is_binary(identifier: str) -> bool:
    return identifier in BINARY_OPERATIONS


def lookup_constant(identifier: str) -> ConstOp:
    try:
        return CONSTANTS[identifier]
    except KeyError:
        raise UnknownOperatorError(identifier, "constant") from None


def lookup_unary(identifier: str) -> UnaryOp:
    try:
        return UNARY_OPERATIONS[identifier]
    except KeyError:
        raise UnknownOperatorError(identifier, "unary operator") from None


def lookup_binary(identifier: str) -> BinaryOp:
    try:
        return BINARY_OPERATIONS[identifier]
    except KeyError:
        raise UnknownOperatorError(identifier, "binary operator") from None


def lookup(identifier: str, *, arity: int) -> UnaryOp | BinaryOp | ConstOp:
    """Resolve an identifier in the namespace selected by ``arity`` (0, 1 or 2)."""
    if arity == 0:
        return lookup_constant(identifier)
    if arity == 1:
        return lookup_unary(identifier)
    if arity == 2:
        return lookup_binary(identifier)
    raise UnknownOperatorError(identifier, f"{arity}-ary operator")
