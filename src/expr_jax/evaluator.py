"""Tree-walking evaluation of expressions to rank-tagged quantities."""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from typing import Iterable

from .errors import UnboundVariableError
from .expressions import Array, Assign, Binary, Const, Expr, NamedConst, Unary, Variable
from .operations import CONSTANTS, lookup_binary, lookup_unary
from .values import Quantity, Scalar, assemble, from_value, map_binary, map_unary


def _key(symbol) -> str:
    return symbol.name if isinstance(symbol, Variable) else str(symbol)


def _as_table(values) -> dict[str, Quantity]:
    if values is None:
        return {}
    items = values.items() if isinstance(values, Mapping) else values
    return {_key(symbol): from_value(value) for symbol, value in items}


class Environment(MutableMapping[str, object]):
    """Variable values for one evaluation: explicit bindings over a defaults table.

    Lookups try the bindings first, then the defaults. Writes only touch the
    bindings; the defaults table is never mutated.
    """

    def __init__(
        self,
        bindings: Mapping[str, object] | Iterable[tuple[str, object]] | None = None,
        defaults: Mapping[str, object] | None = None,
    ) -> None:
        self._bindings = _as_table(bindings)
        self._defaults = _as_table(defaults)

    def __getitem__(self, key: str) -> Quantity:
        key = _key(key)
        if key in self._bindings:
            return self._bindings[key]
        return self._defaults[key]

    def __setitem__(self, key: str, value: object) -> None:
        self._bindings[_key(key)] = from_value(value)

    def __delitem__(self, key: str) -> None:
        del self._bindings[_key(key)]

    def __iter__(self):
        yield from self._bindings
        for key in self._defaults:
            if key not in self._bindings:
                yield key

    def __len__(self) -> int:
        return len(self._bindings.keys() | self._defaults.keys())

    @property
    def defaults(self) -> Mapping[str, Quantity]:
        return dict(self._defaults)

    def resolve(self, name: str) -> Quantity:
        """Value of ``name``: bindings, then defaults, then registry constants."""
        if name in self:
            return self[name]
        constant = CONSTANTS.get(name)
        if constant is not None:
            return Scalar(constant.value)
        raise UnboundVariableError(name)


def _evaluate(expr: Expr, env: Environment) -> Quantity:
    if isinstance(expr, (Const, NamedConst)):
        return Scalar(expr.value)
    if isinstance(expr, Variable):
        return env.resolve(expr.name)
    if isinstance(expr, Unary):
        return map_unary(lookup_unary(expr.op).function, _evaluate(expr.arg, env))
    if isinstance(expr, Binary):
        fn = lookup_binary(expr.op).function
        return map_binary(fn, _evaluate(expr.left, env), _evaluate(expr.right, env))
    if isinstance(expr, Assign):
        fn = lookup_binary("=").function
        return map_binary(fn, _evaluate(expr.left, env), _evaluate(expr.right, env))
    if isinstance(expr, Array):
        return assemble([_evaluate(element, env) for element in expr.elements])
    raise TypeError(f"Cannot evaluate node type {type(expr).__name__}")


def evaluate(
    expr: Expr,
    bindings: Environment | Mapping[str, object] | Iterable[tuple[str, object]] | None = None,
    *,
    defaults: Mapping[str, object] | None = None,
) -> Quantity:
    """Evaluate ``expr`` with the given variable bindings.

    ``bindings`` is a mapping or a sequence of ``(symbol, value)`` pairs;
    values may be numbers, nested sequences, arrays or quantities. Variables
    missing from both ``bindings`` and ``defaults`` fall back to the registry
    constants, else ``UnboundVariableError`` is raised.
    """
    if isinstance(bindings, Environment):
        env = bindings if defaults is None else Environment(dict(bindings), defaults)
    else:
        env = Environment(bindings, defaults)
    return _evaluate(expr, env)
