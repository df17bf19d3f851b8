"""Named functions: an expression body with an ordered parameter list."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Sequence

import numpy as np

from .calculus import jacobian, partial, rate_pairs, rate_symbol, total_derivative
from .compiler import CompiledFunction, compile_function
from .errors import MissingParameterError
from .expressions import Expr, Variable
from .rewrite import as_expr, substitute
from .values import Quantity, Scalar, Vector, from_value

log = logging.getLogger(__name__)


def _names(parameters: Sequence[str | Variable]) -> tuple[str, ...]:
    return tuple(p.name if isinstance(p, Variable) else str(p) for p in parameters)


@dataclass(frozen=True)
class Function:
    """Immutable pairing of a body with parameters that cover its free symbols."""

    name: str
    body: Expr
    parameters: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", _names(self.parameters))
        missing = tuple(symbol for symbol in self.body.symbols(alphabetical=False) if symbol not in self.parameters)
        if missing:
            raise MissingParameterError(self.name, missing)

    @classmethod
    def create(cls, name: str, body, parameters: Sequence[str | Variable] | None = None) -> "Function":
        """Build a function; parameters default to the body's symbols, alphabetically."""
        body = as_expr(body)
        if parameters is None:
            parameters = body.symbols(alphabetical=True)
        return cls(name, body, tuple(parameters))

    @property
    def rank(self) -> int:
        return self.body.rank

    @property
    def arity(self) -> int:
        return len(self.parameters)

    def __str__(self) -> str:
        return f"{self.name}({','.join(self.parameters)})={self.body}"

    def partial(self, symbol: str | Variable) -> "Function":
        name = symbol.name if isinstance(symbol, Variable) else symbol
        return Function(f"{self.name}_{name}", partial(self.body, name), self.parameters)

    def total_derivative(self, name: str | None = None, rates=None) -> "Function":
        """Chain-rule derivative; rate variables are appended to the parameters."""
        if rates is None:
            rates = self.parameters
        pairs = rate_pairs(self.body, rates)
        parameters = list(self.parameters)
        for _, rate in pairs:
            if isinstance(rate, Variable) and rate.name not in parameters:
                parameters.append(rate.name)
        body = total_derivative(self.body, pairs)
        return Function(name or rate_symbol(self.name), body, tuple(parameters))

    def jacobian(self) -> Expr:
        return jacobian(self.body, self.parameters)

    def substitute(self, name: str, values: Mapping[str | Variable, object]) -> "Function":
        """Replace some parameters by values or expressions and drop them from the list."""
        removed = set(_names(list(values)))
        body = substitute(self.body, values)
        parameters = tuple(p for p in self.parameters if p not in removed)
        return Function(name, body, parameters)

    def compile(self, *, defaults: Mapping[str, object] | None = None, jit: bool | None = None) -> CompiledFunction:
        return compile_function(self, defaults=defaults, jit=jit)

    def newton_raphson(
        self,
        initial,
        target: float = 0.0,
        tolerance: float = 1e-11,
        max_iterations: int = 100,
    ) -> Quantity:
        """Find parameters where the scalar body equals ``target``.

        Supports one parameter (scalar ``initial``) or two parameters (a
        2-vector ``initial``). Each step is halved while it fails to reduce
        the residual.
        """
        start = from_value(initial)
        if self.rank != 0:
            raise NotImplementedError(f"Rank {self.rank} functions are not supported")
        if isinstance(start, Scalar) and self.arity == 1:
            point = [start.value]
        elif isinstance(start, Vector) and self.arity == 2 and len(start) == 2:
            point = list(start.values)
        else:
            raise ValueError(f"{self.name} needs {self.arity} initial value(s) matching its parameters")

        fn = self.compile()
        slopes = [self.partial(parameter).compile() for parameter in self.parameters]

        f = fn(*point)
        error = abs(f - target)
        iteration = 0
        while error > tolerance and iteration < max_iterations:
            iteration += 1
            with np.errstate(all="ignore"):
                step = [float(np.float64(target - f) / np.float64(slope(*point))) for slope in slopes]
            scale = 1.0
            previous = error
            f = fn(*(p + scale * s for p, s in zip(point, step)))
            error = abs(f - target)
            while error >= previous and scale > 1 / max_iterations:
                scale /= 2
                f = fn(*(p + scale * s for p, s in zip(point, step)))
                error = abs(f - target)
            point = [p + scale * s for p, s in zip(point, step)]
            f = fn(*point)
            error = abs(f - target)
        log.debug("newton_raphson on %s stopped after %d iteration(s), residual %g", self.name, iteration, error)
        if len(point) == 1:
            return Scalar(point[0])
        return Vector(tuple(point))
