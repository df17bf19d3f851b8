"""Structured error types for parsing, rewriting, calculus and execution."""

from __future__ import annotations


class ExprError(Exception):
    """Base class for structured expr-jax errors."""


class ParseError(ExprError, SyntaxError):
    def __init__(
        self,
        message: str,
        start: int,
        end: int,
        expected: tuple[str, ...] = (),
        found: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.start = start
        self.end = end
        self.expected = expected
        self.found = found

    def __str__(self) -> str:
        expected_text = ""
        if self.expected:
            expected_text = f"; expected {', '.join(self.expected)}"
        found_text = ""
        if self.found is not None:
            found_text = f"; found {self.found}"
        return f"{self.message} at span [{self.start}, {self.end}){expected_text}{found_text}"


class UnknownOperatorError(ExprError, KeyError):
    """Operator identifier is not present in the registry."""

    def __init__(self, identifier: str, kind: str = "operator") -> None:
        super().__init__(identifier)
        self.identifier = identifier
        self.kind = kind

    def __str__(self) -> str:
        return f"Unknown {self.kind} {self.identifier!r}"


class UnsupportedRankError(ExprError, ValueError):
    """Expression or value would exceed rank 2."""


class LengthMismatchError(ExprError, ValueError):
    """Elementwise vector operation received arrays of unequal length."""


class DimensionMismatchError(ExprError, ValueError):
    """Matrix rows/columns disagree (ragged matrix, non-conformal product or solve)."""


class UnboundVariableError(ExprError, NameError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Missing value for variable {name!r}")
        self.name = name


class NoDerivativeRuleError(ExprError, NotImplementedError):
    def __init__(self, identifier: str) -> None:
        super().__init__(f"No derivative rule registered for {identifier!r}")
        self.identifier = identifier


class MissingParameterError(ExprError, ValueError):
    def __init__(self, function: str, missing: tuple[str, ...]) -> None:
        super().__init__(f"Missing {', '.join(missing)} from parameter list of {function!r}")
        self.function = function
        self.missing = missing


class ConstantRedefinitionError(ExprError, ValueError):
    """A protected named constant was bound to a different value."""


class SimplifyLimitError(ExprError, RuntimeError):
    def __init__(self, iterations: int) -> None:
        super().__init__(f"simplify() did not reach a fixed point within {iterations} iterations")
        self.iterations = iterations


class ArityError(ExprError, TypeError):
    """Compiled callable invoked with the wrong number of arguments."""
