"""Lowering of expressions to stack-machine bytecode executed with JAX.

An expression is lowered once into a flat instruction list against a fixed
parameter-to-slot table. ``run_bytecode`` interprets that list with
``jax.numpy`` kernels, so the interpreter can itself be traced: the
resulting callable is finalized with ``jax.jit`` and supports ``grad``,
``vmap`` and jaxpr tracing.

Importing this module switches JAX to 64-bit mode for the whole process
(``jax_enable_x64``) so compiled results agree with float64 evaluation.
This affects every other JAX user in the process; set
``EXPR_JAX_DISABLE_X64=1`` before import to leave the JAX configuration
untouched and compile in float32 instead.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Mapping, Sequence

import jax
import jax.numpy as jnp
import numpy as np

from .errors import ArityError, UnboundVariableError
from .expressions import Array, Assign, Binary, Const, Expr, NamedConst, Unary, Variable
from .operations import BINARY_OPERATIONS, CONSTANTS, Lowering, lookup_binary, lookup_unary
from .values import from_value

if TYPE_CHECKING:
    from .function import Function

log = logging.getLogger(__name__)

_USE_JIT = os.environ.get("EXPR_JAX_DISABLE_JIT", "0") != "1"
_USE_X64 = os.environ.get("EXPR_JAX_DISABLE_X64", "0") != "1"

if _USE_X64:
    jax.config.update("jax_enable_x64", True)


class Opcode(str, Enum):
    PUSH_CONST = "push_const"
    LOAD_ARG = "load_arg"
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"
    NEG = "neg"
    CALL_UNARY = "call_unary"
    CALL_BINARY = "call_binary"
    EQUAL = "equal"
    BUILD_VECTOR = "build_vector"
    BUILD_MATRIX = "build_matrix"


_PRIMITIVE_BINARY = {
    "+": Opcode.ADD,
    "-": Opcode.SUB,
    "*": Opcode.MUL,
    "/": Opcode.DIV,
}

_PRIMITIVE_KERNELS = {
    Opcode.ADD: jnp.add,
    Opcode.SUB: jnp.subtract,
    Opcode.MUL: jnp.multiply,
    Opcode.DIV: jnp.divide,
}


@dataclass(frozen=True)
class Instruction:
    opcode: Opcode
    arg: object | None = None


@dataclass(frozen=True)
class Program:
    """Lowered bytecode container."""

    instructions: tuple[Instruction, ...]
    arg_names: tuple[str, ...]
    rank: int

    @property
    def arity(self) -> int:
        return len(self.arg_names)


class _Lowerer:
    def __init__(self, *, arg_names: tuple[str, ...], defaults: Mapping[str, object]) -> None:
        self.slots = {name: index for index, name in enumerate(arg_names)}
        self.defaults = defaults
        self.instructions: list[Instruction] = []

    def _emit(self, opcode: Opcode, arg: object | None = None) -> None:
        self.instructions.append(Instruction(opcode, arg))

    def _constant_for(self, name: str) -> float:
        if name in self.defaults:
            value = from_value(self.defaults[name])
            if value.rank != 0:
                raise UnboundVariableError(name)
            return value.value
        if name in CONSTANTS:
            return CONSTANTS[name].value
        raise UnboundVariableError(name)

    def lower_expr(self, expr: Expr) -> None:
        if isinstance(expr, (Const, NamedConst)):
            self._emit(Opcode.PUSH_CONST, float(expr.value))
            return

        if isinstance(expr, Variable):
            slot = self.slots.get(expr.name)
            if slot is not None:
                self._emit(Opcode.LOAD_ARG, slot)
            else:
                self._emit(Opcode.PUSH_CONST, self._constant_for(expr.name))
            return

        if isinstance(expr, Unary):
            definition = lookup_unary(expr.op)
            self.lower_expr(expr.arg)
            if definition.lowering is Lowering.PRIMITIVE:
                if expr.op == "-":
                    self._emit(Opcode.NEG)
                return
            self._emit(Opcode.CALL_UNARY, expr.op)
            return

        if isinstance(expr, Binary):
            definition = lookup_binary(expr.op)
            self.lower_expr(expr.left)
            self.lower_expr(expr.right)
            if definition.lowering is Lowering.PRIMITIVE:
                self._emit(_PRIMITIVE_BINARY[expr.op])
            else:
                self._emit(Opcode.CALL_BINARY, expr.op)
            return

        if isinstance(expr, Assign):
            self.lower_expr(expr.left)
            self.lower_expr(expr.right)
            self._emit(Opcode.EQUAL)
            return

        if isinstance(expr, Array):
            for element in expr.elements:
                self.lower_expr(element)
            opcode = Opcode.BUILD_MATRIX if expr.rank == 2 else Opcode.BUILD_VECTOR
            self._emit(opcode, len(expr.elements))
            return

        raise TypeError(f"Cannot lower node type {type(expr).__name__}")


def lower(
    expr: Expr,
    arg_names: Sequence[str] = (),
    *,
    defaults: Mapping[str, object] | None = None,
) -> Program:
    """Lower ``expr`` to bytecode with one argument slot per name in ``arg_names``."""
    arg_names = tuple(arg_names)
    lowerer = _Lowerer(arg_names=arg_names, defaults=defaults or {})
    lowerer.lower_expr(expr)
    program = Program(instructions=tuple(lowerer.instructions), arg_names=arg_names, rank=expr.rank)
    log.debug(
        "lowered expression to %d instruction(s), arity=%d, rank=%d",
        len(program.instructions),
        program.arity,
        program.rank,
    )
    return program


def _tile_leading(value, length: int):
    size = value.shape[0]
    if size == length:
        return value
    return value[jnp.arange(length) % size]


def _align(left, right):
    """Match leading axes by cyclic tiling, then broadcast rows against entries."""
    if left.ndim == 0 or right.ndim == 0:
        return left, right
    length = max(left.shape[0], right.shape[0])
    left, right = _tile_leading(left, length), _tile_leading(right, length)
    if left.ndim == 2 and right.ndim == 1:
        return left, right[:, None]
    if left.ndim == 1 and right.ndim == 2:
        return left[:, None], right
    if left.ndim == 2 and right.ndim == 2 and left.shape[1] != right.shape[1]:
        width = max(left.shape[1], right.shape[1])
        left = left[:, jnp.arange(width) % left.shape[1]]
        right = right[:, jnp.arange(width) % right.shape[1]]
    return left, right


def run_bytecode(program: Program, args: Sequence[object]):
    """Execute ``program`` with ``jax.numpy`` operations."""
    dtype = jnp.float64 if _USE_X64 else jnp.float32
    stack: list[object] = []
    for instruction in program.instructions:
        opcode = instruction.opcode
        if opcode is Opcode.PUSH_CONST:
            stack.append(jnp.asarray(instruction.arg, dtype=dtype))
        elif opcode is Opcode.LOAD_ARG:
            stack.append(jnp.asarray(args[instruction.arg], dtype=dtype))
        elif opcode in _PRIMITIVE_KERNELS:
            right = stack.pop()
            left = stack.pop()
            stack.append(_PRIMITIVE_KERNELS[opcode](*_align(left, right)))
        elif opcode is Opcode.NEG:
            stack.append(jnp.negative(stack.pop()))
        elif opcode is Opcode.CALL_UNARY:
            stack.append(lookup_unary(instruction.arg).kernel(stack.pop()))
        elif opcode is Opcode.CALL_BINARY or opcode is Opcode.EQUAL:
            right = stack.pop()
            left = stack.pop()
            op = "=" if opcode is Opcode.EQUAL else instruction.arg
            stack.append(BINARY_OPERATIONS[op].kernel(*_align(left, right)))
        elif opcode is Opcode.BUILD_VECTOR or opcode is Opcode.BUILD_MATRIX:
            count = instruction.arg
            items = stack[len(stack) - count:]
            del stack[len(stack) - count:]
            stack.append(jnp.stack(items))
        else:
            raise RuntimeError(f"Unknown opcode {opcode!r}")
    if len(stack) != 1:
        raise RuntimeError(f"Bytecode left {len(stack)} values on the stack")
    return stack[0]


@dataclass
class CompiledFunction:
    """Fixed-arity callable produced from a lowered expression.

    Calling it returns a ``float`` for scalar bodies and a ``numpy`` array for
    vector or matrix bodies. ``kernel`` is the raw JAX-traceable entry point.
    """

    program: Program
    name: str = "f"
    use_jit: bool = True
    _kernel: object = field(default=None, init=False, repr=False)
    _entry: object = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        program = self.program

        def _kernel(*args):
            return run_bytecode(program, args)

        self._kernel = _kernel
        self._entry = jax.jit(_kernel) if self.use_jit else _kernel
        log.debug(
            "finalized %s(%s) as %s callable",
            self.name,
            ", ".join(program.arg_names),
            "jit" if self.use_jit else "interpreted",
        )

    @property
    def arity(self) -> int:
        return self.program.arity

    @property
    def parameters(self) -> tuple[str, ...]:
        return self.program.arg_names

    @property
    def kernel(self):
        return self._kernel

    def _resolve_call_args(self, *args, **kwargs) -> tuple[object, ...]:
        if args and kwargs:
            raise ArityError("Use either positional or keyword arguments, not both")
        if kwargs:
            names = self.program.arg_names
            missing = [name for name in names if name not in kwargs]
            extra = [name for name in kwargs if name not in names]
            if missing or extra:
                raise ArityError(f"{self.name} expects arguments {list(names)}, missing={missing}, extra={extra}")
            return tuple(kwargs[name] for name in names)
        if len(args) != self.arity:
            raise ArityError(f"{self.name} expects {self.arity} argument(s), got {len(args)}")
        return args

    def __call__(self, *args, **kwargs):
        values = self._resolve_call_args(*args, **kwargs)
        out = self._entry(*values)
        if self.program.rank == 0 and jnp.ndim(out) == 0:
            return float(out)
        return np.asarray(out)

    def trace(self, *args, **kwargs):
        """Emit the jaxpr of this function under sample inputs."""
        values = self._resolve_call_args(*args, **kwargs)
        return jax.make_jaxpr(self._kernel)(*values)

    def grad(self, argnum: int = 0):
        """Return the JAX gradient of a scalar-valued function."""
        grad_core = jax.grad(self._kernel, argnums=argnum)
        return jax.jit(grad_core)

    def vmap(self, *, in_axes=0, out_axes=0):
        """Return a batched callable evaluating the function at many points."""
        vmapped = jax.vmap(self._kernel, in_axes=in_axes, out_axes=out_axes)
        return jax.jit(vmapped)


def compile_expression(
    expr: Expr,
    parameters: Sequence[str | Variable] = (),
    *,
    name: str = "f",
    defaults: Mapping[str, object] | None = None,
    jit: bool | None = None,
) -> CompiledFunction:
    """Lower and finalize ``expr`` into a callable taking ``parameters`` in order.

    Each call produces a fresh callable; nothing is cached between calls.
    """
    arg_names = tuple(p.name if isinstance(p, Variable) else p for p in parameters)
    program = lower(expr, arg_names, defaults=defaults)
    return CompiledFunction(program=program, name=name, use_jit=_USE_JIT if jit is None else jit)


def compile_function(
    function: "Function",
    *,
    defaults: Mapping[str, object] | None = None,
    jit: bool | None = None,
) -> CompiledFunction:
    return compile_expression(
        function.body,
        function.parameters,
        name=function.name,
        defaults=defaults,
        jit=jit,
    )
