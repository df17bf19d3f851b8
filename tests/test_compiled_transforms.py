from __future__ import annotations

import ast
import importlib.util
from pathlib import Path
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None

COMPILER_PATH = Path(__file__).resolve().parent.parent / "src" / "expr_jax" / "compiler.py"
TRANSFORM_ATTRS = {"jit", "vmap", "grad", "make_jaxpr"}
KERNEL_NAMES = {"_kernel", "self._kernel"}


def _transform_name(node: ast.AST) -> str | None:
    if not isinstance(node, ast.Call):
        return None
    func = node.func
    if isinstance(func, ast.Attribute) and isinstance(func.value, ast.Name) and func.value.id == "jax":
        if func.attr in TRANSFORM_ATTRS:
            return func.attr
    return None


def _source_of(node: ast.AST) -> str:
    return ast.unparse(node)


def _compiled_function_methods() -> dict[str, ast.FunctionDef]:
    tree = ast.parse(COMPILER_PATH.read_text(encoding="utf-8"), filename=str(COMPILER_PATH))
    for node in tree.body:
        if isinstance(node, ast.ClassDef) and node.name == "CompiledFunction":
            return {item.name: item for item in node.body if isinstance(item, ast.FunctionDef)}
    raise AssertionError("CompiledFunction not found in compiler.py")


class TransformSiteTests(unittest.TestCase):
    """Every JAX transform in the compiler wraps the bytecode kernel, once."""

    def test_transforms_only_wrap_the_bytecode_kernel(self) -> None:
        violations: list[str] = []

        for name, method in _compiled_function_methods().items():
            # Names bound to a transform of the kernel may themselves be jitted.
            wrapped = set(KERNEL_NAMES)
            for node in ast.walk(method):
                if isinstance(node, ast.Assign) and _transform_name(node.value) in {"grad", "vmap"}:
                    wrapped.update(_source_of(target) for target in node.targets)
            for node in ast.walk(method):
                transform = _transform_name(node)
                if transform is None:
                    continue
                target = _source_of(node.args[0]) if node.args else ""
                allowed = wrapped if transform == "jit" else KERNEL_NAMES
                if target not in allowed:
                    violations.append(f"{name}:{node.lineno} jax.{transform}({target})")

        self.assertEqual([], violations, msg="\n".join(violations))

    def test_no_transform_is_built_inside_another_call(self) -> None:
        violations: list[str] = []

        for name, method in _compiled_function_methods().items():
            for node in ast.walk(method):
                if _transform_name(node) is None:
                    continue
                if any(_transform_name(arg) is not None for arg in node.args):
                    violations.append(f"{name}:{node.lineno}")

        self.assertEqual([], violations, msg="\n".join(violations))

    def test_every_public_transform_method_is_covered(self) -> None:
        methods = _compiled_function_methods()
        for name in ("__post_init__", "trace", "grad", "vmap"):
            with self.subTest(method=name):
                self.assertIn(name, methods)
                calls = [node for node in ast.walk(methods[name]) if _transform_name(node)]
                self.assertTrue(calls)


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for transform tests")
class KernelTransformTests(unittest.TestCase):
    def test_jitted_entry_and_raw_kernel_agree(self) -> None:
        from expr_jax import compile_expression, parse

        fn = compile_expression(parse("x * exp(y) - y^2"), ["x", "y"], jit=True)
        self.assertAlmostEqual(float(fn.kernel(1.5, 0.25)), fn(1.5, 0.25), places=12)

    def test_grad_of_interpreted_callable_matches_jitted(self) -> None:
        from expr_jax import compile_expression, parse

        expr = parse("sin(x) * y")
        jitted = compile_expression(expr, ["x", "y"], jit=True)
        interpreted = compile_expression(expr, ["x", "y"], jit=False)
        self.assertAlmostEqual(
            float(jitted.grad(1)(0.5, 2.0)),
            float(interpreted.grad(1)(0.5, 2.0)),
            places=12,
        )

    def test_trace_runs_over_the_raw_kernel(self) -> None:
        from expr_jax import compile_expression, parse

        fn = compile_expression(parse("x + cos(x)"), ["x"], jit=True)
        text = str(fn.trace(1.0))
        self.assertIn("cos", text)


if __name__ == "__main__":
    unittest.main()
