from __future__ import annotations

import importlib.util
import math
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for evaluator tests")
class EvaluateTests(unittest.TestCase):
    def test_scalar_evaluation(self) -> None:
        from expr_jax import Scalar, evaluate, parse

        self.assertEqual(evaluate(parse("x + y"), {"x": 1, "y": 2}), Scalar(3.0))
        self.assertEqual(parse("x*y").eval([("x", 2.0), ("y", 4.0)]), Scalar(8.0))

    def test_unbound_variable_raises(self) -> None:
        from expr_jax import UnboundVariableError, parse

        with self.assertRaises(UnboundVariableError) as ctx:
            parse("x + z").eval({"x": 1})
        self.assertEqual(ctx.exception.name, "z")

    def test_defaults_fill_missing_bindings(self) -> None:
        from expr_jax import parse

        expr = parse("m * g")
        self.assertAlmostEqual(float(expr.eval({"m": 2}, defaults={"g": 9.81})), 19.62)
        self.assertAlmostEqual(float(expr.eval({"m": 2, "g": 10}, defaults={"g": 9.81})), 20.0)

    def test_registry_constants_resolve_unbound_names(self) -> None:
        from expr_jax import Variable, evaluate

        self.assertEqual(float(evaluate(Variable("pi"))), math.pi)

    def test_ieee_results_do_not_raise(self) -> None:
        from expr_jax import parse

        self.assertEqual(float(parse("1/x").eval({"x": 0})), math.inf)
        self.assertTrue(math.isnan(float(parse("ln(x)").eval({"x": -1}))))
        self.assertTrue(math.isnan(float(parse("x/y").eval({"x": 0, "y": 0}))))

    def test_equation_evaluates_to_indicator(self) -> None:
        from expr_jax import parse

        self.assertEqual(float(parse("x = y").eval({"x": 1, "y": 1})), 1.0)
        self.assertEqual(float(parse("x = y").eval({"x": 1, "y": 2})), 0.0)

    def test_vector_and_matrix_results(self) -> None:
        from expr_jax import Matrix, Vector, parse

        self.assertEqual(parse("[[1, x], [x, 1]]").eval({"x": 2}), Matrix(((1.0, 2.0), (2.0, 1.0))))
        self.assertEqual(parse("x * 2").eval({"x": [1, 2, 3]}), Vector((2.0, 4.0, 6.0)))
        self.assertEqual(parse("x + y").eval({"x": [1, 2], "y": [10, 20, 30]}), Vector((11.0, 22.0, 31.0)))

    def test_bindings_accept_numpy_and_jax_arrays(self) -> None:
        import jax.numpy as jnp
        import numpy as np

        from expr_jax import Vector, parse

        self.assertEqual(parse("x - 1").eval({"x": np.array([1.0, 2.0])}), Vector((0.0, 1.0)))
        self.assertEqual(parse("x - 1").eval({"x": jnp.array([1.0, 2.0])}), Vector((0.0, 1.0)))


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for evaluator tests")
class EnvironmentTests(unittest.TestCase):
    def test_bindings_shadow_defaults(self) -> None:
        from expr_jax import Environment, Scalar

        env = Environment({"x": 1}, defaults={"x": 5, "y": 2})
        self.assertEqual(env["x"], Scalar(1.0))
        self.assertEqual(env["y"], Scalar(2.0))
        self.assertEqual(sorted(env), ["x", "y"])
        self.assertEqual(len(env), 2)

    def test_writes_never_touch_defaults(self) -> None:
        from expr_jax import Environment, Scalar

        env = Environment(defaults={"g": 9.81})
        env["g"] = 10
        self.assertEqual(env["g"], Scalar(10.0))
        self.assertEqual(env.defaults["g"], Scalar(9.81))
        del env["g"]
        self.assertEqual(env["g"], Scalar(9.81))

    def test_environment_is_reused_by_evaluate(self) -> None:
        from expr_jax import Environment, UnboundVariableError, evaluate, parse

        env = Environment({"x": 3})
        self.assertEqual(float(evaluate(parse("x^2"), env)), 9.0)
        env["x"] = 4
        self.assertEqual(float(evaluate(parse("x^2"), env)), 16.0)
        self.assertEqual(float(evaluate(parse("x + k"), env, defaults={"k": 1})), 5.0)
        with self.assertRaises(UnboundVariableError):
            env.resolve("k")


if __name__ == "__main__":
    unittest.main()
