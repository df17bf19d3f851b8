from __future__ import annotations

import importlib.util
import math
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for function tests")
class FunctionConstructionTests(unittest.TestCase):
    def test_parameters_default_to_alphabetical_symbols(self) -> None:
        from expr_jax import Function, parse

        f = Function.create("f", parse("z + y*x"))
        self.assertEqual(f.parameters, ("x", "y", "z"))
        self.assertEqual(f.arity, 3)
        self.assertEqual(f.rank, 0)

    def test_explicit_parameters_keep_their_order(self) -> None:
        from expr_jax import Variable, parse

        f = parse("x - y").function("f", [Variable("y"), "x"])
        self.assertEqual(f.parameters, ("y", "x"))
        self.assertEqual(f.compile()(1.0, 5.0), 4.0)

    def test_parameters_may_exceed_body_symbols(self) -> None:
        from expr_jax import Function, parse

        f = Function("f", parse("2*x"), ("x", "t"))
        self.assertEqual(f.compile()(3.0, 100.0), 6.0)

    def test_missing_parameter_raises_eagerly(self) -> None:
        from expr_jax import Function, MissingParameterError, parse

        with self.assertRaises(MissingParameterError) as ctx:
            Function("f", parse("x + y + z"), ("x",))
        self.assertEqual(ctx.exception.missing, ("y", "z"))
        self.assertEqual(ctx.exception.function, "f")


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for function tests")
class FunctionCalculusTests(unittest.TestCase):
    def test_partial_is_named_after_symbol(self) -> None:
        from expr_jax import Function, parse

        f = Function.create("f", parse("x^2 * y"))
        f_x = f.partial("x")
        self.assertEqual(f_x.name, "f_x")
        self.assertEqual(f_x.parameters, f.parameters)
        self.assertEqual(f_x.compile()(3.0, 2.0), 12.0)

    def test_total_derivative_appends_rate_parameters(self) -> None:
        from expr_jax import Function, parse

        f = Function.create("f", parse("x*y"))
        fp = f.total_derivative()
        self.assertEqual(fp.name, "fp")
        self.assertEqual(fp.parameters, ("x", "y", "xp", "yp"))
        self.assertEqual(fp.compile()(2.0, 3.0, 1.0, 0.5), 3.0 * 1.0 + 2.0 * 0.5)

    def test_total_derivative_with_named_rates(self) -> None:
        from expr_jax import Function, parse

        f = Function.create("f", parse("x^2"))
        g = f.total_derivative("g", [("x", parse("v"))])
        self.assertEqual(g.parameters, ("x", "v"))
        self.assertEqual(g.compile()(3.0, 2.0), 12.0)

    def test_jacobian(self) -> None:
        from expr_jax import Array, Function, Variable, parse

        f = Function.create("f", parse("x*y"))
        self.assertEqual(f.jacobian(), Array((Variable("y"), Variable("x"))))

    def test_substitute_drops_parameters(self) -> None:
        from expr_jax import Function, parse

        f = Function.create("f", parse("x*y + z"))
        g = f.substitute("g", {"y": 2, "z": parse("x")})
        self.assertEqual(g.name, "g")
        self.assertEqual(g.parameters, ("x",))
        self.assertEqual(g.compile()(4.0), 12.0)

    def test_compiled_function_matches_evaluation(self) -> None:
        import random

        from expr_jax import Function, parse

        f = Function.create("f", parse("[sin(x) * y, x / (1 + y^2)]"))
        fn = f.compile()
        rng = random.Random(3)
        for _ in range(20):
            x, y = rng.uniform(-3.0, 3.0), rng.uniform(-3.0, 3.0)
            expected = f.body.eval({"x": x, "y": y}).values
            actual = fn(x, y)
            for got, want in zip(actual, expected):
                self.assertTrue(math.isclose(got, want, rel_tol=1e-9, abs_tol=1e-12))


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for function tests")
class NewtonRaphsonTests(unittest.TestCase):
    def test_square_root_of_two(self) -> None:
        from expr_jax import Function, Scalar, parse

        f = Function.create("f", parse("x^2 - 2"))
        root = f.newton_raphson(1.0)
        self.assertIsInstance(root, Scalar)
        self.assertAlmostEqual(float(root), math.sqrt(2.0), places=9)

    def test_target_value(self) -> None:
        from expr_jax import Function, parse

        f = Function.create("f", parse("x^3"))
        self.assertAlmostEqual(float(f.newton_raphson(1.0, target=8.0)), 2.0, places=9)

    def test_two_parameter_search_uses_step_halving(self) -> None:
        from expr_jax import Function, Vector, parse

        f = Function.create("f", parse("x + y - 3"))
        point = f.newton_raphson([0.0, 0.0])
        self.assertIsInstance(point, Vector)
        self.assertAlmostEqual(point[0] + point[1], 3.0, places=9)

    def test_unsupported_shapes_raise(self) -> None:
        from expr_jax import Function, parse

        with self.assertRaises(NotImplementedError):
            Function.create("f", parse("[x, x^2]")).newton_raphson(1.0)
        with self.assertRaises(ValueError):
            Function.create("f", parse("x*y")).newton_raphson(1.0)


if __name__ == "__main__":
    unittest.main()
