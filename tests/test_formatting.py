from __future__ import annotations

import importlib.util
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None

ROUND_TRIP_SOURCES = (
    "x+2*y",
    "(x+y)^2",
    "a^b^c",
    "a^(b^c)",
    "-(x+y)",
    "-2*x",
    "x/(y*z)",
    "sin(x)*cos(y)",
    "atan2(y,x)+max(x,1)",
    "[x, y^2]",
    "[[x, 1], [2, y]]",
    "0.5*x-pi",
    "x=y+1",
)


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for formatting tests")
class FormattingTests(unittest.TestCase):
    def test_known_renderings(self) -> None:
        from expr_jax import format_expr, parse

        cases = {
            "x + 2 * y": "x+2*y",
            "(x + y) ^ 2": "(x+y)^2",
            "a ^ b ^ c": "a^b^c",
            "(a ^ b) ^ c": "a^b^c",
            "a ^ (b ^ c)": "a^(b^c)",
            "-(x + y)": "-(x+y)",
            "x - (y - z)": "x-y+z",
            "x / (y * z)": "x/(y*z)",
            "atan2(y, x)": "atan2(y,x)",
            "[x, 1 - x]": "[x, 1-x]",
        }
        for source, expected in cases.items():
            with self.subTest(source=source):
                self.assertEqual(format_expr(parse(source)), expected)

    def test_numbers_drop_trailing_zero_fraction(self) -> None:
        from expr_jax import Const, format_expr

        self.assertEqual(format_expr(Const(3.0)), "3")
        self.assertEqual(format_expr(Const(0.25)), "0.25")
        self.assertEqual(format_expr(Const(-2.0)), "-2")
        self.assertEqual(format_expr(Const(float("nan"))), "nan")
        self.assertEqual(format_expr(Const(float("-inf"))), "-inf")

    def test_parse_of_rendering_rebuilds_same_tree(self) -> None:
        from expr_jax import parse

        for source in ROUND_TRIP_SOURCES:
            with self.subTest(source=source):
                expr = parse(source)
                self.assertEqual(parse(str(expr)), expr)

    def test_function_rendering(self) -> None:
        from expr_jax import Function, parse

        f = Function.create("f", parse("x + y"))
        self.assertEqual(str(f), "f(x,y)=x+y")


if __name__ == "__main__":
    unittest.main()
