from __future__ import annotations

import importlib.util
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for parser grammar tests")
class ParserGrammarTests(unittest.TestCase):
    def test_literals_fold_at_parse_time(self) -> None:
        from expr_jax import Const, parse

        self.assertEqual(parse("2*3+4"), Const(10.0))
        self.assertEqual(parse("1e-3"), Const(0.001))
        self.assertEqual(parse(".5"), Const(0.5))

    def test_registry_constant_names_parse_to_named_constants(self) -> None:
        import math

        from expr_jax import NamedConst, parse

        self.assertEqual(parse("pi"), NamedConst("pi", math.pi))
        self.assertEqual(parse("Φ"), NamedConst("Φ", (1 + math.sqrt(5)) / 2))

    def test_index_syntax_builds_subscripted_variable(self) -> None:
        from expr_jax import Variable, parse

        self.assertEqual(parse("x[2]"), Variable("x_2"))

    def test_power_is_left_associative(self) -> None:
        from expr_jax import Binary, Const, Variable, parse

        a, b, c = Variable("a"), Variable("b"), Variable("c")
        self.assertEqual(parse("a^b^c"), Binary("^", Binary("^", a, b), c))
        self.assertEqual(parse("a^(b^c)"), Binary("^", a, Binary("^", b, c)))
        self.assertEqual(parse("2^3^2"), Const(64.0))
        self.assertEqual(parse("x^2^3"), Binary("^", Variable("x"), Const(6.0)))

    def test_multiplication_binds_tighter_than_addition(self) -> None:
        from expr_jax import Binary, Variable, parse

        x, y, z = Variable("x"), Variable("y"), Variable("z")
        self.assertEqual(parse("x + y*z"), Binary("+", x, Binary("*", y, z)))

    def test_function_calls_dispatch_on_argument_count(self) -> None:
        from expr_jax import Binary, Unary, Variable, parse

        x, y = Variable("x"), Variable("y")
        self.assertEqual(parse("sin(x)"), Unary("sin", x))
        self.assertEqual(parse("atan2(y, x)"), Binary("atan2", y, x))
        self.assertEqual(parse("mod(x, y)"), Binary("mod", x, y))

    def test_equation_with_expression_sides(self) -> None:
        from expr_jax import ONE, Assign, Binary, Variable, parse

        self.assertEqual(parse("x = y + 1"), Assign(Variable("x"), Binary("+", Variable("y"), ONE)))

    def test_unknown_function_raises(self) -> None:
        from expr_jax import UnknownOperatorError, parse

        with self.assertRaises(UnknownOperatorError) as ctx:
            parse("foo(x)")
        self.assertEqual(ctx.exception.identifier, "foo")
        with self.assertRaises(UnknownOperatorError):
            parse("sin(x, y)")


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for parser grammar tests")
class ParserErrorSpanTests(unittest.TestCase):
    def test_missing_operand_reports_eof_span(self) -> None:
        from expr_jax import ParseError, parse

        with self.assertRaises(ParseError) as ctx:
            parse("1 +")
        err = ctx.exception
        self.assertIsInstance(err, SyntaxError)
        self.assertEqual((err.start, err.end), (3, 3))
        self.assertEqual(err.found, "EOF")
        self.assertIn("NUMBER", err.expected)

    def test_unexpected_character_span(self) -> None:
        from expr_jax import ParseError, parse

        with self.assertRaises(ParseError) as ctx:
            parse("x $ y")
        self.assertEqual((ctx.exception.start, ctx.exception.end), (2, 3))

    def test_non_ascii_digits_are_rejected(self) -> None:
        from expr_jax import ParseError, parse
        from expr_jax.lexer import tokenize

        for source, position in (("٣ + x", 0), ("²", 0), ("1 + .٣", 4)):
            with self.subTest(source=source):
                with self.assertRaises(ParseError) as ctx:
                    parse(source)
                self.assertEqual(ctx.exception.start, position)
        self.assertEqual([tok.kind for tok in tokenize("12.5e3")], ["NUMBER", "EOF"])

    def test_unclosed_parenthesis(self) -> None:
        from expr_jax import ParseError, parse

        with self.assertRaises(ParseError) as ctx:
            parse("(x")
        self.assertEqual(ctx.exception.expected, ("RPAREN",))
        self.assertIn("span [2, 2)", str(ctx.exception))

    def test_three_argument_call_spans_whole_call(self) -> None:
        from expr_jax import ParseError, parse

        with self.assertRaises(ParseError) as ctx:
            parse("max(x, y, z)")
        self.assertEqual((ctx.exception.start, ctx.exception.end), (0, 12))

    def test_fractional_index_is_rejected(self) -> None:
        from expr_jax import ParseError, parse

        with self.assertRaises(ParseError):
            parse("x[1.5]")

    def test_trailing_tokens_are_rejected(self) -> None:
        from expr_jax import ParseError, parse

        with self.assertRaises(ParseError) as ctx:
            parse("x y")
        self.assertEqual(ctx.exception.start, 2)
        self.assertEqual(ctx.exception.found, "NAME(y)")


if __name__ == "__main__":
    unittest.main()
