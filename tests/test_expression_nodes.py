from __future__ import annotations

import importlib.util
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for expression node tests")
class ExpressionNodeTests(unittest.TestCase):
    def test_rank_and_shape(self) -> None:
        from expr_jax import parse

        self.assertEqual(parse("x + 1").rank, 0)
        vector = parse("[x, y, 3]")
        self.assertEqual((vector.rank, vector.shape, len(vector)), (1, (3,), 3))
        matrix = parse("[[1, x], [x, 1], [0, 2]]")
        self.assertEqual((matrix.rank, matrix.shape), (2, (3, 2)))
        self.assertEqual(parse("sin([x, y])").rank, 1)

    def test_indexing(self) -> None:
        from expr_jax import ONE, Variable, parse

        matrix = parse("[[1, x], [y, 1]]")
        self.assertEqual(matrix[0, 1], Variable("x"))
        self.assertEqual(matrix[1][0], Variable("y"))
        self.assertEqual(list(matrix[0]), [ONE, Variable("x")])

    def test_structural_equality_and_hashing(self) -> None:
        from expr_jax import parse

        self.assertEqual(parse("x*y + 1"), parse("x*y + 1"))
        self.assertEqual(len({parse("x*y + 1"), parse("x*y + 1"), parse("x*y")}), 2)

    def test_walk_is_pre_order(self) -> None:
        from expr_jax import ONE, Binary, Variable, parse

        x, y = Variable("x"), Variable("y")
        nodes = list(parse("x*y + 1").walk())
        self.assertEqual(nodes, [Binary("+", Binary("*", x, y), ONE), Binary("*", x, y), x, y, ONE])

    def test_constant_detection(self) -> None:
        from expr_jax import Variable, parse

        self.assertTrue(parse("3").is_constant())
        self.assertTrue(parse("pi").is_constant())
        self.assertFalse(parse("pi").is_constant(include_named=False))
        self.assertFalse(Variable("x").is_constant())

    def test_matrix_operator_is_product(self) -> None:
        from expr_jax import Array, Variable, parse

        x, y = Variable("x"), Variable("y")
        self.assertEqual(parse("[[0, 1], [1, 0]]") @ parse("[x, y]"), Array((y, x)))
        self.assertEqual([[0, 1], [1, 0]] @ parse("[x, y]"), Array((y, x)))

    def test_elementwise_operators_on_arrays(self) -> None:
        from expr_jax import Array, Binary, Variable, parse

        x, y = Variable("x"), Variable("y")
        self.assertEqual(parse("[x, y]") * parse("[y, x]"), Array((Binary("*", x, y), Binary("*", y, x))))

    def test_as_expr_coerces_values(self) -> None:
        import numpy as np

        from expr_jax import Const, Vector, as_expr, parse

        self.assertEqual(as_expr(2), Const(2.0))
        self.assertEqual(as_expr([1, 2]), parse("[1, 2]"))
        self.assertEqual(as_expr(np.eye(2)), parse("[[1, 0], [0, 1]]"))
        self.assertEqual(as_expr(Vector((1.0, 2.0))), parse("[1, 2]"))
        with self.assertRaises(TypeError):
            as_expr("x")


if __name__ == "__main__":
    unittest.main()
