import math
import unittest

import numpy as np

from scenario_mc.core.expression import compile_expression
from scenario_mc.core.validator import ConfigurationError, EvaluationError


class ExpressionEvaluationTests(unittest.TestCase):
    def test_named_inputs(self) -> None:
        model = compile_expression("a + b", ["a", "b"])
        self.assertEqual(model.evaluate([2, 3]), 5.0)

    def test_positional_inputs(self) -> None:
        model = compile_expression("inputs[0] * inputs[1]", ["a", "b"])
        self.assertEqual(model([2, 3]), 6.0)

    def test_operator_precedence_and_parentheses(self) -> None:
        names = ["a", "b"]
        self.assertEqual(compile_expression("a + b * 2", names).evaluate([2, 3]), 8.0)
        self.assertEqual(compile_expression("(a + b) * 2", names).evaluate([2, 3]), 10.0)
        self.assertEqual(compile_expression("-a + b", names).evaluate([2, 3]), 1.0)
        self.assertEqual(compile_expression("a - b - 1", names).evaluate([2, 3]), -2.0)
        self.assertAlmostEqual(compile_expression("a / b / 2", names).evaluate([3, 3]), 0.5)

    def test_functions(self) -> None:
        model = compile_expression("sqrt(a) + exp(0) + log(1) + pow(b, 2)", ["a", "b"])
        self.assertAlmostEqual(model.evaluate([4, 3]), 12.0)

    def test_input_names_never_collide_with_functions(self) -> None:
        model = compile_expression("log(log) + e", ["log", "e"])
        self.assertAlmostEqual(model.evaluate([1.0, 2.0]), 2.0)

    def test_input_order_is_preserved(self) -> None:
        model = compile_expression("b - a", ["a", "b"])
        self.assertEqual(model.input_names, ("a", "b"))
        self.assertEqual(model.evaluate([1, 10]), 9.0)

    def test_batch_evaluation_matches_single_evaluation(self) -> None:
        model = compile_expression("volume * price * (1 - margin)", ["volume", "price", "margin"])
        volume = np.array([100.0, 200.0, 300.0])
        price = np.array([2.0, 2.5, 3.0])
        margin = np.full(3, 0.4)
        batch = model.evaluate_batch([volume, price, margin])
        for index in range(3):
            self.assertAlmostEqual(
                batch[index], model.evaluate([volume[index], price[index], margin[index]])
            )

    def test_constant_model_broadcasts_to_every_draw(self) -> None:
        model = compile_expression("2 * 3", ["a"])
        result = model.evaluate_batch([np.zeros(4)])
        self.assertEqual(result.shape, (4,))
        self.assertTrue(np.all(result == 6.0))

    def test_wrong_vector_length(self) -> None:
        model = compile_expression("a + b", ["a", "b"])
        with self.assertRaises(ConfigurationError):
            model.evaluate([1.0])


class ExpressionRejectionTests(unittest.TestCase):
    def assertRejected(self, expression: str, names=("a", "b")) -> None:
        with self.assertRaises(ConfigurationError):
            compile_expression(expression, list(names))

    def test_unbalanced_parentheses(self) -> None:
        self.assertRejected("(a + b")
        self.assertRejected("a + b)")
        self.assertRejected(")a(")

    def test_unknown_identifier(self) -> None:
        self.assertRejected("a + c")

    def test_unknown_function(self) -> None:
        self.assertRejected("foo(a)")
        self.assertRejected("__import__('os')")

    def test_bare_function_name(self) -> None:
        self.assertRejected("sqrt + a")

    def test_wrong_arity(self) -> None:
        self.assertRejected("sqrt(a, b)")
        self.assertRejected("pow(a)")

    def test_unsupported_operators_and_syntax(self) -> None:
        self.assertRejected("a ** 2")
        self.assertRejected("a % b")
        self.assertRejected("a.real")
        self.assertRejected("a if b else 1")
        self.assertRejected("a < b")

    def test_division_by_constant_zero(self) -> None:
        self.assertRejected("a / 0")
        self.assertRejected("a / (1 - 1)")

    def test_positional_reference_out_of_range(self) -> None:
        self.assertRejected("inputs[2]")
        self.assertRejected("inputs[-1]")
        self.assertRejected("inputs[a]")

    def test_empty_expression_and_syntax_error(self) -> None:
        self.assertRejected("   ")
        self.assertRejected("a +")

    def test_literal_outside_float_range(self) -> None:
        self.assertRejected("a + 1" + "0" * 400)
        self.assertRejected("a + 1e400")

    def test_invalid_input_names(self) -> None:
        self.assertRejected("a", names=())
        self.assertRejected("a", names=("a", "a"))

    def test_configuration_error_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            compile_expression("a +* b", ["a", "b"])


class ExpressionRuntimeErrorTests(unittest.TestCase):
    def test_log_of_non_positive(self) -> None:
        model = compile_expression("log(a)", ["a"])
        with self.assertRaises(EvaluationError):
            model.evaluate([0.0])

    def test_sqrt_of_negative(self) -> None:
        model = compile_expression("sqrt(a)", ["a"])
        with self.assertRaises(EvaluationError):
            model.evaluate([-1.0])

    def test_runtime_division_by_zero(self) -> None:
        model = compile_expression("a / b", ["a", "b"])
        with self.assertRaises(EvaluationError) as ctx:
            model.evaluate([1.0, 0.0])
        self.assertIsInstance(ctx.exception, ArithmeticError)
        self.assertIsNone(ctx.exception.iteration)

    def test_overflow_is_an_evaluation_error(self) -> None:
        model = compile_expression("exp(a)", ["a"])
        with self.assertRaises(EvaluationError):
            model.evaluate([1000.0])

    def test_fractional_power_of_negative_base(self) -> None:
        model = compile_expression("pow(a, 0.5)", ["a"])
        with self.assertRaises(EvaluationError):
            model.evaluate([-4.0])
        self.assertAlmostEqual(model.evaluate([4.0]), 2.0)

    def test_constant_domain_error_surfaces_at_evaluation(self) -> None:
        model = compile_expression("a + log(0)", ["a"])
        with self.assertRaises(EvaluationError):
            model.evaluate([1.0])

    def test_batch_error_points_at_first_failing_draw(self) -> None:
        model = compile_expression("log(a)", ["a"])
        with self.assertRaises(EvaluationError) as ctx:
            model.evaluate_batch([np.array([1.0, 2.0, -1.0, 3.0, -5.0])])
        self.assertEqual(ctx.exception.iteration, 2)

    def test_valid_batch_values_are_finite(self) -> None:
        model = compile_expression("log(a) * sqrt(a)", ["a"])
        result = model.evaluate_batch([np.array([1.0, math.e, 4.0])])
        self.assertTrue(np.all(np.isfinite(result)))


if __name__ == "__main__":
    unittest.main()
