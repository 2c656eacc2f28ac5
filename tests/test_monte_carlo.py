import time
import unittest

import numpy as np

from scenario_mc.core.distributions import Normal, Uniform
from scenario_mc.core.expression import compile_expression
from scenario_mc.core.monte_carlo import (
    CancellationToken,
    MonteCarloConfig,
    MonteCarloRunner,
    OutcomeSample,
    run_scenario,
)
from scenario_mc.core.scenario_config import ScenarioConfig
from scenario_mc.core.validator import (
    AnalysisCancelledError,
    ConfigurationError,
    EvaluationError,
)


class MonteCarloRunnerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.model = compile_expression("a * b", ["a", "b"])
        self.stochastic = (
            ScenarioConfig("Stochastic")
            .set_distribution("a", Normal(10.0, 1.0))
            .set_value("b", 2.0)
            .finalize(["a", "b"])
        )
        self.fixed = (
            ScenarioConfig("Fixed").set_value("a", 3.0).set_value("b", 4.0).finalize(["a", "b"])
        )

    def test_sample_length_equals_iterations(self) -> None:
        runner = MonteCarloRunner(chunk_size=1000)
        for iterations in (1, 999, 1000, 1001, 2500):
            sample = runner.run(self.model, self.stochastic, iterations, np.random.default_rng(0))
            self.assertEqual(len(sample), iterations)
            self.assertEqual(sample.scenario_name, "Stochastic")

    def test_fixed_inputs_reused_verbatim(self) -> None:
        sample = MonteCarloRunner().run(self.model, self.fixed, 500, np.random.default_rng(0))
        self.assertTrue(np.all(sample.values == 12.0))

    def test_reproducible_for_seed(self) -> None:
        runner = MonteCarloRunner(chunk_size=128)
        first = runner.run(self.model, self.stochastic, 1000, np.random.default_rng(99))
        second = runner.run(self.model, self.stochastic, 1000, np.random.default_rng(99))
        np.testing.assert_array_equal(first.values, second.values)

    def test_stochastic_draws_vary(self) -> None:
        sample = MonteCarloRunner().run(self.model, self.stochastic, 100, np.random.default_rng(5))
        self.assertGreater(len(set(sample)), 1)

    def test_run_scenario_function_matches_runner(self) -> None:
        direct = run_scenario(self.model, self.stochastic, 300, np.random.default_rng(4), chunk_size=64)
        runner = MonteCarloRunner(chunk_size=64)
        expected = runner.run(self.model, self.stochastic, 300, np.random.default_rng(4))
        np.testing.assert_array_equal(direct.values, expected.values)

    def test_sample_is_read_only(self) -> None:
        sample = MonteCarloRunner().run(self.model, self.fixed, 10, np.random.default_rng(0))
        with self.assertRaises(ValueError):
            sample.values[0] = 1.0

    def test_iteration_bounds(self) -> None:
        runner = MonteCarloRunner(max_iterations=1000)
        rng = np.random.default_rng(0)
        with self.assertRaises(ConfigurationError):
            runner.run(self.model, self.fixed, 0, rng)
        with self.assertRaises(ConfigurationError):
            runner.run(self.model, self.fixed, 1001, rng)
        with self.assertRaises(ConfigurationError):
            runner.run(self.model, self.fixed, 10.5, rng)  # type: ignore[arg-type]

    def test_input_names_must_match_model(self) -> None:
        other = compile_expression("a + c", ["a", "c"])
        with self.assertRaises(ConfigurationError):
            MonteCarloRunner().run(other, self.fixed, 10, np.random.default_rng(0))

    def test_evaluation_error_carries_scenario_and_absolute_iteration(self) -> None:
        model = compile_expression("log(a)", ["a"])
        scenario = (
            ScenarioConfig("Risky").set_distribution("a", Uniform(-1.0, 1.0)).finalize(["a"])
        )
        expected_rng = np.random.default_rng(7)
        draws = np.concatenate([expected_rng.uniform(-1.0, 1.0, size=10) for _ in range(10)])
        expected_index = int(np.argmax(draws <= 0.0))

        runner = MonteCarloRunner(chunk_size=10)
        with self.assertRaises(EvaluationError) as ctx:
            runner.run(model, scenario, 100, np.random.default_rng(7))
        self.assertEqual(ctx.exception.scenario, "Risky")
        self.assertEqual(ctx.exception.iteration, expected_index)
        self.assertIn("Risky", str(ctx.exception))

    def test_cancelled_token_stops_the_run(self) -> None:
        token = CancellationToken()
        token.cancel("stop")
        runner = MonteCarloRunner(cancel_token=token)
        with self.assertRaises(AnalysisCancelledError) as ctx:
            runner.run(self.model, self.fixed, 10, np.random.default_rng(0))
        self.assertIn("stop", str(ctx.exception))

    def test_progress_events(self) -> None:
        events = []
        runner = MonteCarloRunner(chunk_size=250, progress_observer=events.append)
        sample = runner.run(self.model, self.stochastic, 1000, np.random.default_rng(3))
        self.assertEqual([event.completed_iterations for event in events], [250, 500, 750, 1000])
        last = events[-1]
        self.assertEqual(last.fraction_complete, 1.0)
        self.assertAlmostEqual(last.cumulative_mean, float(sample.values.mean()), places=9)
        self.assertAlmostEqual(last.cumulative_std, float(sample.values.std(ddof=1)), places=9)

    def test_failing_observer_is_logged_not_raised(self) -> None:
        def observer(_event) -> None:
            raise RuntimeError("display gone")

        runner = MonteCarloRunner(chunk_size=50, progress_observer=observer)
        with self.assertLogs("scenario_mc.core.monte_carlo", level="WARNING"):
            sample = runner.run(self.model, self.fixed, 100, np.random.default_rng(0))
        self.assertEqual(len(sample), 100)


    def test_assignments_are_logged_at_debug(self) -> None:
        runner = MonteCarloRunner()
        with self.assertLogs("scenario_mc.core.monte_carlo", level="DEBUG") as logs:
            runner.run(self.model, self.stochastic, 10, np.random.default_rng(0))
        self.assertTrue(
            any("a~Normal(mean=10, stdDev=1), b=2" in line for line in logs.output)
        )

class CancellationTokenTests(unittest.TestCase):
    def test_deadline_expiry(self) -> None:
        token = CancellationToken(deadline=0.001)
        time.sleep(0.01)
        self.assertTrue(token.cancelled)
        self.assertIn("deadline", token.reason)
        with self.assertRaises(AnalysisCancelledError):
            token.raise_if_cancelled()

    def test_not_cancelled_by_default(self) -> None:
        token = CancellationToken()
        self.assertFalse(token.cancelled)
        token.raise_if_cancelled()

    def test_invalid_deadline(self) -> None:
        with self.assertRaises(ConfigurationError):
            CancellationToken(deadline=0)


class MonteCarloConfigTests(unittest.TestCase):
    def test_metadata_round_trip(self) -> None:
        config = MonteCarloConfig(iterations=5000, random_seed=42, chunk_size=500)
        restored = MonteCarloConfig.from_metadata(config.to_metadata())
        self.assertEqual(restored, config)

    def test_validation(self) -> None:
        MonteCarloConfig(iterations=10, random_seed=1).validate()
        with self.assertRaises(ConfigurationError):
            MonteCarloConfig(iterations=10, random_seed=-1).validate()
        with self.assertRaises(ConfigurationError):
            MonteCarloConfig(iterations=10, chunk_size=0).validate()
        with self.assertRaises(ConfigurationError):
            MonteCarloConfig(iterations=200_000).validate()


class OutcomeSampleTests(unittest.TestCase):
    def test_copies_and_freezes_values(self) -> None:
        source = np.array([1.0, 2.0, 3.0])
        sample = OutcomeSample("S", source)
        source[0] = 100.0
        self.assertEqual(list(sample), [1.0, 2.0, 3.0])
        self.assertFalse(sample.values.flags.writeable)


if __name__ == "__main__":
    unittest.main()
