import math
import unittest

import numpy as np

from scenario_mc.core.monte_carlo import OutcomeSample
from scenario_mc.core.statistics import ResultStatistics, summarize
from scenario_mc.core.validator import ConfigurationError, EvaluationError


class ResultStatisticsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.stats = ResultStatistics([5.0, 1.0, 4.0, 2.0, 3.0])

    def test_central_moments(self) -> None:
        self.assertAlmostEqual(self.stats.mean, 3.0)
        self.assertAlmostEqual(self.stats.median, 3.0)
        self.assertAlmostEqual(self.stats.std_dev, math.sqrt(2.5))
        self.assertEqual(self.stats.minimum, 1.0)
        self.assertEqual(self.stats.maximum, 5.0)

    def test_linear_percentiles(self) -> None:
        self.assertAlmostEqual(self.stats.p5, 1.2)
        self.assertAlmostEqual(self.stats.p25, 2.0)
        self.assertAlmostEqual(self.stats.p50, 3.0)
        self.assertAlmostEqual(self.stats.p75, 4.0)
        self.assertAlmostEqual(self.stats.p95, 4.8)
        self.assertAlmostEqual(self.stats.interquartile_range, 2.0)

    def test_even_sample_median(self) -> None:
        self.assertAlmostEqual(ResultStatistics([4.0, 1.0, 3.0, 2.0]).median, 2.5)

    def test_single_observation(self) -> None:
        stats = ResultStatistics([7.0])
        self.assertEqual(stats.std_dev, 0.0)
        self.assertEqual(stats.p5, 7.0)
        self.assertEqual(stats.p95, 7.0)
        self.assertEqual(stats.risk_adjusted_ratio, 0.0)
        self.assertEqual(stats.confidence_interval(), (7.0, 7.0))

    def test_constant_sample_is_exact(self) -> None:
        stats = ResultStatistics([0.1] * 1000)
        self.assertEqual(stats.std_dev, 0.0)
        self.assertEqual(stats.mean, 0.1)
        self.assertEqual(stats.risk_adjusted_ratio, 0.0)
        self.assertEqual(stats.probability_above(0.1), 0.0)
        self.assertEqual(stats.probability_below(0.1), 0.0)
        self.assertEqual(stats.probability_between(0.1, 0.1), 1.0)
        bins = stats.histogram()
        self.assertEqual(len(bins), 1)
        self.assertEqual(bins[0].count, 1000)

    def test_outcomes_near_the_float_limit(self) -> None:
        values = np.random.default_rng(23).uniform(5.0, 9.0, 1000) * 1e307
        stats = ResultStatistics(values)
        for value in (stats.mean, stats.median, stats.std_dev, stats.conditional_value_at_risk()):
            self.assertTrue(math.isfinite(value))
        self.assertGreater(stats.mean, 5e307)
        self.assertLess(stats.mean, 9e307)
        self.assertTrue(math.isfinite(stats.risk_adjusted_ratio))

    def test_unrepresentable_dispersion_raises(self) -> None:
        sample = OutcomeSample("Extreme", np.array([-1.7e308, 1.7e308]))
        with self.assertRaises(EvaluationError) as ctx:
            ResultStatistics(sample)
        self.assertEqual(ctx.exception.scenario, "Extreme")

    def test_probabilities(self) -> None:
        self.assertAlmostEqual(self.stats.probability_above(3.0), 0.4)
        self.assertAlmostEqual(self.stats.probability_below(3.0), 0.4)
        self.assertAlmostEqual(self.stats.probability_between(2.0, 4.0), 0.6)
        self.assertEqual(self.stats.probability_above(0.0), 1.0)
        with self.assertRaises(ConfigurationError):
            self.stats.probability_between(4.0, 2.0)

    def test_probability_above_is_non_increasing(self) -> None:
        values = np.random.default_rng(21).normal(0.0, 1.0, 2000)
        stats = ResultStatistics(values)
        thresholds = np.linspace(-4.0, 4.0, 81)
        probabilities = [stats.probability_above(t) for t in thresholds]
        for earlier, later in zip(probabilities, probabilities[1:]):
            self.assertGreaterEqual(earlier, later)

    def test_percentile_ordering(self) -> None:
        values = np.random.default_rng(22).lognormal(0.0, 1.0, 3000)
        stats = ResultStatistics(values)
        self.assertLessEqual(stats.p5, stats.p50)
        self.assertLessEqual(stats.p50, stats.p95)

    def test_value_at_risk_and_expected_shortfall(self) -> None:
        stats = ResultStatistics(np.arange(1.0, 101.0))
        self.assertAlmostEqual(stats.value_at_risk(0.95), 5.95)
        self.assertAlmostEqual(stats.conditional_value_at_risk(0.95), 3.0)
        self.assertLessEqual(
            stats.conditional_value_at_risk(0.95), stats.value_at_risk(0.95)
        )
        with self.assertRaises(ConfigurationError):
            stats.value_at_risk(1.0)

    def test_confidence_interval_contains_mean(self) -> None:
        stats = ResultStatistics(np.random.default_rng(23).normal(5.0, 1.0, 500))
        low, high = stats.confidence_interval(0.95)
        self.assertLess(low, stats.mean)
        self.assertGreater(high, stats.mean)

    def test_histogram(self) -> None:
        values = np.random.default_rng(24).normal(0.0, 1.0, 1000)
        stats = ResultStatistics(values)
        bins = stats.histogram()
        self.assertGreaterEqual(len(bins), 1)
        self.assertLessEqual(len(bins), 1000)
        self.assertEqual(sum(bucket.count for bucket in bins), 1000)
        self.assertEqual(len(stats.histogram(bins=4)), 4)
        with self.assertRaises(ConfigurationError):
            stats.histogram(bins=0)

    def test_percentile_table(self) -> None:
        table = self.stats.percentile_table([5, 50, 95])
        self.assertEqual(list(table.columns), ["percentile", "outcome"])
        self.assertAlmostEqual(table.loc[1, "outcome"], 3.0)

    def test_rejects_empty_and_non_finite(self) -> None:
        with self.assertRaises(ConfigurationError):
            ResultStatistics([])
        with self.assertRaises(ConfigurationError):
            ResultStatistics([1.0, float("nan")])
        with self.assertRaises(ConfigurationError):
            self.stats.percentile(101)

    def test_summarize_outcome_sample(self) -> None:
        stats = summarize(OutcomeSample("Base", np.array([1.0, 2.0, 3.0])))
        self.assertEqual(stats.scenario_name, "Base")
        self.assertEqual(stats.count, 3)
        summary = stats.summary()
        self.assertEqual(summary["mean"], 2.0)
        for value in summary.values():
            self.assertTrue(math.isfinite(value))


if __name__ == "__main__":
    unittest.main()
