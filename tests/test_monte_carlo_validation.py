import unittest

import numpy as np

from scenario_mc.core.distributions import Normal, Uniform
from scenario_mc.core.monte_carlo_validation import validate_outcomes, validate_sampler_fit


class OutcomeValidationTests(unittest.TestCase):
    def test_well_behaved_sample_passes(self) -> None:
        values = np.random.default_rng(31).normal(100.0, 10.0, 1000)
        result = validate_outcomes(values)
        self.assertEqual(result.status, "PASS")
        self.assertEqual(list(result.failed_checks), [])
        self.assertEqual(list(result.warnings), [])

    def test_zero_dispersion_warning(self) -> None:
        result = validate_outcomes([5.0] * 200)
        self.assertEqual(result.status, "PASS")
        self.assertIn("zero_dispersion", result.warnings)

    def test_high_volatility_and_small_sample(self) -> None:
        values = np.random.default_rng(32).normal(0.1, 1.0, 50)
        result = validate_outcomes(values)
        self.assertIn("high_volatility", result.warnings)
        self.assertIn("small_sample", result.warnings)

    def test_failures(self) -> None:
        self.assertEqual(validate_outcomes([]).failed_checks, ["no_outcomes"])
        result = validate_outcomes([1.0, float("inf")])
        self.assertEqual(result.status, "FAIL")
        self.assertIn("nan_or_inf_outcomes", result.failed_checks)

    def test_to_dict(self) -> None:
        payload = validate_outcomes([1.0, 2.0, 3.0]).to_dict()
        self.assertEqual(set(payload), {"status", "failed_checks", "warnings"})


class SamplerFitTests(unittest.TestCase):
    def test_matching_draws_pass(self) -> None:
        distribution = Normal(0.0, 1.0)
        draws = np.random.default_rng(33).normal(0.0, 1.0, 2000)
        self.assertEqual(validate_sampler_fit(distribution, draws).status, "PASS")

    def test_mismatched_draws_fail(self) -> None:
        draws = np.random.default_rng(34).uniform(0.0, 1.0, 2000)
        result = validate_sampler_fit(Normal(5.0, 1.0), draws)
        self.assertEqual(result.status, "FAIL")
        self.assertIn("ks_goodness_of_fit", result.failed_checks)

    def test_draws_outside_support(self) -> None:
        draws = np.append(np.random.default_rng(35).uniform(0.0, 1.0, 500), 2.0)
        result = validate_sampler_fit(Uniform(0.0, 1.0), draws)
        self.assertIn("draws_outside_support", result.failed_checks)


if __name__ == "__main__":
    unittest.main()
