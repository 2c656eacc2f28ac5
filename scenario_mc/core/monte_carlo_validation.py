"""Validation helpers for Monte Carlo outcome samples and input samplers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from .distributions import Distribution


@dataclass
class ValidationResult:
    """Basic container for validation outcomes."""

    status: str
    failed_checks: Sequence[str]
    warnings: Sequence[str]

    def to_dict(self) -> Dict[str, object]:
        return {
            "status": self.status,
            "failed_checks": list(self.failed_checks),
            "warnings": list(self.warnings),
        }


def validate_outcomes(
    values: Sequence[float],
    *,
    high_volatility_cv: float = 1.0,
) -> ValidationResult:
    """Validate ordering and dispersion of a scenario's outcome sample."""
    failed: list[str] = []
    warnings: list[str] = []
    if len(values) == 0:
        failed.append("no_outcomes")
        return ValidationResult(status="FAIL", failed_checks=failed, warnings=warnings)

    series = pd.Series(np.asarray(values, dtype=float))
    if not np.all(np.isfinite(series.to_numpy())):
        failed.append("nan_or_inf_outcomes")
        return ValidationResult(status="FAIL", failed_checks=failed, warnings=warnings)

    percentiles = series.quantile([0.01, 0.05, 0.25, 0.50, 0.75, 0.95, 0.99])
    if not percentiles.is_monotonic_increasing:
        failed.append("percentile_ordering")

    std = float(series.std(ddof=1)) if len(series) > 1 else 0.0
    mean = float(series.mean())
    if std <= 0:
        warnings.append("zero_dispersion")
    elif mean != 0 and std / abs(mean) > high_volatility_cv:
        warnings.append("high_volatility")
    if len(series) < 100:
        warnings.append("small_sample")

    status = "PASS" if not failed else "FAIL"
    return ValidationResult(status=status, failed_checks=failed, warnings=warnings)


def validate_sampler_fit(
    distribution: Distribution,
    draws: Sequence[float],
    *,
    significance: float = 0.001,
) -> ValidationResult:
    """Kolmogorov-Smirnov check that ``draws`` are consistent with ``distribution``."""
    failed: list[str] = []
    warnings: list[str] = []
    sample = np.asarray(draws, dtype=float)
    if sample.size == 0:
        failed.append("no_draws")
        return ValidationResult(status="FAIL", failed_checks=failed, warnings=warnings)

    frozen = distribution.frozen()
    support_low, support_high = frozen.support()
    if np.any(sample < support_low) or np.any(sample > support_high):
        failed.append("draws_outside_support")

    result = stats.kstest(sample, frozen.cdf)
    if result.pvalue < significance:
        failed.append("ks_goodness_of_fit")
    if sample.size < 50:
        warnings.append("small_sample")

    mean_error = abs(float(sample.mean()) - distribution.expected_value)
    tolerance = 4.0 * np.sqrt(distribution.variance / sample.size)
    if mean_error > tolerance:
        warnings.append("mean_off_target")

    status = "PASS" if not failed else "FAIL"
    return ValidationResult(status=status, failed_checks=failed, warnings=warnings)


__all__ = ["ValidationResult", "validate_outcomes", "validate_sampler_fit"]
