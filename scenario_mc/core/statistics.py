"""Summary statistics, tail measures and probabilities for outcome samples."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy import stats

from .monte_carlo import OutcomeSample
from .validator import ConfigurationError, EvaluationError

DEFAULT_PERCENTILES: Tuple[int, ...] = (5, 25, 50, 75, 95)


def _scaled_mean(values: np.ndarray, scale: float) -> float:
    """Mean computed on ``values / scale`` so sums near the float limit do not overflow."""
    return float(np.mean(values / scale)) * scale


@dataclass(frozen=True)
class HistogramBin:
    lower: float
    upper: float
    count: int


class ResultStatistics:
    """
    Deterministic statistics over a full outcome sample.

    Percentiles use linear interpolation between order statistics (numpy's
    ``linear`` method); the standard deviation is Bessel-corrected and
    defined as 0 for a single observation. Nothing here resamples.
    """

    def __init__(self, sample: Union[OutcomeSample, Sequence[float], np.ndarray]) -> None:
        values = sample.values if isinstance(sample, OutcomeSample) else sample
        array = np.asarray(values, dtype=float)
        if array.ndim != 1 or array.size == 0:
            raise ConfigurationError("Statistics require a non-empty one-dimensional sample")
        if not np.all(np.isfinite(array)):
            raise ConfigurationError("Outcome sample contains NaN or infinite values")
        self.scenario_name: Optional[str] = (
            sample.scenario_name if isinstance(sample, OutcomeSample) else None
        )
        self._sorted = np.sort(array)
        self._sorted.setflags(write=False)
        self.count = int(array.size)
        self.minimum = float(self._sorted[0])
        self.maximum = float(self._sorted[-1])
        if self.minimum == self.maximum:
            # Constant sample: exact values, free of summation rounding.
            self.mean = self.median = self.minimum
            self.std_dev = 0.0
        else:
            scale = max(abs(self.minimum), abs(self.maximum))
            self.mean = _scaled_mean(array, scale)
            self.median = float(np.percentile(self._sorted, 50, method="linear"))
            self.std_dev = float(np.std(array / scale, ddof=1)) * scale
            if not (math.isfinite(self.mean) and math.isfinite(self.std_dev)):
                raise EvaluationError(
                    "Outcome statistics exceed the floating point range",
                    scenario=self.scenario_name,
                )

    # --------------------------------------------------------------- percentiles
    def percentile(self, level: float) -> float:
        """Value below which ``level`` percent of the sample falls (0-100)."""
        if not 0.0 <= level <= 100.0:
            raise ConfigurationError(f"Percentile level must be within [0, 100], got {level}")
        return float(np.percentile(self._sorted, level, method="linear"))

    def percentiles(self, levels: Iterable[float] = DEFAULT_PERCENTILES) -> Dict[float, float]:
        return {level: self.percentile(level) for level in levels}

    @property
    def p5(self) -> float:
        return self.percentile(5)

    @property
    def p25(self) -> float:
        return self.percentile(25)

    @property
    def p50(self) -> float:
        return self.percentile(50)

    @property
    def p75(self) -> float:
        return self.percentile(75)

    @property
    def p95(self) -> float:
        return self.percentile(95)

    @property
    def interquartile_range(self) -> float:
        return self.p75 - self.p25

    def percentile_table(self, levels: Iterable[int] = range(1, 100)) -> pd.DataFrame:
        """Return a percentile ladder as a dataframe."""
        series = pd.Series(self._sorted, dtype=float)
        ladder = [
            {"percentile": level, "outcome": float(series.quantile(level / 100.0))}
            for level in levels
        ]
        return pd.DataFrame(ladder)

    # ------------------------------------------------------------- probabilities
    def probability_above(self, threshold: float) -> float:
        """Fraction of outcomes strictly greater than ``threshold``."""
        above = self.count - int(np.searchsorted(self._sorted, threshold, side="right"))
        return above / self.count

    def probability_below(self, threshold: float) -> float:
        """Fraction of outcomes strictly less than ``threshold``."""
        return int(np.searchsorted(self._sorted, threshold, side="left")) / self.count

    def probability_between(self, lower: float, upper: float) -> float:
        """Fraction of outcomes within the closed interval ``[lower, upper]``."""
        if lower > upper:
            raise ConfigurationError(f"Lower bound {lower} exceeds upper bound {upper}")
        low = int(np.searchsorted(self._sorted, lower, side="left"))
        high = int(np.searchsorted(self._sorted, upper, side="right"))
        return (high - low) / self.count

    # ---------------------------------------------------------------- risk tails
    def value_at_risk(self, confidence: float = 0.95) -> float:
        """Outcome level undershot with probability ``1 - confidence``."""
        self._check_confidence(confidence)
        return self.percentile((1.0 - confidence) * 100.0)

    def conditional_value_at_risk(self, confidence: float = 0.95) -> float:
        """Mean of the worst ``ceil(N * (1 - confidence))`` outcomes."""
        self._check_confidence(confidence)
        tail = math.ceil(round(self.count * (1.0 - confidence), 9))
        if tail <= 0:
            return self.minimum
        tail_values = self._sorted[: min(tail, self.count)]
        scale = float(np.max(np.abs(tail_values)))
        if scale == 0.0:
            return 0.0
        return _scaled_mean(tail_values, scale)

    @property
    def risk_adjusted_ratio(self) -> float:
        """Mean per unit of standard deviation; 0 for a zero-dispersion sample."""
        if self.std_dev == 0.0:
            return 0.0
        return self.mean / self.std_dev

    @property
    def coefficient_of_variation(self) -> float:
        if self.mean == 0.0:
            return 0.0
        return self.std_dev / abs(self.mean)

    def confidence_interval(self, level: float = 0.95) -> Tuple[float, float]:
        """Normal-approximation confidence interval for the sample mean."""
        self._check_confidence(level)
        if self.count < 2:
            return self.mean, self.mean
        half_width = float(stats.norm.ppf(0.5 + level / 2.0)) * self.std_dev / math.sqrt(self.count)
        return self.mean - half_width, self.mean + half_width

    # ----------------------------------------------------------------- histogram
    def histogram(self, bins: Optional[int] = None) -> List[HistogramBin]:
        """
        Bin the sample into equal-width buckets.

        Without ``bins`` the count is the larger of Sturges' rule and the
        Freedman-Diaconis rule, clamped to 1..1000. A constant sample yields a
        single bucket.
        """
        if bins is not None and bins < 1:
            raise ConfigurationError(f"bins must be positive, got {bins}")
        if self.minimum == self.maximum:
            return [HistogramBin(self.minimum, self.minimum + 1.0, self.count)]
        count = bins if bins is not None else self._optimal_bins()
        counts, edges = np.histogram(self._sorted, bins=count, range=(self.minimum, self.maximum))
        return [
            HistogramBin(float(edges[i]), float(edges[i + 1]), int(counts[i]))
            for i in range(count)
        ]

    def _optimal_bins(self) -> int:
        sturges = int(math.ceil(math.log2(self.count) + 1.0))
        width = 2.0 * self.interquartile_range / self.count ** (1.0 / 3.0)
        if width > 0:
            freedman_diaconis = int(math.ceil((self.maximum - self.minimum) / width))
        else:
            freedman_diaconis = sturges
        return max(1, min(max(sturges, freedman_diaconis), 1000))

    # ------------------------------------------------------------------- helpers
    @staticmethod
    def _check_confidence(confidence: float) -> None:
        if not 0.0 < confidence < 1.0:
            raise ConfigurationError(f"Confidence level must be within (0, 1), got {confidence}")

    @property
    def values(self) -> np.ndarray:
        """The sorted sample (read-only)."""
        return self._sorted

    def summary(self) -> Dict[str, float]:
        """Flat mapping of the headline statistics."""
        return {
            "count": float(self.count),
            "mean": self.mean,
            "median": self.median,
            "std_dev": self.std_dev,
            "min": self.minimum,
            "max": self.maximum,
            "p5": self.p5,
            "p25": self.p25,
            "p50": self.p50,
            "p75": self.p75,
            "p95": self.p95,
            "var95": self.value_at_risk(0.95),
            "cvar95": self.conditional_value_at_risk(0.95),
            "risk_adjusted": self.risk_adjusted_ratio,
        }


def summarize(sample: Union[OutcomeSample, Sequence[float], np.ndarray]) -> ResultStatistics:
    """Compute statistics for an outcome sample."""
    return ResultStatistics(sample)


__all__ = ["DEFAULT_PERCENTILES", "HistogramBin", "ResultStatistics", "summarize"]
