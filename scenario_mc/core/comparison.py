"""Cross-scenario ranking, risk-adjusted ratios and threshold tables."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Sequence

import pandas as pd

from .statistics import ResultStatistics
from .validator import ConfigurationError


class ScenarioMetric(str, Enum):
    """Statistics scenarios can be ranked by."""

    MEAN = "mean"
    MEDIAN = "median"
    STD_DEV = "std_dev"
    P5 = "p5"
    P25 = "p25"
    P50 = "p50"
    P75 = "p75"
    P95 = "p95"
    VAR95 = "var95"
    CVAR95 = "cvar95"
    RISK_ADJUSTED = "risk_adjusted"

    def of(self, statistics: ResultStatistics) -> float:
        if self is ScenarioMetric.MEAN:
            return statistics.mean
        if self is ScenarioMetric.MEDIAN:
            return statistics.median
        if self is ScenarioMetric.STD_DEV:
            return statistics.std_dev
        if self is ScenarioMetric.P5:
            return statistics.p5
        if self is ScenarioMetric.P25:
            return statistics.p25
        if self is ScenarioMetric.P50:
            return statistics.p50
        if self is ScenarioMetric.P75:
            return statistics.p75
        if self is ScenarioMetric.P95:
            return statistics.p95
        if self is ScenarioMetric.VAR95:
            return statistics.value_at_risk(0.95)
        if self is ScenarioMetric.CVAR95:
            return statistics.conditional_value_at_risk(0.95)
        return statistics.risk_adjusted_ratio


@dataclass(frozen=True)
class ScenarioRanking:
    """A scenario together with its value for the ranking metric."""

    name: str
    metric: ScenarioMetric
    value: float


class ScenarioComparator:
    """
    Compares scenarios by a chosen statistic.

    Higher values rank as better for every metric. Ties resolve to the
    scenario encountered first in the caller-supplied ordering.
    """

    def __init__(self, results: Mapping[str, ResultStatistics]) -> None:
        if not results:
            raise ConfigurationError("At least one scenario is required for comparison")
        self._results: Dict[str, ResultStatistics] = dict(results)

    @property
    def scenario_names(self) -> List[str]:
        return list(self._results)

    def statistics(self, name: str) -> ResultStatistics:
        try:
            return self._results[name]
        except KeyError:
            raise KeyError(f"Scenario {name!r} not found") from None

    def _ranking(self, name: str, metric: ScenarioMetric) -> ScenarioRanking:
        return ScenarioRanking(name=name, metric=metric, value=metric.of(self._results[name]))

    def best(self, by: ScenarioMetric = ScenarioMetric.MEAN) -> ScenarioRanking:
        metric = ScenarioMetric(by)
        # max() keeps the first maximal element, which gives caller-order tie breaks.
        name = max(self._results, key=lambda key: metric.of(self._results[key]))
        return self._ranking(name, metric)

    def worst(self, by: ScenarioMetric = ScenarioMetric.MEAN) -> ScenarioRanking:
        metric = ScenarioMetric(by)
        name = min(self._results, key=lambda key: metric.of(self._results[key]))
        return self._ranking(name, metric)

    def rank(
        self, by: ScenarioMetric = ScenarioMetric.MEAN, *, ascending: bool = False
    ) -> List[ScenarioRanking]:
        """All scenarios ordered by ``by``; the sort is stable so ties keep caller order."""
        metric = ScenarioMetric(by)
        rankings = [self._ranking(name, metric) for name in self._results]
        if ascending:
            return sorted(rankings, key=lambda ranking: ranking.value)
        return sorted(rankings, key=lambda ranking: -ranking.value)

    def risk_adjusted_ratios(self) -> Dict[str, float]:
        """Mean divided by standard deviation per scenario (0 when the deviation is 0)."""
        return {name: result.risk_adjusted_ratio for name, result in self._results.items()}

    def threshold_table(self, thresholds: Iterable[float]) -> Dict[float, Dict[str, float]]:
        """``P(outcome > t)`` for every threshold and scenario."""
        return {
            float(threshold): {
                name: result.probability_above(float(threshold))
                for name, result in self._results.items()
            }
            for threshold in thresholds
        }

    def summary_table(
        self,
        metrics: Sequence[ScenarioMetric] = (
            ScenarioMetric.MEAN,
            ScenarioMetric.MEDIAN,
            ScenarioMetric.STD_DEV,
            ScenarioMetric.P5,
            ScenarioMetric.P95,
        ),
    ) -> pd.DataFrame:
        """Scenario-by-metric table, one row per scenario in caller order."""
        resolved = [ScenarioMetric(metric) for metric in metrics]
        rows = [
            {"scenario": name, **{metric.value: metric.of(result) for metric in resolved}}
            for name, result in self._results.items()
        ]
        return pd.DataFrame(rows).set_index("scenario")


__all__ = ["ScenarioComparator", "ScenarioMetric", "ScenarioRanking"]
