"""Result data models for reporting."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from ..core.monte_carlo_validation import ValidationResult
from ..core.statistics import ResultStatistics


class ScenarioStatistics(BaseModel):
    """Headline statistics of one scenario's outcome sample."""

    model_config = ConfigDict(populate_by_name=True)

    mean: float
    median: float
    std_dev: float = Field(..., alias="stdDev")
    p5: float
    p95: float
    p25: float
    p75: float
    minimum: float = Field(..., alias="min")
    maximum: float = Field(..., alias="max")
    var95: float
    cvar95: float

    @classmethod
    def from_statistics(cls, statistics: ResultStatistics) -> "ScenarioStatistics":
        return cls(
            mean=statistics.mean,
            median=statistics.median,
            std_dev=statistics.std_dev,
            p5=statistics.p5,
            p95=statistics.p95,
            p25=statistics.p25,
            p75=statistics.p75,
            minimum=statistics.minimum,
            maximum=statistics.maximum,
            var95=statistics.value_at_risk(0.95),
            cvar95=statistics.conditional_value_at_risk(0.95),
        )


class RankedScenario(BaseModel):
    name: str
    value: float


class ThresholdProbabilities(BaseModel):
    """``P(outcome > threshold)`` for every scenario."""

    model_config = ConfigDict(populate_by_name=True)

    threshold: float
    probability_above: Dict[str, float] = Field(..., alias="probabilityAbove")


class ScenarioDiagnostics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    failed_checks: List[str] = Field(default_factory=list, alias="failedChecks")
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_validation(cls, result: ValidationResult) -> "ScenarioDiagnostics":
        return cls(
            status=result.status,
            failed_checks=list(result.failed_checks),
            warnings=list(result.warnings),
        )


class AnalysisReport(BaseModel):
    """Aggregates every scenario's statistics and the cross-scenario comparison."""

    model_config = ConfigDict(populate_by_name=True)

    iterations: int = Field(..., description="Draws per scenario")
    seed: Optional[int] = Field(None, description="Master seed the draws were derived from")
    scenarios: Dict[str, ScenarioStatistics] = Field(
        default_factory=dict, description="Statistics keyed by scenario name, in caller order"
    )
    best: Dict[str, RankedScenario] = Field(
        default_factory=dict, description="Highest scenario per ranking metric"
    )
    worst: Dict[str, RankedScenario] = Field(
        default_factory=dict, description="Lowest scenario per ranking metric"
    )
    thresholds: List[ThresholdProbabilities] = Field(default_factory=list)
    risk_adjusted: Dict[str, float] = Field(default_factory=dict, alias="riskAdjusted")
    diagnostics: Dict[str, ScenarioDiagnostics] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(
        default_factory=dict, description="Run configuration and timings"
    )

    _statistics: Dict[str, ResultStatistics] = PrivateAttr(default_factory=dict)

    def attach_statistics(self, statistics: Dict[str, ResultStatistics]) -> None:
        """Keep the full statistics objects for drill-down (histograms, CIs)."""
        self._statistics = dict(statistics)

    def statistics(self, name: str) -> ResultStatistics:
        try:
            return self._statistics[name]
        except KeyError:
            raise KeyError(f"Scenario {name!r} not found") from None

    @property
    def scenario_names(self) -> List[str]:
        return list(self.scenarios)

    def to_dict(self) -> Dict[str, Any]:
        """The camelCase data contract."""
        return self.model_dump(by_alias=True, exclude={"metadata"})

    def summary_frame(self) -> pd.DataFrame:
        """Return one row of headline statistics per scenario."""
        if not self.scenarios:
            return pd.DataFrame()
        rows = []
        for name, stats in self.scenarios.items():
            row: Dict[str, Any] = {"scenario": name}
            row.update(stats.model_dump())
            row["risk_adjusted"] = self.risk_adjusted.get(name, 0.0)
            for entry in self.thresholds:
                row[f"p_above_{entry.threshold:g}"] = entry.probability_above.get(name)
            rows.append(row)
        return pd.DataFrame(rows)


__all__ = [
    "AnalysisReport",
    "RankedScenario",
    "ScenarioDiagnostics",
    "ScenarioStatistics",
    "ThresholdProbabilities",
]
