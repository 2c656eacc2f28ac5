"""Data models for Monte Carlo progress streaming."""

from __future__ import annotations

from dataclasses import dataclass, field

import time


@dataclass(frozen=True)
class MonteCarloProgressEvent:
    """
    Progress update emitted after each batch of draws for one scenario.

    Running statistics cover every draw completed so far, which keeps the
    payload small enough for live progress displays.
    """

    scenario_name: str
    completed_iterations: int
    total_iterations: int
    cumulative_mean: float
    cumulative_std: float
    timestamp: float = field(default_factory=time.time)

    @property
    def fraction_complete(self) -> float:
        if self.total_iterations <= 0:
            return 0.0
        return self.completed_iterations / self.total_iterations


__all__ = ["MonteCarloProgressEvent"]
