"""One-at-a-time sensitivity sweeps and tornado chart data."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Mapping, Sequence, Tuple, Union

import numpy as np

from .expression import CompiledExpression, compile_expression
from .monte_carlo import MonteCarloRunner
from .scenario_config import ScenarioConfig
from .statistics import ResultStatistics
from .validator import ConfigurationError, UnknownInputError, require_finite
from ..utils.numbers import is_integer

LOGGER = logging.getLogger(__name__)

SWEEP_LABEL = "Sensitivity Analysis"


@dataclass(frozen=True)
class SensitivityPoint:
    multiplier: float
    input_value: float
    statistics: ResultStatistics

    @property
    def mean(self) -> float:
        return self.statistics.mean


@dataclass(frozen=True)
class InputSensitivity:
    """Outcome response to scaling one input while the others stay at base."""

    input_name: str
    base_value: float
    points: Tuple[SensitivityPoint, ...]

    @property
    def multipliers(self) -> List[float]:
        return [point.multiplier for point in self.points]

    @property
    def means(self) -> List[float]:
        return [point.mean for point in self.points]

    @property
    def output_range(self) -> float:
        means = self.means
        return max(means) - min(means)


@dataclass(frozen=True)
class TornadoBar:
    input_name: str
    low: float
    high: float

    @property
    def impact(self) -> float:
        return self.high - self.low


class SensitivityAnalysis:
    """
    Sweep each input across a multiplier range of its base value.

    Every sweep point is a fixed-value scenario run through the regular
    Monte Carlo runner, so the model is evaluated with exactly the same
    semantics as a full analysis.
    """

    def __init__(
        self,
        input_names: Sequence[str],
        model: Union[str, CompiledExpression],
        base_values: Mapping[str, float],
        iterations: int = 1,
    ) -> None:
        if isinstance(model, CompiledExpression):
            if tuple(model.input_names) != tuple(input_names):
                raise ConfigurationError("Compiled model inputs do not match input_names")
            self.model = model
        else:
            self.model = compile_expression(model, input_names)
        self.input_names = tuple(self.model.input_names)
        self.base_values = {
            name: require_finite(value, f"base value for {name!r}")
            for name, value in base_values.items()
        }
        for name in self.base_values:
            if name not in self.input_names:
                raise UnknownInputError(SWEEP_LABEL, name)
        self.iterations = iterations
        self._runner = MonteCarloRunner()

    def analyze_input(
        self,
        input_name: str,
        low: float = 0.8,
        high: float = 1.2,
        steps: int = 5,
    ) -> InputSensitivity:
        """Evaluate ``steps`` evenly spaced multipliers in ``[low, high]``."""
        if input_name not in self.input_names:
            raise UnknownInputError(SWEEP_LABEL, input_name)
        if not is_integer(steps) or steps < 2:
            raise ConfigurationError(f"steps must be an integer of at least 2, got {steps!r}")
        low = require_finite(low, "low multiplier")
        high = require_finite(high, "high multiplier")
        if low > high:
            raise ConfigurationError(f"Low multiplier {low} exceeds high multiplier {high}")

        base_value = self._base_value(input_name)
        points = []
        for multiplier in np.linspace(low, high, steps):
            value = base_value * float(multiplier)
            statistics = self._run_point(input_name, value, float(multiplier))
            points.append(
                SensitivityPoint(
                    multiplier=float(multiplier), input_value=value, statistics=statistics
                )
            )
        return InputSensitivity(
            input_name=input_name, base_value=base_value, points=tuple(points)
        )

    def tornado(self, low: float = 0.9, high: float = 1.1) -> List[TornadoBar]:
        """Outcome span per input at the two ends of the range, widest first."""
        bars = []
        for name in self.input_names:
            sweep = self.analyze_input(name, low, high, steps=2)
            first, last = sweep.means[0], sweep.means[-1]
            bars.append(TornadoBar(input_name=name, low=min(first, last), high=max(first, last)))
        # Stable sort keeps model order among equal impacts.
        return sorted(bars, key=lambda bar: -bar.impact)

    # ------------------------------------------------------------------ Helpers
    def _base_value(self, name: str) -> float:
        try:
            return self.base_values[name]
        except KeyError:
            raise ConfigurationError(f"No base value supplied for input {name!r}") from None

    def _run_point(self, input_name: str, value: float, multiplier: float) -> ResultStatistics:
        config = ScenarioConfig(f"{input_name}_{multiplier:g}")
        for name in self.input_names:
            config.set_value(name, value if name == input_name else self._base_value(name))
        scenario = config.finalize(self.input_names)
        # Fixed-value scenarios never consume randomness.
        sample = self._runner.run(
            self.model, scenario, self.iterations, np.random.default_rng(0)
        )
        LOGGER.debug("Sensitivity point %s x%g evaluated", input_name, multiplier)
        return ResultStatistics(sample)


__all__ = [
    "InputSensitivity",
    "SensitivityAnalysis",
    "SensitivityPoint",
    "TornadoBar",
]
