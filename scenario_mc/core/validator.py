"""Error taxonomy and input validation utilities."""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence

from ..utils.numbers import is_integer, is_number


class ScenarioAnalysisError(Exception):
    """Base class for every error raised by the scenario engine."""


class ConfigurationError(ScenarioAnalysisError, ValueError):
    """Invalid analysis set-up detected before any sampling happens."""


class MissingInputError(ConfigurationError):
    """A scenario does not assign one or more declared model inputs."""

    def __init__(self, scenario: str, missing: Sequence[str]) -> None:
        self.scenario = scenario
        self.missing = list(missing)
        super().__init__(
            f"Scenario {scenario!r} is missing configuration for inputs: "
            + ", ".join(self.missing)
        )


class UnknownInputError(ConfigurationError):
    """A scenario assigns an input that the model does not declare."""

    def __init__(self, scenario: str, input_name: str) -> None:
        self.scenario = scenario
        self.input_name = input_name
        super().__init__(f"Scenario {scenario!r} references unknown input: {input_name!r}")


class DuplicateScenarioError(ConfigurationError):
    """Two scenarios in one analysis share a name."""

    def __init__(self, scenario: str) -> None:
        self.scenario = scenario
        super().__init__(f"Scenario {scenario!r} is defined more than once")


class EvaluationError(ScenarioAnalysisError, ArithmeticError):
    """The model failed to evaluate on a sampled input vector."""

    def __init__(
        self,
        message: str,
        *,
        scenario: Optional[str] = None,
        iteration: Optional[int] = None,
    ) -> None:
        self.detail = message
        self.scenario = scenario
        self.iteration = iteration
        super().__init__(self._format())

    def _format(self) -> str:
        location = []
        if self.scenario is not None:
            location.append(f"scenario {self.scenario!r}")
        if self.iteration is not None:
            location.append(f"iteration {self.iteration}")
        if not location:
            return self.detail
        return f"{self.detail} ({', '.join(location)})"

    def located(self, *, scenario: Optional[str] = None, offset: int = 0) -> "EvaluationError":
        """Return a copy tagged with the owning scenario and absolute iteration."""
        iteration = None if self.iteration is None else self.iteration + offset
        return EvaluationError(
            self.detail,
            scenario=scenario if scenario is not None else self.scenario,
            iteration=iteration,
        )


class AnalysisCancelledError(ScenarioAnalysisError):
    """The analysis was cancelled or ran past its deadline."""


def require_finite(value: object, label: str) -> float:
    """Coerce ``value`` to a finite float or raise ConfigurationError."""
    if not is_number(value):
        raise ConfigurationError(f"{label} must be a number, got {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise ConfigurationError(f"{label} must be finite, got {number}")
    return number


def validate_input_names(input_names: Iterable[str]) -> List[str]:
    """Ensure input names are present, non-empty and unique."""
    names = list(input_names)
    if not names:
        raise ConfigurationError("inputNames must not be empty")
    seen = set()
    duplicates: List[str] = []
    for name in names:
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(f"Input names must be non-empty strings, got {name!r}")
        if name in seen:
            duplicates.append(name)
        seen.add(name)
    if duplicates:
        raise ConfigurationError(
            "Duplicate input names detected: " + ", ".join(sorted(set(duplicates)))
        )
    return names


def validate_unique_scenarios(names: Iterable[str]) -> None:
    """Ensure scenario names are unique; the first repeat is reported."""
    seen = set()
    for name in names:
        if name in seen:
            raise DuplicateScenarioError(name)
        seen.add(name)


def validate_iterations(iterations: object, max_iterations: int) -> int:
    """Iteration counts must be positive integers within the configured bound."""
    if not is_integer(iterations):
        raise ConfigurationError(f"iterations must be an integer, got {iterations!r}")
    if not 1 <= iterations <= max_iterations:
        raise ConfigurationError(
            f"iterations must be between 1 and {max_iterations:,}, got {iterations:,}"
        )
    return iterations


__all__ = [
    "AnalysisCancelledError",
    "ConfigurationError",
    "DuplicateScenarioError",
    "EvaluationError",
    "MissingInputError",
    "ScenarioAnalysisError",
    "UnknownInputError",
    "require_finite",
    "validate_input_names",
    "validate_iterations",
    "validate_unique_scenarios",
]
