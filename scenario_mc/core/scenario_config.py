"""Per-scenario input assignments and their validation against the model inputs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Tuple, Union

from .distributions import Distribution, Normal, Triangular, Uniform, distribution_from_spec
from .validator import (
    ConfigurationError,
    MissingInputError,
    UnknownInputError,
    require_finite,
)


@dataclass(frozen=True)
class Fixed:
    """A deterministic input value reused verbatim on every draw."""

    value: float


@dataclass(frozen=True)
class Sampled:
    """An input drawn afresh from ``distribution`` on every draw."""

    distribution: Distribution


InputAssignment = Union[Fixed, Sampled]


@dataclass(frozen=True)
class ResolvedScenario:
    """A validated scenario whose assignments follow the model's input order."""

    name: str
    input_names: Tuple[str, ...]
    assignments: Tuple[InputAssignment, ...]

    @property
    def stochastic(self) -> bool:
        return any(isinstance(assignment, Sampled) for assignment in self.assignments)

    def assignment(self, input_name: str) -> InputAssignment:
        return self.assignments[self.input_names.index(input_name)]


class ScenarioConfig:
    """
    Collects the assignment for every model input of one named scenario.

    Each input holds exactly one assignment; setting it again replaces the
    previous one. :meth:`finalize` checks coverage against the model inputs
    and fails fast on the first scenario problem.
    """

    def __init__(self, name: str) -> None:
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(f"Scenario name must be a non-empty string, got {name!r}")
        self.name = name
        self._assignments: Dict[str, InputAssignment] = {}

    def set_value(self, input_name: str, value: float) -> "ScenarioConfig":
        """Assign a fixed value to ``input_name``."""
        label = f"Scenario {self.name!r} input {input_name!r} value"
        self._assignments[input_name] = Fixed(require_finite(value, label))
        return self

    def set_distribution(self, input_name: str, distribution: Distribution) -> "ScenarioConfig":
        """Assign a distribution to ``input_name``; it is sampled on every draw."""
        if not isinstance(distribution, (Normal, Uniform, Triangular)):
            raise ConfigurationError(
                f"Scenario {self.name!r} input {input_name!r}: unsupported distribution "
                f"{distribution!r}"
            )
        self._assignments[input_name] = Sampled(distribution)
        return self

    @property
    def configured_inputs(self) -> Tuple[str, ...]:
        return tuple(self._assignments)

    @classmethod
    def from_inputs(cls, name: str, inputs: Mapping[str, Any]) -> "ScenarioConfig":
        """
        Build a configuration from the request shape.

        Each entry is either ``{"value": number}`` or
        ``{"distribution": {"type": ..., ...}}``.
        """
        config = cls(name)
        if not isinstance(inputs, Mapping):
            raise ConfigurationError(f"Scenario {name!r} must have an 'inputs' object")
        for input_name, spec in inputs.items():
            if not isinstance(spec, Mapping):
                raise ConfigurationError(
                    f"Scenario {name!r} input {input_name!r} must be an object"
                )
            has_value = "value" in spec
            has_distribution = "distribution" in spec
            if has_value == has_distribution:
                raise ConfigurationError(
                    f"Scenario {name!r} input {input_name!r} needs exactly one of "
                    "'value' or 'distribution'"
                )
            if has_value:
                config.set_value(input_name, spec["value"])
                continue
            try:
                distribution = distribution_from_spec(spec["distribution"])
            except ConfigurationError as exc:
                raise ConfigurationError(
                    f"Scenario {name!r} input {input_name!r}: {exc}"
                ) from exc
            config.set_distribution(input_name, distribution)
        return config

    def finalize(self, input_names: Iterable[str]) -> ResolvedScenario:
        """Validate coverage of ``input_names`` and freeze the assignments in model order."""
        ordered = tuple(input_names)
        declared = set(ordered)
        for input_name in self._assignments:
            if input_name not in declared:
                raise UnknownInputError(self.name, input_name)
        missing = [input_name for input_name in ordered if input_name not in self._assignments]
        if missing:
            raise MissingInputError(self.name, missing)
        return ResolvedScenario(
            name=self.name,
            input_names=ordered,
            assignments=tuple(self._assignments[input_name] for input_name in ordered),
        )


__all__ = [
    "Fixed",
    "InputAssignment",
    "ResolvedScenario",
    "Sampled",
    "ScenarioConfig",
]
