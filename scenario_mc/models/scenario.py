"""Scenario data models."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..core.scenario_config import ScenarioConfig
from ..utils.numbers import is_number


class InputSpec(BaseModel):
    """A single input of a scenario: a fixed value or a distribution."""

    value: Optional[float] = Field(
        None, allow_inf_nan=False, description="Fixed value reused on every draw"
    )
    distribution: Optional[Dict[str, Any]] = Field(
        None,
        description=(
            "Distribution object with a 'type' of normal, uniform or triangular "
            "and its parameters (mean/stdDev, min/max, min/mode/max)"
        ),
    )

    @field_validator("value", mode="before")
    @classmethod
    def _reject_non_numbers(cls, value: Any) -> Any:
        if value is not None and not is_number(value):
            raise ValueError("value must be a number")
        return value

    @model_validator(mode="after")
    def _exactly_one(self) -> "InputSpec":
        if (self.value is None) == (self.distribution is None):
            raise ValueError("needs exactly one of 'value' or 'distribution'")
        return self

    def to_payload(self) -> Dict[str, Any]:
        if self.value is not None:
            return {"value": self.value}
        return {"distribution": dict(self.distribution or {})}


class ScenarioDefinition(BaseModel):
    """A named assignment of every model input."""

    name: str = Field(..., description="Unique scenario name")
    inputs: Dict[str, InputSpec] = Field(
        default_factory=dict, description="Input assignments keyed by input name"
    )

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("scenario name cannot be empty")
        return value

    def to_config(self) -> ScenarioConfig:
        """Translate into a mutable engine configuration."""
        return ScenarioConfig.from_inputs(
            self.name, {name: spec.to_payload() for name, spec in self.inputs.items()}
        )


__all__ = ["InputSpec", "ScenarioDefinition"]
