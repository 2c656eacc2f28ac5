"""Request model for a scenario analysis."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.validator import ConfigurationError
from ..utils.numbers import is_integer
from .scenario import ScenarioDefinition


class AnalysisRequest(BaseModel):
    """
    Wire shape of an analysis request.

    Keys follow the camelCase names of the JSON contract (``inputNames``);
    the snake_case field names are accepted as well.
    """

    model_config = ConfigDict(populate_by_name=True)

    input_names: List[str] = Field(
        ..., alias="inputNames", description="Ordered names of the model inputs"
    )
    model: str = Field(..., description="Arithmetic expression over the inputs")
    iterations: int = Field(..., description="Draws per scenario")
    scenarios: List[ScenarioDefinition] = Field(
        ..., description="Scenarios in caller order"
    )
    thresholds: List[float] = Field(
        default_factory=list, description="Outcome levels for P(outcome > t)"
    )
    seed: Optional[int] = Field(
        None, ge=0, description="Master seed for reproducible runs"
    )

    @field_validator("iterations", "seed", mode="before")
    @classmethod
    def _reject_non_integers(cls, value: Any) -> Any:
        if value is not None and not is_integer(value):
            raise ValueError("must be an integer")
        return value

    @classmethod
    def parse(cls, payload: Union["AnalysisRequest", Mapping[str, Any]]) -> "AnalysisRequest":
        """Validate a raw payload, reporting problems as configuration errors."""
        if isinstance(payload, AnalysisRequest):
            return payload
        if not isinstance(payload, Mapping):
            raise ConfigurationError(
                f"Analysis request must be an object, got {type(payload).__name__}"
            )
        try:
            return cls.model_validate(dict(payload))
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or 'request'}: {error['msg']}"
                for error in exc.errors()
            )
            raise ConfigurationError(f"Invalid analysis request: {problems}") from exc


__all__ = ["AnalysisRequest"]
