"""Probability distributions for stochastic scenario inputs and their samplers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import numpy as np
from scipy import stats

from .validator import ConfigurationError, require_finite


@dataclass(frozen=True)
class Normal:
    """Gaussian distribution parameterised by mean and standard deviation."""

    mean: float
    std_dev: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "mean", require_finite(self.mean, "Normal mean"))
        object.__setattr__(self, "std_dev", require_finite(self.std_dev, "Normal stdDev"))
        if self.std_dev <= 0:
            raise ConfigurationError(f"Normal stdDev must be positive, got {self.std_dev}")

    @property
    def expected_value(self) -> float:
        return self.mean

    @property
    def variance(self) -> float:
        return self.std_dev**2

    def frozen(self) -> Any:
        return stats.norm(loc=self.mean, scale=self.std_dev)


@dataclass(frozen=True)
class Uniform:
    """Continuous uniform distribution on ``[minimum, maximum)``."""

    minimum: float
    maximum: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "minimum", require_finite(self.minimum, "Uniform min"))
        object.__setattr__(self, "maximum", require_finite(self.maximum, "Uniform max"))
        if not self.minimum < self.maximum:
            raise ConfigurationError(
                f"Uniform min must be less than max, got [{self.minimum}, {self.maximum}]"
            )

    @property
    def expected_value(self) -> float:
        return (self.minimum + self.maximum) / 2.0

    @property
    def variance(self) -> float:
        return (self.maximum - self.minimum) ** 2 / 12.0

    def frozen(self) -> Any:
        return stats.uniform(loc=self.minimum, scale=self.maximum - self.minimum)


@dataclass(frozen=True)
class Triangular:
    """Triangular distribution with support ``[minimum, maximum]`` and peak at ``mode``."""

    minimum: float
    mode: float
    maximum: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "minimum", require_finite(self.minimum, "Triangular min"))
        object.__setattr__(self, "mode", require_finite(self.mode, "Triangular mode"))
        object.__setattr__(self, "maximum", require_finite(self.maximum, "Triangular max"))
        if not self.minimum < self.maximum:
            raise ConfigurationError(
                f"Triangular min must be less than max, got [{self.minimum}, {self.maximum}]"
            )
        if not self.minimum <= self.mode <= self.maximum:
            raise ConfigurationError(
                "Triangular distribution requires min <= mode <= max, got "
                f"min={self.minimum}, mode={self.mode}, max={self.maximum}"
            )

    @property
    def peak_fraction(self) -> float:
        """Position of the mode within the support, in ``[0, 1]``."""
        return (self.mode - self.minimum) / (self.maximum - self.minimum)

    @property
    def expected_value(self) -> float:
        return (self.minimum + self.mode + self.maximum) / 3.0

    @property
    def variance(self) -> float:
        a, c, b = self.minimum, self.mode, self.maximum
        return (a * a + b * b + c * c - a * b - a * c - b * c) / 18.0

    def frozen(self) -> Any:
        return stats.triang(
            self.peak_fraction, loc=self.minimum, scale=self.maximum - self.minimum
        )


Distribution = Union[Normal, Uniform, Triangular]


def _triangular_inverse_cdf(distribution: Triangular, uniforms: np.ndarray) -> np.ndarray:
    low, mode, high = distribution.minimum, distribution.mode, distribution.maximum
    width = high - low
    split = distribution.peak_fraction
    lower = low + np.sqrt(uniforms * width * (mode - low))
    upper = high - np.sqrt((1.0 - uniforms) * width * (high - mode))
    return np.where(uniforms < split, lower, upper)


def sample(
    distribution: Distribution,
    rng: np.random.Generator,
    size: Optional[int] = None,
) -> Union[float, np.ndarray]:
    """
    Draw from ``distribution`` using ``rng``.

    Returns a float when ``size`` is None, otherwise an array of ``size``
    independent draws. Deterministic for a given generator state.
    """
    if isinstance(distribution, Normal):
        draws = rng.normal(distribution.mean, distribution.std_dev, size=size)
    elif isinstance(distribution, Uniform):
        draws = rng.uniform(distribution.minimum, distribution.maximum, size=size)
    elif isinstance(distribution, Triangular):
        draws = _triangular_inverse_cdf(distribution, rng.random(size=size))
    else:
        raise TypeError(f"Unsupported distribution type: {type(distribution).__name__}")
    if size is None:
        return float(draws)
    return np.asarray(draws, dtype=float)


def _parameter(spec: Mapping[str, Any], kind: str, *keys: str) -> float:
    for key in keys:
        if key in spec and spec[key] is not None:
            return require_finite(spec[key], f"{kind} distribution '{keys[0]}'")
    raise ConfigurationError(f"{kind} distribution requires '{keys[0]}' parameter")


def distribution_from_spec(spec: Mapping[str, Any]) -> Distribution:
    """Build a distribution from its request shape, e.g. ``{"type": "normal", ...}``."""
    if not isinstance(spec, Mapping):
        raise ConfigurationError(f"Distribution spec must be an object, got {spec!r}")
    kind = spec.get("type")
    if not isinstance(kind, str):
        raise ConfigurationError("Distribution must have a 'type' field")
    kind = kind.strip().lower()
    if kind == "normal":
        return Normal(
            mean=_parameter(spec, "Normal", "mean"),
            std_dev=_parameter(spec, "Normal", "stdDev", "stddev", "std_dev"),
        )
    if kind == "uniform":
        return Uniform(
            minimum=_parameter(spec, "Uniform", "min", "minimum"),
            maximum=_parameter(spec, "Uniform", "max", "maximum"),
        )
    if kind == "triangular":
        return Triangular(
            minimum=_parameter(spec, "Triangular", "min", "minimum"),
            mode=_parameter(spec, "Triangular", "mode"),
            maximum=_parameter(spec, "Triangular", "max", "maximum"),
        )
    raise ConfigurationError(f"Unknown distribution type: {spec.get('type')!r}")


def describe(distribution: Distribution) -> str:
    """Short human-readable label used in logs and diagnostics."""
    if isinstance(distribution, Normal):
        return f"Normal(mean={distribution.mean:g}, stdDev={distribution.std_dev:g})"
    if isinstance(distribution, Uniform):
        return f"Uniform(min={distribution.minimum:g}, max={distribution.maximum:g})"
    if isinstance(distribution, Triangular):
        return (
            f"Triangular(min={distribution.minimum:g}, mode={distribution.mode:g}, "
            f"max={distribution.maximum:g})"
        )
    raise TypeError(f"Unsupported distribution type: {type(distribution).__name__}")


__all__ = [
    "Distribution",
    "Normal",
    "Triangular",
    "Uniform",
    "describe",
    "distribution_from_spec",
    "sample",
]
