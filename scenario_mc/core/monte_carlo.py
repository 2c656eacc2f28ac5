"""Monte Carlo configuration and per-scenario outcome sampling."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional

import numpy as np

from ..config import CHUNK_SIZE, MAX_ITERATIONS
from ..models.monte_carlo import MonteCarloProgressEvent
from .distributions import describe, sample
from .expression import CompiledExpression
from .scenario_config import Fixed, ResolvedScenario
from .validator import (
    AnalysisCancelledError,
    ConfigurationError,
    EvaluationError,
    validate_iterations,
)
from ..utils.numbers import is_integer

LOGGER = logging.getLogger(__name__)

ProgressObserver = Callable[[MonteCarloProgressEvent], None]


@dataclass
class MonteCarloConfig:
    """Configuration bundle for Monte Carlo scenario runs."""

    iterations: int = 1000
    random_seed: Optional[int] = None
    chunk_size: int = CHUNK_SIZE
    max_iterations: int = MAX_ITERATIONS

    def validate(self) -> None:
        validate_iterations(self.iterations, self.max_iterations)
        if not is_integer(self.chunk_size):
            raise ConfigurationError(f"chunk_size must be an integer, got {self.chunk_size!r}")
        if self.chunk_size < 1:
            raise ConfigurationError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.random_seed is not None and (
            not is_integer(self.random_seed) or self.random_seed < 0
        ):
            raise ConfigurationError(
                f"seed must be a non-negative integer, got {self.random_seed!r}"
            )

    def to_metadata(self) -> Dict[str, object]:
        """Serialise into report metadata."""
        return {
            "iterations": int(self.iterations),
            "random_seed": self.random_seed,
            "chunk_size": int(self.chunk_size),
            "max_iterations": int(self.max_iterations),
        }

    @classmethod
    def from_metadata(cls, metadata: Dict[str, object]) -> "MonteCarloConfig":
        """Rehydrate a configuration from report metadata."""
        seed = metadata.get("random_seed")
        return MonteCarloConfig(
            iterations=int(metadata.get("iterations", 1000)),
            random_seed=None if seed is None else int(seed),
            chunk_size=int(metadata.get("chunk_size", CHUNK_SIZE)),
            max_iterations=int(metadata.get("max_iterations", MAX_ITERATIONS)),
        )


class CancellationToken:
    """Cooperative cancellation flag with an optional deadline in seconds."""

    def __init__(self, deadline: Optional[float] = None) -> None:
        if deadline is not None and deadline <= 0:
            raise ConfigurationError(f"deadline must be positive, got {deadline}")
        self._event = threading.Event()
        self._expires_at = None if deadline is None else time.monotonic() + deadline
        self._reason = "Analysis cancelled"

    def cancel(self, reason: str = "Analysis cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._expires_at is not None and time.monotonic() >= self._expires_at:
            self.cancel("Analysis deadline exceeded")
            return True
        return False

    @property
    def reason(self) -> str:
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise AnalysisCancelledError(self._reason)


@dataclass(frozen=True)
class OutcomeSample:
    """The ordered model outcomes of one scenario, one per draw; read-only."""

    scenario_name: str
    values: np.ndarray

    def __post_init__(self) -> None:
        values = np.array(self.values, dtype=float)
        values.setflags(write=False)
        object.__setattr__(self, "values", values)

    def __len__(self) -> int:
        return int(self.values.shape[0])

    def __iter__(self) -> Iterator[float]:
        return iter(self.values.tolist())


class MonteCarloRunner:
    """
    Draws independent input vectors for one scenario and evaluates the model.

    Draws are produced in fixed-size chunks: for every chunk each stochastic
    input receives ``chunk`` fresh samples (in model input order) while fixed
    inputs are broadcast verbatim. The outcome therefore depends only on the
    generator state and the chunk size, never on thread scheduling. A single
    failing draw fails the whole scenario.
    """

    def __init__(
        self,
        *,
        chunk_size: int = CHUNK_SIZE,
        max_iterations: int = MAX_ITERATIONS,
        cancel_token: Optional[CancellationToken] = None,
        progress_observer: Optional[ProgressObserver] = None,
    ) -> None:
        if chunk_size < 1:
            raise ConfigurationError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size
        self.max_iterations = max_iterations
        self.cancel_token = cancel_token
        self.progress_observer = progress_observer

    def run(
        self,
        model: CompiledExpression,
        scenario: ResolvedScenario,
        iterations: int,
        rng: np.random.Generator,
    ) -> OutcomeSample:
        validate_iterations(iterations, self.max_iterations)
        if tuple(scenario.input_names) != tuple(model.input_names):
            raise ConfigurationError(
                f"Scenario {scenario.name!r} inputs {list(scenario.input_names)} do not match "
                f"model inputs {list(model.input_names)}"
            )

        if LOGGER.isEnabledFor(logging.DEBUG):
            LOGGER.debug(
                "Scenario %r assignments: %s",
                scenario.name,
                ", ".join(
                    f"{name}={assignment.value:g}"
                    if isinstance(assignment, Fixed)
                    else f"{name}~{describe(assignment.distribution)}"
                    for name, assignment in zip(scenario.input_names, scenario.assignments)
                ),
            )

        outcomes = np.empty(iterations, dtype=float)
        count, running_mean, running_m2 = 0, 0.0, 0.0
        started = time.perf_counter()

        for start in range(0, iterations, self.chunk_size):
            if self.cancel_token is not None:
                self.cancel_token.raise_if_cancelled()
            size = min(self.chunk_size, iterations - start)
            columns = [
                np.full(size, assignment.value)
                if isinstance(assignment, Fixed)
                else sample(assignment.distribution, rng, size)
                for assignment in scenario.assignments
            ]
            try:
                chunk = model.evaluate_batch(columns)
            except EvaluationError as exc:
                raise exc.located(scenario=scenario.name, offset=start) from exc
            outcomes[start : start + size] = chunk

            # Chan et al. pairwise merge of the running mean / M2.
            chunk_mean = float(chunk.mean())
            chunk_m2 = float(((chunk - chunk_mean) ** 2).sum())
            delta = chunk_mean - running_mean
            total = count + size
            running_mean += delta * size / total
            running_m2 += chunk_m2 + delta * delta * count * size / total
            count = total
            LOGGER.debug("Scenario %r: %d/%d draws complete", scenario.name, count, iterations)
            self._notify(scenario.name, count, iterations, running_mean, running_m2)

        LOGGER.debug(
            "Scenario %r sampled %d draws in %.3fs",
            scenario.name,
            iterations,
            time.perf_counter() - started,
        )
        return OutcomeSample(scenario_name=scenario.name, values=outcomes)

    def _notify(
        self, name: str, completed: int, total: int, mean: float, m2: float
    ) -> None:
        if self.progress_observer is None:
            return
        std = (m2 / (completed - 1)) ** 0.5 if completed > 1 else 0.0
        event = MonteCarloProgressEvent(
            scenario_name=name,
            completed_iterations=completed,
            total_iterations=total,
            cumulative_mean=mean,
            cumulative_std=std,
        )
        try:
            self.progress_observer(event)
        except Exception as exc:
            LOGGER.warning("Progress observer failed for scenario %r: %s", name, exc)


def run_scenario(
    model: CompiledExpression,
    scenario: ResolvedScenario,
    iterations: int,
    rng: np.random.Generator,
    **options: object,
) -> OutcomeSample:
    """Sample one scenario; ``options`` are passed to :class:`MonteCarloRunner`."""
    return MonteCarloRunner(**options).run(model, scenario, iterations, rng)  # type: ignore[arg-type]


__all__ = [
    "CancellationToken",
    "MonteCarloConfig",
    "MonteCarloRunner",
    "OutcomeSample",
    "ProgressObserver",
    "run_scenario",
]
