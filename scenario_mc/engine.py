"""High-level orchestration for scenario-based Monte Carlo analysis."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np

from .config import CHUNK_SIZE, MAX_ITERATIONS, MAX_WORKERS
from .core.comparison import ScenarioComparator, ScenarioMetric
from .core.expression import CompiledExpression, compile_expression
from .core.monte_carlo import (
    CancellationToken,
    MonteCarloConfig,
    MonteCarloRunner,
    OutcomeSample,
    ProgressObserver,
)
from .core.monte_carlo_validation import validate_outcomes
from .core.scenario_config import ResolvedScenario, ScenarioConfig
from .core.statistics import ResultStatistics
from .core.validator import (
    AnalysisCancelledError,
    ConfigurationError,
    EvaluationError,
    ScenarioAnalysisError,
    require_finite,
    validate_input_names,
    validate_unique_scenarios,
)
from .models.request import AnalysisRequest
from .models.results import (
    AnalysisReport,
    RankedScenario,
    ScenarioDiagnostics,
    ScenarioStatistics,
    ThresholdProbabilities,
)
from .models.scenario import ScenarioDefinition
from .utils.numbers import is_integer

LOGGER = logging.getLogger(__name__)

RANKING_METRICS = (ScenarioMetric.MEAN, ScenarioMetric.P5)


class AnalysisState(str, Enum):
    CONFIGURED = "configured"
    VALIDATED = "validated"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ScenarioAnalysis:
    """
    Primary entry point for configuring and running a scenario analysis.

    The analysis moves through ``CONFIGURED -> VALIDATED -> RUNNING`` and ends
    in ``COMPLETED`` or ``FAILED``. Both end states are terminal: a completed
    analysis keeps returning the same report and a failed one keeps raising
    the error that failed it.

    An evaluation error in any scenario aborts the whole analysis. The other
    scenarios are cancelled and the first failing scenario in caller order
    determines the error that is raised.
    """

    def __init__(
        self,
        input_names: Sequence[str],
        model: Union[str, CompiledExpression],
        iterations: int = 1000,
        *,
        seed: Optional[int] = None,
        thresholds: Iterable[float] = (),
        max_workers: Optional[int] = None,
        chunk_size: int = CHUNK_SIZE,
        max_iterations: int = MAX_ITERATIONS,
        deadline: Optional[float] = None,
        progress_observer: Optional[ProgressObserver] = None,
    ) -> None:
        self.input_names: List[str] = list(input_names)
        self.model_source = model
        self.config = MonteCarloConfig(
            iterations=iterations,
            random_seed=seed,
            chunk_size=chunk_size,
            max_iterations=max_iterations,
        )
        self.thresholds: List[float] = list(thresholds)
        self.max_workers = MAX_WORKERS if max_workers is None else max_workers
        self.deadline = deadline
        self.progress_observer = progress_observer

        self._scenarios: List[ScenarioConfig] = []
        self._state = AnalysisState.CONFIGURED
        self._lock = threading.Lock()
        self._token: Optional[CancellationToken] = None
        self._cancel_reason: Optional[str] = None
        self._model: Optional[CompiledExpression] = None
        self._resolved: List[ResolvedScenario] = []
        self._report: Optional[AnalysisReport] = None
        self._error: Optional[BaseException] = None
        self._timings: Dict[str, float] = {}

    # ------------------------------------------------------------ Construction
    @classmethod
    def from_request(
        cls,
        payload: Union[AnalysisRequest, Mapping[str, Any]],
        *,
        seed: Optional[int] = None,
        max_workers: Optional[int] = None,
        deadline: Optional[float] = None,
        progress_observer: Optional[ProgressObserver] = None,
    ) -> "ScenarioAnalysis":
        """Build an analysis from the request shape; ``seed`` overrides the request's."""
        request = AnalysisRequest.parse(payload)
        analysis = cls(
            request.input_names,
            request.model,
            request.iterations,
            seed=request.seed if seed is None else seed,
            thresholds=request.thresholds,
            max_workers=max_workers,
            deadline=deadline,
            progress_observer=progress_observer,
        )
        for definition in request.scenarios:
            analysis.add_scenario(definition)
        return analysis

    # ---------------------------------------------------------------- Scenarios
    def add_scenario(
        self, scenario: Union[ScenarioConfig, ScenarioDefinition]
    ) -> "ScenarioAnalysis":
        """Register a scenario; its coverage is checked by :meth:`validate`."""
        if isinstance(scenario, ScenarioDefinition):
            scenario = scenario.to_config()
        if not isinstance(scenario, ScenarioConfig):
            raise ConfigurationError(f"Unsupported scenario object: {scenario!r}")
        with self._lock:
            if self._state not in (AnalysisState.CONFIGURED, AnalysisState.VALIDATED):
                raise ConfigurationError(
                    f"Scenarios cannot be added to an analysis that is {self._state.value}"
                )
            self._scenarios.append(scenario)
            self._state = AnalysisState.CONFIGURED
        return self

    def scenario(self, name: str) -> ScenarioConfig:
        """Create, register and return an empty scenario for fluent configuration."""
        config = ScenarioConfig(name)
        self.add_scenario(config)
        return config

    @property
    def scenario_names(self) -> List[str]:
        return [scenario.name for scenario in self._scenarios]

    @property
    def state(self) -> AnalysisState:
        return self._state

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def report(self) -> Optional[AnalysisReport]:
        return self._report

    # --------------------------------------------------------------- Validation
    def validate(self) -> None:
        """Compile the model and check every scenario before any sampling."""
        with self._lock:
            if self._state is AnalysisState.FAILED:
                raise self._error  # type: ignore[misc]
            if self._state is not AnalysisState.CONFIGURED:
                return
        try:
            names = validate_input_names(self.input_names)
            if isinstance(self.model_source, CompiledExpression):
                if list(self.model_source.input_names) != names:
                    raise ConfigurationError("Compiled model inputs do not match input_names")
                model = self.model_source
            else:
                model = compile_expression(self.model_source, names)
            if not self._scenarios:
                raise ConfigurationError("At least one scenario is required")
            validate_unique_scenarios(self.scenario_names)
            self.config.validate()
            self._validate_runtime_options()
            resolved = [scenario.finalize(names) for scenario in self._scenarios]
            self.thresholds = [require_finite(value, "threshold") for value in self.thresholds]
        except ScenarioAnalysisError as exc:
            self._fail(exc)
            raise
        with self._lock:
            self._model = model
            self._resolved = resolved
            self._state = AnalysisState.VALIDATED
        LOGGER.debug("Validated %d scenarios over inputs %s", len(resolved), names)

    # ---------------------------------------------------------------- Execution
    def run(self) -> AnalysisReport:
        """Execute every scenario and return the comparison report."""
        with self._lock:
            if self._state is AnalysisState.COMPLETED:
                return self._report  # type: ignore[return-value]
            if self._state is AnalysisState.FAILED:
                raise self._error  # type: ignore[misc]
            if self._state is AnalysisState.RUNNING:
                raise ScenarioAnalysisError("Analysis is already running")
        self.validate()

        with self._lock:
            self._state = AnalysisState.RUNNING
            self._token = CancellationToken(self.deadline)
            if self._cancel_reason is not None:
                self._token.cancel(self._cancel_reason)
            token = self._token

        seed = self.config.random_seed
        if seed is None:
            seed = int(np.random.SeedSequence().generate_state(1)[0])
        workers = max(1, min(self.max_workers, len(self._resolved)))
        LOGGER.info(
            "Starting analysis: %d scenarios x %d iterations (seed=%s, workers=%d)",
            len(self._resolved),
            self.config.iterations,
            seed,
            workers,
        )
        started = time.perf_counter()
        try:
            samples = self._execute(seed, workers, token)
            token.raise_if_cancelled()
            report = self._build_report(samples, seed, workers, time.perf_counter() - started)
        except Exception as exc:
            self._fail(exc)
            raise

        with self._lock:
            self._report = report
            self._state = AnalysisState.COMPLETED
        LOGGER.info(
            "Analysis completed in %.3fs", time.perf_counter() - started
        )
        return report

    def cancel(self, reason: str = "Analysis cancelled") -> None:
        """Request cooperative cancellation; a running analysis ends in FAILED."""
        with self._lock:
            self._cancel_reason = reason
            if self._token is not None:
                self._token.cancel(reason)

    # ----------------------------------------------------------------- Helpers
    def _validate_runtime_options(self) -> None:
        if not is_integer(self.max_workers):
            raise ConfigurationError(f"max_workers must be an integer, got {self.max_workers!r}")
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be positive, got {self.max_workers}")
        if self.deadline is not None:
            deadline = require_finite(self.deadline, "deadline")
            if deadline <= 0:
                raise ConfigurationError(f"deadline must be positive, got {deadline}")

    def _fail(self, exc: BaseException) -> None:
        with self._lock:
            self._state = AnalysisState.FAILED
            self._error = exc
            self._report = None
        LOGGER.info("Analysis failed: %s", exc)

    def _execute(
        self, seed: int, workers: int, token: CancellationToken
    ) -> List[OutcomeSample]:
        runner = MonteCarloRunner(
            chunk_size=self.config.chunk_size,
            max_iterations=self.config.max_iterations,
            cancel_token=token,
            progress_observer=self.progress_observer,
        )
        children = np.random.SeedSequence(seed).spawn(len(self._resolved))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scenario-mc") as executor:
            futures = [
                executor.submit(self._run_scenario, runner, scenario, child, token)
                for scenario, child in zip(self._resolved, children)
            ]
        errors = [future.exception() for future in futures]
        for error in errors:
            if error is not None and not isinstance(error, AnalysisCancelledError):
                raise error
        for error in errors:
            if error is not None:
                raise error
        return [future.result() for future in futures]

    def _run_scenario(
        self,
        runner: MonteCarloRunner,
        scenario: ResolvedScenario,
        seed_sequence: np.random.SeedSequence,
        token: CancellationToken,
    ) -> OutcomeSample:
        rng = np.random.default_rng(seed_sequence)
        started = time.perf_counter()
        try:
            sample = runner.run(self._model, scenario, self.config.iterations, rng)
        except EvaluationError:
            token.cancel(f"Aborted after scenario {scenario.name!r} failed")
            raise
        elapsed = time.perf_counter() - started
        with self._lock:
            self._timings[scenario.name] = elapsed
        LOGGER.info("Scenario %r completed in %.3fs", scenario.name, elapsed)
        return sample

    def _build_report(
        self,
        samples: List[OutcomeSample],
        seed: int,
        workers: int,
        elapsed: float,
    ) -> AnalysisReport:
        statistics: Dict[str, ResultStatistics] = {
            sample.scenario_name: ResultStatistics(sample) for sample in samples
        }
        comparator = ScenarioComparator(statistics)

        best = {}
        worst = {}
        for metric in RANKING_METRICS:
            top = comparator.best(metric)
            bottom = comparator.worst(metric)
            best[metric.value] = RankedScenario(name=top.name, value=top.value)
            worst[metric.value] = RankedScenario(name=bottom.name, value=bottom.value)

        table = comparator.threshold_table(self.thresholds)
        thresholds = [
            ThresholdProbabilities(threshold=value, probability_above=table[float(value)])
            for value in self.thresholds
        ]

        diagnostics = {}
        for sample in samples:
            result = validate_outcomes(sample.values)
            if result.failed_checks:
                LOGGER.warning(
                    "Scenario %r failed outcome checks: %s",
                    sample.scenario_name,
                    ", ".join(result.failed_checks),
                )
            elif result.warnings:
                LOGGER.info(
                    "Scenario %r diagnostics: %s",
                    sample.scenario_name,
                    ", ".join(result.warnings),
                )
            diagnostics[sample.scenario_name] = ScenarioDiagnostics.from_validation(result)

        metadata = self.config.to_metadata()
        metadata.update(
            {
                "random_seed": seed,
                "workers": workers,
                "elapsed_seconds": elapsed,
                "scenario_seconds": dict(self._timings),
            }
        )
        report = AnalysisReport(
            iterations=self.config.iterations,
            seed=seed,
            scenarios={
                name: ScenarioStatistics.from_statistics(result)
                for name, result in statistics.items()
            },
            best=best,
            worst=worst,
            thresholds=thresholds,
            risk_adjusted=comparator.risk_adjusted_ratios(),
            diagnostics=diagnostics,
            metadata=metadata,
        )
        report.attach_statistics(statistics)
        return report


def analyze_scenarios(
    payload: Union[AnalysisRequest, Mapping[str, Any]],
    *,
    seed: Optional[int] = None,
    max_workers: Optional[int] = None,
    deadline: Optional[float] = None,
) -> AnalysisReport:
    """Validate and run a request in one call."""
    analysis = ScenarioAnalysis.from_request(
        payload, seed=seed, max_workers=max_workers, deadline=deadline
    )
    return analysis.run()


__all__ = ["AnalysisState", "ScenarioAnalysis", "analyze_scenarios"]
