"""Scenario-based Monte Carlo analysis over small arithmetic models."""

from __future__ import annotations

from .core.comparison import ScenarioComparator, ScenarioMetric, ScenarioRanking
from .core.distributions import Normal, Triangular, Uniform, distribution_from_spec, sample
from .core.expression import CompiledExpression, compile_expression
from .core.monte_carlo import (
    CancellationToken,
    MonteCarloConfig,
    MonteCarloRunner,
    OutcomeSample,
    run_scenario,
)
from .core.scenario_config import Fixed, ResolvedScenario, Sampled, ScenarioConfig
from .core.sensitivity import InputSensitivity, SensitivityAnalysis, TornadoBar
from .core.statistics import ResultStatistics, summarize
from .core.validator import (
    AnalysisCancelledError,
    ConfigurationError,
    DuplicateScenarioError,
    EvaluationError,
    MissingInputError,
    ScenarioAnalysisError,
    UnknownInputError,
)
from .engine import AnalysisState, ScenarioAnalysis, analyze_scenarios
from .models.request import AnalysisRequest
from .models.results import AnalysisReport

__version__ = "0.1.0"

__all__ = [
    "AnalysisCancelledError",
    "AnalysisReport",
    "AnalysisRequest",
    "AnalysisState",
    "CancellationToken",
    "CompiledExpression",
    "ConfigurationError",
    "DuplicateScenarioError",
    "EvaluationError",
    "Fixed",
    "InputSensitivity",
    "MissingInputError",
    "MonteCarloConfig",
    "MonteCarloRunner",
    "Normal",
    "OutcomeSample",
    "ResolvedScenario",
    "ResultStatistics",
    "Sampled",
    "ScenarioAnalysis",
    "ScenarioAnalysisError",
    "ScenarioComparator",
    "ScenarioConfig",
    "ScenarioMetric",
    "ScenarioRanking",
    "SensitivityAnalysis",
    "TornadoBar",
    "Triangular",
    "Uniform",
    "UnknownInputError",
    "analyze_scenarios",
    "compile_expression",
    "distribution_from_spec",
    "run_scenario",
    "sample",
    "summarize",
]
