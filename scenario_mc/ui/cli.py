"""Typer-based command line interface for running scenario analyses from request files."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from ..config import LOG_LEVEL
from ..core.validator import (
    AnalysisCancelledError,
    ConfigurationError,
    EvaluationError,
)
from ..engine import ScenarioAnalysis
from ..models.results import AnalysisReport

app = typer.Typer(help="Scenario-based Monte Carlo analysis over an arithmetic model")
console = Console()
err_console = Console(stderr=True)

EXIT_EVALUATION_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2

TABLE_COLUMNS = ("mean", "median", "std_dev", "p5", "p95", "var95", "cvar95", "risk_adjusted")


def _configure_logging(verbose: bool) -> None:
    level = logging.INFO if verbose else getattr(logging, LOG_LEVEL, logging.WARNING)
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def _load_request(path: Path) -> Dict[str, Any]:
    """Read a JSON or YAML request file."""
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            payload = yaml.safe_load(text)
        else:
            payload = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Could not parse {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError(f"{path} must contain a request object")
    return payload


def _format_number(value: Optional[float]) -> str:
    if value is None:
        return "-"
    return f"{value:,.4f}"


def _summary_table(report: AnalysisReport) -> Table:
    frame = report.summary_frame()
    table = Table(title=f"Scenario Summary ({report.iterations:,} iterations)")
    table.add_column("scenario")
    columns = [column for column in frame.columns if column in TABLE_COLUMNS or column.startswith("p_above_")]
    for column in columns:
        table.add_column(column, justify="right")
    for _, row in frame.iterrows():
        table.add_row(str(row["scenario"]), *[_format_number(row[column]) for column in columns])
    return table


def _fail(message: str, code: int) -> None:
    err_console.print(f"[red]{message}[/red]")
    raise typer.Exit(code=code)


@app.command()
def run(
    request: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="JSON or YAML analysis request"
    ),
    seed: Optional[int] = typer.Option(None, "--seed", help="Override the request's seed"),
    workers: Optional[int] = typer.Option(
        None, "--workers", help="Worker threads used to run scenarios in parallel"
    ),
    deadline: Optional[float] = typer.Option(
        None, "--deadline", help="Cancel the analysis after this many seconds"
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the JSON report to this file instead of stdout"
    ),
    table: bool = typer.Option(False, "--table", help="Also print a summary table"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress at INFO level"),
) -> None:
    """Run every scenario of REQUEST and print the comparison report as JSON."""
    _configure_logging(verbose)
    try:
        analysis = ScenarioAnalysis.from_request(
            _load_request(request), seed=seed, max_workers=workers, deadline=deadline
        )
        report = analysis.run()
    except ConfigurationError as exc:
        _fail(f"Configuration error: {exc}", EXIT_CONFIGURATION_ERROR)
        return
    except (EvaluationError, AnalysisCancelledError) as exc:
        _fail(f"Analysis failed: {exc}", EXIT_EVALUATION_ERROR)
        return

    document = json.dumps(report.to_dict(), indent=2)
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(document + "\n", encoding="utf-8")
        console.print(f"Report written to: {output}")
    else:
        typer.echo(document)
    if table:
        console.print(_summary_table(report))


@app.command()
def validate(
    request: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="JSON or YAML analysis request"
    ),
) -> None:
    """Check REQUEST for configuration errors without sampling."""
    _configure_logging(False)
    try:
        analysis = ScenarioAnalysis.from_request(_load_request(request))
        analysis.validate()
    except ConfigurationError as exc:
        _fail(f"Configuration error: {exc}", EXIT_CONFIGURATION_ERROR)
        return
    console.print(
        f"[green]Request is valid:[/green] {len(analysis.scenario_names)} scenarios over "
        f"inputs {', '.join(analysis.input_names)}"
    )


def main() -> None:
    """Entry point for CLI execution."""
    app()


if __name__ == "__main__":
    main()
