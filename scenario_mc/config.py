"""Runtime configuration sourced from environment variables."""

from __future__ import annotations

import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


# Upper bound on Monte Carlo iterations per scenario.
MAX_ITERATIONS = _env_int("SCENARIO_MC_MAX_ITERATIONS", 100_000)

# Draws generated and evaluated per vectorised batch; also the cancellation granularity.
CHUNK_SIZE = _env_int("SCENARIO_MC_CHUNK_SIZE", 1_000)

MAX_WORKERS = _env_int("SCENARIO_MC_MAX_WORKERS", min(8, os.cpu_count() or 1))

LOG_LEVEL = os.environ.get("SCENARIO_MC_LOG_LEVEL", "WARNING").upper()

__all__ = ["CHUNK_SIZE", "LOG_LEVEL", "MAX_ITERATIONS", "MAX_WORKERS"]
