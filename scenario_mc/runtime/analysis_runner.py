"""Background execution helpers for long-running scenario analyses."""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from queue import Empty, Queue
from typing import Optional

from ..engine import ScenarioAnalysis
from ..models.monte_carlo import MonteCarloProgressEvent
from ..models.results import AnalysisReport


class AnalysisRunner:
    """Run a scenario analysis on a worker thread with progress streaming."""

    def __init__(self, *, max_workers: int = 1) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="analysis-runner")
        self._future: Optional[Future] = None
        self._analysis: Optional[ScenarioAnalysis] = None
        self._progress: "Queue[MonteCarloProgressEvent]" = Queue()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ status
    @property
    def running(self) -> bool:
        with self._lock:
            return self._future is not None and not self._future.done()

    @property
    def done(self) -> bool:
        with self._lock:
            return self._future is not None and self._future.done()

    @property
    def analysis(self) -> Optional[ScenarioAnalysis]:
        return self._analysis

    # ------------------------------------------------------------------ control
    def start(self, analysis: ScenarioAnalysis) -> None:
        """Submit ``analysis`` for execution; progress events are queued as they arrive."""
        with self._lock:
            if self._future is not None and not self._future.done():
                raise RuntimeError("AnalysisRunner is already executing an analysis.")
            self._progress.queue.clear()
            downstream = analysis.progress_observer

            def _observe(event: MonteCarloProgressEvent) -> None:
                self._progress.put(event)
                if downstream is not None:
                    downstream(event)

            analysis.progress_observer = _observe
            self._analysis = analysis
            self._future = self._executor.submit(analysis.run)

    def cancel(self, reason: str = "Analysis cancelled") -> None:
        """Cancel cooperatively; a queued analysis still starts and ends in FAILED."""
        with self._lock:
            if self._analysis is not None and self._future and not self._future.done():
                self._analysis.cancel(reason)

    # ------------------------------------------------------------------ progress
    def drain_progress(self) -> list[MonteCarloProgressEvent]:
        updates: list[MonteCarloProgressEvent] = []
        while True:
            try:
                updates.append(self._progress.get_nowait())
            except Empty:
                break
        return updates

    # ------------------------------------------------------------------ results
    def result(self, timeout: Optional[float] = None) -> AnalysisReport:
        with self._lock:
            future = self._future
        if future is None:
            raise RuntimeError("AnalysisRunner has not started an analysis.")
        return future.result(timeout=timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        with self._lock:
            future = self._future
        if future is None:
            return None
        return future.exception(timeout=timeout)

    def reset(self) -> None:
        with self._lock:
            self._future = None
            self._analysis = None
            self._progress.queue.clear()

    # ------------------------------------------------------------------- cleanup
    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait)


__all__ = ["AnalysisRunner"]
