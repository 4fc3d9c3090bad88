"""
Background execution of simulations for interactive callers.

A SimulationWorker owns one session's cache and a single worker thread.
Submitting a new job cancels the job still in flight, so the latest
parameter edit always wins and the cache only ever has one writer.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Sequence

from ..types import RiskEvent, SimulationConfig, SimulationResult
from .cache import ResultCache
from .engine import run_monte_carlo, validate_events

logger = logging.getLogger(__name__)


class SimulationWorker:
    """Single-threaded, superseding simulation runner bound to one cache."""

    def __init__(self, cache: Optional[ResultCache] = None) -> None:
        self.cache = cache if cache is not None else ResultCache()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='riskquant-sim')
        self._lock = threading.Lock()
        self._current_cancel: Optional[threading.Event] = None

    def submit(
        self,
        events: Sequence[RiskEvent],
        config: Optional[SimulationConfig] = None,
        seed: Optional[int] = None
    ) -> Future:
        """
        Queue a simulation, cancelling whichever run is still in flight.

        The returned future resolves to a SimulationResult, or raises
        SimulationCancelled if a later submission superseded it.

        Raises:
            MalformedEventError: Immediately, before anything is queued
        """
        validate_events(events)
        config = config if config is not None else SimulationConfig()
        events = list(events)

        cancel_event = threading.Event()
        with self._lock:
            if self._current_cancel is not None:
                self._current_cancel.set()
                logger.debug("Superseding in-flight simulation")
            self._current_cancel = cancel_event

        return self._executor.submit(self._run, events, config, seed, cancel_event)

    def _run(
        self,
        events: Sequence[RiskEvent],
        config: SimulationConfig,
        seed: Optional[int],
        cancel_event: threading.Event
    ) -> SimulationResult:
        return self.cache.get_or_compute(
            events,
            config,
            lambda: run_monte_carlo(events, config, seed=seed, cancel_event=cancel_event),
            seed=seed,
        )

    def notify_change(self, field_name: str) -> Future:
        """
        Forward a form edit to the cache on the worker thread.

        Resolves to True if the cache was invalidated (see
        ResultCache.notify_change).
        """
        return self._executor.submit(self.cache.notify_change, field_name)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            if self._current_cancel is not None:
                self._current_cancel.set()
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> 'SimulationWorker':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
