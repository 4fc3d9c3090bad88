"""Monte Carlo simulation engine, result cache and background worker."""

from .engine import run_monte_carlo, validate_events
from .cache import ResultCache, fingerprint
from .worker import SimulationWorker

__all__ = [
    "run_monte_carlo",
    "validate_events",
    "ResultCache",
    "fingerprint",
    "SimulationWorker",
]
