"""
Risk quantification engine.

Monte Carlo VaR/EAL aggregation over frequency x severity risk events,
with density heat maps and iso-loss contours.
"""

from .types import (
    RiskEvent,
    SimulationConfig,
    SimulationResult,
    DensityGrid,
    ContourSet,
    ContourLevel,
    ContourKind,
)
from .validation import build_distribution, build_event, build_events
from .simulation import run_monte_carlo, ResultCache, SimulationWorker
from .heatmap import build_density_grid, generate_contours
from .pipeline import run_risk_assessment
from .sensitivity import compute_sensitivity

__version__ = "0.1.0"
