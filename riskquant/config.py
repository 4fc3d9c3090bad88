"""
Configuration management for the risk quantification engine.

Per-type parameter defaults, validator floors, sample scenarios, and
JSON loading utilities for scenario files.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from .types import RiskEvent, SimulationConfig

logger = logging.getLogger(__name__)


# =============================================================================
# Validator floors
# =============================================================================

# Smallest gap forced between min and max
EPSILON = 1e-6

# Replacement for non-positive scale/shape/rate inputs
POSITIVE_FLOOR = 1e-6

# Lowest success probability accepted for Bernoulli-based families
PROBABILITY_FLOOR = 1e-4


# =============================================================================
# Distribution defaults
# =============================================================================

# Raw form-field defaults per distribution type. Keys are the form layer's
# field names; the validator maps them onto spec fields.
DISTRIBUTION_DEFAULTS: Dict[str, Dict[str, float]] = {
    'triangular': {'min': 0.0, 'mode': 0.5, 'max': 1.0},
    'pert': {'min': 0.0, 'mode': 0.5, 'max': 1.0, 'gamma': 4.0},
    'normal': {'mean': 0.0, 'stdDev': 1.0},
    'lognormal': {'mean': 0.0, 'stdDev': 1.0},
    'uniform': {'min': 0.0, 'max': 1.0},
    'beta': {'alpha': 2.0, 'beta': 2.0, 'min': 0.0, 'max': 1.0},
    'poisson': {'lambda': 1.0},
    'exponential': {'lambda': 1.0},
    'gamma': {'shape': 2.0, 'scale': 1000.0},
    'pareto': {'xMin': 1000.0, 'alpha': 2.0},
    'weibull': {'k': 2.0, 'lambda': 10000.0},
    'negativeBinomial': {'r': 5, 'p': 0.3},
    'binomial': {'n': 20, 'p': 0.1},
    'geometric': {'p': 0.2},
    'discreteUniform': {'min': 1, 'max': 10},
}

# Fallback for unrecognized distribution types
FALLBACK_DISTRIBUTION = 'triangular'

# Type-name aliases used by older form versions
DISTRIBUTION_ALIASES: Dict[str, str] = {
    'logNormal': 'lognormal',
    'log-normal': 'lognormal',
    'negative-binomial': 'negativeBinomial',
    'negative_binomial': 'negativeBinomial',
    'discrete-uniform': 'discreteUniform',
    'discrete_uniform': 'discreteUniform',
}


# =============================================================================
# Simulation defaults
# =============================================================================

DEFAULT_SIMULATION_CONFIG = SimulationConfig(iterations=10000, confidence_level=0.95)

# Heat map sampling: never fewer than this many joint samples
MIN_GRID_ITERATIONS = 1000
DEFAULT_GRID_ITERATIONS = 10000
DEFAULT_GRID_BINS = 20

# Points sampled along each iso-loss curve
DEFAULT_CONTOUR_POINTS = 100

# Percentile levels drawn on every heat map
CONTOUR_PERCENTILES: Tuple[int, ...] = (25, 50, 75, 90, 95)

# VaR/EAL band width when no standard deviation is supplied
DEFAULT_BAND_FRACTION = 0.10


# =============================================================================
# Sensitivity analysis
# =============================================================================

# (low, high) multipliers per role -> distribution type -> form field.
# Types missing from a role are not perturbed.
SENSITIVITY_FACTORS: Dict[str, Dict[str, Dict[str, Tuple[float, float]]]] = {
    'severity': {
        'triangular': {'min': (0.5, 1.5), 'mode': (0.7, 1.3), 'max': (0.8, 1.2)},
        'pert': {'min': (0.5, 1.5), 'mode': (0.7, 1.3), 'max': (0.8, 1.2)},
        'normal': {'mean': (0.8, 1.2), 'stdDev': (0.7, 1.3)},
        'lognormal': {'mean': (0.8, 1.2), 'stdDev': (0.7, 1.3)},
        'uniform': {'min': (0.7, 1.3), 'max': (0.8, 1.2)},
        'beta': {'alpha': (0.7, 1.3), 'beta': (0.7, 1.3), 'min': (0.7, 1.3), 'max': (0.8, 1.2)},
        'pareto': {'xMin': (0.7, 1.3), 'alpha': (0.7, 1.3)},
        'weibull': {'k': (0.7, 1.3), 'lambda': (0.7, 1.3)},
        'gamma': {'shape': (0.7, 1.3), 'scale': (0.7, 1.3)},
    },
    'frequency': {
        'triangular': {'mode': (0.5, 1.5)},
        'pert': {'mode': (0.5, 1.5)},
        'normal': {'mean': (0.8, 1.2), 'stdDev': (0.7, 1.3)},
        'uniform': {'min': (0.7, 1.3), 'max': (0.8, 1.2)},
        'poisson': {'lambda': (0.7, 1.3)},
    },
}

# Integer bounds move by a fixed step instead of a multiplier
SENSITIVITY_SHIFTS: Dict[str, Dict[str, Dict[str, int]]] = {
    'frequency': {
        'discreteUniform': {'min': 2, 'max': 2},
    },
}

# Bars kept in a tornado chart (largest swing first)
DEFAULT_SENSITIVITY_BARS = 6


# =============================================================================
# Sample scenarios
# =============================================================================

SCENARIO_PRESETS: Dict[str, Dict[str, Any]] = {
    'data_breach': {
        'iterations': 20000,
        'confidence_level': 0.95,
        'events': [
            {
                'name': 'Customer data breach',
                'currency': 'USD',
                'severity': {'type': 'triangular', 'min': 1000, 'mode': 5000, 'max': 20000},
                'frequency': {'type': 'triangular', 'min': 0.1, 'mode': 0.5, 'max': 2},
            },
        ],
    },
    'operational': {
        'iterations': 10000,
        'confidence_level': 0.95,
        'events': [
            {
                'name': 'Service outage',
                'currency': 'USD',
                'severity': {'type': 'lognormal', 'mean': 9.0, 'stdDev': 0.8},
                'frequency': {'type': 'poisson', 'lambda': 2.5},
            },
            {
                'name': 'Vendor failure',
                'currency': 'USD',
                'severity': {'type': 'pert', 'min': 20000, 'mode': 60000, 'max': 250000},
                'frequency': {'type': 'uniform', 'min': 0.05, 'max': 0.3},
            },
        ],
    },
}


# =============================================================================
# JSON Loading Utilities
# =============================================================================

def load_scenario_from_json(path: str) -> Tuple[List[RiskEvent], SimulationConfig, Optional[int]]:
    """
    Load a scenario (events, config, seed) from a JSON file.

    Expected format:
    {
        "iterations": 10000,
        "confidence_level": 0.95,
        "seed": 42,
        "events": [
            {
                "name": "Data breach",
                "currency": "USD",
                "severity": {"type": "triangular", "min": 1000, "mode": 5000, "max": 20000},
                "frequency": {"type": "poisson", "lambda": 0.5}
            }
        ]
    }

    Distribution fields go through the parameter validator, so missing or
    out-of-range values are sanitized rather than rejected.
    """
    with open(path, 'r') as f:
        data = json.load(f)
    return scenario_from_dict(data)


def scenario_from_dict(data: Dict[str, Any]) -> Tuple[List[RiskEvent], SimulationConfig, Optional[int]]:
    """Build (events, config, seed) from a parsed scenario dict."""
    from .validation import build_event

    if 'events' not in data:
        raise ValueError("Scenario is missing the 'events' list")

    events = [build_event(raw) for raw in data['events']]
    config = SimulationConfig(
        iterations=int(data.get('iterations', DEFAULT_SIMULATION_CONFIG.iterations)),
        confidence_level=float(
            data.get('confidence_level', DEFAULT_SIMULATION_CONFIG.confidence_level)
        ),
    )
    seed = data.get('seed')
    logger.info(f"Loaded scenario with {len(events)} events, {config.iterations} iterations")
    return events, config, int(seed) if seed is not None else None


def scenario_to_dict(
    events: List[RiskEvent],
    config: SimulationConfig,
    seed: Optional[int] = None
) -> Dict[str, Any]:
    """Inverse of scenario_from_dict, using the form layer's field names."""
    from .validation import spec_to_raw

    data: Dict[str, Any] = {
        'iterations': config.iterations,
        'confidence_level': config.confidence_level,
        'events': [
            {
                'name': event.name,
                'currency': event.currency,
                'severity': spec_to_raw(event.severity),
                'frequency': spec_to_raw(event.frequency),
            }
            for event in events
        ],
    }
    if seed is not None:
        data['seed'] = seed
    return data


def save_scenario_to_json(
    events: List[RiskEvent],
    config: SimulationConfig,
    path: str,
    seed: Optional[int] = None
):
    """Save a scenario to JSON file."""
    with open(path, 'w') as f:
        json.dump(scenario_to_dict(events, config, seed), f, indent=2)


def create_sample_scenario_json(path: str = 'scenario_sample.json', preset: str = 'data_breach'):
    """Create a sample scenario JSON file for reference."""
    if preset not in SCENARIO_PRESETS:
        raise ValueError(
            f"Unknown scenario preset '{preset}'. "
            f"Available: {', '.join(SCENARIO_PRESETS)}"
        )

    with open(path, 'w') as f:
        json.dump(SCENARIO_PRESETS[preset], f, indent=2)

    logger.info(f"Sample scenario JSON saved to {path}")
