"""
One-at-a-time sensitivity of expected annual loss (tornado analysis).

Each perturbable form field of each event is moved to a low and a high
value (a multiplier, or a fixed step for integer bounds), the event is
rebuilt through the parameter validator, and the Monte Carlo EAL is
recomputed. Impacts are percentage changes against the baseline EAL.

All runs share the caller's seed, so with a seed the differences come from
the parameters rather than from sampling noise. Runs go through a
ResultCache; passing the session cache reuses the baseline run.
"""

import dataclasses
import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .config import DEFAULT_SENSITIVITY_BARS, SENSITIVITY_FACTORS, SENSITIVITY_SHIFTS
from .simulation.cache import ResultCache
from .simulation.engine import run_monte_carlo, validate_events
from .types import RiskEvent, SimulationConfig, SimulationError
from .validation import build_distribution, spec_to_raw

logger = logging.getLogger(__name__)

SENSITIVITY_COLUMNS = [
    'event_index',
    'event',
    'role',
    'parameter',
    'base_value',
    'low_value',
    'high_value',
    'low_eal',
    'high_eal',
    'negative',
    'positive',
    'range',
]


# =============================================================================
# Perturbations
# =============================================================================

def parameter_swings(role: str, raw: Dict[str, Any]) -> List[Tuple[str, float, float, float]]:
    """
    (form field, base, low, high) for every perturbable field of a raw spec.

    Fields whose base value is zero or not finite are skipped; a zero
    base has no percentage swing.
    """
    kind = raw['type']
    swings = []

    for key, (low_factor, high_factor) in SENSITIVITY_FACTORS.get(role, {}).get(kind, {}).items():
        base = float(raw[key])
        if base == 0.0 or not math.isfinite(base):
            continue
        swings.append((key, base, base * low_factor, base * high_factor))

    for key, step in SENSITIVITY_SHIFTS.get(role, {}).get(kind, {}).items():
        base = float(raw[key])
        if base == 0.0 or not math.isfinite(base):
            continue
        floor = 0.0 if key == 'min' else 1.0
        swings.append((key, base, max(floor, base - step), base + step))

    return swings


def perturbed_events(
    events: Sequence[RiskEvent],
    index: int,
    role: str,
    key: str,
    value: float
) -> List[RiskEvent]:
    """Copy of events with one form field of one event replaced and re-validated."""
    event = events[index]
    raw = spec_to_raw(getattr(event, role))
    raw[key] = value
    spec = build_distribution(raw['type'], raw)
    changed = list(events)
    changed[index] = dataclasses.replace(event, **{role: spec})
    return changed


# =============================================================================
# Analysis
# =============================================================================

def _expected_loss(
    events: Sequence[RiskEvent],
    config: SimulationConfig,
    seed: Optional[int],
    cache: ResultCache
) -> float:
    result = cache.get_or_compute(
        events,
        config,
        lambda: run_monte_carlo(events, config, seed=seed),
        seed=seed,
    )
    return result.expected_annual_loss


def compute_sensitivity(
    events: Sequence[RiskEvent],
    config: Optional[SimulationConfig] = None,
    seed: Optional[int] = None,
    cache: Optional[ResultCache] = None,
    top_n: Optional[int] = DEFAULT_SENSITIVITY_BARS
) -> pd.DataFrame:
    """
    Tornado table of EAL impact per perturbed parameter.

    negative/positive are the lower/upper of the two % impacts, zeroed when
    on the wrong side of the baseline; range is the absolute spread between
    them. Parameters whose perturbed runs give zero or non-finite EAL, or
    fail with SimulationError, are left out.

    Args:
        events: Validated risk events
        config: Iterations and confidence level for every run
        seed: Shared seed for the baseline and every perturbed run
        cache: Result cache (a private one when omitted)
        top_n: Keep the largest swings only; None keeps every row

    Returns:
        DataFrame with SENSITIVITY_COLUMNS sorted by range, largest first.
        Empty when the baseline EAL is zero or not finite.

    Raises:
        MalformedEventError: For an unusable event list
        SimulationError: If the baseline run fails
    """
    validate_events(events)
    config = config if config is not None else SimulationConfig()
    cache = cache if cache is not None else ResultCache()

    baseline = _expected_loss(events, config, seed, cache)
    if not baseline > 0 or not math.isfinite(baseline):
        logger.warning(f"Sensitivity skipped: baseline EAL is {baseline}")
        return pd.DataFrame(columns=SENSITIVITY_COLUMNS)

    rows = []
    for idx, event in enumerate(events):
        label = event.name or f"event_{idx}"
        for role in ('severity', 'frequency'):
            raw = spec_to_raw(getattr(event, role))
            for key, base, low, high in parameter_swings(role, raw):
                try:
                    low_eal = _expected_loss(perturbed_events(events, idx, role, key, low), config, seed, cache)
                    high_eal = _expected_loss(perturbed_events(events, idx, role, key, high), config, seed, cache)
                except SimulationError as e:
                    logger.warning(f"Sensitivity of {label} {role}.{key} skipped: {e}")
                    continue

                if not (low_eal > 0 and high_eal > 0 and math.isfinite(low_eal) and math.isfinite(high_eal)):
                    logger.debug(f"Sensitivity of {label} {role}.{key} skipped: zero or non-finite EAL")
                    continue

                low_impact = (low_eal - baseline) / baseline * 100.0
                high_impact = (high_eal - baseline) / baseline * 100.0
                negative = min(low_impact, high_impact)
                positive = max(low_impact, high_impact)
                rows.append({
                    'event_index': idx,
                    'event': label,
                    'role': role,
                    'parameter': key,
                    'base_value': base,
                    'low_value': low,
                    'high_value': high,
                    'low_eal': low_eal,
                    'high_eal': high_eal,
                    'negative': negative if negative < 0 else 0.0,
                    'positive': positive if positive > 0 else 0.0,
                    'range': abs(positive - negative),
                })

    frame = pd.DataFrame(rows, columns=SENSITIVITY_COLUMNS)
    frame = frame.sort_values('range', ascending=False, kind='stable').reset_index(drop=True)
    logger.info(
        f"Sensitivity: {len(frame)} parameters against baseline EAL {baseline:.2f}"
    )
    if top_n is not None:
        frame = frame.head(top_n)
    return frame


def format_sensitivity(frame: pd.DataFrame) -> str:
    """Console tornado table."""
    lines = ["EAL SENSITIVITY", "=" * 60]
    if frame.empty:
        lines.append("  No parameter could be perturbed")
        return "\n".join(lines)

    for row in frame.itertuples(index=False):
        name = f"{row.event} {row.role}.{row.parameter}"
        lines.append(f"  {name:<40} {row.negative:+7.1f}% / {row.positive:+7.1f}%")
    return "\n".join(lines)
