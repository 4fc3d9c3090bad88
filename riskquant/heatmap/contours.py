"""
Iso-loss contours over a density grid.

Every level L is the hyperbola frequency x severity = L. Levels come from
percentiles of the grid's cell total losses, plus optional VaR and EAL
values with +/-1 sigma confidence bands.
"""

import math
from typing import List, Optional, Sequence

import numpy as np

from ..config import CONTOUR_PERCENTILES, DEFAULT_BAND_FRACTION, DEFAULT_CONTOUR_POINTS
from ..types import ContourKind, ContourLevel, ContourSet, DensityGrid, SimulationResult


def percentile_levels(
    grid: DensityGrid,
    percentiles: Sequence[int] = CONTOUR_PERCENTILES
) -> List[ContourLevel]:
    """
    Percentile levels of the grid's positive cell total losses.

    Index floor(p/100 * n) into the sorted values; 0 when no cell has a
    positive total loss.
    """
    losses = np.sort(grid.total_loss.ravel())
    losses = losses[losses > 0]
    n = len(losses)

    levels = []
    for p in percentiles:
        idx = int(math.floor(p / 100.0 * n))
        value = float(losses[idx]) if idx < n else 0.0
        levels.append(ContourLevel(label=f"P{p}", value=value, kind=ContourKind.PERCENTILE))
    return levels


def _metric_levels(
    name: str,
    kind: ContourKind,
    value: Optional[float],
    std_dev: Optional[float]
) -> List[ContourLevel]:
    """A VaR/EAL level and its bands; nothing unless value > 0."""
    if value is None or not value > 0 or not math.isfinite(value):
        return []
    if std_dev is None:
        std_dev = value * DEFAULT_BAND_FRACTION

    levels = [ContourLevel(label=name, value=float(value), kind=kind, std_dev=std_dev)]
    if std_dev > 0:
        levels.append(ContourLevel(
            label=f"{name}-1σ",
            value=max(0.0, value - std_dev),
            kind=ContourKind.CONFIDENCE_BAND,
            std_dev=std_dev,
            band='lower',
        ))
        levels.append(ContourLevel(
            label=f"{name}+1σ",
            value=value + std_dev,
            kind=ContourKind.CONFIDENCE_BAND,
            std_dev=std_dev,
            band='upper',
        ))
    return levels


def iso_loss_polyline(
    value: float,
    grid: DensityGrid,
    n_points: int = DEFAULT_CONTOUR_POINTS
) -> np.ndarray:
    """
    Points of frequency x severity = value inside the grid's domain.

    Solves severity = value / frequency at n_points evenly spaced
    frequencies across the frequency range (frequency <= 0 skipped) and
    keeps the points whose severity falls inside the severity range.

    Returns:
        [k, 2] (frequency, severity) array; k == 0 when the curve misses
        the domain
    """
    freq_low, freq_high = grid.frequency_range
    sev_low, sev_high = grid.severity_range

    frequencies = np.linspace(freq_low, freq_high, n_points)
    frequencies = frequencies[frequencies > 0]
    if len(frequencies) == 0:
        return np.zeros((0, 2))

    severities = value / frequencies
    inside = (severities >= sev_low) & (severities <= sev_high)
    return np.column_stack([frequencies[inside], severities[inside]])


def generate_contours(
    grid: DensityGrid,
    value_at_risk: Optional[float] = None,
    expected_annual_loss: Optional[float] = None,
    value_at_risk_std: Optional[float] = None,
    expected_annual_loss_std: Optional[float] = None,
    n_points: int = DEFAULT_CONTOUR_POINTS,
    include_percentiles: bool = True
) -> ContourSet:
    """
    Build the ordered contour set for a grid.

    Order: percentile levels, then VaR and its bands, then EAL and its
    bands. A missing standard deviation defaults to 10% of its value.

    Args:
        grid: Density grid whose domain bounds every polyline
        value_at_risk: External VaR level, skipped unless > 0
        expected_annual_loss: External EAL level, skipped unless > 0
        value_at_risk_std: VaR standard deviation for the bands
        expected_annual_loss_std: EAL standard deviation for the bands
        n_points: Frequencies sampled per polyline
        include_percentiles: Whether to emit the percentile levels
    """
    levels: List[ContourLevel] = []
    if include_percentiles:
        levels.extend(percentile_levels(grid))
    levels.extend(_metric_levels('VaR', ContourKind.VAR, value_at_risk, value_at_risk_std))
    levels.extend(_metric_levels(
        'EAL', ContourKind.EAL, expected_annual_loss, expected_annual_loss_std
    ))

    for level in levels:
        level.points = iso_loss_polyline(level.value, grid, n_points)

    return ContourSet(levels=levels)


def contours_for_result(
    grid: DensityGrid,
    result: SimulationResult,
    n_points: int = DEFAULT_CONTOUR_POINTS
) -> ContourSet:
    """
    Contours with VaR/EAL taken from a simulation result.

    The EAL band uses the mean's standard error; the VaR band falls back
    to the 10% default.
    """
    return generate_contours(
        grid,
        value_at_risk=result.value_at_risk,
        expected_annual_loss=result.expected_annual_loss,
        value_at_risk_std=None,
        expected_annual_loss_std=result.eal_standard_error,
        n_points=n_points,
    )
