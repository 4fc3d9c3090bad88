"""
Joint frequency x severity density estimation.

Draws independent (frequency, severity) pairs and bins them into a fixed
grid over each distribution's plotting range. Cells hold counts; the
DensityGrid exposes probability mass (count / binned samples) and true
density (mass / bin area).

Binning semantics:
- non-finite or negative samples are discarded (counted, never raised)
- samples outside the domain are clipped into the boundary bins
- a zero-width domain is widened to MIN_DOMAIN_WIDTH
"""

import logging
import threading
from typing import Optional, Tuple, Union

import numpy as np

from ..config import DEFAULT_GRID_BINS, DEFAULT_GRID_ITERATIONS, MIN_GRID_ITERATIONS
from ..distributions.ranges import distribution_range
from ..distributions.samplers import sample
from ..types import DensityGrid, DistributionSpec, SimulationCancelled

logger = logging.getLogger(__name__)

MIN_DOMAIN_WIDTH = 1e-3
CANCEL_CHECK_EVERY = 1000


def effective_range(bounds: Tuple[float, float]) -> Tuple[float, float, float]:
    """(min, max, width) with the width floored at MIN_DOMAIN_WIDTH."""
    low, high = float(bounds[0]), float(bounds[1])
    width = max(high - low, MIN_DOMAIN_WIDTH)
    return low, low + width, width


def _bin_indices(values: np.ndarray, low: float, bin_width: float, n_bins: int) -> np.ndarray:
    # Clip before the int cast; huge samples over a tiny bin width reach inf
    with np.errstate(over='ignore'):
        idx = np.floor((values - low) / bin_width)
    return np.clip(idx, 0, n_bins - 1).astype(np.int64)


def build_density_grid(
    frequency: DistributionSpec,
    severity: DistributionSpec,
    n_iterations: int = DEFAULT_GRID_ITERATIONS,
    bins: Union[int, Tuple[int, int]] = DEFAULT_GRID_BINS,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    cancel_event: Optional[threading.Event] = None
) -> DensityGrid:
    """
    Monte Carlo estimate of the joint frequency x severity density.

    Args:
        frequency: Annual occurrence distribution (x axis)
        severity: Per-occurrence loss distribution (y axis)
        n_iterations: Joint samples to draw; raised to MIN_GRID_ITERATIONS
        bins: Bins per axis, or (frequency_bins, severity_bins)
        seed: Seed for a fresh generator (ignored when rng is given)
        rng: Uniform source shared with the caller
        cancel_event: When set, the build stops with SimulationCancelled

    Returns:
        DensityGrid whose probability masses sum to 1 whenever any
        sample was binned
    """
    if isinstance(bins, int):
        n_freq_bins, n_sev_bins = bins, bins
    else:
        n_freq_bins, n_sev_bins = bins
    if n_freq_bins < 1 or n_sev_bins < 1:
        raise ValueError(f"Grid needs at least one bin per axis, got {bins}")

    n_iter = max(MIN_GRID_ITERATIONS, int(n_iterations))
    if rng is None:
        rng = np.random.default_rng(seed)

    freq_low, freq_high, freq_width = effective_range(distribution_range(frequency))
    sev_low, sev_high, sev_width = effective_range(distribution_range(severity))
    freq_bin_width = freq_width / n_freq_bins
    sev_bin_width = sev_width / n_sev_bins

    freq_samples = np.empty(n_iter, dtype=np.float64)
    sev_samples = np.empty(n_iter, dtype=np.float64)
    for k in range(n_iter):
        if cancel_event is not None and k % CANCEL_CHECK_EVERY == 0 and cancel_event.is_set():
            raise SimulationCancelled(f"Density grid cancelled after {k}/{n_iter} samples")
        freq_samples[k] = sample(frequency, rng)
        sev_samples[k] = sample(severity, rng)

    with np.errstate(invalid='ignore'):
        valid = (
            np.isfinite(freq_samples) & np.isfinite(sev_samples)
            & (freq_samples >= 0) & (sev_samples >= 0)
        )
    n_valid = int(valid.sum())
    discarded = n_iter - n_valid
    if n_valid == 0:
        logger.warning(
            f"Density grid: all {n_iter} samples discarded as non-finite or negative; "
            f"every cell mass is zero"
        )
    elif discarded:
        logger.debug(f"Density grid: discarded {discarded}/{n_iter} invalid samples")

    counts = np.zeros((n_freq_bins, n_sev_bins), dtype=np.int64)
    if n_valid > 0:
        fi = _bin_indices(freq_samples[valid], freq_low, freq_bin_width, n_freq_bins)
        si = _bin_indices(sev_samples[valid], sev_low, sev_bin_width, n_sev_bins)
        # ACCUMULATE with np.add.at; duplicate (fi, si) pairs must all count
        np.add.at(counts, (fi, si), 1)

    return DensityGrid(
        frequency_range=(freq_low, freq_high),
        severity_range=(sev_low, sev_high),
        frequency_bin_width=freq_bin_width,
        severity_bin_width=sev_bin_width,
        counts=counts,
        total_samples=n_valid,
        discarded=discarded,
    )
