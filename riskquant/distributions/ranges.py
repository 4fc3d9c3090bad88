"""
Plotting domains per distribution family.

Bounded families use their natural bounds; unbounded ones are cut at
tail percentiles so heat maps and chart curves show the bulk of the mass.
Tail quantiles are computed in float64: a floored shape (pareto alpha or
weibull k of 1e-6) overflows to inf there, and every bound is then capped
at MAX_DOMAIN so callers always get a finite domain.
"""

from typing import Tuple
import logging
import math

import numpy as np
from scipy import stats

from ..types import (
    DistributionSpec,
    TriangularSpec,
    PertSpec,
    NormalSpec,
    LognormalSpec,
    UniformSpec,
    BetaSpec,
    PoissonSpec,
    ExponentialSpec,
    GammaSpec,
    ParetoSpec,
    WeibullSpec,
    NegativeBinomialSpec,
    BinomialSpec,
    GeometricSpec,
    DiscreteUniformSpec,
    UnsupportedDistributionError,
)

logger = logging.getLogger(__name__)

LOWER_TAIL = 0.01
UPPER_TAIL = 0.99
EXPONENTIAL_TAIL = 0.999
NORMAL_SPREAD = 4.0
POISSON_SPREAD = 4.0
# Keeps lognormal/weibull domains off zero
POSITIVE_LOWER_BOUND = 0.01
# Largest bound handed out; leaves headroom for width and midpoint arithmetic
MAX_DOMAIN = 1e300


def _capped(value: float) -> float:
    """Clamp an overflowed (inf) or undefined (nan) bound into +/-MAX_DOMAIN."""
    value = float(value)
    if math.isnan(value) or value > MAX_DOMAIN:
        return MAX_DOMAIN
    return max(value, -MAX_DOMAIN)


def distribution_range(spec: DistributionSpec) -> Tuple[float, float]:
    """
    Return the (min, max) domain used to bin or plot a spec.

    The result is always finite but may be zero-width for degenerate
    specs; callers that divide by the width collapse it to an epsilon
    themselves.

    Raises:
        UnsupportedDistributionError: For unregistered spec types
    """
    low, high = _tail_range(spec)
    return _capped(low), _capped(high)


def _tail_range(spec: DistributionSpec) -> Tuple[float, float]:
    if isinstance(spec, (TriangularSpec, PertSpec, UniformSpec, BetaSpec)):
        return max(0.0, spec.low), spec.high

    if isinstance(spec, NormalSpec):
        spread = NORMAL_SPREAD * spec.std_dev
        low = max(0.0, spec.mean - spread)
        if spec.mean + spread <= low:
            logger.warning(
                f"Normal(mean={spec.mean}, std_dev={spec.std_dev}) has no mass above "
                f"zero within {NORMAL_SPREAD:.0f} sd; its domain is empty"
            )
            return low, low
        return low, spec.mean + spread

    if isinstance(spec, LognormalSpec):
        z = stats.norm.ppf(UPPER_TAIL)
        with np.errstate(over='ignore', under='ignore'):
            low = np.exp(np.float64(spec.mu - z * spec.sigma))
            high = np.exp(np.float64(spec.mu + z * spec.sigma))
        return max(POSITIVE_LOWER_BOUND, float(low)), float(high)

    if isinstance(spec, PoissonSpec):
        return 0.0, spec.lam + POISSON_SPREAD * math.sqrt(spec.lam)

    if isinstance(spec, ExponentialSpec):
        with np.errstate(over='ignore'):
            return 0.0, float(-np.log1p(-EXPONENTIAL_TAIL) / np.float64(spec.rate))

    if isinstance(spec, GammaSpec):
        low = stats.gamma.ppf(LOWER_TAIL, spec.shape, scale=spec.scale)
        high = stats.gamma.ppf(UPPER_TAIL, spec.shape, scale=spec.scale)
        return float(low), float(high)

    if isinstance(spec, ParetoSpec):
        with np.errstate(over='ignore', divide='ignore', under='ignore'):
            tail = np.power(np.float64(1.0 - UPPER_TAIL), 1.0 / np.float64(spec.alpha))
            return spec.x_min, float(np.float64(spec.x_min) / tail)

    if isinstance(spec, WeibullSpec):
        def quantile(q: float) -> float:
            with np.errstate(over='ignore', under='ignore'):
                spread = np.power(-np.log1p(-q), 1.0 / np.float64(spec.shape))
                return float(np.float64(spec.scale) * spread)
        return max(POSITIVE_LOWER_BOUND, quantile(LOWER_TAIL)), quantile(UPPER_TAIL)

    if isinstance(spec, NegativeBinomialSpec):
        q = 1.0 - spec.p
        mean = spec.r * q / spec.p
        sd = math.sqrt(spec.r * q) / spec.p
        return 0.0, max(20.0, mean + 4.0 * sd)

    if isinstance(spec, BinomialSpec):
        return 0.0, float(spec.n)

    if isinstance(spec, GeometricSpec):
        if spec.p >= 1.0:
            return 1.0, 10.0
        k99 = math.ceil(math.log(1.0 - UPPER_TAIL) / math.log(1.0 - spec.p))
        return 1.0, float(max(10, k99))

    if isinstance(spec, DiscreteUniformSpec):
        return float(spec.low), float(spec.high)

    raise UnsupportedDistributionError(
        f"No plotting range for {type(spec).__name__}"
    )
