"""
Noise-free PDF/CDF curves for distribution charts.

Continuous families are evaluated on evenly spaced points across their
plotting range; discrete families on every integer in the range.
"""

from typing import Callable, Tuple
import math

import numpy as np

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
from .closed_form import (
    log_beta,
    log_gamma,
    normal_cdf,
    pert_shape,
    regularized_incomplete_beta,
    regularized_lower_gamma,
)
from .ranges import distribution_range

DEFAULT_POINTS = 100

DISCRETE_TYPES = (
    PoissonSpec, NegativeBinomialSpec, BinomialSpec, GeometricSpec, DiscreteUniformSpec
)

Curve = Tuple[np.ndarray, np.ndarray]


def _beta_pdf(t: float, a: float, b: float) -> float:
    if t <= 0.0 or t >= 1.0:
        return 0.0
    return math.exp((a - 1.0) * math.log(t) + (b - 1.0) * math.log(1.0 - t) - log_beta(a, b))


def _continuous_pdf(spec: DistributionSpec) -> Callable[[float], float]:
    if isinstance(spec, TriangularSpec):
        a, c, b = spec.low, spec.mode, spec.high

        def pdf(x):
            if x < a or x > b:
                return 0.0
            if x < c:
                return 2.0 * (x - a) / ((b - a) * (c - a))
            if x == c:
                return 2.0 / (b - a)
            return 2.0 * (b - x) / ((b - a) * (b - c))
        return pdf

    if isinstance(spec, PertSpec):
        alpha, beta_ = pert_shape(spec)
        width = spec.high - spec.low
        return lambda x: _beta_pdf((x - spec.low) / width, alpha, beta_) / width

    if isinstance(spec, NormalSpec):
        norm = 1.0 / (spec.std_dev * math.sqrt(2.0 * math.pi))
        return lambda x: norm * math.exp(-0.5 * ((x - spec.mean) / spec.std_dev) ** 2)

    if isinstance(spec, LognormalSpec):
        def pdf(x):
            if x <= 0.0:
                return 0.0
            z = (math.log(x) - spec.mu) / spec.sigma
            return math.exp(-0.5 * z * z) / (x * spec.sigma * math.sqrt(2.0 * math.pi))
        return pdf

    if isinstance(spec, UniformSpec):
        height = 1.0 / (spec.high - spec.low)
        return lambda x: height if spec.low <= x <= spec.high else 0.0

    if isinstance(spec, BetaSpec):
        width = spec.high - spec.low
        return lambda x: _beta_pdf((x - spec.low) / width, spec.alpha, spec.beta) / width

    if isinstance(spec, ExponentialSpec):
        return lambda x: spec.rate * math.exp(-spec.rate * x) if x >= 0.0 else 0.0

    if isinstance(spec, GammaSpec):
        def pdf(x):
            if x <= 0.0:
                return 0.0
            log_pdf = (
                (spec.shape - 1.0) * math.log(x)
                - x / spec.scale
                - spec.shape * math.log(spec.scale)
                - log_gamma(spec.shape)
            )
            return math.exp(log_pdf)
        return pdf

    if isinstance(spec, ParetoSpec):
        a, xm = spec.alpha, spec.x_min
        return lambda x: a * xm ** a / x ** (a + 1.0) if x >= xm else 0.0

    if isinstance(spec, WeibullSpec):
        k, lam = spec.shape, spec.scale

        def pdf(x):
            if x < 0.0 or (x == 0.0 and k < 1.0):
                return 0.0
            return (k / lam) * (x / lam) ** (k - 1.0) * math.exp(-((x / lam) ** k))
        return pdf

    raise UnsupportedDistributionError(f"No PDF for {type(spec).__name__}")


def _continuous_cdf(spec: DistributionSpec) -> Callable[[float], float]:
    if isinstance(spec, TriangularSpec):
        a, c, b = spec.low, spec.mode, spec.high

        def cdf(x):
            if x <= a:
                return 0.0
            if x >= b:
                return 1.0
            if x <= c:
                return (x - a) ** 2 / ((b - a) * (c - a))
            return 1.0 - (b - x) ** 2 / ((b - a) * (b - c))
        return cdf

    if isinstance(spec, PertSpec):
        alpha, beta_ = pert_shape(spec)
        width = spec.high - spec.low
        return lambda x: regularized_incomplete_beta((x - spec.low) / width, alpha, beta_)

    if isinstance(spec, NormalSpec):
        return lambda x: normal_cdf(x, spec.mean, spec.std_dev)

    if isinstance(spec, LognormalSpec):
        return lambda x: normal_cdf(math.log(x), spec.mu, spec.sigma) if x > 0.0 else 0.0

    if isinstance(spec, UniformSpec):
        width = spec.high - spec.low
        return lambda x: min(1.0, max(0.0, (x - spec.low) / width))

    if isinstance(spec, BetaSpec):
        width = spec.high - spec.low
        return lambda x: regularized_incomplete_beta((x - spec.low) / width, spec.alpha, spec.beta)

    if isinstance(spec, ExponentialSpec):
        return lambda x: 1.0 - math.exp(-spec.rate * x) if x > 0.0 else 0.0

    if isinstance(spec, GammaSpec):
        return lambda x: regularized_lower_gamma(spec.shape, x / spec.scale)

    if isinstance(spec, ParetoSpec):
        return lambda x: 1.0 - (spec.x_min / x) ** spec.alpha if x >= spec.x_min else 0.0

    if isinstance(spec, WeibullSpec):
        return lambda x: 1.0 - math.exp(-((x / spec.scale) ** spec.shape)) if x > 0.0 else 0.0

    raise UnsupportedDistributionError(f"No CDF for {type(spec).__name__}")


def _pmf(spec: DistributionSpec) -> Callable[[int], float]:
    if isinstance(spec, PoissonSpec):
        lam = spec.lam
        return lambda k: math.exp(k * math.log(lam) - lam - log_gamma(k + 1.0))

    if isinstance(spec, NegativeBinomialSpec):
        r, p = spec.r, spec.p

        def pmf(k):
            if p >= 1.0:
                return 1.0 if k == 0 else 0.0
            log_coeff = log_gamma(k + r) - log_gamma(k + 1.0) - log_gamma(r)
            return math.exp(log_coeff + r * math.log(p) + k * math.log(1.0 - p))
        return pmf

    if isinstance(spec, BinomialSpec):
        n, p = spec.n, spec.p

        def pmf(k):
            if k < 0 or k > n:
                return 0.0
            if p >= 1.0:
                return 1.0 if k == n else 0.0
            return math.comb(n, k) * p ** k * (1.0 - p) ** (n - k)
        return pmf

    if isinstance(spec, GeometricSpec):
        return lambda k: spec.p * (1.0 - spec.p) ** (k - 1) if k >= 1 else 0.0

    if isinstance(spec, DiscreteUniformSpec):
        n = spec.high - spec.low + 1
        return lambda k: 1.0 / n if spec.low <= k <= spec.high else 0.0

    raise UnsupportedDistributionError(f"No PMF for {type(spec).__name__}")


def _discrete_support(spec: DistributionSpec) -> np.ndarray:
    low, high = distribution_range(spec)
    return np.arange(int(math.floor(low)), int(math.ceil(high)) + 1)


def _continuous_grid(spec: DistributionSpec, points: int) -> np.ndarray:
    low, high = distribution_range(spec)
    return np.linspace(low, high, points + 1)


def pdf_curve(spec: DistributionSpec, points: int = DEFAULT_POINTS) -> Curve:
    """
    (x, density) for continuous specs, (k, probability) for discrete ones.

    A degenerate (zero-width) continuous spec yields empty arrays.
    """
    if isinstance(spec, DISCRETE_TYPES):
        ks = _discrete_support(spec)
        pmf = _pmf(spec)
        return ks, np.array([pmf(int(k)) for k in ks], dtype=np.float64)

    low, high = distribution_range(spec)
    if high <= low:
        return np.array([], dtype=np.float64), np.array([], dtype=np.float64)
    xs = _continuous_grid(spec, points)
    pdf = _continuous_pdf(spec)
    return xs, np.array([pdf(float(x)) for x in xs], dtype=np.float64)


def cdf_curve(spec: DistributionSpec, points: int = DEFAULT_POINTS) -> Curve:
    """(x, P(X <= x)) with values clipped into [0, 1]."""
    if isinstance(spec, DISCRETE_TYPES):
        ks, probs = pdf_curve(spec, points)
        if isinstance(spec, NegativeBinomialSpec) and spec.p < 1.0:
            # Exact tail via the incomplete beta rather than a truncated sum
            cdf = np.array([
                regularized_incomplete_beta(spec.p, spec.r, int(k) + 1.0) if k >= 0 else 0.0
                for k in ks
            ])
        else:
            cdf = np.cumsum(probs)
        return ks, np.clip(cdf, 0.0, 1.0)

    low, high = distribution_range(spec)
    if high <= low:
        return np.array([low], dtype=np.float64), np.array([1.0])
    xs = _continuous_grid(spec, points)
    cdf = _continuous_cdf(spec)
    values = np.array([cdf(float(x)) for x in xs], dtype=np.float64)
    return xs, np.clip(values, 0.0, 1.0)
