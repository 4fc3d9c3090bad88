"""
Closed-form special functions and moments.

Stateless approximations used for analytic chart curves. Nothing here
feeds VaR/EAL, which always come from Monte Carlo samples.
"""

from typing import Tuple
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

# Abramowitz & Stegun 7.1.26, max absolute error 1.5e-7
_ERF_P = 0.3275911
_ERF_A = (0.254829592, -0.284496736, 1.421413741, -1.453152027, 1.061405429)

# Lanczos approximation, g = 7, n = 9
_LANCZOS_G = 7
_LANCZOS_COEFFS = (
    0.99999999999980993,
    676.5203681218851,
    -1259.1392167224028,
    771.32342877765313,
    -176.61502916214059,
    12.507343278686905,
    -0.13857109526572012,
    9.9843695780195716e-6,
    1.5056327351493116e-7,
)

CF_MAX_ITERATIONS = 200
CF_TOLERANCE = 1e-10
_CF_TINY = 1e-30


def erf(x: float) -> float:
    """Error function, A&S 7.1.26 polynomial approximation."""
    sign = 1.0 if x >= 0 else -1.0
    x = abs(x)
    t = 1.0 / (1.0 + _ERF_P * x)
    a1, a2, a3, a4, a5 = _ERF_A
    poly = ((((a5 * t + a4) * t + a3) * t + a2) * t + a1) * t
    return sign * (1.0 - poly * math.exp(-x * x))


def normal_cdf(x: float, mean: float = 0.0, std_dev: float = 1.0) -> float:
    z = (x - mean) / std_dev
    return 0.5 * (1.0 + erf(z / math.sqrt(2.0)))


def log_gamma(z: float) -> float:
    """
    ln(Gamma(z)) for z > 0 via the Lanczos series.

    Uses the reflection formula below 0.5.
    """
    if z < 0.5:
        return (
            math.log(math.pi)
            - math.log(abs(math.sin(math.pi * z)))
            - log_gamma(1.0 - z)
        )
    z -= 1.0
    x = _LANCZOS_COEFFS[0]
    for i in range(1, _LANCZOS_G + 2):
        x += _LANCZOS_COEFFS[i] / (z + i)
    t = z + _LANCZOS_G + 0.5
    return 0.5 * math.log(2.0 * math.pi) + (z + 0.5) * math.log(t) - t + math.log(x)


def gamma_function(z: float) -> float:
    """Gamma(z) for z > 0; inf past float range (z above ~171)."""
    with np.errstate(over='ignore'):
        return float(np.exp(np.float64(log_gamma(z))))


def log_beta(a: float, b: float) -> float:
    return log_gamma(a) + log_gamma(b) - log_gamma(a + b)


def _beta_continued_fraction(a: float, b: float, x: float) -> float:
    """Lentz evaluation of the incomplete-beta continued fraction."""
    qab = a + b
    qap = a + 1.0
    qam = a - 1.0
    c = 1.0
    d = 1.0 - qab * x / qap
    if abs(d) < _CF_TINY:
        d = _CF_TINY
    d = 1.0 / d
    h = d

    for m in range(1, CF_MAX_ITERATIONS + 1):
        m2 = 2 * m

        # Even step
        aa = m * (b - m) * x / ((qam + m2) * (a + m2))
        d = 1.0 + aa * d
        if abs(d) < _CF_TINY:
            d = _CF_TINY
        c = 1.0 + aa / c
        if abs(c) < _CF_TINY:
            c = _CF_TINY
        d = 1.0 / d
        h *= d * c

        # Odd step
        aa = -(a + m) * (qab + m) * x / ((a + m2) * (qap + m2))
        d = 1.0 + aa * d
        if abs(d) < _CF_TINY:
            d = _CF_TINY
        c = 1.0 + aa / c
        if abs(c) < _CF_TINY:
            c = _CF_TINY
        d = 1.0 / d
        delta = d * c
        h *= delta

        if abs(delta - 1.0) < CF_TOLERANCE:
            break

    return h


def regularized_incomplete_beta(x: float, a: float, b: float) -> float:
    """
    I_x(a, b), the Beta(a, b) CDF at x.

    The continued fraction converges fast only for x < (a+1)/(a+b+2);
    above that the symmetry I_x(a,b) = 1 - I_{1-x}(b,a) is used.
    """
    if x <= 0.0:
        return 0.0
    if x >= 1.0:
        return 1.0

    front = math.exp(a * math.log(x) + b * math.log(1.0 - x) - log_beta(a, b))
    if x < (a + 1.0) / (a + b + 2.0):
        return front * _beta_continued_fraction(a, b, x) / a
    return 1.0 - front * _beta_continued_fraction(b, a, 1.0 - x) / b


def regularized_lower_gamma(a: float, x: float) -> float:
    """
    P(a, x), the Gamma(a, 1) CDF at x.

    Series expansion below a + 1, continued fraction for the upper
    function above it.
    """
    if x <= 0.0 or a <= 0.0:
        return 0.0

    log_prefix = -x + a * math.log(x) - log_gamma(a)

    if x < a + 1.0:
        term = 1.0 / a
        total = term
        ap = a
        for _ in range(CF_MAX_ITERATIONS * 5):
            ap += 1.0
            term *= x / ap
            total += term
            if abs(term) < abs(total) * CF_TOLERANCE:
                break
        return min(1.0, math.exp(log_prefix) * total)

    # Lentz continued fraction for Q(a, x)
    b = x + 1.0 - a
    c = 1.0 / _CF_TINY
    d = 1.0 / b
    h = d
    for i in range(1, CF_MAX_ITERATIONS + 1):
        an = -i * (i - a)
        b += 2.0
        d = an * d + b
        if abs(d) < _CF_TINY:
            d = _CF_TINY
        c = b + an / c
        if abs(c) < _CF_TINY:
            c = _CF_TINY
        d = 1.0 / d
        delta = d * c
        h *= delta
        if abs(delta - 1.0) < CF_TOLERANCE:
            break
    return max(0.0, 1.0 - math.exp(log_prefix) * h)


def pert_shape(spec: PertSpec) -> Tuple[float, float]:
    """Beta (alpha, beta) implied by a PERT spec."""
    width = spec.high - spec.low
    m = (spec.mode - spec.low) / width if width > 0 else 0.5
    return 1.0 + spec.gamma * m, 1.0 + spec.gamma * (1.0 - m)


def distribution_moments(spec: DistributionSpec) -> Tuple[float, float]:
    """
    Closed-form (mean, variance) for a spec.

    Pareto moments are infinite when alpha <= 1 (mean) or alpha <= 2
    (variance).
    """
    if isinstance(spec, TriangularSpec):
        a, c, b = spec.low, spec.mode, spec.high
        mean = (a + b + c) / 3.0
        var = (a * a + b * b + c * c - a * b - a * c - b * c) / 18.0
        return mean, var
    if isinstance(spec, PertSpec):
        alpha, beta_ = pert_shape(spec)
        width = spec.high - spec.low
        mean = spec.low + width * alpha / (alpha + beta_)
        var = width ** 2 * alpha * beta_ / ((alpha + beta_) ** 2 * (alpha + beta_ + 1.0))
        return mean, var
    if isinstance(spec, NormalSpec):
        return spec.mean, spec.std_dev ** 2
    if isinstance(spec, LognormalSpec):
        with np.errstate(over='ignore'):
            s2 = np.float64(spec.sigma) ** 2
            mean = np.exp(spec.mu + s2 / 2.0)
            var = np.expm1(s2) * np.exp(2.0 * spec.mu + s2)
        return float(mean), float(var)
    if isinstance(spec, UniformSpec):
        return (spec.low + spec.high) / 2.0, (spec.high - spec.low) ** 2 / 12.0
    if isinstance(spec, BetaSpec):
        a, b = spec.alpha, spec.beta
        width = spec.high - spec.low
        mean = spec.low + width * a / (a + b)
        var = width ** 2 * a * b / ((a + b) ** 2 * (a + b + 1.0))
        return mean, var
    if isinstance(spec, PoissonSpec):
        return spec.lam, spec.lam
    if isinstance(spec, ExponentialSpec):
        return 1.0 / spec.rate, 1.0 / spec.rate ** 2
    if isinstance(spec, GammaSpec):
        return spec.shape * spec.scale, spec.shape * spec.scale ** 2
    if isinstance(spec, ParetoSpec):
        a, xm = spec.alpha, spec.x_min
        mean = a * xm / (a - 1.0) if a > 1.0 else math.inf
        var = xm * xm * a / ((a - 1.0) ** 2 * (a - 2.0)) if a > 2.0 else math.inf
        return mean, var
    if isinstance(spec, WeibullSpec):
        k, lam = spec.shape, spec.scale
        g1 = gamma_function(1.0 + 1.0 / k)
        g2 = gamma_function(1.0 + 2.0 / k)
        if math.isinf(g2):
            return lam * g1, math.inf
        return lam * g1, lam * lam * (g2 - g1 * g1)
    if isinstance(spec, NegativeBinomialSpec):
        q = 1.0 - spec.p
        return spec.r * q / spec.p, spec.r * q / spec.p ** 2
    if isinstance(spec, BinomialSpec):
        return spec.n * spec.p, spec.n * spec.p * (1.0 - spec.p)
    if isinstance(spec, GeometricSpec):
        return 1.0 / spec.p, (1.0 - spec.p) / spec.p ** 2
    if isinstance(spec, DiscreteUniformSpec):
        n = spec.high - spec.low + 1
        return (spec.low + spec.high) / 2.0, (n * n - 1) / 12.0
    raise UnsupportedDistributionError(
        f"No closed-form moments for {type(spec).__name__}"
    )
