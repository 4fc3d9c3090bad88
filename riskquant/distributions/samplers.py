"""
Scalar samplers for every distribution family.

Each sampler takes the uniform source first (a numpy Generator; only
``rng.random()`` is used) and returns one sample. No sampler touches
global random state, so a seeded generator reproduces a run exactly.

Rejection samplers (gamma, and beta through its gamma ratio) loop until
acceptance with no iteration cap. For shape >= 1 the Marsaglia-Tsang
acceptance rate is above 0.95, and shape < 1 is reduced to shape + 1,
so every loop terminates with probability 1.
"""

from typing import Callable, Dict
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

# Knuth's method multiplies uniforms until the product drops below e^-lam;
# above this lam e^-lam loses precision, so larger rates are drawn as a sum.
POISSON_CHUNK = 500.0


def _open_unit(rng: np.random.Generator) -> float:
    """Uniform on (0, 1]; safe to take logs of or divide by."""
    return 1.0 - rng.random()


# =============================================================================
# Continuous families
# =============================================================================

def triangular(rng: np.random.Generator, low: float, mode: float, high: float) -> float:
    """Inverse-CDF sample of Triangular(low, mode, high)."""
    if high == low:
        return low
    mode = min(max(mode, low), high)
    u = rng.random()
    f_mode = (mode - low) / (high - low)
    if u < f_mode:
        return low + math.sqrt(u * (high - low) * (mode - low))
    return high - math.sqrt((1.0 - u) * (high - low) * (high - mode))


def pert(
    rng: np.random.Generator,
    low: float,
    mode: float,
    high: float,
    gamma: float = 4.0
) -> float:
    """
    Modified PERT sample.

    Beta(1 + gamma*m, 1 + gamma*(1-m)) on [low, high], where m is the
    mode's position within the range. Higher gamma concentrates mass
    around the mode.
    """
    if high == low:
        return low
    mode_position = (mode - low) / (high - low)
    alpha = 1.0 + gamma * mode_position
    beta_param = 1.0 + gamma * (1.0 - mode_position)
    return low + beta(rng, alpha, beta_param) * (high - low)


def normal(rng: np.random.Generator, mean: float, std_dev: float) -> float:
    """Box-Muller transform (cosine branch only)."""
    u1 = _open_unit(rng)
    u2 = rng.random()
    z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return mean + std_dev * z


def lognormal(rng: np.random.Generator, mu: float, sigma: float) -> float:
    with np.errstate(over='ignore'):
        return float(np.exp(np.float64(normal(rng, mu, sigma))))


def uniform(rng: np.random.Generator, low: float, high: float) -> float:
    return low + rng.random() * (high - low)


def gamma(rng: np.random.Generator, shape: float, scale: float = 1.0) -> float:
    """
    Marsaglia-Tsang gamma sample.

    For shape < 1 draws Gamma(shape + 1) and applies the U^(1/shape) boost.
    """
    if shape < 1.0:
        boost = _open_unit(rng) ** (1.0 / shape)
        return gamma(rng, shape + 1.0, scale) * boost

    d = shape - 1.0 / 3.0
    c = 1.0 / math.sqrt(9.0 * d)

    while True:
        x = normal(rng, 0.0, 1.0)
        v = 1.0 + c * x
        if v <= 0.0:
            continue
        v = v * v * v
        u = _open_unit(rng)

        # Squeeze first, then the full log test
        if u < 1.0 - 0.0331 * x ** 4:
            return d * v * scale
        if math.log(u) < 0.5 * x * x + d * (1.0 - v + math.log(v)):
            return d * v * scale


def beta(rng: np.random.Generator, alpha: float, beta_param: float) -> float:
    """Beta(alpha, beta) as X / (X + Y) with X ~ Gamma(alpha), Y ~ Gamma(beta)."""
    x = gamma(rng, alpha, 1.0)
    y = gamma(rng, beta_param, 1.0)
    total = x + y
    if total == 0.0:
        # Both draws underflowed (tiny shapes); fall back to the mean
        return alpha / (alpha + beta_param)
    return x / total


def exponential(rng: np.random.Generator, rate: float) -> float:
    with np.errstate(over='ignore'):
        return float(-np.log(np.float64(_open_unit(rng))) / np.float64(rate))


# Pareto and Weibull raise U to 1/shape; a floored shape (1e-6) sends that
# power to 0 or inf. Computed in float64 they return inf rather than raise,
# and the aggregator or grid builder decides what a non-finite draw means.

def pareto(rng: np.random.Generator, x_min: float, alpha: float) -> float:
    with np.errstate(over='ignore', divide='ignore', under='ignore'):
        tail = np.power(np.float64(_open_unit(rng)), 1.0 / np.float64(alpha))
        return float(np.float64(x_min) / tail)


def weibull(rng: np.random.Generator, shape: float, scale: float) -> float:
    with np.errstate(over='ignore', under='ignore'):
        spread = np.power(-np.log(np.float64(_open_unit(rng))), 1.0 / np.float64(shape))
        return float(np.float64(scale) * spread)


# =============================================================================
# Discrete families
# =============================================================================

def poisson(rng: np.random.Generator, lam: float) -> int:
    """
    Knuth's multiplicative Poisson sampler.

    Rates above POISSON_CHUNK are drawn as a sum of independent Poisson
    chunks (Poisson is closed under addition).
    """
    total = 0
    remaining = lam
    while remaining > POISSON_CHUNK:
        total += _knuth_poisson(rng, POISSON_CHUNK)
        remaining -= POISSON_CHUNK
    return total + _knuth_poisson(rng, remaining)


def _knuth_poisson(rng: np.random.Generator, lam: float) -> int:
    limit = math.exp(-lam)
    k = 0
    p = 1.0
    while True:
        k += 1
        p *= rng.random()
        if p <= limit:
            return k - 1


def negative_binomial(rng: np.random.Generator, r: int, p: float) -> int:
    """Number of Bernoulli(p) failures observed before the r-th success."""
    failures = 0
    successes = 0
    while successes < r:
        if rng.random() < p:
            successes += 1
        else:
            failures += 1
    return failures


def binomial(rng: np.random.Generator, n: int, p: float) -> int:
    successes = 0
    for _ in range(n):
        if rng.random() < p:
            successes += 1
    return successes


def geometric(rng: np.random.Generator, p: float) -> int:
    """Trials up to and including the first Bernoulli(p) success."""
    trials = 1
    while rng.random() >= p:
        trials += 1
    return trials


def discrete_uniform(rng: np.random.Generator, low: int, high: int) -> int:
    return int(math.floor(rng.random() * (high - low + 1))) + low


# =============================================================================
# Spec dispatch
# =============================================================================

SpecSampler = Callable[[np.random.Generator, DistributionSpec], float]

SAMPLERS: Dict[type, SpecSampler] = {
    TriangularSpec: lambda rng, s: triangular(rng, s.low, s.mode, s.high),
    PertSpec: lambda rng, s: pert(rng, s.low, s.mode, s.high, s.gamma),
    NormalSpec: lambda rng, s: normal(rng, s.mean, s.std_dev),
    LognormalSpec: lambda rng, s: lognormal(rng, s.mu, s.sigma),
    UniformSpec: lambda rng, s: uniform(rng, s.low, s.high),
    BetaSpec: lambda rng, s: s.low + beta(rng, s.alpha, s.beta) * (s.high - s.low),
    PoissonSpec: lambda rng, s: poisson(rng, s.lam),
    ExponentialSpec: lambda rng, s: exponential(rng, s.rate),
    GammaSpec: lambda rng, s: gamma(rng, s.shape, s.scale),
    ParetoSpec: lambda rng, s: pareto(rng, s.x_min, s.alpha),
    WeibullSpec: lambda rng, s: weibull(rng, s.shape, s.scale),
    NegativeBinomialSpec: lambda rng, s: negative_binomial(rng, s.r, s.p),
    BinomialSpec: lambda rng, s: binomial(rng, s.n, s.p),
    GeometricSpec: lambda rng, s: geometric(rng, s.p),
    DiscreteUniformSpec: lambda rng, s: discrete_uniform(rng, s.low, s.high),
}


def sample(spec: DistributionSpec, rng: np.random.Generator) -> float:
    """
    Draw one sample for any distribution spec.

    Raises:
        UnsupportedDistributionError: If no sampler is registered for the
            spec's type (there is no silent zero fallback)
    """
    sampler = SAMPLERS.get(type(spec))
    if sampler is None:
        raise UnsupportedDistributionError(
            f"No sampler registered for {type(spec).__name__}"
        )
    return sampler(rng, spec)


def sample_many(spec: DistributionSpec, rng: np.random.Generator, n: int) -> np.ndarray:
    """Draw n samples into a float64 array."""
    if n <= 0:
        return np.array([], dtype=np.float64)
    out = np.empty(n, dtype=np.float64)
    for k in range(n):
        out[k] = sample(spec, rng)
    return out
