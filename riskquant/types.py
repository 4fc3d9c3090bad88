"""
Core data structures for the risk quantification engine.

Distribution specs, risk events, simulation config/results, density grids
and contour sets, plus the exception taxonomy shared by every module.
"""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import ClassVar, Dict, Iterator, List, Optional, Tuple, Union
import math

import numpy as np
import pandas as pd


# =============================================================================
# Errors
# =============================================================================

class InvalidParameterError(ValueError):
    """A distribution spec was constructed with parameters outside its domain."""


class UnsupportedDistributionError(ValueError):
    """No sampler/range handler is registered for a spec type."""


class MalformedEventError(ValueError):
    """The risk event list handed to the aggregator cannot be simulated."""


class SimulationError(ValueError):
    """A simulation produced a value it cannot aggregate (e.g. infinite frequency)."""


class SimulationCancelled(RuntimeError):
    """Raised inside a run whose cancel event was set."""


# =============================================================================
# Distribution specs
# =============================================================================

def _require_positive(spec, name: str, value: float) -> None:
    if not value > 0 or not math.isfinite(value):
        raise InvalidParameterError(
            f"{spec.__class__.__name__}.{name} must be positive and finite, got {value}"
        )


def _require_finite(spec, name: str, value: float) -> None:
    if not math.isfinite(value):
        raise InvalidParameterError(
            f"{spec.__class__.__name__}.{name} must be finite, got {value}"
        )


def _require_probability(spec, name: str, value: float) -> None:
    if not 0.0 < value <= 1.0:
        raise InvalidParameterError(
            f"{spec.__class__.__name__}.{name} must be in (0, 1], got {value}"
        )


def _require_count(spec, name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
        raise InvalidParameterError(
            f"{spec.__class__.__name__}.{name} must be a positive integer, got {value!r}"
        )


def _require_ordered(spec, low: float, mode: Optional[float], high: float) -> None:
    for name, value in (('low', low), ('high', high)):
        _require_finite(spec, name, value)
    if mode is None:
        if low > high:
            raise InvalidParameterError(
                f"{spec.__class__.__name__} requires low <= high, got {low} > {high}"
            )
        return
    _require_finite(spec, 'mode', mode)
    if not low <= mode <= high:
        raise InvalidParameterError(
            f"{spec.__class__.__name__} requires low <= mode <= high, "
            f"got ({low}, {mode}, {high})"
        )


class DistributionSpec:
    """
    Base for every distribution spec.

    Subclasses are frozen dataclasses carrying only the fields their
    family needs, tagged with ``kind`` (the form-layer type name).
    """
    kind: ClassVar[str] = ''

    def to_dict(self) -> Dict[str, Union[str, float, int]]:
        """Serialize as ``{'type': kind, <field>: value, ...}``."""
        data: Dict[str, Union[str, float, int]] = {'type': self.kind}
        for f in fields(self):
            data[f.name] = getattr(self, f.name)
        return data


@dataclass(frozen=True)
class TriangularSpec(DistributionSpec):
    kind: ClassVar[str] = 'triangular'
    low: float
    mode: float
    high: float

    def __post_init__(self) -> None:
        _require_ordered(self, self.low, self.mode, self.high)


@dataclass(frozen=True)
class PertSpec(DistributionSpec):
    """Modified PERT; ``gamma`` controls concentration around the mode."""
    kind: ClassVar[str] = 'pert'
    low: float
    mode: float
    high: float
    gamma: float = 4.0

    def __post_init__(self) -> None:
        _require_ordered(self, self.low, self.mode, self.high)
        _require_positive(self, 'gamma', self.gamma)


@dataclass(frozen=True)
class NormalSpec(DistributionSpec):
    kind: ClassVar[str] = 'normal'
    mean: float
    std_dev: float

    def __post_init__(self) -> None:
        _require_finite(self, 'mean', self.mean)
        _require_positive(self, 'std_dev', self.std_dev)


@dataclass(frozen=True)
class LognormalSpec(DistributionSpec):
    """Lognormal parameterized by the underlying normal's mu and sigma."""
    kind: ClassVar[str] = 'lognormal'
    mu: float
    sigma: float

    def __post_init__(self) -> None:
        _require_finite(self, 'mu', self.mu)
        _require_positive(self, 'sigma', self.sigma)


@dataclass(frozen=True)
class UniformSpec(DistributionSpec):
    kind: ClassVar[str] = 'uniform'
    low: float
    high: float

    def __post_init__(self) -> None:
        _require_ordered(self, self.low, None, self.high)


@dataclass(frozen=True)
class BetaSpec(DistributionSpec):
    """Beta(alpha, beta) rescaled onto [low, high]."""
    kind: ClassVar[str] = 'beta'
    alpha: float
    beta: float
    low: float = 0.0
    high: float = 1.0

    def __post_init__(self) -> None:
        _require_positive(self, 'alpha', self.alpha)
        _require_positive(self, 'beta', self.beta)
        _require_ordered(self, self.low, None, self.high)


@dataclass(frozen=True)
class PoissonSpec(DistributionSpec):
    kind: ClassVar[str] = 'poisson'
    lam: float

    def __post_init__(self) -> None:
        _require_positive(self, 'lam', self.lam)


@dataclass(frozen=True)
class ExponentialSpec(DistributionSpec):
    kind: ClassVar[str] = 'exponential'
    rate: float

    def __post_init__(self) -> None:
        _require_positive(self, 'rate', self.rate)


@dataclass(frozen=True)
class GammaSpec(DistributionSpec):
    kind: ClassVar[str] = 'gamma'
    shape: float
    scale: float

    def __post_init__(self) -> None:
        _require_positive(self, 'shape', self.shape)
        _require_positive(self, 'scale', self.scale)


@dataclass(frozen=True)
class ParetoSpec(DistributionSpec):
    kind: ClassVar[str] = 'pareto'
    x_min: float
    alpha: float

    def __post_init__(self) -> None:
        _require_positive(self, 'x_min', self.x_min)
        _require_positive(self, 'alpha', self.alpha)


@dataclass(frozen=True)
class WeibullSpec(DistributionSpec):
    """Weibull with shape ``k`` and scale ``lambda``."""
    kind: ClassVar[str] = 'weibull'
    shape: float
    scale: float

    def __post_init__(self) -> None:
        _require_positive(self, 'shape', self.shape)
        _require_positive(self, 'scale', self.scale)


@dataclass(frozen=True)
class NegativeBinomialSpec(DistributionSpec):
    """Failures before the r-th success, success probability p."""
    kind: ClassVar[str] = 'negativeBinomial'
    r: int
    p: float

    def __post_init__(self) -> None:
        _require_count(self, 'r', self.r)
        _require_probability(self, 'p', self.p)


@dataclass(frozen=True)
class BinomialSpec(DistributionSpec):
    kind: ClassVar[str] = 'binomial'
    n: int
    p: float

    def __post_init__(self) -> None:
        _require_count(self, 'n', self.n)
        _require_probability(self, 'p', self.p)


@dataclass(frozen=True)
class GeometricSpec(DistributionSpec):
    """Trials up to and including the first success."""
    kind: ClassVar[str] = 'geometric'
    p: float

    def __post_init__(self) -> None:
        _require_probability(self, 'p', self.p)


@dataclass(frozen=True)
class DiscreteUniformSpec(DistributionSpec):
    kind: ClassVar[str] = 'discreteUniform'
    low: int
    high: int

    def __post_init__(self) -> None:
        for name in ('low', 'high'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise InvalidParameterError(
                    f"DiscreteUniformSpec.{name} must be an integer, got {value!r}"
                )
        _require_ordered(self, self.low, None, self.high)


SPEC_TYPES: Tuple[type, ...] = (
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
)

SPEC_BY_KIND: Dict[str, type] = {cls.kind: cls for cls in SPEC_TYPES}


# =============================================================================
# Events and simulation
# =============================================================================

@dataclass(frozen=True)
class RiskEvent:
    """
    One risk: per-occurrence loss (severity) and annual occurrence count
    (frequency, may be fractional).

    Attributes:
        severity: Loss per occurrence
        frequency: Occurrences per year
        name: Display label (not part of any fingerprint)
        currency: Display currency code (not part of any fingerprint)
    """
    severity: DistributionSpec
    frequency: DistributionSpec
    name: str = ''
    currency: str = 'USD'


# Event fields that never influence a computed result
DISPLAY_ONLY_FIELDS = frozenset({'name', 'currency'})


@dataclass(frozen=True)
class SimulationConfig:
    """
    Monte Carlo run configuration.

    Attributes:
        iterations: Number of simulated years (>= 1)
        confidence_level: VaR quantile, strictly inside (0, 1)
    """
    iterations: int = 10000
    confidence_level: float = 0.95

    def __post_init__(self) -> None:
        if isinstance(self.iterations, bool) or not isinstance(self.iterations, (int, np.integer)):
            raise InvalidParameterError(
                f"SimulationConfig.iterations must be an integer, got {self.iterations!r}"
            )
        if self.iterations < 1:
            raise InvalidParameterError(
                f"SimulationConfig.iterations must be >= 1, got {self.iterations}"
            )
        if not 0.0 < self.confidence_level < 1.0:
            raise InvalidParameterError(
                "SimulationConfig.confidence_level must be in (0, 1), "
                f"got {self.confidence_level}"
            )


def order_statistic_index(q: float, n: int) -> int:
    """Index of the empirical q-quantile in a sorted sample of size n: floor(q*n), clamped."""
    return min(max(int(math.floor(q * n)), 0), n - 1)


@dataclass(frozen=True)
class SimulationResult:
    """
    Output of one Monte Carlo run. Immutable once produced.

    Attributes:
        expected_annual_loss: Mean of all simulated annual losses
        value_at_risk: Order statistic at floor(confidence_level * N)
        annual_losses: [N] float64, ascending, read-only
        confidence_level: Level the VaR was taken at
    """
    expected_annual_loss: float
    value_at_risk: float
    annual_losses: np.ndarray
    confidence_level: float = 0.95

    def __post_init__(self) -> None:
        losses = np.array(self.annual_losses, dtype=np.float64)
        losses.flags.writeable = False
        object.__setattr__(self, 'annual_losses', losses)

    @property
    def iterations(self) -> int:
        return len(self.annual_losses)

    @property
    def std_dev(self) -> float:
        """Sample standard deviation of annual losses (0 for a single trial)."""
        if self.iterations < 2:
            return 0.0
        return float(np.std(self.annual_losses, ddof=1))

    @property
    def eal_standard_error(self) -> float:
        """Standard error of the EAL estimate."""
        if self.iterations == 0:
            return 0.0
        return self.std_dev / math.sqrt(self.iterations)

    def percentile(self, q: float) -> float:
        """Empirical quantile using the same order-statistic rule as VaR."""
        if self.iterations == 0:
            return 0.0
        return float(self.annual_losses[order_statistic_index(q, self.iterations)])

    def to_dict(self) -> Dict:
        """Convert to serializable dict (losses omitted)."""
        return {
            'expected_annual_loss': self.expected_annual_loss,
            'value_at_risk': self.value_at_risk,
            'confidence_level': self.confidence_level,
            'iterations': self.iterations,
            'std_dev': self.std_dev,
        }


# =============================================================================
# Heat map
# =============================================================================

@dataclass(frozen=True)
class DensityCell:
    """One bin of a DensityGrid (frequency index i, severity index j)."""
    i: int
    j: int
    frequency: float
    severity: float
    sample_count: int
    probability_mass: float
    density: float
    normalized_density: float
    total_loss: float


@dataclass
class DensityGrid:
    """
    Joint frequency x severity density estimate.

    Arrays are indexed [frequency_bin, severity_bin].

    Attributes:
        frequency_range: (min, max) domain of the frequency axis
        severity_range: (min, max) domain of the severity axis
        frequency_bin_width: Width of one frequency bin (epsilon-floored)
        severity_bin_width: Width of one severity bin (epsilon-floored)
        counts: [nf, ns] int64 samples per cell
        total_samples: Samples that were binned
        discarded: Non-finite or negative samples dropped
    """
    frequency_range: Tuple[float, float]
    severity_range: Tuple[float, float]
    frequency_bin_width: float
    severity_bin_width: float
    counts: np.ndarray
    total_samples: int
    discarded: int = 0

    @property
    def shape(self) -> Tuple[int, int]:
        return self.counts.shape

    @property
    def bin_area(self) -> float:
        return self.frequency_bin_width * self.severity_bin_width

    @property
    def frequency_midpoints(self) -> np.ndarray:
        n = self.counts.shape[0]
        return self.frequency_range[0] + (np.arange(n) + 0.5) * self.frequency_bin_width

    @property
    def severity_midpoints(self) -> np.ndarray:
        n = self.counts.shape[1]
        return self.severity_range[0] + (np.arange(n) + 0.5) * self.severity_bin_width

    @property
    def probability_mass(self) -> np.ndarray:
        if self.total_samples == 0:
            return np.zeros_like(self.counts, dtype=np.float64)
        return self.counts / float(self.total_samples)

    @property
    def density(self) -> np.ndarray:
        return self.probability_mass / self.bin_area

    @property
    def max_density(self) -> float:
        return float(self.density.max()) if self.counts.size else 0.0

    @property
    def normalized_density(self) -> np.ndarray:
        """Density scaled to [0, 1] for colour mapping."""
        peak = self.max_density
        if peak <= 0:
            return np.zeros_like(self.counts, dtype=np.float64)
        return self.density / peak

    @property
    def total_loss(self) -> np.ndarray:
        """frequency midpoint x severity midpoint for every cell (inf on overflow)."""
        with np.errstate(over='ignore'):
            return np.outer(self.frequency_midpoints, self.severity_midpoints)

    def cells(self) -> Iterator[DensityCell]:
        """Iterate cells in frequency-major order."""
        mass = self.probability_mass
        density = self.density
        normalized = self.normalized_density
        total_loss = self.total_loss
        freq_mid = self.frequency_midpoints
        sev_mid = self.severity_midpoints
        n_freq, n_sev = self.counts.shape
        for i in range(n_freq):
            for j in range(n_sev):
                yield DensityCell(
                    i=i,
                    j=j,
                    frequency=float(freq_mid[i]),
                    severity=float(sev_mid[j]),
                    sample_count=int(self.counts[i, j]),
                    probability_mass=float(mass[i, j]),
                    density=float(density[i, j]),
                    normalized_density=float(normalized[i, j]),
                    total_loss=float(total_loss[i, j]),
                )

    def to_frame(self) -> pd.DataFrame:
        """One row per cell, for chart/table consumers."""
        return pd.DataFrame([asdict(cell) for cell in self.cells()])


class ContourKind(Enum):
    PERCENTILE = 'percentile'
    VAR = 'var'
    EAL = 'eal'
    CONFIDENCE_BAND = 'confidence_band'


@dataclass
class ContourLevel:
    """
    One iso-loss level and its polyline.

    Attributes:
        label: Display label (e.g. 'P90', 'VaR', 'EAL+1σ')
        value: Total-loss level L (frequency x severity = L)
        kind: Percentile, VaR, EAL or confidence band
        std_dev: Standard deviation attached to VaR/EAL levels and their bands
        band: 'lower' / 'upper' for confidence bands
        points: [k, 2] (frequency, severity) pairs; empty when the curve
            misses the grid
    """
    label: str
    value: float
    kind: ContourKind
    std_dev: Optional[float] = None
    band: Optional[str] = None
    points: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0


@dataclass
class ContourSet:
    """Ordered iso-loss levels for a density grid."""
    levels: List[ContourLevel]

    def __len__(self) -> int:
        return len(self.levels)

    def __iter__(self) -> Iterator[ContourLevel]:
        return iter(self.levels)

    def by_kind(self, kind: ContourKind) -> List[ContourLevel]:
        return [level for level in self.levels if level.kind == kind]

    def get(self, label: str) -> Optional[ContourLevel]:
        for level in self.levels:
            if level.label == label:
                return level
        return None
