"""
Parameter validation and spec building.

Turns raw form input (possibly missing, blank or out-of-range numbers,
keyed by the form layer's field names) into a valid DistributionSpec.
build_distribution never raises: every bad value is clamped, floored or
replaced by a documented default, so the aggregator and grid builder can
assume valid specs.
"""

import logging
import math
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from .config import (
    DISTRIBUTION_ALIASES,
    DISTRIBUTION_DEFAULTS,
    EPSILON,
    FALLBACK_DISTRIBUTION,
    POSITIVE_FLOOR,
    PROBABILITY_FLOOR,
)
from .types import (
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
    MalformedEventError,
    RiskEvent,
)

logger = logging.getLogger(__name__)

Keys = Union[str, Tuple[str, ...]]

# Spec field -> form field name, per spec type
FORM_KEYS: Dict[type, Dict[str, str]] = {
    TriangularSpec: {'low': 'min', 'mode': 'mode', 'high': 'max'},
    PertSpec: {'low': 'min', 'mode': 'mode', 'high': 'max', 'gamma': 'gamma'},
    NormalSpec: {'mean': 'mean', 'std_dev': 'stdDev'},
    LognormalSpec: {'mu': 'mean', 'sigma': 'stdDev'},
    UniformSpec: {'low': 'min', 'high': 'max'},
    BetaSpec: {'alpha': 'alpha', 'beta': 'beta', 'low': 'min', 'high': 'max'},
    PoissonSpec: {'lam': 'lambda'},
    ExponentialSpec: {'rate': 'lambda'},
    GammaSpec: {'shape': 'shape', 'scale': 'scale'},
    ParetoSpec: {'x_min': 'xMin', 'alpha': 'alpha'},
    WeibullSpec: {'shape': 'k', 'scale': 'lambda'},
    NegativeBinomialSpec: {'r': 'r', 'p': 'p'},
    BinomialSpec: {'n': 'n', 'p': 'p'},
    GeometricSpec: {'p': 'p'},
    DiscreteUniformSpec: {'low': 'min', 'high': 'max'},
}


def canonical_kind(kind: Optional[str]) -> Optional[str]:
    """Resolve aliases; None if the type is not recognized."""
    if not isinstance(kind, str):
        return None
    kind = DISTRIBUTION_ALIASES.get(kind.strip(), kind.strip())
    return kind if kind in DISTRIBUTION_DEFAULTS else None


def _parse_number(value: Any) -> Optional[float]:
    """float(value), or None for missing/blank/non-numeric/non-finite input."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _get(raw: Mapping[str, Any], keys: Keys, default: Optional[float]) -> Optional[float]:
    """First parseable value among keys, else the default."""
    if isinstance(keys, str):
        keys = (keys,)
    for key in keys:
        number = _parse_number(raw.get(key))
        if number is not None:
            return number
    return default


def _positive(value: float) -> float:
    return value if value > 0 else POSITIVE_FLOOR


def _probability(value: float) -> float:
    return min(1.0, max(PROBABILITY_FLOOR, value))


def _count(value: float) -> int:
    return max(1, int(round(value)))


def _min_gap(low: float) -> float:
    # Relative gap keeps high > low representable for large magnitudes
    return max(EPSILON, abs(low) * EPSILON)


def _bounds(
    raw: Mapping[str, Any],
    defaults: Mapping[str, float],
    with_mode: bool = False
) -> Tuple[float, Optional[float], float]:
    """Sanitized (low, mode, high): low >= 0, high > low, mode in [low, high]."""
    low = max(0.0, _get(raw, 'min', defaults['min']))
    high = _get(raw, 'max', defaults['max'])
    if high < low + _min_gap(low):
        high = low + _min_gap(low)

    mode = None
    if with_mode:
        # Missing mode sits mid-range rather than at the generic default
        mode = _get(raw, 'mode', None)
        if mode is None:
            mode = (low + high) / 2.0
        mode = min(max(mode, low), high)
    return low, mode, high


def build_distribution(kind: Optional[str], raw: Optional[Mapping[str, Any]] = None) -> DistributionSpec:
    """
    Build a valid DistributionSpec from a type tag and raw form fields.

    Rules:
    - minimums clamped to >= 0, max forced above min by at least EPSILON,
      mode clamped into [min, max]
    - missing fields take DISTRIBUTION_DEFAULTS for the type
    - non-positive scale/shape/rate floored to POSITIVE_FLOOR
    - probabilities clamped into [PROBABILITY_FLOOR, 1]
    - counts rounded to positive integers
    - an unrecognized type falls back to the default triangular spec

    Args:
        kind: Distribution type tag from the form (aliases accepted)
        raw: Mapping of form field name -> raw value

    Returns:
        A spec that satisfies all of its invariants
    """
    raw = raw if isinstance(raw, Mapping) else {}
    resolved = canonical_kind(kind)
    if resolved is None:
        logger.warning(
            f"Unsupported distribution type {kind!r}; "
            f"falling back to default {FALLBACK_DISTRIBUTION}"
        )
        d = DISTRIBUTION_DEFAULTS[FALLBACK_DISTRIBUTION]
        return TriangularSpec(low=d['min'], mode=d['mode'], high=d['max'])

    d = DISTRIBUTION_DEFAULTS[resolved]

    if resolved == 'triangular':
        low, mode, high = _bounds(raw, d, with_mode=True)
        return TriangularSpec(low=low, mode=mode, high=high)

    if resolved == 'pert':
        low, mode, high = _bounds(raw, d, with_mode=True)
        return PertSpec(low=low, mode=mode, high=high, gamma=_positive(_get(raw, 'gamma', d['gamma'])))

    if resolved == 'normal':
        return NormalSpec(
            mean=_get(raw, 'mean', d['mean']),
            std_dev=_positive(_get(raw, ('stdDev', 'std', 'std_dev'), d['stdDev'])),
        )

    if resolved == 'lognormal':
        return LognormalSpec(
            mu=_get(raw, ('mu', 'mean'), d['mean']),
            sigma=_positive(_get(raw, ('sigma', 'stdDev', 'std'), d['stdDev'])),
        )

    if resolved == 'uniform':
        low, _, high = _bounds(raw, d)
        return UniformSpec(low=low, high=high)

    if resolved == 'beta':
        low, _, high = _bounds(raw, d)
        return BetaSpec(
            alpha=_positive(_get(raw, 'alpha', d['alpha'])),
            beta=_positive(_get(raw, 'beta', d['beta'])),
            low=low,
            high=high,
        )

    if resolved == 'poisson':
        return PoissonSpec(lam=_positive(_get(raw, ('lambda', 'lam'), d['lambda'])))

    if resolved == 'exponential':
        return ExponentialSpec(rate=_positive(_get(raw, ('lambda', 'rate'), d['lambda'])))

    if resolved == 'gamma':
        return GammaSpec(
            shape=_positive(_get(raw, 'shape', d['shape'])),
            scale=_positive(_get(raw, 'scale', d['scale'])),
        )

    if resolved == 'pareto':
        return ParetoSpec(
            x_min=_positive(_get(raw, ('xMin', 'x_min'), d['xMin'])),
            alpha=_positive(_get(raw, 'alpha', d['alpha'])),
        )

    if resolved == 'weibull':
        return WeibullSpec(
            shape=_positive(_get(raw, ('k', 'shape'), d['k'])),
            scale=_positive(_get(raw, ('lambda', 'scale'), d['lambda'])),
        )

    if resolved == 'negativeBinomial':
        return NegativeBinomialSpec(
            r=_count(_get(raw, 'r', d['r'])),
            p=_probability(_get(raw, 'p', d['p'])),
        )

    if resolved == 'binomial':
        return BinomialSpec(
            n=_count(_get(raw, 'n', d['n'])),
            p=_probability(_get(raw, 'p', d['p'])),
        )

    if resolved == 'geometric':
        return GeometricSpec(p=_probability(_get(raw, 'p', d['p'])))

    # discreteUniform
    low = max(0, int(round(_get(raw, 'min', d['min']))))
    high = int(round(_get(raw, 'max', d['max'])))
    if high <= low:
        high = low + 1
    return DiscreteUniformSpec(low=low, high=high)


def build_distribution_from_raw(raw: Optional[Mapping[str, Any]]) -> DistributionSpec:
    """build_distribution for a mapping that carries its own 'type' key."""
    raw = raw if isinstance(raw, Mapping) else {}
    return build_distribution(raw.get('type'), raw)


def spec_to_raw(spec: DistributionSpec) -> Dict[str, Any]:
    """Express a spec with the form layer's field names (inverse of build_distribution)."""
    mapping = FORM_KEYS[type(spec)]
    raw: Dict[str, Any] = {'type': spec.kind}
    for field_name, form_key in mapping.items():
        raw[form_key] = getattr(spec, field_name)
    return raw


def build_event(raw: Mapping[str, Any]) -> RiskEvent:
    """
    Build a RiskEvent from a raw record with 'severity' and 'frequency' blocks.

    Field values are sanitized like build_distribution; a record that is
    not a mapping or lacks either block is structurally malformed.

    Raises:
        MalformedEventError: If the record or either distribution block is missing
    """
    if not isinstance(raw, Mapping):
        raise MalformedEventError(f"Risk event record must be a mapping, got {type(raw).__name__}")
    for block in ('severity', 'frequency'):
        if not isinstance(raw.get(block), Mapping):
            label = raw.get('name') or '<unnamed>'
            raise MalformedEventError(
                f"Risk event {label!r} is missing its '{block}' distribution"
            )
    return RiskEvent(
        severity=build_distribution_from_raw(raw['severity']),
        frequency=build_distribution_from_raw(raw['frequency']),
        name=str(raw.get('name') or ''),
        currency=str(raw.get('currency') or 'USD'),
    )


def build_events(records: Sequence[Mapping[str, Any]]) -> list:
    """build_event over a list of raw records."""
    return [build_event(record) for record in records]
