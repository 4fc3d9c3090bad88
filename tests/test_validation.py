"""Tests for the parameter validator and raw record builders."""

import logging

import pytest

from riskquant.config import DISTRIBUTION_ALIASES, DISTRIBUTION_DEFAULTS, EPSILON, PROBABILITY_FLOOR
from riskquant.types import (
    BinomialSpec,
    DiscreteUniformSpec,
    DistributionSpec,
    GammaSpec,
    GeometricSpec,
    LognormalSpec,
    MalformedEventError,
    NegativeBinomialSpec,
    NormalSpec,
    ParetoSpec,
    PertSpec,
    PoissonSpec,
    RiskEvent,
    TriangularSpec,
    UniformSpec,
    WeibullSpec,
)
from riskquant.validation import (
    build_distribution,
    build_distribution_from_raw,
    build_event,
    build_events,
    canonical_kind,
    spec_to_raw,
)

GARBAGE_INPUTS = [
    {},
    None,
    {'min': 'abc', 'max': '', 'mode': None},
    {'min': -5, 'max': -10, 'mode': 50},
    {'p': 5, 'r': -3, 'n': 0.2, 'lambda': -1, 'stdDev': 0, 'shape': -2, 'scale': 0},
    {'min': float('nan'), 'max': float('inf'), 'alpha': 'x', 'xMin': -1, 'k': True},
]


class TestBuildDistributionNeverRaises:
    """Every type accepts any raw input and yields a valid spec."""

    @pytest.mark.parametrize("kind", list(DISTRIBUTION_DEFAULTS) + list(DISTRIBUTION_ALIASES))
    @pytest.mark.parametrize("raw", GARBAGE_INPUTS)
    def test_garbage_input(self, kind, raw):
        spec = build_distribution(kind, raw)
        assert isinstance(spec, DistributionSpec)

    @pytest.mark.parametrize("kind", list(DISTRIBUTION_DEFAULTS))
    def test_defaults_match_kind(self, kind):
        assert build_distribution(kind, {}).kind == kind

    def test_unknown_type_falls_back(self, caplog):
        with caplog.at_level(logging.WARNING, logger='riskquant.validation'):
            spec = build_distribution('bogus', {'min': 10, 'max': 20})
        assert spec == TriangularSpec(0.0, 0.5, 1.0)
        assert 'bogus' in caplog.text

    @pytest.mark.parametrize("kind", [None, 42, ''])
    def test_non_string_type_falls_back(self, kind):
        assert build_distribution(kind, {}) == TriangularSpec(0.0, 0.5, 1.0)


class TestClamping:
    """Out-of-range values are repaired, not rejected."""

    def test_negative_min_clamped(self):
        spec = build_distribution('triangular', {'min': -5, 'mode': 2, 'max': 10})
        assert spec.low == 0.0
        assert spec.mode == 2.0
        assert spec.high == 10.0

    def test_max_forced_above_min(self):
        spec = build_distribution('uniform', {'min': 10, 'max': 5})
        assert spec.low == 10.0
        assert spec.high > spec.low
        assert spec.high - spec.low == pytest.approx(max(EPSILON, 10 * EPSILON))

    def test_mode_clamped_into_range(self):
        spec = build_distribution('pert', {'min': 10, 'mode': 50, 'max': 20})
        assert spec.mode == 20.0
        spec = build_distribution('triangular', {'min': 10, 'mode': 1, 'max': 20})
        assert spec.mode == 10.0

    def test_missing_mode_is_midpoint(self):
        spec = build_distribution('triangular', {'min': 100, 'max': 300})
        assert spec.mode == 200.0

    def test_numeric_strings_parsed(self):
        assert build_distribution('uniform', {'min': '10', 'max': ' 20 '}) == UniformSpec(10.0, 20.0)

    def test_blank_fields_take_defaults(self):
        spec = build_distribution('gamma', {'shape': '', 'scale': None})
        assert spec == GammaSpec(2.0, 1000.0)

    def test_non_positive_scale_floored(self):
        spec = build_distribution('normal', {'mean': 5, 'stdDev': -1})
        assert isinstance(spec, NormalSpec)
        assert spec.std_dev > 0
        spec = build_distribution('weibull', {'k': 0, 'lambda': -3})
        assert isinstance(spec, WeibullSpec)
        assert spec.shape > 0 and spec.scale > 0

    def test_probabilities_clamped(self):
        assert build_distribution('geometric', {'p': 0}).p == PROBABILITY_FLOOR
        assert build_distribution('geometric', {'p': 3}).p == 1.0
        assert build_distribution('binomial', {'n': 5, 'p': -1}).p == PROBABILITY_FLOOR

    def test_counts_rounded(self):
        assert build_distribution('binomial', {'n': 2.6, 'p': 0.5}).n == 3
        assert build_distribution('binomial', {'n': -1, 'p': 0.5}).n == 1
        spec = build_distribution('negativeBinomial', {'r': 0.2, 'p': 0.5})
        assert isinstance(spec, NegativeBinomialSpec)
        assert spec.r == 1

    def test_discrete_uniform_integer_bounds(self):
        spec = build_distribution('discreteUniform', {'min': 3.4, 'max': 2})
        assert isinstance(spec, DiscreteUniformSpec)
        assert spec.low == 3
        assert spec.high == 4


class TestAliases:
    """Older form type names resolve to current specs."""

    def test_alias_resolution(self):
        assert canonical_kind('logNormal') == 'lognormal'
        assert canonical_kind('negative-binomial') == 'negativeBinomial'
        assert canonical_kind('discrete-uniform') == 'discreteUniform'
        assert canonical_kind('nope') is None

    def test_lognormal_form_fields(self):
        spec = build_distribution('logNormal', {'mean': 9.0, 'stdDev': 0.8})
        assert spec == LognormalSpec(9.0, 0.8)

    def test_form_key_names(self):
        assert build_distribution('poisson', {'lambda': 2.5}) == PoissonSpec(2.5)
        assert build_distribution('pareto', {'xMin': 500, 'alpha': 3}) == ParetoSpec(500.0, 3.0)
        assert build_distribution('weibull', {'k': 1.5, 'lambda': 100}) == WeibullSpec(1.5, 100.0)

    @pytest.mark.parametrize("spec", [
        PertSpec(10.0, 20.0, 50.0, gamma=6.0),
        LognormalSpec(9.0, 0.8),
        NegativeBinomialSpec(4, 0.25),
        GeometricSpec(0.2),
        BinomialSpec(12, 0.3),
    ], ids=lambda s: s.kind)
    def test_spec_to_raw_is_inverse(self, spec):
        raw = spec_to_raw(spec)
        assert build_distribution_from_raw(raw) == spec


class TestBuildEvent:
    """Raw record -> RiskEvent."""

    def test_builds_event(self):
        event = build_event({
            'name': 'Ransomware',
            'currency': 'EUR',
            'severity': {'type': 'triangular', 'min': 1000, 'mode': 5000, 'max': 20000},
            'frequency': {'type': 'poisson', 'lambda': 0.5},
        })
        assert isinstance(event, RiskEvent)
        assert event.name == 'Ransomware'
        assert event.currency == 'EUR'
        assert event.severity == TriangularSpec(1000.0, 5000.0, 20000.0)
        assert event.frequency == PoissonSpec(0.5)

    def test_default_currency(self):
        event = build_event({
            'severity': {'type': 'uniform'},
            'frequency': {'type': 'uniform'},
        })
        assert event.currency == 'USD'
        assert event.name == ''

    def test_missing_block_is_malformed(self):
        with pytest.raises(MalformedEventError, match="frequency"):
            build_event({'name': 'x', 'severity': {'type': 'uniform'}})

    def test_non_mapping_is_malformed(self):
        with pytest.raises(MalformedEventError, match="mapping"):
            build_event(['severity', 'frequency'])

    def test_build_events(self):
        records = [
            {'severity': {'type': 'uniform', 'min': 0, 'max': 10}, 'frequency': {'type': 'geometric'}},
            {'severity': {'type': 'gamma'}, 'frequency': {'type': 'binomial'}},
        ]
        events = build_events(records)
        assert len(events) == 2
        assert events[1].frequency == BinomialSpec(20, 0.1)
