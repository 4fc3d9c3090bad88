"""Tests for the distribution samplers."""

import math
from dataclasses import dataclass
from typing import ClassVar

import numpy as np
import pytest

from riskquant.distributions import distribution_moments, sample, sample_many, SAMPLERS
from riskquant.distributions import samplers
from riskquant.types import (
    BetaSpec,
    BinomialSpec,
    DiscreteUniformSpec,
    DistributionSpec,
    ExponentialSpec,
    GammaSpec,
    GeometricSpec,
    LognormalSpec,
    NegativeBinomialSpec,
    NormalSpec,
    ParetoSpec,
    PertSpec,
    PoissonSpec,
    SPEC_TYPES,
    TriangularSpec,
    UniformSpec,
    UnsupportedDistributionError,
    WeibullSpec,
)


@dataclass(frozen=True)
class MysterySpec(DistributionSpec):
    kind: ClassVar[str] = 'mystery'
    x: float = 1.0


class TestBoundedSamplers:
    """Bounded families stay inside their support."""

    def test_triangular_within_bounds(self, rng):
        values = sample_many(TriangularSpec(0.0, 5.0, 10.0), rng, 5000)
        assert values.min() >= 0.0
        assert values.max() <= 10.0

    def test_uniform_within_bounds(self, rng):
        values = sample_many(UniformSpec(2.0, 8.0), rng, 5000)
        assert values.min() >= 2.0
        assert values.max() <= 8.0

    def test_pert_within_bounds(self, rng):
        values = sample_many(PertSpec(100.0, 150.0, 400.0), rng, 5000)
        assert values.min() >= 100.0
        assert values.max() <= 400.0

    def test_beta_rescaled(self, rng):
        values = sample_many(BetaSpec(2.0, 5.0, low=10.0, high=20.0), rng, 5000)
        assert values.min() >= 10.0
        assert values.max() <= 20.0

    def test_discrete_uniform_support(self, rng):
        values = sample_many(DiscreteUniformSpec(1, 6), rng, 5000)
        assert set(np.unique(values)) == {1.0, 2.0, 3.0, 4.0, 5.0, 6.0}

    def test_geometric_at_least_one(self, rng):
        values = sample_many(GeometricSpec(0.3), rng, 2000)
        assert values.min() >= 1.0
        assert np.all(values == np.floor(values))

    def test_binomial_support(self, rng):
        values = sample_many(BinomialSpec(10, 0.3), rng, 2000)
        assert values.min() >= 0.0
        assert values.max() <= 10.0

    def test_heavy_tails_positive(self, rng):
        assert sample_many(ParetoSpec(1000.0, 1.5), rng, 2000).min() >= 1000.0
        assert sample_many(LognormalSpec(0.0, 2.0), rng, 2000).min() > 0.0
        assert sample_many(GammaSpec(0.3, 1.0), rng, 2000).min() >= 0.0


class TestDegenerateSpecs:
    """Zero-width specs return their single value without dividing by zero."""

    def test_triangular_constant(self, rng):
        values = sample_many(TriangularSpec(3.0, 3.0, 3.0), rng, 100)
        assert np.all(values == 3.0)

    def test_uniform_constant(self, rng):
        assert np.all(sample_many(UniformSpec(2.0, 2.0), rng, 100) == 2.0)

    def test_pert_constant(self, rng):
        assert np.all(sample_many(PertSpec(7.0, 7.0, 7.0), rng, 100) == 7.0)

    def test_certain_success(self, rng):
        assert np.all(sample_many(GeometricSpec(1.0), rng, 100) == 1.0)
        assert np.all(sample_many(NegativeBinomialSpec(3, 1.0), rng, 100) == 0.0)
        assert np.all(sample_many(BinomialSpec(5, 1.0), rng, 100) == 5.0)


class TestFlooredShapes:
    """Shapes floored by the validator give inf or 0 instead of raising."""

    def test_pareto_tiny_alpha(self, rng):
        values = sample_many(ParetoSpec(1000.0, 1e-6), rng, 500)
        assert np.isinf(values).any()
        assert np.all(values >= 1000.0)

    def test_weibull_tiny_shape(self, rng):
        values = sample_many(WeibullSpec(1e-6, 10000.0), rng, 500)
        assert np.isinf(values).any()
        assert not np.isnan(values).any()
        assert np.all(values >= 0.0)

    def test_lognormal_wide_sigma(self):
        values = sample_many(LognormalSpec(0.0, 300.0), np.random.default_rng(3), 2000)
        assert np.isinf(values).any()
        assert np.all(values >= 0.0)

    def test_exponential_tiny_rate(self, rng):
        values = sample_many(ExponentialSpec(1e-300), rng, 100)
        assert not np.isnan(values).any()
        assert np.all(values >= 0.0)


class TestConvergence:
    """Sample means converge to the closed-form moments."""

    @pytest.mark.parametrize("spec", [
        TriangularSpec(0.0, 2.0, 10.0),
        PertSpec(0.0, 3.0, 10.0),
        NormalSpec(5.0, 2.0),
        LognormalSpec(1.0, 0.5),
        UniformSpec(2.0, 8.0),
        BetaSpec(2.0, 5.0),
        PoissonSpec(3.5),
        ExponentialSpec(0.5),
        GammaSpec(0.5, 2.0),
        GammaSpec(3.0, 2.0),
        ParetoSpec(1.0, 3.5),
        WeibullSpec(1.5, 2.0),
        NegativeBinomialSpec(3, 0.4),
        BinomialSpec(10, 0.3),
        GeometricSpec(0.25),
        DiscreteUniformSpec(1, 6),
    ], ids=lambda s: s.kind)
    def test_mean_matches_closed_form(self, spec):
        n = 20000
        values = sample_many(spec, np.random.default_rng(2024), n)
        mean, var = distribution_moments(spec)
        tolerance = 5.0 * math.sqrt(var / n) + 1e-9
        assert abs(values.mean() - mean) < tolerance

    def test_variance_matches_closed_form(self):
        spec = TriangularSpec(0.0, 2.0, 10.0)
        values = sample_many(spec, np.random.default_rng(7), 50000)
        _, var = distribution_moments(spec)
        assert values.var(ddof=1) == pytest.approx(var, rel=0.05)

    def test_large_poisson_rate(self):
        # Above the chunk size the rate is split into independent draws
        spec = PoissonSpec(1200.0)
        values = sample_many(spec, np.random.default_rng(11), 500)
        assert abs(values.mean() - 1200.0) < 5.0 * math.sqrt(1200.0 / 500)


class TestDispatch:
    """Distribution spec -> sampler registry."""

    def test_every_spec_type_registered(self):
        assert set(SAMPLERS) == set(SPEC_TYPES)

    def test_unregistered_spec_raises(self, rng):
        with pytest.raises(UnsupportedDistributionError, match="MysterySpec"):
            sample(MysterySpec(), rng)

    def test_seeded_reproducibility(self):
        spec = LognormalSpec(9.0, 0.8)
        a = sample_many(spec, np.random.default_rng(99), 50)
        b = sample_many(spec, np.random.default_rng(99), 50)
        np.testing.assert_array_equal(a, b)

    def test_only_uniform_draws_used(self):
        # Any object exposing random() is an acceptable uniform source
        class Constant:
            def random(self):
                return 0.5

        assert samplers.uniform(Constant(), 0.0, 10.0) == 5.0
        assert samplers.discrete_uniform(Constant(), 1, 4) == 3

    def test_sample_many_empty(self, rng):
        assert len(sample_many(UniformSpec(0.0, 1.0), rng, 0)) == 0
