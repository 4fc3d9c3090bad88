"""Tests for the Monte Carlo aggregator."""

import math
import threading

import numpy as np
import pytest

from riskquant.simulation import engine
from riskquant.simulation.engine import run_monte_carlo, simulate_annual_loss, validate_events
from riskquant.types import (
    MalformedEventError,
    NormalSpec,
    PoissonSpec,
    RiskEvent,
    SimulationCancelled,
    SimulationConfig,
    SimulationError,
    TriangularSpec,
    UniformSpec,
)
from riskquant.validation import build_distribution


def constant_event(loss: float, per_year: float = 1.0) -> RiskEvent:
    return RiskEvent(
        severity=UniformSpec(loss, loss),
        frequency=UniformSpec(per_year, per_year),
    )


class TestAggregation:
    """VaR and EAL on scenarios with known answers."""

    def test_eal_converges(self, unit_event):
        result = run_monte_carlo([unit_event], SimulationConfig(iterations=100000), seed=42)
        assert result.expected_annual_loss == pytest.approx(50.0, rel=0.02)

    def test_constant_loss(self):
        result = run_monte_carlo([constant_event(7.0)], SimulationConfig(iterations=500), seed=1)
        assert result.value_at_risk == 7.0
        assert result.expected_annual_loss == pytest.approx(7.0)
        assert np.all(result.annual_losses == 7.0)

    def test_events_are_summed(self):
        events = [constant_event(7.0), constant_event(3.0, per_year=2.0)]
        result = run_monte_carlo(events, SimulationConfig(iterations=100), seed=1)
        assert result.expected_annual_loss == pytest.approx(13.0)

    def test_fractional_frequency(self):
        # 0.5 occurrences per year: a loss of 10 in about half the years
        result = run_monte_carlo(
            [constant_event(10.0, per_year=0.5)], SimulationConfig(iterations=20000), seed=3
        )
        assert set(np.unique(result.annual_losses)) == {0.0, 10.0}
        assert result.expected_annual_loss == pytest.approx(5.0, abs=0.3)

    def test_negative_frequency_contributes_nothing(self):
        event = RiskEvent(severity=UniformSpec(10.0, 10.0), frequency=NormalSpec(-50.0, 1.0))
        result = run_monte_carlo([event], SimulationConfig(iterations=200), seed=5)
        assert result.expected_annual_loss == 0.0
        assert result.value_at_risk == 0.0

    def test_losses_sorted_and_sized(self, breach_event):
        result = run_monte_carlo([breach_event], SimulationConfig(iterations=2000), seed=8)
        assert result.iterations == 2000
        assert np.all(np.diff(result.annual_losses) >= 0)

    def test_var_is_order_statistic(self, breach_event):
        config = SimulationConfig(iterations=1000, confidence_level=0.9)
        result = run_monte_carlo([breach_event], config, seed=21)
        assert result.value_at_risk == result.annual_losses[900]

    def test_reference_scenario(self, breach_event):
        result = run_monte_carlo([breach_event], SimulationConfig(iterations=20000), seed=2024)
        assert math.isfinite(result.expected_annual_loss)
        assert result.expected_annual_loss > 0
        assert result.value_at_risk >= result.expected_annual_loss
        # E[freq] * E[sev] = 0.8667 * 8666.7
        assert result.expected_annual_loss == pytest.approx(7511.1, rel=0.05)


class TestEdgeCases:
    """Small N and extreme confidence levels."""

    def test_single_iteration(self, breach_event):
        result = run_monte_carlo([breach_event], SimulationConfig(iterations=1), seed=4)
        assert result.iterations == 1
        assert result.value_at_risk == result.expected_annual_loss == result.annual_losses[0]

    def test_confidence_near_one(self, unit_event):
        result = run_monte_carlo(
            [unit_event], SimulationConfig(iterations=10, confidence_level=0.999), seed=6
        )
        assert result.value_at_risk == result.annual_losses[-1]

    def test_confidence_near_zero(self, unit_event):
        result = run_monte_carlo(
            [unit_event], SimulationConfig(iterations=10, confidence_level=0.001), seed=6
        )
        assert result.value_at_risk == result.annual_losses[0]

    def test_default_config(self, unit_event):
        result = run_monte_carlo([unit_event], seed=10)
        assert result.iterations == 10000
        assert result.confidence_level == 0.95


class TestReproducibility:
    """Seeded runs are repeatable."""

    def test_same_seed_same_result(self, breach_event):
        config = SimulationConfig(iterations=3000)
        a = run_monte_carlo([breach_event], config, seed=77)
        b = run_monte_carlo([breach_event], config, seed=77)
        np.testing.assert_array_equal(a.annual_losses, b.annual_losses)
        assert a.value_at_risk == b.value_at_risk

    def test_injected_generator(self, breach_event):
        config = SimulationConfig(iterations=500)
        a = run_monte_carlo([breach_event], config, rng=np.random.default_rng(5))
        b = run_monte_carlo([breach_event], config, seed=5)
        np.testing.assert_array_equal(a.annual_losses, b.annual_losses)


class TestMalformedInput:
    """Bad event lists fail before any sampling."""

    def test_empty_list(self):
        with pytest.raises(MalformedEventError, match="empty"):
            run_monte_carlo([])

    def test_none(self):
        with pytest.raises(MalformedEventError):
            validate_events(None)

    def test_non_event_entry(self, unit_event):
        with pytest.raises(MalformedEventError, match=r"events\[1\]"):
            run_monte_carlo([unit_event, {'severity': 1}])

    def test_missing_spec(self):
        bad = RiskEvent(severity=None, frequency=PoissonSpec(1.0), name='broken')
        with pytest.raises(MalformedEventError, match=r"events\[0\] \(broken\)\.severity"):
            run_monte_carlo([bad])

    def test_non_finite_frequency(self, unit_event, monkeypatch):
        monkeypatch.setattr(engine, 'sample', lambda spec, rng: float('nan'))
        with pytest.raises(SimulationError, match="not finite"):
            simulate_annual_loss([unit_event], np.random.default_rng(0))


class TestNonFiniteLosses:
    """Inf or oversized draws from floored specs raise SimulationError."""

    @pytest.mark.parametrize('kind, raw', [
        ('pareto', {'alpha': 0}),
        ('weibull', {'k': 0}),
        ('lognormal', {'stdDev': 300}),
    ])
    def test_floored_severity_raises(self, kind, raw):
        event = RiskEvent(
            severity=build_distribution(kind, raw),
            frequency=UniformSpec(1.0, 1.0),
        )
        with pytest.raises(SimulationError, match="Severity sample .* not finite"):
            run_monte_carlo([event], SimulationConfig(iterations=5000), seed=7)

    def test_non_finite_severity(self, unit_event, monkeypatch):
        monkeypatch.setattr(
            engine, 'sample',
            lambda spec, rng: 1.0 if spec is unit_event.frequency else math.inf
        )
        with pytest.raises(SimulationError, match="Severity sample for uniform is not finite"):
            simulate_annual_loss([unit_event], np.random.default_rng(0))

    def test_occurrence_ceiling(self, unit_event, monkeypatch):
        monkeypatch.setattr(
            engine, 'sample',
            lambda spec, rng: 1e9 if spec is unit_event.frequency else 1.0
        )
        with pytest.raises(SimulationError, match="exceeds"):
            simulate_annual_loss([unit_event], np.random.default_rng(0))

    def test_total_overflow(self):
        with pytest.raises(SimulationError, match="overflowed"):
            run_monte_carlo([constant_event(1e308, per_year=2.0)], SimulationConfig(iterations=10), seed=1)


class TestCancellation:
    """A set cancel event stops the run."""

    def test_cancelled_before_start(self, unit_event):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(SimulationCancelled):
            run_monte_carlo([unit_event], SimulationConfig(iterations=1000), seed=1, cancel_event=cancel)

    def test_unset_event_runs_to_completion(self, unit_event):
        cancel = threading.Event()
        result = run_monte_carlo([unit_event], SimulationConfig(iterations=1000), seed=1, cancel_event=cancel)
        assert result.iterations == 1000
