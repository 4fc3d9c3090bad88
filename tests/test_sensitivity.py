"""Tests for the EAL sensitivity (tornado) analysis."""

import logging

import pandas as pd
import pytest

from riskquant import sensitivity
from riskquant.sensitivity import (
    SENSITIVITY_COLUMNS,
    compute_sensitivity,
    format_sensitivity,
    parameter_swings,
    perturbed_events,
)
from riskquant.simulation import ResultCache
from riskquant.types import (
    DiscreteUniformSpec,
    GeometricSpec,
    RiskEvent,
    SimulationConfig,
    SimulationError,
    TriangularSpec,
    UniformSpec,
)
from riskquant.validation import spec_to_raw

CONFIG = SimulationConfig(iterations=2000)


class TestParameterSwings:
    """Low/high values per perturbable form field."""

    def test_triangular_severity(self):
        swings = parameter_swings('severity', spec_to_raw(TriangularSpec(1000.0, 5000.0, 20000.0)))
        assert swings == [
            ('min', 1000.0, pytest.approx(500.0), pytest.approx(1500.0)),
            ('mode', 5000.0, pytest.approx(3500.0), pytest.approx(6500.0)),
            ('max', 20000.0, pytest.approx(16000.0), pytest.approx(24000.0)),
        ]

    def test_zero_base_skipped(self):
        swings = parameter_swings('severity', spec_to_raw(TriangularSpec(0.0, 5.0, 10.0)))
        assert [key for key, *_ in swings] == ['mode', 'max']

    def test_triangular_frequency_moves_mode_only(self):
        swings = parameter_swings('frequency', spec_to_raw(TriangularSpec(0.1, 0.5, 2.0)))
        assert swings == [('mode', 0.5, pytest.approx(0.25), pytest.approx(0.75))]

    def test_discrete_uniform_shifts(self):
        swings = parameter_swings('frequency', spec_to_raw(DiscreteUniformSpec(1, 10)))
        assert swings == [('min', 1.0, 0.0, 3.0), ('max', 10.0, 8.0, 12.0)]

    def test_unlisted_type(self):
        assert parameter_swings('frequency', spec_to_raw(GeometricSpec(0.2))) == []
        assert parameter_swings('severity', spec_to_raw(DiscreteUniformSpec(1, 10))) == []


class TestPerturbedEvents:
    """One field replaced, the rest of the list untouched."""

    def test_revalidated(self, breach_event):
        events = [breach_event]
        changed = perturbed_events(events, 0, 'severity', 'min', 8000.0)
        # mode 5000 falls below the new min and is clamped up to it
        assert changed[0].severity == TriangularSpec(8000.0, 8000.0, 20000.0)
        assert changed[0].frequency is breach_event.frequency
        assert changed[0].name == breach_event.name

    def test_original_unchanged(self, breach_event, unit_event):
        events = [breach_event, unit_event]
        changed = perturbed_events(events, 1, 'severity', 'max', 50.0)
        assert events[1] is unit_event
        assert changed[0] is breach_event
        assert changed[1].severity == UniformSpec(0.0, 50.0)


class TestComputeSensitivity:
    """Tornado table from seeded reruns."""

    def test_table_shape(self, breach_event):
        frame = compute_sensitivity([breach_event], CONFIG, seed=1)
        assert isinstance(frame, pd.DataFrame)
        assert list(frame.columns) == SENSITIVITY_COLUMNS
        assert len(frame) == 4
        assert list(frame['range']) == sorted(frame['range'], reverse=True)
        assert (frame['negative'] <= 0).all()
        assert (frame['positive'] >= 0).all()

    def test_severity_max_direction(self, breach_event):
        frame = compute_sensitivity([breach_event], CONFIG, seed=1)
        row = frame[(frame['role'] == 'severity') & (frame['parameter'] == 'max')].iloc[0]
        assert row['low_eal'] < row['high_eal']
        assert row['negative'] < 0 < row['positive']
        assert row['range'] == pytest.approx(row['positive'] - row['negative'])

    def test_top_n(self, breach_event):
        assert len(compute_sensitivity([breach_event], CONFIG, seed=1, top_n=1)) == 1
        assert len(compute_sensitivity([breach_event], CONFIG, seed=1, top_n=None)) == 4

    def test_zero_baseline(self, caplog):
        event = RiskEvent(severity=UniformSpec(0.0, 0.0), frequency=TriangularSpec(0.1, 0.5, 2.0))
        with caplog.at_level(logging.WARNING, logger='riskquant.sensitivity'):
            frame = compute_sensitivity([event], CONFIG, seed=1)
        assert frame.empty
        assert list(frame.columns) == SENSITIVITY_COLUMNS
        assert 'baseline EAL' in caplog.text

    def test_cache_reused(self, breach_event):
        cache = ResultCache()
        first = compute_sensitivity([breach_event], CONFIG, seed=1, cache=cache)
        misses = cache.misses
        second = compute_sensitivity([breach_event], CONFIG, seed=1, cache=cache)
        assert cache.misses == misses
        pd.testing.assert_frame_equal(first, second)

    def test_failed_run_skipped(self, breach_event, monkeypatch, caplog):
        real_run = sensitivity.run_monte_carlo

        def run(events, config, seed=None):
            if events[0].severity.high > 20000.0:
                raise SimulationError("Annual loss overflowed: inf")
            return real_run(events, config, seed=seed)

        monkeypatch.setattr(sensitivity, 'run_monte_carlo', run)
        with caplog.at_level(logging.WARNING, logger='riskquant.sensitivity'):
            frame = compute_sensitivity([breach_event], CONFIG, seed=1)
        assert 'max' not in set(frame['parameter'])
        assert len(frame) == 3
        assert 'severity.max skipped' in caplog.text


class TestFormatSensitivity:
    """Console rendering."""

    def test_rows(self, breach_event):
        text = format_sensitivity(compute_sensitivity([breach_event], CONFIG, seed=1))
        assert text.startswith('EAL SENSITIVITY')
        assert 'Customer data breach severity.max' in text
        assert '%' in text

    def test_empty(self):
        text = format_sensitivity(pd.DataFrame(columns=SENSITIVITY_COLUMNS))
        assert 'No parameter could be perturbed' in text
