"""Shared fixtures for the riskquant test suite."""

import numpy as np
import pytest

from riskquant.types import (
    DensityGrid,
    RiskEvent,
    TriangularSpec,
    UniformSpec,
)


@pytest.fixture
def rng():
    return np.random.default_rng(12345)


@pytest.fixture
def breach_event():
    """Triangular severity and frequency, the reference end-to-end scenario."""
    return RiskEvent(
        severity=TriangularSpec(1000.0, 5000.0, 20000.0),
        frequency=TriangularSpec(0.1, 0.5, 2.0),
        name='Customer data breach',
        currency='USD',
    )


@pytest.fixture
def unit_event():
    """Exactly one Uniform(0, 100) loss per year."""
    return RiskEvent(
        severity=UniformSpec(0.0, 100.0),
        frequency=TriangularSpec(1.0, 1.0, 1.0),
    )


@pytest.fixture
def flat_grid():
    """Uniform 20x20 grid over frequency [1, 2] x severity [100, 200]."""
    return DensityGrid(
        frequency_range=(1.0, 2.0),
        severity_range=(100.0, 200.0),
        frequency_bin_width=0.05,
        severity_bin_width=5.0,
        counts=np.ones((20, 20), dtype=np.int64),
        total_samples=400,
    )
