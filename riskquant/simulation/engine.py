"""
Monte Carlo aggregation of risk events into an annual-loss distribution.

Each trial samples every event's annual occurrence count, draws that many
severities, and sums the losses. Fractional counts are honoured: for a
sampled frequency f, floor(f) severities are always drawn and one more is
drawn with probability f - floor(f), so sub-1 average frequencies carry
their full expected loss.
"""

import math
import threading
from typing import Optional, Sequence
import logging

import numpy as np

from ..types import (
    DistributionSpec,
    MalformedEventError,
    RiskEvent,
    SimulationCancelled,
    SimulationConfig,
    SimulationError,
    SimulationResult,
    order_statistic_index,
)
from ..distributions.samplers import sample

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 10000
CANCEL_CHECK_EVERY = 500
# Per-event yearly occurrence ceiling; larger frequency samples raise SimulationError
MAX_OCCURRENCES = 1_000_000


def validate_events(events: Sequence[RiskEvent]) -> None:
    """
    Fail fast on an event list that cannot be simulated.

    Raises:
        MalformedEventError: On an empty/None list, a non-RiskEvent entry,
            or a missing/invalid severity or frequency spec, naming the
            offending index
    """
    if events is None:
        raise MalformedEventError("Risk event list is None")
    if isinstance(events, (str, bytes)) or not isinstance(events, Sequence):
        raise MalformedEventError(
            f"Risk events must be a sequence of RiskEvent, got {type(events).__name__}"
        )
    if len(events) == 0:
        raise MalformedEventError("Risk event list is empty; nothing to simulate")

    for idx, event in enumerate(events):
        if not isinstance(event, RiskEvent):
            raise MalformedEventError(
                f"events[{idx}] must be a RiskEvent, got {type(event).__name__}"
            )
        for role in ('severity', 'frequency'):
            spec = getattr(event, role)
            if not isinstance(spec, DistributionSpec):
                label = f" ({event.name})" if event.name else ''
                raise MalformedEventError(
                    f"events[{idx}]{label}.{role} must be a DistributionSpec, "
                    f"got {type(spec).__name__}"
                )


def _finite_severity(event: RiskEvent, rng: np.random.Generator) -> float:
    loss = float(sample(event.severity, rng))
    if not math.isfinite(loss):
        raise SimulationError(
            f"Severity sample for {event.severity.kind} is not finite: {loss}"
        )
    return loss


def simulate_annual_loss(events: Sequence[RiskEvent], rng: np.random.Generator) -> float:
    """
    Total loss of one simulated year across all events.

    Raises:
        SimulationError: If a frequency or severity sample, or the year's
            total, is not finite
    """
    total_loss = 0.0

    for event in events:
        sampled_freq = float(sample(event.frequency, rng))
        if not math.isfinite(sampled_freq):
            raise SimulationError(
                f"Frequency sample for {event.frequency.kind} is not finite: {sampled_freq}"
            )
        if sampled_freq > MAX_OCCURRENCES:
            raise SimulationError(
                f"Frequency sample for {event.frequency.kind} exceeds "
                f"{MAX_OCCURRENCES} occurrences: {sampled_freq}"
            )
        sampled_freq = max(0.0, sampled_freq)

        whole_events = int(math.floor(sampled_freq))
        fractional_part = sampled_freq - whole_events

        for _ in range(whole_events):
            total_loss += _finite_severity(event, rng)

        if fractional_part > 0 and rng.random() < fractional_part:
            total_loss += _finite_severity(event, rng)

    if not math.isfinite(total_loss):
        raise SimulationError(f"Annual loss overflowed: {total_loss}")
    return total_loss


def run_monte_carlo(
    events: Sequence[RiskEvent],
    config: Optional[SimulationConfig] = None,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    cancel_event: Optional[threading.Event] = None
) -> SimulationResult:
    """
    Simulate annual losses and derive VaR and EAL.

    VaR is the order statistic at index floor(confidence_level * N) of the
    ascending losses, clamped into [0, N-1]. It is deliberately not
    interpolated. EAL is the arithmetic mean of all N losses.

    Args:
        events: Risk events to aggregate
        config: Iterations and confidence level (defaults to 10000 / 0.95)
        seed: Seed for a fresh generator (ignored when rng is given)
        rng: Uniform source shared with the caller
        cancel_event: When set, the run stops with SimulationCancelled

    Returns:
        Immutable SimulationResult

    Raises:
        MalformedEventError: Before any sampling, for an unusable event list
        SimulationError: If a sample or an annual total is not finite
        SimulationCancelled: If cancel_event is set mid-run
    """
    validate_events(events)
    if config is None:
        config = SimulationConfig()
    if rng is None:
        rng = np.random.default_rng(seed)

    n_iter = config.iterations
    annual_losses = np.empty(n_iter, dtype=np.float64)

    logger.debug(f"Simulating {n_iter} years across {len(events)} events")

    for trial in range(n_iter):
        if cancel_event is not None and trial % CANCEL_CHECK_EVERY == 0 and cancel_event.is_set():
            raise SimulationCancelled(f"Simulation cancelled after {trial}/{n_iter} trials")

        annual_losses[trial] = simulate_annual_loss(events, rng)

        if (trial + 1) % PROGRESS_EVERY == 0:
            logger.info(f"Monte Carlo: {trial + 1}/{n_iter} trials")

    annual_losses.sort()
    var_index = order_statistic_index(config.confidence_level, n_iter)
    value_at_risk = float(annual_losses[var_index])
    expected_annual_loss = float(annual_losses.mean())

    logger.info(
        f"Monte Carlo done: EAL={expected_annual_loss:.2f}, "
        f"VaR({config.confidence_level:.0%})={value_at_risk:.2f}"
    )

    return SimulationResult(
        expected_annual_loss=expected_annual_loss,
        value_at_risk=value_at_risk,
        annual_losses=annual_losses,
        confidence_level=config.confidence_level,
    )
