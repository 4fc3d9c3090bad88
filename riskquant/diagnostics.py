"""
Result diagnostics.

Percentile tables, per-event contribution, closed-form sanity checks and
console formatting for a SimulationResult.
"""

import math
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .distributions.closed_form import distribution_moments
from .types import DensityGrid, RiskEvent, SimulationResult

# Quantiles shown in the percentile table
TABLE_PERCENTILES = (0.50, 0.75, 0.90, 0.95, 0.99)

CURRENCY_SYMBOLS: Dict[str, str] = {
    'USD': '$',
    'EUR': '€',
    'GBP': '£',
    'JPY': '¥',
}


def format_currency(value: float, currency: str = 'USD') -> str:
    """'$12,345' style; unknown codes are suffixed instead."""
    if not math.isfinite(value):
        return str(value)
    symbol = CURRENCY_SYMBOLS.get(currency)
    if symbol is None:
        return f"{value:,.0f} {currency}"
    return f"{symbol}{value:,.0f}"


# =============================================================================
# Percentiles
# =============================================================================

def percentile_table(
    result: SimulationResult,
    percentiles: Sequence[float] = TABLE_PERCENTILES
) -> pd.DataFrame:
    """
    Annual-loss quantiles of a result.

    Uses the same order-statistic rule as VaR, so the row at the result's
    confidence level equals its value_at_risk.

    Returns:
        DataFrame with columns percentile, annual_loss
    """
    rows = [
        {'percentile': q, 'annual_loss': result.percentile(q)}
        for q in percentiles
    ]
    return pd.DataFrame(rows, columns=['percentile', 'annual_loss'])


def exceedance_probability(result: SimulationResult, threshold: float) -> float:
    """Fraction of simulated years whose loss is strictly above threshold."""
    if result.iterations == 0:
        return 0.0
    above = result.iterations - np.searchsorted(result.annual_losses, threshold, side='right')
    return float(above / result.iterations)


# =============================================================================
# Closed-form expectations
# =============================================================================

def analytic_expected_loss(events: Sequence[RiskEvent]) -> float:
    """
    Sum of E[frequency] x E[severity] over events.

    Fractional frequencies are handled in the simulation so that
    E[occurrences] = E[max(0, frequency)]; for the non-negative families
    this is E[frequency]. Normal frequencies with mass below zero are
    therefore slightly under-counted here.
    """
    total = 0.0
    for event in events:
        freq_mean, _ = distribution_moments(event.frequency)
        sev_mean, _ = distribution_moments(event.severity)
        total += max(0.0, freq_mean) * sev_mean
    return total


def event_breakdown(events: Sequence[RiskEvent]) -> List[Dict]:
    """Per-event closed-form expected loss and share of the total."""
    contributions = []
    for idx, event in enumerate(events):
        freq_mean, _ = distribution_moments(event.frequency)
        sev_mean, _ = distribution_moments(event.severity)
        contributions.append({
            'index': idx,
            'name': event.name or f"event_{idx}",
            'frequency_type': event.frequency.kind,
            'severity_type': event.severity.kind,
            'expected_frequency': freq_mean,
            'expected_severity': sev_mean,
            'expected_loss': max(0.0, freq_mean) * sev_mean,
        })

    total = sum(c['expected_loss'] for c in contributions)
    for c in contributions:
        c['share'] = c['expected_loss'] / total if total > 0 and math.isfinite(total) else 0.0
    return contributions


# =============================================================================
# Summary
# =============================================================================

def compute_diagnostics(
    result: SimulationResult,
    events: Optional[Sequence[RiskEvent]] = None,
    grid: Optional[DensityGrid] = None
) -> Dict:
    """
    Collect summary statistics for a run.

    Args:
        result: Monte Carlo output
        events: Events the result was computed from (enables the
            closed-form comparison and per-event breakdown)
        grid: First event's density grid (adds its sampling summary)

    Returns:
        JSON-serializable dict
    """
    losses = result.annual_losses
    diag: Dict = {
        'summary': {
            **result.to_dict(),
            'eal_standard_error': result.eal_standard_error,
            'min': float(losses[0]) if len(losses) else 0.0,
            'max': float(losses[-1]) if len(losses) else 0.0,
            'p_zero_loss': float(np.mean(losses == 0)) if len(losses) else 0.0,
            'p_exceeds_eal': exceedance_probability(result, result.expected_annual_loss),
        },
        'percentiles': percentile_table(result).to_dict(orient='records'),
    }

    if events is not None:
        analytic = analytic_expected_loss(events)
        diag['analytic'] = {
            'expected_annual_loss': analytic,
            'relative_error': (
                (result.expected_annual_loss - analytic) / analytic
                if analytic > 0 and math.isfinite(analytic) else None
            ),
        }
        diag['events'] = event_breakdown(events)

    if grid is not None:
        diag['grid'] = {
            'shape': list(grid.shape),
            'frequency_range': list(grid.frequency_range),
            'severity_range': list(grid.severity_range),
            'total_samples': grid.total_samples,
            'discarded': grid.discarded,
            'max_density': grid.max_density,
        }

    return diag


def format_diagnostics(diag: Dict, currency: str = 'USD') -> str:
    """Format diagnostics dict into readable console output."""
    lines = []
    lines.append("RISK DIAGNOSTICS")
    lines.append("=" * 60)

    summary = diag['summary']
    level = summary['confidence_level']
    lines.append(f"\n  Expected annual loss: {format_currency(summary['expected_annual_loss'], currency)}"
                 f" (± {format_currency(summary['eal_standard_error'], currency)} s.e.)")
    lines.append(f"  VaR @ {level:.0%}:          {format_currency(summary['value_at_risk'], currency)}")
    lines.append(f"  Std dev:              {format_currency(summary['std_dev'], currency)}")
    lines.append(
        f"  Range: {format_currency(summary['min'], currency)} - "
        f"{format_currency(summary['max'], currency)} | "
        f"P(no loss)={summary['p_zero_loss']:.1%} | "
        f"P(loss > EAL)={summary['p_exceeds_eal']:.1%}"
    )

    lines.append(f"\n  Annual loss percentiles:")
    for row in diag['percentiles']:
        lines.append(f"    P{row['percentile'] * 100:<5.0f} {format_currency(row['annual_loss'], currency)}")

    if 'analytic' in diag:
        an = diag['analytic']
        err = an['relative_error']
        err_str = f"{err:+.1%}" if err is not None else "n/a"
        lines.append(
            f"\n  Closed-form EAL: {format_currency(an['expected_annual_loss'], currency)} "
            f"(simulated {err_str})"
        )

    if 'events' in diag:
        lines.append(f"\n  Event contributions:")
        for e in diag['events']:
            lines.append(
                f"    {e['name']:<25} {format_currency(e['expected_loss'], currency)} "
                f"({e['share'] * 100:.0f}%)"
            )

    if 'grid' in diag:
        g = diag['grid']
        lines.append(
            f"\n  Heat map: {g['shape'][0]}x{g['shape'][1]} bins, "
            f"{g['total_samples']} samples, {g['discarded']} discarded"
        )

    return "\n".join(lines)
