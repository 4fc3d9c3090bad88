"""
Full pipeline orchestration for risk assessment.

Wires validator, cache, aggregator, density grid and contours together for
end-to-end execution.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .config import DEFAULT_GRID_BINS, DEFAULT_GRID_ITERATIONS, load_scenario_from_json
from .diagnostics import compute_diagnostics
from .heatmap.contours import contours_for_result
from .heatmap.grid import build_density_grid
from .sensitivity import compute_sensitivity
from .simulation.cache import ResultCache
from .simulation.engine import run_monte_carlo, validate_events
from .types import ContourSet, RiskEvent, SimulationConfig, SimulationResult
from .validation import build_events

logger = logging.getLogger(__name__)


def run_risk_assessment(
    events: Sequence[RiskEvent],
    config: Optional[SimulationConfig] = None,
    seed: Optional[int] = None,
    cache: Optional[ResultCache] = None,
    grid_iterations: int = DEFAULT_GRID_ITERATIONS,
    grid_bins: int = DEFAULT_GRID_BINS,
    include_heat_maps: bool = True,
    include_sensitivity: bool = False
) -> Dict:
    """
    Full risk assessment pipeline.

    Steps:
    1. Validate the event list
    2. Run (or fetch from cache) the Monte Carlo aggregation
    3. Build one density grid per event
    4. Draw percentile and VaR/EAL iso-loss contours on each grid
    5. Collect diagnostics
    6. Optionally rerun with each parameter perturbed (tornado table)

    Args:
        events: Risk events (already through the validator)
        config: Iterations and confidence level
        seed: Random seed for reproducibility
        cache: Session cache; a private one is used when omitted
        grid_iterations: Joint samples per heat map
        grid_bins: Bins per heat map axis
        include_heat_maps: Skip grids and contours when False
        include_sensitivity: Add the EAL sensitivity table

    Returns:
        Dict with result, diagnostics, heat_maps, sensitivity (DataFrame or
        None) and metadata, or {'error': message} when the input cannot be
        simulated
    """
    config = config if config is not None else SimulationConfig()
    cache = cache if cache is not None else ResultCache()

    # === VALIDATE ===
    try:
        validate_events(events)
    except ValueError as e:
        logger.warning(f"Rejected event list: {e}")
        return {'error': str(e)}

    # === SIMULATE ===
    logger.info(
        f"Assessing {len(events)} events: {config.iterations} iterations, "
        f"confidence {config.confidence_level}"
    )
    try:
        result = cache.get_or_compute(
            events,
            config,
            lambda: run_monte_carlo(events, config, seed=seed),
            seed=seed,
        )
    except ValueError as e:
        logger.warning(f"Simulation failed: {e}")
        return {'error': str(e)}

    # === HEAT MAPS ===
    heat_maps: List[Dict[str, Any]] = []
    if include_heat_maps:
        try:
            for idx, event in enumerate(events):
                heat_maps.append(_event_heat_map(idx, event, result, seed, grid_iterations, grid_bins))
        except ValueError as e:
            logger.warning(f"Heat map failed: {e}")
            return {'error': str(e)}

    # === DIAGNOSTICS ===
    diagnostics = compute_diagnostics(
        result,
        events=events,
        grid=heat_maps[0]['grid'] if heat_maps else None,
    )

    # === SENSITIVITY ===
    sensitivity = None
    if include_sensitivity:
        sensitivity = compute_sensitivity(events, config, seed=seed, cache=cache)

    return {
        'result': result,
        'diagnostics': diagnostics,
        'heat_maps': heat_maps,
        'sensitivity': sensitivity,
        'metadata': {
            'n_events': len(events),
            'iterations': config.iterations,
            'confidence_level': config.confidence_level,
            'seed': seed,
            'currency': events[0].currency,
            'grid_iterations': grid_iterations if include_heat_maps else 0,
            'cache_hits': cache.hits,
            'cache_misses': cache.misses,
        },
    }


def _event_heat_map(
    idx: int,
    event: RiskEvent,
    result: SimulationResult,
    seed: Optional[int],
    grid_iterations: int,
    grid_bins: int
) -> Dict[str, Any]:
    """Density grid and contours for one event, seeded off the run seed."""
    grid_seed = None if seed is None else seed + 1 + idx
    grid = build_density_grid(
        event.frequency,
        event.severity,
        n_iterations=grid_iterations,
        bins=grid_bins,
        seed=grid_seed,
    )
    contours = contours_for_result(grid, result)
    logger.info(
        f"Heat map {idx}: {grid.total_samples} samples binned, "
        f"{sum(1 for level in contours if not level.is_empty)}/{len(contours)} "
        f"contours intersect"
    )
    return {
        'event_index': idx,
        'name': event.name,
        'grid': grid,
        'contours': contours,
    }


def run_scenario_file(
    path: str,
    iterations: Optional[int] = None,
    confidence_level: Optional[float] = None,
    seed: Optional[int] = None,
    **kwargs
) -> Dict:
    """
    Load a scenario JSON and run the full assessment.

    Command-line overrides win over values stored in the file.
    """
    try:
        events, config, file_seed = load_scenario_from_json(path)
        if iterations is not None or confidence_level is not None:
            config = SimulationConfig(
                iterations=iterations if iterations is not None else config.iterations,
                confidence_level=(
                    confidence_level if confidence_level is not None
                    else config.confidence_level
                ),
            )
    except ValueError as e:
        return {'error': str(e)}

    return run_risk_assessment(
        events,
        config,
        seed=seed if seed is not None else file_seed,
        **kwargs
    )


def run_raw_assessment(records: Sequence[Dict[str, Any]], **kwargs) -> Dict:
    """Validate raw form records into events and assess them."""
    try:
        events = build_events(records)
    except ValueError as e:
        return {'error': str(e)}
    return run_risk_assessment(events, **kwargs)


def contours_to_dict(contours: ContourSet) -> List[Dict[str, Any]]:
    """Serializable form of a contour set."""
    return [
        {
            'label': level.label,
            'value': level.value,
            'kind': level.kind.value,
            'std_dev': level.std_dev,
            'band': level.band,
            'points': level.points.tolist(),
        }
        for level in contours
    ]


def results_to_dict(results: Dict) -> Dict:
    """JSON-ready view of run_risk_assessment output."""
    if 'error' in results:
        return {'error': results['error']}

    return {
        'result': results['result'].to_dict(),
        'diagnostics': results['diagnostics'],
        'heat_maps': [
            {
                'event_index': hm['event_index'],
                'name': hm['name'],
                'frequency_range': list(hm['grid'].frequency_range),
                'severity_range': list(hm['grid'].severity_range),
                'probability_mass': hm['grid'].probability_mass.tolist(),
                'normalized_density': hm['grid'].normalized_density.tolist(),
                'contours': contours_to_dict(hm['contours']),
            }
            for hm in results['heat_maps']
        ],
        'sensitivity': (
            results['sensitivity'].to_dict(orient='records')
            if results.get('sensitivity') is not None else None
        ),
        'metadata': results['metadata'],
    }
