"""
Command-line interface for the risk quantification engine.
"""

import click
import json
import logging

import pandas as pd

from .config import SCENARIO_PRESETS, DEFAULT_GRID_ITERATIONS, scenario_from_dict
from .diagnostics import format_diagnostics
from .pipeline import run_risk_assessment, run_scenario_file, results_to_dict
from .sensitivity import format_sensitivity
from .types import SimulationConfig


@click.command()
@click.argument('scenario_json', type=click.Path(exists=True), required=False)
@click.option(
    '--preset', '-p',
    type=click.Choice(list(SCENARIO_PRESETS.keys())),
    help='Run a built-in sample scenario instead of a file'
)
@click.option(
    '--iterations', '-n',
    type=int,
    default=None,
    help='Simulated years (overrides the scenario, default: 10000)'
)
@click.option(
    '--confidence-level', '-c',
    type=float,
    default=None,
    help='VaR confidence level in (0, 1) (overrides the scenario, default: 0.95)'
)
@click.option(
    '--seed',
    type=int,
    help='Random seed for reproducibility'
)
@click.option(
    '--grid-iterations',
    type=int,
    default=DEFAULT_GRID_ITERATIONS,
    help=f'Joint samples per heat map (default: {DEFAULT_GRID_ITERATIONS}, minimum 1000)'
)
@click.option(
    '--no-heat-maps',
    is_flag=True,
    default=False,
    help='Skip density grids and contours'
)
@click.option(
    '--sensitivity',
    is_flag=True,
    default=False,
    help='Rerun with each parameter perturbed and print the EAL tornado table'
)
@click.option(
    '--output', '-o',
    type=click.Path(),
    help='Output file for results JSON'
)
@click.option(
    '--cells-csv',
    type=click.Path(),
    help='Write every heat map cell (one row per cell) to this CSV'
)
@click.option(
    '--verbose/--quiet', '-v/-q',
    default=True,
    help='Verbose output'
)
def main(
    scenario_json,
    preset,
    iterations,
    confidence_level,
    seed,
    grid_iterations,
    no_heat_maps,
    sensitivity,
    output,
    cells_csv,
    verbose
):
    """
    Run a loss-exceedance risk assessment.

    SCENARIO_JSON: Path to the scenario JSON file
    """
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Validate critical numeric parameters
    if iterations is not None and iterations <= 0:
        raise click.BadParameter("iterations must be a positive integer", param_hint="'--iterations'")
    if confidence_level is not None and not 0.0 < confidence_level < 1.0:
        raise click.BadParameter(
            "confidence-level must be strictly between 0 and 1",
            param_hint="'--confidence-level'"
        )
    if grid_iterations <= 0:
        raise click.BadParameter(
            "grid-iterations must be a positive integer", param_hint="'--grid-iterations'"
        )
    if scenario_json and preset:
        raise click.BadParameter("Give either SCENARIO_JSON or --preset, not both")
    if not scenario_json and not preset:
        raise click.BadParameter("A SCENARIO_JSON file or a --preset is required")

    click.echo("Running risk assessment...")
    click.echo(f"  Scenario: {scenario_json or preset}")
    if seed is not None:
        click.echo(f"  Seed: {seed}")
    click.echo(f"  Heat maps: {'off' if no_heat_maps else f'{grid_iterations} samples each'}")

    pipeline_kwargs = dict(
        grid_iterations=grid_iterations,
        include_heat_maps=not no_heat_maps,
        include_sensitivity=sensitivity,
    )
    if scenario_json:
        results = run_scenario_file(
            scenario_json,
            iterations=iterations,
            confidence_level=confidence_level,
            seed=seed,
            **pipeline_kwargs
        )
    else:
        events, config, preset_seed = scenario_from_dict(SCENARIO_PRESETS[preset])
        config = SimulationConfig(
            iterations=iterations if iterations is not None else config.iterations,
            confidence_level=(
                confidence_level if confidence_level is not None else config.confidence_level
            ),
        )
        results = run_risk_assessment(
            events,
            config,
            seed=seed if seed is not None else preset_seed,
            **pipeline_kwargs
        )

    if 'error' in results:
        click.echo(f"Error: {results['error']}", err=True)
        raise SystemExit(1)

    currency = results['metadata']['currency']
    click.echo("\n" + format_diagnostics(results['diagnostics'], currency=currency))

    for hm in results['heat_maps']:
        drawn = [level.label for level in hm['contours'] if not level.is_empty]
        click.echo(
            f"\n  Heat map {hm['event_index']} ({hm['name'] or 'unnamed'}): "
            f"contours {', '.join(drawn) if drawn else 'none in range'}"
        )

    if results['sensitivity'] is not None:
        click.echo("\n" + format_sensitivity(results['sensitivity']))

    if cells_csv:
        frames = []
        for hm in results['heat_maps']:
            frame = hm['grid'].to_frame()
            frame.insert(0, 'event_index', hm['event_index'])
            frames.append(frame)
        if frames:
            pd.concat(frames, ignore_index=True).to_csv(cells_csv, index=False)
            click.echo(f"\nHeat map cells exported to {cells_csv}")
        else:
            click.echo("\nNo heat maps computed; skipping cells CSV")

    if output:
        with open(output, 'w') as f:
            json.dump(results_to_dict(results), f, indent=2)
        click.echo(f"Results saved to {output}")


if __name__ == '__main__':
    main()
