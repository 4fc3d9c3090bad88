"""Frequency x severity density grids and iso-loss contours."""

from .grid import build_density_grid, MIN_DOMAIN_WIDTH
from .contours import (
    generate_contours,
    contours_for_result,
    iso_loss_polyline,
    percentile_levels,
)

__all__ = [
    "build_density_grid",
    "MIN_DOMAIN_WIDTH",
    "generate_contours",
    "contours_for_result",
    "iso_loss_polyline",
    "percentile_levels",
]
