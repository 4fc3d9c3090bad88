"""Distribution samplers, plotting ranges and closed-form curves."""

from .samplers import sample, sample_many, SAMPLERS
from .ranges import distribution_range
from .closed_form import (
    erf,
    normal_cdf,
    log_gamma,
    gamma_function,
    regularized_incomplete_beta,
    regularized_lower_gamma,
    distribution_moments,
)
from .curves import pdf_curve, cdf_curve

__all__ = [
    "sample",
    "sample_many",
    "SAMPLERS",
    "distribution_range",
    "erf",
    "normal_cdf",
    "log_gamma",
    "gamma_function",
    "regularized_incomplete_beta",
    "regularized_lower_gamma",
    "distribution_moments",
    "pdf_curve",
    "cdf_curve",
]
