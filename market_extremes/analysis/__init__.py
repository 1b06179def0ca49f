"""Statistical analysis routines: GEV distribution, ML fitting, exceedance and return metrics."""

from market_extremes.analysis.gev import GEVParameters, cdf, log_density, quantile, sf
from market_extremes.analysis.gev_fit import GEVFitResult, GEVStandardErrors, estimate_parameters, fit_gev
from market_extremes.analysis.probabilities import (
    exceedance_probability,
    return_level,
    return_period,
    return_period_bootstrap,
)

__all__ = [
    "GEVFitResult",
    "GEVParameters",
    "GEVStandardErrors",
    "cdf",
    "estimate_parameters",
    "exceedance_probability",
    "fit_gev",
    "log_density",
    "quantile",
    "return_level",
    "return_period",
    "return_period_bootstrap",
    "sf",
]
