"""Processing utilities: risk-factor changes, calendar blocks, block maxima."""

from market_extremes.processing.block_maxima import block_sizes, extract_block_maxima
from market_extremes.processing.periods import Granularity, parse_granularity, resolve_endpoints
from market_extremes.processing.returns import (
    compute_risk_factor_changes,
    cumulative_drop,
    log_to_simple_loss,
    slice_window,
)

__all__ = [
    "Granularity",
    "block_sizes",
    "compute_risk_factor_changes",
    "cumulative_drop",
    "extract_block_maxima",
    "log_to_simple_loss",
    "parse_granularity",
    "resolve_endpoints",
    "slice_window",
]
