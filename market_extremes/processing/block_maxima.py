"""Block maxima extraction (the "M" series of the Block Maxima Method)."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Union

import numpy as np
import pandas as pd

from market_extremes.errors import EmptyInputError, InsufficientBlocksError, InvalidArgumentError
from market_extremes.processing.periods import Granularity, resolve_endpoints

logger = logging.getLogger(__name__)

EndpointResolver = Callable[..., np.ndarray]


def ensure_time_series(series: pd.Series) -> pd.Series:
    """Return a float copy with a strictly increasing ``DatetimeIndex``."""
    if not isinstance(series, pd.Series):
        raise InvalidArgumentError(f"expected a pandas Series, got {type(series).__name__}")
    series = series.astype(float)
    if not isinstance(series.index, pd.DatetimeIndex):
        series = series.copy()
        series.index = pd.to_datetime(series.index)
    if not series.index.is_monotonic_increasing or series.index.has_duplicates:
        raise InvalidArgumentError("time series timestamps must be strictly increasing")
    return series


def _block_bounds(
    series: pd.Series,
    granularity: Union[str, Granularity],
    custom_endpoints: Optional[Iterable],
    resolver: EndpointResolver,
) -> list[tuple[int, int]]:
    ends = np.asarray(resolver(series.index, granularity, custom_endpoints), dtype=int)
    if ends.size == 0 or ends[-1] != len(series) - 1 or np.any(np.diff(ends) <= 0) or ends[0] < 0:
        raise InvalidArgumentError("endpoint resolver must return increasing positions ending at the last observation")
    starts = np.concatenate(([0], ends[:-1] + 1))
    return list(zip(starts.tolist(), ends.tolist()))


def block_sizes(
    series: pd.Series,
    granularity: Union[str, Granularity],
    custom_endpoints: Optional[Iterable] = None,
    resolver: EndpointResolver = resolve_endpoints,
) -> pd.Series:
    """Number of observations in each block, indexed by the block's last timestamp."""
    series = ensure_time_series(series)
    if series.empty:
        raise EmptyInputError("cannot partition an empty series")
    bounds = _block_bounds(series, granularity, custom_endpoints, resolver)
    return pd.Series(
        [end - start + 1 for start, end in bounds],
        index=series.index[[end for _, end in bounds]],
        name="block_size",
    )


def extract_block_maxima(
    series: pd.Series,
    granularity: Union[str, Granularity] = Granularity.YEARLY,
    custom_endpoints: Optional[Iterable] = None,
    min_blocks: int = 2,
    min_obs_per_block: int = 1,
    resolver: EndpointResolver = resolve_endpoints,
) -> pd.Series:
    """Reduce each calendar block of ``series`` to its maximum.

    Args:
        series: Risk-factor changes indexed by strictly increasing timestamps.
        granularity: Block rule, see ``market_extremes.processing.periods``.
        custom_endpoints: Block end timestamps for ``Granularity.CUSTOM``.
        min_blocks: Fewer resulting blocks raise ``InsufficientBlocksError``.
        min_obs_per_block: Blocks with fewer observations are dropped so that thinly
            sampled periods do not bias the fit. The default keeps every block.
        resolver: Period-boundary resolver returning block end positions.

    Returns:
        Series named ``block_max`` indexed by the timestamp of each block's last observation.
    """
    series = ensure_time_series(series)
    if series.empty:
        raise EmptyInputError("cannot extract block maxima from an empty series")

    values = series.to_numpy()
    labels = []
    maxima = []
    dropped = 0
    for start, end in _block_bounds(series, granularity, custom_endpoints, resolver):
        block = values[start : end + 1]
        block = block[~np.isnan(block)]
        # Skip empty or poorly sampled blocks.
        if block.size == 0 or block.size < min_obs_per_block:
            dropped += 1
            continue
        labels.append(series.index[end])
        maxima.append(float(block.max()))

    if dropped:
        logger.info("Dropped %d block(s) with fewer than %d valid observations", dropped, min_obs_per_block)
    result = pd.Series(maxima, index=pd.DatetimeIndex(labels, name=series.index.name), name="block_max")
    if len(result) < min_blocks:
        raise InsufficientBlocksError(
            f"{len(result)} block(s) found; at least {min_blocks} needed to fit a GEV"
        )
    return result
