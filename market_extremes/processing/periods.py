"""Calendar period boundaries for block partitions.

``resolve_endpoints`` plays the role of xts' ``endpoints()``: it returns the 0-based
position of the last observation in every block, in order, always ending with the last
observation so a trailing partial period forms its own block.

Recognised granularities:

- ``YEARLY``: blocks end at calendar year ends.
- ``HALF_YEARLY``: blocks end at June 30 and December 31, i.e. every second quarter end.
- ``QUARTERLY``: blocks end at calendar quarter ends.
- ``MONTHLY``: blocks end at calendar month ends.
- ``CUSTOM``: blocks end at the last observation on or before each caller-supplied
  timestamp; observations after the final endpoint form one more block.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd

from market_extremes.errors import InvalidArgumentError


class Granularity(str, Enum):
    YEARLY = "yearly"
    HALF_YEARLY = "half-yearly"
    QUARTERLY = "quarterly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


_ALIASES = {
    "yearly": Granularity.YEARLY,
    "year": Granularity.YEARLY,
    "years": Granularity.YEARLY,
    "annual": Granularity.YEARLY,
    "half-yearly": Granularity.HALF_YEARLY,
    "half-year": Granularity.HALF_YEARLY,
    "halfyearly": Granularity.HALF_YEARLY,
    "semiannual": Granularity.HALF_YEARLY,
    "quarterly": Granularity.QUARTERLY,
    "quarter": Granularity.QUARTERLY,
    "quarters": Granularity.QUARTERLY,
    "monthly": Granularity.MONTHLY,
    "month": Granularity.MONTHLY,
    "months": Granularity.MONTHLY,
    "custom": Granularity.CUSTOM,
}


def parse_granularity(token: Union[str, Granularity]) -> Granularity:
    """Map a user token (e.g. ``"half-year"``) to a ``Granularity``."""
    if isinstance(token, Granularity):
        return token
    key = str(token).strip().lower().replace("_", "-")
    try:
        return _ALIASES[key]
    except KeyError:
        raise InvalidArgumentError(
            f"Unknown granularity {token!r}; expected one of {sorted(g.value for g in Granularity)}"
        ) from None


def _calendar_keys(index: pd.DatetimeIndex, granularity: Granularity) -> np.ndarray:
    """One integer per observation identifying its calendar period."""
    years = index.year.to_numpy()
    months = index.month.to_numpy()
    if granularity is Granularity.YEARLY:
        return years
    if granularity is Granularity.HALF_YEARLY:
        return years * 2 + (months > 6)
    if granularity is Granularity.QUARTERLY:
        return years * 4 + (months - 1) // 3
    if granularity is Granularity.MONTHLY:
        return years * 12 + (months - 1)
    raise InvalidArgumentError(f"No calendar rule for granularity {granularity.value!r}")


def _custom_endpoints(index: pd.DatetimeIndex, custom_endpoints: Iterable) -> np.ndarray:
    ends = pd.DatetimeIndex(pd.to_datetime(list(custom_endpoints))).sort_values()
    if ends.empty:
        raise InvalidArgumentError("custom granularity needs at least one endpoint")
    if index.tz is not None and ends.tz is None:
        ends = ends.tz_localize(index.tz)
    # Position of the last observation on or before each endpoint.
    positions = index.searchsorted(ends, side="right") - 1
    positions = positions[positions >= 0]
    return np.unique(np.append(positions, len(index) - 1))


def resolve_endpoints(
    index: pd.DatetimeIndex,
    granularity: Union[str, Granularity],
    custom_endpoints: Optional[Iterable] = None,
) -> np.ndarray:
    """Return the last position of each block for a strictly increasing ``DatetimeIndex``."""
    if len(index) == 0:
        return np.array([], dtype=int)
    gran = parse_granularity(granularity)
    if gran is Granularity.CUSTOM:
        if custom_endpoints is None:
            raise InvalidArgumentError("custom granularity requires custom_endpoints")
        return _custom_endpoints(index, custom_endpoints)
    keys = _calendar_keys(index, gran)
    changes = np.flatnonzero(keys[1:] != keys[:-1])
    return np.append(changes, len(index) - 1).astype(int)
