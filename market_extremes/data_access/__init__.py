"""Data access layer for local price series."""

from market_extremes.data_access.prices import PriceSeriesLoader, to_price_series

__all__ = ["PriceSeriesLoader", "to_price_series"]
