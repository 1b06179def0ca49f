"""Local price-series loading.

Prices come from files the caller already has: CSV or Parquet tables read with pandas, or
NetCDF read with xarray. Nothing here touches the network; the loader only returns a
validated ``pd.Series`` of strictly positive prices with increasing timestamps.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import pandas as pd
import xarray as xr

from market_extremes.errors import InvalidArgumentError
from market_extremes.processing.returns import validate_prices


@dataclass
class PriceFileMeta:
    """What was read from disk."""

    path: Path
    column: str
    n_obs: int
    start: pd.Timestamp
    end: pd.Timestamp


def _dataarray_to_series(da: xr.DataArray, time_dim: str = "time") -> pd.Series:
    """Flatten a 1-D DataArray into a Series indexed by its time coordinate."""
    da = da.reset_coords(drop=True)  # drop scalar coords to avoid a MultiIndex
    if da.ndim != 1:
        raise InvalidArgumentError(f"expected a 1-D price series, got dims {da.dims}")
    df = da.to_dataframe(name="price").reset_index()
    # CFTime objects are converted through strings; fine for daily closes.
    df[time_dim] = pd.to_datetime(df[time_dim].astype(str))
    return df.set_index(time_dim)["price"]


def to_price_series(
    data: Union[pd.Series, pd.DataFrame, xr.DataArray, xr.Dataset],
    column: Optional[str] = None,
) -> pd.Series:
    """Coerce a Series, a DataFrame column or an xarray variable into a validated price series."""
    if isinstance(data, xr.Dataset):
        if column is None:
            names = list(data.data_vars)
            if len(names) != 1:
                raise InvalidArgumentError(f"dataset has variables {names}; pass column=")
            column = names[0]
        data = data[column]
    if isinstance(data, xr.DataArray):
        series = _dataarray_to_series(data)
    elif isinstance(data, pd.DataFrame):
        if column is None:
            if data.shape[1] != 1:
                raise InvalidArgumentError(f"frame has columns {list(data.columns)}; pass column=")
            column = data.columns[0]
        series = data[column]
    elif isinstance(data, pd.Series):
        series = data
    else:
        raise InvalidArgumentError(f"unsupported price container {type(data).__name__}")
    series = series.dropna().sort_index()
    series.name = column or series.name or "price"
    return validate_prices(series)


class PriceSeriesLoader:
    """Read price series from local CSV, Parquet or NetCDF files."""

    def __init__(self, data_dir: Optional[str | Path] = None):
        self.data_dir = Path(data_dir) if data_dir else Path.cwd()

    def _resolve(self, path: str | Path) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.data_dir / candidate
        if not candidate.exists():
            raise FileNotFoundError(f"price file not found: {candidate}")
        return candidate

    def load(
        self,
        path: str | Path,
        column: Optional[str] = None,
        date_column: str = "date",
    ) -> pd.Series:
        """Load one price column indexed by date."""
        resolved = self._resolve(path)
        suffix = resolved.suffix.lower()
        if suffix in (".nc", ".nc4", ".netcdf"):
            with xr.open_dataset(resolved) as ds:
                return to_price_series(ds.load(), column=column)
        if suffix == ".parquet":
            frame = pd.read_parquet(resolved)
        elif suffix in (".csv", ".txt"):
            frame = pd.read_csv(resolved)
        else:
            raise InvalidArgumentError(f"unsupported price file type: {resolved.suffix}")
        return to_price_series(self._index_frame(frame, date_column), column=column)

    @staticmethod
    def _index_frame(frame: pd.DataFrame, date_column: str) -> pd.DataFrame:
        if date_column in frame.columns:
            frame = frame.set_index(date_column)
        elif isinstance(frame.index, pd.RangeIndex):
            # Fall back to the first column as dates.
            frame = frame.set_index(frame.columns[0])
        frame.index = pd.to_datetime(frame.index)
        frame.index.name = "date"
        return frame

    def describe(self, path: str | Path, column: Optional[str] = None) -> PriceFileMeta:
        """Load a file and summarise what was read."""
        series = self.load(path, column=column)
        return PriceFileMeta(
            path=self._resolve(path),
            column=str(series.name),
            n_obs=len(series),
            start=series.index[0],
            end=series.index[-1],
        )
