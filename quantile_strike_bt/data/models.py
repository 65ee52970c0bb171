"""
Data models for price series and provider interfaces.
"""

from dataclasses import dataclass
from typing import Optional, Protocol
import numpy as np
import pandas as pd


@dataclass(frozen=True)
class PriceSeries:
    """
    Ordered (date, adjusted price) series.

    Contains:
    - dates: strictly increasing DatetimeIndex (no duplicates)
    - values: read-only float array aligned with dates, NaN marks a missing price
    - ticker: label used for reporting only
    """
    dates: pd.DatetimeIndex
    values: np.ndarray
    ticker: str = ""

    def __post_init__(self):
        dates = pd.DatetimeIndex(self.dates)
        values = np.array(self.values, dtype=float, copy=True)

        if values.ndim != 1:
            raise ValueError(f"Price values must be one-dimensional, got shape {values.shape}")
        if len(dates) != len(values):
            raise ValueError(f"Dates ({len(dates)}) and prices ({len(values)}) differ in length")
        if dates.has_duplicates:
            raise ValueError("Price series contains duplicate dates")
        if not dates.is_monotonic_increasing:
            raise ValueError("Price series dates must be strictly increasing")

        values.setflags(write=False)
        object.__setattr__(self, "dates", dates)
        object.__setattr__(self, "values", values)

    def __len__(self) -> int:
        return len(self.values)

    @classmethod
    def from_series(cls, series: pd.Series, ticker: Optional[str] = None) -> "PriceSeries":
        """Build from a pandas Series indexed by date"""
        label = ticker if ticker is not None else (str(series.name) if series.name is not None else "")
        return cls(
            dates=pd.DatetimeIndex(pd.to_datetime(series.index)),
            values=pd.to_numeric(series, errors="coerce").to_numpy(dtype=float),
            ticker=label,
        )

    def to_series(self) -> pd.Series:
        """Copy as a pandas Series indexed by date"""
        return pd.Series(np.array(self.values), index=self.dates, name=self.ticker or "price")

    @property
    def latest_date(self) -> pd.Timestamp:
        return self.dates[-1]

    def missing_count(self) -> int:
        return int(np.isnan(self.values).sum())


class PriceProvider(Protocol):
    """
    Protocol for price-data collaborators.

    Providers resolve a gap-free adjusted price series before the engine runs;
    the engine itself never performs I/O.
    """

    def load(self) -> PriceSeries:
        """
        Load the price series.

        Returns:
            PriceSeries sorted by date
        """
        ...
