"""
bayes_ts — Time Series Data Model & CSV Ingestion
=================================================
An ordered sequence of observations indexed by time, one or more variables
per step, fixed dimensionality for the lifetime of the series.

Grouped CSV format (the only persisted-data format in scope):
    unit,0.0,1.0,2.0,3.0
    plot_a,0.11,0.19,0.34,0.52
    plot_b,0.09,0.17,0.29,0.48
    ...

Columns are time points, rows are grouped units. Loading transposes the
table so the returned series has shape [T, n_units].
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .errors import ValidationError


@dataclass(frozen=True, eq=False)
class TimeSeries:
    """Immutable [T, D] series of observations.

    Args:
        values: [T, D] observations (1-D input is promoted to [T, 1])
        times: [T] strictly increasing time stamps (default 0..T-1)
        names: D column names (default 'y0', 'y1', ...)
    """
    values: np.ndarray
    times: Optional[np.ndarray] = None
    names: Tuple[str, ...] = field(default=())

    def __post_init__(self):
        values = np.array(self.values, dtype=np.float64)
        if values.ndim == 1:
            values = values[:, None]
        if values.ndim != 2:
            raise ValidationError(
                f"Time series values must be [T, D], got shape {values.shape}")
        if values.shape[0] < 1 or values.shape[1] < 1:
            raise ValidationError(f"Empty time series: shape {values.shape}")
        if not np.all(np.isfinite(values)):
            raise ValidationError("Time series contains non-finite values")

        if self.times is None:
            times = np.arange(values.shape[0], dtype=np.float64)
        else:
            times = np.array(self.times, dtype=np.float64).ravel()
        if len(times) != values.shape[0]:
            raise ValidationError(
                f"Time and value length mismatch: {len(times)} vs {values.shape[0]}")
        if len(times) > 1 and not np.all(np.diff(times) > 0):
            raise ValidationError("Time stamps must be strictly increasing")

        names = tuple(self.names) if self.names else tuple(
            f"y{i}" for i in range(values.shape[1]))
        if len(names) != values.shape[1]:
            raise ValidationError(
                f"Expected {values.shape[1]} column names, got {len(names)}")

        values.setflags(write=False)
        times.setflags(write=False)
        object.__setattr__(self, 'values', values)
        object.__setattr__(self, 'times', times)
        object.__setattr__(self, 'names', names)

    @property
    def length(self) -> int:
        return self.values.shape[0]

    @property
    def dim(self) -> int:
        return self.values.shape[1]

    def __len__(self) -> int:
        return self.length

    def validate(self, min_length: int = 2) -> 'TimeSeries':
        """Check the series is long enough to carry at least one transition."""
        if self.length < min_length:
            raise ValidationError(
                f"Time series has length {self.length}; at least {min_length} "
                f"observations are required (likelihood needs one transition)")
        return self

    def column(self, name: str) -> np.ndarray:
        try:
            idx = self.names.index(name)
        except ValueError:
            raise ValidationError(
                f"Unknown column '{name}'. Available: {list(self.names)}") from None
        return self.values[:, idx]

    def transitions(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return (state[t-1], state[t]) pairs as two [T-1, D] arrays."""
        self.validate(min_length=2)
        return self.values[:-1], self.values[1:]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.values, index=pd.Index(self.times, name='time'),
                            columns=list(self.names))


def as_time_series(obj: Union[TimeSeries, np.ndarray, pd.DataFrame, Sequence]) -> TimeSeries:
    """Coerce arrays and DataFrames (time index, one column per variable)."""
    if isinstance(obj, TimeSeries):
        return obj
    if isinstance(obj, pd.DataFrame):
        try:
            times = obj.index.to_numpy(dtype=np.float64)
        except (TypeError, ValueError):
            times = None
        return TimeSeries(obj.to_numpy(dtype=np.float64), times,
                          tuple(str(c) for c in obj.columns))
    return TimeSeries(np.asarray(obj, dtype=np.float64))


def load_grouped_csv(filepath: Union[str, Path],
                     index_col: Optional[int] = 0,
                     delimiter: str = ',',
                     min_length: int = 2) -> TimeSeries:
    """Load a units-by-time CSV table into a [T, n_units] series.

    Args:
        filepath: path to CSV file
        index_col: column holding unit labels (None if the file has none)
        delimiter: column delimiter
        min_length: minimum number of time points

    Returns:
        TimeSeries with times parsed from the header row
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Time series file not found: {filepath}")

    _engine = 'python' if len(delimiter) > 1 else 'c'
    df = pd.read_csv(filepath, sep=delimiter, index_col=index_col, engine=_engine)

    try:
        times = np.array([float(c) for c in df.columns])
    except ValueError as e:
        raise ValidationError(
            f"Column headers of {filepath.name} must be numeric time points: {e}") from e

    table = df.apply(pd.to_numeric, errors='coerce')
    if table.isna().to_numpy().any():
        bad = table.index[table.isna().any(axis=1)].tolist()
        raise ValidationError(f"Missing or non-numeric values for units {bad} in {filepath.name}")

    names = tuple(str(i) for i in df.index) if index_col is not None else ()
    series = TimeSeries(table.to_numpy(dtype=np.float64).T, times, names)
    return series.validate(min_length=min_length)
