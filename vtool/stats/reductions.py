# vtool/stats/reductions.py
"""
NaN-aware reductions shared by the binning and aggregation code.

Percentiles follow the Hazen definition (the one MATLAB's prctile uses):
sorted sample i sits at 100 * (i - 0.5) / n, linear interpolation between
samples and clamping outside the first/last position. NaN samples are
ignored.
"""
from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, fields
from typing import Any, Callable, Iterator

import numpy as np

from vtool.core.arrays import SignalGroupArray, as_signal_group_array
from vtool.core.exceptions import InvalidInput, SignalNotFound
from vtool.core.lookup import match_rows


logger = logging.getLogger(__name__)

STATISTICS = ("mean", "std", "median", "max", "min", "mode")
STAT_FIELDS = ("min", "max", "mean", "p05", "p50", "p95")


@dataclass(frozen=True, slots=True)
class StatSet:
    """The six summary statistics of one reduction, each an array of equal shape."""

    min: np.ndarray
    max: np.ndarray
    mean: np.ndarray
    p05: np.ndarray
    p50: np.ndarray
    p95: np.ndarray

    def __iter__(self) -> Iterator[tuple[str, np.ndarray]]:
        for f in fields(self):
            yield f.name, getattr(self, f.name)

    def map(self, func: Callable[[np.ndarray], np.ndarray]) -> "StatSet":
        return StatSet(**{name: func(value) for name, value in self})

    @classmethod
    def concat(cls, items: list["StatSet"], axis: int = 0) -> "StatSet":
        return cls(**{name: np.concatenate([getattr(s, name) for s in items], axis=axis) for name in STAT_FIELDS})

    def to_dict(self) -> dict[str, np.ndarray]:
        return dict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "StatSet":
        return cls(**{name: np.asarray(d[name]) for name in STAT_FIELDS})


def hazen_percentile(x: np.ndarray, q: float, axis: int | None = None) -> np.ndarray:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        return np.nanpercentile(x, q, axis=axis, method="hazen")


def _mode(x: np.ndarray) -> float:
    """Most frequent non-NaN value; the smallest one on ties."""
    values, counts = np.unique(x[~np.isnan(x)], return_counts=True)
    return float(values[np.argmax(counts)]) if values.size else float("nan")


def _std(x: np.ndarray) -> float:
    return 0.0 if x.size == 1 else float(np.std(x, ddof=1))


def statistic_function(statistic: str | float | Callable[[np.ndarray], Any]) -> Callable[[np.ndarray], Any]:
    """
    Reducer for a statistic keyword, a percentile (0..100) or a callable.

    mean/std/median propagate NaN, max/min/mode and percentiles ignore it.
    """
    if callable(statistic):
        return statistic
    if isinstance(statistic, str):
        if statistic not in STATISTICS:
            raise InvalidInput(f"Invalid statistic option {statistic!r}.")
        return {
            "mean": np.mean,
            "std": _std,
            "median": np.median,
            "max": np.nanmax,
            "min": np.nanmin,
            "mode": _mode,
        }[statistic]
    if isinstance(statistic, bool) or not isinstance(statistic, (int, float, np.number)) or not 0 <= statistic <= 100:
        raise InvalidInput("Percentile values must be scalar, from 0 to 100.")
    pct = float(statistic)
    return lambda x: hazen_percentile(x, pct)


def signal_column(signals: SignalGroupArray, name: str) -> int:
    """Column of the primary instance of `name` in the array's signals."""
    if not isinstance(name, str) or not name:
        raise InvalidInput("Input 'name' must be a non-empty string.")
    rows = match_rows(signals[0], name)
    if not rows:
        raise SignalNotFound(name)
    if len(rows) > 1:
        logger.warning("Signal '%s' appears more than once. Using first instance.", name)
    return rows[0]


def compute_stat(signals: Any, name: str, statistic: str | float | Callable = "mean") -> np.ndarray:
    """Reduce signal `name` of every case to one scalar; returns one value per case."""
    array = as_signal_group_array(signals, "SIGNALS")
    func = statistic_function(statistic)
    i = signal_column(array, name)

    out = np.empty(len(array))
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        for k, group in enumerate(array):
            x = np.asarray(group.values[:, i], dtype=float)
            value = func(x) if x.size else np.nan
            if np.ndim(value) != 0:
                raise InvalidInput("Specified function did not return scalar output(s).")
            out[k] = value
    return out


def compute_filter_mask(signals: Any, name: str, *, ranges: Any = None, values: Any = None) -> np.ndarray:
    """
    Boolean mask over the cases: True where every sample of signal `name`
    lies in one of the inclusive [lo, hi] `ranges`, or (with `values`) is a
    member of that set.
    """
    array = as_signal_group_array(signals, "SIGNALS")
    if (ranges is None) == (values is None):
        raise InvalidInput("Specify exactly one of 'ranges' or 'values'.")
    i = signal_column(array, name)

    if ranges is not None:
        spec = np.asarray(ranges, dtype=float)
        if spec.ndim == 1 and spec.size == 2:
            spec = spec.reshape(1, 2)
        if spec.ndim != 2 or spec.shape[1] != 2 or np.any(spec[:, 1] < spec[:, 0]):
            raise InvalidInput("Specified 'ranges' is not valid.")
    else:
        spec = np.asarray(values, dtype=float).ravel()
        if spec.size == 0:
            raise InvalidInput("Specified 'values' is not valid.")

    mask = np.zeros(len(array), dtype=bool)
    for k, group in enumerate(array):
        x = np.asarray(group.values[:, i], dtype=float)
        if ranges is not None:
            inside = np.zeros(x.shape, dtype=bool)
            for lo, hi in spec:
                inside |= (x >= lo) & (x <= hi)
        else:
            inside = np.isin(x, spec)
        mask[k] = bool(np.all(inside))
    return mask


def check_iclass(iclass: Any, n: int) -> np.ndarray:
    arr = np.asarray(iclass)
    if arr.ndim != 1 or arr.size != n:
        raise InvalidInput("Invalid 'iclass' input.")
    if arr.size and (arr.dtype.kind not in "iuf" or np.any(np.mod(arr, 1) != 0) or np.any(arr < 0)):
        raise InvalidInput("Invalid 'iclass' input.")
    return arr.astype(int)


def pool_stats(pool: np.ndarray, axis: int = 0) -> StatSet:
    """
    Six statistics of `pool` along `axis`. An empty pool gives NaN, a single
    entry is returned as-is for every statistic.
    """
    pool = np.moveaxis(np.asarray(pool, dtype=float), axis, 0)
    count = pool.shape[0]
    if count == 0:
        nan = np.full(pool.shape[1:], np.nan)
        return StatSet(nan, nan.copy(), nan.copy(), nan.copy(), nan.copy(), nan.copy())
    if count == 1:
        row = pool[0]
        return StatSet(row.copy(), row.copy(), row.copy(), row.copy(), row.copy(), row.copy())
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        return StatSet(
            min=np.nanmin(pool, axis=0),
            max=np.nanmax(pool, axis=0),
            mean=np.nanmean(pool, axis=0),
            p05=hazen_percentile(pool, 5, axis=0),
            p50=hazen_percentile(pool, 50, axis=0),
            p95=hazen_percentile(pool, 95, axis=0),
        )


def stack_bins(per_bin: list[StatSet], axis: int, shape: tuple[int, ...]) -> StatSet:
    """Stack per-bin StatSets along a new `axis`; no bins gives a zero-length axis."""
    if not per_bin:
        empty = np.empty(shape)
        return StatSet(*(empty.copy() for _ in STAT_FIELDS))
    return StatSet(**{
        name: np.stack([getattr(s, name) for s in per_bin], axis=axis) for name in STAT_FIELDS
    })


class ProgressLog:
    """Logs "NN% done." every 5 % of a loop over more than `threshold` items."""

    def __init__(self, total: int, threshold: int = 50) -> None:
        self.total = total
        self.enabled = total > threshold

    def __call__(self, k: int) -> None:
        if not self.enabled:
            return
        done, before = (20 * (k + 1)) // self.total, (20 * k) // self.total
        if done != before:
            logger.info("%3d%% done.", 5 * done)
