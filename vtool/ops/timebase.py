# vtool/ops/timebase.py
"""
Time-axis helpers: building Time groups, sample-time estimation and the
conversions between elapsed time (float values, units sec/min/hrs/days) and
absolute time (datetime64 values, units "datetime").
"""
from __future__ import annotations

import logging
from typing import Any, Sequence

import numpy as np

from vtool.core.dataset import TIME_GROUP, Dataset
from vtool.core.exceptions import InvalidInput
from vtool.core.signal_group import ABSOLUTE_TIME_UNITS, SignalGroup
from vtool.core.validity import is_dataset, is_signal_group, require_dataset


logger = logging.getLogger(__name__)

SECONDS_PER_UNIT = {"sec": 1.0, "min": 60.0, "hrs": 3600.0, "days": 86400.0}
SAMPLE_TIME_METHODS = ("simple", "mean", "median", "mode")


# ---- float view of a time axis ----
def time_axis(time: SignalGroup) -> tuple[np.ndarray, np.datetime64 | None]:
    """
    Float view of a Time group: elapsed values as-is, absolute values as
    seconds since the first sample (returned as the origin).
    """
    t = time.values[:, 0]
    if time.is_absolute_time:
        if t.size == 0:
            return np.empty(0), None
        origin = t[0]
        return (t - origin) / np.timedelta64(1, "s"), origin
    return np.asarray(t, dtype=float), None


def from_time_axis(t: np.ndarray, origin: np.datetime64 | None) -> np.ndarray:
    """Inverse of time_axis."""
    t = np.asarray(t, dtype=float)
    if origin is None:
        return t
    return origin + np.round(t * 1e9).astype("timedelta64[ns]")


def _dt_seconds(t: np.ndarray) -> np.ndarray:
    if t.dtype.kind == "M":
        return np.diff(t) / np.timedelta64(1, "s")
    return np.diff(np.asarray(t, dtype=float))


def _mode(x: np.ndarray) -> float:
    values, counts = np.unique(x[~np.isnan(x)], return_counts=True)
    return float(values[np.argmax(counts)]) if values.size else float("nan")


# ---- construction ----
def build_time_group(
    t: Any,
    *,
    n: int | None = None,
    layers: Sequence[str] = ("Names",),
    name: str = "Time",
    units: str = "sec",
    description: str = "Time vector",
) -> SignalGroup:
    """
    Build a Time group from a sample interval `Ts`, a pair `(t0, Ts)` or an
    explicit time vector. The first two forms need the sample count `n`.
    The name goes on every layer.
    """
    arr = np.asarray(t)
    if n is not None and arr.ndim == 1 and arr.size == n:
        values = arr
    elif arr.size == 1:
        if n is None:
            raise InvalidInput("Sample count 'n' is required when 'Ts' is given.")
        values = float(arr.ravel()[0]) * np.arange(n)
    elif arr.size == 2 and n is not None:
        t0, ts = (float(v) for v in arr.ravel())
        values = t0 + ts * np.arange(n)
    elif arr.ndim == 1:
        values = arr
    else:
        raise InvalidInput("Invalid 'Ts', '[t0, Ts]' or 't' input.")

    if not isinstance(name, str) or not isinstance(units, str) or not isinstance(description, str):
        raise InvalidInput("Invalid 'name', 'units' or 'description' input.")
    if values.dtype.kind != "M":
        values = values.astype(float)
    return SignalGroup(
        names={layer: [name] for layer in layers},
        values=values.reshape(-1, 1),
        units=[units],
        descriptions=[description],
    )


def build_dataset_from_data(
    x: Any,
    names: Sequence[str],
    *,
    units: Sequence[str] | None = None,
    descriptions: Sequence[str] | None = None,
    ts: Any = 1.0,
    layer: str = "Names",
    group: str = "Signals",
    time_units: str = "sec",
    attrs: dict[str, Any] | None = None,
) -> Dataset:
    """Wrap an N x M array into a Dataset with a Time group and one signal group."""
    values = np.asarray(x)
    if values.ndim == 1:
        values = values[:, np.newaxis]
    if values.ndim != 2:
        raise InvalidInput("Input 'x' must be a 2-dimensional array.")
    signals = SignalGroup(names={layer: list(names)}, values=values, units=units, descriptions=descriptions)
    time = build_time_group(ts, n=values.shape[0], layers=(layer,), units=time_units)
    data = Dataset(groups={TIME_GROUP: time, group: signals}, attrs=attrs or {})
    return require_dataset(data)


# ---- sample time ----
def get_sample_time(obj: Dataset | SignalGroup, method: str = "simple") -> tuple[float, tuple[float, float]]:
    """
    Sample interval of a dataset or Time group, plus (min, max) of the
    sample-to-sample intervals. Absolute time is measured in seconds.

    method: "simple" (first interval), "mean", "median" or "mode".
    """
    if method not in SAMPLE_TIME_METHODS:
        raise InvalidInput(f"Invalid method {method!r}; expected one of {SAMPLE_TIME_METHODS}.")
    if isinstance(obj, Dataset) and is_dataset(obj)[1]:
        t = obj.time.values[:, 0]
    elif isinstance(obj, SignalGroup) and is_signal_group(obj, time=True)[1]:
        t = obj.values[:, 0]
    else:
        raise InvalidInput("Input must be a valid dataset or Time signal group.")

    if t.size < 2:
        return float("nan"), (float("nan"), float("nan"))

    dt = _dt_seconds(t)
    if method == "simple":
        ts = float(dt[0])
    elif method == "mean":
        ts = float(np.mean(dt))
    elif method == "median":
        ts = float(np.median(dt))
    else:
        ts = _mode(dt)

    ts_range = (float(np.min(dt)), float(np.max(dt)))
    if method == "simple" and ts != 0 and (ts_range[1] - ts_range[0]) / abs(ts) > 1e-6:
        variation = max(abs(ts_range[0] - ts), abs(ts_range[1] - ts)) / abs(ts)
        logger.debug("Sample time not constant. Max variation %.2g %%.", 100 * variation)
    return ts, ts_range


# ---- conversions ----
def _with_time(data: Dataset, time: SignalGroup) -> Dataset:
    return data.replace_groups({TIME_GROUP: time})


def convert_to_elapsed_time(data: Dataset, option: str = "real") -> tuple[Dataset, Any]:
    """
    Convert Time to elapsed values. Returns (data, start) where start is the
    original first time value.

    option:
      - "real": seconds since the first sample for absolute time, unchanged
        values for elapsed time
      - "continuous": Ts * (0..n-1) with Ts the first sample interval
    """
    data = require_dataset(data)
    if option not in ("real", "continuous"):
        raise InvalidInput(f"Invalid option {option!r}; expected 'real' or 'continuous'.")

    time = data.time
    start = time.values[0, 0] if time.n else None
    if time.is_absolute_time:
        t, _ = time_axis(time)
        time = time.replace(values=t.reshape(-1, 1), units=["sec"])
    if option == "continuous" and time.n >= 2:
        t = time.values[:, 0].astype(float)
        time = time.replace(values=((t[1] - t[0]) * np.arange(time.n)).reshape(-1, 1))
    return _with_time(data, time), start


def convert_to_absolute_time(data: Dataset, start: Any = None) -> Dataset:
    """
    Convert elapsed Time (sec/min/hrs/days) to datetime64 values anchored at
    `start` (defaults to the dataset's "start" attribute).
    """
    data = require_dataset(data)
    if start is None:
        start = data.attrs.get("start")
    if start is None:
        raise InvalidInput("A 'start' time must be specified.")
    try:
        origin = np.datetime64(start, "ns")
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Input 'start' is not valid: {start!r}.") from e

    time = data.time
    units = time.units[0]
    if time.is_absolute_time:
        raise InvalidInput("Dataset already in absolute time units.")
    if units == "":
        raise InvalidInput("Dataset time vector is unitless.")
    if units not in SECONDS_PER_UNIT:
        raise InvalidInput(f"Dataset has unrecognized time units {units!r}.")

    seconds = time.values[:, 0].astype(float) * SECONDS_PER_UNIT[units]
    values = from_time_axis(seconds, origin)
    return _with_time(data, time.replace(values=values.reshape(-1, 1), units=[ABSOLUTE_TIME_UNITS]))


def change_time_units(data: Dataset, factor: float | None = None, units: str | None = None) -> Dataset:
    """
    Scale elapsed Time by `factor` and relabel it with `units`. With no
    arguments, Time becomes a unitless "Index" vector 1..N.
    """
    data = require_dataset(data)
    time = data.time
    if factor is None and units is None:
        return _with_time(data, SignalGroup(
            names={layer: ["Index"] for layer in time.layers},
            values=np.arange(1, time.n + 1, dtype=float).reshape(-1, 1),
            units=[""],
            descriptions=["Index vector"],
        ))

    if not isinstance(factor, (int, float, np.number)) or isinstance(factor, bool):
        raise InvalidInput("Invalid 'factor' input.")
    if not isinstance(units, str):
        raise InvalidInput("Invalid 'units' input.")
    if time.is_absolute_time:
        raise InvalidInput("Input dataset has absolute time units. See convert_to_elapsed_time.")

    names = {layer: ["Time"] for layer in time.layers}
    return _with_time(data, time.replace(
        names=names, values=factor * time.values.astype(float), units=[units]
    ))
