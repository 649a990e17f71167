# vtool/ops/resample.py
from __future__ import annotations

from typing import Any

import numpy as np
from scipy.interpolate import interp1d

from vtool.core.dataset import TIME_GROUP, Dataset
from vtool.core.exceptions import Incompatible, InvalidInput
from vtool.core.signal_group import SignalGroup
from vtool.core.validity import require_dataset

from ._dispatch import apply_to
from .timebase import from_time_axis, time_axis


INTERP_METHODS = ("linear", "nearest", "previous", "next", "zero", "slinear", "quadratic", "cubic")
_METHOD_ALIASES = {"spline": "cubic"}


def _interpolate(
    t_src: np.ndarray,
    values: np.ndarray,
    t_new: np.ndarray,
    method: str,
    extrapolation: Any,
) -> np.ndarray:
    if values.shape[1] == 0:
        return np.zeros((t_new.size, 0), dtype=values.dtype)
    if extrapolation is None:
        fill: Any = np.nan
    elif extrapolation == "extrap":
        fill = "extrapolate"
    else:
        fill = float(extrapolation)
    f = interp1d(
        t_src,
        np.asarray(values, dtype=float),
        kind=method,
        axis=0,
        bounds_error=False,
        fill_value=fill,
        assume_sorted=True,
    )
    return f(t_new)


def _check_method(method: str) -> str:
    method = _METHOD_ALIASES.get(method, method)
    if method not in INTERP_METHODS:
        raise InvalidInput(f"Invalid interpolation method {method!r}; expected one of {INTERP_METHODS}.")
    return method


def _to_axis(x: Any, time: SignalGroup, origin: np.datetime64 | None, label: str) -> np.ndarray:
    """
    Express a user-supplied time vector/range on the float axis of `time`.
    With absolute time, numbers are elapsed seconds and datetime64 values are
    absolute instants.
    """
    arr = np.asarray(x)
    if arr.dtype.kind == "M":
        if not time.is_absolute_time:
            raise Incompatible(f"Time vector has elapsed-time units. Input '{label}' not compatible.")
        return (arr - origin) / np.timedelta64(1, "s")
    if arr.dtype.kind not in "biuf":
        raise InvalidInput(f"Input '{label}' must be numeric or datetime64.")
    return arr.astype(float)


def _check_trange(trange: Any) -> None:
    arr = np.asarray(trange)
    if arr.size != 2:
        raise InvalidInput("Input 'trange' must contain exactly two values.")
    if arr.ravel()[1] < arr.ravel()[0]:
        raise InvalidInput("Invalid 'trange' argument: upper bound below lower bound.")


def _resample_one(
    data: Dataset,
    t: Any,
    ts: float | None,
    trange: Any,
    method: str,
    extrapolation: Any,
) -> Dataset:
    data = require_dataset(data)
    time = data.time
    t_src, origin = time_axis(time)
    if np.any(np.diff(t_src) <= 0):
        raise InvalidInput("Time vector is non-monotonic. Repeated points can be removed with remove_repeated_points.")

    if t is not None:
        t_new = _to_axis(t, time, origin, "t").ravel()
        groups = {
            key: g.replace(values=_interpolate(t_src, g.values, t_new, method, extrapolation))
            for key, g in data.items() if key != TIME_GROUP
        }
        groups[TIME_GROUP] = time.replace(values=from_time_axis(t_new, origin).reshape(-1, 1))
        return data.replace_groups(groups)

    if ts is not None and (not np.isscalar(ts) or not ts > 0):
        raise InvalidInput("Invalid 'ts' argument: must be a positive scalar.")
    if trange is not None:
        _check_trange(trange)
        lo, hi = _to_axis(trange, time, origin, "trange").ravel()
    else:
        lo, hi = (t_src[0], t_src[-1]) if t_src.size else (0.0, 0.0)

    mask = (t_src >= lo) & (t_src <= hi)
    t_kept = t_src[mask]
    groups = {key: g.replace(values=g.values[mask]) for key, g in data.items()}
    if not time.is_absolute_time and t_kept.size:
        t_kept = t_kept - t_kept[0]
        groups[TIME_GROUP] = time.replace(values=t_kept.reshape(-1, 1))

    if ts is not None and t_kept.size:
        count = int(np.floor((t_kept[-1] - t_kept[0]) / ts + 1e-9)) + 1
        t_new = t_kept[0] + ts * np.arange(count)
        for key, g in list(groups.items()):
            if key != TIME_GROUP:
                groups[key] = g.replace(values=_interpolate(t_kept, g.values, t_new, method, extrapolation))
        groups[TIME_GROUP] = time.replace(values=from_time_axis(t_new, origin).reshape(-1, 1))
    elif time.is_absolute_time:
        groups[TIME_GROUP] = time.replace(values=time.values[mask])
    return data.replace_groups(groups)


def resample_dataset(
    data: Any,
    t: Any = None,
    *,
    ts: float | None = None,
    trange: Any = None,
    method: str = "linear",
    extrapolation: Any = None,
) -> Any:
    """
    Resample every signal group onto a new time axis.

    - t: explicit target time vector
    - ts / trange: keep samples inside [trange[0], trange[1]] (inclusive),
      re-zero elapsed time, then (with ts) interpolate onto a uniform grid of
      step ts starting at the first kept sample

    method is a scipy interp1d kind ("linear" default, "spline" = "cubic").
    extrapolation: None -> NaN outside the source range, "extrap" ->
    extrapolate, a number -> that fill value. Groups without signals keep
    zero columns at the new length.
    """
    if t is not None and (ts is not None or trange is not None):
        raise InvalidInput("Invalid usage: give either 't' or 'ts'/'trange', not both.")
    method = _check_method(method)
    if t is None and ts is None and trange is None:
        return data
    return apply_to(
        data, dataset=lambda d: _resample_one(d, t, ts, trange, method, extrapolation)
    )


def downsample_dataset(data: Any, factor: int | None) -> Any:
    """Keep every `factor`-th sample of every group (first sample included)."""
    if factor is None or factor == 1:
        return data
    if isinstance(factor, bool) or not isinstance(factor, (int, np.integer)) or factor < 1:
        raise InvalidInput("Input 'factor' must be a positive integer.")

    def on_dataset(d: Dataset) -> Dataset:
        d = require_dataset(d)
        return d.replace_groups({k: g.replace(values=g.values[::factor]) for k, g in d.items()})

    return apply_to(data, dataset=on_dataset)


def limit_time_range(data: Any, trange: Any) -> Any:
    """Keep samples with trange[0] <= t <= trange[1]; time is not re-zeroed."""
    if trange is None or np.size(trange) == 0:
        return data
    _check_trange(trange)

    def on_dataset(d: Dataset) -> Dataset:
        d = require_dataset(d)
        t_src, origin = time_axis(d.time)
        lo, hi = _to_axis(trange, d.time, origin, "trange").ravel()
        mask = (t_src >= lo) & (t_src <= hi)
        return d.replace_groups({k: g.replace(values=g.values[mask]) for k, g in d.items()})

    return apply_to(data, dataset=on_dataset)
