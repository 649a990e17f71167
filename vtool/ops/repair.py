# vtool/ops/repair.py
"""
Repairs for irregular time vectors: collapsing repeated time points and
regularizing the grid with NaN-filled holes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

import numpy as np

from vtool.core.dataset import TIME_GROUP, Dataset
from vtool.core.exceptions import InvalidInput
from vtool.core.signal_group import values_equal
from vtool.core.validity import require_dataset

from .mask import apply_index
from .resample import _check_trange, _to_axis, limit_time_range
from .timebase import from_time_axis, get_sample_time, time_axis


logger = logging.getLogger(__name__)

# min/max ignore NaN like the toolbox's reducers; mean/median/sum propagate it
REPEAT_METHODS: dict[str, Callable[[np.ndarray], np.ndarray]] = {
    "first": lambda x: x[0],
    "last": lambda x: x[-1],
    "mean": lambda x: np.mean(x, axis=0),
    "median": lambda x: np.median(x, axis=0),
    "min": lambda x: np.fmin.reduce(x, axis=0),
    "max": lambda x: np.fmax.reduce(x, axis=0),
    "sum": lambda x: np.sum(x, axis=0),
}


@dataclass(frozen=True, slots=True)
class RepeatInfo:
    """
    Bookkeeping from remove_repeated_points. Indices are 0-based rows of the
    input dataset.

    - index: rows kept
    - first: first row of every repetition set
    - removed: rows dropped
    - members: rows combined into each kept value, one array per `first` entry
    - differences: True if any repetition set carried differing signal values
    """
    n_in: int
    n_out: int
    nsets: int
    nreps: int
    differences: bool
    index: np.ndarray
    first: np.ndarray
    removed: np.ndarray
    members: tuple[np.ndarray, ...]


def _check_time(t: np.ndarray) -> np.ndarray:
    dt = np.diff(t)
    if np.any(dt < 0):
        raise InvalidInput("Time vector is invalid: reversals detected.")
    return dt


def remove_repeated_points(data: Dataset, method: str = "first") -> tuple[Dataset, RepeatInfo]:
    """
    Collapse runs of identical time values into one sample.

    The signal rows of each run are reduced with `method`: "first" (default),
    "last", "mean", "median", "min", "max" or "sum". Time must not run
    backwards.
    """
    data = require_dataset(data)
    if method not in REPEAT_METHODS:
        raise InvalidInput(f"Method must be one of {tuple(REPEAT_METHODS)}.")
    reduce = REPEAT_METHODS[method]

    t, _ = time_axis(data.time)
    n = t.size
    dt = _check_time(t)
    removed = 1 + np.flatnonzero(dt == 0)
    keep = np.ones(n, dtype=bool)
    keep[removed] = False
    index = np.flatnonzero(keep)

    # position of every input row within the output
    position = np.cumsum(keep) - 1
    first = np.unique(index[position[removed]])
    members = tuple(np.flatnonzero(index[position] == i) for i in first)

    differences = False
    groups = {}
    for name, group in data.items():
        if name == TIME_GROUP:
            groups[name] = group.replace(values=group.values[index])
            continue
        values = group.values
        if method in ("mean", "median"):
            values = values.astype(np.result_type(values.dtype, np.float64))
        out = values[index].copy()
        for i, rows in zip(first, members):
            block = values[rows]
            out[position[i]] = reduce(block)
            if not values_equal(block, np.broadcast_to(block[0], block.shape)):
                differences = True
        groups[name] = group.replace(values=out)

    info = RepeatInfo(
        n_in=n,
        n_out=index.size,
        nsets=first.size,
        nreps=removed.size,
        differences=differences,
        index=index,
        first=first,
        removed=removed,
        members=members,
    )
    logger.info(
        "Input data length: %d. Output data length: %d. Non-unique time points: %d. "
        "Total repetitions: %d. Differences detected: %s.",
        info.n_in, info.n_out, info.nsets, info.nreps, "yes" if differences else "no",
    )
    if not removed.size:
        return data, info
    return data.replace_groups(groups), info


def nan_fill_dataset(data: Dataset, ts: float | None = None, trange: Any = None) -> tuple[Dataset, Dataset, Dataset]:
    """
    Put a dataset on a regular time grid, filling missing samples with NaN.

    The grid starts at trange[0] (default: the first sample) and steps by
    `ts` (default: the most common sample interval, whole seconds for
    absolute time) up to trange[1] (default: the last sample). Samples off
    the grid are dropped.

    Returns (filled, cleaned, errant): the regularized dataset, the on-grid
    samples before filling and the dropped off-grid samples.
    """
    data = require_dataset(data)
    t, _ = time_axis(data.time)
    dt = _check_time(t)
    if np.any(dt == 0):
        raise InvalidInput("Time vector is invalid: repeated time points detected. See remove_repeated_points.")
    if ts is not None and (isinstance(ts, bool) or not np.isscalar(ts) or not ts > 0):
        raise InvalidInput("Specified 'ts' is invalid.")

    if trange is not None:
        _check_trange(trange)
        lo, hi = np.asarray(trange).ravel()
        if not lo < hi:
            raise InvalidInput("Invalid 'trange' parameter.")
        data = limit_time_range(data, trange)
        if data.n == 0:
            raise InvalidInput("No samples within 'trange'.")

    time = data.time
    t, origin = time_axis(time)
    if trange is not None:
        lo, hi = _to_axis(trange, time, origin, "trange").ravel()
    else:
        lo, hi = t[0], t[-1]

    if ts is None:
        ts, _ = get_sample_time(data, "mode")
        if time.is_absolute_time:
            ts = float(np.round(ts))
        if not ts > 0:
            raise InvalidInput("Unable to determine a sample time. Specify 'ts'.")

    count = int(np.floor((hi - lo) / ts + 1e-9)) + 1
    grid = lo + ts * np.arange(count)

    steps = (t - lo) / ts
    slot = np.round(steps).astype(int)
    on_grid = (np.abs(steps - slot) <= 1e-6) & (slot >= 0) & (slot < count)
    nbad = int(np.count_nonzero(~on_grid))
    if nbad:
        logger.info("Clean-up found %d of %d points deviate from the defined sampling schedule.", nbad, t.size)

    cleaned = apply_index(data, on_grid)
    errant = apply_index(data, ~on_grid)

    rows = slot[on_grid]
    groups = {TIME_GROUP: time.replace(values=from_time_axis(grid, origin).reshape(-1, 1))}
    for name, group in cleaned.items():
        if name == TIME_GROUP:
            continue
        values = np.full((count, group.m), np.nan, dtype=np.result_type(group.values.dtype, np.float64))
        values[rows] = group.values
        groups[name] = group.replace(values=values)
    return cleaned.replace_groups(groups), cleaned, errant
