# vtool/ops/pad.py
from __future__ import annotations

from typing import Any

import numpy as np

from vtool.core.arrays import DatasetArray, SignalGroupArray, as_dataset_array, as_signal_group_array
from vtool.core.batch import apply_elementwise
from vtool.core.dataset import TIME_GROUP
from vtool.core.exceptions import InvalidInput
from vtool.core.signal_group import SignalGroup

from .timebase import from_time_axis, time_axis


EXTRAPOLATE = "extrap"


def _target_length(lengths: list[int], length: Any) -> int:
    if length is None or length == "max":
        return max(lengths)
    if length == "min":
        return min(lengths)
    if isinstance(length, bool) or not isinstance(length, (int, np.integer)) or length < 0:
        raise InvalidInput("Specified signal length is invalid.")
    return int(length)


def _check_value(value: Any) -> None:
    if isinstance(value, str):
        if value != EXTRAPOLATE:
            raise InvalidInput("Input 'value' must be a scalar numeric value or the keyword 'extrap'.")
    elif isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
        raise InvalidInput("Input 'value' must be a scalar numeric value or the keyword 'extrap'.")


def _extrapolate(values: np.ndarray, count: int) -> np.ndarray:
    """Continue each column linearly from its last two samples."""
    n = values.shape[0]
    if n < 2:
        raise InvalidInput("Need at least 2 points to extrapolate.")
    slope = values[-1] - values[-2]
    steps = np.arange(1, count + 1)[:, np.newaxis]
    return values[-1] + steps * slope


def _fit(group: SignalGroup, value: Any, length: int) -> SignalGroup:
    n = group.n
    if n > length:
        return group.replace(values=group.values[:length])
    if n == length:
        return group
    count = length - n
    if value != EXTRAPOLATE:
        values = group.values.astype(np.result_type(group.values, value))
        return group.replace(values=np.vstack([values, np.full((count, group.m), value, dtype=values.dtype)]))
    if group.values.dtype.kind == "M":
        t, origin = time_axis(group)
        extended = np.concatenate([t, _extrapolate(t[:, np.newaxis], count)[:, 0]])
        return group.replace(values=from_time_axis(extended, origin).reshape(-1, 1))
    values = group.values.astype(float)
    return group.replace(values=np.vstack([values, _extrapolate(values, count)]))


def pad_signals_to_length(signals: Any, value: Any, length: Any = "max") -> SignalGroupArray:
    """
    Bring every element of a signal group array to a common length.

    Short elements are padded with `value` or, with value="extrap", extended
    linearly from their last two samples; long ones are truncated. length is
    "max" (default), "min" or an explicit sample count.
    """
    array = as_signal_group_array(signals, "SIGNALS")
    _check_value(value)
    target = _target_length(array.data_lengths(), length)
    fitted = apply_elementwise(lambda g: _fit(g, value, target), array, kind="signal group")
    return SignalGroupArray(tuple(fitted))


def pad_data_to_length(data: Any, value: Any, length: Any = "max") -> DatasetArray:
    """pad_signals_to_length for every group of a dataset array; Time is always extrapolated."""
    array = as_dataset_array(data, "DATA")
    _check_value(value)
    target = _target_length(array.data_lengths(), length)

    def fit_dataset(d):
        return d.replace_groups({
            key: _fit(g, EXTRAPOLATE if key == TIME_GROUP else value, target) for key, g in d.items()
        })

    return DatasetArray(tuple(apply_elementwise(fit_dataset, array, kind="dataset")))
