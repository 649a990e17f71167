# vtool/ops/mask.py
from __future__ import annotations

from typing import Any, Sequence

import numpy as np

from vtool.core.arrays import DatasetArray, SignalGroupArray
from vtool.core.dataset import Dataset
from vtool.core.exceptions import InvalidInput
from vtool.core.lookup import find_name, get_signal
from vtool.core.signal_group import SignalGroup
from vtool.core.validity import require_dataset, require_signal_group

from ._dispatch import apply_to
from .mutate import replace_signal_in_dataset, replace_signal_in_group


LOCATION_KEYWORDS = ("first", "last", "all")


def _data_length(obj: Any) -> int:
    if isinstance(obj, Dataset):
        return require_dataset(obj).n
    if isinstance(obj, SignalGroup):
        return require_signal_group(obj).n
    if isinstance(obj, (SignalGroupArray, DatasetArray)):
        if len(obj) == 0:
            raise InvalidInput("Input array is empty.")
        return _data_length(obj[0])
    raise InvalidInput("Input is not a valid signal group, dataset, or array.")


def location_mask(locations: Any, n: int, label: str = "locations") -> np.ndarray:
    """
    Boolean length-n mask from 0-based indices, a boolean mask, or one of
    the keywords "first", "last", "all".
    """
    if isinstance(locations, str):
        if locations not in LOCATION_KEYWORDS:
            raise InvalidInput(f"Invalid '{label}' keyword {locations!r}.")
        if n == 0:
            raise InvalidInput(f"Invalid '{label}' keyword with zero data length.")
        mask = np.zeros(n, dtype=bool)
        if locations == "first":
            mask[0] = True
        elif locations == "last":
            mask[-1] = True
        else:
            mask[:] = True
        return mask

    arr = np.asarray(locations)
    if arr.dtype == bool:
        if arr.ndim != 1 or arr.size != n:
            raise InvalidInput(f"Invalid or wrong size '{label}' input.")
        return arr.copy()
    if arr.size == 0:
        return np.zeros(n, dtype=bool)
    if arr.dtype.kind not in "iu":
        if arr.dtype.kind == "f" and np.all(np.mod(arr, 1) == 0):
            arr = arr.astype(int)
        else:
            raise InvalidInput(f"One or more '{label}' values is not valid.")
    if np.any(arr < 0) or np.any(arr >= n):
        raise InvalidInput(f"One or more '{label}' values is out of range.")
    mask = np.zeros(n, dtype=bool)
    mask[arr.ravel()] = True
    return mask


def _check_value(value: Any) -> None:
    if isinstance(value, bool) or not np.isscalar(value) or not isinstance(value, (int, float, np.number)):
        raise InvalidInput("Invalid 'value' input: must be a numeric scalar.")


def _masked(values: np.ndarray, mask: np.ndarray, value: Any) -> np.ndarray:
    out = values.astype(np.result_type(values, value), copy=True)
    out[mask, :] = value
    return out


def apply_mask(obj: Any, locations: Any, value: Any, selections: Sequence[str] | None = None) -> Any:
    """
    Write `value` at the given sample locations.

    selections names groups and/or signals (datasets) or signals (groups).
    Without selections every non-Time group of a dataset, or every signal of
    a group, is masked. A selected signal has all its instances overwritten
    with the masked primary instance.
    """
    n = _data_length(obj)
    mask = location_mask(locations, n)
    _check_value(value)
    if selections is None:
        selections = []
    elif isinstance(selections, str):
        selections = [selections]
    if not all(isinstance(s, str) for s in selections):
        raise InvalidInput("Invalid 'selections' input.")

    def on_group(group: SignalGroup) -> SignalGroup:
        group = require_signal_group(group)
        if not selections:
            return group.replace(values=_masked(group.values, mask, value))
        for name in selections:
            x = get_signal(name, group)[0].astype(np.result_type(group.values, value))
            x[mask] = value
            group = replace_signal_in_group(group, name, x)
        return group

    def on_dataset(data: Dataset) -> Dataset:
        data = require_dataset(data)
        targets = list(selections) or data.signal_group_names(include_time=False)
        for name in targets:
            if name in data:
                data = data.replace_groups({name: data[name].replace(values=_masked(data[name].values, mask, value))})
            else:
                x = get_signal(name, data)[0].astype(np.result_type(data[_owner(data, name)].values, value))
                x[mask] = value
                data = replace_signal_in_dataset(data, name, x)
        return data

    return apply_to(obj, group=on_group, dataset=on_dataset)


def _owner(data: Dataset, name: str) -> str:
    return next(key for key, rows in find_name(name, data).items() if rows)


def apply_index(obj: Any, index: Any, *, attributes: bool = False) -> Any:
    """
    Index every group along the sample axis with 0-based integers or a
    boolean mask. An empty index yields an empty (zero-length) result with
    all groups kept. With attributes=True, dataset attributes that are
    length-N 1-D arrays are indexed too.
    """
    n = _data_length(obj)
    arr = np.asarray(index)
    if arr.dtype == bool:
        if arr.ndim != 1 or arr.size != n:
            raise InvalidInput("Invalid or wrong size 'mask' input.")
    elif arr.size == 0:
        arr = np.empty(0, dtype=int)
    elif arr.dtype.kind not in "iu":
        raise InvalidInput("One or more 'index' values is not valid.")
    elif np.any(arr < 0) or np.any(arr >= n):
        raise InvalidInput("One or more 'index' values is out of range.")
    arr = arr.ravel()

    def on_group(group: SignalGroup) -> SignalGroup:
        group = require_signal_group(group)
        return group.replace(values=group.values[arr, :])

    def on_dataset(data: Dataset) -> Dataset:
        data = require_dataset(data)
        out = data.replace_groups({k: g.replace(values=g.values[arr, :]) for k, g in data.items()})
        if attributes:
            length = data.n
            updated = {
                k: np.asarray(v)[arr]
                for k, v in data.attrs.items()
                if isinstance(v, np.ndarray) and v.ndim == 1 and v.size == length
            }
            out = out.with_attrs(**updated)
        return out

    return apply_to(obj, group=on_group, dataset=on_dataset)
