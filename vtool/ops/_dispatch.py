# vtool/ops/_dispatch.py
from __future__ import annotations

from typing import Any, Callable

import numpy as np

from vtool.core.arrays import DatasetArray, SignalGroupArray
from vtool.core.batch import apply_elementwise
from vtool.core.dataset import Dataset
from vtool.core.exceptions import InvalidInput
from vtool.core.signal_group import SignalGroup


def apply_to(
    obj: Any,
    *,
    group: Callable[[SignalGroup], Any] | None = None,
    dataset: Callable[[Dataset], Any] | None = None,
) -> Any:
    """
    Route `obj` to the group or dataset handler; arrays run element by element
    through the batch driver and are rebuilt from the results.
    """
    if isinstance(obj, SignalGroup) and group is not None:
        return group(obj)
    if isinstance(obj, Dataset) and dataset is not None:
        return dataset(obj)
    if isinstance(obj, SignalGroupArray) and group is not None:
        return SignalGroupArray(tuple(apply_elementwise(group, obj, kind="signal group")))
    if isinstance(obj, DatasetArray) and dataset is not None:
        return DatasetArray(tuple(apply_elementwise(dataset, obj, kind="dataset")))

    kinds = []
    if group is not None:
        kinds.append("signal groups")
    if dataset is not None:
        kinds.append("datasets")
    raise InvalidInput(f"Works for {' and '.join(kinds)} and their arrays only.")


def as_column(x: Any, n: int, label: str = "x") -> np.ndarray:
    """Coerce `x` to a length-n column: None/empty -> NaN, scalar -> broadcast."""
    if x is None:
        return np.full(n, np.nan)
    arr = np.asarray(x)
    if arr.dtype.kind not in "biufM":
        raise InvalidInput(f"Input '{label}' must be numeric.")
    if arr.size == 0:
        return np.full(n, np.nan)
    if arr.ndim == 0 or arr.size == 1 and n != 1:
        return np.full(n, arr.ravel()[0], dtype=arr.dtype if arr.dtype.kind != "b" else float)
    if arr.ndim == 2 and arr.shape[1] == 1:
        arr = arr[:, 0]
    if arr.ndim != 1:
        raise InvalidInput(f"Input '{label}' must be a column vector or a scalar.")
    if arr.shape[0] != n:
        raise InvalidInput(f"Input '{label}' has the wrong size ({arr.shape[0]} samples, expected {n}).")
    return arr


def names_selection(selections: Any) -> tuple[list, bool]:
    """
    Normalize a selection to (entries, by_index). Entries are names (str) or
    integer column positions; a bare string is a single name.
    """
    if selections is None:
        return [], False
    if isinstance(selections, str):
        return [selections], False
    if isinstance(selections, (int, np.integer)) and not isinstance(selections, bool):
        return [int(selections)], True
    entries = list(np.asarray(selections).ravel()) if isinstance(selections, np.ndarray) else list(selections)
    if all(isinstance(e, str) for e in entries):
        return entries, False
    if all(isinstance(e, (int, np.integer)) and not isinstance(e, bool) for e in entries):
        return [int(e) for e in entries], True
    raise InvalidInput("Invalid 'selections' input: expected signal names or integer indices.")
