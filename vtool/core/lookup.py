# vtool/core/lookup.py
"""
Name resolution across name layers.

Lookups return empty results rather than raising; the caller decides whether
"not found" is an error. The first matching row is the primary instance.
"""
from __future__ import annotations

import logging
from typing import Any

import numpy as np

from .arrays import DatasetArray, SignalGroupArray
from .dataset import TIME_GROUP, Dataset
from .exceptions import InvalidInput, LayerNotFound, SignalNotFound
from .signal_group import TIME_NAMES, SignalGroup
from .validity import require_dataset, require_signal_group


logger = logging.getLogger(__name__)


def _check_name(name: Any) -> str:
    if not isinstance(name, str):
        raise InvalidInput("Input 'name' must be a string.")
    return name


def match_rows(group: SignalGroup, name: str) -> list[int]:
    rows = group.names_matrix()
    if name == "":
        return [i for i, row in enumerate(rows) if all(s == "" for s in row)]
    return [i for i, row in enumerate(rows) if name in row]


def find_name(name: str, obj: SignalGroup | Dataset) -> list[int] | dict[str, list[int]]:
    """
    Locate `name` on any name layer.

    - SignalGroup: sorted row indices of every match
    - Dataset: {group name: row indices}, only for groups with a match

    The empty name matches rows that are empty on every layer.
    """
    name = _check_name(name)
    if isinstance(obj, SignalGroup):
        return match_rows(require_signal_group(obj), name)
    if isinstance(obj, Dataset):
        data = require_dataset(obj)
        out: dict[str, list[int]] = {}
        for key, group in data.items():
            rows = match_rows(group, name)
            if rows:
                out[key] = rows
        return out
    raise InvalidInput("Input 'obj' must be a SignalGroup or a Dataset.")


def get_layers(obj: Any) -> list[str]:
    """Name layers of a group, dataset (taken from Time) or homogeneous array."""
    if isinstance(obj, SignalGroup):
        return list(obj.layers)
    if isinstance(obj, Dataset):
        return list(obj.time.layers)
    if isinstance(obj, (SignalGroupArray, DatasetArray)):
        return list(obj.layers)
    raise InvalidInput("Works for signal groups, datasets and their arrays only.")


def get_signal_groups(data: Dataset) -> dict[str, SignalGroup]:
    """Every signal group of a dataset (Time included), in field order."""
    data = require_dataset(data)
    return dict(data.groups)


def collect_signals(data: Dataset) -> SignalGroup:
    """All non-Time groups of a dataset side by side, as one SignalGroup."""
    data = require_dataset(data)
    groups = [g for k, g in data.items() if k != TIME_GROUP]
    layers = groups[0].layers
    return SignalGroup(
        names={layer: sum((list(g.names[layer]) for g in groups), []) for layer in layers},
        values=np.hstack([g.values for g in groups]),
        units=sum((list(g.units) for g in groups), []),
        descriptions=sum((list(g.descriptions) for g in groups), []),
    )


def _as_group(obj: Any) -> SignalGroup:
    if isinstance(obj, SignalGroup):
        return require_signal_group(obj)
    if isinstance(obj, Dataset):
        return collect_signals(obj)
    if isinstance(obj, SignalGroupArray):
        return obj[0]
    if isinstance(obj, DatasetArray):
        return collect_signals(obj[0])
    raise InvalidInput("Works for signal groups, datasets and their arrays only.")


def get_names_matrix(obj: Any) -> list[list[str]]:
    """One row per signal, one column per layer (non-Time signals for datasets)."""
    return [list(row) for row in _as_group(obj).names_matrix()]


def get_default_names(obj: Any, layer: str | None = None) -> list[str]:
    """
    One name per signal: the name on `layer` (first layer when None), or the
    first non-empty name on any layer where that entry is blank.
    """
    group = _as_group(obj)
    layers = list(group.layers)
    if layer in (None, ""):
        col = 0
    elif layer in layers:
        col = layers.index(layer)
    else:
        raise LayerNotFound(layer)

    names = []
    for row in group.names_matrix():
        names.append(row[col] or next((s for s in row if s), ""))
    return names


def get_signal(name: str, obj: SignalGroup | Dataset) -> tuple[np.ndarray, str, str, int]:
    """
    Return (x, units, description, index) for the primary instance of `name`.

    For datasets the index refers to the collected non-Time signals.
    Raises SignalNotFound when nothing matches.
    """
    name = _check_name(name)
    if isinstance(obj, Dataset):
        if name in TIME_NAMES:
            raise InvalidInput(f"Signal name '{name}' refers to the Time group; use Dataset.time.")
        group = collect_signals(obj)
    elif isinstance(obj, SignalGroup):
        group = require_signal_group(obj)
    else:
        raise InvalidInput("Input 'obj' must be a SignalGroup or a Dataset.")

    rows = match_rows(group, name)
    if not rows:
        raise SignalNotFound(name)
    if len(rows) > 1:
        logger.warning("Signal '%s' has %d matches; using the first one.", name, len(rows))
    i = rows[0]
    return group.values[:, i].copy(), group.units[i], group.descriptions[i], i


def get_data_length(obj: Any) -> int | list[int]:
    if isinstance(obj, SignalGroup):
        return obj.n
    if isinstance(obj, Dataset):
        return require_dataset(obj).n
    if isinstance(obj, (SignalGroupArray, DatasetArray)):
        return obj.data_lengths()
    raise InvalidInput("Works for signal groups, datasets and their arrays only.")


def get_num_signals(obj: Any) -> int:
    """Signal count (non-Time signals for datasets)."""
    return _as_group(obj).m
