# vtool/ops/select.py
from __future__ import annotations

import logging
from typing import Any, NamedTuple, Sequence

import numpy as np

from vtool.core.dataset import Dataset
from vtool.core.exceptions import GroupNotFound, InvalidInput
from vtool.core.lookup import collect_signals, match_rows
from vtool.core.signal_group import SignalGroup
from vtool.core.validity import require_dataset, require_signal_group

from ._dispatch import names_selection


logger = logging.getLogger(__name__)


class Selection(NamedTuple):
    """Result of select_from_group: the new group, per-request match flags and source columns (-1 = unmatched)."""
    group: SignalGroup
    matched: np.ndarray
    index: np.ndarray


def _resolve(group: SignalGroup, entries: list, by_index: bool) -> list[int | None]:
    if by_index:
        return [i if 0 <= i < group.m else None for i in entries]
    resolved: list[int | None] = []
    for name in entries:
        rows = match_rows(group, name)
        resolved.append(rows[0] if rows else None)
    return resolved


def select_from_group(selections: Any, group: SignalGroup, *, warn: bool = True) -> Selection:
    """
    Build a new group with one column per requested name (or column index),
    in request order.

    Each name resolves to its primary instance. An unmatched request yields
    an all-NaN column carrying the requested name on every layer, blank units
    and description, matched=False and index=-1.
    """
    group = require_signal_group(group, "Signals")
    entries, by_index = names_selection(selections)
    resolved = _resolve(group, entries, by_index)

    n = group.n
    columns: list[np.ndarray] = []
    names: dict[str, list[str]] = {layer: [] for layer in group.layers}
    units: list[str] = []
    descriptions: list[str] = []
    for entry, i in zip(entries, resolved):
        if i is None:
            columns.append(np.full(n, np.nan))
            placeholder = "" if by_index else entry
            for layer in names:
                names[layer].append(placeholder)
            units.append("")
            descriptions.append("")
        else:
            columns.append(group.values[:, i])
            for layer in names:
                names[layer].append(group.names[layer][i])
            units.append(group.units[i])
            descriptions.append(group.descriptions[i])

    unmatched = [e for e, i in zip(entries, resolved) if i is None]
    if unmatched and warn:
        logger.warning("The following selections were not found: %s", ", ".join(map(str, unmatched)))

    values = np.column_stack(columns) if columns else np.empty((n, 0), dtype=group.values.dtype)
    out = SignalGroup(names=names, values=values, units=units, descriptions=descriptions)
    matched = np.array([i is not None for i in resolved], dtype=bool)
    index = np.array([-1 if i is None else i for i in resolved], dtype=int)
    return Selection(out, matched, index)


def select_from_dataset(selections: Any, data: Dataset, *, warn: bool = True) -> Selection:
    """select_from_group applied to the dataset's collected non-Time signals."""
    return select_from_group(selections, collect_signals(data), warn=warn)


def remove_from_group(
    selections: Any, group: SignalGroup, *, clear: bool = False, warn: bool = True
) -> tuple[SignalGroup, np.ndarray]:
    """
    Remove every column matching the selections (all instances, not just the
    primary one). Returns (group, matched) with one flag per request.

    clear=True keeps the columns but fills them with NaN and blanks their
    names, units and description.
    """
    group = require_signal_group(group, "Signals")
    entries, by_index = names_selection(selections)

    hit: set[int] = set()
    matched = []
    for entry in entries:
        if by_index:
            rows = [entry] if 0 <= entry < group.m else []
        else:
            rows = match_rows(group, entry)
        hit.update(rows)
        matched.append(bool(rows))

    unmatched = [e for e, ok in zip(entries, matched) if not ok]
    if unmatched and warn:
        logger.warning("The following selections were not found: %s", ", ".join(map(str, unmatched)))

    if clear:
        rows = sorted(hit)
        values = group.values.astype(float, copy=True)
        values[:, rows] = np.nan

        def blank(seq: Sequence[str]) -> list[str]:
            return ["" if j in hit else s for j, s in enumerate(seq)]

        out = SignalGroup(
            names={layer: blank(v) for layer, v in group.names.items()},
            values=values,
            units=blank(group.units),
            descriptions=blank(group.descriptions),
        )
    else:
        keep = [j for j in range(group.m) if j not in hit]

        def pick(seq: Sequence[str]) -> list[str]:
            return [seq[j] for j in keep]

        out = SignalGroup(
            names={layer: pick(v) for layer, v in group.names.items()},
            values=group.values[:, keep],
            units=pick(group.units),
            descriptions=pick(group.descriptions),
        )
    return out, np.array(matched, dtype=bool)


def remove_groups_except(selections: str | Sequence[str], data: Dataset) -> Dataset:
    """Keep only Time and the listed groups."""
    data = require_dataset(data)
    if isinstance(selections, str):
        selections = [selections]
    selections = list(selections or [])
    if not all(isinstance(s, str) for s in selections):
        raise InvalidInput("Invalid 'selections' input.")
    unknown = [s for s in selections if s not in data]
    if unknown:
        raise GroupNotFound(", ".join(unknown))
    return data.select([k for k in data.keys() if k in selections])
