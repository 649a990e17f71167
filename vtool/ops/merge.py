# vtool/ops/merge.py
from __future__ import annotations

import logging

import numpy as np

from vtool.core.dataset import TIME_GROUP, Dataset
from vtool.core.exceptions import Incompatible, InvalidInput
from vtool.core.signal_group import SignalGroup
from vtool.core.validity import require_dataset, require_signal_group


logger = logging.getLogger(__name__)


def merge_signal_groups(*groups: SignalGroup) -> SignalGroup:
    """
    Place groups side by side (signal axis). Inputs need identical name
    layers (same order) and the same sample count.
    """
    if not groups:
        raise InvalidInput("Invalid usage: no inputs.")
    items = [require_signal_group(g, f"group #{k}") for k, g in enumerate(groups)]
    first = items[0]
    if any(g.layers != first.layers for g in items):
        raise Incompatible("Inputs have incompatible name layers.")
    if any(g.n != first.n for g in items):
        raise Incompatible("Inputs have incompatible signal lengths.")

    return SignalGroup(
        names={layer: [s for g in items for s in g.names[layer]] for layer in first.layers},
        values=np.hstack([g.values for g in items]),
        units=[u for g in items for u in g.units],
        descriptions=[d for g in items for d in g.descriptions],
    )


def merge_datasets(*datasets: Dataset, warn: bool = True) -> tuple[Dataset, list[str]]:
    """
    Union of the groups of several datasets sharing the same Time group.

    On a group-name collision the later input wins; the overwritten group
    names are returned (and logged unless warn=False). Attributes come from
    the first input.
    """
    if not datasets:
        raise InvalidInput("Invalid usage: no inputs.")
    items = [require_dataset(d, f"dataset #{k}") for k, d in enumerate(datasets)]
    first = items[0]
    if any(d.layers != first.layers for d in items):
        raise Incompatible("Inputs have incompatible name layers.")
    if any(d.n != first.n for d in items):
        raise Incompatible("Inputs have incompatible signal lengths.")
    if any(d.time != first.time for d in items):
        raise Incompatible("Inputs have incompatible 'Time' groups.")

    groups = dict(first.groups)
    conflicts: list[str] = []
    for data in items[1:]:
        for name, group in data.items():
            if name == TIME_GROUP:
                continue
            if name in groups and groups[name] != group and name not in conflicts:
                conflicts.append(name)
            groups[name] = group

    if conflicts and warn:
        logger.warning("These groups were overwritten as a result of the merge: %s", ", ".join(conflicts))
    return Dataset(groups=groups, attrs=dict(first.attrs)), conflicts
