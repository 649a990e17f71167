# vtool/ops/mutate.py
from __future__ import annotations

from typing import Any, Sequence

import numpy as np

from vtool.core.dataset import Dataset
from vtool.core.exceptions import InvalidInput, LayerNotFound, SignalNotFound
from vtool.core.lookup import match_rows
from vtool.core.signal_group import LAYER_SUFFIX, SignalGroup
from vtool.core.validity import is_valid_name, require_dataset, require_signal_group

from ._dispatch import apply_to, as_column


DEFAULT_LAYER = "Names"


def _resolve_layer(group: SignalGroup, layer: str | None) -> str:
    if layer in (None, ""):
        return group.layers[0]
    if layer not in group.layers:
        raise LayerNotFound(layer)
    return layer


def _check_text(value: Any, label: str) -> str:
    if not isinstance(value, str):
        raise InvalidInput(f"Input '{label}' is invalid.")
    return value


# ---- add ----
def add_signal_to_group(
    group: SignalGroup | None,
    name: str,
    x: Any,
    *,
    units: str = "",
    description: str = "",
    layer: str | None = None,
) -> SignalGroup:
    """
    Append one column. Other layers get an empty name for it.

    x may be a length-N vector, a scalar (broadcast) or None/empty (NaN).
    With group=None a new single-signal group is created on `layer`
    (default "Names").
    """
    if not isinstance(name, str) or (name and not is_valid_name(name)):
        raise InvalidInput(f"Input 'name' is invalid: {name!r}.")
    units = _check_text(units, "units")
    description = _check_text(description, "description")

    if group is None:
        layer = layer or DEFAULT_LAYER
        if not layer.endswith(LAYER_SUFFIX):
            raise InvalidInput(f"Input 'layer' must end in '{LAYER_SUFFIX}'.")
        if x is None or np.size(x) == 0:
            raise InvalidInput("Input 'x' must contain data when creating a new signal group.")
        column = np.asarray(x)
        column = column.reshape(-1) if column.ndim else column.reshape(1)
        return SignalGroup(
            names={layer: [name]},
            values=column[:, np.newaxis],
            units=[units],
            descriptions=[description],
        )

    group = require_signal_group(group, "Signals")
    layer = _resolve_layer(group, layer)
    column = as_column(x, group.n)

    names = {k: list(v) + [name if k == layer else ""] for k, v in group.names.items()}
    values = np.column_stack([group.values, column]) if group.m else column[:, np.newaxis]
    return SignalGroup(
        names=names,
        values=values,
        units=list(group.units) + [units],
        descriptions=list(group.descriptions) + [description],
    )


# ---- replace ----
def _replace_in_group(
    group: SignalGroup,
    name: str,
    x: Any,
    new_name: str | None,
    units: str | None,
    description: str | None,
    layer: str | None,
) -> tuple[SignalGroup, bool]:
    group = require_signal_group(group, "Signals")
    if not isinstance(name, str):
        raise InvalidInput("Input 'name' is invalid.")
    if x is None or np.size(x) == 0:
        raise InvalidInput("Input 'x' must be a column vector or a scalar.")
    column = as_column(x, group.n)

    rows = match_rows(group, name)
    if not rows:
        return group, False

    values = group.values.astype(np.result_type(group.values, column), copy=True)
    values[:, rows] = column[:, np.newaxis]

    names = {k: list(v) for k, v in group.names.items()}
    units_out = list(group.units)
    descriptions_out = list(group.descriptions)

    if new_name is not None:
        if not is_valid_name(new_name):
            raise InvalidInput(f"Input 'new_name' is invalid: {new_name!r}.")
        target = _resolve_layer(group, layer)
        for k in names:
            for i in rows:
                names[k][i] = new_name if k == target else ""
    if units is not None:
        _check_text(units, "units")
        for i in rows:
            units_out[i] = units
    if description is not None:
        _check_text(description, "description")
        for i in rows:
            descriptions_out[i] = description

    out = SignalGroup(names=names, values=values, units=units_out, descriptions=descriptions_out)
    return out, True


def try_replace_signal_in_group(
    group: SignalGroup,
    name: str,
    x: Any,
    *,
    new_name: str | None = None,
    units: str | None = None,
    description: str | None = None,
    layer: str | None = None,
) -> tuple[SignalGroup, bool]:
    """Like replace_signal_in_group, but reports a miss as (group, False)."""
    return _replace_in_group(group, name, x, new_name, units, description, layer)


def replace_signal_in_group(
    group: SignalGroup,
    name: str,
    x: Any,
    *,
    new_name: str | None = None,
    units: str | None = None,
    description: str | None = None,
    layer: str | None = None,
) -> SignalGroup:
    """
    Overwrite the data of every column matching `name` (all instances).

    x is a length-N vector or a scalar (broadcast). With new_name, the name
    goes on `layer` (first layer by default) and the other layers are blanked;
    units/description, when given, replace the existing ones.
    Raises SignalNotFound when nothing matches.
    """
    out, matched = _replace_in_group(group, name, x, new_name, units, description, layer)
    if not matched:
        raise SignalNotFound(name)
    return out


def try_replace_signal_in_dataset(
    data: Dataset,
    name: str,
    x: Any,
    *,
    new_name: str | None = None,
    units: str | None = None,
    description: str | None = None,
    layer: str | None = None,
) -> tuple[Dataset, bool]:
    data = require_dataset(data)
    replaced: dict[str, SignalGroup] = {}
    for key, group in data.items():
        out, matched = _replace_in_group(group, name, x, new_name, units, description, layer)
        if matched:
            replaced[key] = out
    if not replaced:
        return data, False
    return data.replace_groups(replaced), True


def replace_signal_in_dataset(
    data: Dataset,
    name: str,
    x: Any,
    *,
    new_name: str | None = None,
    units: str | None = None,
    description: str | None = None,
    layer: str | None = None,
) -> Dataset:
    """replace_signal_in_group applied to every group of the dataset."""
    out, matched = try_replace_signal_in_dataset(
        data, name, x, new_name=new_name, units=units, description=description, layer=layer
    )
    if not matched:
        raise SignalNotFound(name)
    return out


# ---- units / descriptions ----
def _set_text(obj: Any, name: str, value: str, field: str) -> Any:
    _check_text(value, field)

    def on_group(group: SignalGroup) -> SignalGroup:
        group = require_signal_group(group, "Signals")
        rows = match_rows(group, name)
        if not rows:
            raise SignalNotFound(name)
        entries = list(getattr(group, field))
        for i in rows:
            entries[i] = value
        return group.replace(**{field: entries})

    def on_dataset(data: Dataset) -> Dataset:
        data = require_dataset(data)
        changed = {}
        for key, group in data.items():
            if match_rows(group, name):
                changed[key] = on_group(group)
        if not changed:
            raise SignalNotFound(name)
        return data.replace_groups(changed)

    return apply_to(obj, group=on_group, dataset=on_dataset)


def replace_units(obj: Any, name: str, units: str) -> Any:
    """Set the units of every signal matching `name`; raises SignalNotFound on a miss."""
    return _set_text(obj, name, units, "units")


def replace_description(obj: Any, name: str, description: str) -> Any:
    """Set the description of every signal matching `name`; raises SignalNotFound on a miss."""
    return _set_text(obj, name, description, "descriptions")


# ---- name layers ----
def _layer_list(layers: str | Sequence[str], label: str) -> list[str]:
    if isinstance(layers, str):
        layers = [layers]
    layers = list(layers)
    if not layers or not all(isinstance(s, str) and s.endswith(LAYER_SUFFIX) for s in layers):
        raise InvalidInput(f"Input '{label}' must name layers ending in '{LAYER_SUFFIX}'.")
    return layers


def _map_groups(obj: Any, on_group) -> Any:
    def on_dataset(data: Dataset) -> Dataset:
        data = require_dataset(data)
        return data.replace_groups({k: on_group(g) for k, g in data.items()})

    return apply_to(obj, group=on_group, dataset=on_dataset)


def add_name_layer(obj: Any, layers: str | Sequence[str]) -> Any:
    """Append blank name layer(s); layers already present are left alone."""
    new_layers = _layer_list(layers, "layers")

    def on_group(group: SignalGroup) -> SignalGroup:
        names = {k: list(v) for k, v in group.names.items()}
        for layer in new_layers:
            names.setdefault(layer, [""] * group.m)
        return group.replace(names=names)

    return _map_groups(obj, on_group)


def remove_name_layer(obj: Any, layers: str | Sequence[str]) -> Any:
    """Drop name layer(s). Removing every layer is not permitted."""
    drop = _layer_list(layers, "layers")

    def on_group(group: SignalGroup) -> SignalGroup:
        missing = [s for s in drop if s not in group.layers]
        if missing:
            raise LayerNotFound(", ".join(missing))
        names = {k: v for k, v in group.names.items() if k not in drop}
        if not names:
            raise InvalidInput("Removing all existing name layers is not permitted.")
        return group.replace(names=names)

    return _map_groups(obj, on_group)


def rename_layer(obj: Any, old: str | Sequence[str], new: str | Sequence[str]) -> Any:
    """Rename name layers in place (layer order kept)."""
    old_layers = _layer_list(old, "old")
    new_layers = _layer_list(new, "new")
    if len(old_layers) != len(new_layers):
        raise InvalidInput("Number of old and new layer names must match.")
    mapping = dict(zip(old_layers, new_layers))

    def on_group(group: SignalGroup) -> SignalGroup:
        missing = [s for s in old_layers if s not in group.layers]
        if missing:
            raise LayerNotFound(", ".join(missing))
        names = {mapping.get(k, k): v for k, v in group.names.items()}
        if len(names) != len(group.names):
            raise InvalidInput("Renaming would produce duplicate name layers.")
        return group.replace(names=names)

    return _map_groups(obj, on_group)


