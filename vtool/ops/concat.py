# vtool/ops/concat.py
from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

import numpy as np

from vtool.core.arrays import DatasetArray, SignalGroupArray
from vtool.core.dataset import Dataset, attrs_equal
from vtool.core.exceptions import Incompatible, InvalidInput
from vtool.core.signal_group import SignalGroup
from vtool.core.validity import require_dataset, require_signal_group


logger = logging.getLogger(__name__)


def _flatten(args: Iterable[Any], kind: type, array_kind: type) -> list:
    out: list = []
    for arg in args:
        if isinstance(arg, kind):
            out.append(arg)
        elif isinstance(arg, array_kind):
            out.extend(arg)
        elif isinstance(arg, (list, tuple)) and all(isinstance(a, kind) for a in arg):
            out.extend(arg)
        else:
            raise InvalidInput(f"Inputs must all be {kind.__name__} values or arrays of them.")
    if not out:
        raise InvalidInput("At least one input is required.")
    return out


# ---- units reconciliation ----
def _reconcile_rows(units: list[list[str]]) -> list[str] | None:
    """
    units[k] holds input k's units for one set of channels. Returns the
    reconciled units or None if a channel has genuinely conflicting units.
    """
    out = list(units[0])
    for j in range(len(out)):
        row = [u[j] for u in units]
        distinct = set(row)
        if len(distinct) == 2 and "" in distinct:
            out[j] = next(u for u in row if u)
        elif len(distinct) > 1:
            return None
    return out


def _distribute(objs: Sequence[Any], update: Any) -> list:
    """Apply `update` to every scalar input, keeping each input's shape."""
    out = []
    for obj in objs:
        if isinstance(obj, (SignalGroupArray, DatasetArray)):
            out.append(type(obj)(tuple(update(e) for e in obj)))
        else:
            out.append(update(obj))
    return out


def reconcile_units(objs: Sequence[Any]) -> tuple[list, bool]:
    """
    Fill blank units from the inputs that carry them.

    For each channel, if its units across all inputs are exactly one
    non-blank string plus blanks, the blanks take that string. Any channel
    with two different non-blank units makes the whole call fail: the inputs
    are returned unchanged with success=False.

    Inputs are signal groups or datasets, or arrays of either; the output
    list mirrors `objs` element for element. Only units are written back;
    descriptions stay as they are. Raises Incompatible if the names do not
    line up.
    """
    if not objs:
        raise InvalidInput("Invalid usage: no inputs.")
    if all(isinstance(o, (SignalGroup, SignalGroupArray)) for o in objs):
        groups = [require_signal_group(g) for g in _flatten(objs, SignalGroup, SignalGroupArray)]
        first = groups[0]
        if any(g.layers != first.layers or g.names_matrix() != first.names_matrix() for g in groups):
            raise Incompatible("The provided inputs are not compatible.")
        units = _reconcile_rows([list(g.units) for g in groups])
        if units is None:
            return list(objs), False
        return _distribute(objs, lambda g: g.replace(units=units)), True

    if all(isinstance(o, (Dataset, DatasetArray)) for o in objs):
        datasets = [require_dataset(d) for d in _flatten(objs, Dataset, DatasetArray)]
        first = datasets[0]
        names = first.signal_group_names(include_time=False)
        if any(d.signal_group_names(include_time=False) != names for d in datasets):
            raise Incompatible("The provided inputs are not compatible.")

        updates: dict[str, list[str]] = {}
        for name in names:
            groups = [d[name] for d in datasets]
            if any(g.layers != groups[0].layers or g.names_matrix() != groups[0].names_matrix() for g in groups):
                raise Incompatible("The provided inputs are not compatible.")
            units = _reconcile_rows([list(g.units) for g in groups])
            if units is None:
                return list(objs), False
            updates[name] = units

        def update(d: Dataset) -> Dataset:
            return d.replace_groups({name: d[name].replace(units=u) for name, u in updates.items()})

        return _distribute(objs, update), True

    raise InvalidInput("Inputs must be all signal groups or all datasets (or arrays of same).")


# ---- concatenation along the sample axis ----
def concat_signal_groups(*groups: SignalGroup | SignalGroupArray) -> SignalGroup:
    """
    Stack groups vertically (sample axis).

    Names (layers and their contents) must match exactly. Differing units go
    through reconcile_units; a genuine conflict raises Incompatible.
    """
    items = [require_signal_group(g) for g in _flatten(groups, SignalGroup, SignalGroupArray)]
    first = items[0]
    if any(g.layers != first.layers or g.names_matrix() != first.names_matrix() for g in items):
        raise Incompatible("Non-homogeneous inputs. Names and/or name orders do not match.")

    if any(tuple(g.units) != tuple(first.units) for g in items):
        items, success = reconcile_units(items)
        if not success:
            raise Incompatible("Non-homogeneous inputs. Units do not match.")
        logger.info("Units reconciled across %d signal groups.", len(items))

    head = items[0]
    return head.replace(values=np.concatenate([g.values for g in items], axis=0))


def _combine_attrs(datasets: Sequence[Dataset]) -> dict[str, Any]:
    keys = list(datasets[0].attrs)
    if any(sorted(d.attrs) != sorted(keys) for d in datasets):
        raise Incompatible("Input datasets are not compatible. Attribute fields do not match.")

    out: dict[str, Any] = {}
    for key in keys:
        values = [d.attrs[key] for d in datasets]
        if all(attrs_equal(values[0], v) for v in values[1:]):
            out[key] = values[0]
            continue
        logger.warning("'%s' fields are not equal. Concatenating those.", key)
        if isinstance(values[0], str):
            out[key] = "~".join(str(v) for v in values)
        else:
            out[key] = list(values)
    return out


def concat_datasets(*datasets: Dataset | DatasetArray) -> Dataset:
    """
    Stack datasets vertically (sample axis), group by group.

    Requires the same groups, layers and names everywhere, and identical Time
    units. Signal units are reconciled as in concat_signal_groups. Attributes
    that differ are combined: strings joined with "~", anything else listed.
    """
    items = [require_dataset(d) for d in _flatten(datasets, Dataset, DatasetArray)]
    first = items[0]

    if any(sorted(d.keys()) != sorted(first.keys()) for d in items):
        raise Incompatible("Input datasets are not compatible. Signal groups do not match.")
    if any(d.layers != first.layers for d in items):
        raise Incompatible("Inputs have missing/incompatible name layers.")
    for name in first.signal_group_names(include_time=False):
        if any(d[name].names_matrix() != first[name].names_matrix() for d in items):
            raise Incompatible("Non-homogeneous inputs. Names and/or name orders do not match.")

    units_differ = any(
        tuple(d[name].units) != tuple(first[name].units)
        for d in items for name in first.signal_group_names(include_time=False)
    )
    if units_differ:
        items, success = reconcile_units(items)
        if not success:
            raise Incompatible("Non-homogeneous inputs. Units do not match.")
        logger.info("Units reconciled across %d datasets.", len(items))
        first = items[0]

    if any(tuple(d.time.units) != tuple(first.time.units) for d in items):
        raise Incompatible("Inputs have incompatible time vectors. Possibly mixing absolute/elapsed time.")

    groups = {
        name: first[name].replace(values=np.concatenate([d[name].values for d in items], axis=0))
        for name in first.keys()
    }
    return Dataset(groups=groups, attrs=_combine_attrs(items))
