# vtool/core/validity.py
"""
Structural validity predicates.

Every predicate returns ``(is_type, is_valid, reason)`` and never raises:
- is_type: the object has the right shape (SignalGroup / Dataset / arrays,
  or the equivalent struct-shaped mappings)
- is_valid: every invariant holds
- reason: empty on success, a one-line diagnostic otherwise

The ``require_*`` helpers turn a failed check into the matching exception
and are what the operations call before touching their inputs.
"""
from __future__ import annotations

import re
from typing import Any, Mapping, Sequence

import numpy as np

from .dataset import TIME_GROUP, Dataset
from .exceptions import InvalidDataset, InvalidSignalGroup
from .signal_group import ABSOLUTE_TIME_UNITS, LAYER_SUFFIX, TIME_NAMES, SignalGroup


Check = tuple[bool, bool, str]

_NAME_PATTERN = re.compile(r"[A-Za-z]\w*", re.ASCII)
_STRUCT_FIELDS = ("Values", "Units", "Descriptions")


# ---- field access ----
def _group_fields(x: Any) -> tuple[dict[str, Sequence], Any, Any, Any] | str:
    """Return (layers, values, units, descriptions), or a reason string if x is not group-shaped."""
    if isinstance(x, SignalGroup):
        return dict(x.names), x.values, x.units, x.descriptions
    if not isinstance(x, Mapping):
        return "Not a signal group or mapping."
    for key in _STRUCT_FIELDS:
        if key not in x:
            return f"The '{key}' field is missing."
    layer_keys = [k for k in x if k not in _STRUCT_FIELDS]
    if not layer_keys:
        return "Name fields are missing."
    if any(not isinstance(k, str) or not k.endswith(LAYER_SUFFIX) for k in layer_keys):
        return "Contains one or more unrecognized fields."
    return {k: x[k] for k in layer_keys}, x["Values"], x["Units"], x["Descriptions"]


def _is_string_list(entries: Any) -> bool:
    if isinstance(entries, np.ndarray):
        return entries.ndim == 1
    return not isinstance(entries, str) and isinstance(entries, Sequence)


def _signal_group_problem(
    layers: Mapping[str, Any], values: Any, units: Any, descriptions: Any
) -> str:
    if not _is_string_list(units):
        return "The 'Units' field is not valid. Must be a list of strings."
    if not all(isinstance(u, str) for u in units):
        return "The 'Units' field contains one or more non-string entries."

    try:
        v = np.asarray(values)
    except (ValueError, TypeError):
        return "The 'Values' field is not of valid type."
    is_absolute = list(units) == [ABSOLUTE_TIME_UNITS]
    if v.dtype.kind not in "biufc" and not (is_absolute and v.dtype.kind == "M"):
        return "The 'Values' field is not of valid type."
    if v.ndim != 2:
        return "The 'Values' field must be 2-dimensional."

    nsignals = v.shape[1]
    for layer, names in layers.items():
        if not _is_string_list(names):
            return f"The '{layer}' layer is not a valid list."
        if len(names) != nsignals:
            return f"The '{layer}' layer has the wrong length."
        if not all(isinstance(s, str) for s in names):
            return f"The '{layer}' layer contains one or more non-string entries."
        if any(s and not _NAME_PATTERN.fullmatch(s) for s in names):
            return f"The '{layer}' layer contains one or more invalid names."

    if len(units) != nsignals:
        return "The 'Units' field has the wrong length."
    if not _is_string_list(descriptions):
        return "The 'Descriptions' field is not valid. Must be a list of strings."
    if not all(isinstance(d, str) for d in descriptions):
        return "The 'Descriptions' field contains one or more non-string entries."
    if len(descriptions) != nsignals:
        return "The 'Descriptions' field has the wrong length."
    return ""


# ---- predicates ----
def is_signal_group(x: Any, *, time: bool = False) -> Check:
    """
    Check that `x` is a well-formed signal group.

    With time=True the group must also be a Time group: a single column named
    'Time' or 'Index' on every layer.
    """
    fields = _group_fields(x)
    if isinstance(fields, str):
        return False, False, fields
    layers, values, units, descriptions = fields

    reason = _signal_group_problem(layers, values, units, descriptions)
    if reason:
        return True, False, reason

    if time:
        if np.asarray(values).shape[1] != 1:
            return False, False, "'Time' signal groups must contain a single data column."
        for layer, names in layers.items():
            if names[0] not in TIME_NAMES:
                return False, False, (
                    f"'Time' signal groups must be named 'Time' or 'Index' on every layer "
                    f"(layer '{layer}' has '{names[0]}')."
                )
    return True, True, ""


def _as_dataset(x: Any) -> Dataset | str:
    if isinstance(x, Dataset):
        return x
    if not isinstance(x, Mapping):
        return "Not a dataset or mapping."
    try:
        return Dataset.from_dict(x)
    except (InvalidDataset, InvalidSignalGroup) as e:
        return str(e)


def is_dataset(x: Any) -> Check:
    data = _as_dataset(x)
    if isinstance(data, str):
        return False, False, data
    if TIME_GROUP not in data:
        return False, False, "Missing 'Time' field."

    is_type, valid, _ = is_signal_group(data[TIME_GROUP], time=True)
    if not (is_type and valid):
        return False, False, "The 'Time' field is not a valid signal group."

    names = data.signal_group_names(include_time=False)
    if not names:
        return False, False, "Dataset must contain at least one non-Time signal group."

    invalid = [k for k, g in data.items() if not is_signal_group(g)[1]]
    if invalid:
        return True, False, f"Contains invalid signal group(s): {{{', '.join(invalid)}}}."

    layers = [g.layers for g in data.values()]
    if any(sorted(lay) != sorted(layers[0]) for lay in layers):
        return True, False, "Signal group name layers do not match."
    if any(lay != layers[0] for lay in layers):
        return True, False, "Order of name layers does not match across all signal groups."

    dtypes = {data[k].values.dtype for k in names}
    if len(dtypes) > 1:
        return True, False, "Data types do not match across all signal groups."

    if len({g.n for g in data.values()}) > 1:
        return True, False, "Signal groups have incompatible data lengths."
    return True, True, ""


def _mismatched_units(units_rows: list[tuple[str, ...]], labels: Sequence[str]) -> list[str]:
    bad = []
    for j, label in enumerate(labels):
        if len({row[j] for row in units_rows}) > 1:
            bad.append(label)
    return bad


def _row_labels(group: SignalGroup) -> list[str]:
    return [next((s for s in row if s), f"#{j}") for j, row in enumerate(group.names_matrix())]


def is_signal_group_array(x: Any, *, time: bool = False) -> Check:
    """
    Check that `x` is a homogeneous collection of signal groups: every element
    valid, identical names matrices and identical units. Sample lengths may
    differ between elements.
    """
    from .arrays import SignalGroupArray

    if isinstance(x, SignalGroupArray):
        elements = list(x.elements)
    elif isinstance(x, SignalGroup):
        elements = [x]
    elif isinstance(x, (list, tuple)) and all(not isinstance(_group_fields(e), str) for e in x):
        elements = list(x)
    else:
        return False, False, "Not a signal group or signal group array."

    groups: list[SignalGroup] = []
    for k, element in enumerate(elements):
        is_type, valid, reason = is_signal_group(element, time=time)
        if not valid:
            return is_type, False, f"Element #{k}: {reason}"
        groups.append(element if isinstance(element, SignalGroup) else SignalGroup.from_dict(element))

    if len(groups) < 2:
        return True, True, ""

    first = groups[0]
    for k, g in enumerate(groups[1:], start=1):
        if g.layers != first.layers or g.names_matrix() != first.names_matrix():
            return True, False, f"Signal names are not consistent across array elements (element #{k})."

    bad = _mismatched_units([tuple(g.units) for g in groups], _row_labels(first))
    if bad:
        return True, False, f"Units are not consistent across array elements for signal(s): {', '.join(bad)}."
    return True, True, ""


def is_dataset_array(x: Any) -> Check:
    """
    Check that `x` is a homogeneous collection of datasets: every element
    valid, identical group sets, identical names and units per group, and
    identical Time units. Sample lengths may differ between elements.
    """
    from .arrays import DatasetArray

    if isinstance(x, DatasetArray):
        elements = list(x.elements)
    elif isinstance(x, Dataset):
        elements = [x]
    elif isinstance(x, (list, tuple)) and all(isinstance(e, (Dataset, Mapping)) for e in x):
        elements = list(x)
    else:
        return False, False, "Not a dataset or dataset array."

    datasets: list[Dataset] = []
    for k, element in enumerate(elements):
        is_type, valid, reason = is_dataset(element)
        if not valid:
            return is_type, False, f"Element #{k}: {reason}"
        datasets.append(_as_dataset(element))

    if len(datasets) < 2:
        return True, True, ""

    first = datasets[0]
    for k, data in enumerate(datasets[1:], start=1):
        if list(data.keys()) != list(first.keys()):
            return True, False, f"Signal group fields are not consistent across array elements (element #{k})."

    for name in first.signal_group_names(include_time=False):
        check = is_signal_group_array([d[name] for d in datasets])
        if not check[1]:
            return True, False, f"Group '{name}': {check[2]}"

    if len({tuple(d.time.units) for d in datasets}) > 1:
        return True, False, "Time units are not consistent across array elements."
    return True, True, ""


# ---- enforcing helpers ----
def require_signal_group(x: Any, label: str = "Signals", *, time: bool = False) -> SignalGroup:
    is_type, valid, reason = is_signal_group(x, time=time)
    if not is_type:
        raise InvalidSignalGroup(f"Input '{label}' is not a signal group: {reason}")
    if not valid:
        raise InvalidSignalGroup(f"Input '{label}' is not a valid signal group: {reason}")
    return x if isinstance(x, SignalGroup) else SignalGroup.from_dict(x)


def require_dataset(x: Any, label: str = "Data") -> Dataset:
    is_type, valid, reason = is_dataset(x)
    if not is_type:
        raise InvalidDataset(f"Input '{label}' is not a dataset: {reason}")
    if not valid:
        raise InvalidDataset(f"Input '{label}' is not a valid dataset: {reason}")
    return x if isinstance(x, Dataset) else Dataset.from_dict(x)


def is_valid_name(name: Any) -> bool:
    """Signal names start with a letter followed by letters, digits or underscores."""
    return isinstance(name, str) and _NAME_PATTERN.fullmatch(name) is not None
