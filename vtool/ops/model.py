# vtool/ops/model.py
"""
Rebuilding datasets against a model dataset.

The model fixes the structure of the result: signal groups and their order,
signals within each group, name layers, units, descriptions and the time
grid. Input signals are looked up by name, placed into that structure and
resampled onto the model's time vector. Signals the input does not carry
come out all-NaN.
"""
from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from vtool.core.arrays import DatasetArray
from vtool.core.dataset import TIME_GROUP, Dataset
from vtool.core.exceptions import Incompatible, InvalidInput, LayerNotFound
from vtool.core.lookup import collect_signals, get_default_names, match_rows
from vtool.core.signal_group import ABSOLUTE_TIME_UNITS, SignalGroup, values_equal
from vtool.core.validity import require_dataset

from .resample import resample_dataset
from .select import select_from_group
from .timebase import convert_to_absolute_time


logger = logging.getLogger(__name__)


# ---- time grids ----
def _absolute_grid(data: Dataset) -> tuple[np.ndarray, list[str]]:
    """
    Time values of `data` with its 'start' attribute applied: a datetime
    start gives absolute time, a numeric start is added as an offset.
    """
    time = data.time
    start = data.attrs.get("start")
    if time.is_absolute_time or start is None:
        return time.values[:, 0], list(time.units)
    if isinstance(start, (int, float, np.number)) and not isinstance(start, bool):
        return start + time.values[:, 0].astype(float), list(time.units)
    return convert_to_absolute_time(data, start).time.values[:, 0], [ABSOLUTE_TIME_UNITS]


def _check_grids(t_in: np.ndarray, t_model: np.ndarray) -> None:
    if (t_in.dtype.kind == "M") != (t_model.dtype.kind == "M"):
        raise Incompatible("Input and model time vectors are not compatible (absolute vs. elapsed time).")


# ---- population ----
def _names_for(group: SignalGroup, layer: str | None) -> list[str]:
    if layer is None:
        return get_default_names(group)
    return list(group.layer(layer))


def _warn_inconsistent(master: SignalGroup, names: Sequence[str], group_name: str) -> None:
    """Names occurring more than once in the input with different values."""
    bad = []
    for name in dict.fromkeys(s for s in names if s):
        rows = match_rows(master, name)
        if len(rows) > 1:
            first = master.values[:, rows[0]]
            if any(not values_equal(first, master.values[:, i]) for i in rows[1:]):
                bad.append(name)
    if bad:
        logger.warning(
            "These names for signal group '%s' are valued inconsistently in the input dataset: %s",
            group_name, ", ".join(bad),
        )


def _populate(master: SignalGroup, names: Sequence[str], group_name: str, layer: str | None) -> np.ndarray:
    """N x len(names) values drawn from `master`; blank or unavailable names give NaN columns."""
    blank = np.array([not s for s in names], dtype=bool)
    if blank.any():
        logger.warning(
            "There are %d empty name(s) on layer '%s' in signal group '%s'. Substituting NaNs.",
            int(blank.sum()), layer or "default", group_name,
        )

    dtype = np.result_type(master.values.dtype, np.float64)
    values = np.full((master.n, len(names)), np.nan, dtype=dtype)
    wanted = [s for s in names if s]
    if not wanted:
        return values

    selection = select_from_group(wanted, master, warn=False)
    columns = np.flatnonzero(~blank)
    values[:, columns[selection.matched]] = selection.group.values[:, selection.matched]

    missing = [s for s, ok in zip(wanted, selection.matched) if not ok]
    if missing:
        logger.warning(
            "These names for signal group '%s' are not available. Substituting NaNs: %s",
            group_name, ", ".join(missing),
        )
    return values


def _on_model_grid(
    model: Dataset,
    values: dict[str, np.ndarray],
    t_in: np.ndarray,
    time_units: Sequence[str],
    method: str,
) -> Dataset:
    """Resample populated values onto the model's time vector and give them the model's structure."""
    t_model, _ = _absolute_grid(model)
    _check_grids(t_in, t_model)

    time = model.time.replace(values=np.asarray(t_in).reshape(-1, 1), units=list(time_units))
    groups = {TIME_GROUP: time}
    groups.update({name: model[name].replace(values=v) for name, v in values.items()})
    staged = Dataset(groups=groups)

    resampled = resample_dataset(staged, t_model, method=method)
    out = {name: resampled[name] if name != TIME_GROUP else model.time for name in model.keys()}
    return Dataset(groups=out, attrs=dict(model.attrs))


# ---- public API ----
def rebuild_dataset_from_model(
    data: Dataset, model: Dataset, layer: str | None = None, *, method: str = "linear"
) -> Dataset:
    """
    Rebuild `data` with the structure and time grid of `model`.

    Names for each model group come from `layer`, or from the groups' default
    names when layer is None; they are searched among all signals of `data`.
    Attributes come from the model, except 'source', which is taken from
    `data` when it has one.
    """
    data = require_dataset(data)
    model = require_dataset(model)
    if layer is not None and layer not in model.layers:
        raise LayerNotFound(layer)

    master = collect_signals(data)
    values: dict[str, np.ndarray] = {}
    for name in model.signal_group_names(include_time=False):
        names = _names_for(model[name], layer)
        _warn_inconsistent(master, names, name)
        values[name] = _populate(master, names, name, layer)

    t_in, time_units = _absolute_grid(data)
    out = _on_model_grid(model, values, t_in, time_units, method)
    if "source" in data.attrs:
        out = out.with_attrs(source=data.attrs["source"])
    logger.debug("Rebuilt dataset with %d samples on the model grid.", out.n)
    return out


def build_dataset_from_model(
    sources: Dataset | DatasetArray | Sequence[Dataset],
    model: Dataset,
    layer: str,
    *,
    source: str | None = None,
    pathnames: str | Sequence[str] | None = None,
    method: str = "linear",
) -> Dataset:
    """
    Build a dataset for a new data source using `model` as the template.

    `sources` are the datasets read from the new source, in time order; their
    signals are looked up by the names on the model's `layer` and the pieces
    are concatenated before being resampled onto the model's time grid. Time
    units come from the pieces. The result carries the model's attributes
    with 'source' (default: the layer name) and, when given, 'pathnames'
    replaced.
    """
    model = require_dataset(model)
    if not isinstance(layer, str) or not layer:
        raise InvalidInput("Input 'layer' must be a non-empty string.")
    if layer not in model.layers:
        raise LayerNotFound(layer)

    if isinstance(sources, Dataset):
        sources = [sources]
    elif not isinstance(sources, (DatasetArray, list, tuple)):
        raise InvalidInput("Input 'sources' must be a dataset or a sequence of datasets.")
    pieces = [require_dataset(d, "sources") for d in sources]
    if not pieces:
        raise InvalidInput("At least one source dataset is required.")
    if len({tuple(d.time.units) for d in pieces}) > 1:
        raise Incompatible("Source datasets have incompatible time units.")

    group_names = model.signal_group_names(include_time=False)
    chunks: dict[str, list[np.ndarray]] = {name: [] for name in group_names}
    for k, piece in enumerate(pieces):
        logger.info("Populating signal groups from source #%d (%d samples).", k, piece.n)
        master = collect_signals(piece)
        for name in group_names:
            chunks[name].append(_populate(master, model[name].layer(layer), name, layer))

    values = {name: np.concatenate(parts, axis=0) for name, parts in chunks.items()}
    t_in = np.concatenate([d.time.values[:, 0] for d in pieces])
    out = _on_model_grid(model, values, t_in, pieces[-1].time.units, method)

    attrs = dict(out.attrs)
    if "pathname" in attrs:
        attrs["pathnames"] = attrs.pop("pathname")
    if pathnames is not None:
        attrs["pathnames"] = pathnames
    attrs["source"] = source if source is not None else layer
    return Dataset(groups=dict(out.groups), attrs=attrs)
