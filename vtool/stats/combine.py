# vtool/stats/combine.py
"""
Combine statistics computed separately for disjoint sets of cases.

Each input holds the results of compute_stats_array for different files and
a different (non-overlapping, increasing) range of classification bins.
Binned and per-case statistics are concatenated along the bin / case axis.
Global min/max/mean are recombined across inputs (mean weighted by the
number of binned cases); global percentiles cannot be recovered from
per-input percentiles and are set to NaN.
"""
from __future__ import annotations

import logging
import os
import warnings
from dataclasses import fields, replace
from itertools import combinations
from typing import Any, Sequence

import numpy as np

from vtool.core.arrays import SignalGroupArray
from vtool.core.exceptions import Incompatible, InvalidInput
from vtool.io.containers import load_stats, save_stats

from .aggregate import ArrayStats, StatsInfo
from .reductions import StatSet


logger = logging.getLogger(__name__)

# Info fields that legitimately differ between the combined inputs
_PER_INPUT_INFO = frozenset({
    "fnames", "fnames_f", "edges1", "edges2", "iclass1", "iclass2", "bin_results1", "bin_results2", "xvec",
})

# spectral statistics are Nf x M x P: bins on the last axis
_SPECTRAL_STATS = frozenset({"psd_stats", "err_psd_stats", "rel_psd_stats"})


def _same(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        a, b = np.asarray(a), np.asarray(b)
        if a.shape != b.shape:
            return False
        if a.dtype.kind in "fc" and b.dtype.kind in "fc":
            return bool(np.array_equal(a, b, equal_nan=True))
        return bool(np.array_equal(a, b))
    return bool(a == b)


def _unique(values: Sequence[Any]) -> list[Any]:
    return list(dict.fromkeys(values))


def _check_compatible(results: Sequence[tuple[list[ArrayStats], StatsInfo]]) -> None:
    first_stats, first_info = results[0]
    names = [s.name for s in first_stats]
    for stats, info in results[1:]:
        if [s.name for s in stats] != names:
            raise Incompatible("Stats arrays have inconsistent names.")
        if [s.present_fields() for s in stats] != [s.present_fields() for s in first_stats]:
            raise Incompatible("Stats arrays have inconsistent fields.")
        for f in fields(StatsInfo):
            if f.name in _PER_INPUT_INFO:
                continue
            if not _same(getattr(info, f.name), getattr(first_info, f.name)):
                raise Incompatible(f"Info structures have inconsistent fields ('{f.name}').")

    infos = [info for _, info in results]
    for label in ("edges1", "edges2"):
        edges = [getattr(info, label) for info in infos if getattr(info, label) is not None]
        x = np.concatenate(edges) if edges else np.empty(0)
        if np.any(np.diff(x) < 0):
            raise Incompatible(
                f"Classification bins ('{label}') overlap or are not specified in increasing order."
            )

    for a, b in combinations(infos, 2):
        if set(a.fnames) & set(b.fnames):
            raise Incompatible("Info structures show 'fnames' overlap.")

    if first_stats and first_stats[0].f is not None:
        f0 = first_stats[0].f
        if any(not _same(stats[0].f, f0) for stats, _ in results[1:]):
            raise Incompatible("Frequency vectors 'f' differ.")


def _offset_classes(infos: Sequence[StatsInfo], iclass_field: str, bins_field: str) -> tuple[np.ndarray, list]:
    """Concatenate class vectors, shifting each input past the bins of the inputs before it."""
    iclass_all, bins_all = [], []
    offset = 0
    for info in infos:
        iclass = np.asarray(getattr(info, iclass_field), dtype=int).copy()
        iclass[iclass > 0] += offset
        iclass_all.append(iclass)
        bins = list(getattr(info, bins_field))
        bins_all.extend(bins)
        offset += len(bins)
    bins_all = [replace(b, index=k + 1) for k, b in enumerate(bins_all)]
    return np.concatenate(iclass_all), bins_all


def _combine_info(infos: Sequence[StatsInfo]) -> StatsInfo:
    first = infos[0]
    iclass1, bin_results1 = _offset_classes(infos, "iclass1", "bin_results1")
    changes: dict[str, Any] = {
        "fnames": tuple(f for info in infos for f in info.fnames),
        "fnames_f": tuple(_unique([f for info in infos for f in info.fnames_f])),
        "edges1": np.array(_unique([float(e) for info in infos for e in info.edges1])),
        "iclass1": iclass1,
        "bin_results1": tuple(bin_results1),
    }
    xvecs = [info.xvec for info in infos if info.xvec is not None]
    changes["xvec"] = np.concatenate(xvecs) if xvecs else None
    if first.iclass2 is not None:
        iclass2, bin_results2 = _offset_classes(infos, "iclass2", "bin_results2")
        changes["iclass2"] = iclass2
        changes["bin_results2"] = tuple(bin_results2)
        changes["edges2"] = np.array(_unique([float(e) for info in infos for e in info.edges2]))
    return replace(first, **changes)


def _global(stats: StatSet, nvec: np.ndarray) -> StatSet:
    """Recombine per-input global rows (one row per input) into a single row."""
    m = stats.mean.shape[1]
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        low = np.nanmin(stats.min, axis=0, keepdims=True)
        high = np.nanmax(stats.max, axis=0, keepdims=True)
    mean = (nvec @ stats.mean / nvec.sum()).reshape(1, m)
    nan = np.full((1, m), np.nan)
    return StatSet(min=low, max=high, mean=mean, p05=nan, p50=nan.copy(), p95=nan.copy())


def _combine_array(items: Sequence[ArrayStats], nvec: np.ndarray) -> ArrayStats:
    first = items[0]
    changes: dict[str, Any] = {}
    for name in first.present_fields():
        values = [getattr(s, name) for s in items]
        if isinstance(values[0], StatSet):
            changes[name] = StatSet.concat(values, axis=-1 if name in _SPECTRAL_STATS else 0)
        elif isinstance(values[0], SignalGroupArray):
            changes[name] = SignalGroupArray(tuple(g for array in values for g in array))
    changes["global_stats"] = _global(changes["global_stats"], nvec)
    changes["global_err"] = _global(changes["global_err"], nvec)
    return replace(first, **changes)


def combine_stats(results: Sequence[tuple[Sequence[ArrayStats], StatsInfo]]) -> tuple[list[ArrayStats], StatsInfo]:
    """
    Combine several (stats, info) results of compute_stats_array.

    Inputs must analyse the same arrays and signals with the same settings,
    cover disjoint file sets and be given in increasing bin order.
    """
    results = [(list(stats), info) for stats, info in results]
    if not results:
        raise InvalidInput("At least one stats result is required.")
    for stats, info in results:
        if not isinstance(info, StatsInfo) or not all(isinstance(s, ArrayStats) for s in stats):
            raise InvalidInput("One or more inputs is invalid.")
    _check_compatible(results)

    infos = [info for _, info in results]
    nvec = np.array([sum(b.cases for b in info.bin_results1) for info in infos], dtype=float)
    combined = [
        _combine_array([stats[j] for stats, _ in results], nvec)
        for j in range(len(results[0][0]))
    ]
    logger.info("Combined %d stats result(s) covering %d file(s).", len(results), sum(len(i.fnames) for i in infos))
    return combined, _combine_info(infos)


def combine_stats_files(
    paths: Sequence[str | os.PathLike], outfile: str | os.PathLike | None = None
) -> tuple[list[ArrayStats], StatsInfo]:
    """combine_stats over saved results; optionally stores the combination to `outfile`."""
    if isinstance(paths, (str, os.PathLike)):
        paths = [paths]
    results = [load_stats(path) for path in paths]
    stats, info = combine_stats(results)
    if outfile is not None:
        save_stats(outfile, stats, info)
    return stats, info
