# vtool/stats/bybin.py
"""
Binned time-domain statistics over a data-length-uniform signal group array.

Every function takes the cases plus their class vector (one bin number per
case, 0 = not binned) and returns StatSets with one row per bin 1..max(iclass).
"""
from __future__ import annotations

import warnings
from typing import Any

import numpy as np

from vtool.core.arrays import as_signal_group_array

from .reductions import StatSet, check_iclass, pool_stats, stack_bins


def _cube(signals: Any) -> tuple[np.ndarray, np.ndarray]:
    array = as_signal_group_array(signals, "SIGNALS")
    return array.values_cube().astype(float), np.arange(len(array))


def compute_lt_stats_by_bin(signals: Any, iclass: Any) -> tuple[StatSet, StatSet, StatSet]:
    """
    Long-time statistics: each case's signals are first reduced to their
    min, max and mean over time (NaN ignored); the six statistics of those
    per-case values are then taken within each bin.

    Returns (min_stats, max_stats, mean_stats), each field P x M.
    """
    cube, cases = _cube(signals)
    iclass = check_iclass(iclass, cases.size)
    n, m, _ = cube.shape

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        if n == 0:
            xmin = xmax = xmean = np.full((cases.size, m), np.nan)
        else:
            xmin = np.nanmin(cube, axis=0).T
            xmax = np.nanmax(cube, axis=0).T
            xmean = np.nanmean(cube, axis=0).T

    nbins = int(iclass.max()) if iclass.size else 0
    out = []
    for per_case in (xmin, xmax, xmean):
        per_bin = [pool_stats(per_case[iclass == k], axis=0) for k in range(1, nbins + 1)]
        out.append(stack_bins(per_bin, axis=0, shape=(0, m)))
    return out[0], out[1], out[2]


def compute_st_stats_by_bin(signals: Any, iclass: Any) -> StatSet:
    """
    Short-time statistics: all samples of all cases in a bin are pooled per
    signal before taking the six statistics. Fields are P x M.

    iclass = 1..K gives per-case statistics, all ones a single global pool.
    """
    cube, cases = _cube(signals)
    iclass = check_iclass(iclass, cases.size)
    n, m, _ = cube.shape

    nbins = int(iclass.max()) if iclass.size else 0
    per_bin = []
    for k in range(1, nbins + 1):
        selected = cube[:, :, iclass == k]
        pool = np.transpose(selected, (0, 2, 1)).reshape(-1, m)
        per_bin.append(pool_stats(pool, axis=0))
    return stack_bins(per_bin, axis=0, shape=(0, m))
