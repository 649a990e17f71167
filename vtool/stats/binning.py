# vtool/stats/binning.py
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Sequence

import numpy as np

from vtool.core.arrays import as_signal_group_array

from .config import check_edges
from .reductions import compute_stat, signal_column


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BinResult:
    """One classification bin: 1-based index, center, case count and a display title."""

    index: int
    center: float | None
    cases: int
    title: str

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "center": self.center, "cases": self.cases, "title": self.title}


def histogram_bins(x: Any, edges: Any) -> np.ndarray:
    """
    Histogram bin of every value: bin k (1-based) holds edges[k-1] <= x < edges[k],
    the last bin also includes its right edge. Values outside the edges and
    NaN get 0.
    """
    x = np.asarray(x, dtype=float)
    edges = np.asarray(edges, dtype=float)
    iclass = np.searchsorted(edges, x, side="right")
    iclass[x == edges[-1]] = edges.size - 1
    iclass[np.isnan(x) | (x < edges[0]) | (x > edges[-1])] = 0
    return iclass.astype(int)


def _report(iclass: np.ndarray, bin_results: Sequence[BinResult], x: np.ndarray) -> None:
    logger.info("Number of cases by bin (%d total):", iclass.size)
    for b in bin_results:
        logger.info("  %2d  %4d    %s", b.index, b.cases, b.title)
    nan_count = int(np.isnan(x).sum())
    suffix = f" ({nan_count} cases contained NaNs)" if nan_count else ""
    logger.info("      %4d    rejected%s", int((iclass == 0).sum()), suffix)
    if iclass.size and np.all(iclass == 0):
        logger.warning("All cases fall outside binning range.")


def compute_class_vector(
    signals: Any,
    name: str,
    statistic: str | float | Callable,
    edges: Any,
    *,
    report: bool = False,
) -> tuple[np.ndarray, list[BinResult]]:
    """
    Classify cases by a per-case statistic of signal `name`.

    Each case's signal is reduced with `statistic` (see compute_stat) and
    binned with histogram_bins. Returns (iclass, bin_results) with iclass 0
    for rejected cases (outside the edges, or NaN).
    """
    array = as_signal_group_array(signals, "SIGNALS")
    edges = check_edges(edges, "edges")
    i = signal_column(array, name)

    x = compute_stat(array, name, statistic)
    iclass = histogram_bins(x, edges)

    units = array[0].units[i]
    bin_results = [
        BinResult(
            index=k + 1,
            center=float((lo + hi) / 2),
            cases=int((iclass == k + 1).sum()),
            title=f"{lo:g} - {hi:g} {units}".rstrip(),
        )
        for k, (lo, hi) in enumerate(zip(edges[:-1], edges[1:]))
    ]
    if report:
        _report(iclass, bin_results, x)
    return iclass, bin_results


def trim_empty_end_bins(
    iclass: Any, edges: Any, bin_results: Sequence[BinResult]
) -> tuple[np.ndarray, np.ndarray, list[BinResult]]:
    """
    Drop empty bins at the low and high ends so the populated range starts
    at bin 1. iclass and bin indices are renumbered accordingly; interior
    empty bins are kept. If every case was rejected, edges and bins become
    empty.
    """
    iclass = np.asarray(iclass, dtype=int).copy()
    edges = np.asarray(edges, dtype=float)
    if not np.any(iclass > 0):
        logger.info("Adjusted 'edges' to [], removing all bins.")
        return iclass, np.empty(0), []

    nbins = edges.size - 1
    lowest, highest = int(iclass[iclass > 0].min()), int(iclass.max())
    nlo, nhi = lowest - 1, nbins - highest

    edges = edges[nlo:edges.size - nhi]
    kept = list(bin_results)[nlo:nbins - nhi]
    iclass[iclass > 0] -= nlo
    kept = [replace(b, index=k + 1) for k, b in enumerate(kept)]

    if nlo:
        logger.info("Adjusted 'edges' based on binning results: Lowest %d bin(s) removed.", nlo)
    if nhi:
        logger.info("Adjusted 'edges' based on binning results: Highest %d bin(s) removed.", nhi)
    return iclass, edges, kept
