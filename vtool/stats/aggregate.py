# vtool/stats/aggregate.py
"""
compute_stats_array: binned statistics of one or more signal group arrays
against a reference array.

The input is a collected-signals container (several arrays holding the same
cases, e.g. measured vs. simulated). Cases are optionally filtered, then
classified by the mean of a classification signal, and for every array the
long-time, short-time, per-case and global statistics of its signals and of
its differences to the reference are computed. With `spectral` on, binned
PSD, error-PSD and relative-PSD statistics are added.
"""
from __future__ import annotations

import logging
import os
import time
import warnings
from dataclasses import dataclass, fields
from typing import Any, Mapping, Sequence

import numpy as np

from vtool.core.arrays import SignalGroupArray
from vtool.core.exceptions import Incompatible, InvalidInput, SignalNotFound
from vtool.core.lookup import get_default_names, match_rows
from vtool.core.signal_group import SignalGroup
from vtool.io.containers import CollectedSignals, load_collected
from vtool.ops.select import select_from_group
from vtool.ops.timebase import time_axis

from .binning import BinResult, compute_class_vector, trim_empty_end_bins
from .bybin import compute_lt_stats_by_bin, compute_st_stats_by_bin
from .config import StatsConfig, StatsOptions
from .reductions import StatSet, compute_filter_mask, compute_stat, signal_column
from .spectral import compute_err_psd_by_bin, compute_psd_by_bin, compute_rel_psd_by_bin, psd_units


logger = logging.getLogger(__name__)

_TS_ERRORS = {
    0: "Sampling time information not available. Turn 'spectral' option off.",
    -1: "Sample time is not constant. Turn 'spectral' option off.",
    -2: "Sampling is not monotonic. Turn 'spectral' option off.",
}

# attribute -> persisted key
_STATS_KEYS = {
    "name": "name",
    "lt_min": "LtMin",
    "lt_max": "LtMax",
    "lt_mean": "LtMean",
    "st_stats": "StStats",
    "st_err": "StErr",
    "case_stats": "CaseStats",
    "case_err": "CaseErr",
    "global_stats": "GlobalStats",
    "global_err": "GlobalErr",
    "f": "f",
    "psd_stats": "PsdStats",
    "err_psd_stats": "ErrPsdStats",
    "rel_psd_stats": "RelPsdStats",
    "signals": "SIGNALS",
    "diffs": "DIFFS",
    "psd": "PSD",
    "err_psd": "ErrPSD",
    "rel_psd": "RelPSD",
}

_INFO_KEYS = {
    "fnames": "fnames",
    "array_name0": "ArrayName0",
    "selections": "Selections",
    "name_f": "nameF",
    "ranges_f": "rangesF",
    "values_f": "valuesF",
    "fnames_f": "fnamesF",
    "name_c": "nameC",
    "spectral": "spectral",
    "edges1": "edges1",
    "edges2": "edges2",
    "ts": "Ts",
    "df": "df",
    "iclass1": "iclass1",
    "bin_results1": "BinResults1",
    "xvec": "xvec",
    "xlabel": "xlabelstr",
    "iclass2": "iclass2",
    "bin_results2": "BinResults2",
    "psd_units": "PsdUnits",
    "ref": "Ref",
}


@dataclass(frozen=True, slots=True)
class ArrayStats:
    """
    Statistics of one array. Time-domain fields are P x M (bins x signals),
    CaseStats/CaseErr N x M, GlobalStats/GlobalErr 1 x M; spectral fields are
    Nf x M x P. Fields left as None were not computed (spectral off) or not
    kept (include_data off).
    """

    name: str
    lt_min: StatSet
    lt_max: StatSet
    lt_mean: StatSet
    st_stats: StatSet
    st_err: StatSet
    case_stats: StatSet
    case_err: StatSet
    global_stats: StatSet
    global_err: StatSet
    f: np.ndarray | None = None
    psd_stats: StatSet | None = None
    err_psd_stats: StatSet | None = None
    rel_psd_stats: StatSet | None = None
    signals: SignalGroupArray | None = None
    diffs: SignalGroupArray | None = None
    psd: SignalGroupArray | None = None
    err_psd: SignalGroupArray | None = None
    rel_psd: SignalGroupArray | None = None

    def present_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in fields(self) if getattr(self, f.name) is not None)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name in self.present_fields():
            value = getattr(self, name)
            out[_STATS_KEYS[name]] = value.to_dict() if isinstance(value, StatSet) else value
        return out


@dataclass(frozen=True, slots=True)
class StatsInfo:
    """Analysis settings and binning results shared by all ArrayStats of one run."""

    fnames: tuple[str, ...]
    array_name0: str
    selections: tuple[str, ...]
    name_f: str | None
    ranges_f: np.ndarray | None
    values_f: np.ndarray | None
    fnames_f: tuple[str, ...]
    name_c: str | None
    spectral: bool
    edges1: np.ndarray
    edges2: np.ndarray | None
    ts: float | None
    df: float
    iclass1: np.ndarray
    bin_results1: tuple[BinResult, ...]
    xvec: np.ndarray | None
    xlabel: str
    ref: SignalGroup
    iclass2: np.ndarray | None = None
    bin_results2: tuple[BinResult, ...] | None = None
    psd_units: tuple[str, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for attr, key in _INFO_KEYS.items():
            value = getattr(self, attr)
            if attr.startswith("bin_results") and value is not None:
                value = [b.to_dict() for b in value]
            out[key] = value
        return out


# ---- input checks ----
def _as_collected(collected: Any) -> CollectedSignals:
    if isinstance(collected, CollectedSignals):
        return collected
    if isinstance(collected, (str, os.PathLike)):
        return load_collected(collected)
    if isinstance(collected, Mapping):
        return CollectedSignals.from_mapping(collected)
    raise InvalidInput("Input 'collected' must be a CollectedSignals container, a mapping or a file path.")


def sample_time(collected: CollectedSignals, tolerance: float) -> tuple[float | None, int]:
    """
    Sample interval of the collected cases, from the first case's Time group.
    Returns (ts, flag): flag 1 = uniform, 0 = no time information,
    -1 = interval varies by more than `tolerance` (relative),
    -2 = non-increasing samples. ts is None unless flag is 1.
    """
    group = collected.first_time()
    if group is None or group.n < 2:
        return None, 0
    t, _ = time_axis(group)
    dt = np.diff(t)
    lo, hi = float(np.min(dt)), float(np.max(dt))
    if lo <= 0 or np.isnan(lo):
        return None, -2
    if (hi - lo) / lo > tolerance:
        return None, -1
    return lo, 1


def _arrays_to_compare(
    collected: CollectedSignals, array_name0: str, array_names: Sequence[str] | None
) -> dict[str, SignalGroupArray]:
    """Reference array first, then the compared arrays; checked for compatibility."""
    if not isinstance(array_name0, str) or not array_name0:
        raise InvalidInput("Parameter 'array_name0' is not valid.")
    if array_name0 not in collected:
        raise InvalidInput("Specified 'array_name0' is not present in the input.")
    if array_names is None:
        array_names = collected.names
    elif any(name not in collected for name in array_names):
        raise InvalidInput("One or more specified 'array_names' is not present in the input.")

    names = [array_name0] + [n for n in dict.fromkeys(array_names) if n != array_name0]
    arrays = {name: collected[name] for name in names}

    ref = arrays[array_name0]
    if len(ref) == 0:
        raise InvalidInput(f"Array '{array_name0}' contains no cases.")
    for name, array in arrays.items():
        if len(array) == 0:
            raise InvalidInput(f"Array '{name}' contains no cases.")
        if array.layers != ref.layers or array.names_matrix() != ref.names_matrix():
            raise Incompatible("Signal group arrays in the input are not compatible. Names do not match.")
        if array.units != ref.units:
            raise Incompatible("Signal group arrays in the input are not compatible. Units do not match.")
        if len(array) != len(ref):
            raise Incompatible("Signal group arrays in the input are not compatible. Array lengths do not match.")
    lengths = {n for array in arrays.values() for n in array.data_lengths()}
    if len(lengths) > 1:
        raise Incompatible("Signal group arrays are not valid for analysis. Signal lengths vary.")
    return arrays


# ---- steps ----
def _filter_cases(
    arrays: dict[str, SignalGroupArray], fnames: list[str], array_name0: str, options: StatsOptions
) -> tuple[dict[str, SignalGroupArray], list[str], list[str]]:
    ref = arrays[array_name0]
    if not match_rows(ref[0], options.name_f):
        raise SignalNotFound(options.name_f)
    if options.values_f is not None:
        mask = compute_filter_mask(ref, options.name_f, values=options.values_f)
    else:
        mask = compute_filter_mask(ref, options.name_f, ranges=options.ranges_f)

    kept = [f for f, ok in zip(fnames, mask) if ok]
    rejected = [f for f, ok in zip(fnames, mask) if not ok]
    logger.info("Filtering performed based on signal '%s'.", options.name_f)
    logger.info("Rejected %d cases out of %d.", int((~mask).sum()), mask.size)
    if not mask.any():
        raise InvalidInput(f"Filtering on signal '{options.name_f}' rejected every case.")
    return {name: array.take(mask) for name, array in arrays.items()}, kept, rejected


def _default_edges(ref: SignalGroupArray, options: StatsOptions) -> tuple[np.ndarray | None, np.ndarray | None]:
    """Bin edges, defaulting to 10 equal bins over the full range of the classification signal."""
    if options.name_c is None:
        return None, None
    edges1 = options.edges1
    edges2 = options.edges2 if options.spectral else None
    if edges1 is None or (options.spectral and edges2 is None):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", RuntimeWarning)
            lo = float(np.nanmin(compute_stat(ref, options.name_c, "min")))
            hi = float(np.nanmax(compute_stat(ref, options.name_c, "max")))
        inferred = np.linspace(lo, hi, 11)
        valid = bool(np.all(np.diff(inferred) > 0))
        if edges1 is None:
            if not valid:
                raise InvalidInput("The inferred 'edges1' is not valid.")
            edges1 = inferred
        if options.spectral and edges2 is None:
            if not valid:
                raise InvalidInput("The inferred 'edges2' is not valid.")
            edges2 = inferred.copy()
    return edges1, edges2


def _binning(
    ref: SignalGroupArray, name_c: str | None, edges: np.ndarray | None
) -> tuple[np.ndarray, np.ndarray, list[BinResult]]:
    if name_c is None:
        n = len(ref)
        return np.ones(n, dtype=int), np.empty(0), [BinResult(index=1, center=None, cases=n, title="all cases")]
    iclass, bin_results = compute_class_vector(ref, name_c, "mean", edges, report=True)
    return trim_empty_end_bins(iclass, edges, bin_results)


def _as_float(array: SignalGroupArray, name: str) -> SignalGroupArray:
    kind = array[0].values.dtype
    if kind == np.float64:
        return array
    logger.info("Converting '%s' from '%s' to 'float64'.", name, kind)
    return SignalGroupArray(tuple(g.replace(values=np.asarray(g.values, dtype=float)) for g in array))


def _x_axis(ref: SignalGroupArray, name_c: str | None, iclass: np.ndarray) -> tuple[np.ndarray | None, str]:
    if name_c is None or not np.any(iclass > 0):
        return None, ""
    i = signal_column(ref, name_c)
    _, _, mean = compute_lt_stats_by_bin(ref, iclass)
    xvec = np.asarray(mean.mean[:, i], dtype=float)
    units, description = ref[0].units[i], ref[0].descriptions[i]
    return xvec, f"{description} ({units})" if units else description


def compute_stats_array(
    collected: Any,
    array_name0: str,
    options: StatsOptions | None = None,
    config: StatsConfig | None = None,
) -> tuple[list[ArrayStats], StatsInfo]:
    """
    Compute binned statistics of every array against the reference `array_name0`.

    `collected` is a CollectedSignals container, a flat mapping accepted by
    CollectedSignals.from_mapping, or the path of a saved container.

    Returns (stats, info): one ArrayStats per analysed array with the
    reference first, plus the shared StatsInfo.
    """
    options = StatsOptions() if options is None else options
    config = StatsConfig() if config is None else config
    if not isinstance(options, StatsOptions):
        raise InvalidInput("Input 'options' must be a StatsOptions instance.")
    if not isinstance(config, StatsConfig):
        raise InvalidInput("Input 'config' must be a StatsConfig instance.")
    start = time.perf_counter()
    collected = _as_collected(collected)

    ts, ts_flag = sample_time(collected, config.sample_time_tolerance)
    if options.spectral and ts is None:
        raise InvalidInput(_TS_ERRORS[ts_flag])

    arrays = _arrays_to_compare(collected, array_name0, options.array_names)
    fnames = list(collected.fnames)
    if len(arrays[array_name0]) != len(fnames):
        raise Incompatible("Length of included 'fnames' list does not match the arrays.")

    ref0 = arrays[array_name0]
    if options.selections is None:
        selections = get_default_names(ref0[0], config.default_layer)
    else:
        selections = list(options.selections)
    missing = [s for s in selections if not match_rows(ref0[0], s)]
    if missing:
        raise SignalNotFound(f"Selections not present in the arrays: {', '.join(missing)}")

    fnames_f: list[str] = []
    if options.name_f is not None:
        arrays, fnames, fnames_f = _filter_cases(arrays, fnames, array_name0, options)
        ref0 = arrays[array_name0]

    if options.name_c is not None:
        signal_column(ref0, options.name_c)
    edges1, edges2 = _default_edges(ref0, options)

    # selected signals, as float, and their differences to the reference
    signals: dict[str, SignalGroupArray] = {}
    for name, array in arrays.items():
        selected = SignalGroupArray(tuple(select_from_group(selections, g, warn=False).group for g in array))
        signals[name] = _as_float(selected, name)
    ref = signals[array_name0]
    diffs = {
        name: SignalGroupArray(tuple(g0.replace(values=g.values - g0.values) for g, g0 in zip(array, ref)))
        for name, array in signals.items()
    }

    iclass1, edges1, bin_results1 = _binning(ref0, options.name_c, edges1)
    xvec, xlabel = _x_axis(ref0, options.name_c, iclass1)

    n = len(ref)
    by_case = np.arange(1, n + 1)
    overall = np.ones(n, dtype=int)
    parts: dict[str, dict[str, Any]] = {name: {"name": name} for name in signals}

    logger.info("Computing binned LT statistics ...")
    for name, array in signals.items():
        parts[name]["lt_min"], parts[name]["lt_max"], parts[name]["lt_mean"] = compute_lt_stats_by_bin(array, iclass1)
    logger.info("Computing binned ST statistics ...")
    for name, array in signals.items():
        parts[name]["st_stats"] = compute_st_stats_by_bin(array, iclass1)
        parts[name]["st_err"] = compute_st_stats_by_bin(diffs[name], iclass1)
    logger.info("Computing case-wise statistics ...")
    for name, array in signals.items():
        parts[name]["case_stats"] = compute_st_stats_by_bin(array, by_case)
        parts[name]["case_err"] = compute_st_stats_by_bin(diffs[name], by_case)
    logger.info("Computing global ST statistics ...")
    for name, array in signals.items():
        parts[name]["global_stats"] = compute_st_stats_by_bin(array, overall)
        parts[name]["global_err"] = compute_st_stats_by_bin(diffs[name], overall)

    iclass2 = bin_results2 = units = None
    if options.spectral:
        iclass2, edges2, bin_results2 = _binning(ref0, options.name_c, edges2)
        spectral = {"config": config.spectral, "db": True, "progress_threshold": config.progress_threshold}
        logger.info("Computing PSD spectra ...")
        for name, array in signals.items():
            parts[name]["psd_stats"], parts[name]["f"], parts[name]["psd"] = compute_psd_by_bin(
                array, iclass2, ts, **spectral
            )
        logger.info("Computing Error-PSD spectra ...")
        for name, array in signals.items():
            parts[name]["err_psd_stats"], _, parts[name]["err_psd"] = compute_err_psd_by_bin(
                ref, array, iclass2, ts, **spectral
            )
        logger.info("Computing PSD-error spectra ...")
        for name in signals:
            parts[name]["rel_psd_stats"], _, parts[name]["rel_psd"] = compute_rel_psd_by_bin(
                diffs[name], ref, iclass2, ts, **spectral
            )
        logger.info("Frequency analysis complete.")
        units = tuple(psd_units(u) for u in ref[0].units)

    if options.include_data:
        for name in signals:
            parts[name]["signals"] = signals[name]
            parts[name]["diffs"] = diffs[name]
    else:
        for part in parts.values():
            part.pop("psd", None)
            part.pop("err_psd", None)
            part.pop("rel_psd", None)

    reference = ref[0]
    info = StatsInfo(
        fnames=tuple(fnames),
        array_name0=array_name0,
        selections=tuple(selections),
        name_f=options.name_f,
        ranges_f=options.ranges_f,
        values_f=options.values_f,
        fnames_f=tuple(fnames_f),
        name_c=options.name_c,
        spectral=options.spectral,
        edges1=edges1,
        edges2=edges2,
        ts=ts,
        df=config.spectral.df,
        iclass1=iclass1,
        bin_results1=tuple(bin_results1),
        xvec=xvec,
        xlabel=xlabel,
        ref=reference.replace(values=np.full(reference.values.shape, np.nan)),
        iclass2=iclass2,
        bin_results2=None if bin_results2 is None else tuple(bin_results2),
        psd_units=units,
    )
    stats = [ArrayStats(**part) for part in parts.values()]
    logger.info("Statistics computed for %d array(s), %d case(s) in %.2f s.", len(stats), n, time.perf_counter() - start)
    return stats, info
