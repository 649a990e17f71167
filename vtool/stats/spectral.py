# vtool/stats/spectral.py
"""
Spectral analysis of signal groups.

PSDs are Welch-style cross power spectral densities computed with
scipy.signal.csd: a symmetric Hamming window of round(fs / df) samples, 50 %
overlap, an FFT as long as the window, one-sided density scaling. The mean
is removed beforehand and no further detrending is applied. The window length
comes from SpectralConfig.df, so spectra computed with the same config share
one frequency grid.
"""
from __future__ import annotations

import logging
from typing import Any

import numpy as np
from scipy import signal
from scipy.interpolate import interp1d

from vtool.core.arrays import SignalGroupArray, as_signal_group_array
from vtool.core.batch import apply_elementwise
from vtool.core.exceptions import Incompatible, InvalidInput
from vtool.core.signal_group import SignalGroup
from vtool.core.validity import require_signal_group

from .config import SpectralConfig
from .reductions import ProgressLog, StatSet, check_iclass, pool_stats, stack_bins


logger = logging.getLogger(__name__)


# ---- helpers ----
def _config(config: SpectralConfig | None) -> SpectralConfig:
    return SpectralConfig() if config is None else config


def _check_rate(value: Any, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
        raise InvalidInput(f"Input '{label}' must be a scalar numeric value.")
    if not value > 0:
        raise InvalidInput(f"Input '{label}' must be positive.")
    return float(value)


def _window_length(npoints: int, fs: float, config: SpectralConfig) -> int:
    window = config.window_length(fs)
    if window < 1:
        raise InvalidInput("Frequency resolution 'df' is too large for the sample rate.")
    if window > npoints:
        raise InvalidInput(
            f"FFT window length ({window}) cannot be longer than data record ({npoints}). "
            "Frequency resolution 'df' too small."
        )
    return window


def _csd(x: np.ndarray, y: np.ndarray, fs: float, window: int) -> tuple[np.ndarray, np.ndarray]:
    return signal.csd(
        x,
        y,
        fs=fs,
        window=signal.windows.hamming(window, sym=True),
        nperseg=window,
        noverlap=window // 2,
        nfft=window,
        detrend=False,
        scaling="density",
    )


def to_db(x: np.ndarray) -> np.ndarray:
    """10 * log10(|x|) (power quantities)."""
    with np.errstate(divide="ignore", invalid="ignore"):
        return 10 * np.log10(np.abs(x))


def psd_units(units: str) -> str:
    """Units of the PSD of a signal with the given units."""
    if not units:
        return "Hz^{-1}"
    if len(units) == 1:
        return f"{units}^2/Hz"
    return f"({units})^2/Hz"


# ---- single-vector spectra ----
def compute_psd(
    x: Any, fs: float, *, config: SpectralConfig | None = None, db: bool = False
) -> tuple[np.ndarray, np.ndarray]:
    """
    Power spectral density of `x` sampled at `fs` Hz. Returns (gxx, f).

    An all-NaN input gives an all-NaN spectrum on the regular grid; NaNs
    embedded in otherwise valid data are rejected.
    """
    config = _config(config)
    fs = _check_rate(fs, "fs")
    x = np.asarray(x, dtype=float).ravel()
    window = _window_length(x.size, fs, config)

    nan = np.isnan(x)
    if np.all(nan):
        f, gxx = _csd(np.zeros_like(x), np.zeros_like(x), fs, window)
        return np.full(gxx.shape, np.nan), f
    if np.any(nan):
        raise InvalidInput("Embedded NaNs not permitted.")

    x = x - x.mean()
    f, gxx = _csd(x, x, fs, window)
    gxx = gxx.real
    return (to_db(gxx) if db else gxx), f


def compute_coh(
    x: Any, y: Any, fs: float, *, config: SpectralConfig | None = None, db: bool = False
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Complex coherence between `x` and `y` plus the auto-spectra and the
    spectrum of the error y - x. Returns (cohxy, f, gxx, gyy, gerr).

    cohxy = gxy / (sqrt|gxx| * sqrt|gyy|). With db=True the three auto-spectra
    are returned as 10*log10(|.|).
    """
    config = _config(config)
    fs = _check_rate(fs, "fs")
    x = np.asarray(x, dtype=float).ravel()
    y = np.asarray(y, dtype=float).ravel()
    if x.size != y.size:
        raise Incompatible("Inputs 'x' and 'y' must have the same length.")
    window = _window_length(x.size, fs, config)

    x = x - x.mean()
    y = y - y.mean()
    e = y - x
    f, gxy = _csd(x, y, fs, window)
    _, gxx = _csd(x, x, fs, window)
    _, gyy = _csd(y, y, fs, window)
    _, gerr = _csd(e, e, fs, window)
    gxx, gyy, gerr = gxx.real, gyy.real, gerr.real

    with np.errstate(divide="ignore", invalid="ignore"):
        cohxy = gxy / (np.sqrt(np.abs(gxx)) * np.sqrt(np.abs(gyy)))
    if db:
        gxx, gyy, gerr = to_db(gxx), to_db(gyy), to_db(gerr)
    return cohxy, f, gxx, gyy, gerr


# ---- signal groups ----
def convert_signals_to_db(obj: Any, option: str = "power") -> Any:
    """Values to dB ("power": 10*log10, "field": 20*log10); units become "dB"."""
    if option not in ("power", "field"):
        raise InvalidInput("Must specify 'field' or 'power'.")
    factor = 10 if option == "power" else 20

    def convert(group: SignalGroup) -> SignalGroup:
        group = require_signal_group(group)
        with np.errstate(divide="ignore", invalid="ignore"):
            values = factor * np.log10(group.values)
        return group.replace(values=values, units=["dB"] * group.m)

    if isinstance(obj, SignalGroup):
        return convert(obj)
    array = as_signal_group_array(obj, "obj")
    return SignalGroupArray(tuple(apply_elementwise(convert, array, kind="signal group")))


def _spect_group(group: SignalGroup, ts: float, config: SpectralConfig, db: bool) -> tuple[SignalGroup, np.ndarray]:
    group = require_signal_group(group)
    fs = 1 / ts
    _, f = compute_psd(np.zeros(group.n), fs, config=config)

    values = np.full((f.size, group.m), np.nan)
    for k in range(group.m):
        x = np.asarray(group.values[:, k], dtype=float)
        if not np.all(np.isnan(x)):
            values[:, k], _ = compute_psd(x, fs, config=config)
    units = [psd_units(u) for u in group.units]
    if db:
        values = to_db(values)
        units = ["dB"] * group.m
    return group.replace(values=values, units=units), f


def spect_signals(
    obj: Any,
    ts: float,
    *,
    config: SpectralConfig | None = None,
    db: bool = False,
    progress_threshold: int = 50,
) -> tuple[Any, np.ndarray]:
    """
    PSD of every signal. Returns (pxx, f) where pxx is a signal group (or
    array) holding one spectrum per column, with PSD units.

    All-NaN signals give all-NaN spectra. For arrays, f is the grid of the
    first case.
    """
    config = _config(config)
    ts = _check_rate(ts, "ts")
    if isinstance(obj, SignalGroup):
        return _spect_group(obj, ts, config, db)

    array = as_signal_group_array(obj, "SIGNALS")
    progress = ProgressLog(len(array), progress_threshold)
    results = apply_elementwise(
        lambda g: _spect_group(g, ts, config, db), array, kind="signal group", on_done=progress
    )
    f = results[0][1] if results else np.empty(0)
    return SignalGroupArray(tuple(r[0] for r in results)), f


def _patch_nans(values: np.ndarray, t: np.ndarray) -> np.ndarray:
    """Fill interior/edge NaNs of partly valid columns by linear interpolation/extrapolation."""
    out = values.copy()
    for k in range(out.shape[1]):
        x = out[:, k]
        nan = np.isnan(x)
        if not np.any(nan) or np.all(nan):
            continue
        if np.count_nonzero(~nan) == 1:
            out[:, k] = x[~nan][0]
        else:
            out[:, k] = interp1d(t[~nan], x[~nan], fill_value="extrapolate", assume_sorted=True)(t)
    return out


def _cross_spect_group(
    signals1: SignalGroup, ts1: float, signals2: SignalGroup, ts2: float, config: SpectralConfig, db: bool
) -> tuple[SignalGroup, np.ndarray, SignalGroup, SignalGroup, SignalGroup]:
    g1 = require_signal_group(signals1, "Signals1")
    g2 = require_signal_group(signals2, "Signals2")
    if g1.layers != g2.layers or g1.names_matrix() != g2.names_matrix():
        raise Incompatible("Names in 'Signals1' and 'Signals2' do not match.")
    if g1.n < 2 or g2.n < 2:
        raise InvalidInput("Cross-spectra need at least 2 samples per signal.")

    t1 = ts1 * np.arange(g1.n)
    t2 = ts2 * np.arange(g2.n)
    v1 = _patch_nans(np.asarray(g1.values, dtype=float), t1)
    v2 = _patch_nans(np.asarray(g2.values, dtype=float), t2)

    # common grid at the first input's rate, over the shorter record
    tmax = min(t1[-1], t2[-1])
    t = ts1 * np.arange(int(np.floor(tmax / ts1 + 1e-10)) + 1)
    x_all = interp1d(t1, v1, axis=0, fill_value="extrapolate", assume_sorted=True)(t)
    y_all = interp1d(t2, v2, axis=0, fill_value="extrapolate", assume_sorted=True)(t)

    fs = 1 / ts1
    zeros = np.zeros(t.size)
    _, f, _, _, _ = compute_coh(zeros, zeros, fs, config=config)
    nf, m = f.size, g1.m
    pxy = np.full((nf, m), np.nan, dtype=complex)
    pxx = np.full((nf, m), np.nan)
    pyy = np.full((nf, m), np.nan)
    perr = np.full((nf, m), np.nan)

    for k in range(m):
        x, y = x_all[:, k], y_all[:, k]
        x_nan, y_nan = np.all(np.isnan(x)), np.all(np.isnan(y))
        if x_nan and y_nan:
            continue
        if x_nan:
            pyy[:, k] = compute_coh(zeros, y, fs, config=config)[3]
        elif y_nan:
            pxx[:, k] = compute_coh(x, zeros, fs, config=config)[2]
        else:
            pxy[:, k], _, pxx[:, k], pyy[:, k], perr[:, k] = compute_coh(x, y, fs, config=config)

    units = [psd_units(u) for u in g1.units]
    db_units = ["dB"] * m if db else units
    if db:
        pxx, pyy, perr = to_db(pxx), to_db(pyy), to_db(perr)
    return (
        g1.replace(values=pxy, units=units),
        f,
        g1.replace(values=pxx, units=db_units),
        g1.replace(values=pyy, units=db_units),
        g1.replace(values=perr, units=db_units),
    )


def cross_spect_signals(
    signals1: Any,
    ts1: float,
    signals2: Any,
    ts2: float,
    *,
    config: SpectralConfig | None = None,
    db: bool = False,
    progress_threshold: int = 50,
) -> tuple[Any, np.ndarray, Any, Any, Any]:
    """
    Coherence and spectra of two name-aligned signal groups (or arrays,
    element by element). Returns (pxy, f, pxx, pyy, perr): complex coherence,
    frequency grid, auto-spectra of each input and spectrum of the error
    signals2 - signals1.

    NaN gaps are interpolated first, then both inputs are resampled onto the
    first input's sample grid over the shorter record. A signal that is all
    NaN on one side still yields the other side's auto-spectrum; its cross
    and error terms are NaN.
    """
    config = _config(config)
    ts1 = _check_rate(ts1, "ts1")
    ts2 = _check_rate(ts2, "ts2")
    if isinstance(signals1, SignalGroup) and isinstance(signals2, SignalGroup):
        return _cross_spect_group(signals1, ts1, signals2, ts2, config, db)

    array1 = as_signal_group_array(signals1, "SIGNALS1")
    array2 = as_signal_group_array(signals2, "SIGNALS2")
    if len(array1) != len(array2):
        raise Incompatible("Input arrays 'SIGNALS1' and 'SIGNALS2' must have matching length.")

    progress = ProgressLog(len(array1), progress_threshold)
    results = apply_elementwise(
        lambda pair: _cross_spect_group(pair[0], ts1, pair[1], ts2, config, db),
        list(zip(array1, array2)),
        kind="signal group",
        on_done=progress,
    )
    f = results[0][1] if results else np.empty(0)
    parts = [SignalGroupArray(tuple(r[i] for r in results)) for i in (0, 2, 3, 4)]
    return parts[0], f, parts[1], parts[2], parts[3]


def coherence_groups(pxy: Any) -> tuple[Any, Any]:
    """Split complex coherence into magnitude ("") and negative phase angle ("deg") groups."""

    def split(group: SignalGroup) -> tuple[SignalGroup, SignalGroup]:
        group = require_signal_group(group)
        mag = group.replace(values=np.abs(group.values), units=[""] * group.m)
        phase = group.replace(values=-np.angle(group.values, deg=True), units=["deg"] * group.m)
        return mag, phase

    if isinstance(pxy, SignalGroup):
        return split(pxy)
    pairs = apply_elementwise(split, as_signal_group_array(pxy, "Pxy"), kind="signal group")
    return SignalGroupArray(tuple(p[0] for p in pairs)), SignalGroupArray(tuple(p[1] for p in pairs))


# ---- binned spectra ----
def _uniform(array: SignalGroupArray, label: str) -> SignalGroupArray:
    if not array.is_uniform_length():
        raise Incompatible(f"Input array '{label}' must be data-length uniform.")
    return array


def _binned(psd: SignalGroupArray, iclass: np.ndarray, db: bool) -> StatSet:
    """Six statistics across the cases of each bin; fields are Nf x M x P."""
    raw = np.stack([np.asarray(g.values, dtype=float) for g in psd], axis=2)
    nbins = int(iclass.max()) if iclass.size else 0
    per_bin = [pool_stats(raw[:, :, iclass == k], axis=2) for k in range(1, nbins + 1)]
    stats = stack_bins(per_bin, axis=2, shape=raw.shape[:2] + (0,))
    if db:
        with np.errstate(divide="ignore", invalid="ignore"):
            stats = stats.map(lambda v: 10 * np.log10(v))
    return stats


def compute_psd_by_bin(
    signals: Any,
    iclass: Any,
    ts: float,
    *,
    config: SpectralConfig | None = None,
    db: bool = False,
    progress_threshold: int = 50,
) -> tuple[StatSet, np.ndarray, SignalGroupArray]:
    """
    PSD of every case, then the six statistics across the cases of each bin.
    Returns (stats, f, psd) with stats fields Nf x M x P.
    """
    array = _uniform(as_signal_group_array(signals, "SIGNALS"), "SIGNALS")
    iclass = check_iclass(iclass, len(array))
    psd, f = spect_signals(array, ts, config=config, progress_threshold=progress_threshold)
    stats = _binned(psd, iclass, db)
    if db:
        psd = convert_signals_to_db(psd, "power")
    return stats, f, psd


def _paired(signals1: Any, signals2: Any, labels: tuple[str, str]) -> tuple[SignalGroupArray, SignalGroupArray]:
    array1 = _uniform(as_signal_group_array(signals1, labels[0]), labels[0])
    array2 = _uniform(as_signal_group_array(signals2, labels[1]), labels[1])
    if len(array1) != len(array2):
        raise Incompatible("Input arrays must have the same length.")
    if set(array1.data_lengths()) != set(array2.data_lengths()):
        raise Incompatible("Input array data lengths do not match.")
    return array1, array2


def compute_err_psd_by_bin(
    signals1: Any,
    signals2: Any,
    iclass: Any,
    ts: float,
    *,
    config: SpectralConfig | None = None,
    db: bool = False,
    progress_threshold: int = 50,
) -> tuple[StatSet, np.ndarray, SignalGroupArray]:
    """Binned PSD statistics of the differences signals2 - signals1 (case by case)."""
    array1, array2 = _paired(signals1, signals2, ("SIGNALS1", "SIGNALS2"))
    iclass = check_iclass(iclass, len(array1))
    diffs = SignalGroupArray(tuple(
        g1.replace(values=np.asarray(g2.values, dtype=float) - np.asarray(g1.values, dtype=float))
        for g1, g2 in zip(array1, array2)
    ))
    psd, f = spect_signals(diffs, ts, config=config, progress_threshold=progress_threshold)
    stats = _binned(psd, iclass, db)
    if db:
        psd = convert_signals_to_db(psd, "power")
    return stats, f, psd


def compute_rel_psd_by_bin(
    signals: Any,
    signals0: Any,
    iclass: Any,
    ts: float,
    *,
    config: SpectralConfig | None = None,
    db: bool = False,
    progress_threshold: int = 50,
) -> tuple[StatSet, np.ndarray, SignalGroupArray]:
    """Binned statistics of the PSD ratio psd(signals) / psd(signals0), case by case."""
    array, array0 = _paired(signals, signals0, ("SIGNALS", "SIGNALS0"))
    iclass = check_iclass(iclass, len(array))
    psd, f = spect_signals(array, ts, config=config, progress_threshold=progress_threshold)
    psd0, _ = spect_signals(array0, ts, config=config, progress_threshold=progress_threshold)
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = SignalGroupArray(tuple(
            g.replace(values=g.values / g0.values) for g, g0 in zip(psd, psd0)
        ))
    stats = _binned(ratio, iclass, db)
    if db:
        ratio = convert_signals_to_db(ratio, "power")
    return stats, f, ratio
