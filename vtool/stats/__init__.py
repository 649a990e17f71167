# vtool/stats/__init__.py
"""
Statistics engine for vtool.

- binning: per-case classification by a reduced signal (histogram bins)
- bybin / spectral: long-time, short-time and PSD statistics per bin
- aggregate: compute_stats_array, the driver over a collected-signals input
- combine: merging results computed for disjoint bin ranges

Settings live in explicit config objects (SpectralConfig, StatsConfig,
StatsOptions); nothing here keeps module-level state.
"""

from .config import SpectralConfig, StatsConfig, StatsOptions
from .reductions import (
    STATISTICS,
    STAT_FIELDS,
    StatSet,
    compute_stat,
    compute_filter_mask,
    hazen_percentile,
)
from .binning import BinResult, compute_class_vector, histogram_bins, trim_empty_end_bins
from .bybin import compute_lt_stats_by_bin, compute_st_stats_by_bin
from .spectral import (
    psd_units,
    compute_psd,
    compute_coh,
    convert_signals_to_db,
    spect_signals,
    cross_spect_signals,
    coherence_groups,
    compute_psd_by_bin,
    compute_err_psd_by_bin,
    compute_rel_psd_by_bin,
)
from .aggregate import ArrayStats, StatsInfo, compute_stats_array, sample_time
from .combine import combine_stats, combine_stats_files


__all__ = [
    # configuration
    "SpectralConfig",
    "StatsConfig",
    "StatsOptions",

    # reductions
    "STATISTICS",
    "STAT_FIELDS",
    "StatSet",
    "compute_stat",
    "compute_filter_mask",
    "hazen_percentile",

    # binning
    "BinResult",
    "compute_class_vector",
    "histogram_bins",
    "trim_empty_end_bins",
    "compute_lt_stats_by_bin",
    "compute_st_stats_by_bin",

    # spectral
    "psd_units",
    "compute_psd",
    "compute_coh",
    "convert_signals_to_db",
    "spect_signals",
    "cross_spect_signals",
    "coherence_groups",
    "compute_psd_by_bin",
    "compute_err_psd_by_bin",
    "compute_rel_psd_by_bin",

    # aggregation
    "ArrayStats",
    "StatsInfo",
    "compute_stats_array",
    "sample_time",
    "combine_stats",
    "combine_stats_files",
]
