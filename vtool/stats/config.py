# vtool/stats/config.py
"""
Configuration for the statistics engine.

The spectral resolution and the other former process-wide parameters live
in explicit frozen dataclasses passed to the entry points; nothing here is
module-level mutable state.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

import numpy as np

from vtool.core.exceptions import InvalidInput


DEFAULT_FREQUENCY_RESOLUTION = 0.025  # Hz


def check_edges(edges: Any, label: str) -> np.ndarray:
    """Bin edges: numeric vector, at least two entries, strictly increasing."""
    try:
        arr = np.asarray(edges, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Specified '{label}' is not valid.") from e
    if arr.ndim != 1 or arr.size < 2 or not np.all(np.diff(arr) > 0):
        raise InvalidInput(f"Specified '{label}' is not valid.")
    return arr


def _check_names(names: Any, label: str) -> tuple[str, ...] | None:
    if names is None:
        return None
    if isinstance(names, str) or not isinstance(names, Sequence):
        raise InvalidInput(f"Specified '{label}' is not valid.")
    if not all(isinstance(s, str) and s for s in names):
        raise InvalidInput(f"Specified '{label}' is not valid.")
    return tuple(names)


def _check_name(name: Any, label: str) -> str | None:
    if name is None:
        return None
    if not isinstance(name, str) or not name:
        raise InvalidInput(f"Specified '{label}' is not valid.")
    return name


@dataclass(frozen=True, slots=True)
class SpectralConfig:
    """Parameters shared by every PSD / cross-spectrum computation."""

    df: float = DEFAULT_FREQUENCY_RESOLUTION
    """Frequency resolution in Hz. The FFT window is round(fs / df) samples."""

    def __post_init__(self) -> None:
        if isinstance(self.df, bool) or not isinstance(self.df, (int, float)) or not self.df > 0:
            raise InvalidInput(f"Frequency resolution 'df' must be positive, got {self.df!r}.")

    def window_length(self, fs: float) -> int:
        return int(round(fs / self.df))


@dataclass(frozen=True, slots=True)
class StatsConfig:
    """Engine-wide settings for compute_stats_array."""

    spectral: SpectralConfig = field(default_factory=SpectralConfig)

    default_layer: str | None = None
    """Name layer used for the default selections (first layer when None)."""

    progress_threshold: int = 50
    """Progress is logged every 5 % for loops over more cases than this."""

    sample_time_tolerance: float = 0.002
    """Max relative spread of sample intervals still treated as uniform."""

    def __post_init__(self) -> None:
        if not isinstance(self.spectral, SpectralConfig):
            raise InvalidInput("StatsConfig.spectral must be a SpectralConfig.")
        if self.progress_threshold < 0:
            raise InvalidInput(f"progress_threshold must be >= 0, got {self.progress_threshold}.")
        if not self.sample_time_tolerance >= 0:
            raise InvalidInput(f"sample_time_tolerance must be >= 0, got {self.sample_time_tolerance}.")


@dataclass(frozen=True, slots=True)
class StatsOptions:
    """
    Options of compute_stats_array.

    - array_names: arrays compared with the reference (default: all others)
    - selections: signal names analysed (default: the reference's default names)
    - name_f + ranges_f | values_f: keep only cases whose `name_f` samples all
      fall inside one of the [lo, hi] ranges, or all belong to values_f.
      name_f alone keeps cases in [-inf, inf] (drops cases containing NaN)
    - name_c + edges1 / edges2: classification signal and bin edges for the
      time-domain / spectral statistics (default: 10 bins over the full range)
    - spectral: compute PSD statistics
    - include_data: keep the per-case arrays in the result
    """

    array_names: Sequence[str] | None = None
    selections: Sequence[str] | None = None
    name_f: str | None = None
    ranges_f: Any = None
    values_f: Any = None
    name_c: str | None = None
    edges1: Any = None
    edges2: Any = None
    spectral: bool = False
    include_data: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "array_names", _check_names(self.array_names, "array_names"))
        object.__setattr__(self, "selections", _check_names(self.selections, "selections"))
        object.__setattr__(self, "name_f", _check_name(self.name_f, "name_f"))
        object.__setattr__(self, "name_c", _check_name(self.name_c, "name_c"))

        if self.ranges_f is not None:
            ranges = np.asarray(self.ranges_f, dtype=float)
            if ranges.ndim == 1 and ranges.size == 2:
                ranges = ranges.reshape(1, 2)
            if ranges.ndim != 2 or ranges.shape[1] != 2 or np.any(ranges[:, 1] < ranges[:, 0]):
                raise InvalidInput("Specified 'ranges_f' is not valid.")
            object.__setattr__(self, "ranges_f", ranges)
        if self.values_f is not None:
            values = np.asarray(self.values_f, dtype=float)
            if values.ndim > 1 and min(values.shape) > 1:
                raise InvalidInput("Specified 'values_f' is not valid.")
            object.__setattr__(self, "values_f", values.ravel())
        if self.edges1 is not None:
            object.__setattr__(self, "edges1", check_edges(self.edges1, "edges1"))
        if self.edges2 is not None:
            object.__setattr__(self, "edges2", check_edges(self.edges2, "edges2"))

        if self.name_f is None and self.ranges_f is not None:
            raise InvalidInput("Specification of 'ranges_f' is not valid if a filtering signal is not specified.")
        if self.name_f is None and self.values_f is not None:
            raise InvalidInput("Specification of 'values_f' is not valid if a filtering signal is not specified.")
        if self.ranges_f is not None and self.values_f is not None:
            raise InvalidInput("Not valid to specify both 'ranges_f' and 'values_f' for filtering.")
        if self.name_c is None and self.edges1 is not None:
            raise InvalidInput("Specification of 'edges1' is not valid if a classification signal is not specified.")
        if not self.spectral and self.edges2 is not None:
            raise InvalidInput("Specification of 'edges2' is not valid if the 'spectral' option is off.")
        if self.name_c is None and self.edges2 is not None:
            raise InvalidInput("Specification of 'edges2' is not valid if a classification signal is not specified.")

        if self.name_f is not None and self.ranges_f is None and self.values_f is None:
            object.__setattr__(self, "ranges_f", np.array([[-np.inf, np.inf]]))
