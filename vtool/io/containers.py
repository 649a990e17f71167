# vtool/io/containers.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Mapping, Sequence

import joblib

from vtool.core.arrays import SignalGroupArray, as_signal_group_array
from vtool.core.exceptions import InvalidInput
from vtool.core.signal_group import SignalGroup
from vtool.core.validity import is_signal_group_array, is_valid_name


logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
COLLECTED_KIND = "collected_signals"
STATS_KIND = "computed_stats"


@dataclass(frozen=True, slots=True)
class CollectedSignals:
    """
    Signal group arrays collected case by case from a set of files.

    - arrays: array name -> SignalGroupArray (one element per file, same order)
    - time: per-case Time groups (SignalGroupArray), a single Time group, or None
    - fnames: source file name of every case
    """

    arrays: Mapping[str, SignalGroupArray] = field(repr=False)
    time: SignalGroupArray | SignalGroup | None = field(default=None, repr=False)
    fnames: Sequence[str] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.arrays, Mapping):
            raise InvalidInput("CollectedSignals.arrays must be a mapping of name -> signal group array.")
        arrays: dict[str, SignalGroupArray] = {}
        for name, array in self.arrays.items():
            if not is_valid_name(name):
                raise InvalidInput(f"Array name {name!r} is not valid.")
            arrays[name] = as_signal_group_array(array, name)
        object.__setattr__(self, "arrays", arrays)

        time = self.time
        if time is not None and not isinstance(time, SignalGroup):
            time = as_signal_group_array(time, "Time")
        object.__setattr__(self, "time", time)

        if isinstance(self.fnames, str) or not all(isinstance(s, str) for s in self.fnames):
            raise InvalidInput("CollectedSignals.fnames must be a list of strings.")
        object.__setattr__(self, "fnames", tuple(self.fnames))

    # ---- dict-like API ----
    def __len__(self) -> int:
        return len(self.arrays)

    def __iter__(self) -> Iterator[str]:
        return iter(self.arrays)

    def __contains__(self, name: object) -> bool:
        return name in self.arrays

    def __getitem__(self, name: str) -> SignalGroupArray:
        return self.arrays[name]

    @property
    def names(self) -> list[str]:
        return list(self.arrays)

    def first_time(self) -> SignalGroup | None:
        """Time group of the first case (or the shared one)."""
        if self.time is None or isinstance(self.time, SignalGroup):
            return self.time
        return self.time[0] if len(self.time) else None

    # ---- conversions ----
    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = dict(self.arrays)
        if self.time is not None:
            d["Time"] = self.time
        d["fnames"] = list(self.fnames)
        return d

    @classmethod
    def from_mapping(cls, d: Mapping[str, Any]) -> "CollectedSignals":
        """
        Build from a flat mapping of variables. The "fnames" entry is
        required; the first entry whose key starts with "time" (any case) is
        the time; other entries that are not signal group arrays are ignored.
        """
        if "fnames" not in d:
            raise InvalidInput("The 'fnames' list is not present in the input.")
        time = None
        arrays: dict[str, Any] = {}
        for key, value in d.items():
            if key == "fnames":
                continue
            if key.lower().startswith("time"):
                if time is None:
                    time = value
                continue
            if is_signal_group_array(value)[1]:
                arrays[key] = value
            else:
                logger.debug("Skipping '%s': not a signal group array.", key)
        return cls(arrays=arrays, time=time, fnames=d["fnames"])


# ---- persistence ----
def _dump(path: str | os.PathLike, kind: str, data: Any) -> Path:
    path = Path(path)
    joblib.dump({"kind": kind, "version": FORMAT_VERSION, "data": data}, path)
    logger.info("Stored results to \"%s\".", path)
    return path


def _load(path: str | os.PathLike, kind: str) -> Any:
    path = Path(path)
    if not path.is_file():
        raise InvalidInput(f"Input file '{path}' not found.")
    payload = joblib.load(path)
    if not isinstance(payload, Mapping) or payload.get("kind") != kind:
        raise InvalidInput(f"Input file '{path.name}' does not hold {kind.replace('_', ' ')}.")
    if payload.get("version") != FORMAT_VERSION:
        raise InvalidInput(f"Input file '{path.name}' has unsupported format version {payload.get('version')!r}.")
    return payload["data"]


def save_collected(path: str | os.PathLike, collected: CollectedSignals) -> Path:
    if not isinstance(collected, CollectedSignals):
        raise InvalidInput("Input 'collected' must be a CollectedSignals container.")
    return _dump(path, COLLECTED_KIND, collected)


def load_collected(path: str | os.PathLike) -> CollectedSignals:
    data = _load(path, COLLECTED_KIND)
    if not isinstance(data, CollectedSignals):
        raise InvalidInput(f"Input file '{Path(path).name}' is invalid.")
    return data


def save_stats(path: str | os.PathLike, stats: Sequence[Any], info: Any) -> Path:
    """Store a (stats, info) result of compute_stats_array / combine_stats."""
    return _dump(path, STATS_KIND, {"Stats": list(stats), "Info": info})


def load_stats(path: str | os.PathLike) -> tuple[list[Any], Any]:
    data = _load(path, STATS_KIND)
    try:
        return list(data["Stats"]), data["Info"]
    except (KeyError, TypeError) as e:
        raise InvalidInput(f"Input file '{Path(path).name}' is invalid.") from e
