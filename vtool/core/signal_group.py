# vtool/core/signal_group.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterator, Mapping, Sequence

import numpy as np

from .exceptions import InvalidSignalGroup, LayerNotFound


LAYER_SUFFIX = "Names"
TIME_NAMES = ("Time", "Index")
ABSOLUTE_TIME_UNITS = "datetime"
ELAPSED_TIME_UNITS = ("sec", "min", "hrs", "days", "")

_STRUCT_FIELDS = ("Values", "Units", "Descriptions")


def _as_string_tuple(entries: Any, what: str) -> tuple:
    if isinstance(entries, np.ndarray) and entries.ndim != 1:
        raise InvalidSignalGroup(f"SignalGroup.{what} must be a 1-D sequence of strings.")
    if isinstance(entries, str) or not isinstance(entries, (Sequence, np.ndarray)):
        raise InvalidSignalGroup(f"SignalGroup.{what} must be a sequence of strings.")
    return tuple(entries)


def values_equal(a: np.ndarray, b: np.ndarray) -> bool:
    """Array equality that treats NaN/NaT positions as equal."""
    if a.shape != b.shape:
        return False
    if a.dtype.kind in "fcmM" and b.dtype.kind in "fcmM":
        return bool(np.array_equal(a, b, equal_nan=True))
    return bool(np.array_equal(a, b))


@dataclass(frozen=True, slots=True, eq=False)
class SignalGroup:
    """
    SignalGroup = M named signals sharing one sample axis of length N.

    - names: layer -> ordered names (one entry per signal). Layer keys end in
      "Names" (e.g. "Names", "ShortNames"); an empty string means "no name
      on this layer".
    - values: N x M numeric array (complex allowed; datetime64 for absolute time)
    - units / descriptions: one string per signal

    Construction only rejects wrong container types. Content invariants
    (lengths, name syntax, ...) are reported by `is_signal_group` and
    enforced by the operations that consume the group.
    """
    names: Mapping[str, Sequence[str]] = field(repr=False)
    values: np.ndarray = field(repr=False)
    units: Sequence[str] | None = None
    descriptions: Sequence[str] | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.names, Mapping) or len(self.names) == 0:
            raise InvalidSignalGroup("SignalGroup.names must be a non-empty mapping of layer -> names.")

        normalized: dict[str, tuple] = {}
        for layer, entries in self.names.items():
            if not isinstance(layer, str) or not layer.endswith(LAYER_SUFFIX):
                raise InvalidSignalGroup(
                    f"Name layer keys must be strings ending in '{LAYER_SUFFIX}', got {layer!r}."
                )
            normalized[layer] = _as_string_tuple(entries, f"names[{layer!r}]")

        try:
            v = np.asarray(self.values)
        except (ValueError, TypeError) as e:
            raise InvalidSignalGroup(f"SignalGroup.values is not a numeric array: {e}") from e
        m = v.shape[1] if v.ndim == 2 else len(next(iter(normalized.values())))

        units = ("",) * m if self.units is None else _as_string_tuple(self.units, "units")
        descriptions = (
            ("",) * m if self.descriptions is None
            else _as_string_tuple(self.descriptions, "descriptions")
        )

        object.__setattr__(self, "names", normalized)
        object.__setattr__(self, "values", v)
        object.__setattr__(self, "units", units)
        object.__setattr__(self, "descriptions", descriptions)

    # ---- shape ----
    @property
    def n(self) -> int:
        """Number of samples."""
        return int(self.values.shape[0]) if self.values.ndim >= 1 else 0

    @property
    def m(self) -> int:
        """Number of signals."""
        return int(self.values.shape[1]) if self.values.ndim == 2 else len(self.units)

    def __len__(self) -> int:
        return self.m

    @property
    def layers(self) -> tuple[str, ...]:
        return tuple(self.names)

    def layer(self, layer: str) -> tuple[str, ...]:
        try:
            return self.names[layer]
        except KeyError as e:
            raise LayerNotFound(layer) from e

    def names_matrix(self) -> tuple[tuple[str, ...], ...]:
        """Row i holds the names of signal i on every layer (layer order)."""
        return tuple(zip(*self.names.values())) if self.m else ()

    def column(self, index: int) -> np.ndarray:
        return self.values[:, index]

    def iter_rows(self) -> Iterator[tuple[tuple[str, ...], str, str]]:
        for row, unit, desc in zip(self.names_matrix(), self.units, self.descriptions):
            yield row, unit, desc

    # ---- time helpers ----
    @property
    def is_absolute_time(self) -> bool:
        return tuple(self.units) == (ABSOLUTE_TIME_UNITS,) or self.values.dtype.kind == "M"

    # ---- copies ----
    def replace(self, **changes: Any) -> "SignalGroup":
        """Return a new SignalGroup with the given fields replaced."""
        return replace(self, **changes)

    def copy(self) -> "SignalGroup":
        return SignalGroup(
            names={k: tuple(v) for k, v in self.names.items()},
            values=self.values.copy(),
            units=tuple(self.units),
            descriptions=tuple(self.descriptions),
        )

    # ---- struct-shaped mapping ----
    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {k: list(v) for k, v in self.names.items()}
        out["Values"] = self.values
        out["Units"] = list(self.units)
        out["Descriptions"] = list(self.descriptions)
        return out

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "SignalGroup":
        missing = [k for k in _STRUCT_FIELDS if k not in d]
        if missing:
            raise InvalidSignalGroup(f"Missing signal group field(s): {', '.join(missing)}.")
        extra = [k for k in d if k not in _STRUCT_FIELDS and not str(k).endswith(LAYER_SUFFIX)]
        if extra:
            raise InvalidSignalGroup(f"Unrecognized signal group field(s): {', '.join(map(str, extra))}.")
        names = {k: v for k, v in d.items() if k not in _STRUCT_FIELDS}
        return cls(names=names, values=d["Values"], units=d["Units"], descriptions=d["Descriptions"])

    # ---- equality ----
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SignalGroup):
            return NotImplemented
        return (
            list(self.names.items()) == list(other.names.items())
            and tuple(self.units) == tuple(other.units)
            and tuple(self.descriptions) == tuple(other.descriptions)
            and values_equal(self.values, other.values)
        )
