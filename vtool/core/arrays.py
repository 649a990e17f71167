# vtool/core/arrays.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Mapping, Sequence, overload

import numpy as np

from .batch import apply_elementwise
from .dataset import Dataset
from .exceptions import Incompatible, InvalidDatasetArray, InvalidInput, InvalidSignalGroupArray
from .signal_group import SignalGroup
from .validity import is_dataset_array, is_signal_group_array


def _take_positions(index: Sequence[int] | Sequence[bool] | np.ndarray, size: int) -> list[int]:
    idx = np.asarray(index)
    if idx.dtype == bool:
        if idx.shape != (size,):
            raise InvalidInput(f"Boolean case mask must have length {size}, got {idx.size}.")
        return [int(i) for i in np.flatnonzero(idx)]
    if idx.size and not np.issubdtype(idx.dtype, np.integer):
        raise InvalidInput("Case index must contain integers or booleans.")
    positions = [int(i) for i in idx.ravel()]
    if any(i < -size or i >= size for i in positions):
        raise InvalidInput(f"Case index out of range for {size} case(s).")
    return positions


@dataclass(frozen=True, slots=True, eq=False)
class SignalGroupArray:
    """
    Homogeneous sequence of SignalGroups (one per case).

    Elements share name layers, names and units; sample lengths may differ.
    Homogeneity is validated once, at construction.
    """
    elements: tuple[SignalGroup, ...] = ()

    def __post_init__(self) -> None:
        if isinstance(self.elements, SignalGroup):
            elements: tuple = (self.elements,)
        else:
            elements = tuple(self.elements)
        if any(not isinstance(e, (SignalGroup, Mapping)) for e in elements):
            raise InvalidSignalGroupArray("SignalGroupArray elements must be SignalGroup instances.")
        elements = tuple(e if isinstance(e, SignalGroup) else SignalGroup.from_dict(e) for e in elements)

        _, valid, reason = is_signal_group_array(list(elements))
        if not valid:
            raise InvalidSignalGroupArray(f"Invalid signal group array: {reason}")
        object.__setattr__(self, "elements", elements)

    # ---- sequence API ----
    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self) -> Iterator[SignalGroup]:
        return iter(self.elements)

    @overload
    def __getitem__(self, i: int) -> SignalGroup: ...
    @overload
    def __getitem__(self, i: slice) -> "SignalGroupArray": ...

    def __getitem__(self, i):
        if isinstance(i, slice):
            return SignalGroupArray(self.elements[i])
        return self.elements[i]

    def take(self, index: Sequence[int] | Sequence[bool] | np.ndarray) -> "SignalGroupArray":
        """Cases selected by integer positions or a boolean mask (order kept)."""
        return SignalGroupArray(tuple(self.elements[i] for i in _take_positions(index, len(self))))

    def map(self, func: Callable[[SignalGroup], SignalGroup]) -> "SignalGroupArray":
        return SignalGroupArray(tuple(apply_elementwise(func, self.elements, kind="signal group")))

    # ---- shared structure ----
    def _first(self) -> SignalGroup:
        if not self.elements:
            raise InvalidSignalGroupArray("Signal group array is empty.")
        return self.elements[0]

    @property
    def layers(self) -> tuple[str, ...]:
        return self._first().layers

    @property
    def units(self) -> tuple[str, ...]:
        return tuple(self._first().units)

    @property
    def m(self) -> int:
        return self._first().m

    def names_matrix(self) -> tuple[tuple[str, ...], ...]:
        return self._first().names_matrix()

    # ---- lengths ----
    def data_lengths(self) -> list[int]:
        return [g.n for g in self.elements]

    def is_uniform_length(self) -> bool:
        return len(set(self.data_lengths())) <= 1

    def values_cube(self) -> np.ndarray:
        """N x M x K stack of every case's values (uniform length required)."""
        if not self.is_uniform_length():
            raise Incompatible("Signal group array elements do not have uniform data length.")
        self._first()
        return np.stack([np.asarray(g.values, dtype=float) for g in self.elements], axis=2)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SignalGroupArray):
            return NotImplemented
        return len(self) == len(other) and all(a == b for a, b in zip(self, other))


@dataclass(frozen=True, slots=True, eq=False)
class DatasetArray:
    """
    Homogeneous sequence of Datasets (one per case).

    Elements share group fields, names, units and Time units; sample lengths
    may differ. Homogeneity is validated once, at construction.
    """
    elements: tuple[Dataset, ...] = ()

    def __post_init__(self) -> None:
        if isinstance(self.elements, Dataset):
            elements: tuple = (self.elements,)
        else:
            elements = tuple(self.elements)
        if any(not isinstance(e, (Dataset, Mapping)) for e in elements):
            raise InvalidDatasetArray("DatasetArray elements must be Dataset instances.")
        elements = tuple(e if isinstance(e, Dataset) else Dataset.from_dict(e) for e in elements)

        _, valid, reason = is_dataset_array(list(elements))
        if not valid:
            raise InvalidDatasetArray(f"Invalid dataset array: {reason}")
        object.__setattr__(self, "elements", elements)

    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self) -> Iterator[Dataset]:
        return iter(self.elements)

    @overload
    def __getitem__(self, i: int) -> Dataset: ...
    @overload
    def __getitem__(self, i: slice) -> "DatasetArray": ...

    def __getitem__(self, i):
        if isinstance(i, slice):
            return DatasetArray(self.elements[i])
        return self.elements[i]

    def take(self, index: Sequence[int] | Sequence[bool] | np.ndarray) -> "DatasetArray":
        return DatasetArray(tuple(self.elements[i] for i in _take_positions(index, len(self))))

    def map(self, func: Callable[[Dataset], Dataset]) -> "DatasetArray":
        return DatasetArray(tuple(apply_elementwise(func, self.elements, kind="dataset")))

    def group(self, name: str) -> SignalGroupArray:
        """The `name` group of every case, as a SignalGroupArray."""
        return SignalGroupArray(tuple(d[name] for d in self.elements))

    @property
    def layers(self) -> tuple[str, ...]:
        if not self.elements:
            raise InvalidDatasetArray("Dataset array is empty.")
        return self.elements[0].layers

    def data_lengths(self) -> list[int]:
        return [d.n for d in self.elements]

    def is_uniform_length(self) -> bool:
        return len(set(self.data_lengths())) <= 1

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DatasetArray):
            return NotImplemented
        return len(self) == len(other) and all(a == b for a, b in zip(self, other))


def as_signal_group_array(x: Any, label: str = "SIGNALS") -> SignalGroupArray:
    """Accept a SignalGroupArray, a single SignalGroup or a list of groups."""
    if isinstance(x, SignalGroupArray):
        return x
    if isinstance(x, SignalGroup):
        return SignalGroupArray((x,))
    if isinstance(x, Iterable) and not isinstance(x, (str, bytes, dict)):
        try:
            return SignalGroupArray(tuple(x))
        except InvalidSignalGroupArray as e:
            raise InvalidSignalGroupArray(f"Input '{label}': {e}") from e
    raise InvalidSignalGroupArray(f"Input '{label}' is not a signal group array.")


def as_dataset_array(x: Any, label: str = "DATA") -> DatasetArray:
    if isinstance(x, DatasetArray):
        return x
    if isinstance(x, Dataset):
        return DatasetArray((x,))
    if isinstance(x, Iterable) and not isinstance(x, (str, bytes, dict)):
        try:
            return DatasetArray(tuple(x))
        except InvalidDatasetArray as e:
            raise InvalidDatasetArray(f"Input '{label}': {e}") from e
    raise InvalidDatasetArray(f"Input '{label}' is not a dataset array.")
