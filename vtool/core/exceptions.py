# vtool/core/exceptions.py
from __future__ import annotations


class CoreError(Exception):
    """Base error for all vtool exceptions."""


# ---- Validation / construction errors ----
class InvalidInput(CoreError, ValueError):
    """Raised when an argument has the wrong type, shape or value."""


class InvalidSignalGroup(InvalidInput):
    """Raised when a SignalGroup is malformed or fails its invariants."""


class InvalidDataset(InvalidInput):
    """Raised when a Dataset is malformed or fails its invariants."""


class InvalidSignalGroupArray(InvalidInput):
    """Raised when a SignalGroupArray is not homogeneous."""


class InvalidDatasetArray(InvalidInput):
    """Raised when a DatasetArray is not homogeneous."""


# ---- Structural mismatch between several objects ----
class Incompatible(CoreError, ValueError):
    """Raised when groups/datasets/arrays differ in layers, units or lengths."""


# ---- Lookup errors (also behave like KeyError for dict-like APIs) ----
class NotFound(CoreError, KeyError):
    """Raised when a requested name has no match."""


class SignalNotFound(NotFound):
    """Raised when a requested signal name is not present."""


class GroupNotFound(NotFound):
    """Raised when a requested signal group is not present in a Dataset."""


class LayerNotFound(NotFound):
    """Raised when a requested name layer is not present."""


# ---- Batch failures ----
class ArrayElementError(CoreError):
    """
    Raised when an operation fails on one element of a SignalGroupArray or
    DatasetArray. The original exception is chained as __cause__.
    """

    def __init__(self, index: int, kind: str, cause: BaseException) -> None:
        self.index = index
        self.kind = kind
        self.cause = cause
        super().__init__(f"Error occurred at {kind} #{index}: {cause}")
