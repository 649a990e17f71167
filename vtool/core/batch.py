# vtool/core/batch.py
"""
Per-element driver for operations applied across SignalGroupArray /
DatasetArray inputs.

Each element produces an ElementResult (value or error). The driver stops at
the first failure and raises ArrayElementError carrying the element index,
so a batch either completes for every element or not at all.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, TypeVar

from .exceptions import ArrayElementError, CoreError


T = TypeVar("T")

_ELEMENT_ERRORS = (CoreError, ValueError, TypeError, IndexError)


@dataclass(frozen=True, slots=True)
class ElementResult(Generic[T]):
    index: int
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_element(func: Callable[[Any], T], index: int, element: Any) -> ElementResult[T]:
    try:
        return ElementResult(index=index, value=func(element))
    except _ELEMENT_ERRORS as e:
        return ElementResult(index=index, error=e)


def apply_elementwise(
    func: Callable[[Any], T],
    elements: Iterable[Any],
    *,
    kind: str = "element",
    on_done: Callable[[int], None] | None = None,
) -> list[T]:
    """
    Apply `func` to every element in order; abort on the first failure.
    on_done(k) is called after element k succeeds (progress reporting).
    """
    out: list[T] = []
    for k, element in enumerate(elements):
        result = run_element(func, k, element)
        if not result.ok:
            raise ArrayElementError(k, kind, result.error) from result.error
        out.append(result.value)
        if on_done is not None:
            on_done(k)
    return out
