# vtool/core/dataset.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping

from .exceptions import GroupNotFound, InvalidDataset
from .signal_group import SignalGroup


TIME_GROUP = "Time"


def attrs_equal(a: Any, b: Any) -> bool:
    try:
        eq = a == b
        return bool(eq) if not hasattr(eq, "all") else bool(eq.all())
    except (TypeError, ValueError):
        return False


@dataclass(frozen=True, slots=True, eq=False)
class Dataset:
    """
    Dataset = named SignalGroups (one of them "Time") + scalar attributes.

    Design goals:
    - dict-like access: data["Signals"], data.time
    - immutable: add/drop/select/with_attrs return new Dataset
    - groups and attributes live in separate mappings; a key may not be both

    Structural rules (Time present, common N and layers, ...) are reported by
    `is_dataset` and enforced by the operations that consume the dataset.
    """
    groups: Mapping[str, SignalGroup] = field(default_factory=dict, repr=False)
    attrs: Mapping[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.groups, Mapping):
            raise InvalidDataset("Dataset.groups must be a mapping (e.g., dict).")
        if self.attrs is None:
            object.__setattr__(self, "attrs", {})
        elif not isinstance(self.attrs, Mapping):
            raise InvalidDataset("Dataset.attrs must be a mapping (e.g., dict).")

        normalized: dict[str, SignalGroup] = {}
        for key, group in self.groups.items():
            if not isinstance(key, str) or not key.strip():
                raise InvalidDataset("Dataset.groups keys must be non-empty strings.")
            if not isinstance(group, SignalGroup):
                raise InvalidDataset(f"Dataset group '{key}' must be a SignalGroup instance.")
            normalized[key] = group

        attrs = dict(self.attrs)
        clash = sorted(set(attrs) & set(normalized))
        if clash:
            raise InvalidDataset(f"Name(s) used both as group and attribute: {', '.join(clash)}.")

        object.__setattr__(self, "groups", normalized)
        object.__setattr__(self, "attrs", attrs)

    # ---- dict-like API ----
    def __len__(self) -> int:
        return len(self.groups)

    def __iter__(self) -> Iterator[str]:
        return iter(self.groups)

    def __contains__(self, name: object) -> bool:
        return name in self.groups

    def keys(self) -> Iterable[str]:
        return self.groups.keys()

    def items(self) -> Iterable[tuple[str, SignalGroup]]:
        return self.groups.items()

    def values(self) -> Iterable[SignalGroup]:
        return self.groups.values()

    def __getitem__(self, name: str) -> SignalGroup:
        try:
            return self.groups[name]
        except KeyError as e:
            raise GroupNotFound(name) from e

    def get(self, name: str, default: SignalGroup | None = None) -> SignalGroup | None:
        return self.groups.get(name, default)

    # ---- derived ----
    @property
    def time(self) -> SignalGroup:
        return self[TIME_GROUP]

    @property
    def n(self) -> int:
        """Sample count, taken from the Time group."""
        return self.time.n

    @property
    def layers(self) -> tuple[str, ...]:
        return self.time.layers

    def signal_group_names(self, *, include_time: bool = True) -> list[str]:
        return [k for k in self.groups if include_time or k != TIME_GROUP]

    # ---- transformations ----
    def add(self, name: str, group: SignalGroup, *, overwrite: bool = False) -> "Dataset":
        """
        Return a new Dataset with `group` stored under `name`.

        If overwrite=False and the group already exists, raises InvalidDataset.
        """
        if not isinstance(group, SignalGroup):
            raise InvalidDataset("add() expects a SignalGroup instance.")
        if name in self.groups and not overwrite:
            raise InvalidDataset(f"Group '{name}' already exists (overwrite=False).")

        new_groups = dict(self.groups)
        new_groups[name] = group
        return Dataset(groups=new_groups, attrs=self._copy_attrs())

    def replace_groups(self, groups: Mapping[str, SignalGroup]) -> "Dataset":
        """Return a new Dataset with every group in `groups` swapped in (order kept)."""
        new_groups = dict(self.groups)
        new_groups.update(groups)
        return Dataset(groups=new_groups, attrs=self._copy_attrs())

    def drop(self, names: str | Iterable[str], *, missing: str = "raise") -> "Dataset":
        """
        Drop one or more groups.

        missing:
          - "raise": error if any name is missing
          - "ignore": skip missing names
        """
        names_set = {names} if isinstance(names, str) else set(names)

        new_groups = dict(self.groups)
        for n in names_set:
            if n in new_groups:
                del new_groups[n]
            elif missing == "raise":
                raise GroupNotFound(n)
        return Dataset(groups=new_groups, attrs=self._copy_attrs())

    def select(self, names: Iterable[str], *, missing: str = "raise") -> "Dataset":
        """
        Keep Time plus the given groups (order: Time first, then `names`).

        missing:
          - "raise": error if any name is missing
          - "ignore": skip missing names
        """
        selected: dict[str, SignalGroup] = {}
        if TIME_GROUP in self.groups:
            selected[TIME_GROUP] = self.groups[TIME_GROUP]
        for n in names:
            if n in self.groups:
                selected[n] = self.groups[n]
            elif missing == "raise":
                raise GroupNotFound(n)
        return Dataset(groups=selected, attrs=self._copy_attrs())

    def rename_group(self, old: str, new: str) -> "Dataset":
        if old not in self.groups:
            raise GroupNotFound(old)
        if old == TIME_GROUP:
            raise InvalidDataset("The Time group cannot be renamed.")
        if not isinstance(new, str) or not new.strip():
            raise InvalidDataset("New group name must be a non-empty string.")
        if new in self.groups or new in self.attrs:
            raise InvalidDataset(f"Field '{new}' already exists.")

        new_groups = {(new if k == old else k): g for k, g in self.groups.items()}
        return Dataset(groups=new_groups, attrs=self._copy_attrs())

    def with_attrs(self, **attrs: Any) -> "Dataset":
        new_attrs = self._copy_attrs()
        new_attrs.update(attrs)
        return Dataset(groups=dict(self.groups), attrs=new_attrs)

    # ---- struct-shaped mapping ----
    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {k: g.to_dict() for k, g in self.groups.items()}
        out.update(self._copy_attrs())
        return out

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Dataset":
        """Fields shaped like a signal group become groups, everything else an attribute."""
        from .validity import is_signal_group

        groups: dict[str, SignalGroup] = {}
        attrs: dict[str, Any] = {}
        for key, value in d.items():
            if isinstance(value, SignalGroup):
                groups[key] = value
            elif is_signal_group(value)[0]:
                groups[key] = SignalGroup.from_dict(value)
            else:
                attrs[key] = value
        return cls(groups=groups, attrs=attrs)

    def _copy_attrs(self) -> dict[str, Any]:
        return dict(self.attrs)

    # ---- equality ----
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Dataset):
            return NotImplemented
        if list(self.groups) != list(other.groups) or set(self.attrs) != set(other.attrs):
            return False
        if any(self.groups[k] != other.groups[k] for k in self.groups):
            return False
        return all(attrs_equal(self.attrs[k], other.attrs[k]) for k in self.attrs)
