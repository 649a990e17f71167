# test/test_dataset.py
import numpy as np
import pytest

from vtool.core import Dataset, SignalGroup
from vtool.core import InvalidDataset, GroupNotFound


def _time(n=3):
    return SignalGroup(names={"Names": ["Time"]}, values=np.arange(n, dtype=float).reshape(-1, 1), units=["sec"])


def _grp(names, n=3, fill=1.0):
    return SignalGroup(names={"Names": list(names)}, values=np.full((n, len(names)), fill))


def test_dataset_basic_access():
    ds = Dataset(groups={"Time": _time(), "Engine": _grp(["rpm"])}, attrs={"fname": "run1"})

    assert len(ds) == 2
    assert "Engine" in ds
    assert ds.n == 3
    assert ds.layers == ("Names",)
    assert ds.time.names["Names"] == ("Time",)
    assert ds.attrs["fname"] == "run1"
    assert ds.signal_group_names(include_time=False) == ["Engine"]


def test_dataset_getitem_missing_raises():
    ds = Dataset(groups={"Time": _time()})
    with pytest.raises(GroupNotFound):
        _ = ds["missing"]
    # GroupNotFound behaves like KeyError for dict-like callers
    with pytest.raises(KeyError):
        _ = ds["missing"]


def test_dataset_rejects_group_attribute_clash():
    with pytest.raises(InvalidDataset):
        Dataset(groups={"Time": _time(), "x": _grp(["a"])}, attrs={"x": 1})


def test_dataset_add_drop_select():
    ds = Dataset(groups={"Time": _time()})
    ds2 = ds.add("A", _grp(["a"]))
    assert "A" in ds2
    assert "A" not in ds

    with pytest.raises(InvalidDataset):
        ds2.add("A", _grp(["a"]), overwrite=False)
    ds3 = ds2.add("A", _grp(["a"], fill=2.0), overwrite=True)
    assert ds3["A"].values[0, 0] == 2.0

    ds4 = ds3.add("B", _grp(["b"]))
    assert list(ds4.select(["B"]).keys()) == ["Time", "B"]
    assert list(ds4.drop("A").keys()) == ["Time", "B"]
    with pytest.raises(GroupNotFound):
        ds4.drop("C")
    assert list(ds4.drop("C", missing="ignore").keys()) == ["Time", "A", "B"]


def test_dataset_rename_group():
    ds = Dataset(groups={"Time": _time(), "A": _grp(["a"])})
    out = ds.rename_group("A", "Z")
    assert list(out.keys()) == ["Time", "Z"]

    with pytest.raises(InvalidDataset):
        ds.rename_group("Time", "T")
    with pytest.raises(GroupNotFound):
        ds.rename_group("Q", "Z")


def test_dataset_struct_round_trip_and_equality():
    ds = Dataset(groups={"Time": _time(), "A": _grp(["a", "b"])}, attrs={"start": "2024-01-01", "gain": 2.0})
    back = Dataset.from_dict(ds.to_dict())

    assert back == ds
    assert back.with_attrs(gain=3.0) != ds
