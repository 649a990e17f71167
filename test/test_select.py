# test/test_select.py
import numpy as np
import pytest

from vtool.core import Dataset, SignalGroup, GroupNotFound, InvalidInput
from vtool.ops import remove_from_group, remove_groups_except, select_from_dataset, select_from_group


def _abc(n=5):
    return SignalGroup(
        names={"Names": ["a", "b", "c"]},
        values=np.arange(n * 3, dtype=float).reshape(n, 3),
        units=["m", "s", "kg"],
        descriptions=["A", "B", "C"],
    )


def test_select_reorders_columns():
    g = _abc()
    out, matched, index = select_from_group(["c", "a"], g)

    assert out.m == 2
    assert np.array_equal(out.values[:, 0], g.values[:, 2])
    assert np.array_equal(out.values[:, 1], g.values[:, 0])
    assert out.names["Names"] == ("c", "a")
    assert out.units == ("kg", "m")
    assert matched.tolist() == [True, True]
    assert index.tolist() == [2, 0]


def test_select_all_default_names_reproduces_values():
    g = _abc()
    out = select_from_group(["a", "b", "c"], g).group
    assert out == g


def test_select_unmatched_gives_nan_placeholder(caplog):
    g = _abc()
    with caplog.at_level("WARNING"):
        out, matched, index = select_from_group(["b", "zz"], g)

    assert matched.tolist() == [True, False]
    assert index.tolist() == [1, -1]
    assert np.isnan(out.values[:, 1]).all()
    assert out.names["Names"] == ("b", "zz")
    assert out.units[1] == ""
    assert "zz" in caplog.text


def test_select_unmatched_silent_when_warn_off(caplog):
    with caplog.at_level("WARNING"):
        select_from_group(["zz"], _abc(), warn=False)
    assert caplog.text == ""


def test_select_by_column_index():
    g = _abc()
    out, matched, index = select_from_group([2, 7], g, warn=False)
    assert matched.tolist() == [True, False]
    assert np.array_equal(out.values[:, 0], g.values[:, 2])
    assert out.names["Names"][1] == ""


def test_select_rejects_mixed_entries():
    with pytest.raises(InvalidInput):
        select_from_group(["a", 1], _abc())


def test_select_from_dataset_spans_groups():
    t = SignalGroup(names={"Names": ["Time"]}, values=np.arange(5.0).reshape(-1, 1), units=["sec"])
    other = SignalGroup(names={"Names": ["d"]}, values=np.full((5, 1), 7.0))
    ds = Dataset(groups={"Time": t, "G1": _abc(), "G2": other})

    out = select_from_dataset(["d", "a"], ds).group
    assert out.values[0].tolist() == [7.0, 0.0]


def test_remove_from_group_drops_every_instance():
    g = SignalGroup(names={"Names": ["a", "b", "a"]}, values=np.arange(6.0).reshape(2, 3))
    out, matched = remove_from_group(["a", "zz"], g, warn=False)

    assert out.names["Names"] == ("b",)
    assert out.values[:, 0].tolist() == [1.0, 4.0]
    assert matched.tolist() == [True, False]


def test_remove_from_group_clear_keeps_columns():
    out, _ = remove_from_group("b", _abc(), clear=True)
    assert out.m == 3
    assert np.isnan(out.values[:, 1]).all()
    assert out.names["Names"] == ("a", "", "c")
    assert out.units == ("m", "", "kg")


def test_remove_groups_except():
    t = SignalGroup(names={"Names": ["Time"]}, values=np.arange(5.0).reshape(-1, 1), units=["sec"])
    ds = Dataset(groups={"Time": t, "G1": _abc(), "G2": _abc()})

    assert list(remove_groups_except("G2", ds).keys()) == ["Time", "G2"]
    with pytest.raises(GroupNotFound):
        remove_groups_except(["G3"], ds)
