# test/test_mutate.py
import numpy as np
import pytest

from vtool.core import Dataset, SignalGroup, SignalGroupArray, InvalidInput, LayerNotFound, SignalNotFound
from vtool.ops import (
    add_name_layer,
    add_signal_to_group,
    remove_name_layer,
    rename_layer,
    replace_description,
    replace_signal_in_dataset,
    replace_signal_in_group,
    replace_units,
    try_replace_signal_in_group,
)


def _grp():
    return SignalGroup(
        names={"Names": ["a", "b"], "ShortNames": ["", "bb"]},
        values=np.zeros((3, 2)),
        units=["m", "s"],
        descriptions=["A", "B"],
    )


def _consistent(g: SignalGroup) -> bool:
    m = g.values.shape[1]
    return len(g.units) == len(g.descriptions) == m and all(len(v) == m for v in g.names.values())


def test_add_signal_appends_column():
    out = add_signal_to_group(_grp(), "c", [1, 2, 3], units="kg", description="C")

    assert out.m == 3
    assert out.names["Names"] == ("a", "b", "c")
    assert out.names["ShortNames"] == ("", "bb", "")
    assert out.values[:, 2].tolist() == [1.0, 2.0, 3.0]
    assert _consistent(out)


def test_add_signal_scalar_none_and_layer():
    out = add_signal_to_group(_grp(), "c", 5.0, layer="ShortNames")
    assert out.values[:, 2].tolist() == [5.0, 5.0, 5.0]
    assert out.names["Names"][2] == ""
    assert out.names["ShortNames"][2] == "c"

    out = add_signal_to_group(_grp(), "d", None)
    assert np.isnan(out.values[:, 2]).all()

    with pytest.raises(InvalidInput):
        add_signal_to_group(_grp(), "d", [1, 2])
    with pytest.raises(InvalidInput):
        add_signal_to_group(_grp(), "2bad", 1.0)
    with pytest.raises(LayerNotFound):
        add_signal_to_group(_grp(), "d", 1.0, layer="LongNames")


def test_add_signal_creates_new_group():
    out = add_signal_to_group(None, "x", [1.0, 2.0], units="V")
    assert out.layers == ("Names",)
    assert out.values.shape == (2, 1)
    with pytest.raises(InvalidInput):
        add_signal_to_group(None, "x", [])


def test_replace_signal_updates_every_instance():
    g = SignalGroup(names={"Names": ["a", "b", "a"]}, values=np.zeros((2, 3)))
    out = replace_signal_in_group(g, "a", [1.0, 2.0], new_name="z", units="m")

    assert out.values[:, 0].tolist() == [1.0, 2.0]
    assert out.values[:, 2].tolist() == [1.0, 2.0]
    assert out.names["Names"] == ("z", "b", "z")
    assert out.units == ("m", "", "m")
    assert _consistent(out)


def test_replace_signal_miss():
    with pytest.raises(SignalNotFound):
        replace_signal_in_group(_grp(), "zz", 1.0)
    out, matched = try_replace_signal_in_group(_grp(), "zz", 1.0)
    assert not matched
    assert out == _grp()


def test_replace_signal_new_name_blanks_other_layers():
    out = replace_signal_in_group(_grp(), "bb", 2.0, new_name="q")
    assert out.names["Names"][1] == "q"
    assert out.names["ShortNames"][1] == ""


def test_replace_signal_in_dataset():
    t = SignalGroup(names={"Names": ["Time"], "ShortNames": ["Time"]}, values=np.arange(3.0).reshape(-1, 1), units=["sec"])
    ds = Dataset(groups={"Time": t, "G": _grp()})
    out = replace_signal_in_dataset(ds, "b", [7, 8, 9])
    assert out["G"].values[:, 1].tolist() == [7.0, 8.0, 9.0]
    with pytest.raises(SignalNotFound):
        replace_signal_in_dataset(ds, "zz", 1.0)


def test_replace_units_and_description_on_arrays():
    arr = SignalGroupArray((_grp(), _grp()))
    out = replace_units(arr, "a", "km")
    assert all(g.units[0] == "km" for g in out)

    out = replace_description(_grp(), "bb", "Bee")
    assert out.descriptions == ("A", "Bee")
    with pytest.raises(SignalNotFound):
        replace_units(_grp(), "zz", "m")


def test_name_layer_maintenance():
    g = _grp()
    out = add_name_layer(g, "LongNames")
    assert out.layers == ("Names", "ShortNames", "LongNames")
    assert out.names["LongNames"] == ("", "")
    assert _consistent(out)

    out = remove_name_layer(out, ["ShortNames"])
    assert out.layers == ("Names", "LongNames")
    with pytest.raises(InvalidInput):
        remove_name_layer(_grp(), ["Names", "ShortNames"])
    with pytest.raises(LayerNotFound):
        remove_name_layer(_grp(), "LongNames")

    out = rename_layer(_grp(), "ShortNames", "AliasNames")
    assert out.layers == ("Names", "AliasNames")
    with pytest.raises(InvalidInput):
        rename_layer(_grp(), "ShortNames", "Names")
