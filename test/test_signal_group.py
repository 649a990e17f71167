# test/test_signal_group.py
import numpy as np
import pytest

from vtool.core import SignalGroup, SignalGroupArray, DatasetArray, Dataset
from vtool.core import InvalidSignalGroup, InvalidSignalGroupArray, LayerNotFound, Incompatible


def _grp(names=("a", "b"), n=4, units=None, offset=0.0):
    m = len(names)
    values = offset + np.arange(n * m, dtype=float).reshape(n, m)
    return SignalGroup(names={"Names": list(names)}, values=values, units=units)


def test_signal_group_defaults_and_shape():
    g = _grp(("a", "b", "c"), n=5)

    assert g.n == 5
    assert g.m == 3
    assert len(g) == 3
    assert g.layers == ("Names",)
    assert g.units == ("", "", "")
    assert g.descriptions == ("", "", "")
    assert g.names_matrix() == (("a",), ("b",), ("c",))


def test_signal_group_rejects_bad_containers():
    with pytest.raises(InvalidSignalGroup):
        SignalGroup(names={}, values=np.zeros((2, 0)))
    with pytest.raises(InvalidSignalGroup):
        SignalGroup(names={"Short": ["a"]}, values=np.zeros((2, 1)))  # layer must end in "Names"
    with pytest.raises(InvalidSignalGroup):
        SignalGroup(names={"Names": "a"}, values=np.zeros((2, 1)))


def test_signal_group_layer_lookup():
    g = SignalGroup(
        names={"Names": ["a", "b"], "ShortNames": ["", "bb"]},
        values=np.zeros((3, 2)),
    )
    assert g.layer("ShortNames") == ("", "bb")
    with pytest.raises(LayerNotFound):
        g.layer("LongNames")


def test_signal_group_replace_and_equality_with_nan():
    g = _grp()
    values = g.values.copy()
    values[0, 0] = np.nan
    g1 = g.replace(values=values)
    g2 = g.replace(values=values.copy())

    assert g1 == g2
    assert g1 != g
    # the original is untouched
    assert not np.isnan(g.values).any()


def test_signal_group_struct_round_trip():
    g = SignalGroup(
        names={"Names": ["a", "b"], "ShortNames": ["x", ""]},
        values=np.ones((2, 2)),
        units=["m", "s"],
        descriptions=["alpha", "beta"],
    )
    d = g.to_dict()
    assert set(d) == {"Names", "ShortNames", "Values", "Units", "Descriptions"}
    assert SignalGroup.from_dict(d) == g

    d["Extra"] = 1
    with pytest.raises(InvalidSignalGroup):
        SignalGroup.from_dict(d)


def test_signal_group_array_homogeneity():
    arr = SignalGroupArray((_grp(n=3), _grp(n=5)))
    assert len(arr) == 2
    assert arr.data_lengths() == [3, 5]
    assert not arr.is_uniform_length()
    with pytest.raises(Incompatible):
        arr.values_cube()

    with pytest.raises(InvalidSignalGroupArray):
        SignalGroupArray((_grp(("a", "b")), _grp(("a", "c"))))
    with pytest.raises(InvalidSignalGroupArray):
        SignalGroupArray((_grp(units=["m", ""]), _grp(units=["s", ""])))


def test_signal_group_array_cube_and_take():
    arr = SignalGroupArray(tuple(_grp(n=4, offset=10.0 * k) for k in range(3)))
    cube = arr.values_cube()

    assert cube.shape == (4, 2, 3)
    assert np.array_equal(cube[:, :, 2], arr[2].values)

    picked = arr.take(np.array([True, False, True]))
    assert len(picked) == 2
    assert picked[1] == arr[2]
    assert arr.take([2, 0])[0] == arr[2]


def test_empty_signal_group_array_has_no_structure():
    arr = SignalGroupArray(())
    assert len(arr) == 0
    with pytest.raises(InvalidSignalGroupArray):
        _ = arr.layers


def test_dataset_array_group_view():
    t = SignalGroup(names={"Names": ["Time"]}, values=np.arange(4.0).reshape(-1, 1), units=["sec"])
    d = Dataset(groups={"Time": t, "Signals": _grp(n=4)})
    arr = DatasetArray((d, d))

    signals = arr.group("Signals")
    assert isinstance(signals, SignalGroupArray)
    assert len(signals) == 2
    assert arr.layers == ("Names",)
