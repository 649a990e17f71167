# test/test_lookup.py
import numpy as np
import pytest

from vtool.core import (
    Dataset,
    DatasetArray,
    SignalGroup,
    SignalGroupArray,
    InvalidInput,
    LayerNotFound,
    SignalNotFound,
    collect_signals,
    find_name,
    get_data_length,
    get_default_names,
    get_layers,
    get_names_matrix,
    get_num_signals,
    get_signal,
    get_signal_groups,
)


def _layered():
    return SignalGroup(
        names={"Names": ["speed", "", "speed"], "ShortNames": ["v", "p", ""]},
        values=np.arange(12, dtype=float).reshape(4, 3),
        units=["m/s", "bar", "km/h"],
        descriptions=["Speed", "Pressure", "Speed again"],
    )


def _dataset():
    t = SignalGroup(names={"Names": ["Time"], "ShortNames": ["Time"]}, values=np.arange(4.0).reshape(-1, 1), units=["sec"])
    other = SignalGroup(
        names={"Names": ["temp"], "ShortNames": ["T"]},
        values=np.ones((4, 1)),
        units=["degC"],
        descriptions=["Temperature"],
    )
    return Dataset(groups={"Time": t, "A": _layered(), "B": other})


def test_find_name_scans_every_layer():
    g = _layered()
    assert find_name("speed", g) == [0, 2]
    assert find_name("p", g) == [1]
    assert find_name("nope", g) == []


def test_find_name_in_dataset():
    ds = _dataset()
    assert find_name("T", ds) == {"B": [0]}
    assert find_name("speed", ds) == {"A": [0, 2]}
    assert find_name("nope", ds) == {}
    with pytest.raises(InvalidInput):
        find_name("a", "not a group")


def test_get_signal_returns_primary_instance():
    x, units, description, index = get_signal("speed", _layered())
    assert index == 0
    assert units == "m/s"
    assert description == "Speed"
    assert np.array_equal(x, [0.0, 3.0, 6.0, 9.0])

    with pytest.raises(SignalNotFound):
        get_signal("nope", _layered())


def test_get_signal_in_dataset_uses_collected_index():
    x, units, _, index = get_signal("T", _dataset())
    assert index == 3
    assert units == "degC"
    with pytest.raises(InvalidInput):
        get_signal("Time", _dataset())


def test_default_names_fill_blanks_from_other_layers():
    g = _layered()
    assert get_default_names(g) == ["speed", "p", "speed"]
    assert get_default_names(g, "ShortNames") == ["v", "p", "speed"]
    with pytest.raises(LayerNotFound):
        get_default_names(g, "LongNames")


def test_collect_signals_and_counts():
    ds = _dataset()
    collected = collect_signals(ds)
    assert collected.m == 4
    assert collected.units == ("m/s", "bar", "km/h", "degC")
    assert get_num_signals(ds) == 4
    assert get_names_matrix(ds)[3] == ["temp", "T"]
    assert list(get_signal_groups(ds)) == ["Time", "A", "B"]


def test_layers_and_lengths_for_arrays():
    ds = _dataset()
    assert get_layers(ds) == ["Names", "ShortNames"]
    assert get_layers(DatasetArray((ds, ds))) == ["Names", "ShortNames"]
    assert get_data_length(ds) == 4
    assert get_data_length(SignalGroupArray((_layered(), _layered()))) == [4, 4]
    with pytest.raises(InvalidInput):
        get_layers(42)
