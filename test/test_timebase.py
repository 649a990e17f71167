# test/test_timebase.py
import numpy as np
import pytest

from vtool.core import InvalidInput
from vtool.ops import (
    build_dataset_from_data,
    build_time_group,
    change_time_units,
    convert_to_absolute_time,
    convert_to_elapsed_time,
    get_sample_time,
)


def test_build_time_group_forms():
    g = build_time_group(0.1, n=4)
    assert np.allclose(g.values[:, 0], [0.0, 0.1, 0.2, 0.3])
    assert g.units == ("sec",)

    g = build_time_group((5.0, 2.0), n=3, layers=("Names", "ShortNames"))
    assert g.values[:, 0].tolist() == [5.0, 7.0, 9.0]
    assert g.names == {"Names": ("Time",), "ShortNames": ("Time",)}

    g = build_time_group(np.array([0.0, 1.0, 3.0]))
    assert g.values[:, 0].tolist() == [0.0, 1.0, 3.0]

    with pytest.raises(InvalidInput):
        build_time_group(0.1)


def test_get_sample_time_methods(caplog):
    d = build_dataset_from_data(np.zeros(5), ["a"], ts=np.array([0.0, 1.0, 2.0, 4.0, 5.0]))

    with caplog.at_level("DEBUG"):
        ts, ts_range = get_sample_time(d)
    assert ts == 1.0
    assert ts_range == (1.0, 2.0)
    assert "not constant" in caplog.text

    assert get_sample_time(d, "mean")[0] == pytest.approx(1.25)
    assert get_sample_time(d, "median")[0] == 1.0
    assert get_sample_time(d, "mode")[0] == 1.0
    with pytest.raises(InvalidInput):
        get_sample_time(d, "max")


def test_get_sample_time_short_record():
    d = build_dataset_from_data(np.zeros(1), ["a"])
    ts, ts_range = get_sample_time(d)
    assert np.isnan(ts)
    assert np.isnan(ts_range).all()


def test_absolute_and_elapsed_round_trip():
    d = build_dataset_from_data(np.zeros(3), ["a"], ts=0.5)
    absolute = convert_to_absolute_time(d, "2024-03-01T12:00:00")

    assert absolute.time.is_absolute_time
    assert absolute.time.units == ("datetime",)
    assert absolute.time.values[1, 0] == np.datetime64("2024-03-01T12:00:00.500", "ns")
    assert get_sample_time(absolute)[0] == pytest.approx(0.5)

    elapsed, start = convert_to_elapsed_time(absolute)
    assert start == np.datetime64("2024-03-01T12:00:00", "ns")
    assert elapsed.time.units == ("sec",)
    assert np.allclose(elapsed.time.values[:, 0], [0.0, 0.5, 1.0])


def test_convert_to_absolute_time_uses_start_attribute():
    d = build_dataset_from_data(np.zeros(2), ["a"], time_units="min", attrs={"start": "2024-01-01"})
    out = convert_to_absolute_time(d)
    assert out.time.values[1, 0] == np.datetime64("2024-01-01T00:01:00", "ns")

    with pytest.raises(InvalidInput):
        convert_to_absolute_time(out)
    with pytest.raises(InvalidInput):
        convert_to_absolute_time(build_dataset_from_data(np.zeros(2), ["a"]))


def test_continuous_elapsed_time():
    d = build_dataset_from_data(np.zeros(3), ["a"], ts=np.array([10.0, 10.5, 12.0]))
    out, start = convert_to_elapsed_time(d, "continuous")
    assert start == 10.0
    assert out.time.values[:, 0].tolist() == [0.0, 0.5, 1.0]


def test_change_time_units():
    d = build_dataset_from_data(np.zeros(3), ["a"], ts=60.0)
    out = change_time_units(d, 1 / 60, "min")
    assert out.time.units == ("min",)
    assert np.allclose(out.time.values[:, 0], [0.0, 1.0, 2.0])

    index = change_time_units(d)
    assert index.time.names["Names"] == ("Index",)
    assert index.time.values[:, 0].tolist() == [1.0, 2.0, 3.0]
    assert index.time.units == ("",)
