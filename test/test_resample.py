# test/test_resample.py
import numpy as np
import pytest

from vtool.core import DatasetArray, InvalidInput
from vtool.ops import build_dataset_from_data, downsample_dataset, limit_time_range, resample_dataset


def _ramp(n=11, ts=1.0):
    t = ts * np.arange(n)
    return build_dataset_from_data(np.column_stack([2 * t, np.ones(n)]), ["y", "c"], units=["m", ""], ts=ts)


def test_resample_on_own_time_is_identity():
    d = _ramp()
    out = resample_dataset(d, d.time.values[:, 0])
    assert np.allclose(out["Signals"].values, d["Signals"].values)
    assert np.array_equal(out.time.values, d.time.values)


def test_no_arguments_returns_input():
    d = _ramp()
    assert resample_dataset(d) is d


def test_trange_and_ts_rezero_and_regrid():
    out = resample_dataset(_ramp(), ts=0.5, trange=(2, 6))

    t = out.time.values[:, 0]
    assert t.size == 9
    assert np.allclose(t, 0.5 * np.arange(9))
    assert np.allclose(out["Signals"].values[:, 0], 4 + np.arange(9))
    assert out["Signals"].units == ("m", "")


def test_trange_alone_keeps_samples():
    out = resample_dataset(_ramp(), trange=(3, 5))
    assert out.time.values[:, 0].tolist() == [0.0, 1.0, 2.0]
    assert out["Signals"].values[:, 0].tolist() == [6.0, 8.0, 10.0]


@pytest.mark.parametrize("extrapolation, expected", [(None, np.nan), ("extrap", -2.0), (0, 0.0)])
def test_extrapolation_modes(extrapolation, expected):
    out = resample_dataset(_ramp(), [-1.0, 0.0, 1.0], extrapolation=extrapolation)
    y = out["Signals"].values[:, 0]
    assert np.allclose(y[1:], [0.0, 2.0])
    if np.isnan(expected):
        assert np.isnan(y[0])
    else:
        assert y[0] == pytest.approx(expected)


def test_nearest_method_and_alias():
    out = resample_dataset(_ramp(), [0.4, 0.6], method="nearest")
    assert out["Signals"].values[:, 0].tolist() == [0.0, 2.0]
    out = resample_dataset(_ramp(), [0.5], method="spline")
    assert out["Signals"].values[0, 0] == pytest.approx(1.0)


def test_invalid_resample_usage():
    d = _ramp()
    with pytest.raises(InvalidInput):
        resample_dataset(d, [0.0, 1.0], ts=0.1)
    with pytest.raises(InvalidInput):
        resample_dataset(d, ts=0.1, method="bogus")
    with pytest.raises(InvalidInput):
        resample_dataset(d, ts=-1.0)
    with pytest.raises(InvalidInput):
        resample_dataset(d, trange=(5, 2))


def test_non_monotonic_time_raises():
    d = build_dataset_from_data(np.arange(3.0), ["y"], ts=np.array([0.0, 2.0, 1.0]))
    with pytest.raises(InvalidInput):
        resample_dataset(d, ts=0.5)


def test_resample_dataset_array_runs_per_element():
    arr = DatasetArray((_ramp(11), _ramp(21, ts=0.5)))
    out = resample_dataset(arr, ts=2.0)
    assert isinstance(out, DatasetArray)
    assert [d.n for d in out] == [6, 6]


def test_downsample_keeps_first_sample():
    out = downsample_dataset(_ramp(10), 3)
    assert out.time.values[:, 0].tolist() == [0.0, 3.0, 6.0, 9.0]
    d = _ramp()
    assert downsample_dataset(d, 1) is d
    with pytest.raises(InvalidInput):
        downsample_dataset(_ramp(), 0)


def test_limit_time_range_does_not_rezero():
    out = limit_time_range(_ramp(), (2, 5))
    assert out.time.values[:, 0].tolist() == [2.0, 3.0, 4.0, 5.0]
    assert out["Signals"].n == 4
    with pytest.raises(InvalidInput):
        limit_time_range(_ramp(), (1, 2, 3))
