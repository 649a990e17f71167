# test/test_binning.py
import numpy as np
import pytest

from vtool.core import SignalGroup, SignalGroupArray, InvalidInput
from vtool.stats import (
    BinResult,
    compute_class_vector,
    compute_lt_stats_by_bin,
    compute_st_stats_by_bin,
    histogram_bins,
    trim_empty_end_bins,
)


def _cases(*columns, units="m"):
    return SignalGroupArray(tuple(
        SignalGroup(names={"Names": ["v"]}, values=np.asarray(c, dtype=float).reshape(-1, 1), units=[units])
        for c in columns
    ))


def test_histogram_bins_edges():
    edges = [0, 5, 10]
    assert histogram_bins([0, 4.99, 5, 10, 10.01, -1, np.nan], edges).tolist() == [1, 1, 2, 2, 0, 0, 0]


def test_class_vector_interior_edge_goes_up():
    arr = _cases(*[[k, k] for k in range(1, 11)])
    iclass, bins = compute_class_vector(arr, "v", "mean", [0, 5, 10])

    assert iclass.tolist() == [1, 1, 1, 1, 2, 2, 2, 2, 2, 2]
    assert [b.cases for b in bins] == [4, 6]
    assert [b.center for b in bins] == [2.5, 7.5]
    assert bins[0].title == "0 - 5 m"


def test_class_vector_partitions_cases(caplog):
    rng = np.random.default_rng(0)
    arr = _cases(*[rng.normal(size=5) for _ in range(40)])
    edges = [-1.0, -0.5, 0.0, 0.5, 1.0]

    with caplog.at_level("INFO"):
        iclass, bins = compute_class_vector(arr, "v", "mean", edges, report=True)

    assert sum(b.cases for b in bins) + int((iclass == 0).sum()) == len(arr)
    assert "rejected" in caplog.text


def test_class_vector_all_rejected_warns(caplog):
    arr = _cases([20.0], [30.0])
    with caplog.at_level("WARNING"):
        iclass, _ = compute_class_vector(arr, "v", "max", [0, 1], report=True)
    assert iclass.tolist() == [0, 0]
    assert "outside binning range" in caplog.text

    with pytest.raises(InvalidInput):
        compute_class_vector(arr, "v", "max", [1, 0])


def test_trim_empty_end_bins_renumbers():
    bins = [BinResult(k + 1, k + 0.5, 0, f"bin {k}") for k in range(5)]
    iclass, edges, kept = trim_empty_end_bins([0, 3, 3, 4], [0, 1, 2, 3, 4, 5], bins)

    assert iclass.tolist() == [0, 1, 1, 2]
    assert edges.tolist() == [2.0, 3.0, 4.0]
    assert [b.index for b in kept] == [1, 2]
    assert [b.title for b in kept] == ["bin 2", "bin 3"]


def test_trim_keeps_interior_gaps_and_handles_all_rejected():
    bins = [BinResult(k + 1, None, 0, "") for k in range(3)]
    iclass, edges, kept = trim_empty_end_bins([1, 3], [0, 1, 2, 3], bins)
    assert iclass.tolist() == [1, 3]
    assert len(kept) == 3

    iclass, edges, kept = trim_empty_end_bins([0, 0], [0, 1, 2, 3], bins)
    assert edges.size == 0
    assert kept == []


def test_lt_stats_reduce_cases_first():
    arr = _cases([1, 3], [2, 4], [10, 20])
    lt_min, lt_max, lt_mean = compute_lt_stats_by_bin(arr, [1, 1, 2])

    assert lt_mean.mean.shape == (2, 1)
    assert lt_mean.mean[:, 0].tolist() == [2.5, 15.0]
    assert lt_min.min[:, 0].tolist() == [1.0, 10.0]
    assert lt_max.max[:, 0].tolist() == [4.0, 20.0]


def test_st_stats_pool_samples():
    arr = _cases([1, 3], [2, 4], [10, 20])
    st = compute_st_stats_by_bin(arr, [1, 1, 2])
    assert st.mean[:, 0].tolist() == [2.5, 15.0]
    assert st.p50[0, 0] == pytest.approx(2.5)

    # per-case statistics with iclass = 1..K
    per_case = compute_st_stats_by_bin(arr, [1, 2, 3])
    assert per_case.mean[:, 0].tolist() == [2.0, 3.0, 15.0]


def test_global_mean_is_weighted_bin_mean():
    arr = _cases([1, 3], [2, 4], [10, 20])
    by_bin = compute_st_stats_by_bin(arr, [1, 1, 2])
    total = compute_st_stats_by_bin(arr, [1, 1, 1])

    counts = np.array([4, 2])
    assert total.mean[0, 0] == pytest.approx(np.sum(by_bin.mean[:, 0] * counts) / counts.sum())


def test_unbinned_cases_are_ignored():
    arr = _cases([1, 3], [100, 100])
    st = compute_st_stats_by_bin(arr, [1, 0])
    assert st.max[:, 0].tolist() == [3.0]

    with pytest.raises(InvalidInput):
        compute_st_stats_by_bin(arr, [1])
