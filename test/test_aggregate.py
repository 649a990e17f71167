# test/test_aggregate.py
import numpy as np
import pytest

from vtool.core import SignalGroup, SignalGroupArray, Incompatible, InvalidInput, SignalNotFound
from vtool.io import CollectedSignals
from vtool.stats import SpectralConfig, StatsConfig, StatsOptions, compute_stats_array, sample_time

# 6 cases of 100 samples at 10 Hz; the speed of case k oscillates around k + 0.5
N, TS, K = 100, 0.1, 6
CONFIG = StatsConfig(spectral=SpectralConfig(df=0.5))


def _case(k, offset=0.0, units=("m/s", "Nm")):
    t = TS * np.arange(N)
    speed = k + 0.5 + 0.2 * np.sin(2 * np.pi * t) + offset
    torque = 10 * k + np.cos(2 * np.pi * 2 * t) + offset
    return SignalGroup(
        names={"Names": ["speed", "torque"]},
        values=np.column_stack([speed, torque]),
        units=list(units),
        descriptions=["Vehicle speed", "Engine torque"],
    )


def _time(ts=TS):
    t = np.asarray(ts * np.arange(N)) if np.isscalar(ts) else np.asarray(ts)
    return SignalGroup(names={"Names": ["Time"]}, values=t.reshape(-1, 1), units=["sec"])


def _collected(time=True, sim_units=("m/s", "Nm")):
    meas = SignalGroupArray(tuple(_case(k) for k in range(K)))
    sim = SignalGroupArray(tuple(_case(k, offset=0.1, units=sim_units) for k in range(K)))
    times = SignalGroupArray(tuple(_time() for _ in range(K))) if time else None
    return CollectedSignals(arrays={"meas": meas, "sim": sim}, time=times, fnames=[f"c{k}" for k in range(K)])


def test_sample_time_flags():
    assert sample_time(_collected(), 0.002) == (pytest.approx(TS), 1)
    assert sample_time(_collected(time=False), 0.002) == (None, 0)

    jitter = TS * np.arange(N)
    jitter[10] += 0.05
    c = CollectedSignals(arrays={}, time=_time(jitter), fnames=[])
    assert sample_time(c, 0.002) == (None, -1)

    backwards = TS * np.arange(N)
    backwards[[3, 4]] = backwards[[4, 3]]
    c = CollectedSignals(arrays={}, time=_time(backwards), fnames=[])
    assert sample_time(c, 0.002) == (None, -2)


def test_unbinned_run_reference_first():
    stats, info = compute_stats_array(_collected(), "meas", config=CONFIG)

    assert [s.name for s in stats] == ["meas", "sim"]
    assert info.selections == ("speed", "torque")
    assert info.iclass1.tolist() == [1] * K
    assert [b.title for b in info.bin_results1] == ["all cases"]
    assert info.ts == pytest.approx(TS)

    meas, sim = stats
    assert meas.st_stats.mean.shape == (1, 2)
    assert meas.case_stats.mean.shape == (K, 2)
    assert meas.global_stats.mean.shape == (1, 2)
    assert np.allclose(meas.st_err.max, 0.0)
    assert np.allclose(sim.st_err.mean, 0.1)
    assert np.allclose(meas.case_stats.mean[:, 0], np.arange(K) + 0.5)
    assert meas.psd_stats is None
    assert "psd_stats" not in meas.present_fields()


def test_binned_run_with_trimmed_edges(caplog):
    options = StatsOptions(name_c="speed", edges1=[-2, 0, 2, 4, 6, 8])
    with caplog.at_level("INFO"):
        stats, info = compute_stats_array(_collected(), "meas", options, CONFIG)

    assert info.iclass1.tolist() == [1, 1, 2, 2, 3, 3]
    assert info.edges1.tolist() == [0.0, 2.0, 4.0, 6.0]
    assert [b.index for b in info.bin_results1] == [1, 2, 3]
    assert np.allclose(info.xvec, [1.0, 3.0, 5.0])
    assert info.xlabel == "Vehicle speed (m/s)"
    assert stats[0].lt_mean.mean.shape == (3, 2)
    assert "Lowest 1 bin(s) removed" in caplog.text


def test_global_mean_equals_weighted_bin_means():
    options = StatsOptions(name_c="speed", edges1=[0, 2, 4, 6])
    stats, info = compute_stats_array(_collected(), "meas", options, CONFIG)

    meas = stats[0]
    counts = np.array([b.cases for b in info.bin_results1]) * N
    weighted = (meas.st_stats.mean * counts[:, np.newaxis]).sum(axis=0) / counts.sum()
    assert np.allclose(meas.global_stats.mean[0], weighted)


def test_default_edges_span_signal_range():
    stats, info = compute_stats_array(_collected(), "meas", StatsOptions(name_c="speed"), CONFIG)
    assert info.edges1.size <= 11
    assert info.iclass1.min() >= 1


def test_spectral_run():
    options = StatsOptions(name_c="speed", edges1=[0, 3, 6], edges2=[0, 6], spectral=True)
    stats, info = compute_stats_array(_collected(), "meas", options, CONFIG)

    meas = stats[0]
    assert meas.f.size == 11
    assert meas.psd_stats.mean.shape == (11, 2, 1)
    assert meas.err_psd_stats.mean.shape == (11, 2, 1)
    assert meas.rel_psd_stats.mean.shape == (11, 2, 1)
    assert meas.psd is None
    assert info.iclass2.tolist() == [1] * K
    assert info.psd_units == ("(m/s)^2/Hz", "(Nm)^2/Hz")
    assert info.df == 0.5
    assert "PsdStats" in meas.to_dict()


def test_include_data_keeps_case_arrays():
    options = StatsOptions(spectral=True, include_data=True)
    stats, _ = compute_stats_array(_collected(), "meas", options, CONFIG)

    sim = stats[1]
    assert len(sim.signals) == K
    assert np.allclose(sim.diffs[0].values, 0.1)
    assert len(sim.psd) == K
    assert sim.psd[0].units == ("dB", "dB")


def test_filtering_rejects_cases():
    options = StatsOptions(name_f="speed", ranges_f=[0, 3])
    stats, info = compute_stats_array(_collected(), "meas", options, CONFIG)

    assert info.fnames == ("c0", "c1", "c2")
    assert info.fnames_f == ("c3", "c4", "c5")
    assert stats[0].case_stats.mean.shape == (3, 2)

    with pytest.raises(InvalidInput):
        compute_stats_array(_collected(), "meas", StatsOptions(name_f="speed", ranges_f=[100, 200]), CONFIG)


def test_spectral_needs_uniform_time():
    with pytest.raises(InvalidInput, match="not available"):
        compute_stats_array(_collected(time=False), "meas", StatsOptions(spectral=True), CONFIG)


def test_input_errors():
    with pytest.raises(Incompatible):
        compute_stats_array(_collected(sim_units=("km/h", "Nm")), "meas", config=CONFIG)
    with pytest.raises(InvalidInput):
        compute_stats_array(_collected(), "model", config=CONFIG)
    with pytest.raises(SignalNotFound):
        compute_stats_array(_collected(), "meas", StatsOptions(selections=["rpm"]), CONFIG)
    with pytest.raises(InvalidInput):
        StatsOptions(ranges_f=[0, 1])
    with pytest.raises(InvalidInput):
        StatsOptions(name_c="speed", edges2=[0, 1])


def test_mapping_and_selection_subset():
    c = _collected()
    mapping = {"meas": c["meas"], "sim": c["sim"], "TimeVectors": c.time, "fnames": list(c.fnames), "note": "x"}
    options = StatsOptions(array_names=["sim"], selections=["torque"])
    stats, info = compute_stats_array(mapping, "meas", options, CONFIG)

    assert [s.name for s in stats] == ["meas", "sim"]
    assert info.selections == ("torque",)
    assert stats[1].st_stats.mean.shape == (1, 1)
    assert info.ref.names["Names"] == ("torque",)
    assert np.isnan(info.ref.values).all()
