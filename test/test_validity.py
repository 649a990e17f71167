# test/test_validity.py
import numpy as np
import pytest

from vtool.core import (
    Dataset,
    SignalGroup,
    InvalidDataset,
    InvalidSignalGroup,
    is_dataset,
    is_dataset_array,
    is_signal_group,
    is_signal_group_array,
    is_valid_name,
    require_dataset,
    require_signal_group,
)


def _grp(names=("a", "b"), n=3, **kw):
    return SignalGroup(names={"Names": list(names)}, values=np.zeros((n, len(names))), **kw)


def _time(n=3, name="Time"):
    return SignalGroup(names={"Names": [name]}, values=np.arange(n, dtype=float).reshape(-1, 1), units=["sec"])


def test_valid_signal_group():
    assert is_signal_group(_grp()) == (True, True, "")


def test_signal_group_struct_mapping_is_accepted():
    d = {"Names": ["a"], "Values": np.zeros((2, 1)), "Units": [""], "Descriptions": [""]}
    assert is_signal_group(d) == (True, True, "")

    del d["Units"]
    is_type, valid, reason = is_signal_group(d)
    assert not is_type and not valid
    assert "Units" in reason


@pytest.mark.parametrize(
    "group, fragment",
    [
        (SignalGroup(names={"Names": ["a", "b"]}, values=np.zeros((3, 1)), units=[""]), "wrong length"),
        (SignalGroup(names={"Names": ["1a"]}, values=np.zeros((3, 1))), "invalid names"),
        (SignalGroup(names={"Names": ["a"]}, values=np.zeros((3, 1)), units=["m", "s"]), "Units"),
        (SignalGroup(names={"Names": ["a"]}, values=np.array([["x"], ["y"]])), "not of valid type"),
        (SignalGroup(names={"Names": ["a"]}, values=np.zeros(3)), "2-dimensional"),
    ],
)
def test_invalid_signal_groups_report_reason(group, fragment):
    is_type, valid, reason = is_signal_group(group)
    assert is_type
    assert not valid
    assert fragment in reason


def test_blank_names_are_allowed():
    g = SignalGroup(names={"Names": ["a", ""], "ShortNames": ["", "b"]}, values=np.zeros((2, 2)))
    assert is_signal_group(g)[1]


def test_complex_and_absolute_time_values():
    assert is_signal_group(SignalGroup(names={"Names": ["a"]}, values=np.ones((2, 1), dtype=complex)))[1]

    t = np.array(["2024-01-01T00:00:00", "2024-01-01T00:00:01"], dtype="datetime64[ns]").reshape(-1, 1)
    absolute = SignalGroup(names={"Names": ["Time"]}, values=t, units=["datetime"])
    assert is_signal_group(absolute, time=True)[1]
    # datetime values need the "datetime" units
    assert not is_signal_group(absolute.replace(units=["sec"]))[1]


def test_time_group_rules():
    assert is_signal_group(_time(), time=True)[1]
    assert is_signal_group(_time(name="Index"), time=True)[1]
    assert not is_signal_group(_time(name="t"), time=True)[1]
    assert not is_signal_group(_grp(("Time", "Index")), time=True)[1]


def test_valid_dataset():
    ds = Dataset(groups={"Time": _time(), "A": _grp()})
    assert is_dataset(ds) == (True, True, "")


@pytest.mark.parametrize(
    "groups, fragment",
    [
        ({"A": _grp()}, "Missing 'Time'"),
        ({"Time": _time()}, "at least one"),
        ({"Time": _time(), "A": _grp(n=4)}, "data lengths"),
        (
            {"Time": _time(), "A": SignalGroup(names={"ShortNames": ["a"]}, values=np.zeros((3, 1)))},
            "name layers",
        ),
        (
            {"Time": _time(), "A": _grp(), "B": SignalGroup(names={"Names": ["c"]}, values=np.zeros((3, 1), dtype=int))},
            "Data types",
        ),
    ],
)
def test_invalid_datasets(groups, fragment):
    _, valid, reason = is_dataset(Dataset(groups=groups))
    assert not valid
    assert fragment in reason


def test_signal_group_array_checks():
    assert is_signal_group_array([_grp(n=3), _grp(n=7)])[1]
    _, valid, reason = is_signal_group_array([_grp(("a", "b")), _grp(("a", "x"))])
    assert not valid
    assert "element #1" in reason

    _, valid, reason = is_signal_group_array([_grp(units=["m", ""]), _grp(units=["s", ""])])
    assert not valid
    assert "a" in reason
    assert is_signal_group_array("nope")[0] is False


def test_dataset_array_checks():
    d1 = Dataset(groups={"Time": _time(3), "A": _grp(n=3)})
    d2 = Dataset(groups={"Time": _time(5), "A": _grp(n=5)})
    assert is_dataset_array([d1, d2])[1]

    d3 = Dataset(groups={"Time": _time(3), "B": _grp(n=3)})
    assert not is_dataset_array([d1, d3])[1]

    minutes = d2.replace_groups({"Time": d2.time.replace(units=["min"])})
    _, valid, reason = is_dataset_array([d1, minutes])
    assert not valid
    assert "Time units" in reason


def test_require_helpers_raise():
    with pytest.raises(InvalidSignalGroup):
        require_signal_group(SignalGroup(names={"Names": ["a", "b"]}, values=np.zeros((3, 1))))
    with pytest.raises(InvalidDataset):
        require_dataset(Dataset(groups={"A": _grp()}))


@pytest.mark.parametrize("name, ok", [("a", True), ("a_1", True), ("A9", True), ("_a", False), ("1a", False), ("a-b", False), ("", False)])
def test_is_valid_name(name, ok):
    assert is_valid_name(name) is ok


def _struct(**overrides):
    d = {"Names": ["a", "b"], "Values": [[1.0, 2.0], [3.0, 4.0]], "Units": ["", ""], "Descriptions": ["", ""]}
    d.update(overrides)
    return d


MALFORMED = [
    _struct(Values=[[1.0, 2.0], [3.0]]),
    _struct(Values=[["x", "y"], ["z", "w"]]),
    _struct(Values=None),
    _struct(Names=[1, 2]),
    _struct(Names=np.array("a")),
    _struct(Units=[1, 2]),
    _struct(Descriptions="ab"),
]


@pytest.mark.parametrize("d", MALFORMED)
def test_predicates_report_malformed_mappings(d):
    time = {"Names": ["Time"], "Values": [[0.0], [1.0]], "Units": ["sec"], "Descriptions": [""]}

    assert is_signal_group(d)[1] is False
    assert is_signal_group_array([d, _struct()])[1] is False
    assert is_dataset({"Time": time, "A": d})[1] is False
    assert is_dataset({"Time": {**d, "Names": ["Time", "x"]}})[1] is False
    assert is_dataset_array([{"Time": time, "A": d}])[1] is False


def test_ragged_values_have_a_reason():
    assert is_signal_group(_struct(Values=[[1.0, 2.0], [3.0]])) == (
        True, False, "The 'Values' field is not of valid type."
    )
    is_type, valid, reason = is_dataset({"Time": _struct(Names=["Time", "x"], Values=[[1.0, 2.0], [3.0]])})
    assert (is_type, valid) == (False, False)
    assert "values" in reason


def test_ragged_values_rejected_on_construction():
    with pytest.raises(InvalidSignalGroup):
        SignalGroup(names={"Names": ["a", "b"]}, values=[[1.0, 2.0], [3.0]])
