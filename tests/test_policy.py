"""Tests for the shared mismatch policy."""

import pytest

from escape32_update.errors import ProtocolMismatchError
from escape32_update.policy import ForcePolicy, MismatchPolicy, make_policy


def test_equal_values_pass_silently():
    policy = MismatchPolicy()
    policy.check(0, 0, "Connection failed")
    assert policy.ignored == []


def test_strict_policy_raises_with_label_actual_expected():
    with pytest.raises(ProtocolMismatchError) as ei:
        MismatchPolicy().check(-1, 0, "Error writing data")
    err = ei.value
    assert (err.label, err.actual, err.expected) == ("Error writing data", -1, 0)
    assert str(err) == "Error writing data (result -1, expected 0)"


def test_force_policy_records_and_continues(caplog):
    policy = ForcePolicy()
    with caplog.at_level("WARNING", logger="escape32_update.policy"):
        policy.check(16, 32, "Error reading data")
        policy.check(1, 0, "Error writing data")

    assert [str(e) for e in policy.ignored] == [
        "Error reading data (result 16, expected 32)",
        "Error writing data (result 1, expected 0)",
    ]
    assert "Ignoring: Error reading data" in caplog.text


def test_make_policy_selects_by_force_flag():
    assert not make_policy(False).force
    assert make_policy(True).force
    assert isinstance(make_policy(True), ForcePolicy)
