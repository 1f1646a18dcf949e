import pytest

from batwatch.core.status import DEFAULT_TIMEOUT_MS, Alert, Status, Urgency


@pytest.mark.parametrize("status", [Status.UNKNOWN, Status.CRITICAL])
def test_sticky_statuses(status):
    alert = Alert.from_status(status)
    assert alert.sticky
    assert alert.timeout_ms == 0
    assert alert.urgency is Urgency.CRITICAL


@pytest.mark.parametrize("status", [Status.LOW, Status.HIGH, Status.FULL])
def test_timed_statuses(status):
    alert = Alert.from_status(status)
    assert not alert.sticky
    assert alert.timeout_ms == DEFAULT_TIMEOUT_MS


def test_high_is_normal_urgency():
    assert Alert.from_status(Status.HIGH).urgency is Urgency.NORMAL
    assert Alert.from_status(Status.LOW).urgency is Urgency.CRITICAL


def test_summaries():
    assert Alert.from_status(Status.UNKNOWN).summary == "Battery is Unknown"
    assert Alert.from_status(Status.CRITICAL).summary == "Battery is Critical"
    assert Alert.from_status(Status.LOW).summary == "Battery is almost Empty"
    assert Alert.from_status(Status.HIGH).summary == "Battery is almost Full"
    assert Alert.from_status(Status.FULL).summary == "Battery is Full"


def test_unknown_keeps_detail_others_drop_it():
    assert Alert.from_status(Status.UNKNOWN, detail="no such file").detail == "no such file"
    assert Alert.from_status(Status.LOW, detail="ignored").detail is None


def test_custom_timeout_only_applies_to_timed():
    assert Alert.from_status(Status.FULL, timeout_ms=1234).timeout_ms == 1234
    assert Alert.from_status(Status.CRITICAL, timeout_ms=1234).timeout_ms == 0


def test_to_dict():
    payload = Alert.to_dict(Alert.from_status(Status.UNKNOWN, detail="boom"))
    assert payload == {
        "status": "unknown",
        "summary": "Battery is Unknown",
        "urgency": "critical",
        "timeout_ms": 0,
        "sticky": True,
        "detail": "boom",
    }
