# /tests/test_functions_service.py
from __future__ import annotations
from datetime import datetime, timezone

import pytest

from manage_functions.domain.errors import MalformedRecurrence, MalformedSpec
from manage_functions.domain.functions_service import DEFAULT_MAX_HOSTS, ManageFunctions
from tests.fakes import FixedClock, InMemoryMetaStore

NOW = datetime(2024, 1, 1, 9, tzinfo=timezone.utc).timestamp()


def make(values: dict[str, str] | None = None, **kw) -> tuple[ManageFunctions, InMemoryMetaStore]:
    store = InMemoryMetaStore(values)
    return ManageFunctions(store, clock=FixedClock(NOW), **kw), store


def test_hosts_contains_null_policy() -> None:
    svc, store = make()
    assert svc.hosts_contains(None, "10.0.0.1") is False
    assert svc.hosts_contains("10.0.0.1", None) is False
    assert store.reads == 0


def test_hosts_contains() -> None:
    svc, _ = make()
    assert svc.hosts_contains("10.0.0.1-10.0.0.5", "10.0.0.3") is True
    assert svc.hosts_contains("10.0.0.1-10.0.0.5", "10.0.0.9") is False


def test_max_hosts_null_policy() -> None:
    svc, _ = make()
    assert svc.max_hosts(None) == 0
    assert svc.max_hosts("10.0.0.1-10.0.0.5", None) == 5


def test_max_hosts_uses_stored_cap_once_per_call() -> None:
    svc, store = make({"max_hosts": "3"})
    assert svc.max_hosts("10.0.0.0/24") == 3
    assert store.reads == 1


def test_max_hosts_default_cap() -> None:
    svc, _ = make()
    assert svc.max_hosts("10.0.0.0/16") == DEFAULT_MAX_HOSTS == 4095


@pytest.mark.parametrize("raw", ["abc", "-5", ""])
def test_invalid_stored_cap_falls_back_to_default(raw: str) -> None:
    svc, _ = make({"max_hosts": raw})
    assert svc.max_hosts("10.0.0.0/16") == DEFAULT_MAX_HOSTS


def test_zero_cap_from_store() -> None:
    svc, _ = make({"max_hosts": "0"})
    assert svc.max_hosts("10.0.0.0/24") == 0
    assert svc.hosts_contains("10.0.0.0/24", "10.0.0.1") is False


def test_max_hosts_with_exclude() -> None:
    svc, _ = make()
    assert svc.max_hosts("10.0.0.1-10.0.0.5", "10.0.0.2, 10.0.0.4") == 3


def test_malformed_spec_propagates() -> None:
    svc, _ = make()
    with pytest.raises(MalformedSpec):
        svc.max_hosts("10.0.0.9-10.0.0.1")
    with pytest.raises(MalformedSpec):
        svc.hosts_contains("not valid!", "10.0.0.1")


def test_severity_null_policy() -> None:
    assert ManageFunctions.severity_matches_ov(None, 5.0) is False
    assert ManageFunctions.severity_matches_ov(None, None) is False
    assert ManageFunctions.severity_matches_ov(1.0, None) is True
    assert ManageFunctions.severity_matches_ov(0.0, 0.0) is True


def test_next_time_null_policy() -> None:
    svc, _ = make()
    assert svc.next_time_ical(None, "UTC", 0) is None


def test_next_time_uses_clock_and_default_zone() -> None:
    svc, _ = make(default_timezone="Europe/Berlin")
    ical = "DTSTART:20240101T120000\nRRULE:FREQ=DAILY"
    # 12:00 Berlin is 11:00 UTC in winter
    expected = int(datetime(2024, 1, 1, 11, tzinfo=timezone.utc).timestamp())
    assert svc.next_time_ical(ical, None, 0) == expected
    assert svc.next_time_ical(ical, "UTC", 0) == expected + 3600


def test_next_time_malformed() -> None:
    svc, _ = make()
    with pytest.raises(MalformedRecurrence):
        svc.next_time_ical("garbage", None, 0)


def test_next_time_step_budget() -> None:
    svc, _ = make(max_steps=3)
    ical = "DTSTART:20240101T090000Z\nRRULE:FREQ=DAILY"
    assert svc.next_time_ical(ical, None, 1) == int(datetime(2024, 1, 2, 9, tzinfo=timezone.utc).timestamp())
    assert svc.next_time_ical(ical, None, 5) is None


def test_regexp_null_policy() -> None:
    assert ManageFunctions.regexp(None, "a") is False
    assert ManageFunctions.regexp("a", None) is False
    assert ManageFunctions.regexp("abc", "b") is True
