from datetime import datetime, timedelta, timezone

import pytest

from workgraph.core.errors import InvalidAttributeError
from workgraph.core.timeline import Duration, Timeline, coerce_instant, parse_instant


def day(n: int) -> datetime:
    return datetime(2025, 1, n, tzinfo=timezone.utc)


def test_start_after_end_rejected():
    with pytest.raises(InvalidAttributeError):
        Timeline(start=day(10), end=day(5))


def test_open_end_allowed():
    tl = Timeline(start=day(1))
    assert tl.end is None
    assert tl.duration is None


def test_negative_hours_rejected():
    with pytest.raises(InvalidAttributeError):
        Timeline(start=day(1), end=day(2), estimated_hours=-1)


def test_duration_between_rounds_up_to_coarsest_unit():
    assert Duration.between(day(1), day(1)) == Duration(0, "hours")
    assert Duration.between(day(1), day(1) + timedelta(minutes=90)) == Duration(2, "hours")
    assert Duration.between(day(1), day(2)) == Duration(24, "hours")
    assert Duration.between(day(1), day(3) + timedelta(hours=1)) == Duration(3, "days")
    assert Duration.between(day(1), day(10)) == Duration(2, "weeks")


def test_from_start_duration():
    tl = Timeline.from_start_duration(day(1), Duration(2, "days"), estimated_hours=16)
    assert tl.end == day(3)
    assert tl.estimated_hours == 16


def test_duration_parse():
    assert Duration.parse("6h") == Duration(6, "hours")
    assert Duration.parse("3D") == Duration(3, "days")
    assert Duration.parse("2w").to_timedelta() == timedelta(weeks=2)
    with pytest.raises(InvalidAttributeError):
        Duration.parse("soon")


def test_parse_instant_defaults_to_utc():
    assert parse_instant("2025-01-05") == day(5)
    assert coerce_instant(day(5).date()) == day(5)
    with pytest.raises(InvalidAttributeError):
        parse_instant("yesterday")


def test_timeline_dict_round_trip():
    tl = Timeline(start=day(1), end=day(4), estimated_hours=12)
    assert Timeline.from_dict(tl.to_dict()) == tl


def test_naive_instants_taken_as_utc():
    tl = Timeline(start=datetime(2025, 1, 5), end=day(8))
    assert tl.start == day(5)
    assert tl.start.tzinfo is not None

    tl = Timeline(start=day(1), end=datetime(2025, 1, 3))
    assert tl.end == day(3)

    with pytest.raises(InvalidAttributeError):
        Timeline(start=datetime(2025, 1, 10), end=day(5))


def test_non_datetime_start_rejected():
    with pytest.raises(InvalidAttributeError):
        Timeline(start="2025-01-01")  # type: ignore[arg-type]
