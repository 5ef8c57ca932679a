from datetime import datetime, time

import pytest

from walkroute.models.domain import TimeOfDay
from walkroute.services.time_of_day import parse_time_of_day


@pytest.mark.parametrize(
    "value, expected",
    [
        ("09:30", 570),
        ("9:30", 570),
        ("09:30:30", 570.5),
        ("9:30 AM", 570),
        ("12:15 am", 15),
        ("1:05 PM", 785),
        ("2024-05-01T14:45:00", 885),
        ("2024-05-01T14:45:00Z", 885),
    ],
)
def test_parse_time_of_day_strings(value: str, expected: float) -> None:
    parsed = parse_time_of_day(value)

    assert parsed is not None
    assert parsed.minutes == pytest.approx(expected)


@pytest.mark.parametrize("value", [None, "", "   ", "25:00", "13:00 PM", "lunch", 930])
def test_parse_time_of_day_rejects_unreadable_values(value) -> None:
    assert parse_time_of_day(value) is None


def test_parse_time_of_day_discards_the_date() -> None:
    assert parse_time_of_day(datetime(2031, 1, 2, 7, 15)) == TimeOfDay.of(7, 15)
    assert parse_time_of_day(time(18, 0)) == TimeOfDay.of(18)
    assert parse_time_of_day(TimeOfDay(42)) == TimeOfDay(42)


def test_time_of_day_arithmetic_and_format() -> None:
    start = TimeOfDay.of(9, 30)

    assert start.plus(45).format() == "10:15"
    assert start.minutes_until(TimeOfDay.of(10)) == 30
    assert TimeOfDay(615.9).format() == "10:15"
    assert TimeOfDay.of(23, 50).plus(20).format() == "00:10"
    assert str(TimeOfDay.of(8)) == "08:00"
    assert TimeOfDay.of(8) < TimeOfDay.of(8, 1) <= TimeOfDay.of(8, 1)
    assert max(TimeOfDay.of(7), TimeOfDay.of(9), TimeOfDay.of(8)) == TimeOfDay.of(9)
