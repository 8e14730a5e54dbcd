"""Tests for calendar expansion."""

from datetime import date

from gtfs_copier.gtfs.calendar import SATURDAY, SUNDAY, WEEKDAY, active_days, calendar_from_dates, dow_category
from gtfs_copier.gtfs.models import Calendar, CalendarDate


def test_dow_category() -> None:
    """Test weekday, Saturday and Sunday categories."""
    assert dow_category(date(2024, 1, 1)) == WEEKDAY  # Monday
    assert dow_category(date(2024, 1, 5)) == WEEKDAY  # Friday
    assert dow_category(date(2024, 1, 6)) == SATURDAY
    assert dow_category(date(2024, 1, 7)) == SUNDAY
    assert (SATURDAY, SUNDAY) == (6, 7)


def test_active_days_first_30() -> None:
    """Test only the first 30 days of the service period are expanded."""
    cal = Calendar(
        "WK",
        monday=True,
        tuesday=True,
        wednesday=True,
        thursday=True,
        friday=True,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
    )
    days = active_days(cal)

    assert days[0] == date(2024, 1, 1)
    assert days[-1] == date(2024, 1, 30)
    assert len(days) == 22
    assert all(d.weekday() < 5 for d in days)


def test_active_days_exceptions() -> None:
    """Test removed and added dates override the weekly pattern."""
    cal = Calendar(
        "WK",
        monday=True,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 31),
        calendar_dates=[
            CalendarDate("WK", date(2024, 1, 8), 2),
            CalendarDate("WK", date(2024, 1, 10), 1),
        ],
    )
    days = active_days(cal)

    assert date(2024, 1, 8) not in days
    assert date(2024, 1, 10) in days
    assert date(2024, 1, 15) in days


def test_calendar_from_dates() -> None:
    """Test a generated calendar spans its added dates."""
    cal = calendar_from_dates(
        "HOL",
        [CalendarDate("HOL", date(2024, 7, 4), 1), CalendarDate("HOL", date(2024, 12, 25), 1)],
    )

    assert cal.generated
    assert cal.start_date == date(2024, 7, 4)
    assert cal.end_date == date(2024, 12, 25)
    assert not any(cal.weekdays())
    assert active_days(cal) == [date(2024, 7, 4)]
