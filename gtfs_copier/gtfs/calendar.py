"""Calendar expansion and day-of-week categories."""

import logging
from datetime import date, timedelta

from gtfs_copier.gtfs.models import Calendar, CalendarDate

logger = logging.getLogger(__name__)

WEEKDAY = 1
SATURDAY = 6
SUNDAY = 7


def dow_category(day: date) -> int:
    """Classify a date as weekday (1), Saturday (6) or Sunday (7)."""
    dow = day.weekday()
    if dow == 5:
        return SATURDAY
    if dow == 6:
        return SUNDAY
    return WEEKDAY


def active_days(calendar: Calendar, max_days: int = 30) -> list[date]:
    """
    Expand a calendar into the dates it is active.

    Only the first max_days days of the service period are considered.
    """
    start, _ = calendar.service_period()
    if start is None:
        return []
    days = []
    for offset in range(max_days):
        day = start + timedelta(days=offset)
        if calendar.is_active(day):
            days.append(day)
    return days


def calendar_from_dates(service_id: str, calendar_dates: list[CalendarDate]) -> Calendar:
    """Build a generated calendar for a service defined only by calendar_dates.txt."""
    cal = Calendar(service_id=service_id, generated=True, calendar_dates=list(calendar_dates))
    cal.start_date, cal.end_date = cal.service_period()
    logger.debug(
        f"Generated calendar for service {service_id} "
        f"({len(calendar_dates)} dates, {cal.start_date} - {cal.end_date})"
    )
    return cal
