"""Date manipulation utilities"""

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Tuple


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (storage convention)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(moment: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive input is assumed UTC"""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def business_date(moment: datetime, offset_minutes: int) -> date:
    """Calendar date of a UTC moment in the business timezone"""
    return (to_utc_naive(moment) + timedelta(minutes=offset_minutes)).date()


def business_day_bounds(day: date, offset_minutes: int) -> Tuple[datetime, datetime]:
    """UTC [start, end) of a business calendar day"""
    start = datetime(day.year, day.month, day.day) - timedelta(minutes=offset_minutes)
    return start, start + timedelta(days=1)


def add_months(from_date: date, months: int) -> date:
    """Add calendar months, clamping to the last day of shorter months"""
    month_index = from_date.month - 1 + months
    year = from_date.year + month_index // 12
    month = month_index % 12 + 1
    day = min(from_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)
