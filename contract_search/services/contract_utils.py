import math
from datetime import date, datetime, timezone
from typing import Iterable, Optional


EXPIRING_SOON_DAYS = 90
NOT_PROVIDED = "Not Provided"


def format_date(value: date) -> str:
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def format_date_range(start_date: Optional[date], end_date: Optional[date]) -> str:
    if not start_date and not end_date:
        return NOT_PROVIDED
    if not start_date:
        return f"{NOT_PROVIDED} - {format_date(end_date)}"
    if not end_date:
        return f"{format_date(start_date)} - {NOT_PROVIDED}"
    return f"{format_date(start_date)} - {format_date(end_date)}"


def days_until_expiration(end_date: Optional[date], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days left until end_date (midnight UTC), rounded up; negative once expired."""
    if not end_date:
        return None
    now = now or datetime.now(timezone.utc)
    end = datetime(end_date.year, end_date.month, end_date.day, tzinfo=timezone.utc)
    return math.ceil((end - now).total_seconds() / 86400)


def is_expiring_soon(end_date: Optional[date], threshold_days: int = EXPIRING_SOON_DAYS,
                     now: Optional[datetime] = None) -> bool:
    days = days_until_expiration(end_date, now)
    return days is not None and days <= threshold_days


def split_categories(category: Optional[str]) -> list[str]:
    """"Corporate Services, Facilities" -> ["Corporate Services", "Facilities"]."""
    if not category:
        return []
    return [c.strip() for c in category.split(",") if c.strip()]


def extract_base_categories(categories: Iterable[Optional[str]]) -> list[str]:
    base: set[str] = set()
    for category in categories:
        base.update(split_categories(category))
    return sorted(base)
