from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def start_at(self) -> datetime:
        return datetime.combine(self.start, time.min)

    def end_at(self) -> datetime:
        return datetime.combine(self.end, time.max)


def local_now() -> datetime:
    """Server "now" as a naive datetime in the configured timezone."""
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).replace(tzinfo=None)


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def month_label(d: date) -> str:
    return d.strftime("%b %Y")


def add_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


def month_end(year: int, month: int) -> date:
    if month == 12:
        return date(year + 1, 1, 1) - date.resolution
    return date(year, month + 1, 1) - date.resolution


def month_period(year: int, month: int) -> Period:
    return Period(f"{year:04d}-{month:02d}", date(year, month, 1), month_end(year, month))


def trailing_months(now: date, count: int = 6) -> list[date]:
    """First days of the `count` months ending with the month of `now`, newest first."""
    if count < 1:
        raise ValueError("Window must cover at least one month")
    current = date(now.year, now.month, 1)
    return [add_months(current, -offset) for offset in range(count)]


def trailing_window(now: date, count: int = 6) -> Period:
    months = trailing_months(now, count)
    newest = months[0]
    return Period(
        f"last_{count}_months",
        months[-1],
        month_end(newest.year, newest.month),
    )


def resolve_month(
    year: Optional[int],
    month: Optional[int],
    *,
    today: Optional[date] = None,
) -> tuple[int, int]:
    today = today or local_now().date()
    target_year = year if year is not None else today.year
    target_month = month if month is not None else today.month
    if not 1 <= target_month <= 12:
        raise ValueError("Month must be between 1 and 12")
    if not 1 <= target_year <= 9999:
        raise ValueError("Year is out of range")
    return target_year, target_month


def to_local_naive(dt: datetime) -> datetime:
    """Stored timestamps are naive wall-clock times in the configured timezone."""
    if dt.tzinfo is None:
        return dt
    settings = get_settings()
    return dt.astimezone(ZoneInfo(settings.timezone)).replace(tzinfo=None)
