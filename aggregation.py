"""Monthly statistics and calendar projection over income/expense snapshots.

Everything here is a pure function of the records handed in and a reference
date: nothing is fetched, cached or written. Records may be ORM rows or plain
mappings; a record that cannot be read (bad date, bad amount) is logged and
skipped so one broken row never takes down a whole dashboard.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Optional

from models import IncomeFrequency
from periods import (
    month_key,
    month_label,
    month_period,
    resolve_month,
    to_local_naive,
    trailing_months,
)

logger = logging.getLogger(__name__)

WINDOW_MONTHS = 6

# monthly-equivalent factor per recurrence frequency
MONTHLY_MULTIPLIERS: dict[IncomeFrequency, Decimal] = {
    IncomeFrequency.daily: Decimal(30),
    IncomeFrequency.weekly: Decimal(4),
    IncomeFrequency.biweekly: Decimal(2),
    IncomeFrequency.monthly: Decimal(1),
    IncomeFrequency.quarterly: Decimal(1) / Decimal(3),
    IncomeFrequency.annually: Decimal(1) / Decimal(12),
}


class MalformedRecord(ValueError):
    pass


def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _enum_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(getattr(value, "value", value))


def record_datetime(record: Any) -> datetime:
    value = _field(record, "date")
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise MalformedRecord(f"unparseable date {value!r}") from exc
    else:
        raise MalformedRecord(f"missing or invalid date {value!r}")
    return to_local_naive(dt)


def record_amount(record: Any) -> Decimal:
    value = _field(record, "amount")
    if value is None or isinstance(value, bool):
        raise MalformedRecord(f"missing or invalid amount {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise MalformedRecord(f"invalid amount {value!r}") from exc
    if not amount.is_finite():
        raise MalformedRecord(f"invalid amount {value!r}")
    if amount < 0:
        raise MalformedRecord(f"negative amount {amount}")
    return amount


def frequency_multiplier(frequency: Any) -> Decimal:
    raw = _enum_value(frequency)
    try:
        return MONTHLY_MULTIPLIERS[IncomeFrequency(raw)]
    except ValueError:
        logger.debug(f"unsupported frequency {raw!r}, using multiplier 1")
        return Decimal(1)


def expense_amount(record: Any) -> Decimal:
    return record_amount(record)


def income_monthly_equivalent(record: Any) -> Decimal:
    """How much an income record contributes per month, given how often it recurs."""
    return record_amount(record) * frequency_multiplier(_field(record, "frequency"))


@dataclass
class MonthlyBucket:
    month_key: str
    label: str
    total: Decimal = field(default_factory=lambda: Decimal(0))


@dataclass(frozen=True)
class MonthlySeries:
    total_for_current_month: Decimal
    series: list[MonthlyBucket]


class BucketedAggregator:
    """Sums per-record values into zero-filled monthly buckets.

    `value_of` turns one record into the amount it adds to its month; the
    window is the `months` calendar months ending with the reference month.
    """

    def __init__(
        self,
        value_of: Callable[[Any], Decimal],
        *,
        months: int = WINDOW_MONTHS,
        kind: str = "record",
    ) -> None:
        if months < 1:
            raise ValueError("Window must cover at least one month")
        self.value_of = value_of
        self.months = months
        self.kind = kind

    def aggregate(self, records: Iterable[Any], now: date) -> MonthlySeries:
        newest_first = [
            MonthlyBucket(month_key=month_key(m), label=month_label(m))
            for m in trailing_months(now, self.months)
        ]
        by_key = {bucket.month_key: bucket for bucket in newest_first}

        for record in records:
            try:
                key = month_key(record_datetime(record))
                bucket = by_key.get(key)
                if bucket is None:
                    continue
                bucket.total += self.value_of(record)
            except MalformedRecord as exc:
                logger.warning(
                    f"skipping malformed {self.kind} id={_field(record, 'id')}: {exc}"
                )

        series = list(reversed(newest_first))
        return MonthlySeries(
            total_for_current_month=newest_first[0].total,
            series=series,
        )


class IncomeAggregator(BucketedAggregator):
    def __init__(self, *, months: int = WINDOW_MONTHS) -> None:
        super().__init__(income_monthly_equivalent, months=months, kind="income")


class ExpenseAggregator(BucketedAggregator):
    def __init__(self, *, months: int = WINDOW_MONTHS) -> None:
        super().__init__(expense_amount, months=months, kind="expense")


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    title: str
    amount: Decimal
    currency: Optional[str]
    date: datetime
    frequency: Optional[str]


class CalendarProjector:
    """Maps the income records of one month to calendar events, oldest first."""

    def project(
        self,
        records: Iterable[Any],
        year: Optional[int] = None,
        month: Optional[int] = None,
        *,
        today: Optional[date] = None,
    ) -> list[CalendarEvent]:
        target_year, target_month = resolve_month(year, month, today=today)
        period = month_period(target_year, target_month)

        events: list[CalendarEvent] = []
        for record in records:
            try:
                when = record_datetime(record)
                if not period.start <= when.date() <= period.end:
                    continue
                events.append(
                    CalendarEvent(
                        id=str(_field(record, "id")),
                        title=_field(record, "source") or "",
                        amount=record_amount(record),
                        currency=_enum_value(_field(record, "currency")),
                        date=when,
                        frequency=_enum_value(_field(record, "frequency")),
                    )
                )
            except MalformedRecord as exc:
                logger.warning(
                    f"skipping malformed income id={_field(record, 'id')}: {exc}"
                )
        events.sort(key=lambda event: event.date)
        return events
