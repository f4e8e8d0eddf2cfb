from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from groket.errors import ValidationError

LAST_7_DAYS_SPAN = 7


class Period:
    TODAY = "today"
    YESTERDAY = "yesterday"
    LAST_7_DAYS = "last-7-days"
    CURRENT_MONTH = "current-month"
    CUSTOM = "custom"

    values = {TODAY, YESTERDAY, LAST_7_DAYS, CURRENT_MONTH, CUSTOM}
    aliases = {"7days": LAST_7_DAYS, "month": CURRENT_MONTH}

    @classmethod
    def validate(cls, value: str) -> str:
        normalized = (value or "").strip().lower()
        normalized = cls.aliases.get(normalized, normalized)
        if normalized not in cls.values:
            raise ValidationError("Invalid period.")
        return normalized


@dataclass(frozen=True)
class DateRange:
    """Closed date interval; a missing bound means no filter on that side."""

    start: Optional[date] = None
    end: Optional[date] = None

    @property
    def is_bounded(self) -> bool:
        return self.start is not None and self.end is not None

    def contains(self, value: date) -> bool:
        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return True


def resolve_period(
    period: str,
    today: date,
    start: date | str | None = None,
    end: date | str | None = None,
) -> DateRange:
    normalized = Period.validate(period)
    if normalized == Period.TODAY:
        return DateRange(today, today)
    if normalized == Period.YESTERDAY:
        yesterday = today - timedelta(days=1)
        return DateRange(yesterday, yesterday)
    if normalized == Period.LAST_7_DAYS:
        return DateRange(today - timedelta(days=LAST_7_DAYS_SPAN), today)
    if normalized == Period.CURRENT_MONTH:
        return DateRange(today.replace(day=1), today)

    custom_start = parse_date_value(start)
    custom_end = parse_date_value(end)
    if custom_start is None or custom_end is None:
        return DateRange()
    # inverted ranges pass through untouched and simply match nothing
    return DateRange(custom_start, custom_end)


def parse_date_value(value: date | str | None) -> date | None:
    if value is None:
        return None
    if isinstance(value, date):
        return value
    value = value.strip()
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValidationError("Date must be in YYYY-MM-DD format.") from exc
