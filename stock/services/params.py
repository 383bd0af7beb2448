"""Parsing helpers for query-string and form values."""
from __future__ import annotations

import datetime as dt
from typing import Optional

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from rest_framework.exceptions import ValidationError


def parse_when(value, field: str = 'date', *, required: bool = False) -> Optional[dt.datetime]:
    """Parse ``YYYY-MM-DD`` or an ISO-8601 timestamp into an aware datetime."""
    if value in (None, ''):
        if required:
            raise ValidationError({field: 'This field is required.'})
        return None
    if isinstance(value, dt.datetime):
        parsed = value
    else:
        text = str(value).strip().replace('Z', '+00:00')
        try:
            parsed = parse_datetime(text)
            if parsed is None:
                day = parse_date(text)
                parsed = dt.datetime.combine(day, dt.time.min) if day else None
        except ValueError:
            parsed = None
    if parsed is None:
        raise ValidationError({field: f'Invalid date: {value}'})
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def parse_int(value, field: str, *, required: bool = False, minimum: Optional[int] = None) -> Optional[int]:
    if value in (None, ''):
        if required:
            raise ValidationError({field: 'This field is required.'})
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError({field: 'A valid integer is required.'})
    if minimum is not None and number < minimum:
        raise ValidationError({field: f'Must be at least {minimum}.'})
    return number


def parse_flag(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or '').lower() in {'1', 'true', 'yes'}


def day_start(when: dt.datetime) -> dt.datetime:
    return timezone.localtime(when).replace(hour=0, minute=0, second=0, microsecond=0)


def month_start(when: dt.datetime) -> dt.datetime:
    return day_start(when).replace(day=1)


def add_months(when: dt.datetime, months: int) -> dt.datetime:
    """Shift a first-of-month datetime by ``months`` (may be negative)."""
    index = when.year * 12 + (when.month - 1) + months
    return when.replace(year=index // 12, month=index % 12 + 1, day=1)
