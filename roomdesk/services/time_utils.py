from datetime import datetime, date, time, timezone

import pytz
from dateutil import parser as date_parser
from flask import current_app

from roomdesk.errors import ValidationError


def utcnow():
    """Naive UTC timestamp; every stored DateTime column is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def store_today(now=None, tz_name=None):
    tz = pytz.timezone(tz_name or current_app.config.get("STORE_TIMEZONE", "UTC"))
    now = now or utcnow()
    return pytz.utc.localize(now).astimezone(tz).date()


def parse_date(value, field="date"):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError(f"{field} is required")
    try:
        return date_parser.isoparse(str(value)).date()
    except (ValueError, OverflowError):
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD), got '{value}'")


def parse_time(value, field="time"):
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not value:
        raise ValidationError(f"{field} is required")
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(str(value).strip(), fmt).time().replace(second=0)
        except ValueError:
            continue
    raise ValidationError(f"{field} must be HH:MM, got '{value}'")
