import re
from decimal import Decimal, InvalidOperation

from roomdesk.errors import ValidationError

PHONE_RE = re.compile(r'^[0-9+\-\s()]{8,20}$')
MAX_PRICE = Decimal("10000000")


def _text(value, field):
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be text")
    return value.strip()


def clean_name(value, min_len=1, max_len=100, field="Customer name"):
    name = _text(value, field)
    if len(name) < min_len:
        raise ValidationError(f"{field} must be at least {min_len} character{'s' if min_len > 1 else ''}")
    if len(name) > max_len:
        raise ValidationError(f"{field} must be at most {max_len} characters")
    return name


def clean_phone(value, required=True):
    phone = _text(value, "Phone number")
    if not phone:
        if required:
            raise ValidationError("Phone number is required")
        return None
    if not PHONE_RE.match(phone):
        raise ValidationError("Phone number must be 8-20 digits and may contain + - ( ) or spaces")
    return phone


def clean_text(value, max_len, field):
    text = _text(value, field)
    if len(text) > max_len:
        raise ValidationError(f"{field} must be at most {max_len} characters")
    return text or None


def clean_money(value, field="Price", required=True, max_value=MAX_PRICE):
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required")
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount < 0 or amount > max_value:
        raise ValidationError(f"{field} must be between 0 and {max_value:,.0f}")
    return amount


def clean_int(value, field):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
