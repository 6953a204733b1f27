# roomdesk/models/statuses.py
import enum

from sqlalchemy import Enum

from roomdesk.errors import ValidationError


class LabeledEnum(str, enum.Enum):
    """Status codes stored as short strings, exposed to clients by name."""

    @property
    def label(self):
        return self.name.replace("_", " ").title().replace(" ", "")

    @classmethod
    def parse(cls, raw):
        if isinstance(raw, cls):
            return raw
        if raw is None:
            raise ValidationError(f"{cls.__name__} is required")
        key = str(raw).strip()
        for member in cls:
            if key == member.value or key.upper() == member.name or key.lower() == member.label.lower():
                return member
        allowed = ", ".join(m.value for m in cls)
        raise ValidationError(f"Unknown {cls.__name__} '{raw}'. Expected one of: {allowed}")


def enum_column_type(enum_cls, name):
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=16,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class RoomStatus(LabeledEnum):
    ACTIVE = "Aktif"
    BROKEN = "Rusak"
    MAINTENANCE = "Maintenance"


class BookingStatus(LabeledEnum):
    RESERVED = "BO"
    CHECKED_IN = "CI"
    CHECKED_OUT = "CO"
    CANCELLED = "BATAL"


class RequestStatus(LabeledEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    CHECK_IN = "check-in"
    COMPLETED = "completed"


class DailyStatus(LabeledEnum):
    READY = "Aktif"
    DIRTY = "Kotor"
    MAINTENANCE = "Maintenance"


class PaymentMethod(LabeledEnum):
    CASH = "Cash"
    QRIS = "QRIS"
    BANK_TRANSFER = "Transfer Bank"


# Occupancy rules shared by the overlap checker and the DB queries
BLOCKING_BOOKING_STATUSES = (BookingStatus.RESERVED, BookingStatus.CHECKED_IN)
BLOCKING_REQUEST_STATUSES = (RequestStatus.PENDING, RequestStatus.CONFIRMED, RequestStatus.CHECK_IN)
