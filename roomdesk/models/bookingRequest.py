# roomdesk/models/bookingRequest.py
from sqlalchemy import (Column, Integer, String, DateTime, Date, Time, ForeignKey, Numeric, Float, Text,
                        CheckConstraint, Index)
from sqlalchemy.orm import relationship

from roomdesk.extension.extensions import db
from roomdesk.models.statuses import RequestStatus, PaymentMethod, enum_column_type
from roomdesk.services.time_utils import utcnow


class BookingRequest(db.Model):
    __tablename__ = 'booking_requests'
    id = Column(Integer, primary_key=True)
    bid = Column(String(40), unique=True, nullable=False)
    store_id = Column(Integer, ForeignKey('stores.id', ondelete='CASCADE'), nullable=False, index=True)

    # room stays empty until staff assigns one; category is what the customer picked
    room_id = Column(Integer, ForeignKey('rooms.id', ondelete='SET NULL'), nullable=True)
    room_name = Column(String(80), nullable=True)
    category_id = Column(Integer, ForeignKey('room_categories.id', ondelete='SET NULL'), nullable=True)
    category_name = Column(String(80), nullable=True)
    variant_name = Column(String(80), nullable=True)

    booking_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration = Column(Float, nullable=False)
    room_price = Column(Numeric(12, 2), nullable=False, default=0)
    total_price = Column(Numeric(12, 2), nullable=False, default=0)

    customer_name = Column(String(100), nullable=False)
    customer_phone = Column(String(20), nullable=False, index=True)
    payment_method = Column(enum_column_type(PaymentMethod, 'payment_method'), nullable=False)
    payment_proof_url = Column(String(500), nullable=True)

    status = Column(enum_column_type(RequestStatus, 'booking_request_status'), nullable=False,
                    default=RequestStatus.PENDING, index=True)
    confirmation_token = Column(String(64), unique=True, nullable=False)
    expired_at = Column(DateTime, nullable=True)
    payment_step_started_at = Column(DateTime, nullable=True)
    admin_notes = Column(Text, nullable=True)

    processed_by = Column(String(64), nullable=True)
    processed_at = Column(DateTime, nullable=True)
    # set once converted; a consumed request no longer occupies its slot, the booking does
    booking_id = Column(Integer, ForeignKey('bookings.id', ondelete='SET NULL'), nullable=True, unique=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    booking = relationship('Booking')
    category = relationship('RoomCategory')
    room = relationship('Room')

    __table_args__ = (
        CheckConstraint('length(customer_name) >= 2 AND length(customer_name) <= 100',
                        name='ck_booking_request_name_length'),
        CheckConstraint('duration > 0', name='ck_booking_request_duration_positive'),
        CheckConstraint('total_price >= 0 AND total_price <= 10000000', name='ck_booking_request_price_range'),
        Index('ix_booking_request_store_date', 'store_id', 'booking_date'),
        Index('ix_booking_request_phone_created', 'customer_phone', 'created_at'),
    )

    @property
    def is_consumed(self):
        return self.booking_id is not None

    def append_note(self, note):
        self.admin_notes = f"{self.admin_notes}\n{note}" if self.admin_notes else note
