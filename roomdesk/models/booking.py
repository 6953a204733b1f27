# roomdesk/models/booking.py
from sqlalchemy import (Column, Integer, String, DateTime, Date, Time, ForeignKey, Boolean, Numeric, Float,
                        CheckConstraint, UniqueConstraint, Index)
from sqlalchemy.orm import relationship

from roomdesk.extension.extensions import db
from roomdesk.models.statuses import BookingStatus, enum_column_type
from roomdesk.services.time_utils import utcnow


class Booking(db.Model):
    __tablename__ = 'bookings'
    id = Column(Integer, primary_key=True)
    bid = Column(String(40), unique=True, nullable=False)
    store_id = Column(Integer, ForeignKey('stores.id', ondelete='CASCADE'), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey('rooms.id', ondelete='RESTRICT'), nullable=False)

    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration = Column(Float, nullable=False)   # hours, wraparound adjusted
    status = Column(enum_column_type(BookingStatus, 'booking_status'), nullable=False,
                    default=BookingStatus.RESERVED, index=True)

    customer_name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True)
    reference_no = Column(String(200), nullable=True)
    note = Column(String(500), nullable=True)
    variant_id = Column(Integer, ForeignKey('room_variants.id', ondelete='SET NULL'), nullable=True)

    price = Column(Numeric(12, 2), nullable=False, default=0)
    payment_method = Column(String(32), nullable=True)
    dual_payment = Column(Boolean, nullable=False, default=False)
    price_2 = Column(Numeric(12, 2), nullable=True)
    payment_method_2 = Column(String(32), nullable=True)

    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    confirmed_by = Column(String(64), nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    checked_in_by = Column(String(64), nullable=True)
    checked_in_at = Column(DateTime, nullable=True)
    checked_out_by = Column(String(64), nullable=True)
    checked_out_at = Column(DateTime, nullable=True)
    cancelled_by = Column(String(64), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    version = Column(Integer, nullable=False)

    room = relationship('Room')
    products = relationship('BookingProduct', back_populates='booking', cascade='all, delete-orphan',
                            passive_deletes=True)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint('duration > 0 AND duration <= 24', name='ck_booking_duration_range'),
        CheckConstraint('price >= 0', name='ck_booking_price_non_negative'),
        Index('ix_booking_room_date', 'room_id', 'date'),
        Index('ix_booking_store_date', 'store_id', 'date'),
    )


class BookingProduct(db.Model):
    """Add-on products sold against a booking."""
    __tablename__ = 'booking_products'
    id = Column(Integer, primary_key=True)
    booking_id = Column(Integer, ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False, index=True)
    product_name = Column(String(120), nullable=False)
    product_price = Column(Numeric(12, 2), nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=1)
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)

    booking = relationship('Booking', back_populates='products')

    __table_args__ = (
        UniqueConstraint('booking_id', 'product_name', name='uq_booking_product'),
        CheckConstraint('quantity > 0', name='ck_booking_product_quantity_positive'),
    )
