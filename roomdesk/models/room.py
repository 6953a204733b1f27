# roomdesk/models/room.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Numeric, Text, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship

from roomdesk.extension.extensions import db
from roomdesk.models.statuses import RoomStatus, enum_column_type
from roomdesk.services.time_utils import utcnow


class RoomCategory(db.Model):
    __tablename__ = 'room_categories'
    id = Column(Integer, primary_key=True)
    store_id = Column(Integer, ForeignKey('stores.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(80), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    store = relationship('Store', back_populates='categories')
    rooms = relationship('Room', back_populates='category')

    __table_args__ = (
        UniqueConstraint('store_id', 'name', name='uq_room_category_store_name'),
    )


class Room(db.Model):
    __tablename__ = 'rooms'
    id = Column(Integer, primary_key=True)
    store_id = Column(Integer, ForeignKey('stores.id', ondelete='CASCADE'), nullable=False, index=True)
    # null category = legacy "Regular" room
    category_id = Column(Integer, ForeignKey('room_categories.id', ondelete='SET NULL'), nullable=True, index=True)
    name = Column(String(80), nullable=False)
    status = Column(enum_column_type(RoomStatus, 'room_status'), nullable=False, default=RoomStatus.ACTIVE)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    store = relationship('Store', back_populates='rooms')
    category = relationship('RoomCategory', back_populates='rooms')
    variants = relationship('RoomVariant', back_populates='room', cascade='all, delete-orphan',
                            order_by='RoomVariant.price')

    __table_args__ = (
        UniqueConstraint('store_id', 'name', name='uq_room_store_name'),
    )

    @property
    def is_bookable(self):
        return self.status == RoomStatus.ACTIVE


class RoomVariant(db.Model):
    __tablename__ = 'room_variants'
    id = Column(Integer, primary_key=True)
    room_id = Column(Integer, ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False, index=True)
    variant_name = Column(String(80), nullable=False)
    duration = Column(Numeric(6, 2), nullable=False)   # hours
    price = Column(Numeric(12, 2), nullable=False, default=0)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    room = relationship('Room', back_populates='variants')

    __table_args__ = (
        CheckConstraint('duration > 0', name='ck_room_variant_duration_positive'),
        CheckConstraint('price >= 0', name='ck_room_variant_price_non_negative'),
    )
