# roomdesk/models/roomDailyStatus.py
from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from roomdesk.extension.extensions import db
from roomdesk.models.statuses import DailyStatus, enum_column_type
from roomdesk.services.time_utils import utcnow


class RoomDailyStatus(db.Model):
    """Current readiness of a room on a date. Overwritten in place, no history."""
    __tablename__ = 'room_daily_status'
    id = Column(Integer, primary_key=True)
    room_id = Column(Integer, ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    status = Column(enum_column_type(DailyStatus, 'room_daily_status'), nullable=False)
    updated_by = Column(String(64), nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    room = relationship('Room')

    __table_args__ = (
        UniqueConstraint('room_id', 'date', name='uq_room_daily_status_room_date'),
    )
