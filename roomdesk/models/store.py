# roomdesk/models/store.py
import re

from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship

from roomdesk.extension.extensions import db
from roomdesk.services.time_utils import utcnow


def derive_store_code(name):
    letters = re.sub(r"[^A-Za-z]", "", name or "").upper()
    return letters[:3] if len(letters) >= 3 else "STR"


class Store(db.Model):
    __tablename__ = 'stores'
    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)
    code = Column(String(8), nullable=False)   # appears inside every BID
    slug = Column(String(120), unique=True, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    rooms = relationship('Room', back_populates='store', cascade='all, delete-orphan')
    categories = relationship('RoomCategory', back_populates='store', cascade='all, delete-orphan')

    def __init__(self, **kwargs):
        kwargs.setdefault('code', derive_store_code(kwargs.get('name')))
        super().__init__(**kwargs)
