# roomdesk/models/bidSequence.py
from sqlalchemy import Column, Integer, String, Date, ForeignKey, UniqueConstraint

from roomdesk.extension.extensions import db


class BidSequence(db.Model):
    __tablename__ = 'bid_sequences'
    id = Column(Integer, primary_key=True)
    store_id = Column(Integer, ForeignKey('stores.id', ondelete='CASCADE'), nullable=False)
    prefix = Column(String(4), nullable=False)
    date = Column(Date, nullable=False)
    last_value = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('store_id', 'prefix', 'date', name='uq_bid_sequence_store_prefix_date'),
    )
