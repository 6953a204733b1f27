# roomdesk/models/cashEntry.py
from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey, Numeric, CheckConstraint

from roomdesk.extension.extensions import db
from roomdesk.services.time_utils import utcnow


class Expense(db.Model):
    __tablename__ = 'expenses'
    id = Column(Integer, primary_key=True)
    bid = Column(String(40), unique=True, nullable=False)
    store_id = Column(Integer, ForeignKey('stores.id', ondelete='CASCADE'), nullable=False, index=True)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String(500), nullable=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (CheckConstraint('amount > 0', name='ck_expense_amount_positive'),)


class Income(db.Model):
    __tablename__ = 'incomes'
    id = Column(Integer, primary_key=True)
    bid = Column(String(40), unique=True, nullable=False)
    store_id = Column(Integer, ForeignKey('stores.id', ondelete='CASCADE'), nullable=False, index=True)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String(500), nullable=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (CheckConstraint('amount > 0', name='ck_income_amount_positive'),)
