"""
Human readable per-store, per-day identifiers: BO-MLG-20240110-007.

The counter lives in bid_sequences and is bumped by a single
INSERT ... ON CONFLICT DO UPDATE ... RETURNING, so two writers can never read
the same value. The bump joins the caller's transaction: the counter row stays
locked until the caller commits, and a rollback gives the number back, which
keeps committed numbers gapless.
"""
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from roomdesk.errors import NotFoundError, ValidationError
from roomdesk.extension.extensions import db
from roomdesk.models.bidSequence import BidSequence
from roomdesk.models.store import Store


class BidPrefix:
    BOOKING = 'BO'
    BOOKING_REQUEST = 'BR'
    EXPENSE = 'OU'
    INCOME = 'IN'

    ALL = (BOOKING, BOOKING_REQUEST, EXPENSE, INCOME)


def _upsert_for_dialect():
    dialect = db.engine.dialect.name
    if dialect == 'postgresql':
        return pg_insert
    if dialect == 'sqlite':
        return sqlite_insert
    raise RuntimeError(f"BID sequences need INSERT ... ON CONFLICT support, got {dialect}")


def next_sequence(store_id, on_date, prefix):
    table = BidSequence.__table__
    insert = _upsert_for_dialect()
    stmt = insert(table).values(store_id=store_id, prefix=prefix, date=on_date, last_value=1)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.store_id, table.c.prefix, table.c.date],
        set_={"last_value": table.c.last_value + 1},
    ).returning(table.c.last_value)
    return db.session.execute(stmt).scalar_one()


def format_bid(prefix, store_code, on_date, seq):
    return f"{prefix}-{store_code}-{on_date:%Y%m%d}-{seq:03d}"


def next_bid(store_id, on_date, prefix=BidPrefix.BOOKING):
    """Claim the next BID for (store, date, prefix). Does not commit."""
    if prefix not in BidPrefix.ALL:
        raise ValidationError(f"Unknown BID prefix '{prefix}'")
    # write before any read so the transaction takes its write lock first
    seq = next_sequence(store_id, on_date, prefix)
    store = db.session.get(Store, store_id)
    if store is None:
        raise NotFoundError(f"Store {store_id} not found")
    return format_bid(prefix, store.code, on_date, seq)
