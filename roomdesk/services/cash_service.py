from decimal import Decimal

from flask import current_app

from roomdesk.extension.extensions import db
from roomdesk.errors import ValidationError
from roomdesk.models.cashEntry import Expense, Income
from roomdesk.services.bid_service import next_bid, BidPrefix
from roomdesk.services.db_utils import rollback_on_error
from roomdesk.services.event_service import emit_activity, ActionType
from roomdesk.services.time_utils import parse_date
from roomdesk.services.validators import clean_money, clean_text

MAX_CASH_AMOUNT = Decimal("100000000")

_KINDS = {
    'expense': (Expense, BidPrefix.EXPENSE),
    'income': (Income, BidPrefix.INCOME),
}


@rollback_on_error
def create_entry(ctx, kind, payload):
    ctx.require('manage_cash')
    if kind not in _KINDS:
        raise ValidationError(f"Unknown cash entry kind '{kind}'")
    model, prefix = _KINDS[kind]

    on_date = parse_date(payload.get("date"))
    amount = clean_money(payload.get("amount"), field="Amount", max_value=MAX_CASH_AMOUNT)
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")

    entry = model(
        bid=next_bid(ctx.store_id, on_date, prefix),
        store_id=ctx.store_id,
        date=on_date,
        amount=amount,
        description=clean_text(payload.get("description"), 500, "Description"),
        created_by=ctx.actor_id,
    )
    db.session.add(entry)
    db.session.commit()
    current_app.logger.info(f"{kind} {entry.bid} recorded by {ctx.actor_id}")
    emit_activity(ctx.store_id, ActionType.CREATED, kind, entry.id, f"{kind.title()} {entry.bid} of {amount}", actor=ctx)
    return entry


def list_entries(store_id, kind, on_date):
    if kind not in _KINDS:
        raise ValidationError(f"Unknown cash entry kind '{kind}'")
    model, _ = _KINDS[kind]
    return model.query.filter_by(store_id=store_id, date=parse_date(on_date)).order_by(model.id.asc()).all()
