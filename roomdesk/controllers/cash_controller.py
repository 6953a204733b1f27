from flask import Blueprint, request, jsonify

from roomdesk.middleware.actor_guard import actor_required, current_actor
from roomdesk.services.cash_service import create_entry, list_entries
from roomdesk.services.time_utils import store_today

bp_cash = Blueprint('cash', __name__, url_prefix='/api/stores')


def _entry_payload(e):
    return {
        "id": e.id,
        "bid": e.bid,
        "date": e.date.isoformat(),
        "amount": float(e.amount),
        "description": e.description,
        "createdBy": e.created_by,
    }


@bp_cash.get('/<int:store_id>/<any(expenses, incomes):kind>')
@actor_required('manage_cash')
def get_entries(store_id, kind):
    items = list_entries(store_id, kind[:-1], request.args.get("date") or store_today())
    return jsonify([_entry_payload(e) for e in items]), 200


@bp_cash.post('/<int:store_id>/<any(expenses, incomes):kind>')
@actor_required('manage_cash')
def post_entry(store_id, kind):
    entry = create_entry(current_actor(), kind[:-1], request.get_json(silent=True) or {})
    return jsonify(_entry_payload(entry)), 201
