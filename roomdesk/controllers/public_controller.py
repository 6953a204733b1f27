from flask import Blueprint, request, jsonify

from roomdesk.errors import NotFoundError
from roomdesk.models.store import Store
from roomdesk.services import booking_request_service as requests_svc
from roomdesk.services.availability_service import category_availability, category_variants
from roomdesk.services.payload_formatters import format_public_request
from roomdesk.services.time_utils import parse_date

bp_public = Blueprint('public', __name__, url_prefix='/public')


def _active_store(store_id):
    store = Store.query.filter_by(id=store_id, is_active=True).first()
    if store is None:
        raise NotFoundError(f"Store {store_id} not found")
    return store


@bp_public.get('/stores/<int:store_id>/availability')
def get_category_availability(store_id):
    """?date=2024-01-10&start=09:00&end=11:00 -> per-category free room counts"""
    _active_store(store_id)
    on_date = parse_date(request.args.get("date"))
    return jsonify(category_availability(store_id, on_date, request.args.get("start"), request.args.get("end"))), 200


@bp_public.get('/stores/<int:store_id>/categories/<int:category_id>/variants')
def get_category_variants(store_id, category_id):
    _active_store(store_id)
    return jsonify(category_variants(store_id, category_id)), 200


@bp_public.post('/stores/<int:store_id>/booking-requests')
def post_booking_request(store_id):
    req = requests_svc.create_request(store_id, request.get_json(silent=True) or {})
    payload = format_public_request(req)
    payload["confirmationUrl"] = requests_svc.confirmation_url(req.confirmation_token)
    payload["token"] = req.confirmation_token
    return jsonify(payload), 201


@bp_public.route('/booking-requests/confirm', methods=['GET', 'POST'])
def confirmation_link():
    """
    ?token=...&action=confirm|cancel
    Without action the current state is shown and nothing changes.
    """
    token = request.args.get("token") or (request.get_json(silent=True) or {}).get("token")
    action = request.args.get("action") or (request.get_json(silent=True) or {}).get("action")
    req, changed = requests_svc.handle_link(token, action)
    payload = format_public_request(req)
    payload["changed"] = changed
    return jsonify(payload), 200


@bp_public.post('/booking-requests/payment-timer')
def start_timer():
    token = (request.get_json(silent=True) or {}).get("token") or request.args.get("token")
    if not token:
        raise NotFoundError("This booking link is not valid")
    req = requests_svc.start_payment_timer(None, token=token)
    return jsonify(format_public_request(req)), 200


@bp_public.post('/booking-requests/payment-proof')
def post_payment_proof():
    """Body: {"token": "...", "proofUrl": "https://..."}; the file itself is stored elsewhere."""
    data = request.get_json(silent=True) or {}
    if not data.get("token"):
        raise NotFoundError("This booking link is not valid")
    req = requests_svc.submit_payment_proof(data.get("token"), data.get("proofUrl"))
    return jsonify(format_public_request(req)), 200
