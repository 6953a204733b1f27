from flask import Blueprint, request, jsonify

from roomdesk.middleware.actor_guard import actor_required, current_actor
from roomdesk.services.availability_service import room_availability, category_availability
from roomdesk.services.booking_service import (create_booking, change_status, delete_booking, list_bookings,
                                               get_booking)
from roomdesk.services.booking_state import allowed_targets
from roomdesk.services.payload_formatters import format_booking
from roomdesk.services.time_utils import parse_date, store_today

bp_bookings = Blueprint('bookings', __name__, url_prefix='/api/stores')


@bp_bookings.get('/<int:store_id>/bookings')
@actor_required('view_bookings')
def get_bookings(store_id):
    on_date = parse_date(request.args.get("date")) if request.args.get("date") else store_today()
    items = list_bookings(store_id, on_date, request.args.get("status"))
    return jsonify([format_booking(b) for b in items]), 200


@bp_bookings.get('/<int:store_id>/bookings/<int:booking_id>')
@actor_required('view_bookings')
def get_one(store_id, booking_id):
    b = get_booking(store_id, booking_id)
    payload = format_booking(b)
    payload["allowedTransitions"] = [t.value for t in allowed_targets(b.status)]
    return jsonify(payload), 200


@bp_bookings.post('/<int:store_id>/bookings')
@actor_required()
def post_booking(store_id):
    b = create_booking(current_actor(), request.get_json(silent=True) or {})
    return jsonify(format_booking(b)), 201


@bp_bookings.post('/<int:store_id>/bookings/<int:booking_id>/status')
@actor_required()
def post_status(store_id, booking_id):
    """
    Body: {"status": "CI", "version": 3}
    version is optional; when sent, a stale version is rejected with 409.
    """
    data = request.get_json(silent=True) or {}
    b = change_status(current_actor(), booking_id, data.get("status"), data.get("version"))
    return jsonify(format_booking(b)), 200


@bp_bookings.delete('/<int:store_id>/bookings/<int:booking_id>')
@actor_required()
def remove_booking(store_id, booking_id):
    bid = delete_booking(current_actor(), booking_id)
    return jsonify({"ok": True, "bid": bid}), 200


@bp_bookings.get('/<int:store_id>/availability')
@actor_required('view_bookings')
def get_availability(store_id):
    """Non-authoritative preview: ?date=2024-01-10&start=09:00&end=11:00"""
    on_date = parse_date(request.args.get("date"))
    start, end = request.args.get("start"), request.args.get("end")
    return jsonify({
        "rooms": room_availability(store_id, on_date, start, end),
        "categories": category_availability(store_id, on_date, start, end),
    }), 200
