from flask import Blueprint, request, jsonify

from roomdesk.middleware.actor_guard import actor_required, current_actor
from roomdesk.services.payload_formatters import format_daily_status
from roomdesk.services.room_status_service import list_statuses, set_room_status
from roomdesk.services.time_utils import parse_date, store_today

bp_room_status = Blueprint('room_status', __name__, url_prefix='/api/stores')


@bp_room_status.get('/<int:store_id>/room-status')
@actor_required('view_bookings')
def get_room_status(store_id):
    on_date = parse_date(request.args.get("date")) if request.args.get("date") else store_today()
    return jsonify([format_daily_status(row) for row in list_statuses(store_id, on_date)]), 200


@bp_room_status.put('/<int:store_id>/rooms/<int:room_id>/status')
@actor_required('manage_rooms')
def put_room_status(store_id, room_id):
    """Body: {"status": "Ready" | "Dirty" | "Maintenance", "date": "2024-01-10"}"""
    data = request.get_json(silent=True) or {}
    row = set_room_status(current_actor(), room_id, data.get("date") or store_today(), data.get("status"))
    return jsonify(format_daily_status(row)), 200
