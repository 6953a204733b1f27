from flask import Blueprint, request, jsonify

from roomdesk.middleware.actor_guard import actor_required, current_actor
from roomdesk.services import booking_request_service as requests_svc
from roomdesk.services.payload_formatters import format_booking_request, format_booking

bp_booking_requests = Blueprint('booking_requests', __name__, url_prefix='/api/stores')


@bp_booking_requests.get('/<int:store_id>/booking-requests')
@actor_required('manage_booking_requests')
def get_requests(store_id):
    items = requests_svc.list_requests(store_id, request.args.get("status"), request.args.get("date"))
    return jsonify([format_booking_request(r) for r in items]), 200


@bp_booking_requests.post('/<int:store_id>/booking-requests')
@actor_required('manage_booking_requests')
def post_request(store_id):
    """Staff enters a request on a customer's behalf, e.g. from a phone call."""
    data = request.get_json(silent=True) or {}
    req = requests_svc.create_request(store_id, data, start_timer=bool(data.get("startPaymentTimer", True)),
                                      actor=current_actor())
    return jsonify(format_booking_request(req, include_token=True)), 201


@bp_booking_requests.post('/<int:store_id>/booking-requests/<int:request_id>/payment-timer')
@actor_required('manage_booking_requests')
def post_payment_timer(store_id, request_id):
    data = request.get_json(silent=True) or {}
    req = requests_svc.start_payment_timer(request_id, store_id=store_id, minutes=data.get("minutes"))
    return jsonify(format_booking_request(req)), 200


@bp_booking_requests.post('/<int:store_id>/booking-requests/<int:request_id>/convert')
@actor_required()
def post_convert(store_id, request_id):
    """Body: {"roomId": 12, "status": "BO" | "CI"}"""
    data = request.get_json(silent=True) or {}
    req, booking = requests_svc.convert_to_booking(current_actor(), request_id, data.get("roomId"),
                                                   data.get("status") or "BO")
    return jsonify({"request": format_booking_request(req), "booking": format_booking(booking)}), 201


@bp_booking_requests.post('/<int:store_id>/booking-requests/<int:request_id>/check-in')
@actor_required()
def post_check_in(store_id, request_id):
    req = requests_svc.check_in_request(current_actor(), request_id)
    return jsonify(format_booking_request(req)), 200


@bp_booking_requests.post('/<int:store_id>/booking-requests/<int:request_id>/complete')
@actor_required()
def post_complete(store_id, request_id):
    req = requests_svc.complete_request(current_actor(), request_id)
    return jsonify(format_booking_request(req)), 200


@bp_booking_requests.post('/<int:store_id>/booking-requests/<int:request_id>/cancel')
@actor_required()
def post_cancel(store_id, request_id):
    data = request.get_json(silent=True) or {}
    req = requests_svc.staff_cancel_request(current_actor(), request_id, data.get("reason"))
    return jsonify(format_booking_request(req)), 200
