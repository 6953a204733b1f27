from flask import current_app

from roomdesk.services.payload_formatters import _to_date_str, _to_ts_str, format_new_request_notification
from roomdesk.services.time_utils import utcnow
from roomdesk.services.websocket_service import socketio, store_room


class ActionType:
    CREATED = 'created'
    UPDATED = 'updated'
    DELETED = 'deleted'
    CONFIRM = 'confirm'
    CHECK_IN = 'check-in'
    CHECK_OUT = 'check-out'
    CANCEL = 'cancel'
    RESTORE = 'restore'
    EXPIRE = 'expire'


def emit_activity(store_id, action_type, entity_type, entity_id, description, actor=None):
    """Audit event for one state change. Call only after the change is committed."""
    payload = {
        "actionType": action_type,
        "entityType": entity_type,
        "entityId": entity_id,
        "storeId": store_id,
        "actorId": getattr(actor, "actor_id", actor),
        "actorRole": getattr(actor, "role", None),
        "description": description,
        "at": _to_ts_str(utcnow()),
    }
    current_app.logger.info(f"activity store={store_id} {entity_type}#{entity_id} {action_type}: {description}")
    socketio.emit("activity", payload, room=store_room(store_id))
    return payload


def emit_availability_changed(store_id, on_date, reason):
    """Tell connected dashboards to recompute availability for this date."""
    payload = {"storeId": store_id, "date": _to_date_str(on_date), "reason": reason}
    socketio.emit("availability_changed", payload, room=store_room(store_id))
    return payload


def emit_booking_request_created(req, confirmation_url):
    payload = format_new_request_notification(req, confirmation_url)
    current_app.logger.info(f"new booking request {req.bid} for store {req.store_id} ({req.category_name})")
    socketio.emit("booking_request_created", payload, room=store_room(req.store_id))
    return payload
