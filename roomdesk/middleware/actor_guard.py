from functools import wraps

from flask import g, jsonify, current_app
from flask_jwt_extended import verify_jwt_in_request, get_jwt

from roomdesk.services.authz import build_context


def actor_required(permission=None):
    """
    Decorator for store-scoped staff routes.

    Usage:
        @bp.get('/<int:store_id>/bookings')
        @actor_required('view_bookings')
        def list_bookings(store_id):
            ctx = current_actor()

    Expects store_id in the route parameters. The actor context is rebuilt from
    the JWT claims on every request and never cached across requests.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            store_id = kwargs.get('store_id')
            if not store_id:
                current_app.logger.error("actor_required: store_id not found in route")
                return jsonify({"error": "validation_error", "message": "Store ID required"}), 400

            verify_jwt_in_request()
            g.actor = build_context(get_jwt(), store_id)
            if permission:
                g.actor.require(permission)
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def current_actor():
    return g.actor
