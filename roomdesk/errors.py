from flask import jsonify, current_app
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm.exc import StaleDataError

from roomdesk.extension.extensions import db


class RoomdeskError(Exception):
    """Base for every domain rejection. Carries the HTTP status it maps to."""
    status_code = 400
    code = "error"

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        body = {"error": self.code, "message": self.message}
        body.update(self.details)
        return body


class ValidationError(RoomdeskError):
    status_code = 400
    code = "validation_error"


class AuthorizationError(RoomdeskError):
    status_code = 403
    code = "forbidden"


class NotFoundError(RoomdeskError):
    status_code = 404
    code = "not_found"


class ConflictError(RoomdeskError):
    status_code = 409
    code = "conflict"


class ExpiredError(RoomdeskError):
    status_code = 410
    code = "expired"


class RateLimitedError(RoomdeskError):
    status_code = 429
    code = "rate_limited"

    def __init__(self, message, retry_after=None):
        super().__init__(message, retry_after=retry_after)
        self.retry_after = retry_after


def register_error_handlers(app):
    @app.errorhandler(RoomdeskError)
    def _on_domain_error(err):
        db.session.rollback()
        current_app.logger.info(f"rejected {err.code}: {err.message}")
        resp = jsonify(err.to_dict())
        resp.status_code = err.status_code
        if isinstance(err, RateLimitedError) and err.retry_after:
            resp.headers["Retry-After"] = str(int(err.retry_after))
        return resp

    @app.errorhandler(StaleDataError)
    def _on_stale(err):
        db.session.rollback()
        current_app.logger.warning(f"stale write rejected: {err}")
        return jsonify({
            "error": ConflictError.code,
            "message": "This record was changed by someone else. Refresh and try again.",
        }), 409

    @app.errorhandler(OperationalError)
    @app.errorhandler(PoolTimeoutError)
    def _on_persistence_error(err):
        db.session.rollback()
        current_app.logger.error(f"persistence unavailable: {err}")
        return jsonify({
            "error": "persistence_unavailable",
            "message": "The database did not respond in time. Please retry shortly.",
        }), 503
