import os
import json


# Default role -> permission mapping. Override with ROLE_PERMISSIONS_JSON, e.g.
# '{"leader": ["edit_bookings", "cancel_bookings"], "user": ["view_bookings"]}'
DEFAULT_ROLE_PERMISSIONS = {
    "leader": {
        "view_bookings", "create_bookings", "edit_bookings",
        "cancel_bookings", "cancel_checkout_bookings",
        "manage_rooms", "manage_booking_requests", "manage_cash",
    },
    "user": {
        "view_bookings", "create_bookings", "edit_bookings",
        "cancel_bookings", "manage_booking_requests",
    },
}


def _role_permissions():
    raw = os.getenv("ROLE_PERMISSIONS_JSON")
    if not raw:
        return DEFAULT_ROLE_PERMISSIONS
    return {role: set(perms) for role, perms in json.loads(raw).items()}


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "DEV")
    DEBUG = os.getenv("FLASK_DEBUG", "0") == "1"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URI",
        "postgresql://postgres:postgres@db:5432/roomdesk"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Every DB call is bounded: pool checkout and statement execution both time out
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 1800,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", "10")),
        "connect_args": {
            "connect_timeout": int(os.getenv("DB_CONNECT_TIMEOUT", "5")),
            "options": f"-c statement_timeout={os.getenv('DB_STATEMENT_TIMEOUT_MS', '5000')}",
        },
    }
    DB_READ_RETRIES = int(os.getenv("DB_READ_RETRIES", "2"))
    DB_READ_BACKOFF_SECONDS = float(os.getenv("DB_READ_BACKOFF_SECONDS", "0.2"))

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")

    STORE_TIMEZONE = os.getenv("STORE_TIMEZONE", "Asia/Jakarta")

    # Booking requests
    PAYMENT_WINDOW_MINUTES = int(os.getenv("PAYMENT_WINDOW_MINUTES", "10"))
    RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "5"))
    RATE_LIMIT_WINDOW_MINUTES = int(os.getenv("RATE_LIMIT_WINDOW_MINUTES", "60"))
    REQUEST_STALE_HOURS = int(os.getenv("REQUEST_STALE_HOURS", "24"))
    EXPIRED_RETENTION_MINUTES = int(os.getenv("EXPIRED_RETENTION_MINUTES", "60"))
    PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:5054")

    # Authorization
    SUPERUSER_ROLE = os.getenv("SUPERUSER_ROLE", "admin")
    ROLE_PERMISSIONS = _role_permissions()

    SOCKETIO_ASYNC_MODE = os.getenv("SOCKETIO_ASYNC_MODE") or None
