import time
from functools import wraps

from flask import current_app
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError

from roomdesk.extension.extensions import db


def read_with_retry(fn, *args, **kwargs):
    """Run an idempotent read, retrying connection failures a bounded number of times.

    Never wrap a write in this: a retried mutation can apply its side effects twice.
    """
    retries = current_app.config.get("DB_READ_RETRIES", 2)
    backoff = current_app.config.get("DB_READ_BACKOFF_SECONDS", 0.2)
    for attempt in range(retries + 1):
        try:
            return fn(*args, **kwargs)
        except (OperationalError, PoolTimeoutError) as e:
            db.session.rollback()
            if attempt >= retries:
                raise
            sleep_for = backoff * (attempt + 1)
            current_app.logger.warning("DB read retry %s after %ss (%s)", attempt + 1, sleep_for, e.__class__.__name__)
            time.sleep(sleep_for)


def rollback_on_error(fn):
    """Service mutations: any failure rolls the session back before propagating."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except Exception:
            db.session.rollback()
            raise
    return wrapper
