import os
from datetime import date, datetime, time, timedelta
from types import SimpleNamespace

import pytest
from flask_jwt_extended import create_access_token

from roomdesk import create_app
from roomdesk.config import Config
from roomdesk.extension.extensions import db
from roomdesk.models import Store, RoomCategory, Room, RoomVariant, Booking
from roomdesk.models.statuses import RoomStatus, BookingStatus
from roomdesk.services.authz import ActorContext, permissions_for

ALL_PERMISSIONS = {
    "view_bookings", "create_bookings", "edit_bookings", "cancel_bookings", "cancel_checkout_bookings",
    "delete_bookings", "manage_rooms", "manage_booking_requests", "manage_cash",
}

BOOKING_DAY = date(2024, 1, 10)
# "now" for service calls: the evening before BOOKING_DAY
NOW = datetime(2024, 1, 9, 12, 0)


class SqliteConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SOCKETIO_ASYNC_MODE = "threading"
    JWT_SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    STORE_TIMEZONE = "UTC"
    DB_READ_BACKOFF_SECONDS = 0
    LOG_LEVEL = "WARNING"
    PUBLIC_BASE_URL = "https://book.example.test"


@pytest.fixture
def app():
    app = create_app(SqliteConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def threaded_app(tmp_path):
    """App on a real database shared by worker threads: TEST_DATABASE_URI if set, else a SQLite file."""
    class ThreadedConfig(SqliteConfig):
        SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URI") or f"sqlite:///{tmp_path / 'roomdesk.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = (
            {} if os.environ.get("TEST_DATABASE_URI")
            else {"connect_args": {"timeout": 30, "check_same_thread": False}}
        )

    app = create_app(ThreadedConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def seed(app):
    """Store MLG with a VIP pool (two active rooms, one broken), a Regular pool and a legacy room."""
    store = Store(name="Malang Central", code="MLG", slug="malang-central")
    other = Store(name="Jember", code="JBR", slug="jember")
    db.session.add_all([store, other])
    db.session.flush()

    vip = RoomCategory(store_id=store.id, name="VIP")
    regular = RoomCategory(store_id=store.id, name="Regular")
    db.session.add_all([vip, regular])
    db.session.flush()

    vip1 = Room(store_id=store.id, category_id=vip.id, name="VIP 1", status=RoomStatus.ACTIVE)
    vip2 = Room(store_id=store.id, category_id=vip.id, name="VIP 2", status=RoomStatus.ACTIVE)
    vip3 = Room(store_id=store.id, category_id=vip.id, name="VIP 3", status=RoomStatus.BROKEN)
    reg1 = Room(store_id=store.id, category_id=regular.id, name="Reg 1", status=RoomStatus.ACTIVE)
    legacy = Room(store_id=store.id, category_id=None, name="Old Room", status=RoomStatus.ACTIVE)
    db.session.add_all([vip1, vip2, vip3, reg1, legacy])
    db.session.flush()

    db.session.add_all([
        RoomVariant(room_id=vip1.id, variant_name="2 Hours", duration=2, price=120000),
        RoomVariant(room_id=vip2.id, variant_name="2 Hours", duration=2, price=100000),
        RoomVariant(room_id=vip2.id, variant_name="3 Hours", duration=3, price=140000),
        RoomVariant(room_id=vip3.id, variant_name="Broken Deal", duration=1, price=1000),
        RoomVariant(room_id=vip1.id, variant_name="Retired", duration=1, price=5000, is_active=False),
    ])
    db.session.commit()
    return SimpleNamespace(store_id=store.id, other_store_id=other.id, vip_id=vip.id, regular_id=regular.id,
                           vip1=vip1.id, vip2=vip2.id, vip3=vip3.id, reg1=reg1.id, legacy=legacy.id)


@pytest.fixture
def make_ctx(app, seed):
    def _make(role="user", permissions=None, store_id=None, actor_id=None):
        return ActorContext(
            actor_id=actor_id or f"{role}-1",
            store_id=store_id or seed.store_id,
            role=role,
            permissions=permissions_for(role, permissions),
            name=f"{role.title()} One",
        )
    return _make


@pytest.fixture
def staff(make_ctx):
    """Non-admin actor holding every permission."""
    return make_ctx("leader", ALL_PERMISSIONS)


@pytest.fixture
def admin(make_ctx):
    return make_ctx("admin")


@pytest.fixture
def auth_header(app):
    def _header(role="leader", stores=None, permissions=None, sub="staff-7"):
        claims = {"role": role, "name": "Staff Seven"}
        if stores is not None:
            claims["stores"] = stores
        if permissions is not None:
            claims["permissions"] = sorted(permissions)
        token = create_access_token(identity=sub, additional_claims=claims)
        return {"Authorization": f"Bearer {token}"}
    return _header


def add_booking(seed, room_id, start, end, status=BookingStatus.RESERVED, on_date=BOOKING_DAY, bid=None):
    """Insert a booking row directly, bypassing availability checks."""
    n = Booking.query.count() + 1
    b = Booking(
        bid=bid or f"BO-MLG-{on_date:%Y%m%d}-{900 + n}",
        store_id=seed.store_id,
        room_id=room_id,
        date=on_date,
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
        duration=2,
        status=status,
        customer_name="Walk In",
        price=100000,
    )
    db.session.add(b)
    db.session.commit()
    return b


def request_payload(seed, **overrides):
    payload = {
        "customerName": "Dewi Lestari",
        "customerPhone": "0812-3456-7890",
        "paymentMethod": "QRIS",
        "bookingDate": BOOKING_DAY.isoformat(),
        "startTime": "09:00",
        "endTime": "11:00",
        "categoryId": seed.vip_id,
        "variantName": "2 Hours",
    }
    payload.update(overrides)
    return payload


def minutes_after(moment, minutes):
    return moment + timedelta(minutes=minutes)
