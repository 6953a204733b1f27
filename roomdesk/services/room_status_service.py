from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from flask import current_app

from roomdesk.errors import NotFoundError
from roomdesk.extension.extensions import db
from roomdesk.models.room import Room
from roomdesk.models.roomDailyStatus import RoomDailyStatus
from roomdesk.models.statuses import DailyStatus
from roomdesk.services.event_service import emit_activity, ActionType
from roomdesk.services.time_utils import utcnow, parse_date


def upsert_status(room_id, on_date, status, actor_id=None):
    """Set the readiness of a room for one date, overwriting any earlier value. Does not commit."""
    status = DailyStatus.parse(status)
    table = RoomDailyStatus.__table__
    insert = pg_insert if db.engine.dialect.name == 'postgresql' else sqlite_insert
    now = utcnow()
    stmt = insert(table).values(room_id=room_id, date=on_date, status=status,
                                updated_by=actor_id, updated_at=now)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.room_id, table.c.date],
        set_={"status": status, "updated_by": actor_id, "updated_at": now},
    )
    db.session.execute(stmt)
    current_app.logger.info(f"room {room_id} on {on_date} -> {status.label} by {actor_id}")
    return status


def get_status(room_id, on_date):
    row = RoomDailyStatus.query.filter_by(room_id=room_id, date=on_date).first()
    return row.status if row else None


def list_statuses(store_id, on_date):
    return (RoomDailyStatus.query
            .join(Room, Room.id == RoomDailyStatus.room_id)
            .filter(Room.store_id == store_id, RoomDailyStatus.date == on_date)
            .order_by(RoomDailyStatus.room_id.asc())
            .all())


def set_room_status(ctx, room_id, on_date, status):
    """Manual housekeeping update from the dashboard, e.g. Ready after cleaning."""
    ctx.require('manage_rooms')
    on_date = parse_date(on_date)
    room = Room.query.filter_by(id=room_id, store_id=ctx.store_id).first()
    if room is None:
        raise NotFoundError(f"Room {room_id} not found in this store")
    status = upsert_status(room.id, on_date, status, ctx.actor_id)
    db.session.commit()
    emit_activity(ctx.store_id, ActionType.UPDATED, 'room_daily_status', room.id,
                  f"Room {room.name} marked {status.label} for {on_date.isoformat()}", actor=ctx)
    return RoomDailyStatus.query.filter_by(room_id=room.id, date=on_date).one()
