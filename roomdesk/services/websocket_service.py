import logging
import time
from typing import Any, Dict

from flask_socketio import SocketIO, join_room, leave_room, emit

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Dashboard Socket.IO server (staff dashboards connect here)
# -----------------------------------------------------------------------------
socketio = SocketIO(cors_allowed_origins="*")


def store_room(store_id) -> str:
    return f"store_{int(store_id)}"


def _log_info(msg, *args):
    logger.info("[dashboard-sio] " + msg, *args)


def _log_warn(msg, *args):
    logger.warning("[dashboard-sio] " + msg, *args)


def register_dashboard_events():
    @socketio.on("connect")
    def _on_connect():
        _log_info("Dashboard client connected")

    @socketio.on("disconnect")
    def _on_disconnect():
        _log_info("Dashboard client disconnected")

    @socketio.on("ping_health")
    def _on_ping_health(data=None):
        emit("pong_health", {"ok": True, "ts": time.time()})

    @socketio.on("dashboard_join_store")
    def _on_join_store(data: Dict[str, Any]):
        store_id = (data or {}).get("store_id") or (data or {}).get("storeId")
        if not store_id:
            _log_warn("dashboard_join_store missing store_id")
            return
        room = store_room(store_id)
        join_room(room)
        _log_info("Dashboard client joined room %s", room)
        emit("joined", {"room": room})

    @socketio.on("dashboard_leave_store")
    def _on_leave_store(data: Dict[str, Any]):
        store_id = (data or {}).get("store_id") or (data or {}).get("storeId")
        if store_id:
            leave_room(store_room(store_id))
