# roomdesk/__init__.py
import logging
from datetime import timedelta

from flask import Flask, jsonify
from flask_cors import CORS
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from sqlalchemy import text

from roomdesk.config import Config
from roomdesk.extension.extensions import db, take_write_lock_on_begin
from roomdesk.services.websocket_service import socketio, register_dashboard_events

jwt = JWTManager()  # global instance
migrate = Migrate()


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"))
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # JWT config BEFORE blueprints
    app.config.setdefault("JWT_TOKEN_LOCATION", ["headers"])
    app.config.setdefault("JWT_HEADER_NAME", "Authorization")
    app.config.setdefault("JWT_HEADER_TYPE", "Bearer")
    app.config.setdefault("JWT_ALGORITHM", "HS256")
    app.config.setdefault("JWT_ACCESS_TOKEN_EXPIRES", timedelta(hours=8))
    jwt.init_app(app)

    # Extensions
    CORS(app)
    db.init_app(app)
    with app.app_context():
        if db.engine.dialect.name == "sqlite":
            take_write_lock_on_begin(db.engine)
    migrate.init_app(app, db)
    socketio.init_app(app, cors_allowed_origins="*", async_mode=app.config.get("SOCKETIO_ASYNC_MODE"))

    # Import models and blueprints AFTER extensions are inited
    from roomdesk import models  # noqa: F401
    from roomdesk.controllers.booking_controller import bp_bookings
    from roomdesk.controllers.booking_request_controller import bp_booking_requests
    from roomdesk.controllers.public_controller import bp_public
    from roomdesk.controllers.room_status_controller import bp_room_status
    from roomdesk.controllers.cash_controller import bp_cash
    from roomdesk.commands import register_commands
    from roomdesk.errors import register_error_handlers

    app.register_blueprint(bp_bookings)
    app.register_blueprint(bp_booking_requests)
    app.register_blueprint(bp_public)
    app.register_blueprint(bp_room_status)
    app.register_blueprint(bp_cash)

    register_error_handlers(app)
    register_commands(app)

    @app.get('/api/db-check')
    def db_check():
        db.session.execute(text("SELECT 1"))
        return jsonify({"ok": True}), 200

    # Socket events
    register_dashboard_events()

    return app
