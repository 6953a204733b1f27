from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event

db = SQLAlchemy()


def take_write_lock_on_begin(engine):
    """
    SQLite has no row locks and drops SELECT ... FOR UPDATE, so every
    transaction takes the database write lock up front (BEGIN IMMEDIATE).
    Writers then queue behind each other for the whole check-then-insert.
    """
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # hand BEGIN over to SQLAlchemy instead of the driver
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
