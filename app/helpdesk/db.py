from __future__ import annotations

from flask import Flask, current_app
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from app.helpdesk.audit import AuditRecorder
from app.helpdesk.repository import EntityRepository
from app.helpdesk.tables import table_store_from_config


def create_sql_engine(db_url: str) -> Engine:
    engine_kwargs: dict[str, object] = {
        "future": True,
        "pool_pre_ping": True,
    }
    if db_url.startswith("postgres"):
        engine_kwargs.update(
            {
                "pool_recycle": 1800,
                "pool_size": 5,
                "max_overflow": 10,
                "pool_timeout": 30,
            }
        )
    engine = create_engine(db_url, **engine_kwargs)
    if db_url.startswith("sqlite"):
        # sqlite leaves foreign keys unenforced unless asked per connection
        @event.listens_for(engine, "connect")
        def _enable_sqlite_fks(dbapi_connection, connection_record):  # type: ignore[no-redef]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def init_store(app: Flask) -> None:
    """
    Build the table store, audit recorder and repository once per process and
    park them in app.extensions. The supabase backend fails here (at startup)
    when its URL or anon key is missing.
    """
    engine = None
    if app.config.get("STORE_BACKEND") == "sql":
        engine = create_sql_engine(app.config["DATABASE_URL"])
        if app.config.get("ENV") != "production":
            @event.listens_for(engine, "checkout")
            def _receive_checkout(dbapi_connection, connection_record, connection_proxy):  # type: ignore[no-redef]
                app.logger.debug("DB connection checkout from pool")
        app.extensions["sqlalchemy_engine"] = engine

    store = table_store_from_config(app.config, engine=engine)
    recorder = AuditRecorder(store)
    app.extensions["helpdesk_store"] = store
    app.extensions["helpdesk_audit"] = recorder
    app.extensions["helpdesk_repository"] = EntityRepository(store, recorder)
    app.logger.info("Backing store ready (backend=%s)", app.config.get("STORE_BACKEND"))


def get_repository(app: Flask | None = None) -> EntityRepository:
    return (app or current_app).extensions["helpdesk_repository"]
