from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from flask import Flask, current_app, g
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

ENGINE_KEY = "sqlalchemy_engine"
SESSIONMAKER_KEY = "sqlalchemy_sessionmaker"


def _engine_options(url: str) -> dict:
    options: dict = {"future": True, "pool_pre_ping": True}
    if url.startswith("postgres"):
        options.update(pool_size=5, max_overflow=10, pool_timeout=30, pool_recycle=1800)
    return options


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    # Child tables rely on ON DELETE CASCADE.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record):  # type: ignore[no-redef]
        cur = dbapi_conn.cursor()
        try:
            cur.execute("PRAGMA foreign_keys=ON")
        finally:
            cur.close()


def init_db(app: Flask) -> None:
    url = app.config["DATABASE_URL"]
    engine = create_engine(url, **_engine_options(url))
    if url.startswith("sqlite"):
        _enable_sqlite_foreign_keys(engine)

    if app.config.get("ENV") != "production":
        @event.listens_for(engine, "checkout")
        def _log_checkout(*_args):  # type: ignore[no-redef]
            app.logger.debug("Pool checkout on %s", engine.url.render_as_string(hide_password=True))

    app.extensions[ENGINE_KEY] = engine
    app.extensions[SESSIONMAKER_KEY] = sessionmaker(
        bind=engine, class_=Session, autoflush=False, expire_on_commit=False
    )


def get_engine(app: Flask) -> Engine:
    return app.extensions[ENGINE_KEY]


def _factory(app: Flask | None) -> sessionmaker:
    return (app or current_app).extensions[SESSIONMAKER_KEY]


def db_session(app: Flask | None = None) -> Session:
    """Session bound to the current request; created on first use."""
    session = g.get("db_session")
    if session is None:
        session = g.db_session = _factory(app)()
    return session


def teardown_db_session(exc: BaseException | None) -> None:
    session: Session | None = g.pop("db_session", None)
    if session is None:
        return
    if exc is not None:
        session.rollback()
    session.close()


@contextmanager
def session_scope(app: Flask) -> Iterator[Session]:
    """Transactional session for scripts and tests (commit on success)."""
    session = _factory(app)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
