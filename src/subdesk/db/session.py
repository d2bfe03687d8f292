"""
Database session management for Subdesk.

Provides SQLAlchemy engine and session factory with proper
connection pooling and timeout configuration. Uses the settings from
config.py. The engine is created lazily on first use so that importing
the package never opens a connection or loads a database driver.

Usage:
    from subdesk.db import get_session_factory

    with get_session_factory()() as session:
        teams = session.query(Team).all()

The coordination service opens one session per operation from this
factory and owns commit and rollback. Read-only operations procure
their connection with ``execution_options={READ_ONLY_OPTION: True}``;
on SQLite that starts a deferred transaction instead of taking the
write lock up front.
"""

from typing import Any, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from subdesk.config import Settings, settings

# Execution option marking a connection whose transaction never writes
READ_ONLY_OPTION = "subdesk_read_only"


def _engine_kwargs(cfg: Settings) -> dict[str, Any]:
    """Build create_engine() keyword arguments for the configured backend."""
    timeout_s = cfg.statement_timeout_seconds()
    kwargs: dict[str, Any] = {
        "pool_pre_ping": True,  # Verify connection is alive before using
        "echo": cfg.log_level == "DEBUG",  # Log SQL only in debug mode
    }

    if cfg.is_sqlite:
        # SQLite has no statement timeout; the busy timeout bounds how long
        # a writer waits for another writer's lock.
        connect_args: dict[str, Any] = {"check_same_thread": False}
        if timeout_s is not None:
            connect_args["timeout"] = timeout_s
        kwargs["connect_args"] = connect_args
        if ":memory:" in cfg.database_url or cfg.database_url.rstrip("/").endswith("sqlite:"):
            # One shared connection, otherwise every session sees its own empty database
            kwargs["poolclass"] = StaticPool
        return kwargs

    kwargs.update(
        pool_size=cfg.db_pool_size,
        max_overflow=cfg.db_max_overflow,
        pool_timeout=cfg.db_pool_timeout_seconds,
    )
    if timeout_s is not None and cfg.database_url.startswith("postgresql"):
        ms = cfg.db_statement_timeout_ms
        kwargs["connect_args"] = {
            "options": f"-c statement_timeout={ms} -c lock_timeout={ms}",
            "connect_timeout": max(int(timeout_s), 1),
        }
    return kwargs


def get_engine(cfg: Optional[Settings] = None) -> Engine:
    """
    Create SQLAlchemy engine with connection pooling and timeouts.

    The engine is configured with:
    - Connection pool for efficient reuse (pool checkout times out)
    - Statement and lock timeouts on PostgreSQL, busy timeout on SQLite
    - Pre-ping to verify connections before use (handles stale connections)
    """
    cfg = cfg or settings
    engine = create_engine(cfg.database_url, **_engine_kwargs(cfg))

    if cfg.is_sqlite:
        @event.listens_for(engine, "connect")
        def on_connect(dbapi_conn, connection_record):
            """Take transaction control away from pysqlite and enable foreign keys."""
            dbapi_conn.isolation_level = None
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def on_begin(conn):
            if conn.get_execution_options().get(READ_ONLY_OPTION):
                # Readers take only a shared lock when they first read
                conn.exec_driver_sql("BEGIN")
                return
            # Writers queue on the busy timeout instead of failing on lock upgrade,
            # which stands in for SELECT ... FOR UPDATE on this backend.
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


# Singleton engine and session factory, created on first use
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_default_engine() -> Engine:
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = get_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    """Get or create the session factory bound to the singleton engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            autocommit=False,  # We'll handle commits explicitly
            autoflush=False,  # Don't auto-flush before queries (more control)
            expire_on_commit=False,  # Returned rows stay readable after commit
            bind=get_default_engine(),
        )
    return _session_factory

