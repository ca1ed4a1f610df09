"""Transaction scoping and timing helpers shared by the commands."""
import logging
import time
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@contextmanager
def transactional(session: Session) -> Iterator[Session]:
    """
    Run a unit of work in its own transaction on a caller-owned session.

    Commits on success, rolls back on any exception and re-raises it.
    The session itself is left open; its owner closes it.

    Usage:
        with transactional(session):
            session.execute(text("UPDATE ..."))
            # Commit happens automatically on success
            # Rollback happens automatically on exception
    """
    try:
        yield session
        session.commit()
    except Exception:
        logger.debug('Rolling back transaction')
        session.rollback()
        raise


def enable_transactional_ddl(engine: Engine) -> Engine:
    """
    Make pysqlite run DDL inside the session transaction.

    The driver's legacy mode emits no BEGIN before CREATE/ALTER/DROP, so
    those statements commit immediately and survive a rollback. Driver
    transaction handling is switched off and SQLAlchemy emits BEGIN itself.
    Other backends are returned unchanged.
    """
    if engine.dialect.name != 'sqlite' or engine.dialect.driver != 'pysqlite':
        return engine

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    logger.debug(
        'Enabled transactional DDL for %s',
        engine.url.render_as_string(hide_password=True)
    )
    return engine


class StopWatch:
    """Wall-clock stopwatch with millisecond resolution."""

    def __init__(self):
        self._start = None
        self._elapsed = 0.0

    def start(self) -> 'StopWatch':
        self._start = time.monotonic()
        return self

    def stop(self) -> int:
        """Stop the watch and return the elapsed milliseconds."""
        if self._start is not None:
            self._elapsed = time.monotonic() - self._start
            self._start = None
        return self.total_millis

    @property
    def total_millis(self) -> int:
        if self._start is not None:
            return int((time.monotonic() - self._start) * 1000)
        return int(self._elapsed * 1000)


def format_duration(millis: int) -> str:
    """
    Format milliseconds as MM:SS.mmms.

    Example:
        >>> format_duration(61042)
        '01:01.042s'
    """
    minutes, remainder = divmod(int(millis), 60000)
    seconds, ms = divmod(remainder, 1000)
    return f"{minutes:02d}:{seconds:02d}.{ms:03d}s"
