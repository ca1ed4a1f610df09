"""
Shared fixtures for integration tests.

Integration tests run whole commands against a real SQLite file with
both sessions, the ledger and callbacks wired together.
"""

import logging

import pytest
from sqlalchemy import text

from waypoint import CallbackHost, StaticResolver


@pytest.fixture
def command_factory(metadata_session, user_session, ledger):
    """Build a command over a static set of migrations.

    Example:
        def test_validate(command_factory, sql_migration):
            command = command_factory(DbValidate, [sql_migration('1')])
            assert command.validate() is None
    """
    def _create(command_cls, migrations, callbacks=(), **options):
        return command_cls(
            metadata_session,
            user_session,
            ledger,
            StaticResolver(migrations),
            CallbackHost(callbacks),
            **options
        )
    return _create


@pytest.fixture
def table_names(session_factory):
    """Return the user tables currently present in the database."""
    def _names():
        with session_factory() as session:
            rows = session.execute(
                text("SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name")
            ).scalars().all()
        return [name for name in rows if name != 'schema_version']
    return _names


@pytest.fixture
def waypoint_logs(caplog):
    """Capture INFO records from every waypoint logger."""
    caplog.set_level(logging.INFO, logger='waypoint')
    return caplog
