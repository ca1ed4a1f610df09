"""
Global pytest configuration and fixtures for waypoint tests

Provides:
- File-backed SQLite engine and sessions
- Ledger instance
- Factories for resolved migrations and ledger rows
- Recording callback
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from waypoint import (
    MetadataLedger,
    MigrationType,
    MigrationVersion,
    PythonMigrationExecutor,
    ResolvedMigration,
    SqlMigrationExecutor,
    compute_checksum,
    enable_transactional_ddl,
    transactional,
)


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom settings"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def engine(tmp_path):
    """SQLite engine on a temporary file."""
    engine = enable_transactional_ddl(
        create_engine(f"sqlite:///{tmp_path / 'waypoint_test.db'}")
    )
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def metadata_session(session_factory):
    """Session dedicated to the schema_version ledger."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def user_session(session_factory):
    """Session for user objects and callbacks."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def ledger(metadata_session):
    """Ledger with its table created."""
    ledger = MetadataLedger(installed_by='tester')
    with transactional(metadata_session):
        ledger.ensure_table(metadata_session)
    return ledger


# ============================================================================
# Migration Factories
# ============================================================================

@pytest.fixture
def sql_migration():
    """Factory for SQL migrations built from inline SQL."""
    def _create(version: str, sql: str = "SELECT 1;", description: str = None):
        description = description or f"migration {version}"
        return ResolvedMigration(
            version=MigrationVersion(version),
            description=description,
            checksum=compute_checksum(sql),
            type=MigrationType.SQL,
            script=f"V{version.replace('.', '_')}__{description.replace(' ', '_')}.sql",
            executor=SqlMigrationExecutor(sql=sql),
        )
    return _create


@pytest.fixture
def python_migration():
    """Factory for code migrations."""
    def _create(version: str, func, description: str = None, checksum=None):
        description = description or f"code migration {version}"
        return ResolvedMigration(
            version=MigrationVersion(version),
            description=description,
            checksum=checksum,
            type=MigrationType.PYTHON,
            script=f"tests.V{version}",
            executor=PythonMigrationExecutor(func),
        )
    return _create


@pytest.fixture
def record_applied(ledger, metadata_session):
    """Write a finalized ledger row for a migration."""
    def _record(migration: ResolvedMigration, success: bool = True, execution_time: int = 5):
        with transactional(metadata_session):
            rank = ledger.record_attempt(metadata_session, migration)
            ledger.finalize(metadata_session, rank, success, execution_time)
        return rank
    return _record


# ============================================================================
# Callbacks
# ============================================================================

class RecordingCallback:
    """Callback recording every extension point it sees."""

    def __init__(self, name: str, events: list):
        self.name = name
        self.events = events

    def __repr__(self):
        return f"<RecordingCallback {self.name}>"

    def before_validate(self, session):
        self.events.append((self.name, 'before_validate'))

    def after_validate(self, session):
        self.events.append((self.name, 'after_validate'))

    def before_migrate(self, session):
        self.events.append((self.name, 'before_migrate'))

    def after_migrate(self, session):
        self.events.append((self.name, 'after_migrate'))

    def before_each_migrate(self, session, info):
        self.events.append((self.name, 'before_each_migrate', str(info.version)))

    def after_each_migrate(self, session, info):
        self.events.append((self.name, 'after_each_migrate', str(info.version)))


@pytest.fixture
def events():
    return []


@pytest.fixture
def recording_callback():
    """Factory for recording callbacks sharing an event list."""
    def _create(name: str, events: list):
        return RecordingCallback(name, events)
    return _create
