#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Metadata ledger backed by the schema_version table.

The ledger records every migration attempt: a row is written with
success=False the moment a migration starts and finalized with the
outcome and timing once it completes. Rows are never deleted here.

None of these methods commit. Callers wrap them in transactional()
so that a crash before commit leaves no partial record.
"""
import logging
from typing import List, Optional

from sqlalchemy import Row, func, inspect, insert, select, update
from sqlalchemy.orm import Session

from .errors import ValidationError
from .migration import AppliedMigration, MigrationType, ResolvedMigration
from .models import SchemaVersion
from .version import MigrationVersion


class MetadataLedger:
    """
    Reads and writes the schema_version table.

    Attributes:
        installed_by: Name recorded in installed_by for new rows
        logger: Logger for ledger operations

    Example:
        ledger = MetadataLedger(installed_by='deploy')

        with transactional(session):
            ledger.ensure_table(session)
            rank = ledger.record_attempt(session, migration)

        with transactional(session):
            ledger.finalize(session, rank, success=True, execution_time=42)
    """

    def __init__(self, installed_by: str = 'waypoint'):
        self.installed_by = installed_by
        self.logger = logging.getLogger(__name__)

    def has_table(self, session: Session) -> bool:
        """Whether the schema_version table exists."""
        return inspect(session.connection()).has_table(
            SchemaVersion.__tablename__
        )

    def ensure_table(self, session: Session) -> None:
        """Create the schema_version table if it doesn't exist.

        Safe to call multiple times.
        """
        SchemaVersion.__table__.create(session.connection(), checkfirst=True)
        self.logger.debug('Ensured %s table exists', SchemaVersion.__tablename__)

    def applied_migrations(self, session: Session) -> List[AppliedMigration]:
        """
        All recorded migrations ordered by installed rank.

        Returns an empty list when the table has not been created yet, so
        reporting works against a fresh database.
        """
        if not self.has_table(session):
            return []

        table = SchemaVersion.__table__
        rows = session.execute(
            select(table).order_by(table.c.installed_rank)
        ).all()

        return [self._to_applied(row) for row in rows]

    def record_attempt(self, session: Session, migration: ResolvedMigration) -> int:
        """
        Insert a row for a migration that is about to run.

        The row starts out unsuccessful; finalize() records the outcome.

        Args:
            session: Metadata session (caller manages the transaction)
            migration: Migration being applied

        Returns:
            The installed rank of the new row, used as handle for finalize()
        """
        rank = self._next_rank(session)
        session.execute(
            insert(SchemaVersion).values(
                installed_rank=rank,
                version=str(migration.version),
                description=migration.description,
                type=migration.type.value,
                script=migration.script,
                checksum=migration.checksum,
                installed_by=self.installed_by,
                execution_time=0,
                success=False,
            )
        )
        self.logger.debug(
            'Recorded attempt #%d for migration %s', rank, migration.version
        )
        return rank

    def finalize(
        self,
        session: Session,
        rank: int,
        success: bool,
        execution_time: int
    ) -> None:
        """
        Record the outcome of an attempt started with record_attempt().

        Raises:
            ValueError: If no row exists for the given rank
        """
        result = session.execute(
            update(SchemaVersion)
            .where(SchemaVersion.installed_rank == rank)
            .values(success=success, execution_time=int(execution_time))
        )
        if result.rowcount == 0:
            raise ValueError(f"No ledger row with installed rank {rank}")

    def record_baseline(
        self,
        session: Session,
        version: MigrationVersion,
        description: str
    ) -> int:
        """
        Insert the synthetic BASELINE row.

        Raises:
            ValidationError: If the ledger already contains rows
        """
        existing = self.applied_migrations(session)
        if existing:
            raise ValidationError(
                f"Unable to baseline: schema_version already contains "
                f"{len(existing)} row(s) (latest version "
                f"{max(a.version for a in existing)})"
            )

        rank = self._next_rank(session)
        session.execute(
            insert(SchemaVersion).values(
                installed_rank=rank,
                version=str(version),
                description=description,
                type=MigrationType.BASELINE.value,
                script=description,
                checksum=None,
                installed_by=self.installed_by,
                execution_time=0,
                success=True,
            )
        )
        return rank

    def _next_rank(self, session: Session) -> int:
        current: Optional[int] = session.execute(
            select(func.max(SchemaVersion.installed_rank))
        ).scalar()
        return (current or 0) + 1

    @staticmethod
    def _to_applied(row: Row) -> AppliedMigration:
        return AppliedMigration(
            installed_rank=row.installed_rank,
            version=MigrationVersion(row.version),
            description=row.description,
            type=MigrationType(row.type),
            script=row.script,
            checksum=row.checksum,
            installed_by=row.installed_by,
            installed_on=row.installed_on,
            execution_time=row.execution_time,
            success=bool(row.success),
        )
