"""
Migration data models.

This module defines the core data structures shared by resolvers, the
ledger and the reconciliation engine:
- MigrationType: How a migration is executed (or that a ledger row is synthetic)
- ResolvedMigration: A migration unit available from the migration sources
- AppliedMigration: A row of the schema_version ledger

Both records are immutable; resolved migrations are rebuilt on every
resolution pass and applied migrations are rebuilt on every ledger read.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .version import MigrationVersion


class MigrationType(Enum):
    """Execution strategy of a migration."""
    SQL = "SQL"
    SHELL = "SHELL"
    PYTHON = "PYTHON"
    BASELINE = "BASELINE"

    @property
    def is_synthetic(self) -> bool:
        """Synthetic rows are written by waypoint itself, not by a migration."""
        return self is MigrationType.BASELINE


@dataclass(frozen=True)
class ResolvedMigration:
    """
    A migration unit produced by a resolver.

    Attributes:
        version: Migration version
        description: Human-readable description (e.g. 'create quotes')
        checksum: CRC32 of the script content, None for code migrations
        type: Execution strategy
        script: Script name or code location, for display and the ledger
        executor: Object implementing MigrationExecutor

    Example:
        >>> unit = ResolvedMigration(
        ...     version=MigrationVersion('1'),
        ...     description='create quotes',
        ...     checksum=123456789,
        ...     type=MigrationType.SQL,
        ...     script='V1__create_quotes.sql',
        ...     executor=SqlMigrationExecutor(sql='CREATE TABLE quotes (id INT);')
        ... )
        >>> unit
        <ResolvedMigration(v1, create quotes)>
    """

    version: MigrationVersion
    description: str
    checksum: Optional[int]
    type: MigrationType
    script: str
    executor: Any = field(compare=False, repr=False)

    def __post_init__(self):
        """Validate resolved migration after initialization."""
        if not isinstance(self.version, MigrationVersion):
            raise TypeError(
                f"ResolvedMigration version must be a MigrationVersion, "
                f"got {type(self.version).__name__}"
            )
        if self.version.is_latest or self.version.is_empty:
            raise ValueError(
                f"Migration {self.script} cannot use sentinel version "
                f"{self.version}"
            )
        if self.type.is_synthetic:
            raise ValueError(
                f"Migration {self.script} cannot be of synthetic type "
                f"{self.type.value}"
            )

    def __lt__(self, other: 'ResolvedMigration') -> bool:
        """Allow sorting resolved migrations by version."""
        if not isinstance(other, ResolvedMigration):
            return NotImplemented
        return self.version < other.version

    def __repr__(self) -> str:
        return f"<ResolvedMigration(v{self.version}, {self.description})>"


@dataclass(frozen=True)
class AppliedMigration:
    """
    A migration recorded in the schema_version ledger.

    Attributes:
        installed_rank: Application sequence number (strictly increasing)
        version: Migration version
        description: Description at time of application
        type: Execution strategy, or BASELINE for the synthetic row
        script: Script name at time of application
        checksum: Checksum at time of application (None if not tracked)
        installed_by: User/system that applied it
        installed_on: When the attempt started
        execution_time: Milliseconds taken (0 while in progress)
        success: Whether the migration completed
    """

    installed_rank: int
    version: MigrationVersion
    description: str
    type: MigrationType
    script: str
    checksum: Optional[int]
    installed_by: str
    installed_on: Optional[datetime]
    execution_time: int
    success: bool

    def __repr__(self) -> str:
        return (
            f"<AppliedMigration(#{self.installed_rank} v{self.version}, "
            f"{'success' if self.success else 'failed'})>"
        )
