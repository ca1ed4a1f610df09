#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Reconciliation of resolved migrations against the ledger.

MigrationInfoService merges the resolver output with the schema_version
rows into one MigrationInfo per version, classifies each with a
MigrationState, reports the first inconsistency as a validation verdict
and computes the execution plan.

Classification depends only on the inputs, so refreshing twice with
unchanged sources and ledger yields the same states and plan.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set

from sqlalchemy.orm import Session

from .ledger import MetadataLedger
from .migration import AppliedMigration, MigrationType, ResolvedMigration
from .resolver import MigrationResolver
from .version import EMPTY, LATEST, MigrationVersion, max_version

logger = logging.getLogger(__name__)


class MigrationState(Enum):
    """State of a migration after reconciliation."""
    PENDING = "Pending"
    OUT_OF_ORDER = "Out of order"
    IGNORED = "Ignored"
    SUCCESS = "Success"
    FAILED = "Failed"
    MISSING = "Missing"
    FUTURE = "Future"
    BASELINE = "Baseline"

    @property
    def is_applied(self) -> bool:
        """Whether a ledger row exists for migrations in this state."""
        return self in (
            MigrationState.SUCCESS,
            MigrationState.FAILED,
            MigrationState.MISSING,
            MigrationState.FUTURE,
            MigrationState.BASELINE,
        )


@dataclass(frozen=True)
class MigrationContext:
    """Boundaries used to classify every version of one reconciliation pass."""
    target: MigrationVersion
    baseline: MigrationVersion
    last_resolved: MigrationVersion
    last_applied: MigrationVersion


@dataclass(frozen=True)
class MigrationInfo:
    """
    Reconciled view of one migration version.

    Attributes:
        resolved: Unit from the resolver (None if not resolvable)
        applied: Ledger row (None if never applied)
        state: Classification of this version
    """
    resolved: Optional[ResolvedMigration]
    applied: Optional[AppliedMigration]
    state: MigrationState

    @property
    def version(self) -> MigrationVersion:
        if self.applied is not None:
            return self.applied.version
        return self.resolved.version

    @property
    def description(self) -> str:
        if self.applied is not None:
            return self.applied.description
        return self.resolved.description

    @property
    def type(self) -> MigrationType:
        if self.applied is not None:
            return self.applied.type
        return self.resolved.type

    @property
    def script(self) -> str:
        if self.applied is not None:
            return self.applied.script
        return self.resolved.script

    @property
    def checksum(self) -> Optional[int]:
        if self.applied is not None:
            return self.applied.checksum
        return self.resolved.checksum

    @property
    def installed_on(self) -> Optional[datetime]:
        return self.applied.installed_on if self.applied is not None else None

    @property
    def execution_time(self) -> Optional[int]:
        return self.applied.execution_time if self.applied is not None else None

    def __repr__(self) -> str:
        return f"<MigrationInfo(v{self.version}, {self.state.name})>"


def classify(
    resolved: Optional[ResolvedMigration],
    applied: Optional[AppliedMigration],
    context: MigrationContext
) -> MigrationState:
    """Assign exactly one state to a resolved/applied pair."""
    if applied is not None:
        if applied.type.is_synthetic:
            return MigrationState.BASELINE
        if not applied.success:
            return MigrationState.FAILED
        if resolved is not None:
            return MigrationState.SUCCESS
        if applied.version > context.last_resolved:
            return MigrationState.FUTURE
        return MigrationState.MISSING

    version = resolved.version
    if version <= context.baseline:
        return MigrationState.IGNORED
    if version > context.target:
        return MigrationState.IGNORED
    if version < context.last_applied:
        return MigrationState.OUT_OF_ORDER
    return MigrationState.PENDING


class MigrationInfoService:
    """
    Reconciles available migrations with the schema_version ledger.

    Attributes:
        resolver: Source of available migrations
        ledger: Ledger of applied migrations
        session: Metadata session used to read the ledger
        target: Inclusive version ceiling (LATEST for none)
        out_of_order: Whether out-of-order migrations may be applied
        pending_or_future: Whether missing/future migrations are tolerated

    Example:
        service = MigrationInfoService(resolver, ledger, session)
        service.refresh()
        error = service.validate()
        plan = service.pending()
    """

    def __init__(
        self,
        resolver: MigrationResolver,
        ledger: MetadataLedger,
        session: Session,
        target: MigrationVersion = LATEST,
        out_of_order: bool = False,
        pending_or_future: bool = False
    ):
        self.resolver = resolver
        self.ledger = ledger
        self.session = session
        self.target = MigrationVersion.parse(target)
        self.out_of_order = out_of_order
        self.pending_or_future = pending_or_future

        self._infos: List[MigrationInfo] = []
        self._duplicates: List[MigrationVersion] = []
        self.context: Optional[MigrationContext] = None

    def refresh(self) -> 'MigrationInfoService':
        """
        Re-read both sources and rebuild the classified view.

        Raises:
            ResolutionError: Propagated from the resolver
        """
        resolved_list = self.resolver.resolve_migrations()
        applied_list = self.ledger.applied_migrations(self.session)

        resolved: Dict[MigrationVersion, ResolvedMigration] = {}
        duplicates: Set[MigrationVersion] = set()
        for migration in resolved_list:
            if migration.version in resolved:
                duplicates.add(migration.version)
                continue
            resolved[migration.version] = migration

        applied: Dict[MigrationVersion, AppliedMigration] = {}
        for row in applied_list:
            if row.version in applied:
                # Unique constraint makes this unreachable on a sane ledger
                logger.warning(
                    'Ledger contains more than one row for version %s', row.version
                )
                continue
            applied[row.version] = row

        baseline = EMPTY
        for row in applied.values():
            if row.type.is_synthetic:
                baseline = max_version(baseline, row.version)

        self.context = MigrationContext(
            target=self.target,
            baseline=baseline,
            last_resolved=max_version(*resolved.keys()),
            last_applied=max_version(*applied.keys()),
        )

        infos = []
        for version in sorted(set(resolved) | set(applied)):
            r = resolved.get(version)
            a = applied.get(version)
            infos.append(MigrationInfo(r, a, classify(r, a, self.context)))

        self._infos = infos
        self._duplicates = sorted(duplicates)

        logger.debug(
            'Reconciled %d resolved and %d applied migration(s) into %d entries',
            len(resolved_list),
            len(applied_list),
            len(infos)
        )
        return self

    def all(self) -> List[MigrationInfo]:
        """Every known version, sorted ascending."""
        return list(self._infos)

    def applied(self) -> List[MigrationInfo]:
        """Entries with a ledger row."""
        return [info for info in self._infos if info.applied is not None]

    def current(self) -> Optional[MigrationInfo]:
        """The applied entry with the highest version, if any."""
        applied = self.applied()
        return applied[-1] if applied else None

    def pending(self) -> List[MigrationInfo]:
        """
        Execution plan in ascending version order.

        Contains PENDING entries, plus OUT_OF_ORDER entries when
        out_of_order is enabled. Stops at the first FAILED entry.
        """
        plan = []
        for info in self._infos:
            if info.state is MigrationState.FAILED:
                break
            if info.state is MigrationState.PENDING:
                plan.append(info)
            elif info.state is MigrationState.OUT_OF_ORDER and self.out_of_order:
                plan.append(info)
        return plan

    def validate(self) -> Optional[str]:
        """
        First inconsistency between sources and ledger, or None.

        Checked in priority order: checksum mismatch, missing/future
        migrations (unless pending_or_future), failed migrations,
        duplicate resolved versions, out-of-order migrations (unless
        out_of_order).
        """
        for info in self._infos:
            if info.resolved is None or info.applied is None:
                continue
            if info.state is MigrationState.BASELINE:
                continue
            if info.resolved.checksum != info.applied.checksum:
                return (
                    f"Migration checksum mismatch for migration {info.version}: "
                    f"applied to database = {info.applied.checksum}, "
                    f"resolved locally = {info.resolved.checksum}"
                )

        if not self.pending_or_future:
            for info in self._infos:
                if info.state in (MigrationState.MISSING, MigrationState.FUTURE):
                    return (
                        f"Detected applied migration not resolved locally: "
                        f"{info.version}"
                    )

        for info in self._infos:
            if info.state is MigrationState.FAILED:
                return (
                    f"Detected failed migration to version {info.version} "
                    f"({info.description})"
                )

        if self._duplicates:
            return (
                f"Found more than one migration with version "
                f"{self._duplicates[0]}"
            )

        if not self.out_of_order:
            for info in self._infos:
                if info.state is MigrationState.OUT_OF_ORDER:
                    return (
                        f"Detected resolved migration not applied to database, "
                        f"out of order: {info.version} (highest applied "
                        f"version is {self.context.last_applied})"
                    )

        return None
