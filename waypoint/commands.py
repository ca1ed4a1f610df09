#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Commands: validate, migrate, info and baseline.

Every command follows the same lifecycle:

    before_* callbacks -> core operation -> after_* callbacks

Callbacks run on the user-objects session, the core operation on the
metadata session, and each step is its own transaction so a failure in
one step never leaves another half-committed. Both sessions are owned
by the caller; commands never close them.
"""
import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from .callbacks import CallbackHost
from .errors import ExecutionError, ValidationError
from .info import MigrationInfo, MigrationInfoService, MigrationState
from .ledger import MetadataLedger
from .resolver import MigrationResolver
from .transaction import StopWatch, format_duration, transactional
from .version import LATEST, MigrationVersion

logger = logging.getLogger(__name__)


class _Command:
    """Shared wiring for all commands."""

    def __init__(
        self,
        metadata_session: Session,
        user_session: Session,
        ledger: MetadataLedger,
        resolver: MigrationResolver,
        callbacks: Optional[CallbackHost] = None
    ):
        self.metadata_session = metadata_session
        self.user_session = user_session
        self.ledger = ledger
        self.resolver = resolver
        self.callbacks = callbacks if callbacks is not None else CallbackHost()

    def _info_service(self, target, out_of_order, pending_or_future) -> MigrationInfoService:
        return MigrationInfoService(
            self.resolver,
            self.ledger,
            self.metadata_session,
            target=target,
            out_of_order=out_of_order,
            pending_or_future=pending_or_future,
        )


class DbValidate(_Command):
    """
    Validates the applied migrations against the available ones.

    Example:
        error = DbValidate(meta, user, ledger, resolver).validate()
        if error:
            print(f"Validation failed: {error}")
    """

    def __init__(
        self,
        metadata_session: Session,
        user_session: Session,
        ledger: MetadataLedger,
        resolver: MigrationResolver,
        callbacks: Optional[CallbackHost] = None,
        target: MigrationVersion = LATEST,
        out_of_order: bool = False,
        pending_or_future: bool = False
    ):
        super().__init__(metadata_session, user_session, ledger, resolver, callbacks)
        self.target = target
        self.out_of_order = out_of_order
        self.pending_or_future = pending_or_future

    def validate(self) -> Optional[str]:
        """
        Run the validation.

        Returns:
            The validation error message, or None when consistent. Deciding
            whether a message is fatal is left to the caller.

        Raises:
            ResolutionError: If migrations cannot be resolved
            HookError: If a callback fails
        """
        self.callbacks.fire('before_validate', self.user_session)

        logger.debug('Validating migrations ...')
        stop_watch = StopWatch().start()

        with transactional(self.metadata_session):
            service = self._info_service(
                self.target, self.out_of_order, self.pending_or_future
            ).refresh()
            count = len(service.all())
            validation_error = service.validate()

        elapsed = stop_watch.stop()

        if count == 1:
            logger.info(
                'Validated 1 migration (execution time %s)', format_duration(elapsed)
            )
        else:
            logger.info(
                'Validated %d migrations (execution time %s)',
                count,
                format_duration(elapsed)
            )

        self.callbacks.fire('after_validate', self.user_session)

        return validation_error


class DbMigrate(_Command):
    """
    Applies pending migrations in ascending version order.

    Migrations run strictly one at a time. For each one a ledger row is
    written before execution and finalized afterwards, so a failed run
    leaves every prior success recorded, the failure recorded as failed,
    and nothing beyond it attempted.

    Example:
        applied = DbMigrate(meta, user, ledger, resolver).migrate()
    """

    def __init__(
        self,
        metadata_session: Session,
        user_session: Session,
        ledger: MetadataLedger,
        resolver: MigrationResolver,
        callbacks: Optional[CallbackHost] = None,
        target: MigrationVersion = LATEST,
        out_of_order: bool = False,
        pending_or_future: bool = False
    ):
        super().__init__(metadata_session, user_session, ledger, resolver, callbacks)
        self.target = target
        self.out_of_order = out_of_order
        self.pending_or_future = pending_or_future

    def migrate(self) -> int:
        """
        Validate, then execute the plan.

        Returns:
            Number of migrations successfully applied

        Raises:
            ValidationError: If reconciliation reports any inconsistency
            ExecutionError: If a migration fails (ledger row finalized as failed)
            HookError: If a callback fails
        """
        self.callbacks.fire('before_migrate', self.user_session)

        stop_watch = StopWatch().start()

        with transactional(self.metadata_session):
            self.ledger.ensure_table(self.metadata_session)
            service = self._info_service(
                self.target, self.out_of_order, self.pending_or_future
            ).refresh()
            validation_error = service.validate()
            plan = service.pending()
            current = service.current()

        if validation_error:
            logger.error('Validate failed. %s', validation_error)
            raise ValidationError(f"Validate failed. {validation_error}")

        logger.info(
            'Current version of schema: %s',
            current.version if current is not None else '<< Empty Schema >>'
        )

        applied = 0
        for info in plan:
            self._apply(info)
            applied += 1

        elapsed = stop_watch.stop()
        self._log_summary(applied, elapsed)

        self.callbacks.fire('after_migrate', self.user_session)

        return applied

    def _apply(self, info: MigrationInfo) -> None:
        migration = info.resolved
        executor = migration.executor

        if info.state is MigrationState.OUT_OF_ORDER:
            logger.info(
                'Migrating schema to version %s - %s [out of order]',
                migration.version,
                migration.description
            )
        else:
            logger.info(
                'Migrating schema to version %s - %s',
                migration.version,
                migration.description
            )

        self.callbacks.fire('before_each_migrate', self.user_session, info)

        with transactional(self.metadata_session):
            rank = self.ledger.record_attempt(self.metadata_session, migration)

        stop_watch = StopWatch().start()
        try:
            if executor.executes_in_own_transaction():
                with transactional(self.user_session):
                    executor.execute(self.user_session)
            else:
                executor.execute(self.user_session)
        except Exception as e:
            execution_time = stop_watch.stop()
            with transactional(self.metadata_session):
                self.ledger.finalize(
                    self.metadata_session, rank, False, execution_time
                )
            logger.error(
                'Migration of schema to version %s failed! %s',
                migration.version,
                e
            )
            if isinstance(e, ExecutionError):
                if e.version is None:
                    e.version = str(migration.version)
                raise
            raise ExecutionError(
                f"Migration {migration.script} failed: {e}",
                version=str(migration.version)
            ) from e

        execution_time = stop_watch.stop()
        with transactional(self.metadata_session):
            self.ledger.finalize(self.metadata_session, rank, True, execution_time)

        self.callbacks.fire('after_each_migrate', self.user_session, info)

    @staticmethod
    def _log_summary(applied: int, elapsed: int) -> None:
        if applied == 0:
            logger.info('Schema is up to date. No migration necessary.')
        elif applied == 1:
            logger.info(
                'Successfully applied 1 migration (execution time %s)',
                format_duration(elapsed)
            )
        else:
            logger.info(
                'Successfully applied %d migrations (execution time %s)',
                applied,
                format_duration(elapsed)
            )


class DbInfo(_Command):
    """Reports the reconciled state of every migration."""

    def __init__(
        self,
        metadata_session: Session,
        user_session: Session,
        ledger: MetadataLedger,
        resolver: MigrationResolver,
        callbacks: Optional[CallbackHost] = None,
        target: MigrationVersion = LATEST,
        out_of_order: bool = False,
        pending_or_future: bool = True
    ):
        super().__init__(metadata_session, user_session, ledger, resolver, callbacks)
        self.target = target
        self.out_of_order = out_of_order
        self.pending_or_future = pending_or_future

    def info(self) -> MigrationInfoService:
        self.callbacks.fire('before_info', self.user_session)

        with transactional(self.metadata_session):
            service = self._info_service(
                self.target, self.out_of_order, self.pending_or_future
            ).refresh()

        self.callbacks.fire('after_info', self.user_session)
        return service


class DbBaseline(_Command):
    """Marks an existing schema as being at a given version."""

    def __init__(
        self,
        metadata_session: Session,
        user_session: Session,
        ledger: MetadataLedger,
        resolver: MigrationResolver,
        callbacks: Optional[CallbackHost] = None,
        baseline_version: MigrationVersion = MigrationVersion('1'),
        baseline_description: str = '<< Baseline >>'
    ):
        super().__init__(metadata_session, user_session, ledger, resolver, callbacks)
        self.baseline_version = MigrationVersion.parse(baseline_version)
        self.baseline_description = baseline_description

    def baseline(self) -> None:
        """
        Write the BASELINE row.

        Raises:
            ValidationError: If the ledger already has rows or the version
                is a sentinel
            HookError: If a callback fails
        """
        if self.baseline_version.is_latest or self.baseline_version.is_empty:
            raise ValidationError(
                f"Invalid baseline version: {self.baseline_version}"
            )

        self.callbacks.fire('before_baseline', self.user_session)

        with transactional(self.metadata_session):
            self.ledger.ensure_table(self.metadata_session)
            self.ledger.record_baseline(
                self.metadata_session,
                self.baseline_version,
                self.baseline_description
            )

        logger.info('Schema baselined with version: %s', self.baseline_version)

        self.callbacks.fire('after_baseline', self.user_session)


INFO_COLUMNS = ('Version', 'Description', 'Installed on', 'State')


def format_info_table(infos: Sequence[MigrationInfo]) -> str:
    """
    Render migration infos as an ASCII table.

    Example:
        +---------+-------------+---------------------+---------+
        | Version | Description | Installed on        | State   |
        +---------+-------------+---------------------+---------+
        | 1       | init        | 2025-11-24 10:00:00 | Success |
        +---------+-------------+---------------------+---------+
    """
    rows: List[tuple] = []
    for info in infos:
        installed_on = (
            info.installed_on.strftime('%Y-%m-%d %H:%M:%S')
            if info.installed_on is not None else ''
        )
        rows.append((
            str(info.version), info.description, installed_on, info.state.value
        ))

    if not rows:
        rows.append(('No migrations found', '', '', ''))

    widths = [
        max(len(INFO_COLUMNS[i]), *(len(row[i]) for row in rows))
        for i in range(len(INFO_COLUMNS))
    ]
    border = '+' + '+'.join('-' * (w + 2) for w in widths) + '+'

    def line(values):
        return '| ' + ' | '.join(v.ljust(w) for v, w in zip(values, widths)) + ' |'

    return '\n'.join([border, line(INFO_COLUMNS), border] +
                     [line(row) for row in rows] + [border])
