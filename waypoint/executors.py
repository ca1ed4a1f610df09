#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Migration executors.

A migration executor applies exactly one migration unit. The commands
never branch on the concrete executor type; they only ask two things:

- execute(session): apply the unit, raising ExecutionError on failure
- executes_in_own_transaction(): whether the command should wrap
  execute() in a dedicated transaction on the user-objects session

Strategies:
- SqlMigrationExecutor: SQL script executed statement by statement in-session
- ShellMigrationExecutor: external script/program run as a child process
- PythonMigrationExecutor: Python callable receiving the session
"""
import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import sqlparse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import ExecutionError


class MigrationExecutor(ABC):
    """Applies one migration unit against a database session."""

    @abstractmethod
    def execute(self, session: Session) -> None:
        """
        Apply the migration.

        Raises:
            ExecutionError: If the migration cannot complete
        """

    @abstractmethod
    def executes_in_own_transaction(self) -> bool:
        """
        Whether the unit runs as its own transaction step.

        True: the caller opens a transaction around execute() and commits
        it on success. False: the executor manages commits itself.
        """


def split_sql_statements(sql: str) -> List[str]:
    """Split SQL script into individual statements.

    Uses sqlparse so semicolons inside string literals and comments do not
    end a statement. Required for SQLite which can only execute one
    statement at a time. Comments are removed and statements consisting
    only of comments are dropped.

    Args:
        sql: SQL string with one or more statements

    Returns:
        List of individual statements (trailing semicolons removed)
    """
    statements = []
    for raw in sqlparse.split(sql):
        stripped = sqlparse.format(raw, strip_comments=True).strip()
        if not stripped:
            continue
        statements.append(stripped.rstrip(';').strip())
    return statements


class SqlMigrationExecutor(MigrationExecutor):
    """
    Executes a SQL script inside the session transaction.

    The script is read at execution time rather than held in memory,
    so resolving a large set of migrations stays cheap.

    Example:
        executor = SqlMigrationExecutor(path=Path('sql/V1__init.sql'))
        with transactional(session):
            executor.execute(session)
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        sql: Optional[str] = None,
        encoding: str = 'utf-8'
    ):
        if (path is None) == (sql is None):
            raise ValueError("Provide exactly one of 'path' or 'sql'")
        self.path = Path(path) if path is not None else None
        self.sql = sql
        self.encoding = encoding
        self.logger = logging.getLogger(__name__)

    def load(self) -> str:
        """Return the SQL script text."""
        if self.sql is not None:
            return self.sql
        return self.path.read_text(encoding=self.encoding)

    def execute(self, session: Session) -> None:
        try:
            script = self.load()
        except OSError as e:
            raise ExecutionError(
                f"Unable to read migration script {self.path}: {e}"
            ) from e

        statements = split_sql_statements(script)
        self.logger.debug(
            'Executing %d statement(s) from %s',
            len(statements),
            self.path or '<inline sql>'
        )

        for index, stmt in enumerate(statements, start=1):
            try:
                session.connection().exec_driver_sql(stmt)
            except SQLAlchemyError as e:
                self.logger.error(
                    'Statement %d failed: %s', index, stmt.splitlines()[0]
                )
                raise ExecutionError(
                    f"Migration statement {index} failed: {e}"
                ) from e

    def executes_in_own_transaction(self) -> bool:
        return True


@dataclass
class ProcessResult:
    """
    Result of a child process run.

    Attributes:
        exit_status: Process return code
        output_lines: Combined stdout/stderr lines in output order
    """
    exit_status: int
    output_lines: List[str] = field(default_factory=list)


def run_process(
    args: Sequence[str],
    on_line: Optional[Callable[[str], None]] = None,
    cwd: Optional[Union[str, Path]] = None
) -> ProcessResult:
    """
    Run a child process to completion with stderr merged into stdout.

    Output is read line by line and handed to on_line as it arrives,
    preserving order. Blocks until the process exits; no timeout.

    Raises:
        OSError: If the process cannot be spawned or its output read
    """
    lines = []
    with subprocess.Popen(
        list(args),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        cwd=cwd,
        text=True,
        errors='replace',
    ) as process:
        for raw in process.stdout:
            line = raw.rstrip('\r\n')
            lines.append(line)
            if on_line is not None:
                on_line(line)
        exit_status = process.wait()

    return ProcessResult(exit_status=exit_status, output_lines=lines)


class ShellMigrationExecutor(MigrationExecutor):
    """
    Runs a migration script or program as a child process.

    Each output line is forwarded to the log prefixed with '| '. Success
    is judged by exit status only.

    The database never manages the atomicity of what the process does,
    yet executes_in_own_transaction() reports True so the command treats
    the unit as one atomic step. A failing process may therefore leave
    partial effects behind even though the ledger records it as failed.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)

    def execute(self, session: Session) -> None:
        location = str(self.path.absolute())
        self.logger.info('Executing: %s', location)

        try:
            result = run_process(
                [location],
                on_line=lambda line: self.logger.info('| %s', line)
            )
        except OSError as e:
            self.logger.error('%s', e)
            raise ExecutionError('Unable to apply migration') from e

        if result.exit_status != 0:
            self.logger.error('Exit value: %d', result.exit_status)
            cause = subprocess.CalledProcessError(
                result.exit_status,
                location,
                output='\n'.join(result.output_lines)
            )
            raise ExecutionError('Unable to apply migration') from cause

    def executes_in_own_transaction(self) -> bool:
        return True


class PythonMigrationExecutor(MigrationExecutor):
    """
    Runs a Python callable as a migration.

    The callable receives the user-objects session and may execute any
    statements through it.

    Example:
        def migrate(session):
            session.execute(text("INSERT INTO settings VALUES ('a', 1)"))

        executor = PythonMigrationExecutor(migrate)
    """

    def __init__(self, func: Callable[[Session], None], in_transaction: bool = True):
        if not callable(func):
            raise TypeError(f"Migration callable expected, got {func!r}")
        self.func = func
        self.in_transaction = in_transaction

    def execute(self, session: Session) -> None:
        try:
            self.func(session)
        except ExecutionError:
            raise
        except Exception as e:
            raise ExecutionError(
                f"Migration {getattr(self.func, '__qualname__', self.func)} "
                f"failed: {e}"
            ) from e

    def executes_in_own_transaction(self) -> bool:
        return self.in_transaction
