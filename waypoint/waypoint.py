#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
High-level entry point tying configuration, sessions and commands together.

Waypoint owns the SQLAlchemy engine and the two sessions it creates
(metadata and user objects) and closes them in close(). Embedders that
manage their own sessions can use the commands in waypoint.commands
directly instead.
"""
import logging
from typing import Iterable, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from .callbacks import CallbackHost
from .commands import DbBaseline, DbInfo, DbMigrate, DbValidate
from .config import WaypointConfig
from .info import MigrationInfoService
from .ledger import MetadataLedger
from .resolver import FilesystemResolver, MigrationResolver
from .transaction import enable_transactional_ddl


class Waypoint:
    """
    Database migration runner.

    Attributes:
        config: WaypointConfig in effect
        engine: SQLAlchemy engine
        resolver: Source of available migrations
        ledger: schema_version ledger
        callbacks: Lifecycle callback host

    Example:
        config = WaypointConfig(url='sqlite:///app.db', locations=['sql'])
        with Waypoint(config) as waypoint:
            waypoint.migrate()
    """

    def __init__(
        self,
        config: WaypointConfig,
        resolver: Optional[MigrationResolver] = None,
        callbacks: Optional[Iterable] = None
    ):
        """
        Args:
            config: Settings for this run
            resolver: Migration source (default: FilesystemResolver over
                config.locations)
            callbacks: Hook objects (default: those listed in config.callbacks)
        """
        self.logger = logging.getLogger(__name__)
        self.config = config

        self.engine = enable_transactional_ddl(
            create_engine(config.url, pool_pre_ping=True)
        )
        self.session_factory = sessionmaker(self.engine, expire_on_commit=False)

        self.resolver = resolver or FilesystemResolver(config.locations)
        self.ledger = MetadataLedger(installed_by=config.user)
        self.callbacks = CallbackHost(
            callbacks if callbacks is not None else config.load_callbacks()
        )

        self._metadata_session: Optional[Session] = None
        self._user_session: Optional[Session] = None

        self.logger.debug(
            'Waypoint initialized: %s (%d callback(s))',
            self.engine.url.render_as_string(hide_password=True),
            len(self.callbacks)
        )

    @property
    def metadata_session(self) -> Session:
        if self._metadata_session is None:
            self._metadata_session = self.session_factory()
        return self._metadata_session

    @property
    def user_session(self) -> Session:
        if self._user_session is None:
            self._user_session = self.session_factory()
        return self._user_session

    def _command_args(self):
        return (
            self.metadata_session,
            self.user_session,
            self.ledger,
            self.resolver,
            self.callbacks,
        )

    def validate(self) -> Optional[str]:
        """Validate applied migrations; returns the error message or None."""
        return DbValidate(
            *self._command_args(),
            target=self.config.target_version,
            out_of_order=self.config.out_of_order,
            pending_or_future=self.config.pending_or_future,
        ).validate()

    def migrate(self) -> int:
        """Apply all pending migrations; returns how many were applied."""
        return DbMigrate(
            *self._command_args(),
            target=self.config.target_version,
            out_of_order=self.config.out_of_order,
            pending_or_future=self.config.pending_or_future,
        ).migrate()

    def info(self) -> MigrationInfoService:
        """Reconciled state of every migration."""
        return DbInfo(
            *self._command_args(),
            target=self.config.target_version,
            out_of_order=self.config.out_of_order,
        ).info()

    def baseline(self) -> None:
        """Record the configured baseline version."""
        DbBaseline(
            *self._command_args(),
            baseline_version=self.config.baseline_version,
            baseline_description=self.config.baseline_description,
        ).baseline()

    def close(self) -> None:
        """Close the sessions created by this instance and dispose the engine.

        Safe to call multiple times.
        """
        for session in (self._metadata_session, self._user_session):
            if session is not None:
                session.close()
        self._metadata_session = None
        self._user_session = None
        self.engine.dispose()

    def __enter__(self) -> 'Waypoint':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
