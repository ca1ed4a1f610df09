#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SQLAlchemy ORM model for the migration ledger
==============================================

Defines the schema_version table using SQLAlchemy 2.0 ORM with type hints.
One row per migration attempt; the version column is unique so a version
can never be recorded twice.

Usage:
    from waypoint.models import SchemaVersion

    with Session(engine) as session:
        SchemaVersion.__table__.create(session.connection(), checkfirst=True)
        rows = session.execute(
            select(SchemaVersion).order_by(SchemaVersion.installed_rank)
        ).scalars().all()
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for waypoint ORM models."""
    pass


class SchemaVersion(Base):
    """
    Ledger of applied migrations.

    installed_rank reflects application order, which differs from version
    order when migrations are applied out of order.
    """
    __tablename__ = 'schema_version'

    installed_rank: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=False,
        comment="Application sequence number"
    )

    version: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="Migration version (e.g. '1.2')"
    )

    description: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Migration description"
    )

    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="SQL, SHELL, PYTHON or BASELINE"
    )

    script: Mapped[str] = mapped_column(
        String(1000),
        nullable=False,
        comment="Script name or code location"
    )

    checksum: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="CRC32 of the script at time of application"
    )

    installed_by: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="User or system that applied the migration"
    )

    installed_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.current_timestamp(),
        comment="When the migration attempt started"
    )

    execution_time: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Execution time in milliseconds"
    )

    success: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        comment="Whether the migration completed"
    )

    __table_args__ = (
        Index('idx_schema_version_success', 'success'),
    )

    def __repr__(self) -> str:
        return (
            f"<SchemaVersion(rank={self.installed_rank}, "
            f"version={self.version}, success={self.success})>"
        )
