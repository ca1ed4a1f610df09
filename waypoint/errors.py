#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Exception hierarchy for migration processing.

Every error raised by waypoint derives from WaypointError so callers
can catch a single type, while the subclasses let a CLI or service
render each failure kind differently.
"""
from typing import Optional


class WaypointError(Exception):
    """Base exception for all migration failures."""
    pass


class ResolutionError(WaypointError):
    """Migration sources are malformed or conflicting (e.g. duplicate versions)."""
    pass


class ValidationError(WaypointError):
    """Reconciliation found the ledger and the resolved migrations inconsistent."""
    pass


class ExecutionError(WaypointError):
    """
    A single migration unit failed to apply.

    Attributes:
        version: Version of the failing migration, when known
    """

    def __init__(self, message: str, version: Optional[str] = None):
        super().__init__(message)
        self.version = version


class HookError(WaypointError):
    """
    A lifecycle callback failed.

    Attributes:
        hook: The callback object that raised
        point: Extension point being fired (e.g. 'before_migrate')
    """

    def __init__(self, message: str, hook=None, point: Optional[str] = None):
        super().__init__(message)
        self.hook = hook
        self.point = point
