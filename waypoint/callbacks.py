"""
Lifecycle callbacks fired around waypoint commands.

A callback is any object exposing some of the extension point methods
below. Missing methods are no-ops, so a hook only implements the points
it cares about:

    before_validate(session)              after_validate(session)
    before_migrate(session)               after_migrate(session)
    before_each_migrate(session, info)    after_each_migrate(session, info)
    before_info(session)                  after_info(session)
    before_baseline(session)              after_baseline(session)

Each invocation runs in its own transaction on the user-objects session.
"""
import logging
from typing import Callable, Iterable, List, Optional

from sqlalchemy.orm import Session

from .errors import HookError
from .transaction import transactional

logger = logging.getLogger(__name__)

EXTENSION_POINTS = (
    'before_validate',
    'after_validate',
    'before_migrate',
    'after_migrate',
    'before_each_migrate',
    'after_each_migrate',
    'before_info',
    'after_info',
    'before_baseline',
    'after_baseline',
)


class Callback:
    """Base class with a no-op method for every extension point."""

    def before_validate(self, session: Session) -> None:
        pass

    def after_validate(self, session: Session) -> None:
        pass

    def before_migrate(self, session: Session) -> None:
        pass

    def after_migrate(self, session: Session) -> None:
        pass

    def before_each_migrate(self, session: Session, info) -> None:
        pass

    def after_each_migrate(self, session: Session, info) -> None:
        pass

    def before_info(self, session: Session) -> None:
        pass

    def after_info(self, session: Session) -> None:
        pass

    def before_baseline(self, session: Session) -> None:
        pass

    def after_baseline(self, session: Session) -> None:
        pass


class FunctionCallback:
    """
    Callback built from plain functions, one per extension point.

    Example:
        hook = FunctionCallback(
            before_migrate=lambda session: session.execute(text("SET lock_timeout = '5s'")),
        )
    """

    def __init__(self, name: Optional[str] = None, **points: Callable):
        unknown = sorted(set(points) - set(EXTENSION_POINTS))
        if unknown:
            raise ValueError(f"Unknown extension point(s): {', '.join(unknown)}")
        self.name = name or 'FunctionCallback'
        for point, func in points.items():
            setattr(self, point, func)

    def __repr__(self) -> str:
        return f"<{self.name}>"


class CallbackHost:
    """
    Ordered registry of callbacks.

    Hooks fire in registration order. The first failure rolls back that
    hook's transaction and aborts the remaining hooks by raising HookError.

    Attributes:
        callbacks: Registered hook objects
    """

    def __init__(self, callbacks: Iterable = ()):
        self.callbacks: List = list(callbacks)

    def register(self, callback) -> None:
        self.callbacks.append(callback)

    def __len__(self) -> int:
        return len(self.callbacks)

    def fire(self, point: str, session: Session, *args) -> None:
        """
        Invoke every hook's method for an extension point.

        Args:
            point: Extension point name (e.g. 'before_migrate')
            session: User-objects session; each hook gets its own transaction
            *args: Extra arguments (the MigrationInfo for *_each_migrate)

        Raises:
            ValueError: If point is not a known extension point
            HookError: If a hook raises
        """
        if point not in EXTENSION_POINTS:
            raise ValueError(f"Unknown extension point: {point}")

        for callback in self.callbacks:
            method = getattr(callback, point, None)
            if method is None:
                continue

            logger.debug('Executing callback %r.%s', callback, point)
            try:
                with transactional(session):
                    method(session, *args)
            except Exception as e:
                logger.error('Callback %r failed at %s: %s', callback, point, e)
                raise HookError(
                    f"Callback {callback!r} failed at {point}: {e}",
                    hook=callback,
                    point=point
                ) from e
