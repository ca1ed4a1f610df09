"""
Unit tests for lifecycle callbacks.

Tests cover:
- Registration order
- Missing extension points
- Per-hook transactions
- Failure propagation
"""

import pytest
from sqlalchemy import text

from waypoint import Callback, CallbackHost, FunctionCallback, HookError
from waypoint.callbacks import EXTENSION_POINTS


class TestCallbackHost:
    """Test firing extension points."""

    def test_no_callbacks_is_noop(self, user_session):
        host = CallbackHost()

        host.fire('before_migrate', user_session)

        assert len(host) == 0

    def test_fires_in_registration_order(self, user_session, events, recording_callback):
        host = CallbackHost([recording_callback('a', events)])
        host.register(recording_callback('b', events))

        host.fire('before_validate', user_session)
        host.fire('after_validate', user_session)

        assert events == [
            ('a', 'before_validate'),
            ('b', 'before_validate'),
            ('a', 'after_validate'),
            ('b', 'after_validate'),
        ]

    def test_missing_method_skipped(self, user_session, events, recording_callback):
        host = CallbackHost([object(), recording_callback('a', events)])

        host.fire('before_info', user_session)
        host.fire('before_migrate', user_session)

        assert events == [('a', 'before_migrate')]

    def test_unknown_point_rejected(self, user_session):
        with pytest.raises(ValueError, match="Unknown extension point"):
            CallbackHost().fire('before_everything', user_session)

    def test_failure_aborts_remaining_hooks(self, user_session, events, recording_callback):
        def explode(session):
            raise RuntimeError("hook broke")

        failing = FunctionCallback(name='failing', before_migrate=explode)
        host = CallbackHost([failing, recording_callback('after', events)])

        with pytest.raises(HookError, match="hook broke") as exc_info:
            host.fire('before_migrate', user_session)

        assert exc_info.value.hook is failing
        assert exc_info.value.point == 'before_migrate'
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert events == []

    def test_each_hook_commits(self, user_session, session_factory):
        def create(session):
            session.execute(text("CREATE TABLE audit (event TEXT)"))

        def record(session):
            session.execute(text("INSERT INTO audit VALUES ('migrated')"))

        host = CallbackHost([FunctionCallback(before_migrate=create, after_migrate=record)])
        host.fire('before_migrate', user_session)
        host.fire('after_migrate', user_session)

        with session_factory() as other:
            assert other.execute(text("SELECT event FROM audit")).scalar() == 'migrated'

    def test_failed_hook_rolls_back(self, user_session):
        user_session.execute(text("CREATE TABLE audit (event TEXT)"))
        user_session.commit()

        def insert_then_fail(session):
            session.execute(text("INSERT INTO audit VALUES ('partial')"))
            raise RuntimeError("after write")

        host = CallbackHost([FunctionCallback(after_migrate=insert_then_fail)])
        with pytest.raises(HookError):
            host.fire('after_migrate', user_session)

        assert user_session.execute(text("SELECT COUNT(*) FROM audit")).scalar() == 0

    def test_each_migrate_receives_info(self, user_session, events, recording_callback):
        class Info:
            version = '7'

        host = CallbackHost([recording_callback('a', events)])
        host.fire('before_each_migrate', user_session, Info())

        assert events == [('a', 'before_each_migrate', '7')]


class TestCallbackTypes:
    """Test the provided callback helpers."""

    def test_base_callback_is_noop(self, user_session):
        CallbackHost([Callback()]).fire('after_baseline', user_session)

    def test_function_callback_rejects_unknown_points(self):
        with pytest.raises(ValueError, match="before_lunch"):
            FunctionCallback(before_lunch=lambda session: None)

    def test_subclass_overrides_single_point(self, user_session):
        seen = []

        class AuditCallback(Callback):
            def after_each_migrate(self, session, info):
                seen.append(info)

        host = CallbackHost([AuditCallback()])
        for point in EXTENSION_POINTS:
            if point.endswith('each_migrate'):
                host.fire(point, user_session, 'v1')
            else:
                host.fire(point, user_session)

        assert seen == ['v1']
