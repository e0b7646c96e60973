"""
Tests for permission resolution and available actions.
"""
import pytest

from fleetctl.core import (Action, Actor, Asset, authorization_failure, available_actions,
                           can_perform, is_authorized)


def _asset(make_record, **kwargs):
    return Asset.from_dict(make_record("a1", **kwargs))


@pytest.mark.parametrize("action", [Action.PAUSE, Action.RESUME, Action.RESTART, Action.STOP,
                                    Action.UPDATE_CONFIG])
def test_control_actions_need_control_capability(make_record, viewer, operator, action):
    asset = _asset(make_record)
    assert not is_authorized(viewer, asset, action)
    assert is_authorized(operator, asset, action)


@pytest.mark.parametrize("action", [Action.FORCE_STOP, Action.UNINSTALL])
def test_admin_actions_need_admin_capability(make_record, operator, admin, action):
    asset = _asset(make_record)
    assert not is_authorized(operator, asset, action)
    assert is_authorized(admin, asset, action)


def test_admin_capability_alone_does_not_grant_control():
    """Capabilities are checked independently; nesting is a configuration concern."""
    actor = Actor(can_admin_system=True)
    asset = Asset(id="a1")
    assert not is_authorized(actor, asset, Action.PAUSE)


def test_view_logs_depends_only_on_asset_flag(make_record):
    allowed = _asset(make_record)
    blocked = _asset(make_record, permissions={"canViewLogs": False})
    assert is_authorized(Actor(), allowed, Action.VIEW_LOGS)
    assert not is_authorized(Actor(), blocked, Action.VIEW_LOGS)


def test_resume_uses_pause_flag(make_record, operator):
    asset = _asset(make_record, monitoring="paused", permissions={"canPause": False})
    reason = authorization_failure(operator, asset, Action.RESUME)
    assert reason is not None
    assert "can_pause" in reason


def test_can_perform_combines_both_gates(make_record, operator):
    stopped = _asset(make_record, monitoring="stopped")
    assert is_authorized(operator, stopped, Action.PAUSE)
    assert not can_perform(operator, stopped, Action.PAUSE)


def test_available_actions_for_operator_on_healthy_asset(make_record, operator):
    actions = available_actions(operator, _asset(make_record))
    assert actions == [Action.PAUSE, Action.RESTART, Action.STOP, Action.UPDATE_CONFIG, Action.VIEW_LOGS]


def test_available_actions_for_admin_on_offline_asset(admin):
    """Offline assets without explicit flags keep restart, uninstall and logs."""
    asset = Asset.from_dict({"id": "a1", "status": "offline"})
    actions = available_actions(admin, asset)
    assert actions == [Action.RESTART, Action.UNINSTALL, Action.VIEW_LOGS]


def test_available_actions_for_guest(make_record):
    assert available_actions(Actor.from_role("guest"), _asset(make_record)) == [Action.VIEW_LOGS]
