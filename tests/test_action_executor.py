"""
Tests for ActionExecutor: the two gates, immediate effects, delayed
convergence and registry reporting.
"""
import datetime
from unittest.mock import MagicMock

import pytest

from fleetctl.config import ConfigManager
from fleetctl.core import (Action, ActionExecutor, Actor, Applied, Asset, ConnectivityStatus, Denied,
                           MonitoringStatus, PreconditionFailed, UnknownAsset)


def _status(asset):
    return asset.connectivity_status, asset.monitoring_status


ONLINE_MONITORING = (ConnectivityStatus.ONLINE, MonitoringStatus.MONITORING)


@pytest.mark.parametrize("action, status, monitoring", [
    (Action.PAUSE, "online", "stopped"),
    (Action.PAUSE, "paused", "paused"),
    (Action.RESUME, "online", "monitoring"),
    (Action.STOP, "stopping", "stopped"),
    (Action.STOP, "offline", "stopped"),
    (Action.FORCE_STOP, "offline", "stopped"),
])
def test_precondition_failure_leaves_asset_unchanged(executor, store, registry, timers, add_asset, admin,
                                                     action, status, monitoring):
    before = add_asset("a1", status=status, monitoring=monitoring)
    revision = store.revision("a1")

    outcome = executor.execute(admin, "a1", action)

    assert isinstance(outcome, PreconditionFailed)
    assert outcome.reason
    assert store.get("a1") == before
    assert store.revision("a1") == revision
    assert registry.get("a1") is None
    assert timers.live == []


def test_pause_denied_without_control_capability(executor, add_asset, viewer):
    add_asset("a1")
    outcome = executor.execute(viewer, "a1", Action.PAUSE)
    assert isinstance(outcome, Denied)
    assert "control" in outcome.reason


def test_authorization_is_checked_before_precondition(executor, add_asset, viewer):
    """An unauthorized request on an invalid state is reported as Denied."""
    add_asset("a1", monitoring="stopped")
    assert isinstance(executor.execute(viewer, "a1", Action.PAUSE), Denied)


def test_uninstall_denied_for_control_only_actor(executor, add_asset, operator):
    add_asset("a1")
    outcome = executor.execute(operator, "a1", Action.UNINSTALL)
    assert isinstance(outcome, Denied)
    assert "administration" in outcome.reason


def test_force_stop_denied_for_control_only_actor(executor, add_asset, operator):
    add_asset("a1")
    assert isinstance(executor.execute(operator, "a1", Action.FORCE_STOP), Denied)


def test_asset_flag_denies_even_an_admin(executor, add_asset, admin):
    add_asset("a1", permissions={"canStop": False})
    outcome = executor.execute(admin, "a1", Action.STOP)
    assert isinstance(outcome, Denied)
    assert "can_stop" in outcome.reason


def test_pause_then_resume(executor, store, add_asset, operator):
    add_asset("a1")

    paused = executor.execute(operator, "a1", Action.PAUSE)
    assert isinstance(paused, Applied)
    assert _status(paused.asset) == (ConnectivityStatus.ONLINE, MonitoringStatus.PAUSED)

    resumed = executor.execute(operator, "a1", "resume")
    assert _status(resumed.asset) == ONLINE_MONITORING
    assert _status(store.get("a1")) == ONLINE_MONITORING


def test_resume_requires_paused_monitoring(executor, add_asset, operator):
    add_asset("a1")
    assert isinstance(executor.execute(operator, "a1", Action.RESUME), PreconditionFailed)


def test_restart_twice_ends_online_monitoring(executor, add_asset, operator):
    add_asset("a1", status="error", monitoring="stopped")
    executor.execute(operator, "a1", Action.RESTART)
    outcome = executor.execute(operator, "a1", Action.RESTART)
    assert isinstance(outcome, Applied)
    assert _status(outcome.asset) == ONLINE_MONITORING


def test_restart_stamps_last_seen(store, registry, scheduler, add_asset, operator):
    now = datetime.datetime(2025, 3, 1, 12, 0, tzinfo=datetime.timezone.utc)
    executor = ActionExecutor(store, registry, scheduler, clock=lambda: now)
    add_asset("a1")

    outcome = executor.execute(operator, "a1", Action.RESTART)

    assert outcome.asset.last_seen == now
    assert registry.get("a1")["lastSeen"] == now.isoformat()


def test_stop_converges_to_offline_after_delay(executor, store, registry, timers, add_asset, operator):
    """A control-only actor stops an asset; it goes stopping, then offline."""
    add_asset("a1")

    outcome = executor.execute(operator, "a1", Action.STOP)

    assert isinstance(outcome, Applied)
    assert outcome.confirmation_required is True
    assert _status(outcome.asset) == (ConnectivityStatus.STOPPING, MonitoringStatus.STOPPED)
    assert len(timers.live) == 1
    assert timers.live[0].interval == 3.0

    timers.fire_all()

    assert _status(store.get("a1")) == (ConnectivityStatus.OFFLINE, MonitoringStatus.STOPPED)
    assert registry.get("a1")["status"] == "offline"


def test_stop_then_restart_before_convergence_stays_online(executor, store, timers, add_asset, operator):
    add_asset("a1")
    executor.execute(operator, "a1", Action.STOP)
    stop_timer = timers.live[0]

    executor.execute(operator, "a1", Action.RESTART)
    assert stop_timer.cancelled

    # Even a timer that slipped past cancellation must not apply.
    stop_timer.cancelled = False
    stop_timer.fire()

    assert _status(store.get("a1")) == ONLINE_MONITORING


def test_snapshot_after_stop_makes_convergence_stale(executor, store, timers, add_asset, make_record, operator):
    add_asset("a1")
    executor.execute(operator, "a1", Action.STOP)
    store.upsert_snapshot(Asset.from_dict(make_record("a1")))

    timers.fire_all()

    assert _status(store.get("a1")) == ONLINE_MONITORING


def test_heartbeat_during_stop_window_keeps_convergence(executor, store, timers, add_asset, make_record,
                                                        operator):
    """A snapshot echoing the 'stopping' state back must not cancel the offline step."""
    add_asset("a1")
    executor.execute(operator, "a1", Action.STOP)
    store.upsert_snapshot(Asset.from_dict(make_record("a1", status="stopping", monitoring="stopped",
                                                      metrics={"cpuUsage": 3})))

    timers.fire_all()

    assert _status(store.get("a1")) == (ConnectivityStatus.OFFLINE, MonitoringStatus.STOPPED)


def test_heartbeat_during_uninstall_still_signals_removal(executor, store, registry, timers, add_asset,
                                                          make_record, admin):
    add_asset("a1")
    executor.execute(admin, "a1", Action.UNINSTALL)
    store.upsert_snapshot(Asset.from_dict(make_record("a1", status="offline", monitoring="stopped")))

    timers.fire_all()

    assert registry.removed_ids == ["a1"]


def test_stop_rejected_while_stopping(executor, add_asset, operator):
    add_asset("a1", status="stopping", monitoring="stopped")
    assert isinstance(executor.execute(operator, "a1", Action.STOP), PreconditionFailed)


def test_force_stop_goes_offline_immediately(executor, timers, add_asset, admin):
    add_asset("a1")
    outcome = executor.execute(admin, "a1", Action.FORCE_STOP)
    assert _status(outcome.asset) == (ConnectivityStatus.OFFLINE, MonitoringStatus.STOPPED)
    assert timers.live == []


def test_force_stop_rejected_when_offline(executor, add_asset, admin):
    add_asset("a1", status="offline", monitoring="stopped")
    assert isinstance(executor.execute(admin, "a1", Action.FORCE_STOP), PreconditionFailed)


def test_uninstall_signals_removal_after_delay(executor, store, registry, timers, add_asset, admin):
    add_asset("a1")

    outcome = executor.execute(admin, "a1", Action.UNINSTALL)

    assert _status(outcome.asset) == (ConnectivityStatus.OFFLINE, MonitoringStatus.STOPPED)
    assert registry.removed_ids == []
    assert timers.live[0].interval == 1.0

    timers.fire_all()

    assert registry.removed_ids == ["a1"]
    assert "a1" in store


def test_uninstall_removal_superseded_by_restart(executor, registry, timers, add_asset, admin):
    add_asset("a1")
    executor.execute(admin, "a1", Action.UNINSTALL)
    executor.execute(admin, "a1", Action.RESTART)

    timers.fire_all()

    assert registry.removed_ids == []


def test_update_config_reports_empty_patch(executor, store, registry, add_asset, operator):
    before = add_asset("a1")
    outcome = executor.execute(operator, "a1", Action.UPDATE_CONFIG)
    assert isinstance(outcome, Applied)
    assert outcome.asset == before
    assert registry.get("a1") == {"id": "a1"}


def test_view_logs_needs_no_capability_and_reports_nothing(executor, registry, add_asset):
    add_asset("a1")
    outcome = executor.execute(Actor(), "a1", Action.VIEW_LOGS)
    assert isinstance(outcome, Applied)
    assert outcome.confirmation_required is False
    assert registry.get("a1") is None


def test_unknown_asset(executor, operator):
    outcome = executor.execute(operator, "missing", Action.PAUSE)
    assert isinstance(outcome, UnknownAsset)
    assert outcome.reason == "unknown asset"


def test_unknown_action_name_raises(executor, add_asset, operator):
    add_asset("a1")
    with pytest.raises(ValueError):
        executor.execute(operator, "a1", "reboot")


def test_registry_failure_keeps_local_state(store, scheduler, add_asset, operator):
    registry = MagicMock()
    registry.on_asset_changed.side_effect = RuntimeError("registry down")
    executor = ActionExecutor(store, registry, scheduler)
    add_asset("a1")

    outcome = executor.execute(operator, "a1", Action.PAUSE)

    assert isinstance(outcome, Applied)
    assert store.get("a1").monitoring_status == MonitoringStatus.PAUSED
    registry.on_asset_changed.assert_called_once_with("a1", {"monitoringStatus": "paused"})


def test_compensate_restores_previous_record(executor, store, registry, timers, add_asset, operator):
    before = add_asset("a1")
    executor.execute(operator, "a1", Action.STOP)

    restored = executor.compensate(before)

    assert restored == before
    assert store.get("a1") == before
    assert timers.live == []
    assert registry.get("a1")["status"] == "online"


def test_delays_read_from_config(tmp_path, store, registry, scheduler, timers, add_asset, operator):
    config_file = tmp_path / "console.json"
    config_file.write_text('{"console": {"config_version": 1}, "control": {"stop_convergence_delay_sec": 0.5}}')
    executor = ActionExecutor(store, registry, scheduler, ConfigManager(str(config_file)))
    add_asset("a1")

    executor.execute(operator, "a1", Action.STOP)

    assert timers.live[0].interval == 0.5
    assert executor.uninstall_removal_delay == 1.0


def test_missing_collaborators_rejected(store, registry, scheduler):
    with pytest.raises(ValueError):
        ActionExecutor(None, registry, scheduler)
    with pytest.raises(ValueError):
        ActionExecutor(store, None, scheduler)
    with pytest.raises(ValueError):
        ActionExecutor(store, registry, None)


def test_requires_confirmation():
    assert ActionExecutor.requires_confirmation(Action.STOP)
    assert ActionExecutor.requires_confirmation("force_stop")
    assert ActionExecutor.requires_confirmation(Action.UNINSTALL)
    assert not ActionExecutor.requires_confirmation(Action.PAUSE)
    assert not ActionExecutor.requires_confirmation(Action.RESTART)
