"""
State machine over (connectivity status, monitoring status).

Each action has a precondition on the current record and an immediate
effect producing the next record. Neither touches any store.
"""
import datetime
from typing import Callable, Dict, Optional

from fleetctl.core.actions import Action
from fleetctl.core.asset_state import Asset, ConnectivityStatus, MonitoringStatus
from fleetctl.utils import utc_now

Clock = Callable[[], datetime.datetime]


def precondition_failure(asset: Asset, action: Action) -> Optional[str]:
    """
    Checks the transition precondition for an action.

    :return: A user-facing reason when the action is not valid for the
             asset's current state, otherwise None
    """
    connectivity = asset.connectivity_status
    monitoring = asset.monitoring_status

    if action == Action.PAUSE and monitoring != MonitoringStatus.MONITORING:
        return f"Cannot pause: monitoring is {monitoring.value}, not monitoring."
    if action == Action.RESUME and monitoring != MonitoringStatus.PAUSED:
        return f"Cannot resume: monitoring is {monitoring.value}, not paused."
    if action == Action.STOP and connectivity in (ConnectivityStatus.OFFLINE, ConnectivityStatus.STOPPING):
        return f"Cannot stop: agent is already {connectivity.value}."
    if action == Action.FORCE_STOP and connectivity == ConnectivityStatus.OFFLINE:
        return "Cannot force stop: agent is already offline."
    return None


def _pause(asset: Asset, clock: Clock) -> Asset:
    return asset.with_status(monitoring=MonitoringStatus.PAUSED)


def _resume(asset: Asset, clock: Clock) -> Asset:
    return asset.with_status(ConnectivityStatus.ONLINE, MonitoringStatus.MONITORING)


def _restart(asset: Asset, clock: Clock) -> Asset:
    return asset.with_status(ConnectivityStatus.ONLINE, MonitoringStatus.MONITORING, last_seen=clock())


def _stop(asset: Asset, clock: Clock) -> Asset:
    return asset.with_status(ConnectivityStatus.STOPPING, MonitoringStatus.STOPPED)


def _take_offline(asset: Asset, clock: Clock) -> Asset:
    return asset.with_status(ConnectivityStatus.OFFLINE, MonitoringStatus.STOPPED)


def _unchanged(asset: Asset, clock: Clock) -> Asset:
    return asset


_EFFECTS: Dict[Action, Callable[[Asset, Clock], Asset]] = {
    Action.PAUSE: _pause,
    Action.RESUME: _resume,
    Action.RESTART: _restart,
    Action.STOP: _stop,
    Action.FORCE_STOP: _take_offline,
    Action.UNINSTALL: _take_offline,
    Action.UPDATE_CONFIG: _unchanged,
    Action.VIEW_LOGS: _unchanged,
}


def apply_immediate(asset: Asset, action: Action, clock: Clock = utc_now) -> Asset:
    """
    Produces the record resulting from an action's immediate effect.

    Callers check :func:`precondition_failure` first.
    """
    return _EFFECTS[action](asset, clock)


def converge_offline(asset: Asset) -> Optional[Asset]:
    """
    Delayed step of a graceful stop. Only a record still in ``stopping``
    converges; anything else means a newer transition already landed.
    """
    if asset.connectivity_status != ConnectivityStatus.STOPPING:
        return None
    return asset.with_status(ConnectivityStatus.OFFLINE, MonitoringStatus.STOPPED)
