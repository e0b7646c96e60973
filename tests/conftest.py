"""Pytest configuration for fleetctl."""
import pytest

from fleetctl.core import ActionExecutor, Actor, Asset, AssetStore, ConvergenceScheduler
from fleetctl.registry import InMemoryRegistry


class FakeTimer:
    """Stands in for threading.Timer; runs only when fired by the test."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def join(self, timeout=None):
        pass

    def fire(self):
        if self.started and not self.cancelled and not self.fired:
            self.fired = True
            self.function()


class FakeTimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        return [t for t in self.timers if t.started and not t.cancelled and not t.fired]

    def fire_all(self):
        while self.live:
            for timer in self.live:
                timer.fire()


def _record(asset_id, status="online", monitoring="monitoring", **overrides):
    permissions = {
        "canPause": True,
        "canStop": True,
        "canRestart": True,
        "canUninstall": True,
        "canViewLogs": True,
        "canUpdateConfig": True,
    }
    permissions.update(overrides.pop("permissions", {}))
    record = {
        "id": asset_id,
        "name": f"host-{asset_id}",
        "status": status,
        "monitoringStatus": monitoring,
        "permissions": permissions,
        "lastSeen": "2024-01-15T10:30:00Z",
    }
    record.update(overrides)
    return record


@pytest.fixture
def make_record():
    return _record


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def registry():
    return InMemoryRegistry()


@pytest.fixture
def store():
    return AssetStore()


@pytest.fixture
def scheduler(timers):
    return ConvergenceScheduler(timer_factory=timers)


@pytest.fixture
def executor(store, registry, scheduler):
    return ActionExecutor(store, registry, scheduler)


@pytest.fixture
def add_asset(store):
    def add(asset_id, status="online", monitoring="monitoring", **overrides):
        asset = Asset.from_dict(_record(asset_id, status, monitoring, **overrides))
        store.put(asset)
        return asset
    return add


@pytest.fixture
def viewer():
    return Actor(can_view_assets=True, name="viewer")


@pytest.fixture
def operator():
    return Actor(can_view_assets=True, can_control_agents=True, name="operator")


@pytest.fixture
def admin():
    return Actor(can_view_assets=True, can_control_agents=True, can_admin_system=True, name="admin")
