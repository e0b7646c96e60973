"""
Canonical representation of operators and monitored endpoints.

Assets are immutable records: every accepted change produces a new record
via :func:`dataclasses.replace`, so a caller holding an ``Applied`` outcome
never sees it mutate underneath it.
"""
import datetime
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from fleetctl.utils import parse_timestamp, format_timestamp


class ConnectivityStatus(Enum):
    """
    Whether the asset is reachable and operating at all.

    States:
        ONLINE: Agent is connected and reporting
        OFFLINE: Agent is not reachable
        PAUSED: Agent reports itself as paused
        STOPPING: A graceful stop was requested and has not completed yet
        ERROR: Agent reports a fault
    """
    ONLINE = "online"
    OFFLINE = "offline"
    PAUSED = "paused"
    STOPPING = "stopping"
    ERROR = "error"


class MonitoringStatus(Enum):
    """
    Whether the asset's security monitoring is running, independent of connectivity.
    """
    MONITORING = "monitoring"
    PAUSED = "paused"
    STOPPED = "stopped"


# Role slugs mapped to (can_view_assets, can_control_agents, can_admin_system).
ROLE_CAPABILITIES: Dict[str, tuple] = {
    "system_admin": (True, True, True),
    "admin": (True, True, True),
    "security_analyst": (True, True, False),
    "manager": (True, True, False),
    "power_user": (True, True, False),
    "user": (True, False, False),
    "read_only": (True, False, False),
    "guest": (False, False, False),
}

ADMIN_PERMISSION_SLUGS = frozenset({"system.admin", "system.config", "system.maintenance"})
CONTROL_PERMISSION_SLUG = "agents.control"
VIEW_PERMISSION_SLUG = "agents.read"


def _flag(data: Mapping[str, Any], camel: str, snake: str, default: bool = False) -> bool:
    value = data.get(camel, data.get(snake, default))
    return bool(value)


@dataclass(frozen=True)
class Actor:
    """
    The operator performing an action.

    The capability tiers are expected to nest (admin implies control implies
    view) but that is a configuration concern and is not enforced here.
    """
    can_control_agents: bool = False
    can_admin_system: bool = False
    can_view_assets: bool = False
    name: str = "anonymous"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Actor':
        """Builds an actor from a session/user dict with camelCase or snake_case keys."""
        if not isinstance(data, Mapping):
            raise TypeError(f"Actor data must be a mapping, got {type(data).__name__}")
        return cls(
            can_control_agents=_flag(data, "canControlAgents", "can_control_agents"),
            can_admin_system=_flag(data, "canAdminSystem", "can_admin_system"),
            can_view_assets=_flag(data, "canViewAssets", "can_view_assets"),
            name=str(data.get("username") or data.get("name") or "anonymous"),
        )

    @classmethod
    def from_role(cls, role: str, name: Optional[str] = None) -> 'Actor':
        """
        Builds an actor from an RBAC role slug.

        :raises ValueError: If the role slug is unknown
        """
        slug = str(role).strip().lower()
        if slug not in ROLE_CAPABILITIES:
            raise ValueError(f"Unknown role '{role}'. Expected one of: {', '.join(ROLE_CAPABILITIES)}")
        can_view, can_control, can_admin = ROLE_CAPABILITIES[slug]
        return cls(
            can_control_agents=can_control,
            can_admin_system=can_admin,
            can_view_assets=can_view,
            name=name or slug,
        )

    @classmethod
    def from_permissions(cls, permissions: Iterable[str], name: str = "anonymous") -> 'Actor':
        """Derives capabilities from effective RBAC permission slugs."""
        slugs = set(permissions)
        return cls(
            can_control_agents=CONTROL_PERMISSION_SLUG in slugs,
            can_admin_system=bool(slugs & ADMIN_PERMISSION_SLUGS),
            can_view_assets=VIEW_PERMISSION_SLUG in slugs,
            name=name,
        )


@dataclass(frozen=True)
class AssetPermissions:
    """
    Per-asset flags describing whether the asset itself currently supports an action.
    """
    can_pause: bool = False
    can_stop: bool = False
    can_restart: bool = False
    can_uninstall: bool = False
    can_view_logs: bool = False
    can_update_config: bool = False

    @classmethod
    def for_status(cls, connectivity: ConnectivityStatus) -> 'AssetPermissions':
        """Default flags for an asset whose snapshot carried none."""
        reachable = connectivity != ConnectivityStatus.OFFLINE
        return cls(
            can_pause=reachable,
            can_stop=reachable,
            can_restart=True,
            can_uninstall=True,
            can_view_logs=True,
            can_update_config=reachable,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'AssetPermissions':
        return cls(
            can_pause=_flag(data, "canPause", "can_pause"),
            can_stop=_flag(data, "canStop", "can_stop"),
            can_restart=_flag(data, "canRestart", "can_restart"),
            can_uninstall=_flag(data, "canUninstall", "can_uninstall"),
            can_view_logs=_flag(data, "canViewLogs", "can_view_logs"),
            can_update_config=_flag(data, "canUpdateConfig", "can_update_config"),
        )

    def to_dict(self) -> Dict[str, bool]:
        return {
            "canPause": self.can_pause,
            "canStop": self.can_stop,
            "canRestart": self.can_restart,
            "canUninstall": self.can_uninstall,
            "canViewLogs": self.can_view_logs,
            "canUpdateConfig": self.can_update_config,
        }


@dataclass(frozen=True)
class AssetMetrics:
    """Informational gauges. Never used to gate actions."""
    cpu_usage: float = 0.0
    memory_usage: float = 0.0
    disk_usage: float = 0.0
    threats: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'AssetMetrics':
        try:
            return cls(
                cpu_usage=float(data.get("cpuUsage", data.get("cpu_usage", 0.0))),
                memory_usage=float(data.get("memoryUsage", data.get("memory_usage", 0.0))),
                disk_usage=float(data.get("diskUsage", data.get("disk_usage", 0.0))),
                threats=int(data.get("threats", 0)),
            )
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid asset metrics: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cpuUsage": self.cpu_usage,
            "memoryUsage": self.memory_usage,
            "diskUsage": self.disk_usage,
            "threats": self.threats,
        }


@dataclass(frozen=True)
class Asset:
    """
    One monitored endpoint.

    ``extra`` carries wire fields the control plane does not interpret
    (hostname, ipAddress, osInfo, ...) so they survive a round trip.
    """
    id: str
    connectivity_status: ConnectivityStatus = ConnectivityStatus.ONLINE
    monitoring_status: MonitoringStatus = MonitoringStatus.MONITORING
    name: str = ""
    capabilities: FrozenSet[str] = frozenset()
    metrics: AssetMetrics = field(default_factory=AssetMetrics)
    permissions: AssetPermissions = field(default_factory=AssetPermissions)
    last_seen: Optional[datetime.datetime] = None
    extra: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        if not self.id or not isinstance(self.id, str):
            raise ValueError("Asset id must be a non-empty string.")
        if (self.monitoring_status == MonitoringStatus.MONITORING
                and self.connectivity_status == ConnectivityStatus.OFFLINE):
            raise ValueError(f"Asset {self.id}: an offline asset cannot be monitoring.")

    def with_status(self, connectivity: Optional[ConnectivityStatus] = None,
                    monitoring: Optional[MonitoringStatus] = None,
                    **changes: Any) -> 'Asset':
        """
        Returns a copy with new statuses. Moving to offline always stops monitoring.
        """
        connectivity = connectivity or self.connectivity_status
        monitoring = monitoring or self.monitoring_status
        if connectivity == ConnectivityStatus.OFFLINE:
            monitoring = MonitoringStatus.STOPPED
        return replace(self, connectivity_status=connectivity, monitoring_status=monitoring, **changes)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Asset':
        """
        Builds an asset from a Registry snapshot.

        Accepts ``status`` or ``connectivityStatus`` for connectivity. A snapshot
        that reports an offline asset as monitoring is normalized to stopped.

        :raises ValueError: If the snapshot is malformed
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Asset snapshot must be an object, got {type(data).__name__}")

        asset_id = data.get("id")
        if asset_id is None or str(asset_id) == "":
            raise ValueError(f"Asset snapshot is missing 'id': {dict(data)}")

        raw_connectivity = data.get("status", data.get("connectivityStatus", ConnectivityStatus.ONLINE.value))
        raw_monitoring = data.get("monitoringStatus", data.get("monitoring_status", MonitoringStatus.MONITORING.value))
        try:
            connectivity = ConnectivityStatus(raw_connectivity)
            monitoring = MonitoringStatus(raw_monitoring)
        except ValueError as e:
            raise ValueError(f"Asset {asset_id}: {e}") from e

        if connectivity == ConnectivityStatus.OFFLINE:
            monitoring = MonitoringStatus.STOPPED

        raw_permissions = data.get("permissions")
        permissions = (AssetPermissions.from_dict(raw_permissions)
                       if isinstance(raw_permissions, Mapping)
                       else AssetPermissions.for_status(connectivity))

        raw_metrics = data.get("metrics")
        metrics = AssetMetrics.from_dict(raw_metrics) if isinstance(raw_metrics, Mapping) else AssetMetrics()

        known = {"id", "name", "status", "connectivityStatus", "monitoringStatus", "monitoring_status",
                 "capabilities", "metrics", "permissions", "lastSeen", "last_seen"}
        return cls(
            id=str(asset_id),
            connectivity_status=connectivity,
            monitoring_status=monitoring,
            name=str(data.get("name", "")),
            capabilities=frozenset(data.get("capabilities") or ()),
            metrics=metrics,
            permissions=permissions,
            last_seen=parse_timestamp(data.get("lastSeen", data.get("last_seen"))),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation, the inverse of :meth:`from_dict`."""
        data = dict(self.extra)
        data.update({
            "id": self.id,
            "name": self.name,
            "status": self.connectivity_status.value,
            "monitoringStatus": self.monitoring_status.value,
            "capabilities": sorted(self.capabilities),
            "metrics": self.metrics.to_dict(),
            "permissions": self.permissions.to_dict(),
            "lastSeen": format_timestamp(self.last_seen),
        })
        return data


def diff_assets(before: Asset, after: Asset) -> Dict[str, Any]:
    """Wire-level patch holding only the fields that changed between two records."""
    old, new = before.to_dict(), after.to_dict()
    return {key: value for key, value in new.items() if old.get(key) != value}
