"""
Store owning every known asset record, keyed by asset id.
"""
import threading
from typing import Dict, List, Optional, Tuple

from fleetctl.core.asset_state import Asset
from fleetctl.utils import get_logger

logger = get_logger(__name__)


def _same_status(old: Asset, new: Asset) -> bool:
    return (old.connectivity_status == new.connectivity_status
            and old.monitoring_status == new.monitoring_status)


class AssetStore:
    """
    Holds the current record and a revision counter per asset id.

    Writers to one asset serialize on that asset's lock (``lock_for``); assets
    never share a lock, so work on different assets proceeds independently.
    Every accepted write bumps the revision, which lets a delayed convergence
    step tell whether the record it was scheduled against is still current.
    Snapshots that leave both statuses as they were (heartbeats, echoes of
    our own patches) refresh the record without bumping the revision.
    """

    def __init__(self):
        self._records: Dict[str, Tuple[Asset, int]] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._index_lock = threading.Lock()

    def lock_for(self, asset_id: str) -> threading.RLock:
        """Returns the lock serializing writes to one asset, creating it on first use."""
        with self._index_lock:
            lock = self._locks.get(asset_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[asset_id] = lock
            return lock

    def get(self, asset_id: str) -> Optional[Asset]:
        entry = self._records.get(asset_id)
        return entry[0] if entry else None

    def get_with_revision(self, asset_id: str) -> Optional[Tuple[Asset, int]]:
        return self._records.get(asset_id)

    def revision(self, asset_id: str) -> int:
        entry = self._records.get(asset_id)
        return entry[1] if entry else 0

    def put(self, asset: Asset) -> int:
        """
        Stores a new record for the asset and returns its new revision.
        Callers mutating an existing asset hold ``lock_for(asset.id)``.
        """
        with self.lock_for(asset.id):
            revision = self.revision(asset.id) + 1
            self._records[asset.id] = (asset, revision)
            return revision

    def upsert_snapshot(self, asset: Asset) -> int:
        """
        Inbound Registry snapshot (initial load or heartbeat): replaces the
        full record for the asset. Returns the asset's revision, which only
        moves when connectivity or monitoring status changed.
        """
        with self.lock_for(asset.id):
            entry = self._records.get(asset.id)
            existed = entry is not None
            if existed and _same_status(entry[0], asset):
                revision = entry[1]
                self._records[asset.id] = (asset, revision)
            else:
                revision = self.put(asset)
        logger.debug(f"Snapshot {'updated' if existed else 'created'} asset {asset.id} "
                     f"({asset.connectivity_status.value}/{asset.monitoring_status.value}, rev {revision})")
        return revision

    def ids(self) -> List[str]:
        return list(self._records)

    def all(self) -> List[Asset]:
        return [record for record, _ in list(self._records.values())]

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._records

    def __len__(self) -> int:
        return len(self._records)
