"""
Registry kept in process memory, optionally backed by a JSON snapshot file.
"""
import copy
import threading
from typing import Any, Dict, List, Optional

from fleetctl.registry.base import AssetRegistry
from fleetctl.utils import get_logger, load_json, save_json

logger = get_logger(__name__)


class InMemoryRegistry(AssetRegistry):
    """
    Registry holding wire-format asset records in a dict.

    The snapshot file layout is either ``{"assets": [...]}`` or a bare list.
    Removed asset ids are remembered so callers can tell an uninstalled
    agent from one that never existed.
    """

    def __init__(self, assets: Optional[List[Dict[str, Any]]] = None, snapshot_path: Optional[str] = None):
        self.snapshot_path = snapshot_path
        self._records: Dict[str, Dict[str, Any]] = {}
        self._removed: List[str] = []
        self._lock = threading.Lock()

        if snapshot_path:
            assets = list(assets or []) + self._read_snapshot_file(snapshot_path)
        for record in assets or []:
            if not isinstance(record, dict) or not record.get("id"):
                raise ValueError(f"Registry record must be an object with an 'id': {record}")
            self._records[str(record["id"])] = copy.deepcopy(record)
        logger.info(f"In-memory registry initialized with {len(self._records)} asset(s).")

    @staticmethod
    def _read_snapshot_file(path: str) -> List[Dict[str, Any]]:
        data = load_json(path)
        if isinstance(data, dict):
            data = data.get("assets", [])
        if not isinstance(data, list):
            raise ValueError(f"Snapshot file {path} must hold a list of assets or an object with 'assets'.")
        return data

    def load_assets(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(record) for record in self._records.values()]

    def on_asset_changed(self, asset_id: str, patch: Dict[str, Any]) -> None:
        with self._lock:
            record = self._records.setdefault(asset_id, {"id": asset_id})
            record.update(copy.deepcopy(patch))
        logger.debug(f"Registry recorded change for asset {asset_id}: {sorted(patch)}")

    def on_asset_removed(self, asset_id: str) -> None:
        with self._lock:
            self._records.pop(asset_id, None)
            self._removed.append(asset_id)
        logger.info(f"Registry retired asset {asset_id}.")

    def get(self, asset_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._records.get(asset_id)
            return copy.deepcopy(record) if record else None

    @property
    def removed_ids(self) -> List[str]:
        with self._lock:
            return list(self._removed)

    def save(self, path: Optional[str] = None) -> bool:
        """Writes the current records to the snapshot file."""
        target = path or self.snapshot_path
        if not target:
            logger.error("Cannot save registry snapshot: no path configured.")
            return False
        return save_json({"assets": self.load_assets()}, target)
