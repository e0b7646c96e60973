"""
Base class for the Asset Registry collaborator.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from fleetctl.utils import get_logger

logger = get_logger(__name__)


class AssetRegistry(ABC):
    """
    Abstract base class for the system of record holding asset records.

    The control plane reads the initial asset list from the registry and
    reports every accepted change back to it. Persistence, retries and
    delivery guarantees are the registry's own concern.
    """

    @abstractmethod
    def load_assets(self) -> List[Dict[str, Any]]:
        """
        Returns the full snapshot of every known asset in wire format
        (see :meth:`fleetctl.core.asset_state.Asset.from_dict`).
        """

    @abstractmethod
    def on_asset_changed(self, asset_id: str, patch: Dict[str, Any]) -> None:
        """
        Receives the wire-level fields that changed after an applied action
        or a delayed convergence step.

        :param asset_id: The changed asset
        :type asset_id: str
        :param patch: Changed fields only; may be empty for actions that do
                      not alter status (e.g. a configuration push)
        :type patch: Dict[str, Any]
        """

    @abstractmethod
    def on_asset_removed(self, asset_id: str) -> None:
        """
        Signals that an agent was uninstalled and its record can be retired.
        """
