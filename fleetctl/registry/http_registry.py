"""
Registry reached over its REST API.
"""
from typing import Any, Dict, List

from fleetctl.communication.http_client import HttpClient
from fleetctl.registry.base import AssetRegistry
from fleetctl.utils import get_logger

logger = get_logger(__name__)


class HttpRegistry(AssetRegistry):
    """
    Adapter mapping registry callbacks onto :class:`HttpClient` calls.

    Change and removal reports are fire-and-forget: a failed request is
    logged by the client and the local state is kept.
    """

    def __init__(self, http_client: HttpClient):
        if http_client is None:
            raise ValueError("HttpClient instance is required for HttpRegistry.")
        self.http_client = http_client

    def load_assets(self) -> List[Dict[str, Any]]:
        """
        :raises ConnectionError: If the asset list could not be fetched
        """
        success, assets = self.http_client.fetch_assets()
        if not success:
            raise ConnectionError("Could not fetch the asset list from the registry.")
        return assets

    def on_asset_changed(self, asset_id: str, patch: Dict[str, Any]) -> None:
        if not patch:
            logger.debug(f"No field changes to report for asset {asset_id}.")
            return
        self.http_client.patch_asset(asset_id, patch)

    def on_asset_removed(self, asset_id: str) -> None:
        self.http_client.delete_asset(asset_id)
