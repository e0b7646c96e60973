"""
Control plane facade wiring the lifecycle components together.
"""
import datetime
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, TYPE_CHECKING, Union

from fleetctl.core.action_executor import ActionExecutor
from fleetctl.core.actions import Action, requires_confirmation, rule_for
from fleetctl.core.asset_state import Actor, Asset
from fleetctl.core.asset_store import AssetStore
from fleetctl.core.bulk_coordinator import BulkOperationCoordinator
from fleetctl.core.convergence import ConvergenceScheduler, TimerFactory
from fleetctl.core.journal import ActionJournal, JournalEntry
from fleetctl.core.outcomes import Applied, BulkResult, Outcome, TransportFailure
from fleetctl.core.permissions import available_actions
from fleetctl.utils import get_logger, utc_now

if TYPE_CHECKING:
    from fleetctl.communication import CommandTransport, WSClient
    from fleetctl.config import ConfigManager
    from fleetctl.registry import AssetRegistry

logger = get_logger(__name__)


class ControlPlane:
    """
    The lifecycle control plane for one console session.

    Owns the asset store, the convergence scheduler, the executor, the bulk
    coordinator and the action journal, and connects them to a registry
    and, optionally, to a command transport and a live snapshot feed.

    When a transport is configured, every applied action that is not a pure
    read is delivered to the endpoint while the asset's lock is held. If
    delivery fails, the pre-action record is written back as a compensating
    transition and the caller gets ``TransportFailure``.
    """

    def __init__(self,
                 config: Optional['ConfigManager'],
                 registry: 'AssetRegistry',
                 transport: Optional['CommandTransport'] = None,
                 timer_factory: TimerFactory = threading.Timer,
                 clock: Callable[[], datetime.datetime] = utc_now):
        """
        Initialize the control plane with its collaborators.

        :param config: Configuration manager; built-in defaults are used when None
        :param registry: System of record for asset state
        :param transport: Optional delivery channel for applied actions
        :param timer_factory: Factory for convergence timers
        :param clock: Time source for ``last_seen`` updates
        :raises: ValueError if registry is missing
        """
        if registry is None:
            raise ValueError("AssetRegistry instance is required for ControlPlane.")

        self.config = config
        self.registry = registry
        self.transport = transport
        self.store = AssetStore()
        self.scheduler = ConvergenceScheduler(timer_factory)
        self.executor = ActionExecutor(self.store, registry, self.scheduler, config, clock)
        self.bulk = BulkOperationCoordinator(self.executor, config, execute_fn=self._execute_and_deliver)
        self.journal = ActionJournal(config)
        self._feed: Optional['WSClient'] = None

        logger.info(f"Control plane initialized (transport: {type(transport).__name__ if transport else 'none'}).")

    # === ASSET STATE ===

    def load_from_registry(self) -> int:
        """
        Loads the registry's full asset list into the store.
        Malformed records are logged and skipped.

        :return: Number of assets loaded
        """
        loaded = 0
        for record in self.registry.load_assets():
            try:
                self.store.upsert_snapshot(Asset.from_dict(record))
                loaded += 1
            except ValueError as e:
                logger.error(f"Skipping malformed asset record from registry: {e}")
        logger.info(f"Loaded {loaded} asset(s) from registry.")
        return loaded

    def on_asset_snapshot(self, snapshot: Union[Asset, Mapping[str, Any]]) -> Asset:
        """
        Upserts one full asset record (heartbeat or initial load). A pending
        convergence scheduled against the previous record becomes a no-op.

        :raises ValueError: If a snapshot dict is malformed
        """
        asset = snapshot if isinstance(snapshot, Asset) else Asset.from_dict(snapshot)
        self.store.upsert_snapshot(asset)
        return asset

    def get_asset(self, asset_id: str) -> Optional[Asset]:
        return self.store.get(asset_id)

    def assets(self) -> List[Asset]:
        return self.store.all()

    # === ACTIONS ===

    @staticmethod
    def requires_confirmation(action: Union[Action, str]) -> bool:
        return requires_confirmation(action)

    def available_actions(self, actor: Actor, asset_id: str) -> List[Action]:
        asset = self.store.get(asset_id)
        return available_actions(actor, asset) if asset is not None else []

    def execute(self, actor: Actor, asset_id: str, action: Union[Action, str]) -> Outcome:
        """
        Executes one action on one asset and records it in the journal.

        :raises ValueError: If the action name is not recognised
        """
        outcome = self._execute_and_deliver(actor, asset_id, Action.parse(action))
        self.journal.record(actor, outcome)
        return outcome

    def execute_bulk(self, actor: Actor, action: Union[Action, str], asset_ids: List[str]) -> BulkResult:
        """
        Executes one action over many assets. Every per-asset outcome is journaled;
        a request rejected as a whole is not.

        :raises ValueError: If the action name is not recognised
        """
        result = self.bulk.execute_bulk(actor, action, asset_ids)
        for item in result.items:
            self.journal.record(actor, item.outcome)
        return result

    def history(self, asset_id: Optional[str] = None, limit: Optional[int] = None) -> List[JournalEntry]:
        return self.journal.history(asset_id, limit)

    def _execute_and_deliver(self, actor: Actor, asset_id: str, action: Action) -> Outcome:
        rule = rule_for(action)
        with self.store.lock_for(asset_id):
            previous = self.store.get(asset_id)
            outcome = self.executor.execute(actor, asset_id, action)
            if self.transport is None or not isinstance(outcome, Applied) or rule.read_only:
                return outcome

            try:
                delivered, message = self.transport.deliver(asset_id, action)
            except Exception as e:
                logger.error(f"Transport raised while delivering '{action.value}' to {asset_id}: {e}", exc_info=True)
                delivered, message = False, str(e)

            if delivered:
                logger.debug(f"Delivered '{action.value}' to {asset_id}: {message}")
                return outcome

            logger.warning(f"Delivery of '{action.value}' to {asset_id} failed: {message}")
            if not rule.mutates_status:
                # No transition was applied, so any pending convergence stays scheduled.
                return TransportFailure(action=action, asset_id=asset_id, message=message, asset=outcome.asset)
            restored = self.executor.compensate(previous) if previous is not None else None
            return TransportFailure(action=action, asset_id=asset_id, message=message, asset=restored)

    # === LIFECYCLE ===

    def attach_feed(self, ws_client: 'WSClient'):
        """Routes the feed's asset snapshots into :meth:`on_asset_snapshot`."""
        ws_client.register_snapshot_handler(self.on_asset_snapshot)
        self._feed = ws_client

    def wait_for_convergence(self, timeout: Optional[float] = None) -> bool:
        """
        Blocks until every scheduled convergence step has run.

        :return: True if nothing is pending afterwards
        """
        return self.scheduler.drain(timeout)

    def snapshot(self) -> List[Dict[str, Any]]:
        """Wire representation of every asset in the store."""
        return [asset.to_dict() for asset in self.store.all()]

    def shutdown(self):
        """Cancels pending convergence and disconnects the live feed."""
        logger.info("Shutting down control plane...")
        self.scheduler.shutdown()
        if self._feed is not None:
            self._feed.disconnect()
            self._feed = None
        logger.info("Control plane shut down.")
