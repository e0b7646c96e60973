"""
Action Executor: validates one (asset, action) request and applies it.
"""
import datetime
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING, Union

from fleetctl.core.actions import ACTION_RULES, Action, Convergence, requires_confirmation
from fleetctl.core.asset_state import Actor, Asset, diff_assets
from fleetctl.core.asset_store import AssetStore
from fleetctl.core.convergence import ConvergenceScheduler
from fleetctl.core.outcomes import Applied, Denied, Outcome, PreconditionFailed, UnknownAsset
from fleetctl.core.permissions import authorization_failure
from fleetctl.core.transitions import apply_immediate, converge_offline, precondition_failure
from fleetctl.utils import get_logger, utc_now

if TYPE_CHECKING:
    from fleetctl.config import ConfigManager
    from fleetctl.registry import AssetRegistry

logger = get_logger(__name__)

DEFAULT_STOP_CONVERGENCE_DELAY_SEC = 3.0
DEFAULT_UNINSTALL_REMOVAL_DELAY_SEC = 1.0


class ActionExecutor:
    """
    Applies lifecycle actions to assets held in an :class:`AssetStore`.

    Each call runs under the asset's lock and performs, in order: the
    authorization gate, the state precondition, the immediate transition,
    scheduling of any delayed convergence, and the change report to the
    registry. At most one state mutation happens per call and nothing is
    retried here.

    Confirmation of destructive actions is the caller's job; the executor
    only reports whether an action belonged to that class.
    """

    def __init__(self, store: AssetStore, registry: 'AssetRegistry',
                 scheduler: ConvergenceScheduler, config: Optional['ConfigManager'] = None,
                 clock: Callable[[], datetime.datetime] = utc_now):
        """
        :param store: Store holding the current asset records
        :param registry: Collaborator receiving change and removal reports
        :param scheduler: Scheduler for delayed convergence steps
        :param config: Configuration manager; built-in delays are used when None
        :param clock: Time source for ``last_seen`` updates
        :raises: ValueError if store, registry or scheduler is missing
        """
        if store is None:
            raise ValueError("AssetStore instance is required for ActionExecutor.")
        if registry is None:
            raise ValueError("AssetRegistry instance is required for ActionExecutor.")
        if scheduler is None:
            raise ValueError("ConvergenceScheduler instance is required for ActionExecutor.")

        self.store = store
        self.registry = registry
        self.scheduler = scheduler
        self.clock = clock

        self.stop_convergence_delay = float(config.get('control.stop_convergence_delay_sec',
                                                       DEFAULT_STOP_CONVERGENCE_DELAY_SEC)
                                            if config else DEFAULT_STOP_CONVERGENCE_DELAY_SEC)
        self.uninstall_removal_delay = float(config.get('control.uninstall_removal_delay_sec',
                                                        DEFAULT_UNINSTALL_REMOVAL_DELAY_SEC)
                                             if config else DEFAULT_UNINSTALL_REMOVAL_DELAY_SEC)
        logger.info(f"ActionExecutor Config: Stop Convergence={self.stop_convergence_delay}s, "
                    f"Uninstall Removal={self.uninstall_removal_delay}s")

    # === PUBLIC METHODS ===

    @staticmethod
    def requires_confirmation(action: Union[Action, str]) -> bool:
        return requires_confirmation(action)

    def execute(self, actor: Actor, asset: Union[Asset, str], action: Union[Action, str]) -> Outcome:
        """
        Validates and applies one action to one asset.

        The store's record is authoritative: when an :class:`Asset` is passed,
        only its id is used.

        :param actor: Operator capabilities, resolved by the caller
        :param asset: Asset or asset id
        :param action: Action or its wire name
        :return: ``Applied`` with the new record, ``Denied`` or ``PreconditionFailed``.
                 ``UnknownAsset`` when the id is not in the store.
        :raises ValueError: If the action name is not recognised
        """
        action = Action.parse(action)
        asset_id = asset.id if isinstance(asset, Asset) else str(asset)

        with self.store.lock_for(asset_id):
            current = self.store.get(asset_id)
            if current is None:
                logger.warning(f"Action '{action.value}' requested for unknown asset {asset_id}.")
                return UnknownAsset(action=action, asset_id=asset_id)

            denial = authorization_failure(actor, current, action)
            if denial:
                logger.info(f"Denied '{action.value}' on {asset_id} for {actor.name}: {denial}")
                return Denied(action=action, asset_id=asset_id, message=denial)

            failure = precondition_failure(current, action)
            if failure:
                logger.info(f"Precondition failed for '{action.value}' on {asset_id}: {failure}")
                return PreconditionFailed(action=action, asset_id=asset_id, message=failure)

            rule = ACTION_RULES[action]
            updated = current
            if rule.mutates_status:
                updated = apply_immediate(current, action, self.clock)
                self.scheduler.cancel(asset_id)
                revision = self.store.put(updated)
                self._schedule_convergence(asset_id, rule.convergence, revision)

            logger.info(f"Applied '{action.value}' on {asset_id} for {actor.name}: "
                        f"{updated.connectivity_status.value}/{updated.monitoring_status.value}")

            if not rule.read_only:
                self._emit_changed(asset_id, diff_assets(current, updated))

            return Applied(action=action, asset_id=asset_id, asset=updated,
                           confirmation_required=rule.destructive)

    def compensate(self, previous: Asset) -> Optional[Asset]:
        """
        Writes ``previous`` back as the current record, cancelling any pending
        convergence. Used by callers whose transport failed after an
        optimistic transition was applied.

        :return: The restored record, or None when the asset is no longer known
        """
        with self.store.lock_for(previous.id):
            current = self.store.get(previous.id)
            if current is None:
                logger.warning(f"Cannot compensate unknown asset {previous.id}.")
                return None
            self.scheduler.cancel(previous.id)
            self.store.put(previous)
            logger.warning(f"Compensating transition restored asset {previous.id} to "
                           f"{previous.connectivity_status.value}/{previous.monitoring_status.value}")
            self._emit_changed(previous.id, diff_assets(current, previous))
            return previous

    # === CONVERGENCE ===

    def _schedule_convergence(self, asset_id: str, convergence: Convergence, revision: int):
        if convergence == Convergence.GO_OFFLINE:
            self.scheduler.schedule(asset_id, self.stop_convergence_delay,
                                    lambda: self._converge_offline(asset_id, revision))
        elif convergence == Convergence.SIGNAL_REMOVAL:
            self.scheduler.schedule(asset_id, self.uninstall_removal_delay,
                                    lambda: self._signal_removal(asset_id, revision))

    def _converge_offline(self, asset_id: str, expected_revision: int):
        """Delayed stop step. A no-op if any newer write landed on the asset."""
        with self.store.lock_for(asset_id):
            entry = self.store.get_with_revision(asset_id)
            if entry is None or entry[1] != expected_revision:
                logger.debug(f"Skipping stale stop convergence for asset {asset_id}.")
                return
            current = entry[0]
            converged = converge_offline(current)
            if converged is None:
                logger.debug(f"Asset {asset_id} left 'stopping' before convergence; nothing to do.")
                return
            self.store.put(converged)
            logger.info(f"Asset {asset_id} converged to offline after stop.")
            self._emit_changed(asset_id, diff_assets(current, converged))

    def _signal_removal(self, asset_id: str, expected_revision: int):
        """Delayed uninstall step. Skipped if the asset was acted on again."""
        with self.store.lock_for(asset_id):
            if self.store.revision(asset_id) != expected_revision:
                logger.debug(f"Skipping stale removal signal for asset {asset_id}.")
                return
            logger.info(f"Signalling removal of uninstalled asset {asset_id}.")
            try:
                self.registry.on_asset_removed(asset_id)
            except Exception as e:
                logger.error(f"Registry failed to handle removal of asset {asset_id}: {e}", exc_info=True)

    # === REGISTRY REPORTING ===

    def _emit_changed(self, asset_id: str, patch: Dict[str, Any]):
        """Reports a change to the registry. Registry faults never undo the local state."""
        try:
            self.registry.on_asset_changed(asset_id, patch)
        except Exception as e:
            logger.error(f"Registry failed to record change for asset {asset_id}: {e}", exc_info=True)
