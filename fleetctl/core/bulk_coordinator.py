"""
Bulk Operation Coordinator: one action fanned out over many assets.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, TYPE_CHECKING, Union

from fleetctl.core.action_executor import ActionExecutor
from fleetctl.core.actions import ADMIN_ONLY_BULK_ACTIONS, Action
from fleetctl.core.asset_state import Actor
from fleetctl.core.outcomes import BulkItemResult, BulkResult, Outcome, UnknownAsset
from fleetctl.utils import get_logger

if TYPE_CHECKING:
    from fleetctl.config import ConfigManager

logger = get_logger(__name__)


def dedupe_ids(asset_ids: Iterable[str]) -> List[str]:
    """Removes duplicate ids, keeping the order of first occurrence."""
    seen = set()
    ordered = []
    for asset_id in asset_ids:
        key = str(asset_id)
        if key not in seen:
            seen.add(key)
            ordered.append(key)
    return ordered


class BulkOperationCoordinator:
    """
    Applies one action to a selection of assets through an ActionExecutor.

    Bulk application is not atomic. Each asset gets its own outcome and a
    partial success is reported, never raised. Admin-only actions are the
    exception: without system administration rights the whole request is
    refused before any asset is looked at.
    """

    def __init__(self, executor: ActionExecutor, config: Optional['ConfigManager'] = None,
                 execute_fn: Optional[Callable[[Actor, str, Action], Outcome]] = None):
        """
        :param executor: Executor owning the asset store
        :param config: Configuration manager; a sequential run is used when None
        :param execute_fn: Per-asset call replacing ``executor.execute``, e.g. one
                           that also delivers the command to the endpoint
        """
        if executor is None:
            raise ValueError("ActionExecutor instance is required for BulkOperationCoordinator.")
        self.executor = executor
        self._execute = execute_fn or executor.execute
        self.max_parallel = int(config.get('bulk.max_parallel', 1)) if config else 1
        logger.info(f"BulkOperationCoordinator Config: Max Parallel={self.max_parallel}")

    def execute_bulk(self, actor: Actor, action: Union[Action, str], asset_ids: Iterable[str]) -> BulkResult:
        """
        Runs ``action`` against every id in ``asset_ids``.

        :param actor: Operator capabilities, resolved by the caller
        :param action: Action or its wire name
        :param asset_ids: Selected ids; duplicates are dropped, first occurrence wins
        :return: Per-asset results in first-occurrence order
        :raises ValueError: If the action name is not recognised
        """
        action = Action.parse(action)
        ordered_ids = dedupe_ids(asset_ids)

        if action in ADMIN_ONLY_BULK_ACTIONS and not actor.can_admin_system:
            reason = f"Bulk '{action.value}' requires system administration rights."
            logger.warning(f"Rejected bulk '{action.value}' over {len(ordered_ids)} asset(s) for {actor.name}: {reason}")
            return BulkResult(action=action, rejected_reason=reason)

        logger.info(f"Bulk '{action.value}' requested by {actor.name} for {len(ordered_ids)} asset(s).")

        if self.max_parallel > 1 and len(ordered_ids) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_parallel, len(ordered_ids)),
                                    thread_name_prefix="BulkWorker") as pool:
                outcomes = list(pool.map(lambda asset_id: self._execute_one(actor, action, asset_id), ordered_ids))
        else:
            outcomes = [self._execute_one(actor, action, asset_id) for asset_id in ordered_ids]

        result = BulkResult(
            action=action,
            items=tuple(BulkItemResult(asset_id=asset_id, outcome=outcome)
                        for asset_id, outcome in zip(ordered_ids, outcomes)),
        )
        logger.info(f"Bulk '{action.value}' finished: {result.success_count}/{len(result.items)} applied.")
        return result

    def _execute_one(self, actor: Actor, action: Action, asset_id: str) -> Outcome:
        if asset_id not in self.executor.store:
            logger.warning(f"Bulk '{action.value}': unknown asset {asset_id}.")
            return UnknownAsset(action=action, asset_id=asset_id)
        return self._execute(actor, asset_id, action)
