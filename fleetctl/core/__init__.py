"""
Core lifecycle components: asset model, action table, state machine,
permission resolution, execution and bulk coordination.
"""
from .actions import Action, ActionRule, ACTION_RULES, requires_confirmation, destructive_actions
from .asset_state import (Actor, Asset, AssetMetrics, AssetPermissions, ConnectivityStatus,
                          MonitoringStatus, diff_assets)
from .outcomes import (Applied, BulkItemResult, BulkItemStatus, BulkResult, Denied, Outcome,
                       OutcomeKind, PreconditionFailed, TransportFailure, UnknownAsset)
from .permissions import authorization_failure, available_actions, can_perform, is_authorized
from .transitions import apply_immediate, converge_offline, precondition_failure
from .asset_store import AssetStore
from .convergence import ConvergenceScheduler
from .action_executor import ActionExecutor
from .bulk_coordinator import BulkOperationCoordinator
from .journal import ActionJournal, JournalEntry
from .control_plane import ControlPlane

__all__ = [
    'Action', 'ActionRule', 'ACTION_RULES', 'requires_confirmation', 'destructive_actions',
    'Actor', 'Asset', 'AssetMetrics', 'AssetPermissions', 'ConnectivityStatus', 'MonitoringStatus',
    'diff_assets',
    'Applied', 'BulkItemResult', 'BulkItemStatus', 'BulkResult', 'Denied', 'Outcome', 'OutcomeKind',
    'PreconditionFailed', 'TransportFailure', 'UnknownAsset',
    'authorization_failure', 'available_actions', 'can_perform', 'is_authorized',
    'apply_immediate', 'converge_offline', 'precondition_failure',
    'AssetStore', 'ConvergenceScheduler', 'ActionExecutor', 'BulkOperationCoordinator',
    'ActionJournal', 'JournalEntry', 'ControlPlane',
]
