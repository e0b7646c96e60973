"""
Lifecycle actions and the static table describing each one.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Union


class Action(Enum):
    """
    Enumeration of lifecycle operations an operator can take on an agent.

    Actions:
        PAUSE: Pause security monitoring, keep the agent online
        RESUME: Resume paused monitoring
        RESTART: Restart the agent service and resume monitoring
        STOP: Gracefully stop the agent (converges to offline later)
        FORCE_STOP: Terminate the agent process immediately (admin only)
        UNINSTALL: Remove the agent from the endpoint (admin only)
        UPDATE_CONFIG: Push a configuration update
        VIEW_LOGS: Read the agent's logs
    """
    PAUSE = "pause"
    RESUME = "resume"
    RESTART = "restart"
    STOP = "stop"
    FORCE_STOP = "force_stop"
    UNINSTALL = "uninstall"
    UPDATE_CONFIG = "update_config"
    VIEW_LOGS = "view_logs"

    @classmethod
    def parse(cls, value: Union['Action', str]) -> 'Action':
        """
        Resolves an action from its enum member or wire name.

        :raises ValueError: If the name does not match any action
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ', '.join(a.value for a in cls)
            raise ValueError(f"Unknown action '{value}'. Expected one of: {valid}") from None


class Capability(Enum):
    """Actor capability an action requires."""
    NONE = "none"
    CONTROL_AGENTS = "can_control_agents"
    ADMIN_SYSTEM = "can_admin_system"


class Convergence(Enum):
    """Delayed follow-up step an action schedules after its immediate effect."""
    NONE = "none"
    GO_OFFLINE = "go_offline"
    SIGNAL_REMOVAL = "signal_removal"


@dataclass(frozen=True)
class ActionRule:
    """
    Static description of one action.

    :ivar required_capability: Actor capability the action needs
    :ivar asset_flag: Name of the AssetPermissions attribute the asset must have set
    :ivar destructive: Whether the caller must obtain confirmation first
    :ivar mutates_status: Whether the immediate effect writes the asset record
    :ivar read_only: Whether the action is a pure read that is never reported to the Registry
    :ivar convergence: Delayed step scheduled after the immediate effect
    """
    required_capability: Capability
    asset_flag: str
    destructive: bool = False
    mutates_status: bool = True
    read_only: bool = False
    convergence: Convergence = Convergence.NONE


ACTION_RULES: Dict[Action, ActionRule] = {
    Action.PAUSE: ActionRule(Capability.CONTROL_AGENTS, "can_pause"),
    Action.RESUME: ActionRule(Capability.CONTROL_AGENTS, "can_pause"),
    Action.RESTART: ActionRule(Capability.CONTROL_AGENTS, "can_restart"),
    Action.STOP: ActionRule(Capability.CONTROL_AGENTS, "can_stop", destructive=True,
                            convergence=Convergence.GO_OFFLINE),
    Action.FORCE_STOP: ActionRule(Capability.ADMIN_SYSTEM, "can_stop", destructive=True),
    Action.UNINSTALL: ActionRule(Capability.ADMIN_SYSTEM, "can_uninstall", destructive=True,
                                 convergence=Convergence.SIGNAL_REMOVAL),
    Action.UPDATE_CONFIG: ActionRule(Capability.CONTROL_AGENTS, "can_update_config", mutates_status=False),
    Action.VIEW_LOGS: ActionRule(Capability.NONE, "can_view_logs", mutates_status=False, read_only=True),
}

# Bulk requests for these are rejected as a whole when the actor is not an admin.
ADMIN_ONLY_BULK_ACTIONS: FrozenSet[Action] = frozenset({Action.FORCE_STOP, Action.UNINSTALL})


def rule_for(action: Action) -> ActionRule:
    return ACTION_RULES[action]


def requires_confirmation(action: Union[Action, str]) -> bool:
    """True for destructive actions the caller must confirm before executing."""
    return ACTION_RULES[Action.parse(action)].destructive


def destructive_actions() -> FrozenSet[Action]:
    return frozenset(a for a, rule in ACTION_RULES.items() if rule.destructive)
