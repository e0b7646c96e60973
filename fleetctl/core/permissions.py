"""
Permission resolution for lifecycle actions.

Authorization (actor capability plus asset flag) and state validity (the
transition precondition) are independent gates. Everything here is a pure
function of its inputs, so UI code may call it as often as it renders.
"""
from typing import List, Optional

from fleetctl.core.actions import ACTION_RULES, Action, Capability
from fleetctl.core.asset_state import Actor, Asset
from fleetctl.core.transitions import precondition_failure


def _has_capability(actor: Actor, capability: Capability) -> bool:
    if capability == Capability.NONE:
        return True
    return bool(getattr(actor, capability.value))


def authorization_failure(actor: Actor, asset: Asset, action: Action) -> Optional[str]:
    """
    Evaluates the authorization gate only.

    :return: The denial reason, or None when the actor and asset allow the action
    """
    rule = ACTION_RULES[action]
    if not _has_capability(actor, rule.required_capability):
        if rule.required_capability == Capability.ADMIN_SYSTEM:
            return f"'{action.value}' requires system administration rights."
        return f"'{action.value}' requires agent control rights."
    if not getattr(asset.permissions, rule.asset_flag):
        return f"Asset {asset.id} does not currently support '{action.value}' ({rule.asset_flag} is not set)."
    return None


def is_authorized(actor: Actor, asset: Asset, action: Action) -> bool:
    return authorization_failure(actor, asset, action) is None


def can_perform(actor: Actor, asset: Asset, action: Action) -> bool:
    """
    True when the actor is authorized for the action on this asset AND the
    asset's current state satisfies the action's precondition.
    """
    return is_authorized(actor, asset, action) and precondition_failure(asset, action) is None


def available_actions(actor: Actor, asset: Asset) -> List[Action]:
    """Actions that pass both gates, in declaration order."""
    return [action for action in Action if can_perform(actor, asset, action)]
