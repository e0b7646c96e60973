"""
Result values returned by the control plane. Outcomes are never raised.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from fleetctl.core.actions import Action
from fleetctl.core.asset_state import Asset


class OutcomeKind(Enum):
    APPLIED = "applied"
    DENIED = "denied"
    PRECONDITION_FAILED = "precondition_failed"
    UNKNOWN_ASSET = "unknown_asset"
    TRANSPORT_FAILURE = "transport_failure"


@dataclass(frozen=True)
class Outcome:
    """Base class for every result of a single action on a single asset."""
    action: Action
    asset_id: str

    kind = None  # type: OutcomeKind

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.APPLIED

    @property
    def reason(self) -> Optional[str]:
        return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "outcome": self.kind.value,
            "action": self.action.value,
            "assetId": self.asset_id,
        }
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass(frozen=True)
class Applied(Outcome):
    """The immediate effect was applied; ``asset`` is the new record."""
    asset: Optional[Asset] = None
    confirmation_required: bool = False

    kind = OutcomeKind.APPLIED

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["confirmationRequired"] = self.confirmation_required
        if self.asset is not None:
            data["asset"] = self.asset.to_dict()
        return data


@dataclass(frozen=True)
class Denied(Outcome):
    """The actor lacks the capability or the asset lacks the permission flag."""
    message: str = ""

    kind = OutcomeKind.DENIED

    @property
    def reason(self) -> Optional[str]:
        return self.message


@dataclass(frozen=True)
class PreconditionFailed(Outcome):
    """The action is not valid for the asset's current state."""
    message: str = ""

    kind = OutcomeKind.PRECONDITION_FAILED

    @property
    def reason(self) -> Optional[str]:
        return self.message


@dataclass(frozen=True)
class UnknownAsset(Outcome):
    """The referenced id is not in the store. Only produced per bulk item."""
    kind = OutcomeKind.UNKNOWN_ASSET

    @property
    def reason(self) -> Optional[str]:
        return "unknown asset"


@dataclass(frozen=True)
class TransportFailure(Outcome):
    """
    The action was applied locally but could not be delivered to the endpoint.
    ``asset`` is the record after the compensating transition.
    """
    message: str = ""
    asset: Optional[Asset] = None

    kind = OutcomeKind.TRANSPORT_FAILURE

    @property
    def reason(self) -> Optional[str]:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.asset is not None:
            data["asset"] = self.asset.to_dict()
        return data


class BulkItemStatus(Enum):
    APPLIED = "applied"
    DENIED = "denied"
    FAILED = "failed"


_ITEM_STATUS = {
    OutcomeKind.APPLIED: BulkItemStatus.APPLIED,
    OutcomeKind.DENIED: BulkItemStatus.DENIED,
    OutcomeKind.PRECONDITION_FAILED: BulkItemStatus.DENIED,
    OutcomeKind.UNKNOWN_ASSET: BulkItemStatus.FAILED,
    OutcomeKind.TRANSPORT_FAILURE: BulkItemStatus.FAILED,
}


@dataclass(frozen=True)
class BulkItemResult:
    asset_id: str
    outcome: Outcome

    @property
    def status(self) -> BulkItemStatus:
        return _ITEM_STATUS[self.outcome.kind]

    @property
    def reason(self) -> Optional[str]:
        return self.outcome.reason

    def to_dict(self) -> Dict[str, Any]:
        data = {"assetId": self.asset_id, "status": self.status.value, "outcome": self.outcome.kind.value}
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass(frozen=True)
class BulkResult:
    """
    Aggregate result of one bulk request. Partial success is a normal result.

    ``rejected_reason`` is set when the whole request was refused before any
    per-asset evaluation; ``items`` is then empty.
    """
    action: Action
    items: Tuple[BulkItemResult, ...] = field(default_factory=tuple)
    rejected_reason: Optional[str] = None

    @property
    def rejected(self) -> bool:
        return self.rejected_reason is not None

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.items if item.status == BulkItemStatus.APPLIED)

    def by_status(self, status: BulkItemStatus) -> List[BulkItemResult]:
        return [item for item in self.items if item.status == status]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "action": self.action.value,
            "successCount": self.success_count,
            "total": len(self.items),
            "items": [item.to_dict() for item in self.items],
        }
        if self.rejected:
            data["rejected"] = self.rejected_reason
        return data
