"""
Bounded in-memory history of executed actions.
"""
import datetime
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional, TYPE_CHECKING

from fleetctl.core.asset_state import Actor
from fleetctl.core.outcomes import Outcome
from fleetctl.utils import format_timestamp, utc_now

if TYPE_CHECKING:
    from fleetctl.config import ConfigManager

DEFAULT_MAX_ENTRIES = 500


@dataclass(frozen=True)
class JournalEntry:
    timestamp: datetime.datetime
    actor: str
    action: str
    asset_id: str
    outcome: str
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": format_timestamp(self.timestamp),
            "actor": self.actor,
            "action": self.action,
            "assetId": self.asset_id,
            "outcome": self.outcome,
            "reason": self.reason,
        }


class ActionJournal:
    """Keeps the most recent ``journal.max_entries`` outcomes, oldest dropped first."""

    def __init__(self, config: Optional['ConfigManager'] = None):
        max_entries = int(config.get('journal.max_entries', DEFAULT_MAX_ENTRIES)) if config else DEFAULT_MAX_ENTRIES
        self._entries: Deque[JournalEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def record(self, actor: Actor, outcome: Outcome) -> JournalEntry:
        entry = JournalEntry(
            timestamp=utc_now(),
            actor=actor.name,
            action=outcome.action.value,
            asset_id=outcome.asset_id,
            outcome=outcome.kind.value,
            reason=outcome.reason,
        )
        with self._lock:
            self._entries.append(entry)
        return entry

    def history(self, asset_id: Optional[str] = None, limit: Optional[int] = None) -> List[JournalEntry]:
        """
        Returns entries newest first, optionally for one asset only.
        """
        with self._lock:
            entries = list(reversed(self._entries))
        if asset_id is not None:
            entries = [entry for entry in entries if entry.asset_id == asset_id]
        return entries[:limit] if limit is not None else entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
