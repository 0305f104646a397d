"""Offline snapshot cache and pending-action queue.

Snapshots are plain overwrites stamped with their write time; there is no
versioning and expiry is informational only. Queued actions are replayed
in insertion order by ``drain``; an action that fails stays queued for the
next drain.
"""
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

from models.base import generate_id, utc_now
from services.local_storage import LocalStorage

logger = logging.getLogger(__name__)

CACHE_PREFIX = "offline-cache:"
QUEUE_KEY = "offline-queue"

ACTION_TYPES = ("create", "update", "delete")


@dataclass
class OfflineAction:
    """A write that could not reach the remote table."""
    id: str
    type: str  # create/update/delete
    table: str
    payload: Dict[str, Any]
    timestamp: str
    attempts: int = 0
    last_error: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OfflineAction":
        return cls(
            id=data["id"],
            type=data["type"],
            table=data["table"],
            payload=data.get("payload") or {},
            timestamp=data.get("timestamp", ""),
            attempts=int(data.get("attempts", 0)),
            last_error=data.get("last_error", ""),
        )


@dataclass
class DrainResult:
    replayed: List[OfflineAction] = field(default_factory=list)
    failed: List[OfflineAction] = field(default_factory=list)
    remaining: int = 0

    @property
    def success(self) -> bool:
        return not self.failed


class OfflineCache:
    def __init__(self, storage: LocalStorage):
        self.storage = storage

    # -------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------

    def cache(self, key: str, value: Any) -> None:
        self.storage.set_item(CACHE_PREFIX + key, {"data": value, "timestamp": time.time()})

    def read(self, key: str) -> Optional[Any]:
        entry = self.storage.get_item(CACHE_PREFIX + key)
        if not isinstance(entry, dict):
            return None
        return entry.get("data")

    def cached_at(self, key: str) -> Optional[float]:
        entry = self.storage.get_item(CACHE_PREFIX + key)
        if not isinstance(entry, dict):
            return None
        return entry.get("timestamp")

    def is_expired(self, key: str, max_age: float = 300) -> bool:
        """True when the snapshot is missing or older than ``max_age`` seconds."""
        stamp = self.cached_at(key)
        if stamp is None:
            return True
        return time.time() - stamp > max_age

    def clear(self) -> None:
        removed = self.storage.clear(CACHE_PREFIX)
        logger.info(f"Cleared {removed} offline snapshots")

    # -------------------------------------------------------------------
    # Pending actions
    # -------------------------------------------------------------------

    def pending_actions(self) -> List[OfflineAction]:
        return [OfflineAction.from_dict(item) for item in self.storage.get_item(QUEUE_KEY, [])]

    def _save_queue(self, actions: List[OfflineAction]) -> None:
        self.storage.set_item(QUEUE_KEY, [asdict(a) for a in actions])

    def enqueue(self, action_type: str, table: str, payload: Dict[str, Any]) -> OfflineAction:
        if action_type not in ACTION_TYPES:
            raise ValueError(f"Unknown action type: {action_type}")
        action = OfflineAction(
            id=generate_id(),
            type=action_type,
            table=table,
            payload=payload,
            timestamp=utc_now(),
        )
        actions = self.pending_actions()
        actions.append(action)
        self._save_queue(actions)
        logger.info(f"Queued offline {action_type} on {table} ({len(actions)} pending)")
        return action

    def drain(self, replay: Callable[[OfflineAction], None]) -> DrainResult:
        """Replay every queued action in order.

        ``replay`` raises to signal failure. Successful actions are removed,
        failed ones are kept with their error and attempt count.
        """
        result = DrainResult()
        remaining: List[OfflineAction] = []

        for action in self.pending_actions():
            try:
                replay(action)
            except Exception as e:
                action.attempts += 1
                action.last_error = str(e)
                logger.error(f"Replay of {action.type} on {action.table} failed: {e}")
                result.failed.append(action)
                remaining.append(action)
                continue
            result.replayed.append(action)

        self._save_queue(remaining)
        result.remaining = len(remaining)
        logger.info(
            f"Offline queue drained: {len(result.replayed)} replayed, "
            f"{len(result.failed)} failed"
        )
        return result
