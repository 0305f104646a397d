"""Entity store: an in-memory list of one table's entities kept in step with the sheet.

Every operation returns a ``StoreResult`` instead of raising for remote
failures. Writes always re-read the live row by id first, because row
numbers shift whenever anyone inserts or deletes a row.

There is no conflict detection: if two devices update the same record,
the last write wins and the earlier one is silently overwritten.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from core.logging_config import LogContext
from models.base import RowEntity, WorkStatus, generate_id, utc_now
from schemas.sheets_schema import get_header_row, get_immutable_columns
from services.local_storage import LocalStorage
from services.offline_cache import OfflineAction, OfflineCache
from services.sheets import AuthenticationError, SheetsClient, SheetsError, TransportError

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=RowEntity)

STALE_RECORD_MESSAGE = "Record was changed or removed by someone else"


class ResultStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class StoreResult(Generic[E]):
    status: ResultStatus
    entity: Optional[E] = None
    error: str = ""
    queued: bool = False

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.OK


@dataclass
class LoginResult(Generic[E]):
    success: bool
    entity: Optional[E] = None
    error: str = ""


class ValidationFailed(Exception):
    """Raised by store hooks to reject a write before it reaches the sheet."""

    def __init__(self, message: str, status: ResultStatus = ResultStatus.REJECTED):
        super().__init__(message)
        self.status = status


def parse_status_change(value: Any) -> WorkStatus:
    """Strict form of ``WorkStatus.parse`` for writes: unknown values are rejected."""
    if isinstance(value, WorkStatus):
        return value
    try:
        return WorkStatus(str(value).strip())
    except ValueError:
        allowed = ", ".join(s.value for s in WorkStatus)
        raise ValidationFailed(f"Unknown status {value!r} (expected one of: {allowed})") from None


class EntityStore(Generic[E]):
    """Base store. Subclasses set ``entity_class`` and override the hooks."""

    entity_class: Type[E] = None

    def __init__(
        self,
        sheets: SheetsClient,
        storage: Optional[LocalStorage] = None,
        offline_cache: Optional[OfflineCache] = None,
        queue_offline_writes: bool = True,
    ):
        self.sheets = sheets
        self.storage = storage
        self.offline_cache = offline_cache
        self.queue_offline_writes = queue_offline_writes
        self.table = self.entity_class.table

        self.items: List[E] = []
        self.is_loading = False
        self.error: Optional[str] = None
        self.warning: Optional[str] = None

        self._restore_snapshot()

    # -------------------------------------------------------------------
    # Persisted snapshot
    # -------------------------------------------------------------------

    @property
    def snapshot_key(self) -> str:
        return f"{self.table}-storage"

    def _restore_snapshot(self) -> None:
        if self.storage is None:
            return
        records = self.storage.get_item(self.snapshot_key, [])
        self.items = [self.entity_class.from_record(r) for r in records if isinstance(r, dict)]
        if self.items:
            logger.debug(f"Restored {len(self.items)} {self.table} from local snapshot")

    def _persist(self) -> None:
        if self.storage is not None:
            self.storage.set_item(self.snapshot_key, [e.to_record() for e in self.items])

    # -------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------

    def check_duplicate(self, entity: E, exclude_id: Optional[str] = None) -> Optional[str]:
        """Return an error message when ``entity`` clashes with a known one."""
        return None

    def prepare_new(self, entity: E, actor: str = "") -> E:
        """Fill in store-owned fields of a new entity."""
        return entity

    def apply_changes(self, current: E, changes: Dict[str, Any], actor: str = "") -> E:
        """Merge ``changes`` into the live entity. Raise ValidationFailed to reject."""
        immutable = set(get_immutable_columns(self.table))
        for key in immutable & set(changes):
            if changes[key] != getattr(current, key, None):
                raise ValidationFailed(f"Field '{key}' cannot be changed")
        changes = {k: v for k, v in changes.items() if k not in immutable}
        try:
            return current.with_changes(changes)
        except ValueError as e:
            raise ValidationFailed(str(e)) from e

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------

    def get(self, entity_id: str) -> Optional[E]:
        for item in self.items:
            if item.id == entity_id:
                return item
        return None

    def _entities_from_records(self, records: List[Dict[str, Any]]) -> List[E]:
        # Newest first: the sheet appends at the bottom.
        return [self.entity_class.from_record(r) for r in reversed(records) if r.get("id")]

    def load(self) -> StoreResult:
        """Replace ``items`` with the live table, falling back to the offline cache."""
        self.is_loading = True
        self.error = None
        self.warning = None
        try:
            sheet = self.sheets.list_rows(self.table)
        except AuthenticationError as e:
            return self._authentication_failed(e)
        except SheetsError as e:
            return self._load_from_cache(e)
        finally:
            self.is_loading = False

        self.items = self._entities_from_records([row.values for row in sheet.rows])
        self._persist()
        logger.info(f"Loaded {len(self.items)} {self.table}")
        return StoreResult(ResultStatus.OK)

    def _load_from_cache(self, cause: Exception) -> StoreResult:
        cached = self.offline_cache.read(self.table) if self.offline_cache else None
        if cached is not None:
            self.items = self._entities_from_records(cached)
            self.warning = f"Showing cached {self.table}; the latest changes may be missing ({cause})"
            logger.warning(f"Load of {self.table} failed, using offline cache: {cause}")
            return StoreResult(ResultStatus.OK, error=self.warning)

        self.items = []
        self.error = f"Could not load {self.table}: {cause}"
        logger.error(self.error)
        return StoreResult(ResultStatus.FAILED, error=self.error)

    def _authentication_failed(self, cause: AuthenticationError) -> StoreResult:
        # Cached rows stay visible, but the caller must sign in again.
        cached = self.offline_cache.read(self.table) if self.offline_cache else None
        if cached is not None:
            self.items = self._entities_from_records(cached)
        self.error = f"Must re-authenticate to load {self.table}: {cause}"
        logger.error(self.error)
        return StoreResult(ResultStatus.FAILED, error=self.error)

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------

    def _headers(self) -> List[str]:
        return self.sheets.get_headers(self.table) or get_header_row(self.table)

    def _stamp_new(self, entity: E) -> E:
        now = utc_now()
        entity.id = entity.id or generate_id()
        entity.created_at = entity.created_at or now
        if hasattr(entity, "updated_at"):
            entity.updated_at = now
        return entity

    def _write_failed(
        self, error: SheetsError, action_type: str, payload: Optional[Dict[str, Any]]
    ) -> StoreResult:
        queued = False
        if (
            isinstance(error, TransportError)
            and self.queue_offline_writes
            and self.offline_cache is not None
            and payload is not None
        ):
            self.offline_cache.enqueue(action_type, self.table, payload)
            queued = True
        message = f"Could not {action_type} {self.table} record: {error}"
        if isinstance(error, AuthenticationError):
            message = f"Not authorized to write {self.table}: {error}"
        logger.error(message)
        return StoreResult(ResultStatus.FAILED, error=message, queued=queued)

    def add(self, entity: E, actor: str = "") -> StoreResult:
        duplicate = self.check_duplicate(entity)
        if duplicate:
            return StoreResult(ResultStatus.DUPLICATE, error=duplicate)

        try:
            entity = self._stamp_new(self.prepare_new(entity, actor))
        except ValidationFailed as e:
            return StoreResult(e.status, error=str(e))

        with LogContext(table=self.table, entity_id=entity.id, actor=actor or None):
            try:
                headers = self._headers()
                self.sheets.append_row(self.table, entity.to_row(headers))
            except SheetsError as e:
                return self._write_failed(e, "create", entity.to_record())

            self.items.insert(0, entity)
            self._persist()
            logger.info(f"Added {self.table} record {entity.id}")
        return StoreResult(ResultStatus.OK, entity=entity)

    def update(self, entity_id: str, changes: Dict[str, Any], actor: str = "") -> StoreResult:
        with LogContext(table=self.table, entity_id=entity_id, actor=actor or None):
            try:
                headers, row = self.sheets.find_row(self.table, entity_id)
            except SheetsError as e:
                return self._write_failed(e, "update", self._offline_update_payload(entity_id, changes, actor))

            if row is None:
                logger.warning(f"Update of missing {self.table} record {entity_id}")
                return StoreResult(ResultStatus.NOT_FOUND, error=STALE_RECORD_MESSAGE)

            current = self.entity_class.from_record(row.values)
            try:
                updated = self.apply_changes(current, changes, actor)
                duplicate = self.check_duplicate(updated, exclude_id=entity_id)
                if duplicate:
                    raise ValidationFailed(duplicate, ResultStatus.DUPLICATE)
            except ValidationFailed as e:
                return StoreResult(e.status, entity=current, error=str(e))

            if hasattr(updated, "updated_at"):
                updated.updated_at = utc_now()

            try:
                self.sheets.update_row(
                    self.table, row.row_number, updated.to_row(headers, base=row.values)
                )
            except SheetsError as e:
                return self._write_failed(e, "update", {"id": entity_id, "record": updated.to_record()})

            self._replace_item(updated)
            logger.info(f"Updated {self.table} record {entity_id}")
        return StoreResult(ResultStatus.OK, entity=updated)

    def _offline_update_payload(self, entity_id: str, changes: Dict[str, Any], actor: str) -> Optional[Dict[str, Any]]:
        current = self.get(entity_id)
        if current is None:
            return None
        try:
            updated = self.apply_changes(current, changes, actor)
        except ValidationFailed:
            return None
        if hasattr(updated, "updated_at"):
            updated.updated_at = utc_now()
        return {"id": entity_id, "record": updated.to_record()}

    def _replace_item(self, entity: E) -> None:
        for i, item in enumerate(self.items):
            if item.id == entity.id:
                self.items[i] = entity
                break
        else:
            self.items.insert(0, entity)
        self._persist()

    def delete(self, entity_id: str, actor: str = "") -> StoreResult:
        with LogContext(table=self.table, entity_id=entity_id, actor=actor or None):
            try:
                _, row = self.sheets.find_row(self.table, entity_id)
                if row is None:
                    logger.warning(f"Delete of missing {self.table} record {entity_id}")
                    return StoreResult(ResultStatus.NOT_FOUND, error=STALE_RECORD_MESSAGE)
                self.sheets.delete_row(self.table, row.row_number)
            except SheetsError as e:
                return self._write_failed(e, "delete", {"id": entity_id})

            removed = self.get(entity_id)
            self.items = [item for item in self.items if item.id != entity_id]
            self._persist()
            logger.info(f"Deleted {self.table} record {entity_id}")
        return StoreResult(ResultStatus.OK, entity=removed)

    # -------------------------------------------------------------------
    # Offline replay
    # -------------------------------------------------------------------

    def apply_action(self, action: OfflineAction) -> None:
        """Replay one queued action against the live table. Raises SheetsError on failure."""
        payload = action.payload
        if action.type == "create":
            headers, row = self.sheets.find_row(self.table, payload.get("id", ""))
            if row is not None:
                logger.info(f"Skipping replayed create of existing {self.table} record {payload.get('id')}")
                return
            headers = headers or get_header_row(self.table)
            self.sheets.append_row(self.table, [str(payload.get(h, "")) for h in headers])
        elif action.type == "update":
            headers, row = self.sheets.find_row(self.table, payload["id"])
            if row is None:
                logger.warning(f"Dropping replayed update of missing {self.table} record {payload['id']}")
                return
            values = dict(row.values)
            values.update(payload.get("record", {}))
            self.sheets.update_row(self.table, row.row_number, [str(values.get(h, "")) for h in headers])
        elif action.type == "delete":
            _, row = self.sheets.find_row(self.table, payload["id"])
            if row is not None:
                self.sheets.delete_row(self.table, row.row_number)
        else:
            raise ValueError(f"Unknown action type: {action.type}")
        logger.info(f"Replayed {action.type} on {self.table}")
