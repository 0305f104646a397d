"""Shared helpers for entities stored one-per-row in a sheet.

Every entity is a dataclass with an explicit ``to_record``/``from_record``
pair. Records are flat ``column -> str`` mappings; typed values (enums,
booleans, nested dataclasses) only exist on the entity side.
"""
import json
import logging
import time
import uuid
from dataclasses import fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Set

logger = logging.getLogger(__name__)


def generate_id() -> str:
    """Millisecond timestamp followed by a short random string."""
    return f"{int(time.time() * 1000)}{uuid.uuid4().hex[:9]}"


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_bool(value: Any, default: bool = False) -> bool:
    """Parse a "true"/"false" cell."""
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    text = str(value).strip().lower()
    if not text:
        return default
    return text in ("true", "1", "yes")


def format_bool(value: bool) -> str:
    return "true" if value else "false"


def parse_json(value: Any, default: Any) -> Any:
    """Parse a JSON cell, returning ``default`` for empty or malformed text."""
    if value is None or value == "":
        return default
    if isinstance(value, (dict, list)):
        return value
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        logger.warning(f"Malformed JSON cell ignored: {str(value)[:40]!r}")
        return default


def dump_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def parse_list(value: Any) -> List[str]:
    """Parse a list cell. Accepts a JSON array or legacy comma-separated text."""
    if not value:
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    text = str(value).strip()
    if text.startswith("["):
        parsed = parse_json(text, [])
        return [str(v) for v in parsed] if isinstance(parsed, list) else []
    return [part.strip() for part in text.split(",") if part.strip()]


def parse_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(str(value).replace(",", ""))
    except (TypeError, ValueError):
        return default


class WorkStatus(str, Enum):
    """Status of a reception or a task. Transitions only move forward."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    def can_transition_to(self, target: "WorkStatus") -> bool:
        """Forward moves (including skipping in-progress) and no-ops are allowed."""
        return target.rank >= self.rank

    @classmethod
    def parse(cls, value: Any, default: "WorkStatus" = None) -> "WorkStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            return default or cls.PENDING


_STATUS_ORDER = [WorkStatus.PENDING, WorkStatus.IN_PROGRESS, WorkStatus.COMPLETED]


class RowEntity:
    """Mixin for dataclasses that map onto one sheet row."""

    table: ClassVar[str] = ""

    id: str
    created_at: str

    def to_record(self) -> Dict[str, str]:
        raise NotImplementedError

    @classmethod
    def from_record(cls, record: Dict[str, Any]):
        raise NotImplementedError

    @classmethod
    def field_names(cls) -> Set[str]:
        return {f.name for f in fields(cls)}

    def with_changes(self, changes: Dict[str, Any]):
        """Return a copy with ``changes`` applied; unknown field names are an error."""
        unknown = set(changes) - self.field_names()
        if unknown:
            raise ValueError(f"Unknown fields for {type(self).__name__}: {sorted(unknown)}")
        return replace(self, **changes)

    def to_row(self, headers: List[str], base: Optional[Dict[str, str]] = None) -> List[str]:
        """Order values by ``headers``.

        Columns the entity does not know about keep their value from ``base``
        (the live row), so manual columns added to the sheet survive a rewrite.
        """
        values = dict(base or {})
        values.update(self.to_record())
        return [values.get(header, "") for header in headers]
