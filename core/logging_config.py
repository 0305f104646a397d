"""Logging setup with per-request correlation fields.

Stores and routes tag their log lines with the table, entity and actor they
are working on through context variables, so a single API call or offline
replay can be followed across modules.
"""
import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

current_run_id: ContextVar[str] = ContextVar("run_id", default="")
current_table: ContextVar[str] = ContextVar("table", default="")
current_entity_id: ContextVar[str] = ContextVar("entity_id", default="")
current_actor: ContextVar[str] = ContextVar("actor", default="")

# field name -> (variable, short label used by the text format)
_FIELDS = {
    "run_id": (current_run_id, "run"),
    "table": (current_table, "table"),
    "entity_id": (current_entity_id, "id"),
    "actor": (current_actor, "by"),
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _active_fields() -> Dict[str, str]:
    return {name: var.get() for name, (var, _) in _FIELDS.items() if var.get()}


def generate_run_id() -> str:
    """New correlation id, e.g. ``run_20240101_120000_1a2b3c4d``."""
    return f"run_{_utc_now():%Y%m%d_%H%M%S}_{uuid.uuid4().hex[:8]}"


def set_context(
    run_id: Optional[str] = None,
    table: Optional[str] = None,
    entity_id: Optional[str] = None,
    actor: Optional[str] = None,
) -> None:
    values = {"run_id": run_id, "table": table, "entity_id": entity_id, "actor": actor}
    for name, value in values.items():
        if value is not None:
            _FIELDS[name][0].set(value)


def clear_context() -> None:
    for var, _ in _FIELDS.values():
        var.set("")


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": _utc_now().isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_active_fields(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(getattr(record, "extra_fields", {}))
        return json.dumps(entry, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Console format: ``time LEVEL logger [run=.., table=..]: message``."""

    def format(self, record: logging.LogRecord) -> str:
        tags = []
        for name, value in _active_fields().items():
            label = _FIELDS[name][1]
            tags.append(f"{label}={value[:16] if name == 'run_id' else value}")
        suffix = f" [{', '.join(tags)}]" if tags else ""

        line = f"{_utc_now():%Y-%m-%d %H:%M:%S} {record.levelname:8s} {record.name}{suffix}: {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: str = "INFO",
    format_type: str = "text",
    logger_name: Optional[str] = None,
) -> logging.Logger:
    """
    Install a single stdout handler on ``logger_name`` (root when None).

    Args:
        level: level name; unknown names fall back to INFO
        format_type: "json" or "text"
        logger_name: a named logger stops propagating to root
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger(logger_name)
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter() if format_type.lower() == "json" else TextFormatter())
    logger.addHandler(handler)

    if logger_name is not None:
        logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """Set correlation fields for a block and restore the previous ones after."""

    def __init__(
        self,
        run_id: Optional[str] = None,
        table: Optional[str] = None,
        entity_id: Optional[str] = None,
        actor: Optional[str] = None,
    ):
        self._values = {"run_id": run_id, "table": table, "entity_id": entity_id, "actor": actor}
        self._tokens = {}

    def __enter__(self):
        for name, value in self._values.items():
            if value:
                self._tokens[name] = _FIELDS[name][0].set(value)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for name, token in self._tokens.items():
            _FIELDS[name][0].reset(token)
        self._tokens = {}
        return False
