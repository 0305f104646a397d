"""
Google Sheets Schema - one sheet per entity type

This module defines the header row of every table the shop keeps in the
spreadsheet, plus column-letter helpers used to address row ranges.

Column Classes:
- IMMUTABLE: Never change after row creation (id, created_at)
- SYSTEM: Maintained by the stores (updated_at, history, completion stamps)
- USER: Edited through normal store updates

Structured values (JSON column type) are stored as JSON text in one cell.
Booleans are stored as "true"/"false".

The live header row of a sheet wins over this schema when writing; the
schema is only used to create missing sheets and header rows.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class ColumnClass(Enum):
    """Column ownership class."""
    IMMUTABLE = "immutable"  # Never change after creation
    SYSTEM = "system"        # Maintained by the store layer
    USER = "user"            # Editable through updates


class ColumnType(Enum):
    """Column data type."""
    STRING = "string"
    BOOLEAN = "boolean"
    NUMBER = "number"
    DATETIME = "datetime"   # ISO format YYYY-MM-DDTHH:MM:SSZ
    ENUM = "enum"
    JSON = "json"


@dataclass
class ColumnDef:
    """Column definition."""
    name: str
    col_type: ColumnType = ColumnType.STRING
    col_class: ColumnClass = ColumnClass.USER
    description: str = ""


def _id() -> ColumnDef:
    return ColumnDef("id", ColumnType.STRING, ColumnClass.IMMUTABLE, "Timestamp + random string")


def _created_at() -> ColumnDef:
    return ColumnDef("created_at", ColumnType.DATETIME, ColumnClass.IMMUTABLE)


def _updated_at() -> ColumnDef:
    return ColumnDef("updated_at", ColumnType.DATETIME, ColumnClass.SYSTEM)


# =============================================================================
# SCHEMA DEFINITION
# =============================================================================

USERS = "users"
CUSTOMERS = "customers"
RECEPTIONS = "receptions"
TASKS = "tasks"
MESSAGES = "messages"
SMS_LOGS = "sms_logs"

TABLES: Dict[str, List[ColumnDef]] = {
    USERS: [
        _id(),
        ColumnDef("username", description="Login key, unique case-insensitively"),
        ColumnDef("name"),
        ColumnDef("email"),
        ColumnDef("role", ColumnType.ENUM),
        ColumnDef("job_description"),
        ColumnDef("active", ColumnType.BOOLEAN),
        ColumnDef("permissions", ColumnType.JSON),
        ColumnDef("password_hash", description="salt$pbkdf2-sha256 hex"),
        ColumnDef("auth_user_id", description="Linked external auth id"),
        _created_at(),
        _updated_at(),
    ],
    CUSTOMERS: [
        _id(),
        ColumnDef("code", description="Generated 6-digit customer code"),
        ColumnDef("name"),
        ColumnDef("mobile", description="Login key"),
        ColumnDef("email"),
        ColumnDef("can_login", ColumnType.BOOLEAN),
        _created_at(),
        _updated_at(),
    ],
    RECEPTIONS: [
        _id(),
        ColumnDef("customer_info", ColumnType.JSON),
        ColumnDef("vehicle_info", ColumnType.JSON),
        ColumnDef("service_info", ColumnType.JSON),
        ColumnDef("status", ColumnType.ENUM),
        ColumnDef("billing", ColumnType.JSON),
        ColumnDef("completed_at", ColumnType.DATETIME, ColumnClass.SYSTEM),
        ColumnDef("completed_by", ColumnType.STRING, ColumnClass.SYSTEM),
        ColumnDef("images", ColumnType.JSON),
        ColumnDef("documents", ColumnType.JSON),
        _created_at(),
        _updated_at(),
    ],
    TASKS: [
        _id(),
        ColumnDef("title"),
        ColumnDef("description"),
        ColumnDef("status", ColumnType.ENUM),
        ColumnDef("priority", ColumnType.ENUM),
        ColumnDef("assigned_to_id"),
        ColumnDef("assigned_to_name", description="Display label, id is authoritative"),
        ColumnDef("vehicle_id", description="Reception id"),
        ColumnDef("vehicle_info", ColumnType.JSON),
        ColumnDef("due_date"),
        ColumnDef("images", ColumnType.JSON),
        ColumnDef("history", ColumnType.JSON, ColumnClass.SYSTEM, "Append-only status log"),
        _created_at(),
        _updated_at(),
    ],
    MESSAGES: [
        _id(),
        ColumnDef("from_user_id"),
        ColumnDef("from_name"),
        ColumnDef("to_user_id"),
        ColumnDef("to_name"),
        ColumnDef("subject"),
        ColumnDef("content"),
        ColumnDef("read", ColumnType.BOOLEAN),
        _created_at(),
    ],
    SMS_LOGS: [
        _id(),
        ColumnDef("to"),
        ColumnDef("message"),
        ColumnDef("status", ColumnType.ENUM),
        ColumnDef("sent_at", ColumnType.DATETIME),
        ColumnDef("template_used"),
        ColumnDef("cost", ColumnType.NUMBER),
        ColumnDef("error"),
        _created_at(),
    ],
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_table_names() -> List[str]:
    """Get names of all known tables."""
    return list(TABLES)


def get_columns(table: str) -> List[ColumnDef]:
    """Get column definitions for a table."""
    try:
        return TABLES[table]
    except KeyError:
        raise ValueError(f"Unknown table: {table}")


def get_column_names(table: str) -> List[str]:
    """Get ordered list of column names."""
    return [col.name for col in get_columns(table)]


def get_column_by_name(table: str, name: str) -> Optional[ColumnDef]:
    """Get column definition by name."""
    for col in get_columns(table):
        if col.name == name:
            return col
    return None


def get_immutable_columns(table: str) -> List[str]:
    """Get names of immutable columns."""
    return [col.name for col in get_columns(table) if col.col_class == ColumnClass.IMMUTABLE]


def column_index_to_letter(index: int) -> str:
    """Convert 0-based column index to Excel-style letter (A, B, ..., Z, AA, AB, ...)."""
    result = ""
    while index >= 0:
        result = chr(index % 26 + ord('A')) + result
        index = index // 26 - 1
    return result


def get_last_column_letter(width: int) -> str:
    """Get the letter of the last column for a row ``width`` cells wide."""
    if width < 1:
        raise ValueError("Row width must be at least 1")
    return column_index_to_letter(width - 1)


def get_header_row(table: str) -> List[str]:
    """Get the header row for a table."""
    return get_column_names(table)
