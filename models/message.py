"""Internal staff message model."""
from dataclasses import dataclass
from typing import Any, ClassVar, Dict

from models.base import RowEntity, format_bool, parse_bool
from schemas.sheets_schema import MESSAGES


@dataclass
class Message(RowEntity):
    table: ClassVar[str] = MESSAGES

    from_user_id: str
    to_user_id: str
    subject: str
    content: str
    from_name: str = ""
    to_name: str = ""
    read: bool = False
    id: str = ""
    created_at: str = ""

    def to_record(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "from_user_id": self.from_user_id,
            "from_name": self.from_name,
            "to_user_id": self.to_user_id,
            "to_name": self.to_name,
            "subject": self.subject,
            "content": self.content,
            "read": format_bool(self.read),
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Message":
        return cls(
            id=record.get("id", ""),
            from_user_id=record.get("from_user_id", ""),
            from_name=record.get("from_name", ""),
            to_user_id=record.get("to_user_id", ""),
            to_name=record.get("to_name", ""),
            subject=record.get("subject", ""),
            content=record.get("content", ""),
            read=parse_bool(record.get("read")),
            created_at=record.get("created_at", ""),
        )
