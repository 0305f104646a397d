"""Customer model."""
from dataclasses import dataclass
from typing import Any, ClassVar, Dict

from models.base import RowEntity, format_bool, parse_bool
from schemas.sheets_schema import CUSTOMERS


@dataclass
class Customer(RowEntity):
    """A shop customer. ``code`` and ``mobile`` together form the portal login."""
    table: ClassVar[str] = CUSTOMERS

    name: str
    mobile: str
    email: str = ""
    can_login: bool = True
    code: str = ""
    id: str = ""
    created_at: str = ""
    updated_at: str = ""

    def to_record(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "mobile": self.mobile,
            "email": self.email,
            "can_login": format_bool(self.can_login),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Customer":
        return cls(
            id=record.get("id", ""),
            code=record.get("code", ""),
            name=record.get("name", ""),
            mobile=record.get("mobile", ""),
            email=record.get("email", ""),
            can_login=parse_bool(record.get("can_login"), default=False),
            created_at=record.get("created_at", ""),
            updated_at=record.get("updated_at", ""),
        )
