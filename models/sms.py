"""SMS templates, gateway settings and send logs."""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional

from models.base import RowEntity, parse_bool, parse_float
from schemas.sheets_schema import SMS_LOGS

VARIABLE_PATTERN = re.compile(r"\{(\w+)\}")


def extract_variables(content: str) -> List[str]:
    """Placeholder names in order of first appearance, without duplicates."""
    seen: List[str] = []
    for name in VARIABLE_PATTERN.findall(content or ""):
        if name not in seen:
            seen.append(name)
    return seen


@dataclass
class SMSTemplate:
    id: str
    name: str
    content: str
    variables: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.variables:
            self.variables = extract_variables(self.content)

    def render(self, values: Dict[str, Any]) -> str:
        """Fill placeholders. Raises ValueError listing any missing variable."""
        missing = [name for name in self.variables if name not in values]
        if missing:
            raise ValueError(f"Missing template variables: {', '.join(missing)}")
        return VARIABLE_PATTERN.sub(lambda m: str(values.get(m.group(1), m.group(0))), self.content)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "content": self.content, "variables": self.variables}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SMSTemplate":
        content = str(data.get("content", ""))
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            content=content,
            variables=extract_variables(content),
        )


DEFAULT_TEMPLATES = [
    SMSTemplate(
        id="1",
        name="Vehicle received",
        content=(
            "Dear {customerName}, your {vehicleModel} with plate {plateNumber} "
            "has been received at {shopName}. Tracking code: {trackingCode}"
        ),
    ),
    SMSTemplate(
        id="2",
        name="Repairs completed",
        content=(
            "Dear {customerName}, the repairs on your {vehicleModel} are complete. "
            "Please contact us to arrange pickup. {shopName}"
        ),
    ),
    SMSTemplate(
        id="3",
        name="Pickup reminder",
        content="Dear {customerName}, your vehicle is ready for pickup. {shopName}",
    ),
]


def default_templates() -> List[SMSTemplate]:
    """Fresh copies of the built-in templates."""
    return [SMSTemplate.from_dict(t.to_dict()) for t in DEFAULT_TEMPLATES]


@dataclass
class SMSSettings:
    """Vendor credentials, enable flag and the template set."""
    username: str = ""
    password: str = ""
    sender: str = ""
    enabled: bool = False
    templates: List[SMSTemplate] = field(default_factory=default_templates)

    @property
    def is_configured(self) -> bool:
        return bool(self.enabled and self.username and self.password)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "password": self.password,
            "sender": self.sender,
            "enabled": self.enabled,
            "templates": [t.to_dict() for t in self.templates],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SMSSettings":
        templates = data.get("templates")
        return cls(
            username=str(data.get("username", "")),
            password=str(data.get("password", "")),
            sender=str(data.get("sender", "")),
            enabled=parse_bool(data.get("enabled")),
            templates=(
                [SMSTemplate.from_dict(t) for t in templates]
                if isinstance(templates, list)
                else default_templates()
            ),
        )


class SMSStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    PENDING = "pending"


@dataclass
class SMSLog(RowEntity):
    """One send attempt."""
    table: ClassVar[str] = SMS_LOGS

    to: str
    message: str
    status: SMSStatus = SMSStatus.PENDING
    sent_at: str = ""
    template_used: Optional[str] = None
    cost: float = 0.0
    error: str = ""
    id: str = ""
    created_at: str = ""

    def to_record(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "to": self.to,
            "message": self.message,
            "status": self.status.value,
            "sent_at": self.sent_at,
            "template_used": self.template_used or "",
            "cost": f"{self.cost:g}",
            "error": self.error,
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "SMSLog":
        try:
            status = SMSStatus(record.get("status", ""))
        except ValueError:
            status = SMSStatus.PENDING
        return cls(
            id=record.get("id", ""),
            to=record.get("to", ""),
            message=record.get("message", ""),
            status=status,
            sent_at=record.get("sent_at", ""),
            template_used=record.get("template_used") or None,
            cost=parse_float(record.get("cost")),
            error=record.get("error", ""),
            created_at=record.get("created_at", ""),
        )
