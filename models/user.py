"""Staff user model."""
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional

from models.base import RowEntity, format_bool, parse_bool, parse_json, dump_json
from schemas.sheets_schema import USERS


class Role(str, Enum):
    """Staff roles."""
    ADMIN = "admin"
    RECEPTIONIST = "receptionist"
    TECHNICIAN = "technician"
    WAREHOUSE = "warehouse"
    DETAILING = "detailing"
    ACCOUNTANT = "accountant"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.TECHNICIAN


@dataclass
class UserPermissions:
    """Named permission flags."""
    can_view_receptions: bool = False
    can_create_task: bool = False
    can_create_reception: bool = False
    can_complete_services: bool = False
    can_manage_customers: bool = False
    can_view_history: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserPermissions":
        known = {name: parse_bool(data.get(name)) for name in cls.__dataclass_fields__}
        return cls(**known)

    @classmethod
    def for_role(cls, role: Role) -> "UserPermissions":
        """Default permission set of a role."""
        if role == Role.ADMIN:
            return cls(True, True, True, True, True, True)
        if role == Role.RECEPTIONIST:
            return cls(
                can_view_receptions=True,
                can_create_task=True,
                can_create_reception=True,
                can_manage_customers=True,
                can_view_history=True,
            )
        if role == Role.ACCOUNTANT:
            return cls(can_view_receptions=True, can_complete_services=True, can_view_history=True)
        return cls()


@dataclass
class User(RowEntity):
    """A staff member who can log in."""
    table: ClassVar[str] = USERS

    username: str
    name: str = ""
    email: str = ""
    role: Role = Role.TECHNICIAN
    job_description: str = ""
    active: bool = True
    permissions: UserPermissions = field(default_factory=UserPermissions)
    password_hash: str = ""
    auth_user_id: Optional[str] = None
    id: str = ""
    created_at: str = ""
    updated_at: str = ""

    def to_record(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "job_description": self.job_description,
            "active": format_bool(self.active),
            "permissions": dump_json(self.permissions.to_dict()),
            "password_hash": self.password_hash,
            "auth_user_id": self.auth_user_id or "",
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "User":
        role = Role.parse(record.get("role", ""))
        raw_permissions = parse_json(record.get("permissions"), None)
        permissions = (
            UserPermissions.from_dict(raw_permissions)
            if isinstance(raw_permissions, dict)
            else UserPermissions.for_role(role)
        )
        return cls(
            id=record.get("id", ""),
            username=record.get("username", ""),
            name=record.get("name", ""),
            email=record.get("email", ""),
            role=role,
            job_description=record.get("job_description", ""),
            active=parse_bool(record.get("active"), default=True),
            permissions=permissions,
            password_hash=record.get("password_hash", ""),
            auth_user_id=record.get("auth_user_id") or None,
            created_at=record.get("created_at", ""),
            updated_at=record.get("updated_at", ""),
        )

    def public_dict(self) -> Dict[str, Any]:
        """Representation safe to hand to clients (no password hash)."""
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "job_description": self.job_description,
            "active": self.active,
            "permissions": self.permissions.to_dict(),
            "auth_user_id": self.auth_user_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
