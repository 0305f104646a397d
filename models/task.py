"""Workshop task model with its append-only history."""
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List

from models.base import RowEntity, WorkStatus, dump_json, parse_json, parse_list
from schemas.sheets_schema import TASKS


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Any) -> "Priority":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MEDIUM


@dataclass
class AssignedUser:
    """Assignee. ``name`` is a display label copied at assignment time."""
    id: str = ""
    name: str = ""


@dataclass
class VehicleRef:
    """The reception a task belongs to, with display labels copied from it."""
    id: str = ""
    make: str = ""
    model: str = ""
    plate_number: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VehicleRef":
        return cls(
            id=str(data.get("id", "")),
            make=str(data.get("make", "")),
            model=str(data.get("model", "")),
            plate_number=str(data.get("plate_number", data.get("plateNumber", ""))),
        )


@dataclass
class HistoryEntry:
    date: str
    status: WorkStatus
    description: str
    updated_by: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "date": self.date,
            "status": self.status.value,
            "description": self.description,
            "updated_by": self.updated_by,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        return cls(
            date=str(data.get("date", "")),
            status=WorkStatus.parse(data.get("status")),
            description=str(data.get("description", "")),
            updated_by=str(data.get("updated_by", data.get("updatedBy", ""))),
        )


@dataclass
class Task(RowEntity):
    """A unit of work on a received vehicle."""
    table: ClassVar[str] = TASKS

    title: str
    assigned_to: AssignedUser
    vehicle: VehicleRef
    description: str = ""
    status: WorkStatus = WorkStatus.PENDING
    priority: Priority = Priority.MEDIUM
    due_date: str = ""
    images: List[str] = field(default_factory=list)
    history: List[HistoryEntry] = field(default_factory=list)
    id: str = ""
    created_at: str = ""
    updated_at: str = ""

    def to_record(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "assigned_to_id": self.assigned_to.id,
            "assigned_to_name": self.assigned_to.name,
            "vehicle_id": self.vehicle.id,
            "vehicle_info": dump_json(asdict(self.vehicle)),
            "due_date": self.due_date,
            "images": dump_json(self.images),
            "history": dump_json([entry.to_dict() for entry in self.history]),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Task":
        vehicle = VehicleRef.from_dict(parse_json(record.get("vehicle_info"), {}))
        if not vehicle.id:
            vehicle.id = record.get("vehicle_id", "")
        history = parse_json(record.get("history"), [])
        return cls(
            id=record.get("id", ""),
            title=record.get("title", ""),
            description=record.get("description", ""),
            status=WorkStatus.parse(record.get("status")),
            priority=Priority.parse(record.get("priority")),
            assigned_to=AssignedUser(
                id=record.get("assigned_to_id", ""),
                name=record.get("assigned_to_name", ""),
            ),
            vehicle=vehicle,
            due_date=record.get("due_date", ""),
            images=parse_list(record.get("images")),
            history=[HistoryEntry.from_dict(item) for item in history if isinstance(item, dict)],
            created_at=record.get("created_at", ""),
            updated_at=record.get("updated_at", ""),
        )
