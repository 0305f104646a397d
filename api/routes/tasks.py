"""Task management API."""
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from pydantic import BaseModel, Field

from api.auth import Principal, require_staff
from api.dependencies import get_context, raise_for_result, result_payload, serialize, serialize_list
from models.base import WorkStatus
from models.task import AssignedUser, Priority, Task, VehicleRef
from services.drive import FileUpload
from stores.context import StoreContext

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    priority: Priority = Priority.MEDIUM
    assigned_to_id: str
    vehicle_id: str
    due_date: str = ""


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[WorkStatus] = None
    assigned_to_id: Optional[str] = None
    due_date: Optional[str] = None
    note: Optional[str] = Field(None, description="History note for a status change")


def _assignee(context: StoreContext, user_id: str) -> AssignedUser:
    user = context.users.get(user_id)
    if user is None:
        raise HTTPException(status_code=400, detail=f"Unknown user: {user_id}")
    return AssignedUser(id=user.id, name=user.name or user.username)


def _vehicle(context: StoreContext, reception_id: str) -> VehicleRef:
    reception = context.receptions.get(reception_id)
    if reception is None:
        raise HTTPException(status_code=400, detail=f"Unknown reception: {reception_id}")
    return VehicleRef(
        id=reception.id,
        make=reception.vehicle_info.make,
        model=reception.vehicle_info.model,
        plate_number=reception.vehicle_info.plate_number,
    )


@router.get("")
def list_tasks(
    vehicle_id: Optional[str] = None,
    assigned_to: Optional[str] = None,
    refresh: bool = False,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    store = context.tasks
    if refresh or not store.items:
        store.load()
    items = store.items
    if vehicle_id:
        items = store.tasks_for_vehicle(vehicle_id)
    if assigned_to:
        items = [t for t in items if t.assigned_to.id == assigned_to]
    result = serialize_list(items)
    result["warning"] = store.warning
    return result


@router.get("/mine")
def my_tasks(
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    return serialize_list(context.tasks.tasks_for_user(principal.id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_task(
    request: TaskCreate,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    task = Task(
        title=request.title,
        description=request.description,
        priority=request.priority,
        assigned_to=_assignee(context, request.assigned_to_id),
        vehicle=_vehicle(context, request.vehicle_id),
        due_date=request.due_date,
    )
    return result_payload(context.tasks.add(task, actor=principal.name or principal.id))


@router.put("/{task_id}")
def update_task(
    task_id: str,
    request: TaskUpdate,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    changes = request.model_dump(exclude_none=True, exclude={"assigned_to_id"})
    if request.assigned_to_id is not None:
        changes["assigned_to"] = _assignee(context, request.assigned_to_id)
    return result_payload(context.tasks.update(task_id, changes, actor=principal.name or principal.id))


@router.post("/{task_id}/images")
def upload_task_images(
    task_id: str,
    files: List[UploadFile] = File(..., description="Images to attach"),
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    """Upload images to the file store and attach the ones that succeeded."""
    uploads = [
        FileUpload(
            content=f.file.read(),
            name=f.filename or "image",
            mime_type=f.content_type or "application/octet-stream",
        )
        for f in files
    ]
    outcome = context.tasks.add_images(task_id, uploads, actor=principal.name or principal.id)
    raise_for_result(outcome.result)
    return {
        "item": serialize(outcome.result.entity),
        "uploaded": outcome.uploaded,
        "failed": outcome.failed,
    }


@router.delete("/{task_id}")
def delete_task(
    task_id: str,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    return result_payload(context.tasks.delete(task_id, actor=principal.id))
