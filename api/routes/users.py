"""Staff user management API."""
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from api.auth import Principal, require_admin, require_staff
from api.dependencies import get_context, raise_for_result, result_payload, serialize_list
from models.user import Role, User, UserPermissions
from stores.context import StoreContext

router = APIRouter(prefix="/api/users", tags=["Users"])


class PermissionsModel(BaseModel):
    can_view_receptions: bool = False
    can_create_task: bool = False
    can_create_reception: bool = False
    can_complete_services: bool = False
    can_manage_customers: bool = False
    can_view_history: bool = False


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=4)
    name: str = ""
    email: str = ""
    role: Role = Role.TECHNICIAN
    job_description: str = ""
    active: bool = True
    permissions: Optional[PermissionsModel] = None


class UserUpdate(BaseModel):
    username: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[Role] = None
    job_description: Optional[str] = None
    active: Optional[bool] = None
    permissions: Optional[PermissionsModel] = None


class PasswordReset(BaseModel):
    password: str = Field(..., min_length=4)


@router.get("")
def list_users(
    refresh: bool = False,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    if refresh or not context.users.items:
        context.users.load()
    result = serialize_list(context.users.items)
    result["warning"] = context.users.warning
    return result


@router.post("", status_code=status.HTTP_201_CREATED)
def create_user(
    request: UserCreate,
    admin: Principal = Depends(require_admin),
    context: StoreContext = Depends(get_context),
):
    permissions = (
        UserPermissions.from_dict(request.permissions.model_dump())
        if request.permissions
        else UserPermissions.for_role(request.role)
    )
    user = User(
        username=request.username,
        name=request.name,
        email=request.email,
        role=request.role,
        job_description=request.job_description,
        active=request.active,
        permissions=permissions,
    )
    return result_payload(context.users.create_user(user, request.password, actor=admin.id))


@router.put("/{user_id}")
def update_user(
    user_id: str,
    request: UserUpdate,
    admin: Principal = Depends(require_admin),
    context: StoreContext = Depends(get_context),
):
    changes = request.model_dump(exclude_none=True)
    if request.permissions is not None:
        changes["permissions"] = UserPermissions.from_dict(changes["permissions"])
    return result_payload(context.users.update(user_id, changes, actor=admin.id))


@router.post("/{user_id}/password", status_code=status.HTTP_204_NO_CONTENT)
def reset_password(
    user_id: str,
    request: PasswordReset,
    admin: Principal = Depends(require_admin),
    context: StoreContext = Depends(get_context),
):
    raise_for_result(context.users.set_password(user_id, request.password, actor=admin.id))


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    admin: Principal = Depends(require_admin),
    context: StoreContext = Depends(get_context),
):
    return result_payload(context.users.delete(user_id, actor=admin.id))
