"""Customer management API."""
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from api.auth import Principal, require_staff
from api.dependencies import get_context, result_payload, serialize_list
from models.customer import Customer
from stores.context import StoreContext

router = APIRouter(prefix="/api/customers", tags=["Customers"])


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1)
    mobile: str = Field(..., min_length=4)
    email: str = ""
    can_login: bool = True


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None
    can_login: Optional[bool] = None


@router.get("")
def list_customers(
    refresh: bool = False,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    if refresh or not context.customers.items:
        context.customers.load()
    result = serialize_list(context.customers.items)
    result["warning"] = context.customers.warning
    return result


@router.post("", status_code=status.HTTP_201_CREATED)
def create_customer(
    request: CustomerCreate,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    customer = Customer(**request.model_dump())
    return result_payload(context.customers.add(customer, actor=principal.id))


@router.put("/{customer_id}")
def update_customer(
    customer_id: str,
    request: CustomerUpdate,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    changes = request.model_dump(exclude_none=True)
    return result_payload(context.customers.update(customer_id, changes, actor=principal.id))


@router.delete("/{customer_id}")
def delete_customer(
    customer_id: str,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    return result_payload(context.customers.delete(customer_id, actor=principal.id))
