"""
Vehicle Reception API

Intake, edits, and completion with billing. Completing a reception also
completes every task that belongs to it.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from api.auth import Principal, require_staff
from api.dependencies import get_context, raise_for_result, result_payload, serialize, serialize_list
from models.base import WorkStatus
from models.reception import Billing, BillingLine, CustomerInfo, Reception, ServiceInfo, VehicleInfo
from stores.context import StoreContext

router = APIRouter(prefix="/api/receptions", tags=["Receptions"])


# =============================================================================
# MODELS
# =============================================================================

class CustomerInfoModel(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = ""
    national_id: str = ""
    address: str = ""
    customer_id: str = ""


class VehicleInfoModel(BaseModel):
    make: str = ""
    model: str = ""
    year: str = ""
    color: str = ""
    plate_number: str = ""
    vin: str = ""
    mileage: str = ""


class ServiceInfoModel(BaseModel):
    description: str = ""
    customer_complaints: List[str] = Field(default_factory=list)
    customer_requests: List[str] = Field(default_factory=list)
    estimated_completion: str = ""
    signature: Optional[str] = None


class ReceptionCreate(BaseModel):
    customer_info: CustomerInfoModel
    vehicle_info: VehicleInfoModel
    service_info: ServiceInfoModel = Field(default_factory=ServiceInfoModel)
    images: List[str] = Field(default_factory=list)
    documents: List[str] = Field(default_factory=list)


class ReceptionUpdate(BaseModel):
    customer_info: Optional[CustomerInfoModel] = None
    vehicle_info: Optional[VehicleInfoModel] = None
    service_info: Optional[ServiceInfoModel] = None
    status: Optional[WorkStatus] = None
    images: Optional[List[str]] = None
    documents: Optional[List[str]] = None


class BillingLineModel(BaseModel):
    name: str
    price: float = Field(..., ge=0)
    quantity: float = Field(1, gt=0)


class CompleteRequest(BaseModel):
    services: List[BillingLineModel] = Field(default_factory=list)
    parts: List[BillingLineModel] = Field(default_factory=list)
    discount: float = Field(0, ge=0, le=100, description="Discount percent")
    tax: float = Field(0, ge=0, le=100, description="Tax percent")


# =============================================================================
# ROUTES
# =============================================================================

@router.get("")
def list_receptions(
    state: Optional[str] = Query(None, description="active or completed"),
    refresh: bool = False,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    store = context.receptions
    if refresh or not store.items:
        store.load()
    if state == "active":
        items = store.active()
    elif state == "completed":
        items = store.completed()
    elif state is None:
        items = store.items
    else:
        raise HTTPException(status_code=400, detail="state must be 'active' or 'completed'")
    result = serialize_list(items)
    result["warning"] = store.warning
    return result


@router.get("/{reception_id}")
def get_reception(
    reception_id: str,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    reception = context.receptions.get(reception_id)
    if reception is None:
        raise HTTPException(status_code=404, detail="Reception not found")
    return {
        "item": serialize(reception),
        "tasks": [serialize(t) for t in context.tasks.tasks_for_vehicle(reception_id)],
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_reception(
    request: ReceptionCreate,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    reception = Reception(
        customer_info=CustomerInfo(**request.customer_info.model_dump()),
        vehicle_info=VehicleInfo(**request.vehicle_info.model_dump()),
        service_info=ServiceInfo(**request.service_info.model_dump()),
        images=request.images,
        documents=request.documents,
    )
    return result_payload(context.receptions.add(reception, actor=principal.id))


@router.put("/{reception_id}")
def update_reception(
    reception_id: str,
    request: ReceptionUpdate,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    if request.status == WorkStatus.COMPLETED:
        raise HTTPException(
            status_code=400,
            detail=f"Complete a reception with POST /api/receptions/{reception_id}/complete",
        )
    changes = {}
    if request.customer_info is not None:
        changes["customer_info"] = CustomerInfo(**request.customer_info.model_dump())
    if request.vehicle_info is not None:
        changes["vehicle_info"] = VehicleInfo(**request.vehicle_info.model_dump())
    if request.service_info is not None:
        changes["service_info"] = ServiceInfo(**request.service_info.model_dump())
    for key in ("status", "images", "documents"):
        value = getattr(request, key)
        if value is not None:
            changes[key] = value
    return result_payload(context.receptions.update(reception_id, changes, actor=principal.id))


@router.post("/{reception_id}/complete")
def complete_reception(
    reception_id: str,
    request: CompleteRequest,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    """Complete with billing, then complete the reception's tasks."""
    billing = Billing.calculate(
        services=[BillingLine(**line.model_dump()) for line in request.services],
        parts=[BillingLine(**line.model_dump()) for line in request.parts],
        discount=request.discount,
        tax=request.tax,
    )
    outcome = context.complete_reception(reception_id, billing, completed_by=principal.id)
    raise_for_result(outcome.reception)
    return {
        "item": serialize(outcome.reception.entity),
        "tasks": {task_id: result.status.value for task_id, result in outcome.task_results.items()},
        "failed_tasks": outcome.failed_tasks,
        "error": outcome.error or None,
    }


@router.delete("/{reception_id}")
def delete_reception(
    reception_id: str,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    return result_payload(context.receptions.delete(reception_id, actor=principal.id))
