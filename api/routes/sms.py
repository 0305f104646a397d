"""
SMS API

Endpoints:
- GET/PUT /api/sms/settings - Gateway settings (admin)
- GET/POST/PUT/DELETE /api/sms/templates - Message templates
- POST /api/sms/send - Send one message, optionally from a template
- POST /api/sms/bulk - Send the same text to many recipients
- GET /api/sms/balance - Remaining gateway credit
- GET /api/sms/logs - Send history
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from api.auth import Principal, require_admin, require_staff
from api.dependencies import get_context, serialize, serialize_list
from services.sms import SMSGatewayError
from stores.context import StoreContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sms", tags=["SMS"])


class SettingsUpdate(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    sender: Optional[str] = None
    enabled: Optional[bool] = None


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)


class TemplateUpdate(BaseModel):
    name: Optional[str] = None
    content: Optional[str] = None


class SendRequest(BaseModel):
    to: str = Field(..., min_length=4)
    text: Optional[str] = None
    template_id: Optional[str] = None
    variables: Dict[str, Any] = Field(default_factory=dict)


class BulkSendRequest(BaseModel):
    recipients: List[str] = Field(..., min_length=1)
    text: str = Field(..., min_length=1)


def _settings_view(context: StoreContext) -> Dict[str, Any]:
    settings = context.sms.settings.to_dict()
    settings["password"] = "****" if settings["password"] else ""
    return settings


@router.get("/settings")
def get_settings(admin: Principal = Depends(require_admin), context: StoreContext = Depends(get_context)):
    return _settings_view(context)


@router.put("/settings")
def update_settings(
    request: SettingsUpdate,
    admin: Principal = Depends(require_admin),
    context: StoreContext = Depends(get_context),
):
    context.sms.update_settings(**request.model_dump(exclude_none=True))
    logger.info(f"SMS settings updated by {admin.id}")
    return _settings_view(context)


@router.get("/templates")
def list_templates(principal: Principal = Depends(require_staff), context: StoreContext = Depends(get_context)):
    return {"items": [t.to_dict() for t in context.sms.settings.templates]}


@router.post("/templates", status_code=status.HTTP_201_CREATED)
def create_template(
    request: TemplateCreate,
    admin: Principal = Depends(require_admin),
    context: StoreContext = Depends(get_context),
):
    return {"item": context.sms.add_template(request.name, request.content).to_dict()}


@router.put("/templates/{template_id}")
def update_template(
    template_id: str,
    request: TemplateUpdate,
    admin: Principal = Depends(require_admin),
    context: StoreContext = Depends(get_context),
):
    template = context.sms.update_template(template_id, name=request.name, content=request.content)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return {"item": template.to_dict()}


@router.delete("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_template(
    template_id: str,
    admin: Principal = Depends(require_admin),
    context: StoreContext = Depends(get_context),
):
    if not context.sms.delete_template(template_id):
        raise HTTPException(status_code=404, detail="Template not found")


@router.post("/send")
def send_sms(
    request: SendRequest,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    try:
        if request.template_id:
            log = context.sms.send_template(request.to, request.template_id, request.variables)
        elif request.text:
            log = context.sms.send(request.to, request.text)
        else:
            raise HTTPException(status_code=400, detail="Either text or template_id is required")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"item": serialize(log), "sent": log.status.value == "sent"}


@router.post("/bulk")
def send_bulk(
    request: BulkSendRequest,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    result = context.sms.send_bulk(request.recipients, request.text)
    return {
        "sent": result.sent,
        "failed": result.failed,
        "items": [serialize(log) for log in result.logs],
    }


@router.get("/balance")
def get_balance(principal: Principal = Depends(require_staff), context: StoreContext = Depends(get_context)):
    try:
        return {"balance": context.sms.balance()}
    except SMSGatewayError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.get("/logs")
def list_logs(
    refresh: bool = False,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    if refresh or not context.sms_logs.items:
        context.sms_logs.load()
    return serialize_list(context.sms_logs.items)
