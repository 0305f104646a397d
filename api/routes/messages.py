"""Internal staff messaging API."""
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from api.auth import Principal, require_staff
from api.dependencies import get_context, result_payload, serialize_list
from stores.context import StoreContext

router = APIRouter(prefix="/api/messages", tags=["Messages"])


class MessageCreate(BaseModel):
    to_user_id: str
    subject: str = Field(..., min_length=1)
    content: str = ""


@router.get("/inbox")
def inbox(
    refresh: bool = False,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    if refresh or not context.messages.items:
        context.messages.load()
    result = serialize_list(context.messages.inbox(principal.id))
    result["unread"] = context.messages.unread_count(principal.id)
    return result


@router.get("/sent")
def sent(
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    return serialize_list(context.messages.sent(principal.id))


@router.post("", status_code=status.HTTP_201_CREATED)
def send_message(
    request: MessageCreate,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    recipient = context.users.get(request.to_user_id)
    if recipient is None:
        raise HTTPException(status_code=400, detail=f"Unknown user: {request.to_user_id}")
    result = context.messages.send(
        from_user_id=principal.id,
        to_user_id=recipient.id,
        subject=request.subject,
        content=request.content,
        from_name=principal.name,
        to_name=recipient.name or recipient.username,
    )
    return result_payload(result)


@router.post("/{message_id}/read")
def mark_as_read(
    message_id: str,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    return result_payload(context.messages.mark_as_read(message_id, actor=principal.id))


@router.delete("/{message_id}")
def delete_message(
    message_id: str,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    return result_payload(context.messages.delete(message_id, actor=principal.id))
