"""Offline queue inspection and replay."""
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder

from api.auth import Principal, require_staff
from api.dependencies import get_context
from stores.context import StoreContext

router = APIRouter(prefix="/api/sync", tags=["Sync"])


@router.get("/pending")
def pending_actions(principal: Principal = Depends(require_staff), context: StoreContext = Depends(get_context)):
    actions = context.offline_cache.pending_actions()
    return {"items": jsonable_encoder(actions), "total": len(actions)}


@router.post("")
def sync_now(principal: Principal = Depends(require_staff), context: StoreContext = Depends(get_context)):
    """Replay queued writes. 503 while the spreadsheet is unreachable."""
    result = context.sync_pending()
    if not result.online:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result.error)
    drain = result.drain
    return {
        "replayed": len(drain.replayed),
        "failed": [{"id": a.id, "type": a.type, "table": a.table, "error": a.last_error} for a in drain.failed],
        "remaining": drain.remaining,
    }
