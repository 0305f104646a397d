"""Health and probe endpoints."""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_context
from schemas.sheets_schema import get_table_names
from stores.context import StoreContext

router = APIRouter()

APP_VERSION = "1.0.0"


class HealthResponse(BaseModel):
    status: str
    version: str
    shop_name: str
    checks: Dict[str, Any]


def _store_checks(context: StoreContext) -> Dict[str, Any]:
    max_age = context.config.storage.cache_max_age
    checks = {}
    for table in get_table_names():
        store = context.store_for(table)
        checks[table] = {
            "items": len(store.items),
            "stale": bool(store.warning),
            "cache_expired": context.offline_cache.is_expired(table, max_age),
        }
    return checks


@router.get("/health", response_model=HealthResponse)
def health_check(context: StoreContext = Depends(get_context)):
    """
    Report whether the shop can work against the live spreadsheet.

    ``degraded`` means the spreadsheet probe failed; stores keep serving
    their cached snapshots and writes go to the offline queue.
    """
    online = context.sheets.check_connection()
    checks: Dict[str, Any] = {
        "sheets": {"status": "ok" if online else "unreachable"},
        "offline_queue": {"pending": len(context.offline_cache.pending_actions())},
        "stores": _store_checks(context),
        "sms": {"enabled": context.sms.settings.is_configured},
    }
    return HealthResponse(
        status="healthy" if online else "degraded",
        version=APP_VERSION,
        shop_name=context.config.shop_name,
        checks=checks,
    )


@router.get("/ready")
def readiness_check(context: StoreContext = Depends(get_context)):
    # Local storage is the only hard requirement; the spreadsheet may be down.
    context.storage.keys("offline-")
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    return {"alive": True}
