"""Shared route helpers: the store context and result-to-HTTP mapping."""
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, List

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder

from models.user import User
from stores.base import ResultStatus, StoreResult
from stores.context import StoreContext

_STATUS_CODES = {
    ResultStatus.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ResultStatus.DUPLICATE: status.HTTP_409_CONFLICT,
    ResultStatus.REJECTED: status.HTTP_400_BAD_REQUEST,
    ResultStatus.FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_context(request: Request) -> StoreContext:
    return request.app.state.context


def serialize(entity: Any) -> Dict[str, Any]:
    """JSON-safe dict for an entity. Users never expose their password hash."""
    if isinstance(entity, User):
        return entity.public_dict()
    if is_dataclass(entity):
        return jsonable_encoder(asdict(entity))
    return jsonable_encoder(entity)


def serialize_list(entities: List[Any]) -> Dict[str, Any]:
    return {"items": [serialize(e) for e in entities], "total": len(entities)}


def raise_for_result(result: StoreResult) -> None:
    """Turn a non-OK store result into the matching HTTP error."""
    if result.ok:
        return
    detail: Dict[str, Any] = {"status": result.status.value, "error": result.error}
    if result.queued:
        detail["queued"] = True
    raise HTTPException(status_code=_STATUS_CODES[result.status], detail=detail)


def result_payload(result: StoreResult) -> Dict[str, Any]:
    raise_for_result(result)
    return {"item": serialize(result.entity) if result.entity is not None else None}
