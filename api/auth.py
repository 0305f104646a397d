"""
Bearer tokens for the shop API.

Two kinds of principal carry a token:
- staff: rows of the users sheet, checked against their role
- customer: portal logins made with customer code + mobile

Tokens are compact HS256 JWTs signed with JWT_SECRET_KEY. Without that
variable a random key is drawn per process, so tokens stop working after a
restart (``main.py doctor`` warns about it).

Usage:
    @router.get("/receptions")
    async def list_receptions(user: Principal = Depends(require_staff)):
        ...
"""

import base64
import hashlib
import hmac
import json
import logging
import os
import secrets
import time
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ValidationError

from models.user import Role

logger = logging.getLogger(__name__)

JWT_EXPIRATION_HOURS = int(os.getenv("JWT_EXPIRATION_HOURS", "24"))

STAFF = "staff"
CUSTOMER = "customer"

_TOKEN_HEADER = {"alg": "HS256", "typ": "JWT"}
_process_key: Optional[str] = None


def _signing_key() -> bytes:
    global _process_key
    configured = os.getenv("JWT_SECRET_KEY")
    if configured:
        return configured.encode()
    if _process_key is None:
        _process_key = secrets.token_hex(32)
        logger.warning("JWT_SECRET_KEY not set; signing tokens with a per-process key")
    return _process_key.encode()


class TokenPayload(BaseModel):
    sub: str  # user or customer id
    kind: str
    role: str = ""
    iat: int
    exp: int


class Principal(BaseModel):
    """Authenticated caller."""

    id: str
    kind: str
    name: str = ""
    role: str = ""

    @property
    def is_admin(self) -> bool:
        return self.kind == STAFF and self.role == Role.ADMIN.value


def _b64_segment(obj: Dict[str, Any]) -> str:
    raw = json.dumps(obj, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64_bytes(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def _signature(signing_input: str) -> str:
    digest = hmac.new(_signing_key(), signing_input.encode(), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def create_token(subject: str, kind: str, role: str = "") -> str:
    """Issue a token for a staff user or a portal customer."""
    issued = int(time.time())
    claims = {
        "sub": subject,
        "kind": kind,
        "role": role,
        "iat": issued,
        "exp": issued + JWT_EXPIRATION_HOURS * 3600,
    }
    signing_input = f"{_b64_segment(_TOKEN_HEADER)}.{_b64_segment(claims)}"
    return f"{signing_input}.{_signature(signing_input)}"


def verify_token(token: str) -> Optional[TokenPayload]:
    """Decode a token; None when it is malformed, forged or expired."""
    signing_input, _, signature = token.rpartition(".")
    if signing_input.count(".") != 1:
        return None
    if not hmac.compare_digest(_signature(signing_input).encode(), signature.encode()):
        logger.warning("Rejected token with a bad signature")
        return None

    try:
        claims = json.loads(_b64_bytes(signing_input.split(".")[1]))
        payload = TokenPayload(**claims)
    except (ValueError, TypeError, ValidationError) as e:
        logger.warning(f"Rejected unreadable token: {e}")
        return None

    if payload.exp < time.time():
        logger.info(f"Token for {payload.kind} {payload.sub} expired")
        return None
    return payload


# =============================================================================
# FASTAPI DEPENDENCIES
# =============================================================================

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_auth(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    """Require a valid token of either kind."""
    if not credentials:
        raise _unauthorized("Authentication required")

    payload = verify_token(credentials.credentials)
    if not payload:
        raise _unauthorized("Invalid or expired token")

    context = request.app.state.context
    if payload.kind == STAFF:
        user = context.users.get(payload.sub)
        if user is None:
            raise _unauthorized("User not found")
        if not user.active:
            raise _unauthorized("Account is disabled")
        return Principal(id=user.id, kind=STAFF, name=user.name or user.username, role=user.role.value)

    if payload.kind == CUSTOMER:
        customer = context.customers.get(payload.sub)
        if customer is None or not customer.can_login:
            raise _unauthorized("Customer not found")
        return Principal(id=customer.id, kind=CUSTOMER, name=customer.name)

    raise _unauthorized("Unknown token kind")


async def require_staff(principal: Principal = Depends(require_auth)) -> Principal:
    """Require a staff user (any role)."""
    if principal.kind != STAFF:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff access required",
        )
    return principal


async def require_admin(principal: Principal = Depends(require_staff)) -> Principal:
    """Require admin role."""
    if not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return principal


async def require_customer(principal: Principal = Depends(require_auth)) -> Principal:
    """Require a logged-in portal customer."""
    if principal.kind != CUSTOMER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Customer access required",
        )
    return principal
