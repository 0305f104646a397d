"""
Authentication API Routes

Endpoints:
- POST /api/auth/login - Staff login, returns a bearer token
- POST /api/auth/customer-login - Portal login by customer code + mobile
- GET /api/auth/me - Current principal
- POST /api/auth/change-password - Change own password (staff)
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from api.auth import (
    CUSTOMER,
    JWT_EXPIRATION_HOURS,
    STAFF,
    Principal,
    create_token,
    require_auth,
    require_staff,
)
from api.dependencies import get_context, raise_for_result, serialize
from stores.context import StoreContext
from stores.users import verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


class LoginRequest(BaseModel):
    username: str
    password: str


class CustomerLoginRequest(BaseModel):
    code: str
    mobile: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: Dict[str, Any]


@router.post("/login", response_model=TokenResponse)
def login(request: LoginRequest, context: StoreContext = Depends(get_context)):
    """Authenticate a staff user and return a bearer token."""
    result = context.users.authenticate(request.username, request.password)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=result.error,
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = result.entity
    logger.info(f"User logged in: {user.username} (role: {user.role.value})")
    return TokenResponse(
        access_token=create_token(user.id, STAFF, user.role.value),
        expires_in=JWT_EXPIRATION_HOURS * 3600,
        user=serialize(user),
    )


@router.post("/customer-login", response_model=TokenResponse)
def customer_login(request: CustomerLoginRequest, context: StoreContext = Depends(get_context)):
    """Portal login. The customer code and mobile number must match."""
    result = context.customers.authenticate(request.code, request.mobile)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=result.error,
            headers={"WWW-Authenticate": "Bearer"},
        )

    customer = result.entity
    logger.info(f"Customer logged in: {customer.code}")
    return TokenResponse(
        access_token=create_token(customer.id, CUSTOMER),
        expires_in=JWT_EXPIRATION_HOURS * 3600,
        user=serialize(customer),
    )


@router.get("/me", response_model=Principal)
async def get_current_principal(principal: Principal = Depends(require_auth)):
    return principal


@router.post("/change-password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(
    request: ChangePasswordRequest,
    principal: Principal = Depends(require_staff),
    context: StoreContext = Depends(get_context),
):
    """Change the current user's password."""
    user = context.users.get(principal.id)
    if user is None or not verify_password(request.current_password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    raise_for_result(context.users.set_password(user.id, request.new_password, actor=user.id))
    logger.info(f"Password changed for user: {user.username}")
