"""FastAPI back office for the sheet-backed auto shop.

Run with: uvicorn api.main:create_app --factory --port 8000

Endpoints:
- /api/health - Health check
- /api/auth - Staff and customer login
- /api/users, /api/customers - People
- /api/receptions, /api/tasks - Workshop flow
- /api/messages - Staff messaging
- /api/sms - SMS templates and sending
- /api/sync - Offline queue replay
- /api/portal - Customer self-service
"""
import logging
import os
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from api.routes import (
    auth_routes,
    customers,
    health,
    messages,
    portal,
    receptions,
    sms,
    sync,
    tasks,
    users,
)
from core.config import get_config
from core.logging_config import set_context
from stores.context import StoreContext, create_context

logger = logging.getLogger(__name__)

# Context variable for request ID - accessible throughout the request lifecycle
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique request ID to each request.

    - Uses the client's X-Request-ID or generates one
    - Sets it as the log run_id for the request
    - Adds X-Request-ID header to responses
    """
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]

        request_id_var.set(request_id)
        set_context(run_id=request_id)
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def get_request_id() -> str:
    """Get the current request ID from context."""
    return request_id_var.get()


def create_app(context: Optional[StoreContext] = None) -> FastAPI:
    """Build the app. Without a context, one is created from the environment config."""
    if context is None:
        config = get_config()
        config.validate(require_sheets=True)
        context = create_context(config)

    app = FastAPI(
        title="Auto Shop Back Office",
        description="Receptions, tasks, billing and customer portal on Google Sheets",
        version=health.APP_VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.state.context = context

    # Request ID middleware - add first so it runs for all requests
    app.add_middleware(RequestIDMiddleware)

    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    app.include_router(health.router, prefix="/api", tags=["Health"])
    app.include_router(auth_routes.router)
    app.include_router(users.router)
    app.include_router(customers.router)
    app.include_router(receptions.router)
    app.include_router(tasks.router)
    app.include_router(messages.router)
    app.include_router(sms.router)
    app.include_router(sync.router)
    app.include_router(portal.router)

    logger.info(f"API ready for spreadsheet {context.config.sheets.spreadsheet_id}")
    return app

