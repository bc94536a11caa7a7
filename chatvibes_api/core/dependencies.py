"""Dependency injection utilities for FastAPI"""

import logging

from fastapi import Depends, Header, HTTPException, Request

from chatvibes_api.core.context import AppContext
from chatvibes_api.services import SessionUser

logger = logging.getLogger(__name__)


# ============================================
# Context
# ============================================


def get_context(request: Request) -> AppContext:
    """Return the startup-built context (503 until it exists)."""
    context: AppContext | None = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Service Unavailable")
    return context


# ============================================
# Authentication Dependencies
# ============================================


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(status_code=401, detail=f"Unauthorized: {message}")


async def get_current_user(
    authorization: str | None = Header(None),
    context: AppContext = Depends(get_context),
) -> SessionUser:
    """Verify the ``Authorization: Bearer`` session token"""
    if not authorization or not authorization.startswith("Bearer "):
        logger.warning("Missing or malformed Authorization header")
        raise _unauthorized("Missing or malformed token.")

    token = authorization[len("Bearer ") :].strip()
    if not token:
        raise _unauthorized("Token not found.")

    user = context.auth_service.verify_token(token)
    if user is None:
        raise _unauthorized("Invalid or expired token.")

    return user
