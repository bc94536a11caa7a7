"""Session-authenticated account routes: token status, refresh, tier changes"""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from chatvibes_api.core.context import AppContext
from chatvibes_api.core.dependencies import get_context, get_current_user
from chatvibes_api.core.errors import TwitchTokenError
from chatvibes_api.models.api import CamelModel, SuccessResponse
from chatvibes_api.models.channel import TIER_ANONYMOUS, TIER_FULL
from chatvibes_api.models.tts import BOT_MODE_ANONYMOUS, BOT_MODE_AUTHENTICATED
from chatvibes_api.services import SessionUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])

TOKEN_STATUS_VALID = "valid"
TOKEN_STATUS_EXPIRED = "expired"
TOKEN_STATUS_NEEDS_REAUTH = "needs_reauth"
TOKEN_STATUS_NOT_FOUND = "not_found"


# ============================================
# Request/Response Models
# ============================================


class AuthStatusResponse(CamelModel):
    success: bool = True
    user: dict[str, Any]
    twitch_token_status: str
    needs_twitch_re_auth: bool


class UpdateTierRequest(CamelModel):
    tier: str | None = None


class UpdateTierResponse(CamelModel):
    success: bool = True
    oauth_tier: str
    message: str


# ============================================
# Endpoints
# ============================================


@router.get("/status", response_model=AuthStatusResponse)
async def get_auth_status(
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> AuthStatusResponse:
    """Report whether the stored Twitch token is usable without touching Twitch."""
    channel = await context.channels.get(user.user_login)

    if channel is None:
        status, needs_reauth = TOKEN_STATUS_NOT_FOUND, True
    elif channel.needs_reauth:
        status, needs_reauth = TOKEN_STATUS_NEEDS_REAUTH, True
    elif channel.access_token_expires_at and channel.access_token_expires_at <= datetime.now(UTC):
        status, needs_reauth = TOKEN_STATUS_EXPIRED, False
    else:
        status, needs_reauth = TOKEN_STATUS_VALID, False

    return AuthStatusResponse(
        user=user.to_dict(), twitch_token_status=status, needs_twitch_re_auth=needs_reauth
    )


@router.post("/refresh", response_model=SuccessResponse)
async def refresh_twitch_token(
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> SuccessResponse:
    try:
        await context.token_service.get_valid_token(user.user_login)
    except TwitchTokenError as e:
        logger.warning(f"Manual token refresh failed for {user.user_login}: {e}")
        raise HTTPException(
            status_code=400, detail={"error": str(e), "needsReauth": e.needs_reauth}
        ) from e

    return SuccessResponse(message="Token refreshed successfully")


@router.post("/update-tier", response_model=UpdateTierResponse)
async def update_oauth_tier(
    body: UpdateTierRequest,
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> UpdateTierResponse:
    """Switch between Bot-Free (anonymous) and Chatbot (full) mode."""
    if body.tier not in (TIER_ANONYMOUS, TIER_FULL):
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid tier. Must be 'anonymous' or 'full'."},
        )

    channel = await context.channels.get(user.user_login)
    if channel is None:
        raise HTTPException(
            status_code=404,
            detail={"error": "Channel not found. Please re-authenticate.", "needsReauth": True},
        )

    if body.tier == TIER_FULL and not channel.has_moderator_scope:
        raise HTTPException(
            status_code=403,
            detail={
                "error": "Chatbot mode requires additional Twitch permissions. "
                "Please re-authenticate with Twitch.",
                "needsReauth": True,
            },
        )

    bot_mode = BOT_MODE_AUTHENTICATED if body.tier == TIER_FULL else BOT_MODE_ANONYMOUS
    await context.channels.update(user.user_login, {"oauthTier": body.tier})
    await context.tts_configs.set_fields(user.user_login, {"botMode": bot_mode})
    logger.info(f"{user.user_login} switched to tier {body.tier}")

    mode = "Chatbot" if body.tier == TIER_FULL else "Bot-Free"
    return UpdateTierResponse(oauth_tier=body.tier, message=f"Switched to {mode} mode.")
