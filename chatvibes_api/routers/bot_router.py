"""Bot activation routes for the signed-in streamer"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException

from chatvibes_api.core.context import AppContext
from chatvibes_api.core.dependencies import get_context, get_current_user
from chatvibes_api.core.errors import TwitchTokenError
from chatvibes_api.models.api import CamelModel
from chatvibes_api.models.channel import TIER_ANONYMOUS, TIER_FULL
from chatvibes_api.services import SessionUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bot", tags=["bot"])

MODERATOR_SKIPPED = "skipped"
MODERATOR_ADDED = "added"
MODERATOR_FAILED = "failed"


# ============================================
# Response Models
# ============================================


class BotStatusResponse(CamelModel):
    success: bool = True
    is_active: bool
    channel_name: str
    needs_re_auth: bool
    oauth_tier: str


class BotAddResponse(CamelModel):
    success: bool = True
    message: str
    channel_name: str
    moderator_status: str
    moderator_error: str | None = None
    oauth_tier: str


class BotRemoveResponse(CamelModel):
    success: bool = True
    message: str
    channel_name: str


# ============================================
# Endpoints
# ============================================


@router.get("/status", response_model=BotStatusResponse)
async def get_bot_status(
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> BotStatusResponse:
    login = user.user_login
    try:
        await context.token_service.get_valid_token(login)
    except TwitchTokenError as e:
        # the reauth flag written by the failed refresh shows up below
        logger.info(f"Token check during bot status for {login}: {e}")

    data = await context.channels.get_raw(login)
    if data is None:
        return BotStatusResponse(
            is_active=False, channel_name=login, needs_re_auth=False, oauth_tier=TIER_FULL
        )

    return BotStatusResponse(
        is_active=bool(data.get("isActive")),
        channel_name=data.get("channelName") or login,
        needs_re_auth=data.get("needsTwitchReAuth") is True,
        oauth_tier=data.get("oauthTier") or TIER_FULL,
    )


async def _add_bot_moderator(context: AppContext, broadcaster_id: str, access_token: str):
    """Returns (moderator_status, moderator_error)."""
    bot_username = context.settings.twitch_bot_username
    if not bot_username:
        return MODERATOR_FAILED, "Bot username not configured"

    bot_user_id = await context.twitch_api.get_user_id_by_login(bot_username)
    if not bot_user_id:
        return MODERATOR_FAILED, "Bot user not found"

    result = await context.twitch_api.add_moderator(broadcaster_id, bot_user_id, access_token)
    if result.success:
        return MODERATOR_ADDED, None
    return MODERATOR_FAILED, result.error


@router.post("/add", response_model=BotAddResponse)
async def add_bot(
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> BotAddResponse:
    """Activate the TTS service for the caller's channel."""
    login = user.user_login

    if not await context.allowlist.is_allowed(login):
        logger.warning(f"Channel {login} is not on the allow-list")
        raise HTTPException(
            status_code=403,
            detail={
                "message": "Your channel is not authorized to use this bot. "
                "Please contact support if you believe this is an error.",
                "code": "not_allowed",
            },
        )

    try:
        access_token = await context.token_service.get_valid_token(login)
    except TwitchTokenError as e:
        if e.needs_reauth:
            raise HTTPException(
                status_code=401,
                detail={
                    "message": "Please re-authenticate with Twitch to add the bot.",
                    "needsReauth": True,
                },
            ) from e
        logger.error(f"Could not add bot for {login}: {e}")
        raise HTTPException(
            status_code=500,
            detail={"message": "Failed to add bot to your channel. Please try again."},
        ) from e

    channel = await context.channels.get(login)
    oauth_tier = channel.oauth_tier if channel else TIER_FULL

    await context.channels.upsert(
        login,
        {
            "isActive": True,
            "twitchUserId": user.user_id,
            "twitchUserLogin": login,
            "twitchDisplayName": user.display_name,
            "channelName": login,
            "addedAt": datetime.now(UTC),
        },
    )

    if oauth_tier == TIER_ANONYMOUS:
        moderator_status, moderator_error = MODERATOR_SKIPPED, None
        message = "TTS Service activated in Bot-Free Mode! The bot will not appear in your chat."
    else:
        moderator_status, moderator_error = await _add_bot_moderator(
            context, user.user_id, access_token
        )
        message = "Bot added to your channel successfully!"
        if moderator_error:
            logger.warning(f"Moderator grant for {login} failed: {moderator_error}")

    logger.info(f"Bot activated for {login} (tier={oauth_tier}, moderator={moderator_status})")
    return BotAddResponse(
        message=message,
        channel_name=login,
        moderator_status=moderator_status,
        moderator_error=moderator_error,
        oauth_tier=oauth_tier,
    )


@router.post("/remove", response_model=BotRemoveResponse)
async def remove_bot(
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> BotRemoveResponse:
    """Soft-deactivate; the channel document and tokens are kept."""
    login = user.user_login
    if await context.channels.get_raw(login) is None:
        raise HTTPException(status_code=404, detail={"message": "Channel not found"})

    await context.channels.update(login, {"isActive": False, "removedAt": datetime.now(UTC)})
    logger.info(f"Bot deactivated for {login}")
    return BotRemoveResponse(
        message="Bot removed from your channel successfully!", channel_name=login
    )
