"""Channel-Points TTS reward routes"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from chatvibes_api.core.context import AppContext
from chatvibes_api.core.dependencies import get_context, get_current_user
from chatvibes_api.core.errors import RewardSyncError, TwitchTokenError
from chatvibes_api.models.api import CamelModel
from chatvibes_api.services import SessionUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rewards", tags=["rewards"])


# ============================================
# Request/Response Models
# ============================================


class RewardStatusResponse(CamelModel):
    success: bool = True
    channel_points: dict[str, Any] | None = None
    twitch_status: dict[str, Any] | None = None


class RewardUpsertResponse(CamelModel):
    success: bool = True
    channel_points: dict[str, Any]
    message: str


class RewardDeleteResponse(CamelModel):
    success: bool = True
    twitch_deleted: bool
    message: str


class TestMessageRequest(CamelModel):
    text: Any = ""


# ============================================
# Endpoints
# ============================================


@router.get("/tts", response_model=RewardStatusResponse)
async def get_tts_reward(
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> RewardStatusResponse:
    config, twitch_status = await context.rewards_service.get_status(
        user.user_login, user.user_id
    )
    return RewardStatusResponse(
        channel_points=config.to_dict() if config else None,
        twitch_status=twitch_status,
    )


@router.post("/tts", response_model=RewardUpsertResponse)
@router.put("/tts", response_model=RewardUpsertResponse)
async def upsert_tts_reward(
    body: dict[str, Any] = Body(default_factory=dict),
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> RewardUpsertResponse:
    """Save the reward settings and push them to Twitch."""
    try:
        config = await context.rewards_service.upsert(user.user_login, user.user_id, body)
    except RewardSyncError as e:
        logger.error(f"Reward sync failed for {user.user_login}: {e.message}")
        raise HTTPException(
            status_code=e.status, detail={"error": e.message, "details": e.details}
        ) from e
    except TwitchTokenError as e:
        if e.needs_reauth:
            raise HTTPException(
                status_code=401,
                detail={
                    "error": "Authentication required",
                    "needsReauth": True,
                    "message": "Please re-authenticate with Twitch to manage channel point rewards",
                },
            ) from e
        logger.error(f"Reward upsert for {user.user_login} failed: {e}")
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to configure channel point reward", "details": str(e)},
        ) from e

    message = (
        "Channel point reward configured successfully"
        if config.enabled
        else "Channel point reward disabled"
    )
    return RewardUpsertResponse(channel_points=config.to_dict(), message=message)


@router.delete("/tts", response_model=RewardDeleteResponse)
async def delete_tts_reward(
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> RewardDeleteResponse:
    twitch_deleted = await context.rewards_service.delete(user.user_login)
    message = (
        "Disabled & deleted reward"
        if twitch_deleted
        else "Disabled locally; delete may require re-auth or manual removal"
    )
    return RewardDeleteResponse(twitch_deleted=twitch_deleted, message=message)


@router.post("/tts/test", response_model=None)
@router.post("/tts:test", response_model=None, include_in_schema=False)
async def test_tts_message(
    body: TestMessageRequest | None = None,
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> dict[str, Any]:
    """Dry-run a redemption message against the channel's content policy."""
    text = "" if body is None or body.text is None else str(body.text)
    reason = await context.rewards_service.validate_test_message(user.user_login, text)
    if reason:
        raise HTTPException(status_code=400, detail={"error": reason})
    return {"success": True, "message": "TTS test validated"}
