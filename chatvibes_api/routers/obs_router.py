"""OBS browser-source token routes"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from chatvibes_api.core.context import AppContext
from chatvibes_api.core.dependencies import get_context, get_current_user
from chatvibes_api.core.errors import SecretStoreError, TwitchTokenError
from chatvibes_api.models.api import CamelModel
from chatvibes_api.services import SessionUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/obs", tags=["obs"])


# ============================================
# Response Models
# ============================================


class ObsTokenResponse(CamelModel):
    success: bool = True
    token: str
    browser_source_url: str


# ============================================
# Helpers
# ============================================


async def _require_twitch_token(context: AppContext, login: str) -> None:
    """OBS tokens are only issued while the streamer's Twitch grant still works."""
    try:
        await context.token_service.get_valid_token(login)
    except TwitchTokenError as e:
        logger.warning(f"OBS token denied for {login}: {e}")
        raise HTTPException(
            status_code=403,
            detail={
                "needsReAuth": True,
                "message": "Your Twitch authentication has expired. Please reconnect your account.",
            },
        ) from e


def _storage_failure(login: str, error: Exception) -> HTTPException:
    logger.error(f"OBS token storage failed for {login}: {error}")
    return HTTPException(
        status_code=500, detail={"message": "Failed to store OBS token. Please try again."}
    )


# ============================================
# Endpoints
# ============================================


@router.get("/getToken", response_model=ObsTokenResponse)
async def get_obs_token(
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> ObsTokenResponse:
    await _require_twitch_token(context, user.user_login)
    try:
        obs = await context.obs_service.get_or_create(user.user_login)
    except SecretStoreError as e:
        raise _storage_failure(user.user_login, e) from e
    return ObsTokenResponse(token=obs.token, browser_source_url=obs.browser_source_url)


@router.post("/generateToken", response_model=ObsTokenResponse)
async def generate_obs_token(
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> ObsTokenResponse:
    """Rotate the token; existing browser sources stop working."""
    await _require_twitch_token(context, user.user_login)
    try:
        obs = await context.obs_service.generate(user.user_login)
    except SecretStoreError as e:
        raise _storage_failure(user.user_login, e) from e
    return ObsTokenResponse(token=obs.token, browser_source_url=obs.browser_source_url)
