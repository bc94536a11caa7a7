"""Twitch OAuth routes (streamer and viewer sign-in)"""

import base64
import binascii
import json
import logging
import secrets
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode, urlsplit, urlunsplit

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from google.api_core import exceptions as gcp_exceptions

from chatvibes_api.core.context import AppContext
from chatvibes_api.core.dependencies import get_context
from chatvibes_api.core.errors import SecretStoreError, TwitchAuthError
from chatvibes_api.models.api import CamelModel, SuccessResponse
from chatvibes_api.models.channel import MODERATOR_SCOPE, TIER_ANONYMOUS, TIER_FULL
from chatvibes_api.models.tts import BOT_MODE_ANONYMOUS, BOT_MODE_AUTHENTICATED
from chatvibes_api.services.auth_service import VIEWER_SCOPE
from chatvibes_api.services.twitch_api import OAUTH_TIERS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


# ============================================
# Response Models
# ============================================


class InitiateResponse(CamelModel):
    success: bool = True
    twitch_auth_url: str
    state: str
    tier: str


class ViewerInitiateResponse(CamelModel):
    success: bool = True
    twitch_auth_url: str
    state: str


# ============================================
# Helpers
# ============================================


def encode_viewer_state(channel: str | None = None) -> str:
    """Viewer flow state: base64 JSON ``{t: "viewer", r: <random>, c?: channel}``."""
    data: dict = {"t": "viewer", "r": secrets.token_hex(8)}
    if channel:
        data["c"] = channel.lower()
    return base64.b64encode(json.dumps(data).encode()).decode()


def decode_viewer_state(state: str | None) -> dict | None:
    """Return the viewer state payload, or None for a plain streamer state."""
    if not state:
        return None
    try:
        padded = state + "=" * (-len(state) % 4)
        data = json.loads(base64.b64decode(padded, altchars=b"-_").decode())
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    if isinstance(data, dict) and data.get("t") == "viewer":
        return data
    return None


def frontend_url(context: AppContext, path: str, params: dict[str, str]) -> str:
    parts = urlsplit(context.settings.frontend_url)
    return urlunsplit((parts.scheme, parts.netloc, path, urlencode(params), ""))


def _error_redirect(
    context: AppContext, error: str, description: str | None, state: str | None
) -> RedirectResponse | PlainTextResponse:
    if not context.settings.frontend_url:
        logger.error("FRONTEND_URL not configured, cannot redirect auth error")
        return PlainTextResponse("Server configuration error", status_code=500)
    params = {"error": error, "error_description": description or "", "state": state or ""}
    return RedirectResponse(
        frontend_url(context, "/auth-error.html", params), status_code=302
    )


def _require_oauth_config(context: AppContext) -> None:
    if not context.secrets.twitch_client_id or not context.settings.callback_url:
        logger.error("Twitch client id or CALLBACK_URL missing")
        raise HTTPException(
            status_code=500, detail={"error": "Server configuration error for Twitch auth."}
        )


# ============================================
# Endpoints
# ============================================


@router.get("/twitch/initiate", response_model=InitiateResponse)
async def initiate_twitch_auth(
    tier: str | None = None,
    context: AppContext = Depends(get_context),
) -> InitiateResponse:
    """Start the streamer OAuth flow. Unknown tiers fall back to full."""
    _require_oauth_config(context)
    selected = tier if tier in OAUTH_TIERS else TIER_FULL
    state = secrets.token_hex(16)

    url = context.twitch_api.build_authorize_url(OAUTH_TIERS[selected], state)
    logger.info(f"OAuth initiated (tier={selected})")
    return InitiateResponse(twitch_auth_url=url, state=state, tier=selected)


@router.get("/twitch/viewer", response_model=ViewerInitiateResponse)
async def initiate_viewer_auth(
    channel: str | None = None,
    context: AppContext = Depends(get_context),
) -> ViewerInitiateResponse:
    """Start the viewer OAuth flow (identity only, no scopes)."""
    _require_oauth_config(context)
    state = encode_viewer_state(channel)
    url = context.twitch_api.build_authorize_url("", state)
    return ViewerInitiateResponse(twitch_auth_url=url, state=state)


async def _viewer_callback(
    context: AppContext,
    viewer_state: dict,
    code: str | None,
    error: str | None,
    error_description: str | None,
):
    if error:
        logger.error(f"Viewer OAuth error: {error} ({error_description})")
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": error, "error_description": error_description},
        )

    try:
        if not code:
            raise TwitchAuthError("Missing authorization code")
        tokens = await context.twitch_api.exchange_code(code)
        identity = await context.twitch_api.validate_token(tokens.access_token)
    except TwitchAuthError as e:
        logger.error(f"Viewer OAuth callback failed: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "auth_failed",
                "error_description": "Failed to complete viewer authentication",
            },
        )

    session_token = context.auth_service.create_session_token(
        identity.user_id, identity.login, identity.login, scope=VIEWER_SCOPE
    )
    params = {"session_token": session_token, "validated": "1"}
    channel = viewer_state.get("c") or viewer_state.get("channel")
    if channel:
        params["channel"] = str(channel)

    logger.info(f"Viewer {identity.login} signed in")
    return RedirectResponse(
        frontend_url(context, "/viewer-settings.html", params), status_code=302
    )


@router.get("/twitch/callback")
async def twitch_oauth_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
    context: AppContext = Depends(get_context),
):
    """Handle Twitch's redirect for both the streamer and viewer flows."""
    viewer_state = decode_viewer_state(state)
    if viewer_state is not None:
        return await _viewer_callback(context, viewer_state, code, error, error_description)

    if error:
        logger.error(f"Twitch OAuth error: {error} ({error_description})")
        return _error_redirect(context, error, error_description, state)

    try:
        if not code:
            raise TwitchAuthError("Missing authorization code")
        tokens = await context.twitch_api.exchange_code(code)
        if not tokens.refresh_token:
            raise TwitchAuthError("Twitch did not return the expected tokens.")
        identity = await context.twitch_api.validate_token(tokens.access_token)
    except TwitchAuthError as e:
        logger.error(f"Twitch OAuth callback failed: {e}")
        return _error_redirect(context, "auth_failed", str(e), state)

    profile = await context.twitch_api.get_authenticated_user(tokens.access_token) or {}
    login = identity.login
    display_name = profile.get("display_name") or identity.login
    granted_scopes = tokens.scopes or identity.scopes
    tier = TIER_FULL if MODERATOR_SCOPE in granted_scopes else TIER_ANONYMOUS
    expires_in = tokens.expires_in or identity.expires_in or 0

    session_token = context.auth_service.create_session_token(
        identity.user_id, login, display_name
    )

    try:
        refs = await context.token_service.store_tokens(
            identity.user_id, tokens.access_token, tokens.refresh_token
        )
        await context.channels.upsert(
            login,
            {
                "channelName": login,
                "twitchUserId": identity.user_id,
                "twitchUserLogin": login,
                "twitchDisplayName": display_name,
                "email": profile.get("email"),
                "twitchAccessTokenExpiresAt": datetime.now(UTC) + timedelta(seconds=expires_in),
                "accessTokenSecretName": refs.access_token_secret_name,
                "refreshTokenSecretName": refs.refresh_token_secret_name,
                "needsTwitchReAuth": False,
                "lastTokenError": None,
                "lastTokenErrorAt": None,
                "oauthTier": tier,
                "grantedScopes": granted_scopes,
            },
        )
        bot_mode = BOT_MODE_AUTHENTICATED if tier == TIER_FULL else BOT_MODE_ANONYMOUS
        await context.tts_configs.set_fields(login, {"botMode": bot_mode})
    except (SecretStoreError, gcp_exceptions.GoogleAPICallError) as e:
        logger.error(f"Error storing Twitch credentials for {login}: {e}")
        return _error_redirect(
            context,
            "token_store_failed",
            "Failed to securely store Twitch credentials. Please try again.",
            state,
        )

    logger.info(f"Streamer {login} authenticated (tier={tier})")
    await context.twitch_api.register_eventsub(
        context.settings.tts_bot_url, login, identity.user_id, session_token
    )

    params = {
        "user_login": login,
        "user_id": identity.user_id,
        "state": state or "",
        "session_token": session_token,
    }
    return RedirectResponse(frontend_url(context, "/auth-complete.html", params), status_code=302)


@router.get("/logout", response_model=SuccessResponse)
async def logout() -> SuccessResponse:
    """Session tokens are stateless; the client discards its copy."""
    return SuccessResponse(
        message="Logout successful. Please clear your session token on the client side."
    )
