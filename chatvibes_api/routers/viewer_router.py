"""Viewer self-service routes: voice preferences and ignore lists"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from chatvibes_api.core.context import AppContext
from chatvibes_api.core.dependencies import get_context, get_current_user
from chatvibes_api.models.api import CamelModel, SuccessResponse
from chatvibes_api.services import SessionUser
from chatvibes_api.services.validation import (
    normalize_emotion,
    validate_emotion,
    validate_language_boost,
    validate_pitch,
    validate_speed,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/viewer", tags=["viewer"])


# ============================================
# Request/Response Models
# ============================================


class ViewerAuthRequest(CamelModel):
    token: str | None = None


class ViewerAuthResponse(CamelModel):
    success: bool = True
    message: str
    user: dict[str, Any]


class IgnoreToggleResponse(CamelModel):
    success: bool = True
    ignored: bool
    message: str


# ============================================
# Helpers
# ============================================


def _preferences_body(prefs: dict[str, Any]) -> dict[str, Any]:
    """Stored preference fields in the UI schema (``languageBoost`` -> ``language``)."""
    body = {
        "voiceId": prefs.get("voiceId"),
        "pitch": prefs.get("pitch"),
        "speed": prefs.get("speed"),
        "emotion": prefs.get("emotion"),
        "language": prefs.get("languageBoost"),
    }
    if prefs.get("englishNormalization") is not None:
        body["englishNormalization"] = prefs["englishNormalization"]
    return body


def _invalid(field: str) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": f"Invalid {field} value"})


def build_preference_update(updates: dict[str, Any]) -> dict[str, Any]:
    """Validate the provided UI fields and map them onto stored field names.

    Absent keys are left alone; an explicit null clears the stored value.
    """
    data: dict[str, Any] = {}

    if "voiceId" in updates:
        data["voiceId"] = updates["voiceId"] or None

    for field, validator in (("pitch", validate_pitch), ("speed", validate_speed)):
        if field in updates:
            value = updates[field]
            if value is not None and not validator(value):
                raise _invalid(field)
            data[field] = value

    if "emotion" in updates:
        emotion = normalize_emotion(updates["emotion"])
        if not validate_emotion(emotion):
            raise _invalid("emotion")
        data["emotion"] = emotion

    if "language" in updates:
        language = updates["language"]
        if language is not None and not validate_language_boost(language):
            raise _invalid("language")
        data["languageBoost"] = language

    if "englishNormalization" in updates:
        data["englishNormalization"] = bool(updates["englishNormalization"])

    return data


def _check_token_user(user: SessionUser) -> None:
    if user.is_viewer and user.token_user and user.token_user != user.user_login:
        logger.warning(
            f"Blocked preference access: {user.user_login} presented token for {user.token_user}"
        )
        raise HTTPException(status_code=403, detail={"error": "Access denied: token user mismatch"})


async def _require_channel_config(context: AppContext, channel: str) -> dict[str, Any]:
    data = await context.tts_configs.get_raw(channel)
    if data is None:
        raise HTTPException(
            status_code=404, detail={"error": "Channel not found or TTS not enabled"}
        )
    return data


async def _load_preferences(context: AppContext, login: str) -> dict[str, Any]:
    preference = await context.user_preferences.get(login)
    return preference.voice.to_dict() if preference else {}


# ============================================
# Endpoints
# ============================================


@router.post("/auth", response_model=ViewerAuthResponse)
async def authenticate_viewer(
    body: ViewerAuthRequest | None = None,
    context: AppContext = Depends(get_context),
) -> ViewerAuthResponse:
    """Check a viewer session token handed over by the settings page."""
    if body is None or not body.token:
        raise HTTPException(status_code=400, detail={"error": "Token is required"})

    user = context.auth_service.verify_token(body.token)
    if user is None:
        raise HTTPException(status_code=401, detail={"error": "Invalid or expired token"})

    return ViewerAuthResponse(message="Viewer authenticated successfully", user=user.to_dict())


@router.get("/preferences", response_model=None)
async def get_global_preferences(
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> dict[str, Any]:
    prefs = await _load_preferences(context, user.user_login)
    return _preferences_body(prefs)


@router.put("/preferences", response_model=SuccessResponse)
async def update_global_preferences(
    updates: dict[str, Any] = Body(default_factory=dict),
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> SuccessResponse:
    data = build_preference_update(updates)
    await context.user_preferences.merge(user.user_login, data)
    logger.info(f"Global preferences updated for {user.user_login}")
    return SuccessResponse(message="Global preferences updated successfully")


@router.get("/preferences/{channel}", response_model=None)
async def get_channel_preferences(
    channel: str,
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> dict[str, Any]:
    """Viewer's global preferences plus the channel's defaults and ignore state."""
    _check_token_user(user)
    channel_data = await _require_channel_config(context, channel)

    prefs = await _load_preferences(context, user.user_login)
    ignored_users = [str(u).lower() for u in channel_data.get("ignoredUsers") or []]
    music_ignored = await context.music_settings.get_ignored_users(channel)

    return {
        **_preferences_body(prefs),
        "ttsIgnored": user.user_login in ignored_users,
        "musicIgnored": user.user_login in music_ignored,
        "channelExists": True,
        "channelDefaults": {
            "voiceId": channel_data.get("voiceId") or None,
            "pitch": channel_data.get("pitch") or None,
            "speed": channel_data.get("speed") or None,
            "emotion": channel_data.get("emotion") or None,
            "language": channel_data.get("languageBoost") or None,
            "englishNormalization": channel_data.get("englishNormalization"),
        },
    }


@router.put("/preferences/{channel}", response_model=SuccessResponse)
async def update_channel_preferences(
    channel: str,
    updates: dict[str, Any] = Body(default_factory=dict),
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> SuccessResponse:
    """Preferences are global; *channel* only has to have TTS enabled."""
    _check_token_user(user)
    await _require_channel_config(context, channel)

    data = build_preference_update(updates)
    await context.user_preferences.merge(user.user_login, data)
    logger.info(f"Preferences updated for {user.user_login} in {channel}")
    return SuccessResponse(message="Preferences updated successfully")


@router.post("/ignore/tts/{channel}", response_model=IgnoreToggleResponse)
async def toggle_tts_ignore(
    channel: str,
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> IgnoreToggleResponse:
    if await context.tts_configs.get_raw(channel) is None:
        raise HTTPException(status_code=404, detail={"error": "Channel not found"})

    ignored = await context.tts_configs.toggle_ignored(channel, user.user_login)
    logger.info(f"{user.user_login} TTS ignore in {channel}: {ignored}")
    message = "Added to TTS ignore list" if ignored else "Removed from TTS ignore list"
    return IgnoreToggleResponse(ignored=ignored, message=message)


@router.post("/ignore/music/{channel}", response_model=IgnoreToggleResponse)
async def toggle_music_ignore(
    channel: str,
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> IgnoreToggleResponse:
    ignored = await context.music_settings.toggle_ignored(channel, user.user_login)
    logger.info(f"{user.user_login} music ignore in {channel}: {ignored}")
    message = "Added to music ignore list" if ignored else "Removed from music ignore list"
    return IgnoreToggleResponse(ignored=ignored, message=message)
