"""Dashboard TTS preview synthesis"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from chatvibes_api.core.context import AppContext
from chatvibes_api.core.dependencies import get_context, get_current_user
from chatvibes_api.core.errors import TtsProviderError
from chatvibes_api.models.api import CamelModel
from chatvibes_api.models.tts import VoiceSettings
from chatvibes_api.services import SessionUser
from chatvibes_api.services.tts_service import PROVIDER_NAME, WAVESPEED_MODEL, resolve_tts_params
from chatvibes_api.services.validation import (
    normalize_emotion,
    validate_emotion,
    validate_language_boost,
    validate_pitch,
    validate_speed,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tts", tags=["tts"])


# ============================================
# Request/Response Models
# ============================================


class TtsTestRequest(CamelModel):
    text: Any = None
    voice_id: str | None = None
    emotion: Any = None
    pitch: Any = None
    speed: Any = None
    language_boost: Any = None
    channel: str | None = None


class TtsTestResponse(CamelModel):
    success: bool = True
    audio_url: str
    provider: str = PROVIDER_NAME
    model: str = WAVESPEED_MODEL


def _validate_overrides(body: TtsTestRequest) -> None:
    checks = (
        ("emotion", normalize_emotion(body.emotion), validate_emotion),
        ("pitch", body.pitch, validate_pitch),
        ("speed", body.speed, validate_speed),
        ("languageBoost", body.language_boost, validate_language_boost),
    )
    for name, value, is_valid in checks:
        if value is not None and not is_valid(value):
            raise HTTPException(status_code=400, detail={"error": f"Invalid {name} value"})


# ============================================
# Endpoints
# ============================================


@router.post("/test", response_model=TtsTestResponse)
async def synthesize_test(
    body: TtsTestRequest,
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> TtsTestResponse:
    """Synthesize *text* with request overrides > viewer prefs > channel defaults."""
    if not isinstance(body.text, str) or not body.text.strip():
        raise HTTPException(status_code=400, detail={"error": "Text is required for TTS test"})
    _validate_overrides(body)

    if context.wavespeed is None:
        raise HTTPException(status_code=501, detail={"error": "TTS provider not configured"})

    channel_defaults = None
    if body.channel:
        tts_config = await context.tts_configs.get(body.channel)
        channel_defaults = tts_config.defaults if tts_config else None

    preference = await context.user_preferences.get(user.user_login)
    request = VoiceSettings(
        voice_id=body.voice_id,
        emotion=body.emotion,
        pitch=body.pitch,
        speed=body.speed,
        language_boost=body.language_boost,
    )
    params = resolve_tts_params(
        request, preference.voice if preference else None, channel_defaults
    )

    try:
        audio_url = await context.wavespeed.synthesize(body.text.strip(), params)
    except TtsProviderError as e:
        logger.error(f"TTS test for {user.user_login} failed: {e.message}")
        raise HTTPException(status_code=e.status, detail={"error": e.message}) from e

    logger.info(f"TTS test generated for {user.user_login} (voice={params.voice_id})")
    return TtsTestResponse(audio_url=audio_url)
