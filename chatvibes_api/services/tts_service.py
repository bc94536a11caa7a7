"""WaveSpeed speech synthesis client and TTS parameter resolution."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from chatvibes_api.core.errors import TtsProviderError
from chatvibes_api.core.logging import redact_sensitive
from chatvibes_api.models.tts import VoiceSettings
from chatvibes_api.services.validation import normalize_emotion

logger = logging.getLogger(__name__)

WAVESPEED_MODEL = "minimax/speech-02-turbo"
WAVESPEED_URL = f"https://api.wavespeed.ai/api/v3/{WAVESPEED_MODEL}"
PROVIDER_NAME = "wavespeed"

DEFAULT_VOICE_ID = "Friendly_Person"
DEFAULT_EMOTION = "neutral"
DEFAULT_PITCH = 0
DEFAULT_SPEED = 1.0
DEFAULT_LANGUAGE_BOOST = "auto"
LEGACY_AUTO_LANGUAGES = ("Automatic", "None")

VOICE_ACCESS_DENIED = "you don't have access to this voice_id"


@dataclass
class TtsParams:
    voice_id: str
    emotion: str
    pitch: float
    speed: float
    language_boost: str


def _pick(*values: Any) -> Any:
    """First value that is not None or an empty string."""
    for value in values:
        if value is not None and value != "":
            return value
    return None


def resolve_tts_params(
    request: VoiceSettings,
    viewer: VoiceSettings | None,
    channel: VoiceSettings | None,
) -> TtsParams:
    """Overlay request > viewer global preference > channel default > fallback."""
    viewer = viewer or VoiceSettings()
    channel = channel or VoiceSettings()

    language = _pick(request.language_boost, viewer.language_boost, channel.language_boost)
    if not language or language in LEGACY_AUTO_LANGUAGES:
        language = DEFAULT_LANGUAGE_BOOST

    pitch = _pick(request.pitch, viewer.pitch, channel.pitch)
    speed = _pick(request.speed, viewer.speed, channel.speed)
    emotion = normalize_emotion(_pick(request.emotion, viewer.emotion, channel.emotion))

    return TtsParams(
        voice_id=_pick(request.voice_id, viewer.voice_id, channel.voice_id) or DEFAULT_VOICE_ID,
        emotion=emotion or DEFAULT_EMOTION,
        pitch=pitch if _is_number(pitch) else DEFAULT_PITCH,
        speed=speed if _is_number(speed) else DEFAULT_SPEED,
        language_boost=language,
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _voice_error(message: str, voice_id: str) -> TtsProviderError:
    if VOICE_ACCESS_DENIED in message:
        return TtsProviderError(
            403,
            f'Voice access denied: The voice "{voice_id}" requires special access '
            "permissions. Please try a different voice.",
        )
    if "voice_id" in message:
        return TtsProviderError(
            400,
            f'Invalid voice: "{voice_id}" is not available. '
            "Please check the voice ID and try again.",
        )
    return TtsProviderError(502, f"TTS generation failed: {message}")


class WavespeedClient:
    """Synchronous-mode synthesis against the WaveSpeed minimax endpoint."""

    def __init__(self, api_key: str, http: httpx.AsyncClient, timeout: float = 60.0):
        self.api_key = api_key
        self._http = http
        self.timeout = timeout

    async def synthesize(self, text: str, params: TtsParams) -> str:
        """Return the URL of the generated mp3, or raise TtsProviderError."""
        body = {
            "text": text,
            "voice_id": params.voice_id,
            "speed": params.speed,
            "volume": 1.0,
            "pitch": params.pitch,
            "emotion": params.emotion,
            "language_boost": params.language_boost,
            "english_normalization": False,
            "sample_rate": 32000,
            "bitrate": 128000,
            "channel": "1",
            "format": "mp3",
            "enable_sync_mode": True,
        }
        try:
            response = await self._http.post(
                WAVESPEED_URL,
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"WaveSpeed request failed: {e}")
            raise TtsProviderError(500, "TTS generation failed") from e

        try:
            result = response.json()
        except ValueError:
            result = {}

        if response.is_error:
            logger.error(f"WaveSpeed returned {response.status_code}: {redact_sensitive(result)}")
            message = result.get("message") if isinstance(result, dict) else None
            if message:
                raise _voice_error(str(message), params.voice_id)
            raise TtsProviderError(500, "TTS generation failed")

        data = (result.get("data") or result) if isinstance(result, dict) else {}
        status = data.get("status")
        outputs = data.get("outputs") or []

        if status == "completed" and outputs:
            return str(outputs[0])
        if status == "failed":
            error = str(data.get("error") or "Unknown error")
            logger.error(f"WaveSpeed generation failed: {error}")
            raise _voice_error(error, params.voice_id)

        logger.warning(f"WaveSpeed returned no outputs: {redact_sensitive(data)}")
        raise TtsProviderError(502, "No audio URL returned by TTS provider")
