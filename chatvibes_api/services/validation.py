"""Voice parameter validators shared by viewer preferences and TTS tests."""

from typing import Any

CANONICAL_EMOTIONS = frozenset(
    {"neutral", "happy", "sad", "angry", "fearful", "disgusted", "surprised"}
)

EMOTION_SYNONYMS = {
    "auto": "neutral",
    "fear": "fearful",
    "surprise": "surprised",
    "disgust": "disgusted",
}

LANGUAGE_BOOSTS = (
    "auto",
    "English",
    "Chinese",
    "Chinese,Yue",
    "Spanish",
    "Hindi",
    "Portuguese",
    "Russian",
    "Japanese",
    "Korean",
    "Vietnamese",
    "Arabic",
    "French",
    "German",
    "Turkish",
    "Dutch",
    "Ukrainian",
    "Indonesian",
    "Italian",
    "Thai",
    "Polish",
    "Romanian",
    "Greek",
    "Czech",
    "Finnish",
)

SPEED_RANGE = (0.5, 2.0)
PITCH_RANGE = (-12, 12)


def normalize_emotion(value: Any) -> str | None:
    """Map synonyms onto canonical emotions. Empty input becomes None.

    Unknown values are returned lowercased so validation can reject them.
    """
    if value is None:
        return None
    text = str(value).strip().lower()
    if not text:
        return None
    return EMOTION_SYNONYMS.get(text, text)


def validate_emotion(value: Any) -> bool:
    """None means "no override" and is valid."""
    if value is None:
        return True
    return isinstance(value, str) and value in CANONICAL_EMOTIONS


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == value


def validate_speed(value: Any) -> bool:
    return _is_number(value) and SPEED_RANGE[0] <= value <= SPEED_RANGE[1]


def validate_pitch(value: Any) -> bool:
    return _is_number(value) and PITCH_RANGE[0] <= value <= PITCH_RANGE[1]


def validate_language_boost(value: Any) -> bool:
    return isinstance(value, str) and value in LANGUAGE_BOOSTS
