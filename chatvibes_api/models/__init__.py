from .channel import TIER_ANONYMOUS, TIER_FULL, ManagedChannel
from .shortlink import ShortLink
from .tts import (
    ChannelPointsConfig,
    ContentPolicy,
    TtsChannelConfig,
    UserPreference,
    VoiceSettings,
)

__all__ = [
    "ChannelPointsConfig",
    "ContentPolicy",
    "ManagedChannel",
    "ShortLink",
    "TIER_ANONYMOUS",
    "TIER_FULL",
    "TtsChannelConfig",
    "UserPreference",
    "VoiceSettings",
]
