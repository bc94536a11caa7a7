"""Repositories - one class per Firestore collection."""

from .managed_channels import ManagedChannelRepository
from .preferences import MusicSettingsRepository, UserPreferenceRepository
from .shortlinks import ShortLinkRepository
from .tts_configs import TtsConfigRepository

__all__ = [
    "ManagedChannelRepository",
    "MusicSettingsRepository",
    "ShortLinkRepository",
    "TtsConfigRepository",
    "UserPreferenceRepository",
]
