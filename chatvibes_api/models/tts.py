"""Data models for TTS channel configuration and viewer voice preferences."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

# Version 1 documents only carry the flat channelPointRewardId /
# channelPointsEnabled fields. Version 2 adds the nested channelPoints map.
SCHEMA_VERSION = 2

DEFAULT_REWARD_TITLE = "Text-to-Speech Message"
DEFAULT_REWARD_COST = 500
DEFAULT_REWARD_PROMPT = "Enter a message to be read aloud"

BOT_MODE_ANONYMOUS = "anonymous"
BOT_MODE_AUTHENTICATED = "authenticated"

DEFAULT_MIN_CHARS = 1
DEFAULT_MAX_CHARS = 200


def _stored_count(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(value) if math.isfinite(value) else default


@dataclass
class ContentPolicy:
    """Rules a redemption message must pass before it is read aloud."""

    min_chars: int = DEFAULT_MIN_CHARS
    max_chars: int = DEFAULT_MAX_CHARS
    block_links: bool = True
    banned_words: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "minChars": self.min_chars,
            "maxChars": self.max_chars,
            "blockLinks": self.block_links,
            "bannedWords": list(self.banned_words),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ContentPolicy:
        data = data or {}
        return cls(
            min_chars=_stored_count(data.get("minChars"), DEFAULT_MIN_CHARS),
            max_chars=_stored_count(data.get("maxChars"), DEFAULT_MAX_CHARS),
            block_links=data.get("blockLinks") is not False,
            banned_words=[str(w) for w in data.get("bannedWords") or []],
        )


@dataclass
class ChannelPointsConfig:
    """Settings for the channel's single TTS Channel-Points reward."""

    enabled: bool = False
    reward_id: str | None = None
    title: str = DEFAULT_REWARD_TITLE
    cost: int = DEFAULT_REWARD_COST
    prompt: str = DEFAULT_REWARD_PROMPT
    skip_queue: bool = True
    cooldown_seconds: int = 0
    per_stream_limit: int = 0
    per_user_per_stream_limit: int = 0
    limits_enabled: bool = False
    content_policy: ContentPolicy = field(default_factory=ContentPolicy)
    last_synced_at: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "rewardId": self.reward_id,
            "title": self.title,
            "cost": self.cost,
            "prompt": self.prompt,
            "skipQueue": self.skip_queue,
            "cooldownSeconds": self.cooldown_seconds,
            "perStreamLimit": self.per_stream_limit,
            "perUserPerStreamLimit": self.per_user_per_stream_limit,
            "limitsEnabled": self.limits_enabled,
            "contentPolicy": self.content_policy.to_dict(),
            "lastSyncedAt": self.last_synced_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ChannelPointsConfig:
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled", False)),
            reward_id=data.get("rewardId") or None,
            title=data.get("title") or DEFAULT_REWARD_TITLE,
            cost=int(data.get("cost") or DEFAULT_REWARD_COST),
            prompt=data.get("prompt") or DEFAULT_REWARD_PROMPT,
            skip_queue=data.get("skipQueue") is not False,
            cooldown_seconds=int(data.get("cooldownSeconds") or 0),
            per_stream_limit=int(data.get("perStreamLimit") or 0),
            per_user_per_stream_limit=int(data.get("perUserPerStreamLimit") or 0),
            limits_enabled=data.get("limitsEnabled") is True,
            content_policy=ContentPolicy.from_dict(data.get("contentPolicy")),
            last_synced_at=data.get("lastSyncedAt"),
        )


@dataclass
class VoiceSettings:
    """Voice parameters shared by channel defaults and viewer preferences."""

    voice_id: str | None = None
    emotion: str | None = None
    pitch: float | None = None
    speed: float | None = None
    language_boost: str | None = None
    english_normalization: bool | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> VoiceSettings:
        data = data or {}
        return cls(
            voice_id=data.get("voiceId"),
            emotion=data.get("emotion"),
            pitch=data.get("pitch"),
            speed=data.get("speed"),
            language_boost=data.get("languageBoost"),
            english_normalization=data.get("englishNormalization"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "voiceId": self.voice_id,
            "emotion": self.emotion,
            "pitch": self.pitch,
            "speed": self.speed,
            "languageBoost": self.language_boost,
            "englishNormalization": self.english_normalization,
        }


@dataclass
class TtsChannelConfig:
    """Per-channel TTS configuration document."""

    login: str
    defaults: VoiceSettings = field(default_factory=VoiceSettings)
    channel_points: ChannelPointsConfig = field(default_factory=ChannelPointsConfig)
    obs_socket_secret_name: str | None = None
    bot_mode: str | None = None
    ignored_users: list[str] = field(default_factory=list)
    schema_version: int = 1

    @classmethod
    def from_dict(cls, login: str, data: dict[str, Any]) -> TtsChannelConfig:
        if isinstance(data.get("channelPoints"), dict):
            channel_points = ChannelPointsConfig.from_dict(data["channelPoints"])
        else:
            # version 1 document: only the flat fields exist
            channel_points = ChannelPointsConfig(
                enabled=bool(data.get("channelPointsEnabled", False)),
                reward_id=data.get("channelPointRewardId") or None,
            )
        return cls(
            login=login,
            defaults=VoiceSettings.from_dict(data),
            channel_points=channel_points,
            obs_socket_secret_name=data.get("obsSocketSecretName"),
            bot_mode=data.get("botMode"),
            ignored_users=[str(u).lower() for u in data.get("ignoredUsers") or []],
            schema_version=int(data.get("schemaVersion") or 1),
        )


@dataclass
class UserPreference:
    """Global (cross-channel) voice overrides for one viewer."""

    login: str
    voice: VoiceSettings = field(default_factory=VoiceSettings)

    @classmethod
    def from_dict(cls, login: str, data: dict[str, Any]) -> UserPreference:
        return cls(login=login, voice=VoiceSettings.from_dict(data))
