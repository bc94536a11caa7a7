"""Repository for the ttsChannelConfigs collection.

The nested ``channelPoints`` map is the source of truth for the reward.
``save_channel_points`` is the only writer of the flat legacy fields
``channelPointRewardId`` / ``channelPointsEnabled``; they exist for readers
that predate schema version 2 and can be dropped once none remain.
"""

from __future__ import annotations

import logging
from typing import Any

from chatvibes_api.core.database import COLLECTION_TTS_CHANNEL_CONFIGS, DocumentStore
from chatvibes_api.models.tts import SCHEMA_VERSION, ChannelPointsConfig, TtsChannelConfig

logger = logging.getLogger(__name__)


def legacy_channel_points_fields(channel_points: ChannelPointsConfig) -> dict[str, Any]:
    """Flat fields mirrored for version 1 readers."""
    return {
        "channelPointRewardId": channel_points.reward_id,
        "channelPointsEnabled": channel_points.enabled,
    }


class TtsConfigRepository:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def get_raw(self, login: str) -> dict[str, Any] | None:
        return await self.store.get(COLLECTION_TTS_CHANNEL_CONFIGS, login.lower())

    async def get(self, login: str) -> TtsChannelConfig | None:
        data = await self.get_raw(login)
        if data is None:
            return None
        return TtsChannelConfig.from_dict(login.lower(), data)

    async def get_channel_points(self, login: str) -> ChannelPointsConfig:
        """Return the stored reward config, or defaults when none exists."""
        config = await self.get(login)
        if config is None:
            return ChannelPointsConfig()
        return config.channel_points

    async def save_channel_points(self, login: str, channel_points: ChannelPointsConfig) -> None:
        await self.store.set(
            COLLECTION_TTS_CHANNEL_CONFIGS,
            login.lower(),
            {
                "channelPoints": channel_points.to_dict(),
                "schemaVersion": SCHEMA_VERSION,
                **legacy_channel_points_fields(channel_points),
            },
            merge=True,
        )

    async def set_fields(self, login: str, fields: dict[str, Any]) -> None:
        await self.store.set(COLLECTION_TTS_CHANNEL_CONFIGS, login.lower(), fields, merge=True)

    async def toggle_ignored(self, login: str, username: str) -> bool:
        """Flip *username* in the channel's TTS ignore list. Returns the new state."""
        config = await self.get(login)
        current = config.ignored_users if config else []
        updated, ignored = toggle_member(current, username.lower())
        await self.set_fields(login, {"ignoredUsers": updated})
        return ignored


def toggle_member(items: list[str], value: str) -> tuple[list[str], bool]:
    """Remove *value* if present, else append it. Returns (items, now_present)."""
    if value in items:
        return [item for item in items if item != value], False
    return [*items, value], True
