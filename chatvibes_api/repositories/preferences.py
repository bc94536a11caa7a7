"""Repositories for viewer-owned documents (voice preferences, music ignore list)."""

from __future__ import annotations

import logging
from typing import Any

from chatvibes_api.core.database import (
    COLLECTION_MUSIC_SETTINGS,
    COLLECTION_USER_PREFERENCES,
    DocumentStore,
)
from chatvibes_api.models.tts import UserPreference
from chatvibes_api.repositories.tts_configs import toggle_member

logger = logging.getLogger(__name__)


class UserPreferenceRepository:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def get(self, login: str) -> UserPreference | None:
        data = await self.store.get(COLLECTION_USER_PREFERENCES, login.lower())
        if data is None:
            return None
        return UserPreference.from_dict(login.lower(), data)

    async def merge(self, login: str, fields: dict[str, Any]) -> None:
        await self.store.set(COLLECTION_USER_PREFERENCES, login.lower(), fields, merge=True)


class MusicSettingsRepository:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def get_ignored_users(self, channel: str) -> list[str]:
        data = await self.store.get(COLLECTION_MUSIC_SETTINGS, channel.lower())
        if not data:
            return []
        return [str(u).lower() for u in data.get("ignoredUsers") or []]

    async def toggle_ignored(self, channel: str, username: str) -> bool:
        """Flip *username* in the music ignore list, creating the settings doc if needed."""
        data = await self.store.get(COLLECTION_MUSIC_SETTINGS, channel.lower())
        if data is None:
            await self.store.set(
                COLLECTION_MUSIC_SETTINGS,
                channel.lower(),
                {"enabled": False, "ignoredUsers": [username.lower()]},
                merge=False,
            )
            return True

        current = [str(u).lower() for u in data.get("ignoredUsers") or []]
        updated, ignored = toggle_member(current, username.lower())
        await self.store.update(
            COLLECTION_MUSIC_SETTINGS, channel.lower(), {"ignoredUsers": updated}
        )
        return ignored
