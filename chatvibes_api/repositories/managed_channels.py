"""Repository for the managedChannels collection."""

from __future__ import annotations

import logging
from typing import Any

from chatvibes_api.core.database import COLLECTION_MANAGED_CHANNELS, DocumentStore
from chatvibes_api.models.channel import ManagedChannel

logger = logging.getLogger(__name__)


class ManagedChannelRepository:
    """Document operations for managed channels, keyed by lowercase login."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def get_raw(self, login: str) -> dict[str, Any] | None:
        return await self.store.get(COLLECTION_MANAGED_CHANNELS, login.lower())

    async def get(self, login: str) -> ManagedChannel | None:
        data = await self.get_raw(login)
        if data is None:
            return None
        return ManagedChannel.from_dict(login.lower(), data)

    async def upsert(self, login: str, fields: dict[str, Any]) -> None:
        """Merge *fields* into the channel document, creating it if needed."""
        await self.store.set(COLLECTION_MANAGED_CHANNELS, login.lower(), fields, merge=True)

    async def update(self, login: str, fields: dict[str, Any]) -> None:
        """Update fields of an existing channel document."""
        await self.store.update(COLLECTION_MANAGED_CHANNELS, login.lower(), fields)
