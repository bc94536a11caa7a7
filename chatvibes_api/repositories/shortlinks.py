"""Repository for the shortlinks collection."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from chatvibes_api.core.database import COLLECTION_SHORTLINKS, DocumentStore
from chatvibes_api.models.shortlink import ShortLink

logger = logging.getLogger(__name__)


class ShortLinkRepository:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def create(self, slug: str, url: str) -> None:
        await self.store.set(
            COLLECTION_SHORTLINKS,
            slug,
            {"url": url, "createdAt": datetime.now(UTC), "clicks": 0},
            merge=False,
        )

    async def get(self, slug: str) -> ShortLink | None:
        data = await self.store.get(COLLECTION_SHORTLINKS, slug)
        if data is None:
            return None
        return ShortLink.from_dict(slug, data)

    async def record_click(self, link: ShortLink) -> None:
        """Write ``clicks + 1`` from the value read earlier (not atomic)."""
        await self.store.update(
            COLLECTION_SHORTLINKS,
            link.slug,
            {"clicks": link.clicks + 1, "lastClickedAt": datetime.now(UTC)},
        )
