"""Firestore document store.

Firestore has no schema; these collection names are the schema. Every write
goes through ``set(merge=True)`` or ``update`` on a single document, so
concurrent writers to different fields converge.
"""

import logging
from typing import Any

from google.cloud import firestore

logger = logging.getLogger(__name__)

COLLECTION_MANAGED_CHANNELS = "managedChannels"
COLLECTION_TTS_CHANNEL_CONFIGS = "ttsChannelConfigs"
COLLECTION_USER_PREFERENCES = "ttsUserPreferences"
COLLECTION_SHORTLINKS = "shortlinks"
COLLECTION_MUSIC_SETTINGS = "musicSettings"


def create_firestore_client(project: str | None = None) -> firestore.AsyncClient:
    """Create an async Firestore client (ADC credentials, or the emulator via env)."""
    client = firestore.AsyncClient(project=project or None)
    logger.info(f"Firestore client created (project={client.project})")
    return client


class DocumentStore:
    """Thin async wrapper over a Firestore client, keyed by (collection, doc id)."""

    def __init__(self, client: firestore.AsyncClient):
        self.client = client

    def document(self, collection: str, doc_id: str):
        return self.client.collection(collection).document(doc_id)

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Return the document data, or None when it does not exist."""
        snapshot = await self.document(collection, doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    async def set(
        self, collection: str, doc_id: str, data: dict[str, Any], *, merge: bool = True
    ) -> None:
        await self.document(collection, doc_id).set(data, merge=merge)

    async def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Update fields of an existing document (fails if it is missing)."""
        await self.document(collection, doc_id).update(data)
