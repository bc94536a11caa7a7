"""Channel allow-list.

Sources, in order: the ALLOWED_CHANNELS literal list, then the secret named
by ALLOWED_CHANNELS_SECRET_NAME. With neither configured every channel is
allowed. When a source is configured but cannot be loaded, the list is empty
and every channel is denied.
"""

import logging

from cachetools import TTLCache  # type: ignore[import-untyped]

from chatvibes_api.core.config import Settings
from chatvibes_api.core.errors import SecretStoreError
from chatvibes_api.services.secret_store import SecretStore

logger = logging.getLogger(__name__)

_CACHE_KEY = "allowed"


def parse_channel_list(raw: str) -> list[str]:
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


class AllowListService:
    def __init__(
        self, settings: Settings, secret_store: SecretStore | None, ttl: float = 60.0
    ):
        self.settings = settings
        self.secret_store = secret_store
        # Only successful loads are cached, so a failing source is retried
        self._cache: TTLCache = TTLCache(maxsize=1, ttl=ttl)

    async def get_allowed_channels(self) -> list[str] | None:
        """Return allowed logins, or None when no restriction is configured."""
        if self.settings.allowed_channels.strip():
            return parse_channel_list(self.settings.allowed_channels)

        secret_name = self.settings.allowed_channels_secret_name.strip()
        if not secret_name:
            return None

        cached = self._cache.get(_CACHE_KEY)
        if cached is not None:
            return cached

        if self.secret_store is None:
            logger.error("Allow-list secret configured but no secret store available")
            return []

        try:
            raw = await self.secret_store.access(secret_name)
        except SecretStoreError as e:
            logger.error(f"Failed to load allow-list, denying all channels: {e}")
            return []

        channels = parse_channel_list(raw)
        self._cache[_CACHE_KEY] = channels
        return channels

    async def is_allowed(self, login: str) -> bool:
        allowed = await self.get_allowed_channels()
        if allowed is None:
            return True
        return login.lower() in allowed
