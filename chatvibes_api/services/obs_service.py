"""OBS browser-source token issuance."""

import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime
from urllib.parse import quote

from chatvibes_api.core.errors import SecretStoreError
from chatvibes_api.repositories import ManagedChannelRepository, TtsConfigRepository
from chatvibes_api.services.secret_store import SecretStore, obs_token_secret_id

logger = logging.getLogger(__name__)


@dataclass
class ObsToken:
    token: str
    browser_source_url: str


class ObsTokenService:
    """Per-channel token that authorizes the public OBS browser-source URL.

    Lookup order: secret referenced by the TTS config, then the legacy
    reference on the managed channel, then a freshly generated token.
    """

    def __init__(
        self,
        tts_configs: TtsConfigRepository,
        channels: ManagedChannelRepository,
        secret_store: SecretStore,
        browser_base_url: str,
    ):
        self.tts_configs = tts_configs
        self.channels = channels
        self.secret_store = secret_store
        self.browser_base_url = browser_base_url.rstrip("/")

    def browser_source_url(self, login: str, token: str) -> str:
        return f"{self.browser_base_url}/?channel={quote(login)}&token={quote(token)}"

    async def get_or_create(self, login: str) -> ObsToken:
        login = login.lower()

        tts_config = await self.tts_configs.get(login)
        if tts_config and tts_config.obs_socket_secret_name:
            token = await self._read(tts_config.obs_socket_secret_name)
            if token:
                return ObsToken(token, self.browser_source_url(login, token))

        channel = await self.channels.get(login)
        if channel and channel.obs_token_secret_name:
            token = await self._read(channel.obs_token_secret_name)
            if token:
                return ObsToken(token, self.browser_source_url(login, token))

        logger.info(f"No OBS token found for {login}, generating one")
        return await self.generate(login)

    async def generate(self, login: str) -> ObsToken:
        """Create a new token version and point the TTS config at it."""
        login = login.lower()
        token = secrets.token_hex(32)
        secret_ref = await self.secret_store.put(obs_token_secret_id(login), token)

        await self.tts_configs.set_fields(login, {"obsSocketSecretName": secret_ref})
        await self.channels.upsert(login, {"obsTokenGeneratedAt": datetime.now(UTC)})
        logger.info(f"OBS token generated for {login}")
        return ObsToken(token, self.browser_source_url(login, token))

    async def _read(self, secret_name: str) -> str | None:
        try:
            return await self.secret_store.access(secret_name)
        except SecretStoreError as e:
            logger.warning(f"OBS token secret {secret_name} unreadable: {e}")
            return None
