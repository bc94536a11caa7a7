"""Twitch user-token lifecycle.

Access and refresh tokens live in Secret Manager; the managed-channel
document only holds their secret names plus the access-token expiry.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from chatvibes_api.core.errors import SecretStoreError, TwitchTokenError
from chatvibes_api.repositories import ManagedChannelRepository
from chatvibes_api.services.secret_store import (
    SecretStore,
    access_token_secret_id,
    refresh_token_secret_id,
)
from chatvibes_api.services.twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)

EXPIRY_BUFFER = timedelta(minutes=5)
REAUTH_MESSAGE = "Token refresh failed, user needs to re-authenticate with Twitch."


@dataclass
class StoredTokenRefs:
    access_token_secret_name: str
    refresh_token_secret_name: str


class TokenService:
    """Hand out a valid Twitch user access token for a managed channel."""

    def __init__(
        self,
        channels: ManagedChannelRepository,
        secret_store: SecretStore,
        twitch_api: TwitchAPIClient,
    ):
        self.channels = channels
        self.secret_store = secret_store
        self.twitch_api = twitch_api

    async def store_tokens(
        self, user_id: str, access_token: str, refresh_token: str
    ) -> StoredTokenRefs:
        """Write both tokens as new secret versions. Returns their references."""
        access_ref = await self.secret_store.put(access_token_secret_id(user_id), access_token)
        refresh_ref = await self.secret_store.put(refresh_token_secret_id(user_id), refresh_token)
        return StoredTokenRefs(
            access_token_secret_name=access_ref, refresh_token_secret_name=refresh_ref
        )

    async def get_valid_token(self, login: str) -> str:
        """Return a usable access token, refreshing it when needed.

        Raises TwitchTokenError; ``needs_reauth`` is set when the refresh grant
        no longer works and the streamer must repeat the OAuth flow.
        """
        login = login.lower()
        channel = await self.channels.get(login)
        if channel is None:
            raise TwitchTokenError("User not found in managed channels.")
        if not channel.twitch_user_id:
            raise TwitchTokenError("Twitch user id missing for channel.", needs_reauth=True)

        user_id = channel.twitch_user_id
        now = datetime.now(UTC)
        expires_at = channel.access_token_expires_at

        if not channel.needs_reauth and expires_at and expires_at - EXPIRY_BUFFER > now:
            access_name = channel.access_token_secret_name or access_token_secret_id(user_id)
            try:
                return await self.secret_store.access(access_name)
            except SecretStoreError as e:
                logger.warning(f"Stored access token unreadable for {login}, refreshing: {e}")

        logger.info(f"Refreshing Twitch token for {login}")
        try:
            refresh_name = channel.refresh_token_secret_name or refresh_token_secret_id(user_id)
            refresh_token = await self.secret_store.access(refresh_name)

            result = await self.twitch_api.refresh_access_token(refresh_token)
            if not result.success or not result.access_token:
                raise TwitchTokenError(result.error or "refresh rejected", needs_reauth=True)

            refs = await self.store_tokens(
                user_id, result.access_token, result.refresh_token or refresh_token
            )
            await self.channels.update(
                login,
                {
                    "twitchAccessTokenExpiresAt": now + timedelta(seconds=result.expires_in or 0),
                    "accessTokenSecretName": refs.access_token_secret_name,
                    "refreshTokenSecretName": refs.refresh_token_secret_name,
                    "needsTwitchReAuth": False,
                    "lastTokenError": None,
                    "lastTokenErrorAt": None,
                },
            )
        except (TwitchTokenError, SecretStoreError) as e:
            logger.error(f"Token refresh failed for {login}: {e}")
            await self.channels.update(
                login,
                {
                    "needsTwitchReAuth": True,
                    "lastTokenError": str(e),
                    "lastTokenErrorAt": datetime.now(UTC),
                },
            )
            raise TwitchTokenError(REAUTH_MESSAGE, needs_reauth=True) from e

        logger.info(f"Twitch token refreshed for {login}")
        return result.access_token
