"""Tests for stored Twitch token retrieval and refresh."""

from datetime import timedelta

import pytest

from chatvibes_api.core.errors import TwitchTokenError

from .conftest import STREAMER_ID, STREAMER_LOGIN, seed_channel


class TestGetValidToken:
    async def test_fresh_token_is_read_from_secret_manager(
        self, context, firestore, secret_manager, twitch
    ):
        seed_channel(firestore, secret_manager)

        token = await context.token_service.get_valid_token("Streamer")

        assert token == "stored-access"
        assert twitch.calls("POST", "/oauth2/token") == []

    async def test_near_expiry_refreshes_and_stores(self, context, firestore, secret_manager):
        seed_channel(firestore, secret_manager, expires_in=timedelta(minutes=2))

        token = await context.token_service.get_valid_token(STREAMER_LOGIN)

        assert token == "refreshed-access"
        assert secret_manager.latest(f"twitch-access-token-{STREAMER_ID}") == "refreshed-access"
        assert secret_manager.latest(f"twitch-refresh-token-{STREAMER_ID}") == "refreshed-refresh"

        doc = firestore.doc("managedChannels", STREAMER_LOGIN)
        assert doc["needsTwitchReAuth"] is False
        assert doc["lastTokenError"] is None
        assert doc["accessTokenSecretName"].endswith(
            f"/secrets/twitch-access-token-{STREAMER_ID}/versions/latest"
        )

    async def test_reauth_flag_forces_refresh(self, context, firestore, secret_manager):
        seed_channel(firestore, secret_manager, needsTwitchReAuth=True)

        assert await context.token_service.get_valid_token(STREAMER_LOGIN) == "refreshed-access"
        assert firestore.doc("managedChannels", STREAMER_LOGIN)["needsTwitchReAuth"] is False

    async def test_rejected_refresh_marks_channel(
        self, context, firestore, secret_manager, twitch
    ):
        seed_channel(firestore, secret_manager, expires_in=timedelta(seconds=-1))
        twitch.refresh_ok = False

        with pytest.raises(TwitchTokenError) as exc_info:
            await context.token_service.get_valid_token(STREAMER_LOGIN)

        assert exc_info.value.needs_reauth is True
        assert "re-authenticate" in exc_info.value.message

        doc = firestore.doc("managedChannels", STREAMER_LOGIN)
        assert doc["needsTwitchReAuth"] is True
        assert "Invalid refresh token" in doc["lastTokenError"]
        assert doc["lastTokenErrorAt"] is not None

    async def test_missing_refresh_secret_needs_reauth(self, context, firestore):
        firestore.seed(
            "managedChannels",
            STREAMER_LOGIN,
            {"twitchUserId": STREAMER_ID, "needsTwitchReAuth": False},
        )

        with pytest.raises(TwitchTokenError) as exc_info:
            await context.token_service.get_valid_token(STREAMER_LOGIN)

        assert exc_info.value.needs_reauth is True
        assert firestore.doc("managedChannels", STREAMER_LOGIN)["needsTwitchReAuth"] is True

    async def test_unknown_channel(self, context):
        with pytest.raises(TwitchTokenError) as exc_info:
            await context.token_service.get_valid_token("nobody")

        assert exc_info.value.needs_reauth is False

    async def test_channel_without_user_id_needs_reauth(self, context, firestore):
        firestore.seed("managedChannels", STREAMER_LOGIN, {"channelName": STREAMER_LOGIN})

        with pytest.raises(TwitchTokenError) as exc_info:
            await context.token_service.get_valid_token(STREAMER_LOGIN)

        assert exc_info.value.needs_reauth is True
