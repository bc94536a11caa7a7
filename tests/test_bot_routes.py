"""Tests for bot activation, deactivation and status."""

from datetime import timedelta

from .conftest import (
    BOT_USER_ID,
    STREAMER_ID,
    STREAMER_LOGIN,
    make_client,
    make_settings,
    seed_channel,
)


class TestAddBot:
    def test_full_tier_adds_moderator(
        self, client, auth_headers, firestore, secret_manager, twitch
    ):
        seed_channel(firestore, secret_manager)

        response = client.post("/api/bot/add", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Bot added to your channel successfully!",
            "channelName": STREAMER_LOGIN,
            "moderatorStatus": "added",
            "moderatorError": None,
            "oauthTier": "full",
        }

        calls = twitch.calls("POST", "/helix/moderation/moderators")
        assert len(calls) == 1
        assert calls[0].url.params["broadcaster_id"] == STREAMER_ID
        assert calls[0].url.params["user_id"] == BOT_USER_ID
        assert calls[0].headers["Authorization"] == "Bearer stored-access"

        doc = firestore.doc("managedChannels", STREAMER_LOGIN)
        assert doc["isActive"] is True
        assert doc["addedAt"] is not None

    def test_bot_free_skips_moderator(
        self, client, auth_headers, firestore, secret_manager, twitch
    ):
        seed_channel(firestore, secret_manager, oauthTier="anonymous")

        data = client.post("/api/bot/add", headers=auth_headers).json()

        assert data["moderatorStatus"] == "skipped"
        assert data["oauthTier"] == "anonymous"
        assert "Bot-Free Mode" in data["message"]
        assert twitch.calls("POST", "/helix/moderation/moderators") == []

    def test_moderator_failure_still_activates(
        self, client, auth_headers, firestore, secret_manager, twitch
    ):
        seed_channel(firestore, secret_manager)
        twitch.users = {}

        response = client.post("/api/bot/add", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["moderatorStatus"] == "failed"
        assert response.json()["moderatorError"] == "Bot user not found"
        assert firestore.doc("managedChannels", STREAMER_LOGIN)["isActive"] is True

    def test_already_moderator_counts_as_added(
        self, client, auth_headers, firestore, secret_manager, twitch
    ):
        seed_channel(firestore, secret_manager)
        twitch.moderator_status = 400
        twitch.moderator_message = "user is already a mod"

        data = client.post("/api/bot/add", headers=auth_headers).json()

        assert data["moderatorStatus"] == "added"

    def test_not_on_allow_list(self, firestore, secret_manager, http, auth_headers):
        seed_channel(firestore, secret_manager)
        settings = make_settings(allowed_channels="other")

        with make_client(settings, firestore, secret_manager, http) as client:
            response = client.post("/api/bot/add", headers=auth_headers)

        assert response.status_code == 403
        assert response.json()["code"] == "not_allowed"
        assert response.json()["success"] is False
        assert firestore.doc("managedChannels", STREAMER_LOGIN)["isActive"] is False

    def test_reauth_required(self, client, auth_headers, firestore, secret_manager, twitch):
        seed_channel(firestore, secret_manager, expires_in=timedelta(hours=-1))
        twitch.refresh_ok = False

        response = client.post("/api/bot/add", headers=auth_headers)

        assert response.status_code == 401
        assert response.json()["needsReauth"] is True

    def test_unknown_channel(self, client, auth_headers):
        response = client.post("/api/bot/add", headers=auth_headers)

        assert response.status_code == 500
        assert response.json()["message"] == "Failed to add bot to your channel. Please try again."


class TestRemoveBot:
    def test_deactivates(self, client, auth_headers, firestore, secret_manager):
        seed_channel(firestore, secret_manager, isActive=True)

        response = client.post("/api/bot/remove", headers=auth_headers)

        assert response.status_code == 200
        doc = firestore.doc("managedChannels", STREAMER_LOGIN)
        assert doc["isActive"] is False
        assert doc["removedAt"] is not None
        assert doc["twitchUserId"] == STREAMER_ID

    def test_missing_channel(self, client, auth_headers):
        response = client.post("/api/bot/remove", headers=auth_headers)

        assert response.status_code == 404


class TestBotStatus:
    def test_unknown_channel(self, client, auth_headers):
        data = client.get("/api/bot/status", headers=auth_headers).json()

        assert data == {
            "success": True,
            "isActive": False,
            "channelName": STREAMER_LOGIN,
            "needsReAuth": False,
            "oauthTier": "full",
        }

    def test_active_channel(self, client, auth_headers, firestore, secret_manager):
        seed_channel(firestore, secret_manager, isActive=True, oauthTier="anonymous")

        data = client.get("/api/bot/status", headers=auth_headers).json()

        assert data["isActive"] is True
        assert data["needsReAuth"] is False
        assert data["oauthTier"] == "anonymous"

    def test_failed_refresh_surfaces_reauth(
        self, client, auth_headers, firestore, secret_manager, twitch
    ):
        seed_channel(firestore, secret_manager, expires_in=timedelta(hours=-1))
        twitch.refresh_ok = False

        response = client.get("/api/bot/status", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["needsReAuth"] is True
