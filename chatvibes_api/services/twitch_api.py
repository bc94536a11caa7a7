"""Twitch OAuth and Helix API client.

Token types:
- App Access Token: for public lookups (users by login). Auto-fetched and cached.
- User Access Token: for broadcaster endpoints (custom rewards, moderators).
  Obtained through the OAuth flow, stored in Secret Manager, refreshed on demand.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

import httpx

from chatvibes_api.core.errors import HelixError, TwitchAuthError
from chatvibes_api.core.logging import redact_sensitive

logger = logging.getLogger(__name__)

HELIX_BASE = "https://api.twitch.tv/helix"
OAUTH_BASE = "https://id.twitch.tv/oauth2"

# Token and reward endpoints; plain lookups use 10s
SLOW_TIMEOUT = 15.0

OAUTH_TIERS: dict[str, str] = {
    "anonymous": "user:read:email channel:read:redemptions channel:manage:redemptions",
    "full": (
        "user:read:email chat:read chat:edit channel:read:subscriptions bits:read "
        "moderator:read:followers channel:manage:redemptions channel:read:redemptions "
        "channel:manage:moderators"
    ),
}


@dataclass
class TokenRefreshResult:
    """Result of a token refresh operation."""

    success: bool
    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None
    error: str | None = None


@dataclass
class OAuthTokens:
    """Tokens returned by the authorization-code exchange."""

    access_token: str
    refresh_token: str
    expires_in: int
    scopes: list[str] = field(default_factory=list)


@dataclass
class TokenValidation:
    """Identity behind a user access token (from /oauth2/validate)."""

    user_id: str
    login: str
    scopes: list[str] = field(default_factory=list)
    expires_in: int | None = None


@dataclass
class ModeratorResult:
    success: bool
    already_moderator: bool = False
    error: str | None = None


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or f"HTTP {response.status_code}")
    return f"HTTP {response.status_code}"


class TwitchAPIClient:
    """Client for interacting with Twitch API.

    Uses the application's shared httpx client and caches the app access
    token to avoid redundant token requests.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        http: httpx.AsyncClient,
    ):
        if not client_id or not client_secret:
            raise ValueError("Twitch client_id and client_secret are required")

        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri

        self._http = http

        # App token cache
        self._app_token: str | None = None
        self._app_token_expires_at: float = 0.0
        self._app_token_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Client-Id": self.client_id}

    async def _ensure_app_token(self) -> str | None:
        """Return a cached app access token, refreshing only when expired."""
        now = time.monotonic()
        if self._app_token and now < self._app_token_expires_at:
            return self._app_token

        async with self._app_token_lock:
            now = time.monotonic()
            if self._app_token and now < self._app_token_expires_at:
                return self._app_token

            try:
                response = await self._http.post(
                    f"{OAUTH_BASE}/token",
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "grant_type": "client_credentials",
                    },
                    timeout=SLOW_TIMEOUT,
                )
            except httpx.HTTPError as e:
                logger.error(f"Error getting app access token: {e}")
                return None

            if response.status_code != 200:
                logger.error(f"Failed to get app token: {response.status_code}")
                return None

            data = response.json()
            self._app_token = data.get("access_token")
            # refresh 5 min early
            expires_in = data.get("expires_in", 0)
            self._app_token_expires_at = now + max(expires_in - 300, 0)
            return self._app_token

    async def _helix(
        self,
        method: str,
        path: str,
        token: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send a Helix request, raising HelixError on any non-2xx response."""
        try:
            response = await self._http.request(
                method,
                f"{HELIX_BASE}/{path}",
                params=params,
                json=json,
                headers=self._headers(token),
                timeout=timeout or SLOW_TIMEOUT,
            )
        except httpx.HTTPError as e:
            logger.error(f"Helix {method} /{path} transport error: {e}")
            raise HelixError(500, str(e) or type(e).__name__) from e

        if response.is_error:
            message = _error_message(response)
            logger.warning(f"Helix {method} /{path} -> {response.status_code}: {message}")
            payload = None
            if response.content:
                try:
                    payload = response.json()
                except ValueError:
                    payload = response.text
            raise HelixError(response.status_code, message, payload)
        return response

    # ------------------------------------------------------------------
    # OAuth flow
    # ------------------------------------------------------------------

    def build_authorize_url(self, scope: str, state: str) -> str:
        """Build the Twitch authorization URL for *scope* (space separated)."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": scope,
            "state": state,
            "force_verify": "true",
        }
        return f"{OAUTH_BASE}/authorize?{urlencode(params)}"

    async def exchange_code(self, code: str) -> OAuthTokens:
        """Exchange an authorization code for user tokens."""
        try:
            response = await self._http.post(
                f"{OAUTH_BASE}/token",
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
                timeout=SLOW_TIMEOUT,
            )
        except httpx.TimeoutException as e:
            logger.error("Timeout while exchanging code for token")
            raise TwitchAuthError("timeout") from e
        except httpx.HTTPError as e:
            raise TwitchAuthError(f"Token exchange failed: {e}") from e

        if response.status_code != 200:
            message = _error_message(response)
            logger.error(f"Failed to exchange code: {response.status_code} {message}")
            raise TwitchAuthError(f"Token exchange failed: {message}")

        data = response.json()
        logger.debug(f"Token exchange response: {redact_sensitive(data)}")
        access_token = data.get("access_token")
        if not access_token:
            raise TwitchAuthError("No access_token in token response")

        scopes = data.get("scope") or []
        if isinstance(scopes, str):
            scopes = scopes.split()

        return OAuthTokens(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or "",
            expires_in=int(data.get("expires_in") or 0),
            scopes=list(scopes),
        )

    async def validate_token(self, access_token: str) -> TokenValidation:
        """Resolve the user behind *access_token*."""
        try:
            response = await self._http.get(
                f"{OAUTH_BASE}/validate",
                headers={"Authorization": f"OAuth {access_token}"},
            )
        except httpx.HTTPError as e:
            raise TwitchAuthError(f"Token validation failed: {e}") from e

        if response.status_code != 200:
            raise TwitchAuthError(f"Token validation failed: {_error_message(response)}")

        data = response.json()
        if not data.get("user_id") or not data.get("login"):
            raise TwitchAuthError("Token validation returned no user")

        return TokenValidation(
            user_id=str(data["user_id"]),
            login=str(data["login"]).lower(),
            scopes=list(data.get("scopes") or []),
            expires_in=data.get("expires_in"),
        )

    async def get_authenticated_user(self, access_token: str) -> dict[str, Any] | None:
        """Fetch the Helix profile (display name, email) of the token owner."""
        try:
            response = await self._helix("GET", "users", access_token, timeout=10.0)
        except HelixError as e:
            logger.warning(f"Failed to fetch user profile: {e.message}")
            return None

        users = response.json().get("data", [])
        return users[0] if users else None

    # ------------------------------------------------------------------
    # User token management
    # ------------------------------------------------------------------

    async def refresh_access_token(self, refresh_token: str) -> TokenRefreshResult:
        """Refresh a user's access token.

        Twitch may rotate the refresh token too; callers store both.
        """
        try:
            response = await self._http.post(
                f"{OAUTH_BASE}/token",
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                },
                timeout=SLOW_TIMEOUT,
            )
        except httpx.TimeoutException:
            logger.error("Timeout while refreshing token")
            return TokenRefreshResult(success=False, error="timeout")
        except httpx.HTTPError as e:
            logger.error(f"Error refreshing token: {e}")
            return TokenRefreshResult(success=False, error=str(e))

        if response.status_code != 200:
            error_msg = _error_message(response)
            logger.error(f"Token refresh failed: {error_msg}")
            return TokenRefreshResult(success=False, error=error_msg)

        data = response.json()
        new_access_token = data.get("access_token")
        if not new_access_token:
            return TokenRefreshResult(success=False, error="No access_token in refresh response")

        logger.debug("Successfully refreshed user access token")
        return TokenRefreshResult(
            success=True,
            access_token=new_access_token,
            refresh_token=data.get("refresh_token") or refresh_token,
            expires_in=int(data.get("expires_in") or 0),
        )

    # ------------------------------------------------------------------
    # Users & moderation
    # ------------------------------------------------------------------

    async def get_user_id_by_login(self, login: str) -> str | None:
        """Look up a Twitch user id by login name (app token)."""
        token = await self._ensure_app_token()
        if not token:
            return None
        try:
            response = await self._helix(
                "GET", "users", token, params={"login": login.lower()}, timeout=10.0
            )
        except HelixError as e:
            logger.error(f"Failed to look up user {login}: {e.message}")
            return None

        users = response.json().get("data", [])
        if not users:
            logger.warning(f"No Twitch user named {login}")
            return None
        return str(users[0]["id"])

    async def add_moderator(
        self, broadcaster_id: str, user_id: str, access_token: str
    ) -> ModeratorResult:
        """Grant moderator to *user_id* in the broadcaster's channel."""
        try:
            await self._helix(
                "POST",
                "moderation/moderators",
                access_token,
                params={"broadcaster_id": broadcaster_id, "user_id": user_id},
            )
        except HelixError as e:
            if e.status == 403 or "already a mod" in e.message.lower():
                return ModeratorResult(success=True, already_moderator=True)
            if e.status == 401:
                return ModeratorResult(
                    success=False,
                    error="Missing channel:manage:moderators scope. Please re-authenticate.",
                )
            return ModeratorResult(success=False, error=e.message)
        return ModeratorResult(success=True)

    # ------------------------------------------------------------------
    # Channel Points
    # ------------------------------------------------------------------

    async def list_custom_rewards(
        self, broadcaster_id: str, access_token: str, *, only_manageable: bool = True
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"broadcaster_id": broadcaster_id}
        if only_manageable:
            params["only_manageable_rewards"] = "true"
        response = await self._helix(
            "GET", "channel_points/custom_rewards", access_token, params=params
        )
        return list(response.json().get("data", []))

    async def get_custom_reward(
        self, broadcaster_id: str, access_token: str, reward_id: str
    ) -> dict[str, Any] | None:
        response = await self._helix(
            "GET",
            "channel_points/custom_rewards",
            access_token,
            params={"broadcaster_id": broadcaster_id, "id": reward_id},
        )
        rewards = response.json().get("data", [])
        return rewards[0] if rewards else None

    async def create_custom_reward(
        self, broadcaster_id: str, access_token: str, body: dict[str, Any]
    ) -> dict[str, Any]:
        response = await self._helix(
            "POST",
            "channel_points/custom_rewards",
            access_token,
            params={"broadcaster_id": broadcaster_id},
            json=body,
        )
        return response.json()["data"][0]

    async def update_custom_reward(
        self, broadcaster_id: str, access_token: str, reward_id: str, body: dict[str, Any]
    ) -> dict[str, Any]:
        response = await self._helix(
            "PATCH",
            "channel_points/custom_rewards",
            access_token,
            params={"broadcaster_id": broadcaster_id, "id": reward_id},
            json=body,
        )
        data = response.json().get("data", [])
        return data[0] if data else {"id": reward_id}

    async def delete_custom_reward(
        self, broadcaster_id: str, access_token: str, reward_id: str
    ) -> None:
        await self._helix(
            "DELETE",
            "channel_points/custom_rewards",
            access_token,
            params={"broadcaster_id": broadcaster_id, "id": reward_id},
        )

    # ------------------------------------------------------------------
    # TTS bot service
    # ------------------------------------------------------------------

    async def register_eventsub(
        self, bot_url: str, channel_login: str, user_id: str, session_token: str
    ) -> bool:
        """Ask the TTS bot to subscribe to the channel's EventSub topics.

        Best-effort: failures are logged and reported as False.
        """
        if not bot_url:
            logger.debug("TTS bot URL not configured, skipping EventSub setup")
            return False
        try:
            response = await self._http.post(
                f"{bot_url.rstrip('/')}/api/setup-eventsub",
                json={"channelLogin": channel_login, "userId": user_id},
                headers={"Authorization": f"Bearer {session_token}"},
                timeout=10.0,
            )
        except httpx.HTTPError as e:
            logger.warning(f"EventSub setup request for {channel_login} failed: {e}")
            return False

        if response.is_error:
            logger.warning(
                f"EventSub setup for {channel_login} returned {response.status_code}"
            )
            return False
        logger.info(f"EventSub subscriptions registered for {channel_login}")
        return True
