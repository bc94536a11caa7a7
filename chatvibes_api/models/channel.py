"""Data models for the managedChannels collection."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

TIER_ANONYMOUS = "anonymous"
TIER_FULL = "full"
MODERATOR_SCOPE = "channel:manage:moderators"


def as_datetime(value: Any) -> datetime | None:
    """Coerce a stored timestamp (datetime, epoch ms, or ISO string) to aware UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


@dataclass
class ManagedChannel:
    """A streamer who completed the OAuth flow. Keyed by lowercase login."""

    login: str
    twitch_user_id: str | None = None
    display_name: str | None = None
    email: str | None = None
    is_active: bool = False
    oauth_tier: str = TIER_FULL
    granted_scopes: list[str] = field(default_factory=list)
    access_token_expires_at: datetime | None = None
    needs_reauth: bool = False
    last_token_error: str | None = None
    access_token_secret_name: str | None = None
    refresh_token_secret_name: str | None = None
    obs_token_secret_name: str | None = None

    @classmethod
    def from_dict(cls, login: str, data: dict[str, Any]) -> ManagedChannel:
        return cls(
            login=login,
            twitch_user_id=data.get("twitchUserId"),
            display_name=data.get("twitchDisplayName"),
            email=data.get("email"),
            is_active=bool(data.get("isActive", False)),
            oauth_tier=data.get("oauthTier") or TIER_FULL,
            granted_scopes=list(data.get("grantedScopes") or []),
            access_token_expires_at=as_datetime(data.get("twitchAccessTokenExpiresAt")),
            needs_reauth=bool(data.get("needsTwitchReAuth", False)),
            last_token_error=data.get("lastTokenError"),
            access_token_secret_name=data.get("accessTokenSecretName"),
            refresh_token_secret_name=data.get("refreshTokenSecretName"),
            obs_token_secret_name=data.get("obsTokenSecretName"),
        )

    @property
    def has_moderator_scope(self) -> bool:
        return MODERATOR_SCOPE in self.granted_scopes
