"""Typed errors raised by services and translated by route handlers"""

from typing import Any


class ChatVibesError(Exception):
    """Base class for application errors."""


class SecretStoreError(ChatVibesError):
    """Secret could not be read or written."""


class TwitchTokenError(ChatVibesError):
    """No usable Twitch user token.

    ``needs_reauth`` tells callers to prompt the streamer to repeat the OAuth
    flow instead of reporting a generic failure.
    """

    def __init__(self, message: str, *, needs_reauth: bool = False):
        super().__init__(message)
        self.message = message
        self.needs_reauth = needs_reauth


class TwitchAuthError(ChatVibesError):
    """OAuth code exchange or token validation failed."""


class HelixError(ChatVibesError):
    """Non-2xx response from the Twitch Helix API."""

    def __init__(self, status: int, message: str, payload: Any = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.payload = payload


class RewardSyncError(ChatVibesError):
    """Channel-Points reward could not be created or synced on Twitch."""

    def __init__(self, status: int, message: str, details: Any = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.details = details


class TtsProviderError(ChatVibesError):
    """Speech-synthesis vendor rejected or failed a request."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class InvalidShortLinkError(ChatVibesError):
    """Short-link target is missing or not an absolute http(s) URL."""
