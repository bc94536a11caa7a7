"""Services layer - Business logic

Services are constructed once at startup (see core.context) and handed to
route handlers through dependency injection.
"""

from .allowlist import AllowListService
from .auth_service import AuthService, SessionUser
from .obs_service import ObsTokenService
from .rewards_service import RewardsService
from .secret_store import SecretStore
from .shortlink_service import ShortLinkService
from .token_service import TokenService
from .tts_service import WavespeedClient
from .twitch_api import TokenRefreshResult, TwitchAPIClient

__all__ = [
    "AllowListService",
    "AuthService",
    "ObsTokenService",
    "RewardsService",
    "SecretStore",
    "SessionUser",
    "ShortLinkService",
    "TokenRefreshResult",
    "TokenService",
    "TwitchAPIClient",
    "WavespeedClient",
]
