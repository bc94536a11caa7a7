"""Application context: everything built once at startup.

The lifespan publishes the context on ``app.state.context`` only after the
secrets have loaded; its absence is what keeps the service answering 503.
"""

import logging
from dataclasses import dataclass

import httpx

from chatvibes_api.core.config import AppSecrets, Settings
from chatvibes_api.core.database import DocumentStore
from chatvibes_api.repositories import (
    ManagedChannelRepository,
    MusicSettingsRepository,
    ShortLinkRepository,
    TtsConfigRepository,
    UserPreferenceRepository,
)
from chatvibes_api.services import (
    AllowListService,
    AuthService,
    ObsTokenService,
    RewardsService,
    SecretStore,
    ShortLinkService,
    TokenService,
    TwitchAPIClient,
    WavespeedClient,
)

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    secrets: AppSecrets
    http: httpx.AsyncClient
    secret_store: SecretStore
    channels: ManagedChannelRepository
    tts_configs: TtsConfigRepository
    user_preferences: UserPreferenceRepository
    music_settings: MusicSettingsRepository
    auth_service: AuthService
    twitch_api: TwitchAPIClient
    token_service: TokenService
    rewards_service: RewardsService
    obs_service: ObsTokenService
    shortlink_service: ShortLinkService
    allowlist: AllowListService
    wavespeed: WavespeedClient | None = None


def build_context(
    settings: Settings,
    secrets: AppSecrets,
    store: DocumentStore,
    secret_store: SecretStore,
    http: httpx.AsyncClient,
) -> AppContext:
    """Wire repositories and services together."""
    channels = ManagedChannelRepository(store)
    tts_configs = TtsConfigRepository(store)

    twitch_api = TwitchAPIClient(
        client_id=secrets.twitch_client_id,
        client_secret=secrets.twitch_client_secret,
        redirect_uri=settings.callback_url,
        http=http,
    )
    token_service = TokenService(channels, secret_store, twitch_api)

    return AppContext(
        settings=settings,
        secrets=secrets,
        http=http,
        secret_store=secret_store,
        channels=channels,
        tts_configs=tts_configs,
        user_preferences=UserPreferenceRepository(store),
        music_settings=MusicSettingsRepository(store),
        auth_service=AuthService(
            secret_key=secrets.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            expire_days=settings.jwt_expire_days,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
        ),
        twitch_api=twitch_api,
        token_service=token_service,
        rewards_service=RewardsService(twitch_api, token_service, tts_configs, channels),
        obs_service=ObsTokenService(
            tts_configs, channels, secret_store, settings.obs_browser_base_url
        ),
        shortlink_service=ShortLinkService(ShortLinkRepository(store)),
        allowlist=AllowListService(settings, secret_store),
        wavespeed=(
            WavespeedClient(secrets.wavespeed_api_key, http)
            if secrets.wavespeed_api_key
            else None
        ),
    )
