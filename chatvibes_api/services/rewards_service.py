"""Channel-Points TTS reward: settings normalization and Twitch reconciliation.

Each channel owns at most one custom reward. The stored id is reconciled with
Twitch in three steps: update the stored id, else adopt a manageable reward
with the same title, else create a new one.
"""

import logging
import math
import re
import time
from dataclasses import dataclass
from typing import Any

from chatvibes_api.core.errors import HelixError, RewardSyncError, TwitchTokenError
from chatvibes_api.core.logging import redact_sensitive
from chatvibes_api.models.tts import (
    DEFAULT_MAX_CHARS,
    DEFAULT_MIN_CHARS,
    DEFAULT_REWARD_COST,
    DEFAULT_REWARD_PROMPT,
    DEFAULT_REWARD_TITLE,
    ChannelPointsConfig,
    ContentPolicy,
)
from chatvibes_api.repositories import ManagedChannelRepository, TtsConfigRepository
from chatvibes_api.services.token_service import TokenService
from chatvibes_api.services.twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)

ENSURE_PROMPT = "Enter a message to be read aloud by the TTS bot"
CLIENT_ID_MISMATCH = "Client-Id header must match"
CLIENT_ID_MISMATCH_MESSAGE = (
    "The reward was created with a different client ID. "
    "Please delete the reward and create a new one."
)

MAX_TITLE_LENGTH = 45
MAX_PROMPT_LENGTH = 100
MAX_BANNED_WORDS = 100
COST_RANGE = (1, 999999)
LIMIT_RANGE = (0, 1000)
MAX_COOLDOWN = 3600
MIN_CHARS_RANGE = (0, 500)
MAX_CHARS_RANGE = (1, 500)

_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")
LINK_RE = re.compile(r"(https?://\S+|\b\w+\.[a-z]{2,}\b)", re.IGNORECASE)


@dataclass
class EnsureResult:
    status: str  # updated | reused | created
    reward_id: str


def _now_ms() -> int:
    return int(time.time() * 1000)


def parse_int(value: Any, default: int | None) -> int | None:
    """Lenient integer parsing: numbers truncate, strings use their leading integer."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        match = _LEADING_INT_RE.match(value)
        return int(match.group(1)) if match else default
    return default


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def normalize_channel_points(body: dict[str, Any]) -> ChannelPointsConfig:
    """Coerce a dashboard payload into a ChannelPointsConfig (reward id untouched)."""
    limits_enabled = body.get("limitsEnabled") is True
    cooldown_floor = 1 if limits_enabled else 0

    raw_cost = parse_int(body.get("cost") or DEFAULT_REWARD_COST, None)
    cost = _clamp(raw_cost, *COST_RANGE) if raw_cost is not None else DEFAULT_REWARD_COST

    raw_cooldown = parse_int(body.get("cooldownSeconds"), None)
    if raw_cooldown is None:
        cooldown = cooldown_floor
    else:
        cooldown = max(cooldown_floor, min(MAX_COOLDOWN, raw_cooldown))

    policy = body.get("contentPolicy") or {}
    if not isinstance(policy, dict):
        policy = {}
    banned = policy.get("bannedWords")
    banned_words = [str(w) for w in banned if w is not None] if isinstance(banned, list) else []
    min_chars = parse_int(policy.get("minChars"), DEFAULT_MIN_CHARS)
    max_chars = parse_int(policy.get("maxChars"), DEFAULT_MAX_CHARS)

    return ChannelPointsConfig(
        enabled=bool(body.get("enabled")),
        title=str(body.get("title") or DEFAULT_REWARD_TITLE)[:MAX_TITLE_LENGTH],
        cost=cost,
        prompt=str(body.get("prompt") or DEFAULT_REWARD_PROMPT)[:MAX_PROMPT_LENGTH],
        skip_queue=body.get("skipQueue") is not False,
        cooldown_seconds=cooldown,
        per_stream_limit=_clamp(parse_int(body.get("perStreamLimit"), 0) or 0, *LIMIT_RANGE),
        per_user_per_stream_limit=_clamp(
            parse_int(body.get("perUserPerStreamLimit"), 0) or 0, *LIMIT_RANGE
        ),
        limits_enabled=limits_enabled,
        content_policy=ContentPolicy(
            min_chars=_clamp(min_chars, *MIN_CHARS_RANGE),
            max_chars=_clamp(max_chars, *MAX_CHARS_RANGE),
            block_links=policy.get("blockLinks") is not False,
            banned_words=banned_words[:MAX_BANNED_WORDS],
        ),
    )


def build_reward_payload(config: ChannelPointsConfig) -> dict[str, Any]:
    """Helix update body. Every enable flag travels with its value."""
    limits = config.limits_enabled
    cooldown = config.cooldown_seconds
    per_stream = config.per_stream_limit
    per_user = config.per_user_per_stream_limit
    return {
        "title": config.title,
        "cost": config.cost,
        "prompt": config.prompt,
        "is_enabled": config.enabled,
        "should_redemptions_skip_request_queue": config.skip_queue,
        "is_global_cooldown_enabled": limits and cooldown > 0,
        "global_cooldown_seconds": cooldown if cooldown > 0 else 1,
        "is_max_per_stream_enabled": limits and per_stream > 0,
        "max_per_stream": per_stream if per_stream > 0 else 0,
        "is_max_per_user_per_stream_enabled": limits and per_user > 0,
        "max_per_user_per_stream": per_user if per_user > 0 else 0,
    }


def check_content_policy(text: str | None, policy: ContentPolicy) -> str | None:
    """Return the rejection reason for a redemption message, or None if allowed."""
    if not isinstance(text, str) or not text.strip():
        return "Message is empty"

    trimmed = text.strip()
    if len(trimmed) < policy.min_chars:
        return f"Message too short (min {policy.min_chars})"
    if len(trimmed) > policy.max_chars:
        return f"Message too long (max {policy.max_chars})"

    if policy.block_links and LINK_RE.search(trimmed):
        return "Links are not allowed"

    for word in policy.banned_words:
        w = (word or "").strip()
        if not w:
            continue
        if re.search(rf"\b{re.escape(w)}\b", trimmed, re.IGNORECASE):
            return f'Contains banned word: "{w}"'
    return None


class RewardsService:
    """Keeps the channel's TTS reward on Twitch in sync with its stored config."""

    def __init__(
        self,
        twitch_api: TwitchAPIClient,
        token_service: TokenService,
        tts_configs: TtsConfigRepository,
        channels: ManagedChannelRepository,
    ):
        self.twitch_api = twitch_api
        self.token_service = token_service
        self.tts_configs = tts_configs
        self.channels = channels

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def ensure_reward(self, login: str, broadcaster_id: str) -> EnsureResult:
        """Make sure a TTS reward exists on Twitch and store its id.

        Raises TwitchTokenError when no user token is available and
        RewardSyncError when the reward cannot be created.
        """
        access_token = await self.token_service.get_valid_token(login)
        desired = {
            "title": DEFAULT_REWARD_TITLE,
            "cost": DEFAULT_REWARD_COST,
            "prompt": ENSURE_PROMPT,
            "is_user_input_required": True,
            "should_redemptions_skip_request_queue": True,
            "is_enabled": True,
        }
        stored = await self.tts_configs.get_channel_points(login)

        if stored.reward_id:
            try:
                await self.twitch_api.update_custom_reward(
                    broadcaster_id, access_token, stored.reward_id, desired
                )
                await self._save_ensured(login, stored, stored.reward_id)
                return EnsureResult("updated", stored.reward_id)
            except HelixError as e:
                logger.warning(
                    f"Update of stored reward {stored.reward_id} for {login} failed "
                    f"({e.status}): {redact_sensitive(e.payload)}"
                )

        try:
            rewards = await self.twitch_api.list_custom_rewards(broadcaster_id, access_token)
            existing = next((r for r in rewards if r.get("title") == DEFAULT_REWARD_TITLE), None)
            if existing:
                reward_id = str(existing["id"])
                try:
                    await self.twitch_api.update_custom_reward(
                        broadcaster_id, access_token, reward_id, desired
                    )
                except HelixError as e:
                    logger.warning(f"Could not update reused reward {reward_id}: {e.message}")
                await self._save_ensured(login, stored, reward_id)
                return EnsureResult("reused", reward_id)
        except HelixError as e:
            logger.warning(f"Listing rewards for {login} failed ({e.status}): {e.message}")

        try:
            created = await self.twitch_api.create_custom_reward(
                broadcaster_id, access_token, desired
            )
        except HelixError as e:
            logger.error(
                f"Create reward for {login} failed ({e.status}): {redact_sensitive(e.payload)}"
            )
            raise RewardSyncError(
                500, "Failed to create TTS channel point reward", details=e.message
            ) from e

        reward_id = str(created.get("id") or "")
        if not reward_id:
            raise RewardSyncError(500, "No reward data returned from Twitch")
        await self._save_ensured(login, stored, reward_id)
        logger.info(f"Created TTS reward {reward_id} for {login}")
        return EnsureResult("created", reward_id)

    async def _save_ensured(
        self, login: str, previous: ChannelPointsConfig, reward_id: str
    ) -> None:
        await self.tts_configs.save_channel_points(
            login,
            ChannelPointsConfig(
                enabled=False,
                reward_id=reward_id,
                title=DEFAULT_REWARD_TITLE,
                cost=DEFAULT_REWARD_COST,
                prompt=ENSURE_PROMPT,
                skip_queue=True,
                content_policy=previous.content_policy,
                last_synced_at=_now_ms(),
            ),
        )

    # ------------------------------------------------------------------
    # Dashboard operations
    # ------------------------------------------------------------------

    async def upsert(
        self, login: str, broadcaster_id: str, body: dict[str, Any]
    ) -> ChannelPointsConfig:
        """Normalize, push to Twitch, then persist the reward configuration."""
        config = normalize_channel_points(body)
        config.reward_id = (await self.tts_configs.get_channel_points(login)).reward_id

        if config.enabled and not config.reward_id:
            config.reward_id = (await self.ensure_reward(login, broadcaster_id)).reward_id

        if config.reward_id:
            access_token = await self.token_service.get_valid_token(login)
            payload = build_reward_payload(config)
            try:
                await self.twitch_api.update_custom_reward(
                    broadcaster_id, access_token, config.reward_id, payload
                )
            except HelixError as e:
                if e.status != 404 or not config.enabled:
                    raise _sync_error(e) from e

                logger.info(f"Reward {config.reward_id} for {login} is gone, recreating")
                try:
                    ensured = await self.ensure_reward(login, broadcaster_id)
                except RewardSyncError as create_error:
                    raise RewardSyncError(
                        500,
                        "Failed to create new Channel Points reward",
                        details=create_error.details or create_error.message,
                    ) from create_error
                config.reward_id = ensured.reward_id
                try:
                    await self.twitch_api.update_custom_reward(
                        broadcaster_id, access_token, config.reward_id, payload
                    )
                except HelixError as retry_error:
                    raise _sync_error(retry_error) from retry_error

        config.last_synced_at = _now_ms()
        await self.tts_configs.save_channel_points(login, config)
        logger.info(f"Reward config saved for {login}: enabled={config.enabled}")
        return config

    async def delete(self, login: str) -> bool:
        """Delete the reward on Twitch and disable it locally.

        Returns whether Twitch confirmed the delete; the stored id is kept
        otherwise so a later attempt can retry.
        """
        config = await self.tts_configs.get_channel_points(login)
        twitch_deleted = False

        if config.reward_id:
            try:
                access_token = await self.token_service.get_valid_token(login)
                channel = await self.channels.get(login)
                if channel and channel.twitch_user_id:
                    await self.twitch_api.delete_custom_reward(
                        channel.twitch_user_id, access_token, config.reward_id
                    )
                    twitch_deleted = True
            except (TwitchTokenError, HelixError) as e:
                logger.warning(f"Twitch delete of reward {config.reward_id} failed: {e}")

        config.enabled = False
        if twitch_deleted:
            config.reward_id = None
        config.last_synced_at = _now_ms()
        await self.tts_configs.save_channel_points(login, config)
        return twitch_deleted

    async def get_status(
        self, login: str, fallback_user_id: str
    ) -> tuple[ChannelPointsConfig | None, dict[str, Any] | None]:
        """Stored config plus the live Twitch reward (None if unavailable)."""
        tts_config = await self.tts_configs.get(login)
        if tts_config is None:
            return None, None

        config = tts_config.channel_points
        twitch_status = None
        if config.reward_id:
            try:
                access_token = await self.token_service.get_valid_token(login)
                channel = await self.channels.get(login)
                broadcaster_id = (channel.twitch_user_id if channel else None) or fallback_user_id
                twitch_status = await self.twitch_api.get_custom_reward(
                    broadcaster_id, access_token, config.reward_id
                )
            except (TwitchTokenError, HelixError) as e:
                logger.warning(f"Twitch reward lookup for {login} failed: {e}")
        return config, twitch_status

    async def validate_test_message(self, login: str, text: str | None) -> str | None:
        config = await self.tts_configs.get_channel_points(login)
        return check_content_policy(text, config.content_policy)


def _sync_error(error: HelixError) -> RewardSyncError:
    message = f"Failed to update Twitch reward: {error.message}"
    if error.status == 403 and CLIENT_ID_MISMATCH in error.message:
        message = CLIENT_ID_MISMATCH_MESSAGE
    return RewardSyncError(error.status or 500, message, details=error.payload)
