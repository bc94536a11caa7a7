"""Tests for voice validators and reward settings normalization."""

import pytest

from chatvibes_api.models.tts import (
    ChannelPointsConfig,
    ContentPolicy,
    TtsChannelConfig,
    VoiceSettings,
)
from chatvibes_api.services.rewards_service import (
    build_reward_payload,
    check_content_policy,
    normalize_channel_points,
    parse_int,
)
from chatvibes_api.services.tts_service import resolve_tts_params
from chatvibes_api.services.validation import (
    normalize_emotion,
    validate_emotion,
    validate_language_boost,
    validate_pitch,
    validate_speed,
)


class TestVoiceValidators:
    @pytest.mark.parametrize("value", [0.5, 1, 1.25, 2.0])
    def test_speed_in_range(self, value):
        assert validate_speed(value)

    @pytest.mark.parametrize("value", [0.49, 2.01, "1.0", True, None, float("nan")])
    def test_speed_rejected(self, value):
        assert not validate_speed(value)

    def test_pitch_bounds(self):
        assert validate_pitch(-12)
        assert validate_pitch(12)
        assert not validate_pitch(13)
        assert not validate_pitch(False)

    def test_emotion_none_means_no_override(self):
        assert validate_emotion(None)
        assert validate_emotion("happy")
        assert not validate_emotion("ecstatic")
        assert not validate_emotion("Happy")

    def test_normalize_emotion(self):
        assert normalize_emotion("Happy") == "happy"
        assert normalize_emotion(" fear ") == "fearful"
        assert normalize_emotion("auto") == "neutral"
        assert normalize_emotion("") is None
        assert normalize_emotion(None) is None

    def test_language_boost_is_exact_case(self):
        assert validate_language_boost("English")
        assert validate_language_boost("Chinese,Yue")
        assert not validate_language_boost("english")
        assert not validate_language_boost("Automatic")


class TestParseInt:
    def test_lenient_parsing(self):
        assert parse_int("12abc", None) == 12
        assert parse_int(" -4", None) == -4
        assert parse_int(3.9, None) == 3
        assert parse_int("abc", 5) == 5
        assert parse_int(True, 7) == 7
        assert parse_int(None, 0) == 0


class TestNormalizeChannelPoints:
    def test_defaults(self):
        config = normalize_channel_points({})

        assert config.enabled is False
        assert config.title == "Text-to-Speech Message"
        assert config.cost == 500
        assert config.prompt == "Enter a message to be read aloud"
        assert config.skip_queue is True
        assert config.cooldown_seconds == 0
        assert config.content_policy.block_links is True
        assert config.content_policy.banned_words == []

    def test_clamping(self):
        config = normalize_channel_points(
            {
                "cost": 5_000_000,
                "title": "x" * 80,
                "prompt": "p" * 200,
                "cooldownSeconds": 99999,
                "perStreamLimit": 5000,
                "perUserPerStreamLimit": "-3",
            }
        )

        assert config.cost == 999999
        assert len(config.title) == 45
        assert len(config.prompt) == 100
        assert config.cooldown_seconds == 3600
        assert config.per_stream_limit == 1000
        assert config.per_user_per_stream_limit == 0

    def test_zero_cost_uses_default(self):
        assert normalize_channel_points({"cost": 0}).cost == 500
        assert normalize_channel_points({"cost": "-5"}).cost == 1

    def test_limits_enabled_floors_cooldown(self):
        config = normalize_channel_points({"limitsEnabled": True, "cooldownSeconds": 0})
        assert config.cooldown_seconds == 1

    def test_content_policy(self):
        banned = [f"w{i}" for i in range(150)]
        config = normalize_channel_points(
            {"skipQueue": False, "contentPolicy": {"blockLinks": False, "bannedWords": banned}}
        )

        assert config.skip_queue is False
        assert config.content_policy.block_links is False
        assert len(config.content_policy.banned_words) == 100
        assert config.content_policy.min_chars == 1
        assert config.content_policy.max_chars == 200

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ({"minChars": 5, "maxChars": 50}, (5, 50)),
            ({"minChars": -3, "maxChars": 0}, (0, 1)),
            ({"minChars": 900, "maxChars": "9000"}, (500, 500)),
            ({"minChars": "abc", "maxChars": None}, (1, 200)),
        ],
    )
    def test_message_length_limits(self, raw, expected):
        policy = normalize_channel_points({"contentPolicy": raw}).content_policy

        assert (policy.min_chars, policy.max_chars) == expected
        stored = policy.to_dict()
        assert (stored["minChars"], stored["maxChars"]) == expected
        assert ContentPolicy.from_dict(stored) == policy


class TestRewardPayload:
    def test_zero_cooldown_sends_one(self):
        payload = build_reward_payload(ChannelPointsConfig(cooldown_seconds=0))

        assert payload["global_cooldown_seconds"] == 1
        assert payload["is_global_cooldown_enabled"] is False

    def test_flags_follow_limits(self):
        config = ChannelPointsConfig(
            enabled=True,
            limits_enabled=True,
            cooldown_seconds=30,
            per_stream_limit=0,
            per_user_per_stream_limit=2,
        )
        payload = build_reward_payload(config)

        assert payload["is_enabled"] is True
        assert payload["is_global_cooldown_enabled"] is True
        assert payload["global_cooldown_seconds"] == 30
        assert payload["is_max_per_stream_enabled"] is False
        assert payload["max_per_stream"] == 0
        assert payload["is_max_per_user_per_stream_enabled"] is True
        assert payload["max_per_user_per_stream"] == 2

    def test_limits_disabled_turns_every_flag_off(self):
        config = ChannelPointsConfig(limits_enabled=False, cooldown_seconds=30, per_stream_limit=4)
        payload = build_reward_payload(config)

        assert payload["is_global_cooldown_enabled"] is False
        assert payload["is_max_per_stream_enabled"] is False
        assert payload["is_max_per_user_per_stream_enabled"] is False


class TestContentPolicy:
    def test_empty_message(self):
        assert check_content_policy("   ", ContentPolicy()) == "Message is empty"
        assert check_content_policy(None, ContentPolicy()) == "Message is empty"

    def test_length_limits_use_trimmed_text(self):
        policy = ContentPolicy(min_chars=3, max_chars=10, block_links=False)

        assert check_content_policy("  hi  ", policy) == "Message too short (min 3)"
        assert check_content_policy("  hello  ", policy) is None
        assert check_content_policy("x" * 11, policy) == "Message too long (max 10)"

    def test_default_maximum_is_checked_before_links(self):
        assert check_content_policy("a" * 250, ContentPolicy(block_links=False)) == (
            "Message too long (max 200)"
        )
        assert check_content_policy("http://x.com " * 20, ContentPolicy()) == (
            "Message too long (max 200)"
        )

    def test_stored_documents_without_limits_get_defaults(self):
        policy = ContentPolicy.from_dict({"blockLinks": False, "maxChars": float("nan")})

        assert (policy.min_chars, policy.max_chars) == (1, 200)

    def test_links_blocked(self):
        assert check_content_policy("see http://x.com", ContentPolicy()) == "Links are not allowed"
        assert check_content_policy("visit example.com now", ContentPolicy()) == (
            "Links are not allowed"
        )
        assert check_content_policy("see http://x.com", ContentPolicy(block_links=False)) is None

    def test_banned_words_match_whole_words(self):
        policy = ContentPolicy(block_links=False, banned_words=["ash"])

        assert check_content_policy("I paid in cash", policy) is None
        assert check_content_policy("covered in ASH today", policy) == 'Contains banned word: "ash"'


class TestLegacyDocuments:
    def test_flat_fields_read_when_nested_map_missing(self):
        config = TtsChannelConfig.from_dict(
            "streamer", {"channelPointRewardId": "r-1", "channelPointsEnabled": True}
        )

        assert config.schema_version == 1
        assert config.channel_points.reward_id == "r-1"
        assert config.channel_points.enabled is True

    def test_nested_map_wins(self):
        config = TtsChannelConfig.from_dict(
            "streamer",
            {
                "channelPointRewardId": "stale",
                "channelPoints": {"rewardId": "r-2", "enabled": False},
                "schemaVersion": 2,
            },
        )

        assert config.channel_points.reward_id == "r-2"
        assert config.channel_points.enabled is False


class TestTtsParams:
    def test_precedence(self):
        params = resolve_tts_params(
            VoiceSettings(speed=1.5),
            VoiceSettings(voice_id="Viewer_Voice", speed=0.8, emotion="fear"),
            VoiceSettings(voice_id="Channel_Voice", pitch=3, language_boost="German"),
        )

        assert params.voice_id == "Viewer_Voice"
        assert params.speed == 1.5
        assert params.pitch == 3
        assert params.emotion == "fearful"
        assert params.language_boost == "German"

    def test_fallbacks(self):
        params = resolve_tts_params(
            VoiceSettings(), None, VoiceSettings(language_boost="Automatic")
        )

        assert params.voice_id == "Friendly_Person"
        assert params.emotion == "neutral"
        assert params.pitch == 0
        assert params.speed == 1.0
        assert params.language_boost == "auto"
