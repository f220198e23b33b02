"""Tests for runtime.config module."""

import os
from decimal import Decimal
from unittest import mock

import pytest

from runtime.config import (
    AnnouncerConfig,
    PlatformSettings,
    env_bool,
    env_decimal,
    env_int,
    read_announcer_config,
)

REQUIRED = {
    "DISCORD_TOKEN": "token",
    "PLATFORM_TABLE_NAME": "bracket-platform",
    "RIOT_API_KEY": "RGAPI-test",
}


class TestEnvHelpers:
    def test_env_bool_values(self):
        for value, expected in [("yes", True), (" On ", True), ("0", False), ("off", False)]:
            with mock.patch.dict(os.environ, {"TEST_VAR": value}, clear=True):
                assert env_bool("TEST_VAR") is expected, f"Failed for value: {value}"

    def test_env_bool_unknown_uses_default(self):
        with mock.patch.dict(os.environ, {"TEST_VAR": "maybe"}, clear=True):
            assert env_bool("TEST_VAR", default=True) is True

    def test_env_int(self):
        with mock.patch.dict(os.environ, {"A": "42", "B": "nope", "C": ""}, clear=True):
            assert env_int("A") == 42
            assert env_int("B", default=7) == 7
            assert env_int("C") is None
            assert env_int("MISSING") is None

    def test_env_decimal(self):
        with mock.patch.dict(
            os.environ, {"RATE": " 0.02 ", "BAD": "abc", "INF": "Infinity"}, clear=True
        ):
            assert env_decimal("RATE", default=Decimal("1")) == Decimal("0.02")
            assert env_decimal("BAD", default=Decimal("1")) == Decimal("1")
            assert env_decimal("INF", default=Decimal("1")) == Decimal("1")
            assert env_decimal("MISSING", default=Decimal("3")) == Decimal("3")


class TestAnnouncerConfig:
    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            assert read_announcer_config() == AnnouncerConfig(
                dry_run=False, announce_channel_id=None, compliance_channel_id=None
            )

    def test_values(self):
        env = {"DRY_RUN": "true", "ANNOUNCE_CHANNEL_ID": "10", "COMPLIANCE_CHANNEL_ID": "20"}
        with mock.patch.dict(os.environ, env, clear=True):
            config = read_announcer_config()

        assert config.dry_run is True
        assert config.announce_channel_id == 10
        assert config.compliance_channel_id == 20


class TestPlatformSettings:
    def test_load_defaults(self):
        with mock.patch.dict(os.environ, REQUIRED, clear=True):
            settings = PlatformSettings.load()

        assert settings.table_name == "bracket-platform"
        assert settings.aws_region == "us-east-1"
        assert settings.coin_to_usd_rate == Decimal("0.01")
        assert settings.platform_fee_percentage == Decimal("30")
        assert settings.verification_timeout_seconds == 10
        assert settings.announcer.dry_run is False

    def test_load_overrides(self):
        env = dict(
            REQUIRED,
            AWS_REGION="eu-west-1",
            COIN_TO_USD_RATE="0.02",
            PLATFORM_FEE_PERCENTAGE="25",
            VERIFICATION_TIMEOUT_SECONDS="5",
        )
        with mock.patch.dict(os.environ, env, clear=True):
            settings = PlatformSettings.load()

        assert settings.aws_region == "eu-west-1"
        assert settings.coin_to_usd_rate == Decimal("0.02")
        assert settings.platform_fee_percentage == Decimal("25")
        assert settings.verification_timeout_seconds == 5

    def test_missing_required(self):
        with mock.patch.dict(os.environ, {"DISCORD_TOKEN": "token"}, clear=True):
            with pytest.raises(RuntimeError) as excinfo:
                PlatformSettings.load()

        assert "PLATFORM_TABLE_NAME" in str(excinfo.value)
        assert "RIOT_API_KEY" in str(excinfo.value)
        assert "DISCORD_TOKEN" not in str(excinfo.value)

    @pytest.mark.parametrize(
        "name,value",
        [
            ("COIN_TO_USD_RATE", "0"),
            ("COIN_TO_USD_RATE", "-0.01"),
            ("PLATFORM_FEE_PERCENTAGE", "101"),
            ("PLATFORM_FEE_PERCENTAGE", "-1"),
        ],
    )
    def test_invalid_money_settings(self, name, value):
        with mock.patch.dict(os.environ, dict(REQUIRED, **{name: value}), clear=True):
            with pytest.raises(RuntimeError):
                PlatformSettings.load()
