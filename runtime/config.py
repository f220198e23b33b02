"""Configuration helpers for the platform runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_decimal(name: str, *, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        return default
    return value if value.is_finite() else default


@dataclass(frozen=True)
class AnnouncerConfig:
    dry_run: bool
    announce_channel_id: int | None
    compliance_channel_id: int | None


@dataclass(frozen=True)
class PlatformSettings:
    discord_token: str
    table_name: str
    aws_region: str
    riot_api_key: str
    coin_to_usd_rate: Decimal
    platform_fee_percentage: Decimal
    verification_timeout_seconds: int
    announcer: AnnouncerConfig

    @classmethod
    def load(cls) -> PlatformSettings:
        missing: list[str] = []

        def need(name: str) -> str:
            value = os.getenv(name)
            if not value:
                missing.append(name)
                return ""
            return value

        discord_token = need("DISCORD_TOKEN")
        table_name = need("PLATFORM_TABLE_NAME")
        riot_api_key = need("RIOT_API_KEY")

        if missing:
            raise RuntimeError("Missing env vars: " + ", ".join(sorted(set(missing))))

        coin_to_usd_rate = env_decimal("COIN_TO_USD_RATE", default=Decimal("0.01"))
        if coin_to_usd_rate <= 0:
            raise RuntimeError("COIN_TO_USD_RATE must be positive")
        fee_percentage = env_decimal("PLATFORM_FEE_PERCENTAGE", default=Decimal("30"))
        if not Decimal("0") <= fee_percentage <= Decimal("100"):
            raise RuntimeError("PLATFORM_FEE_PERCENTAGE must be between 0 and 100")

        return cls(
            discord_token=discord_token,
            table_name=table_name,
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            riot_api_key=riot_api_key,
            coin_to_usd_rate=coin_to_usd_rate,
            platform_fee_percentage=fee_percentage,
            verification_timeout_seconds=env_int(
                "VERIFICATION_TIMEOUT_SECONDS", default=10
            )
            or 10,
            announcer=read_announcer_config(),
        )


def read_announcer_config(*, default_dry_run: bool = False) -> AnnouncerConfig:
    return AnnouncerConfig(
        dry_run=env_bool("DRY_RUN", default=default_dry_run),
        announce_channel_id=env_int("ANNOUNCE_CHANNEL_ID"),
        compliance_channel_id=env_int("COMPLIANCE_CHANNEL_ID"),
    )
