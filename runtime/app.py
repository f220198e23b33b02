"""Platform runtime that wires storage, compliance, ledger and Discord together."""

from __future__ import annotations

import logging

import boto3
import discord

from account_verifier.riot_api import RiotAccountClient
from bracket_core.service import TournamentService
from bracket_core.storage import PlatformStorage
from coin_ledger.ledger import CoinLedger
from compliance.audit import ComplianceAuditLog
from compliance.monitor import ComplianceMonitor
from compliance.rules import ComplianceRuleSet

from .announcer import PlatformAnnouncer
from .config import PlatformSettings
from .scheduler import ComplianceScheduler

log = logging.getLogger("bracket-platform.runtime")

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class PlatformRuntime:
    def __init__(self, settings: PlatformSettings, *, dynamodb_resource=None) -> None:
        intents = discord.Intents.default()
        intents.guilds = True

        self.settings = settings
        self.bot = discord.Client(intents=intents)
        self.dynamodb = dynamodb_resource or boto3.resource(
            "dynamodb", region_name=settings.aws_region
        )
        self.storage = PlatformStorage(self.dynamodb.Table(settings.table_name))
        self.rules = ComplianceRuleSet(settings.coin_to_usd_rate)
        self.audit_log = ComplianceAuditLog(self.storage)
        self.ledger = CoinLedger(
            self.storage,
            self.rules,
            coin_to_usd_rate=settings.coin_to_usd_rate,
            platform_fee_percentage=settings.platform_fee_percentage,
        )
        self.announcer = PlatformAnnouncer(self.bot, settings.announcer)
        self.verifier = RiotAccountClient(
            settings.riot_api_key, timeout=float(settings.verification_timeout_seconds)
        )
        self.monitor = ComplianceMonitor(
            self.storage,
            self.audit_log,
            self.rules,
            verifier=self.verifier,
            verification_timeout=float(settings.verification_timeout_seconds),
            reporter=self.announcer,
        )
        self.tournaments = TournamentService(
            self.storage,
            self.rules,
            self.audit_log,
            self.ledger,
            announcer=self.announcer,
        )
        self.scheduler = ComplianceScheduler(self.monitor, self.bot)
        self.bot.event(self.on_ready)

    async def on_ready(self) -> None:
        log.info("Logged in as %s", self.bot.user)
        self.scheduler.start()

    async def run(self) -> None:
        if self.settings.announcer.dry_run:
            log.info("Platform runtime running in DRY RUN mode")
        try:
            async with self.bot:
                await self.bot.start(self.settings.discord_token)
        finally:
            self.scheduler.stop()
            self.verifier.close()

    @classmethod
    def create(cls) -> PlatformRuntime:
        return cls(PlatformSettings.load())


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    runtime = PlatformRuntime.create()
    await runtime.run()


__all__ = ["LOG_FORMAT", "PlatformRuntime", "main"]
