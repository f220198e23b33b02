"""Tests for runtime.announcer module."""

import random
from decimal import Decimal
from unittest import mock

import discord
import pytest

from bracket_core.bracket import generate_bracket
from bracket_core.models import Participant, Tournament, TournamentTerms
from compliance.monitor import SweepSummary, WeeklyReport
from runtime.announcer import PlatformAnnouncer
from runtime.config import AnnouncerConfig


class MockBot:
    """Mock Discord bot for testing."""

    def __init__(self):
        self.channels = {}

    def get_channel(self, channel_id):
        return self.channels.get(channel_id)

    async def fetch_channel(self, channel_id):
        return self.channels.get(channel_id)


class MockChannel(discord.abc.Messageable):
    """Mock Discord channel for testing."""

    def __init__(self, channel_id, send_failure=False):
        self.id = channel_id
        self.send_failure = send_failure
        self.sent_messages = []

    async def send(self, **kwargs):
        if self.send_failure:
            raise discord.HTTPException(mock.Mock(), "Failed to send")
        self.sent_messages.append(kwargs)
        return mock.Mock()

    async def _get_channel(self):
        return self

    def _get_guild(self):
        return None


def config(dry_run=False, announce=100, compliance=200):
    return AnnouncerConfig(
        dry_run=dry_run, announce_channel_id=announce, compliance_channel_id=compliance
    )


def started_tournament():
    terms = TournamentTerms(
        name="Spring Cup",
        game="Valorant",
        format="single-elimination",
        max_participants=32,
        entry_fee=Decimal("0"),
    )
    tournament = Tournament.from_terms("t-1", "creator-1", terms, "2025-03-01T00:00:00.000000Z")
    tournament.participants = [Participant("alpha"), Participant("beta")]
    tournament.bracket = generate_bracket(["alpha", "beta"], rng=random.Random(1))
    tournament.status = "ongoing"
    return tournament


@pytest.fixture
def bot():
    bot = MockBot()
    bot.channels[100] = MockChannel(100)
    bot.channels[200] = MockChannel(200)
    return bot


class TestSend:
    @pytest.mark.asyncio
    async def test_dry_run_does_not_send(self, bot, caplog):
        announcer = PlatformAnnouncer(bot, config(dry_run=True))

        with caplog.at_level("INFO", logger="bracket-platform.runtime"):
            sent = await announcer.send(100, "hello")

        assert sent is False
        assert bot.channels[100].sent_messages == []
        assert "[DRY RUN] hello" in caplog.text

    @pytest.mark.asyncio
    async def test_unconfigured_channel(self, bot):
        announcer = PlatformAnnouncer(bot, config())

        assert await announcer.send(None, "hello") is False

    @pytest.mark.asyncio
    async def test_sends_to_channel(self, bot):
        announcer = PlatformAnnouncer(bot, config())

        assert await announcer.send(100, "hello") is True
        assert bot.channels[100].sent_messages == [{"content": "hello"}]

    @pytest.mark.asyncio
    async def test_unknown_channel(self, bot):
        announcer = PlatformAnnouncer(bot, config())

        assert await announcer.send(555, "hello") is False

    @pytest.mark.asyncio
    async def test_send_failure(self, bot):
        bot.channels[100] = MockChannel(100, send_failure=True)
        announcer = PlatformAnnouncer(bot, config())

        assert await announcer.send(100, "hello") is False


class TestAnnounceBracket:
    @pytest.mark.asyncio
    async def test_posts_embed_and_render(self, bot):
        announcer = PlatformAnnouncer(bot, config())

        assert await announcer.announce_bracket(started_tournament()) is True

        (message,) = bot.channels[100].sent_messages
        assert message["embed"].title == "Spring Cup has started"
        assert message["content"].startswith("```\nFinal")
        assert message["content"].endswith("```")

    @pytest.mark.asyncio
    async def test_without_bracket(self, bot):
        tournament = started_tournament()
        tournament.bracket = None
        announcer = PlatformAnnouncer(bot, config())

        assert await announcer.announce_bracket(tournament) is False
        assert bot.channels[100].sent_messages == []


class TestReportSweep:
    @pytest.mark.asyncio
    async def test_quiet_sweeps_are_not_reported(self, bot):
        announcer = PlatformAnnouncer(bot, config())

        assert await announcer.report_sweep(SweepSummary(kind="hourly", checked=4)) is False
        assert await announcer.report_sweep(SweepSummary(kind="daily", skipped=True)) is False
        assert bot.channels[200].sent_messages == []

    @pytest.mark.asyncio
    async def test_violations_reported(self, bot):
        announcer = PlatformAnnouncer(bot, config())
        summary = SweepSummary(kind="hourly", checked=3, violations=1, flagged=["t-9"])

        assert await announcer.report_sweep(summary) is True

        content = bot.channels[200].sent_messages[0]["content"]
        assert "Compliance hourly sweep: 3 checked, 1 violations, 0 failures" in content
        assert "Flagged: t-9" in content

    @pytest.mark.asyncio
    async def test_weekly_report(self, bot):
        announcer = PlatformAnnouncer(bot, config())
        report = WeeklyReport(
            period_days=7,
            total_audits=10,
            violation_count=2,
            compliance_rate=80,
            top_violations=[("excessive_entry_fee", 2)],
            violations_by_weekday={"Monday": 2},
            peak_violation_day="Monday",
        )

        await announcer.report_sweep(SweepSummary(kind="weekly", report=report))

        content = bot.channels[200].sent_messages[0]["content"]
        assert "Last 7 days: 10 audits, 2 violating, 80% compliant" in content
        assert "Top violations: excessive_entry_fee (2)" in content
        assert "Peak violation day: Monday" in content
