"""Discord broadcast of brackets and compliance findings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord

from bracket_core.bracket import render_bracket
from bracket_core.models import Tournament

from .config import AnnouncerConfig

if TYPE_CHECKING:
    from compliance.monitor import SweepSummary

log = logging.getLogger("bracket-platform.runtime")

MAX_MESSAGE_LENGTH = 2000


def _code_block(text: str) -> str:
    body = text
    limit = MAX_MESSAGE_LENGTH - 8
    if len(body) > limit:
        body = body[: limit - 4] + "\n..."
    return f"```\n{body}\n```"


class PlatformAnnouncer:
    def __init__(self, bot: discord.Client, config: AnnouncerConfig) -> None:
        self._bot = bot
        self._config = config

    @property
    def dry_run(self) -> bool:
        return self._config.dry_run

    async def _resolve_channel(self, channel_id: int):
        channel = self._bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self._bot.fetch_channel(channel_id)
            except discord.DiscordException as exc:  # pragma: no cover - network failure
                log.warning("Unable to fetch channel %s: %s", channel_id, exc)
                return None
        return channel

    async def send(
        self,
        channel_id: int | None,
        message: str,
        *,
        embed: discord.Embed | None = None,
    ) -> bool:
        if self.dry_run or channel_id is None:
            log.info("[DRY RUN] %s", message)
            return False

        channel = await self._resolve_channel(channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            log.info("[DRY RUN] %s", message)
            return False

        try:
            kwargs = {"content": message}
            if embed is not None:
                kwargs["embed"] = embed
            await channel.send(**kwargs)
        except discord.DiscordException as exc:  # pragma: no cover - network failure
            log.warning("Failed to send announcement to channel %s: %s", channel_id, exc)
            return False
        return True

    async def announce_bracket(self, tournament: Tournament) -> bool:
        if tournament.bracket is None:
            return False
        embed = discord.Embed(
            title=f"{tournament.name} has started",
            description=f"{tournament.game} | {tournament.format}",
            colour=discord.Colour.green(),
        )
        embed.add_field(
            name="Participants", value=str(tournament.current_participants), inline=True
        )
        embed.add_field(name="Rounds", value=str(len(tournament.bracket.rounds)), inline=True)
        return await self.send(
            self._config.announce_channel_id,
            _code_block(render_bracket(tournament.bracket)),
            embed=embed,
        )

    async def report_sweep(self, summary: SweepSummary) -> bool:
        if summary.skipped or (not summary.violations and summary.report is None):
            return False
        lines = [
            f"Compliance {summary.kind} sweep: {summary.checked} checked,"
            f" {summary.violations} violations, {summary.failures} failures"
        ]
        if summary.flagged:
            lines.append("Flagged: " + ", ".join(summary.flagged[:20]))
        report = summary.report
        if report is not None:
            lines.append(
                f"Last {report.period_days} days: {report.total_audits} audits,"
                f" {report.violation_count} violating, {report.compliance_rate}% compliant"
            )
            if report.top_violations:
                lines.append(
                    "Top violations: "
                    + ", ".join(f"{name} ({count})" for name, count in report.top_violations)
                )
            if report.peak_violation_day:
                lines.append(f"Peak violation day: {report.peak_violation_day}")
        return await self.send(self._config.compliance_channel_id, "\n".join(lines))


__all__ = ["PlatformAnnouncer"]
