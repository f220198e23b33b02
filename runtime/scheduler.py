"""Discord task loops that trigger the compliance sweeps."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, time

import discord
from discord.ext import tasks

from bracket_core.models import utc_now
from compliance.monitor import ComplianceMonitor

log = logging.getLogger("bracket-platform.runtime")

DAILY_AUDIT_TIME = time(hour=2, tzinfo=UTC)
WEEKLY_AUDIT_TIME = time(hour=3, tzinfo=UTC)
WEEKLY_AUDIT_WEEKDAY = 6  # Sunday


class ComplianceScheduler:
    def __init__(
        self,
        monitor: ComplianceMonitor,
        bot: discord.Client | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._monitor = monitor
        self._bot = bot
        self._clock = clock
        self.hourly = tasks.loop(hours=1)(self._run_hourly)
        self.daily = tasks.loop(time=DAILY_AUDIT_TIME)(self._run_daily)
        self.weekly = tasks.loop(time=WEEKLY_AUDIT_TIME)(self._run_weekly)
        for loop in self.loops:
            loop.before_loop(self._wait_until_ready)

    @property
    def loops(self) -> tuple[tasks.Loop, ...]:
        return (self.hourly, self.daily, self.weekly)

    async def _wait_until_ready(self) -> None:
        if self._bot is not None:
            await self._bot.wait_until_ready()

    async def _trigger(self, kind: str) -> None:
        try:
            await self._monitor.run_scheduled_sweep(kind)
        except Exception:  # pylint: disable=broad-except
            log.exception("Scheduled %s compliance sweep failed", kind)

    async def _run_hourly(self) -> None:
        await self._trigger("hourly")

    async def _run_daily(self) -> None:
        await self._trigger("daily")

    async def _run_weekly(self) -> None:
        if self._clock().weekday() != WEEKLY_AUDIT_WEEKDAY:
            return
        await self._trigger("weekly")

    def start(self) -> None:
        for loop in self.loops:
            if not loop.is_running():
                loop.start()
        log.info("Compliance scheduler started")

    def stop(self) -> None:
        for loop in self.loops:
            loop.cancel()


__all__ = ["ComplianceScheduler"]
