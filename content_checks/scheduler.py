"""Per-site scheduling: one asyncio task per site, each owning its own MonitorState."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable

import structlog

from content_checks.config import SiteConfig
from content_checks.monitor import CheckStatus, MonitorState, SiteMonitor, format_duration_ms


logger = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class SchedulerContractError(RuntimeError):
    """A check returned a status the scheduler has no action for."""


def next_delay_ms(status: CheckStatus, site: SiteConfig) -> int | None:
    """
    Map a check outcome to the wait before the next check.

    Returns None when nothing should be scheduled (GAVE_UP) and 0 for an
    immediate re-check (READY).
    """
    if status is CheckStatus.COOLDOWN:
        return site.msg_cooldown_ms
    if status is CheckStatus.WAIT:
        return site.interval_ms
    if status is CheckStatus.READY:
        return 0
    if status is CheckStatus.GAVE_UP:
        return None
    raise SchedulerContractError(f"Unhandled check status {status!r} for site {site.name}")


class SiteScheduler:
    def __init__(
        self,
        monitor: SiteMonitor,
        *,
        state: MonitorState | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.monitor = monitor
        self.state = state if state is not None else MonitorState()
        self._sleep = sleep
        self.log = logger.bind(site=monitor.site.name)

    @property
    def site(self) -> SiteConfig:
        return self.monitor.site

    async def run(self, *, once: bool = False) -> MonitorState:
        """
        Drive the site until it gives up (or after one check when ``once``).

        The only suspend point between checks is the wait; the next wait is
        armed after run_check has fully returned, so a site never has two
        checks in flight.
        """
        status = self.state.status
        while True:
            delay_ms = next_delay_ms(status, self.site)
            if delay_ms is None:
                self.log.info("Site gave up, setting no future checks")
                return self.state
            if once and self.state.checks_run > 0:
                return self.state

            if delay_ms > 0:
                self.log.debug(
                    "Waiting before next check",
                    status=status.value,
                    delay_ms=delay_ms,
                    delay=format_duration_ms(delay_ms),
                )
                await self._sleep(delay_ms / 1000.0)
            else:
                self.log.debug("Running check immediately", status=status.value)

            status = await self.monitor.run_check(self.state)


async def run_all(schedulers: Iterable[SiteScheduler], *, once: bool = False) -> dict[str, MonitorState]:
    """
    Run every site's scheduler concurrently until all finish.

    If any task fails (a contract violation), the remaining tasks are cancelled
    and the error propagates.
    """
    tasks: dict[str, asyncio.Task[MonitorState]] = {}
    for scheduler in schedulers:
        logger.info("Starting checks", site=scheduler.site.name)
        tasks[scheduler.site.name] = asyncio.create_task(
            scheduler.run(once=once), name=f"site-check:{scheduler.site.name}"
        )

    try:
        await asyncio.gather(*tasks.values())
    finally:
        pending = [t for t in tasks.values() if not t.done()]
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    return {name: task.result() for name, task in tasks.items()}
