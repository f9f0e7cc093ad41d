from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Protocol

import structlog

from content_checks.config import HOURS, MINUTES, SiteConfig
from content_checks.fetcher import FetchError, PageResponse


logger = structlog.get_logger(__name__)

# Number of failed checks tolerated before giving up on a site.
ATTEMPTS_BEFORE_GIVING_UP = 3


class CheckStatus(enum.Enum):
    COOLDOWN = "cooldown"
    WAIT = "wait"
    READY = "ready"
    GAVE_UP = "gave_up"


class Fetcher(Protocol):
    async def fetch(self, url: str) -> PageResponse: ...


class Notifier(Protocol):
    async def verify(self) -> None: ...

    async def send(self, subject: str, body: str) -> bool: ...


@dataclass
class MonitorState:
    consecutive_failures: int = 0
    status: CheckStatus = CheckStatus.READY
    checks_run: int = 0
    last_error: str | None = None


def format_duration_ms(ms: int) -> str:
    ms = int(ms)
    for unit_ms, unit in ((HOURS, "hour"), (MINUTES, "minute"), (1000, "second")):
        if ms >= unit_ms and ms % unit_ms == 0:
            n = ms // unit_ms
            return f"{n} {unit}" if n == 1 else f"{n} {unit}s"
    if ms >= HOURS:
        return f"{ms / HOURS:.1f} hours"
    if ms >= MINUTES:
        return f"{ms / MINUTES:.1f} minutes"
    return f"{ms} ms"


def _build_contents_changed_alert(site: SiteConfig) -> tuple[str, str]:
    subject = f"Contents have changed for {site.name}!"
    body = (
        f'After a recent check of {site.url}, we have no longer found the text "{site.text_match}".\n\n'
        f"Visit it here: {site.url}"
    )
    return subject, body


def _build_failed_once_alert(site: SiteConfig, reason: str) -> tuple[str, str]:
    subject = f"Content Check for {site.name} failed (once)"
    body = (
        f"The attempt to check the contents of {site.url} failed for this reason: {reason}.\n\n\n"
        f"We'll try again in {format_duration_ms(site.msg_cooldown_ms)}."
    )
    return subject, body


def _build_giving_up_alert(site: SiteConfig, reason: str) -> tuple[str, str]:
    subject = f"Content Check for {site.name} failed {ATTEMPTS_BEFORE_GIVING_UP} times, we're giving up."
    body = (
        f"The attempt to check the contents of {site.url} failed for this reason: {reason}.\n\n\n"
        f"Since we've already tried again {ATTEMPTS_BEFORE_GIVING_UP} times, we're going to stop "
        "checking this one until you restart the server."
    )
    return subject, body


class SiteMonitor:
    """Runs check cycles for one site and decides the next scheduling status."""

    def __init__(self, site: SiteConfig, fetcher: Fetcher, notifier: Notifier):
        self.site = site
        self.fetcher = fetcher
        self.notifier = notifier
        self.log = logger.bind(site=site.name)

    async def _alert(self, subject: str, body: str) -> None:
        # Notifier reports failures by returning False; an exception here is
        # still not allowed to turn into a check failure.
        try:
            sent = await self.notifier.send(subject, body)
        except Exception as e:
            self.log.error("Alert delivery raised", subject=subject, error=f"{type(e).__name__}: {e}")
            return
        if not sent:
            self.log.warning("Alert was not delivered", subject=subject)

    async def _handle_failure(self, state: MonitorState, reason: str) -> CheckStatus:
        state.consecutive_failures += 1
        state.last_error = reason
        self.log.error(
            "Check failed",
            reason=reason,
            consecutive_failures=state.consecutive_failures,
        )

        if state.consecutive_failures == 1:
            await self._alert(*_build_failed_once_alert(self.site, reason))
        elif state.consecutive_failures > ATTEMPTS_BEFORE_GIVING_UP:
            await self._alert(*_build_giving_up_alert(self.site, reason))
            return CheckStatus.GAVE_UP
        return CheckStatus.COOLDOWN

    async def _check(self, state: MonitorState) -> CheckStatus:
        try:
            resp = await self.fetcher.fetch(self.site.url)
        except FetchError as e:
            return await self._handle_failure(state, str(e))

        if resp.status_code != 200:
            self.log.warning("Bad status code", url=self.site.url, status_code=resp.status_code)
            return await self._handle_failure(
                state, f"Status code on HTTP request was {resp.status_code}, not 200"
            )
        if resp.body is None:
            return await self._handle_failure(state, "Response body could not be read")

        state.consecutive_failures = 0
        state.last_error = None

        if self.site.text_match not in resp.body:
            self.log.warning("Text match not found, sending notification", text_match=self.site.text_match)
            await self._alert(*_build_contents_changed_alert(self.site))
            return CheckStatus.COOLDOWN

        self.log.info("Found text match, all is as expected")
        return CheckStatus.WAIT

    async def run_check(self, state: MonitorState) -> CheckStatus:
        self.log.info("Beginning check", checks_run=state.checks_run)
        status = await self._check(state)
        state.status = status
        state.checks_run += 1
        self.log.info("Check complete", status=status.value, consecutive_failures=state.consecutive_failures)
        return status
