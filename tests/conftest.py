from __future__ import annotations

from typing import Any

import pytest

from content_checks.config import HOURS, MINUTES, SiteConfig
from content_checks.fetcher import FetchError, PageResponse


class FakeNotifier:
    def __init__(self, *, ok: bool = True, raises: Exception | None = None) -> None:
        self.ok = ok
        self.raises = raises
        self.verified = False
        self.sent: list[tuple[str, str]] = []

    async def verify(self) -> None:
        self.verified = True

    async def send(self, subject: str, body: str) -> bool:
        self.sent.append((subject, body))
        if self.raises is not None:
            raise self.raises
        return self.ok

    @property
    def subjects(self) -> list[str]:
        return [s for s, _ in self.sent]


class ScriptedFetcher:
    """Returns (or raises) the scripted outcomes in order, repeating the last one."""

    def __init__(self, outcomes: list[Any]) -> None:
        assert outcomes
        self.outcomes = list(outcomes)
        self.calls: list[str] = []

    async def fetch(self, url: str) -> PageResponse:
        self.calls.append(url)
        idx = min(len(self.calls) - 1, len(self.outcomes) - 1)
        outcome = self.outcomes[idx]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def ok_page(body: str = "<html>status: OK</html>") -> PageResponse:
    return PageResponse(status_code=200, body=body)


def network_error() -> FetchError:
    return FetchError("http_error: ConnectError: connection refused")


@pytest.fixture
def site() -> SiteConfig:
    return SiteConfig(
        name="ExampleRoom",
        url="https://example.test/reserve",
        text_match="OK",
        interval_ms=5 * MINUTES,
        msg_cooldown_ms=4 * HOURS,
    )


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
