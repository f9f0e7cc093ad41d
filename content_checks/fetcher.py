from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog


logger = structlog.get_logger(__name__)


class FetchError(Exception):
    """A page could not be fetched. The message is the human-readable reason."""


class BodyReadError(FetchError):
    pass


@dataclass(frozen=True)
class PageResponse:
    status_code: int
    # Only read for 200 responses.
    body: str | None = None


class PageFetcher:
    """GETs pages through one shared httpx client."""

    def __init__(self, client: httpx.AsyncClient, *, timeout_seconds: float = 15.0):
        self.client = client
        self.timeout_seconds = float(timeout_seconds)

    async def fetch(self, url: str) -> PageResponse:
        logger.debug("Making web request", url=url)
        try:
            async with self.client.stream(
                "GET", url, follow_redirects=True, timeout=self.timeout_seconds
            ) as resp:
                if resp.status_code != 200:
                    return PageResponse(status_code=resp.status_code)
                try:
                    await resp.aread()
                    body = resp.text
                except (httpx.HTTPError, UnicodeDecodeError, LookupError) as e:
                    raise BodyReadError(f"body_read_error: {type(e).__name__}: {e}") from e
        except FetchError:
            raise
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(f"http_error: {type(e).__name__}: {e}") from e

        logger.debug("Web request complete", url=url, size=len(body))
        return PageResponse(status_code=200, body=body)
