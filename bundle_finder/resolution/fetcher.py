"""
Resilient Fetcher Module
========================

Fetches text for one logical resource from an unreliable origin. The
direct URL is tried first, then (when running under a cross-origin
restriction) each proxy-rewritten variant in order. The first successful
response wins; every failed attempt is recorded for diagnostics.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from urllib.parse import quote

import httpx

from bundle_finder.core.errors import ResourceUnavailable
from bundle_finder.resolution.settings import FetchSettings

logger = logging.getLogger(__name__)


@dataclass
class FetchAttempt:
    """A single attempt at fetching a resource."""

    url: str
    status_code: int | None = None
    error: str | None = None
    body: str = ""

    @property
    def success(self) -> bool:
        """Check if this attempt produced the content."""
        return self.error is None


@dataclass
class FetchResult:
    """Result of fetching one logical resource.

    attempts holds every attempt in order; the last one succeeded.
    """

    url: str
    text: str
    status_code: int
    attempts: list[FetchAttempt] = field(default_factory=list)

    @property
    def via_proxy(self) -> bool:
        """Check if the content came from a proxy rather than the origin."""
        return len(self.attempts) > 1


def rewrite_url(proxy: str, url: str) -> str:
    """
    Rewrite a URL to go through a proxy prefix.

    Query-style prefixes (ending in "?" or "=") receive the URL
    percent-encoded; path-style prefixes receive it verbatim.
    """
    if proxy.endswith(("?", "=")):
        return f"{proxy}{quote(url, safe='')}"
    return f"{proxy}{url}"


class ResilientFetcher:
    """
    Text fetcher with ordered proxy fallback.

    Features:
    - Direct URL first, proxy variants after it
    - No retries: each candidate is attempted exactly once
    - Full attempt trail on failure
    """

    def __init__(
        self,
        settings: FetchSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or FetchSettings()
        self._transport = transport

    def candidate_urls(self, url: str) -> list[str]:
        """
        Build the ordered list of URLs to try for a resource.

        Args:
            url: Canonical URL of the resource

        Returns:
            The canonical URL followed by its proxy variants (when the
            settings mark the runtime as cross-origin restricted)
        """
        candidates = [url]
        if not self.settings.cors_restricted:
            return candidates
        for proxy in self.settings.proxy_chain():
            rewritten = rewrite_url(proxy, url)
            if rewritten not in candidates:
                candidates.append(rewritten)
        return candidates

    async def fetch_text(self, url: str, label: str) -> FetchResult:
        """
        Fetch a resource, falling back through proxies.

        Args:
            url: Canonical URL of the resource
            label: Human-readable name used in logs and errors

        Returns:
            FetchResult with the resolved URL and body text

        Raises:
            ResourceUnavailable: If every candidate failed
        """
        attempts: list[FetchAttempt] = []
        candidates = self.candidate_urls(url)

        async with httpx.AsyncClient(
            timeout=self.settings.request_timeout,
            transport=self._transport,
            follow_redirects=True,
            headers={"User-Agent": self.settings.user_agent},
        ) as client:
            for index, candidate in enumerate(candidates, start=1):
                logger.debug(f"Fetching {label} ({index}/{len(candidates)}): {candidate}")
                try:
                    response = await client.get(candidate)
                except httpx.HTTPError as e:
                    error = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
                    logger.warning(f"Request for {label} failed via {candidate}: {error}")
                    attempts.append(FetchAttempt(url=candidate, error=error))
                    continue

                if response.is_success:
                    if attempts:
                        logger.info(f"Fetched {label} via fallback {candidate}")
                    attempts.append(
                        FetchAttempt(url=candidate, status_code=response.status_code)
                    )
                    return FetchResult(
                        url=str(response.url),
                        text=response.text,
                        status_code=response.status_code,
                        attempts=attempts,
                    )

                logger.warning(
                    f"Request for {label} returned HTTP {response.status_code} via {candidate}"
                )
                attempts.append(
                    FetchAttempt(
                        url=candidate,
                        error=f"HTTP {response.status_code}",
                        status_code=response.status_code,
                        body=response.text,
                    )
                )

        raise ResourceUnavailable(label, attempts)
