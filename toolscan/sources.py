"""
Marketplace source interface, error types and shared HTTP helpers.

Every upstream (Product Hunt GraphQL, G2 REST, G2 page scraping) is an
adapter implementing :class:`MarketplaceSource`.  Adapters return plain
:class:`~toolscan.config.ProductRecord` lists, so the scoring engine
never cares where a record came from.

Upstream problems surface as two exceptions:

* :class:`RateLimited` when the upstream throttles us; carries the
  number of seconds to wait before retrying.
* :class:`UpstreamUnavailable` for anything else (network errors,
  non-2xx statuses, unparseable payloads).
"""

from __future__ import annotations

import abc
import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import List, Optional

import httpx
from loguru import logger

from .config import (
    DEFAULT_RETRY_AFTER_SECONDS,
    HTTP_CONNECT_TIMEOUT,
    HTTP_MAX_BYTES,
    HTTP_MAX_REDIRECTS,
    HTTP_READ_TIMEOUT,
    HTTP_USER_AGENT,
    ProductRecord,
    SearchFilters,
    Settings,
)


class MarketplaceError(Exception):
    """Base class for upstream marketplace failures."""


class UpstreamUnavailable(MarketplaceError):
    pass


class RateLimited(MarketplaceError):
    def __init__(self, message: str, retry_after: float = DEFAULT_RETRY_AFTER_SECONDS) -> None:
        super().__init__(message)
        retry_after = float(retry_after)
        if not math.isfinite(retry_after):
            retry_after = DEFAULT_RETRY_AFTER_SECONDS
        self.retry_after = max(retry_after, 0.0)


# =============================================================================
# HTTP helpers
# =============================================================================

def http_client(
    transport: Optional[httpx.AsyncBaseTransport] = None,
    headers: Optional[dict] = None,
) -> httpx.AsyncClient:
    """
    Construct a configured async HTTP client.

    ``trust_env=False`` keeps httpx from picking up proxy variables.
    ``transport`` is only passed in tests (``httpx.MockTransport``).
    """
    merged = {"User-Agent": HTTP_USER_AGENT}
    merged.update(headers or {})
    return httpx.AsyncClient(
        headers=merged,
        follow_redirects=True,
        timeout=httpx.Timeout(HTTP_READ_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT),
        max_redirects=HTTP_MAX_REDIRECTS,
        trust_env=False,
        transport=transport,
    )


def _parse_seconds(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def retry_after_seconds(response: httpx.Response) -> float:
    """Wait time advertised by a throttled response, or the default."""
    for header in ("Retry-After", "X-Rate-Limit-Reset", "X-RateLimit-Reset"):
        seconds = _parse_seconds(response.headers.get(header))
        if seconds is not None:
            return seconds
    return DEFAULT_RETRY_AFTER_SECONDS


def check_response(response: httpx.Response, upstream: str) -> httpx.Response:
    """
    Raise the matching :class:`MarketplaceError` for a bad response.

    429 becomes :class:`RateLimited`; other 4xx/5xx statuses and
    oversized bodies become :class:`UpstreamUnavailable`.
    """
    if response.status_code == 429:
        wait = retry_after_seconds(response)
        logger.warning("{} rate limited; retry after {:.0f}s", upstream, wait)
        raise RateLimited(f"{upstream} rate limit reached", retry_after=wait)
    if response.status_code >= 400:
        raise UpstreamUnavailable(f"{upstream} returned HTTP {response.status_code}")
    if len(response.content) > HTTP_MAX_BYTES:
        raise UpstreamUnavailable(
            f"{upstream} response too large ({len(response.content)} bytes)"
        )
    return response


# =============================================================================
# Source interface
# =============================================================================

class MarketplaceSource(abc.ABC):
    """Fetches candidate products for a query from one upstream."""

    name: str = "marketplace"

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self._transport = transport

    def _client(self, headers: Optional[dict] = None) -> httpx.AsyncClient:
        return http_client(self._transport, headers=headers)

    @abc.abstractmethod
    async def fetch_candidates(
        self,
        criteria: str,
        filters: Optional[SearchFilters] = None,
    ) -> List[ProductRecord]:
        """Return at most ``settings.max_records`` candidate products."""

    async def fetch_highlight(self, record: ProductRecord) -> Optional[str]:
        """Optional per-product snippet (e.g. a top review).  ``None`` if unavailable."""
        return None


def build_source(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> MarketplaceSource:
    """Instantiate the adapter named by ``settings.source``."""
    from .g2 import G2Source
    from .g2_scrape import G2ScrapeSource
    from .producthunt import ProductHuntSource

    registry = {
        "producthunt": ProductHuntSource,
        "g2": G2Source,
        "g2_scrape": G2ScrapeSource,
    }
    cls = registry[settings.source]
    logger.info("Using marketplace source: {}", settings.source)
    return cls(settings, transport=transport)
