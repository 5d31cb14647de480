"""
G2 (REST, JSON:API) marketplace source.

Products are listed page by page (``page[number]``/``page[size]``) until
``max_records`` products are collected, ``max_requests`` pages have been
requested, or the ``links.next`` pointer disappears.  Star rating and
review count come straight from G2; review count doubles as the
popularity metric.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from .config import ProductRecord, SearchFilters
from .normalize import basic_clean
from .sources import MarketplaceSource, RateLimited, UpstreamUnavailable, check_response


def _website(domain: Optional[str]) -> Optional[str]:
    if not domain:
        return None
    domain = str(domain).strip()
    if domain.startswith(("http://", "https://")):
        return domain
    return f"https://{domain}"


def product_to_record(item: Dict[str, Any]) -> ProductRecord:
    """Map one JSON:API ``products`` resource onto a :class:`ProductRecord`."""
    attrs = item.get("attributes") or {}
    return ProductRecord(
        name=attrs.get("name"),
        tagline=basic_clean(attrs.get("short_description")),
        description=basic_clean(attrs.get("description")),
        popularity_count=attrs.get("review_count"),
        popularity_label="reviews",
        rating_value=attrs.get("star_rating"),
        rating_count=attrs.get("review_count"),
        secondary_rating=attrs.get("avg_rating"),
        topics=attrs.get("category_names") or [],
        url=attrs.get("public_detail_url"),
        website_url=_website(attrs.get("domain")),
        image_url=attrs.get("image_url"),
        source_id=item.get("id"),
    )


class G2Source(MarketplaceSource):
    name = "g2"

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.api+json"}
        if self.settings.g2_api_token:
            headers["Authorization"] = f"Token token={self.settings.g2_api_token}"
        return headers

    async def _get(self, client: httpx.AsyncClient, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.settings.g2_api_url.rstrip('/')}/{path.lstrip('/')}"
        try:
            resp = await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"G2 request failed: {e}") from e
        check_response(resp, "G2")
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamUnavailable("G2 returned invalid JSON") from e

    async def fetch_candidates(
        self,
        criteria: str,
        filters: Optional[SearchFilters] = None,
    ) -> List[ProductRecord]:
        records: List[ProductRecord] = []
        page = 1

        async with self._client(self._headers()) as client:
            while page <= self.settings.max_requests and len(records) < self.settings.max_records:
                if page > 1:
                    await asyncio.sleep(self.settings.request_delay_seconds)
                payload = await self._get(
                    client,
                    "products",
                    {"page[size]": self.settings.page_size, "page[number]": page},
                )
                for item in payload.get("data") or []:
                    records.append(product_to_record(item))
                if not (payload.get("links") or {}).get("next"):
                    break
                page += 1

        logger.info("G2 returned {} products in {} page(s)", len(records), min(page, self.settings.max_requests))
        return records[: self.settings.max_records]

    async def fetch_highlight(self, record: ProductRecord) -> Optional[str]:
        if not record.source_id:
            return None
        try:
            async with self._client(self._headers()) as client:
                payload = await self._get(
                    client,
                    "survey-responses",
                    {"filter[product_id]": record.source_id, "page[size]": 1},
                )
        except (UpstreamUnavailable, RateLimited) as e:
            logger.warning("Review highlight lookup failed for {}: {}", record.name, e)
            return None

        data = payload.get("data") or []
        if not data:
            return None
        attrs = data[0].get("attributes") or {}
        love = ((attrs.get("comment_answers") or {}).get("love") or {}).get("value")
        text = basic_clean(attrs.get("title") or love)
        return text or None
