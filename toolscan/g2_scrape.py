"""
G2 product-page scraper, for deployments without G2 API access.

A local JSON file lists known G2 product URLs.  For each query:

* URLs whose slug contains any criteria token are kept (at most
  ``scrape_max_urls``).
* Matching pages are fetched one at a time with ``request_delay_seconds``
  between requests, stopping once ``scrape_max_products`` products have
  been scraped.
* Pages that fail to load or parse are logged and skipped; a 429 stops
  the scan with :class:`~toolscan.sources.RateLimited`.

Fields the page does not expose are left at zero rather than guessed,
so the same page always yields the same record.
"""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from .config import ProductRecord, SearchFilters
from .normalize import basic_clean, criteria_tokens, normalize_whitespace, truncate
from .sources import MarketplaceSource, RateLimited, UpstreamUnavailable, check_response

DESCRIPTION_MAX_CHARS = 300
PLACEHOLDER_IMAGE_URL = "https://via.placeholder.com/100?text={initials}"

_RATING_RE = re.compile(r"(\d+(?:\.\d+)?)")
_REVIEW_COUNT_RE = re.compile(r"(\d{1,3}(?:,\d{3})+|\d+)\s*(?:reviews?|ratings?)", re.I)


def load_product_links(path: Path) -> List[str]:
    """Read the list of G2 product URLs; raises ``UpstreamUnavailable`` if unusable."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise UpstreamUnavailable(f"Cannot read G2 product list {path}: {e}") from e
    if not isinstance(raw, list):
        raise UpstreamUnavailable(f"G2 product list {path} must be a JSON array")
    return [str(u).strip() for u in raw if isinstance(u, str) and u.strip()]


def product_slug(url: str) -> str:
    parts = url.split("/products/", 1)
    if len(parts) < 2:
        return ""
    return parts[1].split("/", 1)[0].split("?", 1)[0]


def match_product_urls(urls: List[str], criteria: str, limit: int) -> List[str]:
    """URLs whose product slug contains a criteria token, input order, capped at ``limit``."""
    tokens = criteria_tokens(criteria)
    if not tokens:
        return []
    hits = [u for u in urls if any(tok in product_slug(u).lower() for tok in tokens)]
    return hits[:limit]


def _parse_rating(soup: BeautifulSoup) -> float:
    node = soup.select_one('[class*="stars"]')
    text = node.get_text(" ", strip=True) if node else ""
    if not text:
        node = soup.select_one("[data-rating]")
        text = str(node.get("data-rating", "")) if node else ""
    m = _RATING_RE.search(text)
    if not m:
        return 0.0
    value = float(m.group(1))
    return value if value <= 5 else 0.0


def _parse_review_count(soup: BeautifulSoup) -> int:
    text = " ".join(n.get_text(" ", strip=True) for n in soup.select('[class*="review"]'))
    m = _REVIEW_COUNT_RE.search(text)
    return int(m.group(1).replace(",", "")) if m else 0


def parse_product_page(html: str, url: str) -> ProductRecord:
    """Extract a :class:`ProductRecord` from one G2 product page."""
    soup = BeautifulSoup(html, "lxml")
    slug = product_slug(url)

    heading = soup.select_one('h1[itemprop="name"]') or soup.find("h1")
    name = normalize_whitespace(heading.get_text(" ", strip=True)) if heading else ""
    if not name:
        name = slug.replace("-", " ")

    meta = soup.find("meta", attrs={"name": "description"})
    description = basic_clean(meta.get("content")) if meta else ""
    if not description:
        para = soup.select_one('p[itemprop="description"]')
        description = basic_clean(para.get_text(" ", strip=True)) if para else ""

    star = _parse_rating(soup)
    reviews = _parse_review_count(soup)
    initials = quote(name[:2]) if name else "G2"

    return ProductRecord(
        name=name,
        description=truncate(description, DESCRIPTION_MAX_CHARS),
        popularity_count=reviews,
        popularity_label="reviews",
        rating_value=star,
        rating_count=reviews,
        secondary_rating=star * 2 if star else None,
        url=url,
        image_url=PLACEHOLDER_IMAGE_URL.format(initials=initials),
        source_id=slug or None,
    )


class G2ScrapeSource(MarketplaceSource):
    name = "g2_scrape"

    async def _scrape(self, client: httpx.AsyncClient, url: str) -> Optional[ProductRecord]:
        try:
            resp = await client.get(url)
            check_response(resp, "G2")
            return parse_product_page(resp.text, url)
        except RateLimited:
            raise
        except (httpx.HTTPError, UpstreamUnavailable) as e:
            logger.warning("Failed to scrape {}: {}", url, e)
            return None

    async def fetch_candidates(
        self,
        criteria: str,
        filters: Optional[SearchFilters] = None,
    ) -> List[ProductRecord]:
        urls = load_product_links(self.settings.g2_links_path)
        logger.info("Searching {} G2 product links for: {}", len(urls), criteria)
        matching = match_product_urls(urls, criteria, self.settings.scrape_max_urls)
        logger.info("Found {} potential matches, scraping...", len(matching))

        limit = min(self.settings.scrape_max_products, self.settings.max_records)
        products: List[ProductRecord] = []
        async with self._client({"Accept": "text/html,application/xhtml+xml"}) as client:
            for i, url in enumerate(matching):
                if i:
                    await asyncio.sleep(self.settings.request_delay_seconds)
                product = await self._scrape(client, url)
                if product is not None:
                    products.append(product)
                if len(products) >= limit:
                    break

        logger.info("Scraped {} G2 products", len(products))
        return products
