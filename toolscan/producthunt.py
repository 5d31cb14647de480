"""
Product Hunt (GraphQL API v2) marketplace source.

Posts are pulled in vote order, ``page_size`` at a time, following the
``endCursor`` until ``max_records`` posts are collected, ``max_requests``
calls have been made, or the feed runs out.  A fixed delay separates
consecutive calls to stay inside Product Hunt's complexity budget.

The API has no free-text search, so the criteria only narrow the feed
through the optional topic filter; keyword matching is left to the
scoring engine.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from .config import DEFAULT_RETRY_AFTER_SECONDS, ProductRecord, SearchFilters
from .normalize import basic_clean
from .sources import MarketplaceSource, RateLimited, UpstreamUnavailable, check_response

POSTS_QUERY = """
query Posts($first: Int!, $after: String, $topic: String) {
  posts(first: $first, after: $after, order: VOTES, topic: $topic) {
    pageInfo { hasNextPage endCursor }
    edges {
      node {
        id
        name
        tagline
        description
        votesCount
        reviewsRating
        reviewsCount
        url
        website
        thumbnail { url }
        topics(first: 5) { edges { node { name } } }
      }
    }
  }
}
"""

TOP_COMMENT_QUERY = """
query TopComment($id: ID!) {
  post(id: $id) {
    comments(first: 1, order: VOTES_COUNT) { edges { node { body } } }
  }
}
"""


def node_to_record(node: Dict[str, Any]) -> ProductRecord:
    """Map one GraphQL ``Post`` node onto a :class:`ProductRecord`."""
    topics = [
        (edge.get("node") or {}).get("name")
        for edge in ((node.get("topics") or {}).get("edges") or [])
    ]
    thumbnail = node.get("thumbnail") or {}
    return ProductRecord(
        name=node.get("name"),
        tagline=basic_clean(node.get("tagline")),
        description=basic_clean(node.get("description")),
        popularity_count=node.get("votesCount"),
        popularity_label="upvotes",
        rating_value=node.get("reviewsRating"),
        rating_count=node.get("reviewsCount"),
        topics=topics,
        url=node.get("url"),
        website_url=node.get("website"),
        image_url=thumbnail.get("url"),
        source_id=node.get("id"),
    )


def _raise_for_graphql_errors(payload: Dict[str, Any]) -> None:
    errors = payload.get("errors") or []
    if not errors:
        return
    for err in errors:
        if err.get("error") == "rate_limit_reached":
            details = err.get("details") or {}
            try:
                wait = float(details.get("reset_in", DEFAULT_RETRY_AFTER_SECONDS))
            except (TypeError, ValueError):
                wait = DEFAULT_RETRY_AFTER_SECONDS
            raise RateLimited("Product Hunt rate limit reached", retry_after=wait)
    first = errors[0]
    message = first.get("message") or first.get("error_description") or first.get("error")
    raise UpstreamUnavailable(f"Product Hunt GraphQL error: {message}")


class ProductHuntSource(MarketplaceSource):
    name = "producthunt"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.settings.producthunt_token:
            headers["Authorization"] = f"Bearer {self.settings.producthunt_token}"
        return headers

    async def _post(self, client: httpx.AsyncClient, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = await client.post(
                self.settings.producthunt_api_url,
                json={"query": query, "variables": variables},
            )
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Product Hunt request failed: {e}") from e
        check_response(resp, "Product Hunt")
        try:
            payload = resp.json()
        except ValueError as e:
            raise UpstreamUnavailable("Product Hunt returned invalid JSON") from e
        _raise_for_graphql_errors(payload)
        return payload.get("data") or {}

    async def fetch_candidates(
        self,
        criteria: str,
        filters: Optional[SearchFilters] = None,
    ) -> List[ProductRecord]:
        topic = filters.topic if filters else None
        records: List[ProductRecord] = []
        cursor: Optional[str] = None
        requests_made = 0

        async with self._client(self._headers()) as client:
            while requests_made < self.settings.max_requests and len(records) < self.settings.max_records:
                if requests_made:
                    await asyncio.sleep(self.settings.request_delay_seconds)
                batch = min(self.settings.page_size, self.settings.max_records - len(records))
                data = await self._post(
                    client,
                    POSTS_QUERY,
                    {"first": batch, "after": cursor, "topic": topic},
                )
                requests_made += 1

                posts = data.get("posts") or {}
                for edge in posts.get("edges") or []:
                    node = edge.get("node")
                    if node:
                        records.append(node_to_record(node))

                page_info = posts.get("pageInfo") or {}
                cursor = page_info.get("endCursor")
                if not page_info.get("hasNextPage") or not cursor:
                    break

        logger.info(
            "Product Hunt returned {} posts in {} request(s) (topic={})",
            len(records),
            requests_made,
            topic,
        )
        return records[: self.settings.max_records]

    async def fetch_highlight(self, record: ProductRecord) -> Optional[str]:
        if not record.source_id:
            return None
        try:
            async with self._client(self._headers()) as client:
                data = await self._post(client, TOP_COMMENT_QUERY, {"id": record.source_id})
        except UpstreamUnavailable as e:
            logger.warning("Highlight lookup failed for {}: {}", record.name, e)
            return None
        except RateLimited as e:
            logger.warning("Highlight lookup throttled for {}: {}", record.name, e)
            return None
        edges = ((data.get("post") or {}).get("comments") or {}).get("edges") or []
        if not edges:
            return None
        body = basic_clean((edges[0].get("node") or {}).get("body"))
        return body or None
