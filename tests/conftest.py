"""
Pytest configuration and shared fixtures.
"""

import json

import pytest

from toolscan.config import Settings


@pytest.fixture
def settings(tmp_path):
    """Settings with no inter-request delay and small page budgets."""
    links = tmp_path / "links.json"
    links.write_text(json.dumps([]), encoding="utf-8")
    return Settings(
        producthunt_api_url="https://ph.test/graphql",
        producthunt_token="ph-token",
        g2_api_url="https://g2.test/api/v1",
        g2_api_token="g2-token",
        g2_links_path=links,
        max_records=5,
        max_requests=3,
        page_size=2,
        request_delay_seconds=0,
        scrape_max_urls=5,
        scrape_max_products=3,
    )
