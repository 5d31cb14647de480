"""Tests for the command line entry point."""

import json
from typing import List, Optional

import pytest

from toolscan import cli
from toolscan.config import ProductRecord, SearchFilters, Settings
from toolscan.sources import MarketplaceSource, UpstreamUnavailable


class StaticSource(MarketplaceSource):
    def __init__(self, records, error=None):
        super().__init__(Settings())
        self.records = records
        self.error = error

    async def fetch_candidates(self, criteria: str, filters: Optional[SearchFilters] = None) -> List[ProductRecord]:
        if self.error:
            raise self.error
        return self.records


class _DefaultSettings:
    @staticmethod
    def from_env(environ=None):
        return Settings()


@pytest.fixture
def quiet_env(monkeypatch):
    monkeypatch.setattr(cli, "Settings", _DefaultSettings)
    monkeypatch.setattr(cli, "setup_logging", lambda settings: None)


def test_scan_prints_json(monkeypatch, capsys, quiet_env):
    records = [ProductRecord(name="Tiny CRM", popularity_count=10)]
    monkeypatch.setattr(cli, "build_source", lambda settings: StaticSource(records))
    assert cli.main(["scan", "crm", "tool"]) == 0
    body = json.loads(capsys.readouterr().out)
    assert body["results"][0]["name"] == "Tiny CRM"
    assert body["results"][0]["rank"] == 1


def test_scan_upstream_failure(monkeypatch, quiet_env):
    monkeypatch.setattr(
        cli, "build_source", lambda settings: StaticSource([], error=UpstreamUnavailable("down"))
    )
    assert cli.main(["scan", "crm"]) == 1


def test_source_override(monkeypatch, quiet_env):
    seen = {}

    def _build(settings):
        seen["source"] = settings.source
        return StaticSource([])

    monkeypatch.setattr(cli, "build_source", _build)
    assert cli.main(["--source", "g2_scrape", "scan", "crm"]) == 0
    assert seen["source"] == "g2_scrape"


def test_scan_keeps_null_fields(monkeypatch, capsys, quiet_env):
    monkeypatch.setattr(cli, "build_source", lambda settings: StaticSource([ProductRecord(name="Tiny CRM")]))
    assert cli.main(["scan", "crm"]) == 0
    body = json.loads(capsys.readouterr().out)
    assert "message" not in body
    assert body["results"][0]["url"] is None
    assert body["results"][0]["imageUrl"] is None


def test_serve_uses_source_override(monkeypatch, quiet_env):
    import uvicorn

    from toolscan.api import app

    seen = {}

    def _run(target, **kwargs):
        seen["target"] = target
        seen["kwargs"] = kwargs
        seen["source"] = target.state.source

    monkeypatch.setattr(cli, "build_source", lambda settings: StaticSource([], error=None))
    monkeypatch.setattr(uvicorn, "run", _run)
    monkeypatch.setattr(app.state, "source", None)
    assert cli.main(["--source", "g2", "serve", "--port", "8123"]) == 0
    assert seen["target"] is app
    assert isinstance(seen["source"], StaticSource)
    assert seen["kwargs"]["port"] == 8123
    assert seen["kwargs"]["host"] == Settings().host


def test_serve_builds_source_from_override(monkeypatch, quiet_env):
    import uvicorn

    from toolscan.api import app

    seen = {}

    def _build(settings):
        seen["source"] = settings.source
        return StaticSource([])

    monkeypatch.setattr(cli, "build_source", _build)
    monkeypatch.setattr(uvicorn, "run", lambda target, **kwargs: None)
    monkeypatch.setattr(app.state, "source", None)
    assert cli.main(["--source", "g2", "serve"]) == 0
    assert seen["source"] == "g2"
