# toolscan/cli.py
"""
Command line entry point for toolscan.

  toolscan scan "project management tool" [--min-rating 4] [--topic productivity]
      Runs the scan pipeline in-process (no HTTP server) and prints the
      JSON response.

  toolscan serve [--host 0.0.0.0] [--port 3000]
      Starts the HTTP service with uvicorn.

Settings come from the environment / ``.env`` (see ``Settings.from_env``);
``--source`` overrides the configured marketplace for one run.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional

from loguru import logger

from .config import SearchFilters, Settings, setup_logging
from .sources import MarketplaceError, RateLimited, build_source


def _cmd_scan(args: argparse.Namespace, settings: Settings) -> int:
    from .api import run_scan

    criteria = " ".join(args.criteria).strip()
    if not criteria:
        print("Criteria is required", file=sys.stderr)
        return 2

    source = build_source(settings)
    filters = SearchFilters(min_rating=args.min_rating, topic=args.topic)
    try:
        response = asyncio.run(run_scan(criteria, source, filters))
    except RateLimited as e:
        logger.error("Rate limited: {} (retry after {:.0f}s)", e, e.retry_after)
        return 3
    except MarketplaceError as e:
        logger.error("Scan failed: {}", e)
        return 1

    print(response.model_dump_json(by_alias=True, indent=2))
    return 0


def _cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from .api import app

    app.state.source = build_source(settings)
    logger.info("Serving with source={}", settings.source)
    uvicorn.run(
        app,
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="toolscan")
    ap.add_argument("--source", choices=["producthunt", "g2", "g2_scrape"], default=None,
                    help="marketplace to query (default: TOOLSCAN_SOURCE or producthunt)")
    sub = ap.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="rank marketplace products for the given criteria")
    scan.add_argument("criteria", nargs="+", help="free-text criteria")
    scan.add_argument("--min-rating", type=float, default=None, help="inclusive minimum star rating")
    scan.add_argument("--topic", default=None, help="Product Hunt topic slug")

    serve = sub.add_parser("serve", help="run the HTTP service")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    if args.source:
        settings = settings.model_copy(update={"source": args.source})
    setup_logging(settings)

    if args.command == "scan":
        return _cmd_scan(args, settings)
    return _cmd_serve(args, settings)


if __name__ == "__main__":
    sys.exit(main())
