"""
Configuration for the toolscan marketplace scanner.

Scoring tables, HTTP limits and paths are plain module constants so the
ranking code can import them directly.  Anything deployment specific
(API tokens, which upstream to query, pagination budgets) lives on
:class:`Settings`, which is built once at process start and handed to
the marketplace source.  The scoring engine never reads the environment.
"""

from __future__ import annotations

import math
import os
import sys
from pathlib import Path
from typing import Dict, List, Literal, Mapping, Optional, Tuple

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer
from pydantic.alias_generators import to_camel

# Paths
PROJECT_ROOT = Path(__file__).resolve().parents[1]
DATA_DIR = PROJECT_ROOT / "data"
STATIC_DIR = Path(__file__).resolve().parent / "static"
LOG_DIR = PROJECT_ROOT / "logs"
G2_LINKS_PATH = DATA_DIR / "g2_product_links.json"

# Upstream endpoints
PRODUCTHUNT_API_URL = "https://api.producthunt.com/v2/api/graphql"
G2_API_URL = "https://data.g2.com/api/v1"

# Tokenization: tokens of this length or shorter are dropped ("to", "a", "ai")
MIN_TOKEN_LENGTH = 2

# Relevance weights per text field.  Name hits matter most.
FIELD_WEIGHTS: Dict[str, float] = {
    "name": 50.0,
    "tagline": 30.0,
    "topics": 20.0,
    "description": 15.0,
}

# Any two different relevance totals differ by at least this much.
RELEVANCE_STEP = float(math.gcd(*(int(w) for w in FIELD_WEIGHTS.values())))

# Popularity metrics: (saturation point, max points).  Each metric scales
# linearly up to its saturation point and contributes at most max points.
POPULARITY_CAPS: Dict[str, Tuple[float, float]] = {
    "popularity_count": (1000.0, 1.5),
    "rating_count": (400.0, 1.25),
    "rating_value": (5.0, 1.5),
    "secondary_rating": (10.0, 0.5),
}
POPULARITY_MAX = sum(points for _, points in POPULARITY_CAPS.values())

# Popularity may only reorder records of equal relevance.
if POPULARITY_MAX >= RELEVANCE_STEP:
    raise ValueError(
        f"POPULARITY_MAX ({POPULARITY_MAX}) must stay below the relevance step ({RELEVANCE_STEP})"
    )

# Result policy
TOP_K = 3

# Justification
HIGHLIGHT_MAX_CHARS = 150
HIGHLIGHT_FALLBACK = "No description available."
POPULARITY_TIERS: List[Tuple[float, str]] = [
    (500, "Highly popular choice"),
    (200, "Well-regarded by the community"),
]
POPULARITY_TIER_DEFAULT = "Trusted by early adopters"
MEDALS: Dict[int, str] = {1: "\U0001F947", 2: "\U0001F948", 3: "\U0001F949"}

# HTTP hardening
HTTP_CONNECT_TIMEOUT = 5.0
HTTP_READ_TIMEOUT = 15.0
HTTP_MAX_REDIRECTS = 3
HTTP_MAX_BYTES = 2_000_000
HTTP_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 toolscan/1.0"
DEFAULT_RETRY_AFTER_SECONDS = 60.0

SourceName = Literal["producthunt", "g2", "g2_scrape"]


def normalizing_constant(token_count: int) -> float:
    """Theoretical maximum raw score for a query with ``token_count`` tokens.

    Every token can hit every field once, and every popularity metric
    can reach its cap.
    """
    return max(token_count, 0) * sum(FIELD_WEIGHTS.values()) + POPULARITY_MAX


# =============================================================================
# Runtime settings
# =============================================================================

class Settings(BaseModel):
    """Deployment settings, resolved once at startup."""

    model_config = ConfigDict(frozen=True)

    source: SourceName = "producthunt"
    producthunt_api_url: str = PRODUCTHUNT_API_URL
    producthunt_token: str = ""
    g2_api_url: str = G2_API_URL
    g2_api_token: str = ""
    g2_links_path: Path = G2_LINKS_PATH

    max_records: int = Field(default=100, ge=1)
    max_requests: int = Field(default=5, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
    request_delay_seconds: float = Field(default=0.5, ge=0)
    scrape_max_urls: int = Field(default=20, ge=1)
    scrape_max_products: int = Field(default=10, ge=1)

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    log_to_file: bool = False

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``environ`` (defaults to ``os.environ`` plus ``.env``)."""
        if environ is None:
            load_dotenv(PROJECT_ROOT / ".env")
            environ = os.environ

        mapping = {
            "source": "TOOLSCAN_SOURCE",
            "producthunt_api_url": "PRODUCTHUNT_API_URL",
            "producthunt_token": "PRODUCTHUNT_API_TOKEN",
            "g2_api_url": "G2_API_URL",
            "g2_api_token": "G2_API_TOKEN",
            "g2_links_path": "TOOLSCAN_G2_LINKS_PATH",
            "max_records": "TOOLSCAN_MAX_RECORDS",
            "max_requests": "TOOLSCAN_MAX_REQUESTS",
            "page_size": "TOOLSCAN_PAGE_SIZE",
            "request_delay_seconds": "TOOLSCAN_REQUEST_DELAY",
            "scrape_max_urls": "TOOLSCAN_SCRAPE_MAX_URLS",
            "scrape_max_products": "TOOLSCAN_SCRAPE_MAX_PRODUCTS",
            "host": "HOST",
            "port": "PORT",
            "log_level": "TOOLSCAN_LOG_LEVEL",
            "log_to_file": "TOOLSCAN_LOG_TO_FILE",
        }
        values: Dict[str, object] = {}
        for field, var in mapping.items():
            raw = environ.get(var)
            if raw is not None and raw.strip() != "":
                values[field] = raw.strip()
        return cls(**values)


def setup_logging(settings: Settings) -> None:
    """Route loguru output to stderr (and optionally a daily log file)."""
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    if settings.log_to_file:
        LOG_DIR.mkdir(exist_ok=True)
        logger.add(
            LOG_DIR / "toolscan_{time:YYYYMMDD}.log",
            level=settings.log_level,
            rotation="00:00",
            retention="14 days",
            encoding="utf-8",
        )


# =============================================================================
# Pydantic schemas
# =============================================================================

def _as_number(v: object) -> float:
    """Coerce upstream numbers; anything unusable or negative becomes 0."""
    if v is None or isinstance(v, bool):
        return 0.0
    if isinstance(v, str):
        v = v.replace(",", "").strip()
    try:
        num = float(v)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(num) or num < 0:
        return 0.0
    return num


class ProductRecord(BaseModel):
    """One candidate product as delivered by a marketplace source."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    tagline: str = ""
    description: str = ""
    popularity_count: float = 0.0
    popularity_label: str = "upvotes"
    rating_value: float = 0.0
    rating_count: float = 0.0
    secondary_rating: Optional[float] = None
    topics: List[str] = Field(default_factory=list)
    url: Optional[str] = None
    website_url: Optional[str] = None
    image_url: Optional[str] = None
    source_id: Optional[str] = None

    @field_validator("name", "tagline", "description", "popularity_label", mode="before")
    @classmethod
    def _text(cls, v: object) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("popularity_count", "rating_value", "rating_count", mode="before")
    @classmethod
    def _number(cls, v: object) -> float:
        return _as_number(v)

    @field_validator("secondary_rating", mode="before")
    @classmethod
    def _optional_number(cls, v: object) -> Optional[float]:
        if v is None or v == "":
            return None
        return _as_number(v)

    @field_validator("topics", mode="before")
    @classmethod
    def _topics(cls, v: object) -> List[str]:
        if not v:
            return []
        if isinstance(v, str):
            v = [v]
        try:
            return [str(t).strip() for t in v if t is not None and str(t).strip()]  # type: ignore[union-attr]
        except TypeError:
            return []

    @field_validator("url", "website_url", "image_url", "source_id", mode="before")
    @classmethod
    def _optional_text(cls, v: object) -> Optional[str]:
        if v is None:
            return None
        s = str(v).strip()
        return s or None


class RankedResult(ProductRecord):
    relevance_score: float = Field(default=0.0, ge=0)
    score: float = Field(default=0.0, ge=0, le=100)
    keyword_matches: int = Field(default=0, ge=0)


class SearchFilters(BaseModel):
    min_rating: Optional[float] = None
    topic: Optional[str] = None


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Justification(_CamelModel):
    score: int
    highlight: str
    reasons: List[str]
    medal: str


class ScanRequest(_CamelModel):
    criteria: str = ""
    min_rating: Optional[float] = Field(default=None, ge=0)
    topic: Optional[str] = None


class ScanResult(_CamelModel):
    rank: int
    name: str
    url: Optional[str] = None
    website_url: Optional[str] = None
    rating: float
    avg_rating: Optional[float] = None
    review_count: int
    description: str
    image_url: Optional[str] = None
    justification: Justification


class ScanResponse(_CamelModel):
    results: List[ScanResult]
    message: Optional[str] = None

    @model_serializer(mode="wrap")
    def _drop_empty_message(self, handler):
        # Only the envelope message is dropped when unset; results keep null fields.
        data = handler(self)
        if self.message is None:
            data.pop("message", None)
        return data


class HealthResponse(BaseModel):
    status: str
    timestamp: str
