"""
Justification and response mapping for ranked products.

:func:`justify` turns one ranked record into the human readable bundle
shown on the results card (score, highlight, reasons, medal).
:func:`to_scan_result` wraps that into the strict API schema defined in
:mod:`toolscan.config`, keeping ``api.py`` free of formatting details.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from loguru import logger

from .config import (
    HIGHLIGHT_FALLBACK,
    HIGHLIGHT_MAX_CHARS,
    MEDALS,
    POPULARITY_TIER_DEFAULT,
    POPULARITY_TIERS,
    Justification,
    RankedResult,
    ScanResult,
)
from .normalize import truncate


def _fmt_count(value: float) -> str:
    return f"{int(round(value)):,}"


def _highlight(record: RankedResult, review_highlight: Optional[str]) -> str:
    if review_highlight and review_highlight.strip():
        return review_highlight.strip()
    if record.tagline:
        return record.tagline
    if record.description:
        return truncate(record.description, HIGHLIGHT_MAX_CHARS)
    return HIGHLIGHT_FALLBACK


def popularity_tier(count: float) -> str:
    for threshold, label in POPULARITY_TIERS:
        if count > threshold:
            return label
    return POPULARITY_TIER_DEFAULT


def _reasons(record: RankedResult) -> List[str]:
    reasons: List[str] = []
    if record.popularity_count > 0:
        reasons.append(f"{_fmt_count(record.popularity_count)} {record.popularity_label}")

    if record.rating_value > 0:
        if record.rating_count > 0:
            reasons.append(
                f"{record.rating_value:.1f}/5 star rating from {_fmt_count(record.rating_count)} reviews"
            )
        else:
            reasons.append(f"Rated {record.rating_value:.1f}/5 by users")

    if record.secondary_rating:
        reasons.append(f"Average rating: {record.secondary_rating:.1f}/10")

    reasons.append(popularity_tier(record.popularity_count))
    return reasons


def justify(
    record: RankedResult,
    rank: int,
    review_highlight: Optional[str] = None,
) -> Justification:
    """Explain why ``record`` landed at 1-based position ``rank``.

    ``review_highlight`` is an optional upstream snippet (e.g. a top
    review); without it the highlight comes from the record's own text.
    """
    return Justification(
        score=int(round(record.score)),
        highlight=_highlight(record, review_highlight),
        reasons=_reasons(record),
        medal=MEDALS.get(rank, ""),
    )


def to_scan_result(
    record: RankedResult,
    rank: int,
    review_highlight: Optional[str] = None,
) -> ScanResult:
    return ScanResult(
        rank=rank,
        name=record.name,
        url=record.url,
        website_url=record.website_url,
        rating=record.rating_value,
        avg_rating=record.secondary_rating,
        review_count=int(round(record.rating_count)),
        description=record.description,
        image_url=record.image_url,
        justification=justify(record, rank, review_highlight),
    )


def map_top_results(
    ranked: Sequence[RankedResult],
    highlights: Optional[Sequence[Optional[str]]] = None,
) -> List[ScanResult]:
    """Map already-sliced ranked records to API results, rank 1 first."""
    highlights = list(highlights or [])
    results: List[ScanResult] = []
    for idx, record in enumerate(ranked):
        hl = highlights[idx] if idx < len(highlights) else None
        results.append(to_scan_result(record, idx + 1, hl))
    logger.info("Mapped {} ranked products into API schema", len(results))
    return results
