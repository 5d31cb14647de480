"""
Relevance scoring and ranking of marketplace candidates.

A record earns relevance points for every criteria token that appears in
one of its weighted text fields (see ``FIELD_WEIGHTS``).  A small,
capped popularity contribution is added on top so that, among equally
relevant products, the better reviewed and more upvoted one wins.  The
raw total is normalised against the best score achievable for the
query, giving a 0-100 score.

Everything here is pure: no I/O, no globals beyond the constant tables
in :mod:`toolscan.config`, and the input records are never modified.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from .config import (
    FIELD_WEIGHTS,
    POPULARITY_CAPS,
    ProductRecord,
    RankedResult,
    normalizing_constant,
)
from .normalize import criteria_tokens


def _field_texts(record: ProductRecord) -> Dict[str, str]:
    return {
        "name": record.name.lower(),
        "tagline": record.tagline.lower(),
        "topics": " ".join(record.topics).lower(),
        "description": record.description.lower(),
    }


def relevance(record: ProductRecord, tokens: Sequence[str]) -> Tuple[float, int]:
    """Return ``(relevance_score, keyword_matches)`` for ``record``.

    Each (token, field) hit adds the field weight once, however many
    times the token occurs in that field.
    """
    texts = _field_texts(record)
    score = 0.0
    matches = 0
    for tok in tokens:
        for field, weight in FIELD_WEIGHTS.items():
            if tok in texts.get(field, ""):
                score += weight
                matches += 1
    return score, matches


def _capped(value: Optional[float], saturation: float, points: float) -> float:
    if not value or value <= 0 or saturation <= 0:
        return 0.0
    return min(value / saturation, 1.0) * points


def popularity(record: ProductRecord) -> float:
    """Capped popularity contribution; never exceeds ``POPULARITY_MAX``."""
    total = 0.0
    for attr, (saturation, points) in POPULARITY_CAPS.items():
        total += _capped(getattr(record, attr, 0.0), saturation, points)
    return total


def score_record(record: ProductRecord, tokens: Sequence[str]) -> RankedResult:
    rel, matches = relevance(record, tokens)
    raw = rel + popularity(record)
    score = min(raw / normalizing_constant(len(tokens)) * 100.0, 100.0)
    return RankedResult(
        **record.model_dump(),
        relevance_score=rel,
        score=max(score, 0.0),
        keyword_matches=matches,
    )


def rank(
    records: Sequence[ProductRecord],
    criteria: str,
    min_rating: Optional[float] = None,
) -> List[RankedResult]:
    """
    Score and order ``records`` against free-text ``criteria``.

    - ``min_rating`` (when > 0) drops records rated below it, inclusive bound.
    - With at least one usable token, records with no keyword hit are
      excluded.  With none (e.g. criteria "a to"), every record passes
      and ordering falls back to popularity alone.
    - Sorted by score descending, then ``popularity_count`` descending,
      then input order.
    """
    tokens = criteria_tokens(criteria)

    candidates = list(records or [])
    if min_rating is not None and min_rating > 0:
        candidates = [r for r in candidates if r.rating_value >= min_rating]

    scored: List[Tuple[int, RankedResult]] = []
    for idx, record in enumerate(candidates):
        result = score_record(record, tokens)
        if tokens and result.relevance_score <= 0:
            continue
        scored.append((idx, result))

    scored.sort(key=lambda p: (-p[1].score, -p[1].popularity_count, p[0]))
    logger.debug(
        "Ranked {} of {} candidates for tokens {}",
        len(scored),
        len(candidates),
        tokens,
    )
    return [r for _, r in scored]
