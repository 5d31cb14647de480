"""
Text normalization utilities used across toolscan.

These helpers perform basic cleaning (HTML stripping, unicode
normalization, whitespace collapsing) for text pulled from marketplace
pages, and turn free-text user criteria into the keyword tokens the
scoring engine matches against product fields.
"""

from __future__ import annotations

import re
import string
import unicodedata
from typing import List

from bs4 import BeautifulSoup

from .config import MIN_TOKEN_LENGTH


# ---------------------------
# Basic helpers
# ---------------------------

def strip_html(raw: str) -> str:
    """
    Strip HTML tags using BeautifulSoup, then clean up whitespace and
    spacing around punctuation.
    """
    if not raw:
        return ""
    # Fast path: if there's no '<', it's almost certainly not HTML
    if "<" not in raw:
        return raw
    soup = BeautifulSoup(raw, "lxml")
    text = normalize_whitespace(soup.get_text(" ", strip=True))
    return re.sub(r"\s+([.,!?;:])", r"\1", text)


def normalize_unicode(text: str) -> str:
    if not text:
        return ""
    return unicodedata.normalize("NFC", text)


def normalize_whitespace(text: str) -> str:
    """
    Collapse all whitespace runs into a single space and strip edges.
    """
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def basic_clean(text: str | None) -> str:
    """
    End-to-end cleaning for upstream descriptions and taglines:

    - strip HTML
    - normalize unicode
    - normalize whitespace
    """
    if text is None:
        return ""
    text = strip_html(str(text))
    text = normalize_unicode(text)
    return normalize_whitespace(text)


def truncate(text: str, max_chars: int) -> str:
    """Hard cap on length; returns the text unchanged if already short enough."""
    if not text or len(text) <= max_chars:
        return text or ""
    return text[:max_chars]


# ---------------------------
# Criteria tokenization
# ---------------------------

def criteria_tokens(criteria: str | None, min_length: int = MIN_TOKEN_LENGTH) -> List[str]:
    """
    Lowercase ``criteria``, split on whitespace, strip punctuation at the
    token edges and drop tokens of ``min_length`` characters or fewer.

    Duplicates are removed while preserving order, so "crm crm" scores
    the same as "crm".
    """
    if not criteria:
        return []
    tokens: List[str] = []
    seen = set()
    for raw in normalize_unicode(str(criteria)).lower().split():
        tok = raw.strip(string.punctuation)
        if len(tok) <= min_length or tok in seen:
            continue
        seen.add(tok)
        tokens.append(tok)
    return tokens


if __name__ == "__main__":
    sample = "<p>Project   management <b>tool</b> for   remote teams!</p>"
    print("BASIC CLEAN:", basic_clean(sample))
    print("TOKENS:", criteria_tokens("Project management tool, for AI teams"))
