"""
Pure helpers that turn raw Open Food Facts / estimator values into
display-safe strings and canonical score letters.
"""

from __future__ import annotations

import re
from typing import Any, Optional

SCORE_LETTERS = ("A", "B", "C", "D", "E")

# Neutral grade used whenever a score cannot be resolved
DEFAULT_SCORE = "C"

UNKNOWN = "Unknown"

_LOCALE_PREFIX = re.compile(r"^[a-z]{2}:", re.IGNORECASE)
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def format_tags(tags: Any, fallback: str = UNKNOWN) -> str:
    """
    Turn tag lists like ["en:plastic-bottle", "fr:verre"] into
    "plastic bottle, verre". Returns `fallback` when nothing survives.
    """
    if not isinstance(tags, (list, tuple)):
        return fallback

    cleaned = []
    for tag in tags:
        if tag is None:
            continue
        s = _LOCALE_PREFIX.sub("", str(tag).strip())
        s = s.replace("-", " ").strip()
        if s:
            cleaned.append(s)

    return ", ".join(cleaned) if cleaned else fallback


def score_rank(letter: Optional[str]) -> int:
    """A=1 ... E=5, anything else ranks worst (6). Comparison only."""
    if not isinstance(letter, str):
        return 6
    s = letter.strip().upper()
    if s in SCORE_LETTERS:
        return SCORE_LETTERS.index(s) + 1
    return 6


def normalize_score(raw: Optional[str]) -> str:
    s = raw.strip().upper() if isinstance(raw, str) else ""
    if s in SCORE_LETTERS:
        return s
    return DEFAULT_SCORE


def normalize_field(raw: Optional[str], fallback: str = "Estimated") -> str:
    s = raw.strip() if isinstance(raw, str) else ""
    if not s or s.lower() == "unknown":
        return fallback
    return s


def is_unknown_score(value: Optional[str]) -> bool:
    s = value.strip().upper() if isinstance(value, str) else ""
    return not s or s in ("?", "UNKNOWN")


def is_valid_image_url(value: Any) -> bool:
    # Only echo URLs we can safely hand to an <img> tag
    return isinstance(value, str) and value.startswith(("http://", "https://", "data:image"))


def normalize_text(value: Optional[str]) -> str:
    if not value:
        return ""
    return _NON_ALNUM.sub(" ", value.lower()).strip()
