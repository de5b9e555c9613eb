"""Bullet/highlight composition and the summary wire format.

Wire format (produced and parsed byte-for-byte)::

    - first bullet
    - second bullet

    ===HIGHLIGHTS===
    first highlight sentence
    second highlight sentence

Model tiers are asked to answer in this shape, so the same parser handles
local and model-produced summaries.
"""

from __future__ import annotations

import re
from typing import List, Sequence, Tuple

from pagelens.analysis.scorer import (
    DEFAULT_MAX_BULLETS,
    ScoredSentence,
    rank_sentences,
    select_bullets,
)
from pagelens.text.segment import split_sentences, word_count
from pagelens.types import MAX_BULLETS, MAX_HIGHLIGHTS, SourceTier, SummaryResult

HIGHLIGHTS_DELIMITER = "===HIGHLIGHTS==="
BULLET_PREFIX = "- "

DEFAULT_MAX_HIGHLIGHTS = 4

# Highlights shorter than this are treated as fragments
MIN_HIGHLIGHT_WORDS = 6

# Display fallback when a model reply carries no bullet lines
RAW_PREVIEW_CHARS = 500

_LINE_SPLIT = re.compile(r"\n|\r")
_LEADING_DASH = re.compile(r"^[-\s]*")


def select_highlights(
    ranked: Sequence[ScoredSentence],
    bullets: Sequence[str],
    max_highlights: int = DEFAULT_MAX_HIGHLIGHTS,
) -> List[str]:
    """Pick highlight sentences, preferring ones not already used as bullets.

    When fewer than ``min(max_highlights, len(bullets))`` distinct candidates
    exist, bullets are repeated to reach that floor.
    """
    highlights: List[str] = []
    for item in ranked:
        if len(highlights) >= max_highlights:
            break
        if item.text in bullets:
            continue
        if word_count(item.text) < MIN_HIGHLIGHT_WORDS:
            continue
        highlights.append(item.text)

    floor = min(max_highlights, len(bullets))
    while len(highlights) < floor:
        highlights.append(bullets[len(highlights)] if len(highlights) < len(bullets) else "")
    return highlights


def format_summary(bullets: Sequence[str], highlights: Sequence[str]) -> str:
    """Render bullets and highlights in the wire format."""
    bullets_text = "\n".join(f"{BULLET_PREFIX}{b}" for b in bullets)
    highlights_text = "\n".join(highlights)
    return f"{bullets_text}\n\n{HIGHLIGHTS_DELIMITER}\n{highlights_text}"


def parse_summary(raw: str) -> Tuple[List[str], List[str]]:
    """Recover bullets and highlights from wire-format text.

    Bullet lines lose their leading dash; blank lines are dropped. If the
    text has no bullet lines at all, a preview of the raw text stands in as
    the only bullet.
    """
    raw = str(raw or "")
    bullets_part, _, highlights_part = raw.partition(HIGHLIGHTS_DELIMITER)

    bullets = [
        _LEADING_DASH.sub("", line).strip()
        for line in _LINE_SPLIT.split(bullets_part)
    ]
    bullets = [b for b in bullets if b][:MAX_BULLETS]

    highlights = [line.strip() for line in _LINE_SPLIT.split(highlights_part)]
    highlights = [h for h in highlights if h][:MAX_HIGHLIGHTS]

    if not bullets and raw.strip():
        bullets = [raw[:RAW_PREVIEW_CHARS]]
    return bullets, highlights


def extractive_summary(
    text: str,
    max_bullets: int = DEFAULT_MAX_BULLETS,
    max_highlights: int = DEFAULT_MAX_HIGHLIGHTS,
    source_tier: SourceTier = SourceTier.EXTRACTIVE_FALLBACK,
) -> SummaryResult:
    """Summarize text locally. Blank text yields an empty result."""
    max_bullets = min(int(max_bullets), MAX_BULLETS)
    max_highlights = min(int(max_highlights), MAX_HIGHLIGHTS)

    sentences = split_sentences(text) if text and text.strip() else []
    if not sentences:
        return SummaryResult(bullets=[], highlights=[], raw_text="", source_tier=source_tier)

    ranked = rank_sentences(sentences)
    bullets = select_bullets(ranked, max_bullets)
    highlights = select_highlights(ranked, bullets, max_highlights)
    return SummaryResult(
        bullets=bullets,
        highlights=highlights,
        raw_text=format_summary(bullets, highlights),
        source_tier=source_tier,
    )
