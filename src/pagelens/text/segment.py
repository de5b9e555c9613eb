"""Sentence segmentation and token helpers.

Shared by the frequency scorer, the summary composer and the QA matcher.
All functions are pure.
"""

from __future__ import annotations

import re
from typing import List

# Whitespace runs collapse to one space
WHITESPACE_PATTERN = re.compile(r"\s+")

# Boundary: whitespace preceded by sentence-ending punctuation
SENTENCE_BOUNDARY_PATTERN = re.compile(r"(?<=[.!?])\s+")

# Anything that is not a lower-case letter, digit or whitespace
NON_ALNUM_PATTERN = re.compile(r"[^a-z0-9\s]")


def normalize_whitespace(text: str) -> str:
    """Collapse every whitespace run to a single space."""
    return WHITESPACE_PATTERN.sub(" ", text or "")


def split_sentences(text: str) -> List[str]:
    """Split text into trimmed sentences.

    Punctuation stays attached to the sentence it ends. Text without
    sentence punctuation comes back as a single sentence; blank text as an
    empty list.
    """
    normalized = normalize_whitespace(text)
    pieces = SENTENCE_BOUNDARY_PATTERN.split(normalized)
    return [p.strip() for p in pieces if p and p.strip()]


def clean_tokens(text: str) -> List[str]:
    """Lower-case, strip non-alphanumerics, split on whitespace."""
    cleaned = NON_ALNUM_PATTERN.sub("", (text or "").lower())
    return cleaned.split()


def word_count(sentence: str) -> int:
    """Number of space-separated pieces in an already normalized sentence."""
    return len(sentence.split(" "))
