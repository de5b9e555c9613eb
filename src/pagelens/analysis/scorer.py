"""Term-frequency sentence scoring.

A sentence scores the sum of the global frequencies of its tokens, so
sentences sharing vocabulary with many others rank higher. Length and
position play no part; ties keep original order.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Sequence

from pagelens.text.segment import clean_tokens

STOPWORDS: FrozenSet[str] = frozenset(
    {
        "the", "and", "is", "in", "to", "of", "a", "that", "it", "for",
        "on", "with", "as", "are", "was", "by", "an", "be", "this", "or",
        "from", "at", "which", "you",
    }
)

DEFAULT_MAX_BULLETS = 4


@dataclass(frozen=True)
class ScoredSentence:
    """A sentence, its score and its position in the source text."""

    text: str
    score: int
    index: int


def build_frequencies(sentences: Iterable[str]) -> Dict[str, int]:
    """Count non-stopword tokens across all sentences."""
    freqs: Counter = Counter()
    for sentence in sentences:
        freqs.update(w for w in clean_tokens(sentence) if w not in STOPWORDS)
    return dict(freqs)


def score_sentences(sentences: Sequence[str]) -> List[ScoredSentence]:
    """Score sentences in original order."""
    freqs = build_frequencies(sentences)
    return [
        ScoredSentence(
            text=sentence,
            score=sum(freqs.get(w, 0) for w in clean_tokens(sentence)),
            index=i,
        )
        for i, sentence in enumerate(sentences)
    ]


def rank_sentences(sentences: Sequence[str]) -> List[ScoredSentence]:
    """Score and sort descending; ``sorted`` is stable so ties keep order."""
    return sorted(score_sentences(sentences), key=lambda s: s.score, reverse=True)


def select_bullets(
    ranked: Sequence[ScoredSentence],
    max_bullets: int = DEFAULT_MAX_BULLETS,
) -> List[str]:
    """Top ``max_bullets`` sentence texts from a ranked list."""
    return [s.text for s in ranked[: max(0, int(max_bullets))]]
