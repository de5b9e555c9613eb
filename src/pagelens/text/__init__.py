"""Text segmentation package for pagelens."""

from pagelens.text.segment import (
    clean_tokens,
    normalize_whitespace,
    split_sentences,
    word_count,
)

__all__ = [
    "clean_tokens",
    "normalize_whitespace",
    "split_sentences",
    "word_count",
]
