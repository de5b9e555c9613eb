"""Keyword-overlap question answering over page sentences."""

from __future__ import annotations

from typing import List, Sequence

from pagelens.text.segment import clean_tokens, split_sentences, word_count
from pagelens.types import QAResult, SourceTier

NO_CONTENT_ANSWER = "No content to answer from."

# Question tokens this short or shorter carry no signal
MIN_QUESTION_TOKEN_LEN = 3

# Fallback answer prefers a sentence with more words than this
MIN_FALLBACK_WORDS = 6


def question_keywords(question: str) -> List[str]:
    """Tokens of the question long enough to be worth matching."""
    return [w for w in clean_tokens(question) if len(w) >= MIN_QUESTION_TOKEN_LEN]


def overlap_score(sentence: str, keywords: Sequence[str]) -> int:
    """Count keywords occurring anywhere in the sentence, inside words included."""
    lowered = sentence.lower()
    return sum(1 for w in keywords if w in lowered)


def best_sentence(sentences: Sequence[str], question: str) -> str:
    """Pick the sentence answering ``question``, or a sensible stand-in."""
    if not sentences:
        return NO_CONTENT_ANSWER

    keywords = question_keywords(question)
    best_index, best_score = 0, 0
    for i, sentence in enumerate(sentences):
        score = overlap_score(sentence, keywords)
        # strict comparison keeps the earliest sentence on ties
        if score > best_score:
            best_index, best_score = i, score

    if best_score > 0:
        return sentences[best_index]

    for sentence in sentences:
        if word_count(sentence) > MIN_FALLBACK_WORDS:
            return sentence
    return sentences[0]


def answer_question(page_text: str, question: str) -> QAResult:
    """Answer from page text without a model."""
    sentences = split_sentences(page_text)
    return QAResult(
        answer=best_sentence(sentences, question),
        source_tier=SourceTier.EXTRACTIVE_FALLBACK,
        fallback_used=True,
    )
