"""Local extractive analysis: scoring, composition and question answering."""

from pagelens.analysis.composer import (
    HIGHLIGHTS_DELIMITER,
    extractive_summary,
    format_summary,
    parse_summary,
    select_highlights,
)
from pagelens.analysis.qa import NO_CONTENT_ANSWER, answer_question, best_sentence
from pagelens.analysis.scorer import (
    STOPWORDS,
    ScoredSentence,
    build_frequencies,
    rank_sentences,
    score_sentences,
    select_bullets,
)

__all__ = [
    "HIGHLIGHTS_DELIMITER",
    "NO_CONTENT_ANSWER",
    "STOPWORDS",
    "ScoredSentence",
    "answer_question",
    "best_sentence",
    "build_frequencies",
    "extractive_summary",
    "format_summary",
    "parse_summary",
    "rank_sentences",
    "score_sentences",
    "select_bullets",
    "select_highlights",
]
