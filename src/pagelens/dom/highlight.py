"""Evidence highlighting on a document tree.

``highlight_sentences`` wraps the first occurrence of each target sentence
in a marker ``span``; ``remove_highlights`` unwraps every marker and merges
the split text back together. Injecting then removing leaves the document
text unchanged whenever the targets were present verbatim.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from pagelens.dom.tree import Document, Element, TextNode

logger = logging.getLogger(__name__)

HIGHLIGHT_CLASS = "pagelens-highlight"
HIGHLIGHT_STYLE = "background: yellow; border-radius: 3px"
HIGHLIGHT_CSS = f".{HIGHLIGHT_CLASS}{{background:yellow;padding:2px;border-radius:3px}}"

Worklist = Tuple[str, ...]


def make_worklist(sentences: Iterable[str]) -> Worklist:
    """Trimmed, non-empty, distinct targets in input order."""
    seen: List[str] = []
    for sentence in sentences:
        s = (sentence or "").strip()
        if s and s not in seen:
            seen.append(s)
    return tuple(seen)


def highlight_limit(sentences: Sequence[str]) -> int:
    """Traversal stops once this many highlights are applied.

    The limit is the length of the caller's input, duplicates and blanks
    included, not the size of the remaining worklist.
    """
    return len(sentences)


def _make_marker(sentence: str) -> Element:
    return Element(
        "span",
        {"class": HIGHLIGHT_CLASS, "style": HIGHLIGHT_STYLE},
        [TextNode(sentence)],
    )


def apply_to_node(node: TextNode, worklist: Worklist) -> Tuple[int, Worklist]:
    """Highlight at most one worklist sentence inside ``node``.

    Returns the number applied (0 or 1) and the worklist that remains.
    """
    parent = node.parent
    if parent is None:
        return 0, worklist

    text = node.text
    for i, sentence in enumerate(worklist):
        idx = text.find(sentence)
        if idx == -1:
            continue
        before = TextNode(text[:idx])
        after = TextNode(text[idx + len(sentence):])
        parent.insert_before(before, node)
        parent.insert_before(_make_marker(sentence), node)
        parent.insert_before(after, node)
        parent.remove_child(node)
        return 1, worklist[:i] + worklist[i + 1:]
    return 0, worklist


def remove_highlights(document: Document, markers: Optional[Sequence[Element]] = None) -> int:
    """Unwrap highlight markers; returns how many were removed.

    ``markers`` defaults to every marker currently in the document. Markers
    whose parent is no longer attached to the document are skipped.
    """
    if markers is None:
        markers = document.get_elements_by_class(HIGHLIGHT_CLASS)

    removed = 0
    for marker in markers:
        parent = marker.parent
        if parent is None or not document.contains(parent):
            logger.debug("[Highlight] Skipping detached marker")
            continue
        parent.replace_child(TextNode(marker.text_content), marker)
        parent.normalize()
        removed += 1

    if removed:
        logger.debug("[Highlight] Removed %d highlight(s)", removed)
    return removed


def highlight_sentences(document: Document, sentences: Sequence[str]) -> int:
    """Mark target sentences in the document; returns how many were applied.

    Existing markers are removed first so repeated calls never double-wrap.
    Matching is exact and case-sensitive; sentences not found verbatim in a
    single text node are skipped without error.
    """
    remove_highlights(document)

    sentences = list(sentences or [])
    limit = highlight_limit(sentences)
    worklist = make_worklist(sentences)

    applied = 0
    # snapshot: nodes created by splitting are not revisited
    for node in document.text_nodes():
        if applied >= limit or not worklist:
            break
        matched, worklist = apply_to_node(node, worklist)
        applied += matched

    if worklist:
        logger.debug("[Highlight] %d sentence(s) not found in document", len(worklist))
    logger.info("[Highlight] Applied %d/%d highlight(s)", applied, limit)
    return applied
