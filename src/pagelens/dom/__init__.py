"""Document tree and highlight injection for pagelens."""

from pagelens.dom.highlight import (
    HIGHLIGHT_CLASS,
    apply_to_node,
    highlight_sentences,
    make_worklist,
    remove_highlights,
)
from pagelens.dom.tree import (
    Document,
    Element,
    Node,
    TextNode,
    document_from_text,
    parse_html,
)

__all__ = [
    "HIGHLIGHT_CLASS",
    "Document",
    "Element",
    "Node",
    "TextNode",
    "apply_to_node",
    "document_from_text",
    "highlight_sentences",
    "make_worklist",
    "parse_html",
    "remove_highlights",
]
