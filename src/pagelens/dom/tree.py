"""Minimal document tree standing in for a rendered page.

Only what the page agent needs: document-order text traversal, class and
id lookup, child splicing, text normalization, and HTML in/out.
"""

from __future__ import annotations

import html
from html.parser import HTMLParser
from typing import Dict, Iterator, List, Optional

VOID_TAGS = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input",
        "link", "meta", "source", "track", "wbr",
    }
)

# Elements that may stay inside <head>; anything else implies </head>.
HEAD_TAGS = frozenset(
    {"base", "link", "meta", "noscript", "script", "style", "template", "title"}
)

BLOCK_TAGS = frozenset(
    {
        "address", "article", "aside", "blockquote", "body", "dd", "div",
        "dl", "dt", "fieldset", "figcaption", "figure", "footer", "form",
        "h1", "h2", "h3", "h4", "h5", "h6", "header", "hr", "li", "main",
        "nav", "ol", "p", "pre", "section", "table", "tr", "ul",
    }
)

# Never rendered, so never part of inner_text
HIDDEN_TAGS = frozenset({"head", "script", "style", "template", "noscript"})


class Node:
    """Base class for tree nodes."""

    def __init__(self) -> None:
        self.parent: Optional["Element"] = None

    @property
    def text_content(self) -> str:
        raise NotImplementedError

    def to_html(self) -> str:
        raise NotImplementedError


class TextNode(Node):
    """A run of character data."""

    def __init__(self, text: str = "") -> None:
        super().__init__()
        self.text = text

    @property
    def text_content(self) -> str:
        return self.text

    def to_html(self) -> str:
        if self.parent is not None and self.parent.tag in ("script", "style"):
            return self.text
        return html.escape(self.text, quote=False)

    def __repr__(self) -> str:
        return f"TextNode({self.text!r})"


class Element(Node):
    """An element with attributes and ordered children."""

    def __init__(
        self,
        tag: str,
        attrs: Optional[Dict[str, str]] = None,
        children: Optional[List[Node]] = None,
    ) -> None:
        super().__init__()
        self.tag = tag.lower()
        self.attrs: Dict[str, str] = dict(attrs or {})
        self.children: List[Node] = []
        for child in children or []:
            self.append_child(child)

    def __repr__(self) -> str:
        return f"Element({self.tag!r}, {self.attrs!r}, {len(self.children)} children)"

    # ── Attributes ───────────────────────────────────────────────

    @property
    def id(self) -> str:
        return self.attrs.get("id", "")

    @property
    def class_list(self) -> List[str]:
        return self.attrs.get("class", "").split()

    def has_class(self, name: str) -> bool:
        return name in self.class_list

    # ── Children ─────────────────────────────────────────────────

    def _adopt(self, node: Node) -> None:
        if node.parent is not None:
            node.parent.remove_child(node)
        node.parent = self

    def append_child(self, node: Node) -> Node:
        self._adopt(node)
        self.children.append(node)
        return node

    def insert_before(self, node: Node, reference: Optional[Node]) -> Node:
        """Insert ``node`` before ``reference``; append when reference is None."""
        if reference is None:
            return self.append_child(node)
        if reference.parent is not self:
            raise ValueError("reference node is not a child of this element")
        self._adopt(node)
        self.children.insert(self.children.index(reference), node)
        return node

    def remove_child(self, node: Node) -> Node:
        if node.parent is not self:
            raise ValueError("node is not a child of this element")
        self.children.remove(node)
        node.parent = None
        return node

    def replace_child(self, new: Node, old: Node) -> Node:
        self.insert_before(new, old)
        return self.remove_child(old)

    def remove(self) -> None:
        """Detach this element from its parent, if any."""
        if self.parent is not None:
            self.parent.remove_child(self)

    # ── Traversal ────────────────────────────────────────────────

    def iter_descendants(self) -> Iterator[Node]:
        """Yield descendants in document order."""
        for child in self.children:
            yield child
            if isinstance(child, Element):
                yield from child.iter_descendants()

    def text_nodes(self) -> List[TextNode]:
        return [n for n in self.iter_descendants() if isinstance(n, TextNode)]

    def get_elements_by_class(self, name: str) -> List["Element"]:
        return [
            n for n in self.iter_descendants()
            if isinstance(n, Element) and n.has_class(name)
        ]

    def get_element_by_id(self, element_id: str) -> Optional["Element"]:
        for n in self.iter_descendants():
            if isinstance(n, Element) and n.id == element_id:
                return n
        return None

    def contains(self, node: Optional[Node]) -> bool:
        """True when ``node`` is this element or one of its descendants."""
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False

    # ── Text ─────────────────────────────────────────────────────

    @property
    def text_content(self) -> str:
        return "".join(n.text for n in self.text_nodes())

    def normalize(self) -> None:
        """Merge adjacent text nodes and drop empty ones, recursively."""
        merged: List[Node] = []
        for child in self.children:
            if isinstance(child, TextNode):
                if not child.text:
                    child.parent = None
                    continue
                if merged and isinstance(merged[-1], TextNode):
                    merged[-1].text += child.text
                    child.parent = None
                    continue
            elif isinstance(child, Element):
                child.normalize()
            merged.append(child)
        self.children = merged

    def to_html(self) -> str:
        attrs = "".join(
            f' {k}="{html.escape(v, quote=True)}"' for k, v in self.attrs.items()
        )
        if self.tag in VOID_TAGS:
            return f"<{self.tag}{attrs}>"
        inner = "".join(c.to_html() for c in self.children)
        return f"<{self.tag}{attrs}>{inner}</{self.tag}>"


class Document:
    """A page: an ``html`` root holding ``head`` and ``body``."""

    def __init__(self, body: Optional[Element] = None, head: Optional[Element] = None) -> None:
        self.root = Element("html")
        self.head = self.root.append_child(head or Element("head"))
        self.body = self.root.append_child(body or Element("body"))

    def text_nodes(self) -> List[TextNode]:
        """Text nodes of the body in document order."""
        return self.body.text_nodes()

    def get_elements_by_class(self, name: str) -> List[Element]:
        return self.root.get_elements_by_class(name)

    def get_element_by_id(self, element_id: str) -> Optional[Element]:
        return self.root.get_element_by_id(element_id)

    def contains(self, node: Optional[Node]) -> bool:
        return self.root.contains(node)

    @property
    def text_content(self) -> str:
        return self.body.text_content

    @property
    def inner_text(self) -> str:
        """Rendered-text approximation: block boundaries become newlines."""
        parts: List[str] = []
        _collect_inner_text(self.body, parts)
        lines = [line.strip() for line in "".join(parts).split("\n")]
        return "\n".join(line for line in lines if line)

    def to_html(self) -> str:
        return "<!DOCTYPE html>" + self.root.to_html()


def _collect_inner_text(element: Element, parts: List[str]) -> None:
    if element.tag in HIDDEN_TAGS:
        return
    if element.tag == "br":
        parts.append("\n")
        return
    block = element.tag in BLOCK_TAGS
    if block:
        parts.append("\n")
    for child in element.children:
        if isinstance(child, TextNode):
            parts.append(child.text)
        elif isinstance(child, Element):
            _collect_inner_text(child, parts)
    if block:
        parts.append("\n")


class _TreeBuilder(HTMLParser):
    """Builds a :class:`Document` from markup."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.document = Document()
        self._stack: List[Element] = [self.document.body]

    @property
    def _current(self) -> Element:
        return self._stack[-1]

    def _leave_head(self) -> None:
        if self._current is self.document.head:
            self._stack[:] = [self.document.body]

    def handle_starttag(self, tag, attrs):
        attributes = {k: (v if v is not None else "") for k, v in attrs}
        if tag == "html":
            return
        if tag == "body":
            self._leave_head()
            self.document.body.attrs.update(attributes)
            return
        if tag == "head":
            self._stack.append(self.document.head)
            return
        if tag not in HEAD_TAGS:
            self._leave_head()
        element = Element(tag, attributes)
        self._current.append_child(element)
        if tag not in VOID_TAGS:
            self._stack.append(element)

    def handle_startendtag(self, tag, attrs):
        attributes = {k: (v if v is not None else "") for k, v in attrs}
        if tag not in HEAD_TAGS:
            self._leave_head()
        self._current.append_child(Element(tag, attributes))

    def handle_endtag(self, tag):
        if tag in ("html", "body") or tag in VOID_TAGS:
            return
        # pop to the nearest matching open element; stray end tags are ignored
        for i in range(len(self._stack) - 1, 0, -1):
            if self._stack[i].tag == tag:
                del self._stack[i:]
                return

    def handle_data(self, data):
        if not data:
            return
        if data.strip():
            self._leave_head()
        children = self._current.children
        if children and isinstance(children[-1], TextNode):
            children[-1].text += data
        else:
            self._current.append_child(TextNode(data))


def parse_html(markup: str) -> Document:
    """Parse HTML into a :class:`Document`."""
    builder = _TreeBuilder()
    builder.feed(markup or "")
    builder.close()
    return builder.document


def document_from_text(text: str) -> Document:
    """Wrap plain text as one paragraph per non-blank line."""
    body = Element("body")
    for line in (text or "").splitlines():
        if line.strip():
            body.append_child(Element("p", children=[TextNode(line.strip())]))
    return Document(body=body)
