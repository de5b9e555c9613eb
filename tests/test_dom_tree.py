"""Tests for the document tree."""

from pagelens.dom.tree import Document, Element, TextNode, document_from_text, parse_html


class TestParseHtml:

    def test_body_text_nodes_in_document_order(self):
        doc = parse_html("<html><body><p>One <b>two</b> three</p><div>four</div></body></html>")
        assert [n.text for n in doc.text_nodes()] == ["One ", "two", " three", "four"]

    def test_head_content_is_not_body_text(self):
        doc = parse_html("<html><head><title>Title</title></head><body><p>Body</p></body></html>")
        assert doc.text_content == "Body"
        assert doc.head.text_content == "Title"

    def test_omitted_head_end_tag(self):
        doc = parse_html("<html><head><title>T</title><body><p>Body sentence one here.</p></body></html>")
        assert doc.inner_text == "Body sentence one here."
        assert [c.tag for c in doc.head.children if isinstance(c, Element)] == ["title"]

    def test_body_content_without_body_tag_leaves_head(self):
        doc = parse_html("<head><meta charset='utf-8'><title>T</title><p>Straight into the page.</p>")
        assert doc.inner_text == "Straight into the page."
        assert [c.tag for c in doc.head.children if isinstance(c, Element)] == ["meta", "title"]

    def test_entities_are_decoded_and_reescaped(self):
        doc = parse_html("<p>Fish &amp; chips</p>")
        assert doc.text_content == "Fish & chips"
        assert "<p>Fish &amp; chips</p>" in doc.to_html()

    def test_void_tags_do_not_nest(self):
        doc = parse_html("<p>a<br>b</p><p>c</p>")
        paragraphs = [c for c in doc.body.children if isinstance(c, Element)]
        assert [p.tag for p in paragraphs] == ["p", "p"]

    def test_attributes_and_lookup(self):
        doc = parse_html('<div id="main" class="x y"><span class="y">hi</span></div>')
        main = doc.get_element_by_id("main")
        assert main is not None
        assert main.class_list == ["x", "y"]
        assert len(doc.get_elements_by_class("y")) == 2
        assert doc.get_element_by_id("missing") is None


class TestInnerText:

    def test_blocks_become_lines_and_hidden_tags_skipped(self):
        doc = parse_html(
            "<h1>Title</h1><p>First <i>para</i>.</p>"
            "<script>var x = 1;</script><style>p{}</style><div>Second.</div>"
        )
        assert doc.inner_text == "Title\nFirst para.\nSecond."

    def test_document_from_text(self):
        doc = document_from_text("Line one.\n\n  Line two.  \n")
        assert doc.inner_text == "Line one.\nLine two."
        assert len(doc.text_nodes()) == 2


class TestMutation:

    def test_insert_before_and_remove_child(self):
        parent = Element("p")
        a = parent.append_child(TextNode("a"))
        parent.insert_before(TextNode("b"), a)
        assert parent.text_content == "ba"
        parent.remove_child(a)
        assert parent.text_content == "b"
        assert a.parent is None

    def test_normalize_merges_and_drops_empty(self):
        parent = Element("p", children=[TextNode("a"), TextNode(""), TextNode("b"), Element("i", children=[TextNode("c")]), TextNode("d")])
        parent.normalize()
        assert [type(c).__name__ for c in parent.children] == ["TextNode", "Element", "TextNode"]
        assert parent.children[0].text == "ab"

    def test_contains_follows_parents(self):
        doc = Document()
        p = doc.body.append_child(Element("p"))
        orphan = Element("p")
        assert doc.contains(p)
        assert not doc.contains(orphan)
        p.remove()
        assert not doc.contains(p)
