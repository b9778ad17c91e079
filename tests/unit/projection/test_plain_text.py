"""Tests for project_plain_text() and the PositionMap it builds.

The projection must be deterministic and must agree with the markup it came
from: every text node's recorded offset points at that node's text.
"""

from __future__ import annotations

from marginalia.projection.plain_text import (
    collapsed_to_html_offset,
    decoded_to_collapsed_offset,
    extract_text_from_html,
    project_plain_text,
)

FORMATTED = "<p>Alpha <b>Beta</b> Gamma</p>"


class TestPlainText:
    """Plain-text stream rules."""

    def test_simple_paragraph(self) -> None:
        assert project_plain_text("<p>Alpha Beta Gamma</p>").plain_text == (
            "Alpha Beta Gamma"
        )

    def test_inline_formatting_is_flattened(self) -> None:
        assert project_plain_text(FORMATTED).plain_text == "Alpha Beta Gamma"

    def test_empty_markup(self) -> None:
        projection = project_plain_text("")
        assert projection.plain_text == ""
        assert projection.position_map.nodes == ()

    def test_br_becomes_newline(self) -> None:
        assert extract_text_from_html("<p>one<br>two</p>") == "one\ntwo"

    def test_whitespace_runs_collapse(self) -> None:
        assert extract_text_from_html("<p>a  \n\t b</p>") == "a b"

    def test_nbsp_collapses_to_space(self) -> None:
        assert extract_text_from_html("<p>a&nbsp;b</p>") == "a b"

    def test_script_and_style_skipped(self) -> None:
        html = "<p>keep</p><script>var x = 1;</script><style>p{}</style>"
        assert extract_text_from_html(html) == "keep"

    def test_block_indentation_skipped(self) -> None:
        html = "<div>\n  <p>A</p>\n  <p>B</p>\n</div>"
        assert extract_text_from_html(html) == "AB"

    def test_entities_decoded(self) -> None:
        assert extract_text_from_html("<p>Tom &amp; Jerry</p>") == "Tom & Jerry"


class TestPositionMap:
    """Offset table entries and lookups."""

    def test_one_entry_per_text_node(self) -> None:
        nodes = project_plain_text(FORMATTED).position_map.nodes
        assert [n.collapsed_text for n in nodes] == ["Alpha ", "Beta", " Gamma"]
        assert [(n.char_start, n.char_end) for n in nodes] == [
            (0, 6),
            (6, 10),
            (10, 16),
        ]
        assert [n.node_index for n in nodes] == [0, 1, 2]

    def test_nodes_point_into_markup(self) -> None:
        nodes = project_plain_text(FORMATTED).position_map.nodes
        for node in nodes:
            assert node.located
            assert FORMATTED[node.html_start : node.html_end] == node.html_text
        assert nodes[1].html_start == FORMATTED.index("Beta")

    def test_text_matching_tag_name_is_not_found_inside_tag(self) -> None:
        """A text node "p" must not be located inside ``<p>``."""
        markup = "<p>p</p>"
        (node,) = project_plain_text(markup).position_map.nodes
        assert node.html_start == 3

    def test_text_matching_attribute_is_skipped(self) -> None:
        markup = '<p title="Beta">Beta</p>'
        (node,) = project_plain_text(markup).position_map.nodes
        assert node.html_start == markup.index(">Beta") + 1

    def test_text_inside_script_not_matched(self) -> None:
        markup = "<script>var Alpha;</script><p>Alpha</p>"
        (node,) = project_plain_text(markup).position_map.nodes
        assert node.html_start == markup.index("<p>") + 3

    def test_numeric_reference_located_as_written(self) -> None:
        markup = "<p>Don&#39;t stop.</p>"
        (node,) = project_plain_text(markup).position_map.nodes
        assert node.located
        assert node.html_start == 3
        assert node.html_text == "Don&#39;t stop."

    def test_reference_not_bound_to_later_literal_text(self) -> None:
        markup = "<p>Don&#39;t stop.</p><p>Don't stop.</p>"
        first, second = project_plain_text(markup).position_map.nodes
        assert first.html_start == 3
        assert second.html_start == markup.index("<p>Don't") + 3
        assert second.html_text == "Don't stop."

    def test_head_text_not_matched(self) -> None:
        markup = (
            "<html><head><title>Beta</title></head>"
            "<body><p>Beta</p></body></html>"
        )
        (node,) = project_plain_text(markup).position_map.nodes
        assert node.html_start == markup.index("<p>Beta") + 3

    def test_locate_inside_and_at_end(self) -> None:
        position_map = project_plain_text(FORMATTED).position_map
        node, intra = position_map.locate(7)
        assert node.collapsed_text == "Beta"
        assert intra == 1
        node, intra = position_map.locate(16)
        assert node.collapsed_text == " Gamma"
        assert intra == 6

    def test_locate_boundary_prefers_following_node(self) -> None:
        node, intra = project_plain_text(FORMATTED).position_map.locate(6)
        assert node.collapsed_text == "Beta"
        assert intra == 0

    def test_locate_gap_returns_none(self) -> None:
        position_map = project_plain_text("<p>one<br>two</p>").position_map
        assert position_map.locate(4) is not None
        assert position_map.locate(-1) is None
        assert position_map.locate(99) is None

    def test_nodes_between(self) -> None:
        position_map = project_plain_text(FORMATTED).position_map
        texts = [n.collapsed_text for n in position_map.nodes_between(4, 12)]
        assert texts == ["Alpha ", "Beta", " Gamma"]
        assert position_map.nodes_between(6, 10)[0].collapsed_text == "Beta"
        assert position_map.nodes_between(5, 5) == []


class TestDeterminism:
    """Projecting the same markup twice gives identical results."""

    def test_same_markup_same_projection(self) -> None:
        markup = (
            "<h1>Title</h1><div>\n <p>First &amp; <em>second</em></p>"
            "<ul><li>one</li><li>two<br>three</li></ul></div>"
        )
        first = project_plain_text(markup)
        second = project_plain_text(markup)
        assert first.plain_text == second.plain_text
        assert first.position_map.nodes == second.position_map.nodes
        assert first == second


class TestOffsetHelpers:
    """Collapsed/decoded/HTML offset conversions."""

    def test_collapsed_to_html_plain(self) -> None:
        assert collapsed_to_html_offset("hello", "hello", 3) == 3

    def test_collapsed_to_html_entity(self) -> None:
        # "Tom & Jerry": offset 6 is "J", after "&amp; "
        assert collapsed_to_html_offset("Tom &amp; Jerry", "Tom & Jerry", 6) == 10

    def test_collapsed_to_html_whitespace_run(self) -> None:
        assert collapsed_to_html_offset("a   b", "a   b", 2) == 2

    def test_collapsed_to_html_zero(self) -> None:
        assert collapsed_to_html_offset("abc", "abc", 0) == 0

    def test_decoded_to_collapsed(self) -> None:
        assert decoded_to_collapsed_offset("Alpha   Beta", 8) == 6
        assert decoded_to_collapsed_offset("Alpha   Beta", 12) == 10
        assert decoded_to_collapsed_offset("Alpha", 0) == 0

    def test_collapsed_to_html_named_reference(self) -> None:
        assert collapsed_to_html_offset("Don&rsquo;t", "Don\u2019t", 4) == 10

    def test_collapsed_to_html_bare_ampersand(self) -> None:
        # "&T;" is not a character reference; "&amp;" is
        assert collapsed_to_html_offset("AT&T; &amp; x", "AT&T; & x", 8) == 12
