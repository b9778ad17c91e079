"""Tests for render_with_highlights(): the full render pipeline."""

from __future__ import annotations

from selectolax.lexbor import LexborHTMLParser

from marginalia.engine import STALE_NOTICE, CommentStatus, render_with_highlights
from marginalia.focus import FocusCoordinator
from marginalia.projection.plain_text import project_plain_text
from marginalia.projection.selection import (
    Selection,
    SelectionPoint,
    capture_selection,
)

ALPHA = "<p>Alpha Beta Gamma</p>"


class TestEndToEnd:
    """Select, persist, render, focus."""

    def test_alpha_beta_gamma(self, annotation_factory, config) -> None:
        projection = project_plain_text(ALPHA)
        candidate = capture_selection(
            projection.position_map,
            Selection(SelectionPoint(0, 6), SelectionPoint(0, 10)),
        )
        assert (candidate.start, candidate.end, candidate.text) == (6, 10, "Beta")

        annotation = annotation_factory("c1", candidate.start, candidate.end, "Beta")
        result = render_with_highlights(ALPHA, [annotation], config=config)

        tree = LexborHTMLParser(result.markup)
        wrappers = tree.css("span.selection-highlight")
        assert [w.text() for w in wrappers] == ["Beta"]
        assert tree.body.text() == "Alpha Beta Gamma"

        focus = FocusCoordinator()
        focus.bind(result.placements)
        key = wrappers[0].attributes["data-highlight-key"]
        (annotation_id,) = focus.annotations_for(key)
        focus.on_highlight_activated(annotation_id)
        assert focus.focused_id == "c1"


class TestStatuses:
    """Every top-level annotation is listed with its outcome."""

    def test_stale_listed_without_highlight(self, annotation_factory, config) -> None:
        annotations = [
            annotation_factory("live", 0, 5, "Alpha"),
            annotation_factory("gone", 6, 12, "Zebras", minutes=1),
        ]
        result = render_with_highlights(ALPHA, annotations, config=config)

        view = result.comment("gone")
        assert view is not None
        assert view.status is CommentStatus.STALE
        assert view.notice == STALE_NOTICE
        assert not view.has_highlight
        assert result.stale == ["gone"]
        assert result.render_failures == []
        assert "gone" not in result.markup
        assert result.comment("live").status is CommentStatus.ANCHORED

    def test_corrected_anchor(self, annotation_factory, config) -> None:
        markup = "<p>Once upon a time. The quick brown fox</p>"
        annotation = annotation_factory("c1", 4, 9, "quick")
        result = render_with_highlights(markup, [annotation], config=config)

        view = result.comment("c1")
        assert view.status is CommentStatus.CORRECTED
        assert (view.start, view.end) == (22, 27)
        wrapper = LexborHTMLParser(result.markup).css_first(
            "span.selection-highlight"
        )
        assert wrapper.text() == "quick"
        assert annotation.anchor.start == 4

    def test_unanchored_comment(self, annotation_factory, config) -> None:
        result = render_with_highlights(
            ALPHA, [annotation_factory("general")], config=config
        )
        assert result.markup == ALPHA
        assert result.comment("general").status is CommentStatus.UNANCHORED
        assert result.comment("general").notice is None

    def test_replies_ignored(self, annotation_factory, config) -> None:
        annotations = [
            annotation_factory("c1", 6, 10, "Beta"),
            annotation_factory("r1", parent_id="c1", minutes=1),
        ]
        result = render_with_highlights(ALPHA, annotations, config=config)
        assert [v.annotation.id for v in result.comments] == ["c1"]
        assert result.markup.count("selection-highlight") == 1

    def test_render_failure_scoped(self, annotation_factory, config) -> None:
        markup = "<p>one<br>two and three</p>"
        annotations = [
            annotation_factory("gap", 3, 4, "\n"),
            annotation_factory("ok", 4, 7, "two", minutes=1),
        ]
        result = render_with_highlights(markup, annotations, config=config)
        assert result.render_failures == ["gap"]
        assert result.comment("gap").status is CommentStatus.RENDER_FAILED
        assert result.comment("ok").has_highlight
        assert result.placements == {"ok": result.comment("ok").highlight_keys}


class TestOrdering:
    def test_comment_list_order(self, annotation_factory, config) -> None:
        annotations = [
            annotation_factory("general", minutes=0),
            annotation_factory("gamma", 11, 16, "Gamma", minutes=1),
            annotation_factory("stale", 0, 5, "Zulu", minutes=2),
            annotation_factory("alpha", 0, 5, "Alpha", minutes=3),
            annotation_factory("alpha-2", 0, 5, "Alpha", minutes=4),
        ]
        result = render_with_highlights(ALPHA, annotations, config=config)
        assert [v.annotation.id for v in result.comments] == [
            "alpha",
            "alpha-2",
            "gamma",
            "stale",
            "general",
        ]

    def test_overlapping_annotations_share_wrapper(
        self, annotation_factory, config
    ) -> None:
        annotations = [
            annotation_factory("a", 6, 10, "Beta"),
            annotation_factory("b", 6, 10, "Beta", minutes=1),
        ]
        result = render_with_highlights(ALPHA, annotations, config=config)
        assert len(result.ranges) == 1
        assert result.ranges[0].annotation_ids == ("a", "b")
        assert result.comment("a").highlight_keys == result.comment(
            "b"
        ).highlight_keys


class TestOriginalMarkup:
    """Highlighting always starts from the stored original."""

    def test_render_is_repeatable(self, annotation_factory, config) -> None:
        annotations = [annotation_factory("c1", 6, 10, "Beta")]
        first = render_with_highlights(ALPHA, annotations, config=config)
        second = render_with_highlights(ALPHA, annotations, config=config)
        assert first.markup == second.markup
        assert first.markup.count("<span") == 1

    def test_new_ids_flag_wrapper(self, annotation_factory, config) -> None:
        annotations = [annotation_factory("c1", 6, 10, "Beta")]
        result = render_with_highlights(
            ALPHA, annotations, new_ids={"c1"}, config=config
        )
        assert 'data-new="true"' in result.markup

    def test_character_references_survive(self, annotation_factory, config) -> None:
        markup = "<p>Don&#39;t stop. Alpha Beta</p>"
        annotations = [annotation_factory("c1", 18, 22, "Beta")]
        result = render_with_highlights(markup, annotations, config=config)

        assert result.render_failures == []
        assert result.comment("c1").status is CommentStatus.ANCHORED
        assert result.markup.startswith("<p>Don&#39;t stop. Alpha <span")

    def test_full_document_highlights_body_only(
        self, annotation_factory, config
    ) -> None:
        markup = (
            "<html><head><title>Beta</title></head>"
            "<body><p>Beta</p></body></html>"
        )
        annotations = [annotation_factory("c1", 0, 4, "Beta")]
        result = render_with_highlights(markup, annotations, config=config)

        assert result.render_failures == []
        assert "<title>Beta</title>" in result.markup
        wrapper = LexborHTMLParser(result.markup).css_first("p > span")
        assert wrapper is not None
        assert wrapper.text() == "Beta"
