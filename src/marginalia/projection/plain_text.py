"""Plain-text projection of HTML markup.

Flattens stored post HTML into the character stream a reader sees, and
records where each text node's characters fall in that stream.  The
resulting ``PositionMap`` is the only bridge between plain-text offsets
(what anchors store) and byte positions in the serialized markup (where
highlight wrappers get inserted).

The walk must be identical on every pass over the same markup: capture
and every later render depend on agreeing about which character is which.
"""

# Pattern: Functional Core (pure functions over an immutable markup string)

from __future__ import annotations

import bisect
import html as html_module
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from selectolax.lexbor import LexborHTMLParser

logger = logging.getLogger(__name__)

# Subtrees that never contribute visible text
_STRIP_TAGS = frozenset(("script", "style", "noscript", "template", "title"))

# Block-level elements where whitespace-only text nodes are formatting artefacts
# (indentation between tags) and should be skipped.  Must match the client-side
# text walker for offset parity.
_BLOCK_TAGS = frozenset(
    (
        "table",
        "tbody",
        "thead",
        "tfoot",
        "tr",
        "td",
        "th",
        "ul",
        "ol",
        "li",
        "dl",
        "dt",
        "dd",
        "div",
        "section",
        "article",
        "aside",
        "header",
        "footer",
        "nav",
        "main",
        "figure",
        "figcaption",
        "blockquote",
    )
)

# Whitespace runs, nbsp included
_WHITESPACE_RUN = re.compile(r"[\s\u00a0]+")

# Spans of serialized markup that can never hold a walked text node:
# comments, whole strip-tag elements, and tags (attribute values may hold ">").
_NON_TEXT_REGION = re.compile(
    r"<!--.*?-->"
    r"|<(script|style|noscript|template|title)\b[^>]*>.*?</\1\s*>"
    r"|<(?:[^>\"']|\"[^\"]*\"|'[^']*')*>",
    re.IGNORECASE | re.DOTALL,
)

# Opening <body> tag; text before it belongs to <head>
_BODY_OPEN = re.compile(r"<body\b(?:[^>\"']|\"[^\"]*\"|'[^']*')*>", re.IGNORECASE)

# One character reference: named, decimal or hex, semicolon required
_CHAR_REF = re.compile(r"&(?:[A-Za-z][A-Za-z0-9]*|#[0-9]+|#[xX][0-9A-Fa-f]+);")


@dataclass(frozen=True)
class TextNodeInfo:
    """One text node's contribution to the plain-text stream.

    Attributes:
        node_index: Ordinal of the node in the projector's walk.  This is the
            node reference shared with selection boundaries.
        html_start: Offset of ``html_text`` in the serialized markup, or -1
            when it could not be located.
        html_text: The exact slice of the markup holding the text, character
            references as written in the source (e.g. ``"&amp;"``).
        decoded_text: Entity-decoded text, before whitespace collapsing.
        collapsed_text: Text as it appears in the plain-text stream.
        char_start: First plain-text offset (inclusive).
        char_end: Last plain-text offset (exclusive).
    """

    node_index: int
    html_start: int
    html_text: str
    decoded_text: str
    collapsed_text: str
    char_start: int
    char_end: int

    @property
    def located(self) -> bool:
        return self.html_start >= 0

    @property
    def html_end(self) -> int:
        return self.html_start + len(self.html_text)


@dataclass(frozen=True)
class PositionMap:
    """Offset table from plain-text positions to markup text nodes.

    Ephemeral: rebuilt from the markup on every render and never persisted.
    Offsets not covered by any node (``<br>`` newlines) are gaps.
    """

    plain_text: str
    nodes: tuple[TextNodeInfo, ...]
    document_id: str | None = None
    _starts: list[int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_starts", [n.char_start for n in self.nodes])

    def __len__(self) -> int:
        return len(self.plain_text)

    def node(self, node_index: int) -> TextNodeInfo | None:
        """Return the text node with ordinal *node_index*, if any."""
        if 0 <= node_index < len(self.nodes):
            return self.nodes[node_index]
        return None

    def locate(self, offset: int) -> tuple[TextNodeInfo, int] | None:
        """Map a plain-text offset to ``(node, intra-node offset)``.

        An offset equal to a node's ``char_end`` resolves to the end of that
        node only when no later node starts there.  Gap offsets return None.
        """
        if not self.nodes or offset < 0:
            return None
        i = bisect.bisect_right(self._starts, offset) - 1
        if i < 0:
            return None
        node = self.nodes[i]
        if offset <= node.char_end:
            return node, offset - node.char_start
        return None

    def nodes_between(self, start: int, end: int) -> list[TextNodeInfo]:
        """Return every text node overlapping the range ``[start, end)``."""
        if start >= end:
            return []
        first = max(bisect.bisect_right(self._starts, start) - 1, 0)
        found: list[TextNodeInfo] = []
        for node in self.nodes[first:]:
            if node.char_start >= end:
                break
            if node.char_end > start:
                found.append(node)
        return found


@dataclass(frozen=True)
class Projection:
    """Result of projecting markup: the plain text plus its position map."""

    plain_text: str
    position_map: PositionMap


@dataclass
class _WalkedNode:
    serialized: str
    decoded_text: str
    collapsed_text: str
    char_start: int
    char_end: int


def _is_indentation(node: Any, text: str) -> bool:
    """Whitespace-only text directly inside a block container."""
    parent = node.parent
    return (
        parent is not None
        and parent.tag in _BLOCK_TAGS
        and _WHITESPACE_RUN.fullmatch(text) is not None
    )


def _walk(html: str) -> tuple[list[str], list[_WalkedNode]]:
    """Pre-order walk over the parsed markup collecting characters and nodes."""
    if not html:
        return [], []

    tree = LexborHTMLParser(html)
    body = tree.body
    root = body if body else tree.root
    if root is None:
        return [], []

    chars: list[str] = []
    walked: list[_WalkedNode] = []

    def _visit(node: Any) -> None:
        tag = node.tag

        # selectolax reports text nodes with tag "-text"
        if tag == "-text":
            text = node.text_content
            if not text or _is_indentation(node, text):
                return
            collapsed = _WHITESPACE_RUN.sub(" ", text)
            start = len(chars)
            chars.extend(collapsed)
            walked.append(
                _WalkedNode(
                    serialized=node.html or text,
                    decoded_text=text,
                    collapsed_text=collapsed,
                    char_start=start,
                    char_end=len(chars),
                )
            )
            return

        if tag in _STRIP_TAGS:
            return

        if tag == "br":
            chars.append("\n")
            return

        child = node.child
        while child is not None:
            _visit(child)
            child = child.next

    child = root.child
    while child is not None:
        _visit(child)
        child = child.next

    return chars, walked


def _non_text_regions(html: str) -> tuple[list[int], list[int]]:
    starts: list[int] = []
    ends: list[int] = []
    for match in _NON_TEXT_REGION.finditer(html):
        starts.append(match.start())
        ends.append(match.end())
    return starts, ends


def _text_runs(
    html: str, regions: tuple[list[int], list[int]]
) -> list[tuple[int, int]]:
    """Return ``(start, end)`` of every stretch of markup between regions."""
    runs: list[tuple[int, int]] = []
    cursor = 0
    for start, end in zip(*regions, strict=True):
        if start > cursor:
            runs.append((cursor, start))
        cursor = max(cursor, end)
    if cursor < len(html):
        runs.append((cursor, len(html)))
    return runs


def _body_offset(html: str) -> int:
    """Offset just past the ``<body>`` open tag, or 0 for a fragment."""
    match = _BODY_OPEN.search(html)
    return match.end() if match else 0


def _find_in_text(
    html: str,
    needle: str,
    search_from: int,
    regions: tuple[list[int], list[int]],
) -> int:
    """Find *needle* at or after *search_from*, skipping tags and comments."""
    starts, ends = regions
    idx = html.find(needle, search_from)
    while idx != -1:
        # Last region starting before the match end must finish before the match
        i = bisect.bisect_left(starts, idx + len(needle)) - 1
        if i < 0 or ends[i] <= idx:
            return idx
        idx = html.find(needle, max(idx + 1, ends[i]))
    return -1


def _find_encoded(
    html: str,
    decoded_text: str,
    search_from: int,
    runs: list[tuple[int, int]],
    limit: int,
) -> tuple[int, str]:
    """Find a raw text run before *limit* that decodes to *decoded_text*.

    Covers character references the parser serializes differently from the
    source (``&#39;``, ``&rsquo;``, ``&eacute;`` ...).  Returns
    ``(offset, raw_text)`` or ``(-1, "")``.
    """
    i = bisect.bisect_right(runs, (search_from, len(html) + 1)) - 1
    for start, end in runs[max(i, 0) :]:
        if start >= limit:
            break
        if end <= search_from:
            continue
        start = max(start, search_from)
        raw = html[start:end]
        if html_module.unescape(raw) == decoded_text:
            return start, raw
    return -1, ""


def _locate_text_nodes(html: str, walked: list[_WalkedNode]) -> list[TextNodeInfo]:
    """Find each walked text node's offset in the serialized markup.

    Searches sequentially from the ``<body>`` open tag so matches follow
    document order and ``<head>`` text never captures a body node.  Three
    candidates are tried: the parser's serialization, the decoded text, and
    any raw text run that decodes to the node's text (character references
    written differently from how the parser re-serializes them).  The
    earliest match wins, and ``html_text`` is always the exact slice of
    *html* that matched.  Nodes that cannot be found keep ``html_start=-1``;
    highlights touching them are reported as render failures rather than
    placed at a guessed position.
    """
    regions = _non_text_regions(html)
    runs = _text_runs(html, regions)
    nodes: list[TextNodeInfo] = []
    search_from = _body_offset(html)

    for index, info in enumerate(walked):
        idx, html_text = -1, info.serialized
        for needle in dict.fromkeys((info.serialized, info.decoded_text)):
            found = _find_in_text(html, needle, search_from, regions)
            if found != -1 and (idx == -1 or found < idx):
                idx, html_text = found, needle
        limit = idx if idx != -1 else len(html)
        found, raw = _find_encoded(html, info.decoded_text, search_from, runs, limit)
        if found != -1:
            idx, html_text = found, raw

        if idx == -1:
            logger.warning(
                "Could not locate text node %d (%r) in markup after offset %d",
                index,
                info.serialized[:40],
                search_from,
            )
        else:
            search_from = idx + len(html_text)
        nodes.append(
            TextNodeInfo(
                node_index=index,
                html_start=idx,
                html_text=html_text,
                decoded_text=info.decoded_text,
                collapsed_text=info.collapsed_text,
                char_start=info.char_start,
                char_end=info.char_end,
            )
        )

    return nodes


def _html_char_length(html_text: str, html_pos: int, decoded_char: str) -> int:
    """Return how many characters of *html_text* encode one decoded char.

    A character reference (``&amp;``, ``&#39;``, ``&rsquo;`` ...) counts as
    one char only when it really decodes to *decoded_char*; a bare ``&`` in
    the source is a single character.
    """
    if html_pos >= len(html_text) or html_text[html_pos] != "&":
        return 1
    match = _CHAR_REF.match(html_text, html_pos)
    if match is not None and html_module.unescape(match.group()) == decoded_char:
        return match.end() - html_pos
    return 1


def collapsed_to_html_offset(
    html_text: str, decoded_text: str, collapsed_offset: int
) -> int:
    """Map an offset in a node's collapsed text to an offset in its markup slice.

    *html_text* is the node's text exactly as written in the markup.  Each
    decoded character consumes one source character or one whole character
    reference; a whitespace run advances the collapsed offset only once.
    """
    html_pos = 0
    collapsed_pos = 0
    previous_ws = False
    has_refs = html_text != decoded_text

    for ch in decoded_text:
        if collapsed_pos >= collapsed_offset:
            break
        is_ws = ch.isspace()
        if not (is_ws and previous_ws):
            collapsed_pos += 1
        previous_ws = is_ws
        html_pos += _html_char_length(html_text, html_pos, ch) if has_refs else 1

    return html_pos


def decoded_to_collapsed_offset(decoded_text: str, decoded_offset: int) -> int:
    """Map an offset in a node's raw decoded text to its collapsed offset.

    Browser selections report offsets into the raw text node; the plain-text
    stream collapses whitespace runs, so offsets inside a run land on the
    run's single space.
    """
    collapsed = 0
    in_whitespace = False
    for ch in decoded_text[: max(decoded_offset, 0)]:
        if ch.isspace():
            if not in_whitespace:
                collapsed += 1
                in_whitespace = True
        else:
            collapsed += 1
            in_whitespace = False
    return collapsed


def extract_text_from_html(html: str) -> str:
    """Return only the plain text of *html* (no position map)."""
    chars, _walked = _walk(html)
    return "".join(chars)


def project_plain_text(markup: str, document_id: str | None = None) -> Projection:
    """Flatten *markup* into plain text plus its position map.

    Pure function of *markup*: running it twice yields equal plain text and
    equal node tables.

    Args:
        markup: Serialized HTML as stored (one document version).
        document_id: Optional owner id, used to reject selections made in a
            different document's content.

    Returns:
        ``Projection(plain_text, position_map)``.

    Rules (kept in step with the client-side text walker):
        - ``<br>`` → ``\\n`` (a gap: no text node owns it)
        - script / style / noscript / template / title → skipped entirely
        - Whitespace-only text nodes inside block containers → skipped
        - Whitespace runs (including ``\\u00a0``) → collapsed to one space
    """
    chars, walked = _walk(markup)
    plain_text = "".join(chars)
    nodes = _locate_text_nodes(markup, walked) if walked else []
    logger.debug(
        "Projected markup (%d bytes) to %d chars across %d text nodes",
        len(markup or ""),
        len(plain_text),
        len(nodes),
    )
    position_map = PositionMap(
        plain_text=plain_text, nodes=tuple(nodes), document_id=document_id
    )
    return Projection(plain_text=plain_text, position_map=position_map)
