"""Command-line tools for inspecting projections and highlight renders.

``marginalia-project`` prints a post's plain text and position map.
``marginalia-render`` applies a JSON list of stored annotations to a post
and prints the highlighted markup with a per-comment status table.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from marginalia import _setup_logging
from marginalia.config import get_settings
from marginalia.engine import CommentStatus, render_with_highlights
from marginalia.models import Annotation
from marginalia.projection.plain_text import project_plain_text

console = Console()

_STATUS_STYLES: dict[CommentStatus, str] = {
    CommentStatus.ANCHORED: "green",
    CommentStatus.CORRECTED: "yellow",
    CommentStatus.STALE: "red",
    CommentStatus.RENDER_FAILED: "bold red",
    CommentStatus.UNANCHORED: "dim",
}


def _read_markup(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        console.print(f"[red]Error:[/] cannot read {path}: {exc}")
        sys.exit(1)


def _load_annotations(path: Path) -> list[Annotation]:
    """Load wire-format annotation records from a JSON array file."""
    try:
        records = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        console.print(f"[red]Error:[/] cannot read annotations from {path}: {exc}")
        sys.exit(1)
    if not isinstance(records, list):
        console.print(f"[red]Error:[/] {path} must contain a JSON array")
        sys.exit(1)
    try:
        return [Annotation.from_wire(record) for record in records]
    except ValidationError as exc:
        console.print(f"[red]Error:[/] invalid annotation record: {exc}")
        sys.exit(1)


def project() -> None:
    """Print the plain text and position map of an HTML file."""
    parser = argparse.ArgumentParser(
        description="Show the plain-text projection of an HTML document.",
    )
    parser.add_argument("markup", type=Path, help="HTML file to project.")
    args = parser.parse_args()

    projection = project_plain_text(_read_markup(args.markup))

    console.print(f"[bold]Plain text[/] ({len(projection.plain_text)} chars)")
    console.print(repr(projection.plain_text), highlight=False)

    table = Table(title="Position map")
    table.add_column("node", justify="right")
    table.add_column("chars", justify="right")
    table.add_column("markup offset", justify="right")
    table.add_column("text")
    for node in projection.position_map.nodes:
        table.add_row(
            str(node.node_index),
            f"{node.char_start}-{node.char_end}",
            str(node.html_start) if node.located else "[red]not found[/]",
            repr(node.collapsed_text),
        )
    console.print(table)


def render() -> None:
    """Apply stored annotations to an HTML file and print the result."""
    parser = argparse.ArgumentParser(
        description="Render highlight wrappers for stored annotations.",
    )
    parser.add_argument("markup", type=Path, help="HTML file (stored original).")
    parser.add_argument(
        "annotations", type=Path, help="JSON array of annotation records."
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write highlighted markup here instead of printing it.",
    )
    args = parser.parse_args()

    settings = get_settings()
    _setup_logging(settings.app.log_dir, settings.app.log_level)

    result = render_with_highlights(
        _read_markup(args.markup),
        _load_annotations(args.annotations),
        config=settings.annotation,
    )

    if args.output is not None:
        args.output.write_text(result.markup, encoding="utf-8")
        console.print(f"Wrote highlighted markup to {args.output}")
    else:
        console.print(result.markup, highlight=False, markup=False)

    table = Table(title="Comments")
    table.add_column("id")
    table.add_column("status")
    table.add_column("range", justify="right")
    table.add_column("highlights")
    table.add_column("notice")
    for view in result.comments:
        style = _STATUS_STYLES[view.status]
        span = f"{view.start}-{view.end}" if view.start is not None else ""
        table.add_row(
            view.annotation.id,
            f"[{style}]{view.status}[/]",
            span,
            ", ".join(view.highlight_keys),
            view.notice or "",
        )
    console.print(table)

    if result.failures:
        sys.exit(2)
