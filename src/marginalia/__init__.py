"""Marginalia - text-range annotation for rendered posts.

Captures a reader's selection as a stable plain-text range, and re-highlights
stored ranges every time a post is rendered from its stored HTML.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

__version__ = "0.1.0"


def _setup_logging(log_dir: Path | None = None, level: str = "INFO") -> None:
    """Configure logging to both console and rotating file."""
    log_dir = log_dir or Path("logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "marginalia.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # File handler - detailed logging with rotation (10MB, keep 5 backups)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(file_formatter)

    # Console handler - less verbose
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level.upper())
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logging.debug("Logging configured. Log file: %s", log_file.absolute())


from marginalia.engine import RenderResult, render_with_highlights  # noqa: E402
from marginalia.focus import FocusCoordinator  # noqa: E402
from marginalia.projection import (  # noqa: E402
    project_plain_text,
    resolve_selection,
)
from marginalia.session import AnnotationSession  # noqa: E402

__all__ = [
    "AnnotationSession",
    "FocusCoordinator",
    "RenderResult",
    "project_plain_text",
    "render_with_highlights",
    "resolve_selection",
]
