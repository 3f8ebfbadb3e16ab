"""Command-line entry point."""

from __future__ import annotations

import argparse
import logging
import sys

from .config import config_file_path, load_default_source
from .documents import DEFAULT_FETCH_TIMEOUT, PRINCIPLES, DocumentLoadError, DocumentSource, load_documents
from .logging_config import setup_logging

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solidview",
        description="Browse the SOLID principles documentation with rendered diagrams.",
    )
    parser.add_argument(
        "source",
        nargs="?",
        default=None,
        help="Documentation directory or base URL (default: ~/.solidview.cfg value, or the current directory).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_FETCH_TIMEOUT,
        help=f"Per-document fetch timeout in seconds for URL sources (default: {DEFAULT_FETCH_TIMEOUT:g}).",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Fetch every document and report the result without opening a window.",
    )
    parser.add_argument("--log-level", default="INFO", choices=LOG_LEVELS, help="Logging verbosity (default: INFO).")
    parser.add_argument("--log-file", default=None, help="Also write log output to this file.")
    return parser


def _check_source(source: DocumentSource, timeout: float) -> int:
    try:
        collection = load_documents(source, timeout=timeout)
    except DocumentLoadError as exc:
        print(f"Could not load documentation: {exc}", file=sys.stderr)
        return 1
    for principle in PRINCIPLES:
        print(f"{principle}: {source.location(principle)} ({len(collection[principle])} characters)")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(getattr(logging, args.log_level), args.log_file)

    config_path = config_file_path()
    source_text = args.source if args.source is not None else load_default_source(config_path)
    source = DocumentSource.parse(source_text)
    if not source.is_remote:
        if not source.root.exists():
            print(f"Path does not exist: {source.root}", file=sys.stderr)
            return 2
        if not source.root.is_dir():
            print(f"Path is not a directory: {source.root}", file=sys.stderr)
            return 2

    if args.check:
        return _check_source(source, args.timeout)

    # Qt is only needed once a window is actually opened.
    from PySide6.QtWidgets import QApplication

    from .app import SolidViewWindow

    app = QApplication(sys.argv[:1])
    app.setApplicationName("solidview")
    app.setDesktopFileName("solidview")
    window = SolidViewWindow(source, config_path, timeout=args.timeout)
    window.show()
    logger.debug("Window shown for %s", source.text)
    return app.exec()
