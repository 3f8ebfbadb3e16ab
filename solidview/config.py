"""Default documentation source persisted between runs."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".solidview.cfg"
MERMAID_SCRIPT_ENV = "SOLIDVIEW_MERMAID_JS"


def config_file_path() -> Path:
    return Path.home() / CONFIG_FILE_NAME


def load_default_source(config_path: Path | None = None) -> str:
    """Resolve the default source (directory or URL) when none is given on the CLI."""
    fallback = "."
    cfg_path = config_path if config_path is not None else config_file_path()
    try:
        if not cfg_path.exists():
            return fallback
        raw = cfg_path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        logger.warning("Ignoring unreadable config %s: %s", cfg_path, exc)
        return fallback
    if not raw:
        return fallback
    # Only the first line is meaningful.
    return raw.splitlines()[0].strip() or fallback


def save_default_source(source_text: str, config_path: Path | None = None) -> None:
    """Remember the last source that loaded successfully."""
    cfg_path = config_path if config_path is not None else config_file_path()
    try:
        cfg_path.write_text(f"{source_text}\n", encoding="utf-8")
    except OSError as exc:
        logger.warning("Could not save default source to %s: %s", cfg_path, exc)
