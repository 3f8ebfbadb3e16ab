"""Selection state: which principle is shown and which navigation control is active."""

from __future__ import annotations

import logging

from .documents import DOCUMENT_PATHS, PRINCIPLES, DocumentCollection, DocumentLoadError
from .rendering import MarkdownRenderer, error_fragment, loading_fragment

logger = logging.getLogger(__name__)


class DisplayController:
    """Maps principle selections onto HTML fragments and navigation state."""

    def __init__(self, renderer: MarkdownRenderer | None = None) -> None:
        self.renderer = renderer if renderer is not None else MarkdownRenderer()
        self.collection: DocumentCollection | None = None
        self.error: DocumentLoadError | None = None
        self.active: str | None = None
        # Converted fragments for the installed collection only.
        self._fragments: dict[str, str] = {}

    @property
    def failed(self) -> bool:
        return self.error is not None

    def set_documents(self, collection: DocumentCollection) -> None:
        """Install a freshly loaded collection; the active selection is kept."""
        self.collection = collection
        self.error = None
        self._fragments.clear()

    def fail(self, error: DocumentLoadError) -> str:
        """Enter the error state and return the fragment that replaces the content."""
        self.collection = None
        self.error = error
        self.active = None
        self._fragments.clear()
        return error_fragment()

    def select(self, principle: str) -> str:
        """Return the fragment for a principle and mark it active."""
        if principle not in DOCUMENT_PATHS:
            raise KeyError(principle)
        if self.error is not None:
            self.active = None
            return error_fragment()
        self.active = principle
        if self.collection is None:
            return loading_fragment()
        fragment = self._fragments.get(principle)
        if fragment is None:
            fragment = self.renderer.render_fragment(self.collection[principle])
            self._fragments[principle] = fragment
            logger.debug("Rendered %s (%d chars of HTML)", principle, len(fragment))
        return fragment

    def nav_states(self) -> dict[str, bool]:
        return {principle: principle == self.active for principle in PRINCIPLES}
