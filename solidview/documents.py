"""Document set, sources and all-or-nothing fetch batches for solidview."""

from __future__ import annotations

import logging
import os
import posixpath
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from types import MappingProxyType
from urllib.parse import unquote, urljoin, urlsplit

import requests

logger = logging.getLogger(__name__)

PRINCIPLES = ("home", "srp", "ocp", "lsp", "isp", "dip")
DOCUMENT_PATHS = {
    "home": "README.md",
    "srp": "SRP/README.md",
    "ocp": "OCP/README.md",
    "lsp": "LSP/README.md",
    "isp": "ISP/README.md",
    "dip": "DIP/README.md",
}
PRINCIPLE_LABELS = {
    "home": "Home",
    "srp": "Single Responsibility",
    "ocp": "Open/Closed",
    "lsp": "Liskov Substitution",
    "isp": "Interface Segregation",
    "dip": "Dependency Inversion",
}
DEFAULT_FETCH_TIMEOUT = 10.0


class DocumentLoadError(RuntimeError):
    """A document could not be fetched, or a batch could not be completed."""

    def __init__(self, message: str, principle: str | None = None, location: str | None = None):
        super().__init__(message)
        self.principle = principle
        self.location = location


def _match_document(relative: str) -> str | None:
    """Return the principle whose document lives at a root-relative path."""
    cleaned = posixpath.normpath(relative or ".")
    if cleaned == ".." or cleaned.startswith("../") or cleaned.startswith("/"):
        return None
    if cleaned == ".":
        cleaned = DOCUMENT_PATHS["home"]
    elif not cleaned.casefold().endswith(".md"):
        # Directory links (e.g. `SRP/`) point at that directory's README.
        cleaned = f"{cleaned}/README.md"
    for principle, path in DOCUMENT_PATHS.items():
        if path.casefold() == cleaned.casefold():
            return principle
    return None


class DocumentSource:
    """Local directory or base URL that document paths are resolved against."""

    def __init__(self, root: Path | None = None, base_url: str | None = None) -> None:
        if (root is None) == (base_url is None):
            raise ValueError("DocumentSource needs exactly one of root or base_url")
        self.root = root
        if base_url is not None and not base_url.endswith("/"):
            base_url += "/"
        self.base_url = base_url

    @classmethod
    def parse(cls, text: str | None) -> DocumentSource:
        raw = (text or "").strip()
        if raw.casefold().startswith(("http://", "https://")):
            return cls(base_url=raw)
        return cls(root=Path(raw or ".").expanduser().resolve())

    @property
    def is_remote(self) -> bool:
        return self.base_url is not None

    @property
    def text(self) -> str:
        if self.base_url is not None:
            return self.base_url
        return str(self.root)

    def __repr__(self) -> str:
        return f"DocumentSource({self.text!r})"

    def location(self, principle: str) -> str:
        """Absolute URL or filesystem path of one principle's document."""
        relative = DOCUMENT_PATHS[principle]
        if self.base_url is not None:
            return urljoin(self.base_url, relative)
        return str(self.root / relative)

    def document_url(self, principle: str) -> str:
        """URL of one principle's document; relative links inside it resolve against this."""
        if self.base_url is not None:
            return self.location(principle)
        return Path(self.location(principle)).as_uri()

    def principle_for_url(self, url: str) -> str | None:
        """Map an absolute link target back to the document it names.

        Returns None for links outside the source and for bare in-page
        anchors (`#section` resolved against the source root).
        """
        split = urlsplit(url)
        if self.base_url is not None:
            base = urlsplit(self.base_url)
            if (split.scheme, split.netloc) != (base.scheme, base.netloc):
                return None
            if not split.path.startswith(base.path):
                return None
            relative = unquote(split.path[len(base.path):])
        else:
            if split.scheme != "file":
                return None
            target = Path(os.path.normpath(unquote(split.path)))
            try:
                relative = target.relative_to(self.root).as_posix()
            except ValueError:
                return None
        if split.fragment and relative in {"", "."}:
            return None
        return _match_document(relative)


class DocumentCollection(Mapping):
    """Read-only mapping of every principle to its raw markdown text."""

    def __init__(self, documents: Mapping[str, str]) -> None:
        unknown = sorted(set(documents) - set(PRINCIPLES))
        if unknown:
            raise ValueError(f"Unknown principle identifiers: {', '.join(unknown)}")
        missing = [principle for principle in PRINCIPLES if principle not in documents]
        if missing:
            raise DocumentLoadError(f"Missing documents: {', '.join(missing)}")
        self._documents = MappingProxyType({principle: str(documents[principle]) for principle in PRINCIPLES})

    def __getitem__(self, principle: str) -> str:
        return self._documents[principle]

    def __iter__(self):
        return iter(self._documents)

    def __len__(self) -> int:
        return len(self._documents)


def fetch_document(source: DocumentSource, principle: str, timeout: float = DEFAULT_FETCH_TIMEOUT) -> str:
    """Fetch one document's raw markdown text from its source."""
    location = source.location(principle)
    if source.is_remote:
        try:
            response = requests.get(location, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise DocumentLoadError(f"Could not fetch {location}: {exc}", principle, location) from exc
        # Markdown is served without a reliable charset more often than not.
        return response.content.decode("utf-8", errors="replace")

    try:
        return Path(location).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise DocumentLoadError(f"Could not read {location}: {exc}", principle, location) from exc


class DocumentBatch:
    """Collects the results of one concurrent fetch of every document.

    The batch is all-or-nothing: the first failure fails it, and any
    result that arrives afterwards is ignored.
    """

    def __init__(self, batch_id: int = 0) -> None:
        self.batch_id = batch_id
        self.error: DocumentLoadError | None = None
        self._results: dict[str, str] = {}

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def complete(self) -> bool:
        return self.error is None and len(self._results) == len(PRINCIPLES)

    @property
    def pending(self) -> list[str]:
        return [principle for principle in PRINCIPLES if principle not in self._results]

    def record_success(self, principle: str, text: str) -> bool:
        """Store a fetched document; True when it completes the batch."""
        if principle not in DOCUMENT_PATHS:
            raise KeyError(principle)
        if self.failed or principle in self._results:
            return False
        self._results[principle] = text
        return self.complete

    def record_failure(self, error: DocumentLoadError) -> bool:
        """Fail the batch; True only for the failure that actually failed it."""
        if self.failed or self.complete:
            return False
        self.error = error
        return True

    def collection(self) -> DocumentCollection:
        if self.error is not None:
            raise self.error
        if not self.complete:
            raise DocumentLoadError(f"Still waiting for: {', '.join(self.pending)}")
        return DocumentCollection(self._results)


def load_documents(source: DocumentSource, timeout: float = DEFAULT_FETCH_TIMEOUT) -> DocumentCollection:
    """Fetch every document concurrently and wait for all of them."""
    batch = DocumentBatch()
    pool = ThreadPoolExecutor(max_workers=len(PRINCIPLES))
    try:
        futures = {pool.submit(fetch_document, source, principle, timeout): principle for principle in PRINCIPLES}
        for future in as_completed(futures):
            principle = futures[future]
            try:
                text = future.result()
            except DocumentLoadError as exc:
                batch.record_failure(exc)
                logger.error("Loading %s failed: %s", principle, exc)
                raise
            batch.record_success(principle, text)
    finally:
        # A failed batch does not wait for the fetches still in flight.
        pool.shutdown(wait=not batch.failed, cancel_futures=True)
    collection = batch.collection()
    logger.info("Loaded %d documents from %s", len(collection), source.text)
    return collection
