"""Qt window: navigation buttons over a WebEngine preview of the principle documents."""

from __future__ import annotations

import logging
from pathlib import Path

from PySide6.QtCore import QObject, QRunnable, Qt, QThreadPool, QTimer, QUrl, Signal
from PySide6.QtGui import QAction, QDesktopServices
from PySide6.QtWebEngineCore import QWebEnginePage, QWebEngineSettings
from PySide6.QtWebEngineWidgets import QWebEngineView
from PySide6.QtWidgets import QHBoxLayout, QLabel, QMainWindow, QPushButton, QSizePolicy, QVBoxLayout, QWidget

from .config import save_default_source
from .display import DisplayController
from .documents import (
    DEFAULT_FETCH_TIMEOUT,
    DOCUMENT_PATHS,
    PRINCIPLE_LABELS,
    PRINCIPLES,
    DocumentBatch,
    DocumentLoadError,
    DocumentSource,
    fetch_document,
)
from .rendering import MarkdownRenderer, content_swap_script, diagram_render_script, scroll_to_anchor_script

logger = logging.getLogger(__name__)

# Re-run diagram rendering after load to tolerate late Mermaid script availability.
RENDER_RETRY_DELAYS_MS = (450, 1500)
EXTERNAL_LINK_SCHEMES = {"http", "https", "mailto"}


class DocumentFetchWorkerSignals(QObject):
    """Signals emitted by background document fetch workers."""

    finished = Signal(int, str, str, str)


class DocumentFetchWorker(QRunnable):
    """Fetch one document off the UI thread and report back via a signal."""

    def __init__(self, batch_id: int, source: DocumentSource, principle: str, timeout: float):
        super().__init__()
        self.batch_id = batch_id
        self.source = source
        self.principle = principle
        self.timeout = timeout
        self.signals = DocumentFetchWorkerSignals()

    def run(self) -> None:
        try:
            text = fetch_document(self.source, self.principle, self.timeout)
            self.signals.finished.emit(self.batch_id, self.principle, text, "")
        except Exception as exc:
            self.signals.finished.emit(self.batch_id, self.principle, "", str(exc) or type(exc).__name__)


class PreviewPage(QWebEnginePage):
    """Page that hands link clicks to the window and forwards console output to logging."""

    link_clicked = Signal(QUrl)

    _CONSOLE_LOG_LEVELS = {
        QWebEnginePage.JavaScriptConsoleMessageLevel.InfoMessageLevel: logging.DEBUG,
        QWebEnginePage.JavaScriptConsoleMessageLevel.WarningMessageLevel: logging.WARNING,
        QWebEnginePage.JavaScriptConsoleMessageLevel.ErrorMessageLevel: logging.ERROR,
    }

    def acceptNavigationRequest(self, url, nav_type, is_main_frame) -> bool:  # noqa: N802
        if nav_type != QWebEnginePage.NavigationType.NavigationTypeLinkClicked:
            return super().acceptNavigationRequest(url, nav_type, is_main_frame)
        # Content is swapped in-place, so the page itself never navigates.
        self.link_clicked.emit(QUrl(url))
        return False

    def javaScriptConsoleMessage(self, level, message, line_number, source_id) -> None:  # noqa: N802
        logger.log(self._CONSOLE_LOG_LEVELS.get(level, logging.INFO), "page: %s (line %s)", message, line_number)


class SolidViewWindow(QMainWindow):
    def __init__(self, source: DocumentSource, config_path: Path | None = None, timeout: float = DEFAULT_FETCH_TIMEOUT):
        super().__init__()
        self.source = source
        self.config_path = config_path
        self.timeout = timeout
        self.renderer = MarkdownRenderer()
        self.display = DisplayController(self.renderer)
        self._fetch_pool = QThreadPool(self)
        # One thread per document so the whole batch is in flight at once.
        self._fetch_pool.setMaxThreadCount(len(PRINCIPLES))
        self._active_fetch_workers: set[DocumentFetchWorker] = set()
        self._batch: DocumentBatch | None = None
        self._next_batch_id = 1
        self._shell_ready = False
        self._pending_swap: tuple[str, str | None] | None = None
        self._current_document_url: str | None = None

        self.setWindowTitle("solidview")
        self.resize(1280, 900)

        self.preview = QWebEngineView()
        page = PreviewPage(self.preview)
        self.preview.setPage(page)
        # The shell loads Mermaid from a CDN when no local bundle exists, and
        # copy buttons write to the clipboard from page JavaScript.
        preview_settings = self.preview.settings()
        preview_settings.setAttribute(QWebEngineSettings.WebAttribute.LocalContentCanAccessRemoteUrls, True)
        preview_settings.setAttribute(QWebEngineSettings.WebAttribute.LocalContentCanAccessFileUrls, True)
        preview_settings.setAttribute(QWebEngineSettings.WebAttribute.JavascriptCanAccessClipboard, True)
        page.link_clicked.connect(self._on_link_clicked)
        self.preview.loadFinished.connect(self._on_preview_load_finished)

        nav_bar = QHBoxLayout()
        nav_bar.setContentsMargins(0, 0, 0, 0)
        nav_bar.setSpacing(4)
        self.nav_buttons: dict[str, QPushButton] = {}
        for principle in PRINCIPLES:
            button = QPushButton(PRINCIPLE_LABELS[principle])
            button.setCheckable(True)
            button.setProperty("principle", principle)
            button.setToolTip(DOCUMENT_PATHS[principle])
            button.setStyleSheet(
                "QPushButton { padding: 4px 10px; }"
                "QPushButton:checked { background-color: #872341; color: #ffffff; }"
            )
            button.clicked.connect(lambda _checked=False, p=principle: self.display_principle(p))
            nav_bar.addWidget(button)
            self.nav_buttons[principle] = button
        nav_bar.addStretch(1)

        self.source_label = QLabel(self.source.text)
        self.source_label.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
        nav_bar.addWidget(self.source_label)

        self.reload_btn = QPushButton("Reload")
        self.reload_btn.setToolTip("Fetch every document again (F5)")
        self.reload_btn.clicked.connect(self.load_documents)
        nav_bar.addWidget(self.reload_btn)

        nav_widget = QWidget()
        nav_widget.setLayout(nav_bar)
        nav_widget.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Fixed)

        central = QWidget()
        layout = QVBoxLayout(central)
        layout.addWidget(nav_widget)
        layout.addWidget(self.preview, 1)
        self.setCentralWidget(central)

        self._add_shortcuts()
        self.statusBar().showMessage("Ready")
        self.preview.setHtml(self.renderer.render_shell(), self._base_url())
        self.load_documents()

    def _add_shortcuts(self) -> None:
        """Register window-level keyboard shortcuts."""
        reload_action = QAction("Reload", self)
        reload_action.setShortcut("F5")
        reload_action.triggered.connect(self.load_documents)
        self.addAction(reload_action)

    def _base_url(self) -> QUrl:
        if self.source.base_url is not None:
            return QUrl(self.source.base_url)
        return QUrl.fromLocalFile(f"{self.source.root}/")

    def load_documents(self, _checked: bool = False) -> None:
        """Start a new all-or-nothing fetch of every document."""
        batch = DocumentBatch(self._next_batch_id)
        self._next_batch_id += 1
        # Results still in flight for an older batch are dropped on arrival.
        self._batch = batch
        self.reload_btn.setEnabled(False)
        self.statusBar().showMessage(f"Loading documents from {self.source.text}...")
        logger.info("Loading %d documents from %s", len(PRINCIPLES), self.source.text)
        for principle in PRINCIPLES:
            worker = DocumentFetchWorker(batch.batch_id, self.source, principle, self.timeout)
            worker.signals.finished.connect(self._on_document_fetched)
            self._active_fetch_workers.add(worker)
            self._fetch_pool.start(worker)

    def _release_fetch_worker(self, batch_id: int, principle: str) -> None:
        for worker in list(self._active_fetch_workers):
            if worker.batch_id == batch_id and worker.principle == principle:
                self._active_fetch_workers.discard(worker)
                break

    def _on_document_fetched(self, batch_id: int, principle: str, text: str, error_text: str) -> None:
        """Feed one fetch result into the current batch, finishing it when possible."""
        self._release_fetch_worker(batch_id, principle)
        batch = self._batch
        if batch is None or batch.batch_id != batch_id:
            return

        if error_text:
            error = DocumentLoadError(error_text, principle, self.source.location(principle))
            if batch.record_failure(error):
                logger.error("Loading documents failed at %s: %s", DOCUMENT_PATHS[principle], error_text)
                self._current_document_url = None
                self._show_fragment(self.display.fail(error))
                self._sync_nav_buttons()
                self.reload_btn.setEnabled(True)
                self.statusBar().showMessage(f"Could not load {DOCUMENT_PATHS[principle]}: {error_text}")
            return

        if not batch.record_success(principle, text):
            return
        self.display.set_documents(batch.collection())
        self.reload_btn.setEnabled(True)
        logger.info("Loaded %d documents from %s", len(PRINCIPLES), self.source.text)
        self.statusBar().showMessage(f"Loaded {len(PRINCIPLES)} documents from {self.source.text}", 3500)
        if self.config_path is not None:
            save_default_source(self.source.text, self.config_path)
        self.display_principle(self.display.active or "home")

    def display_principle(self, principle: str) -> None:
        """Show one principle's document and mark its navigation button active."""
        fragment = self.display.select(principle)
        self._current_document_url = None if self.display.failed else self.source.document_url(principle)
        self._show_fragment(fragment, self._current_document_url)
        self._sync_nav_buttons()

    def _sync_nav_buttons(self) -> None:
        for principle, active in self.display.nav_states().items():
            self.nav_buttons[principle].setChecked(active)

    def _run_js(self, script: str) -> None:
        self.preview.page().runJavaScript(script)

    def _show_fragment(self, fragment: str, base_href: str | None = None) -> None:
        if not self._shell_ready:
            # Applied once the shell page has finished loading.
            self._pending_swap = (fragment, base_href)
            return
        self._run_js(content_swap_script(fragment, base_href))

    def _on_preview_load_finished(self, ok: bool) -> None:
        if not ok:
            self.statusBar().showMessage("Preview load failed", 5000)
            logger.error("Preview shell failed to load")
            return
        self._shell_ready = True
        if self._pending_swap is not None:
            fragment, base_href = self._pending_swap
            self._pending_swap = None
            self._show_fragment(fragment, base_href)
        for delay in RENDER_RETRY_DELAYS_MS:
            QTimer.singleShot(delay, self._trigger_diagram_render)

    def _trigger_diagram_render(self) -> None:
        self._run_js(diagram_render_script())

    def _on_link_clicked(self, url: QUrl) -> None:
        """Route link clicks: known documents in-place, anchors by scrolling, the web externally."""
        target = url.toString()
        principle = self.source.principle_for_url(target)
        if principle is not None:
            if self.display.failed:
                return
            anchor = url.fragment(QUrl.ComponentFormattingOption.FullyDecoded) if url.hasFragment() else ""
            # `#section` inside the shown document only scrolls.
            if not anchor or principle != self.display.active:
                self.display_principle(principle)
            if anchor:
                self._run_js(scroll_to_anchor_script(anchor))
            return

        if url.scheme() in EXTERNAL_LINK_SCHEMES:
            QDesktopServices.openUrl(url)
            return

        logger.info("Ignoring link to %s", target)
        self.statusBar().showMessage(f"Link not followed: {target}", 4000)
