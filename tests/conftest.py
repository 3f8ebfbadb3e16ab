import os

import pytest

from solidview.documents import DOCUMENT_PATHS, PRINCIPLES, DocumentCollection, DocumentSource

# The window tests run without a display; these must be set before Qt starts.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
os.environ.setdefault("QTWEBENGINE_CHROMIUM_FLAGS", "--no-sandbox --disable-gpu")
os.environ.setdefault("QTWEBENGINE_DISABLE_SANDBOX", "1")

SAMPLE_DOCUMENTS = {
    "home": "# SOLID Principles\n\nPick a principle below.\n\n- [SRP](SRP/README.md)\n",
    "srp": (
        "# Single Responsibility\n\n"
        "A class should have one reason to change.\n\n"
        "```mermaid\nclassDiagram\n    ReportPrinter --> Report\n```\n"
    ),
    "ocp": (
        "# Open/Closed\n\n"
        "```python\nclass Shape:\n    def area(self) -> float:\n        raise NotImplementedError\n```\n"
    ),
    "lsp": "# Liskov Substitution\n\nSubtypes must be substitutable.\n",
    "isp": "# Interface Segregation\n\nNo client should depend on methods it does not use.\n",
    "dip": "# Dependency Inversion\n\nDepend on abstractions.\n",
}


@pytest.fixture
def docs_root(tmp_path):
    """A documentation directory holding all six principle documents."""
    for principle in PRINCIPLES:
        target = tmp_path / DOCUMENT_PATHS[principle]
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(SAMPLE_DOCUMENTS[principle], encoding="utf-8")
    return tmp_path


@pytest.fixture
def local_source(docs_root):
    return DocumentSource.parse(str(docs_root))


@pytest.fixture
def collection():
    return DocumentCollection(SAMPLE_DOCUMENTS)
