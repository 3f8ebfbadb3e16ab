"""Tests for document sources, fetching and all-or-nothing batches.

Run with:
    pytest tests/test_documents.py -v
"""

import threading
import time
from pathlib import Path
from unittest.mock import Mock, patch
from urllib.parse import urljoin

import pytest
import requests

from conftest import SAMPLE_DOCUMENTS
from solidview.documents import (
    DOCUMENT_PATHS,
    PRINCIPLE_LABELS,
    PRINCIPLES,
    DocumentBatch,
    DocumentCollection,
    DocumentLoadError,
    DocumentSource,
    fetch_document,
    load_documents,
)


class TestConstants:
    def test_six_principles_in_display_order(self):
        assert PRINCIPLES == ("home", "srp", "ocp", "lsp", "isp", "dip")

    def test_every_principle_has_a_path_and_label(self):
        assert set(DOCUMENT_PATHS) == set(PRINCIPLES)
        assert set(PRINCIPLE_LABELS) == set(PRINCIPLES)
        assert DOCUMENT_PATHS["home"] == "README.md"
        assert DOCUMENT_PATHS["dip"] == "DIP/README.md"


class TestDocumentSource:
    def test_parse_directory(self, tmp_path):
        source = DocumentSource.parse(str(tmp_path))
        assert not source.is_remote
        assert source.root == tmp_path.resolve()
        assert source.location("srp") == str(tmp_path.resolve() / "SRP" / "README.md")

    def test_parse_empty_means_current_directory(self):
        source = DocumentSource.parse("")
        assert source.root == Path(".").resolve()

    def test_parse_url_adds_trailing_slash(self):
        source = DocumentSource.parse("https://example.com/docs")
        assert source.is_remote
        assert source.base_url == "https://example.com/docs/"
        assert source.location("ocp") == "https://example.com/docs/OCP/README.md"
        assert source.location("home") == "https://example.com/docs/README.md"

    def test_needs_exactly_one_location(self, tmp_path):
        with pytest.raises(ValueError):
            DocumentSource()
        with pytest.raises(ValueError):
            DocumentSource(root=tmp_path, base_url="https://example.com/")


class TestPrincipleForUrl:
    def test_local_document_links(self, local_source, docs_root):
        root = docs_root.resolve()
        assert local_source.principle_for_url((root / "LSP" / "README.md").as_uri()) == "lsp"
        assert local_source.principle_for_url((root / "README.md").as_uri()) == "home"
        assert local_source.principle_for_url(root.as_uri() + "/ISP/") == "isp"

    def test_local_links_outside_source(self, local_source, docs_root):
        assert local_source.principle_for_url((docs_root.resolve() / "notes.md").as_uri()) is None
        assert local_source.principle_for_url("https://example.com/SRP/README.md") is None

    def test_in_page_anchor_is_not_a_document(self, local_source, docs_root):
        assert local_source.principle_for_url(docs_root.resolve().as_uri() + "/#why-it-matters") is None

    def test_remote_links(self):
        source = DocumentSource.parse("https://example.com/docs/")
        assert source.principle_for_url("https://example.com/docs/SRP/README.md") == "srp"
        assert source.principle_for_url("https://example.com/docs/DIP/") == "dip"
        assert source.principle_for_url("https://example.com/docs/README.md#top") == "home"
        assert source.principle_for_url("https://example.com/other/README.md") is None
        assert source.principle_for_url("https://other.example.com/docs/SRP/README.md") is None
        assert source.principle_for_url("https://example.com/docs/#intro") is None


class TestRelativeLinks:
    def test_local_document_url(self, local_source, docs_root):
        assert local_source.document_url("srp") == (docs_root.resolve() / "SRP" / "README.md").as_uri()

    def test_sibling_link_from_sub_document(self, local_source):
        base = local_source.document_url("srp")
        assert local_source.principle_for_url(urljoin(base, "../OCP/README.md")) == "ocp"
        assert local_source.principle_for_url(urljoin(base, "../README.md")) == "home"
        assert local_source.principle_for_url(urljoin(base, "#why-it-matters")) == "srp"

    def test_sibling_link_from_remote_sub_document(self):
        source = DocumentSource.parse("https://example.com/docs")
        base = source.document_url("lsp")
        assert base == "https://example.com/docs/LSP/README.md"
        assert source.principle_for_url(urljoin(base, "../DIP/")) == "dip"
        assert source.principle_for_url(urljoin(base, "../../README.md")) is None


class TestDocumentCollection:
    def test_requires_every_principle(self):
        partial = dict(SAMPLE_DOCUMENTS)
        del partial["isp"]
        with pytest.raises(DocumentLoadError, match="isp"):
            DocumentCollection(partial)

    def test_rejects_unknown_identifiers(self):
        with pytest.raises(ValueError, match="extra"):
            DocumentCollection({**SAMPLE_DOCUMENTS, "extra": "# Extra"})

    def test_read_only(self, collection):
        assert len(collection) == 6
        assert list(collection) == list(PRINCIPLES)
        assert collection["srp"] == SAMPLE_DOCUMENTS["srp"]
        with pytest.raises(TypeError):
            collection["srp"] = "changed"


class TestFetchDocument:
    def test_local_read(self, local_source):
        assert fetch_document(local_source, "lsp") == SAMPLE_DOCUMENTS["lsp"]

    def test_local_missing_file(self, local_source, docs_root):
        (docs_root / "OCP" / "README.md").unlink()
        with pytest.raises(DocumentLoadError) as excinfo:
            fetch_document(local_source, "ocp")
        assert excinfo.value.principle == "ocp"
        assert excinfo.value.location.endswith("README.md")

    def test_remote_fetch(self):
        source = DocumentSource.parse("https://example.com/docs/")
        response = Mock()
        response.content = "# Home – café\n".encode("utf-8")
        with patch("solidview.documents.requests.get", return_value=response) as mock_get:
            text = fetch_document(source, "home", timeout=3.0)
        assert text == "# Home – café\n"
        mock_get.assert_called_once_with("https://example.com/docs/README.md", timeout=3.0)
        response.raise_for_status.assert_called_once()

    def test_remote_http_error(self):
        source = DocumentSource.parse("https://example.com/docs/")
        response = Mock()
        response.raise_for_status.side_effect = requests.HTTPError("404 Client Error: Not Found")
        with patch("solidview.documents.requests.get", return_value=response):
            with pytest.raises(DocumentLoadError, match="404") as excinfo:
                fetch_document(source, "dip")
        assert excinfo.value.principle == "dip"
        assert excinfo.value.location == "https://example.com/docs/DIP/README.md"

    def test_remote_connection_error(self):
        source = DocumentSource.parse("https://example.com/docs/")
        with patch("solidview.documents.requests.get", side_effect=requests.ConnectionError("refused")):
            with pytest.raises(DocumentLoadError, match="refused"):
                fetch_document(source, "srp")


class TestDocumentBatch:
    def test_completes_when_every_document_arrives(self):
        batch = DocumentBatch(batch_id=7)
        results = [batch.record_success(principle, SAMPLE_DOCUMENTS[principle]) for principle in PRINCIPLES]
        assert results == [False] * 5 + [True]
        assert batch.complete
        assert not batch.failed
        assert dict(batch.collection()) == SAMPLE_DOCUMENTS

    def test_incomplete_batch_has_no_collection(self):
        batch = DocumentBatch()
        batch.record_success("home", "# Home")
        assert batch.pending == ["srp", "ocp", "lsp", "isp", "dip"]
        with pytest.raises(DocumentLoadError, match="Still waiting"):
            batch.collection()

    def test_first_failure_fails_the_batch(self):
        batch = DocumentBatch()
        batch.record_success("home", "# Home")
        first = DocumentLoadError("boom", "srp")
        assert batch.record_failure(first) is True
        assert batch.record_failure(DocumentLoadError("again", "ocp")) is False
        assert batch.error is first

    def test_results_after_failure_are_ignored(self):
        batch = DocumentBatch()
        batch.record_failure(DocumentLoadError("boom", "home"))
        for principle in PRINCIPLES:
            assert batch.record_success(principle, "text") is False
        assert not batch.complete
        with pytest.raises(DocumentLoadError, match="boom"):
            batch.collection()

    def test_duplicate_result_does_not_complete_twice(self):
        batch = DocumentBatch()
        for principle in PRINCIPLES:
            batch.record_success(principle, SAMPLE_DOCUMENTS[principle])
        assert batch.record_success("home", "# Other") is False
        assert batch.collection()["home"] == SAMPLE_DOCUMENTS["home"]

    def test_unknown_principle(self):
        with pytest.raises(KeyError):
            DocumentBatch().record_success("yagni", "text")


class TestLoadDocuments:
    def test_loads_all_documents(self, local_source):
        collection = load_documents(local_source)
        assert dict(collection) == SAMPLE_DOCUMENTS

    def test_any_failure_fails_everything(self, local_source, docs_root):
        (docs_root / "ISP" / "README.md").unlink()
        with pytest.raises(DocumentLoadError) as excinfo:
            load_documents(local_source)
        assert excinfo.value.principle == "isp"

    def test_remote_failure_fails_everything(self):
        source = DocumentSource.parse("https://example.com/docs/")

        def fake_get(url, timeout):
            response = Mock()
            if url.endswith("LSP/README.md"):
                response.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
            response.content = b"# Doc\n"
            return response

        with patch("solidview.documents.requests.get", side_effect=fake_get):
            with pytest.raises(DocumentLoadError, match="500"):
                load_documents(source)

    def test_first_failure_does_not_wait_for_slow_fetches(self, local_source):
        release = threading.Event()

        def fake_fetch(source, principle, timeout):
            if principle == "lsp":
                raise DocumentLoadError("gone", principle)
            release.wait(5)
            return "# Slow\n"

        started = time.monotonic()
        try:
            with patch("solidview.documents.fetch_document", side_effect=fake_fetch):
                with pytest.raises(DocumentLoadError, match="gone"):
                    load_documents(local_source)
            assert time.monotonic() - started < 2
        finally:
            release.set()
