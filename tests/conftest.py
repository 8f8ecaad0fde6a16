"""Shared test fixtures and configuration."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from docsense.search.lexer import tokenize
from docsense.search.models import Document, Index, IndexWriter


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Isolate tests from DOCSENSE_* variables and any local .env file."""
    for key in list(os.environ):
        if key.upper().startswith("DOCSENSE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """configure_logging() replaces root handlers; put the originals back."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _index_from_texts(documents: dict[str, str]) -> Index:
    writer = IndexWriter()
    for path, text in documents.items():
        writer.add_document(Document.from_terms(path, tokenize(text)))
    return writer.build()


@pytest.fixture
def make_index():
    """Return a factory indexing raw texts keyed by path with the production lexer."""
    return _index_from_texts


@pytest.fixture
def pets_index() -> Index:
    return _index_from_texts({"a.txt": "cat dog cat", "b.txt": "dog dog fish"})


@pytest.fixture
def corpus_dir(tmp_path: Path) -> Path:
    """Small mixed-format corpus on disk."""
    root = tmp_path / "corpus"
    (root / "nested" / "deeper").mkdir(parents=True)
    (root / "a.txt").write_text("cat dog cat", encoding="utf-8")
    (root / "b.md").write_text("# Dog\n\ndog fish", encoding="utf-8")
    (root / "nested" / "page.xhtml").write_text(
        '<html xmlns="http://www.w3.org/1999/xhtml"><body><h1>OpenGL</h1><p>window context</p></body></html>',
        encoding="utf-8",
    )
    (root / "nested" / "deeper" / "notes.xml").write_text(
        "<notes><note>Window</note><note>manager</note></notes>", encoding="utf-8"
    )
    (root / "nested" / "image.png").write_bytes(b"\x89PNG\r\n\x1a\n")
    return root
