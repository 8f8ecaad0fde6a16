"""Unit tests for per-format text extraction."""

from __future__ import annotations

from pathlib import Path

import pytest

from docsense.search import extractors
from docsense.search.extractors import DocumentFormat, ExtractionError, detect_format, extract
from docsense.search.lexer import tokenize


pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("a.xml", DocumentFormat.XML),
        ("a.XHTML", DocumentFormat.XML),
        ("notes.txt", DocumentFormat.TEXT),
        ("README.md", DocumentFormat.TEXT),
        ("paper.pdf", DocumentFormat.PDF),
        ("image.png", None),
        ("Makefile", None),
        ("archive.tar.gz", None),
    ],
)
def test_detect_format_by_extension(name: str, expected: DocumentFormat | None) -> None:
    assert detect_format(name) is expected


def test_text_files_are_read_as_utf8(tmp_path: Path) -> None:
    path = tmp_path / "note.md"
    path.write_text("# Título\n\ncafé ☕", encoding="utf-8")

    assert extract(path, DocumentFormat.TEXT) == "# Título\n\ncafé ☕"


def test_invalid_utf8_text_is_an_extraction_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.txt"
    path.write_bytes(b"valid \xff\xfe invalid")

    with pytest.raises(ExtractionError) as exc_info:
        extract(path, DocumentFormat.TEXT)

    assert exc_info.value.path == str(path)
    assert "UTF-8" in exc_info.value.reason


def test_missing_file_is_an_extraction_error(tmp_path: Path) -> None:
    with pytest.raises(ExtractionError, match="cannot read file"):
        extract(tmp_path / "gone.txt", DocumentFormat.TEXT)


def test_xml_markup_is_stripped_and_entities_decoded(tmp_path: Path) -> None:
    path = tmp_path / "doc.xml"
    path.write_text(
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<doc><!-- hidden remark --><title>Fish &amp; Chips</title>"
        "<body><p>first</p><p>second &#8364;5</p></body><?render skip?></doc>",
        encoding="utf-8",
    )

    text = extract(path, DocumentFormat.XML)

    assert tokenize(text) == ["fish", "chips", "first", "second", "5"]
    assert "hidden" not in text
    assert "render" not in text
    assert "&" in text and "€" in text


def test_adjacent_elements_do_not_fuse_into_one_term(tmp_path: Path) -> None:
    path = tmp_path / "tight.xml"
    path.write_text("<r><a>open</a><b>gl</b></r>", encoding="utf-8")

    assert tokenize(extract(path, DocumentFormat.XML)) == ["open", "gl"]


def test_malformed_xml_is_an_extraction_error(tmp_path: Path) -> None:
    path = tmp_path / "bad.xml"
    path.write_text("<doc><open></doc>", encoding="utf-8")

    with pytest.raises(ExtractionError, match="malformed XML"):
        extract(path, DocumentFormat.XML)


def test_xhtml_with_html_entities_falls_back_to_html_parser(tmp_path: Path) -> None:
    path = tmp_path / "page.xhtml"
    path.write_text(
        '<html xmlns="http://www.w3.org/1999/xhtml"><body><p>caf&eacute;&nbsp;menu</p></body></html>',
        encoding="utf-8",
    )

    assert tokenize(extract(path, DocumentFormat.XML)) == ["café", "menu"]


def test_empty_markup_file_has_no_text(tmp_path: Path) -> None:
    path = tmp_path / "empty.xml"
    path.write_bytes(b"  \n")

    assert extract(path, DocumentFormat.XML) == ""


def test_pdf_pages_are_joined(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    class FakePage:
        def __init__(self, text: str | None) -> None:
            self._text = text

        def extract_text(self) -> str | None:
            return self._text

    class FakePdf:
        pages = [FakePage("Page one"), FakePage(None), FakePage("Page three")]

        def __enter__(self) -> FakePdf:
            return self

        def __exit__(self, *exc_info: object) -> None:
            return None

    opened: list[Path] = []

    def fake_open(path: Path) -> FakePdf:
        opened.append(path)
        return FakePdf()

    monkeypatch.setattr(extractors.pdfplumber, "open", fake_open)
    path = tmp_path / "paper.pdf"

    assert extract(path, DocumentFormat.PDF) == "Page one\n\nPage three"
    assert opened == [path]


def test_unparseable_pdf_is_an_extraction_error(tmp_path: Path) -> None:
    path = tmp_path / "fake.pdf"
    path.write_bytes(b"this is not a pdf document at all")

    with pytest.raises(ExtractionError) as exc_info:
        extract(path, DocumentFormat.PDF)

    assert exc_info.value.path == str(path)


def test_pdf_renderer_failure_is_wrapped(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def exploding_open(path: Path) -> None:
        raise RuntimeError("renderer crashed")

    monkeypatch.setattr(extractors.pdfplumber, "open", exploding_open)

    with pytest.raises(ExtractionError, match="renderer crashed"):
        extract(tmp_path / "x.pdf", DocumentFormat.PDF)


def test_external_entities_are_not_expanded(tmp_path: Path) -> None:
    secret = tmp_path / "secret.txt"
    secret.write_text("topsecretvalue", encoding="utf-8")
    path = tmp_path / "entity.xml"
    path.write_text(
        f'<?xml version="1.0"?>\n<!DOCTYPE r [<!ENTITY x SYSTEM "{secret.as_uri()}">]>\n<r>before &x; after</r>',
        encoding="utf-8",
    )

    # Either the reference stays unexpanded or the document is refused.
    try:
        text = extract(path, DocumentFormat.XML)
    except ExtractionError as exc:
        text = str(exc)

    assert "topsecretvalue" not in text


def test_internal_entities_still_expand(tmp_path: Path) -> None:
    path = tmp_path / "internal.xml"
    path.write_text('<!DOCTYPE r [<!ENTITY greet "hello world">]><r>&greet; &lt;again&gt;</r>', encoding="utf-8")

    assert tokenize(extract(path, DocumentFormat.XML)) == ["hello", "world", "again"]
