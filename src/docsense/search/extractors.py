"""Per-format text extraction.

The set of supported formats is closed: markup (XML/XHTML), plain text
(TXT/Markdown) and PDF. ``detect_format`` maps a file extension onto one of
them and ``extract`` dispatches to the matching reader. Files with any other
extension are not documents as far as the indexer is concerned.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
import logging
from pathlib import Path

from lxml import etree, html
import pdfplumber


logger = logging.getLogger(__name__)


class ExtractionError(RuntimeError):
    """Raised when a document's content cannot be turned into text."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class DocumentFormat(str, Enum):
    XML = "xml"
    TEXT = "text"
    PDF = "pdf"


_EXTENSION_FORMATS: dict[str, DocumentFormat] = {
    ".xml": DocumentFormat.XML,
    ".xhtml": DocumentFormat.XML,
    ".txt": DocumentFormat.TEXT,
    ".md": DocumentFormat.TEXT,
    ".pdf": DocumentFormat.PDF,
}

SUPPORTED_EXTENSIONS = frozenset(_EXTENSION_FORMATS)


def detect_format(path: Path | str) -> DocumentFormat | None:
    """Return the document format for ``path`` or ``None`` when unsupported."""

    return _EXTENSION_FORMATS.get(Path(path).suffix.lower())


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ExtractionError(path, f"cannot read file: {exc.strerror or exc}") from exc


def extract_text(path: Path) -> str:
    """Decode a TXT/MD file as strict UTF-8."""

    data = _read_bytes(path)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ExtractionError(path, f"invalid UTF-8 at byte {exc.start}") from exc


def _xml_parser() -> etree.XMLParser:
    # No DTD fetching and no external entities; internal and predefined entities still expand.
    return etree.XMLParser(
        load_dtd=False,
        no_network=True,
        resolve_entities="internal",
        remove_comments=True,
        remove_pis=True,
    )


def _join_text_nodes(root) -> str:
    # Comments and processing instructions are not text() nodes.
    return " ".join(node for node in root.xpath("//text()") if node.strip())


def extract_markup(path: Path) -> str:
    """Strip tags from an XML/XHTML file and return its text content in document order.

    XHTML commonly relies on HTML named entities (``&nbsp;``, ``&copy;``) that
    a bare XML parser rejects, so ``.xhtml`` files that fail strict parsing are
    re-read with the HTML parser.
    """

    data = _read_bytes(path)
    if not data.strip():
        return ""
    try:
        root = etree.fromstring(data, parser=_xml_parser())
    except etree.XMLSyntaxError as exc:
        if path.suffix.lower() != ".xhtml":
            line, column = exc.position if exc.position else (0, 0)
            raise ExtractionError(path, f"malformed XML at {line}:{column}: {exc.msg}") from exc
        logger.debug("Strict XML parse failed for %s, retrying as HTML: %s", path, exc)
        try:
            root = html.document_fromstring(data)
        except (etree.ParserError, ValueError) as html_exc:
            raise ExtractionError(path, f"malformed XHTML: {html_exc}") from html_exc
    return _join_text_nodes(root)


def extract_pdf(path: Path) -> str:
    """Render PDF pages to text through pdfplumber."""

    try:
        with pdfplumber.open(path) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except OSError as exc:
        raise ExtractionError(path, f"cannot read file: {exc.strerror or exc}") from exc
    except Exception as exc:  # pdfminer raises a wide range of parser errors
        raise ExtractionError(path, f"PDF extraction failed: {exc}") from exc
    return "\n".join(pages)


_EXTRACTORS: dict[DocumentFormat, Callable[[Path], str]] = {
    DocumentFormat.XML: extract_markup,
    DocumentFormat.TEXT: extract_text,
    DocumentFormat.PDF: extract_pdf,
}


def extract(path: Path | str, fmt: DocumentFormat) -> str:
    """Return the plain text of ``path`` read as ``fmt``.

    Raises:
        ExtractionError: The file could not be read or decoded.
    """

    return _EXTRACTORS[fmt](Path(path))
