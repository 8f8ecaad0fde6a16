"""JSON persistence for the search index.

The on-disk layout is::

    {
      "documents": {"<path>": {"term_frequencies": {"<term>": <int>}, "length": <int>}},
      "document_frequency": {"<term>": <int>},
      "document_count": <int>,
      "average_document_length": <float>
    }

``document_count`` and ``average_document_length`` are written for operators
reading the file. On load they are recomputed from ``documents`` and, when
present, must agree with the recomputed values. Every invariant of the data
model is checked before an ``Index`` is handed out, so a corrupt file fails
loudly at startup instead of skewing scores.
"""

from __future__ import annotations

from collections import Counter
from contextlib import suppress
from dataclasses import dataclass
import logging
import math
from pathlib import Path
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError

from docsense.search.models import Document, Index


logger = logging.getLogger(__name__)

_DUMP_OPTIONS = orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS


class IndexIOError(OSError):
    """Raised when the index file cannot be written or read."""


class IndexLoadError(ValueError):
    """Raised when an index file is malformed or violates index invariants."""

    def __init__(self, path: Path | str, field: str, reason: str) -> None:
        self.path = str(path)
        self.field = field
        self.reason = reason
        location = f" at '{field}'" if field else ""
        super().__init__(f"Invalid index file {self.path}{location}: {reason}")


class _DocumentRecord(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    term_frequencies: dict[str, StrictInt]
    length: StrictInt = Field(ge=0)


class _IndexFile(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    documents: dict[str, _DocumentRecord]
    document_frequency: dict[str, StrictInt]
    document_count: StrictInt | None = None
    average_document_length: float | None = None


@dataclass(frozen=True)
class IndexSummary:
    """Headline numbers for an index file."""

    path: Path
    document_count: int
    vocabulary_size: int
    average_document_length: float
    size_bytes: int


def _field_path(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc)


def _validate(path: Path, payload: _IndexFile) -> Index:
    documents: dict[str, Document] = {}
    for doc_path, record in payload.documents.items():
        for term, count in record.term_frequencies.items():
            if count <= 0:
                raise IndexLoadError(
                    path, f"documents.{doc_path}.term_frequencies.{term}", f"frequency must be positive, got {count}"
                )
        document = Document(path=doc_path, term_frequencies=record.term_frequencies)
        if document.length != record.length:
            raise IndexLoadError(
                path,
                f"documents.{doc_path}.length",
                f"length {record.length} does not match term frequency total {document.length}",
            )
        documents[doc_path] = document

    expected_df: Counter[str] = Counter()
    for document in documents.values():
        expected_df.update(document.term_frequencies.keys())

    stored_df = payload.document_frequency
    orphaned = sorted(stored_df.keys() - expected_df.keys())
    if orphaned:
        raise IndexLoadError(path, f"document_frequency.{orphaned[0]}", "term does not occur in any document")
    missing = sorted(expected_df.keys() - stored_df.keys())
    if missing:
        raise IndexLoadError(path, f"document_frequency.{missing[0]}", "term occurs in documents but has no entry")
    for term in sorted(stored_df):
        if stored_df[term] != expected_df[term]:
            raise IndexLoadError(
                path,
                f"document_frequency.{term}",
                f"recorded {stored_df[term]} documents but term occurs in {expected_df[term]}",
            )

    index = Index(documents=documents, document_frequency=stored_df)

    if payload.document_count is not None and payload.document_count != index.document_count:
        raise IndexLoadError(
            path,
            "document_count",
            f"recorded {payload.document_count} but file contains {index.document_count} documents",
        )
    if payload.average_document_length is not None and not math.isclose(
        payload.average_document_length, index.average_document_length, rel_tol=1e-9, abs_tol=1e-9
    ):
        raise IndexLoadError(
            path,
            "average_document_length",
            f"recorded {payload.average_document_length} but documents average {index.average_document_length}",
        )
    return index


class IndexStore:
    """Read and write index files."""

    @staticmethod
    def serialize(index: Index) -> bytes:
        return orjson.dumps(index.to_dict(), option=_DUMP_OPTIONS)

    def save(self, index: Index, path: Path | str) -> Path:
        """Write ``index`` to ``path`` atomically (temp file + rename)."""

        target = Path(path)
        tmp_path = target.with_name(target.name + ".tmp")
        try:
            payload = self.serialize(index)
        except orjson.JSONEncodeError as exc:
            raise IndexIOError(f"Cannot serialize index for {target}: {exc}") from exc
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(payload)
            tmp_path.replace(target)
        except OSError as exc:
            with suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise IndexIOError(f"Cannot write index file {target}: {exc.strerror or exc}") from exc
        logger.info(
            "Saved index with %d documents and %d terms to %s",
            index.document_count,
            index.vocabulary_size,
            target,
        )
        return target

    def load(self, path: Path | str) -> Index:
        """Load and validate the index stored at ``path``.

        Raises:
            IndexIOError: The file is missing or unreadable.
            IndexLoadError: The file is not valid JSON, does not match the
                index layout, or violates an index invariant.
        """

        source = Path(path)
        try:
            data = source.read_bytes()
        except OSError as exc:
            raise IndexIOError(f"Cannot read index file {source}: {exc.strerror or exc}") from exc

        try:
            raw = orjson.loads(data)
        except orjson.JSONDecodeError as exc:
            raise IndexLoadError(source, "", f"malformed JSON: {exc}") from exc

        try:
            payload = _IndexFile.model_validate(raw)
        except ValidationError as exc:
            first = exc.errors()[0]
            raise IndexLoadError(source, _field_path(first["loc"]), first["msg"]) from exc

        index = _validate(source, payload)
        logger.info(
            "Loaded index with %d documents and %d terms from %s",
            index.document_count,
            index.vocabulary_size,
            source,
        )
        return index

    def describe(self, path: Path | str) -> IndexSummary:
        source = Path(path)
        index = self.load(source)
        return IndexSummary(
            path=source,
            document_count=index.document_count,
            vocabulary_size=index.vocabulary_size,
            average_document_length=index.average_document_length,
            size_bytes=source.stat().st_size,
        )


def save_index(index: Index, path: Path | str) -> Path:
    return IndexStore().save(index, path)


def load_index(path: Path | str) -> Index:
    return IndexStore().load(path)


def describe_index(path: Path | str) -> IndexSummary:
    return IndexStore().describe(path)
