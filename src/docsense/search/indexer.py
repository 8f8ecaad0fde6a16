"""Recursive corpus indexing.

``CorpusIndexer`` walks a directory tree, extracts text from every supported
file, tokenizes it and folds the resulting term statistics into an
``Index``. Extraction and tokenization of each file is independent and runs
on a thread pool; folding happens in the calling thread, in sorted path
order, so the index content never depends on scheduling or traversal order.
"""

from __future__ import annotations

from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging
import os
from pathlib import Path

from docsense.observability.metrics import INDEX_DOC_COUNT, INDEXED_FILES
from docsense.search.extractors import DocumentFormat, ExtractionError, detect_format, extract
from docsense.search.lexer import DEFAULT_LEXER, Lexer
from docsense.search.models import Document, Index, IndexWriter


logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 64
DEFAULT_MAX_WORKERS = 4


@dataclass(frozen=True)
class IndexBuildResult:
    """Outcome of an indexing run."""

    index: Index
    documents_indexed: int
    documents_skipped: int
    errors: tuple[str, ...]


@dataclass(frozen=True)
class _Candidate:
    path: Path
    doc_id: str
    fmt: DocumentFormat


class CorpusIndexer:
    """Build an ``Index`` from every supported file below ``root``."""

    def __init__(
        self,
        root: Path | str,
        *,
        lexer: Lexer | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        if max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {max_depth}")
        self.root = Path(root)
        self.lexer = lexer or DEFAULT_LEXER
        self.max_workers = max_workers
        self.max_depth = max_depth

    def build(self) -> IndexBuildResult:
        """Index the tree. Per-file failures are collected, never raised.

        Raises:
            NotADirectoryError: ``root`` is not a directory.
        """

        if not self.root.is_dir():
            raise NotADirectoryError(f"Not a directory: {self.root}")

        errors: list[str] = []
        skipped = 0
        candidates: list[_Candidate] = []
        for path in self._walk(errors):
            fmt = detect_format(path)
            if fmt is None:
                logger.debug("Skipping unsupported file %s", path)
                skipped += 1
                continue
            doc_id = path.as_posix()
            try:
                doc_id.encode("utf-8")
            except UnicodeEncodeError:
                # Undecodable bytes in the file name; the index file is UTF-8 JSON.
                printable = doc_id.encode("utf-8", "backslashreplace").decode("utf-8")
                logger.warning("Skipping %s: file name is not valid UTF-8", printable)
                errors.append(f"{printable}: file name is not valid UTF-8")
                INDEXED_FILES.labels(format=fmt.value, status="error").inc()
                continue
            candidates.append(_Candidate(path=path, doc_id=doc_id, fmt=fmt))

        candidates.sort(key=lambda candidate: candidate.doc_id)
        logger.info("Indexing %d files under %s", len(candidates), self.root)

        writer = IndexWriter()
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="docsense-index") as pool:
            # map() yields in submission order, i.e. sorted by path.
            for candidate, outcome in zip(candidates, pool.map(self._process, candidates)):
                if isinstance(outcome, ExtractionError):
                    logger.warning("Failed to index %s: %s", candidate.path, outcome.reason)
                    errors.append(str(outcome))
                    INDEXED_FILES.labels(format=candidate.fmt.value, status="error").inc()
                    continue
                writer.add_document(outcome)
                INDEXED_FILES.labels(format=candidate.fmt.value, status="ok").inc()

        index = writer.build()
        INDEX_DOC_COUNT.labels(source="build").set(index.document_count)
        if errors:
            logger.warning("Indexing finished with %d failed files out of %d", len(errors), len(candidates))
        logger.info(
            "Indexed %d documents (%d terms, avg length %.1f), skipped %d unsupported files",
            index.document_count,
            index.vocabulary_size,
            index.average_document_length,
            skipped,
        )
        return IndexBuildResult(
            index=index,
            documents_indexed=index.document_count,
            documents_skipped=skipped,
            errors=tuple(errors),
        )

    # --- internal helpers -------------------------------------------------

    def _process(self, candidate: _Candidate) -> Document | ExtractionError:
        logger.debug("Indexing %s", candidate.path)
        try:
            text = extract(candidate.path, candidate.fmt)
        except ExtractionError as exc:
            return exc
        return Document.from_terms(candidate.doc_id, self.lexer.terms(text))

    def _walk(self, errors: list[str]) -> Iterator[Path]:
        """Yield regular files below ``root``.

        Symlinked directories are followed, but each physical directory is
        entered at most once and never deeper than ``max_depth``, so cycles
        terminate.
        """

        visited: set[tuple[int, int]] = set()
        stack: list[tuple[Path, int]] = [(self.root, 0)]
        while stack:
            directory, depth = stack.pop()
            try:
                stat = directory.stat()
            except OSError as exc:
                errors.append(f"{directory}: cannot stat directory: {exc.strerror or exc}")
                continue
            key = (stat.st_dev, stat.st_ino)
            if key in visited:
                logger.debug("Skipping already visited directory %s", directory)
                continue
            visited.add(key)

            try:
                entries = sorted(os.scandir(directory), key=lambda entry: entry.name)
            except OSError as exc:
                logger.warning("Cannot list directory %s: %s", directory, exc)
                errors.append(f"{directory}: cannot list directory: {exc.strerror or exc}")
                continue

            for entry in entries:
                entry_path = directory / entry.name
                try:
                    if entry.is_dir(follow_symlinks=True):
                        if depth + 1 > self.max_depth:
                            logger.warning("Not descending into %s: depth limit %d reached", entry_path, self.max_depth)
                            continue
                        stack.append((entry_path, depth + 1))
                    elif entry.is_file(follow_symlinks=True):
                        yield entry_path
                except OSError as exc:
                    errors.append(f"{entry_path}: {exc.strerror or exc}")


def build_index(
    root: Path | str,
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Index:
    """Build an ``Index`` from ``root``; per-file failures are logged and skipped."""

    return CorpusIndexer(root, max_workers=max_workers, max_depth=max_depth).build().index
