"""Index data model.

``Document`` holds the per-file term statistics and ``Index`` the corpus-wide
aggregate. Both are immutable once built; ``IndexWriter`` is the single
place where documents are folded into an index.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


class IndexBuildError(ValueError):
    """Raised when documents cannot be folded into an index."""


@dataclass(frozen=True, slots=True)
class Document:
    """Term statistics for one indexed file.

    ``length`` is always derived from ``term_frequencies`` so the two can
    never disagree.
    """

    path: str
    term_frequencies: Mapping[str, int]
    length: int = field(init=False)

    def __post_init__(self) -> None:
        frozen = MappingProxyType(dict(self.term_frequencies))
        object.__setattr__(self, "term_frequencies", frozen)
        object.__setattr__(self, "length", sum(frozen.values()))

    @classmethod
    def from_terms(cls, path: str, terms: Iterable[str]) -> Document:
        return cls(path=path, term_frequencies=Counter(terms))

    def to_dict(self) -> dict[str, object]:
        return {"term_frequencies": dict(self.term_frequencies), "length": self.length}


@dataclass(frozen=True, slots=True)
class Index:
    """Immutable corpus-wide term statistics.

    ``document_count``, ``average_document_length`` and ``postings`` are
    recomputed from ``documents`` on construction and never persisted.
    """

    documents: Mapping[str, Document]
    document_frequency: Mapping[str, int]
    document_count: int = field(init=False)
    average_document_length: float = field(init=False)
    postings: Mapping[str, tuple[str, ...]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        documents = MappingProxyType(dict(self.documents))
        object.__setattr__(self, "documents", documents)
        object.__setattr__(self, "document_frequency", MappingProxyType(dict(self.document_frequency)))
        object.__setattr__(self, "document_count", len(documents))
        total_length = sum(doc.length for doc in documents.values())
        average = total_length / len(documents) if documents else 0.0
        object.__setattr__(self, "average_document_length", average)

        postings: dict[str, list[str]] = defaultdict(list)
        for path in sorted(documents):
            for term in documents[path].term_frequencies:
                postings[term].append(path)
        object.__setattr__(self, "postings", MappingProxyType({term: tuple(paths) for term, paths in postings.items()}))

    @classmethod
    def empty(cls) -> Index:
        return cls(documents={}, document_frequency={})

    @property
    def vocabulary_size(self) -> int:
        return len(self.document_frequency)

    def get_document(self, path: str) -> Document | None:
        return self.documents.get(path)

    def to_dict(self) -> dict[str, object]:
        return {
            "documents": {path: doc.to_dict() for path, doc in self.documents.items()},
            "document_frequency": dict(self.document_frequency),
            "document_count": self.document_count,
            "average_document_length": self.average_document_length,
        }


class IndexWriter:
    """Accumulate documents and produce an immutable ``Index``.

    Aggregation is commutative: the resulting statistics do not depend on
    the order documents are added or partial writers are merged.
    """

    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}
        self._document_frequency: Counter[str] = Counter()

    def __len__(self) -> int:
        return len(self._documents)

    def add_document(self, document: Document) -> None:
        if document.path in self._documents:
            msg = f"Duplicate document path: {document.path}"
            raise IndexBuildError(msg)
        self._documents[document.path] = document
        # One increment per distinct term in the document.
        self._document_frequency.update(document.term_frequencies.keys())

    def merge(self, other: IndexWriter) -> None:
        """Fold a partial writer (e.g. one per worker) into this one."""

        overlap = self._documents.keys() & other._documents.keys()
        if overlap:
            msg = f"Duplicate document path: {sorted(overlap)[0]}"
            raise IndexBuildError(msg)
        self._documents.update(other._documents)
        self._document_frequency.update(other._document_frequency)

    def build(self) -> Index:
        return Index(documents=self._documents, document_frequency=self._document_frequency)
