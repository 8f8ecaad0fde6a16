"""TF-IDF and BM25 ranking over an ``Index``.

Scoring walks the postings of each distinct query term, so the work done per
query is proportional to the documents that share a term with it rather than
to the size of the corpus.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
import math

from docsense.search.models import Index


DEFAULT_K1 = 1.2
DEFAULT_B = 0.75

# Keeps a term that occurs in every document (idf = ln(1) = 0) retrievable.
_IDF_FLOOR = 1e-6


class RankMethod(str, Enum):
    TFIDF = "tfidf"
    BM25 = "bm25"

    @classmethod
    def parse(cls, value: str | RankMethod) -> RankMethod:
        if isinstance(value, RankMethod):
            return value
        normalized = value.strip().lower().replace("-", "")
        for method in cls:
            if method.value == normalized:
                return method
        msg = f"Unknown rank method '{value}'. Available: {[m.value for m in cls]}"
        raise ValueError(msg)


@dataclass(frozen=True)
class RankedDocument:
    """A scored document produced by the ranking engine."""

    path: str
    score: float

    def to_pair(self) -> list[str | float]:
        return [self.path, self.score]


def tfidf_idf(doc_freq: int, total_docs: int) -> float:
    """Return ``ln(N / max(df, 1))`` floored at a tiny positive value."""

    if total_docs <= 0:
        return 0.0
    return max(math.log(total_docs / max(doc_freq, 1)), _IDF_FLOOR)


def bm25_idf(doc_freq: int, total_docs: int) -> float:
    """Return the BM25 idf ``ln((N - df + 0.5) / (df + 0.5) + 1)``; always positive."""

    return math.log((total_docs - doc_freq + 0.5) / (doc_freq + 0.5) + 1.0)


def bm25_term_weight(
    tf: int,
    doc_length: int,
    avg_doc_length: float,
    *,
    k1: float = DEFAULT_K1,
    b: float = DEFAULT_B,
) -> float:
    """Compute the BM25 term weight without IDF."""

    if tf <= 0:
        return 0.0
    if avg_doc_length > 0:
        normalization = 1.0 - b + b * doc_length / avg_doc_length
    else:
        normalization = 1.0
    return tf * (k1 + 1.0) / (tf + k1 * normalization)


def _check_bm25_params(k1: float, b: float) -> None:
    if k1 < 0:
        raise ValueError(f"k1 must be non-negative, got {k1}")
    if not 0.0 <= b <= 1.0:
        raise ValueError(f"b must be within [0, 1], got {b}")


def rank(
    index: Index,
    query_terms: Iterable[str],
    method: RankMethod | str = RankMethod.TFIDF,
    *,
    k1: float = DEFAULT_K1,
    b: float = DEFAULT_B,
    limit: int | None = None,
) -> list[RankedDocument]:
    """Score documents against ``query_terms``, best first.

    Only documents with a positive score are returned. Equal scores are
    ordered by ascending path. A repeated query term contributes once per
    occurrence. ``limit`` of ``None`` or ``0`` returns every match.
    """

    method = RankMethod.parse(method)
    if method is RankMethod.BM25:
        _check_bm25_params(k1, b)

    query_counts = Counter(query_terms)
    total_docs = index.document_count
    if not query_counts or total_docs == 0:
        return []

    doc_scores: dict[str, float] = defaultdict(float)
    avgdl = index.average_document_length

    for term, occurrences in query_counts.items():
        paths = index.postings.get(term)
        if not paths:
            continue
        doc_freq = index.document_frequency.get(term, 0)
        if method is RankMethod.TFIDF:
            idf = tfidf_idf(doc_freq, total_docs)
        else:
            idf = bm25_idf(doc_freq, total_docs)

        for path in paths:
            document = index.documents[path]
            tf = document.term_frequencies.get(term, 0)
            if method is RankMethod.TFIDF:
                weight = float(tf)
            else:
                weight = bm25_term_weight(tf, document.length, avgdl, k1=k1, b=b)
            doc_scores[path] += occurrences * idf * weight

    ranked = sorted(
        (RankedDocument(path=path, score=score) for path, score in doc_scores.items() if score > 0),
        key=lambda entry: (-entry.score, entry.path),
    )
    if limit:
        return ranked[:limit]
    return ranked
