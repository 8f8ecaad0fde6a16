"""Unit tests for the index data model."""

from __future__ import annotations

import pytest

from docsense.search.models import Document, Index, IndexBuildError, IndexWriter


pytestmark = pytest.mark.unit


def test_document_length_is_sum_of_term_frequencies() -> None:
    document = Document.from_terms("a.txt", ["cat", "dog", "cat"])

    assert dict(document.term_frequencies) == {"cat": 2, "dog": 1}
    assert document.length == 3


def test_document_statistics_are_read_only() -> None:
    document = Document(path="a.txt", term_frequencies={"cat": 1})

    with pytest.raises(TypeError):
        document.term_frequencies["cat"] = 5  # type: ignore[index]


def test_empty_document_is_allowed() -> None:
    document = Document.from_terms("empty.txt", [])

    assert document.length == 0
    assert document.to_dict() == {"term_frequencies": {}, "length": 0}


def test_document_frequency_counts_documents_not_occurrences(pets_index: Index) -> None:
    assert dict(pets_index.document_frequency) == {"cat": 1, "dog": 2, "fish": 1}
    assert pets_index.document_count == 2
    assert pets_index.average_document_length == 3.0
    assert pets_index.vocabulary_size == 3


def test_postings_list_documents_in_path_order(pets_index: Index) -> None:
    assert pets_index.postings["dog"] == ("a.txt", "b.txt")
    assert pets_index.postings["fish"] == ("b.txt",)
    assert "bird" not in pets_index.postings


def test_empty_index_has_zero_average() -> None:
    index = Index.empty()

    assert index.document_count == 0
    assert index.average_document_length == 0.0
    assert index.get_document("missing") is None


def test_writer_result_does_not_depend_on_insertion_order() -> None:
    documents = [
        Document.from_terms("a.txt", ["cat", "dog"]),
        Document.from_terms("b.txt", ["dog"]),
        Document.from_terms("c.txt", ["fish", "cat", "cat"]),
    ]
    forward, backward = IndexWriter(), IndexWriter()
    for document in documents:
        forward.add_document(document)
    for document in reversed(documents):
        backward.add_document(document)

    assert forward.build().to_dict() == backward.build().to_dict()


def test_duplicate_path_is_rejected() -> None:
    writer = IndexWriter()
    writer.add_document(Document.from_terms("a.txt", ["cat"]))

    with pytest.raises(IndexBuildError, match="a.txt"):
        writer.add_document(Document.from_terms("a.txt", ["dog"]))
    assert len(writer) == 1


def test_merging_partial_writers_matches_a_single_writer() -> None:
    left, right, single = IndexWriter(), IndexWriter(), IndexWriter()
    left.add_document(Document.from_terms("a.txt", ["cat", "dog"]))
    right.add_document(Document.from_terms("b.txt", ["dog", "fish"]))
    for document in (Document.from_terms("a.txt", ["cat", "dog"]), Document.from_terms("b.txt", ["dog", "fish"])):
        single.add_document(document)

    left.merge(right)

    assert left.build().to_dict() == single.build().to_dict()
    assert left.build().document_frequency["dog"] == 2


def test_merge_rejects_overlapping_paths() -> None:
    left, right = IndexWriter(), IndexWriter()
    left.add_document(Document.from_terms("a.txt", ["cat"]))
    right.add_document(Document.from_terms("a.txt", ["cat"]))

    with pytest.raises(IndexBuildError):
        left.merge(right)


def test_get_document(pets_index: Index) -> None:
    document = pets_index.get_document("b.txt")

    assert document is not None
    assert document.term_frequencies["dog"] == 2
