"""
Indexing and ranking core.

This package provides a pure-Python search stack:
- lexer: Alphanumeric tokenizer and lowercase filter
- extractors: Per-format text extraction (XML/XHTML, TXT/MD, PDF)
- models: Document / Index data model and the index writer
- indexer: Recursive corpus indexing
- storage: JSON persistence with invariant checks on load
- ranking: TF-IDF and BM25 scoring
"""
