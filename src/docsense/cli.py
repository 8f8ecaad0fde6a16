"""Command-line entry point: index, search, check and serve.

Examples:
    docsense index ./docs -o index.json
    docsense search index.json "deep neural networks" --rank-method bm25
    docsense check index.json
    docsense serve index.json 0.0.0.0:8080
"""

# ruff: noqa: T201

from __future__ import annotations

import argparse
from collections.abc import Sequence
import logging
from pathlib import Path
import sys
import textwrap
import time

from docsense import __version__
from docsense.config import DEFAULT_ADDRESS, Settings
from docsense.observability import configure_logging
from docsense.search.indexer import CorpusIndexer
from docsense.search.lexer import tokenize
from docsense.search.ranking import RankMethod, rank
from docsense.search.storage import IndexIOError, IndexLoadError, IndexStore


logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 20


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docsense",
        description="A fast document indexing and search engine which runs locally on your machine.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent(
            """
            Examples:
              docsense index ./docs -o index.json
              docsense search index.json "opengl window context" -r bm25
              docsense check index.json
              docsense serve index.json 127.0.0.1:6969
            """
        ).strip(),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", help="Override DOCSENSE_LOG_LEVEL (debug, info, warning, error)")
    parser.add_argument("--plain-logs", action="store_true", help="Human-readable logs instead of JSON")

    subcommands = parser.add_subparsers(dest="command", required=True, metavar="SUBCOMMAND")

    index_cmd = subcommands.add_parser("index", help="Index a directory of XML/XHTML, TXT/MD and PDF files")
    index_cmd.add_argument("dir_path", type=Path, help="Directory to index recursively")
    index_cmd.add_argument("-o", "--output", type=Path, help="Index file to write (default: DOCSENSE_INDEX_PATH)")
    index_cmd.add_argument("-j", "--workers", type=int, help="Extraction threads (default: DOCSENSE_INDEX_WORKERS)")

    search_cmd = subcommands.add_parser("search", help="Search a prompt against an index file")
    search_cmd.add_argument("index_file_path", type=Path, help="Path to the .json index file")
    search_cmd.add_argument("prompt", help="Search prompt, e.g. 'deep neural networks'")
    search_cmd.add_argument("-r", "--rank-method", type=RankMethod.parse, help="Ranking algorithm: tfidf or bm25")
    search_cmd.add_argument(
        "-n", "--limit", type=int, default=DEFAULT_SEARCH_LIMIT, help="Results to show, 0 for all (default: 20)"
    )

    check_cmd = subcommands.add_parser("check", help="Show how many documents an index file holds")
    check_cmd.add_argument(
        "index_file_path", type=Path, nargs="?", help="Index file to inspect (default: DOCSENSE_INDEX_PATH)"
    )

    serve_cmd = subcommands.add_parser("serve", help="Serve an index file over HTTP")
    serve_cmd.add_argument("index_file_path", type=Path, help="Index file to serve")
    serve_cmd.add_argument("address", nargs="?", help=f"HOST:PORT to bind (default: {DEFAULT_ADDRESS})")
    serve_cmd.add_argument("-r", "--rank-method", type=RankMethod.parse, help="Ranking algorithm: tfidf or bm25")

    return parser


def _settings_for(args: argparse.Namespace) -> Settings:
    overrides: dict[str, object] = {}
    if getattr(args, "rank_method", None) is not None:
        overrides["rank_method"] = args.rank_method
    if getattr(args, "workers", None) is not None:
        overrides["index_workers"] = args.workers
    if args.log_level:
        overrides["log_level"] = args.log_level
    return Settings(**overrides)


def run_index(args: argparse.Namespace, settings: Settings) -> int:
    output = args.output or settings.index_path
    started = time.perf_counter()
    try:
        result = CorpusIndexer(
            args.dir_path,
            max_workers=settings.index_workers,
            max_depth=settings.max_traversal_depth,
        ).build()
    except NotADirectoryError as exc:
        logger.error("%s", exc)
        return 1

    try:
        IndexStore().save(result.index, output)
    except IndexIOError as exc:
        logger.error("%s", exc)
        return 1

    duration = time.perf_counter() - started
    print(f"Indexed {result.documents_indexed} documents into {output} in {duration:.2f}s")
    print(f"  terms: {result.index.vocabulary_size}, skipped (unsupported): {result.documents_skipped}")
    if result.errors:
        print(f"  failed: {len(result.errors)}")
        for error in result.errors:
            print(f"    - {error}")
    return 0


def run_search(args: argparse.Namespace, settings: Settings) -> int:
    try:
        index = IndexStore().load(args.index_file_path)
    except (IndexIOError, IndexLoadError) as exc:
        logger.error("%s", exc)
        return 1

    results = rank(
        index,
        tokenize(args.prompt),
        settings.rank_method,
        k1=settings.bm25_k1,
        b=settings.bm25_b,
        limit=max(args.limit, 0) or None,
    )
    for result in results:
        print(f"{result.path} - {result.score}")
    if not results:
        print("No matching documents")
    return 0


def run_check(args: argparse.Namespace, settings: Settings) -> int:
    path = args.index_file_path or settings.index_path
    try:
        summary = IndexStore().describe(path)
    except (IndexIOError, IndexLoadError) as exc:
        logger.error("%s", exc)
        return 1
    print(f"Index file {summary.path} has {summary.document_count} entries")
    print(f"  terms: {summary.vocabulary_size}, average length: {summary.average_document_length:.1f}")
    return 0


def run_serve(args: argparse.Namespace, settings: Settings) -> int:
    from docsense.server import serve

    try:
        serve(args.index_file_path, args.address, settings)
    except (IndexIOError, IndexLoadError, ValueError) as exc:
        logger.error("Cannot start server: %s", exc)
        return 1
    return 0


_COMMANDS = {
    "index": run_index,
    "search": run_search,
    "check": run_check,
    "serve": run_serve,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)
    settings = _settings_for(args)
    configure_logging(settings.log_level, json_output=settings.log_json and not args.plain_logs)
    return _COMMANDS[args.command](args, settings)


if __name__ == "__main__":
    sys.exit(main())
