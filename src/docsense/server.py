"""HTTP query server.

Architecture:
    Starlette App
      ├── POST /api/search → ranked [path, score] pairs
      ├── GET  /api/stats  → corpus statistics
      ├── GET  /health     → liveness
      └── GET  /metrics    → Prometheus exposition

The server holds exactly one ``Index`` for its whole lifetime. The index is
immutable, so request handlers share it without any locking; ranking runs
in the worker thread pool so one slow query never stalls the event loop.
"""

from __future__ import annotations

import logging
from pathlib import Path

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from docsense.config import Settings, parse_address
from docsense.observability import (
    INDEX_DOC_COUNT,
    REQUEST_COUNT,
    SEARCH_LATENCY,
    get_metrics,
    get_metrics_content_type,
    new_request_context,
    track_latency,
)
from docsense.search.lexer import DEFAULT_LEXER, Lexer
from docsense.search.models import Index
from docsense.search.ranking import DEFAULT_B, DEFAULT_K1, RankedDocument, RankMethod, rank
from docsense.search.storage import IndexStore


logger = logging.getLogger(__name__)


class SearchService:
    """Tokenize raw queries and rank them against a fixed index snapshot."""

    def __init__(
        self,
        index: Index,
        *,
        method: RankMethod | str = RankMethod.TFIDF,
        k1: float = DEFAULT_K1,
        b: float = DEFAULT_B,
        max_results: int = 0,
        lexer: Lexer | None = None,
    ) -> None:
        self.index = index
        self.method = RankMethod.parse(method)
        self.k1 = k1
        self.b = b
        self.max_results = max_results
        self.lexer = lexer or DEFAULT_LEXER

    @classmethod
    def from_settings(cls, index: Index, settings: Settings) -> SearchService:
        return cls(
            index,
            method=settings.rank_method,
            k1=settings.bm25_k1,
            b=settings.bm25_b,
            max_results=settings.max_results,
        )

    def search(self, raw_query: str) -> list[RankedDocument]:
        """Rank documents for ``raw_query``; a query without terms yields ``[]``."""

        terms = list(self.lexer.terms(raw_query))
        if not terms:
            return []
        with track_latency(SEARCH_LATENCY, method=self.method.value):
            return rank(self.index, terms, self.method, k1=self.k1, b=self.b, limit=self.max_results or None)

    async def search_async(self, raw_query: str) -> list[RankedDocument]:
        return await run_in_threadpool(self.search, raw_query)

    def stats(self) -> dict[str, object]:
        return {
            "doc_count": self.index.document_count,
            "unique_term_count": self.index.vocabulary_size,
            "average_document_length": self.index.average_document_length,
            "rank_method": self.method.value,
        }


def create_app(service: SearchService, *, debug: bool = False) -> Starlette:
    """Build the ASGI application around an already loaded index."""

    INDEX_DOC_COUNT.labels(source="serve").set(service.index.document_count)

    async def api_search(request: Request) -> JSONResponse:
        new_request_context(endpoint="search")
        body = await request.body()
        try:
            query = body.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Query body is not valid UTF-8; decoding with replacement characters")
            query = body.decode("utf-8", errors="replace")

        results = await service.search_async(query)
        logger.info(
            "Search '%s' matched %d documents",
            query[:200],
            len(results),
            extra={"results": len(results)},
        )
        REQUEST_COUNT.labels(endpoint="search", status="ok").inc()
        return JSONResponse([result.to_pair() for result in results])

    async def api_stats(request: Request) -> JSONResponse:
        REQUEST_COUNT.labels(endpoint="stats", status="ok").inc()
        return JSONResponse(service.stats())

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "healthy", "documents": service.index.document_count})

    async def metrics(request: Request) -> Response:
        return Response(get_metrics(), media_type=get_metrics_content_type())

    routes = [
        Route("/api/search", endpoint=api_search, methods=["POST"]),
        Route("/api/stats", endpoint=api_stats, methods=["GET"]),
        Route("/health", endpoint=health, methods=["GET"]),
        Route("/metrics", endpoint=metrics, methods=["GET"]),
    ]
    app = Starlette(debug=debug, routes=routes)
    app.state.search_service = service
    return app


def load_app(index_path: Path | str, settings: Settings | None = None) -> Starlette:
    """Load ``index_path`` and build the app.

    Raises:
        IndexIOError: The index file is missing or unreadable.
        IndexLoadError: The index file is corrupt.
    """

    settings = settings or Settings()
    index = IndexStore().load(index_path)
    service = SearchService.from_settings(index, settings)
    return create_app(service)


def serve(index_path: Path | str, address: str | None = None, settings: Settings | None = None) -> None:
    """Load the index and run the HTTP server until interrupted."""
    import uvicorn

    settings = settings or Settings()
    host, port = parse_address(address) if address else (settings.host, settings.port)
    app = load_app(index_path, settings)

    logger.info("Serving %s with %s ranking on http://%s:%d/", index_path, settings.rank_method.value, host, port)
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
        log_config=None,  # keep our logging configuration
        limit_concurrency=settings.uvicorn_limit_concurrency,
    )
