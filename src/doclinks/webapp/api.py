"""REST API for keyword resolution and index inspection.

Run with the CLI (`dl serve`) or any ASGI server:

    uvicorn --factory doclinks.webapp.api:create_app
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import __version__
from ..core import DocLinks
from ..models import CacheMetrics, DocumentNode, DuplicateTitle, ErrorRecord, KeywordIndexEntry

log = logging.getLogger(__name__)

RESPONSE_TIME_HEADER = "X-Response-Time-Ms"


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 3)


# Response models
class KeywordIndexResponse(BaseModel):
    """Keyword index with duplicate-title diagnostics."""
    keywords: int
    index: dict[str, KeywordIndexEntry]
    duplicates: list[DuplicateTitle]


class ErrorsResponse(BaseModel):
    """Recent errors retained by the reporter."""
    errors: list[ErrorRecord]
    statistics: dict[str, int]


def create_app(service: DocLinks | None = None) -> FastAPI:
    """Build the API around a DocLinks service.

    Without a service, one is created on first request from
    DOCLINKS_CONTENT_ROOT. The app starts the service on startup and
    closes it on shutdown.
    """
    state: dict[str, DocLinks | None] = {"service": service}

    def get_service() -> DocLinks:
        if state["service"] is None:
            from ..config import get_content_root

            state["service"] = DocLinks(get_content_root())
        return state["service"]

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        docs = get_service()
        docs.start()
        try:
            yield
        finally:
            docs.close()

    app = FastAPI(
        title="doclinks",
        description="Documentation keyword index and resolution",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def response_time(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        response.headers[RESPONSE_TIME_HEADER] = str(_elapsed_ms(start))
        return response

    # API Routes

    @app.get("/api/keywords/resolve")
    async def resolve_keyword(
        keyword: str | None = Query(None, description="Keyword to resolve"),
        doc_type: str | None = Query(None, alias="docType", description="Restrict to a doc type"),
        context: str | None = Query(None, description="Reader's current location"),
    ) -> JSONResponse:
        """Resolve a keyword.

        200 with the ResolvedKeyword, including logical non-matches (which
        carry `error`). 400 when `keyword` is missing or blank, 500 when
        resolution fails unexpectedly.
        """
        start = time.perf_counter()
        if keyword is None or not keyword.strip():
            return JSONResponse(
                status_code=400,
                content={"error": "keyword is required", "responseTimeMs": _elapsed_ms(start)},
            )

        try:
            result = await get_service().resolve_keyword(keyword, doc_type=doc_type, context=context)
        except Exception as e:
            log.exception("Keyword resolution failed for %r", keyword)
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal error while resolving keyword",
                    "details": str(e),
                    "responseTimeMs": _elapsed_ms(start),
                },
            )

        payload: dict[str, Any] = result.to_payload()
        payload["responseTimeMs"] = _elapsed_ms(start)
        return JSONResponse(content=payload)

    @app.get("/api/tree", response_model=list[DocumentNode])
    async def get_tree(subpath: str = Query("", description="Subdirectory to list")):
        return get_service().get_doc_tree(subpath)

    @app.get("/api/keywords", response_model=KeywordIndexResponse)
    async def get_keywords():
        keyword_index = get_service().get_keyword_index()
        return KeywordIndexResponse(
            keywords=len(keyword_index.index),
            index=keyword_index.index,
            duplicates=keyword_index.duplicates,
        )

    @app.get("/api/cache/metrics", response_model=CacheMetrics)
    async def get_cache_metrics():
        return get_service().cache.get_metrics()

    @app.get("/api/errors", response_model=ErrorsResponse)
    async def get_errors():
        reporter = get_service().reporter
        return ErrorsResponse(
            errors=reporter.get_errors(),
            statistics={code.value: count for code, count in reporter.get_statistics().items()},
        )

    return app
