"""FastAPI application exposing the lookup and cache-invalidation operations."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from . import __version__
from .config import ProxyConfig, load_config
from .service import InvalidSubjectError, LookupService

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true"}


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def create_app(
    config: ProxyConfig | None = None,
    service: LookupService | None = None,
) -> FastAPI:
    """Create the app with one shared cache/service for the process."""
    config = config or load_config()
    service = service or LookupService.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "rolimons-proxy starting: endpoints=%d ttl=%ss",
            len(service.chain.endpoints),
            service.cache.ttl_sec,
        )
        yield
        fetcher = service.chain.fetcher
        if hasattr(fetcher, "close"):
            fetcher.close()
        logger.info("rolimons-proxy stopping")

    app = FastAPI(title="rolimons-proxy", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.service = service

    @app.exception_handler(InvalidSubjectError)
    async def _invalid_subject(_: Request, exc: InvalidSubjectError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def _internal_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s", request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "internal error"})

    @app.get("/")
    async def health() -> dict:
        return {"ok": True, "msg": "rolimons-proxy alive", "version": __version__}

    @app.get("/avatarValue")
    async def avatar_value(
        user_id: Optional[str] = Query(None, alias="userId"),
        nocache: Optional[str] = Query(None),
        debug: Optional[str] = Query(None),
    ) -> JSONResponse:
        response = await service.lookup(
            user_id, no_cache=_flag(nocache), debug=_flag(debug)
        )
        return JSONResponse(status_code=response.http_status, content=response.to_payload())

    @app.get("/clearCache")
    async def clear_cache(user_id: Optional[str] = Query(None, alias="userId")) -> dict:
        key = service.validate_subject_id(user_id)
        existed = service.invalidate(key)
        return {"ok": True, "cleared": key, "existed": existed}

    return app
