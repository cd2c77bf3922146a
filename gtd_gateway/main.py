import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .config import Settings, configure_logging, get_settings
from .errors import register_exception_handlers, upstream_unavailable_body
from .forwarding import UpstreamFailure, forward
from .middleware import CorsHeadersMiddleware
from .registry import BackendRegistry
from .routing import (
    build_upstream_headers,
    build_upstream_url,
    raw_target,
    resolve_backend,
    select_backend_id,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown logic."""
    #---- Startup ----
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)

    if not hasattr(app.state, 'http_client'):
        app.state.http_client = httpx.AsyncClient(timeout=settings.upstream_timeout)

    registry: BackendRegistry = app.state.registry
    logger.info(
        "Gateway %s routing to %s (default %s)",
        settings.router_version, ", ".join(registry.ids()), registry.default_id,
    )

    try:
        yield
    finally:
        #---- Shutdown ----
        if hasattr(app.state, 'http_client'):
            await app.state.http_client.aclose()


async def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }


async def list_backends(request: Request):
    registry: BackendRegistry = request.app.state.registry
    return {"backends": [b.model_dump(by_alias=True) for b in registry.list()]}


async def proxy(path: str, request: Request):
    settings: Settings = request.app.state.settings
    registry: BackendRegistry = request.app.state.registry

    # ---- Resolve ----
    backend_id = select_backend_id(request.headers, registry.default_id)
    backend = resolve_backend(registry, backend_id)

    raw_path, raw_query = raw_target(request.scope)
    url = build_upstream_url(backend.url, raw_path, raw_query)
    headers = build_upstream_headers(
        request.headers,
        request.client.host if request.client else None,
        settings.router_version,
    )
    body = await request.body()

    # ---- Forward ----
    result = await forward(
        request.app.state.http_client,
        request.method,
        url,
        headers=headers,
        body=body,
        timeout=settings.upstream_timeout,
    )
    if isinstance(result, UpstreamFailure):
        return JSONResponse(
            status_code=503,
            content=upstream_unavailable_body(backend.id, url, result.reason),
        )

    # HEAD carries no body, so the upstream length has to be relayed explicitly
    response_headers = {"content-length": result.content_length} if result.content_length else None
    return Response(
        content=result.content,
        status_code=result.status_code,
        headers=response_headers,
        media_type=result.media_type,
    )


def create_app(
    settings: Settings | None = None,
    registry: BackendRegistry | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    if registry is None:
        registry = BackendRegistry.from_settings(settings)

    # No docs routes: every path other than /health and /backends belongs to the upstreams
    app = FastAPI(
        title="GTD backend gateway",
        version=settings.router_version,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.registry = registry

    app.add_middleware(CorsHeadersMiddleware)
    register_exception_handlers(app)

    # Informational routes first; everything else falls through to the proxy
    app.add_api_route("/health", health, methods=["GET"])
    app.add_api_route("/backends", list_backends, methods=["GET"])
    app.add_api_route(
        path="/{path:path}",
        endpoint=proxy,
        methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"],
    )
    return app
