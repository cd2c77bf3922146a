import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Base class for errors raised by the gateway itself."""


class ConfigurationError(GatewayError):
    """The gateway cannot start with the given settings."""


class UnknownBackendError(GatewayError):
    def __init__(self, backend_id: str, available: list[str]):
        self.backend_id = backend_id
        self.available = available
        super().__init__(f"Backend '{backend_id}' is not registered")


def unknown_backend_body(exc: UnknownBackendError) -> dict:
    return {
        "error": "Unknown backend",
        "message": str(exc),
        "backend": exc.backend_id,
        "available": exc.available,
    }


def upstream_unavailable_body(backend_id: str, url: str, reason: str) -> dict:
    return {
        "error": "Backend unavailable",
        "message": f"Could not reach backend '{backend_id}' at {url}: {reason}",
        "backend": backend_id,
        "url": url,
    }


async def unknown_backend_handler(request: Request, exc: UnknownBackendError) -> JSONResponse:
    # Caller mistake, not a gateway fault
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content=unknown_backend_body(exc))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(UnknownBackendError, unknown_backend_handler)
