import logging

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "access-control-allow-origin": "*",
    "access-control-allow-methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
    "access-control-allow-headers": "Content-Type, x-backend, x-backend-location",
}

_RAW_CORS_HEADERS = [(k.encode("latin-1"), v.encode("latin-1")) for k, v in CORS_HEADERS.items()]


class CorsHeadersMiddleware:
    """
    Stamp the fixed CORS header set on every HTTP response.

    Any access-control-* header already present (from a handler or relayed
    from an upstream) is replaced. Unhandled errors are turned into a 500
    here so that they carry the same headers.
    """
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_with_cors(message: Message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
                headers = [
                    (k, v) for k, v in message.get("headers", [])
                    if not k.lower().startswith(b"access-control-")
                ]
                message["headers"] = headers + _RAW_CORS_HEADERS
            await send(message)

        try:
            await self.app(scope, receive, send_with_cors)
        except Exception:
            if response_started:
                raise
            logger.exception("Unhandled error on %s %s", scope.get("method"), scope.get("path"))
            response = JSONResponse(
                status_code=500,
                content={"error": "Internal Server Error"},
            )
            await response(scope, receive, send_with_cors)
