import asyncio
import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

BODYLESS_METHODS = {"GET", "HEAD"}


@dataclass(frozen=True)
class UpstreamResponse:
    status_code: int
    content: bytes
    media_type: str | None = None
    content_length: str | None = None     # HEAD only


@dataclass(frozen=True)
class UpstreamFailure:
    reason: str


ForwardResult = UpstreamResponse | UpstreamFailure


def describe_failure(exc: Exception, timeout: float) -> str:
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return f"Upstream did not respond within {timeout:g}s"
    if isinstance(exc, httpx.ConnectError):
        return f"Connection failed: {exc}" if str(exc) else "Connection failed"
    return str(exc) or type(exc).__name__


async def forward(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    headers: dict[str, str],
    body: bytes,
    timeout: float,
) -> ForwardResult:
    """
    Make exactly one outbound attempt.

    Network failures and timeouts come back as ``UpstreamFailure``; any
    HTTP response, including 4xx/5xx, comes back as ``UpstreamResponse``.
    """
    method = method.upper()
    content = None if method in BODYLESS_METHODS else body

    try:
        resp = await asyncio.wait_for(
            client.request(method, url, headers=headers, content=content),
            timeout=timeout,
        )
    except (httpx.RequestError, asyncio.TimeoutError) as exc:
        reason = describe_failure(exc, timeout)
        logger.warning("%s %s failed: %s", method, url, reason)
        return UpstreamFailure(reason)

    logger.debug("%s %s -> %s", method, url, resp.status_code)
    return UpstreamResponse(
        status_code=resp.status_code,
        content=resp.content,
        media_type=resp.headers.get("content-type"),
        content_length=resp.headers.get("content-length") if method == "HEAD" else None,
    )
