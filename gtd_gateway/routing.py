from typing import Mapping

from .errors import UnknownBackendError
from .registry import BackendDescriptor, BackendRegistry

BACKEND_HEADER = "x-backend"
LOCATION_HEADER = "x-backend-location"   # reserved; passed through, never routed on

# Inbound headers relayed to the upstream as-is
PASSTHROUGH_HEADERS = ("content-type", "accept", BACKEND_HEADER, LOCATION_HEADER)


def select_backend_id(headers: Mapping[str, str], default_id: str) -> str:
    backend_id = (headers.get(BACKEND_HEADER) or "").strip()
    return backend_id or default_id


def resolve_backend(registry: BackendRegistry, backend_id: str) -> BackendDescriptor:
    backend = registry.get(backend_id)
    if backend is None:
        raise UnknownBackendError(backend_id, registry.ids())
    return backend


def raw_target(scope: Mapping) -> tuple[str, str]:
    """Inbound path and query string exactly as the client sent them."""
    raw_path = scope.get("raw_path")
    if raw_path is None:
        path = scope["path"]
    else:
        path = raw_path.decode("latin-1").split("?", 1)[0]
    return path, scope.get("query_string", b"").decode("latin-1")


def build_upstream_url(base_url: str, path: str, query: str = "") -> str:
    url = base_url.rstrip("/") + path
    if query:
        url += "?" + query
    return url


def build_upstream_headers(
    headers: Mapping[str, str],
    client_host: str | None,
    router_version: str,
) -> dict[str, str]:
    """
    Headers for the outbound request.

    Only content negotiation and selector headers survive; hop-by-hop and
    host headers are dropped and provenance headers are added.
    """
    out = {
        name: headers[name] for name in PASSTHROUGH_HEADERS if name in headers
    }

    forwarded_for = headers.get("x-forwarded-for")
    if client_host:
        forwarded_for = f"{forwarded_for}, {client_host}" if forwarded_for else client_host
    if forwarded_for:
        out["x-forwarded-for"] = forwarded_for

    if "host" in headers:
        out["x-forwarded-host"] = headers["host"]
    out["x-gateway-version"] = router_version

    return out
