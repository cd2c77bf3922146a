import ipaddress
from types import MappingProxyType
from typing import Iterable, Iterator, Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field

from .config import KNOWN_BACKENDS, Settings
from .errors import ConfigurationError


class BackendDescriptor(BaseModel):
    """One selectable upstream service."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    url: str
    kind: Literal["local", "remote"] = "remote"
    health_endpoint: str = Field(alias="healthEndpoint")

    @classmethod
    def for_url(cls, id: str, name: str, url: str) -> "BackendDescriptor":
        url = url.rstrip("/")
        return cls(
            id=id,
            name=name,
            url=url,
            kind=url_kind(url),
            health_endpoint=url + "/health",
        )


def url_kind(url: str) -> Literal["local", "remote"]:
    """
    Classify a base URL by deployment locality.

    Loopback addresses, ``localhost`` and dot-less hostnames (compose
    service names) are local; anything else is remote.
    """
    host = urlsplit(url).hostname or ""
    if host == "localhost" or "." not in host and ":" not in host:
        return "local"
    try:
        return "local" if ipaddress.ip_address(host).is_loopback else "remote"
    except ValueError:
        return "remote"


class BackendRegistry:
    """
    Read-only lookup table from backend id to descriptor.

    Built once at startup; safe to share between concurrent requests.
    """
    def __init__(self, descriptors: Iterable[BackendDescriptor], default_id: str):
        backends: dict[str, BackendDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.id in backends:
                raise ValueError(f"Duplicate backend id: {descriptor.id!r}")
            backends[descriptor.id] = descriptor

        if default_id not in backends:
            raise ConfigurationError(
                f"Default backend {default_id!r} has no configured URL"
            )

        self._backends = MappingProxyType(backends)
        self.default_id = default_id

    @classmethod
    def from_settings(cls, settings: Settings) -> "BackendRegistry":
        names = {known.id: known.name for known in KNOWN_BACKENDS}
        descriptors = [
            BackendDescriptor.for_url(backend_id, names[backend_id], url)
            for backend_id, url in settings.backend_urls().items()
        ]
        return cls(descriptors, default_id=settings.default_backend)

    @property
    def default(self) -> BackendDescriptor:
        return self._backends[self.default_id]

    def get(self, backend_id: str) -> BackendDescriptor | None:
        return self._backends.get(backend_id)

    def ids(self) -> list[str]:
        return list(self._backends)

    def __contains__(self, backend_id: object) -> bool:
        return backend_id in self._backends

    def __iter__(self) -> Iterator[BackendDescriptor]:
        return iter(self._backends.values())

    def __len__(self) -> int:
        return len(self._backends)

    def list(self) -> list[BackendDescriptor]:
        return list(self._backends.values())
