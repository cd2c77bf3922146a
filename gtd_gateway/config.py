import logging
from functools import lru_cache
from typing import NamedTuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class KnownBackend(NamedTuple):
    id: str
    name: str
    setting: str    # Settings field holding the base URL


# Order here is the order of GET /backends
KNOWN_BACKENDS: tuple[KnownBackend, ...] = (
    KnownBackend("hono-d1", "Hono + D1", "hono_d1_url"),
    KnownBackend("bun-sqlite", "Bun + SQLite", "bun_sqlite_url"),
    KnownBackend("rails", "Ruby on Rails", "rails_url"),
    KnownBackend("phoenix", "Elixir Phoenix", "phoenix_url"),
    KnownBackend("laravel", "PHP Laravel", "laravel_url"),
    KnownBackend("dotnet", "ASP.NET Core", "dotnet_url"),
    KnownBackend("java", "Java Spring Boot", "java_url"),
)


class Settings(BaseSettings):
    """
    Process-wide gateway configuration.

    Read once from the environment (and ``.env``) at startup and passed
    explicitly to the app factory and the registry.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    default_backend: str = "hono-d1"

    hono_d1_url: str | None = "https://hono-d1-backend.salalite.workers.dev"
    bun_sqlite_url: str | None = None
    rails_url: str | None = None
    phoenix_url: str | None = None
    laravel_url: str | None = None
    dotnet_url: str | None = None
    java_url: str | None = None

    upstream_timeout: float = Field(default=30.0, gt=0)
    router_version: str = "1.0.0"
    log_level: str = "INFO"

    host: str = "127.0.0.1"
    port: int = 8787

    @field_validator(*(known.setting for known in KNOWN_BACKENDS), mode="before")
    @classmethod
    def normalize_url(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = str(v).strip()
        return v.rstrip("/") or None

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.strip().upper()

    def backend_urls(self) -> dict[str, str]:
        """Configured base URL per known backend id, skipping unset ones."""
        urls = {}
        for known in KNOWN_BACKENDS:
            url = getattr(self, known.setting)
            if url:
                urls[known.id] = url
        return urls


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
