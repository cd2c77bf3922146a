"""
Command-line interface for the GTD backend gateway.
"""
import sys

import click
import httpx
import uvicorn

from .config import configure_logging, get_settings
from .errors import ConfigurationError
from .registry import BackendRegistry


@click.group()
def cli():
    """GTD backend gateway."""


@cli.command()
@click.option("--host", default=None, help="Bind address (default: HOST or 127.0.0.1).")
@click.option("--port", type=int, default=None, help="Bind port (default: PORT or 8787).")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
def serve(host, port, reload):
    """Run the gateway under uvicorn."""
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "gtd_gateway.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@cli.command()
def backends():
    """Show the backends configured in this environment."""
    settings = get_settings()
    try:
        registry = BackendRegistry.from_settings(settings)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    for backend in registry.list():
        marker = "*" if backend.id == registry.default_id else " "
        click.echo(f"{marker} {backend.id:<12} {backend.kind:<7} {backend.url}  ({backend.name})")


def _probe(client: httpx.Client, label: str, url: str) -> bool:
    try:
        resp = client.get(url)
        payload = resp.json()
        ok = resp.status_code == 200 and isinstance(payload, dict) and payload.get("status") == "ok"
    except (httpx.HTTPError, ValueError) as e:
        click.echo(f"FAIL  {label}: {str(e) or type(e).__name__}")
        return False

    click.echo(f"{'OK  ' if ok else 'FAIL'}  {label}: HTTP {resp.status_code}")
    return ok


@cli.command()
@click.option(
    "--gateway-url",
    envvar="GATEWAY_URL",
    default=None,
    help="Gateway to check (default: GATEWAY_URL or the local serve address).",
)
@click.option("--timeout", type=float, default=10.0, show_default=True)
def check(gateway_url, timeout):
    """Probe the gateway and every backend it lists."""
    if not gateway_url:
        settings = get_settings()
        gateway_url = f"http://{settings.host}:{settings.port}"
    gateway_url = gateway_url.rstrip("/")

    with httpx.Client(timeout=timeout) as client:
        healthy = _probe(client, "gateway", f"{gateway_url}/health")

        try:
            listed = client.get(f"{gateway_url}/backends").json()["backends"]
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            click.echo(f"FAIL  registry: {str(e) or type(e).__name__}")
            sys.exit(1)
        click.echo(f"      registry: {', '.join(b['id'] for b in listed) or '(empty)'}")

        for backend in listed:
            healthy &= _probe(client, f"backend {backend['id']}", backend["healthEndpoint"])

    sys.exit(0 if healthy else 1)


def main():
    cli()


if __name__ == "__main__":
    main()
