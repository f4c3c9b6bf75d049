"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from adapters.http_client import build_async_client
from core.config import AppSettings, write_user_env_vars

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_http(url: str, settings: AppSettings) -> tuple[bool, str]:
    try:
        async with build_async_client(settings) as client:
            response = await client.get(url)
        return True, f"HTTP {response.status_code}"
    except Exception as exc:
        return False, str(exc)


def _check_output_dir(path: Path) -> tuple[bool, str]:
    """Create and remove a scratch file to detect permission problems."""

    try:
        path.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=path, prefix=".doctor-"):
            pass
        return True, str(path.resolve())
    except OSError as exc:
        return False, str(exc)


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="NR-AUDIT Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Config
    if settings.api_base_url:
        table.add_row("API base URL", "OK", settings.api_base_url)
    else:
        table.add_row("API base URL", "MISSING", "Set NR_AUDIT_API_BASE_URL or run `doctor setup-api`")
    if settings.api_key:
        table.add_row("API key", "OK", f"Sent in header {settings.api_key_header}")
    else:
        table.add_row("API key", "MISSING", "Set NR_AUDIT_API_KEY or run `doctor setup-api`")
    table.add_row(
        "Rate limit",
        "OK",
        f"{settings.limit_per_minute}/min -> one request every {settings.request_interval_seconds:.2f}s",
    )
    table.add_row("Concurrency", "OK", str(settings.max_concurrency))

    # Connectivity (best-effort)
    if settings.api_base_url:
        ok_http, detail_http = asyncio.run(_check_http(settings.api_base_url, settings))
        table.add_row("HTTP connectivity", "OK" if ok_http else "FAIL", detail_http)

    ok_out, detail_out = _check_output_dir(settings.output_dir)
    table.add_row("Output directory", "OK" if ok_out else "FAIL", detail_out)

    if settings.cache_dir is not None:
        ok_cache, detail_cache = _check_output_dir(settings.cache_dir)
        table.add_row("Payload cache", "OK" if ok_cache else "FAIL", detail_cache)
    else:
        table.add_row("Payload cache", "OPTIONAL", "Disabled (NR_AUDIT_CACHE_DIR not set)")

    _console.print(table)


@app.command(name="setup-api")
def setup_api() -> None:
    """Interactive API setup (stores config in the user config .env)."""

    base_url = typer.prompt("API base URL").strip()
    header = typer.prompt("API key header", default="X-API-Key", show_default=True).strip()
    api_key = typer.prompt("API key", hide_input=True, confirmation_prompt=False).strip()
    limit = typer.prompt("Requests per minute (contracted plan)", default=3, type=int)

    if not base_url or not api_key:
        raise typer.BadParameter("base URL and API key are required")

    env_path = write_user_env_vars(
        {
            "NR_AUDIT_API_BASE_URL": base_url,
            "NR_AUDIT_API_KEY_HEADER": header,
            "NR_AUDIT_API_KEY": api_key,
            "NR_AUDIT_LIMIT_PER_MINUTE": str(limit),
        }
    )

    _console.print(f"[green]Saved API config to:[/green] {env_path}")
