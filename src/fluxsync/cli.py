"""CLI entry point."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from fluxsync.core.config import Settings, get_settings
from fluxsync.core.exceptions import FluxSyncError, RateLimitedError
from fluxsync.core.fluxsync import FluxSync
from fluxsync.core.logging import configure_logging
from fluxsync.models.base import SourceKind

app = typer.Typer(
    name="fluxsync",
    help="Multi-source feed aggregator with remote sync",
    no_args_is_help=True,
)
console = Console()


def _build(settings: Settings) -> FluxSync:
    from fluxsync.backend.rest import RestBackend
    from fluxsync.catalog.store import CatalogStore
    from fluxsync.http.client import HttpClient
    from fluxsync.storage.file import FileKeyValueStore
    from fluxsync.sync.engine import ReconciliationEngine
    from fluxsync.sync.provider_sync import ProviderSyncService
    from fluxsync.sync.writeback import WriteBackQueue
    from fluxsync.utils.retry import RetryConfig

    catalog = CatalogStore(FileKeyValueStore(settings.data_dir))
    http = HttpClient(
        rate_limit=10.0,
        user_agent=settings.user_agent,
        timeout=settings.request_timeout,
        proxy=settings.proxy_url,
    )
    engine = None
    writeback = None
    if settings.backend_url and settings.user_id:
        backend = RestBackend(settings.backend_url, api_key=settings.backend_api_key)
        engine = ReconciliationEngine(
            catalog, backend, user_id=settings.user_id, batch_size=settings.push_batch_size
        )
        writeback = WriteBackQueue(engine, delay=settings.writeback_delay)
    return FluxSync(
        catalog,
        http=http,
        engine=engine,
        writeback=writeback,
        provider_sync=ProviderSyncService(catalog),
        retry=RetryConfig(
            max_attempts=settings.rate_limit_attempts,
            base_delay=settings.rate_limit_base_delay,
            retry_on=(RateLimitedError,),
        ),
    )


def _settings() -> Settings:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    return settings


@app.command()
def version() -> None:
    """Show version."""
    from fluxsync import __version__

    console.print(f"fluxsync {__version__}")


@app.command()
def info() -> None:
    """Show system information."""
    import sys

    from fluxsync import __version__

    settings = _settings()
    flux = _build(settings)
    console.print(f"[bold]FluxSync[/bold] {__version__}")
    console.print(f"Python {sys.version}")
    console.print(f"Data directory: {settings.data_dir}")
    for key, value in flux.info().items():
        console.print(f"{key}: {value}")


@app.command()
def feeds() -> None:
    """List feeds with their unread counts."""
    flux = _build(_settings())
    counts = flux.catalog.unread_counts()

    table = Table(title="Feeds")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Source")
    table.add_column("Folder")
    table.add_column("Unread", justify="right")
    for feed in flux.catalog.feeds:
        table.add_row(
            feed.id,
            f"{feed.icon} {feed.name}",
            feed.source_kind.value,
            feed.folder or "",
            str(counts.get(feed.id, 0)),
        )
    console.print(table)


@app.command()
def add(
    url: str = typer.Argument(..., help="Feed or page URL"),
    name: str = typer.Option("", "--name", "-n", help="Fallback display name"),
    source: SourceKind | None = typer.Option(None, "--source", "-s", help="Source kind"),
    folder: str | None = typer.Option(None, "--folder", help="Folder path"),
) -> None:
    """Subscribe to a feed and fetch its first items."""
    flux = _build(_settings())

    async def run() -> None:
        async with flux:
            feed = await flux.add_feed(url, name, source, folder=folder)
            console.print(
                f"[green]Added[/green] {feed.name} ({feed.source_kind.value}), "
                f"{flux.catalog.unread_count(feed.id)} unread"
            )

    asyncio.run(run())


@app.command()
def remove(feed_id: str = typer.Argument(..., help="Feed id")) -> None:
    """Remove a feed and its items."""
    flux = _build(_settings())

    async def run() -> bool:
        async with flux:
            return await flux.remove_feed(feed_id)

    if not asyncio.run(run()):
        console.print(f"[red]Feed not found:[/red] {feed_id}")
        raise typer.Exit(code=1)
    console.print(f"Removed {feed_id}")


@app.command()
def refresh() -> None:
    """Fetch every feed."""
    flux = _build(_settings())

    async def run() -> None:
        total = len(flux.catalog.feeds)
        with Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Refreshing", total=total)
            async with flux:
                result = await flux.sync_all(
                    on_progress=lambda done, _: progress.update(task, completed=done)
                )
        console.print(f"[green]{result.total_new}[/green] new items from {total} feeds")
        for error in result.errors:
            console.print(f"[red]Failed:[/red] {error}")

    asyncio.run(run())


@app.command()
def sync() -> None:
    """Reconcile the catalog with the remote backend."""
    flux = _build(_settings())
    if flux.engine is None:
        console.print("[red]No backend configured[/red] (set FLUXSYNC_BACKEND_URL and FLUXSYNC_USER_ID)")
        raise typer.Exit(code=1)

    async def run() -> None:
        async with flux:
            result = await flux.full_sync()
        if result is None or result.skipped:
            console.print("Sync already running, skipped")
            return
        console.print(
            f"Pulled {result.pulled_feeds} feeds / {result.pulled_items} items, "
            f"pushed {result.pushed_feeds} / {result.pushed_items}, "
            f"deleted {result.deleted_feeds} / {result.deleted_items}"
        )
        if result.provider_status is not None:
            console.print(f"Hosted reader: {result.provider_status.total} status changes")
        for error in result.errors:
            console.print(f"[red]{error}[/red]")

    asyncio.run(run())


@app.command("provider-set")
def provider_set(
    kind: str = typer.Argument(..., help="miniflux, feedbin, freshrss or bazqux"),
    url: str | None = typer.Option(None, "--url", help="Server base URL"),
    api_key: str | None = typer.Option(None, "--api-key", help="Miniflux API token"),
    username: str | None = typer.Option(None, "--username", "-u"),
    password: str | None = typer.Option(None, "--password", "-p"),
    disable_sync: bool = typer.Option(False, "--disable-sync", help="Store without status sync"),
) -> None:
    """Store the hosted reader account used for import and status sync."""
    from pydantic import ValidationError

    from fluxsync.models.provider import parse_provider_config

    raw = {"kind": kind, "base_url": url, "api_key": api_key, "username": username, "password": password}
    try:
        config = parse_provider_config(
            {k: v for k, v in raw.items() if v is not None} | {"sync_enabled": not disable_sync}
        )
    except ValidationError as e:
        console.print(f"[red]Invalid provider settings:[/red] {e.error_count()} errors")
        for error in e.errors():
            console.print(f"  {'.'.join(str(p) for p in error['loc'])}: {error['msg']}")
        raise typer.Exit(code=1) from e

    flux = _build(_settings())
    flux.provider_sync.save_config(config)
    state = "on" if config.sync_enabled else "off"
    console.print(f"Saved [bold]{config.kind}[/bold] account at {config.base_url} (status sync {state})")


@app.command("provider-import")
def provider_import() -> None:
    """Import subscriptions from the configured hosted reader."""
    flux = _build(_settings())
    config = flux.provider_sync.load_config()
    if config is None:
        console.print("[red]No provider configured[/red] (run provider-set first)")
        raise typer.Exit(code=1)

    async def run() -> int:
        async with flux:
            return await flux.provider_sync.import_feeds(config)

    added = asyncio.run(run())
    console.print(f"Imported [green]{added}[/green] feeds from {config.kind}")


@app.command("provider-clear")
def provider_clear() -> None:
    """Forget the hosted reader account and its feed links."""
    flux = _build(_settings())
    flux.provider_sync.clear_config()
    console.print("Provider settings cleared")

@app.command()
def detect(url: str = typer.Argument(..., help="Page URL")) -> None:
    """Show the source kind and RSSHub route detected for a URL."""
    from fluxsync.adapter.registry import detect_source_from_url
    from fluxsync.adapter.rsshub import detect_rsshub_route

    settings = _settings()
    console.print(f"Source: [bold]{detect_source_from_url(url).value}[/bold]")
    match = detect_rsshub_route(url, settings.rsshub_instance)
    if match is None:
        console.print("RSSHub: no matching route")
    else:
        console.print(f"RSSHub: {match.label} -> {match.rsshub_url}")


def main() -> None:
    try:
        app()
    except FluxSyncError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1) from e


if __name__ == "__main__":
    main()
