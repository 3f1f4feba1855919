"""Command line interface for release catalog administration."""

import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .application.commands import CommandBus, CommandResult
from .application.commands.catalog import (
    RestoreReleaseCommand,
    RestoreReleaseCommandHandler,
    SoftDeleteReleaseCommand,
    SoftDeleteReleaseCommandHandler,
    UpdateOutcome,
    UpdateReleaseCommand,
    UpdateReleaseCommandHandler,
)
from .application.events import ALL_EVENTS, EventBus, EventLogHandler
from .application.queries import QueryBus, QueryResult
from .application.queries.catalog import (
    GetPublishedReleasesHandler,
    GetPublishedReleasesQuery,
    GetReleaseByIdHandler,
    GetReleaseByIdQuery,
)
from .application.release_service import ReleaseService
from .domain.catalog.entities import Release, ReleaseChanges
from .infrastructure.repositories import SQLiteCatalogRepository
from .models.config import CatalogConfig, load_config

console = Console()

T = TypeVar("T")

EXIT_FAILED = 1
EXIT_PARTIAL = 2


def _parse_timestamp(ctx, param, value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"not an ISO 8601 timestamp: {value}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class _Catalog:
    """Wires the service, buses and event log for one CLI invocation."""

    def __init__(self, config: CatalogConfig):
        self.config = config
        self.repository = SQLiteCatalogRepository(config.database_path)
        self.service = ReleaseService(self.repository, config=config)

        self.event_bus = EventBus()
        self.event_bus.subscribe(ALL_EVENTS, EventLogHandler())

        self.command_bus = CommandBus()
        for command_type, handler_type in (
            (UpdateReleaseCommand, UpdateReleaseCommandHandler),
            (SoftDeleteReleaseCommand, SoftDeleteReleaseCommandHandler),
            (RestoreReleaseCommand, RestoreReleaseCommandHandler),
        ):
            self.command_bus.register(command_type, handler_type(self.service, self.event_bus))

        # Shares the service cache so its write invalidation covers query results.
        self.query_bus = QueryBus(cache=self.service.cache)
        self.query_bus.register(GetReleaseByIdQuery, GetReleaseByIdHandler(self.service))
        self.query_bus.register(GetPublishedReleasesQuery, GetPublishedReleasesHandler(self.service))

    def release_query(self, release_id: str) -> GetReleaseByIdQuery:
        ttl = self.config.effective_ttl(self.config.cache.release_ttl_seconds)
        return GetReleaseByIdQuery(release_id=release_id, cache_ttl_seconds=ttl)

    def run(self, fn: Callable[["_Catalog"], Awaitable[T]]) -> T:
        try:
            return asyncio.run(fn(self))
        finally:
            self.repository.close()


def _report(result: CommandResult) -> None:
    """Print a command result and exit non-zero unless it fully succeeded."""
    outcome = result.result_data.get("outcome")

    if result.success:
        color = "yellow" if outcome == UpdateOutcome.PARTIAL.value else "green"
        console.print(f"[{color}]{result.message}[/{color}]")
    else:
        console.print(f"[red]{result.message}[/red]")

    for field, messages in result.field_errors.items():
        for message in messages:
            console.print(f"  • {field}: {message}")

    if not result.success:
        sys.exit(EXIT_FAILED)
    if outcome == UpdateOutcome.PARTIAL.value:
        sys.exit(EXIT_PARTIAL)


def _query_failed(result: QueryResult) -> None:
    for error in result.errors:
        console.print(f"[red]Error: {error}[/red]")
    sys.exit(EXIT_FAILED)


def _format_timestamp(value: Optional[datetime]) -> str:
    return value.isoformat(timespec="seconds") if value else "-"


@click.group()
@click.version_option(version=__version__)
@click.option(
    '--db',
    type=click.Path(dir_okay=False, path_type=Path),
    help='SQLite catalog database (overrides configuration)'
)
@click.option(
    '--config',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Configuration file path'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Verbose output'
)
@click.pass_context
def cli(ctx, db: Optional[Path], config: Optional[Path], verbose: bool):
    """Administer releases: publish, sync artists, list what is public."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cfg = load_config(config) if config else CatalogConfig.default()
    cfg = CatalogConfig.from_env(base=cfg)
    if db:
        cfg.database_path = db
    ctx.obj = cfg


@cli.command()
@click.argument('release_id')
@click.option(
    '--at',
    'published_at',
    callback=_parse_timestamp,
    help='Publication timestamp (ISO 8601, default: now)'
)
@click.pass_obj
def publish(config: CatalogConfig, release_id: str, published_at: Optional[datetime]):
    """Publish RELEASE_ID and its unpublished tracks."""
    published_at = published_at or datetime.now(timezone.utc)
    command = UpdateReleaseCommand(
        release_id=release_id,
        changes=ReleaseChanges(published_at=published_at),
    )
    result = _Catalog(config).run(lambda catalog: catalog.command_bus.dispatch(command))

    if result.success and result.result_data.get("cascaded"):
        console.print(f"Tracks published: {result.result_data['tracks_published']}")
    elif result.success:
        console.print("[dim]Release was already published; tracks left untouched[/dim]")
    _report(result)


@cli.command('set-artists')
@click.argument('release_id')
@click.argument('artist_ids', nargs=-1)
@click.pass_obj
def set_artists(config: CatalogConfig, release_id: str, artist_ids: Tuple[str, ...]):
    """Replace the artists of RELEASE_ID with ARTIST_IDS."""
    command = UpdateReleaseCommand(release_id=release_id, artist_ids=tuple(artist_ids))
    result = _Catalog(config).run(lambda catalog: catalog.command_bus.dispatch(command))

    if result.success and "artists_added" in result.result_data:
        console.print(
            f"Artists added: {result.result_data['artists_added']}, "
            f"removed: {result.result_data['artists_removed']}"
        )
    _report(result)


@cli.command('soft-delete')
@click.argument('release_id')
@click.pass_obj
def soft_delete(config: CatalogConfig, release_id: str):
    """Hide RELEASE_ID without deleting it."""
    command = SoftDeleteReleaseCommand(release_id=release_id)
    _report(_Catalog(config).run(lambda catalog: catalog.command_bus.dispatch(command)))


@cli.command()
@click.argument('release_id')
@click.pass_obj
def restore(config: CatalogConfig, release_id: str):
    """Restore a soft-deleted RELEASE_ID."""
    command = RestoreReleaseCommand(release_id=release_id)
    _report(_Catalog(config).run(lambda catalog: catalog.command_bus.dispatch(command)))


@cli.command()
@click.option('--limit', default=20, show_default=True, help='Maximum releases to list')
@click.pass_obj
def published(config: CatalogConfig, limit: int):
    """List published releases, most recent first."""
    query = GetPublishedReleasesQuery(limit=limit)
    result = _Catalog(config).run(lambda catalog: catalog.query_bus.dispatch(query))
    if not result.success:
        _query_failed(result)

    if not result.data:
        console.print("[yellow]No published releases[/yellow]")
        return

    table = Table(title="Published Releases")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Published", style="green")
    table.add_column("Tracks", justify="right")

    for release in result.data:
        table.add_row(
            release.id,
            release.title,
            _format_timestamp(release.published_at),
            str(len(release.track_ids)),
        )

    console.print(table)


@cli.command()
@click.argument('release_id')
@click.pass_obj
def show(config: CatalogConfig, release_id: str):
    """Show details for RELEASE_ID."""
    result = _Catalog(config).run(
        lambda catalog: catalog.query_bus.dispatch(catalog.release_query(release_id))
    )
    if not result.success:
        _query_failed(result)

    release: Release = result.data
    status = "Published" if release.is_published else "Unpublished"
    if release.is_deleted:
        status += " (deleted)"

    lines = [
        f"[bold]{release.title}[/bold]",
        f"Status: {status}",
        f"Published at: {_format_timestamp(release.published_at)}",
        f"Catalog number: {release.catalog_number or '-'}",
        f"Formats: {', '.join(release.formats) or '-'}",
        f"Tracks: {len(release.track_ids)}",
        f"Artists: {', '.join(release.artist_ids) or '-'}",
    ]
    console.print(Panel("\n".join(lines), title=release.id))


def main():
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
