"""Main entry point for the uploadstore CLI.

Provides a Typer-based CLI for inspecting configuration, uploading and
removing files, generating URLs, and sweeping stale cached uploads
(typically from cron).
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from uploadstore import __version__
from uploadstore.config import (
    StorageConfig,
    ensure_config_exists,
    get_config_path,
    get_log_dir,
)
from uploadstore.errors import StorageError
from uploadstore.local_file import LocalFile
from uploadstore.logging_config import setup_logging
from uploadstore.storage import ObjectStorage

console = Console()

app = typer.Typer(
    name="uploadstore",
    help="Object storage for uploaded files",
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"uploadstore version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """uploadstore: cache, store and serve uploaded files from object storage.

    ## Commands

    * [bold cyan]config[/bold cyan] - Show or change configuration
    * [bold cyan]put[/bold cyan] - Store or cache a local file
    * [bold cyan]url[/bold cyan] - Print the URL of a stored file
    * [bold cyan]rm[/bold cyan] - Delete a stored file
    * [bold cyan]sweep[/bold cyan] - Delete stale cached files
    """
    pass


def load_config(config_path: Optional[Path]) -> StorageConfig:
    """Load configuration or exit with an error message."""
    try:
        if config_path is not None:
            return StorageConfig.load(config_path)
        return ensure_config_exists()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        raise typer.Exit(1)


def get_storage(config: StorageConfig, verbose: bool = False) -> ObjectStorage:
    """Build the storage adapter for a configuration, logging to the default log dir."""
    setup_logging(get_log_dir(), verbose=verbose)
    try:
        return ObjectStorage(config)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@app.command()
def config(
    action: str = typer.Argument(..., help="Action to perform (show, set, path)"),
    key: str = typer.Argument(None, help="Configuration key (for set action)"),
    value: str = typer.Argument(None, help="Configuration value (for set action)"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
) -> None:
    """Manage configuration.

    Examples:
        uploadstore config show
        uploadstore config set storage.directory my-bucket
        uploadstore config path
    """
    path = config_path or get_config_path()

    if action == "show":
        try:
            cfg = ensure_config_exists(path)
        except ValueError as e:
            console.print(f"[red]Error loading config: {e}[/red]")
            raise typer.Exit(1)

        console.print(
            Panel.fit(
                f"[cyan]Provider:[/cyan] {cfg.provider}\n"
                f"[cyan]Directory:[/cyan] {cfg.directory}\n"
                f"[cyan]Region:[/cyan] {cfg.region or '[default]'}\n"
                f"[cyan]Endpoint:[/cyan] {cfg.endpoint_url or '[not set]'}\n"
                f"[cyan]Public:[/cyan] {cfg.public}\n"
                f"[cyan]Use SSL:[/cyan] {cfg.use_ssl}\n"
                f"[cyan]Accelerate:[/cyan] {cfg.accelerate}\n"
                f"[cyan]Asset Host:[/cyan] {cfg.asset_host or '[not set]'}\n"
                f"[cyan]URL Expiration:[/cyan] {int(cfg.expiration_seconds())}s\n"
                f"[cyan]Store Dir:[/cyan] {cfg.store_dir}\n"
                f"[cyan]Cache Dir:[/cyan] {cfg.cache_dir}",
                title="Configuration",
                border_style="green",
            )
        )

    elif action == "set":
        if not key or value is None:
            console.print("[red]Usage: uploadstore config set KEY VALUE[/red]")
            raise typer.Exit(1)
        try:
            cfg = ensure_config_exists(path)
            cfg.set(key, value)
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        cfg.save(path)
        console.print(f"[green]Set {key} = {value}[/green]")

    elif action == "path":
        console.print(str(path))

    else:
        console.print(f"[red]Unknown action: {action}. Use show, set, or path.[/red]")
        raise typer.Exit(1)


@app.command()
def put(
    file: Path = typer.Argument(..., help="Local file to upload", exists=True, dir_okay=False),
    identifier: Optional[str] = typer.Option(None, "--identifier", "-i", help="Stored name (defaults to the filename)"),
    cache: bool = typer.Option(False, "--cache", help="Write to the cache directory instead"),
    content_type: Optional[str] = typer.Option(None, "--content-type", help="Override the content type"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
) -> None:
    """Upload a local file."""
    storage = get_storage(load_config(config_path))
    local_file = LocalFile.from_path(file, content_type=content_type)

    try:
        if cache:
            remote = storage.cache(local_file)
        else:
            remote = storage.store(local_file, identifier)
    except StorageError as e:
        console.print(f"[red]Upload failed: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Uploaded[/green] {remote.path} ({remote.size} bytes, {remote.content_type})")


@app.command()
def url(
    identifier: str = typer.Argument(..., help="Stored name (or cache name with --cache)"),
    cache: bool = typer.Option(False, "--cache", help="Look in the cache directory"),
    signed: bool = typer.Option(False, "--signed", help="Always produce a signed URL"),
    expire_in: Optional[int] = typer.Option(None, "--expire-in", min=1, help="Signed URL lifetime in seconds"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
) -> None:
    """Print the URL of a file."""
    cfg = load_config(config_path)
    if expire_in is not None:
        cfg.authenticated_url_expiration = expire_in
    storage = get_storage(cfg)
    remote = storage.retrieve_from_cache(identifier) if cache else storage.retrieve(identifier)

    try:
        result = remote.authenticated_url() if signed else remote.url()
    except StorageError as e:
        console.print(f"[red]Could not build URL: {e}[/red]")
        raise typer.Exit(1)

    if result is None:
        console.print(f"[yellow]Provider {cfg.provider} has no public URL for {remote.path}[/yellow]")
        raise typer.Exit(1)
    console.print(result, soft_wrap=True)


@app.command()
def rm(
    identifier: str = typer.Argument(..., help="Stored name"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
) -> None:
    """Delete a stored file."""
    storage = get_storage(load_config(config_path))
    remote = storage.retrieve(identifier)

    try:
        remote.delete()
    except StorageError as e:
        console.print(f"[red]Delete failed: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Deleted[/green] {remote.path}")


@app.command()
def sweep(
    max_age: int = typer.Option(86400, "--max-age", "-a", min=0, help="Delete cached files older than this many seconds"),
    dry_run: bool = typer.Option(False, "--dry-run", help="List stale files without deleting them"),
    verbose: bool = typer.Option(False, "--verbose", help="Log skipped keys"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
) -> None:
    """Delete stale cached files (run from cron)."""
    storage = get_storage(load_config(config_path), verbose=verbose)

    try:
        expired = storage.cache_sweeper().sweep(max_age, dry_run=dry_run)
    except StorageError as e:
        console.print(f"[red]Sweep failed: {e}[/red]")
        raise typer.Exit(1)

    if not expired:
        console.print("[green]No stale cached files[/green]")
        return

    table = Table(title="Would delete" if dry_run else "Deleted")
    table.add_column("Key", style="cyan")
    for key in expired:
        table.add_row(key)
    console.print(table)
    console.print(f"{len(expired)} cached file(s) {'would be ' if dry_run else ''}removed")


if __name__ == "__main__":
    app()
