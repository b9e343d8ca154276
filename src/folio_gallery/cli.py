"""CLI for folio-gallery.

Commands:
    list                     - List gallery entries
    add <title>              - Add an entry, optionally with an image file
    update <id>              - Change fields of an entry
    delete <id>              - Delete an entry and its stored image
    refresh                  - Reload the list from durable storage
    images                   - List stored image blobs
    show-image <key>         - Show a stored image's metadata
    sync-api                 - Merge entries from the remote gallery API
    watch                    - Print changes made by other contexts
    reset-store              - Drop every stored entry and image
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from folio_gallery.config import settings
from folio_gallery.context import open_gallery
from folio_gallery.db import init_db, reset_db
from folio_gallery.errors import NotFoundError, StorageFailure
from folio_gallery.gallery import GalleryEntry, GalleryStore
from folio_gallery.models.enums import ApiSyncStatus, ChangeKind, RefreshStatus
from folio_gallery.sync import ChangeNotification
from folio_gallery.utils.media import file_to_data_uri

app = typer.Typer(
    name="folio-gallery",
    help="folio-gallery: durable, synchronized gallery entries and image blobs",
    no_args_is_help=True,
)
console = Console()


def run_async(coro):
    """Run an async coroutine in sync context."""
    return asyncio.run(coro)


def _format_ms(value: int | None) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _print_entry(entry: GalleryEntry) -> None:
    lines = [
        f"[bold]ID:[/bold] {entry.id}",
        f"[bold]Title:[/bold] {entry.title}",
        f"[bold]Description:[/bold] {entry.description or '-'}",
        f"[bold]Alt:[/bold] {entry.alt or '-'}",
        f"[bold]Image:[/bold] {entry.image_ref}",
        f"[bold]Created:[/bold] {_format_ms(entry.timestamp)}",
        f"[bold]Updated:[/bold] {_format_ms(entry.last_updated)}",
    ]
    console.print(Panel("\n".join(lines), title="Gallery Entry"))


def _read_image(path: Path | None) -> str | None:
    if path is None:
        return None
    try:
        return file_to_data_uri(path)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


async def _with_store(action):
    """Open a CLI context on the configured storage and run `action(store)`."""
    await init_db()
    async with open_gallery("cli") as store:
        return await action(store)


@app.callback()
def configure(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show debug logging")
    ] = False,
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("list")
def list_entries():
    """List gallery entries, most recent first."""
    async def _list(store: GalleryStore):
        entries = store.list()
        if not entries:
            console.print("[yellow]Gallery is empty.[/yellow]")
            return

        table = Table(title="Gallery")
        table.add_column("ID", style="cyan")
        table.add_column("Title")
        table.add_column("Image")
        table.add_column("Updated")

        for entry in entries:
            image_style = "green" if entry.blob_key else "dim"
            table.add_row(
                entry.id,
                entry.title,
                f"[{image_style}]{entry.image_ref}[/{image_style}]",
                _format_ms(entry.last_updated or entry.timestamp),
            )

        console.print(table)
        console.print(f"\n[dim]{len(entries)} entries[/dim]")

    run_async(_with_store(_list))


@app.command()
def add(
    title: Annotated[str, typer.Argument(help="Entry title")],
    description: Annotated[str, typer.Option("--description", "-d")] = "",
    alt: Annotated[str | None, typer.Option(help="Alt text (defaults to the title)")] = None,
    image: Annotated[
        Path | None, typer.Option("--image", "-i", help="Image file to compress and store")
    ] = None,
    entry_id: Annotated[str | None, typer.Option("--id", help="Explicit entry id")] = None,
):
    """Add an entry (or replace the entry with the same id)."""
    image_ref = _read_image(image)

    async def _add(store: GalleryStore):
        fields = {"id": entry_id, "title": title, "description": description, "alt": alt}
        if image_ref is not None:
            fields["image_ref"] = image_ref
        try:
            entry = await store.add({k: v for k, v in fields.items() if v is not None})
        except StorageFailure as e:
            console.print(f"[red]Error saving gallery:[/red] {e}")
            raise typer.Exit(1) from None
        console.print(f"[green]Added[/green] {entry.id}")
        _print_entry(entry)

    run_async(_with_store(_add))


@app.command()
def update(
    entry_id: Annotated[str, typer.Argument(help="Entry id")],
    title: Annotated[str | None, typer.Option("--title", "-t")] = None,
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
    alt: Annotated[str | None, typer.Option()] = None,
    image: Annotated[Path | None, typer.Option("--image", "-i")] = None,
):
    """Change fields of an existing entry."""
    image_ref = _read_image(image)

    async def _update(store: GalleryStore):
        fields = {
            "id": entry_id,
            "title": title,
            "description": description,
            "alt": alt,
            "image_ref": image_ref,
        }
        try:
            entry = await store.update({k: v for k, v in fields.items() if v is not None})
        except NotFoundError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from None
        except StorageFailure as e:
            console.print(f"[red]Error saving gallery:[/red] {e}")
            raise typer.Exit(1) from None
        console.print(f"[green]Updated[/green] {entry.id}")
        _print_entry(entry)

    run_async(_with_store(_update))


@app.command()
def delete(entry_id: Annotated[str, typer.Argument(help="Entry id")]):
    """Delete an entry and its stored image."""
    async def _delete(store: GalleryStore):
        try:
            await store.delete(entry_id)
        except NotFoundError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from None
        except StorageFailure as e:
            console.print(f"[red]Error saving gallery:[/red] {e}")
            raise typer.Exit(1) from None
        console.print(f"[green]Deleted[/green] {entry_id}")

    run_async(_with_store(_delete))


@app.command()
def refresh():
    """Reload the gallery from durable storage and report the outcome."""
    async def _refresh(store: GalleryStore):
        outcome = await store.refresh_from_storage()
        style = "green" if outcome.status is RefreshStatus.REFRESHED else "yellow"
        console.print(f"[{style}]{outcome.status.value}[/{style}]: {outcome.count} entries")
        if outcome.error:
            console.print(f"[dim]{outcome.error}[/dim]")

    run_async(_with_store(_refresh))


@app.command()
def images():
    """List stored image blobs."""
    async def _images(store: GalleryStore):
        keys = await store.images.list_images()
        if not keys:
            console.print("[yellow]No stored images.[/yellow]")
            return

        table = Table(title="Images")
        table.add_column("Key", style="cyan")
        table.add_column("Size", justify="right")
        table.add_column("Stored")

        for key in keys:
            image = await store.images.get_image(key)
            if image is None:
                continue
            timestamp = image.metadata.get("timestamp")
            table.add_row(
                key,
                str(len(image.data)),
                _format_ms(timestamp if isinstance(timestamp, int) else None),
            )

        console.print(table)
        usage = await store.storage.usage_bytes()
        console.print(f"\n[dim]Storage used: {usage} of {settings.storage_quota_bytes}[/dim]")

    run_async(_with_store(_images))


@app.command("show-image")
def show_image(key: Annotated[str, typer.Argument(help="Image key (usually the entry id)")]):
    """Show a stored image's metadata."""
    async def _show(store: GalleryStore):
        image = await store.images.get_image(key)
        if image is None:
            console.print(f"[red]Error:[/red] No image stored for {key}")
            raise typer.Exit(1)

        lines = [f"[bold]Key:[/bold] {key}"]
        if image.is_default:
            lines.append(f"[bold]Bundled:[/bold] {image.data}")
        else:
            lines.append(f"[bold]Size:[/bold] {len(image.data)} chars")
        for name, value in sorted(image.metadata.items()):
            lines.append(f"[bold]{name}:[/bold] {value}")
        console.print(Panel("\n".join(lines), title="Image"))

    run_async(_with_store(_show))


@app.command("sync-api")
def sync_api():
    """Merge entries from the remote gallery API into durable storage."""
    async def _sync(store: GalleryStore):
        outcome = await store.sync_from_api()
        if outcome.status is ApiSyncStatus.DISABLED:
            console.print("[yellow]No API configured (set API_BASE_URL).[/yellow]")
            raise typer.Exit(1)
        if outcome.status is ApiSyncStatus.UNAVAILABLE:
            console.print("[red]Remote gallery unavailable.[/red]")
            raise typer.Exit(1)
        console.print(
            f"[green]Synced[/green] {outcome.pulled} remote entries, "
            f"{len(store.list())} total"
        )

    run_async(_with_store(_sync))


@app.command()
def watch(
    seconds: Annotated[
        float | None, typer.Option(help="Stop after this many seconds (default: run forever)")
    ] = None,
):
    """Print the gallery whenever another context changes it."""
    async def _watch():
        await init_db()
        async with open_gallery("watch", watch=True) as store:
            def _on_change(notification: ChangeNotification) -> None:
                if notification.kind is not ChangeKind.REFRESHED:
                    return
                console.print(
                    f"[blue]{_format_ms(notification.at)}[/blue] "
                    f"gallery now has {len(store.list())} entries"
                )

            store.bus.subscribe(_on_change)
            console.print(f"[blue]Watching as {store.context_id}...[/blue]")
            if seconds is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(seconds)

    try:
        run_async(_watch())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")


@app.command("reset-store")
def reset_store(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Skip confirmation prompt")
    ] = False,
):
    """Drop every stored entry and image.

    WARNING: This destroys all data!
    """
    if not force:
        confirm = typer.confirm(
            "This will DELETE ALL ENTRIES AND IMAGES. Are you sure?",
            default=False,
        )
        if not confirm:
            console.print("[yellow]Aborted.[/yellow]")
            raise typer.Exit(0)

    async def _reset():
        await reset_db()
        console.print("[green]Store reset successfully.[/green]")

    run_async(_reset())


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
