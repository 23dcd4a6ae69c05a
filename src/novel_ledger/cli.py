"""Command-line interface for Novel Ledger."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Iterable, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from novel_ledger import __version__

console = Console()
err_console = Console(stderr=True)

KIND_CHOICE = click.Choice(["character", "scene", "event", "place", "page", "note"], case_sensitive=False)

_NOTIFY_STYLES = {
    "success": "[green]✓[/green]",
    "info": "[cyan]i[/cyan]",
    "warning": "[yellow]![/yellow]",
    "error": "[red]✗[/red]",
}


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _workspace(ctx: click.Context):
    return ctx.find_root().obj


def _match_id(value: str, ids: Iterable[str], what: str) -> str:
    """Accept a full ID or a unique prefix of one."""
    ids = list(ids)
    if value in ids:
        return value
    matches = [candidate for candidate in ids if candidate.startswith(value)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise click.ClickException(f"No {what} matches {value!r}")
    raise click.ClickException(f"{value!r} matches {len(matches)} {what}s; use more characters")


def _resolve_book(ws, value: str, deleted: bool = False) -> str:
    books = ws.store.deleted_books() if deleted else ws.store.active_books()
    for book in books:
        if book.title.lower() == value.lower():
            return book.id
    return _match_id(value, [book.id for book in books], "book")


def _resolve_entity(ws, kind: str, value: str) -> str:
    from novel_ledger.models import EntityKind

    book = ws.store.current_book
    if book is None:
        raise click.ClickException("No book selected; use 'book switch' first")
    return _match_id(value, [entity.id for entity in book.collection(EntityKind.parse(kind))], kind)


def _parse_fields(pairs: tuple[str, ...]) -> dict:
    """Parse key=value pairs; values starting with [ or { are read as JSON."""
    data = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"Expected key=value, got {pair!r}", param_hint="--field")
        key, value = pair.split("=", 1)
        if value[:1] in ("[", "{"):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as e:
                raise click.BadParameter(f"Invalid JSON for {key}: {e}", param_hint="--field") from e
        data[key.strip()] = value
    return data


def _short(identifier: str) -> str:
    return identifier[:8]


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--session",
    "session_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Session file (defaults to NL_DATA_DIR/session.json)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, session_path: Optional[Path], verbose: bool) -> None:
    """Novel Ledger - versioned book entities, chat checkpoints and @mention search."""
    from novel_ledger.config import get_settings
    from novel_ledger.workspace import Workspace

    settings = get_settings()
    setup_logging("DEBUG" if verbose else settings.log_level)

    ws = Workspace.open(session_path, settings=settings)
    ws.notifications.subscribe(
        lambda n: console.print(f"{_NOTIFY_STYLES.get(n.level.value, '')} {n.message}")
    )
    ctx.obj = ws


@main.result_callback()
@click.pass_context
def finish(ctx: click.Context, result, **kwargs) -> None:
    """Save the session and flush background sync before exiting."""
    ws = ctx.obj
    path = ws.save()
    logging.getLogger(__name__).debug("Session saved to %s", path)

    if ws.supervisor.pending:
        with console.status("Syncing to remote store..."):
            results = asyncio.run(ws.drain())
        failed = [r for r in results if not r.ok]
        if failed:
            console.print(f"[yellow]{len(failed)} of {len(results)} sync operations failed[/yellow]")


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show session status."""
    ws = _workspace(ctx)
    current = ws.store.current_book

    console.print("[bold]Novel Ledger Status[/bold]\n")
    console.print(f"Session file: {ws.path}")
    if ws.supervisor.enabled:
        console.print(f"Remote store: {ws.settings.remote_url}")
    else:
        console.print("Remote store: [dim]disabled (local only)[/dim]")
    console.print(f"Current book: {current.title if current else '[dim]none[/dim]'}")

    table = Table()
    table.add_column("Item", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Books", f"{len(ws.store.active_books()):,}")
    table.add_row("Books in trash", f"{len(ws.store.deleted_books()):,}")
    table.add_row("Messages", f"{len(ws.store.messages):,}")
    table.add_row("Versions", f"{len(ws.versions):,}")
    table.add_row("Checkpoints", f"{len(ws.checkpoints.checkpoints):,}")
    console.print(table)


@main.command()
@click.pass_context
def hydrate(ctx: click.Context) -> None:
    """Pull books and version history from the remote store."""
    ws = _workspace(ctx)
    if not ws.supervisor.enabled:
        console.print("[yellow]No remote store configured (set NL_REMOTE_URL)[/yellow]")
        return
    with console.status("Loading from remote store..."):
        ok = asyncio.run(ws.hydrate())
    if ok:
        console.print(f"[green]✓[/green] {len(ws.store.books)} books in session")


# ============================================================================
# Book Commands
# ============================================================================

@main.group()
def book() -> None:
    """Book management commands."""
    pass


@book.command(name="add")
@click.argument("title")
@click.option("--description", "-d", default="", help="Short description")
@click.option("--genre", "-g", default="Fiction", help="Genre")
@click.option("--author", "-a", help="Author name")
@click.pass_context
def book_add(ctx: click.Context, title: str, description: str, genre: str, author: Optional[str]) -> None:
    """Create a book and select it."""
    book_id = _workspace(ctx).gateway.add_book(title, description=description, genre=genre, author=author)
    console.print(f"[dim]{book_id}[/dim]")


@book.command(name="list")
@click.pass_context
def book_list(ctx: click.Context) -> None:
    """List books."""
    ws = _workspace(ctx)
    books = ws.store.active_books()
    if not books:
        console.print("[yellow]No books yet[/yellow]")
        return

    table = Table(title="Books")
    table.add_column("", width=1)
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Genre")
    table.add_column("Entities", justify="right")
    table.add_column("Updated")
    for item in books:
        marker = "*" if item.id == ws.store.current_book_id else ""
        table.add_row(
            marker,
            _short(item.id),
            item.title,
            item.genre,
            str(item.entity_count),
            item.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@book.command(name="trash")
@click.pass_context
def book_trash(ctx: click.Context) -> None:
    """List books in the trash."""
    ws = _workspace(ctx)
    books = ws.store.deleted_books()
    if not books:
        console.print("[dim]Trash is empty[/dim]")
        return

    table = Table(title=f"Trash (kept for {ws.settings.trash_retention_days} days)")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Deleted")
    table.add_column("Days left", justify="right")
    for item in books:
        table.add_row(
            _short(item.id),
            item.title,
            item.deleted_at.strftime("%Y-%m-%d") if item.deleted_at else "",
            str(ws.gateway.trash_days_remaining(item)),
        )
    console.print(table)


@book.command(name="switch")
@click.argument("book_ref")
@click.pass_context
def book_switch(ctx: click.Context, book_ref: str) -> None:
    """Select a book by title or ID."""
    ws = _workspace(ctx)
    ws.gateway.switch_book(_resolve_book(ws, book_ref))


@book.command(name="delete")
@click.argument("book_ref")
@click.pass_context
def book_delete(ctx: click.Context, book_ref: str) -> None:
    """Move a book to the trash."""
    ws = _workspace(ctx)
    ws.gateway.delete_book(_resolve_book(ws, book_ref))


@book.command(name="restore")
@click.argument("book_ref")
@click.pass_context
def book_restore(ctx: click.Context, book_ref: str) -> None:
    """Restore a book from the trash."""
    ws = _workspace(ctx)
    ws.gateway.restore_book(_resolve_book(ws, book_ref, deleted=True))


@book.command(name="purge")
@click.pass_context
def book_purge(ctx: click.Context) -> None:
    """Permanently delete books whose trash retention has expired."""
    purged = _workspace(ctx).gateway.purge_expired_books()
    if not purged:
        console.print("[dim]Nothing to purge[/dim]")


@book.command(name="summary")
@click.argument("book_ref")
@click.argument("summary")
@click.pass_context
def book_summary(ctx: click.Context, book_ref: str, summary: str) -> None:
    """Set a book's summary."""
    ws = _workspace(ctx)
    ws.gateway.set_summary(_resolve_book(ws, book_ref), summary)


# ============================================================================
# Entity Commands
# ============================================================================

@main.group()
def entity() -> None:
    """Entity commands (characters, scenes, events, places, pages, notes)."""
    pass


@entity.command(name="add")
@click.argument("kind", type=KIND_CHOICE)
@click.option("--field", "-f", "fields", multiple=True, help="key=value (JSON for lists, e.g. traits='[\"brave\"]')")
@click.option("--message", "-m", "message_id", help="ID of the chat message that produced this entity")
@click.pass_context
def entity_add(ctx: click.Context, kind: str, fields: tuple[str, ...], message_id: Optional[str]) -> None:
    """Create an entity in the current book."""
    from pydantic import ValidationError

    from novel_ledger.errors import NoCurrentBookError

    ws = _workspace(ctx)
    try:
        entity_id = ws.gateway.create(kind, _parse_fields(fields), message_id=message_id)
    except NoCurrentBookError as e:
        raise click.ClickException(str(e)) from e
    except ValidationError as e:
        raise click.ClickException(f"Invalid {kind}: {e}") from e
    console.print(f"[dim]{entity_id}[/dim]")


@entity.command(name="update")
@click.argument("kind", type=KIND_CHOICE)
@click.argument("entity_ref")
@click.option("--field", "-f", "fields", multiple=True, help="key=value")
@click.option("--message", "-m", "message_id", help="ID of the chat message that produced this change")
@click.pass_context
def entity_update(
    ctx: click.Context, kind: str, entity_ref: str, fields: tuple[str, ...], message_id: Optional[str]
) -> None:
    """Update fields of an entity in the current book."""
    from pydantic import ValidationError

    ws = _workspace(ctx)
    entity_id = _resolve_entity(ws, kind, entity_ref)
    try:
        ws.gateway.update(kind, entity_id, _parse_fields(fields), message_id=message_id)
    except ValidationError as e:
        raise click.ClickException(f"Invalid {kind}: {e}") from e


@entity.command(name="delete")
@click.argument("kind", type=KIND_CHOICE)
@click.argument("entity_ref")
@click.pass_context
def entity_delete(ctx: click.Context, kind: str, entity_ref: str) -> None:
    """Delete an entity (its version history is kept)."""
    ws = _workspace(ctx)
    ws.gateway.delete(kind, _resolve_entity(ws, kind, entity_ref))


@entity.command(name="show")
@click.argument("kind", type=KIND_CHOICE)
@click.argument("entity_id")
@click.pass_context
def entity_show(ctx: click.Context, kind: str, entity_id: str) -> None:
    """Show an entity, looking in other books if needed."""
    info = _workspace(ctx).get_entity_info(kind, entity_id)
    if info is None:
        raise click.ClickException(f"No {kind} with ID {entity_id}")
    console.print_json(json.dumps(info))


@entity.command(name="list")
@click.argument("kind", type=KIND_CHOICE, required=False)
@click.pass_context
def entity_list(ctx: click.Context, kind: Optional[str]) -> None:
    """List entities of the current book."""
    from novel_ledger.models import EntityKind

    ws = _workspace(ctx)
    current = ws.store.current_book
    if current is None:
        raise click.ClickException("No book selected; use 'book switch' first")

    kinds = [EntityKind.parse(kind)] if kind else list(EntityKind)
    table = Table(title=current.title)
    table.add_column("Kind", style="magenta")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Versions", justify="right")
    for entity_kind in kinds:
        for item in current.collection(entity_kind):
            versions = ws.versions.list_versions(entity_kind, item.id)
            table.add_row(entity_kind.value, _short(item.id), item.display_name, str(len(versions)))
    console.print(table)


# ============================================================================
# Version History
# ============================================================================

@main.command()
@click.argument("kind", type=KIND_CHOICE)
@click.argument("entity_ref")
@click.pass_context
def history(ctx: click.Context, kind: str, entity_ref: str) -> None:
    """Show the version history of an entity, newest first."""
    ws = _workspace(ctx)
    ids = {version.entity_id for version in ws.versions.versions}
    entity_id = _match_id(entity_ref, ids, kind)

    versions = ws.versions.list_versions(kind, entity_id)
    table = Table(title=f"History of {kind} {_short(entity_id)}")
    table.add_column("Version", style="dim")
    table.add_column("Captured")
    table.add_column("Description", style="cyan")
    table.add_column("Message", style="dim")
    for version in versions:
        table.add_row(
            version.id,
            version.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            version.description or "",
            _short(version.message_id) if version.message_id else "",
        )
    console.print(table)


@main.command()
@click.argument("version_ref")
@click.pass_context
def restore(ctx: click.Context, version_ref: str) -> None:
    """Restore an entity to a recorded version."""
    ws = _workspace(ctx)
    version_id = _match_id(version_ref, [version.id for version in ws.versions.versions], "version")
    if not ws.versions.restore(version_id):
        ctx.exit(1)


# ============================================================================
# Chat Commands
# ============================================================================

@main.group()
def chat() -> None:
    """Conversation log and checkpoint commands."""
    pass


@chat.command(name="say")
@click.argument("text")
@click.option("--role", type=click.Choice(["user", "assistant", "system"]), default="user")
@click.pass_context
def chat_say(ctx: click.Context, text: str, role: str) -> None:
    """Append a message, resolving @kind/name mentions."""
    message_id = _workspace(ctx).say(text, role=role)
    console.print(f"[dim]{message_id}[/dim]")


@chat.command(name="log")
@click.option("--limit", "-l", type=int, default=20, help="Number of recent messages")
@click.pass_context
def chat_log(ctx: click.Context, limit: int) -> None:
    """Show the conversation log."""
    ws = _workspace(ctx)
    messages = ws.store.messages
    start = max(len(messages) - limit, 0)
    for index, message in enumerate(messages[start:], start=start):
        about = f" [dim]({message.entity_kind.value})[/dim]" if message.entity_kind else ""
        console.print(f"[dim]{index:>3}[/dim] [bold]{message.role.value}[/bold]{about}: {message.content}")


@chat.command(name="checkpoint")
@click.argument("label")
@click.pass_context
def chat_checkpoint(ctx: click.Context, label: str) -> None:
    """Create a checkpoint at the latest message."""
    checkpoint_id = _workspace(ctx).checkpoints.create_checkpoint(label)
    console.print(f"[dim]{checkpoint_id}[/dim]")


@chat.command(name="checkpoints")
@click.pass_context
def chat_checkpoints(ctx: click.Context) -> None:
    """List checkpoints."""
    ws = _workspace(ctx)
    table = Table(title="Checkpoints")
    table.add_column("ID", style="dim")
    table.add_column("Label", style="cyan")
    table.add_column("Message", justify="right")
    table.add_column("Created")
    for checkpoint in ws.checkpoints.checkpoints:
        table.add_row(
            _short(checkpoint.id),
            checkpoint.label,
            str(checkpoint.message_index),
            checkpoint.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@chat.command(name="rewind")
@click.argument("checkpoint_ref")
@click.pass_context
def chat_rewind(ctx: click.Context, checkpoint_ref: str) -> None:
    """Truncate the conversation back to a checkpoint."""
    ws = _workspace(ctx)
    checkpoint_id = _match_id(
        checkpoint_ref, [checkpoint.id for checkpoint in ws.checkpoints.checkpoints], "checkpoint"
    )
    ws.checkpoints.restore_checkpoint(checkpoint_id)


@chat.command(name="clear")
@click.pass_context
def chat_clear(ctx: click.Context) -> None:
    """Clear the conversation log."""
    _workspace(ctx).gateway.clear_chat()


@chat.command(name="link")
@click.argument("kind", type=KIND_CHOICE)
@click.argument("entity_ref")
@click.pass_context
def chat_link(ctx: click.Context, kind: str, entity_ref: str) -> None:
    """Link the conversation to an entity."""
    ws = _workspace(ctx)
    if not ws.gateway.link_chat(kind, _resolve_entity(ws, kind, entity_ref)):
        raise click.ClickException(f"No {kind} matches {entity_ref!r}")


@chat.command(name="unlink")
@click.pass_context
def chat_unlink(ctx: click.Context) -> None:
    """Remove the conversation's entity link."""
    if not _workspace(ctx).gateway.unlink_chat():
        console.print("[dim]Chat is not linked[/dim]")


# ============================================================================
# Search Commands
# ============================================================================

@main.command()
@click.argument("partial")
@click.option("--kind", "-k", "kinds", type=KIND_CHOICE, multiple=True, help="Restrict to kinds (repeatable)")
@click.option("--all-books", is_flag=True, help="Search every book, not just the current one")
@click.pass_context
def search(ctx: click.Context, partial: str, kinds: tuple[str, ...], all_books: bool) -> None:
    """Fuzzy-search entity names."""
    ws = _workspace(ctx)
    results = ws.resolver.search(partial, kinds or None, include_all_books=all_books)
    if not results:
        console.print("[yellow]No matches[/yellow]")
        return

    table = Table(title=f"Matches for {partial!r}")
    table.add_column("Kind", style="magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Book")
    table.add_column("ID", style="dim")
    table.add_column("Description", style="dim")
    for candidate in results:
        table.add_row(
            candidate.kind.value,
            candidate.name,
            candidate.book_title,
            _short(candidate.id),
            (candidate.description or "")[:60],
        )
    console.print(table)


@main.command()
@click.argument("text")
@click.pass_context
def mentions(ctx: click.Context, text: str) -> None:
    """Resolve @[book/]kind/name tokens in TEXT without saving a message."""
    result = _workspace(ctx).process_mentions(text)
    console.print(f"[bold]Text:[/bold] {result.text}")
    if not result.mentions:
        console.print("[dim]No mentions resolved[/dim]")
        return
    for mention in result.mentions:
        candidate = mention.candidate
        console.print(
            f"  [green]OK[/green] {mention.token} -> [{candidate.kind.value}] "
            f"{candidate.name} [dim]({candidate.book_title})[/dim]"
        )


if __name__ == "__main__":
    main()
