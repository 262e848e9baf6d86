import asyncio

import typer
from rich.console import Console

from lanzza.console import render_messages
from lanzza.models import LoadState, WorkingMessage
from lanzza.serialization import to_pretty_json
from lanzza.session import Session


def show(
    chat_ref: str, rewind_to: str | None, show_hidden: bool, wait: bool, json_output: bool, restore: bool
) -> None:
    session = Session.load_active()
    history = session.chat_history(wait=wait, write_files=restore)

    messages: list[WorkingMessage] = asyncio.run(history.load(chat_ref, rewind_to))
    if history.state is LoadState.ERROR:
        raise typer.Exit(code=1)

    if json_output:
        print(to_pretty_json(messages))
        return

    console = Console()
    if not messages:
        console.print(f"[yellow]Chat '{chat_ref}' has no messages.[/yellow]")
        return

    if history.description:
        console.print(f"[bold]{history.description}[/bold] [dim]({history.url_id or history.chat_id})[/dim]")
    if history.archived_messages:
        console.print(f"[dim]{len(history.archived_messages)} earlier messages restored from snapshot.[/dim]")
    render_messages(console, messages, show_hidden=show_hidden)
