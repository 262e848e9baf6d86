"""Terminal output: user-visible notifications and log handler setup."""

import logging
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from rich.console import Console
from rich.table import Table

from lanzza.consts import HIDDEN_ANNOTATION
from lanzza.models import ChatRecord, WorkingMessage


@runtime_checkable
class Notifier(Protocol):
    """Surfaces recoverable problems and confirmations to the user."""

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class ConsoleNotifier:
    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(stderr=True)

    def success(self, message: str) -> None:
        self._console.print(f"[green]{message}[/green]")

    def error(self, message: str) -> None:
        self._console.print(f"[red]Error:[/red] {message}")


def configure_logging(verbose: bool = False) -> None:
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def render_messages(console: Console, messages: Sequence[WorkingMessage], show_hidden: bool = False) -> None:
    """Prints a message feed, one role-labelled block per message."""
    for message in messages:
        if HIDDEN_ANNOTATION in message.annotations and not show_hidden:
            continue
        console.rule(f"[bold]{message.role}[/bold] [dim]{message.id}[/dim]", align="left")
        console.print(message.content, markup=False, highlight=False)


def render_chat_table(console: Console, chats: Sequence[ChatRecord]) -> None:
    table = Table("id", "url id", "description", "messages", "updated")
    for chat in chats:
        table.add_row(chat.id, chat.url_id or "", chat.description or "", str(len(chat.messages)), chat.timestamp)
    console.print(table)
