from collections.abc import Sequence
from pathlib import Path
from sys import exit
from typing import Annotated, Any, final, override

import typer
from typer.core import TyperGroup

from lanzza.exceptions import LanzzaError

app: typer.Typer


@final
class LanzzaGroup(TyperGroup):
    @override
    def main(  # pyright: ignore[reportAny]
        self,
        args: Sequence[str] | None = None,
        prog_name: str | None = None,
        complete_var: str | None = None,
        standalone_mode: bool = True,
        windows_expand_args: bool = True,
        **extra: Any,  # pyright: ignore[reportAny, reportExplicitAny]
    ) -> Any:  # pyright: ignore[reportExplicitAny]
        try:
            return super().main(args, prog_name, complete_var, standalone_mode, windows_expand_args, **extra)  #  pyright: ignore[reportAny]
        except LanzzaError as e:
            typer.secho(f"Error: {e.message}", err=True, fg=typer.colors.RED)
            exit(e.exit_code)
        except Exception as e:
            typer.secho("Unexpected Internal Error", err=True, fg=typer.colors.RED)
            typer.echo(str(e), err=True)
            exit(1)


app = typer.Typer(cls=LanzzaGroup, no_args_is_help=True)


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log debug output to stderr.")] = False,
) -> None:
    """
    Inspect and manage stored chats and their workspace snapshots.
    """
    from lanzza.console import configure_logging

    configure_logging(verbose)


@app.command("show")
def show(
    chat_ref: Annotated[str, typer.Argument(help="Internal id or url id of the chat.")],
    rewind_to: Annotated[
        str | None,
        typer.Option("--rewind-to", help="Show the chat as it was right after this message id."),
    ] = None,
    show_hidden: Annotated[bool, typer.Option("--show-hidden", help="Include hidden messages.")] = False,
    wait: Annotated[
        bool,
        typer.Option("--wait/--no-wait", help="Retry while the chat has not been written yet."),
    ] = True,
    restore: Annotated[
        bool,
        typer.Option("--restore", help="Also write the snapshot files into the workspace."),
    ] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Output the messages as JSON.")] = False,
) -> None:
    """
    Load a chat the way the workbench does and print its active messages.

    When the chat has a snapshot, earlier messages are replaced by a restore
    message. The snapshot files are only written into the workspace with --restore.
    """
    from lanzza.commands import show

    show.show(chat_ref, rewind_to, show_hidden, wait, json_output, restore)


@app.command("export")
def export(
    chat_ref: Annotated[str, typer.Argument(help="Internal id or url id of the chat.")],
    output: Annotated[
        str | None,
        typer.Option("--output", "-o", help="File or directory to write to, or '-' for stdout."),
    ] = None,
) -> None:
    """
    Export a chat as a JSON download (chat-<timestamp>.json).
    """
    from lanzza.commands import export_chat

    export_chat.export_chat(chat_ref, output)


@app.command("import")
def import_(
    path: Annotated[Path, typer.Argument(help="A chat export JSON file.")],
    description: Annotated[str | None, typer.Option(help="Description for the new chat.")] = None,
) -> None:
    """
    Create a new chat from an exported chat file.
    """
    from lanzza.commands import import_chat

    import_chat.import_chat(path, description)


@app.command("duplicate")
def duplicate(
    chat_ref: Annotated[str, typer.Argument(help="Internal id or url id of the chat.")],
) -> None:
    """
    Copy a chat under a new id.
    """
    from lanzza.commands import duplicate

    duplicate.duplicate(chat_ref)


@app.command("fork")
def fork(
    chat_ref: Annotated[str, typer.Argument(help="Internal id or url id of the chat.")],
    message_id: Annotated[str, typer.Argument(help="Last message id to keep in the fork.")],
) -> None:
    """
    Create a new chat holding the messages up to and including MESSAGE_ID.
    """
    from lanzza.commands import fork

    fork.fork(chat_ref, message_id)


@app.command("list")
def list_chats(
    json_output: Annotated[bool, typer.Option("--json", help="Output the chat list as JSON.")] = False,
) -> None:
    """
    List stored chats, most recently updated first.
    """
    from lanzza.commands import chat_list

    chat_list.chat_list(json_output)


@app.command("delete")
def delete(
    chat_ref: Annotated[str, typer.Argument(help="Internal id or url id of the chat.")],
) -> None:
    """
    Delete a chat together with its snapshot.
    """
    from lanzza.commands import delete

    delete.delete(chat_ref)


@app.command("restore")
def restore(
    chat_ref: Annotated[str, typer.Argument(help="Internal id or url id of the chat.")],
) -> None:
    """
    Write a chat's latest snapshot into the workspace (LANZZA_WORKDIR).
    """
    from lanzza.commands import restore

    restore.restore(chat_ref)


if __name__ == "__main__":
    app()
