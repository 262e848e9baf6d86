import asyncio

import typer

from lanzza.chatstore import get_snapshot
from lanzza.exceptions import NotFoundError
from lanzza.session import Session


def restore(chat_ref: str) -> None:
    session = Session.load_active()
    record = session.require_chat(chat_ref)

    snapshot = get_snapshot(session.db, record.id)
    if snapshot is None:
        raise NotFoundError(f"Chat '{chat_ref}' has no snapshot.")

    history = session.chat_history()
    if not asyncio.run(history.restore_snapshot(snapshot)):
        raise typer.Exit(code=1)
    session.notifier.success(
        f"Restored {len(snapshot.files)} entries into {session.workspace.root} "
        + f"(as of message {snapshot.cursor_message_id or '?'})"
    )
