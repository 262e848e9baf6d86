import asyncio

import typer

from lanzza.session import Session


def duplicate(chat_ref: str) -> None:
    session = Session.load_active()
    _ = session.require_chat(chat_ref)

    history = session.chat_history()
    new_url_id = asyncio.run(history.duplicate_current_chat(chat_ref))
    if new_url_id is None:
        raise typer.Exit(code=1)
    print(new_url_id)
