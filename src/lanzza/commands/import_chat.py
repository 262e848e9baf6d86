import asyncio
from pathlib import Path

import msgspec
import typer

from lanzza.exceptions import InvalidInputError
from lanzza.models import ChatExport, persistable_messages
from lanzza.serialization import from_json
from lanzza.session import Session


def import_chat(path: Path, description: str | None) -> None:
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise InvalidInputError(f"Could not read {path}: {e}") from e

    try:
        data = from_json(ChatExport, raw)
    except (msgspec.DecodeError, msgspec.ValidationError) as e:
        raise InvalidInputError(f"{path} is not a chat export: {e}") from e

    messages = persistable_messages(list(data.messages))
    if not messages:
        raise InvalidInputError(f"{path} contains no messages to import.")

    session = Session.load_active()
    title = description or data.description or path.stem
    new_url_id = asyncio.run(session.chat_history().import_chat(title, messages))
    if new_url_id is None:
        raise typer.Exit(code=1)
    print(new_url_id)
