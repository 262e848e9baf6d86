from collections.abc import Sequence
from datetime import datetime

from lanzza.exceptions import InvalidInputError, NotFoundError
from lanzza.models import ChatMessage, ChatMetadata, ChatRecord, utc_now_iso

from .backend import ChatBackend


def get_messages(db: ChatBackend, id_or_url_id: str) -> ChatRecord | None:
    """
    Looks a chat up by internal id or url id; callers cannot tell which matched.
    """
    return db.read_chat(id_or_url_id)


def set_messages(
    db: ChatBackend,
    chat_id: str,
    messages: Sequence[ChatMessage],
    url_id: str | None = None,
    description: str | None = None,
    timestamp: str | None = None,
    metadata: ChatMetadata | None = None,
) -> None:
    """
    Replaces the full message list and metadata of a chat, creating it if absent.
    """
    if timestamp is not None:
        try:
            _ = datetime.fromisoformat(timestamp)
        except ValueError as e:
            raise InvalidInputError(f"Invalid timestamp: {timestamp!r}") from e

    db.write_chat(
        ChatRecord(
            id=chat_id,
            messages=list(messages),
            url_id=url_id,
            description=description,
            timestamp=timestamp or utc_now_iso(),
            metadata=metadata,
        )
    )


def get_next_id(db: ChatBackend) -> str:
    """
    Claims a fresh internal id: one above the highest numeric id in use and above
    every id handed out before, so ids of deleted chats are never reissued.
    Non-numeric ids (e.g. from the import pipeline) never collide with it.
    """
    highest = 0
    for chat_id in db.chat_ids():
        if chat_id.isdigit():
            highest = max(highest, int(chat_id))
    return str(db.claim_chat_number(highest))


def get_url_id(db: ChatBackend, base: str) -> str:
    """
    Returns base when free, otherwise base-2, base-3, ... The returned id is
    claimed, so two calls for the same base never yield the same id.
    """
    if db.reserve_url_id(base):
        return base

    suffix = 2
    while not db.reserve_url_id(f"{base}-{suffix}"):
        suffix += 1
    return f"{base}-{suffix}"


def get_all_chats(db: ChatBackend) -> list[ChatRecord]:
    return db.list_chats()


def delete_chat(db: ChatBackend, chat_id: str) -> None:
    if db.read_chat(chat_id) is None:
        raise NotFoundError(f"Chat {chat_id} not found.")
    db.delete_chat(chat_id)


def duplicate_chat(db: ChatBackend, source_id: str) -> str:
    """
    Copies a chat's messages and metadata under a fresh id; the source is untouched.
    """
    chat = get_messages(db, source_id)
    if chat is None:
        raise NotFoundError(f"Chat {source_id} not found.")

    new_id = get_next_id(db)
    new_url_id = get_url_id(db, new_id)
    set_messages(
        db,
        new_id,
        chat.messages,
        new_url_id,
        f"{chat.description or 'Chat'} (copy)",
        metadata=dict(chat.metadata) if chat.metadata is not None else None,
    )
    return new_url_id


def fork_chat(db: ChatBackend, chat_id: str, message_id: str) -> str:
    """
    Creates a new chat holding the messages of chat_id up to and including message_id.
    """
    chat = get_messages(db, chat_id)
    if chat is None:
        raise NotFoundError(f"Chat {chat_id} not found.")

    message_index = next((i for i, m in enumerate(chat.messages) if m.id == message_id), -1)
    if message_index == -1:
        raise NotFoundError(f"Message {message_id} not found in chat {chat_id}.")

    return create_chat_from_messages(
        db,
        f"{chat.description or 'Chat'} (fork)",
        chat.messages[: message_index + 1],
        dict(chat.metadata) if chat.metadata is not None else None,
    )


def create_chat_from_messages(
    db: ChatBackend,
    description: str,
    messages: Sequence[ChatMessage],
    metadata: ChatMetadata | None = None,
) -> str:
    """
    Creates a wholly new chat from an externally supplied message list (import flows).
    Returns the new chat's url id.
    """
    new_id = get_next_id(db)
    new_url_id = get_url_id(db, new_id)
    set_messages(db, new_id, messages, new_url_id, description, metadata=metadata)
    return new_url_id


def update_chat_description(db: ChatBackend, chat_id: str, description: str) -> None:
    chat = get_messages(db, chat_id)
    if chat is None:
        raise NotFoundError(f"Chat {chat_id} not found.")
    if not description.strip():
        raise InvalidInputError("Description cannot be empty.")
    set_messages(db, chat.id, chat.messages, chat.url_id, description, chat.timestamp, chat.metadata)


def update_chat_metadata(db: ChatBackend, chat_id: str, metadata: ChatMetadata) -> None:
    chat = get_messages(db, chat_id)
    if chat is None:
        raise NotFoundError(f"Chat {chat_id} not found.")
    set_messages(db, chat.id, chat.messages, chat.url_id, chat.description, chat.timestamp, metadata)
