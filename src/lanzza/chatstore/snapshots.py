from lanzza.models import Snapshot

from .backend import ChatBackend


def get_snapshot(db: ChatBackend, chat_id: str) -> Snapshot | None:
    return db.read_snapshot(chat_id)


def set_snapshot(db: ChatBackend, chat_id: str, snapshot: Snapshot) -> None:
    """
    Replaces the chat's snapshot wholesale. Only the latest one is retained: it is a
    resume point for a rewind, not a history.
    """
    db.write_snapshot(chat_id, snapshot)


def delete_snapshot(db: ChatBackend, chat_id: str) -> None:
    db.delete_snapshot(chat_id)
