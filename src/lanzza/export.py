"""Downloadable chat exports."""

from datetime import datetime

from lanzza.models import ChatExport, ChatRecord, utc_now_iso
from lanzza.serialization import to_pretty_json


def chat_to_export(record: ChatRecord, export_date: str | None = None) -> ChatExport:
    """A pure read-and-serialize view of a stored chat; no reconciliation is applied."""
    return ChatExport(
        messages=list(record.messages),
        description=record.description,
        export_date=export_date or utc_now_iso(),
    )


def chat_to_json(record: ChatRecord, export_date: str | None = None) -> str:
    return to_pretty_json(chat_to_export(record, export_date))


def export_file_name(export_date: str) -> str:
    """chat-<timestamp>.json, with the timestamp made safe for file systems."""
    stamp = datetime.fromisoformat(export_date).strftime("%Y-%m-%dT%H-%M-%S")
    return f"chat-{stamp}.json"
