import sys
from pathlib import Path

from lanzza.export import chat_to_export, export_file_name
from lanzza.lib.atomic_io import atomic_write_text
from lanzza.serialization import to_pretty_json
from lanzza.session import Session


def export_chat(chat_ref: str, output: str | None) -> None:
    session = Session.load_active()
    export = chat_to_export(session.require_chat(chat_ref))
    payload = to_pretty_json(export)

    if output == "-":
        sys.stdout.write(payload + "\n")
        return

    target = Path(output) if output else Path.cwd() / export_file_name(export.export_date)
    if target.is_dir():
        target = target / export_file_name(export.export_date)
    atomic_write_text(target, payload + "\n")
    session.notifier.success(f"Exported chat to {target}")
