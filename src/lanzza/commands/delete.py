from lanzza.chatstore import delete_chat
from lanzza.session import Session


def delete(chat_ref: str) -> None:
    session = Session.load_active()
    record = session.require_chat(chat_ref)

    delete_chat(session.db, record.id)
    session.notifier.success(f"Deleted chat '{record.description or record.id}'")
