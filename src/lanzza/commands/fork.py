from lanzza.chatstore import fork_chat
from lanzza.session import Session


def fork(chat_ref: str, message_id: str) -> None:
    session = Session.load_active()
    record = session.require_chat(chat_ref)

    new_url_id = fork_chat(session.db, record.id, message_id)
    session.notifier.success(f"Forked chat '{chat_ref}' at message {message_id}")
    print(new_url_id)
