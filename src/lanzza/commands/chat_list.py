from rich.console import Console

from lanzza.chatstore import get_all_chats
from lanzza.console import render_chat_table
from lanzza.serialization import to_pretty_json
from lanzza.session import Session


def chat_list(json_output: bool) -> None:
    session = Session.load_active()
    chats = get_all_chats(session.db)

    if json_output:
        summaries = [
            {
                "id": chat.id,
                "urlId": chat.url_id,
                "description": chat.description,
                "timestamp": chat.timestamp,
                "messageCount": len(chat.messages),
            }
            for chat in chats
        ]
        print(to_pretty_json(summaries))
        return

    if not chats:
        print("No chats found.")
        return

    render_chat_table(Console(), chats)
