# pyright: standard

import pytest

from lanzza.chatstore import (
    ChatBackend,
    create_chat_from_messages,
    delete_chat,
    duplicate_chat,
    fork_chat,
    get_all_chats,
    get_messages,
    get_next_id,
    get_url_id,
    set_messages,
    update_chat_description,
    update_chat_metadata,
)
from lanzza.exceptions import InvalidInputError, NotFoundError
from tests.helpers import make_conversation


def test_get_url_id_twice_yields_distinct_ids(any_db: ChatBackend) -> None:
    # GIVEN an empty store
    # WHEN requesting a url id for the same base slug twice
    first = get_url_id(any_db, "todo-app")
    second = get_url_id(any_db, "todo-app")

    # THEN the second carries a numeric disambiguating suffix
    assert first == "todo-app"
    assert second == "todo-app-2"
    assert get_url_id(any_db, "todo-app") == "todo-app-3"


def test_get_url_id_skips_ids_used_by_existing_chats(any_db: ChatBackend) -> None:
    set_messages(any_db, "1", make_conversation(1), url_id="shop")

    assert get_url_id(any_db, "shop") == "shop-2"


def test_get_next_id_is_one_above_the_highest_numeric_id(any_db: ChatBackend) -> None:
    # GIVEN an empty store
    assert get_next_id(any_db) == "1"

    # WHEN chats with numeric and non-numeric ids exist
    set_messages(any_db, "1", make_conversation(1))
    set_messages(any_db, "9", make_conversation(1))
    set_messages(any_db, "imported-files-abc", make_conversation(1))

    # THEN the next id ignores the non-numeric one
    assert get_next_id(any_db) == "10"


def test_get_next_id_never_reissues_a_deleted_chat_id(any_db: ChatBackend) -> None:
    # GIVEN two created chats, the newest of which is deleted
    first = create_chat_from_messages(any_db, "One", make_conversation(1))
    second = create_chat_from_messages(any_db, "Two", make_conversation(1))
    delete_chat(any_db, second)

    # WHEN asking for the next id
    next_id = get_next_id(any_db)

    # THEN the deleted chat's id is not handed out again
    assert (first, second) == ("1", "2")
    assert next_id == "3"
    assert get_next_id(any_db) == "4"


def test_set_messages_rejects_invalid_timestamp(any_db: ChatBackend) -> None:
    with pytest.raises(InvalidInputError, match="Invalid timestamp"):
        set_messages(any_db, "1", make_conversation(1), timestamp="yesterday")


def test_set_messages_keeps_given_timestamp(any_db: ChatBackend) -> None:
    set_messages(any_db, "1", make_conversation(1), timestamp="2026-05-01T10:00:00+00:00")

    record = get_messages(any_db, "1")
    assert record is not None
    assert record.timestamp == "2026-05-01T10:00:00+00:00"


def test_duplicate_chat_copies_messages_under_a_new_id(any_db: ChatBackend) -> None:
    # GIVEN a chat with metadata
    set_messages(any_db, "1", make_conversation(3), url_id="shop", description="Shop", metadata={"gitUrl": "g"})

    # WHEN duplicating it
    new_url_id = duplicate_chat(any_db, "shop")

    # THEN a new chat exists with the same messages and a "(copy)" description
    copy = get_messages(any_db, new_url_id)
    assert copy is not None
    assert copy.id == "2"
    assert copy.description == "Shop (copy)"
    assert copy.messages == make_conversation(3)
    assert copy.metadata == {"gitUrl": "g"}

    # AND the source is untouched
    source = get_messages(any_db, "1")
    assert source is not None and source.description == "Shop"


def test_duplicate_missing_chat_raises_not_found(any_db: ChatBackend) -> None:
    with pytest.raises(NotFoundError):
        _ = duplicate_chat(any_db, "nope")


def test_fork_chat_keeps_messages_up_to_and_including_target(any_db: ChatBackend) -> None:
    # GIVEN a five-message chat
    set_messages(any_db, "1", make_conversation(5), description="Shop")

    # WHEN forking at m2
    new_url_id = fork_chat(any_db, "1", "m2")

    # THEN the fork holds m0..m2
    fork = get_messages(any_db, new_url_id)
    assert fork is not None
    assert [m.id for m in fork.messages] == ["m0", "m1", "m2"]
    assert fork.description == "Shop (fork)"


def test_fork_at_unknown_message_raises_not_found(any_db: ChatBackend) -> None:
    set_messages(any_db, "1", make_conversation(2))

    with pytest.raises(NotFoundError, match="Message nope not found"):
        _ = fork_chat(any_db, "1", "nope")


def test_create_chat_from_messages_returns_url_id(any_db: ChatBackend) -> None:
    # GIVEN an existing chat
    set_messages(any_db, "1", make_conversation(1))

    # WHEN importing messages as a new chat
    url_id = create_chat_from_messages(any_db, "Imported", make_conversation(2, prefix="x"), {"source": "zip"})

    # THEN the chat is created under a fresh id
    record = get_messages(any_db, url_id)
    assert record is not None
    assert record.id == "2"
    assert record.description == "Imported"
    assert record.metadata == {"source": "zip"}
    assert [m.id for m in record.messages] == ["x0", "x1"]


def test_update_description_and_metadata_keep_messages(any_db: ChatBackend) -> None:
    # GIVEN a chat
    set_messages(any_db, "1", make_conversation(2), url_id="shop", description="Shop")

    # WHEN updating its description and metadata
    update_chat_description(any_db, "shop", "Coffee shop")
    update_chat_metadata(any_db, "1", {"gitBranch": "main"})

    # THEN only those fields changed
    record = get_messages(any_db, "1")
    assert record is not None
    assert record.description == "Coffee shop"
    assert record.metadata == {"gitBranch": "main"}
    assert record.url_id == "shop"
    assert record.messages == make_conversation(2)


def test_update_description_rejects_blank(any_db: ChatBackend) -> None:
    set_messages(any_db, "1", make_conversation(1))

    with pytest.raises(InvalidInputError):
        update_chat_description(any_db, "1", "   ")


def test_delete_chat(any_db: ChatBackend) -> None:
    set_messages(any_db, "1", make_conversation(1))
    set_messages(any_db, "2", make_conversation(1))

    delete_chat(any_db, "1")

    assert [c.id for c in get_all_chats(any_db)] == ["2"]
    with pytest.raises(NotFoundError):
        delete_chat(any_db, "1")
