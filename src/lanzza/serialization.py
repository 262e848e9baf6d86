# pyright: standard

from typing import Any

import msgspec

from lanzza.exceptions import CorruptRecordError


def to_json(obj: object) -> bytes:
    """Encode an object to compact JSON bytes using msgspec."""
    return msgspec.json.encode(obj)


def to_pretty_json(obj: object) -> str:
    """Encode an object to indented JSON text, as used for downloadable exports."""
    return msgspec.json.format(msgspec.json.encode(obj), indent=2).decode("utf-8")


def from_json[T](type_spec: type[T], data: bytes | str) -> T:
    """Decode JSON data (bytes or str) into the specified type."""
    return msgspec.json.decode(data, type=type_spec)


def decode_record[T](type_spec: type[T], data: bytes | str, key: str) -> T:
    """
    Decode a stored record, converting malformed payloads into CorruptRecordError
    so the caller can fall back for this one record.
    """
    try:
        return msgspec.json.decode(data, type=type_spec)
    except (msgspec.DecodeError, msgspec.ValidationError) as e:
        raise CorruptRecordError(f"Stored record '{key}' is malformed: {e}") from e


def to_dict(obj: object) -> dict[str, Any]:
    """Convert an object to a plain dictionary using msgspec."""
    match res := msgspec.to_builtins(obj):
        case dict():
            return res
        case _:
            raise TypeError(f"Expected dict from to_builtins, got {type(res)!r}")


def convert[T](obj: object, type_spec: type[T]) -> T:
    """Convert an object to the specified type using msgspec."""
    return msgspec.convert(obj, type_spec)
