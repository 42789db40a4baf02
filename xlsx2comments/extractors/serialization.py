import typing
from dataclasses import fields, is_dataclass

from xlsx2comments.extractors.data_types import CommentReport

# Type marker key written next to every serialized dataclass
_TYPE_KEY = "_type"


def _serialize_for_json(value: typing.Any) -> typing.Any:
    if is_dataclass(value) and not isinstance(value, type):
        result = {_TYPE_KEY: type(value).__name__}
        for item in fields(value):
            result[item.name] = _serialize_for_json(getattr(value, item.name))
        return result
    if isinstance(value, dict):
        return {str(key): _serialize_for_json(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_serialize_for_json(item) for item in value]
    return value


def serialize_extraction(value: typing.Any) -> dict:
    """JSON-compatible dict for a CommentReport (or any result dataclass)."""
    serialized = _serialize_for_json(value)
    if isinstance(serialized, dict):
        if isinstance(value, CommentReport):
            serialized["nothing_found"] = value.nothing_found
        return serialized
    return {"value": serialized}
