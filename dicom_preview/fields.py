"""
fields.py - Path-aware readers for decoded JSON objects.

Each reader either returns a value of the requested Python type or raises
a DecodingError naming the offending field.  Missing keys and nulls are
distinguished the same way a strict decoder would: a required key that is
absent is MISSING_KEY, one that is present but null is VALUE_MISSING.
"""

from typing import Any, Optional

from dicom_preview.errors import DecodingError

_MISSING = object()

# Display names used in error messages
_TYPE_NAMES: dict[type, str] = {
    str: "String",
    int: "Int",
    bool: "Bool",
    list: "Array",
    dict: "Object",
}


def join_path(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def index_path(path: str, index: int) -> str:
    return f"{path}[{index}]"


def _matches(value: Any, expected: type) -> bool:
    # bool is a subclass of int; a JSON true must not pass as a count
    if expected is int:
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, expected)


def expect_object(value: Any, path: str) -> dict:
    if not isinstance(value, dict):
        raise DecodingError.type_mismatch("Object", path)
    return value


def expect_list(value: Any, path: str) -> list:
    if not isinstance(value, list):
        raise DecodingError.type_mismatch("Array", path)
    return value


def require(data: dict, key: str, expected: type, path: str = "") -> Any:
    """Read a mandatory, non-null field of type *expected*."""
    field_path = join_path(path, key)
    value = data.get(key, _MISSING)
    if value is _MISSING:
        raise DecodingError.missing_key(key, path)
    if value is None:
        raise DecodingError.value_missing(_TYPE_NAMES[expected], field_path)
    if not _matches(value, expected):
        raise DecodingError.type_mismatch(_TYPE_NAMES[expected], field_path)
    return value


def optional(data: dict, key: str, expected: type, path: str = "") -> Optional[Any]:
    """Read a field that may be absent or null."""
    value = data.get(key)
    if value is None:
        return None
    if not _matches(value, expected):
        raise DecodingError.type_mismatch(_TYPE_NAMES[expected], join_path(path, key))
    return value
