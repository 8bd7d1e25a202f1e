"""
Content - Field Value Codec.

============================================================
PURPOSE
============================================================
Encodes field values to (type tag, text) pairs for the
value_type / value columns, and back.

Decoding an encoded value returns an equal value of the same
Python type, so whatever a page or block is saved with comes
back unchanged.

============================================================
TYPE TAGS
============================================================
null, str, bool, int, float, decimal, date, datetime, uuid,
json (lists, and dicts with str keys, of str, int, float, bool
and None; tuples, sets and non-str keys are rejected)

============================================================
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Tuple
from uuid import UUID


TYPE_NULL = "null"
TYPE_STR = "str"
TYPE_BOOL = "bool"
TYPE_INT = "int"
TYPE_FLOAT = "float"
TYPE_DECIMAL = "decimal"
TYPE_DATE = "date"
TYPE_DATETIME = "datetime"
TYPE_UUID = "uuid"
TYPE_JSON = "json"

VALUE_TYPES = (
    TYPE_NULL,
    TYPE_STR,
    TYPE_BOOL,
    TYPE_INT,
    TYPE_FLOAT,
    TYPE_DECIMAL,
    TYPE_DATE,
    TYPE_DATETIME,
    TYPE_UUID,
    TYPE_JSON,
)


class ValueCodecError(ValueError):
    """Raised for values or type tags the codec does not handle."""

    def __init__(self, message: str, type_tag: Optional[str] = None):
        super().__init__(message)
        self.type_tag = type_tag


def _check_json(value: Any, path: str) -> None:
    if value is None or isinstance(value, (str, bool, int, float)):
        return
    if isinstance(value, list):
        for index, item in enumerate(value):
            _check_json(item, f"{path}[{index}]")
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueCodecError(
                    f"JSON object keys must be str, got {type(key).__name__} at {path}", TYPE_JSON
                )
            _check_json(item, f"{path}.{key}")
        return
    raise ValueCodecError(
        f"Unsupported value in JSON field at {path}: {type(value).__name__}", TYPE_JSON
    )


def encode_value(value: Any) -> Tuple[str, Optional[str]]:
    """
    Encode a field value.

    Args:
        value: The Python value

    Returns:
        (type_tag, text) where text is None only for None

    Raises:
        ValueCodecError: If the value type is not supported
    """
    if value is None:
        return TYPE_NULL, None
    # bool is an int subclass, check it first
    if isinstance(value, bool):
        return TYPE_BOOL, "true" if value else "false"
    if isinstance(value, str):
        return TYPE_STR, value
    if isinstance(value, int):
        return TYPE_INT, str(value)
    if isinstance(value, float):
        return TYPE_FLOAT, repr(value)
    if isinstance(value, Decimal):
        return TYPE_DECIMAL, str(value)
    # datetime is a date subclass, check it first
    if isinstance(value, datetime):
        return TYPE_DATETIME, value.isoformat()
    if isinstance(value, date):
        return TYPE_DATE, value.isoformat()
    if isinstance(value, UUID):
        return TYPE_UUID, str(value)
    if isinstance(value, (list, dict)):
        _check_json(value, "$")
        try:
            return TYPE_JSON, json.dumps(value, sort_keys=True)
        except (TypeError, ValueError) as e:
            raise ValueCodecError(f"Value is not JSON serializable: {e}", TYPE_JSON) from e

    raise ValueCodecError(f"Unsupported field value type: {type(value).__name__}")


def decode_value(type_tag: str, text: Optional[str]) -> Any:
    """
    Decode a stored field value.

    Args:
        type_tag: Tag produced by encode_value
        text: Stored text

    Raises:
        ValueCodecError: If the tag is unknown or the text is malformed
    """
    if type_tag == TYPE_NULL or text is None:
        return None

    try:
        if type_tag == TYPE_STR:
            return text
        if type_tag == TYPE_BOOL:
            return text == "true"
        if type_tag == TYPE_INT:
            return int(text)
        if type_tag == TYPE_FLOAT:
            return float(text)
        if type_tag == TYPE_DECIMAL:
            return Decimal(text)
        if type_tag == TYPE_DATETIME:
            return datetime.fromisoformat(text)
        if type_tag == TYPE_DATE:
            return date.fromisoformat(text)
        if type_tag == TYPE_UUID:
            return UUID(text)
        if type_tag == TYPE_JSON:
            return json.loads(text)
    except (ArithmeticError, ValueError) as e:
        raise ValueCodecError(f"Malformed {type_tag} value: {text!r}", type_tag) from e

    raise ValueCodecError(f"Unknown value type tag: {type_tag}", type_tag)
