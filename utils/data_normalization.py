"""
Normalization of rows read back from the database.

Form steps and response step maps are stored as JSON text. Rows may come back
as already-decoded structures or as strings depending on the driver, and
boolean columns come back as 0/1 from SQLite or "true"/"false" from older
rows. Everything read from the database passes through here before it
reaches a model or a client.
"""
from typing import Any, Dict, Iterable
import json


def to_bool(value: Any) -> bool:
    """
    Convert a stored boolean to a Python bool.

    Examples:
        >>> to_bool("true"), to_bool(0), to_bool(True)
        (True, False, True)
    """
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "t", "yes")
    return bool(value)


def normalize_jsonb_field(value: Any, default: Any = None) -> Any:
    """Decode a JSON column into Python structures, returning ``default`` for None or undecodable text."""
    if value is None:
        return default
    if isinstance(value, (dict, list)):
        return value
    if isinstance(value, (str, bytes)):
        try:
            return json.loads(value)
        except (json.JSONDecodeError, ValueError):
            return default
    return default


def normalize_db_row(
    row: Dict[str, Any],
    json_fields: Iterable[str] = ("steps",),
    bool_fields: Iterable[str] = (),
) -> Dict[str, Any]:
    """Copy a row mapping, decoding the named JSON and boolean columns. Other values are passed through."""
    json_fields = set(json_fields)
    bool_fields = set(bool_fields)
    normalized = {}
    for key, value in row.items():
        if key in json_fields:
            normalized[key] = normalize_jsonb_field(value)
        elif key in bool_fields:
            normalized[key] = to_bool(value)
        else:
            normalized[key] = value
    return normalized
