"""
JSON export / import of form definitions.

File format: ``{"title": ..., "steps": [[field, ...], ...], "exportedAt": ISO-8601}``.
Field ids are written and read back unchanged.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from models.form import FormDocument
from services.builder_store import BuilderStore

IMPORTED_TITLE = "Imported Form"


class FormFileError(ValueError):
    """Raised when an imported file is not a readable form definition."""

    def __init__(self, message: str = "Invalid form file"):
        super().__init__(message)


def export_form(document: FormDocument, exported_at: Optional[datetime] = None) -> Dict[str, Any]:
    moment = exported_at or datetime.now(timezone.utc)
    return {
        "title": document.title,
        "steps": document.steps_payload(),
        "exportedAt": moment.isoformat().replace("+00:00", "Z"),
    }


def dumps_export(document: FormDocument, exported_at: Optional[datetime] = None) -> str:
    return json.dumps(export_form(document, exported_at), indent=2)


def export_filename(title: str) -> str:
    slug = re.sub(r"\s+", "_", title).lower()
    return f"{slug}_form.json"


def parse_form_file(raw: Union[str, bytes, Dict[str, Any]]) -> FormDocument:
    """Parse an exported file into a document (ids dropped). Raises FormFileError."""
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes, bytearray)) else raw
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FormFileError() from e
    if not isinstance(data, dict) or not isinstance(data.get("steps"), list):
        raise FormFileError()
    try:
        return FormDocument(title=data.get("title") or IMPORTED_TITLE, steps=data["steps"])
    except ValidationError as e:
        raise FormFileError() from e


def import_form(store: BuilderStore, raw: Union[str, bytes, Dict[str, Any]]) -> FormDocument:
    """Load an exported file into the store. On FormFileError the store is left untouched."""
    document = parse_form_file(raw)
    store.load_template(document)
    return document
