"""
Form definition types shared by the builder, the renderer and the API.

A form document is a title plus an ordered tuple of steps, each step an
ordered tuple of fields. Instances are frozen: every change produces a new
document, so a snapshot handed to a reader never changes under it.
"""

import secrets
import string
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TITLE = "Untitled Form"
DEFAULT_DROPDOWN_OPTIONS = ("Option 1", "Option 2")

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_LENGTH = 9


class FieldType(str, Enum):
    TEXT = "text"
    EMAIL = "email"
    PHONE = "phone"
    NUMBER = "number"
    TEXTAREA = "textarea"
    CHECKBOX = "checkbox"
    DROPDOWN = "dropdown"
    DATE = "date"


# Length bounds only apply to free-text inputs
LENGTH_CHECKED_TYPES = frozenset({FieldType.TEXT, FieldType.TEXTAREA})


def generate_field_id() -> str:
    """Random 9-character base-36 id. Collisions are not checked."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


def _blank_if_none(v: Any) -> Any:
    if v is None:
        return ""
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


class FieldValidations(BaseModel):
    """Optional per-field constraints, stored as strings exactly as the builder edits them."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    min_length: str = Field(default="", alias="minLength")
    max_length: str = Field(default="", alias="maxLength")
    pattern: str = ""

    @field_validator("min_length", "max_length", "pattern", mode="before")
    def coerce_bounds(cls, v):
        return _blank_if_none(v)


class FormField(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    type: FieldType
    label: str = ""
    placeholder: str = ""
    required: bool = False
    help_text: str = Field(default="", alias="helpText")
    options: Tuple[str, ...] = ()
    validations: FieldValidations = Field(default_factory=FieldValidations)

    @field_validator("label", "placeholder", "help_text", mode="before")
    def blank_strings(cls, v):
        return _blank_if_none(v)

    @field_validator("options", mode="before")
    def default_options(cls, v):
        return () if v is None else v

    @field_validator("validations", mode="before")
    def default_validations(cls, v):
        return {} if v is None else v

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


Step = Tuple[FormField, ...]


class FormDocument(BaseModel):
    """The aggregate root: what gets saved, shared and exported."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = DEFAULT_TITLE
    steps: Tuple[Step, ...] = ((),)
    id: Optional[str] = None
    share_id: Optional[str] = Field(default=None, alias="shareId")

    @field_validator("steps", mode="before")
    def at_least_one_step(cls, v):
        if v is None:
            return ((),)
        if isinstance(v, (list, tuple)) and len(v) == 0:
            return ((),)
        return v

    @field_validator("title", mode="before")
    def default_title(cls, v):
        return DEFAULT_TITLE if v is None else v

    def has_fields(self) -> bool:
        return any(len(step) > 0 for step in self.steps)

    def find_field(self, field_id: str) -> Optional[FormField]:
        for step in self.steps:
            for field in step:
                if field.id == field_id:
                    return field
        return None

    def steps_payload(self) -> list:
        return [[field.to_dict() for field in step] for step in self.steps]

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def create_default_field(field_type) -> FormField:
    """Build a new field of ``field_type`` with the builder's default label, placeholder and options."""
    ftype = FieldType(field_type)
    name = ftype.value
    return FormField(
        id=generate_field_id(),
        type=ftype,
        label=f"{name.capitalize()} Field",
        placeholder=f"Enter {name}...",
        required=False,
        help_text="",
        options=DEFAULT_DROPDOWN_OPTIONS if ftype is FieldType.DROPDOWN else (),
        validations=FieldValidations(),
    )
