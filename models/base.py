"""
Base Pydantic models for data validation and sanitization
"""
import html
from typing import Optional, Dict, List, Any

import bleach
from pydantic import BaseModel, ConfigDict, Field, EmailStr, field_validator

from .form import DEFAULT_TITLE, FormField

# Values that must reach the database byte-for-byte
_UNSANITIZED_FIELDS = {"id", "password_hash", "verify_otp", "reset_otp"}


def clean_text(value: str) -> str:
    """Strip surrounding whitespace and remove any HTML markup."""
    return html.unescape(bleach.clean(value.strip(), tags=[], strip=True))


def sanitize_values(d: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively sanitize all string values of a submitted mapping."""
    result = {}
    for key, value in d.items():
        if isinstance(value, str):
            result[key] = clean_text(value)
        elif isinstance(value, dict):
            result[key] = sanitize_values(value)
        elif isinstance(value, list):
            result[key] = [
                sanitize_values(item) if isinstance(item, dict)
                else clean_text(item) if isinstance(item, str)
                else item
                for item in value
            ]
        else:
            result[key] = value
    return result


def sanitize_field(field: FormField) -> FormField:
    """Clean the display strings of a field; ids and patterns are left untouched."""
    return field.model_copy(update={
        "label": clean_text(field.label),
        "placeholder": clean_text(field.placeholder),
        "help_text": clean_text(field.help_text),
        "options": tuple(clean_text(o) for o in field.options),
    })


class BaseDBModel(BaseModel):
    """Base model with common validation and sanitization methods"""

    @field_validator('*', mode='before')
    def sanitize_strings(cls, v, info):
        """Sanitize string inputs to prevent XSS attacks"""
        if isinstance(v, str) and info.field_name and info.field_name not in _UNSANITIZED_FIELDS:
            return clean_text(v)
        return v


class UserModel(BaseDBModel):
    """User account as stored in the users table"""
    id: str
    name: str
    email: EmailStr
    password_hash: str
    verify_otp: str = ''
    verify_otp_expire_at: int = 0
    is_account_verified: bool = False
    reset_otp: str = ''
    reset_otp_expire_at: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator('name')
    def validate_name(cls, v):
        if not v:
            raise ValueError('Name is required')
        return v[:255]

    @field_validator('email')
    def lowercase_email(cls, v):
        return str(v).lower()


class FormModel(BaseDBModel):
    """Form definition as accepted from the builder and stored in the forms table"""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    owner_id: Optional[str] = None
    title: str = DEFAULT_TITLE
    steps: List[List[FormField]] = Field(default_factory=lambda: [[]])
    share_id: Optional[str] = Field(default=None, alias="shareId")
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator('title')
    def default_title(cls, v):
        return v or DEFAULT_TITLE

    @field_validator('steps')
    def sanitize_steps(cls, v):
        """Sanitize display strings of every field; a form always keeps at least one step"""
        steps = [[sanitize_field(f) for f in step] for step in v]
        return steps or [[]]


class ResponseModel(BaseDBModel):
    """One completed submission against a shared form"""
    id: Optional[str] = None
    form_id: str
    share_id: str
    steps: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    created_at: Optional[str] = None

    @field_validator('steps')
    def sanitize_steps(cls, v):
        """Sanitize all string values in the submitted step maps"""
        return {key: sanitize_values(values) for key, values in v.items()}
