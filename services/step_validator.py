"""
Per-step validation of submitted values against a step's field definitions.

The same function backs the builder preview, the public submission flow and
the server-side check on stored responses.
"""

import re
from functools import lru_cache
from typing import Any, Dict, Iterable, Mapping, Optional, Pattern

from models.form import FieldType, FormField, LENGTH_CHECKED_TYPES

REQUIRED_MESSAGE = "This field is required"
INVALID_FORMAT_MESSAGE = "Invalid format"

MAX_PATTERN_LENGTH = 200
# Longer values are reported as malformed instead of being matched
MAX_PATTERN_INPUT = 1000

# A quantified group that itself contains a quantifier, e.g. (a+)+ or (\w+\s?)*
_NESTED_QUANTIFIER = re.compile(
    r"\((?:[^()\\]|\\.)*?(?:[+*]|\{\d*,\d*\})(?:[^()\\]|\\.)*\)(?:[+*]|\{\d*,\d*\})"
)


def _parse_bound(raw: str) -> Optional[int]:
    """Leading integer of a bound as typed in the builder, None when blank or unparseable."""
    match = re.match(r"\s*([+-]?\d+)", raw or "")
    return int(match.group(1)) if match else None


def pattern_problem(pattern: str) -> Optional[str]:
    """Why ``pattern`` cannot be enforced server side, or None when it is safe to run."""
    if not pattern:
        return None
    if len(pattern) > MAX_PATTERN_LENGTH:
        return f"pattern is longer than {MAX_PATTERN_LENGTH} characters"
    try:
        re.compile(pattern)
    except re.error as e:
        return f"pattern does not compile: {e}"
    if _NESTED_QUANTIFIER.search(pattern):
        return "pattern repeats a group that is already repeated"
    return None


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> Optional[Pattern[str]]:
    """Compiled ``pattern``, or None when it is blank or fails ``pattern_problem``."""
    if not pattern or pattern_problem(pattern) is not None:
        return None
    return re.compile(pattern)


def is_blank(field: FormField, value: Any) -> bool:
    if value is None:
        return True
    if field.type is FieldType.CHECKBOX and value is False:
        return True
    return str(value).strip() == ""


def required_message(field: FormField, qualified: bool = False) -> str:
    if qualified and field.label:
        return f"{field.label} is required"
    return REQUIRED_MESSAGE


def validate_field(field: FormField, value: Any, qualified: bool = False, strict: bool = False) -> Optional[str]:
    """Return the error message for one field, or None when the value is acceptable."""
    if is_blank(field, value):
        return required_message(field, qualified) if field.required else None

    if field.type not in LENGTH_CHECKED_TYPES:
        return None

    text = str(value)
    rules = field.validations
    error = None
    min_length = _parse_bound(rules.min_length)
    if min_length is not None and len(text) < min_length:
        error = f"Minimum length is {rules.min_length}"
    max_length = _parse_bound(rules.max_length)
    if max_length is not None and len(text) > max_length:
        error = f"Maximum length is {rules.max_length}"

    if error is None and strict and rules.pattern:
        # An unusable pattern is the form author's mistake; the respondent is not blocked by it
        compiled = compile_pattern(rules.pattern)
        if compiled is not None and (len(text) > MAX_PATTERN_INPUT or compiled.fullmatch(text) is None):
            error = INVALID_FORMAT_MESSAGE
    return error


def validate_step(
    fields: Iterable[FormField],
    values: Mapping[str, Any],
    qualified: bool = False,
    strict: bool = False,
) -> Dict[str, str]:
    """Map field id -> error message for every failing field of a step.

    An empty dict means the step is valid. ``qualified`` prefixes the required
    message with the field label; ``strict`` additionally enforces the
    ``pattern`` rule of text fields (used server side).
    """
    errors: Dict[str, str] = {}
    for field in fields:
        message = validate_field(field, values.get(field.id), qualified=qualified, strict=strict)
        if message is not None:
            errors[field.id] = message
    return errors
