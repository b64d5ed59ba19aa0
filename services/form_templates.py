"""
Built-in starter forms offered by the builder.

Each template is a ``FormDocument`` made of defaulted fields with a few
overrides. ``get_template`` hands out a copy with fresh field ids, so two
forms started from the same template never share ids.
"""

from typing import Any, Dict, Tuple

from models.form import FormDocument, FormField, create_default_field, generate_field_id


def _field(field_type: str, **overrides: Any) -> FormField:
    return create_default_field(field_type).model_copy(update=overrides)


TEMPLATES: Tuple[FormDocument, ...] = (
    FormDocument(
        title="Contact Form",
        steps=(
            (
                _field("text", label="Full Name", required=True),
                _field("email", label="Email Address", required=True),
                _field("phone", label="Phone Number"),
                _field("textarea", label="Message", required=True),
            ),
        ),
    ),
    FormDocument(
        title="Registration Form",
        steps=(
            (
                _field("text", label="First Name", required=True),
                _field("text", label="Last Name", required=True),
                _field("email", label="Email", required=True),
            ),
            (
                _field("phone", label="Phone Number"),
                _field("date", label="Date of Birth"),
                _field("dropdown", label="Country", options=("USA", "Canada", "UK", "Other")),
            ),
        ),
    ),
)

_BY_TITLE: Dict[str, FormDocument] = {template.title: template for template in TEMPLATES}


def template_titles() -> Tuple[str, ...]:
    return tuple(_BY_TITLE)


def get_template(title: str) -> FormDocument:
    """Return the template named ``title`` with freshly generated field ids.

    Raises KeyError for an unknown title.
    """
    template = _BY_TITLE[title]
    steps = tuple(
        tuple(field.model_copy(update={"id": generate_field_id()}) for field in step)
        for step in template.steps
    )
    return template.model_copy(update={"steps": steps})
