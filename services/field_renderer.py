"""
HTML rendering of form fields and form pages.

Every field type maps to exactly one control template; the table is checked
against ``FieldType`` at import so a new type cannot be added without a
control. The builder preview and the public submission page both render
through ``render_field``.
"""

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from models.form import FieldType, FormDocument, FormField

TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
    trim_blocks=True,
    lstrip_blocks=True,
)

_CONTROL_TEMPLATES: Dict[FieldType, str] = {
    FieldType.TEXT: "fields/input.html",
    FieldType.EMAIL: "fields/input.html",
    FieldType.PHONE: "fields/input.html",
    FieldType.NUMBER: "fields/input.html",
    FieldType.DATE: "fields/input.html",
    FieldType.TEXTAREA: "fields/textarea.html",
    FieldType.CHECKBOX: "fields/checkbox.html",
    FieldType.DROPDOWN: "fields/dropdown.html",
}

_INPUT_TYPES = {
    FieldType.TEXT: "text",
    FieldType.EMAIL: "email",
    FieldType.PHONE: "tel",
    FieldType.NUMBER: "number",
    FieldType.DATE: "date",
}

_missing = set(FieldType) - set(_CONTROL_TEMPLATES)
if _missing:
    raise RuntimeError(f"no control template for field types: {sorted(t.value for t in _missing)}")

_TRUTHY = {"on", "true", "1", "yes"}


def coerce_value(field: FormField, raw: Any) -> Any:
    """Normalize a raw input value: bool for checkboxes, string for everything else."""
    if field.type is FieldType.CHECKBOX:
        if isinstance(raw, bool):
            return raw
        return str(raw or "").strip().lower() in _TRUTHY
    if raw is None:
        return ""
    return str(raw)


def render_field(field: FormField, value: Any = None, error: Optional[str] = None) -> Markup:
    """Render one field as a labelled HTML control with its help text and error."""
    template = _env.get_template("fields/field.html")
    html = template.render(
        field=field,
        control_template=_CONTROL_TEMPLATES[field.type],
        input_type=_INPUT_TYPES.get(field.type, "text"),
        value=coerce_value(field, value),
        error=error,
    )
    return Markup(html)


def hidden_values(form: FormDocument, step_index: int, values: Mapping[str, Any]) -> Dict[str, str]:
    """Values of fields outside ``step_index``, encoded for hidden inputs so they survive a round trip."""
    carried: Dict[str, str] = {}
    for index, step in enumerate(form.steps):
        if index == step_index:
            continue
        for field in step:
            value = coerce_value(field, values.get(field.id))
            if field.type is FieldType.CHECKBOX:
                if value:
                    carried[field.id] = "on"
            elif value != "":
                carried[field.id] = value
    return carried


def render_form_page(
    form: FormDocument,
    step_index: int = 0,
    values: Optional[Mapping[str, Any]] = None,
    errors: Optional[Mapping[str, str]] = None,
    mode: str = "desktop",
    action_url: Optional[str] = None,
    notice: Optional[str] = None,
) -> str:
    """Render one step of a form as a full HTML page.

    Without ``action_url`` the page is a read-only preview (no form element).
    """
    values = values or {}
    errors = errors or {}
    step_index = max(0, min(step_index, len(form.steps) - 1))
    fields = [
        render_field(field, values.get(field.id), errors.get(field.id))
        for field in form.steps[step_index]
    ]
    template = _env.get_template("pages/form.html")
    return template.render(
        form=form,
        fields=fields,
        step_index=step_index,
        step_count=len(form.steps),
        is_last_step=step_index == len(form.steps) - 1,
        hidden=hidden_values(form, step_index, values) if action_url else {},
        mode=mode,
        action_url=action_url,
        notice=notice,
    )


def render_message_page(title: str, message: str) -> str:
    return _env.get_template("pages/message.html").render(title=title, message=message)
