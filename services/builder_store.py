"""
Authoring-session state for the form builder.

``BuilderStore`` owns the form document being edited together with the UI
cursor state (selected field, active step, preview mode). Every operation
replaces the state with a new frozen snapshot and notifies subscribers;
nothing is mutated in place, so a snapshot read earlier stays valid.

The store is not thread-safe. It is driven from one event loop, and each
operation runs to completion before the next one starts.
"""

import logging
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from models.form import FormDocument, FormField, Step, create_default_field
from services.form_templates import get_template

logger = logging.getLogger("formbuilder.builder")

# Builder-side names accepted by update_field, mapped to the stored keys
_UPDATE_ALIASES = {"help_text": "helpText"}
_IMMUTABLE_KEYS = {"id", "type"}


class PreviewMode(str, Enum):
    DESKTOP = "desktop"
    TABLET = "tablet"
    MOBILE = "mobile"


class BuilderState(BaseModel):
    model_config = ConfigDict(frozen=True)

    document: FormDocument = FormDocument()
    current_step: int = 0
    selected_field_id: Optional[str] = None
    preview_mode: PreviewMode = PreviewMode.DESKTOP
    is_preview: bool = False
    revision: int = 0


Listener = Callable[[BuilderState], None]


class BuilderStore:
    """Single owner of the in-memory form document during authoring.

    Example:
        store = BuilderStore()
        store.add_field("text")
        store.add_step()
        store.add_field("email")
        document = store.document
    """

    def __init__(self, document: Optional[FormDocument] = None):
        self._state = BuilderState(document=document or FormDocument())
        self._listeners: List[Listener] = []

    @property
    def state(self) -> BuilderState:
        return self._state

    @property
    def document(self) -> FormDocument:
        return self._state.document

    @property
    def steps(self) -> Tuple[Step, ...]:
        return self._state.document.steps

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback run after every change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- internals ---------------------------------------------------------

    def _commit(self, document: Optional[FormDocument] = None, **changes: Any) -> None:
        if document is not None:
            changes["document"] = document
        changes["revision"] = self._state.revision + 1
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            listener(self._state)

    def _with_steps(self, steps: Tuple[Step, ...]) -> FormDocument:
        return self.document.model_copy(update={"steps": steps})

    def _padded_steps(self, step_index: int) -> List[Step]:
        if step_index < 0:
            raise IndexError(f"step index out of range: {step_index}")
        steps = list(self.steps)
        while len(steps) <= step_index:
            steps.append(())
        return steps

    # -- field operations --------------------------------------------------

    def add_field(self, field_type, step_index: Optional[int] = None) -> FormField:
        """Append a defaulted field to a step (the active one by default) and select it."""
        if step_index is None:
            step_index = self._state.current_step
        field = create_default_field(field_type)
        steps = self._padded_steps(step_index)
        steps[step_index] = steps[step_index] + (field,)
        self._commit(self._with_steps(tuple(steps)), selected_field_id=field.id)
        return field

    def insert_field_at_index(self, field_type, step_index: int, index: int) -> FormField:
        """Insert a defaulted field at ``index``; an out-of-range index appends instead."""
        field = create_default_field(field_type)
        steps = self._padded_steps(step_index)
        fields = list(steps[step_index])
        if 0 <= index <= len(fields):
            fields.insert(index, field)
        else:
            fields.append(field)
        steps[step_index] = tuple(fields)
        self._commit(self._with_steps(tuple(steps)), selected_field_id=field.id)
        return field

    def remove_field(self, field_id: str) -> bool:
        """Remove a field from whichever step holds it. Returns False when no such field exists."""
        if self.document.find_field(field_id) is None:
            return False
        steps = tuple(tuple(f for f in step if f.id != field_id) for step in self.steps)
        changes = {}
        if self._state.selected_field_id == field_id:
            changes["selected_field_id"] = None
        self._commit(self._with_steps(steps), **changes)
        return True

    def update_field(self, field_id: str, updates: Mapping[str, Any]) -> Optional[FormField]:
        """Shallow-merge ``updates`` into the field. ``id`` and ``type`` are never changed.

        Returns the updated field, or None when the id is unknown.
        """
        current = self.document.find_field(field_id)
        if current is None:
            return None
        merged = current.to_dict()
        for key, value in updates.items():
            key = _UPDATE_ALIASES.get(key, key)
            if key in _IMMUTABLE_KEYS:
                continue
            merged[key] = value
        updated = FormField.model_validate(merged)
        steps = tuple(
            tuple(updated if f.id == field_id else f for f in step)
            for step in self.steps
        )
        self._commit(self._with_steps(steps))
        return updated

    def reorder_fields(self, step_index: int, from_index: int, to_index: int) -> None:
        """Move the field at ``from_index`` to ``to_index`` within one step."""
        steps = list(self.steps)
        fields = list(steps[step_index])
        if not -len(fields) <= from_index < len(fields):
            raise IndexError(f"field index out of range: {from_index}")
        moved = fields.pop(from_index)
        fields.insert(to_index, moved)
        steps[step_index] = tuple(fields)
        self._commit(self._with_steps(tuple(steps)))

    def select_field(self, field_id: Optional[str]) -> None:
        self._commit(selected_field_id=field_id)

    # -- step operations ---------------------------------------------------

    def add_step(self) -> int:
        """Append an empty step and make it the active one. Returns its index."""
        index = len(self.steps)
        self._commit(self._with_steps(self.steps + ((),)), current_step=index)
        return index

    def remove_step(self, index: int) -> bool:
        """Delete a step. The last remaining step is never removed."""
        if len(self.steps) <= 1:
            return False
        steps = list(self.steps)
        removed = steps.pop(index)
        changes = {}
        if self._state.current_step >= len(steps):
            changes["current_step"] = len(steps) - 1
        if any(f.id == self._state.selected_field_id for f in removed):
            changes["selected_field_id"] = None
        self._commit(self._with_steps(tuple(steps)), **changes)
        return True

    def set_current_step(self, index: int) -> None:
        if not 0 <= index < len(self.steps):
            raise IndexError(f"step index out of range: {index}")
        self._commit(current_step=index)

    # -- document and view -------------------------------------------------

    def set_title(self, title: str) -> None:
        self._commit(self.document.model_copy(update={"title": title}))

    def set_preview_mode(self, mode) -> None:
        self._commit(preview_mode=PreviewMode(mode))

    def set_preview(self, enabled: bool) -> None:
        self._commit(is_preview=bool(enabled))

    def set_identifiers(self, form_id: Optional[str], share_id: Optional[str]) -> None:
        """Record the ids assigned by the persistence gateway after a save."""
        self._commit(self.document.model_copy(update={"id": form_id, "share_id": share_id}))

    def load_template(self, template: FormDocument) -> None:
        """Replace title and steps with the template's; saved ids are kept."""
        document = self.document.model_copy(update={"title": template.title, "steps": template.steps})
        self._commit(document, current_step=0, selected_field_id=None)
        logger.debug("loaded template %r with %d step(s)", template.title, len(template.steps))

    def load_builtin_template(self, title: str) -> FormDocument:
        """Load one of the built-in templates by title. Raises KeyError for an unknown title."""
        template = get_template(title)
        self.load_template(template)
        return template
