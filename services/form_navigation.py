"""
Step-by-step navigation over a published form, as used by the submission page.
"""

from typing import Any, Dict, Optional

from models.form import FormDocument
from services.step_validator import validate_step


def step_key(index: int) -> str:
    return f"step{index + 1}"


class StepNavigator:
    """Cursor over the steps of a form plus the respondent's draft values.

    ``next`` is gated by the step validator, ``previous`` is not. ``submit``
    is only possible from the last step and returns the response payload, or
    None when the step does not validate.
    """

    def __init__(
        self,
        form: FormDocument,
        values: Optional[Dict[str, Any]] = None,
        current_step: int = 0,
        qualified: bool = False,
    ):
        self.form = form
        self.values: Dict[str, Any] = dict(values or {})
        self.errors: Dict[str, str] = {}
        self.qualified = qualified
        self.current_step = max(0, min(current_step, self.last_step))

    @property
    def last_step(self) -> int:
        return len(self.form.steps) - 1

    @property
    def is_last_step(self) -> bool:
        return self.current_step == self.last_step

    def set_value(self, field_id: str, value: Any) -> None:
        self.values[field_id] = value
        self.errors.pop(field_id, None)

    def validate_current(self) -> Dict[str, str]:
        fields = self.form.steps[self.current_step]
        self.errors = validate_step(fields, self.values, qualified=self.qualified)
        return self.errors

    def next(self) -> Dict[str, str]:
        """Advance one step if the current one validates.

        Returns the current step's errors; an empty dict means the cursor moved
        (or was already on the last step).
        """
        errors = self.validate_current()
        if not errors:
            self.current_step = min(self.current_step + 1, self.last_step)
        return errors

    def previous(self) -> bool:
        before = self.current_step
        self.current_step = max(self.current_step - 1, 0)
        return self.current_step != before

    def submit(self) -> Optional[Dict[str, Any]]:
        if not self.is_last_step or self.validate_current():
            return None
        return {
            "shareId": self.form.share_id,
            "steps": {step_key(self.current_step): dict(self.values)},
        }
