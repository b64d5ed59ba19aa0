"""
Server-rendered submission pages for shared forms.

``GET /f/{share_id}`` shows the first step; every button posts back to the
same URL with the step index and the action, and values from other steps
travel in hidden inputs until the final submit.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_session
from models.form import FormDocument
from services.field_renderer import coerce_value, render_form_page, render_message_page
from services.form_navigation import StepNavigator
from services.forms_service import AsyncFormsService
from services.gateway_client import FORM_UNAVAILABLE_MESSAGE
from services.responses_service import AsyncResponsesService, FormNotFound, ResponseValidationError

logger = logging.getLogger("formbuilder.public")

router = APIRouter(tags=["public"])

THANK_YOU_MESSAGE = "Thank you for your submission. We've received your response."
FIX_ERRORS_NOTICE = "Please fix the highlighted fields."


def _unavailable() -> HTMLResponse:
    return HTMLResponse(render_message_page("Form unavailable", FORM_UNAVAILABLE_MESSAGE), status_code=404)


async def _load_form(session: AsyncSession, share_id: str):
    data = await AsyncFormsService.get_form_by_share_id(session, share_id)
    return FormDocument.model_validate(data) if data else None


def _read_values(form: FormDocument, submitted) -> Dict[str, Any]:
    return {
        field.id: coerce_value(field, submitted.get(field.id))
        for step in form.steps
        for field in step
    }


def _parse_step(raw: Any) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0


@router.get("/f/{share_id}", response_class=HTMLResponse)
async def show_form(share_id: str, session: AsyncSession = Depends(get_session)):
    form = await _load_form(session, share_id)
    if form is None:
        return _unavailable()
    return HTMLResponse(render_form_page(form, 0, action_url=f"/f/{share_id}"))


@router.post("/f/{share_id}", response_class=HTMLResponse)
async def advance_form(share_id: str, request: Request, session: AsyncSession = Depends(get_session)):
    form = await _load_form(session, share_id)
    if form is None:
        return _unavailable()

    submitted = await request.form()
    action = submitted.get("_action") or "next"
    navigator = StepNavigator(
        form,
        values=_read_values(form, submitted),
        current_step=_parse_step(submitted.get("_step")),
        qualified=True,
    )
    action_url = f"/f/{share_id}"

    if action == "previous":
        navigator.previous()
        return HTMLResponse(render_form_page(form, navigator.current_step, navigator.values, action_url=action_url))

    if action != "submit" or not navigator.is_last_step:
        errors = navigator.next()
        notice = FIX_ERRORS_NOTICE if errors else None
        return HTMLResponse(render_form_page(
            form, navigator.current_step, navigator.values, errors, action_url=action_url, notice=notice,
        ))

    payload = navigator.submit()
    if payload is None:
        return HTMLResponse(render_form_page(
            form, navigator.current_step, navigator.values, navigator.errors,
            action_url=action_url, notice=FIX_ERRORS_NOTICE,
        ), status_code=422)

    try:
        await AsyncResponsesService.add_response(session, share_id, payload["steps"])
    except FormNotFound:
        return _unavailable()
    except ResponseValidationError as e:
        errors = {k: v for k, v in e.errors.items() if isinstance(v, str)}
        step_index = next(
            (i for i, step in enumerate(form.steps) if any(f.id in errors for f in step)),
            navigator.current_step,
        )
        return HTMLResponse(render_form_page(
            form, step_index, navigator.values, errors, action_url=action_url, notice=FIX_ERRORS_NOTICE,
        ), status_code=422)

    logger.info("public submission stored share_id=%s", share_id)
    return HTMLResponse(render_message_page(form.title, THANK_YOU_MESSAGE))
