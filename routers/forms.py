"""
Forms API router: create, update, fetch, export and preview form definitions
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_session
from models.form import DEFAULT_TITLE, FormDocument, FormField
from services.builder_store import PreviewMode
from services.field_renderer import render_form_page
from services.form_io import export_filename, export_form
from services.form_templates import get_template, template_titles
from services.forms_service import AsyncFormsService, public_form
from utils.auth import get_optional_user_id

logger = logging.getLogger("formbuilder.forms")

router = APIRouter(prefix="/api/form", tags=["forms"])


class FormPayload(BaseModel):
    title: Optional[str] = DEFAULT_TITLE
    steps: List[List[FormField]] = Field(default_factory=lambda: [[]])

    def steps_payload(self) -> List[List[Dict[str, Any]]]:
        return [[field.to_dict() for field in step] for step in self.steps]


class PreviewPayload(FormPayload):
    step: int = 0
    mode: PreviewMode = PreviewMode.DESKTOP
    values: Dict[str, Any] = Field(default_factory=dict)


def _assert_can_edit(form: Dict[str, Any], user_id: Optional[str]) -> None:
    owner = form.get("owner")
    if owner and owner != user_id:
        raise HTTPException(status_code=403, detail="You do not own this form")


@router.post("/create")
async def create_form(
    payload: FormPayload,
    session: AsyncSession = Depends(get_session),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    """Create a new form and return its id and share id"""
    result = await AsyncFormsService.create_form(
        session,
        {"title": payload.title, "steps": payload.steps_payload()},
        owner_id=user_id,
    )
    if "errors" in result:
        logger.info("form create rejected: %s", result["errors"])
        raise HTTPException(status_code=422, detail="Invalid form definition")
    return result


@router.post("/preview", response_class=HTMLResponse)
async def preview_form(payload: PreviewPayload):
    """Render one step of an unsaved form the way respondents will see it"""
    document = FormDocument(title=payload.title, steps=payload.steps_payload())
    return HTMLResponse(render_form_page(document, payload.step, payload.values, mode=payload.mode.value))


@router.get("/templates")
async def list_templates():
    """Built-in starter forms, each with fresh field ids"""
    return [get_template(title).to_dict() for title in template_titles()]


@router.get("/share/{share_id}")
async def get_form_by_share_id(share_id: str, session: AsyncSession = Depends(get_session)):
    form = await AsyncFormsService.get_form_by_share_id(session, share_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")
    return public_form(form)


@router.get("/{form_id}/export")
async def export_form_file(form_id: str, session: AsyncSession = Depends(get_session)):
    """Download the form definition as a JSON file"""
    form = await AsyncFormsService.get_form_by_id(session, form_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")
    document = FormDocument.model_validate(form)
    return JSONResponse(
        content=export_form(document),
        headers={"Content-Disposition": f'attachment; filename="{export_filename(document.title)}"'},
    )


@router.get("/{form_id}")
async def get_form(form_id: str, session: AsyncSession = Depends(get_session)):
    form = await AsyncFormsService.get_form_by_id(session, form_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")
    return public_form(form)


@router.put("/{form_id}")
async def update_form(
    form_id: str,
    payload: FormPayload,
    session: AsyncSession = Depends(get_session),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    """Replace title and steps of a saved form; the share id is kept"""
    existing = await AsyncFormsService.get_form_by_id(session, form_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Form not found")
    _assert_can_edit(existing, user_id)
    result = await AsyncFormsService.update_form(
        session,
        form_id,
        {"title": payload.title, "steps": payload.steps_payload()},
    )
    if result is None:
        raise HTTPException(status_code=404, detail="Form not found")
    if "errors" in result:
        raise HTTPException(status_code=422, detail="Invalid form definition")
    return result
