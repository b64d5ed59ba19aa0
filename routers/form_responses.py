"""
Form responses router: public submission endpoint and owner-only listing
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_session
from services.forms_service import AsyncFormsService
from services.responses_service import AsyncResponsesService, FormNotFound, ResponseValidationError
from utils.auth import get_current_user_id

router = APIRouter(prefix="/api/formres", tags=["responses"])


class ResponsePayload(BaseModel):
    share_id: str = Field(alias="shareId")
    steps: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


@router.post("/add", status_code=201)
async def add_response(payload: ResponsePayload, session: AsyncSession = Depends(get_session)):
    try:
        result = await AsyncResponsesService.add_response(session, payload.share_id, payload.steps)
    except FormNotFound:
        raise HTTPException(status_code=404, detail="Form not found")
    except ResponseValidationError as e:
        return JSONResponse(status_code=422, content={"success": False, "errors": e.errors})
    return {"success": True, "id": result["id"]}


@router.get("/fetch")
async def fetch_responses(
    share_id: str = Query(..., alias="shareId"),
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
):
    """List the responses of a form, newest first. Only the form owner may read them."""
    form = await AsyncFormsService.get_form_by_share_id(session, share_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")
    if form.get("owner") != user_id:
        raise HTTPException(status_code=403, detail="You do not own this form")
    data = await AsyncResponsesService.list_responses(session, share_id)
    return {"success": True, "data": data}
