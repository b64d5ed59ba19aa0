"""
Async responses service: completed submissions stored in ``form_responses``.
"""

import html
import json
import logging
import uuid
from typing import Any, Dict, List

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from models.form import FormDocument
from models.validators import validate_response
from services.forms_service import AsyncFormsService, utc_now_iso
from services.step_validator import validate_step
from utils.config import FRONTEND_URL
from utils.data_normalization import normalize_db_row
from utils.email import render_email, send_email_html

logger = logging.getLogger("formbuilder.responses")

RESPONSE_RECEIVED_SUBJECT = "Response Received"


class FormNotFound(LookupError):
    pass


class ResponseValidationError(ValueError):
    def __init__(self, errors: Dict[str, Any]):
        super().__init__("response failed validation")
        self.errors = errors


def merge_step_values(steps: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Flatten the per-step value maps of a submission into one field id -> value map"""
    merged: Dict[str, Any] = {}
    for values in steps.values():
        if isinstance(values, dict):
            merged.update(values)
    return merged


def validate_submission(form: FormDocument, steps: Dict[str, Dict[str, Any]]) -> Dict[str, str]:
    """Strictly validate every step of ``form`` against the submitted values"""
    values = merge_step_values(steps)
    errors: Dict[str, str] = {}
    for fields in form.steps:
        errors.update(validate_step(fields, values, strict=True))
    return errors


def answer_preview(form: FormDocument, steps: Dict[str, Dict[str, Any]], limit: int = 140) -> str:
    """Short HTML listing of the submitted answers, labelled by field, for the owner mail"""
    values = merge_step_values(steps)
    parts = []
    for step in form.steps:
        for field in step:
            value = values.get(field.id)
            if value is None or value == "":
                continue
            parts.append(
                f"<p><strong>{html.escape(field.label or field.id)}:</strong> {html.escape(str(value)[:limit])}</p>"
            )
    return "".join(parts)


class AsyncResponsesService:
    """Async service for storing and listing form responses"""

    @staticmethod
    async def add_response(session: AsyncSession, share_id: str, steps: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        """
        Validate a submission against the published form and store it.

        Raises FormNotFound for an unknown share id and ResponseValidationError
        when the values do not satisfy the form.
        """
        form_data = await AsyncFormsService.get_form_by_share_id(session, share_id)
        if form_data is None:
            raise FormNotFound(share_id)
        form = FormDocument.model_validate(form_data)

        is_valid, result = validate_response({
            "id": str(uuid.uuid4()),
            "form_id": form.id,
            "share_id": share_id,
            "steps": steps,
            "created_at": utc_now_iso(),
        })
        if not is_valid:
            raise ResponseValidationError({"steps": result})

        # Checked against the sanitized values, which are what gets stored
        errors = validate_submission(form, result.steps)
        if errors:
            raise ResponseValidationError(errors)

        await session.execute(
            text(
                """
                INSERT INTO form_responses (id, form_id, share_id, steps, created_at)
                VALUES (:id, :form_id, :share_id, :steps, :created_at)
                """
            ),
            {
                "id": result.id,
                "form_id": result.form_id,
                "share_id": result.share_id,
                "steps": json.dumps(result.steps),
                "created_at": result.created_at,
            },
        )
        logger.info("response stored id=%s form_id=%s", result.id, result.form_id)

        await AsyncResponsesService.notify_owner(session, form_data, answer_preview(form, result.steps))
        return {"id": result.id}

    @staticmethod
    async def notify_owner(session: AsyncSession, form_data: Dict[str, Any], preview_html: str = "") -> bool:
        """Email the form owner about a new response. Best effort: failures are logged, never raised."""
        owner_id = form_data.get("owner")
        if not owner_id:
            return False
        result = await session.execute(text("SELECT email FROM users WHERE id = :id"), {"id": owner_id})
        row = result.mappings().first()
        if not row or not row["email"]:
            return False
        owner_email = row["email"]
        body = render_email("response_received.html", {
            "form_title": form_data.get("title") or "",
            "content_html": preview_html,
            "cta_url": f"{FRONTEND_URL.rstrip('/')}/forms/{form_data.get('id')}/responses",
        })
        try:
            send_email_html(owner_email, RESPONSE_RECEIVED_SUBJECT, body)
        except RuntimeError:
            logger.exception("owner notification failed form_id=%s", form_data.get("id"))
            return False
        logger.info("owner notified form_id=%s", form_data.get("id"))
        return True

    @staticmethod
    async def list_responses(session: AsyncSession, share_id: str, limit: int = 500) -> List[Dict[str, Any]]:
        """Responses for one share id, newest first"""
        result = await session.execute(
            text(
                """
                SELECT id, form_id, share_id, steps, created_at
                FROM form_responses
                WHERE share_id = :share_id
                ORDER BY created_at DESC
                LIMIT :limit_val
                """
            ),
            {"share_id": share_id, "limit_val": int(limit)},
        )
        rows = [normalize_db_row(dict(row)) for row in result.mappings().all()]
        return [
            {
                "id": row["id"],
                "formId": row["form_id"],
                "shareId": row["share_id"],
                "steps": row["steps"] or {},
                "createdAt": row["created_at"],
            }
            for row in rows
        ]
