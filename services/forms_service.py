"""
Async forms service: form definitions stored in the ``forms`` table.

Steps are stored as JSON text in builder (camelCase) form, so what the
builder saved is what the share link serves back.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import FormModel
from models.validators import validate_form
from services.step_validator import pattern_problem
from utils.data_normalization import normalize_db_row

logger = logging.getLogger("formbuilder.forms")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _steps_json(form: FormModel) -> str:
    return json.dumps([[field.to_dict() for field in step] for step in form.steps])


def _pattern_errors(form: FormModel) -> List[Dict[str, Any]]:
    """Patterns the server would refuse to run, reported like pydantic errors"""
    errors = []
    for step_index, step in enumerate(form.steps):
        for field_index, field in enumerate(step):
            problem = pattern_problem(field.validations.pattern)
            if problem:
                errors.append({"loc": ("steps", step_index, field_index, "validations", "pattern"), "msg": problem})
    return errors


def form_row_to_dict(row: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a forms row to the camelCase document served to the builder and share links"""
    data = normalize_db_row(dict(row))
    return {
        "id": data.get("id"),
        "owner": data.get("owner_id"),
        "title": data.get("title"),
        "steps": data.get("steps") or [[]],
        "shareId": data.get("share_id"),
        "createdAt": data.get("created_at"),
        "updatedAt": data.get("updated_at"),
    }


def public_form(form: Dict[str, Any]) -> Dict[str, Any]:
    """The form document without the owner's user id, for unauthenticated readers"""
    return {key: value for key, value in form.items() if key != "owner"}


class AsyncFormsService:
    """Async service for handling form definitions with Pydantic validation"""

    @staticmethod
    async def create_form(session: AsyncSession, form_data: Dict[str, Any], owner_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Validate and insert a new form with a fresh share id.

        Returns {"id", "shareId"} or {"errors": [...]} when validation fails.
        """
        payload = {
            "title": form_data.get("title"),
            "steps": form_data.get("steps") or [[]],
            "owner_id": owner_id,
        }
        is_valid, result = validate_form({k: v for k, v in payload.items() if v is not None})
        if not is_valid:
            return {"errors": result}
        pattern_errors = _pattern_errors(result)
        if pattern_errors:
            return {"errors": pattern_errors}

        form_id = str(uuid.uuid4())
        share_id = str(uuid.uuid4())
        now = utc_now_iso()
        await session.execute(
            text(
                """
                INSERT INTO forms (id, owner_id, title, steps, share_id, created_at, updated_at)
                VALUES (:id, :owner_id, :title, :steps, :share_id, :created_at, :updated_at)
                """
            ),
            {
                "id": form_id,
                "owner_id": result.owner_id,
                "title": result.title,
                "steps": _steps_json(result),
                "share_id": share_id,
                "created_at": now,
                "updated_at": now,
            },
        )
        logger.info("form created id=%s share_id=%s owner=%s", form_id, share_id, result.owner_id)
        return {"id": form_id, "shareId": share_id}

    @staticmethod
    async def update_form(session: AsyncSession, form_id: str, form_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Replace title and steps of an existing form; the share id never changes.

        Returns {"id", "shareId"}, {"errors": [...]}, or None when the form does not exist.
        """
        existing = await AsyncFormsService.get_form_by_id(session, form_id)
        if existing is None:
            return None
        is_valid, result = validate_form({
            "title": form_data.get("title"),
            "steps": form_data.get("steps") or [[]],
        })
        if not is_valid:
            return {"errors": result}
        pattern_errors = _pattern_errors(result)
        if pattern_errors:
            return {"errors": pattern_errors}

        await session.execute(
            text(
                """
                UPDATE forms
                SET title = :title, steps = :steps, updated_at = :updated_at
                WHERE id = :id
                """
            ),
            {
                "id": form_id,
                "title": result.title,
                "steps": _steps_json(result),
                "updated_at": utc_now_iso(),
            },
        )
        logger.info("form updated id=%s", form_id)
        return {"id": form_id, "shareId": existing["shareId"]}

    @staticmethod
    async def get_form_by_id(session: AsyncSession, form_id: str) -> Optional[Dict[str, Any]]:
        result = await session.execute(text("SELECT * FROM forms WHERE id = :form_id"), {"form_id": form_id})
        row = result.mappings().first()
        return form_row_to_dict(row) if row else None

    @staticmethod
    async def get_form_by_share_id(session: AsyncSession, share_id: str) -> Optional[Dict[str, Any]]:
        result = await session.execute(
            text("SELECT * FROM forms WHERE share_id = :share_id"),
            {"share_id": share_id},
        )
        row = result.mappings().first()
        return form_row_to_dict(row) if row else None
