import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import text

from db.database import async_session_maker
from utils.config import IS_PRODUCTION

logger = logging.getLogger("formbuilder.db")

router = APIRouter()


@router.get("/health/db")
async def health_db():
    """Lightweight DB health check: runs SELECT 1."""
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
        return {"status": "ok", "db": True}
    except (SQLAlchemyError, OSError) as e:
        logger.warning("database health check failed: %s", e)
        content = {"status": "fail", "db": False}
        # Do not leak internals in production
        if not IS_PRODUCTION:
            content["error"] = str(e)
        return JSONResponse(status_code=503, content=content)
