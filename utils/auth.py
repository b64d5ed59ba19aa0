"""
Session cookie helpers and FastAPI dependencies resolving the signed-in user.
"""

from typing import Optional

from fastapi import HTTPException, Request, Response

from utils.config import COOKIE_SECURE, IS_PRODUCTION, JWT_EXPIRATION_DAYS, SESSION_COOKIE_NAME
from utils.security import decode_jwt

NOT_AUTHORIZED_MESSAGE = "Not authorized. Login again"


def _cookie_kwargs() -> dict:
    return {
        "httponly": True,
        "secure": COOKIE_SECURE,
        "samesite": "none" if IS_PRODUCTION else "strict",
        "path": "/",
    }


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=JWT_EXPIRATION_DAYS * 24 * 60 * 60,
        **_cookie_kwargs(),
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME, **_cookie_kwargs())


async def get_optional_user_id(request: Request) -> Optional[str]:
    """User id from the session cookie, or None for anonymous requests"""
    return decode_jwt(request.cookies.get(SESSION_COOKIE_NAME) or "")


async def get_current_user_id(request: Request) -> str:
    user_id = await get_optional_user_id(request)
    if not user_id:
        raise HTTPException(status_code=401, detail=NOT_AUTHORIZED_MESSAGE)
    return user_id
