"""
Auth router: cookie-based sessions, email verification and password reset.

Responses always have the shape {"success": bool, "message": str}.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_session
from services.auth_service import AuthService
from utils.auth import NOT_AUTHORIZED_MESSAGE, clear_session_cookie, get_optional_user_id, set_session_cookie
from utils.config import AUTH_RATE_LIMIT
from utils.limiter import limiter

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class VerifyEmailRequest(BaseModel):
    otp: str = ""


class ResetOtpRequest(BaseModel):
    email: str = ""


class ResetPasswordRequest(BaseModel):
    email: str = ""
    otp: str = ""
    newPassword: str = ""


def _with_session(result: dict, response: Response) -> dict:
    token = result.pop("token", None)
    if token:
        set_session_cookie(response, token)
    return result


@router.post("/register")
@limiter.limit(AUTH_RATE_LIMIT)
async def register(request: Request, payload: RegisterRequest, response: Response, session: AsyncSession = Depends(get_session)):
    result = await AuthService.register(session, payload.name.strip(), payload.email.strip(), payload.password)
    return _with_session(result, response)


@router.post("/login")
@limiter.limit(AUTH_RATE_LIMIT)
async def login(request: Request, payload: LoginRequest, response: Response, session: AsyncSession = Depends(get_session)):
    result = await AuthService.login(session, payload.email.strip(), payload.password)
    return _with_session(result, response)


@router.post("/logout")
async def logout(response: Response):
    clear_session_cookie(response)
    return {"success": True, "message": "Logged out"}


@router.get("/isAuthenticated")
async def is_authenticated(user_id: Optional[str] = Depends(get_optional_user_id)):
    if not user_id:
        return {"success": False, "message": NOT_AUTHORIZED_MESSAGE}
    return {"success": True, "message": "User is authenticated"}


@router.post("/send-otp")
@limiter.limit(AUTH_RATE_LIMIT)
async def send_verify_otp(
    request: Request,
    session: AsyncSession = Depends(get_session),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    if not user_id:
        return {"success": False, "message": NOT_AUTHORIZED_MESSAGE}
    return await AuthService.send_verify_otp(session, user_id)


@router.post("/verify-email")
async def verify_email(
    payload: VerifyEmailRequest,
    session: AsyncSession = Depends(get_session),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    if not user_id:
        return {"success": False, "message": NOT_AUTHORIZED_MESSAGE}
    return await AuthService.verify_email(session, user_id, payload.otp.strip())


@router.post("/reset-password-otp")
@limiter.limit(AUTH_RATE_LIMIT)
async def reset_password_otp(request: Request, payload: ResetOtpRequest, session: AsyncSession = Depends(get_session)):
    return await AuthService.send_reset_otp(session, payload.email.strip())


@router.post("/reset-password")
@limiter.limit(AUTH_RATE_LIMIT)
async def reset_password(request: Request, payload: ResetPasswordRequest, session: AsyncSession = Depends(get_session)):
    return await AuthService.reset_password(session, payload.email.strip(), payload.otp.strip(), payload.newPassword)
