"""
Account service: registration, login, email verification and password reset.

Every public method returns ``{"success": bool, "message": str}``; failures are
reported in the payload, never raised. Register and login additionally carry a
``token`` key that the router moves into the session cookie.
"""

import logging
import time
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.validators import validate_user
from services.forms_service import utc_now_iso
from utils.config import FRONTEND_URL, RESET_OTP_TTL_SECONDS, VERIFY_OTP_TTL_SECONDS
from utils.data_normalization import normalize_db_row
from utils.email import render_email, send_email_html
from utils.security import generate_jwt, generate_otp, hash_password, verify_password

logger = logging.getLogger("formbuilder.auth")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _mask_email(email: str) -> str:
    local, _, domain = (email or "").partition("@")
    if not domain:
        return "***"
    return f"{local[:2]}***@{domain}"


def _result(success: bool, message: str, **extra: Any) -> Dict[str, Any]:
    payload = {"success": success, "message": message}
    payload.update(extra)
    return payload


def _send_best_effort(to_email: str, subject: str, template: str, context: Dict[str, Any]) -> None:
    try:
        send_email_html(to_email, subject, render_email(template, context))
    except RuntimeError:
        logger.exception("failed to send %s to %s", template, _mask_email(to_email))


class AuthService:
    """Async service for user accounts stored in the ``users`` table"""

    @staticmethod
    async def get_user_by_email(session: AsyncSession, email: str) -> Optional[Dict[str, Any]]:
        result = await session.execute(
            text("SELECT * FROM users WHERE email = :email"),
            {"email": (email or "").strip().lower()},
        )
        row = result.mappings().first()
        return normalize_db_row(dict(row), json_fields=(), bool_fields=("is_account_verified",)) if row else None

    @staticmethod
    async def get_user_by_id(session: AsyncSession, user_id: str) -> Optional[Dict[str, Any]]:
        result = await session.execute(text("SELECT * FROM users WHERE id = :id"), {"id": user_id})
        row = result.mappings().first()
        return normalize_db_row(dict(row), json_fields=(), bool_fields=("is_account_verified",)) if row else None

    @staticmethod
    async def register(session: AsyncSession, name: str, email: str, password: str) -> Dict[str, Any]:
        if not name or not email or not password:
            return _result(False, "Missing Details")
        if await AuthService.get_user_by_email(session, email):
            return _result(False, "User already exists")

        now = utc_now_iso()
        is_valid, user = validate_user({
            "id": str(uuid.uuid4()),
            "name": name,
            "email": email.strip(),
            "password_hash": hash_password(password),
            "created_at": now,
            "updated_at": now,
        })
        if not is_valid:
            return _result(False, "Invalid email address" if any("email" in e.get("loc", ()) for e in user) else "Invalid details")

        try:
            await session.execute(
                text(
                    """
                    INSERT INTO users (id, name, email, password_hash, created_at, updated_at)
                    VALUES (:id, :name, :email, :password_hash, :created_at, :updated_at)
                    """
                ),
                {
                    "id": user.id,
                    "name": user.name,
                    "email": user.email,
                    "password_hash": user.password_hash,
                    "created_at": user.created_at,
                    "updated_at": user.updated_at,
                },
            )
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            await session.rollback()
            logger.info("duplicate registration email=%s", _mask_email(user.email))
            return _result(False, "User already exists")
        logger.info("user registered id=%s email=%s", user.id, _mask_email(user.email))
        _send_best_effort(user.email, "Welcome to Form Builder", "welcome.html", {"name": user.name, "cta_url": FRONTEND_URL})
        return _result(True, "Registered", token=generate_jwt(user.id))

    @staticmethod
    async def login(session: AsyncSession, email: str, password: str) -> Dict[str, Any]:
        if not email or not password:
            return _result(False, "Email and password are required")
        user = await AuthService.get_user_by_email(session, email)
        if not user:
            return _result(False, "Invalid email")
        if not verify_password(password, user["password_hash"]):
            logger.info("login rejected email=%s", _mask_email(email))
            return _result(False, "Invalid password")
        return _result(True, "Login successful", token=generate_jwt(user["id"]))

    @staticmethod
    async def send_verify_otp(session: AsyncSession, user_id: str) -> Dict[str, Any]:
        user = await AuthService.get_user_by_id(session, user_id)
        if not user:
            return _result(False, "User not found")
        if user["is_account_verified"]:
            return _result(True, "Account is already verified")

        otp = generate_otp()
        await session.execute(
            text(
                """
                UPDATE users
                SET verify_otp = :otp, verify_otp_expire_at = :expire_at, updated_at = :updated_at
                WHERE id = :id
                """
            ),
            {
                "id": user_id,
                "otp": otp,
                "expire_at": _now_ms() + VERIFY_OTP_TTL_SECONDS * 1000,
                "updated_at": utc_now_iso(),
            },
        )
        try:
            html = render_email("verify_otp.html", {"otp": otp, "email": user["email"]})
            send_email_html(user["email"], "Your Verification OTP", html)
        except RuntimeError:
            logger.exception("verification OTP email failed user_id=%s", user_id)
            return _result(False, "Failed to send OTP email")
        return _result(True, "Verification OTP sent to email")

    @staticmethod
    async def verify_email(session: AsyncSession, user_id: str, otp: str) -> Dict[str, Any]:
        if not user_id or not otp:
            return _result(False, "Missing Details")
        user = await AuthService.get_user_by_id(session, user_id)
        if not user:
            return _result(False, "User not found")
        if not user["verify_otp"] or user["verify_otp"] != str(otp):
            return _result(False, "Invalid OTP")
        if user["verify_otp_expire_at"] < _now_ms():
            return _result(False, "OTP expired")

        await session.execute(
            text(
                """
                UPDATE users
                SET is_account_verified = :verified, verify_otp = '', verify_otp_expire_at = 0, updated_at = :updated_at
                WHERE id = :id
                """
            ),
            {"id": user_id, "verified": True, "updated_at": utc_now_iso()},
        )
        logger.info("email verified user_id=%s", user_id)
        return _result(True, "Email verified successfully")

    @staticmethod
    async def send_reset_otp(session: AsyncSession, email: str) -> Dict[str, Any]:
        if not email:
            return _result(False, "Email is required")
        user = await AuthService.get_user_by_email(session, email)
        if not user:
            return _result(False, "User not found")

        otp = generate_otp()
        await session.execute(
            text(
                """
                UPDATE users
                SET reset_otp = :otp, reset_otp_expire_at = :expire_at, updated_at = :updated_at
                WHERE id = :id
                """
            ),
            {
                "id": user["id"],
                "otp": otp,
                "expire_at": _now_ms() + RESET_OTP_TTL_SECONDS * 1000,
                "updated_at": utc_now_iso(),
            },
        )
        try:
            html = render_email("reset_otp.html", {"otp": otp, "email": user["email"]})
            send_email_html(user["email"], "Password Reset OTP", html)
        except RuntimeError:
            logger.exception("reset OTP email failed email=%s", _mask_email(email))
            return _result(False, "Failed to send OTP email")
        return _result(True, "OTP sent to your email")

    @staticmethod
    async def reset_password(session: AsyncSession, email: str, otp: str, new_password: str) -> Dict[str, Any]:
        if not email or not otp or not new_password:
            return _result(False, "Email, OTP, and new password are required")
        user = await AuthService.get_user_by_email(session, email)
        if not user:
            return _result(False, "User not found")
        if not user["reset_otp"] or user["reset_otp"] != str(otp):
            return _result(False, "Invalid OTP")
        if user["reset_otp_expire_at"] < _now_ms():
            return _result(False, "OTP expired")

        await session.execute(
            text(
                """
                UPDATE users
                SET password_hash = :password_hash, reset_otp = '', reset_otp_expire_at = 0, updated_at = :updated_at
                WHERE id = :id
                """
            ),
            {"id": user["id"], "password_hash": hash_password(new_password), "updated_at": utc_now_iso()},
        )
        logger.info("password reset user_id=%s", user["id"])
        _send_best_effort(user["email"], "Password Changed", "password_changed.html", {"email": user["email"]})
        return _result(True, "Password has been reset successfully")

    @staticmethod
    async def get_user_data(session: AsyncSession, user_id: str) -> Dict[str, Any]:
        user = await AuthService.get_user_by_id(session, user_id)
        if not user:
            return _result(False, "User not found")
        return {
            "success": True,
            "userData": {
                "name": user["name"],
                "isAccountVerified": user["is_account_verified"],
            },
        }
