"""
Password hashing, session tokens and one-time codes.
"""

import datetime
import secrets
from typing import Optional

import bcrypt
import jwt

from utils.config import JWT_ALGORITHM, JWT_EXPIRATION_DAYS, JWT_SECRET

BCRYPT_ROUNDS = 10
OTP_DIGITS = 6


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against a bcrypt hash; malformed hashes never match"""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def generate_jwt(user_id: str) -> str:
    """Generate the session token stored in the auth cookie"""
    payload = {
        "id": user_id,
        "exp": datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(days=JWT_EXPIRATION_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_jwt(token: str) -> Optional[str]:
    """Return the user id carried by a session token, None if it is invalid or expired"""
    if not token:
        return None
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None
    user_id = payload.get("id")
    return str(user_id) if user_id else None


def generate_otp() -> str:
    """Six-digit numeric one-time code"""
    return str(secrets.randbelow(9 * 10 ** (OTP_DIGITS - 1)) + 10 ** (OTP_DIGITS - 1))
