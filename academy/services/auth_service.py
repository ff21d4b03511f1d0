"""
Authentication service: password hashing, JWT access tokens, refresh tokens,
and email/password validation.
"""

import os
import re
import secrets
import logging
from datetime import timedelta
from typing import Optional, Dict

import bcrypt
import jwt
from dotenv import load_dotenv

from academy.utils.datetime_utils import utcnow

load_dotenv()

logger = logging.getLogger(__name__)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "academy-dev-secret-change-in-production")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRATION_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
REFRESH_TOKEN_EXPIRATION_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "30"))

MIN_PASSWORD_LENGTH = 8

EMAIL_REGEX = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")


def hash_password(password: str) -> str:
    """
    Hash a password with bcrypt.

    Args:
        password: Plain text password

    Returns:
        bcrypt hash as a UTF-8 string
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plain text password against a bcrypt hash."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT access token.

    Args:
        data: Claims to embed (user_id, role)
        expires_delta: Optional custom lifetime; defaults to ACCESS_TOKEN_EXPIRATION_MINUTES

    Returns:
        Encoded JWT string
    """
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRATION_MINUTES)
    to_encode["exp"] = utcnow() + expires_delta
    to_encode["iat"] = utcnow()
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Optional[Dict]:
    """
    Decode and validate a JWT access token.

    Returns:
        Token payload, or None if the token is invalid or expired
    """
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.debug("Access token expired")
        return None
    except jwt.InvalidTokenError:
        return None


def generate_refresh_token() -> str:
    """Generate an opaque, URL-safe refresh token."""
    return secrets.token_urlsafe(48)


def validate_email(email: str) -> bool:
    if not email:
        return False
    return bool(EMAIL_REGEX.match(email.strip()))


def normalize_email(email: str) -> str:
    """
    Normalize an email address to lowercase without surrounding whitespace.

    Raises:
        ValueError: If the email is empty or invalid
    """
    if not email or not email.strip():
        raise ValueError("Email is required")
    normalized = email.strip().lower()
    if not validate_email(normalized):
        raise ValueError(f"Invalid email address: {email}")
    return normalized


def validate_password(password: str) -> None:
    """
    Validate password strength.

    Raises:
        ValueError: If the password is too short or has no digit
    """
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not any(char.isdigit() for char in password):
        raise ValueError("Password must include at least one number")
