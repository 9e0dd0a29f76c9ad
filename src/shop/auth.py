"""
Email/password accounts. New sign-ups wait as ``pending`` until an admin approves them.
"""

from typing import Optional

import bcrypt

from db import crud
from db.database import Database
from db.models import UserAccount, UserRole, UserStatus
from shop.errors import UnauthorizedError, ValidationError
from utils.logger import get_logger

_logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # not a bcrypt hash
        return False


def _validate_credentials(email: str, password: str) -> str:
    email = (email or "").strip()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValidationError("Invalid email address")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return email


async def sign_up(db: Database, email: str, password: str) -> UserAccount:
    """Register a customer account in ``pending`` status."""
    email = _validate_credentials(email, password)
    if not await crud.email_available(db, email):
        raise ValidationError("Email already registered")
    return await crud.create_user(db, email, hash_password(password))


async def sign_in(db: Database, email: str, password: str) -> Optional[UserAccount]:
    """Return the account if the credentials match, whatever its status."""
    creds = await crud.get_credentials(db, (email or "").strip())
    if not creds or not verify_password(password or "", creds[1]):
        _logger.info(f"Failed sign-in for {email}")
        return None
    return await crud.get_user(db, creds[0])


async def admin_sign_in(db: Database, email: str, password: str) -> UserAccount:
    user = await sign_in(db, email, password)
    if user is None:
        raise UnauthorizedError("Invalid email or password")
    if user.role != UserRole.ADMIN or user.status != UserStatus.APPROVED:
        raise UnauthorizedError("Unauthorized: Admin access only")
    return user


async def is_admin(db: Database, user_id: str) -> bool:
    user = await crud.get_user(db, user_id)
    return bool(user and user.role == UserRole.ADMIN)


async def ensure_admin(db: Database, email: str, password: str) -> UserAccount:
    """Create an approved admin account unless one already exists for ``email``."""
    existing = await crud.get_user_by_email(db, email)
    if existing is not None:
        if existing.role != UserRole.ADMIN:
            _logger.warning(f"{email} exists but is not an admin; leaving it untouched")
        return existing
    email = _validate_credentials(email, password)
    return await crud.create_user(
        db, email, hash_password(password), role=UserRole.ADMIN, status=UserStatus.APPROVED
    )
