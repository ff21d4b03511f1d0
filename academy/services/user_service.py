"""
User service layer for accounts, approval workflow and refresh tokens.
"""

from typing import Optional, Dict, List
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from academy.utils.datetime_utils import utcnow, parse_iso
from academy.database.models import User, RefreshToken, UserRole, AccountStatus
from academy.services import auth_service, settings_service
import logging

logger = logging.getLogger(__name__)

VALID_ROLES = {role.value for role in UserRole}
UPDATABLE_PROFILE_FIELDS = ("name", "phone", "whatsapp_phone", "whatsapp_notifications", "avatar_url")


def _user_to_dict(user: User) -> Dict:
    """Convert a User model to a dictionary (never includes the password hash)."""
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "phone": user.phone,
        "whatsapp_phone": user.whatsapp_phone,
        "whatsapp_notifications": bool(user.whatsapp_notifications),
        "role": user.role,
        "account_status": user.account_status,
        "requested_role": user.requested_role,
        "avatar_url": user.avatar_url,
        "onboarding_completed": bool(user.onboarding_completed),
        "last_signed_in": user.last_signed_in.isoformat() if user.last_signed_in else None,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


async def _get_user_model(session: AsyncSession, user_id: int) -> User:
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise ValueError(f"User {user_id} not found")
    return user


async def create_user(
    session: AsyncSession,
    email: str,
    password_hash: str,
    name: Optional[str] = None,
    phone: Optional[str] = None,
    role: str = UserRole.PLAYER.value,
    account_status: str = AccountStatus.PENDING.value,
    requested_role: Optional[str] = None,
) -> Dict:
    """
    Create a new user account.

    Args:
        session: Database session
        email: Normalized email address
        password_hash: bcrypt hash of the password
        name: Display name
        phone: Optional phone number
        role: Initial role
        account_status: Initial approval status
        requested_role: Role the user asked for at registration

    Returns:
        User dictionary

    Raises:
        ValueError: If the email is already registered or the role is unknown
    """
    if role not in VALID_ROLES:
        raise ValueError(f"Invalid role: {role}")

    existing = await session.execute(
        select(User.id).where(func.lower(User.email) == email.lower())
    )
    if existing.scalar_one_or_none():
        raise ValueError(f"Email {email} is already registered")

    user = User(
        email=email,
        password_hash=password_hash,
        name=name,
        phone=phone,
        role=role,
        account_status=account_status,
        requested_role=requested_role,
    )
    session.add(user)
    await session.flush()
    await session.refresh(user)
    await session.commit()
    return _user_to_dict(user)


async def register_user(
    session: AsyncSession,
    email: str,
    password: str,
    name: Optional[str] = None,
    requested_role: Optional[str] = None,
    phone: Optional[str] = None,
) -> Dict:
    """
    Register a new account awaiting admin approval.

    Emails listed in the ``system_admin_emails`` setting are created as
    approved admins.

    Raises:
        ValueError: On invalid email, weak password, unknown role or duplicate email
    """
    normalized = auth_service.normalize_email(email)
    auth_service.validate_password(password)

    requested = requested_role or UserRole.PLAYER.value
    if requested not in VALID_ROLES:
        raise ValueError(f"Invalid role: {requested}")
    if requested == UserRole.ADMIN.value:
        raise ValueError("The admin role cannot be requested")

    admin_emails = [
        e.lower()
        for e in await settings_service.get_list_setting(
            session, "system_admin_emails", "SYSTEM_ADMIN_EMAILS"
        )
    ]
    if normalized in admin_emails:
        role = UserRole.ADMIN.value
        status = AccountStatus.APPROVED.value
        logger.info(f"Registering system admin account {normalized}")
    else:
        role = requested
        status = AccountStatus.PENDING.value

    return await create_user(
        session,
        email=normalized,
        password_hash=auth_service.hash_password(password),
        name=name,
        phone=phone,
        role=role,
        account_status=status,
        requested_role=requested,
    )


async def authenticate_user(session: AsyncSession, email: str, password: str) -> Dict:
    """
    Check credentials and record the sign-in.

    Raises:
        ValueError: If the email or password is wrong
        PermissionError: If the account was rejected
    """
    normalized = (email or "").strip().lower()
    result = await session.execute(select(User).where(func.lower(User.email) == normalized))
    user = result.scalar_one_or_none()
    if not user or not auth_service.verify_password(password, user.password_hash):
        raise ValueError("Invalid email or password")
    if user.account_status == AccountStatus.REJECTED.value:
        raise PermissionError("Account has been rejected")

    user.last_signed_in = utcnow()
    await session.commit()
    await session.refresh(user)
    return _user_to_dict(user)


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[Dict]:
    """
    Get user by email address.

    Args:
        session: Database session
        email: Email address (will be normalized to lowercase)

    Returns:
        User dictionary or None if not found
    """
    email = email.strip().lower() if email else None
    if not email:
        return None

    result = await session.execute(
        select(User).where(func.lower(func.trim(User.email)) == email).limit(1)
    )
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[Dict]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User dictionary or None if not found
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def update_profile(session: AsyncSession, user_id: int, **fields) -> Dict:
    """
    Update the caller's own profile fields. Unknown or None values are ignored.

    Raises:
        ValueError: If the user does not exist
    """
    user = await _get_user_model(session, user_id)
    for field in UPDATABLE_PROFILE_FIELDS:
        value = fields.get(field)
        if value is not None:
            setattr(user, field, value)
    if fields.get("onboarding_completed") is not None:
        user.onboarding_completed = bool(fields["onboarding_completed"])
    await session.commit()
    await session.refresh(user)
    return _user_to_dict(user)


async def list_users(
    session: AsyncSession, role: Optional[str] = None, status: Optional[str] = None
) -> List[Dict]:
    query = select(User)
    if role:
        query = query.where(User.role == role)
    if status:
        query = query.where(User.account_status == status)
    result = await session.execute(query.order_by(User.created_at.desc(), User.id.desc()))
    return [_user_to_dict(u) for u in result.scalars().all()]


async def approve_user(session: AsyncSession, user_id: int, role: Optional[str] = None) -> Dict:
    """
    Approve a pending account, optionally overriding the requested role.

    Raises:
        ValueError: If the user does not exist or the role is unknown
    """
    user = await _get_user_model(session, user_id)
    new_role = role or user.requested_role or user.role
    if new_role not in VALID_ROLES:
        raise ValueError(f"Invalid role: {new_role}")
    user.role = new_role
    user.account_status = AccountStatus.APPROVED.value
    await session.commit()
    await session.refresh(user)
    logger.info(f"Approved user {user_id} as {new_role}")
    return _user_to_dict(user)


async def reject_user(session: AsyncSession, user_id: int) -> Dict:
    user = await _get_user_model(session, user_id)
    user.account_status = AccountStatus.REJECTED.value
    await session.commit()
    await session.refresh(user)
    await delete_user_refresh_tokens(session, user_id)
    logger.info(f"Rejected user {user_id}")
    return _user_to_dict(user)


async def set_role(session: AsyncSession, user_id: int, role: str) -> Dict:
    if role not in VALID_ROLES:
        raise ValueError(f"Invalid role: {role}")
    user = await _get_user_model(session, user_id)
    user.role = role
    await session.commit()
    await session.refresh(user)
    return _user_to_dict(user)


# Refresh token functions


async def create_refresh_token(
    session: AsyncSession, user_id: int, token: str, expires_at: datetime
) -> bool:
    """
    Create a refresh token record, replacing any previous tokens for the user.

    Args:
        session: Database session
        user_id: User ID
        token: Refresh token string
        expires_at: Expiration datetime

    Returns:
        True if successful, False otherwise
    """
    try:
        await session.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
        session.add(RefreshToken(user_id=user_id, token=token, expires_at=expires_at.isoformat()))
        await session.commit()
        return True
    except Exception as e:
        logger.error(f"Error creating refresh token: {str(e)}")
        await session.rollback()
        return False


async def get_refresh_token(session: AsyncSession, token: str) -> Optional[Dict]:
    """
    Get refresh token record by token string.

    Returns:
        Refresh token dictionary with user_id and expires_at, or None if not found
    """
    result = await session.execute(select(RefreshToken).where(RefreshToken.token == token))
    refresh_token = result.scalar_one_or_none()
    if refresh_token:
        return {
            "id": refresh_token.id,
            "user_id": refresh_token.user_id,
            "token": refresh_token.token,
            "expires_at": refresh_token.expires_at,
        }
    return None


def is_refresh_token_expired(token_record: Dict) -> bool:
    expires_at = parse_iso(token_record.get("expires_at"))
    return expires_at is None or expires_at <= utcnow()


async def delete_refresh_token(session: AsyncSession, token: str) -> bool:
    """
    Delete a refresh token (on logout).

    Returns:
        True if token was deleted, False otherwise
    """
    result = await session.execute(delete(RefreshToken).where(RefreshToken.token == token))
    await session.commit()
    return result.rowcount > 0


async def delete_user_refresh_tokens(session: AsyncSession, user_id: int) -> int:
    """Delete all refresh tokens for a user. Returns the number deleted."""
    result = await session.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
    await session.commit()
    return result.rowcount
