"""
Notification service for managing user notifications.

Handles creation, retrieval and status updates for in-app notifications,
per-user delivery preferences, and fan-out to WhatsApp and email.
"""

from typing import List, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func, and_
from academy.database.models import (
    Notification,
    NotificationType,
    NotificationCategory,
    NotificationPreference,
    User,
)
from academy.utils.datetime_utils import utcnow
import json
import logging

logger = logging.getLogger(__name__)

VALID_TYPES = {t.value for t in NotificationType}
VALID_CATEGORIES = {c.value for c in NotificationCategory}


def _notification_to_dict(notification: Notification) -> Dict:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type,
        "category": notification.category,
        "title": notification.title,
        "message": notification.message,
        "data": json.loads(notification.data) if notification.data else None,
        "is_read": notification.is_read,
        "read_at": notification.read_at.isoformat() if notification.read_at else None,
        "related_entity_type": notification.related_entity_type,
        "related_entity_id": notification.related_entity_id,
        "link_url": notification.link_url,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


def _build_notification(
    user_id: int,
    type: str,
    title: str,
    message: str,
    category: Optional[str] = None,
    data: Optional[Dict] = None,
    link_url: Optional[str] = None,
    related_entity_type: Optional[str] = None,
    related_entity_id: Optional[int] = None,
) -> Notification:
    if not user_id:
        raise ValueError("user_id is required")
    if not type:
        raise ValueError("type is required")
    if type not in VALID_TYPES:
        raise ValueError(f"Invalid notification type: {type}")
    if not title:
        raise ValueError("title is required")
    if not message:
        raise ValueError("message is required")
    category = category or NotificationCategory.GENERAL.value
    if category not in VALID_CATEGORIES:
        raise ValueError(f"Invalid notification category: {category}")

    return Notification(
        user_id=user_id,
        type=type,
        category=category,
        title=title,
        message=message,
        data=json.dumps(data) if data is not None else None,
        link_url=link_url,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        is_read=False,
    )


async def _push(user_id: int, notification_dict: Dict):
    # WebSocket delivery errors never fail notification creation
    try:
        from academy.services.websocket_manager import get_websocket_manager
        manager = get_websocket_manager()
        await manager.send_to_user(user_id, {"type": "notification", "notification": notification_dict})
    except Exception as e:
        logger.warning(f"Failed to broadcast notification via WebSocket for user {user_id}: {e}")


async def create_notification(
    session: AsyncSession,
    user_id: int,
    type: str,
    title: str,
    message: str,
    category: Optional[str] = None,
    data: Optional[Dict] = None,
    link_url: Optional[str] = None,
    related_entity_type: Optional[str] = None,
    related_entity_id: Optional[int] = None,
) -> Dict:
    """
    Create a single notification for a user and push it over WebSocket.

    Args:
        session: Database session
        user_id: ID of the user to notify
        type: Notification type (info, success, warning, alert)
        title: Notification title
        message: Notification message text
        category: Notification category (defaults to general)
        data: Optional JSON metadata (dict will be serialized to JSON string)
        link_url: Optional URL for navigation when notification is clicked
        related_entity_type: Optional kind of record the notification refers to
        related_entity_id: Optional id of that record

    Returns:
        Dict containing the created notification data

    Raises:
        ValueError: If required fields are missing or invalid
    """
    notification = _build_notification(
        user_id, type, title, message, category, data, link_url,
        related_entity_type, related_entity_id,
    )
    session.add(notification)
    await session.flush()
    await session.refresh(notification)

    notification_dict = _notification_to_dict(notification)
    await _push(user_id, notification_dict)
    return notification_dict


async def create_notifications_bulk(
    session: AsyncSession,
    notifications_list: List[Dict]
) -> List[Dict]:
    """
    Create multiple notifications in one flush.

    Each entry takes the keyword arguments of create_notification.

    Raises:
        ValueError: If any notification data is invalid
    """
    if not notifications_list:
        return []

    notification_objects = [
        _build_notification(
            n.get("user_id"),
            n.get("type"),
            n.get("title"),
            n.get("message"),
            n.get("category"),
            n.get("data"),
            n.get("link_url"),
            n.get("related_entity_type"),
            n.get("related_entity_id"),
        )
        for n in notifications_list
    ]

    session.add_all(notification_objects)
    await session.flush()
    for notif in notification_objects:
        await session.refresh(notif)

    notification_dicts = [_notification_to_dict(n) for n in notification_objects]
    for notif_dict in notification_dicts:
        await _push(notif_dict["user_id"], notif_dict)
    return notification_dicts


async def get_user_notifications(
    session: AsyncSession,
    user_id: int,
    limit: int = 50,
    offset: int = 0,
    unread_only: bool = False
) -> Dict:
    """
    Fetch user notifications with pagination.

    Returns:
        Dict containing:
            - notifications: List of notification dicts (newest first)
            - total_count: Total number of notifications matching the criteria
            - has_more: Boolean indicating if there are more notifications
    """
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))

    total_result = await session.execute(select(func.count()).select_from(query.subquery()))
    total_count = total_result.scalar_one() or 0

    query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
    result = await session.execute(query.limit(limit).offset(offset))
    notification_dicts = [_notification_to_dict(n) for n in result.scalars().all()]

    return {
        "notifications": notification_dicts,
        "total_count": total_count,
        "has_more": (offset + len(notification_dicts)) < total_count,
    }


async def get_unread_count(session: AsyncSession, user_id: int) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Notification)
        .where(and_(Notification.user_id == user_id, Notification.is_read.is_(False)))
    )
    return result.scalar_one() or 0


async def mark_as_read(session: AsyncSession, notification_id: int, user_id: int) -> Dict:
    """
    Mark a single notification as read.

    Raises:
        ValueError: If notification not found or doesn't belong to user
    """
    result = await session.execute(
        select(Notification).where(
            and_(Notification.id == notification_id, Notification.user_id == user_id)
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise ValueError("Notification not found or access denied")

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        await session.flush()
        await session.refresh(notification)

    return _notification_to_dict(notification)


async def mark_all_as_read(session: AsyncSession, user_id: int) -> int:
    """Mark all user notifications as read. Returns the count updated."""
    result = await session.execute(
        update(Notification)
        .where(and_(Notification.user_id == user_id, Notification.is_read.is_(False)))
        .values(is_read=True, read_at=utcnow())
    )
    await session.flush()
    return result.rowcount or 0


async def delete_notification(session: AsyncSession, notification_id: int, user_id: int) -> bool:
    """
    Delete one of the user's notifications.

    Raises:
        ValueError: If notification not found or doesn't belong to user
    """
    result = await session.execute(
        delete(Notification).where(
            and_(Notification.id == notification_id, Notification.user_id == user_id)
        )
    )
    if not result.rowcount:
        raise ValueError("Notification not found or access denied")
    await session.flush()
    return True


# ============================================================================
# Preferences
# ============================================================================


def _preferences_to_dict(pref: NotificationPreference) -> Dict:
    return {
        "user_id": pref.user_id,
        "in_app_enabled": pref.in_app_enabled,
        "email_enabled": pref.email_enabled,
        "whatsapp_enabled": pref.whatsapp_enabled,
        "sound_enabled": pref.sound_enabled,
        "sound_volume": pref.sound_volume,
        "quiet_hours_start": pref.quiet_hours_start,
        "quiet_hours_end": pref.quiet_hours_end,
    }


async def _get_or_create_preferences(session: AsyncSession, user_id: int) -> NotificationPreference:
    result = await session.execute(
        select(NotificationPreference).where(NotificationPreference.user_id == user_id)
    )
    pref = result.scalar_one_or_none()
    if pref is None:
        pref = NotificationPreference(
            user_id=user_id,
            in_app_enabled=True,
            email_enabled=True,
            whatsapp_enabled=False,
            sound_enabled=True,
            sound_volume=70,
        )
        session.add(pref)
        await session.flush()
    return pref


async def get_preferences(session: AsyncSession, user_id: int) -> Dict:
    return _preferences_to_dict(await _get_or_create_preferences(session, user_id))


def _validate_hhmm(value: str) -> str:
    try:
        hours, minutes = value.split(":")
        if len(hours) == 2 and len(minutes) == 2 and 0 <= int(hours) < 24 and 0 <= int(minutes) < 60:
            return value
    except ValueError:
        pass
    raise ValueError(f"Invalid time (expected HH:MM): {value}")


async def update_preferences(session: AsyncSession, user_id: int, **fields) -> Dict:
    """
    Update notification preferences. The sound volume is clamped to 0-100.

    Raises:
        ValueError: If quiet hours are not HH:MM
    """
    pref = await _get_or_create_preferences(session, user_id)
    for flag in ("in_app_enabled", "email_enabled", "whatsapp_enabled", "sound_enabled"):
        if fields.get(flag) is not None:
            setattr(pref, flag, bool(fields[flag]))
    if fields.get("sound_volume") is not None:
        pref.sound_volume = max(0, min(100, int(fields["sound_volume"])))
    for key in ("quiet_hours_start", "quiet_hours_end"):
        if key in fields:
            value = fields[key]
            setattr(pref, key, _validate_hhmm(value) if value else None)
    await session.flush()
    return _preferences_to_dict(pref)


def is_quiet_time(pref: Dict, hhmm: str) -> bool:
    """True if ``hhmm`` falls inside the quiet window (which may wrap midnight)."""
    start, end = pref.get("quiet_hours_start"), pref.get("quiet_hours_end")
    if not start or not end or start == end:
        return False
    if start < end:
        return start <= hhmm < end
    return hhmm >= start or hhmm < end


async def notify_user(
    session: AsyncSession,
    user_id: int,
    title: str,
    message: str,
    type: str = NotificationType.INFO.value,
    category: Optional[str] = None,
    data: Optional[Dict] = None,
    link_url: Optional[str] = None,
    whatsapp_text: Optional[str] = None,
) -> Dict:
    """
    Deliver a notification on every channel the user has enabled.

    In-app delivery follows the in-app preference. WhatsApp requires both the
    preference and the account opt-in and is suppressed during quiet hours.
    Email follows the email preference.

    Returns:
        Dict with the notification (or None) and per-channel delivery flags
    """
    from academy.services import whatsapp_service, email_service

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise ValueError(f"User {user_id} not found")

    pref = await get_preferences(session, user_id)
    delivered = {"in_app": False, "whatsapp": False, "email": False}

    notification = None
    if pref["in_app_enabled"]:
        notification = await create_notification(
            session, user_id, type, title, message, category=category, data=data, link_url=link_url
        )
        delivered["in_app"] = True

    quiet = is_quiet_time(pref, utcnow().strftime("%H:%M"))
    phone = user.whatsapp_phone or user.phone
    if pref["whatsapp_enabled"] and user.whatsapp_notifications and phone and not quiet:
        send_result = await whatsapp_service.send_message(phone, whatsapp_text or f"{title}\n\n{message}")
        delivered["whatsapp"] = bool(send_result.get("sent"))

    if pref["email_enabled"] and user.email:
        delivered["email"] = await email_service.send_email(user.email, title, message, session)

    return {"notification": notification, "delivered": delivered}
