"""Notification, notification preference and WebSocket route handlers."""

import asyncio
import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from academy.database.db import get_db_session
from academy.services import auth_service, notification_service
from academy.services.websocket_manager import get_websocket_manager
from academy.api.auth_dependencies import require_user, require_staff
from academy.models.schemas import (
    NotificationResponse,
    NotificationListResponse,
    UnreadCountResponse,
    NotificationCreate,
    NotificationPreferencesUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/notifications", response_model=NotificationListResponse)
async def get_notifications(
    limit: int = 50,
    offset: int = 0,
    unread_only: bool = False,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Get user notifications with pagination."""
    try:
        return await notification_service.get_user_notifications(
            session, user["id"], limit=limit, offset=offset, unread_only=unread_only
        )
    except Exception as e:
        logger.error(f"Error fetching notifications: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error fetching notifications: {str(e)}")


@router.get("/api/notifications/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        count = await notification_service.get_unread_count(session, user["id"])
        return {"count": count}
    except Exception as e:
        logger.error(f"Error fetching unread count: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error fetching unread count: {str(e)}")


@router.post("/api/notifications")
async def send_notifications(
    payload: NotificationCreate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Send the same in-app notification to a list of users (staff)."""
    try:
        created = await notification_service.create_notifications_bulk(
            session,
            [
                {
                    "user_id": user_id,
                    "type": payload.type or "info",
                    "title": payload.title,
                    "message": payload.message,
                    "category": payload.category or "general",
                    "link_url": payload.link_url,
                }
                for user_id in payload.user_ids
            ],
        )
        return {"success": True, "count": len(created)}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error sending notifications: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error sending notifications: {str(e)}")


@router.put("/api/notifications/mark-all-read")
async def mark_all_notifications_as_read(
    user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        count = await notification_service.mark_all_as_read(session, user["id"])
        return {"success": True, "count": count}
    except Exception as e:
        logger.error(f"Error marking all notifications as read: {str(e)}")
        raise HTTPException(
            status_code=500, detail=f"Error marking all notifications as read: {str(e)}"
        )


@router.get("/api/notifications/preferences")
async def get_preferences(
    user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await notification_service.get_preferences(session, user["id"])
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading preferences: {str(e)}")


@router.put("/api/notifications/preferences")
async def update_preferences(
    payload: NotificationPreferencesUpdate,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Update channel toggles, sound and quiet hours (HH:MM)."""
    try:
        return await notification_service.update_preferences(
            session, user["id"], **payload.model_dump(exclude_unset=True)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating preferences: {str(e)}")


@router.put("/api/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_as_read(
    notification_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await notification_service.mark_as_read(session, notification_id, user["id"])
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error marking notification as read: {str(e)}")
        raise HTTPException(
            status_code=500, detail=f"Error marking notification as read: {str(e)}"
        )


@router.delete("/api/notifications/{notification_id}")
async def delete_notification(
    notification_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await notification_service.delete_notification(session, notification_id, user["id"])
        return {"success": True}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting notification: {str(e)}")


@router.websocket("/api/ws/notifications")
async def websocket_notifications(websocket: WebSocket):
    """
    WebSocket endpoint for real-time notification delivery.

    Requires JWT token in query parameter: ?token=<jwt_token>
    """
    await websocket.accept()

    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=1008, reason="Missing authentication token")
        return

    payload = auth_service.verify_token(token)
    if payload is None:
        await websocket.close(code=1008, reason="Invalid authentication token")
        return

    user_id = payload.get("user_id")
    if user_id is None:
        await websocket.close(code=1008, reason="Invalid token payload")
        return

    manager = get_websocket_manager()
    await manager.connect(user_id, websocket)

    try:
        timeout_seconds = 30
        last_activity = datetime.utcnow()

        while True:
            try:
                data = await asyncio.wait_for(websocket.receive_text(), timeout=timeout_seconds)
                last_activity = datetime.utcnow()
                await manager.update_activity(websocket)

                # Client sends "ping", server answers "pong"
                if data == "ping":
                    await websocket.send_text("pong")
            except asyncio.TimeoutError:
                if datetime.utcnow() - last_activity > timedelta(seconds=timeout_seconds):
                    logger.info(f"WebSocket timeout for user {user_id}, closing connection")
                    await websocket.close(code=1000, reason="Connection timeout")
                    break
                try:
                    await websocket.send_text("ping")
                except Exception:
                    break
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for user {user_id}")
    except Exception as e:
        logger.error(f"WebSocket error for user {user_id}: {e}")
    finally:
        await manager.disconnect(user_id, websocket)
