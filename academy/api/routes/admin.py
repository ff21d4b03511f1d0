"""Admin route handlers: account approval, roles, settings and maintenance."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from academy.database.db import get_db_session
from academy.services import (
    user_service,
    email_service,
    settings_service,
    notification_service,
    llm_service,
    team_service,
    formation_service,
)
from academy.api.auth_dependencies import require_admin
from academy.models.schemas import ApproveUserRequest, SetRoleRequest, SettingUpdate

logger = logging.getLogger(__name__)
router = APIRouter()


# ---------------------------------------------------------------------------
# Account approval
# ---------------------------------------------------------------------------


@router.get("/api/admin/users")
async def list_users(
    role: Optional[str] = None,
    status: Optional[str] = None,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """List accounts, optionally filtered by role and approval status (admin)."""
    try:
        return await user_service.list_users(session, role=role, status=status)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error listing users: {str(e)}")


@router.post("/api/admin/users/{user_id}/approve")
async def approve_user(
    user_id: int,
    payload: ApproveUserRequest,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Approve a pending account and let the applicant know (admin)."""
    try:
        approved = await user_service.approve_user(session, user_id, role=payload.role)
        await notification_service.create_notification(
            session,
            user_id,
            "success",
            "Account Approved",
            f"Your account has been approved with the role: {approved['role'].replace('_', ' ')}.",
            category="general",
        )
        if approved.get("email"):
            await email_service.send_account_approved_email(
                approved["email"], approved.get("name"), approved["role"], session
            )
        return approved
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error approving user {user_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error approving user: {str(e)}")


@router.post("/api/admin/users/{user_id}/reject")
async def reject_user(
    user_id: int,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await user_service.reject_user(session, user_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error rejecting user: {str(e)}")


@router.put("/api/admin/users/{user_id}/role")
async def set_user_role(
    user_id: int,
    payload: SetRoleRequest,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Change an account's role (admin)."""
    try:
        if user_id == user["id"] and payload.role != user["role"]:
            raise HTTPException(status_code=400, detail="You cannot change your own role")
        return await user_service.set_role(session, user_id, payload.role)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error setting role: {str(e)}")


# ---------------------------------------------------------------------------
# Settings endpoints
# ---------------------------------------------------------------------------


@router.get("/api/settings")
async def list_settings(
    user: dict = Depends(require_admin), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await settings_service.list_settings(session)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error listing settings: {str(e)}")


@router.get("/api/settings/{key}")
async def get_setting_value(
    key: str,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Get a setting value (admin)."""
    try:
        value = await settings_service.get_setting(session, key)
        return {"key": key, "value": value}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error getting setting: {str(e)}")


@router.put("/api/settings/{key}")
async def set_setting_value(
    key: str,
    payload: SettingUpdate,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Set a setting value (admin)."""
    try:
        if payload.value is None:
            raise HTTPException(status_code=400, detail="value is required")
        return await settings_service.set_setting(session, key, str(payload.value), updated_by=user["id"])
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error setting value: {str(e)}")


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------


@router.get("/api/admin/ai-cache")
async def ai_cache_stats(
    user: dict = Depends(require_admin), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await llm_service.get_cache_stats(session)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error reading AI cache: {str(e)}")


@router.delete("/api/admin/ai-cache/expired")
async def clear_ai_cache(
    user: dict = Depends(require_admin), session: AsyncSession = Depends(get_db_session)
):
    """Delete expired AI response cache rows (admin)."""
    try:
        removed = await llm_service.clear_expired_cache(session)
        return {"status": "success", "removed": removed}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error clearing AI cache: {str(e)}")


@router.get("/api/admin/teams/duplicates")
async def find_duplicate_teams(
    user: dict = Depends(require_admin), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await team_service.find_duplicate_teams(session)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error finding duplicate teams: {str(e)}")


@router.post("/api/admin/teams/merge-duplicates")
async def merge_duplicate_teams(
    user: dict = Depends(require_admin), session: AsyncSession = Depends(get_db_session)
):
    """Merge teams sharing a name and age group into the oldest one (admin)."""
    try:
        return await team_service.merge_duplicate_teams(session)
    except Exception as e:
        logger.error(f"Error merging duplicate teams: {e}")
        raise HTTPException(status_code=500, detail=f"Error merging duplicate teams: {str(e)}")


@router.post("/api/admin/formations/fix-coordinates")
async def fix_formation_coordinates(
    user: dict = Depends(require_admin), session: AsyncSession = Depends(get_db_session)
):
    """Convert formations saved with pixel coordinates to percentages (admin)."""
    try:
        fixed = await formation_service.fix_formation_coordinates(session)
        return {"status": "success", "fixed": fixed}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fixing formations: {str(e)}")
