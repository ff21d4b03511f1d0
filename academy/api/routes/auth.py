"""Authentication route handlers."""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from academy.api.routes import limiter, INVALID_CREDENTIALS_RESPONSE
from academy.database.db import get_db_session
from academy.services import auth_service, user_service, streak_service
from academy.api.auth_dependencies import get_current_user
from academy.models.schemas import (
    RegisterRequest,
    LoginRequest,
    AuthResponse,
    UserResponse,
    RefreshTokenRequest,
    RefreshTokenResponse,
)
from academy.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)
router = APIRouter()


async def _issue_tokens(session: AsyncSession, user: dict, streak: dict = None) -> AuthResponse:
    token_data = {"user_id": user["id"], "role": user["role"]}
    access_token = auth_service.create_access_token(data=token_data)

    refresh_token = auth_service.generate_refresh_token()
    expires_at = utcnow() + timedelta(days=auth_service.REFRESH_TOKEN_EXPIRATION_DAYS)
    await user_service.create_refresh_token(session, user["id"], refresh_token, expires_at)

    return AuthResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        user_id=user["id"],
        role=user["role"],
        account_status=user["account_status"],
        streak=streak,
    )


@router.post("/api/auth/register", response_model=AuthResponse)
@limiter.limit("10/minute")
async def register(
    request: Request, payload: RegisterRequest, session: AsyncSession = Depends(get_db_session)
):
    """
    Create an account. New accounts wait for admin approval before they can
    use anything beyond their own profile.
    """
    try:
        if not payload.name or not payload.name.strip():
            raise HTTPException(status_code=400, detail="Name is required")
        user = await user_service.register_user(
            session,
            email=payload.email,
            password=payload.password,
            name=payload.name.strip(),
            requested_role=payload.requested_role,
            phone=payload.phone,
        )
        return await _issue_tokens(session, user)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error during registration: {e}")
        raise HTTPException(status_code=500, detail=f"Error during registration: {str(e)}")


@router.post("/api/auth/login", response_model=AuthResponse)
@limiter.limit("20/minute")
async def login(request: Request, payload: LoginRequest, session: AsyncSession = Depends(get_db_session)):
    """Login with email and password. Each login also advances the daily streak."""
    try:
        try:
            user = await user_service.authenticate_user(session, payload.email, payload.password)
        except ValueError:
            raise INVALID_CREDENTIALS_RESPONSE
        except PermissionError as e:
            raise HTTPException(status_code=403, detail=str(e))

        streak = None
        try:
            # savepoint so a failed streak update leaves the login transaction usable
            async with session.begin_nested():
                streak = await streak_service.check_and_update_streak(session, user["id"])
        except Exception as e:
            logger.warning(f"Could not update login streak for user {user['id']}: {e}")

        return await _issue_tokens(session, user, streak)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error during login: {str(e)}")


@router.post("/api/auth/refresh", response_model=RefreshTokenResponse)
async def refresh_token(
    request: RefreshTokenRequest, session: AsyncSession = Depends(get_db_session)
):
    """Refresh access token using refresh token."""
    try:
        refresh_token_record = await user_service.get_refresh_token(session, request.refresh_token)
        if not refresh_token_record:
            raise HTTPException(status_code=401, detail="Invalid refresh token")

        if user_service.is_refresh_token_expired(refresh_token_record):
            await user_service.delete_refresh_token(session, request.refresh_token)
            raise HTTPException(status_code=401, detail="Refresh token has expired")

        user = await user_service.get_user_by_id(session, refresh_token_record["user_id"])
        if not user:
            raise HTTPException(status_code=401, detail="User not found")

        token_data = {"user_id": user["id"], "role": user["role"]}
        access_token = auth_service.create_access_token(data=token_data)

        return RefreshTokenResponse(access_token=access_token, token_type="bearer")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error refreshing token: {str(e)}")


@router.post("/api/auth/logout")
async def logout(
    current_user: dict = Depends(get_current_user), session: AsyncSession = Depends(get_db_session)
):
    """Logout the current user by invalidating all refresh tokens."""
    try:
        await user_service.delete_user_refresh_tokens(session, current_user["id"])
        return {"status": "success", "message": "Logged out successfully"}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error during logout: {str(e)}")


@router.get("/api/auth/me", response_model=UserResponse)
async def get_current_user_info(current_user: dict = Depends(get_current_user)):
    """Get current authenticated user information."""
    return UserResponse(**current_user)
