"""Formation builder, template and tactical board route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from academy.database.db import get_db_session
from academy.services import formation_service
from academy.api.auth_dependencies import require_staff
from academy.models.schemas import (
    FormationCreate,
    FormationUpdate,
    AssignPositionRequest,
    TacticalBoardCreate,
    TacticalBoardUpdate,
    BoardToFormationRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _dump_points(items):
    if items is None:
        return None
    return [item.model_dump(exclude_none=True) for item in items]


def _error(e: Exception) -> HTTPException:
    if isinstance(e, PermissionError):
        return HTTPException(status_code=403, detail=str(e))
    status_code = 404 if "not found" in str(e) else 400
    return HTTPException(status_code=status_code, detail=str(e))


# ---------------------------------------------------------------------------
# Formations
# ---------------------------------------------------------------------------


@router.get("/api/formations")
async def list_formations(
    team_id: Optional[int] = None,
    mine: bool = False,
    include_templates: bool = True,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await formation_service.list_formations(
            session,
            user_id=current_user["id"] if mine else None,
            team_id=team_id,
            include_templates=include_templates,
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading formations: {str(e)}")


@router.get("/api/formations/templates")
async def list_templates(
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await formation_service.list_templates(session)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading templates: {str(e)}")


@router.get("/api/formations/templates/{template_name}")
async def apply_template(
    template_name: str,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Fresh positions for a template, ready to be assigned."""
    try:
        return await formation_service.apply_template(session, template_name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error applying template: {str(e)}")


@router.post("/api/formations")
async def create_formation(
    payload: FormationCreate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Save a formation. Positions may be sent as percentages or as builder
    pixels; they are stored as percentages clamped to the pitch.
    """
    try:
        return await formation_service.create_formation(
            session,
            payload.name,
            _dump_points(payload.positions),
            created_by=current_user["id"],
            template_name=payload.template_name,
            description=payload.description,
            team_id=payload.team_id,
            is_template=bool(payload.is_template) and current_user["role"] == "admin",
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating formation: {e}")
        raise HTTPException(status_code=500, detail=f"Error creating formation: {str(e)}")


@router.get("/api/formations/{formation_id}")
async def get_formation(
    formation_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        formation = await formation_service.get_formation(session, formation_id)
        if not formation:
            raise HTTPException(status_code=404, detail="Formation not found")
        return formation
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading formation: {str(e)}")


@router.put("/api/formations/{formation_id}")
async def update_formation(
    formation_id: int,
    payload: FormationUpdate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        fields = payload.model_dump(exclude_unset=True, exclude={"positions"})
        fields["positions"] = _dump_points(payload.positions)
        return await formation_service.update_formation(session, formation_id, current_user, **fields)
    except (ValueError, PermissionError) as e:
        raise _error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating formation: {str(e)}")


@router.delete("/api/formations/{formation_id}")
async def delete_formation(
    formation_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await formation_service.delete_formation(session, formation_id, current_user)
        return {"status": "success", "message": "Formation deleted"}
    except (ValueError, PermissionError) as e:
        raise _error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting formation: {str(e)}")


@router.put("/api/formations/{formation_id}/assign")
async def assign_player(
    formation_id: int,
    payload: AssignPositionRequest,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Place a player on a position, or clear it by sending no player_id."""
    try:
        return await formation_service.assign_player(
            session, formation_id, payload.position_id, payload.player_id, current_user
        )
    except (ValueError, PermissionError) as e:
        raise _error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error assigning player: {str(e)}")


# ---------------------------------------------------------------------------
# Tactical boards
# ---------------------------------------------------------------------------


@router.get("/api/tactical-boards")
async def list_boards(
    team_id: Optional[int] = None,
    mine: bool = True,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await formation_service.list_boards(
            session, user_id=current_user["id"] if mine else None, team_id=team_id
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading tactical boards: {str(e)}")


@router.post("/api/tactical-boards")
async def create_board(
    payload: TacticalBoardCreate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await formation_service.create_board(
            session,
            payload.name,
            created_by=current_user["id"],
            players=_dump_points(payload.players),
            drawings=payload.drawings,
            formation=payload.formation,
            description=payload.description,
            team_id=payload.team_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating tactical board: {str(e)}")


@router.get("/api/tactical-boards/{board_id}")
async def get_board(
    board_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        board = await formation_service.get_board(session, board_id)
        if not board:
            raise HTTPException(status_code=404, detail="Tactical board not found")
        return board
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading tactical board: {str(e)}")


@router.put("/api/tactical-boards/{board_id}")
async def update_board(
    board_id: int,
    payload: TacticalBoardUpdate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        fields = payload.model_dump(exclude_unset=True, exclude={"players"})
        fields["players"] = _dump_points(payload.players)
        return await formation_service.update_board(session, board_id, current_user, **fields)
    except (ValueError, PermissionError) as e:
        raise _error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating tactical board: {str(e)}")


@router.delete("/api/tactical-boards/{board_id}")
async def delete_board(
    board_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await formation_service.delete_board(session, board_id, current_user)
        return {"status": "success", "message": "Tactical board deleted"}
    except (ValueError, PermissionError) as e:
        raise _error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting tactical board: {str(e)}")


@router.post("/api/tactical-boards/{board_id}/formation")
async def board_to_formation(
    board_id: int,
    payload: BoardToFormationRequest,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Save the board's home players as a formation."""
    try:
        return await formation_service.board_to_formation(session, board_id, payload.name, current_user["id"])
    except ValueError as e:
        raise _error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error converting tactical board: {str(e)}")
