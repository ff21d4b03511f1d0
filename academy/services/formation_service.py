"""
Formation builder and tactical board service.

Coordinates are stored as pitch percentages. The formation builder uses a
vertical pitch (x sideline to sideline, y from the attacking end at 5 to the
own goal at 95); the tactical board canvas is a horizontal 1200x800 pitch.
Every stored coordinate is clamped to [5, 95] and rounded to one decimal.
"""

import copy
from typing import Optional, Dict, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, and_
from academy.database.models import Formation, TacticalBoard, UserRole
from academy.utils.constants import COORD_MIN, COORD_MAX, BOARD_WIDTH, BOARD_HEIGHT
from academy.utils.number_utils import round_half_up
import logging

logger = logging.getLogger(__name__)

FORMATION_TEMPLATES: Dict[str, List[Dict]] = {
    "4-3-3": [
        {"role": "GK", "x": 50, "y": 90},
        {"role": "LB", "x": 18, "y": 72},
        {"role": "CB", "x": 38, "y": 74},
        {"role": "CB", "x": 62, "y": 74},
        {"role": "RB", "x": 82, "y": 72},
        {"role": "CM", "x": 30, "y": 52},
        {"role": "CM", "x": 50, "y": 48},
        {"role": "CM", "x": 70, "y": 52},
        {"role": "LW", "x": 20, "y": 26},
        {"role": "ST", "x": 50, "y": 20},
        {"role": "RW", "x": 80, "y": 26},
    ],
    "4-4-2": [
        {"role": "GK", "x": 50, "y": 90},
        {"role": "LB", "x": 18, "y": 72},
        {"role": "CB", "x": 38, "y": 74},
        {"role": "CB", "x": 62, "y": 74},
        {"role": "RB", "x": 82, "y": 72},
        {"role": "LM", "x": 18, "y": 48},
        {"role": "CM", "x": 38, "y": 50},
        {"role": "CM", "x": 62, "y": 50},
        {"role": "RM", "x": 82, "y": 48},
        {"role": "ST", "x": 38, "y": 22},
        {"role": "ST", "x": 62, "y": 22},
    ],
    "4-2-3-1": [
        {"role": "GK", "x": 50, "y": 90},
        {"role": "LB", "x": 18, "y": 72},
        {"role": "CB", "x": 38, "y": 74},
        {"role": "CB", "x": 62, "y": 74},
        {"role": "RB", "x": 82, "y": 72},
        {"role": "CDM", "x": 38, "y": 56},
        {"role": "CDM", "x": 62, "y": 56},
        {"role": "CAM", "x": 20, "y": 36},
        {"role": "CAM", "x": 50, "y": 34},
        {"role": "CAM", "x": 80, "y": 36},
        {"role": "ST", "x": 50, "y": 18},
    ],
    "3-5-2": [
        {"role": "GK", "x": 50, "y": 90},
        {"role": "CB", "x": 30, "y": 74},
        {"role": "CB", "x": 50, "y": 72},
        {"role": "CB", "x": 70, "y": 74},
        {"role": "LWB", "x": 12, "y": 50},
        {"role": "CM", "x": 35, "y": 52},
        {"role": "CM", "x": 50, "y": 48},
        {"role": "CM", "x": 65, "y": 52},
        {"role": "RWB", "x": 88, "y": 50},
        {"role": "ST", "x": 38, "y": 22},
        {"role": "ST", "x": 62, "y": 22},
    ],
    "3-4-3": [
        {"role": "GK", "x": 50, "y": 90},
        {"role": "CB", "x": 30, "y": 74},
        {"role": "CB", "x": 50, "y": 72},
        {"role": "CB", "x": 70, "y": 74},
        {"role": "LM", "x": 18, "y": 50},
        {"role": "CM", "x": 38, "y": 52},
        {"role": "CM", "x": 62, "y": 52},
        {"role": "RM", "x": 82, "y": 50},
        {"role": "LW", "x": 24, "y": 24},
        {"role": "ST", "x": 50, "y": 20},
        {"role": "RW", "x": 76, "y": 24},
    ],
}


# ============================================================================
# Coordinate conversion
# ============================================================================


def clamp_coord(value: float) -> float:
    return round_half_up(max(COORD_MIN, min(COORD_MAX, float(value))), 1)


def pixels_to_percent(
    x: float, y: float, width: int = BOARD_WIDTH, height: int = BOARD_HEIGHT
) -> Tuple[float, float]:
    return clamp_coord(x / width * 100), clamp_coord(y / height * 100)


def percent_to_pixels(
    x: float, y: float, width: int = BOARD_WIDTH, height: int = BOARD_HEIGHT
) -> Tuple[float, float]:
    return round_half_up(x / 100 * width, 1), round_half_up(y / 100 * height, 1)


def rescale(
    x: float, y: float, from_size: Tuple[int, int], to_size: Tuple[int, int]
) -> Tuple[float, float]:
    """Linear rescale of a point between two canvas sizes ``(width, height)``."""
    return (
        round_half_up(x * to_size[0] / from_size[0], 1),
        round_half_up(y * to_size[1] / from_size[1], 1),
    )


def board_to_builder(x_px: float, y_px: float) -> Tuple[float, float]:
    """
    Map a home-half marker on the horizontal tactical board to the vertical
    formation builder. Board x runs goal to goal and becomes builder y
    (own goal at 90); board y runs sideline to sideline and becomes builder x.
    """
    fb_y = 90 - x_px / 600 * 75
    fb_x = 5 + y_px / 800 * 90
    return clamp_coord(fb_x), clamp_coord(fb_y)


def _is_pixel_input(points: List[Dict]) -> bool:
    return any((p.get("x") or 0) > 100 or (p.get("y") or 0) > 100 for p in points)


def normalize_positions(
    positions: List[Dict], width: int = BOARD_WIDTH, height: int = BOARD_HEIGHT
) -> List[Dict]:
    """
    Return a copy of ``positions`` in clamped percentages.

    Input with any coordinate above 100 is treated as pixels on a
    ``width`` x ``height`` canvas.
    """
    pixels = _is_pixel_input(positions)
    normalized = []
    for position in positions:
        item = dict(position)
        x = item.get("x") or 0
        y = item.get("y") or 0
        if pixels:
            item["x"], item["y"] = pixels_to_percent(x, y, width, height)
        else:
            item["x"], item["y"] = clamp_coord(x), clamp_coord(y)
        normalized.append(item)
    return normalized


def _with_ids(positions: List[Dict]) -> List[Dict]:
    result = []
    for idx, position in enumerate(positions):
        item = dict(position)
        item.setdefault("id", idx + 1)
        item.setdefault("player_id", None)
        result.append(item)
    return result


# ============================================================================
# Formations
# ============================================================================


def _formation_to_dict(formation: Formation) -> Dict:
    return {
        "id": formation.id,
        "name": formation.name,
        "template_name": formation.template_name,
        "description": formation.description,
        "positions": formation.positions or [],
        "team_id": formation.team_id,
        "created_by": formation.created_by,
        "is_template": formation.is_template,
        "created_at": formation.created_at.isoformat() if formation.created_at else None,
        "updated_at": formation.updated_at.isoformat() if formation.updated_at else None,
    }


def _check_owner(created_by: Optional[int], user: Dict, entity: str):
    if user.get("role") == UserRole.ADMIN.value:
        return
    if created_by is None or created_by != user.get("id"):
        raise PermissionError(f"Only the creator or an admin can modify this {entity}")


async def _get_formation_model(session: AsyncSession, formation_id: int) -> Formation:
    result = await session.execute(select(Formation).where(Formation.id == formation_id))
    formation = result.scalar_one_or_none()
    if not formation:
        raise ValueError(f"Formation {formation_id} not found")
    return formation


async def create_formation(
    session: AsyncSession,
    name: str,
    positions: List[Dict],
    created_by: Optional[int] = None,
    template_name: Optional[str] = None,
    description: Optional[str] = None,
    team_id: Optional[int] = None,
    is_template: bool = False,
) -> Dict:
    """
    Save a formation. Positions are normalized (pixel input converted,
    clamped to [5, 95]) and given sequential ids when missing.
    """
    if not name or not name.strip():
        raise ValueError("name is required")
    if not positions:
        raise ValueError("positions are required")

    formation = Formation(
        name=name.strip(),
        template_name=template_name,
        description=description,
        positions=_with_ids(normalize_positions(positions)),
        team_id=team_id,
        created_by=created_by,
        is_template=is_template,
    )
    session.add(formation)
    await session.flush()
    await session.refresh(formation)
    return _formation_to_dict(formation)


async def get_formation(session: AsyncSession, formation_id: int) -> Optional[Dict]:
    result = await session.execute(select(Formation).where(Formation.id == formation_id))
    formation = result.scalar_one_or_none()
    return _formation_to_dict(formation) if formation else None


async def list_formations(
    session: AsyncSession,
    user_id: Optional[int] = None,
    team_id: Optional[int] = None,
    include_templates: bool = True,
) -> List[Dict]:
    """Saved formations, optionally limited to a creator, plus templates."""
    query = select(Formation)
    conditions = []
    if user_id is not None:
        conditions.append(Formation.created_by == user_id)
    if team_id is not None:
        conditions.append(Formation.team_id == team_id)
    if conditions:
        own = and_(*conditions)
        query = query.where(or_(own, Formation.is_template.is_(True)) if include_templates else own)
    elif not include_templates:
        query = query.where(Formation.is_template.is_(False))
    result = await session.execute(query.order_by(Formation.is_template.desc(), Formation.name, Formation.id))
    return [_formation_to_dict(f) for f in result.scalars().all()]


async def update_formation(session: AsyncSession, formation_id: int, user: Dict, **fields) -> Dict:
    """
    Raises:
        ValueError: If the formation does not exist
        PermissionError: If the user is neither the creator nor an admin
    """
    formation = await _get_formation_model(session, formation_id)
    _check_owner(formation.created_by, user, "formation")
    for key in ("name", "template_name", "description", "team_id"):
        if fields.get(key) is not None:
            setattr(formation, key, fields[key])
    if fields.get("positions") is not None:
        formation.positions = _with_ids(normalize_positions(fields["positions"]))
    await session.flush()
    await session.refresh(formation)
    return _formation_to_dict(formation)


async def delete_formation(session: AsyncSession, formation_id: int, user: Dict) -> bool:
    formation = await _get_formation_model(session, formation_id)
    _check_owner(formation.created_by, user, "formation")
    await session.delete(formation)
    await session.flush()
    return True


async def assign_player(
    session: AsyncSession, formation_id: int, position_id: int, player_id: Optional[int], user: Dict
) -> Dict:
    """
    Put a player on a position (or clear it with ``player_id=None``).

    A player already placed elsewhere in the formation is moved.
    """
    formation = await _get_formation_model(session, formation_id)
    _check_owner(formation.created_by, user, "formation")
    positions = copy.deepcopy(formation.positions or [])
    target = next((p for p in positions if p.get("id") == position_id), None)
    if target is None:
        raise ValueError(f"Position {position_id} not found in formation")
    if player_id is not None:
        for position in positions:
            if position.get("player_id") == player_id:
                position["player_id"] = None
    target["player_id"] = player_id
    # JSON columns only detect reassignment
    formation.positions = positions
    await session.flush()
    await session.refresh(formation)
    return _formation_to_dict(formation)


async def list_templates(session: AsyncSession) -> List[Dict]:
    """Seeded template formations, or the built-in templates when none are seeded."""
    result = await session.execute(
        select(Formation).where(Formation.is_template.is_(True)).order_by(Formation.name)
    )
    templates = [_formation_to_dict(f) for f in result.scalars().all()]
    if templates:
        return templates
    return [
        {"name": name, "template_name": name, "positions": _with_ids(positions), "is_template": True}
        for name, positions in FORMATION_TEMPLATES.items()
    ]


async def apply_template(session: AsyncSession, template_name: str) -> List[Dict]:
    """
    Fresh copy of a template's positions with no players assigned.

    Raises:
        ValueError: If the template is unknown
    """
    result = await session.execute(
        select(Formation)
        .where(Formation.is_template.is_(True), Formation.template_name == template_name)
        .limit(1)
    )
    template = result.scalar_one_or_none()
    if template is not None:
        positions = template.positions
    elif template_name in FORMATION_TEMPLATES:
        positions = FORMATION_TEMPLATES[template_name]
    else:
        raise ValueError(f"Unknown formation template: {template_name}")
    return [
        {**position, "id": idx + 1, "player_id": None}
        for idx, position in enumerate(normalize_positions(copy.deepcopy(positions)))
    ]


async def seed_templates(session: AsyncSession) -> int:
    """Insert missing standard templates. Returns the number created."""
    result = await session.execute(
        select(Formation.template_name).where(Formation.is_template.is_(True))
    )
    existing = set(result.scalars().all())
    created = 0
    for name, positions in FORMATION_TEMPLATES.items():
        if name in existing:
            continue
        session.add(Formation(
            name=name,
            template_name=name,
            description=f"Standard {name} formation",
            positions=_with_ids(normalize_positions(positions)),
            is_template=True,
        ))
        created += 1
    if created:
        await session.flush()
        logger.info(f"Seeded {created} formation templates")
    return created


async def fix_formation_coordinates(session: AsyncSession) -> int:
    """
    Rewrite stored formations whose coordinates are in pixels or out of
    bounds. Returns the number of formations changed.
    """
    result = await session.execute(select(Formation))
    changed = 0
    for formation in result.scalars().all():
        positions = formation.positions or []
        normalized = normalize_positions(positions)
        if normalized != positions:
            formation.positions = normalized
            changed += 1
    if changed:
        await session.flush()
    return changed


# ============================================================================
# Tactical boards
# ============================================================================


def _normalize_drawings(drawings: Optional[List[Dict]]) -> List[Dict]:
    normalized = []
    for drawing in drawings or []:
        item = dict(drawing)
        item["points"] = [
            {"x": p["x"], "y": p["y"]} for p in normalize_positions(item.get("points") or [])
        ]
        normalized.append(item)
    return normalized


def _board_to_dict(board: TacticalBoard) -> Dict:
    return {
        "id": board.id,
        "name": board.name,
        "description": board.description,
        "formation": board.formation,
        "players": board.players or [],
        "drawings": board.drawings or [],
        "team_id": board.team_id,
        "created_by": board.created_by,
        "created_at": board.created_at.isoformat() if board.created_at else None,
        "updated_at": board.updated_at.isoformat() if board.updated_at else None,
    }


async def _get_board_model(session: AsyncSession, board_id: int) -> TacticalBoard:
    result = await session.execute(select(TacticalBoard).where(TacticalBoard.id == board_id))
    board = result.scalar_one_or_none()
    if not board:
        raise ValueError(f"Tactical board {board_id} not found")
    return board


async def create_board(
    session: AsyncSession,
    name: str,
    created_by: int,
    players: Optional[List[Dict]] = None,
    drawings: Optional[List[Dict]] = None,
    formation: Optional[str] = None,
    description: Optional[str] = None,
    team_id: Optional[int] = None,
) -> Dict:
    if not name or not name.strip():
        raise ValueError("name is required")
    board = TacticalBoard(
        name=name.strip(),
        description=description,
        formation=formation,
        players=_with_ids(normalize_positions(players or [])),
        drawings=_normalize_drawings(drawings),
        team_id=team_id,
        created_by=created_by,
    )
    session.add(board)
    await session.flush()
    await session.refresh(board)
    return _board_to_dict(board)


async def get_board(session: AsyncSession, board_id: int) -> Optional[Dict]:
    result = await session.execute(select(TacticalBoard).where(TacticalBoard.id == board_id))
    board = result.scalar_one_or_none()
    return _board_to_dict(board) if board else None


async def list_boards(
    session: AsyncSession, user_id: Optional[int] = None, team_id: Optional[int] = None
) -> List[Dict]:
    query = select(TacticalBoard)
    if user_id is not None:
        query = query.where(TacticalBoard.created_by == user_id)
    if team_id is not None:
        query = query.where(TacticalBoard.team_id == team_id)
    result = await session.execute(query.order_by(TacticalBoard.updated_at.desc(), TacticalBoard.id.desc()))
    return [_board_to_dict(b) for b in result.scalars().all()]


async def update_board(session: AsyncSession, board_id: int, user: Dict, **fields) -> Dict:
    board = await _get_board_model(session, board_id)
    _check_owner(board.created_by, user, "tactical board")
    for key in ("name", "description", "formation", "team_id"):
        if fields.get(key) is not None:
            setattr(board, key, fields[key])
    if fields.get("players") is not None:
        board.players = _with_ids(normalize_positions(fields["players"]))
    if fields.get("drawings") is not None:
        board.drawings = _normalize_drawings(fields["drawings"])
    await session.flush()
    await session.refresh(board)
    return _board_to_dict(board)


async def delete_board(session: AsyncSession, board_id: int, user: Dict) -> bool:
    board = await _get_board_model(session, board_id)
    _check_owner(board.created_by, user, "tactical board")
    await session.delete(board)
    await session.flush()
    return True


async def board_to_formation(
    session: AsyncSession, board_id: int, name: str, created_by: int
) -> Dict:
    """
    Save the home-side markers of a tactical board as a vertical formation.
    Marker coordinates are converted from board pixels to builder percentages.
    """
    board = await _get_board_model(session, board_id)
    positions = []
    for marker in board.players or []:
        if marker.get("team", "home") != "home":
            continue
        x_px, y_px = percent_to_pixels(marker["x"], marker["y"])
        fb_x, fb_y = board_to_builder(x_px, y_px)
        positions.append({
            "role": marker.get("role") or str(marker.get("number") or ""),
            "x": fb_x,
            "y": fb_y,
            "player_id": marker.get("player_id"),
        })
    if not positions:
        raise ValueError("Tactical board has no home players")
    return await create_formation(
        session, name, positions, created_by=created_by, template_name=board.formation, team_id=board.team_id
    )
