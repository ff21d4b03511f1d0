"""
Player points balances, transactions and the rewards shop.
"""

from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from academy.database.models import PlayerPoints, PointsTransaction, Reward, Player
from academy.utils.constants import POINTS_PER_LEVEL
import logging

logger = logging.getLogger(__name__)

REWARD_FIELDS = ("name", "description", "points_cost", "category", "image_url", "stock", "is_active")


def level_for(total_earned: int) -> int:
    return 1 + max(0, total_earned) // POINTS_PER_LEVEL


def _balance_to_dict(points: Optional[PlayerPoints], player_id: int) -> Dict:
    if points is None:
        return {
            "player_id": player_id,
            "total_points": 0,
            "total_earned": 0,
            "total_spent": 0,
            "level": 1,
            "points_to_next_level": POINTS_PER_LEVEL,
        }
    return {
        "player_id": points.player_id,
        "total_points": points.total_points,
        "total_earned": points.total_earned,
        "total_spent": points.total_spent,
        "level": points.level,
        "points_to_next_level": points.level * POINTS_PER_LEVEL - points.total_earned,
    }


def _transaction_to_dict(transaction: PointsTransaction) -> Dict:
    return {
        "id": transaction.id,
        "player_id": transaction.player_id,
        "amount": transaction.amount,
        "transaction_type": transaction.transaction_type,
        "description": transaction.description,
        "reward_id": transaction.reward_id,
        "created_by": transaction.created_by,
        "created_at": transaction.created_at.isoformat() if transaction.created_at else None,
    }


def _reward_to_dict(reward: Reward) -> Dict:
    return {
        "id": reward.id,
        "name": reward.name,
        "description": reward.description,
        "points_cost": reward.points_cost,
        "category": reward.category,
        "image_url": reward.image_url,
        "stock": reward.stock,
        "is_active": bool(reward.is_active),
    }


async def _get_points_row(session: AsyncSession, player_id: int, create: bool = False) -> Optional[PlayerPoints]:
    result = await session.execute(select(PlayerPoints).where(PlayerPoints.player_id == player_id))
    points = result.scalar_one_or_none()
    if points is None and create:
        player = await session.execute(select(Player.id).where(Player.id == player_id))
        if player.scalar_one_or_none() is None:
            raise ValueError(f"Player {player_id} not found")
        points = PlayerPoints(player_id=player_id, total_points=0, total_earned=0, total_spent=0, level=1)
        session.add(points)
        await session.flush()
    return points


async def get_balance(session: AsyncSession, player_id: int) -> Dict:
    return _balance_to_dict(await _get_points_row(session, player_id), player_id)


async def award_points(
    session: AsyncSession,
    player_id: int,
    amount: int,
    transaction_type: str,
    description: Optional[str] = None,
    created_by: Optional[int] = None,
) -> Dict:
    """
    Credit points to a player and recompute their level.

    Returns:
        Dict with the updated ``balance`` and the ``transaction``

    Raises:
        ValueError: If the amount is not positive or the player does not exist
    """
    if amount <= 0:
        raise ValueError("Points amount must be positive")
    points = await _get_points_row(session, player_id, create=True)
    previous_level = points.level
    points.total_points += amount
    points.total_earned += amount
    points.level = level_for(points.total_earned)

    transaction = PointsTransaction(
        player_id=player_id,
        amount=amount,
        transaction_type=transaction_type,
        description=description,
        created_by=created_by,
    )
    session.add(transaction)
    await session.flush()
    await session.refresh(points)
    await session.refresh(transaction)

    if points.level > previous_level:
        logger.info(f"Player {player_id} reached level {points.level}")
    return {
        "balance": _balance_to_dict(points, player_id),
        "transaction": _transaction_to_dict(transaction),
        "leveled_up": points.level > previous_level,
    }


async def redeem_reward(
    session: AsyncSession, player_id: int, reward_id: int, created_by: Optional[int] = None
) -> Dict:
    """
    Spend points on a reward.

    Raises:
        ValueError: If the reward is missing, inactive, out of stock, or the
            player's balance is too low
    """
    result = await session.execute(select(Reward).where(Reward.id == reward_id))
    reward = result.scalar_one_or_none()
    if not reward:
        raise ValueError(f"Reward {reward_id} not found")
    if not reward.is_active:
        raise ValueError("Reward is not available")
    if reward.stock == 0:
        raise ValueError("Reward is out of stock")

    points = await _get_points_row(session, player_id)
    balance = points.total_points if points else 0
    if balance < reward.points_cost:
        raise ValueError(
            f"Insufficient points: {reward.points_cost} needed, {balance} available"
        )

    if reward.stock > 0:
        reward.stock -= 1
    points.total_points -= reward.points_cost
    points.total_spent += reward.points_cost

    transaction = PointsTransaction(
        player_id=player_id,
        amount=-reward.points_cost,
        transaction_type="redemption",
        description=f"Redeemed: {reward.name}",
        reward_id=reward.id,
        created_by=created_by,
    )
    session.add(transaction)
    await session.flush()
    await session.refresh(points)
    await session.refresh(transaction)
    logger.info(f"Player {player_id} redeemed reward {reward.id} for {reward.points_cost} points")
    return {
        "balance": _balance_to_dict(points, player_id),
        "transaction": _transaction_to_dict(transaction),
        "reward": _reward_to_dict(reward),
    }


async def list_transactions(session: AsyncSession, player_id: int, limit: int = 50) -> List[Dict]:
    result = await session.execute(
        select(PointsTransaction)
        .where(PointsTransaction.player_id == player_id)
        .order_by(PointsTransaction.created_at.desc(), PointsTransaction.id.desc())
        .limit(limit)
    )
    return [_transaction_to_dict(t) for t in result.scalars().all()]


async def points_leaderboard(session: AsyncSession, limit: int = 10) -> List[Dict]:
    result = await session.execute(
        select(PlayerPoints, Player)
        .join(Player, Player.id == PlayerPoints.player_id)
        .order_by(PlayerPoints.total_earned.desc())
        .limit(limit)
    )
    board = []
    for rank, (points, player) in enumerate(result.all(), start=1):
        entry = _balance_to_dict(points, player.id)
        entry.update({"rank": rank, "name": f"{player.first_name} {player.last_name}"})
        board.append(entry)
    return board


# ============================================================================
# Rewards shop
# ============================================================================


def _validate_reward(fields: Dict):
    if "points_cost" in fields and (fields["points_cost"] is None or fields["points_cost"] <= 0):
        raise ValueError("points_cost must be positive")
    if "stock" in fields and fields["stock"] is not None and fields["stock"] < -1:
        raise ValueError("stock must be -1 (unlimited) or zero or more")


async def create_reward(session: AsyncSession, name: str, points_cost: int, **fields) -> Dict:
    values = {k: v for k, v in fields.items() if k in REWARD_FIELDS and v is not None}
    values.update({"name": name, "points_cost": points_cost})
    _validate_reward(values)
    reward = Reward(**values)
    session.add(reward)
    await session.flush()
    await session.refresh(reward)
    return _reward_to_dict(reward)


async def get_reward(session: AsyncSession, reward_id: int) -> Optional[Dict]:
    result = await session.execute(select(Reward).where(Reward.id == reward_id))
    reward = result.scalar_one_or_none()
    return _reward_to_dict(reward) if reward else None


async def list_rewards(session: AsyncSession, active_only: bool = True) -> List[Dict]:
    query = select(Reward)
    if active_only:
        query = query.where(Reward.is_active.is_(True))
    result = await session.execute(query.order_by(Reward.points_cost, Reward.id))
    return [_reward_to_dict(r) for r in result.scalars().all()]


async def update_reward(session: AsyncSession, reward_id: int, **fields) -> Dict:
    result = await session.execute(select(Reward).where(Reward.id == reward_id))
    reward = result.scalar_one_or_none()
    if not reward:
        raise ValueError(f"Reward {reward_id} not found")
    values = {k: v for k, v in fields.items() if k in REWARD_FIELDS and v is not None}
    _validate_reward(values)
    for key, value in values.items():
        setattr(reward, key, value)
    await session.flush()
    await session.refresh(reward)
    return _reward_to_dict(reward)


async def delete_reward(session: AsyncSession, reward_id: int) -> bool:
    result = await session.execute(select(Reward).where(Reward.id == reward_id))
    reward = result.scalar_one_or_none()
    if not reward:
        raise ValueError(f"Reward {reward_id} not found")
    await session.delete(reward)
    await session.flush()
    return True
