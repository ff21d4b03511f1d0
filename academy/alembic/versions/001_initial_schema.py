"""001_initial_schema

Revision ID: 001
Revises: 
Create Date: 2026-01-12 09:00:00.000000

Complete database schema for fresh deployments.

Creates all tables based on current models including:
- Accounts: users, refresh_tokens, settings
- Squad: teams, team_coaches, players, parent_player_relations, matches
- Development: performance_metrics, player_skill_scores, gps_tracker_data, player_heatmaps
- Tactics: formations, tactical_boards
- PlayerMaker: playermaker_settings, playermaker_sessions, playermaker_player_metrics,
  playermaker_sync_history, playermaker_coach_annotations
- AI: ai_response_cache, video_analyses, opponent_analyses
- Coach education: coaching_courses, course_modules, course_enrollments, module_progress,
  quiz_questions, quiz_attempts, coach_certificates
- Gamification: badges, user_badges, user_streaks, streak_rewards, challenges,
  user_challenges, player_points, points_transactions, rewards
- Notifications: notifications, notification_preferences
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables from scratch."""
    from academy.database.db import Base
    from academy.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.create_all(bind=bind, checkfirst=True)


def downgrade() -> None:
    """Drop all tables."""
    from academy.database.db import Base
    from academy.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.drop_all(bind=bind, checkfirst=True)
