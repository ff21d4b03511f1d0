"""
SQLAlchemy ORM models for the football academy platform.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    Date,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    JSON,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from academy.database.db import Base


class UserRole(str, enum.Enum):
    """Platform roles."""

    ADMIN = "admin"
    COACH = "coach"
    NUTRITIONIST = "nutritionist"
    MENTAL_COACH = "mental_coach"
    PHYSICAL_TRAINER = "physical_trainer"
    PARENT = "parent"
    PLAYER = "player"


# Roles that can manage academy data (players, metrics, formations, courses)
STAFF_ROLES = {
    UserRole.ADMIN.value,
    UserRole.COACH.value,
    UserRole.NUTRITIONIST.value,
    UserRole.MENTAL_COACH.value,
    UserRole.PHYSICAL_TRAINER.value,
}


class AccountStatus(str, enum.Enum):
    """Account approval status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PlayerPosition(str, enum.Enum):
    """Player position group."""

    GOALKEEPER = "goalkeeper"
    DEFENDER = "defender"
    MIDFIELDER = "midfielder"
    FORWARD = "forward"


class PreferredFoot(str, enum.Enum):
    LEFT = "left"
    RIGHT = "right"
    BOTH = "both"


class PlayerStatus(str, enum.Enum):
    ACTIVE = "active"
    INJURED = "injured"
    INACTIVE = "inactive"
    TRIAL = "trial"


class TeamType(str, enum.Enum):
    MAIN = "main"
    ACADEMY = "academy"


class CoachRole(str, enum.Enum):
    """Role of a coach within a team."""

    HEAD_COACH = "head_coach"
    ASSISTANT_COACH = "assistant_coach"
    GOALKEEPER_COACH = "goalkeeper_coach"
    FITNESS_COACH = "fitness_coach"
    ANALYST = "analyst"


class ParentRelationship(str, enum.Enum):
    FATHER = "father"
    MOTHER = "mother"
    GUARDIAN = "guardian"
    OTHER = "other"


class MatchType(str, enum.Enum):
    FRIENDLY = "friendly"
    LEAGUE = "league"
    CUP = "cup"
    TOURNAMENT = "tournament"
    TRAINING_MATCH = "training_match"


class MatchResult(str, enum.Enum):
    WIN = "win"
    DRAW = "draw"
    LOSS = "loss"


class SessionType(str, enum.Enum):
    """Performance metric session type."""

    TRAINING = "training"
    MATCH = "match"
    ASSESSMENT = "assessment"


class NotificationType(str, enum.Enum):
    """Notification display type."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ALERT = "alert"


class NotificationCategory(str, enum.Enum):
    """Notification category."""

    PERFORMANCE = "performance"
    TRAINING = "training"
    NUTRITION = "nutrition"
    MENTAL = "mental"
    INJURY = "injury"
    ACHIEVEMENT = "achievement"
    GENERAL = "general"


class BadgeCriteriaType(str, enum.Enum):
    COURSE_COMPLETION = "course_completion"
    PERFECT_SCORE = "perfect_score"
    EXCELLENCE = "excellence"
    MASTER = "master"
    FIRST_QUIZ = "first_quiz"
    QUIZ_STREAK = "quiz_streak"


class ChallengeCriteriaType(str, enum.Enum):
    QUIZ_STREAK = "quiz_streak"
    PERFECT_SCORE = "perfect_score"
    MULTIPLE_COURSES = "multiple_courses"
    HIGH_AVERAGE = "high_average"


# ==================== USERS & AUTH ====================


class User(Base):
    """User accounts with email/password authentication and role approval."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(320), nullable=False, unique=True)
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=True)
    phone = Column(String(20), nullable=True)
    whatsapp_phone = Column(String(20), nullable=True)
    whatsapp_notifications = Column(Boolean, default=False, nullable=False)
    role = Column(String(30), default=UserRole.PLAYER.value, nullable=False)
    account_status = Column(String(20), default=AccountStatus.PENDING.value, nullable=False)
    requested_role = Column(String(30), nullable=True)
    avatar_url = Column(Text, nullable=True)
    onboarding_completed = Column(Boolean, default=False, nullable=False)
    last_signed_in = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    refresh_tokens = relationship(
        "RefreshToken", back_populates="user", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_users_email", "email"),
        Index("idx_users_role_status", "role", "account_status"),
    )


class RefreshToken(Base):
    """Opaque refresh tokens issued at login."""

    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token = Column(String, nullable=False, unique=True)
    expires_at = Column(String, nullable=False)  # ISO timestamp
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="refresh_tokens")

    __table_args__ = (
        Index("idx_refresh_tokens_user", "user_id"),
        Index("idx_refresh_tokens_token", "token"),
    )


class Setting(Base):
    """Application configuration overrides."""

    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)


# ==================== TEAMS & PLAYERS ====================


class Team(Base):
    """Academy or first teams."""

    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    age_group = Column(String(10), nullable=False)
    team_type = Column(String(20), default=TeamType.ACADEMY.value, nullable=False)
    head_coach_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    players = relationship("Player", back_populates="team")
    coaches = relationship("TeamCoach", back_populates="team", cascade="all, delete-orphan")

    __table_args__ = (Index("idx_teams_name_age", "name", "age_group"),)


class TeamCoach(Base):
    """Coach assignment to a team."""

    __tablename__ = "team_coaches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    coach_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    role = Column(String(30), default=CoachRole.ASSISTANT_COACH.value, nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now())

    team = relationship("Team", back_populates="coaches")
    coach = relationship("User", foreign_keys=[coach_user_id])

    __table_args__ = (
        UniqueConstraint("team_id", "coach_user_id", name="uq_team_coaches_team_coach"),
        Index("idx_team_coaches_coach", "coach_user_id"),
    )


class Player(Base):
    """Academy player profiles."""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    position = Column(String(20), nullable=False)
    preferred_foot = Column(String(10), default=PreferredFoot.RIGHT.value, nullable=False)
    height = Column(Integer, nullable=True)  # cm
    weight = Column(Integer, nullable=True)  # kg
    jersey_number = Column(Integer, nullable=True)
    age_group = Column(String(10), nullable=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), default=PlayerStatus.ACTIVE.value, nullable=False)
    join_date = Column(Date, nullable=True)
    photo_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    team = relationship("Team", back_populates="players")
    performance_metrics = relationship(
        "PerformanceMetric", back_populates="player", cascade="all, delete-orphan"
    )
    skill_scores = relationship(
        "PlayerSkillScore", back_populates="player", cascade="all, delete-orphan"
    )
    parent_relations = relationship(
        "ParentPlayerRelation", back_populates="player", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_players_team", "team_id"),
        Index("idx_players_user", "user_id"),
        Index("idx_players_name", "last_name", "first_name"),
        CheckConstraint(
            "jersey_number IS NULL OR (jersey_number >= 1 AND jersey_number <= 99)",
            name="ck_players_jersey_number",
        ),
    )


class ParentPlayerRelation(Base):
    """Links a parent account to a player."""

    __tablename__ = "parent_player_relations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    parent_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    relationship_type = Column(String(20), default=ParentRelationship.GUARDIAN.value)
    is_primary = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    player = relationship("Player", back_populates="parent_relations")

    __table_args__ = (
        UniqueConstraint("parent_user_id", "player_id", name="uq_parent_player"),
        Index("idx_parent_relations_parent", "parent_user_id"),
    )


# ==================== MATCHES ====================


class Match(Base):
    """Team fixtures and results."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=True)
    match_date = Column(Date, nullable=False)
    match_type = Column(String(20), nullable=False)
    opponent = Column(String(200), nullable=True)
    venue = Column(String(200), nullable=True)
    is_home = Column(Boolean, default=True, nullable=False)
    team_score = Column(Integer, default=0, nullable=False)
    opponent_score = Column(Integer, default=0, nullable=False)
    result = Column(String(10), nullable=True)
    half_time_score = Column(String(10), nullable=True)
    notes = Column(Text, nullable=True)
    video_url = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_matches_team_date", "team_id", "match_date"),
        CheckConstraint("team_score >= 0 AND opponent_score >= 0", name="ck_matches_scores"),
    )


# ==================== PERFORMANCE ====================


class PerformanceMetric(Base):
    """Per-session performance record for a player."""

    __tablename__ = "performance_metrics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    session_date = Column(Date, nullable=False)
    session_type = Column(String(20), nullable=False)
    # Technical
    touches = Column(Integer, default=0, nullable=False)
    passes = Column(Integer, default=0, nullable=False)
    pass_accuracy = Column(Integer, default=0, nullable=False)  # percentage
    shots = Column(Integer, default=0, nullable=False)
    shots_on_target = Column(Integer, default=0, nullable=False)
    dribbles = Column(Integer, default=0, nullable=False)
    successful_dribbles = Column(Integer, default=0, nullable=False)
    # Physical
    distance_covered = Column(Integer, default=0, nullable=False)  # metres
    top_speed = Column(Float, default=0, nullable=False)  # km/h
    sprints = Column(Integer, default=0, nullable=False)
    accelerations = Column(Integer, default=0, nullable=False)
    decelerations = Column(Integer, default=0, nullable=False)
    # Tactical
    possession_won = Column(Integer, default=0, nullable=False)
    possession_lost = Column(Integer, default=0, nullable=False)
    interceptions = Column(Integer, default=0, nullable=False)
    tackles = Column(Integer, default=0, nullable=False)
    # Scores 0-100
    technical_score = Column(Integer, default=0, nullable=False)
    physical_score = Column(Integer, default=0, nullable=False)
    tactical_score = Column(Integer, default=0, nullable=False)
    overall_score = Column(Integer, default=0, nullable=False)
    notes = Column(Text, nullable=True)
    recorded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    player = relationship("Player", back_populates="performance_metrics")

    __table_args__ = (
        Index("idx_performance_player_date", "player_id", "session_date"),
        CheckConstraint(
            "overall_score >= 0 AND overall_score <= 100", name="ck_performance_overall_range"
        ),
    )


class PlayerSkillScore(Base):
    """Coach assessment of a player's skills, every value in 0-100."""

    __tablename__ = "player_skill_scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    assessment_date = Column(Date, nullable=False)
    # Technical
    ball_control = Column(Integer, default=50, nullable=False)
    first_touch = Column(Integer, default=50, nullable=False)
    dribbling = Column(Integer, default=50, nullable=False)
    passing = Column(Integer, default=50, nullable=False)
    shooting = Column(Integer, default=50, nullable=False)
    crossing = Column(Integer, default=50, nullable=False)
    heading = Column(Integer, default=50, nullable=False)
    # Foot preference
    left_foot_score = Column(Integer, default=50, nullable=False)
    right_foot_score = Column(Integer, default=50, nullable=False)
    two_footed_score = Column(Integer, default=50, nullable=False)
    weak_foot_usage = Column(Integer, default=0, nullable=False)
    # Physical
    speed = Column(Integer, default=50, nullable=False)
    acceleration = Column(Integer, default=50, nullable=False)
    agility = Column(Integer, default=50, nullable=False)
    stamina = Column(Integer, default=50, nullable=False)
    strength = Column(Integer, default=50, nullable=False)
    jumping = Column(Integer, default=50, nullable=False)
    # Mental
    positioning = Column(Integer, default=50, nullable=False)
    vision = Column(Integer, default=50, nullable=False)
    composure = Column(Integer, default=50, nullable=False)
    decision_making = Column(Integer, default=50, nullable=False)
    work_rate = Column(Integer, default=50, nullable=False)
    # Defensive
    marking = Column(Integer, default=50, nullable=False)
    tackling = Column(Integer, default=50, nullable=False)
    interceptions = Column(Integer, default=50, nullable=False)
    # Overalls
    technical_overall = Column(Integer, default=50, nullable=False)
    physical_overall = Column(Integer, default=50, nullable=False)
    mental_overall = Column(Integer, default=50, nullable=False)
    defensive_overall = Column(Integer, default=50, nullable=False)
    overall_rating = Column(Integer, default=50, nullable=False)
    potential_rating = Column(Integer, default=60, nullable=False)
    assessed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    player = relationship("Player", back_populates="skill_scores")

    __table_args__ = (
        Index("idx_skill_scores_player_date", "player_id", "assessment_date"),
        CheckConstraint(
            "overall_rating >= 0 AND overall_rating <= 100", name="ck_skill_overall_range"
        ),
    )


# ==================== FORMATIONS & TACTICAL BOARDS ====================


class Formation(Base):
    """Saved formation: list of position markers in pitch percentages."""

    __tablename__ = "formations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    template_name = Column(String(20), nullable=True)  # e.g. "4-3-3"
    description = Column(Text, nullable=True)
    positions = Column(JSON, nullable=False)  # [{id, role, x, y, player_id}]
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    is_template = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_formations_creator", "created_by"),
        Index("idx_formations_template", "is_template"),
    )


class TacticalBoard(Base):
    """Tactical board with player markers and drawings."""

    __tablename__ = "tactical_boards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    formation = Column(String(20), nullable=True)
    players = Column(JSON, nullable=False)  # [{id, x, y, number, team, player_id}]
    drawings = Column(JSON, nullable=True)  # [{type, points: [{x, y}], color}]
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (Index("idx_tactical_boards_creator", "created_by"),)


# ==================== GPS & HEATMAPS ====================


class GpsTrackerData(Base):
    """GPS tracker summary for a player session."""

    __tablename__ = "gps_tracker_data"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    session_date = Column(Date, nullable=False)
    device_type = Column(String(50), nullable=True)
    total_distance = Column(Float, default=0, nullable=False)  # metres
    max_speed = Column(Float, default=0, nullable=False)  # km/h
    avg_speed = Column(Float, default=0, nullable=False)  # km/h
    sprint_count = Column(Integer, default=0, nullable=False)
    high_intensity_distance = Column(Float, default=0, nullable=False)
    player_load = Column(Float, nullable=True)
    raw_points = Column(JSON, nullable=True)  # [{lat, lon, ts}]
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_gps_player_date", "player_id", "session_date"),)


class PlayerHeatmap(Base):
    """Stored heatmap points for a player and optional match."""

    __tablename__ = "player_heatmaps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="SET NULL"), nullable=True)
    session_date = Column(Date, nullable=False)
    points = Column(JSON, nullable=False)  # [{x, y, intensity}]
    image_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_heatmaps_player", "player_id"),)


# ==================== PLAYERMAKER ====================


class PlayermakerSettings(Base):
    """PlayerMaker API credentials and sync configuration (single row)."""

    __tablename__ = "playermaker_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_key = Column(String(255), nullable=False)
    client_secret = Column(String(255), nullable=False)
    client_team_id = Column(String(50), nullable=False)
    team_code = Column(String(50), nullable=True)
    token = Column(Text, nullable=True)
    token_expires_at = Column(String, nullable=True)  # ISO timestamp
    club_name = Column(String(255), nullable=True)
    last_sync_at = Column(String, nullable=True)  # ISO timestamp
    auto_sync_enabled = Column(Boolean, default=False, nullable=False)
    sync_frequency = Column(String(20), default="daily", nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class PlayermakerSession(Base):
    """Session imported from PlayerMaker."""

    __tablename__ = "playermaker_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(100), nullable=False, unique=True)
    session_type = Column(String(20), default="training", nullable=False)
    session_date = Column(String(50), nullable=True)
    duration = Column(Integer, default=0, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PlayermakerPlayerMetric(Base):
    """Per-player metrics for a PlayerMaker session."""

    __tablename__ = "playermaker_player_metrics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(100), nullable=False)
    external_player_id = Column(String(100), nullable=True)
    player_name = Column(String(200), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="SET NULL"), nullable=True)
    age_group = Column(String(50), nullable=True)
    total_touches = Column(Integer, default=0, nullable=False)
    left_foot_touches = Column(Integer, default=0, nullable=False)
    right_foot_touches = Column(Integer, default=0, nullable=False)
    distance_covered = Column(Float, default=0, nullable=False)
    top_speed = Column(Float, default=0, nullable=False)
    average_speed = Column(Float, default=0, nullable=False)
    sprint_count = Column(Integer, default=0, nullable=False)
    acceleration_count = Column(Integer, default=0, nullable=False)
    deceleration_count = Column(Integer, default=0, nullable=False)
    high_intensity_distance = Column(Float, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("session_id", "player_name", name="uq_pm_metric_session_player"),
        Index("idx_pm_metrics_player", "player_id"),
    )


class PlayermakerSyncHistory(Base):
    """Audit log of PlayerMaker syncs."""

    __tablename__ = "playermaker_sync_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sync_type = Column(String(20), default="manual", nullable=False)
    sessions_count = Column(Integer, default=0, nullable=False)
    metrics_count = Column(Integer, default=0, nullable=False)
    success = Column(Boolean, default=False, nullable=False)
    error_message = Column(Text, nullable=True)
    duration_ms = Column(Integer, default=0, nullable=False)
    triggered_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    synced_at = Column(String, nullable=False)  # ISO timestamp


class PlayermakerCoachAnnotation(Base):
    """Coach note attached to a player's PlayerMaker metric."""

    __tablename__ = "playermaker_coach_annotations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    metric_id = Column(
        Integer, ForeignKey("playermaker_player_metrics.id", ondelete="CASCADE"), nullable=False
    )
    coach_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    annotation_type = Column(String(30), default="note", nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


# ==================== AI ====================


class AiResponseCache(Base):
    """Cached LLM responses keyed by request hash."""

    __tablename__ = "ai_response_cache"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cache_key = Column(String(128), nullable=False, unique=True)
    function_name = Column(String(100), nullable=False)
    response = Column(Text, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    hit_count = Column(Integer, default=0, nullable=False)
    expires_at = Column(String, nullable=False)  # ISO timestamp
    last_accessed_at = Column(String, nullable=True)  # ISO timestamp
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class VideoAnalysis(Base):
    """Detected events for a match video."""

    __tablename__ = "video_analyses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="SET NULL"), nullable=True)
    video_url = Column(Text, nullable=False)
    team_name = Column(String(200), nullable=True)
    events = Column(JSON, nullable=False)  # {shots, passes, defensive_actions}
    summary = Column(JSON, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class OpponentAnalysis(Base):
    """Stored opponent scouting analysis."""

    __tablename__ = "opponent_analyses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    opponent_name = Column(String(200), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    analysis = Column(JSON, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


# ==================== COURSES ====================


class CoachingCourse(Base):
    """Coach education course."""

    __tablename__ = "coaching_courses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True)
    level = Column(String(30), default="beginner", nullable=False)
    duration_minutes = Column(Integer, default=0, nullable=False)
    is_published = Column(Boolean, default=False, nullable=False)
    display_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    modules = relationship(
        "CourseModule",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="CourseModule.display_order",
    )


class CourseModule(Base):
    """Lesson within a course."""

    __tablename__ = "course_modules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(
        Integer, ForeignKey("coaching_courses.id", ondelete="CASCADE"), nullable=False
    )
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=True)
    video_url = Column(Text, nullable=True)
    duration_minutes = Column(Integer, default=0, nullable=False)
    display_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    course = relationship("CoachingCourse", back_populates="modules")

    __table_args__ = (Index("idx_course_modules_course", "course_id", "display_order"),)


class CourseEnrollment(Base):
    __tablename__ = "course_enrollments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    course_id = Column(
        Integer, ForeignKey("coaching_courses.id", ondelete="CASCADE"), nullable=False
    )
    progress = Column(Integer, default=0, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    certificate_url = Column(Text, nullable=True)
    enrolled_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_enrollment_user_course"),)


class ModuleProgress(Base):
    __tablename__ = "module_progress"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    module_id = Column(Integer, ForeignKey("course_modules.id", ondelete="CASCADE"), nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    watch_time_seconds = Column(Integer, default=0, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (UniqueConstraint("user_id", "module_id", name="uq_module_progress"),)


class QuizQuestion(Base):
    """Multiple-choice question for a course's final quiz."""

    __tablename__ = "quiz_questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(
        Integer, ForeignKey("coaching_courses.id", ondelete="CASCADE"), nullable=False
    )
    question = Column(Text, nullable=False)
    option_a = Column(Text, nullable=False)
    option_b = Column(Text, nullable=False)
    option_c = Column(Text, nullable=True)
    option_d = Column(Text, nullable=True)
    correct_answer = Column(String(1), nullable=False)  # A-D
    explanation = Column(Text, nullable=True)
    display_order = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        CheckConstraint("correct_answer IN ('A', 'B', 'C', 'D')", name="ck_quiz_correct_answer"),
    )


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    course_id = Column(
        Integer, ForeignKey("coaching_courses.id", ondelete="CASCADE"), nullable=False
    )
    score = Column(Integer, nullable=False)
    answers = Column(JSON, nullable=False)  # {question_id: "A"}
    passed = Column(Boolean, default=False, nullable=False)
    attempted_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_quiz_attempts_user", "user_id", "course_id"),)


class CoachCertificate(Base):
    __tablename__ = "coach_certificates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    course_id = Column(
        Integer, ForeignKey("coaching_courses.id", ondelete="CASCADE"), nullable=False
    )
    certificate_number = Column(String(50), nullable=False, unique=True)
    verification_code = Column(String(32), nullable=False, unique=True)
    level = Column(String(30), nullable=True)
    score = Column(Integer, nullable=True)
    certificate_url = Column(Text, nullable=True)
    issued_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_certificate_user_course"),)


# ==================== GAMIFICATION ====================


class Badge(Base):
    __tablename__ = "badges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    icon = Column(String(50), nullable=True)
    category = Column(String(30), nullable=True)
    criteria = Column(JSON, nullable=True)  # {"type": ..., "count": ...}
    is_active = Column(Boolean, default=True, nullable=False)
    display_order = Column(Integer, default=0, nullable=False)


class UserBadge(Base):
    __tablename__ = "user_badges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    badge_id = Column(Integer, ForeignKey("badges.id", ondelete="CASCADE"), nullable=False)
    earned_from = Column(String(50), nullable=True)
    earned_at = Column(DateTime(timezone=True), server_default=func.now())

    badge = relationship("Badge")

    __table_args__ = (UniqueConstraint("user_id", "badge_id", name="uq_user_badge"),)


class UserStreak(Base):
    """Daily login streak per user."""

    __tablename__ = "user_streaks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    current_streak = Column(Integer, default=0, nullable=False)
    longest_streak = Column(Integer, default=0, nullable=False)
    last_login_date = Column(Date, nullable=True)
    total_logins = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class StreakReward(Base):
    """Reward granted on reaching a streak milestone."""

    __tablename__ = "streak_rewards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    streak_days = Column(Integer, nullable=False, unique=True)
    reward_type = Column(String(20), default="badge", nullable=False)
    reward_value = Column(String(100), nullable=True)
    reward_description = Column(Text, nullable=True)
    badge_id = Column(Integer, ForeignKey("badges.id", ondelete="SET NULL"), nullable=True)


class Challenge(Base):
    """Time-boxed challenge with criteria and reward."""

    __tablename__ = "challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    criteria = Column(JSON, nullable=False)  # {"type": ..., "count": ..., "threshold": ...}
    reward = Column(JSON, nullable=False)  # {"type": "badge"|"points", "value": ...}
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class UserChallenge(Base):
    __tablename__ = "user_challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    challenge_id = Column(Integer, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False)
    progress = Column(Integer, default=0, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    reward_claimed = Column(Boolean, default=False, nullable=False)
    claimed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (UniqueConstraint("user_id", "challenge_id", name="uq_user_challenge"),)


class PlayerPoints(Base):
    """Points balance for a player."""

    __tablename__ = "player_points"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(
        Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    total_points = Column(Integer, default=0, nullable=False)
    total_earned = Column(Integer, default=0, nullable=False)
    total_spent = Column(Integer, default=0, nullable=False)
    level = Column(Integer, default=1, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (CheckConstraint("total_points >= 0", name="ck_player_points_non_negative"),)


class PointsTransaction(Base):
    __tablename__ = "points_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Integer, nullable=False)  # negative for redemptions
    transaction_type = Column(String(30), nullable=False)
    description = Column(Text, nullable=True)
    reward_id = Column(Integer, ForeignKey("rewards.id", ondelete="SET NULL"), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_points_transactions_player", "player_id", "created_at"),)


class Reward(Base):
    """Redeemable reward in the points shop."""

    __tablename__ = "rewards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    points_cost = Column(Integer, nullable=False)
    category = Column(String(50), nullable=True)
    image_url = Column(Text, nullable=True)
    stock = Column(Integer, default=-1, nullable=False)  # -1 unlimited
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (CheckConstraint("points_cost > 0", name="ck_rewards_cost_positive"),)


# ==================== NOTIFICATIONS ====================


class Notification(Base):
    """User notifications for in-app messaging."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(20), default=NotificationType.INFO.value, nullable=False)
    category = Column(String(20), default=NotificationCategory.GENERAL.value, nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(Text, nullable=True)  # JSON string
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    related_entity_type = Column(String(50), nullable=True)
    related_entity_id = Column(Integer, nullable=True)
    link_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_notifications_user_unread", "user_id", "is_read", "created_at"),
        Index("idx_notifications_user_created", "user_id", "created_at"),
    )


class NotificationPreference(Base):
    """Per-user delivery preferences, including the audio cue."""

    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    in_app_enabled = Column(Boolean, default=True, nullable=False)
    email_enabled = Column(Boolean, default=True, nullable=False)
    whatsapp_enabled = Column(Boolean, default=False, nullable=False)
    sound_enabled = Column(Boolean, default=True, nullable=False)
    sound_volume = Column(Integer, default=70, nullable=False)
    quiet_hours_start = Column(String(5), nullable=True)  # "HH:MM"
    quiet_hours_end = Column(String(5), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("sound_volume >= 0 AND sound_volume <= 100", name="ck_sound_volume_range"),
    )
