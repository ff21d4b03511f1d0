"""
Pydantic models for API request/response validation.
"""

from datetime import date
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator


# Auth schemas
class RegisterRequest(BaseModel):
    """Request to register a new account (pending admin approval)."""

    email: str
    password: str
    name: str
    requested_role: Optional[str] = "player"
    phone: Optional[str] = None


class LoginRequest(BaseModel):
    """Request to login with email and password."""

    email: str
    password: str


class AuthResponse(BaseModel):
    """Authentication response with JWT token."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user_id: int
    role: str
    account_status: str
    streak: Optional[dict] = None


class RefreshTokenRequest(BaseModel):
    """Request to refresh access token."""

    refresh_token: str


class RefreshTokenResponse(BaseModel):
    """Response with new access token."""

    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    """User information response."""

    id: int
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    whatsapp_phone: Optional[str] = None
    whatsapp_notifications: bool = False
    role: str
    account_status: str
    requested_role: Optional[str] = None
    avatar_url: Optional[str] = None
    onboarding_completed: bool = False
    last_signed_in: Optional[str] = None
    created_at: Optional[str] = None


class UserUpdate(BaseModel):
    """Request to update the user's own profile."""

    name: Optional[str] = None
    phone: Optional[str] = None
    whatsapp_phone: Optional[str] = None
    whatsapp_notifications: Optional[bool] = None
    avatar_url: Optional[str] = None
    onboarding_completed: Optional[bool] = None


class ApproveUserRequest(BaseModel):
    """Approve a pending account, optionally overriding the requested role."""

    role: Optional[str] = None


class SetRoleRequest(BaseModel):
    role: str


class SettingUpdate(BaseModel):
    value: Optional[str] = None


# Player schemas
class PlayerBase(BaseModel):
    first_name: str
    last_name: str
    date_of_birth: date
    position: str
    preferred_foot: Optional[str] = "right"
    height: Optional[int] = None
    weight: Optional[int] = None
    jersey_number: Optional[int] = Field(default=None, ge=1, le=99)
    age_group: Optional[str] = None
    team_id: Optional[int] = None
    status: Optional[str] = "active"
    join_date: Optional[date] = None
    photo_url: Optional[str] = None
    user_id: Optional[int] = None


class PlayerCreate(PlayerBase):
    pass


class PlayerUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    position: Optional[str] = None
    preferred_foot: Optional[str] = None
    height: Optional[int] = None
    weight: Optional[int] = None
    jersey_number: Optional[int] = Field(default=None, ge=1, le=99)
    age_group: Optional[str] = None
    team_id: Optional[int] = None
    status: Optional[str] = None
    join_date: Optional[date] = None
    photo_url: Optional[str] = None
    user_id: Optional[int] = None


# Team schemas
class TeamCreate(BaseModel):
    name: str
    age_group: str
    team_type: Optional[str] = "academy"
    head_coach_id: Optional[int] = None
    description: Optional[str] = None


class TeamUpdate(BaseModel):
    name: Optional[str] = None
    age_group: Optional[str] = None
    team_type: Optional[str] = None
    head_coach_id: Optional[int] = None
    description: Optional[str] = None


class AssignCoachRequest(BaseModel):
    coach_user_id: int
    role: Optional[str] = "assistant_coach"
    is_primary: Optional[bool] = False


# Match schemas
class MatchCreate(BaseModel):
    team_id: Optional[int] = None
    match_date: date
    match_type: str
    opponent: Optional[str] = None
    venue: Optional[str] = None
    is_home: Optional[bool] = True
    team_score: Optional[int] = Field(default=0, ge=0)
    opponent_score: Optional[int] = Field(default=0, ge=0)
    half_time_score: Optional[str] = None
    notes: Optional[str] = None
    video_url: Optional[str] = None


class MatchUpdate(BaseModel):
    team_id: Optional[int] = None
    match_date: Optional[date] = None
    match_type: Optional[str] = None
    opponent: Optional[str] = None
    venue: Optional[str] = None
    is_home: Optional[bool] = None
    team_score: Optional[int] = Field(default=None, ge=0)
    opponent_score: Optional[int] = Field(default=None, ge=0)
    half_time_score: Optional[str] = None
    notes: Optional[str] = None
    video_url: Optional[str] = None


class MatchReportRequest(BaseModel):
    """Post-match summary sent to the team's parents."""

    summary: str
    report_url: Optional[str] = None


# Performance schemas
class PerformanceMetricBase(BaseModel):
    touches: Optional[int] = None
    passes: Optional[int] = None
    pass_accuracy: Optional[int] = None
    shots: Optional[int] = None
    shots_on_target: Optional[int] = None
    dribbles: Optional[int] = None
    successful_dribbles: Optional[int] = None
    distance_covered: Optional[int] = None
    top_speed: Optional[float] = None
    sprints: Optional[int] = None
    accelerations: Optional[int] = None
    decelerations: Optional[int] = None
    possession_won: Optional[int] = None
    possession_lost: Optional[int] = None
    interceptions: Optional[int] = None
    tackles: Optional[int] = None
    technical_score: Optional[int] = None
    physical_score: Optional[int] = None
    tactical_score: Optional[int] = None
    overall_score: Optional[int] = None
    notes: Optional[str] = None


class PerformanceMetricCreate(PerformanceMetricBase):
    player_id: int
    session_date: date
    session_type: str


class PerformanceMetricUpdate(PerformanceMetricBase):
    session_date: Optional[date] = None
    session_type: Optional[str] = None


class ComparePlayersRequest(BaseModel):
    player_ids: List[int] = Field(min_length=2)
    days: Optional[int] = None


# Skill schemas
class SkillScoreBase(BaseModel):
    """Coach-entered skill values (0-100; out-of-range values are clamped)."""

    ball_control: Optional[int] = None
    first_touch: Optional[int] = None
    dribbling: Optional[int] = None
    passing: Optional[int] = None
    shooting: Optional[int] = None
    crossing: Optional[int] = None
    heading: Optional[int] = None
    left_foot_score: Optional[int] = None
    right_foot_score: Optional[int] = None
    two_footed_score: Optional[int] = None
    weak_foot_usage: Optional[int] = None
    speed: Optional[int] = None
    acceleration: Optional[int] = None
    agility: Optional[int] = None
    stamina: Optional[int] = None
    strength: Optional[int] = None
    jumping: Optional[int] = None
    positioning: Optional[int] = None
    vision: Optional[int] = None
    composure: Optional[int] = None
    decision_making: Optional[int] = None
    work_rate: Optional[int] = None
    marking: Optional[int] = None
    tackling: Optional[int] = None
    interceptions: Optional[int] = None
    potential_rating: Optional[int] = None
    notes: Optional[str] = None


class SkillScoreCreate(SkillScoreBase):
    player_id: int
    assessment_date: Optional[date] = None


class SkillScoreUpdate(SkillScoreBase):
    assessment_date: Optional[date] = None


# Formation schemas
class FormationPosition(BaseModel):
    id: Optional[int] = None
    role: Optional[str] = None
    x: float
    y: float
    player_id: Optional[int] = None


class FormationCreate(BaseModel):
    name: str
    positions: List[FormationPosition]
    template_name: Optional[str] = None
    description: Optional[str] = None
    team_id: Optional[int] = None
    is_template: Optional[bool] = False


class FormationUpdate(BaseModel):
    name: Optional[str] = None
    positions: Optional[List[FormationPosition]] = None
    template_name: Optional[str] = None
    description: Optional[str] = None
    team_id: Optional[int] = None


class AssignPositionRequest(BaseModel):
    position_id: int
    player_id: Optional[int] = None


class BoardMarker(BaseModel):
    model_config = ConfigDict(extra="allow")
    id: Optional[int] = None
    x: float
    y: float
    number: Optional[int] = None
    team: Optional[str] = "home"
    role: Optional[str] = None
    player_id: Optional[int] = None


class TacticalBoardCreate(BaseModel):
    name: str
    description: Optional[str] = None
    formation: Optional[str] = None
    players: List[BoardMarker] = []
    drawings: Optional[List[Dict[str, Any]]] = None
    team_id: Optional[int] = None


class TacticalBoardUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    formation: Optional[str] = None
    players: Optional[List[BoardMarker]] = None
    drawings: Optional[List[Dict[str, Any]]] = None
    team_id: Optional[int] = None


class BoardToFormationRequest(BaseModel):
    name: str


# GPS and heatmap schemas
class HeatmapPoint(BaseModel):
    x: float
    y: float
    intensity: float = 1.0


class GpsPoint(BaseModel):
    lat: float
    lon: float
    ts: float


class GpsRecordCreate(BaseModel):
    player_id: int
    session_date: date
    device_type: Optional[str] = None
    total_distance: Optional[float] = None
    max_speed: Optional[float] = None
    avg_speed: Optional[float] = None
    sprint_count: Optional[int] = None
    high_intensity_distance: Optional[float] = None
    player_load: Optional[float] = None
    raw_points: Optional[List[GpsPoint]] = None


class HeatmapCreate(BaseModel):
    player_id: int
    session_date: date
    points: List[HeatmapPoint] = Field(min_length=1)
    match_id: Optional[int] = None
    image_url: Optional[str] = None


class HeatmapRenderRequest(BaseModel):
    points: List[HeatmapPoint]
    width: int = Field(default=600, gt=0, le=4000)
    height: int = Field(default=400, gt=0, le=4000)
    radius: int = Field(default=40, gt=0, le=400)
    opacity: float = Field(default=0.6, ge=0, le=1)
    gradient: Optional[Dict[float, str]] = None
    with_pitch: bool = True


class PitchBounds(BaseModel):
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float


class GpsProjectionRequest(BaseModel):
    points: List[GpsPoint]
    bounds: PitchBounds


# PlayerMaker schemas
class PlayermakerSettingsRequest(BaseModel):
    client_key: str
    client_secret: str
    client_team_id: str
    team_code: Optional[str] = None
    auto_sync_enabled: Optional[bool] = False
    sync_frequency: Optional[str] = "daily"


class PlayermakerSyncRequest(BaseModel):
    days_back: int = Field(default=7, ge=1, le=365)
    session_type: Optional[str] = None
    sync_type: Optional[str] = "manual"


class AnnotationCreate(BaseModel):
    content: str
    annotation_type: Optional[str] = "note"


# AI schemas
class OpponentAnalysisRequest(BaseModel):
    opponent_name: str
    known_formation: Optional[str] = None
    previous_results: Optional[List[str]] = None
    known_players: Optional[List[str]] = None
    additional_notes: Optional[str] = None
    team_id: Optional[int] = None


class VideoAnalysisRequest(BaseModel):
    video_url: str
    team_name: Optional[str] = None
    match_id: Optional[int] = None


# Course schemas
class CourseCreate(BaseModel):
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    level: Optional[str] = "beginner"
    duration_minutes: Optional[int] = Field(default=0, ge=0)
    is_published: Optional[bool] = False
    display_order: Optional[int] = 0


class CourseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    level: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    is_published: Optional[bool] = None
    display_order: Optional[int] = None


class ModuleCreate(BaseModel):
    title: str
    content: Optional[str] = None
    video_url: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=0, ge=0)
    display_order: Optional[int] = 0


class ModuleUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    video_url: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    display_order: Optional[int] = None


class CompleteModuleRequest(BaseModel):
    watch_time_seconds: int = Field(default=0, ge=0)


class QuizQuestionCreate(BaseModel):
    question: str
    option_a: str
    option_b: str
    option_c: Optional[str] = None
    option_d: Optional[str] = None
    correct_answer: str
    explanation: Optional[str] = None
    display_order: Optional[int] = 0

    @field_validator("correct_answer")
    @classmethod
    def validate_answer_letter(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in ("A", "B", "C", "D"):
            raise ValueError("correct_answer must be one of A, B, C, D")
        return value


class QuizSubmitRequest(BaseModel):
    """Answers keyed by question id, e.g. ``{"12": "B"}``."""

    answers: Dict[str, str]


# Gamification schemas
class ChallengeCreate(BaseModel):
    title: str
    description: Optional[str] = None
    criteria: Dict[str, Any]
    reward: Dict[str, Any]
    start_date: date
    end_date: date
    is_active: Optional[bool] = True

    @model_validator(mode="after")
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class AwardPointsRequest(BaseModel):
    player_id: int
    amount: int = Field(gt=0)
    transaction_type: str = "manual"
    description: Optional[str] = None


class AwardBadgeRequest(BaseModel):
    user_id: int
    badge_id: int


class RedeemRewardRequest(BaseModel):
    player_id: int


class RewardCreate(BaseModel):
    name: str
    description: Optional[str] = None
    points_cost: int = Field(gt=0)
    category: Optional[str] = None
    image_url: Optional[str] = None
    stock: Optional[int] = Field(default=-1, ge=-1)
    is_active: Optional[bool] = True


class RewardUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    points_cost: Optional[int] = Field(default=None, gt=0)
    category: Optional[str] = None
    image_url: Optional[str] = None
    stock: Optional[int] = Field(default=None, ge=-1)
    is_active: Optional[bool] = None


# Notification schemas
class NotificationResponse(BaseModel):
    """Notification response."""

    model_config = ConfigDict(from_attributes=True)
    id: int
    user_id: int
    type: str
    category: Optional[str] = None
    title: str
    message: str
    data: Optional[dict] = None
    is_read: bool
    read_at: Optional[str] = None
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[int] = None
    link_url: Optional[str] = None
    created_at: Optional[str] = None


class NotificationListResponse(BaseModel):
    """Paginated notification list response."""

    notifications: List[NotificationResponse]
    total_count: int
    has_more: bool


class UnreadCountResponse(BaseModel):
    """Unread notification count response."""

    count: int


class NotificationCreate(BaseModel):
    """Staff-sent notification to one or more users."""

    user_ids: List[int] = Field(min_length=1)
    title: str
    message: str
    type: Optional[str] = "info"
    category: Optional[str] = "general"
    link_url: Optional[str] = None


class NotificationPreferencesUpdate(BaseModel):
    in_app_enabled: Optional[bool] = None
    email_enabled: Optional[bool] = None
    whatsapp_enabled: Optional[bool] = None
    sound_enabled: Optional[bool] = None
    sound_volume: Optional[int] = None
    quiet_hours_start: Optional[str] = None
    quiet_hours_end: Optional[str] = None


# WhatsApp schemas
class WhatsAppSendRequest(BaseModel):
    to: str
    message: str


class WhatsAppMatchAlertRequest(BaseModel):
    to: str
    alert_type: str
    details: str


class WhatsAppLinkRequest(BaseModel):
    phone: str
    message: Optional[str] = None


# Parent schemas
class LinkParentRequest(BaseModel):
    parent_user_id: int
    player_id: int
    relationship: Optional[str] = "guardian"
    is_primary: Optional[bool] = False
