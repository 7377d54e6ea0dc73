"""
Domain models.

Rows come back from Supabase with snake_case column names and are validated
straight into these models. When serialized for the UI (by_alias=True) the
same fields are emitted in camelCase.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    COACH = "coach"
    PLAYER = "player"


class CamelModel(BaseModel):
    """Base for records exchanged with the UI in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# IDENTITY & PROFILE
# =============================================================================

@dataclass(frozen=True)
class Identity:
    """A signed-in principal as reported by the identity provider."""

    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class AuthenticatedUser(BaseModel):
    """Caller resolved from a bearer token by the HTTP handlers."""

    id: str
    email: Optional[str] = None


class BaseProfile(CamelModel):
    id: str
    email: str
    display_name: str
    photo_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CoachProfile(BaseProfile):
    role: Literal["coach"] = "coach"
    organization: Optional[str] = None


class PlayerProfile(BaseProfile):
    role: Literal["player"] = "player"
    position: Optional[str] = None
    coach_id: Optional[str] = None


Profile = Annotated[Union[CoachProfile, PlayerProfile], Field(discriminator="role")]

_profile_adapter: TypeAdapter = TypeAdapter(Profile)


def profile_from_row(row: Dict[str, Any]) -> Union[CoachProfile, PlayerProfile]:
    """Validate a `profiles` row into the variant named by its role."""
    return _profile_adapter.validate_python(row)


class ProfileInput(CamelModel):
    """Data needed to create a profile."""

    email: str
    display_name: str
    role: Role
    photo_url: Optional[str] = None
    organization: Optional[str] = None
    position: Optional[str] = None
    coach_id: Optional[str] = None

    def to_row(self, identifier: str) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "id": identifier,
            "email": self.email,
            "display_name": self.display_name,
            "photo_url": self.photo_url,
            "role": self.role.value,
        }
        if self.role is Role.COACH:
            row["organization"] = self.organization
        elif self.role is Role.PLAYER:
            row["position"] = self.position
            row["coach_id"] = self.coach_id
        return row


class ProfilePatch(CamelModel):
    """Partial profile update. Only fields explicitly set are written."""

    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    organization: Optional[str] = None
    position: Optional[str] = None
    coach_id: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)

    def fields_foreign_to(self, role: Union[Role, str]) -> List[str]:
        """Set fields that only exist on the other role's profile."""
        own = ROLE_FIELDS[Role(role)]
        foreign = set().union(*ROLE_FIELDS.values()) - own
        return sorted(name for name in self.model_fields_set if name in foreign)


ROLE_FIELDS: Dict[Role, set] = {
    Role.COACH: {"organization"},
    Role.PLAYER: {"position", "coach_id"},
}


# =============================================================================
# DRILLS
# =============================================================================

class DrillCategory(str, Enum):
    SHOOTING = "shooting"
    SKATING = "skating"
    STICKHANDLING = "stickhandling"
    PASSING = "passing"
    DEFENSIVE = "defensive"
    GOALTENDING = "goaltending"
    CONDITIONING = "conditioning"
    OTHER = "other"


class DrillDifficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Drill(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    category: DrillCategory = DrillCategory.OTHER
    difficulty: DrillDifficulty = DrillDifficulty.BEGINNER
    duration_minutes: Optional[int] = None
    equipment: List[str] = Field(default_factory=list)
    key_points: List[str] = Field(default_factory=list)
    video_urls: List[str] = Field(default_factory=list)
    is_custom: bool = False
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DrillInput(CamelModel):
    title: str
    description: Optional[str] = None
    category: DrillCategory = DrillCategory.OTHER
    difficulty: DrillDifficulty = DrillDifficulty.BEGINNER
    duration_minutes: Optional[int] = None
    equipment: List[str] = Field(default_factory=list)
    key_points: List[str] = Field(default_factory=list)
    video_urls: List[str] = Field(default_factory=list)


# =============================================================================
# TEAMS
# =============================================================================

class TeamPlayer(CamelModel):
    id: str
    team_id: Optional[str] = None
    player_id: str
    joined_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    player: Optional[PlayerProfile] = None


class Team(CamelModel):
    id: str
    coach_id: str
    name: str
    description: Optional[str] = None
    season: Optional[str] = None
    photo_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    players: List[TeamPlayer] = Field(default_factory=list)

    @property
    def player_count(self) -> int:
        return len(self.players)


class TeamInput(CamelModel):
    name: str
    description: Optional[str] = None
    season: Optional[str] = None
    photo_url: Optional[str] = None


# =============================================================================
# NOTES
# =============================================================================

class CoachNote(CamelModel):
    id: str
    coach_id: str
    player_id: str
    note_type: str = "general"
    content: str
    tags: List[str] = Field(default_factory=list)
    is_visible_to_player: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class NoteInput(CamelModel):
    note_type: str = "general"
    content: str
    tags: List[str] = Field(default_factory=list)
    is_visible_to_player: bool = False


# =============================================================================
# GOALS
# =============================================================================

class GoalStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Goal(CamelModel):
    id: str
    player_id: str
    coach_id: str
    title: str
    description: Optional[str] = None
    target_date: Optional[date] = None
    status: GoalStatus = GoalStatus.ACTIVE
    progress_percentage: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GoalInput(CamelModel):
    player_id: str
    title: str
    description: Optional[str] = None
    target_date: Optional[date] = None


# =============================================================================
# PROGRESS
# =============================================================================

class DrillCompletion(CamelModel):
    id: str
    player_id: str
    drill_id: str
    session_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    sets_completed: Optional[int] = None
    reps_completed: Optional[int] = None
    performance_rating: Optional[int] = Field(default=None, ge=1, le=5)
    player_notes: Optional[str] = None
    coach_feedback: Optional[str] = None
    video_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DrillCompletionInput(CamelModel):
    drill_id: str
    session_id: Optional[str] = None
    duration_minutes: Optional[int] = None
    sets_completed: Optional[int] = None
    reps_completed: Optional[int] = None
    performance_rating: Optional[int] = Field(default=None, ge=1, le=5)
    player_notes: Optional[str] = None
    video_url: Optional[str] = None


class PerformanceMetric(CamelModel):
    id: str
    player_id: str
    metric_type: str
    metric_value: float
    unit: str
    recorded_at: Optional[datetime] = None
    drill_completion_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class PerformanceMetricInput(CamelModel):
    metric_type: str
    metric_value: float
    unit: str
    drill_completion_id: Optional[str] = None
    notes: Optional[str] = None


# =============================================================================
# PRACTICE SESSIONS
# =============================================================================

class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    MISSED = "missed"


class PracticeSession(CamelModel):
    id: str
    coach_id: str
    player_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    scheduled_date: datetime
    duration_minutes: Optional[int] = None
    location: Optional[str] = None
    status: SessionStatus = SessionStatus.SCHEDULED
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PracticeSessionInput(CamelModel):
    player_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    scheduled_date: datetime
    duration_minutes: Optional[int] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class SessionDrill(CamelModel):
    id: str
    session_id: str
    drill_id: str
    order_index: int = 0
    sets: Optional[int] = None
    reps: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    drill: Optional[Drill] = None


class SessionDrillInput(CamelModel):
    session_id: str
    drill_id: str
    order_index: int = 0
    sets: Optional[int] = None
    reps: Optional[int] = None
    notes: Optional[str] = None


# =============================================================================
# ANNOUNCEMENTS
# =============================================================================

class AnnouncementAudience(str, Enum):
    ALL = "all"
    TEAM = "team"
    INDIVIDUAL = "individual"


class Announcement(CamelModel):
    id: str
    coach_id: str
    title: str
    content: str
    priority: str = "normal"
    target_audience: AnnouncementAudience = AnnouncementAudience.ALL
    target_team_id: Optional[str] = None
    target_player_id: Optional[str] = None
    related_practice_id: Optional[str] = None
    is_pinned: bool = False
    published_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_read: bool = False


class AnnouncementInput(CamelModel):
    title: str
    content: str
    priority: str = "normal"
    target_audience: AnnouncementAudience = AnnouncementAudience.ALL
    target_team_id: Optional[str] = None
    target_player_id: Optional[str] = None
    related_practice_id: Optional[str] = None
    is_pinned: bool = False
    expires_at: Optional[datetime] = None


class AnnouncementRead(CamelModel):
    id: str
    announcement_id: str
    player_id: str
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


# =============================================================================
# ACTIVITY LOG
# =============================================================================

class ActivityLog(CamelModel):
    id: str
    user_id: str
    action_type: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    description: str
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class ActivityLogInput(CamelModel):
    action_type: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    description: str
    metadata: Optional[Dict[str, Any]] = None


# =============================================================================
# AI CONVERSATIONS
# =============================================================================

class AIMessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class AIMessage(CamelModel):
    id: str
    conversation_id: str
    role: AIMessageRole
    content: str
    created_at: Optional[datetime] = None


class AIConversation(CamelModel):
    id: str
    player_id: str
    title: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    messages: List[AIMessage] = Field(default_factory=list)


# =============================================================================
# FILES
# =============================================================================

class FileShare(CamelModel):
    id: str
    file_id: str
    shared_with_user_id: str
    shared_by_user_id: str
    permission_level: str = "view"
    created_at: Optional[datetime] = None


class FileComment(CamelModel):
    id: str
    file_id: str
    user_id: str
    comment: str
    timestamp_position: Optional[float] = None
    created_at: Optional[datetime] = None


class FileRecord(CamelModel):
    id: str
    file_name: str
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    storage_path: Optional[str] = None
    description: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    uploaded_by: str
    is_public: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    file_shares: List[FileShare] = Field(default_factory=list)
    file_comments: List[FileComment] = Field(default_factory=list)


# =============================================================================
# PRACTICE PLANS
# =============================================================================

class PlanPermission(str, Enum):
    VIEW = "view"
    EDIT = "edit"


class PracticePlanCategory(CamelModel):
    id: str
    coach_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    is_system: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PracticePlanCategoryInput(CamelModel):
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None


class PracticePlanDrill(CamelModel):
    """A drill slot in a plan section: a library drill, a custom one, or both."""

    id: str
    section_id: str
    drill_id: Optional[str] = None
    custom_title: Optional[str] = None
    custom_description: Optional[str] = None
    custom_instructions: Optional[str] = None
    duration_minutes: Optional[int] = None
    order_index: int = 0
    coaching_points: Optional[str] = None
    variations: Optional[str] = None
    player_count_min: Optional[int] = None
    player_count_max: Optional[int] = None
    groups_count: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    drill: Optional[Drill] = None


class PracticePlanDrillInput(CamelModel):
    drill_id: Optional[str] = None
    custom_title: Optional[str] = None
    custom_description: Optional[str] = None
    custom_instructions: Optional[str] = None
    duration_minutes: Optional[int] = None
    order_index: int = 0
    coaching_points: Optional[str] = None
    variations: Optional[str] = None
    player_count_min: Optional[int] = None
    player_count_max: Optional[int] = None
    groups_count: Optional[int] = None


class PracticePlanSection(CamelModel):
    id: str
    plan_id: str
    title: str
    description: Optional[str] = None
    duration_minutes: Optional[int] = None
    order_index: int = 0
    color: Optional[str] = None
    icon: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    drills: List[PracticePlanDrill] = Field(default_factory=list)


class PracticePlanSectionInput(CamelModel):
    title: str
    description: Optional[str] = None
    duration_minutes: Optional[int] = None
    order_index: int = 0
    color: Optional[str] = None
    icon: Optional[str] = None


class PracticePlan(CamelModel):
    id: str
    coach_id: str
    title: str
    description: Optional[str] = None
    category_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    age_group: Optional[str] = None
    skill_level: Optional[str] = None
    team_size_min: Optional[int] = None
    team_size_max: Optional[int] = None
    total_duration_minutes: Optional[int] = None
    objectives: List[str] = Field(default_factory=list)
    equipment_needed: List[str] = Field(default_factory=list)
    coaching_notes: Optional[str] = None
    safety_notes: Optional[str] = None
    folder_path: Optional[str] = None
    is_public: bool = False
    is_template: bool = True
    times_used: int = 0
    last_used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    category: Optional[PracticePlanCategory] = None
    sections: List[PracticePlanSection] = Field(default_factory=list)


class PracticePlanInput(CamelModel):
    title: str
    description: Optional[str] = None
    category_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    age_group: Optional[str] = None
    skill_level: Optional[str] = None
    team_size_min: Optional[int] = None
    team_size_max: Optional[int] = None
    total_duration_minutes: Optional[int] = None
    objectives: List[str] = Field(default_factory=list)
    equipment_needed: List[str] = Field(default_factory=list)
    coaching_notes: Optional[str] = None
    safety_notes: Optional[str] = None
    folder_path: Optional[str] = None
    is_public: bool = False
    is_template: bool = True


class PracticePlanShare(CamelModel):
    id: str
    plan_id: str
    shared_with_coach_id: str
    shared_by_coach_id: str
    permission: PlanPermission = PlanPermission.VIEW
    shared_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None


# =============================================================================
# STATISTICS
# =============================================================================

class StatType(str, Enum):
    PRACTICE = "practice"
    GAME = "game"
    ASSESSMENT = "assessment"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class PlayerStatistic(CamelModel):
    id: str
    player_id: str
    coach_id: str
    stat_date: datetime
    stat_type: StatType
    attendance_status: Optional[AttendanceStatus] = None
    drills_completed: Optional[int] = None
    practice_rating: Optional[float] = None
    skill_ratings: Dict[str, float] = Field(default_factory=dict)
    goals: int = 0
    assists: int = 0
    points: int = 0
    plus_minus: int = 0
    shots: int = 0
    saves: int = 0
    custom_stats: Dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StatisticInput(CamelModel):
    stat_date: datetime
    stat_type: StatType
    attendance_status: Optional[AttendanceStatus] = None
    drills_completed: Optional[int] = None
    practice_rating: Optional[float] = Field(default=None, ge=0, le=10)
    skill_ratings: Dict[str, float] = Field(default_factory=dict)
    goals: int = 0
    assists: int = 0
    points: int = 0
    plus_minus: int = 0
    shots: int = 0
    saves: int = 0
    custom_stats: Dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None


class PlayerStatsAggregate(CamelModel):
    player_id: str
    total_practices: int = 0
    attendance_rate: float = 0.0
    average_rating: float = 0.0
    total_goals: int = 0
    total_assists: int = 0
    total_points: int = 0
    skill_averages: Dict[str, float] = Field(default_factory=dict)


# =============================================================================
# PLAYER MANAGEMENT
# =============================================================================

class PrivacySettings(CamelModel):
    hide_phone: bool = False
    hide_email: bool = False
    hide_address: bool = False
    hide_social: bool = False
    hide_age: bool = False
    hide_stats: bool = False


class PlayerTeamSummary(CamelModel):
    team_id: str
    team_name: str
    season: Optional[str] = None


class PlayerDetails(PlayerProfile):
    """Full player record: hockey info, contacts and privacy settings."""

    jersey_number: Optional[int] = None
    shoots: Optional[str] = None
    height_inches: Optional[int] = None
    weight_lbs: Optional[int] = None
    years_experience: Optional[int] = None
    skill_level: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    parent_name: Optional[str] = None
    parent_email: Optional[str] = None
    parent_phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    instagram_handle: Optional[str] = None
    twitter_handle: Optional[str] = None
    privacy_settings: PrivacySettings = Field(default_factory=PrivacySettings)
    medical_notes: Optional[str] = None
    teams: List[PlayerTeamSummary] = Field(default_factory=list)

    @field_validator("privacy_settings", mode="before")
    @classmethod
    def null_privacy_means_defaults(cls, value: Any) -> Any:
        return value if value is not None else {}

    def age(self, today: Optional[date] = None) -> Optional[int]:
        if self.date_of_birth is None:
            return None
        today = today or date.today()
        years = today.year - self.date_of_birth.year
        if (today.month, today.day) < (self.date_of_birth.month, self.date_of_birth.day):
            years -= 1
        return years


class PlayerDetailsPatch(CamelModel):
    """Partial update of a player's own record. Only fields explicitly set are written."""

    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    position: Optional[str] = None
    jersey_number: Optional[int] = None
    shoots: Optional[str] = None
    height_inches: Optional[int] = None
    weight_lbs: Optional[int] = None
    years_experience: Optional[int] = None
    skill_level: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    parent_name: Optional[str] = None
    parent_email: Optional[str] = None
    parent_phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    instagram_handle: Optional[str] = None
    twitter_handle: Optional[str] = None
    privacy_settings: Optional[PrivacySettings] = None
    medical_notes: Optional[str] = None


class VisiblePlayerProfile(CamelModel):
    """What someone other than the player or their coach may see."""

    id: str
    display_name: str
    role: Literal["player"] = "player"
    photo_url: Optional[str] = None
    position: Optional[str] = None
    jersey_number: Optional[int] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    instagram_handle: Optional[str] = None
    twitter_handle: Optional[str] = None
    date_of_birth: Optional[date] = None
    age: Optional[int] = None
