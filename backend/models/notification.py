"""Pydantic models for notification system."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.pipeline_settings import (
    DEFAULT_CATEGORY_WEIGHT,
    DEFAULT_MAX_DESCRIPTION_LENGTH,
    DEFAULT_MAX_MESSAGES_PER_USER,
    DEFAULT_MINIMUM_MATCH_SCORE,
    DEFAULT_REGION_WEIGHT,
)
from models.program import GovSupportProgram
from models.types import (
    CategoryList,
    MessageType,
    ProgramID,
    QueueStatus,
    RegionList,
    SentFrequency,
    UserID,
)


class NotificationSettings(BaseModel):
    """Per-user notification preferences (user_notification_settings row)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str | None = None
    user_id: UserID
    kakao_linked: bool = False
    new_programs_alert: bool = False
    deadline_notification: bool = False
    deadline_days: int = Field(3, ge=0)
    notification_frequency: str = "daily"
    notification_time: str | None = None
    regions: RegionList = Field(default_factory=list)
    categories: CategoryList = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("regions", "categories", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return value or []

    @field_validator("deadline_days", mode="before")
    @classmethod
    def _default_deadline_days(cls, value: Any) -> Any:
        return 3 if value is None else value

    def has_preferences(self) -> bool:
        return bool(self.regions or self.categories)


class MatchingParameters(BaseModel):
    """Tunables for the matching engine."""

    minimum_match_score: int = DEFAULT_MINIMUM_MATCH_SCORE
    region_weight: int = Field(DEFAULT_REGION_WEIGHT, ge=0)
    category_weight: int = Field(DEFAULT_CATEGORY_WEIGHT, ge=0)
    check_sent_notifications: bool = True


class MatchResult(BaseModel):
    """A scored (user, program) pair produced by the matching engine."""

    user_id: UserID
    program_id: ProgramID
    program: GovSupportProgram
    match_score: int = Field(..., ge=0, le=100)
    matched_regions: RegionList = Field(default_factory=list)
    matched_categories: CategoryList = Field(default_factory=list)
    is_already_sent: bool = False


class NotificationGenerationOptions(BaseModel):
    """Options controlling how match results become messages."""

    include_description: bool = True
    max_description_length: int = Field(DEFAULT_MAX_DESCRIPTION_LENGTH, ge=0)
    include_program_details: bool = True
    max_messages_per_user: int = Field(DEFAULT_MAX_MESSAGES_PER_USER, ge=0)
    highlight_matches: bool = True


class NotificationMessage(BaseModel):
    """Generated message content for one user and one program."""

    user_id: UserID
    program_id: ProgramID
    title: str
    description: str
    program_url: str
    message_type: MessageType = "new_program"


class MessageContent(BaseModel):
    """JSON payload stored in message_queue.content."""

    title: str
    description: str = ""
    program_id: ProgramID
    program_url: str
    message_type: MessageType


class MessageQueueEntry(BaseModel):
    """Queued message waiting to be delivered (message_queue row)."""

    id: int | str
    user_id: UserID
    program_id: ProgramID | None = None
    content: MessageContent
    program_url: str | None = None
    message_type: MessageType
    status: QueueStatus
    created_at: datetime | None = None
    sent_at: datetime | None = None
    next_attempt_at: datetime | None = None
    error_message: str | None = None
    retry_count: int = Field(0, ge=0)

    @field_validator("retry_count", mode="before")
    @classmethod
    def _none_is_zero(cls, value: Any) -> Any:
        return value or 0


class SentNotification(BaseModel):
    """Ledger record of a delivered (user, program) notification."""

    user_id: UserID
    opportunity_id: ProgramID
    frequency: SentFrequency
    sent_at: datetime | None = None


class DeliveryResult(BaseModel):
    """Outcome of a single delivery attempt."""

    success: bool
    error: str | None = None
    simulated: bool = False
    token_expired: bool = False
    permanent: bool = False
