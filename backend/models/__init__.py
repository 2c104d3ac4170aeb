"""Pydantic models for data validation and type checking."""

from models.notification import (
    DeliveryResult,
    MatchingParameters,
    MatchResult,
    MessageContent,
    MessageQueueEntry,
    NotificationGenerationOptions,
    NotificationMessage,
    NotificationSettings,
    SentNotification,
)
from models.program import GovSupportProgram, SearchFilters, SearchResponse
from models.task import (
    CleanupParameters,
    FetchParameters,
    GenerateParameters,
    InitParameters,
    InvalidTaskParametersError,
    MatchParameters,
    NotificationTask,
    SendParameters,
    dump_task_parameters,
    parse_task_parameters,
)

__all__ = [
    "GovSupportProgram",
    "SearchFilters",
    "SearchResponse",
    "NotificationSettings",
    "MatchingParameters",
    "MatchResult",
    "NotificationGenerationOptions",
    "NotificationMessage",
    "MessageContent",
    "MessageQueueEntry",
    "SentNotification",
    "DeliveryResult",
    "NotificationTask",
    "InitParameters",
    "FetchParameters",
    "MatchParameters",
    "GenerateParameters",
    "SendParameters",
    "CleanupParameters",
    "InvalidTaskParametersError",
    "parse_task_parameters",
    "dump_task_parameters",
]
