"""Pydantic models for the notification task graph.

Each task type carries its own parameter shape. The shapes form a
discriminated union on ``task_type`` so a stored JSON blob is always parsed
into exactly one variant, and the dispatcher can rely on the fields it needs.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from config.pipeline_settings import DEFAULT_DRAIN_LIMIT, TASK_RETENTION_DAYS
from models.notification import MatchResult
from models.program import GovSupportProgram
from models.types import CheckType, MessageType, TaskID, TaskStatus, TaskType


class InvalidTaskParametersError(ValueError):
    """Stored task parameters do not fit the task type."""


class InitParameters(BaseModel):
    task_type: Literal["init"] = "init"
    timestamp: str | None = None
    source: str | None = None


class FetchParameters(BaseModel):
    task_type: Literal["fetch"] = "fetch"
    check_type: CheckType
    timestamp: str | None = None


class MatchParameters(BaseModel):
    task_type: Literal["match"] = "match"
    programs: list[GovSupportProgram]
    notification_type: MessageType
    timestamp: str | None = None


class GenerateParameters(BaseModel):
    task_type: Literal["generate"] = "generate"
    matches: dict[str, list[MatchResult]]
    notification_type: MessageType
    timestamp: str | None = None


class SendParameters(BaseModel):
    task_type: Literal["send"] = "send"
    max_messages: int = Field(DEFAULT_DRAIN_LIMIT, gt=0)
    timestamp: str | None = None


class CleanupParameters(BaseModel):
    task_type: Literal["cleanup"] = "cleanup"
    days_to_keep: int = Field(TASK_RETENTION_DAYS, ge=0)
    timestamp: str | None = None


TaskParameters = Annotated[
    Union[
        InitParameters,
        FetchParameters,
        MatchParameters,
        GenerateParameters,
        SendParameters,
        CleanupParameters,
    ],
    Field(discriminator="task_type"),
]

_parameters_adapter: TypeAdapter[Any] = TypeAdapter(TaskParameters)


def parse_task_parameters(task_type: str, raw: dict[str, Any] | None) -> Any:
    """
    Parse a stored parameters blob into the variant for ``task_type``.

    Raises:
        InvalidTaskParametersError: If the blob is missing required fields
            or the task type is unknown
    """
    payload = dict(raw or {})
    payload["task_type"] = task_type
    try:
        return _parameters_adapter.validate_python(payload)
    except ValidationError as e:
        raise InvalidTaskParametersError(
            f"Invalid parameters for {task_type} task: {e.error_count()} error(s): "
            + "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()[:3]
            )
        ) from e


def dump_task_parameters(parameters: BaseModel) -> dict[str, Any]:
    """JSON-ready parameters blob (the task type lives in its own column)."""
    return parameters.model_dump(mode="json", exclude={"task_type"})


class NotificationTask(BaseModel):
    """A node in the orchestration task graph (notification_tasks row)."""

    id: TaskID
    task_type: TaskType
    status: TaskStatus
    parameters: dict[str, Any] = Field(default_factory=dict)
    result: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None
    retry_count: int = Field(0, ge=0)
    parent_task_id: TaskID | None = None

    def typed_parameters(self) -> Any:
        return parse_task_parameters(self.task_type, self.parameters)
