"""Shared type definitions for type checking.

Uses NewType for IDs to provide compile-time type safety - prevents mixing
different ID types (e.g., passing UserID where ProgramID expected).

Uses Literal/TypeAlias for closed vocabularies and purely structural types.
"""

from typing import Literal, NewType, TypeAlias

# ID types using NewType for type safety
ProgramID = NewType("ProgramID", str)
UserID = NewType("UserID", str)
TaskID = NewType("TaskID", str)

# Closed vocabularies
MessageType: TypeAlias = Literal["new_program", "deadline"]
SentFrequency: TypeAlias = Literal["new", "deadline"]
CheckType: TypeAlias = Literal["new", "deadline"]
QueueStatus: TypeAlias = Literal["pending", "sent", "failed"]
TaskType: TypeAlias = Literal["init", "fetch", "match", "generate", "send", "cleanup"]
TaskStatus: TypeAlias = Literal[
    "pending", "processing", "completed", "failed", "retry", "canceled"
]

# Structural aliases
RegionList: TypeAlias = list[str]
CategoryList: TypeAlias = list[str]

TERMINAL_TASK_STATUSES: tuple[TaskStatus, ...] = ("completed", "failed", "canceled")


def frequency_for(message_type: MessageType) -> SentFrequency:
    """Ledger frequency recorded for a delivered message type."""
    return "new" if message_type == "new_program" else "deadline"


def message_type_for(check_type: CheckType) -> MessageType:
    return "new_program" if check_type == "new" else "deadline"
