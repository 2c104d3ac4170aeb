"""
Storage for the orchestration task graph (notification_tasks table).

Every function here lets Supabase errors propagate; the dispatcher in
tasks.task_processor decides what a failed storage call means for a task.
"""

from datetime import timedelta
from typing import Any, Optional, cast

from pydantic import BaseModel

from config.pipeline_settings import MAX_TASK_RETRIES, TASK_RETENTION_DAYS
from models.task import NotificationTask, dump_task_parameters
from models.types import TERMINAL_TASK_STATUSES, TaskStatus, TaskType
from shared.db import get_supabase_client
from shared.utils import utc_now, utc_now_iso

TASKS_TABLE = "notification_tasks"

# Candidates read per claim attempt; losing a race moves on to the next one
CLAIM_BATCH_SIZE = 5


def _to_task(row: dict[str, Any]) -> NotificationTask:
    return NotificationTask.model_validate(row)


def create_task(
    task_type: TaskType,
    parameters: BaseModel,
    parent_task_id: Optional[str] = None,
) -> NotificationTask:
    """
    Insert a pending task.

    Args:
        task_type: Kind of task
        parameters: Parameter model matching task_type
        parent_task_id: Task that spawned this one, if any

    Returns:
        The stored task row
    """
    supabase = get_supabase_client()
    now = utc_now_iso()
    response = (
        supabase.table(TASKS_TABLE)
        .insert(
            {
                "task_type": task_type,
                "status": "pending",
                "parameters": dump_task_parameters(parameters),
                "parent_task_id": parent_task_id,
                "retry_count": 0,
                "created_at": now,
                "updated_at": now,
            }
        )
        .execute()
    )
    if not response.data:
        raise RuntimeError(f"Insert of {task_type} task returned no row")
    return _to_task(cast(dict[str, Any], response.data[0]))


def get_task(task_id: str) -> Optional[NotificationTask]:
    supabase = get_supabase_client()
    response = supabase.table(TASKS_TABLE).select("*").eq("id", task_id).limit(1).execute()
    if not response.data:
        return None
    return _to_task(cast(dict[str, Any], response.data[0]))


def get_pending_tasks(
    task_type: Optional[TaskType] = None, limit: int = CLAIM_BATCH_SIZE
) -> list[NotificationTask]:
    """Oldest pending tasks first, optionally of one type."""
    supabase = get_supabase_client()
    query = supabase.table(TASKS_TABLE).select("*").eq("status", "pending")
    if task_type:
        query = query.eq("task_type", task_type)
    response = query.order("created_at", desc=False).limit(limit).execute()
    return [_to_task(cast(dict[str, Any], row)) for row in response.data or []]


def get_next_pending_task(task_type: Optional[TaskType] = None) -> Optional[NotificationTask]:
    tasks = get_pending_tasks(task_type, limit=1)
    return tasks[0] if tasks else None


def claim_task(task_id: str) -> Optional[NotificationTask]:
    """
    Move a task from pending to processing in a single conditional update.

    Returns:
        The claimed task, or None if another caller claimed it first
    """
    supabase = get_supabase_client()
    now = utc_now_iso()
    response = (
        supabase.table(TASKS_TABLE)
        .update({"status": "processing", "started_at": now, "updated_at": now})
        .eq("id", task_id)
        .eq("status", "pending")
        .execute()
    )
    if not response.data:
        return None
    return _to_task(cast(dict[str, Any], response.data[0]))


def claim_next_task(task_type: Optional[TaskType] = None) -> Optional[NotificationTask]:
    """Claim the oldest pending task, skipping any another caller won."""
    for candidate in get_pending_tasks(task_type):
        claimed = claim_task(candidate.id)
        if claimed is not None:
            return claimed
        print(f"  → Task {candidate.id} was claimed elsewhere, trying next")
    return None


def update_task_status(
    task_id: str,
    status: TaskStatus,
    result: Optional[dict[str, Any]] = None,
    error: Optional[str] = None,
) -> None:
    """Set a task's status; processing stamps started_at, terminal states completed_at."""
    supabase = get_supabase_client()
    now = utc_now_iso()
    fields: dict[str, Any] = {"status": status, "updated_at": now}

    if result is not None:
        fields["result"] = result
    if error is not None:
        fields["error"] = error
    if status == "processing":
        fields["started_at"] = now
    if status in TERMINAL_TASK_STATUSES:
        fields["completed_at"] = now

    supabase.table(TASKS_TABLE).update(fields).eq("id", task_id).execute()


def mark_task_for_retry(
    task_id: str, error: str, max_retries: int = MAX_TASK_RETRIES
) -> TaskStatus:
    """
    Record a failed attempt.

    The task goes to 'retry' while attempts remain, otherwise to 'failed'.

    Returns:
        The status that was written
    """
    task = get_task(task_id)
    if task is None:
        raise LookupError(f"Task {task_id} not found")

    retry_count = task.retry_count + 1
    status: TaskStatus = "retry" if retry_count < max_retries else "failed"
    now = utc_now_iso()
    fields: dict[str, Any] = {
        "status": status,
        "error": error,
        "retry_count": retry_count,
        "updated_at": now,
    }
    if status == "failed":
        fields["completed_at"] = now

    supabase = get_supabase_client()
    supabase.table(TASKS_TABLE).update(fields).eq("id", task_id).execute()
    return status


def reset_retry_tasks() -> int:
    """Put every task waiting in 'retry' back to 'pending'. Returns how many."""
    supabase = get_supabase_client()
    response = (
        supabase.table(TASKS_TABLE)
        .update({"status": "pending", "updated_at": utc_now_iso()})
        .eq("status", "retry")
        .execute()
    )
    return len(response.data or [])


def get_child_tasks(parent_task_id: str) -> list[NotificationTask]:
    supabase = get_supabase_client()
    response = (
        supabase.table(TASKS_TABLE)
        .select("*")
        .eq("parent_task_id", parent_task_id)
        .order("created_at", desc=False)
        .execute()
    )
    return [_to_task(cast(dict[str, Any], row)) for row in response.data or []]


def cancel_task(task_id: str) -> bool:
    """
    Cancel a task that has not finished yet.

    Returns:
        True if the task was canceled, False if it was already terminal
        or does not exist
    """
    supabase = get_supabase_client()
    now = utc_now_iso()
    response = (
        supabase.table(TASKS_TABLE)
        .update({"status": "canceled", "completed_at": now, "updated_at": now})
        .eq("id", task_id)
        .in_("status", ["pending", "retry"])
        .execute()
    )
    return bool(response.data)


def cleanup_old_tasks(
    days_to_keep: int = TASK_RETENTION_DAYS, exclude_task_id: Optional[str] = None
) -> int:
    """
    Delete terminal tasks created more than ``days_to_keep`` days ago.

    Returns:
        Number of deleted rows
    """
    cutoff = (utc_now() - timedelta(days=days_to_keep)).isoformat()
    supabase = get_supabase_client()
    query = (
        supabase.table(TASKS_TABLE)
        .delete()
        .in_("status", list(TERMINAL_TASK_STATUSES))
        .lt("created_at", cutoff)
    )
    if exclude_task_id:
        query = query.neq("id", exclude_task_id)
    response = query.execute()
    return len(response.data or [])
