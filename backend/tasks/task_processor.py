"""
Task handlers and the single-task driver for the notification task graph.

One orchestration run is a fixed-depth tree:

    init -> fetch(new)      -> match -> generate -> send
         -> fetch(deadline) -> match -> generate -> send
         -> cleanup

A stage only spawns its child when it produced something to hand on.
"""

from typing import Any, Callable, Optional

from models.task import (
    CleanupParameters,
    FetchParameters,
    GenerateParameters,
    InitParameters,
    InvalidTaskParametersError,
    MatchParameters,
    NotificationTask,
    SendParameters,
)
from models.types import TaskType, message_type_for
from ingest.program_fetcher import fetch_deadline_programs, fetch_new_opportunities
from notifications.error_logger import log_notification_error
from notifications.message_queue import process_message_queue
from notifications.notification_generator import (
    process_grouped_matches_into_notifications,
)
from notifications.program_matcher import match_opportunities_with_users
from shared.utils import utc_now_iso
from tasks.checkpoint import advance_checkpoint, read_checkpoint
from tasks.task_store import (
    claim_next_task,
    cleanup_old_tasks,
    create_task,
    mark_task_for_retry,
    update_task_status,
)


def handle_init(task: NotificationTask, params: InitParameters) -> dict[str, Any]:
    """Spawn both fetch checks and a cleanup."""
    timestamp = params.timestamp or utc_now_iso()
    children = [
        create_task(
            "fetch", FetchParameters(check_type="new", timestamp=timestamp), task.id
        ),
        create_task(
            "fetch", FetchParameters(check_type="deadline", timestamp=timestamp), task.id
        ),
        create_task("cleanup", CleanupParameters(timestamp=timestamp), task.id),
    ]
    print(f"  ✓ Created {len(children)} child tasks")
    return {"child_task_ids": [child.id for child in children]}


def handle_fetch(task: NotificationTask, params: FetchParameters) -> dict[str, Any]:
    """
    Fetch candidate programs and hand them to a match task.

    For the new-program check the checkpoint is read first and only advanced
    once the match child exists, so a failed fetch is simply repeated.
    """
    notification_type = message_type_for(params.check_type)
    checkpoint = None
    check_started_at = utc_now_iso()

    if params.check_type == "new":
        checkpoint = read_checkpoint()
        programs = fetch_new_opportunities(checkpoint.value)
    else:
        programs = fetch_deadline_programs()

    result: dict[str, Any] = {
        "check_type": params.check_type,
        "program_count": len(programs),
    }

    if programs:
        child = create_task(
            "match",
            MatchParameters(
                programs=programs,
                notification_type=notification_type,
                timestamp=params.timestamp,
            ),
            task.id,
        )
        result["match_task_id"] = child.id

    if checkpoint is not None:
        advanced = advance_checkpoint(check_started_at, checkpoint)
        if not advanced:
            print("  ⚠️  Checkpoint was advanced by another run, leaving it as is")
        result["checkpoint_advanced"] = advanced

    return result


def handle_match(task: NotificationTask, params: MatchParameters) -> dict[str, Any]:
    matches = match_opportunities_with_users(params.programs, params.notification_type)
    match_count = sum(len(user_matches) for user_matches in matches.values())

    result: dict[str, Any] = {"user_count": len(matches), "match_count": match_count}
    if match_count > 0:
        child = create_task(
            "generate",
            GenerateParameters(
                matches=matches,
                notification_type=params.notification_type,
                timestamp=params.timestamp,
            ),
            task.id,
        )
        result["generate_task_id"] = child.id
    return result


def handle_generate(task: NotificationTask, params: GenerateParameters) -> dict[str, Any]:
    counts = process_grouped_matches_into_notifications(
        params.matches, params.notification_type
    )

    result: dict[str, Any] = dict(counts)
    if counts["queued"] > 0:
        child = create_task("send", SendParameters(timestamp=params.timestamp), task.id)
        result["send_task_id"] = child.id
    return result


def handle_send(task: NotificationTask, params: SendParameters) -> dict[str, Any]:
    return process_message_queue(params.max_messages)


def handle_cleanup(task: NotificationTask, params: CleanupParameters) -> dict[str, Any]:
    deleted = cleanup_old_tasks(params.days_to_keep, exclude_task_id=task.id)
    print(f"  ✓ Deleted {deleted} old task(s)")
    return {"deleted_count": deleted}


TASK_HANDLERS: dict[TaskType, Callable[[NotificationTask, Any], dict[str, Any]]] = {
    "init": handle_init,
    "fetch": handle_fetch,
    "match": handle_match,
    "generate": handle_generate,
    "send": handle_send,
    "cleanup": handle_cleanup,
}


def execute_task(task: NotificationTask) -> dict[str, Any]:
    """
    Run a claimed task's handler and record the outcome.

    Malformed parameters fail the task outright. Any other exception is
    recorded as a retry (or a failure once retries run out).
    """
    outcome: dict[str, Any] = {
        "processed": True,
        "task_id": task.id,
        "task_type": task.task_type,
    }
    print(f"→ Processing {task.task_type} task {task.id}")

    try:
        params = task.typed_parameters()
    except InvalidTaskParametersError as e:
        print(f"  ✗ {e}")
        update_task_status(task.id, "failed", error=str(e))
        outcome["error"] = str(e)
        return outcome

    try:
        result = TASK_HANDLERS[task.task_type](task, params)
        update_task_status(task.id, "completed", result=result)
        print(f"  ✓ Completed {task.task_type} task {task.id}")
        outcome["result"] = result
        return outcome

    except Exception as e:
        error_file = log_notification_error(
            error_type="task",
            error_message=str(e),
            context={
                "task_id": task.id,
                "task_type": task.task_type,
                "retry_count": task.retry_count,
            },
        )
        status = mark_task_for_retry(task.id, str(e))
        print(f"  ✗ {task.task_type} task {task.id} -> {status}: {e}")
        print(f"    Error details logged to: {error_file}")
        outcome["error"] = str(e)
        return outcome


def process_next_task(task_type: Optional[TaskType] = None) -> dict[str, Any]:
    """
    Claim and run the oldest pending task, optionally of one type.

    Never raises; storage problems are reported in the 'error' field.

    Returns:
        Dictionary with 'processed' (bool) and, when a task was picked up,
        'task_id', 'task_type' and possibly 'error' and 'result'
    """
    try:
        task = claim_next_task(task_type)
        if task is None:
            return {"processed": False}
        return execute_task(task)
    except Exception as e:
        error_file = log_notification_error(
            error_type="task",
            error_message=str(e),
            context={"stage": "process_next_task", "task_type": task_type},
        )
        print(f"  ✗ Task processing error. Details logged to: {error_file}")
        return {"processed": False, "error": str(e)}
