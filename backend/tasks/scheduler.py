"""
Scheduler entry point for the notification task graph.

An external scheduler (cron, Supabase scheduled function, GitHub Actions)
calls this once per tick. Each call either starts a new cycle, runs one task
of a given type, resets retrying tasks, or drains up to ``maxTasks`` pending
tasks.

Usage:
    # Start a new notification cycle
    uv run python -m tasks.scheduler --action initialize

    # Drain up to 5 pending tasks (default action)
    uv run python -m tasks.scheduler --max-tasks 5

    # Run the next pending task of one type
    uv run python -m tasks.scheduler --action process-specific --task-type send

    # Move tasks waiting in 'retry' back to 'pending'
    uv run python -m tasks.scheduler --action reset-retries
"""

import argparse
import json
import os
import sys
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config.pipeline_settings import DEFAULT_MAX_TASKS_PER_RUN
from models.task import InitParameters
from models.types import TaskType
from notifications.error_logger import log_notification_error
from shared.utils import utc_now_iso
from tasks.task_processor import process_next_task
from tasks.task_store import create_task, reset_retry_tasks

SchedulerAction = Literal["initialize", "process-specific", "reset-retries", "process"]


class SchedulerRequest(BaseModel):
    """Body of a scheduler call; every field is optional."""

    model_config = ConfigDict(populate_by_name=True)

    action: SchedulerAction = "process"
    task_type: Optional[TaskType] = Field(None, alias="taskType")
    max_tasks: int = Field(DEFAULT_MAX_TASKS_PER_RUN, alias="maxTasks", gt=0)


def is_authorized_request(headers: Mapping[str, str]) -> bool:
    """
    Scheduler invocations are trusted; manual calls need the shared secret.

    Accepts either ``x-supabase-invoked-by: scheduler`` or
    ``Authorization: Bearer <SCHEDULER_SECRET>``.
    """
    normalized = {key.lower(): value for key, value in headers.items()}
    if normalized.get("x-supabase-invoked-by") == "scheduler":
        return True

    secret = os.getenv("SCHEDULER_SECRET")
    if not secret:
        return False

    scheme, _, token = normalized.get("authorization", "").partition(" ")
    return scheme.lower() == "bearer" and token == secret


def _response(success: bool, message: str, results: Any = None) -> dict[str, Any]:
    return {
        "success": success,
        "message": message,
        "results": results,
        "timestamp": utc_now_iso(),
    }


def _drain(max_tasks: int) -> dict[str, Any]:
    reset_count = reset_retry_tasks()
    if reset_count:
        print(f"→ Reset {reset_count} retrying task(s) to pending")

    results = []
    for _ in range(max_tasks):
        outcome = process_next_task()
        if not outcome["processed"]:
            if not results:
                return _response(False, outcome.get("error") or "No tasks to process", [])
            break
        results.append(outcome)

    return _response(True, f"Processed {len(results)} tasks", results)


def handle_scheduler_request(
    payload: Optional[Mapping[str, Any]] = None,
) -> tuple[dict[str, Any], int]:
    """
    Run one scheduler call.

    Args:
        payload: Optional {action, taskType, maxTasks}

    Returns:
        (JSON summary, HTTP-style status code). Bad payloads give 400 and
        unexpected errors give 500; nothing is raised.
    """
    try:
        request = SchedulerRequest.model_validate(dict(payload or {}))
    except ValidationError as e:
        return {
            "success": False,
            "error": f"Invalid request: {e.error_count()} error(s)",
            "timestamp": utc_now_iso(),
        }, 400

    try:
        if request.action == "initialize":
            task = create_task(
                "init", InitParameters(timestamp=utc_now_iso(), source="scheduler")
            )
            print(f"✓ Created init task {task.id}")
            return _response(True, "Notification cycle initialized", {"task_id": task.id}), 200

        if request.action == "process-specific":
            if request.task_type is None:
                return {
                    "success": False,
                    "error": "taskType is required for process-specific",
                    "timestamp": utc_now_iso(),
                }, 400
            outcome = process_next_task(request.task_type)
            if outcome["processed"]:
                message = f"Processed task {outcome['task_id']} of type {outcome['task_type']}"
            else:
                message = outcome.get("error") or "No tasks processed"
            return _response(outcome["processed"], message, outcome), 200

        if request.action == "reset-retries":
            reset_count = reset_retry_tasks()
            message = f"Reset {reset_count} retrying tasks"
            return _response(True, message, {"reset_count": reset_count}), 200

        return _drain(request.max_tasks), 200

    except Exception as e:
        error_file = log_notification_error(
            error_type="task",
            error_message=str(e),
            context={"stage": "scheduler", "action": request.action},
        )
        print(f"✗ Scheduler error. Details logged to: {error_file}")
        return {"success": False, "error": str(e), "timestamp": utc_now_iso()}, 500


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Run one notification scheduler tick")

    parser.add_argument(
        "--action",
        choices=["initialize", "process-specific", "reset-retries", "process"],
        default="process",
        help="What to do (default: drain pending tasks)",
    )

    parser.add_argument(
        "--task-type",
        choices=["init", "fetch", "match", "generate", "send", "cleanup"],
        help="Task type for --action process-specific",
    )

    parser.add_argument(
        "--max-tasks",
        type=int,
        default=DEFAULT_MAX_TASKS_PER_RUN,
        help=f"Maximum tasks to run when draining (default: {DEFAULT_MAX_TASKS_PER_RUN})",
    )

    args = parser.parse_args()

    if args.action == "process-specific" and not args.task_type:
        parser.error("--task-type is required with --action process-specific")

    body, status = handle_scheduler_request(
        {"action": args.action, "taskType": args.task_type, "maxTasks": args.max_tasks}
    )
    print(json.dumps(body, ensure_ascii=False, indent=2, default=str))

    if status >= 400:
        sys.exit(1)


if __name__ == "__main__":
    main()
