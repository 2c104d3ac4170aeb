"""
Single-pass notification run without the task graph.

Runs new-program matching, deadline matching and a queue drain in one call.
Useful for manual runs and for deployments that do not keep a task table.
"""

import time
from typing import Any, Optional

from pydantic import BaseModel, Field

from config.pipeline_settings import DEFAULT_DRAIN_LIMIT
from ingest.bizinfo_client import ProgramSourceError
from ingest.program_fetcher import fetch_deadline_programs, fetch_new_opportunities
from models.notification import NotificationGenerationOptions
from models.program import GovSupportProgram
from models.types import MessageType
from notifications.message_queue import process_message_queue
from notifications.notification_generator import (
    process_grouped_matches_into_notifications,
)
from notifications.program_matcher import match_opportunities_with_users
from shared.utils import utc_now_iso
from tasks.checkpoint import advance_checkpoint, read_checkpoint


class OrchestrationOptions(BaseModel):
    check_new_programs: bool = True
    check_deadlines: bool = True
    process_message_queue: bool = True
    max_messages_processed: int = Field(DEFAULT_DRAIN_LIMIT, gt=0)
    notification_options: NotificationGenerationOptions = Field(
        default_factory=NotificationGenerationOptions
    )


def _match_and_queue(
    programs: list[GovSupportProgram],
    notification_type: MessageType,
    options: OrchestrationOptions,
    result: dict[str, Any],
) -> None:
    matches = match_opportunities_with_users(programs, notification_type)
    match_count = sum(len(user_matches) for user_matches in matches.values())
    result["matches_found"] += match_count
    print(f"  Found {match_count} {notification_type} matches for {len(matches)} users")

    if match_count == 0:
        return

    counts = process_grouped_matches_into_notifications(
        matches, notification_type, options.notification_options
    )
    result["notifications_generated"] += counts["generated"]
    result["notifications_queued"] += counts["queued"]
    result["errors"] += counts["failed"]


def orchestrate_notification_processing(
    options: Optional[OrchestrationOptions] = None,
) -> dict[str, Any]:
    """
    Run the whole notification pipeline once.

    Fetch failures are counted and reported as warnings; the remaining
    stages still run. The checkpoint only moves when the new-program fetch
    succeeded.

    Returns:
        Dictionary with new_opportunities, matches_found,
        notifications_generated, notifications_queued, messages_sent,
        errors, timestamp, duration (ms) and warnings
    """
    options = options or OrchestrationOptions()
    start = time.monotonic()
    result: dict[str, Any] = {
        "new_opportunities": 0,
        "matches_found": 0,
        "notifications_generated": 0,
        "notifications_queued": 0,
        "messages_sent": 0,
        "errors": 0,
        "timestamp": utc_now_iso(),
        "duration": 0,
        "warnings": [],
    }

    try:
        if options.check_new_programs:
            checkpoint = read_checkpoint()
            print(f"Last check timestamp: {checkpoint.value or 'none'}")
            try:
                programs = fetch_new_opportunities(checkpoint.value)
            except ProgramSourceError as e:
                result["errors"] += 1
                result["warnings"].append(f"New program fetch failed: {e}")
                print(f"  ✗ New program fetch failed: {e}")
            else:
                result["new_opportunities"] += len(programs)
                if programs:
                    _match_and_queue(programs, "new_program", options, result)
                if not advance_checkpoint(result["timestamp"], checkpoint):
                    result["warnings"].append("Failed to update last check timestamp")

        if options.check_deadlines:
            try:
                programs = fetch_deadline_programs()
            except ProgramSourceError as e:
                result["errors"] += 1
                result["warnings"].append(f"Deadline program fetch failed: {e}")
                print(f"  ✗ Deadline program fetch failed: {e}")
            else:
                if programs:
                    _match_and_queue(programs, "deadline", options, result)

        if options.process_message_queue:
            queue_result = process_message_queue(options.max_messages_processed)
            result["messages_sent"] = queue_result["sent"]
            result["errors"] += queue_result["failed"]

    except Exception as e:
        result["errors"] += 1
        result["warnings"].append(f"Unexpected error: {e}")
        print(f"  ✗ Unexpected orchestration error: {e}")

    finally:
        result["duration"] = int((time.monotonic() - start) * 1000)
        print(f"Notification processing completed in {result['duration']}ms")

    return result
