"""
Message queue for outbound Kakao notifications (message_queue table).

Generated messages are inserted as pending rows; the drain reads the oldest
due rows, delivers each one and records the outcome on the row.

Retry policy: a transient delivery failure puts the row back to pending with
an exponential backoff (next_attempt_at) until it has failed
MAX_DELIVERY_ATTEMPTS times, after which it stays failed. Failures a retry
cannot fix (no linked account, rejected token) fail immediately.
"""

import random
from datetime import timedelta
from typing import Any, Callable, Optional

from pydantic import ValidationError

from config.pipeline_settings import (
    DEFAULT_DRAIN_LIMIT,
    DELIVERY_BACKOFF_BASE_SECONDS,
    DELIVERY_BACKOFF_MAX_SECONDS,
    MAX_DELIVERY_ATTEMPTS,
)
from models.notification import DeliveryResult, MessageContent, MessageQueueEntry
from models.types import MessageType, frequency_for
from notifications.error_logger import log_notification_error
from notifications.kakao_sender import send_kakao_notification
from notifications.preference_store import unlink_kakao
from notifications.sent_ledger import record_sent
from shared.db import get_supabase_client, is_duplicate_error
from shared.utils import utc_now

QUEUE_TABLE = "message_queue"


def find_pending_message(
    supabase: Any, user_id: str, program_id: str, message_type: MessageType
) -> Optional[dict[str, Any]]:
    """The pending row already queued for this user, program and type, if any."""
    response = (
        supabase.table(QUEUE_TABLE)
        .select("id")
        .eq("user_id", user_id)
        .eq("program_id", program_id)
        .eq("message_type", message_type)
        .eq("status", "pending")
        .limit(1)
        .execute()
    )
    return response.data[0] if response.data else None


def create_message_queue_entry(
    user_id: str,
    program_id: str,
    title: str,
    url: str,
    message_type: MessageType,
    content: str = "",
) -> dict[str, Any]:
    """
    Insert a pending message.

    At most one pending row exists per (user, program, message type); queuing
    the same pair again while a row is pending leaves the existing row alone.

    Args:
        user_id: Recipient
        program_id: Program the message is about
        title: Program title
        url: Link target for the message
        message_type: 'new_program' or 'deadline'
        content: Generated description text

    Returns:
        Dictionary with 'success' (bool), 'already_queued' (True when an
        existing pending row was kept) and 'error' (str if failed)
    """
    payload = MessageContent(
        title=title,
        description=content or "",
        program_id=program_id,
        program_url=url,
        message_type=message_type,
    )
    now = utc_now().isoformat()

    try:
        supabase = get_supabase_client()
        if find_pending_message(supabase, user_id, program_id, message_type):
            return {"success": True, "already_queued": True}

        supabase.table(QUEUE_TABLE).insert(
            {
                "user_id": user_id,
                "program_id": program_id,
                "content": payload.model_dump(mode="json"),
                "program_url": url,
                "message_type": message_type,
                "status": "pending",
                "retry_count": 0,
                "created_at": now,
                "updated_at": now,
            },
            returning="minimal",
        ).execute()
        return {"success": True}
    except Exception as e:
        # Partial unique index on pending rows
        if is_duplicate_error(e):
            return {"success": True, "already_queued": True}
        return {"success": False, "error": str(e)}


def calculate_backoff_seconds(
    retry_count: int, jitter: Callable[[], float] = random.random
) -> float:
    """Exponential backoff from one minute, capped at a day, with +/-30% jitter."""
    delay = min(
        DELIVERY_BACKOFF_BASE_SECONDS * (2**retry_count), DELIVERY_BACKOFF_MAX_SECONDS
    )
    return delay + delay * 0.3 * (jitter() * 2 - 1)


def fetch_due_messages(supabase: Any, limit: int) -> list[dict[str, Any]]:
    """Oldest pending rows whose backoff (if any) has elapsed."""
    now = utc_now().isoformat()
    response = (
        supabase.table(QUEUE_TABLE)
        .select("*")
        .eq("status", "pending")
        .or_(f"next_attempt_at.is.null,next_attempt_at.lte.{now}")
        .order("created_at", desc=False)
        .limit(limit)
        .execute()
    )
    return response.data or []


def _update_message(supabase: Any, message_id: Any, fields: dict[str, Any]) -> None:
    fields["updated_at"] = utc_now().isoformat()
    supabase.table(QUEUE_TABLE).update(fields).eq("id", message_id).execute()


def _record_failure(
    supabase: Any, message: MessageQueueEntry, result: DeliveryResult
) -> str:
    """
    Persist a failed attempt.

    Returns:
        'requeued' if the row went back to pending, 'failed' otherwise
    """
    retry_count = message.retry_count + 1
    error = result.error or "Unknown delivery error"

    if result.permanent or retry_count >= MAX_DELIVERY_ATTEMPTS:
        _update_message(
            supabase,
            message.id,
            {"status": "failed", "error_message": error, "retry_count": retry_count},
        )
        return "failed"

    next_attempt = utc_now() + timedelta(seconds=calculate_backoff_seconds(retry_count))
    _update_message(
        supabase,
        message.id,
        {
            "status": "pending",
            "error_message": error,
            "retry_count": retry_count,
            "next_attempt_at": next_attempt.isoformat(),
        },
    )
    return "requeued"


def _record_delivery(supabase: Any, message: MessageQueueEntry) -> None:
    """
    Mark a delivered row sent and write the ledger.

    Errors are logged; the row never goes back to the retry path.
    """
    problems = []
    try:
        _update_message(
            supabase,
            message.id,
            {"status": "sent", "sent_at": utc_now().isoformat(), "error_message": None},
        )
    except Exception as e:
        problems.append(f"status update failed: {e}")

    try:
        if not record_sent(
            message.user_id, message.content.program_id, frequency_for(message.message_type)
        ):
            problems.append("ledger insert failed")
    except Exception as e:
        problems.append(f"ledger insert failed: {e}")

    if problems:
        error_file = log_notification_error(
            error_type="sending",
            error_message="; ".join(problems),
            context={
                "stage": "after_delivery",
                "message_id": message.id,
                "user_id": message.user_id,
                "program_id": message.content.program_id,
            },
        )
        print(
            f"  ⚠️  Message {message.id} delivered but not fully recorded. Details logged to: {error_file}"
        )


def process_message_queue(limit: int = DEFAULT_DRAIN_LIMIT) -> dict[str, int]:
    """
    Deliver up to ``limit`` due messages, oldest first.

    Delivery problems never raise; they are recorded on the row and counted.

    Returns:
        Dictionary with counts: sent, failed, requeued, simulated
        (simulated sends are included in sent)
    """
    stats = {"sent": 0, "failed": 0, "requeued": 0, "simulated": 0}

    try:
        supabase = get_supabase_client()
        rows = fetch_due_messages(supabase, limit)
    except Exception as e:
        error_file = log_notification_error(
            error_type="sending",
            error_message=str(e),
            context={"stage": "fetch_message_queue", "limit": limit},
        )
        print(f"  ⚠️  Error reading message queue. Details logged to: {error_file}")
        return stats

    if not rows:
        print("No pending messages to send.")
        return stats

    print(f"Sending {len(rows)} queued message(s)...")

    for row in rows:
        try:
            try:
                message = MessageQueueEntry.model_validate(row)
            except ValidationError as e:
                print(f"  ✗ Malformed queue row {row.get('id')}: {e.error_count()} error(s)")
                _update_message(
                    supabase,
                    row.get("id"),
                    {"status": "failed", "error_message": "Malformed queue row"},
                )
                stats["failed"] += 1
                continue

            try:
                result = send_kakao_notification(
                    message.user_id, message.content, message.program_url
                )
            except Exception as e:
                result = DeliveryResult(success=False, error=str(e))

            if result.success:
                stats["sent"] += 1
                if result.simulated:
                    stats["simulated"] += 1
                print(f"  ✓ Sent message {message.id} to user {message.user_id}")
                _record_delivery(supabase, message)
                continue

            if result.token_expired:
                unlink_kakao(message.user_id)

            outcome = _record_failure(supabase, message, result)
            stats[outcome] += 1
            print(f"  ✗ Message {message.id} {outcome}: {result.error}")

            if outcome == "failed":
                log_notification_error(
                    error_type="sending",
                    error_message=result.error or "Unknown delivery error",
                    context={
                        "message_id": message.id,
                        "user_id": message.user_id,
                        "program_id": message.content.program_id,
                        "retry_count": message.retry_count + 1,
                    },
                )

        except Exception as e:
            stats["failed"] += 1
            error_file = log_notification_error(
                error_type="sending",
                error_message=str(e),
                context={"message_id": row.get("id"), "user_id": row.get("user_id")},
            )
            print(f"  ✗ Error updating message {row.get('id')}. Details logged to: {error_file}")

    return stats
