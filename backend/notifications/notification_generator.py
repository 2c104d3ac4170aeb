"""
Turns match results into message content and queues it for delivery.

Generation is type-agnostic: every message is built the same way and the
new_program/deadline type is decided when the batch is queued.
"""

from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError

from config.pipeline_settings import NATIONWIDE, PROGRAM_DETAIL_URL
from models.notification import (
    MatchResult,
    NotificationGenerationOptions,
    NotificationMessage,
)
from models.types import MessageType
from notifications.error_logger import log_notification_error
from notifications.message_queue import create_message_queue_entry


def _coerce_matches(matches: Any) -> list[MatchResult]:
    """Accept MatchResult models or their JSON form (as carried by task payloads)."""
    if not matches or not isinstance(matches, (list, tuple)):
        return []
    return [
        m if isinstance(m, MatchResult) else MatchResult.model_validate(m)
        for m in matches
    ]


def build_description(
    match: MatchResult, options: NotificationGenerationOptions
) -> str:
    """Description text: summary, program details and matched preferences."""
    program = match.program
    sections: list[str] = []

    if options.include_description and program.description:
        text = program.description
        if len(text) > options.max_description_length:
            text = text[: options.max_description_length] + "..."
        sections.append(text)

    if options.include_program_details:
        region_text = ", ".join(program.geographic_regions) or program.region or NATIONWIDE
        details = [f"지역: {region_text}"]
        if program.support_area:
            details.append(f"분야: {program.support_area}")
        if program.application_deadline:
            details.append(f"마감일: {program.application_deadline}")
        if program.amount:
            details.append(f"지원금: {program.amount}")
        sections.append("\n".join(details))

    if options.highlight_matches and (match.matched_regions or match.matched_categories):
        lines = ["🔍 매칭 정보:"]
        if match.matched_regions:
            lines.append(f"- 지역: {', '.join(match.matched_regions)}")
        if match.matched_categories:
            lines.append(f"- 분야: {', '.join(match.matched_categories)}")
        lines.append(f"- 매칭 점수: {match.match_score}점")
        sections.append("\n".join(lines))

    return "\n\n".join(sections)


def generate_notifications(
    matches: Iterable[MatchResult] | None,
    options: Optional[NotificationGenerationOptions] = None,
) -> list[NotificationMessage]:
    """
    Build message content from match results.

    Matches are grouped by user, each user's list sorted by score and capped
    at max_messages_per_user. Already-sent entries are dropped. Empty or
    malformed input yields an empty list.
    """
    options = options or NotificationGenerationOptions()

    try:
        parsed = _coerce_matches(list(matches) if matches is not None else [])
    except (ValidationError, TypeError) as e:
        print(f"  ⚠️  Ignoring malformed match input: {e}")
        return []

    matches_by_user: dict[str, list[MatchResult]] = {}
    for match in parsed:
        if match.is_already_sent:
            continue
        matches_by_user.setdefault(match.user_id, []).append(match)

    notifications: list[NotificationMessage] = []
    for user_id, user_matches in matches_by_user.items():
        top_matches = sorted(user_matches, key=lambda m: m.match_score, reverse=True)[
            : options.max_messages_per_user
        ]

        for match in top_matches:
            program = match.program
            notifications.append(
                NotificationMessage(
                    user_id=user_id,
                    program_id=program.id,
                    title=program.title,
                    description=build_description(match, options),
                    program_url=program.application_url
                    or PROGRAM_DETAIL_URL.format(program_id=program.id),
                    message_type="new_program",
                )
            )

    return notifications


def queue_notifications(
    notifications: list[NotificationMessage],
    message_type: MessageType = "new_program",
) -> dict[str, int]:
    """
    Insert one queue row per notification.

    The supplied message_type overrides each notification's own field. One
    failed insert does not stop the rest. Pairs that already have a pending
    row count as neither queued nor failed.

    Returns:
        Dictionary with counts: queued, failed
    """
    queued = 0
    failures = []

    for notification in notifications:
        result = create_message_queue_entry(
            notification.user_id,
            notification.program_id,
            notification.title,
            notification.program_url,
            message_type,
            notification.description,
        )
        if result.get("already_queued"):
            print(
                f"  → Already queued for user {notification.user_id}: {notification.program_id}"
            )
        elif result["success"]:
            queued += 1
        else:
            failures.append(
                {
                    "user_id": notification.user_id,
                    "program_id": notification.program_id,
                    "error": result.get("error"),
                }
            )
            print(
                f"  ⚠ Could not queue notification for user {notification.user_id}: {result.get('error')}"
            )

    if failures:
        log_notification_error(
            error_type="queuing",
            error_message=f"Failed to queue {len(failures)} notification(s)",
            context={"message_type": message_type, "failures": failures},
        )

    return {"queued": queued, "failed": len(failures)}


def process_matches_into_notifications(
    matches: list[MatchResult] | None,
    message_type: MessageType = "new_program",
    options: Optional[NotificationGenerationOptions] = None,
) -> dict[str, int]:
    """
    Generate and queue notifications for a list of matches.

    Returns:
        Dictionary with counts: generated, queued, failed
    """
    if not matches:
        return {"generated": 0, "queued": 0, "failed": 0}

    notifications = generate_notifications(matches, options)
    if not notifications:
        return {"generated": 0, "queued": 0, "failed": 0}

    result = queue_notifications(notifications, message_type)
    return {
        "generated": len(notifications),
        "queued": result["queued"],
        "failed": result["failed"],
    }


def process_grouped_matches_into_notifications(
    matches_by_user: Mapping[str, list[MatchResult]] | None,
    message_type: MessageType = "new_program",
    options: Optional[NotificationGenerationOptions] = None,
) -> dict[str, int]:
    """Generate and queue notifications for matches grouped by user id."""
    totals = {"generated": 0, "queued": 0, "failed": 0}
    if not matches_by_user:
        return totals

    for user_matches in matches_by_user.values():
        result = process_matches_into_notifications(user_matches, message_type, options)
        for key in totals:
            totals[key] += result[key]

    return totals
