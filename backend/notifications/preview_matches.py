"""
Preview which programs one user would be notified about.

Fetches current programs from the catalog and runs the matcher for a single
user without generating or queuing anything (unless --queue is given).

Usage:
    # New-program matches for a user
    uv run python -m notifications.preview_matches --user-id <uuid>

    # Deadline matches for a user
    uv run python -m notifications.preview_matches --user-id <uuid> --deadline

    # Also queue the generated notifications
    uv run python -m notifications.preview_matches --user-id <uuid> --queue
"""

import argparse
from datetime import date

from ingest.bizinfo_client import ProgramSourceError, is_ending_soon
from ingest.program_fetcher import fetch_deadline_programs, fetch_new_opportunities
from models.types import MessageType
from notifications.notification_generator import (
    generate_notifications,
    process_matches_into_notifications,
)
from notifications.preference_store import get_settings
from notifications.program_matcher import match_user_preferences_with_opportunities


def preview_matches(user_id: str, deadline: bool = False, should_queue: bool = False) -> None:
    """
    Print one user's matches and the messages they would receive.

    Args:
        user_id: User to preview
        deadline: Use the deadline check instead of new programs
        should_queue: If True, actually queue the notifications
    """
    notification_type: MessageType = "deadline" if deadline else "new_program"

    settings = get_settings(user_id)
    if settings is None:
        print(f"No notification settings found for user {user_id}")
        return

    print("Previewing Notification Matches")
    print("=" * 60)
    print(f"User: {user_id}")
    print(f"Regions: {settings.regions or '(any)'}")
    print(f"Categories: {settings.categories or '(any)'}")
    print(f"Type: {notification_type}")
    print()

    try:
        if deadline:
            today = date.today()
            programs = [
                p
                for p in fetch_deadline_programs(today=today)
                if is_ending_soon(p, today, settings.deadline_days)
            ]
        else:
            programs = fetch_new_opportunities(None)
    except ProgramSourceError as e:
        print(f"✗ Could not fetch programs: {e}")
        return

    matches = match_user_preferences_with_opportunities(
        user_id, programs, settings, notification_type=notification_type
    )
    new_matches = [m for m in matches if not m.is_already_sent]
    already_sent = len(matches) - len(new_matches)

    if not new_matches:
        print(f"No matches among {len(programs)} program(s)")
        if already_sent:
            print(f"({already_sent} program(s) were already sent to this user)")
        return

    print(f"Found {len(new_matches)} match(es) among {len(programs)} program(s):")
    print("-" * 60)
    for match in new_matches:
        print(f"  [{match.match_score}점] {match.program.title}")
        print(f"    regions={match.matched_regions} categories={match.matched_categories}")
    if already_sent:
        print(f"  ({already_sent} already sent, skipped)")
    print()

    if should_queue:
        print("Queuing notifications...")
        counts = process_matches_into_notifications(new_matches, notification_type)
        print(f"✓ Queued {counts['queued']} notification(s), {counts['failed']} failed")
    else:
        print("Dry run mode - would send the following:")
        for notification in generate_notifications(new_matches):
            print(f"  - {notification.title}")
            print("    " + notification.description.replace("\n", "\n    "))
        print()
        print("(Use --queue flag to actually queue these notifications)")

    print("=" * 60)


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Preview notification matches for one user")

    parser.add_argument("--user-id", required=True, help="User to preview")

    parser.add_argument(
        "--deadline",
        action="store_true",
        help="Preview deadline reminders instead of new-program notices",
    )

    parser.add_argument(
        "--queue",
        action="store_true",
        help="Actually queue the notifications (not just a dry run)",
    )

    args = parser.parse_args()
    preview_matches(args.user_id, deadline=args.deadline, should_queue=args.queue)


if __name__ == "__main__":
    main()
