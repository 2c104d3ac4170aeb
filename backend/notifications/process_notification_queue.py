"""
CLI script for draining the Kakao message queue once.

Usage:
    # Deliver up to 50 due messages
    uv run python -m notifications.process_notification_queue

    # Deliver up to 200 due messages
    uv run python -m notifications.process_notification_queue --limit 200
"""

import argparse

from config.pipeline_settings import DEFAULT_DRAIN_LIMIT, simulate_delivery
from notifications.message_queue import process_message_queue
from shared.utils import print_summary


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Deliver pending notification messages via KakaoTalk"
    )

    parser.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_DRAIN_LIMIT,
        help=f"Maximum messages to deliver (default: {DEFAULT_DRAIN_LIMIT})",
    )

    args = parser.parse_args()

    if args.limit <= 0:
        parser.error("--limit must be positive")

    if simulate_delivery():
        print("⚠️  KAKAO_REST_API_KEY not set or simulation forced: deliveries are simulated")

    stats = process_message_queue(limit=args.limit)
    print_summary("Message Queue Processing Complete", stats)


if __name__ == "__main__":
    main()
