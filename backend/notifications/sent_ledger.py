"""
Ledger of delivered notifications (sent_notifications table).

The matching engine reads it to skip programs a user has already been told
about; the queue drain writes it after each successful delivery.
"""

from typing import Optional

from models.types import SentFrequency
from shared.db import get_supabase_client, is_duplicate_error
from shared.utils import utc_now_iso

LEDGER_TABLE = "sent_notifications"


def list_sent_ids(user_id: str, frequency: Optional[SentFrequency] = None) -> set[str]:
    """Program ids already delivered to a user, optionally of one frequency only."""
    supabase = get_supabase_client()
    query = (
        supabase.table(LEDGER_TABLE).select("opportunity_id").eq("user_id", user_id)
    )
    if frequency:
        query = query.eq("frequency", frequency)
    response = query.execute()
    return {row["opportunity_id"] for row in response.data or []}


def has_been_sent(user_id: str, program_id: str) -> bool:
    supabase = get_supabase_client()
    response = (
        supabase.table(LEDGER_TABLE)
        .select("id")
        .eq("user_id", user_id)
        .eq("opportunity_id", program_id)
        .limit(1)
        .execute()
    )
    return bool(response.data)


def record_sent(user_id: str, program_id: str, frequency: SentFrequency) -> bool:
    """
    Record a delivery.

    A unique constraint on (user_id, opportunity_id, frequency) keeps one row
    per notification type; hitting it means the delivery is already recorded.

    Returns:
        True if the row was written or already existed, False on other errors
    """
    supabase = get_supabase_client()
    try:
        supabase.table(LEDGER_TABLE).insert(
            {
                "user_id": user_id,
                "opportunity_id": program_id,
                "frequency": frequency,
                "sent_at": utc_now_iso(),
            },
            returning="minimal",
        ).execute()
        return True
    except Exception as e:
        if is_duplicate_error(e):
            return True
        print(f"  ⚠ Could not record sent notification for user {user_id}: {e}")
        return False
