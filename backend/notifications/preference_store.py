"""
Read access to per-user notification preferences.

Backed by the user_notification_settings table, which the settings UI owns.
The pipeline only reads it, apart from unlinking a Kakao account whose token
the Kakao API has rejected.
"""

from typing import Optional

from pydantic import ValidationError

from models.notification import NotificationSettings
from models.types import MessageType
from notifications.error_logger import log_notification_error
from shared.db import get_supabase_client
from shared.utils import utc_now_iso

SETTINGS_TABLE = "user_notification_settings"
SETTINGS_COLUMNS = (
    "id, user_id, kakao_linked, new_programs_alert, deadline_notification, "
    "deadline_days, notification_frequency, notification_time, regions, categories, "
    "created_at, updated_at"
)


def get_settings(user_id: str) -> Optional[NotificationSettings]:
    """Notification settings for one user, or None if the user has none."""
    supabase = get_supabase_client()
    response = (
        supabase.table(SETTINGS_TABLE)
        .select(SETTINGS_COLUMNS)
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    if not response.data:
        return None
    return NotificationSettings.model_validate(response.data[0])


def list_eligible_users(alert_type: MessageType) -> list[NotificationSettings]:
    """
    Users who should receive a given notification type.

    Eligible means the Kakao account is linked and the matching alert flag
    (new_programs_alert or deadline_notification) is on. Rows that fail
    validation are logged and skipped.
    """
    alert_column = (
        "new_programs_alert" if alert_type == "new_program" else "deadline_notification"
    )
    supabase = get_supabase_client()
    response = (
        supabase.table(SETTINGS_TABLE)
        .select(SETTINGS_COLUMNS)
        .eq("kakao_linked", True)
        .eq(alert_column, True)
        .execute()
    )
    users = []
    for row in response.data or []:
        try:
            users.append(NotificationSettings.model_validate(row))
        except ValidationError as e:
            error_file = log_notification_error(
                error_type="preferences",
                error_message=str(e),
                context={
                    "user_id": row.get("user_id"),
                    "settings_id": row.get("id"),
                    "alert_type": alert_type,
                },
            )
            print(
                f"  ⚠️  Skipping invalid settings for user {row.get('user_id')}. Details logged to: {error_file}"
            )
    return users


def get_channel_credential(user_id: str) -> Optional[str]:
    """The user's Kakao access token, or None if no account is linked."""
    supabase = get_supabase_client()
    response = (
        supabase.table(SETTINGS_TABLE)
        .select("kakao_token")
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    if not response.data:
        return None
    return response.data[0].get("kakao_token") or None


def unlink_kakao(user_id: str) -> None:
    """Mark a user's Kakao link as broken so they stop being eligible."""
    supabase = get_supabase_client()
    supabase.table(SETTINGS_TABLE).update(
        {"kakao_linked": False, "updated_at": utc_now_iso()}
    ).eq("user_id", user_id).execute()
