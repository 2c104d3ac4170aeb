"""
The "last new-program check" checkpoint (system_settings table).

The checkpoint is read at the start of a new-program fetch and passed along
explicitly. Writing it back is a compare-and-set on ``version`` so a stale
reader can never move it backwards over a newer run.
"""

from typing import Any, Optional, cast

from pydantic import BaseModel

from config.pipeline_settings import LAST_CHECK_SETTING_KEY
from shared.db import get_supabase_client, is_duplicate_error
from shared.utils import utc_now_iso

SETTINGS_TABLE = "system_settings"


class Checkpoint(BaseModel):
    value: Optional[str] = None
    version: int = 0


def read_checkpoint(key: str = LAST_CHECK_SETTING_KEY) -> Checkpoint:
    """Current checkpoint; version 0 with no value when it was never written."""
    supabase = get_supabase_client()
    response = (
        supabase.table(SETTINGS_TABLE)
        .select("value, version")
        .eq("key", key)
        .limit(1)
        .execute()
    )
    if not response.data:
        return Checkpoint()
    row = cast(dict[str, Any], response.data[0])
    return Checkpoint(value=row.get("value"), version=row.get("version") or 0)


def advance_checkpoint(
    value: str, expected: Checkpoint, key: str = LAST_CHECK_SETTING_KEY
) -> bool:
    """
    Write ``value`` if the stored version still equals ``expected.version``.

    Returns:
        True if written, False if another run advanced it first
    """
    supabase = get_supabase_client()
    now = utc_now_iso()

    if expected.version == 0:
        try:
            supabase.table(SETTINGS_TABLE).insert(
                {"key": key, "value": value, "version": 1, "updated_at": now}
            ).execute()
            return True
        except Exception as e:
            if is_duplicate_error(e):
                return False
            raise

    response = (
        supabase.table(SETTINGS_TABLE)
        .update({"value": value, "version": expected.version + 1, "updated_at": now})
        .eq("key", key)
        .eq("version", expected.version)
        .execute()
    )
    return bool(response.data)
