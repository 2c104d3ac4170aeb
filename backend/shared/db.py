from supabase import create_client, Client
from dotenv import load_dotenv
import os

load_dotenv()


def get_supabase_client() -> Client:
    """Get initialized Supabase client (service role, bypasses RLS)."""
    url: str | None = os.getenv("SUPABASE_URL")
    key: str | None = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv(
        "SUPABASE_SERVICE_ROLE_KEY"
    )

    if not url or not key:
        raise ValueError(
            "SUPABASE_URL and SUPABASE_SERVICE_KEY (or SUPABASE_SERVICE_ROLE_KEY) must be set"
        )

    return create_client(url, key)


def is_duplicate_error(error: Exception) -> bool:
    """True when an insert failed on a unique constraint."""
    error_str = str(error).lower()
    return "duplicate" in error_str or "unique" in error_str or "23505" in error_str
