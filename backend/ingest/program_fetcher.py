"""
Candidate program fetching shared by the task pipeline and the direct orchestrator.

Two views of the catalog feed the notification pipeline:
- new programs announced since the last checkpoint
- programs whose deadline is approaching
"""

from datetime import date
from typing import Optional

from config.pipeline_settings import FETCH_PAGE_SIZE
from ingest.bizinfo_client import BizinfoClient
from models.program import GovSupportProgram, SearchFilters
from shared.utils import parse_date


def fetch_new_opportunities(
    since: Optional[str],
    client: Optional[BizinfoClient] = None,
    today: Optional[date] = None,
) -> list[GovSupportProgram]:
    """
    Fetch programs announced since a checkpoint.

    Without a checkpoint (first run) the catalog's this-week window is used.
    Comparison is by announcement day, so programs announced on the checkpoint
    day are fetched again; the sent ledger suppresses repeat deliveries.

    Args:
        since: ISO timestamp of the last successful check, or None
        client: Catalog client (defaults to a new BizinfoClient)
        today: Reference date for the this-week window

    Returns:
        List of programs, possibly empty

    Raises:
        ProgramSourceError: If the catalog is unavailable
    """
    client = client or BizinfoClient()
    filters = SearchFilters(this_week_only=since is None)
    result = client.search_support_programs(
        filters, page=1, page_size=FETCH_PAGE_SIZE, today=today
    )

    programs = result.items
    if since:
        since_date = parse_date(since)
        if since_date is not None:
            programs = [
                p
                for p in programs
                if (announced := parse_date(p.announcement_date)) is not None
                and announced >= since_date
            ]

    print(f"  ✓ Found {len(programs)} new programs since {since or 'initial check'}")
    return programs


def fetch_deadline_programs(
    client: Optional[BizinfoClient] = None,
    today: Optional[date] = None,
) -> list[GovSupportProgram]:
    """
    Fetch programs whose application deadline is approaching.

    Raises:
        ProgramSourceError: If the catalog is unavailable
    """
    client = client or BizinfoClient()
    result = client.search_support_programs(
        SearchFilters(ending_soon=True), page=1, page_size=FETCH_PAGE_SIZE, today=today
    )

    print(f"  ✓ Found {len(result.items)} programs with upcoming deadlines")
    return result.items
