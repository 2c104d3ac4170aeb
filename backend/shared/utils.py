from datetime import date, datetime, timezone
from typing import Any

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from config.pipeline_settings import OPEN_ENDED_DEADLINES


def parse_date_string(date_str: str | None) -> str | None:
    """Parse various date formats into ISO format."""
    if not date_str:
        return None
    try:
        dt = date_parser.parse(date_str, fuzzy=True)
        return str(dt.isoformat())
    except (ValueError, OverflowError, TypeError):
        return None


def parse_date(date_str: str | None) -> date | None:
    """Parse a date-ish string into a calendar date, or None."""
    iso = parse_date_string(date_str)
    if iso is None:
        return None
    return datetime.fromisoformat(iso).date()


def is_open_ended_deadline(deadline: str | None) -> bool:
    """Sentinel deadlines ("진행중", "상시", ...) mean there is no fixed end date."""
    if not deadline:
        return True
    return deadline.strip() in OPEN_ENDED_DEADLINES


def parse_deadline(deadline: str | None) -> date | None:
    """Deadline as a date; None for sentinels and anything unparseable."""
    if is_open_ended_deadline(deadline):
        return None
    return parse_date(deadline)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def clean_html_text(content: str | None) -> str:
    """Strip markup from upstream descriptions and collapse whitespace."""
    if not content:
        return ""
    if "<" not in content:
        return " ".join(content.split())
    soup = BeautifulSoup(content, "html.parser")
    return " ".join(soup.get_text(" ", strip=True).split())


def print_summary(title: str, stats: dict[str, Any]) -> None:
    """Print processing summary."""
    print(f"\n{'=' * 60}")
    print(f"[{datetime.now()}] {title}")
    print(f"{'=' * 60}")
    for key, value in stats.items():
        label = key.replace("_", " ").capitalize()
        print(f"{label + ':':<24}{value}")
    print(f"{'=' * 60}\n")
