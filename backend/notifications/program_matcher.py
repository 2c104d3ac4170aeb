"""
Matching logic for the notification system.

Scores government support programs against each user's region and category
preferences and filters out programs the user has already been notified about.
"""

import math
from datetime import date
from typing import Optional

from config.pipeline_settings import NATIONWIDE
from ingest.bizinfo_client import is_ending_soon
from models.notification import MatchingParameters, MatchResult, NotificationSettings
from models.program import GovSupportProgram
from models.types import MessageType, frequency_for
from notifications.error_logger import log_notification_error
from notifications.preference_store import get_settings, list_eligible_users
from notifications.sent_ledger import list_sent_ids


def score_regions(
    user_regions: list[str], program: GovSupportProgram
) -> tuple[float, list[str]]:
    """
    Region score (0-100) and the regions that matched.

    A nationwide program scores 100 for everyone. Otherwise the score is the
    share of the user's regions found (by substring) in the program's regions.
    No region preference means any region is acceptable.
    """
    if not user_regions:
        return 100.0, []

    program_regions = program.combined_regions()
    if NATIONWIDE in program_regions:
        return 100.0, [NATIONWIDE]

    matched = [
        region
        for region in user_regions
        if any(region in program_region for program_region in program_regions)
    ]
    return len(matched) / len(user_regions) * 100, matched


def score_categories(
    user_categories: list[str], program: GovSupportProgram
) -> tuple[float, list[str]]:
    """Category score (0-100) against the program's support area."""
    if not user_categories:
        return 100.0, []

    program_categories = [program.support_area] if program.support_area else []
    matched = [
        category
        for category in user_categories
        if any(category in program_category for program_category in program_categories)
    ]
    return len(matched) / len(user_categories) * 100, matched


def weighted_score(
    region_score: float, category_score: float, params: MatchingParameters
) -> float:
    total_weight = params.region_weight + params.category_weight
    return (
        region_score * params.region_weight + category_score * params.category_weight
    ) / total_weight


def match_user_preferences_with_opportunities(
    user_id: str,
    programs: list[GovSupportProgram],
    settings: Optional[NotificationSettings] = None,
    params: Optional[MatchingParameters] = None,
    notification_type: Optional[MessageType] = None,
) -> list[MatchResult]:
    """
    Match one user's preferences against candidate programs.

    Programs already in the user's sent ledger come back as zero-score entries
    with is_already_sent=True; callers must drop them before generating
    messages. Storage failures are logged and yield an empty list.

    Args:
        user_id: User to match for
        programs: Candidate programs
        settings: Pre-loaded settings (loaded from the preference store if None)
        params: Threshold and axis weights
        notification_type: When given, only ledger rows of this type count as sent

    Returns:
        Match results sorted by match_score, highest first

    Raises:
        ValueError: If both axis weights are zero
    """
    params = params or MatchingParameters()
    if params.region_weight + params.category_weight <= 0:
        raise ValueError("region_weight + category_weight must be positive")

    try:
        if settings is None:
            settings = get_settings(user_id)
            if settings is None:
                print(f"  ⚠️  No notification settings for user {user_id}")
                return []

        # No preferences at all means the user has not opted into any topic
        if not settings.has_preferences():
            print(f"  User {user_id} has no region or category preferences set")
            return []

        sent_ids: set[str] = set()
        if params.check_sent_notifications:
            frequency = frequency_for(notification_type) if notification_type else None
            sent_ids = list_sent_ids(user_id, frequency)

        results: list[MatchResult] = []
        for program in programs:
            if program.id in sent_ids:
                results.append(
                    MatchResult(
                        user_id=user_id,
                        program_id=program.id,
                        program=program,
                        match_score=0,
                        is_already_sent=True,
                    )
                )
                continue

            region_score, matched_regions = score_regions(settings.regions, program)
            category_score, matched_categories = score_categories(
                settings.categories, program
            )
            total = weighted_score(region_score, category_score, params)

            if total >= params.minimum_match_score:
                results.append(
                    MatchResult(
                        user_id=user_id,
                        program_id=program.id,
                        program=program,
                        match_score=math.floor(total + 0.5),
                        matched_regions=matched_regions,
                        matched_categories=matched_categories,
                    )
                )

        results.sort(key=lambda m: m.match_score, reverse=True)
        return results

    except Exception as e:
        error_file = log_notification_error(
            error_type="matching",
            error_message=str(e),
            context={
                "user_id": user_id,
                "program_ids": [p.id for p in programs],
            },
        )
        print(f"  ⚠️  Error matching programs for user {user_id}. Details logged to: {error_file}")
        return []


def match_opportunities_with_users(
    opportunities: list[GovSupportProgram],
    notification_type: MessageType,
    today: Optional[date] = None,
) -> dict[str, list[MatchResult]]:
    """
    Match every eligible user against a batch of programs.

    For deadline notifications each user only sees programs whose deadline
    falls inside their own deadline_days lookahead.

    Returns:
        Mapping of user_id to that user's not-yet-sent matches; users without
        any such match are omitted
    """
    try:
        users = list_eligible_users(notification_type)
    except Exception as e:
        error_file = log_notification_error(
            error_type="matching",
            error_message=str(e),
            context={"notification_type": notification_type, "stage": "load_users"},
        )
        print(f"  ⚠️  Error loading eligible users. Details logged to: {error_file}")
        return {}

    if not users:
        print(f"  No users eligible for {notification_type} notifications")
        return {}

    today = today or date.today()
    results: dict[str, list[MatchResult]] = {}

    for settings in users:
        candidates = opportunities
        if notification_type == "deadline":
            candidates = [
                p for p in opportunities if is_ending_soon(p, today, settings.deadline_days)
            ]
            if not candidates:
                continue

        matches = match_user_preferences_with_opportunities(
            settings.user_id,
            candidates,
            settings,
            notification_type=notification_type,
        )
        new_matches = [m for m in matches if not m.is_already_sent]
        if new_matches:
            results[settings.user_id] = new_matches

    return results
