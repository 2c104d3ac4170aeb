"""
Unit tests for notifications/program_matcher.py

Tests region/category scoring, weighting, thresholds, sent-ledger handling
and the batch matcher.
"""

import unittest
from datetime import date
from unittest.mock import patch

from models.notification import MatchingParameters
from notifications.program_matcher import (
    match_opportunities_with_users,
    match_user_preferences_with_opportunities,
    score_categories,
    score_regions,
)
from tests.fixtures.mock_helpers import create_mock_supabase
from tests.fixtures.program_factory import create_test_program
from tests.fixtures.user_factory import create_test_settings, create_test_settings_row


class TestScoreRegions(unittest.TestCase):
    """Tests for score_regions()"""

    def test_nationwide_program_scores_full(self):
        """전국 programs score 100 whatever the user's regions"""
        program = create_test_program(geographic_regions=["전국"])

        score, matched = score_regions(["부산", "제주"], program)

        self.assertEqual(score, 100)
        self.assertEqual(matched, ["전국"])

    def test_nationwide_administering_region_counts(self):
        """전국 as the administering-body region also counts"""
        program = create_test_program(geographic_regions=["서울"], region="전국")

        score, matched = score_regions(["부산"], program)

        self.assertEqual(score, 100)
        self.assertEqual(matched, ["전국"])

    def test_partial_overlap(self):
        """Score is the share of user regions found in the program"""
        program = create_test_program(geographic_regions=["서울", "경기"], region="")

        score, matched = score_regions(["서울", "부산"], program)

        self.assertEqual(score, 50)
        self.assertEqual(matched, ["서울"])

    def test_substring_containment(self):
        """A user region matches a longer program region containing it"""
        program = create_test_program(geographic_regions=["서울특별시"], region="")

        score, matched = score_regions(["서울"], program)

        self.assertEqual(score, 100)
        self.assertEqual(matched, ["서울"])

    def test_no_user_regions_is_wildcard(self):
        """Empty region preference scores 100"""
        program = create_test_program(geographic_regions=["부산"])

        score, matched = score_regions([], program)

        self.assertEqual(score, 100)
        self.assertEqual(matched, [])

    def test_no_overlap(self):
        program = create_test_program(geographic_regions=["부산"], region="")

        score, matched = score_regions(["서울"], program)

        self.assertEqual(score, 0)
        self.assertEqual(matched, [])

    def test_more_overlap_never_lowers_score(self):
        """Adding a matching region to the program never decreases the score"""
        user_regions = ["서울", "경기", "인천"]
        program_regions: list[str] = []
        previous = -1.0

        for region in ["부산", "서울", "경기", "인천"]:
            program_regions.append(region)
            program = create_test_program(geographic_regions=list(program_regions), region="")
            score, _ = score_regions(user_regions, program)
            self.assertGreaterEqual(score, previous)
            previous = score

        self.assertEqual(previous, 100)


class TestScoreCategories(unittest.TestCase):
    """Tests for score_categories()"""

    def test_exact_match(self):
        program = create_test_program(support_area="기술개발")

        score, matched = score_categories(["기술개발"], program)

        self.assertEqual(score, 100)
        self.assertEqual(matched, ["기술개발"])

    def test_substring_match(self):
        """'기술' is contained in '기술개발'"""
        program = create_test_program(support_area="기술개발")

        score, matched = score_categories(["기술", "수출"], program)

        self.assertEqual(score, 50)
        self.assertEqual(matched, ["기술"])

    def test_no_user_categories_is_wildcard(self):
        program = create_test_program(support_area="수출")

        score, _ = score_categories([], program)

        self.assertEqual(score, 100)


class TestMatchUserPreferences(unittest.TestCase):
    """Tests for match_user_preferences_with_opportunities()"""

    @patch("notifications.program_matcher.list_sent_ids", return_value=set())
    @patch("builtins.print")
    def test_full_overlap_scores_100(self, mock_print, mock_sent):
        """Region and category both match -> 100"""
        settings = create_test_settings(user_id="U1", regions=["서울"], categories=["기술개발"])
        program = create_test_program(
            program_id="P1", geographic_regions=["서울"], support_area="기술개발", region=""
        )

        results = match_user_preferences_with_opportunities("U1", [program], settings)

        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].match_score, 100)
        self.assertEqual(results[0].matched_regions, ["서울"])
        self.assertEqual(results[0].matched_categories, ["기술개발"])
        self.assertFalse(results[0].is_already_sent)

    @patch("notifications.program_matcher.list_sent_ids", return_value={"P1"})
    @patch("builtins.print")
    def test_already_sent_returned_with_zero_score(self, mock_print, mock_sent):
        """Programs in the ledger come back flagged, with score 0 and no matched values"""
        settings = create_test_settings(user_id="U1", regions=["서울"], categories=["창업"])
        sent = create_test_program(program_id="P1")
        fresh = create_test_program(program_id="P2")

        results = match_user_preferences_with_opportunities("U1", [sent, fresh], settings)

        by_id = {r.program_id: r for r in results}
        self.assertTrue(by_id["P1"].is_already_sent)
        self.assertEqual(by_id["P1"].match_score, 0)
        self.assertEqual(by_id["P1"].matched_regions, [])
        self.assertEqual(by_id["P1"].matched_categories, [])
        self.assertFalse(by_id["P2"].is_already_sent)
        # Sorted by score, highest first
        self.assertEqual(results[0].program_id, "P2")

    @patch("notifications.program_matcher.list_sent_ids", return_value=set())
    @patch("builtins.print")
    def test_below_threshold_excluded(self, mock_print, mock_sent):
        """Weighted score under the minimum is not returned at all"""
        settings = create_test_settings(regions=["부산"], categories=["수출"])
        program = create_test_program(geographic_regions=["서울"], region="", support_area="창업")

        results = match_user_preferences_with_opportunities(
            settings.user_id, [program], settings
        )

        self.assertEqual(results, [])

    @patch("notifications.program_matcher.list_sent_ids", return_value=set())
    @patch("builtins.print")
    def test_exactly_at_threshold_included(self, mock_print, mock_sent):
        """Region matches, category does not -> exactly 50 with default weights"""
        settings = create_test_settings(regions=["서울"], categories=["수출"])
        program = create_test_program(geographic_regions=["서울"], region="", support_area="창업")

        results = match_user_preferences_with_opportunities(
            settings.user_id, [program], settings
        )

        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].match_score, 50)

    @patch("notifications.program_matcher.list_sent_ids", return_value=set())
    @patch("builtins.print")
    def test_weights_change_score(self, mock_print, mock_sent):
        """Heavier region weight raises a region-only match"""
        settings = create_test_settings(regions=["서울"], categories=["수출"])
        program = create_test_program(geographic_regions=["서울"], region="", support_area="창업")
        params = MatchingParameters(region_weight=75, category_weight=25)

        results = match_user_preferences_with_opportunities(
            settings.user_id, [program], settings, params
        )

        self.assertEqual(results[0].match_score, 75)

    @patch("notifications.program_matcher.list_sent_ids", return_value=set())
    @patch("builtins.print")
    def test_score_rounds_half_up(self, mock_print, mock_sent):
        """Fractional totals round to the nearest integer"""
        settings = create_test_settings(regions=["서울", "경기"], categories=["창업"])
        program = create_test_program(geographic_regions=["서울"], region="", support_area="창업")
        params = MatchingParameters(region_weight=2, category_weight=1)

        results = match_user_preferences_with_opportunities(
            settings.user_id, [program], settings, params
        )

        # (50*2 + 100*1) / 3 = 66.67
        self.assertEqual(results[0].match_score, 67)

    @patch("notifications.program_matcher.list_sent_ids")
    @patch("builtins.print")
    def test_no_preferences_returns_empty(self, mock_print, mock_sent):
        """A user with no regions and no categories gets no matches"""
        settings = create_test_settings(regions=[], categories=[])
        program = create_test_program(geographic_regions=["전국"])

        results = match_user_preferences_with_opportunities(
            settings.user_id, [program], settings
        )

        self.assertEqual(results, [])

    @patch("notifications.program_matcher.list_sent_ids", return_value=set())
    @patch("builtins.print")
    def test_one_empty_axis_is_wildcard(self, mock_print, mock_sent):
        """Only categories set: region axis scores 100"""
        settings = create_test_settings(regions=[], categories=["창업"])
        program = create_test_program(geographic_regions=["제주"], region="", support_area="창업")

        results = match_user_preferences_with_opportunities(
            settings.user_id, [program], settings
        )

        self.assertEqual(results[0].match_score, 100)
        self.assertEqual(results[0].matched_regions, [])

    @patch("builtins.print")
    def test_zero_weights_raise(self, mock_print):
        settings = create_test_settings()
        params = MatchingParameters(region_weight=0, category_weight=0)

        with self.assertRaises(ValueError):
            match_user_preferences_with_opportunities(
                settings.user_id, [create_test_program()], settings, params
            )

    @patch("notifications.program_matcher.log_notification_error", return_value="/tmp/err.txt")
    @patch("notifications.program_matcher.list_sent_ids")
    @patch("builtins.print")
    def test_ledger_failure_returns_empty(self, mock_print, mock_sent, mock_log):
        """Storage errors degrade to an empty result and are logged"""
        mock_sent.side_effect = Exception("connection refused")
        settings = create_test_settings()

        results = match_user_preferences_with_opportunities(
            settings.user_id, [create_test_program()], settings
        )

        self.assertEqual(results, [])
        mock_log.assert_called_once()
        self.assertEqual(mock_log.call_args.kwargs["error_type"], "matching")

    @patch("notifications.program_matcher.list_sent_ids", return_value=set())
    @patch("notifications.program_matcher.get_settings")
    @patch("builtins.print")
    def test_loads_settings_when_not_given(self, mock_print, mock_get_settings, mock_sent):
        mock_get_settings.return_value = create_test_settings(user_id="U1")

        results = match_user_preferences_with_opportunities("U1", [create_test_program()])

        mock_get_settings.assert_called_once_with("U1")
        self.assertEqual(len(results), 1)

    @patch("notifications.program_matcher.list_sent_ids")
    @patch("notifications.program_matcher.get_settings", return_value=None)
    @patch("builtins.print")
    def test_missing_settings_returns_empty(self, mock_print, mock_get_settings, mock_sent):
        results = match_user_preferences_with_opportunities("U1", [create_test_program()])

        self.assertEqual(results, [])
        mock_sent.assert_not_called()

    @patch("notifications.program_matcher.list_sent_ids")
    @patch("builtins.print")
    def test_ledger_skipped_when_disabled(self, mock_print, mock_sent):
        settings = create_test_settings()
        params = MatchingParameters(check_sent_notifications=False)

        match_user_preferences_with_opportunities(
            settings.user_id, [create_test_program()], settings, params
        )

        mock_sent.assert_not_called()

    @patch("notifications.program_matcher.list_sent_ids", return_value=set())
    @patch("builtins.print")
    def test_ledger_scoped_to_notification_type(self, mock_print, mock_sent):
        settings = create_test_settings(user_id="U1")

        match_user_preferences_with_opportunities(
            "U1", [create_test_program()], settings, notification_type="deadline"
        )

        mock_sent.assert_called_once_with("U1", "deadline")


class TestMatchOpportunitiesWithUsers(unittest.TestCase):
    """Tests for match_opportunities_with_users()"""

    @patch("notifications.program_matcher.list_sent_ids", return_value=set())
    @patch("notifications.program_matcher.list_eligible_users")
    @patch("builtins.print")
    def test_groups_by_user_and_drops_users_without_matches(
        self, mock_print, mock_users, mock_sent
    ):
        mock_users.return_value = [
            create_test_settings(user_id="seoul", regions=["서울"], categories=["창업"]),
            create_test_settings(user_id="busan", regions=["부산"], categories=["수출"]),
        ]
        program = create_test_program(geographic_regions=["서울"], region="", support_area="창업")

        results = match_opportunities_with_users([program], "new_program")

        mock_users.assert_called_once_with("new_program")
        self.assertEqual(list(results.keys()), ["seoul"])
        self.assertEqual(results["seoul"][0].match_score, 100)

    @patch("notifications.program_matcher.list_sent_ids")
    @patch("notifications.program_matcher.list_eligible_users")
    @patch("builtins.print")
    def test_already_sent_filtered_out(self, mock_print, mock_users, mock_sent):
        mock_users.return_value = [create_test_settings(user_id="U1")]
        program = create_test_program(program_id="P1")
        mock_sent.return_value = {"P1"}

        results = match_opportunities_with_users([program], "new_program")

        self.assertEqual(results, {})

    @patch("notifications.program_matcher.list_sent_ids", return_value=set())
    @patch("notifications.program_matcher.list_eligible_users")
    @patch("builtins.print")
    def test_deadline_uses_each_users_window(self, mock_print, mock_users, mock_sent):
        """Deadline matching only offers programs inside deadline_days"""
        mock_users.return_value = [
            create_test_settings(user_id="short", deadline_days=3),
            create_test_settings(user_id="long", deadline_days=10),
        ]
        program = create_test_program(
            program_id="P1", application_deadline="2026-10-26", geographic_regions=["서울"]
        )

        results = match_opportunities_with_users(
            [program], "deadline", today=date(2026, 10, 19)
        )

        self.assertNotIn("short", results)
        self.assertIn("long", results)

    @patch("notifications.program_matcher.list_sent_ids", return_value=set())
    @patch("notifications.program_matcher.list_eligible_users")
    @patch("builtins.print")
    def test_deadline_skips_open_ended(self, mock_print, mock_users, mock_sent):
        mock_users.return_value = [create_test_settings(user_id="U1", deadline_days=30)]
        program = create_test_program(application_deadline="진행중")

        results = match_opportunities_with_users(
            [program], "deadline", today=date(2026, 10, 19)
        )

        self.assertEqual(results, {})

    @patch("notifications.program_matcher.list_eligible_users", return_value=[])
    @patch("builtins.print")
    def test_no_eligible_users(self, mock_print, mock_users):
        self.assertEqual(match_opportunities_with_users([create_test_program()], "new_program"), {})

    @patch("notifications.program_matcher.log_notification_error", return_value="/tmp/err.txt")
    @patch("notifications.program_matcher.list_eligible_users")
    @patch("builtins.print")
    def test_user_load_failure_returns_empty(self, mock_print, mock_users, mock_log):
        mock_users.side_effect = Exception("timeout")

        results = match_opportunities_with_users([create_test_program()], "new_program")

        self.assertEqual(results, {})
        mock_log.assert_called_once()

    @patch("notifications.preference_store.log_notification_error", return_value="/tmp/err.txt")
    @patch("notifications.preference_store.get_supabase_client")
    @patch("notifications.program_matcher.list_sent_ids", return_value=set())
    @patch("builtins.print")
    def test_invalid_settings_row_only_skips_that_user(
        self, mock_print, mock_sent, mock_get_supabase, mock_log
    ):
        mock_get_supabase.return_value = create_mock_supabase(
            [
                create_test_settings_row(user_id="good", regions=["서울"], categories=["기술개발"]),
                create_test_settings_row(user_id="bad", deadline_days=-1),
            ]
        )
        program = create_test_program(
            program_id="P1", region="", geographic_regions=["서울"], support_area="기술개발"
        )

        results = match_opportunities_with_users([program], "new_program")

        self.assertEqual(list(results.keys()), ["good"])
        self.assertEqual(results["good"][0].program_id, "P1")
        mock_log.assert_called_once()


if __name__ == "__main__":
    unittest.main()
