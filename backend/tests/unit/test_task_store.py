"""
Unit tests for tasks/task_store.py and tasks/checkpoint.py

Tests task inserts, the conditional claim, retry marking, sweeps, cleanup
and the versioned checkpoint.
"""

import unittest
from unittest.mock import patch

from models.task import FetchParameters
from tasks.checkpoint import Checkpoint, advance_checkpoint, read_checkpoint
from tasks.task_store import (
    cancel_task,
    claim_next_task,
    claim_task,
    cleanup_old_tasks,
    create_task,
    get_child_tasks,
    mark_task_for_retry,
    reset_retry_tasks,
    update_task_status,
)
from tests.fixtures.mock_helpers import create_mock_supabase, mock_responses
from tests.fixtures.user_factory import create_test_task_row


class TaskStoreTestCase(unittest.TestCase):
    def setUp(self):
        self.mock_supabase = create_mock_supabase()
        patcher = patch(
            "tasks.task_store.get_supabase_client", return_value=self.mock_supabase
        )
        patcher.start()
        self.addCleanup(patcher.stop)


class TestCreateTask(TaskStoreTestCase):
    """Tests for create_task()"""

    def test_inserts_pending_task(self):
        self.mock_supabase.execute.return_value.data = [
            create_test_task_row(task_id="t1", task_type="fetch", parameters={"check_type": "new"})
        ]

        task = create_task("fetch", FetchParameters(check_type="new"), parent_task_id="p1")

        row = self.mock_supabase.insert.call_args.args[0]
        self.assertEqual(row["status"], "pending")
        self.assertEqual(row["task_type"], "fetch")
        self.assertEqual(row["parent_task_id"], "p1")
        self.assertEqual(row["parameters"]["check_type"], "new")
        self.assertNotIn("task_type", row["parameters"])
        self.assertEqual(task.id, "t1")

    def test_missing_row_raises(self):
        with self.assertRaises(RuntimeError):
            create_task("fetch", FetchParameters(check_type="new"))


class TestClaimTask(TaskStoreTestCase):
    """Tests for claim_task() and claim_next_task()"""

    def test_claim_is_conditional_on_pending(self):
        self.mock_supabase.execute.return_value.data = [
            create_test_task_row(task_id="t1", status="processing")
        ]

        task = claim_task("t1")

        self.assertEqual(task.status, "processing")
        self.mock_supabase.eq.assert_any_call("id", "t1")
        self.mock_supabase.eq.assert_any_call("status", "pending")
        self.assertEqual(self.mock_supabase.update.call_args.args[0]["status"], "processing")

    def test_lost_race_returns_none(self):
        self.mock_supabase.execute.return_value.data = []

        self.assertIsNone(claim_task("t1"))

    @patch("builtins.print")
    def test_claim_next_skips_lost_races(self, mock_print):
        self.mock_supabase.execute.side_effect = mock_responses(
            [create_test_task_row(task_id="a"), create_test_task_row(task_id="b")],
            [],
            [create_test_task_row(task_id="b", status="processing")],
        )

        task = claim_next_task()

        self.assertEqual(task.id, "b")

    def test_claim_next_filters_by_type(self):
        self.mock_supabase.execute.return_value.data = []

        self.assertIsNone(claim_next_task("send"))
        self.mock_supabase.eq.assert_any_call("task_type", "send")
        self.mock_supabase.order.assert_called_with("created_at", desc=False)


class TestStatusUpdates(TaskStoreTestCase):
    """Tests for update_task_status() and mark_task_for_retry()"""

    def test_completed_sets_result_and_completed_at(self):
        update_task_status("t1", "completed", result={"deleted_count": 2})

        fields = self.mock_supabase.update.call_args.args[0]
        self.assertEqual(fields["status"], "completed")
        self.assertEqual(fields["result"], {"deleted_count": 2})
        self.assertIn("completed_at", fields)

    def test_processing_sets_started_at(self):
        update_task_status("t1", "processing")

        fields = self.mock_supabase.update.call_args.args[0]
        self.assertIn("started_at", fields)
        self.assertNotIn("completed_at", fields)

    def test_retry_below_limit(self):
        self.mock_supabase.execute.side_effect = mock_responses(
            [create_test_task_row(task_id="t1", status="processing", retry_count=0)], []
        )

        status = mark_task_for_retry("t1", "boom")

        self.assertEqual(status, "retry")
        fields = self.mock_supabase.update.call_args.args[0]
        self.assertEqual(fields["retry_count"], 1)
        self.assertEqual(fields["error"], "boom")

    def test_retry_limit_fails_task(self):
        self.mock_supabase.execute.side_effect = mock_responses(
            [create_test_task_row(task_id="t1", status="processing", retry_count=2)], []
        )

        status = mark_task_for_retry("t1", "boom", max_retries=3)

        self.assertEqual(status, "failed")
        fields = self.mock_supabase.update.call_args.args[0]
        self.assertEqual(fields["retry_count"], 3)
        self.assertIn("completed_at", fields)

    def test_retry_unknown_task(self):
        with self.assertRaises(LookupError):
            mark_task_for_retry("missing", "boom")


class TestSweepsAndCleanup(TaskStoreTestCase):
    """Tests for reset_retry_tasks(), cancel_task(), get_child_tasks(), cleanup_old_tasks()"""

    def test_reset_retry_tasks(self):
        self.mock_supabase.execute.return_value.data = [{"id": "a"}, {"id": "b"}]

        self.assertEqual(reset_retry_tasks(), 2)
        self.assertEqual(self.mock_supabase.update.call_args.args[0]["status"], "pending")
        self.mock_supabase.eq.assert_called_with("status", "retry")

    def test_cancel_task(self):
        self.mock_supabase.execute.return_value.data = [{"id": "t1"}]

        self.assertTrue(cancel_task("t1"))
        self.assertEqual(self.mock_supabase.update.call_args.args[0]["status"], "canceled")
        self.mock_supabase.in_.assert_called_with("status", ["pending", "retry"])

    def test_cancel_finished_task(self):
        self.mock_supabase.execute.return_value.data = []

        self.assertFalse(cancel_task("t1"))

    def test_get_child_tasks(self):
        self.mock_supabase.execute.return_value.data = [
            create_test_task_row(task_type="fetch", parent_task_id="p1", parameters={"check_type": "new"}),
            create_test_task_row(task_type="cleanup", parent_task_id="p1"),
        ]

        children = get_child_tasks("p1")

        self.assertEqual([c.task_type for c in children], ["fetch", "cleanup"])
        self.mock_supabase.eq.assert_called_with("parent_task_id", "p1")

    def test_cleanup_terminal_tasks_only(self):
        self.mock_supabase.execute.return_value.data = [{"id": "x"}]

        deleted = cleanup_old_tasks(7, exclude_task_id="self")

        self.assertEqual(deleted, 1)
        self.mock_supabase.delete.assert_called_once()
        self.mock_supabase.in_.assert_called_with("status", ["completed", "failed", "canceled"])
        self.mock_supabase.neq.assert_called_with("id", "self")


class TestCheckpoint(unittest.TestCase):
    """Tests for the versioned checkpoint"""

    def setUp(self):
        self.mock_supabase = create_mock_supabase()
        patcher = patch(
            "tasks.checkpoint.get_supabase_client", return_value=self.mock_supabase
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_read_missing(self):
        checkpoint = read_checkpoint()

        self.assertIsNone(checkpoint.value)
        self.assertEqual(checkpoint.version, 0)

    def test_read_existing(self):
        self.mock_supabase.execute.return_value.data = [
            {"value": "2026-10-18T00:00:00+00:00", "version": 4}
        ]

        checkpoint = read_checkpoint()

        self.assertEqual(checkpoint.value, "2026-10-18T00:00:00+00:00")
        self.assertEqual(checkpoint.version, 4)

    def test_first_write_inserts(self):
        self.assertTrue(advance_checkpoint("2026-10-19T00:00:00+00:00", Checkpoint()))

        row = self.mock_supabase.insert.call_args.args[0]
        self.assertEqual(row["version"], 1)

    def test_first_write_race_lost(self):
        self.mock_supabase.execute.side_effect = Exception("duplicate key value")

        self.assertFalse(advance_checkpoint("2026-10-19T00:00:00+00:00", Checkpoint()))

    def test_compare_and_set(self):
        self.mock_supabase.execute.return_value.data = [{"key": "last_notification_check"}]

        advanced = advance_checkpoint(
            "2026-10-19T00:00:00+00:00", Checkpoint(value="old", version=4)
        )

        self.assertTrue(advanced)
        self.assertEqual(self.mock_supabase.update.call_args.args[0]["version"], 5)
        self.mock_supabase.eq.assert_any_call("version", 4)

    def test_stale_version_not_written(self):
        self.mock_supabase.execute.return_value.data = []

        self.assertFalse(
            advance_checkpoint("2026-10-19T00:00:00+00:00", Checkpoint(value="old", version=4))
        )


if __name__ == "__main__":
    unittest.main()
