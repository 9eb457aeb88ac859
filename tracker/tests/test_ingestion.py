from datetime import timedelta
from unittest.mock import Mock, patch

import redis
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone

from tracker import locks
from tracker.exceptions import ApiUnavailable, HandleNotFound, RosterError, TransportError
from tracker.models import Submission, TrackedUser, UserStats
from tracker.services.codeforces import CodeforcesClient
from tracker.services.ingestion import ingest_user, store_submissions, track_user
from tracker.services.submissions import normalize_submissions
from tracker.tests.utils import FakeCodeforcesClient, make_event


@override_settings(TRACKER_LOCK_URL="")
class IngestUserTests(TestCase):
    def setUp(self):
        self.user = TrackedUser.objects.create(handle="alice")
        now = timezone.now()
        self.latest = (now - timedelta(minutes=5)).replace(microsecond=0)
        self.events = [
            make_event(2000, "C", self.latest, rating=1200),
            make_event(2000, "C", self.latest - timedelta(minutes=3), rating=1200),
            make_event(2000, "B", self.latest - timedelta(minutes=10), verdict="WRONG_ANSWER", rating=1000),
            make_event(1999, "A", self.latest - timedelta(minutes=20), rating=800),
        ]
        self.client = FakeCodeforcesClient(
            infos={"alice": {"handle": "alice", "rating": 1450, "rank": "specialist", "avatar": "//userpic.codeforces.org/a.jpg"}},
            submissions={"alice": self.events},
        )

    def test_first_ingestion_stores_submissions_and_caches(self):
        result = ingest_user("alice", self.client)

        self.assertEqual(result.new_submissions, 2)
        self.assertIsNone(result.error)
        self.assertFalse(result.disabled)
        self.assertEqual(
            set(Submission.objects.filter(user=self.user).values_list("contest_id", "problem_index")),
            {(2000, "C"), (1999, "A")},
        )
        self.user.refresh_from_db()
        self.assertEqual(self.user.last_submission_time, self.latest)
        self.assertIsNotNone(self.user.last_updated)
        self.assertEqual(self.user.rating, 1450)
        self.assertEqual(self.user.rank, "specialist")
        self.assertEqual(self.user.avatar_url, "https://userpic.codeforces.org/a.jpg")
        self.assertGreaterEqual(self.user.current_streak, 1)
        self.assertEqual(UserStats.objects.get(user=self.user).total_score, 6)

    def test_first_pass_uses_deep_window_then_recent_window(self):
        ingest_user("alice", self.client)
        ingest_user("alice", self.client)

        counts = [call[2] for call in self.client.calls if call[0] == "user.status"]
        self.assertEqual(counts, [500, 100])

    def test_second_pass_is_idempotent(self):
        ingest_user("alice", self.client)
        self.user.refresh_from_db()
        cursor = self.user.last_submission_time
        last_updated = self.user.last_updated

        result = ingest_user("alice", self.client)

        self.assertEqual(result.new_submissions, 0)
        self.assertEqual(Submission.objects.filter(user=self.user).count(), 2)
        self.user.refresh_from_db()
        self.assertEqual(self.user.last_submission_time, cursor)
        self.assertEqual(self.user.last_updated, last_updated)

    def test_cursor_never_moves_backwards(self):
        ingest_user("alice", self.client)
        older = make_event(1500, "D", self.latest - timedelta(days=1))
        self.client.submissions["alice"] = [older]

        result = ingest_user("alice", self.client)

        self.assertEqual(result.new_submissions, 1)
        self.user.refresh_from_db()
        self.assertEqual(self.user.last_submission_time, self.latest)

    def test_unknown_handle_disables_user(self):
        self.client.errors[("user.info", "alice")] = HandleNotFound("handle: User with handle alice not found")

        result = ingest_user("alice", self.client)

        self.assertTrue(result.disabled)
        self.assertIsNone(result.error)
        self.user.refresh_from_db()
        self.assertFalse(self.user.enabled)
        self.assertFalse(any(call[0] == "user.status" for call in self.client.calls))

    def test_unknown_handle_is_not_retried(self):
        session = Mock()
        response = Mock(status_code=400)
        response.json.return_value = {"status": "FAILED", "comment": "handles: User with handle alice not found"}
        session.get.return_value = response
        client = CodeforcesClient("key", "secret", session=session)
        client.sleep = Mock()

        result = track_user("alice", client)

        self.assertTrue(result.disabled)
        self.assertEqual(session.get.call_count, 1)
        self.user.refresh_from_db()
        self.assertFalse(self.user.enabled)

    def test_profile_failure_does_not_block_submissions(self):
        self.client.errors[("user.info", "alice")] = TransportError("timeout")

        result = ingest_user("alice", self.client)

        self.assertEqual(result.new_submissions, 2)
        self.user.refresh_from_db()
        self.assertIsNone(self.user.rating)

    def test_transport_failure_becomes_errored_result(self):
        self.client.errors[("user.status", "alice")] = ApiUnavailable("Codeforces unavailable", method="user.status")

        result = track_user("alice", self.client)

        self.assertEqual(result.new_submissions, 0)
        self.assertIn("unavailable", result.error)
        self.assertFalse(Submission.objects.exists())
        self.user.refresh_from_db()
        self.assertIsNone(self.user.last_submission_time)
        self.assertTrue(self.user.enabled)

    def test_untracked_handle(self):
        with self.assertRaises(RosterError):
            ingest_user("nobody", self.client)

        result = track_user("nobody", self.client)
        self.assertIn("not tracked", result.error)

    def test_unexpected_error_is_contained(self):
        client = Mock()
        client.get_user_info.return_value = {"handle": "alice"}
        client.get_user_submissions.side_effect = RuntimeError("boom")

        with self.assertLogs("tracker.services.ingestion", level="ERROR"):
            result = track_user("alice", client)

        self.assertEqual(result.error, "boom")

    def test_failed_cache_rebuild_heals_on_next_pass(self):
        with patch("tracker.services.ingestion.recompute_score", side_effect=DatabaseError("disk full")):
            first = track_user("alice", self.client)

        self.assertIn("Could not update caches", first.error)
        self.assertEqual(Submission.objects.filter(user=self.user).count(), 2)
        self.assertFalse(UserStats.objects.filter(user=self.user).exists())
        self.user.refresh_from_db()
        self.assertIsNone(self.user.last_submission_time)

        second = track_user("alice", self.client)

        self.assertEqual(second.new_submissions, 0)
        self.assertIsNone(second.error)
        self.assertEqual(UserStats.objects.get(user=self.user).total_score, 6)
        self.user.refresh_from_db()
        self.assertEqual(self.user.last_submission_time, self.latest)
        self.assertGreaterEqual(self.user.current_streak, 1)

    def test_missing_stats_row_is_rebuilt(self):
        ingest_user("alice", self.client)
        UserStats.objects.filter(user=self.user).delete()

        ingest_user("alice", self.client)

        self.assertEqual(UserStats.objects.get(user=self.user).total_score, 6)

    def test_handle_lookup_ignores_case(self):
        result = track_user("ALICE", self.client)

        self.assertIsNone(result.error)
        self.assertEqual(result.handle, "alice")
        self.assertEqual(Submission.objects.filter(user=self.user).count(), 2)
        self.assertIn(("user.status", "alice", 500), self.client.calls)

    def test_store_submissions_counts_only_new_rows(self):
        batch = normalize_submissions(self.events)
        self.assertEqual(store_submissions(self.user, batch[:1]), 1)

        self.assertEqual(store_submissions(self.user, batch), 1)
        self.assertEqual(store_submissions(self.user, batch), 0)
        self.assertEqual(store_submissions(self.user, []), 0)


@override_settings(TRACKER_LOCK_URL="redis://localhost:6379/15", TRACKER_LOCK_TTL_SECONDS=60)
class IngestLockTests(TestCase):
    def setUp(self):
        locks._redis_clients.clear()
        self.addCleanup(locks._redis_clients.clear)
        TrackedUser.objects.create(handle="Alice")
        self.client = FakeCodeforcesClient(
            submissions={"Alice": [make_event(2000, "A", timezone.now() - timedelta(minutes=1))]},
        )

    def test_held_lock_skips_user(self):
        fake_redis = Mock()
        fake_redis.set.return_value = None

        with patch("tracker.locks.redis.Redis.from_url", return_value=fake_redis):
            result = track_user("Alice", self.client)

        self.assertEqual(result.error, "ingestion already running")
        self.assertEqual(self.client.calls, [])
        fake_redis.set.assert_called_once()
        self.assertEqual(fake_redis.set.call_args.args[0], "tracker:ingest:alice")
        self.assertEqual(fake_redis.set.call_args.kwargs, {"nx": True, "ex": 60})
        fake_redis.delete.assert_not_called()

    def test_acquired_lock_is_released(self):
        fake_redis = Mock()
        fake_redis.set.return_value = True

        with patch("tracker.locks.redis.Redis.from_url", return_value=fake_redis):
            result = track_user("Alice", self.client)

        self.assertEqual(result.new_submissions, 1)
        fake_redis.delete.assert_called_once_with("tracker:ingest:alice")

    def test_redis_failure_falls_back_to_unlocked_ingestion(self):
        fake_redis = Mock()
        fake_redis.set.side_effect = redis.ConnectionError("refused")

        with patch("tracker.locks.redis.Redis.from_url", return_value=fake_redis):
            with self.assertLogs("tracker.locks", level="ERROR"):
                result = track_user("Alice", self.client)

        self.assertEqual(result.new_submissions, 1)


class LockUrlTests(SimpleTestCase):
    def setUp(self):
        locks._redis_clients.clear()
        self.addCleanup(locks._redis_clients.clear)

    @override_settings(TRACKER_LOCK_URL=None, CELERY_BROKER_URL="redis://broker:6379/2")
    def test_defaults_to_celery_broker(self):
        fake_redis = Mock()
        fake_redis.set.return_value = True

        with patch("tracker.locks.redis.Redis.from_url", return_value=fake_redis) as from_url:
            with locks.handle_lock("alice") as acquired:
                self.assertTrue(acquired)

        from_url.assert_called_once_with("redis://broker:6379/2")
        fake_redis.delete.assert_called_once_with("tracker:ingest:alice")

    @override_settings(TRACKER_LOCK_URL="", CELERY_BROKER_URL="redis://broker:6379/2")
    def test_empty_url_disables_locking(self):
        with patch("tracker.locks.redis.Redis.from_url") as from_url:
            with locks.handle_lock("alice") as acquired:
                self.assertTrue(acquired)

        from_url.assert_not_called()
