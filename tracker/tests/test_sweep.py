from datetime import date, datetime, timedelta, timezone as dt_timezone
from unittest.mock import Mock, patch

from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone

from tracker import tasks
from tracker.exceptions import ApiUnavailable, HandleNotFound, NotConfigured
from tracker.models import TrackedUser
from tracker.services import metadata
from tracker.services.sweep import (
    SweepSummary,
    in_quiet_hours,
    ingest_all_users,
    parse_quiet_hours,
    refresh_avatars,
    run_daily_maintenance,
)
from tracker.tests.utils import FakeCodeforcesClient, make_event


@override_settings(TRACKER_LOCK_URL="")
class IngestAllUsersTests(TestCase):
    def setUp(self):
        recent = timezone.now() - timedelta(minutes=10)
        for handle in ("carol", "alice", "bob"):
            TrackedUser.objects.create(handle=handle)
        TrackedUser.objects.create(handle="dave", enabled=False)
        self.client = FakeCodeforcesClient(
            submissions={
                "alice": [make_event(2000, "A", recent), make_event(2000, "B", recent)],
                "bob": [make_event(2001, "A", recent)],
                "carol": [make_event(2002, "A", recent)],
                "dave": [make_event(2003, "A", recent)],
            },
        )
        self.sleep = Mock()

    def test_sweep_tracks_enabled_users_in_handle_order(self):
        summary = ingest_all_users(self.client, pause=0.5, sleep=self.sleep)

        self.assertEqual([r.handle for r in summary.results], ["alice", "bob", "carol"])
        self.assertEqual(summary.total_new, 4)
        self.assertEqual(summary.errors, 0)
        self.assertNotIn(("user.status", "dave", 500), self.client.calls)

    def test_sweep_pauses_after_each_user(self):
        ingest_all_users(self.client, pause=0.5, sleep=self.sleep)

        self.assertEqual(self.sleep.call_count, 3)
        self.sleep.assert_called_with(0.5)

    def test_zero_pause_never_sleeps(self):
        ingest_all_users(self.client, pause=0, sleep=self.sleep)

        self.sleep.assert_not_called()

    @override_settings(TRACKER_USER_PAUSE_SECONDS=0.25)
    def test_pause_defaults_to_setting(self):
        ingest_all_users(self.client, sleep=self.sleep)

        self.sleep.assert_called_with(0.25)

    def test_failing_user_does_not_stop_the_sweep(self):
        self.client.errors[("user.status", "bob")] = ApiUnavailable("Codeforces unavailable")
        self.client.errors[("user.info", "carol")] = HandleNotFound("handle: User with handle carol not found")

        summary = ingest_all_users(self.client, pause=0, sleep=self.sleep)

        by_handle = {r.handle: r for r in summary.results}
        self.assertEqual(by_handle["alice"].new_submissions, 2)
        self.assertTrue(by_handle["bob"].error)
        self.assertTrue(by_handle["carol"].disabled)
        self.assertEqual(summary.errors, 1)
        self.assertEqual(summary.disabled, ["carol"])
        self.assertFalse(TrackedUser.objects.get(handle="carol").enabled)

    def test_sweep_records_last_run(self):
        self.assertIsNone(metadata.get_run(metadata.LAST_TRACKER_RUN))

        summary = ingest_all_users(self.client, pause=0, sleep=self.sleep)

        self.assertEqual(metadata.get_run(metadata.LAST_TRACKER_RUN), summary.finished_at)

    def test_empty_roster_still_records_run(self):
        TrackedUser.objects.all().delete()

        summary = ingest_all_users(self.client, pause=0, sleep=self.sleep)

        self.assertEqual(summary.results, [])
        self.assertIsNotNone(metadata.get_run(metadata.LAST_TRACKER_RUN))

    def test_summary_as_dict(self):
        summary = ingest_all_users(self.client, pause=0, sleep=self.sleep)

        payload = summary.as_dict()
        self.assertEqual(payload["users"], 3)
        self.assertEqual(payload["new_submissions"], 4)
        self.assertEqual(payload["results"][0], {"handle": "alice", "new_submissions": 2, "error": None, "disabled": False})


class QuietHoursTests(SimpleTestCase):
    def test_parse(self):
        self.assertEqual(parse_quiet_hours("3-8"), (3, 8))
        self.assertIsNone(parse_quiet_hours(""))
        self.assertIsNone(parse_quiet_hours("night"))

    @override_settings(TRACKER_QUIET_HOURS="3-8", STREAK_TIME_ZONE="America/Lima")
    def test_window_uses_local_hour(self):
        # 08:30 UTC is 03:30 in Lima.
        self.assertTrue(in_quiet_hours(datetime(2026, 1, 12, 8, 30, tzinfo=dt_timezone.utc)))
        # 13:00 UTC is 08:00 in Lima; the end hour is open.
        self.assertFalse(in_quiet_hours(datetime(2026, 1, 12, 13, 0, tzinfo=dt_timezone.utc)))
        self.assertFalse(in_quiet_hours(datetime(2026, 1, 12, 7, 59, tzinfo=dt_timezone.utc)))

    @override_settings(TRACKER_QUIET_HOURS="22-2", STREAK_TIME_ZONE="UTC")
    def test_window_across_midnight(self):
        self.assertTrue(in_quiet_hours(datetime(2026, 1, 12, 23, 0, tzinfo=dt_timezone.utc)))
        self.assertTrue(in_quiet_hours(datetime(2026, 1, 12, 1, 0, tzinfo=dt_timezone.utc)))
        self.assertFalse(in_quiet_hours(datetime(2026, 1, 12, 12, 0, tzinfo=dt_timezone.utc)))

    @override_settings(TRACKER_QUIET_HOURS="")
    def test_disabled(self):
        self.assertFalse(in_quiet_hours(datetime(2026, 1, 12, 8, 30, tzinfo=dt_timezone.utc)))


class DailyMaintenanceTests(TestCase):
    def setUp(self):
        self.alice = TrackedUser.objects.create(handle="alice", avatar_url="https://codeforces.com/old.jpg")
        self.bob = TrackedUser.objects.create(handle="bob", current_streak=5, last_streak_date=date(2020, 1, 1))
        TrackedUser.objects.create(handle="zed", enabled=False)
        self.client = FakeCodeforcesClient(
            infos={
                "alice": {"handle": "alice", "titlePhoto": "//userpic.codeforces.org/new.jpg"},
                "bob": {"handle": "bob", "avatar": "/images/no-avatar.jpg"},
            },
        )
        self.sleep = Mock()

    def test_refresh_avatars_updates_changed_urls(self):
        updated = refresh_avatars(self.client, pause=0.1, sleep=self.sleep)

        self.assertEqual(updated, 2)
        self.alice.refresh_from_db()
        self.bob.refresh_from_db()
        self.assertEqual(self.alice.avatar_url, "https://userpic.codeforces.org/new.jpg")
        self.assertEqual(self.bob.avatar_url, "https://codeforces.com/images/no-avatar.jpg")
        self.assertEqual(self.sleep.call_count, 2)
        self.assertNotIn(("user.info", "zed"), self.client.calls)

    def test_refresh_avatars_skips_failures(self):
        self.client.errors[("user.info", "alice")] = ApiUnavailable("down")

        updated = refresh_avatars(self.client, pause=0, sleep=self.sleep)

        self.assertEqual(updated, 1)
        self.alice.refresh_from_db()
        self.assertEqual(self.alice.avatar_url, "https://codeforces.com/old.jpg")

    def test_daily_maintenance_resets_streaks_and_marks_run(self):
        result = run_daily_maintenance(self.client, sleep=self.sleep)

        self.assertEqual(result, {"streaks_reset": 1, "avatars_updated": 2})
        self.bob.refresh_from_db()
        self.assertEqual(self.bob.current_streak, 0)
        self.assertIsNotNone(metadata.get_run(metadata.LAST_DAILY_RUN))

    def test_missing_credentials_leave_streaks_untouched(self):
        with patch("tracker.services.sweep.CodeforcesClient.from_settings", side_effect=NotConfigured("CF_API_KEY and CF_API_SECRET must be set.")):
            with self.assertRaises(NotConfigured):
                run_daily_maintenance(sleep=self.sleep)

        self.bob.refresh_from_db()
        self.assertEqual(self.bob.current_streak, 5)
        self.assertIsNone(metadata.get_run(metadata.LAST_DAILY_RUN))


class TrackTasksTests(TestCase):
    @patch("tracker.tasks.ingest_all_users")
    @patch("tracker.tasks.in_quiet_hours", return_value=True)
    def test_track_all_users_skips_quiet_hours(self, _quiet, ingest):
        self.assertEqual(tasks.track_all_users(), {"status": "skipped", "reason": "quiet_hours"})
        ingest.assert_not_called()

    @patch("tracker.tasks.ingest_all_users", return_value=SweepSummary())
    @patch("tracker.tasks.in_quiet_hours", return_value=True)
    def test_force_ignores_quiet_hours(self, _quiet, ingest):
        result = tasks.track_all_users(force=True)

        ingest.assert_called_once_with()
        self.assertEqual(result["status"], "ok")
        self.assertEqual(result["users"], 0)

    @patch("tracker.tasks.track_user")
    def test_track_single_user(self, track):
        track.return_value.as_dict.return_value = {"handle": "alice", "new_submissions": 3, "error": None, "disabled": False}

        self.assertEqual(tasks.track_single_user("alice")["new_submissions"], 3)
        track.assert_called_once_with("alice")

    @patch("tracker.tasks.run_daily_maintenance", return_value={"streaks_reset": 0, "avatars_updated": 0})
    def test_daily_maintenance(self, maintenance):
        self.assertEqual(tasks.daily_maintenance(), {"streaks_reset": 0, "avatars_updated": 0})

    @patch("tracker.tasks.sync_contests", return_value={"created": 1, "updated": 0, "upcoming": 1})
    @patch("tracker.tasks.CodeforcesClient.from_settings")
    def test_sync_contests_task(self, from_settings, sync):
        self.assertEqual(tasks.sync_codeforces_contests()["created"], 1)
        sync.assert_called_once_with(from_settings.return_value)

    @patch("tracker.tasks.refresh_all_rating_histories", return_value={"updated": 2, "errors": 0})
    def test_sync_rating_histories_task(self, refresh):
        self.assertEqual(tasks.sync_rating_histories(), {"updated": 2, "errors": 0})
        refresh.assert_called_once_with()
