from datetime import datetime, timedelta, timezone as dt_timezone
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase

from shelter.common.clock import metrics_day_key, utc_day_key
from shelter.common.testing import FIXED_NOW, UsersMixin
from shelter.metrics import services
from shelter.metrics.models import AnalyticsEvent, DailyCounter, DailyVisitor, RoomAudit
from shelter.rooms.models import BOT_UID, Room


class DailyCounterTest(TestCase):
    def test_increments_accumulate(self):
        services.incr_daily({"a_total": 1, "b_total": 5}, now=FIXED_NOW)
        services.incr_daily({"a_total": 2, "zero_total": 0}, now=FIXED_NOW)

        counters = services.read_daily(metrics_day_key(FIXED_NOW))
        self.assertEqual(counters, {"a_total": 3, "b_total": 5})

    def test_day_follows_metrics_time_zone(self):
        # 16:00 UTC 는 도쿄 기준 다음 날 01:00
        late = datetime(2025, 6, 1, 16, 0, tzinfo=dt_timezone.utc)
        day = services.incr_daily({"x_total": 1}, now=late)
        self.assertEqual(day, "2025-06-02")

    def test_bump_swallows_database_errors(self):
        with mock.patch.object(services, "incr_daily", side_effect=DatabaseError("locked")):
            services.bump({"x_total": 1})
        self.assertFalse(DailyCounter.objects.exists())


class RoomStatsTest(TestCase):
    def make_room(self, members, **extra):
        with mock.patch("django.utils.timezone.now", return_value=FIXED_NOW):
            return Room.objects.create(
                members=members,
                queue_key=extra.pop("queue_key", "global"),
                expire_at=FIXED_NOW + timedelta(hours=3),
                **extra,
            )

    def test_owner_and_human_split(self):
        owner = self.make_room(["u1", BOT_UID], is_owner_room=True, queue_key="owner")
        human = self.make_room(["u1", "u2"])
        ended = FIXED_NOW + timedelta(seconds=90)

        self.assertEqual(
            services.room_close_increments(owner, ended),
            {
                "rooms_ended_total": 1,
                "room_total_duration_sec": 90,
                "rooms_ended_owner_total": 1,
                "room_owner_total_duration_sec": 90,
            },
        )
        self.assertIn("rooms_ended_human_total", services.room_close_increments(human, ended))

    def test_commit_once(self):
        ended = FIXED_NOW + timedelta(minutes=2)
        room = self.make_room([], status=Room.CLOSED, ended_at=ended, closed_reason="last_left")

        self.assertTrue(services.commit_room_stats(room.pk, now=ended))
        self.assertFalse(services.commit_room_stats(room.pk, now=ended))
        self.assertFalse(services.commit_room_stats(room.pk, fallback=True, now=ended))

        counters = services.read_daily(metrics_day_key(ended))
        self.assertEqual(counters["rooms_ended_total"], 1)
        self.assertEqual(counters["room_total_duration_sec"], 120)

        audit = RoomAudit.objects.get(room_id=room.room_id)
        self.assertEqual(audit.closed_reason, "last_left")
        self.assertFalse(audit.is_owner_room)

    def test_fallback_closes_expired_room(self):
        room = self.make_room(["u1", "u2"])
        now = FIXED_NOW + timedelta(hours=3, minutes=1)

        self.assertTrue(services.commit_room_stats(room.pk, fallback=True, now=now))

        room.refresh_from_db()
        self.assertEqual(room.status, Room.CLOSED)
        self.assertEqual(room.closed_reason, Room.REASON_GC_EXPIRE)
        self.assertEqual(room.ended_at, now)
        self.assertEqual(room.stats_committed_at, now)
        self.assertEqual(RoomAudit.objects.get(room_id=room.room_id).closed_reason, "gc_expire")

    def test_missing_room(self):
        self.assertFalse(services.commit_room_stats(10_000))


class VisitTest(UsersMixin, TestCase):
    DAY = utc_day_key(FIXED_NOW)

    def test_unknown_page_counts_as_other(self):
        services.track_visit(None, "Pricing", now=FIXED_NOW)
        services.track_visit(None, "CHAT", now=FIXED_NOW)
        services.track_visit(None, None, now=FIXED_NOW)

        counters = services.read_daily(self.DAY)
        self.assertEqual(counters["visits_total"], 3)
        self.assertEqual(counters["visits_other_total"], 2)
        self.assertEqual(counters["visits_chat_total"], 1)
        self.assertEqual(
            sorted(AnalyticsEvent.objects.values_list("page", flat=True)), ["chat", "other", "other"]
        )

    def test_unique_visitor_counted_once_per_day(self):
        services.track_visit("u1", "landing", now=FIXED_NOW)
        services.track_visit("u1", "chat", now=FIXED_NOW + timedelta(hours=5))
        services.track_visit("u2", "landing", now=FIXED_NOW)

        counters = services.read_daily(self.DAY)
        self.assertEqual(counters["visits_total"], 3)
        self.assertEqual(counters["visitors_unique_total"], 2)
        self.assertEqual(DailyVisitor.objects.filter(day=self.DAY).count(), 2)

        # 다음 UTC 날짜에는 다시 첫 방문
        tomorrow = FIXED_NOW + timedelta(days=1)
        services.track_visit("u1", "landing", now=tomorrow)
        self.assertEqual(services.read_daily(utc_day_key(tomorrow))["visitors_unique_total"], 1)

    def test_anonymous_visit_is_not_a_unique_visitor(self):
        result = services.track_visit(None, "landing", "x" * 300, now=FIXED_NOW)

        self.assertEqual(result, {"ok": True})
        self.assertNotIn("visitors_unique_total", services.read_daily(self.DAY))
        self.assertFalse(DailyVisitor.objects.exists())
        raw = AnalyticsEvent.objects.get()
        self.assertEqual(raw.type, AnalyticsEvent.VISIT)
        self.assertIsNone(raw.uid)
        self.assertEqual(len(raw.src), 120)

    def test_empty_src_is_stored_as_null(self):
        services.track_visit("u1", "terms", "", now=FIXED_NOW)
        self.assertIsNone(AnalyticsEvent.objects.get().src)

    def test_visit_day_is_utc(self):
        # 16:00 UTC 는 도쿄로는 다음 날이지만 방문은 UTC 날짜로 센다
        late = datetime(2025, 6, 1, 16, 0, tzinfo=dt_timezone.utc)
        services.track_visit("u1", "landing", now=late)
        self.assertEqual(services.read_daily("2025-06-01")["visits_total"], 1)
        self.assertEqual(services.read_daily("2025-06-02"), {})

    def test_visit_endpoint(self):
        res = self.api(self.alice).post("/api/metrics/visit", {"page": "amayadori"}, format="json")
        anon = self.api().post("/api/metrics/visit/", {"page": "policy", "src": "ad"}, format="json")
        day = utc_day_key()

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data, {"ok": True})
        self.assertEqual(anon.status_code, 200)
        counters = services.read_daily(day)
        self.assertEqual(counters["visits_total"], 2)
        self.assertEqual(counters["visits_amayadori_total"], 1)
        self.assertEqual(counters["visitors_unique_total"], 1)
        self.assertTrue(DailyVisitor.objects.filter(day=day, uid=self.alice.uid).exists())
        self.assertEqual(AnalyticsEvent.objects.get(page="policy").src, "ad")
