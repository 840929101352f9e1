from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import TestCase, override_settings

from shelter.common.clock import metrics_day_key
from shelter.common.testing import FIXED_NOW, frozen_now
from shelter.events.models import OutboxEvent
from shelter.matches.models import MatchEntry, PairHistory, WeatherDiag
from shelter.metrics.models import AnalyticsEvent, DailyVisitor, RoomAudit
from shelter.metrics.services import read_daily
from shelter.rooms.models import Message, Room
from shelter.sweeper.sweep import sweep

LATER = FIXED_NOW + timedelta(hours=4)


class SweepTest(TestCase):
    def make_room(self, expire_at, messages=0):
        with frozen_now():
            room = Room.objects.create(
                members=["u1", "u2"], queue_key="global", expire_at=expire_at
            )
            for i in range(messages):
                Message.objects.create(room=room, uid="u1", text=f"m{i}")
        return room

    def make_entry(self, expires_at, status=MatchEntry.QUEUED):
        return MatchEntry.objects.create(
            uid="u1", queue_key="global", status=status, expires_at=expires_at
        )

    def test_expired_room_is_metered_and_deleted(self):
        room = self.make_room(FIXED_NOW + timedelta(hours=3), messages=3)
        alive = self.make_room(LATER + timedelta(hours=1), messages=1)

        report = sweep(now=LATER)

        self.assertEqual(report.rooms_metered, 1)
        self.assertEqual(report.rooms_deleted, 1)
        self.assertEqual(report.deleted["room_messages"], 3)
        self.assertFalse(Room.objects.filter(pk=room.pk).exists())
        self.assertTrue(Room.objects.filter(pk=alive.pk).exists())
        self.assertEqual(Message.objects.count(), 1)

        counters = read_daily(metrics_day_key(LATER))
        self.assertEqual(counters["rooms_ended_total"], 1)
        self.assertEqual(counters["room_total_duration_sec"], 4 * 3600)
        self.assertEqual(RoomAudit.objects.get(room_id=room.room_id).closed_reason, "gc_expire")

    def test_entries_history_and_diagnostics(self):
        self.make_entry(FIXED_NOW, status=MatchEntry.CANCELED)
        self.make_entry(FIXED_NOW + timedelta(minutes=12))
        kept = self.make_entry(LATER + timedelta(minutes=5))
        PairHistory.objects.create(day="2025-05-30", pair_key="a_b", expire_at=FIXED_NOW)
        PairHistory.objects.create(day="2025-06-01", pair_key="a_b", expire_at=LATER + timedelta(hours=1))
        with frozen_now(FIXED_NOW - timedelta(days=4)):
            WeatherDiag.objects.create(uid="u1", mode="log")
        OutboxEvent.objects.create(
            kind=OutboxEvent.ROOM_CLOSED, payload={}, processed_at=FIXED_NOW - timedelta(days=4)
        )
        pending = OutboxEvent.objects.create(kind=OutboxEvent.ROOM_CLOSED, payload={})

        report = sweep(now=LATER)

        self.assertEqual(report.deleted["match_entries"], 2)
        self.assertEqual(list(MatchEntry.objects.all()), [kept])
        self.assertEqual(PairHistory.objects.count(), 1)
        self.assertFalse(WeatherDiag.objects.exists())
        self.assertEqual(list(OutboxEvent.objects.all()), [pending])

    def test_visit_records_age_out(self):
        DailyVisitor.objects.create(day="2025-05-28", uid="u1", first_at=FIXED_NOW - timedelta(days=4))
        today = DailyVisitor.objects.create(day="2025-06-01", uid="u1", first_at=FIXED_NOW)
        AnalyticsEvent.objects.create(type="visit", page="landing", at=FIXED_NOW - timedelta(days=31))
        recent = AnalyticsEvent.objects.create(type="visit", page="chat", at=FIXED_NOW - timedelta(days=4))

        report = sweep(now=LATER)

        self.assertEqual(report.deleted["daily_visitors"], 1)
        self.assertEqual(report.deleted["analytics_raw"], 1)
        self.assertEqual(list(DailyVisitor.objects.all()), [today])
        self.assertEqual(list(AnalyticsEvent.objects.all()), [recent])

    def test_old_messages_in_live_room(self):
        room = self.make_room(FIXED_NOW + timedelta(days=1), messages=2)
        sweep(now=FIXED_NOW + timedelta(hours=7))

        self.assertTrue(Room.objects.filter(pk=room.pk).exists())
        self.assertFalse(Message.objects.exists())

    @override_settings(GC_BATCH_SIZE=2, GC_MAX_DELETES_PER_RUN=3)
    def test_deletes_are_capped_per_run(self):
        for _ in range(5):
            self.make_entry(FIXED_NOW)

        self.assertEqual(sweep(now=LATER).deleted["match_entries"], 3)
        self.assertEqual(sweep(now=LATER).deleted["match_entries"], 2)
        self.assertFalse(MatchEntry.objects.exists())

    @override_settings(GC_BATCH_SIZE=2, GC_MESSAGE_LOOPS=1)
    def test_room_waits_until_messages_are_gone(self):
        room = self.make_room(FIXED_NOW + timedelta(hours=3), messages=3)

        first = sweep(now=LATER)
        self.assertEqual(first.rooms_metered, 1)
        self.assertEqual(first.rooms_deleted, 0)
        room.refresh_from_db()
        self.assertEqual(room.status, Room.CLOSED)

        second = sweep(now=LATER)
        self.assertEqual(second.rooms_metered, 0)
        self.assertEqual(second.rooms_deleted, 1)
        self.assertEqual(read_daily(metrics_day_key(LATER))["rooms_ended_total"], 1)

    def test_room_sweep_removes_its_matched_entries(self):
        room = self.make_room(FIXED_NOW + timedelta(hours=3))
        alive = self.make_room(LATER + timedelta(hours=1))
        for r in (room, room, alive):
            entry = self.make_entry(LATER + timedelta(hours=1), status=MatchEntry.MATCHED)
            MatchEntry.objects.filter(pk=entry.pk).update(room=r)

        report = sweep(now=LATER)

        self.assertEqual(report.deleted["room_entries"], 2)
        self.assertFalse(
            MatchEntry.objects.filter(status=MatchEntry.MATCHED, room__isnull=True).exists()
        )
        self.assertEqual(MatchEntry.objects.filter(room=alive).count(), 1)

    def test_deleting_a_room_takes_its_entries_along(self):
        room = self.make_room(LATER + timedelta(hours=1))
        entry = self.make_entry(LATER + timedelta(hours=1), status=MatchEntry.MATCHED)
        MatchEntry.objects.filter(pk=entry.pk).update(room=room)

        room.delete()

        self.assertFalse(MatchEntry.objects.filter(pk=entry.pk).exists())

    def test_command(self):
        self.make_entry(FIXED_NOW)
        out = StringIO()
        call_command("sweep", stdout=out)
        self.assertIn("deleted=1", out.getvalue())
