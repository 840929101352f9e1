from datetime import timedelta
from unittest import mock

from django.db import OperationalError
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from shelter.common.clock import metrics_day_key, utc_day_key
from shelter.common.exceptions import (
    ConflictExhausted,
    EntryNotFound,
    NotOwner,
    TransactionConflict,
)
from shelter.common.redis_client import get_redis
from shelter.common.runtime_config import CONFIG_KEY, get_config
from shelter.common.testing import FIXED_NOW, UsersMixin, frozen_now
from shelter.matches import heartbeat, matching, services
from shelter.matches.models import MatchEntry, PairHistory, WeatherDiag
from shelter.metrics.services import read_daily
from shelter.rooms.models import Room
from shelter.users.models import UserState
from shelter.users.views import issue_jwt_for_user


def deny_all(uid, geo):
    return False


def broken_predicate(uid, geo):
    raise RuntimeError("weather api down")


def make_entry(uid, queue_key="global", now=FIXED_NOW, seen_ago=0, **extra):
    fields = {
        "uid": uid,
        "queue_key": queue_key,
        "status": MatchEntry.QUEUED,
        "last_seen_at": now - timedelta(seconds=seen_ago),
        "expires_at": now + timedelta(minutes=12),
    }
    fields.update(extra)
    return MatchEntry.objects.create(**fields)


class HeartbeatTest(TestCase):
    def entry(self, **fields):
        base = {
            "uid": "u1",
            "queue_key": "global",
            "status": MatchEntry.QUEUED,
            "last_seen_at": FIXED_NOW,
            "expires_at": FIXED_NOW + timedelta(minutes=12),
        }
        base.update(fields)
        return MatchEntry(**base)

    def test_fresh_entry_is_live(self):
        self.assertEqual(heartbeat.liveness(self.entry(), FIXED_NOW, 45), heartbeat.LIVE)
        self.assertTrue(heartbeat.is_matchable(self.entry(), FIXED_NOW, 45))

    def test_silent_entry_is_stale(self):
        entry = self.entry(last_seen_at=FIXED_NOW - timedelta(seconds=46))
        self.assertEqual(heartbeat.liveness(entry, FIXED_NOW, 45), heartbeat.STALE)
        self.assertEqual(heartbeat.effective_status(entry, FIXED_NOW, 45), "stale")

    def test_expiry_wins_over_staleness(self):
        entry = self.entry(
            last_seen_at=FIXED_NOW - timedelta(minutes=20),
            expires_at=FIXED_NOW,
        )
        self.assertEqual(heartbeat.liveness(entry, FIXED_NOW, 45), heartbeat.EXPIRED)

    def test_terminal_status_is_reported_as_is(self):
        entry = self.entry(status=MatchEntry.MATCHED, expires_at=FIXED_NOW)
        self.assertEqual(heartbeat.effective_status(entry, FIXED_NOW, 45), "matched")
        self.assertFalse(heartbeat.is_matchable(entry, FIXED_NOW, 45))


class EnterTest(UsersMixin, TestCase):
    def test_two_users_are_matched_into_one_room(self):
        with frozen_now():
            with self.captureOnCommitCallbacks(execute=True):
                first = services.enter(self.alice.uid, "global", profile={"nickname": "A"})
            with self.captureOnCommitCallbacks(execute=True):
                second = services.enter(self.bob.uid, "global", profile={"nickname": "B"})

        self.assertEqual(first["status"], "queued")
        self.assertEqual(second["status"], "queued")

        a = MatchEntry.objects.get(entry_id=first["entryId"])
        b = MatchEntry.objects.get(entry_id=second["entryId"])
        self.assertEqual(a.status, MatchEntry.MATCHED)
        self.assertEqual(b.status, MatchEntry.MATCHED)
        self.assertEqual(a.room_id, b.room_id)

        room = Room.objects.get()
        self.assertEqual(sorted(room.members), sorted([self.alice.uid, self.bob.uid]))
        self.assertEqual(room.status, Room.OPEN)
        self.assertEqual(room.queue_key, "global")
        self.assertEqual(room.expire_at, FIXED_NOW + timedelta(hours=3))
        self.assertEqual(room.profiles[self.alice.uid]["nickname"], "A")

        self.assertTrue(
            PairHistory.objects.filter(
                day=utc_day_key(FIXED_NOW),
                pair_key=PairHistory.key_for(self.alice.uid, self.bob.uid),
            ).exists()
        )
        counters = read_daily(metrics_day_key(FIXED_NOW))
        self.assertEqual(counters["queue_enter_total"], 2)
        self.assertEqual(counters["queue_enter_global_total"], 2)
        self.assertEqual(counters["match_made_total"], 1)
        self.assertEqual(counters["match_made_global_total"], 1)

    def test_lone_entry_keeps_waiting(self):
        with frozen_now():
            with self.captureOnCommitCallbacks(execute=True):
                result = services.enter(self.alice.uid, "country")

        entry = MatchEntry.objects.get(entry_id=result["entryId"])
        self.assertEqual(entry.status, MatchEntry.QUEUED)
        self.assertEqual(entry.info, matching.INFO_WAITING)
        self.assertEqual(entry.expires_at, FIXED_NOW + timedelta(minutes=12))
        self.assertFalse(Room.objects.exists())

    def test_different_queues_do_not_mix(self):
        with frozen_now():
            with self.captureOnCommitCallbacks(execute=True):
                services.enter(self.alice.uid, "country")
            with self.captureOnCommitCallbacks(execute=True):
                services.enter(self.bob.uid, "global")

        self.assertFalse(Room.objects.exists())
        self.assertEqual(MatchEntry.objects.filter(status=MatchEntry.QUEUED).count(), 2)

    def test_unknown_queue_key_is_rejected(self):
        with self.assertRaises(ValidationError):
            services.enter(self.alice.uid, "owner")
        self.assertFalse(MatchEntry.objects.exists())

    def test_profile_is_sanitized(self):
        with frozen_now():
            result = services.enter(
                self.alice.uid, "global", profile={"nickname": "x" * 100, "extra": "drop"}
            )
        entry = MatchEntry.objects.get(entry_id=result["entryId"])
        self.assertEqual(len(entry.profile["nickname"]), 40)
        self.assertNotIn("extra", entry.profile)

    def test_cooldown_after_leaving(self):
        UserState.objects.create(uid=self.alice.uid, last_left_at=FIXED_NOW - timedelta(seconds=10))

        with frozen_now():
            first = services.enter(self.alice.uid, "global")
        with frozen_now(FIXED_NOW + timedelta(seconds=5)):
            second = services.enter(self.alice.uid, "global")

        self.assertEqual(first, {"status": "cooldown", "retryAfterSec": 20})
        self.assertEqual(second, {"status": "cooldown", "retryAfterSec": 15})
        self.assertFalse(MatchEntry.objects.exists())
        self.assertEqual(read_daily(metrics_day_key(FIXED_NOW))["queue_cooldown_total"], 2)

    def test_cooldown_over(self):
        UserState.objects.create(uid=self.alice.uid, last_left_at=FIXED_NOW - timedelta(seconds=30))
        with frozen_now():
            result = services.enter(self.alice.uid, "global")
        self.assertEqual(result["status"], "queued")

    def test_cooldown_override_from_runtime_config(self):
        get_redis().hset(CONFIG_KEY, "cooldownSec", "0")
        UserState.objects.create(uid=self.alice.uid, last_left_at=FIXED_NOW - timedelta(seconds=1))
        with frozen_now():
            result = services.enter(self.alice.uid, "global")
        self.assertEqual(result["status"], "queued")

    @override_settings(WEATHER_GATE_PREDICATE="shelter.matches.tests.deny_all")
    def test_enforce_mode_denies_entry(self):
        get_redis().hset(CONFIG_KEY, "weatherGateMode", "enforce")
        with frozen_now():
            result = services.enter(
                self.alice.uid, "global", geo={"lat": 35.6, "lon": 139.7, "region": "Tokyo"}
            )

        self.assertEqual(result, {"status": "denied"})
        self.assertFalse(MatchEntry.objects.exists())
        diag = WeatherDiag.objects.get()
        self.assertFalse(diag.ok)
        self.assertEqual(diag.mode, "enforce")
        self.assertEqual(diag.region, "Tokyo")
        self.assertEqual(read_daily(metrics_day_key(FIXED_NOW))["queue_denied_total"], 1)

    @override_settings(WEATHER_GATE_PREDICATE="shelter.matches.tests.deny_all")
    def test_log_mode_only_records(self):
        get_redis().hset(CONFIG_KEY, "weatherGateMode", "log")
        result = services.enter(self.alice.uid, "global", geo={})

        self.assertEqual(result["status"], "queued")
        diag = WeatherDiag.objects.get()
        self.assertFalse(diag.ok)
        self.assertEqual(diag.mode, "log")

    @override_settings(WEATHER_GATE_PREDICATE="shelter.matches.tests.broken_predicate")
    def test_failing_predicate_lets_user_in(self):
        get_redis().hset(CONFIG_KEY, "weatherGateMode", "enforce")
        result = services.enter(self.alice.uid, "global", geo={})

        self.assertEqual(result["status"], "queued")
        diag = WeatherDiag.objects.get()
        self.assertTrue(diag.ok)
        self.assertIn("weather api down", diag.error)

    def test_gate_off_writes_no_diagnostics(self):
        services.enter(self.alice.uid, "global", geo={})
        self.assertFalse(WeatherDiag.objects.exists())


class MatchingTest(UsersMixin, TestCase):
    def make_room(self):
        return Room.objects.create(
            members=[self.alice.uid, self.bob.uid],
            queue_key="global",
            expire_at=FIXED_NOW + timedelta(hours=3),
        )

    def test_never_matches_same_user(self):
        make_entry(self.alice.uid)
        mine = make_entry(self.alice.uid)

        outcome = matching.match_entry(mine.pk, now=FIXED_NOW)

        self.assertEqual(outcome.status, "waiting")
        self.assertEqual(MatchEntry.objects.filter(status=MatchEntry.QUEUED).count(), 2)
        self.assertFalse(Room.objects.exists())

    def test_pair_is_not_rematched_same_day(self):
        PairHistory.objects.create(
            day=utc_day_key(FIXED_NOW),
            pair_key=PairHistory.key_for(self.alice.uid, self.bob.uid),
            expire_at=FIXED_NOW + timedelta(hours=48),
        )
        make_entry(self.alice.uid)
        mine = make_entry(self.bob.uid)

        outcome = matching.match_entry(mine.pk, now=FIXED_NOW)

        self.assertEqual(outcome.status, "waiting")
        mine.refresh_from_db()
        self.assertEqual(mine.status, MatchEntry.QUEUED)
        self.assertEqual(mine.info, matching.INFO_PAIRED_TODAY)

    def test_blocked_pair_falls_through_to_next_candidate(self):
        PairHistory.objects.create(
            day=utc_day_key(FIXED_NOW),
            pair_key=PairHistory.key_for(self.alice.uid, self.bob.uid),
            expire_at=FIXED_NOW + timedelta(hours=48),
        )
        alice = make_entry(self.alice.uid)
        carol = make_entry(self.carol.uid)
        mine = make_entry(self.bob.uid)

        outcome = matching.match_entry(mine.pk, now=FIXED_NOW)

        self.assertEqual(outcome.status, "matched")
        self.assertEqual(outcome.partner_uid, self.carol.uid)
        alice.refresh_from_db()
        carol.refresh_from_db()
        self.assertEqual(alice.status, MatchEntry.QUEUED)
        self.assertEqual(carol.status, MatchEntry.MATCHED)

    def test_pair_history_is_per_utc_day(self):
        yesterday = FIXED_NOW - timedelta(days=1)
        PairHistory.objects.create(
            day=utc_day_key(yesterday),
            pair_key=PairHistory.key_for(self.alice.uid, self.bob.uid),
            expire_at=FIXED_NOW + timedelta(hours=24),
        )
        make_entry(self.alice.uid)
        mine = make_entry(self.bob.uid)

        self.assertEqual(matching.match_entry(mine.pk, now=FIXED_NOW).status, "matched")

    def test_longest_waiting_candidate_first(self):
        make_entry(self.alice.uid)
        make_entry(self.carol.uid)
        mine = make_entry(self.bob.uid)

        outcome = matching.match_entry(mine.pk, now=FIXED_NOW)
        self.assertEqual(outcome.partner_uid, self.alice.uid)

    def test_stale_candidate_is_retired(self):
        alice = make_entry(self.alice.uid, seen_ago=60)
        mine = make_entry(self.bob.uid)

        outcome = matching.match_entry(mine.pk, now=FIXED_NOW)

        self.assertEqual(outcome.status, "waiting")
        alice.refresh_from_db()
        self.assertEqual(alice.status, MatchEntry.STALE)
        self.assertEqual(alice.expires_at, FIXED_NOW)

    def test_expired_candidate_is_retired(self):
        alice = make_entry(self.alice.uid, expires_at=FIXED_NOW - timedelta(seconds=1))
        mine = make_entry(self.bob.uid)

        matching.match_entry(mine.pk, now=FIXED_NOW)

        alice.refresh_from_db()
        self.assertEqual(alice.status, MatchEntry.EXPIRED)

    def test_stale_entry_does_not_match(self):
        make_entry(self.alice.uid)
        mine = make_entry(self.bob.uid, seen_ago=60)

        outcome = matching.match_entry(mine.pk, now=FIXED_NOW)

        self.assertEqual(outcome.status, heartbeat.STALE)
        mine.refresh_from_db()
        self.assertEqual(mine.status, MatchEntry.STALE)
        self.assertFalse(Room.objects.exists())

    def test_non_queued_entry_is_skipped(self):
        make_entry(self.alice.uid)
        mine = make_entry(self.bob.uid, status=MatchEntry.CANCELED)

        self.assertEqual(matching.match_entry(mine.pk, now=FIXED_NOW).status, "skipped")
        self.assertEqual(matching.match_entry(10_000, now=FIXED_NOW).status, "skipped")

    def test_matched_candidate_is_not_claimed_twice(self):
        make_entry(self.alice.uid)
        bob = make_entry(self.bob.uid)
        carol = make_entry(self.carol.uid)

        matching.match_entry(bob.pk, now=FIXED_NOW)
        outcome = matching.match_entry(carol.pk, now=FIXED_NOW)

        self.assertEqual(outcome.status, "waiting")
        self.assertEqual(Room.objects.count(), 1)
        carol.refresh_from_db()
        self.assertEqual(carol.status, MatchEntry.QUEUED)

    def test_claim_requires_queued_status(self):
        alice = make_entry(self.alice.uid)
        MatchEntry.objects.filter(pk=alice.pk).update(status=MatchEntry.MATCHED)

        with self.assertRaises(TransactionConflict):
            matching._claim(alice, self.make_room(), FIXED_NOW)

    def test_conflict_rolls_back_and_retries(self):
        make_entry(self.alice.uid)
        mine = make_entry(self.bob.uid)

        with mock.patch.object(
            matching, "_record_pair", side_effect=[TransactionConflict("lost race"), None]
        ):
            outcome = matching.match_entry(mine.pk, now=FIXED_NOW)

        self.assertEqual(outcome.status, "matched")
        # 첫 시도에서 만든 룸은 롤백됨
        self.assertEqual(Room.objects.count(), 1)
        self.assertEqual(MatchEntry.objects.filter(status=MatchEntry.MATCHED).count(), 2)

    @override_settings(TX_MAX_ATTEMPTS=2)
    def test_exhausted_conflicts_leave_queue_untouched(self):
        make_entry(self.alice.uid)
        mine = make_entry(self.bob.uid)

        with mock.patch.object(
            matching, "_record_pair", side_effect=TransactionConflict("lost race")
        ):
            with self.assertRaises(ConflictExhausted):
                matching.match_entry(mine.pk, now=FIXED_NOW)

        self.assertFalse(Room.objects.exists())
        self.assertEqual(MatchEntry.objects.filter(status=MatchEntry.QUEUED).count(), 2)

    def test_candidates_are_locked_without_skipping(self):
        mine = make_entry(self.bob.uid)

        qs = matching._candidate_queryset(mine, get_config())

        self.assertTrue(qs.query.select_for_update)
        self.assertFalse(qs.query.select_for_update_skip_locked)
        self.assertFalse(qs.query.select_for_update_nowait)

    def test_locked_candidate_is_retried_not_rearmed(self):
        # 상대 매칭이 후보 행을 잡고 있다가 deadlock 으로 끊긴 상황
        alice = make_entry(self.alice.uid)
        mine = make_entry(self.bob.uid)
        real = matching._candidate_queryset
        calls = []

        def contended(me, cfg):
            calls.append(me.pk)
            if len(calls) == 1:
                raise OperationalError("deadlock detected")
            return real(me, cfg)

        with mock.patch.object(matching, "_candidate_queryset", side_effect=contended), \
                mock.patch("shelter.common.transactions.time.sleep"):
            outcome = matching.match_entry(mine.pk, now=FIXED_NOW)

        self.assertEqual(len(calls), 2)
        self.assertEqual(outcome.status, "matched")
        self.assertEqual(outcome.partner_uid, self.alice.uid)
        mine.refresh_from_db()
        alice.refresh_from_db()
        self.assertEqual(mine.status, MatchEntry.MATCHED)
        self.assertEqual(mine.info, "")
        self.assertEqual(alice.room_id, mine.room_id)

    def test_simultaneous_arrivals_end_in_one_room(self):
        alice = make_entry(self.alice.uid)
        bob = make_entry(self.bob.uid)

        first = matching.match_entry(bob.pk, now=FIXED_NOW)
        second = matching.match_entry(alice.pk, now=FIXED_NOW)

        self.assertEqual(first.status, "matched")
        self.assertEqual(second.status, "skipped")
        self.assertEqual(Room.objects.count(), 1)
        self.assertFalse(MatchEntry.objects.filter(status=MatchEntry.QUEUED).exists())


class TouchCancelTest(UsersMixin, TestCase):
    def test_touch_extends_expiry(self):
        entry = make_entry(self.alice.uid)
        later = FIXED_NOW + timedelta(minutes=5)
        with frozen_now(later):
            self.assertTrue(services.touch_entry(self.alice.uid, entry.entry_id))

        entry.refresh_from_db()
        self.assertEqual(entry.last_seen_at, later)
        self.assertEqual(entry.expires_at, later + timedelta(minutes=12))

    def test_touch_never_shortens_expiry(self):
        far = FIXED_NOW + timedelta(minutes=30)
        entry = make_entry(self.alice.uid, expires_at=far)
        with frozen_now():
            services.touch_entry(self.alice.uid, entry.entry_id)

        entry.refresh_from_db()
        self.assertEqual(entry.expires_at, far)

    def test_touch_does_not_revive_expired_entry(self):
        entry = make_entry(self.alice.uid)
        with frozen_now(FIXED_NOW + timedelta(minutes=13)):
            self.assertFalse(services.touch_entry(self.alice.uid, entry.entry_id))

        entry.refresh_from_db()
        self.assertEqual(entry.last_seen_at, FIXED_NOW)

    def test_touch_is_noop_for_matched_entry(self):
        entry = make_entry(self.alice.uid, status=MatchEntry.MATCHED)
        with frozen_now():
            self.assertFalse(services.touch_entry(self.alice.uid, entry.entry_id))

    def test_touch_of_someone_elses_entry(self):
        entry = make_entry(self.alice.uid)
        with self.assertRaises(NotOwner):
            services.touch_entry(self.bob.uid, entry.entry_id)

    def test_cancel(self):
        entry = make_entry(self.alice.uid)
        with frozen_now():
            self.assertTrue(services.cancel_entry(self.alice.uid, entry.entry_id))
            self.assertFalse(services.cancel_entry(self.alice.uid, entry.entry_id))

        entry.refresh_from_db()
        self.assertEqual(entry.status, MatchEntry.CANCELED)
        self.assertEqual(entry.canceled_at, FIXED_NOW)
        self.assertEqual(entry.expires_at, FIXED_NOW)

    def test_cancel_my_queued_entries(self):
        make_entry(self.alice.uid)
        make_entry(self.alice.uid, queue_key="country")
        matched = make_entry(self.alice.uid, status=MatchEntry.MATCHED)
        other = make_entry(self.bob.uid)

        self.assertEqual(services.cancel_my_queued_entries(self.alice.uid), 2)
        self.assertEqual(services.cancel_my_queued_entries(self.alice.uid), 0)

        matched.refresh_from_db()
        other.refresh_from_db()
        self.assertEqual(matched.status, MatchEntry.MATCHED)
        self.assertEqual(other.status, MatchEntry.QUEUED)

    def test_get_entry(self):
        entry = make_entry(self.alice.uid)
        self.assertEqual(services.get_entry(self.alice.uid, entry.entry_id), entry)
        with self.assertRaises(NotOwner):
            services.get_entry(self.bob.uid, entry.entry_id)
        with self.assertRaises(EntryNotFound):
            services.get_entry(self.alice.uid, "00000000-0000-0000-0000-000000000000")


class EntryApiTest(UsersMixin, TestCase):
    def test_enter_and_read_entry(self):
        client = self.api(self.alice)
        res = client.post("/api/match/enter", {"queueKey": "global"}, format="json")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["status"], "queued")

        res = client.get(f"/api/match/entries/{res.data['entryId']}")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["status"], "queued")
        self.assertEqual(res.data["queueKey"], "global")
        self.assertIsNone(res.data["roomId"])

    def test_requires_token(self):
        res = self.api().post("/api/match/enter", {"queueKey": "global"}, format="json")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.data["error"]["code"], "UNAUTHORIZED")

    def test_invalid_queue_key(self):
        res = self.api(self.alice).post("/api/match/enter", {"queueKey": "moon"}, format="json")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "VALIDATION_ERROR")

    def test_silent_entry_reads_as_stale(self):
        now = timezone.now()
        entry = make_entry(self.alice.uid, now=now, seen_ago=60)
        res = self.api(self.alice).get(f"/api/match/entries/{entry.entry_id}")
        self.assertEqual(res.data["status"], "stale")

    def test_other_users_entry_is_forbidden(self):
        entry = make_entry(self.alice.uid)
        res = self.api(self.bob).get(f"/api/match/entries/{entry.entry_id}")
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.data["error"]["code"], "FORBIDDEN")

    def test_touch_and_cancel_endpoints(self):
        entry = make_entry(self.alice.uid, now=timezone.now())
        client = self.api(self.alice)

        self.assertEqual(client.post(f"/api/match/entries/{entry.entry_id}/touch").status_code, 200)
        self.assertEqual(client.post(f"/api/match/entries/{entry.entry_id}/cancel").status_code, 200)
        entry.refresh_from_db()
        self.assertEqual(entry.status, MatchEntry.CANCELED)

    def test_cancel_mine_endpoint(self):
        make_entry(self.alice.uid)
        res = self.api(self.alice).post("/api/match/cancel-mine")
        self.assertEqual(res.data, {"canceled": 1})


class BeaconCancelTest(UsersMixin, TestCase):
    url = "/api/match/beacon-cancel"

    def test_bearer_token(self):
        make_entry(self.alice.uid)
        res = self.api(self.alice).post(self.url)
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data, {"canceled": 1})
        self.assertEqual(res["Access-Control-Allow-Origin"], "*")

    def test_id_token_in_json_body(self):
        make_entry(self.alice.uid)
        res = self.api().post(
            self.url, {"idToken": issue_jwt_for_user(self.alice)}, format="json"
        )
        self.assertEqual(res.data, {"canceled": 1})

    def test_id_token_in_form_body(self):
        make_entry(self.alice.uid)
        res = self.api().post(self.url, {"idToken": issue_jwt_for_user(self.alice)})
        self.assertEqual(res.data, {"canceled": 1})

    def test_replayed_beacon_is_harmless(self):
        make_entry(self.alice.uid)
        client = self.api(self.alice)
        client.post(self.url)
        res = client.post(self.url)
        self.assertEqual(res.data, {"canceled": 0})

    def test_missing_token(self):
        res = self.api().post(self.url)
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.data["error"]["code"], "UNAUTHORIZED")

    def test_invalid_token(self):
        entry = make_entry(self.alice.uid)
        res = self.api().post(self.url, {"idToken": "not-a-jwt"}, format="json")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.data["error"]["code"], "INVALID_TOKEN")
        entry.refresh_from_db()
        self.assertEqual(entry.status, MatchEntry.QUEUED)

    def test_preflight(self):
        res = self.api().options(self.url)
        self.assertEqual(res.status_code, 204)
        self.assertIn("POST", res["Access-Control-Allow-Methods"])
