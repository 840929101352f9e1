from datetime import datetime, timedelta, timezone as dt_timezone
from unittest import mock

import redis
from django.db import OperationalError
from django.test import SimpleTestCase, TestCase, override_settings

from shelter.common import clock, runtime_config
from shelter.common.exceptions import ConflictExhausted, TransactionConflict
from shelter.common.redis_client import get_redis
from shelter.common.transactions import run_in_transaction
from shelter.users.models import UserState


class ClockTest(SimpleTestCase):
    def test_day_keys(self):
        now = datetime(2025, 6, 1, 23, 30, tzinfo=dt_timezone.utc)
        self.assertEqual(clock.utc_day_key(now), "2025-06-01")
        self.assertEqual(clock.metrics_day_key(now), "2025-06-02")

    def test_seconds_between_is_never_negative(self):
        now = datetime(2025, 6, 1, tzinfo=dt_timezone.utc)
        self.assertEqual(clock.seconds_between(now, now + timedelta(seconds=90.9)), 90)
        self.assertEqual(clock.seconds_between(now, now - timedelta(seconds=5)), 0)
        self.assertEqual(clock.seconds_between(None, now), 0)


class RuntimeConfigTest(SimpleTestCase):
    def test_defaults_come_from_settings(self):
        cfg = runtime_config.get_config()
        self.assertEqual(cfg.queue_keys, ("country", "global"))
        self.assertEqual(cfg.cooldown_sec, 30)
        self.assertEqual(cfg.weather_gate_mode, "off")

    def test_overrides(self):
        get_redis().hset(
            runtime_config.CONFIG_KEY,
            mapping={"weatherGateMode": "enforce", "cooldownSec": "5"},
        )
        cfg = runtime_config.load_config()
        self.assertEqual(cfg.weather_gate_mode, "enforce")
        self.assertEqual(cfg.cooldown_sec, 5)

    def test_bad_overrides_are_ignored(self):
        get_redis().hset(
            runtime_config.CONFIG_KEY,
            mapping={"weatherGateMode": "sometimes", "cooldownSec": "soon"},
        )
        cfg = runtime_config.load_config()
        self.assertEqual(cfg.weather_gate_mode, "off")
        self.assertEqual(cfg.cooldown_sec, 30)

    def test_redis_outage_falls_back_to_defaults(self):
        broken = mock.Mock()
        broken.hgetall.side_effect = redis.ConnectionError("down")
        with mock.patch.object(runtime_config, "get_redis", return_value=broken):
            cfg = runtime_config.load_config()
        self.assertEqual(cfg.cooldown_sec, 30)

    def test_cached_until_refresh(self):
        self.assertEqual(runtime_config.get_config().cooldown_sec, 30)
        get_redis().hset(runtime_config.CONFIG_KEY, "cooldownSec", "1")
        self.assertEqual(runtime_config.get_config().cooldown_sec, 30)

        with override_settings(CONFIG_REFRESH_SEC=0):
            self.assertEqual(runtime_config.get_config().cooldown_sec, 1)


class RunInTransactionTest(TestCase):
    def test_retries_until_success(self):
        attempts = []

        def flaky():
            attempts.append(1)
            UserState.objects.create(uid=f"u{len(attempts)}")
            if len(attempts) < 3:
                raise TransactionConflict("try again")
            return "ok"

        with mock.patch("shelter.common.transactions.time.sleep"):
            self.assertEqual(run_in_transaction(flaky), "ok")

        # 실패한 시도의 쓰기는 롤백됨
        self.assertEqual(list(UserState.objects.values_list("uid", flat=True)), ["u3"])

    def test_gives_up(self):
        def locked():
            raise OperationalError("database is locked")

        with mock.patch("shelter.common.transactions.time.sleep"):
            with self.assertRaises(ConflictExhausted):
                run_in_transaction(locked, attempts=2)

    def test_other_errors_propagate(self):
        def broken():
            raise KeyError("x")

        with self.assertRaises(KeyError):
            run_in_transaction(broken)
