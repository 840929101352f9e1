from datetime import timedelta
from unittest import mock

from django.core.management import call_command
from django.test import TestCase, override_settings

from shelter.common.testing import FIXED_NOW, frozen_now
from shelter.events import dispatcher
from shelter.events.models import OutboxEvent

calls = []


def recording_handler(**payload):
    calls.append(payload)


def exploding_handler(**payload):
    raise RuntimeError("boom")


def draining_handler(**payload):
    # 핸들러가 도는 사이 워커의 drain 이 같은 이벤트를 보는 상황
    calls.append(payload)
    if len(calls) == 1:
        dispatcher.drain()


class DispatcherTest(TestCase):
    def setUp(self):
        calls.clear()
        patcher = mock.patch.dict(
            dispatcher.HANDLERS,
            {
                OutboxEvent.ROOM_CLOSED: "shelter.events.tests.recording_handler",
                OutboxEvent.MESSAGE_CREATED: "shelter.events.tests.exploding_handler",
                OutboxEvent.ENTRY_CREATED: "shelter.events.tests.draining_handler",
            },
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            dispatcher.publish("room.exploded", room_pk=1)

    def test_eager_publish_dispatches_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            event = dispatcher.publish(OutboxEvent.ROOM_CLOSED, room_pk=7)

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(calls, [{"room_pk": 7}])
        event.refresh_from_db()
        self.assertIsNotNone(event.processed_at)
        self.assertEqual(event.attempts, 1)

    @override_settings(EVENTS_EAGER=False)
    def test_deferred_publish_waits_for_worker(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            dispatcher.publish(OutboxEvent.ROOM_CLOSED, room_pk=7)

        self.assertEqual(callbacks, [])
        self.assertEqual(calls, [])
        self.assertEqual(dispatcher.drain(), 1)
        self.assertEqual(calls, [{"room_pk": 7}])
        self.assertEqual(dispatcher.drain(), 0)

    def test_processed_event_is_not_redelivered(self):
        event = OutboxEvent.objects.create(kind=OutboxEvent.ROOM_CLOSED, payload={"room_pk": 1})
        self.assertTrue(dispatcher.dispatch(event.pk))
        self.assertFalse(dispatcher.dispatch(event.pk))
        self.assertEqual(len(calls), 1)

    @override_settings(EVENT_MAX_ATTEMPTS=2)
    def test_failing_handler_is_retried_then_parked(self):
        event = OutboxEvent.objects.create(kind=OutboxEvent.MESSAGE_CREATED, payload={"message_pk": 1})

        self.assertFalse(dispatcher.dispatch(event.pk))
        event.refresh_from_db()
        self.assertEqual(event.attempts, 1)
        self.assertEqual(event.last_error, "boom")
        self.assertIsNone(event.processed_at)

        self.assertEqual(dispatcher.drain(), 0)
        self.assertEqual(dispatcher.drain(), 0)
        event.refresh_from_db()
        self.assertEqual(event.attempts, 2)

    @override_settings(EVENTS_EAGER=False)
    def test_run_events_once(self):
        dispatcher.publish(OutboxEvent.ROOM_CLOSED, room_pk=3)
        call_command("run_events", "--once")
        self.assertEqual(calls, [{"room_pk": 3}])

    def test_drain_skips_event_being_handled(self):
        with self.captureOnCommitCallbacks(execute=True):
            event = dispatcher.publish(OutboxEvent.ENTRY_CREATED, entry_pk=5)

        self.assertEqual(calls, [{"entry_pk": 5}])
        event.refresh_from_db()
        self.assertEqual(event.attempts, 1)
        self.assertIsNotNone(event.processed_at)

    def test_leased_event_waits_until_lease_expires(self):
        with frozen_now():
            event = OutboxEvent.objects.create(kind=OutboxEvent.ROOM_CLOSED, payload={"room_pk": 2})
            OutboxEvent.objects.filter(pk=event.pk).update(claimed_at=FIXED_NOW, attempts=1)

            self.assertFalse(dispatcher.dispatch(event.pk))
            self.assertEqual(dispatcher.drain(), 0)
        self.assertEqual(calls, [])

        # claim 한 프로세스가 죽은 경우: lease 가 끝나면 다시 처리
        with self.settings(EVENT_LEASE_SEC=60), frozen_now(FIXED_NOW + timedelta(seconds=61)):
            self.assertEqual(dispatcher.drain(), 1)
        self.assertEqual(calls, [{"room_pk": 2}])
        event.refresh_from_db()
        self.assertEqual(event.attempts, 2)

    def test_failed_event_releases_its_lease(self):
        event = OutboxEvent.objects.create(kind=OutboxEvent.MESSAGE_CREATED, payload={"message_pk": 1})

        dispatcher.dispatch(event.pk)

        event.refresh_from_db()
        self.assertIsNone(event.claimed_at)
        self.assertEqual(event.last_error, "boom")
