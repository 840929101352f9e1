import uuid
from datetime import timedelta

from asgiref.sync import async_to_sync
from channels.testing import WebsocketCommunicator
from django.test import TestCase, override_settings
from rest_framework.exceptions import ValidationError

from shelter.common.clock import metrics_day_key
from shelter.common.exceptions import NotOwner, RoomClosed, RoomNotFound
from shelter.common.testing import FIXED_NOW, UsersMixin, frozen_now
from shelter.matches import services as match_services
from shelter.metrics.handlers import handle_room_closed
from shelter.metrics.models import RoomAudit
from shelter.metrics.services import read_daily
from shelter.rooms import handlers, services
from shelter.rooms.models import BOT_UID, PEER_LEFT_KEY, Message, Room
from shelter.rooms.responders import FALLBACK_REPLY
from shelter.sweeper.sweep import sweep
from shelter.users.models import UserState


def broken_responder(room, history):
    raise RuntimeError("llm timeout")


class RoomMixin(UsersMixin):
    def make_room(self, *members, **extra):
        members = list(members) or [self.alice.uid, self.bob.uid]
        with frozen_now():
            return Room.objects.create(
                members=members,
                queue_key="global",
                expire_at=FIXED_NOW + timedelta(hours=3),
                profiles={
                    self.alice.uid: {"nickname": "Alice"},
                    self.bob.uid: {"nickname": "Bob"},
                },
                **extra,
            )


class LeaveTest(RoomMixin, TestCase):
    def test_first_leave_notifies_peer_once(self):
        room = self.make_room()
        with frozen_now():
            first = services.leave_room(self.alice.uid, room.room_id)
            second = services.leave_room(self.alice.uid, room.room_id)

        self.assertTrue(first.changed)
        self.assertFalse(first.closed)
        self.assertFalse(second.changed)

        room.refresh_from_db()
        self.assertEqual(room.members, [self.bob.uid])
        self.assertEqual(room.left_by, [self.alice.uid])
        self.assertEqual(room.status, Room.OPEN)
        self.assertEqual(room.last_left_at, FIXED_NOW)
        self.assertEqual(room.expire_at, FIXED_NOW + timedelta(minutes=5))

        notices = Message.objects.filter(room=room, key=PEER_LEFT_KEY)
        self.assertEqual(notices.count(), 1)
        self.assertTrue(notices.get().system)
        self.assertEqual(UserState.objects.get(uid=self.alice.uid).last_left_at, FIXED_NOW)

    def test_last_leave_closes_and_meters_once(self):
        room = self.make_room()
        closed_at = FIXED_NOW + timedelta(minutes=10)
        with frozen_now(closed_at):
            with self.captureOnCommitCallbacks(execute=True):
                services.leave_room(self.alice.uid, room.room_id)
            with self.captureOnCommitCallbacks(execute=True):
                outcome = services.leave_room(self.bob.uid, room.room_id)

        self.assertTrue(outcome.closed)
        room.refresh_from_db()
        self.assertEqual(room.status, Room.CLOSED)
        self.assertEqual(room.closed_reason, Room.REASON_LAST_LEFT)
        self.assertEqual(room.closed_by, self.bob.uid)
        self.assertEqual(room.ended_at, closed_at)
        self.assertEqual(room.stats_committed_at, closed_at)
        self.assertEqual(room.members, [])

        day = metrics_day_key(closed_at)
        counters = read_daily(day)
        self.assertEqual(counters["rooms_ended_total"], 1)
        self.assertEqual(counters["rooms_ended_human_total"], 1)
        self.assertEqual(counters["room_total_duration_sec"], 600)

        # 종료 이벤트 재전달 + sweeper fallback 이 와도 한 번만 집계
        handle_room_closed(room.pk)
        report = sweep(now=room.expire_at + timedelta(seconds=1))

        self.assertEqual(report.rooms_metered, 0)
        self.assertEqual(report.rooms_deleted, 1)
        self.assertEqual(read_daily(day)["rooms_ended_total"], 1)
        self.assertEqual(RoomAudit.objects.get(room_id=room.room_id).duration_sec, 600)

    def test_owner_room_closes_when_user_leaves(self):
        room = services.start_owner_room(self.alice.uid)
        services.leave_room(self.alice.uid, room.room_id)

        room.refresh_from_db()
        self.assertEqual(room.status, Room.CLOSED)
        self.assertEqual(room.closed_reason, Room.REASON_OWNER_ONLY)
        self.assertEqual(room.members, [BOT_UID])
        self.assertFalse(Message.objects.filter(room=room, key=PEER_LEFT_KEY).exists())

    def test_stranger_cannot_leave(self):
        room = self.make_room()
        with self.assertRaises(NotOwner):
            services.leave_room(self.carol.uid, room.room_id)

    def test_leaving_missing_room_is_noop(self):
        self.assertFalse(services.leave_room(self.alice.uid, uuid.uuid4()).changed)

    def test_leave_starts_cooldown(self):
        room = self.make_room()
        with frozen_now():
            services.leave_room(self.alice.uid, room.room_id)
        with frozen_now(FIXED_NOW + timedelta(seconds=10)):
            result = match_services.enter(self.alice.uid, "global")

        self.assertEqual(result, {"status": "cooldown", "retryAfterSec": 20})


class MessageTest(RoomMixin, TestCase):
    def test_post_and_list_oldest_first(self):
        room = self.make_room()
        for text in ("one", "two", "three"):
            services.post_message(self.alice.uid, room.room_id, text)

        texts = [m.text for m in services.list_messages(self.bob.uid, room.room_id)]
        self.assertEqual(texts, ["one", "two", "three"])

        latest = services.list_messages(self.bob.uid, room.room_id, limit=2)
        self.assertEqual([m.text for m in latest], ["two", "three"])

    def test_message_counters(self):
        room = self.make_room()
        with frozen_now():
            with self.captureOnCommitCallbacks(execute=True):
                services.post_message(self.alice.uid, room.room_id, "hello")

        room.refresh_from_db()
        self.assertEqual(room.message_count, 1)
        counters = read_daily(metrics_day_key(FIXED_NOW))
        self.assertEqual(counters["messages_total"], 1)
        self.assertEqual(counters["messages_to_human_total"], 1)

    def test_text_is_validated(self):
        room = self.make_room()
        with self.assertRaises(ValidationError):
            services.post_message(self.alice.uid, room.room_id, "   ")
        with self.assertRaises(ValidationError):
            services.post_message(self.alice.uid, room.room_id, "x" * 2001)

    def test_closed_room_rejects_messages(self):
        room = self.make_room(status=Room.CLOSED)
        with self.assertRaises(RoomClosed):
            services.post_message(self.alice.uid, room.room_id, "hello?")

    def test_left_member_can_read_but_not_write(self):
        room = self.make_room()
        services.post_message(self.bob.uid, room.room_id, "see you")
        services.leave_room(self.alice.uid, room.room_id)

        self.assertEqual(len(services.list_messages(self.alice.uid, room.room_id)), 2)
        with self.assertRaises(NotOwner):
            services.post_message(self.alice.uid, room.room_id, "wait")

    def test_stranger_cannot_read(self):
        room = self.make_room()
        with self.assertRaises(NotOwner):
            services.list_messages(self.carol.uid, room.room_id)
        with self.assertRaises(RoomNotFound):
            services.get_room(self.alice.uid, uuid.uuid4())

    def test_starters_use_partner_nickname(self):
        room = self.make_room()
        starters = services.gen_starters(self.alice.uid, room.room_id)
        self.assertEqual(len(starters), 3)
        self.assertIn("Bob", starters[0])


class OwnerRoomTest(UsersMixin, TestCase):
    def test_start_sends_opening_message(self):
        with frozen_now():
            with self.captureOnCommitCallbacks(execute=True):
                room = services.start_owner_room(self.alice.uid, {"nickname": "Al"})

        room.refresh_from_db()
        self.assertTrue(room.is_owner_room)
        self.assertEqual(room.members, [self.alice.uid, BOT_UID])
        self.assertEqual(room.queue_key, "owner")
        self.assertEqual(room.message_count, 1)
        opening = Message.objects.get(room=room)
        self.assertEqual(opening.uid, BOT_UID)

        counters = read_daily(metrics_day_key(FIXED_NOW))
        self.assertEqual(counters["owner_room_started_total"], 1)
        self.assertEqual(counters["messages_from_owner_total"], 1)

    def test_owner_replies_once_per_message(self):
        room = services.start_owner_room(self.alice.uid)
        with frozen_now():
            with self.captureOnCommitCallbacks(execute=True):
                mine = services.post_message(self.alice.uid, room.room_id, "It is pouring.")

        reply = Message.objects.get(room=room, key=f"owner_reply_{mine.pk}")
        self.assertEqual(reply.uid, BOT_UID)
        self.assertEqual(reply.text, "I see. What happened next?")

        counters = read_daily(metrics_day_key(FIXED_NOW))
        self.assertEqual(counters["messages_to_owner_total"], 1)
        self.assertEqual(counters["messages_from_owner_total"], 1)

        # 같은 이벤트가 다시 와도 답장은 1건
        handlers.handle_message_created(mine.pk)
        self.assertEqual(Message.objects.filter(room=room, uid=BOT_UID).count(), 2)

    @override_settings(OWNER_RESPONDER="shelter.rooms.tests.broken_responder")
    def test_failing_responder_falls_back(self):
        room = services.start_owner_room(self.alice.uid)
        mine = services.post_message(self.alice.uid, room.room_id, "hello")

        reply = handlers.reply_as_owner(room, mine)
        self.assertEqual(reply.text, FALLBACK_REPLY)

    def test_no_reply_in_closed_room(self):
        room = services.start_owner_room(self.alice.uid)
        mine = services.post_message(self.alice.uid, room.room_id, "bye")
        Room.objects.filter(pk=room.pk).update(status=Room.CLOSED)

        self.assertIsNone(handlers.reply_as_owner(room, mine))

    def test_human_room_gets_no_bot_reply(self):
        room = Room.objects.create(
            members=[self.alice.uid, self.bob.uid],
            queue_key="global",
            expire_at=FIXED_NOW + timedelta(hours=3),
        )
        with self.captureOnCommitCallbacks(execute=True):
            services.post_message(self.alice.uid, room.room_id, "hi")
        self.assertFalse(Message.objects.filter(room=room, uid=BOT_UID).exists())


class RoomApiTest(RoomMixin, TestCase):
    def test_owner_room_flow(self):
        client = self.api(self.alice)
        res = client.post("/api/rooms/owner", {"profile": {"nickname": "Al"}}, format="json")
        self.assertEqual(res.status_code, 200)
        room_id = res.data["roomId"]

        res = client.get(f"/api/rooms/{room_id}")
        self.assertEqual(res.data["isOwnerRoom"], True)
        self.assertEqual(res.data["status"], "open")

        res = client.post(f"/api/rooms/{room_id}/messages", {"text": "hi"}, format="json")
        self.assertEqual(res.status_code, 201)
        self.assertIn("messageId", res.data)

        res = client.get(f"/api/rooms/{room_id}/messages?limit=10")
        self.assertEqual([m["text"] for m in res.data["messages"]][-1], "hi")

        res = client.post(f"/api/rooms/{room_id}/leave")
        self.assertEqual(res.data, {"ok": True})

        res = client.post(f"/api/rooms/{room_id}/messages", {"text": "again"}, format="json")
        self.assertEqual(res.status_code, 403)

    def test_closed_room_message_is_conflict(self):
        room = self.make_room(status=Room.CLOSED)
        res = self.api(self.alice).post(
            f"/api/rooms/{room.room_id}/messages", {"text": "hello"}, format="json"
        )
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.data["error"]["code"], "ROOM_CLOSED")

    def test_unknown_room(self):
        res = self.api(self.alice).get(f"/api/rooms/{uuid.uuid4()}")
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.data["error"]["code"], "ROOM_NOT_FOUND")

    def test_stranger_gets_forbidden(self):
        room = self.make_room()
        client = self.api(self.carol)
        self.assertEqual(client.get(f"/api/rooms/{room.room_id}").status_code, 403)
        self.assertEqual(client.post(f"/api/rooms/{room.room_id}/leave").status_code, 403)
        self.assertEqual(client.post(f"/api/rooms/{room.room_id}/starters").status_code, 403)

    def test_starters_endpoint(self):
        room = self.make_room()
        res = self.api(self.bob).post(f"/api/rooms/{room.room_id}/starters")
        self.assertEqual(len(res.data["starters"]), 3)


class RoomSocketTest(TestCase):
    def test_anonymous_socket_is_rejected(self):
        from shelter.config.asgi import application

        async def connect():
            communicator = WebsocketCommunicator(application, f"/ws/rooms/{uuid.uuid4()}/")
            connected, code = await communicator.connect()
            await communicator.disconnect()
            return connected, code

        connected, code = async_to_sync(connect)()
        self.assertFalse(connected)
        self.assertEqual(code, 4401)
