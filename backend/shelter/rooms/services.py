# shelter/rooms/services.py
import logging
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from shelter.common.clock import hours_from, minutes_from
from shelter.common.exceptions import NotOwner, RoomClosed, RoomNotFound
from shelter.common.runtime_config import get_config
from shelter.common.transactions import run_in_transaction
from shelter.events.dispatcher import publish
from shelter.events.models import OutboxEvent
from shelter.matches.profiles import sanitize_profile
from shelter.metrics.services import bump
from shelter.rooms.models import (
    BOT_UID,
    OWNER_QUEUE_KEY,
    PEER_LEFT_KEY,
    SYSTEM_UID,
    Message,
    Room,
)
from shelter.rooms.notify import notify_room_later
from shelter.users.models import UserState

logger = logging.getLogger(__name__)

BOT_PROFILE = {
    "nickname": "Owner",
    "profile": "Owner of the rainy-day cafe",
    "icon": "/static/icons/owner.png",
}
OWNER_OPENING_TEXT = (
    "Welcome in. Quite the weather out there. "
    "What should I call you? Staying anonymous is fine too."
)
PEER_LEFT_TEXT = "Your conversation partner has left."

MESSAGE_MAX_CHARS = 2000
MESSAGE_PAGE_MAX = 200


def open_peer_room(first, second, *, queue_key: str, now, cfg) -> Room:
    """매칭 트랜잭션 안에서 호출. 두 엔트리의 프로필 스냅샷으로 룸 생성."""
    return Room.objects.create(
        members=[first.uid, second.uid],
        status=Room.OPEN,
        queue_key=queue_key,
        is_owner_room=False,
        expire_at=hours_from(now, cfg.room_expire_hours),
        profiles={
            first.uid: sanitize_profile(first.profile),
            second.uid: sanitize_profile(second.profile),
        },
    )


def start_owner_room(uid: str, profile=None) -> Room:
    """봇(owner)과 1:1 룸. 경쟁 없음 → 인증만 되면 항상 성공."""
    cfg = get_config()
    now = timezone.now()
    with transaction.atomic():
        room = Room.objects.create(
            members=[uid, BOT_UID],
            status=Room.OPEN,
            queue_key=OWNER_QUEUE_KEY,
            is_owner_room=True,
            expire_at=hours_from(now, cfg.room_expire_hours),
            profiles={uid: sanitize_profile(profile), BOT_UID: dict(BOT_PROFILE)},
        )
        # 오프닝 멘트는 봇이 1통
        opening = Message.objects.create(room=room, uid=BOT_UID, text=OWNER_OPENING_TEXT)
        publish(OutboxEvent.MESSAGE_CREATED, message_pk=opening.pk)

    bump({"owner_room_started_total": 1}, now=now)
    logger.info("owner room %s started for uid=%s", room.room_id, uid)
    return room


@dataclass
class LeaveOutcome:
    changed: bool
    closed: bool = False
    notify_peer: bool = False
    room: Room = None


def _leave(uid: str, room_id, now, grace_min: int) -> LeaveOutcome:
    room = Room.objects.select_for_update().filter(room_id=room_id).first()
    if not room:
        return LeaveOutcome(changed=False)

    left_by = list(room.left_by or [])
    if uid in left_by:
        # 이미 나감 → 중복 호출은 no-op
        return LeaveOutcome(changed=False, room=room)

    members = list(room.members or [])
    if uid not in members:
        raise NotOwner("not a member of this room")

    after = [m for m in members if m != uid]
    left_by.append(uid)
    owner_only = after == [BOT_UID]
    closing = not after or owner_only

    room.members = after
    room.left_by = left_by
    room.last_left_at = now
    room.expire_at = minutes_from(now, grace_min)
    fields = ["members", "left_by", "last_left_at", "expire_at"]

    outcome = LeaveOutcome(changed=True, room=room)
    if closing:
        if room.status != Room.CLOSED:
            room.status = Room.CLOSED
            room.ended_at = now
            room.closed_reason = Room.REASON_OWNER_ONLY if owner_only else Room.REASON_LAST_LEFT
            room.closed_by = uid
            fields += ["status", "ended_at", "closed_reason", "closed_by"]
            publish(OutboxEvent.ROOM_CLOSED, room_pk=room.pk)
            outcome.closed = True
    else:
        # 고정 키 upsert → 재시도해도 알림은 1건
        Message.objects.update_or_create(
            room=room,
            key=PEER_LEFT_KEY,
            defaults={
                "uid": SYSTEM_UID,
                "text": PEER_LEFT_TEXT,
                "system": True,
                "kind": "peer_left",
            },
        )
        outcome.notify_peer = True

    room.save(update_fields=fields)

    # 쿨다운 판정용
    UserState.objects.update_or_create(uid=uid, defaults={"last_left_at": now})
    return outcome


def leave_room(uid: str, room_id) -> LeaveOutcome:
    cfg = get_config()
    now = timezone.now()
    outcome = run_in_transaction(_leave, uid, room_id, now, cfg.room_leave_grace_min)

    if outcome.changed:
        room = outcome.room
        payload = {"status": room.status, "members": room.members, "leftUid": uid}
        if outcome.notify_peer:
            notify_room_later(room.room_id, "peer.left", payload)
        else:
            notify_room_later(room.room_id, "room.updated", payload)
        logger.info(
            "uid=%s left room %s (closed=%s)", uid, room.room_id, outcome.closed
        )
    return outcome


def get_room(uid: str, room_id) -> Room:
    room = Room.objects.filter(room_id=room_id).first()
    if not room:
        raise RoomNotFound()
    if not room.has_participant(uid):
        raise NotOwner("not a member of this room")
    return room


def post_message(uid: str, room_id, text) -> Message:
    text = (text or "").strip()
    if not text:
        raise ValidationError({"text": "text is required"})
    if len(text) > MESSAGE_MAX_CHARS:
        raise ValidationError({"text": f"at most {MESSAGE_MAX_CHARS} characters"})

    with transaction.atomic():
        room = Room.objects.select_for_update().filter(room_id=room_id).first()
        if not room:
            raise RoomNotFound()
        if uid not in (room.members or []):
            raise NotOwner("not a member of this room")
        if room.status != Room.OPEN:
            raise RoomClosed()
        message = Message.objects.create(room=room, uid=uid, text=text)
        publish(OutboxEvent.MESSAGE_CREATED, message_pk=message.pk)

    notify_room_later(
        room.room_id, "message.created", {"messageId": message.pk, "uid": uid}
    )
    return message


def list_messages(uid: str, room_id, limit: int = 50):
    room = get_room(uid, room_id)
    limit = max(1, min(limit, MESSAGE_PAGE_MAX))
    latest = list(room.messages.order_by("-created_at", "-id")[:limit])
    latest.reverse()
    return latest


def gen_starters(uid: str, room_id) -> list:
    """대화 시작 문장 3개 (상대가 없으면 봇 프로필 기준)."""
    room = get_room(uid, room_id)
    profiles = room.profiles or {}
    partner = room.partner_of(uid) or BOT_UID
    me = sanitize_profile(profiles.get(uid))
    you = sanitize_profile(profiles.get(partner))
    return [
        f"What has {you['nickname']} been enjoying lately?",
        f"{me['nickname']} and {you['nickname']}: how do you like to spend a rainy day?",
        "Know any spot nearby that suits a rainy day?",
    ]
