# shelter/rooms/handlers.py
import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils.module_loading import import_string

from shelter.events.dispatcher import publish
from shelter.events.models import OutboxEvent
from shelter.metrics.services import bump
from shelter.rooms.models import BOT_UID, Message, Room
from shelter.rooms.notify import notify_room_later
from shelter.rooms.responders import FALLBACK_REPLY

logger = logging.getLogger(__name__)

HISTORY_TURNS = 30


def _message_increments(room: Room, message: Message) -> dict:
    inc = {"messages_total": 1}
    if room.is_bot_room:
        if message.uid == BOT_UID:
            inc["messages_from_owner_total"] = 1
        else:
            inc["messages_to_owner_total"] = 1
    else:
        inc["messages_to_human_total"] = 1
    return inc


def _history(room: Room) -> list:
    recent = list(
        room.messages.filter(system=False).order_by("-created_at", "-id")[:HISTORY_TURNS]
    )
    recent.reverse()
    return [
        {"role": "bot" if m.uid == BOT_UID else "user", "text": m.text}
        for m in recent
        if m.text.strip()
    ]


def _generate_reply(room: Room) -> str:
    history = _history(room)
    try:
        reply = import_string(settings.OWNER_RESPONDER)(room, history)
    except Exception:  # 외부 응답기 실패 → 기본 답장
        logger.exception("owner responder failed for room %s", room.room_id)
        reply = None
    return (reply or "").strip() or FALLBACK_REPLY


def reply_as_owner(room: Room, message: Message):
    """유저 메시지 1건당 봇 답장 최대 1건 (키 owner_reply_<pk> 로 중복 방지)."""
    reply_key = f"owner_reply_{message.pk}"
    if Message.objects.filter(room=room, key=reply_key).exists():
        return None

    text = _generate_reply(room)
    try:
        with transaction.atomic():
            if not Room.objects.filter(pk=room.pk, status=Room.OPEN).exists():
                return None
            reply = Message.objects.create(room=room, uid=BOT_UID, text=text, key=reply_key)
            publish(OutboxEvent.MESSAGE_CREATED, message_pk=reply.pk)
    except IntegrityError:
        # 동시에 다른 워커가 먼저 답장함
        return None

    notify_room_later(room.room_id, "message.created", {"messageId": reply.pk, "uid": BOT_UID})
    return reply


def handle_message_created(message_pk):
    message = Message.objects.select_related("room").filter(pk=message_pk).first()
    if not message or message.system:
        return
    room = message.room

    Room.objects.filter(pk=room.pk).update(message_count=F("message_count") + 1)
    bump(_message_increments(room, message))

    if room.is_bot_room and message.uid != BOT_UID:
        reply_as_owner(room, message)
