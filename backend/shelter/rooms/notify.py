# shelter/rooms/notify.py
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

logger = logging.getLogger(__name__)


def room_group(room_id) -> str:
    return f"room_{room_id}"


def notify_room(room_id, event: str, payload: dict) -> None:
    """룸 websocket 구독자에게 이벤트 전달. 실패해도 상태는 이미 커밋됨 → 로그만."""
    layer = get_channel_layer()
    if layer is None:
        return
    try:
        async_to_sync(layer.group_send)(
            room_group(room_id),
            {
                "type": "room.event",  # handler: room_event
                "event": event,
                "roomId": str(room_id),
                "payload": payload,
            },
        )
    except Exception:  # channel layer(redis) 장애는 알림만 놓침
        logger.warning("room %s notify %s failed", room_id, event, exc_info=True)


def notify_room_later(room_id, event: str, payload: dict) -> None:
    transaction.on_commit(lambda: notify_room(room_id, event, payload), robust=True)
