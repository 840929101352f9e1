# shelter/rooms/consumers.py
import logging

import redis
from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

# 접속 수는 "서버 재시작/멀티프로세스"에도 버티게 redis 에 둔다
from shelter.common.redis_client import get_redis
from shelter.rooms.models import Room
from shelter.rooms.notify import room_group
from shelter.rooms.serializers import RoomSerializer

logger = logging.getLogger(__name__)

PEERCOUNT_TTL_SEC = 60 * 30  # 30분


def _peercount_key(room_id: str) -> str:
    return f"ws:peerCount:{room_id}"


@database_sync_to_async
def _load_room_snapshot(room_id: str, uid: str):
    room = Room.objects.filter(room_id=room_id).first()
    if not room or not room.has_participant(uid):
        return None
    return RoomSerializer(room).data


class RoomConsumer(AsyncJsonWebsocketConsumer):
    """
    WS room channel
      - URL: ws://<host>/ws/rooms/<roomId>/?token=<jwt>
      - 서버 → 클라 envelope:
        {
          "type": "snapshot" | "room.updated" | "peer.left" | "message.created",
          "roomId": "...",
          "payload": {...}
        }
    상태 변경은 HTTP API 로만 하고, 여기서는 구독만 한다.
    """

    async def connect(self):
        self.room_id = self.scope["url_route"]["kwargs"]["room_id"]
        self.group_name = room_group(self.room_id)

        user = self.scope.get("user")
        if not user or not user.is_authenticated:
            # 4401 Unauthorized (앱에서 처리하기 쉬움)
            await self.close(code=4401)
            return
        self.uid = user.uid

        snapshot = await _load_room_snapshot(self.room_id, self.uid)
        if snapshot is None:
            await self.close(code=4403)
            return

        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

        peer_count = await self._peercount_incr()
        await self.send_json(
            {
                "type": "snapshot",
                "roomId": self.room_id,
                "payload": {"room": snapshot, "peerCount": peer_count},
            }
        )

    async def disconnect(self, close_code):
        # connect 실패한 케이스 방어
        group = getattr(self, "group_name", None)
        if not group or not getattr(self, "uid", None):
            return
        await self._peercount_decr()
        await self.channel_layer.group_discard(group, self.channel_name)

    async def receive_json(self, content, **kwargs):
        # 클라가 보내는 건 ping 만 의미 있음
        if content.get("type") == "ping":
            await self.send_json({"type": "pong", "roomId": self.room_id, "payload": {}})

    # ---- group handlers ----

    async def room_event(self, event):
        await self.send_json(
            {
                "type": event.get("event"),
                "roomId": event.get("roomId"),
                "payload": event.get("payload") or {},
            }
        )

    # ---- helpers ----

    async def _peercount_incr(self) -> int:
        key = _peercount_key(self.room_id)
        try:
            r = get_redis()
            val = r.incr(key)
            r.expire(key, PEERCOUNT_TTL_SEC)
            return int(val)
        except redis.RedisError:
            logger.warning("peerCount incr failed for room %s", self.room_id)
            return 0

    async def _peercount_decr(self) -> int:
        key = _peercount_key(self.room_id)
        try:
            r = get_redis()
            val = r.decr(key)
            if val <= 0:
                r.delete(key)
                return 0
            r.expire(key, PEERCOUNT_TTL_SEC)
            return int(val)
        except redis.RedisError:
            logger.warning("peerCount decr failed for room %s", self.room_id)
            return 0
