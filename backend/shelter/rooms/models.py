# shelter/rooms/models.py
import uuid
from django.db import models

BOT_UID = "owner_bot"
OWNER_QUEUE_KEY = "owner"
PEER_LEFT_KEY = "__system_peer_left"
SYSTEM_UID = "__system__"


class Room(models.Model):
    OPEN = "open"
    CLOSED = "closed"

    STATUS_CHOICES = (
        (OPEN, OPEN),
        (CLOSED, CLOSED),
    )

    REASON_LAST_LEFT = "last_left"
    REASON_OWNER_ONLY = "owner_only"
    REASON_GC_EXPIRE = "gc_expire"

    room_id = models.UUIDField(default=uuid.uuid4, unique=True, db_index=True)

    # 참여자 uid 목록 (봇은 BOT_UID)
    members = models.JSONField(default=list)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=OPEN)
    queue_key = models.CharField(max_length=20)
    is_owner_room = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    expire_at = models.DateTimeField(db_index=True)
    ended_at = models.DateTimeField(null=True, blank=True)
    closed_reason = models.CharField(max_length=20, blank=True, default="")
    closed_by = models.CharField(max_length=64, blank=True, default="")
    last_left_at = models.DateTimeField(null=True, blank=True)

    left_by = models.JSONField(default=list, blank=True)
    profiles = models.JSONField(default=dict, blank=True)

    stats_committed_at = models.DateTimeField(null=True, blank=True)
    message_count = models.IntegerField(default=0)

    def __str__(self):
        return f"{self.room_id} {self.status} {self.members}"

    @property
    def is_bot_room(self) -> bool:
        return (
            self.is_owner_room
            or BOT_UID in (self.members or [])
            or self.queue_key == OWNER_QUEUE_KEY
        )

    def has_participant(self, uid: str) -> bool:
        # 이미 나간 사람도 룸 조회/메시지 읽기는 허용
        return uid in (self.members or []) or uid in (self.left_by or [])

    def partner_of(self, uid: str):
        for member in self.members or []:
            if member != uid and member != BOT_UID:
                return member
        return None


class Message(models.Model):
    room = models.ForeignKey(Room, related_name="messages", on_delete=models.CASCADE)
    uid = models.CharField(max_length=64)
    text = models.TextField()
    system = models.BooleanField(default=False)
    kind = models.CharField(max_length=20, blank=True, default="")

    # 고정 키: 시스템 알림 upsert / 봇 답장 중복 방지용. 없으면 NULL
    key = models.CharField(max_length=64, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["room", "key"], name="uniq_message_key_per_room"),
        ]
