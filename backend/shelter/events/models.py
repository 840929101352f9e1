# shelter/events/models.py
from django.db import models


class OutboxEvent(models.Model):
    """
    상태 변화 이벤트 (entry 생성 / room 종료 / 메시지 생성).
    쓰기와 같은 트랜잭션에 기록되고, 커밋 이후 워커가 처리한다.
    """

    ENTRY_CREATED = "entry.created"
    ROOM_CLOSED = "room.closed"
    MESSAGE_CREATED = "message.created"

    kind = models.CharField(max_length=40)
    payload = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True, db_index=True)
    attempts = models.IntegerField(default=0)
    claimed_at = models.DateTimeField(null=True, blank=True)
    last_error = models.TextField(blank=True, default="")

    class Meta:
        indexes = [models.Index(fields=["processed_at", "id"], name="outbox_pending_idx")]

    def __str__(self):
        return f"{self.id} {self.kind} {self.payload}"
