# shelter/matches/models.py
import uuid
from django.db import models


class MatchEntry(models.Model):
    QUEUED = "queued"
    MATCHED = "matched"
    CANCELED = "canceled"
    EXPIRED = "expired"
    STALE = "stale"

    STATUS_CHOICES = (
        (QUEUED, QUEUED),
        (MATCHED, MATCHED),
        (CANCELED, CANCELED),
        (EXPIRED, EXPIRED),
        (STALE, STALE),
    )

    # 클라이언트에 노출되는 id. 후보 정렬은 내부 pk(생성 순서)로 한다.
    entry_id = models.UUIDField(default=uuid.uuid4, unique=True, db_index=True)

    uid = models.CharField(max_length=64, db_index=True)
    queue_key = models.CharField(max_length=20)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=QUEUED)

    created_at = models.DateTimeField(auto_now_add=True)
    last_seen_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(db_index=True)
    matched_at = models.DateTimeField(null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True)

    profile = models.JSONField(default=dict, blank=True)
    room = models.ForeignKey(
        "rooms.Room",
        related_name="entries",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
    )
    info = models.CharField(max_length=20, blank=True, default="")

    class Meta:
        indexes = [
            models.Index(fields=["queue_key", "status", "id"], name="match_entry_queue_idx"),
            models.Index(fields=["uid", "status"], name="match_entry_uid_idx"),
        ]

    def __str__(self):
        return f"{self.entry_id} {self.uid} {self.queue_key} {self.status}"


class PairHistory(models.Model):
    """같은 날(UTC) 같은 두 사람의 재매칭을 막는 기록."""

    day = models.CharField(max_length=10)
    pair_key = models.CharField(max_length=140)
    created_at = models.DateTimeField(auto_now_add=True)
    expire_at = models.DateTimeField(db_index=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["day", "pair_key"], name="uniq_pair_per_day"),
        ]

    @staticmethod
    def key_for(uid_a: str, uid_b: str) -> str:
        return "_".join(sorted([uid_a, uid_b]))


class WeatherDiag(models.Model):
    """weather gate 판정 진단 로그 (sweeper 가 보존기간 지나면 삭제)."""

    uid = models.CharField(max_length=64)
    lat = models.FloatField(null=True, blank=True)
    lon = models.FloatField(null=True, blank=True)
    region = models.CharField(max_length=120, blank=True, default="")
    mode = models.CharField(max_length=10)
    ok = models.BooleanField(default=True)
    error = models.TextField(blank=True, default="")
    at = models.DateTimeField(auto_now_add=True, db_index=True)
