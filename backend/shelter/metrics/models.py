# shelter/metrics/models.py
from django.db import models


class DailyCounter(models.Model):
    """
    일자별 KPI 카운터. 값은 F() 증분으로만 바꾼다 (읽고-쓰기 금지).
    day 는 METRICS_TIME_ZONE 기준 YYYY-MM-DD.
    """

    day = models.CharField(max_length=10)
    name = models.CharField(max_length=64)
    value = models.BigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["day", "name"], name="uniq_counter_per_day"),
        ]

    def __str__(self):
        return f"{self.day} {self.name}={self.value}"


class RoomAudit(models.Model):
    """룸 종료 집계 감사 기록 (룸당 1건)."""

    room_id = models.UUIDField(unique=True)
    is_owner_room = models.BooleanField(default=False)
    created_at = models.DateTimeField(null=True, blank=True)
    ended_at = models.DateTimeField()
    duration_sec = models.IntegerField(default=0)
    closed_reason = models.CharField(max_length=20, default="unknown")
    day = models.CharField(max_length=10)
    committed_at = models.DateTimeField()


class DailyVisitor(models.Model):
    """그날(UTC) 방문한 uid. 하루 한 번만 생성된다."""

    day = models.CharField(max_length=10)
    uid = models.CharField(max_length=64)
    first_at = models.DateTimeField()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["day", "uid"], name="uniq_visitor_per_day"),
        ]


class AnalyticsEvent(models.Model):
    VISIT = "visit"

    type = models.CharField(max_length=20)
    page = models.CharField(max_length=20)
    src = models.CharField(max_length=120, null=True, blank=True)
    uid = models.CharField(max_length=64, null=True, blank=True)
    at = models.DateTimeField(db_index=True)

    def __str__(self):
        return f"{self.type} {self.page} {self.at}"
