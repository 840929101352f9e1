# shelter/sweeper/sweep.py
"""
주기 청소 (기본 5분마다). 요청과 무관하게 돌며 만료된 상태를 회수한다.

각 단계는 GC_BATCH_SIZE 단위로 지우고 단계마다 GC_MAX_DELETES_PER_RUN 을 넘지 않는다.
다 못 지운 건 다음 실행이 이어서 처리 → 한 번에 다 비운다고 가정하지 않음.
여러 인스턴스가 동시에 돌아도 결과가 같도록 모든 삭제는 조건 기반.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone

from shelter.common.exceptions import ConflictExhausted
from shelter.events.models import OutboxEvent
from shelter.matches.models import MatchEntry, PairHistory, WeatherDiag
from shelter.metrics.models import AnalyticsEvent, DailyVisitor
from shelter.metrics.services import commit_room_stats
from shelter.rooms.models import Message, Room

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    deleted: dict = field(default_factory=dict)
    rooms_metered: int = 0
    rooms_deleted: int = 0
    took_ms: int = 0

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())

    def add(self, label: str, count: int) -> None:
        self.deleted[label] = self.deleted.get(label, 0) + count


def delete_by_query(qs, label: str, report: SweepReport, *, batch_size=None, hard_limit=None) -> int:
    batch_size = batch_size or settings.GC_BATCH_SIZE
    hard_limit = hard_limit or settings.GC_MAX_DELETES_PER_RUN
    model = qs.model
    deleted = 0
    while deleted < hard_limit:
        take = min(batch_size, hard_limit - deleted)
        pks = list(qs.order_by("pk").values_list("pk", flat=True)[:take])
        if not pks:
            break
        count, _ = model.objects.filter(pk__in=pks).delete()
        # cascade 로 함께 지워진 행은 제외하고 이 모델 행 수만 센다
        removed = len(pks)
        deleted += removed
        report.add(label, removed)
        logger.debug("[gc] %s: deleted %d (cum %d, rows %d)", label, removed, deleted, count)
    if deleted:
        logger.info("[gc] %s: deleted %d", label, deleted)
    return deleted


def _drain_room_messages(room: Room, report: SweepReport) -> bool:
    """룸 메시지를 배치로 삭제. 다 지웠으면 True."""
    for _ in range(settings.GC_MESSAGE_LOOPS):
        pks = list(
            Message.objects.filter(room=room)
            .order_by("pk")
            .values_list("pk", flat=True)[: settings.GC_BATCH_SIZE]
        )
        if not pks:
            return True
        Message.objects.filter(pk__in=pks).delete()
        report.add("room_messages", len(pks))
    return not Message.objects.filter(room=room).exists()


def sweep_rooms(now, report: SweepReport) -> None:
    rooms = list(
        Room.objects.filter(expire_at__lte=now).order_by("expire_at")[
            : settings.GC_ROOM_PAGE_SIZE
        ]
    )
    for room in rooms:
        # 종료 집계가 빠진 룸은 여기서 한 번만 집계 (중복은 statsCommittedAt 이 막음)
        if not room.stats_committed_at:
            try:
                if commit_room_stats(room.pk, fallback=True, now=now):
                    report.rooms_metered += 1
            except (DatabaseError, ConflictExhausted):
                logger.warning("[gc] fallback metrics failed for room %s", room.room_id, exc_info=True)
                continue

        if not _drain_room_messages(room, report):
            logger.info("[gc] room %s: messages remain, deleting next run", room.room_id)
            continue

        # matched 엔트리는 룸과 함께 사라진다
        entries, _ = MatchEntry.objects.filter(room=room).delete()
        if entries:
            report.add("room_entries", entries)
        Room.objects.filter(pk=room.pk).delete()
        report.rooms_deleted += 1
        logger.info("[gc] room %s: deleted", room.room_id)


def sweep(now=None) -> SweepReport:
    started = time.monotonic()
    now = now or timezone.now()
    report = SweepReport()

    old_messages_at = now - timedelta(hours=settings.MESSAGE_MAX_AGE_HOURS)
    old_diag_at = now - timedelta(hours=settings.DIAG_MAX_AGE_HOURS)
    old_analytics_at = now - timedelta(days=settings.ANALYTICS_MAX_AGE_DAYS)

    # 1) 만료 엔트리 (canceled/expired/stale/시간초과 queued 모두 포함)
    delete_by_query(MatchEntry.objects.filter(expires_at__lte=now), "match_entries", report)

    # 2) 만료 룸 (집계 fallback → 메시지 → 룸)
    sweep_rooms(now, report)

    # 3) 오래된 메시지 (룸 TTL 과 별개)
    delete_by_query(Message.objects.filter(created_at__lte=old_messages_at), "messages_old", report)

    # 4) pair history
    delete_by_query(PairHistory.objects.filter(expire_at__lte=now), "pair_history", report)

    # 5) 진단 로그 / 처리 끝난 이벤트
    delete_by_query(WeatherDiag.objects.filter(at__lte=old_diag_at), "weather_diag", report)
    delete_by_query(
        OutboxEvent.objects.filter(processed_at__isnull=False, processed_at__lte=old_diag_at),
        "outbox_events",
        report,
    )

    # 6) 방문 기록 (고유 방문자 판정은 당일만 필요)
    delete_by_query(DailyVisitor.objects.filter(first_at__lte=old_diag_at), "daily_visitors", report)
    delete_by_query(AnalyticsEvent.objects.filter(at__lte=old_analytics_at), "analytics_raw", report)

    report.took_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "[gc] sweep done: totalDeleted=%d rooms=%d metered=%d took=%dms",
        report.total_deleted,
        report.rooms_deleted,
        report.rooms_metered,
        report.took_ms,
    )
    return report
