# shelter/metrics/services.py
import logging

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from shelter.common.clock import metrics_day_key, seconds_between, utc_day_key
from shelter.common.transactions import run_in_transaction
from shelter.metrics.models import AnalyticsEvent, DailyCounter, DailyVisitor, RoomAudit
from shelter.rooms.models import Room

logger = logging.getLogger(__name__)


def incr_daily(fields: dict, *, now=None, day: str = None) -> str:
    """
    fields 의 각 카운터를 오늘(METRICS_TIME_ZONE) 행에 더한다. day 를 주면 그 날짜 행.
    증분은 교환/결합 법칙이 성립하므로 동시 호출 순서는 상관없음.
    트랜잭션 안에서 부르면 그 트랜잭션과 함께 커밋/롤백된다.
    """
    now = now or timezone.now()
    day = day or metrics_day_key(now)
    for name, amount in fields.items():
        if not amount:
            continue
        DailyCounter.objects.get_or_create(day=day, name=name)
        DailyCounter.objects.filter(day=day, name=name).update(
            value=F("value") + int(amount), updated_at=now
        )
    return day


def bump(fields: dict, *, now=None) -> None:
    """관측용 증분. 실패해도 요청은 성공으로 둔다."""
    try:
        incr_daily(fields, now=now)
    except DatabaseError:
        logger.exception("daily metrics increment failed: %s", sorted(fields))


def read_daily(day: str) -> dict:
    return dict(DailyCounter.objects.filter(day=day).values_list("name", "value"))


def room_close_increments(room: Room, ended_at) -> dict:
    duration_sec = seconds_between(room.created_at, ended_at)
    inc = {
        "rooms_ended_total": 1,
        "room_total_duration_sec": duration_sec,
    }
    if room.is_bot_room:
        inc["rooms_ended_owner_total"] = 1
        inc["room_owner_total_duration_sec"] = duration_sec
    else:
        inc["rooms_ended_human_total"] = 1
        inc["room_human_total_duration_sec"] = duration_sec
    return inc


def _commit(room_pk, fallback: bool, now):
    room = Room.objects.select_for_update().filter(pk=room_pk).first()
    if not room:
        return False

    # 이미 집계했으면 skip (종료 이벤트 중복 전달 / sweeper fallback 중복 방지)
    if room.stats_committed_at:
        return False

    ended_at = room.ended_at or now
    inc = room_close_increments(room, ended_at)
    day = incr_daily(inc, now=now)

    RoomAudit.objects.update_or_create(
        room_id=room.room_id,
        defaults={
            "is_owner_room": room.is_bot_room,
            "created_at": room.created_at,
            "ended_at": ended_at,
            "duration_sec": inc["room_total_duration_sec"],
            "closed_reason": room.closed_reason or ("gc_expire" if fallback else "unknown"),
            "day": day,
            "committed_at": now,
        },
    )

    room.stats_committed_at = now
    fields = ["stats_committed_at"]
    if not room.ended_at:
        room.ended_at = ended_at
        fields.append("ended_at")
    if fallback and room.status != Room.CLOSED:
        room.status = Room.CLOSED
        fields.append("status")
    if fallback and not room.closed_reason:
        room.closed_reason = "gc_expire"
        fields.append("closed_reason")
    room.save(update_fields=fields)
    return True


def commit_room_stats(room_pk, *, fallback: bool = False, now=None) -> bool:
    """
    룸 종료 KPI 를 정확히 한 번 반영.
    statsCommittedAt 확인과 설정을 같은 트랜잭션에서 하므로 중복 호출에 안전.
    반환값: 이번 호출에서 실제로 집계했는지.
    """
    now = now or timezone.now()
    committed = run_in_transaction(_commit, room_pk, fallback, now)
    if committed:
        logger.info("room %s stats committed (fallback=%s)", room_pk, fallback)
    return committed


VISIT_PAGES = ("landing", "amayadori", "chat", "terms", "policy", "other")
VISIT_SRC_MAX = 120


def normalize_page(page) -> str:
    page = str(page or "other").lower()
    return page if page in VISIT_PAGES else "other"


def track_visit(uid, page, src=None, *, now=None) -> dict:
    """
    페이지 방문 1건 기록. 방문 카운터는 UTC 날짜 행에 쌓는다.
    uid 가 있으면 그날 첫 방문일 때만 visitors_unique_total 증가.
    """
    now = now or timezone.now()
    day = utc_day_key(now)
    page = normalize_page(page)
    src = str(src or "")[:VISIT_SRC_MAX] or None

    with transaction.atomic():
        incr_daily({"visits_total": 1, f"visits_{page}_total": 1}, now=now, day=day)
        if uid:
            _, first_visit = DailyVisitor.objects.get_or_create(
                day=day, uid=uid, defaults={"first_at": now}
            )
            if first_visit:
                incr_daily({"visitors_unique_total": 1}, now=now, day=day)
        AnalyticsEvent.objects.create(
            type=AnalyticsEvent.VISIT, page=page, src=src, uid=uid or None, at=now
        )

    logger.debug("visit page=%s uid=%s day=%s", page, uid, day)
    return {"ok": True}
