# shelter/matches/matching.py
"""
매칭 엔진. entry.created 이벤트마다 한 번 실행된다.

한 트랜잭션 안에서:
  - 내 엔트리 재확인 (queued 아니면 종료, 만료/stale 이면 표시 후 종료)
  - 같은 queueKey 의 queued 후보를 id 순으로 최대 N 개 잠금 조회 (skip 하지 않고 대기)
  - 후보를 순서대로 보며 만료/stale 은 정리, 오늘 이미 만난 상대는 건너뜀
  - 첫 번째로 살아있는 후보와 룸 생성 + 양쪽 matched + pair history 기록
후보를 못 찾으면 내 엔트리 만료시각만 연장하고 다음 트리거를 기다린다.

같은 후보를 두 매칭이 동시에 잡는 경우는 조건부 update(status=queued) 로 막는다.
진 쪽은 TransactionConflict → 롤백 → 재시도 때 그 후보가 이미 matched 라 건너뜀.
A 와 B 가 동시에 들어와 서로를 후보로 잠그려 하면 DB 가 한쪽을 deadlock 으로 끊고
(OperationalError), 끊긴 쪽은 재시도 때 자기 엔트리가 이미 matched 라 종료한다.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from shelter.common.clock import hours_from, minutes_from, utc_day_key
from shelter.common.exceptions import TransactionConflict
from shelter.common.runtime_config import get_config
from shelter.common.transactions import run_in_transaction
from shelter.matches import heartbeat
from shelter.matches.models import MatchEntry, PairHistory
from shelter.metrics.services import bump
from shelter.rooms.models import Room
from shelter.rooms.services import open_peer_room

logger = logging.getLogger(__name__)

INFO_WAITING = "waiting"
INFO_PAIRED_TODAY = "paired_today"


@dataclass
class MatchOutcome:
    status: str  # matched | waiting | skipped | expired | stale
    room: Optional[Room] = None
    partner_uid: Optional[str] = None


def _retire(entry: MatchEntry, state: str, now) -> None:
    """만료/stale 엔트리 표시. 그 사이 다른 쪽이 바꿨으면 건드리지 않음."""
    qs = MatchEntry.objects.filter(pk=entry.pk, status=MatchEntry.QUEUED)
    if state == heartbeat.EXPIRED:
        qs.update(status=MatchEntry.EXPIRED)
    else:
        qs.update(status=MatchEntry.STALE, expires_at=now)


def _claim(entry: MatchEntry, room: Room, now) -> None:
    claimed = MatchEntry.objects.filter(pk=entry.pk, status=MatchEntry.QUEUED).update(
        status=MatchEntry.MATCHED, room=room, matched_at=now, info=""
    )
    if claimed != 1:
        raise TransactionConflict(f"entry {entry.pk} is no longer queued")


def _record_pair(day: str, pair_key: str, now, ttl_hours: int) -> None:
    try:
        with transaction.atomic():
            PairHistory.objects.create(
                day=day, pair_key=pair_key, expire_at=hours_from(now, ttl_hours)
            )
    except IntegrityError as exc:
        # 같은 쌍이 동시에 다른 트랜잭션에서 매칭됨
        raise TransactionConflict(f"pair {pair_key} already recorded for {day}") from exc


def _rearm(me: MatchEntry, now, cfg, info: str) -> None:
    expires_at = max(me.expires_at, minutes_from(now, cfg.queue_expire_min))
    MatchEntry.objects.filter(pk=me.pk, status=MatchEntry.QUEUED).update(
        expires_at=expires_at, info=info
    )


def _candidate_queryset(me: MatchEntry, cfg):
    # 잠긴 후보도 건너뛰지 않고 풀릴 때까지 기다린다
    return (
        MatchEntry.objects.select_for_update()
        .filter(queue_key=me.queue_key, status=MatchEntry.QUEUED)
        .exclude(pk=me.pk)
        .order_by("id")[: cfg.candidate_limit]
    )


def _match(entry_pk, cfg, now) -> MatchOutcome:
    me = MatchEntry.objects.select_for_update().filter(pk=entry_pk).first()
    if not me or me.status != MatchEntry.QUEUED:
        return MatchOutcome("skipped")

    state = heartbeat.liveness(me, now, cfg.entry_stale_sec)
    if state != heartbeat.LIVE:
        _retire(me, state, now)
        return MatchOutcome(state)

    candidates = list(_candidate_queryset(me, cfg))

    day = utc_day_key(now)
    blocked_by_history = False
    for cand in candidates:
        if cand.uid == me.uid:
            continue

        cand_state = heartbeat.liveness(cand, now, cfg.entry_stale_sec)
        if cand_state != heartbeat.LIVE:
            _retire(cand, cand_state, now)
            continue

        pair_key = PairHistory.key_for(me.uid, cand.uid)
        if PairHistory.objects.filter(day=day, pair_key=pair_key).exists():
            blocked_by_history = True
            continue

        room = open_peer_room(me, cand, queue_key=me.queue_key, now=now, cfg=cfg)
        _claim(cand, room, now)
        _claim(me, room, now)
        _record_pair(day, pair_key, now, cfg.pair_history_ttl_hours)
        return MatchOutcome("matched", room=room, partner_uid=cand.uid)

    _rearm(me, now, cfg, INFO_PAIRED_TODAY if blocked_by_history else INFO_WAITING)
    return MatchOutcome("waiting")


def match_entry(entry_pk, *, now=None) -> MatchOutcome:
    cfg = get_config()
    now = now or timezone.now()
    outcome = run_in_transaction(_match, entry_pk, cfg, now)

    if outcome.room is not None:
        # 관측용. 여기서 실패해도 매칭 결과는 이미 커밋됨
        queue_key = outcome.room.queue_key
        bump({"match_made_total": 1, f"match_made_{queue_key}_total": 1}, now=now)
        logger.info(
            "entry %s matched with uid=%s in room %s",
            entry_pk,
            outcome.partner_uid,
            outcome.room.room_id,
        )
    return outcome


def handle_entry_created(entry_pk):
    match_entry(entry_pk)
