# shelter/matches/services.py
import logging

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from shelter.common.clock import minutes_from
from shelter.common.exceptions import EntryNotFound, NotOwner
from shelter.common.runtime_config import get_config
from shelter.common.transactions import run_in_transaction
from shelter.events.dispatcher import publish
from shelter.events.models import OutboxEvent
from shelter.matches import heartbeat
from shelter.matches.models import MatchEntry
from shelter.matches.profiles import sanitize_profile
from shelter.matches.weather import evaluate_gate
from shelter.metrics.services import bump
from shelter.users.models import UserState

logger = logging.getLogger(__name__)


def cooldown_remaining(uid: str, now, cooldown_sec: int) -> int:
    """마지막 퇴장 후 쿨다운이 몇 초 남았는지 (없으면 0)."""
    if cooldown_sec <= 0:
        return 0
    last_left_at = (
        UserState.objects.filter(uid=uid).values_list("last_left_at", flat=True).first()
    )
    if not last_left_at:
        return 0
    elapsed = int((now - last_left_at).total_seconds())
    return max(0, cooldown_sec - elapsed)


def enter(uid: str, queue_key: str, profile=None, geo=None) -> dict:
    """
    return:
      {"status": "queued", "entryId": str}
      {"status": "denied"}
      {"status": "cooldown", "retryAfterSec": int}
    정책 거절은 예외가 아니라 결과로 돌려준다.
    """
    cfg = get_config()
    if queue_key not in cfg.queue_keys:
        raise ValidationError({"queueKey": f"must be one of {', '.join(cfg.queue_keys)}"})

    now = timezone.now()

    # 1) 쿨다운
    remain = cooldown_remaining(uid, now, cfg.cooldown_sec)
    if remain > 0:
        bump({"queue_cooldown_total": 1}, now=now)
        return {"status": "cooldown", "retryAfterSec": remain}

    # 2) weather gate (log 모드는 기록만, enforce 모드만 거절)
    allowed = evaluate_gate(uid, geo or {}, cfg.weather_gate_mode)
    if not allowed and cfg.weather_gate_mode == "enforce":
        bump({"queue_denied_total": 1}, now=now)
        return {"status": "denied"}

    # 3) 큐 등록 + 매칭 이벤트 (같은 트랜잭션)
    with transaction.atomic():
        entry = MatchEntry.objects.create(
            uid=uid,
            queue_key=queue_key,
            status=MatchEntry.QUEUED,
            last_seen_at=now,
            expires_at=minutes_from(now, cfg.queue_expire_min),
            profile=sanitize_profile(profile),
        )
        publish(OutboxEvent.ENTRY_CREATED, entry_pk=entry.pk)

    bump({"queue_enter_total": 1, f"queue_enter_{queue_key}_total": 1}, now=now)
    logger.info("entry %s queued uid=%s queue=%s", entry.entry_id, uid, queue_key)
    return {"status": "queued", "entryId": str(entry.entry_id)}


def _locked_entry_for(uid: str, entry_id):
    entry = MatchEntry.objects.select_for_update().filter(entry_id=entry_id).first()
    if entry and entry.uid != uid:
        raise NotOwner()
    return entry


def _touch(uid, entry_id, now, expire_min):
    entry = _locked_entry_for(uid, entry_id)
    if not entry or entry.status != MatchEntry.QUEUED:
        return False
    # 이미 만료된 엔트리는 되살리지 않는다
    if heartbeat.is_expired(entry, now):
        return False
    expires_at = max(entry.expires_at, minutes_from(now, expire_min))
    MatchEntry.objects.filter(pk=entry.pk, status=MatchEntry.QUEUED).update(
        last_seen_at=now, expires_at=expires_at
    )
    return True


def touch_entry(uid: str, entry_id) -> bool:
    """대기 중 하트비트. queued 가 아니면 조용히 no-op."""
    cfg = get_config()
    return run_in_transaction(_touch, uid, entry_id, timezone.now(), cfg.queue_expire_min)


def _cancel(uid, entry_id, now):
    entry = _locked_entry_for(uid, entry_id)
    if not entry or entry.status != MatchEntry.QUEUED:
        return False
    # expiresAt 을 now 로 당겨서 sweeper 가 바로 치우게 함
    updated = MatchEntry.objects.filter(pk=entry.pk, status=MatchEntry.QUEUED).update(
        status=MatchEntry.CANCELED, canceled_at=now, expires_at=now
    )
    return updated == 1


def cancel_entry(uid: str, entry_id) -> bool:
    return run_in_transaction(_cancel, uid, entry_id, timezone.now())


def cancel_my_queued_entries(uid: str) -> int:
    """
    entryId 를 모르는 경우(탭 종료 beacon 등) 내 queued 엔트리를 한 번에 취소.
    여러 번 와도 결과 동일.
    """
    cfg = get_config()
    now = timezone.now()
    pks = list(
        MatchEntry.objects.filter(uid=uid, status=MatchEntry.QUEUED)
        .order_by("id")
        .values_list("pk", flat=True)[: cfg.cancel_page_size]
    )
    if not pks:
        return 0
    canceled = MatchEntry.objects.filter(pk__in=pks, status=MatchEntry.QUEUED).update(
        status=MatchEntry.CANCELED, canceled_at=now, expires_at=now
    )
    logger.info("bulk-canceled %d queued entries for uid=%s", canceled, uid)
    return canceled


def get_entry(uid: str, entry_id) -> MatchEntry:
    entry = MatchEntry.objects.select_related("room").filter(entry_id=entry_id).first()
    if not entry:
        raise EntryNotFound()
    if entry.uid != uid:
        raise NotOwner()
    return entry
