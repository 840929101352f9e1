# shelter/events/dispatcher.py
import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.module_loading import import_string

from shelter.events.models import OutboxEvent

logger = logging.getLogger(__name__)

HANDLERS = {
    OutboxEvent.ENTRY_CREATED: "shelter.matches.matching.handle_entry_created",
    OutboxEvent.ROOM_CLOSED: "shelter.metrics.handlers.handle_room_closed",
    OutboxEvent.MESSAGE_CREATED: "shelter.rooms.handlers.handle_message_created",
}


def publish(kind: str, **payload) -> OutboxEvent:
    """
    호출한 쪽 트랜잭션 안에서 이벤트를 기록.
    EVENTS_EAGER 면 커밋 직후 같은 프로세스에서 바로 처리한다.
    """
    if kind not in HANDLERS:
        raise ValueError(f"unknown event kind: {kind}")
    event = OutboxEvent.objects.create(kind=kind, payload=payload)
    if settings.EVENTS_EAGER:
        transaction.on_commit(lambda: dispatch(event.pk), robust=True)
    return event


def _unleased(now):
    return Q(claimed_at__isnull=True) | Q(
        claimed_at__lte=now - timedelta(seconds=settings.EVENT_LEASE_SEC)
    )


def _claim(event_pk):
    """
    이벤트를 잡고 claimed_at 을 찍는다.
    행 잠금은 여기서 풀리므로 핸들러가 도는 동안은 claimed_at 이 다른 dispatch 를 막는다.
    """
    now = timezone.now()
    with transaction.atomic():
        event = (
            OutboxEvent.objects.select_for_update(skip_locked=True)
            .filter(_unleased(now), pk=event_pk, processed_at__isnull=True)
            .first()
        )
        if not event or event.attempts >= settings.EVENT_MAX_ATTEMPTS:
            return None
        event.attempts += 1
        event.claimed_at = now
        event.save(update_fields=["attempts", "claimed_at"])
        return event


def dispatch(event_pk) -> bool:
    """
    이벤트 1건 처리. 핸들러는 멱등이어야 함 (같은 이벤트가 두 번 와도 결과 동일).
    실패하면 last_error 를 남기고 lease 를 풀어 다음 drain 에서 재시도.
    핸들러 도중 프로세스가 죽으면 EVENT_LEASE_SEC 뒤에 다시 잡힌다.
    """
    event = _claim(event_pk)
    if event is None:
        return False

    handler = import_string(HANDLERS[event.kind])
    try:
        handler(**event.payload)
    except Exception as exc:  # 다음 drain 에서 재시도
        logger.exception("event %s (%s) handler failed", event.pk, event.kind)
        OutboxEvent.objects.filter(pk=event.pk).update(
            last_error=str(exc)[:2000], claimed_at=None
        )
        return False

    OutboxEvent.objects.filter(pk=event.pk).update(
        processed_at=timezone.now(), last_error=""
    )
    return True


def drain(limit: int = 100) -> int:
    """밀린 이벤트를 오래된 순으로 처리. 처리 중(lease 유효)인 건 건너뜀. 처리 성공 건수 반환."""
    pending = list(
        OutboxEvent.objects.filter(
            _unleased(timezone.now()),
            processed_at__isnull=True,
            attempts__lt=settings.EVENT_MAX_ATTEMPTS,
        )
        .order_by("id")
        .values_list("pk", flat=True)[:limit]
    )
    done = 0
    for event_pk in pending:
        if dispatch(event_pk):
            done += 1
    return done
