# shelter/matches/heartbeat.py
"""
엔트리 생존 판정. 저장소 없이 엔트리 필드(lastSeenAt/expiresAt)만 보고 계산한다.

stale 표시가 DB 에 반영되기 전이라도, 읽는 쪽은 여기 결과를 기준으로
"매칭 불가"로 취급해야 한다.
"""
from datetime import timedelta

from shelter.matches.models import MatchEntry

LIVE = "live"
EXPIRED = "expired"
STALE = "stale"


def is_expired(entry: MatchEntry, now) -> bool:
    return bool(entry.expires_at and entry.expires_at <= now)


def liveness(entry: MatchEntry, now, stale_sec: int) -> str:
    if is_expired(entry, now):
        return EXPIRED
    if not entry.last_seen_at or now - entry.last_seen_at > timedelta(seconds=stale_sec):
        return STALE
    return LIVE


def is_matchable(entry: MatchEntry, now, stale_sec: int) -> bool:
    return entry.status == MatchEntry.QUEUED and liveness(entry, now, stale_sec) == LIVE


def effective_status(entry: MatchEntry, now, stale_sec: int) -> str:
    if entry.status != MatchEntry.QUEUED:
        return entry.status
    state = liveness(entry, now, stale_sec)
    return entry.status if state == LIVE else state
