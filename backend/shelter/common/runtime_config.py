# shelter/common/runtime_config.py
import logging
import time
from dataclasses import dataclass, replace

import redis
from django.conf import settings

from shelter.common.redis_client import get_redis

logger = logging.getLogger(__name__)

CONFIG_KEY = "config:global"
WEATHER_GATE_MODES = ("off", "log", "enforce")


@dataclass(frozen=True)
class EngineConfig:
    queue_keys: tuple
    queue_expire_min: int
    entry_stale_sec: int
    candidate_limit: int
    room_expire_hours: int
    room_leave_grace_min: int
    pair_history_ttl_hours: int
    cooldown_sec: int
    weather_gate_mode: str
    cancel_page_size: int

    @classmethod
    def from_settings(cls) -> "EngineConfig":
        return cls(
            queue_keys=tuple(settings.QUEUE_KEYS),
            queue_expire_min=settings.QUEUE_EXPIRE_MIN,
            entry_stale_sec=settings.ENTRY_STALE_SEC,
            candidate_limit=settings.MATCH_CANDIDATE_LIMIT,
            room_expire_hours=settings.ROOM_EXPIRE_HOURS,
            room_leave_grace_min=settings.ROOM_LEAVE_GRACE_MIN,
            pair_history_ttl_hours=settings.PAIR_HISTORY_TTL_HOURS,
            cooldown_sec=settings.DEFAULT_COOLDOWN_SEC,
            weather_gate_mode=settings.WEATHER_GATE_MODE,
            cancel_page_size=settings.CANCEL_PAGE_SIZE,
        )


def _apply_overrides(cfg: EngineConfig, raw: dict) -> EngineConfig:
    changes = {}

    mode = (raw.get("weatherGateMode") or "").strip()
    if mode in WEATHER_GATE_MODES:
        changes["weather_gate_mode"] = mode
    elif mode:
        logger.warning("ignoring unknown weatherGateMode override %r", mode)

    cooldown = raw.get("cooldownSec")
    if cooldown not in (None, ""):
        try:
            changes["cooldown_sec"] = max(0, int(cooldown))
        except (TypeError, ValueError):
            logger.warning("ignoring non-numeric cooldownSec override %r", cooldown)

    return replace(cfg, **changes) if changes else cfg


_cached = None
_cached_at = 0.0


def load_config() -> EngineConfig:
    """settings 기본값 + redis config:global 오버라이드. redis 장애 시 기본값."""
    cfg = EngineConfig.from_settings()
    try:
        raw = get_redis().hgetall(CONFIG_KEY) or {}
    except redis.RedisError as exc:
        logger.warning("config override unavailable, using defaults: %s", exc)
        return cfg
    return _apply_overrides(cfg, raw)


def get_config() -> EngineConfig:
    global _cached, _cached_at
    now = time.monotonic()
    if _cached is None or now - _cached_at >= settings.CONFIG_REFRESH_SEC:
        _cached = load_config()
        _cached_at = now
    return _cached


def reset_config_cache() -> None:
    global _cached, _cached_at
    _cached = None
    _cached_at = 0.0
