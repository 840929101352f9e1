# shelter/matches/weather.py
"""
weather gate: 입장 허용 여부를 판정하는 외부 정책 자리.
WEATHER_GATE_PREDICATE 설정으로 (uid, geo) -> bool 호출 가능 객체를 갈아끼운다.
"""
import logging

from django.conf import settings
from django.utils.module_loading import import_string

from shelter.matches.models import WeatherDiag

logger = logging.getLogger(__name__)


def allow_all(uid: str, geo: dict) -> bool:
    return True


def get_predicate():
    return import_string(settings.WEATHER_GATE_PREDICATE)


def evaluate_gate(uid: str, geo: dict, mode: str) -> bool:
    """
    mode 가 off 가 아니면 판정 + 진단 로그를 남긴다.
    판정기 자체가 실패하면 허용으로 보고 에러만 기록.
    """
    if mode == "off":
        return True

    ok = True
    error = ""
    try:
        ok = bool(get_predicate()(uid, geo))
    except Exception as exc:  # 외부 정책 실패는 입장을 막지 않음
        logger.warning("weather gate predicate failed for %s: %s", uid, exc)
        ok = True
        error = str(exc)

    WeatherDiag.objects.create(
        uid=uid,
        lat=geo.get("lat"),
        lon=geo.get("lon"),
        region=(geo.get("region") or "")[:120],
        mode=mode,
        ok=ok,
        error=error,
    )
    return ok
