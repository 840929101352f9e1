# shelter/common/redis_client.py
import redis
from django.conf import settings


_redis = None


def get_redis():
    global _redis
    if _redis is None:
        _redis = redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            decode_responses=True,  # bytes 말고 str로 받게
        )
    return _redis


def set_redis(client) -> None:
    """테스트/스크립트에서 연결을 갈아끼울 때 사용 (fakeredis 등)."""
    global _redis
    _redis = client
