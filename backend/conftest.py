import fakeredis
import pytest

from shelter.common.redis_client import set_redis
from shelter.common.runtime_config import reset_config_cache


@pytest.fixture(autouse=True)
def fake_redis():
    # config:global / ws peerCount 는 테스트마다 빈 redis 로 시작
    client = fakeredis.FakeRedis(decode_responses=True)
    set_redis(client)
    reset_config_cache()
    yield client
    set_redis(None)
    reset_config_cache()
