from redis import Redis

from ..settings import settings

_redis: Redis | None = None


def redis_url() -> str:
    return settings.redis_url


def get_redis() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis.from_url(redis_url(), decode_responses=True)
    return _redis
