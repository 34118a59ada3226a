import redis

from .settings import settings

_clients: dict[str, redis.Redis] = {}

def get_redis(url: str | None = None) -> redis.Redis:
    url = url or settings.redis_url
    if url not in _clients:
        _clients[url] = redis.Redis.from_url(url, decode_responses=True)
    return _clients[url]
