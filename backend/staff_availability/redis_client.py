from redis import Redis

from .config import settings

# Only used by the redis index backend; None when REDIS_URL is not set
redis_client = (
    Redis.from_url(settings.redis_url, socket_timeout=settings.lock_timeout_seconds)
    if settings.redis_url
    else None
)
