from salvage_auction.core.config import settings
from salvage_auction.core.database import Base, async_session_maker, engine, get_db, utcnow
from salvage_auction.core.redis import close_redis, get_redis

__all__ = [
    "settings",
    "Base",
    "engine",
    "async_session_maker",
    "get_db",
    "utcnow",
    "get_redis",
    "close_redis",
]
