"""
Store package - shared persistence for matchmaking state.

Both backends implement the same MatchStore contract; the engine only ever
sees the abstraction, injected at startup by ``create_store``.
"""

from matchbot.config import Config
from matchbot.database.database import Database
from .base import MatchStore
from .sql_store import SqlMatchStore
from .redis_store import RedisMatchStore


async def create_store() -> MatchStore:
    """Build the backend selected by STORE_BACKEND"""
    if Config.STORE_BACKEND == 'redis':
        from matchbot.utils.redis_utils import RedisUtils
        client = await RedisUtils.create_redis_client()
        return RedisMatchStore(client)

    database = Database()
    await database.initialize()
    return SqlMatchStore(database)


__all__ = ['MatchStore', 'SqlMatchStore', 'RedisMatchStore', 'create_store']
