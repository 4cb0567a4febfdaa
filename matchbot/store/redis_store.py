"""
Redis implementation of MatchStore.

Key layout:
    breakout:matches:<id>              JSON match record
    breakout:lobbies                   ZSET of waiting ids scored by creation time
    breakout:player_matches:<name>     LIST of match ids, newest at the head
    breakout:players                   SET of every player name seen
    breakout:player_stats:<name>       HASH with wins / losses
    breakout:match_count               counter of matches ever created
    breakout:receipts:<request id>     serialized submission outcome, with TTL

Conditional updates WATCH the match key, check the stored version and apply
every write in one MULTI/EXEC; a concurrent writer aborts the EXEC.
"""

import json
from contextlib import asynccontextmanager
from typing import List, Optional

import redis.asyncio as redis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
    WatchError,
)

from matchbot.data_models.match import Match, MatchState, PlayerRecord
from matchbot.store.base import MatchStore
from matchbot.utils.logger import setup_logger
from matchbot.utils.matchmaking_exceptions import StoreUnavailable

logger = setup_logger(__name__)


class RedisMatchStore(MatchStore):
    """MatchStore backed by a shared Redis instance"""

    def __init__(self, client: 'redis.Redis', prefix: str = 'breakout'):
        self.redis = client
        self.prefix = prefix
        self.logger = logger

        self.lobbies_key = f'{prefix}:lobbies'
        self.players_key = f'{prefix}:players'
        self.match_count_key = f'{prefix}:match_count'

    def _match_key(self, match_id: str) -> str:
        return f'{self.prefix}:matches:{match_id}'

    def _player_matches_key(self, player_name: str) -> str:
        return f'{self.prefix}:player_matches:{player_name}'

    def _player_stats_key(self, player_name: str) -> str:
        return f'{self.prefix}:player_stats:{player_name}'

    def _receipt_key(self, request_id: str) -> str:
        return f'{self.prefix}:receipts:{request_id}'

    @asynccontextmanager
    async def _store_errors(self, operation: str):
        """Translate Redis connectivity failures into StoreUnavailable"""
        try:
            yield
        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            self.logger.error(f"Redis error during {operation}: {e}")
            raise StoreUnavailable(operation, str(e)) from e

    async def ping(self) -> bool:
        async with self._store_errors('ping'):
            return bool(await self.redis.ping())

    async def create_match(self, match: Match) -> None:
        player = match.creator.player_name
        async with self._store_errors('create_match'):
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(self._match_key(match.id), json.dumps(match.to_dict()))
                pipe.zadd(self.lobbies_key, {match.id: match.created_at.timestamp()})
                pipe.lpush(self._player_matches_key(player), match.id)
                pipe.sadd(self.players_key, player)
                pipe.incr(self.match_count_key)
                await pipe.execute()

    async def get_match(self, match_id: str) -> Optional[Match]:
        async with self._store_errors('get_match'):
            raw = await self.redis.get(self._match_key(match_id))
        return Match.from_dict(json.loads(raw)) if raw else None

    async def list_waiting_ids(self, offset: int = 0, limit: int = 25) -> List[str]:
        async with self._store_errors('list_waiting_ids'):
            return list(await self.redis.zrange(self.lobbies_key, offset, offset + limit - 1))

    async def update_match(
        self,
        match: Match,
        expected_version: int,
        index_player: Optional[str] = None
    ) -> bool:
        key = self._match_key(match.id)
        async with self._store_errors('update_match'):
            async with self.redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        return False
                    stored = json.loads(raw)
                    current_version = int(stored.get('version', 1))
                    if current_version != expected_version or stored.get('state') != MatchState.WAITING.value:
                        self.logger.debug(f"Conditional update rejected for {match.id} (stored version {current_version}, expected {expected_version})")
                        return False

                    pipe.multi()
                    pipe.set(key, json.dumps(match.to_dict()))
                    if match.state != MatchState.WAITING:
                        pipe.zrem(self.lobbies_key, match.id)
                    if index_player:
                        pipe.lpush(self._player_matches_key(index_player), match.id)
                        pipe.sadd(self.players_key, index_player)
                    if match.state == MatchState.COMPLETED:
                        pipe.hincrby(self._player_stats_key(match.winner), 'wins', 1)
                        pipe.hincrby(self._player_stats_key(match.loser), 'losses', 1)
                    await pipe.execute()
                except WatchError:
                    self.logger.debug(f"Match {match.id} changed during transaction")
                    return False
        return True

    async def get_player_match_ids(self, player_name: str, limit: int) -> List[str]:
        async with self._store_errors('get_player_match_ids'):
            return list(await self.redis.lrange(self._player_matches_key(player_name), 0, limit - 1))

    async def count_waiting(self) -> int:
        async with self._store_errors('count_waiting'):
            return int(await self.redis.zcard(self.lobbies_key))

    async def count_matches(self) -> int:
        async with self._store_errors('count_matches'):
            return int(await self.redis.get(self.match_count_key) or 0)

    async def count_players(self) -> int:
        async with self._store_errors('count_players'):
            return int(await self.redis.scard(self.players_key))

    async def get_player_record(self, player_name: str) -> PlayerRecord:
        async with self._store_errors('get_player_record'):
            stats = await self.redis.hgetall(self._player_stats_key(player_name))
        return PlayerRecord(
            player_name=player_name,
            wins=int(stats.get('wins', 0)),
            losses=int(stats.get('losses', 0))
        )

    async def get_receipt(self, request_id: str) -> Optional[str]:
        async with self._store_errors('get_receipt'):
            return await self.redis.get(self._receipt_key(request_id))

    async def reserve_receipt(self, request_id: str, ttl_seconds: int) -> bool:
        async with self._store_errors('reserve_receipt'):
            return bool(await self.redis.set(self._receipt_key(request_id), '', nx=True, ex=ttl_seconds))

    async def save_receipt(self, request_id: str, payload: str, ttl_seconds: int) -> None:
        async with self._store_errors('save_receipt'):
            await self.redis.set(self._receipt_key(request_id), payload, ex=ttl_seconds)

    async def release_receipt(self, request_id: str) -> None:
        async with self._store_errors('release_receipt'):
            await self.redis.delete(self._receipt_key(request_id))

    async def close(self) -> None:
        await self.redis.aclose()
