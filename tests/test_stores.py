"""
Store-level contract checks shared by the SQL and Redis backends.
"""

import pytest
import redis.asyncio as redis
from dataclasses import replace

from matchbot.data_models.match import Match, MatchState, PlayerSubmission, utcnow
from matchbot.store import RedisMatchStore
from matchbot.utils.matchmaking_exceptions import StoreUnavailable


def waiting_match(match_id, player='Alice', score=10):
    now = utcnow()
    return Match(
        id=match_id,
        state=MatchState.WAITING,
        creator=PlayerSubmission(player_name=player, score=score, level=2, submitted_at=now),
        created_at=now
    )


async def test_ping(store):
    assert await store.ping() is True


async def test_create_and_read_back(store):
    match = waiting_match('match_a')
    await store.create_match(match)

    stored = await store.get_match('match_a')

    assert stored.id == 'match_a'
    assert stored.state == MatchState.WAITING
    assert stored.creator.player_name == 'Alice'
    assert stored.creator.level == 2
    assert stored.version == 1
    assert stored.created_at.tzinfo is not None
    assert await store.list_waiting_ids() == ['match_a']
    assert await store.get_player_match_ids('Alice', 10) == ['match_a']
    assert await store.count_matches() == 1
    assert await store.count_players() == 1


async def test_missing_match_is_none(store):
    assert await store.get_match('match_missing') is None


async def test_conditional_update_rejects_stale_version(store):
    match = waiting_match('match_a')
    await store.create_match(match)
    cancelled = replace(match, state=MatchState.CANCELLED, cancelled_by='Alice', version=2)

    assert await store.update_match(cancelled, expected_version=1) is True
    assert await store.update_match(replace(cancelled, version=3), expected_version=1) is False

    stored = await store.get_match('match_a')
    assert stored.state == MatchState.CANCELLED
    assert stored.version == 2
    assert await store.count_waiting() == 0


async def test_completed_update_indexes_opponent_and_records(store):
    match = waiting_match('match_a', score=10)
    await store.create_match(match)
    opponent = PlayerSubmission(player_name='Bob', score=30, level=1, submitted_at=utcnow())
    completed = replace(
        match,
        state=MatchState.COMPLETED,
        opponent=opponent,
        winner='Bob',
        loser='Alice',
        resolved_at=utcnow(),
        version=2
    )

    assert await store.update_match(completed, expected_version=1, index_player='Bob') is True

    stored = await store.get_match('match_a')
    assert stored.opponent.player_name == 'Bob'
    assert stored.opponent.score == 30
    assert await store.get_player_match_ids('Bob', 10) == ['match_a']
    assert (await store.get_player_record('Bob')).wins == 1
    assert (await store.get_player_record('Alice')).losses == 1
    assert await store.count_players() == 2


async def test_waiting_ids_paginate_oldest_first(store):
    for i in range(5):
        await store.create_match(waiting_match(f'match_{i}'))

    assert await store.list_waiting_ids(0, 2) == ['match_0', 'match_1']
    assert await store.list_waiting_ids(2, 2) == ['match_2', 'match_3']
    assert await store.list_waiting_ids(4, 2) == ['match_4']


async def test_receipts(store):
    assert await store.get_receipt('req-1') is None

    assert await store.reserve_receipt('req-1', ttl_seconds=30) is True
    assert await store.get_receipt('req-1') == ''

    await store.save_receipt('req-1', '{"success": true}', ttl_seconds=60)

    assert await store.get_receipt('req-1') == '{"success": true}'


async def test_reserved_receipt_cannot_be_reserved_again(store):
    assert await store.reserve_receipt('req-1', ttl_seconds=30) is True
    assert await store.reserve_receipt('req-1', ttl_seconds=30) is False

    await store.save_receipt('req-1', '{}', ttl_seconds=60)
    assert await store.reserve_receipt('req-1', ttl_seconds=30) is False


async def test_released_receipt_can_be_reserved_again(store):
    await store.reserve_receipt('req-1', ttl_seconds=30)
    await store.release_receipt('req-1')

    assert await store.get_receipt('req-1') is None
    assert await store.reserve_receipt('req-1', ttl_seconds=30) is True


async def test_expired_receipt_is_ignored(sql_store):
    await sql_store.save_receipt('req-1', '{}', ttl_seconds=-1)
    assert await sql_store.get_receipt('req-1') is None


async def test_expired_reservation_can_be_reserved_again(sql_store):
    await sql_store.reserve_receipt('req-1', ttl_seconds=-1)
    assert await sql_store.reserve_receipt('req-1', ttl_seconds=30) is True


async def test_unreachable_redis_raises_store_unavailable():
    client = redis.Redis(host='127.0.0.1', port=1, socket_connect_timeout=0.5)
    store = RedisMatchStore(client)

    with pytest.raises(StoreUnavailable):
        await store.get_match('match_a')

    await store.close()
