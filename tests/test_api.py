"""
HTTP gateway tests, driven in-process through httpx's ASGI transport.
"""

from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from matchbot.api import create_app
from matchbot.operations import matchmaking_engine
from matchbot.operations.matchmaking_engine import MatchmakingEngine
from matchbot.utils.matchmaking_exceptions import StoreUnavailable


@pytest.fixture
async def client(engine):
    app = create_app(engine)
    async with AsyncClient(transport=ASGITransport(app=app), base_url='http://test') as http:
        yield http


async def submit(client, name, score, **extra):
    return await client.post('/api/score', json={'playerName': name, 'score': score, **extra})


async def test_submit_opens_then_resolves(client):
    first = await submit(client, 'Alice', 45)
    assert first.status_code == 200
    body = first.json()
    assert body['success'] is True
    assert body['matchmaking']['state'] == 'waiting'
    assert 'resolution' not in body['matchmaking']
    match_id = body['matchmaking']['match']['id']

    second = await submit(client, 'Bob', 52, level=2)
    matchmaking = second.json()['matchmaking']
    assert matchmaking['state'] == 'completed'
    assert matchmaking['match']['id'] == match_id
    assert matchmaking['resolution']['winner'] == 'Bob'
    assert matchmaking['resolution']['winnerScore'] == 52
    assert matchmaking['resolution']['isTie'] is False


@pytest.mark.parametrize('payload', [
    {'playerName': '', 'score': 10},
    {'playerName': 'Alice'},
    {'playerName': 'Alice', 'score': -3},
    {'playerName': 'Alice', 'score': 'lots'},
    {'score': 10},
    {'playerName': 'Alice', 'score': 10**20},
    {'playerName': 'Alice', 'score': 10, 'level': 2**31},
])
async def test_invalid_submission_is_400(client, payload):
    response = await client.post('/api/score', json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body['success'] is False
    assert body['error']['code'] == 'INVALID_INPUT'
    assert body['error']['message']


async def test_missing_body_is_400(client):
    response = await client.post('/api/score')
    assert response.status_code == 400
    assert response.json()['error']['code'] == 'INVALID_INPUT'


async def test_idempotency_key_replays(client):
    headers = {'X-Idempotency-Key': 'abc-123'}
    first = await client.post('/api/score', json={'playerName': 'Alice', 'score': 45}, headers=headers)
    again = await client.post('/api/score', json={'playerName': 'Alice', 'score': 45}, headers=headers)

    assert first.json()['matchmaking']['match']['id'] == again.json()['matchmaking']['match']['id']

    stats = (await client.get('/api/matchmaking/stats')).json()['stats']
    assert stats['totalMatches'] == 1


async def test_request_id_still_in_progress_is_409(client, engine, monkeypatch):
    monkeypatch.setattr(matchmaking_engine, 'RECEIPT_WAIT_SECONDS', 0.1)
    await engine.store.reserve_receipt('abc-123', 30)

    response = await client.post(
        '/api/score',
        json={'playerName': 'Alice', 'score': 45},
        headers={'X-Request-Id': 'abc-123'}
    )

    assert response.status_code == 409
    assert response.json()['error']['code'] == 'SUBMISSION_IN_PROGRESS'


async def test_stats_and_lobbies(client):
    await submit(client, 'Alice', 45)
    await submit(client, 'Alice', 46)

    stats = await client.get('/api/matchmaking/stats')
    assert stats.json() == {
        'success': True,
        'stats': {'openLobbies': 2, 'totalMatches': 2, 'activePlayers': 1}
    }

    lobbies = (await client.get('/api/matchmaking/lobbies', params={'limit': 1})).json()
    assert lobbies['count'] == 1
    assert lobbies['lobbies'][0]['creator']['score'] == 45


async def test_get_match_and_not_found(client):
    match_id = (await submit(client, 'Alice', 45)).json()['matchmaking']['match']['id']

    found = await client.get(f'/api/matchmaking/matches/{match_id}')
    assert found.status_code == 200
    assert found.json()['match']['state'] == 'waiting'

    missing = await client.get('/api/matchmaking/matches/match_missing')
    assert missing.status_code == 404
    assert missing.json()['error']['code'] == 'NOT_FOUND'


async def test_cancel_flow(client):
    match_id = (await submit(client, 'Alice', 45)).json()['matchmaking']['match']['id']
    url = f'/api/matchmaking/matches/{match_id}/cancel'

    denied = await client.post(url, json={'playerName': 'Mallory'})
    assert denied.status_code == 403
    assert denied.json()['error']['code'] == 'NOT_AUTHORIZED'

    cancelled = await client.post(url, json={'playerName': 'Alice'})
    assert cancelled.status_code == 200
    assert cancelled.json()['match']['state'] == 'cancelled'

    again = await client.post(url, json={'playerName': 'Alice'})
    assert again.status_code == 409
    assert again.json()['error']['code'] == 'ALREADY_CANCELLED'


async def test_cancel_resolved_match_is_409(client):
    match_id = (await submit(client, 'Alice', 45)).json()['matchmaking']['match']['id']
    await submit(client, 'Bob', 50)

    response = await client.post(f'/api/matchmaking/matches/{match_id}/cancel', json={'playerName': 'Alice'})

    assert response.status_code == 409
    assert response.json()['error']['code'] == 'ALREADY_RESOLVED'


async def test_player_matches_and_stats(client):
    await submit(client, 'Alice', 45)
    await submit(client, 'Bob', 52)

    matches = (await client.get('/api/matchmaking/player/Bob/matches')).json()
    assert matches['success'] is True
    assert matches['count'] == 1
    assert matches['matches'][0]['winner'] == 'Bob'

    stats = (await client.get('/api/matchmaking/player/Alice/stats')).json()['stats']
    assert stats == {'playerName': 'Alice', 'wins': 0, 'losses': 1, 'totalMatches': 1, 'winRate': 0.0}


@pytest.mark.parametrize('limit', ['0', '101', 'many'])
async def test_player_matches_bad_limit(client, limit):
    response = await client.get('/api/matchmaking/player/Alice/matches', params={'limit': limit})
    assert response.status_code == 400


async def test_health(client):
    response = await client.get('/api/health')
    assert response.status_code == 200
    assert response.json()['status'] == 'ok'


async def test_unavailable_store_is_503():
    store = AsyncMock()
    store.ping.side_effect = StoreUnavailable('ping', 'connection refused')
    store.count_waiting.side_effect = StoreUnavailable('count_waiting', 'connection refused')
    app = create_app(MatchmakingEngine(store))

    async with AsyncClient(transport=ASGITransport(app=app), base_url='http://test') as http:
        health = await http.get('/api/health')
        stats = await http.get('/api/matchmaking/stats')

    assert health.status_code == 503
    assert health.json()['status'] == 'degraded'
    assert stats.status_code == 503
    assert stats.json()['error']['code'] == 'STORE_UNAVAILABLE'
