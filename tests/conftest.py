"""Shared fixtures: every engine-level test runs against both store backends."""

from datetime import datetime, timedelta, timezone

import pytest

from matchbot.config import Config

# Keep test runs from writing daily log files
Config.LOG_DIR = ''

from fakeredis import FakeServer  # noqa: E402
from fakeredis.aioredis import FakeRedis  # noqa: E402

from matchbot.database.database import Database  # noqa: E402
from matchbot.operations.matchmaking_engine import MatchmakingEngine  # noqa: E402
from matchbot.store import RedisMatchStore, SqlMatchStore  # noqa: E402


async def make_sql_store(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'matchmaking.db'}")
    await database.initialize()
    return SqlMatchStore(database)


def make_redis_store():
    return RedisMatchStore(FakeRedis(server=FakeServer(), decode_responses=True))


@pytest.fixture(params=['sql', 'redis'])
async def store(request, tmp_path):
    if request.param == 'sql':
        match_store = await make_sql_store(tmp_path)
    else:
        match_store = make_redis_store()
    yield match_store
    await match_store.close()


@pytest.fixture
async def sql_store(tmp_path):
    match_store = await make_sql_store(tmp_path)
    yield match_store
    await match_store.close()


@pytest.fixture
async def redis_store():
    match_store = make_redis_store()
    yield match_store
    await match_store.close()


@pytest.fixture
def engine(store):
    return MatchmakingEngine(store, max_claim_attempts=5, scan_page_size=3)


class FakeClock:
    """Manually advanced clock for time-dependent operations"""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()
