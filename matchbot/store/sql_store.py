"""
SQL implementation of MatchStore on top of async SQLAlchemy.

Claims and cancellations are a single conditional UPDATE
(``WHERE id = :id AND version = :expected``) whose rowcount tells whether the
write won; history rows are inserted in the same transaction.
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from matchbot.data_models.match import Match, MatchState, PlayerRecord, utcnow
from matchbot.database.database import Database
from matchbot.database.models import MatchRecord, PlayerMatchIndex, SubmissionReceipt
from matchbot.store.base import MatchStore
from matchbot.utils.logger import setup_logger
from matchbot.utils.matchmaking_exceptions import StoreUnavailable

logger = setup_logger(__name__)


class SqlMatchStore(MatchStore):
    """MatchStore backed by the relational database configured in DATABASE_URL"""

    def __init__(self, database: Database):
        self.db = database
        self.logger = logger

    @asynccontextmanager
    async def _store_errors(self, operation: str):
        """Translate driver connectivity failures into StoreUnavailable"""
        try:
            yield
        except (OperationalError, InterfaceError, OSError) as e:
            self.logger.error(f"Database error during {operation}: {e}")
            raise StoreUnavailable(operation, str(e)) from e

    async def ping(self) -> bool:
        async with self._store_errors('ping'):
            async with self.db.get_session() as session:
                await session.execute(select(1))
        return True

    async def create_match(self, match: Match) -> None:
        async with self._store_errors('create_match'):
            async with self.db.transaction() as session:
                session.add(MatchRecord.from_match(match))
                await session.flush()
                session.add(PlayerMatchIndex(
                    player_name=match.creator.player_name,
                    match_id=match.id
                ))

    async def get_match(self, match_id: str) -> Optional[Match]:
        async with self._store_errors('get_match'):
            async with self.db.get_session() as session:
                record = await session.get(MatchRecord, match_id)
                return record.to_match() if record else None

    async def list_waiting_ids(self, offset: int = 0, limit: int = 25) -> List[str]:
        async with self._store_errors('list_waiting_ids'):
            async with self.db.get_session() as session:
                result = await session.execute(
                    select(MatchRecord.id)
                    .where(MatchRecord.state == MatchState.WAITING)
                    .order_by(MatchRecord.created_at, MatchRecord.id)
                    .offset(offset)
                    .limit(limit)
                )
                return list(result.scalars().all())

    async def update_match(
        self,
        match: Match,
        expected_version: int,
        index_player: Optional[str] = None
    ) -> bool:
        async with self._store_errors('update_match'):
            async with self.db.transaction() as session:
                # Atomic UPDATE with version check in WHERE clause
                stmt = (
                    update(MatchRecord)
                    .where(
                        MatchRecord.id == match.id,
                        MatchRecord.version == expected_version,
                        MatchRecord.state == MatchState.WAITING
                    )
                    .values(
                        state=match.state,
                        version=match.version,
                        winner=match.winner,
                        loser=match.loser,
                        resolved_at=match.resolved_at,
                        cancelled_at=match.cancelled_at,
                        cancelled_by=match.cancelled_by,
                        cancel_reason=match.cancel_reason,
                        **MatchRecord.opponent_values(match)
                    )
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(stmt)

                if result.rowcount == 0:
                    self.logger.debug(f"Conditional update rejected for {match.id} (expected version {expected_version})")
                    return False

                if index_player:
                    session.add(PlayerMatchIndex(player_name=index_player, match_id=match.id))
                return True

    async def get_player_match_ids(self, player_name: str, limit: int) -> List[str]:
        async with self._store_errors('get_player_match_ids'):
            async with self.db.get_session() as session:
                result = await session.execute(
                    select(PlayerMatchIndex.match_id)
                    .where(PlayerMatchIndex.player_name == player_name)
                    .order_by(PlayerMatchIndex.id.desc())
                    .limit(limit)
                )
                return list(result.scalars().all())

    async def _scalar(self, operation: str, query) -> int:
        async with self._store_errors(operation):
            async with self.db.get_session() as session:
                result = await session.execute(query)
                return result.scalar() or 0

    async def count_waiting(self) -> int:
        return await self._scalar(
            'count_waiting',
            select(func.count(MatchRecord.id)).where(MatchRecord.state == MatchState.WAITING)
        )

    async def count_matches(self) -> int:
        return await self._scalar('count_matches', select(func.count(MatchRecord.id)))

    async def count_players(self) -> int:
        return await self._scalar(
            'count_players',
            select(func.count(func.distinct(PlayerMatchIndex.player_name)))
        )

    async def get_player_record(self, player_name: str) -> PlayerRecord:
        completed = MatchRecord.state == MatchState.COMPLETED
        wins = await self._scalar(
            'get_player_record',
            select(func.count(MatchRecord.id)).where(completed, MatchRecord.winner == player_name)
        )
        losses = await self._scalar(
            'get_player_record',
            select(func.count(MatchRecord.id)).where(completed, MatchRecord.loser == player_name)
        )
        return PlayerRecord(player_name=player_name, wins=wins, losses=losses)

    async def get_receipt(self, request_id: str) -> Optional[str]:
        async with self._store_errors('get_receipt'):
            async with self.db.get_session() as session:
                result = await session.execute(
                    select(SubmissionReceipt.payload)
                    .where(
                        SubmissionReceipt.request_id == request_id,
                        SubmissionReceipt.expires_at > utcnow()
                    )
                )
                return result.scalar_one_or_none()

    async def reserve_receipt(self, request_id: str, ttl_seconds: int) -> bool:
        async with self._store_errors('reserve_receipt'):
            try:
                async with self.db.transaction() as session:
                    # Expired receipts are pruned lazily on write
                    await session.execute(
                        delete(SubmissionReceipt).where(SubmissionReceipt.expires_at <= utcnow())
                    )
                    session.add(SubmissionReceipt(
                        request_id=request_id,
                        payload='',
                        expires_at=utcnow() + timedelta(seconds=ttl_seconds)
                    ))
                    await session.flush()
            except IntegrityError:
                # Primary key already taken by another submission
                return False
        return True

    async def save_receipt(self, request_id: str, payload: str, ttl_seconds: int) -> None:
        async with self._store_errors('save_receipt'):
            async with self.db.transaction() as session:
                await session.merge(SubmissionReceipt(
                    request_id=request_id,
                    payload=payload,
                    expires_at=utcnow() + timedelta(seconds=ttl_seconds)
                ))

    async def release_receipt(self, request_id: str) -> None:
        async with self._store_errors('release_receipt'):
            async with self.db.transaction() as session:
                await session.execute(
                    delete(SubmissionReceipt).where(SubmissionReceipt.request_id == request_id)
                )

    async def close(self) -> None:
        await self.db.close()
