"""
MatchStore - persistence contract for the matchmaking engine.

The store is the only thing every server instance shares, so it is also the
only synchronization point. Its load-bearing primitive is ``update_match``:
a compare-and-set on the match version that rejects the write when another
actor transitioned the match first.

Implementations:
- SqlMatchStore: async SQLAlchemy, conditional UPDATE inside a transaction
- RedisMatchStore: redis.asyncio, WATCH/MULTI/EXEC optimistic transactions
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from matchbot.data_models.match import Match, PlayerRecord


class MatchStore(ABC):
    """
    Abstract base class for match persistence backends.

    Every method raises StoreUnavailable when the backend cannot be reached.
    """

    @abstractmethod
    async def ping(self) -> bool:
        """Check connectivity"""
        pass

    @abstractmethod
    async def create_match(self, match: Match) -> None:
        """
        Persist a new waiting match.

        Atomically stores the record, enqueues it in the lobby queue, appends
        it to the creator's history and counts it towards the totals.
        """
        pass

    @abstractmethod
    async def get_match(self, match_id: str) -> Optional[Match]:
        pass

    @abstractmethod
    async def list_waiting_ids(self, offset: int = 0, limit: int = 25) -> List[str]:
        """Ids of waiting matches, oldest first"""
        pass

    @abstractmethod
    async def update_match(
        self,
        match: Match,
        expected_version: int,
        index_player: Optional[str] = None
    ) -> bool:
        """
        Conditionally replace a match record.

        The write only happens if the stored version still equals
        ``expected_version``. In the same atomic write the match leaves the
        lobby queue when its new state is terminal, ``index_player`` (if any)
        gets the match appended to their history, and the players' win/loss
        records are updated when the new state is completed.

        Returns:
            True if the write was applied, False if the match changed concurrently
        """
        pass

    @abstractmethod
    async def get_player_match_ids(self, player_name: str, limit: int) -> List[str]:
        """Most-recent-first history of a player"""
        pass

    @abstractmethod
    async def count_waiting(self) -> int:
        pass

    @abstractmethod
    async def count_matches(self) -> int:
        """All matches ever created, whatever their state"""
        pass

    @abstractmethod
    async def count_players(self) -> int:
        """Distinct player names appearing in any match"""
        pass

    @abstractmethod
    async def get_player_record(self, player_name: str) -> PlayerRecord:
        pass

    @abstractmethod
    async def reserve_receipt(self, request_id: str, ttl_seconds: int) -> bool:
        """
        Atomically claim ``request_id`` for one in-flight submission.

        Stores an empty (pending) receipt unless one already exists.

        Returns:
            True if this caller now holds the reservation, False if another call does
        """
        pass

    @abstractmethod
    async def get_receipt(self, request_id: str) -> Optional[str]:
        """
        Receipt of a submission, if still kept.

        An empty string means the submission is reserved but still in flight.
        """
        pass

    @abstractmethod
    async def save_receipt(self, request_id: str, payload: str, ttl_seconds: int) -> None:
        """Fill a reservation with the serialized outcome"""
        pass

    @abstractmethod
    async def release_receipt(self, request_id: str) -> None:
        """Drop a reservation whose submission failed, so a retry can run"""
        pass

    async def close(self) -> None:
        """Release connections held by the backend"""
        pass
