"""
Stats aggregation for the matchmaking system.

Counters are read independently of each other, so a snapshot taken while
submissions are in flight is eventually consistent rather than exact.
"""

import asyncio

from matchbot.data_models.match import MatchmakingStats, PlayerRecord
from matchbot.store.base import MatchStore
from matchbot.utils.logger import setup_logger

logger = setup_logger(__name__)


class StatsAggregator:
    """Read-only view over store counters and per-player records"""

    def __init__(self, store: MatchStore):
        self.store = store
        self.logger = logger

    async def get_stats(self) -> MatchmakingStats:
        open_lobbies, total_matches, active_players = await asyncio.gather(
            self.store.count_waiting(),
            self.store.count_matches(),
            self.store.count_players()
        )
        return MatchmakingStats(
            open_lobbies=open_lobbies,
            total_matches=total_matches,
            active_players=active_players
        )

    async def get_player_stats(self, player_name: str) -> PlayerRecord:
        record = await self.store.get_player_record(player_name)
        self.logger.debug(f"Stats for {player_name}: {record.wins}W/{record.losses}L")
        return record
