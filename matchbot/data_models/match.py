"""
Match data models for the asynchronous score matchmaking system.

Immutable data transfer objects shared by the engine, both store backends and
the gateways. State transitions produce new objects through ``dataclasses.replace``.
Wire form (``to_dict``) uses camelCase keys and ISO-8601 timestamps.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class MatchState(Enum):
    """Lifecycle of a match. Both non-waiting states are terminal."""
    WAITING = "waiting"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes coming back from stores that drop tzinfo (sqlite)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return ensure_utc(datetime.fromisoformat(value)) if value else None


@dataclass(frozen=True)
class PlayerSubmission:
    """One player's submitted result."""
    player_name: str
    score: int
    level: int
    submitted_at: datetime
    discord_user_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'playerName': self.player_name,
            'score': self.score,
            'level': self.level,
            'submittedAt': _iso(self.submitted_at),
            'discordUserId': self.discord_user_id,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['PlayerSubmission']:
        if not data:
            return None
        return cls(
            player_name=data['playerName'],
            score=int(data['score']),
            level=int(data['level']),
            submitted_at=_parse(data['submittedAt']),
            discord_user_id=data.get('discordUserId'),
        )


@dataclass(frozen=True)
class Resolution:
    """Outcome of comparing the two submissions of a paired match."""
    winner: str
    loser: str
    winner_score: int
    loser_score: int
    is_tie: bool
    total_score: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'winner': self.winner,
            'loser': self.loser,
            'winnerScore': self.winner_score,
            'loserScore': self.loser_score,
            'isTie': self.is_tie,
            'totalScore': self.total_score,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['Resolution']:
        if not data:
            return None
        return cls(
            winner=data['winner'],
            loser=data['loser'],
            winner_score=int(data['winnerScore']),
            loser_score=int(data['loserScore']),
            is_tie=bool(data['isTie']),
            total_score=int(data['totalScore']),
        )


@dataclass(frozen=True)
class Match:
    """
    A lobby and, once paired, its resolution.

    ``version`` increases by one on every state transition and is the token
    stores compare against when applying a conditional update.
    """
    id: str
    state: MatchState
    creator: PlayerSubmission
    created_at: datetime
    opponent: Optional[PlayerSubmission] = None
    winner: Optional[str] = None
    loser: Optional[str] = None
    resolved_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancel_reason: Optional[str] = None
    version: int = 1

    @property
    def is_waiting(self) -> bool:
        return self.state == MatchState.WAITING

    @property
    def waiting_seconds(self) -> float:
        end = self.resolved_at or self.cancelled_at or utcnow()
        return max(0.0, (end - self.created_at).total_seconds())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'state': self.state.value,
            'creator': self.creator.to_dict(),
            'opponent': self.opponent.to_dict() if self.opponent else None,
            'winner': self.winner,
            'loser': self.loser,
            'createdAt': _iso(self.created_at),
            'resolvedAt': _iso(self.resolved_at),
            'cancelledAt': _iso(self.cancelled_at),
            'cancelledBy': self.cancelled_by,
            'cancelReason': self.cancel_reason,
            'version': self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Match':
        return cls(
            id=data['id'],
            state=MatchState(data['state']),
            creator=PlayerSubmission.from_dict(data['creator']),
            opponent=PlayerSubmission.from_dict(data.get('opponent')),
            winner=data.get('winner'),
            loser=data.get('loser'),
            created_at=_parse(data['createdAt']),
            resolved_at=_parse(data.get('resolvedAt')),
            cancelled_at=_parse(data.get('cancelledAt')),
            cancelled_by=data.get('cancelledBy'),
            cancel_reason=data.get('cancelReason'),
            version=int(data.get('version', 1)),
        )


@dataclass(frozen=True)
class SubmitResult:
    """What a score submission turned into: a new lobby or a resolved match."""
    match: Match
    resolution: Optional[Resolution] = None

    @property
    def state(self) -> MatchState:
        return MatchState.COMPLETED if self.resolution else MatchState.WAITING

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'success': True,
            'state': self.state.value,
            'match': self.match.to_dict(),
        }
        if self.resolution:
            payload['resolution'] = self.resolution.to_dict()
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SubmitResult':
        return cls(
            match=Match.from_dict(data['match']),
            resolution=Resolution.from_dict(data.get('resolution')),
        )


@dataclass(frozen=True)
class MatchmakingStats:
    """Eventually-consistent snapshot of the whole system."""
    open_lobbies: int
    total_matches: int
    active_players: int

    def to_dict(self) -> Dict[str, int]:
        return {
            'openLobbies': self.open_lobbies,
            'totalMatches': self.total_matches,
            'activePlayers': self.active_players,
        }


@dataclass(frozen=True)
class PlayerRecord:
    """Win/loss record of one player across completed matches."""
    player_name: str
    wins: int = 0
    losses: int = 0

    @property
    def total_matches(self) -> int:
        return self.wins + self.losses

    @property
    def win_rate(self) -> float:
        """Percentage, 0.0 when the player has no completed match"""
        if not self.total_matches:
            return 0.0
        return self.wins / self.total_matches * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            'playerName': self.player_name,
            'wins': self.wins,
            'losses': self.losses,
            'totalMatches': self.total_matches,
            'winRate': round(self.win_rate, 1),
        }
