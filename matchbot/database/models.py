from sqlalchemy import (
    Column, Integer, String, DateTime, Text, ForeignKey,
    Enum as SQLEnum, UniqueConstraint, Index
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from matchbot.data_models.match import Match, MatchState, PlayerSubmission, ensure_utc

Base = declarative_base()

class MatchRecord(Base):
    """
    Persistent form of a Match.

    The lobby queue is every row in WAITING state ordered by created_at, so
    queue membership changes in the same statement as the state column.
    """
    __tablename__ = 'matches'

    id = Column(String(40), primary_key=True)
    state = Column(SQLEnum(MatchState), nullable=False, default=MatchState.WAITING)
    version = Column(Integer, nullable=False, default=1)

    # Creator submission
    creator_name = Column(String(64), nullable=False, index=True)
    creator_score = Column(Integer, nullable=False)
    creator_level = Column(Integer, nullable=False, default=1)
    creator_submitted_at = Column(DateTime(timezone=True), nullable=False)
    creator_discord_id = Column(String(32), nullable=True)

    # Opponent submission (completed matches only)
    opponent_name = Column(String(64), nullable=True, index=True)
    opponent_score = Column(Integer, nullable=True)
    opponent_level = Column(Integer, nullable=True)
    opponent_submitted_at = Column(DateTime(timezone=True), nullable=True)
    opponent_discord_id = Column(String(32), nullable=True)

    # Outcome
    winner = Column(String(64), nullable=True, index=True)
    loser = Column(String(64), nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(64), nullable=True)
    cancel_reason = Column(String(20), nullable=True)

    __table_args__ = (
        Index('ix_matches_state_created', 'state', 'created_at'),
    )

    @classmethod
    def from_match(cls, match: Match) -> 'MatchRecord':
        record = cls(id=match.id)
        record.apply(match)
        return record

    def apply(self, match: Match):
        """Copy every mutable field of ``match`` onto this row"""
        self.state = match.state
        self.version = match.version
        self.creator_name = match.creator.player_name
        self.creator_score = match.creator.score
        self.creator_level = match.creator.level
        self.creator_submitted_at = match.creator.submitted_at
        self.creator_discord_id = match.creator.discord_user_id
        self.created_at = match.created_at
        for key, value in self.opponent_values(match).items():
            setattr(self, key, value)
        self.winner = match.winner
        self.loser = match.loser
        self.resolved_at = match.resolved_at
        self.cancelled_at = match.cancelled_at
        self.cancelled_by = match.cancelled_by
        self.cancel_reason = match.cancel_reason

    @staticmethod
    def opponent_values(match: Match) -> dict:
        opponent = match.opponent
        return {
            'opponent_name': opponent.player_name if opponent else None,
            'opponent_score': opponent.score if opponent else None,
            'opponent_level': opponent.level if opponent else None,
            'opponent_submitted_at': opponent.submitted_at if opponent else None,
            'opponent_discord_id': opponent.discord_user_id if opponent else None,
        }

    def to_match(self) -> Match:
        opponent = None
        if self.opponent_name is not None:
            opponent = PlayerSubmission(
                player_name=self.opponent_name,
                score=self.opponent_score,
                level=self.opponent_level,
                submitted_at=ensure_utc(self.opponent_submitted_at),
                discord_user_id=self.opponent_discord_id,
            )
        return Match(
            id=self.id,
            state=self.state,
            version=self.version,
            creator=PlayerSubmission(
                player_name=self.creator_name,
                score=self.creator_score,
                level=self.creator_level,
                submitted_at=ensure_utc(self.creator_submitted_at),
                discord_user_id=self.creator_discord_id,
            ),
            opponent=opponent,
            winner=self.winner,
            loser=self.loser,
            created_at=ensure_utc(self.created_at),
            resolved_at=ensure_utc(self.resolved_at),
            cancelled_at=ensure_utc(self.cancelled_at),
            cancelled_by=self.cancelled_by,
            cancel_reason=self.cancel_reason,
        )

    def __repr__(self):
        return f"<MatchRecord(id='{self.id}', state={self.state.value}, creator='{self.creator_name}', version={self.version})>"

class PlayerMatchIndex(Base):
    """Append-only history entry; newest rows have the highest id"""
    __tablename__ = 'player_match_index'

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_name = Column(String(64), nullable=False, index=True)
    match_id = Column(String(40), ForeignKey('matches.id'), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint('player_name', 'match_id'),)

    def __repr__(self):
        return f"<PlayerMatchIndex(player='{self.player_name}', match='{self.match_id}')>"

class SubmissionReceipt(Base):
    """Outcome of an already processed score submission, keyed by client request id"""
    __tablename__ = 'submission_receipts'

    request_id = Column(String(128), primary_key=True)
    payload = Column(Text, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<SubmissionReceipt(request_id='{self.request_id}')>"
