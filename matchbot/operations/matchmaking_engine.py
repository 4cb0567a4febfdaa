"""
Matchmaking Engine - asynchronous score pairing

A score submission either opens a waiting lobby or claims the oldest lobby
opened by somebody else and resolves it on the spot. Players never need to be
online at the same time.

Concurrency model:
- The injected MatchStore is the only synchronization point, so correctness
  holds across any number of server instances
- A claim is a compare-and-set on the lobby's version; losing it
  (ClaimConflict) re-reads the queue and, once attempts are exhausted, falls
  back to opening a new lobby. Callers never see a lost race
- Store failures propagate as StoreUnavailable and are never retried here,
  so a submission cannot be consumed twice
- A request id is reserved in the store before pairing; a concurrent call
  with the same id waits for the first outcome and replays it
"""

import asyncio
import json
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional, Tuple

from matchbot.config import Config
from matchbot.data_models.match import (
    Match, MatchState, MatchmakingStats, PlayerRecord, PlayerSubmission,
    Resolution, SubmitResult, utcnow
)
from matchbot.services.stats_aggregator import StatsAggregator
from matchbot.store.base import MatchStore
from matchbot.utils.logger import setup_logger
from matchbot.utils.matchmaking_exceptions import (
    AlreadyCancelled, AlreadyResolved, ClaimConflict, InvalidInput,
    MatchmakingError, NotAuthorized, NotFound, StoreUnavailable,
    SubmissionInProgress
)

logger = setup_logger(__name__)

MAX_PLAYER_NAME_LENGTH = 64
MAX_QUERY_LIMIT = 100
# Scores and levels are stored as 32-bit signed integers
MAX_INT = 2**31 - 1

# A reservation outlives a stuck submission only briefly
RECEIPT_PENDING_TTL_SECONDS = 30
RECEIPT_WAIT_SECONDS = 10.0
RECEIPT_POLL_INTERVAL = 0.05

ResolutionListener = Callable[[SubmitResult], Awaitable[None]]


def generate_match_id() -> str:
    return f"match_{uuid.uuid4().hex[:16]}"


def resolve_match(creator: PlayerSubmission, opponent: PlayerSubmission) -> Resolution:
    """
    Decide the winner of a paired match.

    Higher score wins. Equal scores go to the higher level, and equal score
    and level go to the creator, whose submission came first.
    """
    if creator.score != opponent.score:
        creator_wins = creator.score > opponent.score
    elif creator.level != opponent.level:
        creator_wins = creator.level > opponent.level
    else:
        creator_wins = True

    winner, loser = (creator, opponent) if creator_wins else (opponent, creator)
    return Resolution(
        winner=winner.player_name,
        loser=loser.player_name,
        winner_score=winner.score,
        loser_score=loser.score,
        is_tie=creator.score == opponent.score,
        total_score=creator.score + opponent.score
    )


def _validate_int(value, field_name: str, minimum: int) -> int:
    if isinstance(value, bool):
        raise InvalidInput(f"{field_name} must be a number")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise InvalidInput(f"{field_name} must be a whole number")
    if value < minimum:
        raise InvalidInput(f"{field_name} must be at least {minimum}")
    if value > MAX_INT:
        raise InvalidInput(f"{field_name} must be at most {MAX_INT}")
    return value


def validate_player_name(player_name) -> str:
    if not isinstance(player_name, str) or not player_name.strip():
        raise InvalidInput("playerName is required")
    player_name = player_name.strip()
    if len(player_name) > MAX_PLAYER_NAME_LENGTH:
        raise InvalidInput(f"playerName must be at most {MAX_PLAYER_NAME_LENGTH} characters")
    return player_name


def validate_submission(player_name, score, level) -> Tuple[str, int, int]:
    """Normalize a raw submission or raise InvalidInput"""
    player_name = validate_player_name(player_name)
    if score is None:
        raise InvalidInput("score is required")
    score = _validate_int(score, "score", 0)
    level = 1 if level is None else _validate_int(level, "level", 1)
    return player_name, score, level


def validate_limit(limit) -> int:
    limit = _validate_int(limit, "limit", 1)
    if limit > MAX_QUERY_LIMIT:
        raise InvalidInput(f"limit must be between 1 and {MAX_QUERY_LIMIT}")
    return limit


class MatchmakingEngine:
    """
    Owns the pairing and resolution algorithm.

    Every public operation is a single request/response against the store;
    the only in-process state is configuration and the registered
    resolution listeners.
    """

    def __init__(
        self,
        store: MatchStore,
        max_claim_attempts: Optional[int] = None,
        scan_page_size: Optional[int] = None,
        receipt_ttl_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.store = store
        self.stats = StatsAggregator(store)
        self.max_claim_attempts = max_claim_attempts or Config.MAX_CLAIM_ATTEMPTS
        self.scan_page_size = scan_page_size or Config.LOBBY_SCAN_PAGE_SIZE
        self.receipt_ttl_seconds = receipt_ttl_seconds or Config.SUBMISSION_RECEIPT_TTL_SECONDS
        self.clock = clock
        self.logger = logger
        self._resolution_listeners: List[ResolutionListener] = []

    def add_resolution_listener(self, listener: ResolutionListener):
        """Register a coroutine called with every SubmitResult that resolves a match"""
        if listener not in self._resolution_listeners:
            self._resolution_listeners.append(listener)

    def remove_resolution_listener(self, listener: ResolutionListener):
        if listener in self._resolution_listeners:
            self._resolution_listeners.remove(listener)

    # ============================================================================
    # Score submission
    # ============================================================================

    async def submit_score(
        self,
        player_name: str,
        score: int,
        level: int = 1,
        discord_user_id: Optional[str] = None,
        request_id: Optional[str] = None
    ) -> SubmitResult:
        """
        Pair a submission with the oldest eligible lobby, or open a new one.

        Args:
            player_name: Submitting player
            score: Non-negative score
            level: Level reached, used as the first tie-break
            discord_user_id: Optional Discord id, lets the chat gateway map authors to lobbies
            request_id: Optional client idempotency key; a repeated key replays the first outcome

        Returns:
            SubmitResult with state waiting (new lobby) or completed (with resolution)

        Raises:
            InvalidInput: Malformed submission, rejected before any store access
            StoreUnavailable: The store could not be reached
            SubmissionInProgress: Another call holds request_id and did not finish in time
        """
        player_name, score, level = validate_submission(player_name, score, level)

        if request_id:
            replayed = await self._reserve_request(request_id)
            if replayed is not None:
                self.logger.info(f"Replaying submission {request_id} for {player_name}")
                return replayed

        submission = PlayerSubmission(
            player_name=player_name,
            score=score,
            level=level,
            submitted_at=self.clock(),
            discord_user_id=str(discord_user_id) if discord_user_id is not None else None
        )

        try:
            result = await self._pair_or_open(submission)
        except MatchmakingError:
            if request_id:
                await self._release_request(request_id)
            raise

        if request_id:
            await self._save_receipt(request_id, result)
        if result.resolution:
            await self._notify_resolution(result)
        return result

    async def _reserve_request(self, request_id: str) -> Optional[SubmitResult]:
        """
        Claim ``request_id`` for this call, or return the outcome stored under it.

        A reservation held by a concurrent call is waited on until it is filled
        in or released.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + RECEIPT_WAIT_SECONDS
        while True:
            if await self.store.reserve_receipt(request_id, RECEIPT_PENDING_TTL_SECONDS):
                return None
            receipt = await self.store.get_receipt(request_id)
            if receipt:
                return SubmitResult.from_dict(json.loads(receipt))
            if loop.time() >= deadline:
                raise SubmissionInProgress(request_id)
            if receipt is not None:
                # Still pending; a missing receipt was released and is retried at once
                await asyncio.sleep(RECEIPT_POLL_INTERVAL)

    async def _release_request(self, request_id: str):
        try:
            await self.store.release_receipt(request_id)
        except StoreUnavailable as e:
            self.logger.warning(f"Could not release receipt {request_id}: {e}")

    async def _pair_or_open(self, submission: PlayerSubmission) -> SubmitResult:
        player_name = submission.player_name
        for attempt in range(1, self.max_claim_attempts + 1):
            target = await self._find_claim_target(player_name)
            if target is None:
                break
            try:
                return await self._claim(target, submission)
            except ClaimConflict as e:
                self.logger.info(
                    f"{player_name} lost the claim on {e.match_id} "
                    f"(attempt {attempt}/{self.max_claim_attempts})"
                )
        else:
            self.logger.warning(f"Claim attempts exhausted for {player_name}, opening a new lobby")

        match = await self._open_lobby(submission)
        return SubmitResult(match=match)

    async def _find_claim_target(self, player_name: str) -> Optional[Match]:
        """Oldest waiting match whose creator is someone else"""
        offset = 0
        while True:
            match_ids = await self.store.list_waiting_ids(offset, self.scan_page_size)
            for match_id in match_ids:
                match = await self.store.get_match(match_id)
                if match and match.is_waiting and match.creator.player_name != player_name:
                    return match
            if len(match_ids) < self.scan_page_size:
                return None
            offset += self.scan_page_size

    async def _claim(self, target: Match, submission: PlayerSubmission) -> SubmitResult:
        resolution = resolve_match(target.creator, submission)
        completed = replace(
            target,
            state=MatchState.COMPLETED,
            opponent=submission,
            winner=resolution.winner,
            loser=resolution.loser,
            resolved_at=self.clock(),
            version=target.version + 1
        )

        applied = await self.store.update_match(
            completed,
            expected_version=target.version,
            index_player=submission.player_name
        )
        if not applied:
            raise ClaimConflict(target.id)

        self.logger.info(
            f"Match {target.id} resolved: {resolution.winner} ({resolution.winner_score}) "
            f"beat {resolution.loser} ({resolution.loser_score})"
        )
        return SubmitResult(match=completed, resolution=resolution)

    async def _open_lobby(self, submission: PlayerSubmission) -> Match:
        match = Match(
            id=generate_match_id(),
            state=MatchState.WAITING,
            creator=submission,
            created_at=submission.submitted_at
        )
        await self.store.create_match(match)
        self.logger.info(f"Created match {match.id} for {submission.player_name} (score: {submission.score})")
        return match

    async def _notify_resolution(self, result: SubmitResult):
        for listener in list(self._resolution_listeners):
            try:
                await listener(result)
            except Exception as e:
                # The match is already resolved; a failed announcement must not undo that
                self.logger.error(f"Resolution listener failed for {result.match.id}: {e}", exc_info=True)

    async def _save_receipt(self, request_id: str, result: SubmitResult):
        try:
            await self.store.save_receipt(request_id, json.dumps(result.to_dict()), self.receipt_ttl_seconds)
        except StoreUnavailable as e:
            # The submission itself is already persisted; only replay protection is lost
            self.logger.warning(f"Could not store receipt {request_id}: {e}")

    # ============================================================================
    # Cancellation and expiry
    # ============================================================================

    def _cancelled(self, match: Match, cancelled_by: str, reason: str) -> Match:
        return replace(
            match,
            state=MatchState.CANCELLED,
            cancelled_at=self.clock(),
            cancelled_by=cancelled_by,
            cancel_reason=reason,
            version=match.version + 1
        )

    @staticmethod
    def _raise_if_terminal(match: Match):
        if match.state == MatchState.COMPLETED:
            raise AlreadyResolved(match.id)
        if match.state == MatchState.CANCELLED:
            raise AlreadyCancelled(match.id)

    async def cancel_match(self, match_id: str, requesting_player: str, reason: str = "player") -> Match:
        """
        Cancel a waiting match on behalf of its creator.

        Raises:
            NotFound: Unknown match id
            AlreadyResolved / AlreadyCancelled: Match is terminal
            NotAuthorized: Requester is not the creator
        """
        if not match_id or not isinstance(match_id, str):
            raise InvalidInput("matchId is required")
        requesting_player = validate_player_name(requesting_player)

        while True:
            match = await self.store.get_match(match_id)
            if match is None:
                raise NotFound(match_id)
            self._raise_if_terminal(match)
            if match.creator.player_name != requesting_player:
                raise NotAuthorized(match_id, requesting_player)

            cancelled = self._cancelled(match, requesting_player, reason)
            if await self.store.update_match(cancelled, expected_version=match.version):
                self.logger.info(f"Match {match_id} cancelled by {requesting_player}")
                return cancelled
            # Lost to a concurrent claim; the re-read reports the terminal state
            self.logger.info(f"Cancel of {match_id} raced with another update, re-reading")

    async def expire_stale_lobbies(self, max_age: timedelta) -> int:
        """
        Cancel waiting lobbies older than ``max_age``.

        Returns:
            Number of lobbies expired
        """
        cutoff = self.clock() - max_age
        expired = 0
        offset = 0
        while True:
            match_ids = await self.store.list_waiting_ids(offset, self.scan_page_size)
            if not match_ids:
                return expired
            for match_id in match_ids:
                match = await self.store.get_match(match_id)
                if match is None or not match.is_waiting:
                    offset += 1
                    continue
                if match.created_at > cutoff:
                    # Queue is oldest first
                    return expired
                if await self.store.update_match(self._cancelled(match, "system", "expired"), match.version):
                    expired += 1
                    self.logger.info(f"Expired lobby {match_id} created by {match.creator.player_name}")
                else:
                    offset += 1

    # ============================================================================
    # Queries
    # ============================================================================

    async def get_match(self, match_id: str) -> Match:
        match = await self.store.get_match(match_id)
        if match is None:
            raise NotFound(match_id)
        return match

    async def get_player_matches(self, player_name: str, limit: int = 10) -> List[Match]:
        """Up to ``limit`` matches the player took part in, most recent first"""
        player_name = validate_player_name(player_name)
        limit = validate_limit(limit)

        match_ids = await self.store.get_player_match_ids(player_name, limit)
        matches = []
        for match_id in match_ids:
            match = await self.store.get_match(match_id)
            if match:
                matches.append(match)
        return matches

    async def get_open_lobbies(self, limit: int = 10) -> List[Match]:
        """Waiting matches, oldest first"""
        limit = validate_limit(limit)
        lobbies = []
        for match_id in await self.store.list_waiting_ids(0, limit):
            match = await self.store.get_match(match_id)
            if match and match.is_waiting:
                lobbies.append(match)
        return lobbies

    async def get_player_stats(self, player_name: str) -> PlayerRecord:
        return await self.stats.get_player_stats(validate_player_name(player_name))

    async def get_stats(self) -> MatchmakingStats:
        return await self.stats.get_stats()
