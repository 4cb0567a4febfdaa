"""
Custom exceptions for the matchmaking engine with user-friendly error messages.

Every exception carries a machine-readable ``code`` and an HTTP ``status`` so
the HTTP API and the Discord cogs can report them without re-classifying.
"""

class MatchmakingError(Exception):
    """Base exception for matchmaking errors."""
    code = "MATCHMAKING_ERROR"
    status = 500

    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class InvalidInput(MatchmakingError):
    """Raised when a submission or query is malformed. Never reaches the store."""
    code = "INVALID_INPUT"
    status = 400

    def __init__(self, reason: str):
        super().__init__(f"Invalid input: {reason}", f"❌ {reason}")

class NotFound(MatchmakingError):
    """Raised when a match id is unknown."""
    code = "NOT_FOUND"
    status = 404

    def __init__(self, match_id: str):
        self.match_id = match_id
        super().__init__(
            f"Match '{match_id}' not found",
            f"❌ Match `{match_id}` not found"
        )

class NotAuthorized(MatchmakingError):
    """Raised when someone other than the creator tries to cancel a lobby."""
    code = "NOT_AUTHORIZED"
    status = 403

    def __init__(self, match_id: str, player: str):
        super().__init__(
            f"Player '{player}' is not the creator of match '{match_id}'",
            "❌ You can only cancel your own matches"
        )

class MatchStateError(MatchmakingError):
    """Raised when an operation targets a match in a terminal state."""
    code = "STATE_CONFLICT"
    status = 409

class AlreadyResolved(MatchStateError):
    code = "ALREADY_RESOLVED"

    def __init__(self, match_id: str):
        super().__init__(
            f"Match '{match_id}' is already completed",
            "❌ This match has already been resolved"
        )

class AlreadyCancelled(MatchStateError):
    code = "ALREADY_CANCELLED"

    def __init__(self, match_id: str):
        super().__init__(
            f"Match '{match_id}' is already cancelled",
            "❌ This match has already been cancelled"
        )

class StoreUnavailable(MatchmakingError):
    """Raised when the shared store cannot be reached. Callers decide whether to resubmit."""
    code = "STORE_UNAVAILABLE"
    status = 503

    def __init__(self, operation: str, details: str = None):
        super().__init__(
            f"Store unavailable during {operation}: {details}",
            "❌ Matchmaking is temporarily unavailable. Please try again later."
        )

class ClaimConflict(MatchmakingError):
    """Lost a concurrent claim on a lobby. Handled inside the engine only."""
    code = "CLAIM_CONFLICT"
    status = 409

    def __init__(self, match_id: str):
        self.match_id = match_id
        super().__init__(f"Lobby '{match_id}' changed while being claimed")

class SubmissionInProgress(MatchmakingError):
    """Raised when a request id is still being processed by another submission."""
    code = "SUBMISSION_IN_PROGRESS"
    status = 409

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(
            f"Submission '{request_id}' is still being processed",
            "⏳ That submission is still being processed. Please try again shortly."
        )
