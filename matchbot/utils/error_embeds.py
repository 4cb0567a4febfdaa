"""
Centralized error embeds for consistent error handling across the matchmaking bot.

Provides standardized error messages and formatting so every cog reports
engine failures the same way.
"""

import discord

from matchbot.utils.matchmaking_exceptions import (
    InvalidInput, MatchmakingError, MatchStateError, NotAuthorized, NotFound, StoreUnavailable
)


class ErrorEmbeds:
    """Centralized error embed factory for consistent error handling."""

    @staticmethod
    def command_error(error: str) -> discord.Embed:
        """Create embed for general command errors."""
        return discord.Embed(
            title="Command Error",
            description=f"An error occurred: {error}\n\nPlease try again or contact an administrator.",
            color=discord.Color.red()
        )

    @staticmethod
    def invalid_input(message: str) -> discord.Embed:
        """Create embed for invalid user input."""
        return discord.Embed(
            title="Invalid Input",
            description=message,
            color=discord.Color.red()
        )

    @staticmethod
    def store_unavailable() -> discord.Embed:
        return discord.Embed(
            title="Matchmaking Unavailable",
            description="The matchmaking store could not be reached. Please try again later.",
            color=discord.Color.red()
        )

    @staticmethod
    def permission_denied(message: str = "You don't have permission to perform this action.") -> discord.Embed:
        """Create embed for permission errors."""
        return discord.Embed(
            title="Permission Denied",
            description=message,
            color=discord.Color.red()
        )

    @staticmethod
    def match_not_found(match_id: str) -> discord.Embed:
        """Create embed for when a match is not found."""
        return discord.Embed(
            title="Match Not Found",
            description=f"No match with id `{match_id}` exists.",
            color=discord.Color.red()
        )

    @staticmethod
    def match_closed(message: str) -> discord.Embed:
        """Create embed for operations on a completed or cancelled match."""
        return discord.Embed(
            title="Match Closed",
            description=message,
            color=discord.Color.orange()
        )

    @staticmethod
    def from_exception(error: MatchmakingError) -> discord.Embed:
        """Pick the embed matching an engine error."""
        if isinstance(error, NotFound):
            return ErrorEmbeds.match_not_found(error.match_id)
        if isinstance(error, NotAuthorized):
            return ErrorEmbeds.permission_denied(error.user_message)
        if isinstance(error, MatchStateError):
            return ErrorEmbeds.match_closed(error.user_message)
        if isinstance(error, InvalidInput):
            return ErrorEmbeds.invalid_input(error.user_message)
        if isinstance(error, StoreUnavailable):
            return ErrorEmbeds.store_unavailable()
        return ErrorEmbeds.command_error(error.user_message)
