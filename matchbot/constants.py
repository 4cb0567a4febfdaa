"""
Bot-wide constants for the Breakout matchmaking bot.

Display values used by the embeds and cogs, kept in one place.
"""

class UIConstants:
    """Constants for Discord UI elements."""

    # Embed colors
    DEFAULT_EMBED_COLOR = 0x3498db  # Blue
    WAITING_COLOR = 0xf1c40f        # Yellow for open lobbies
    ERROR_COLOR = 0xe74c3c          # Red for errors
    SUCCESS_COLOR = 0x2ecc71        # Green for resolved matches
    CANCELLED_COLOR = 0x95a5a6      # Grey for cancelled lobbies

    # Emoji for UI elements
    TROPHY_EMOJI = "🏆"
    RUNNER_UP_EMOJI = "🥈"
    HOURGLASS_EMOJI = "⏳"
    CROSS_EMOJI = "❌"

    FOOTER_TEXT = "Breakout Matchmaking"

class DisplayConstants:
    """Limits for chat displays."""

    # Matches listed by !matches
    MATCH_HISTORY_LIMIT = 10

    # Discord caps embeds at 25 fields
    MAX_EMBED_FIELDS = 25

class HousekeepingConstants:
    """Background task timing."""

    # Minutes between lobby expiry sweeps
    EXPIRY_SWEEP_INTERVAL_MINUTES = 5
