"""
Shared embed builders for the matchmaking bot.

Keeps match, resolution, stats and help displays consistent across cogs.
"""

from typing import List

import discord

from matchbot.config import Config
from matchbot.constants import DisplayConstants, UIConstants
from matchbot.data_models.match import (
    Match, MatchmakingStats, MatchState, PlayerRecord, Resolution
)


def _format_duration(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def describe_match(match: Match, player_name: str) -> str:
    """One-line summary of a match from ``player_name``'s point of view"""
    creator = match.creator
    if match.state == MatchState.WAITING:
        return (
            f"{UIConstants.HOURGLASS_EMOJI} Waiting for an opponent "
            f"(score {creator.score}, open {_format_duration(match.waiting_seconds)})"
        )
    if match.state == MatchState.CANCELLED:
        reason = f" ({match.cancel_reason})" if match.cancel_reason else ""
        return f"{UIConstants.CROSS_EMOJI} Cancelled by {match.cancelled_by}{reason}"

    opponent = match.opponent
    scores = f"{creator.player_name} {creator.score} vs {opponent.player_name} {opponent.score}"
    outcome = "Won" if match.winner == player_name else "Lost"
    return f"{UIConstants.TROPHY_EMOJI} {outcome}: {scores}"


def build_match_history_embed(player_name: str, matches: List[Match]) -> discord.Embed:
    """
    Build the embed listing a player's recent matches.

    Args:
        player_name: Player whose history is shown
        matches: Matches, most recent first

    Returns:
        Formatted Discord embed
    """
    embed = discord.Embed(
        title=f"Recent Matches: {player_name}",
        color=UIConstants.DEFAULT_EMBED_COLOR
    )

    if not matches:
        embed.description = "No matches found for this player."
        embed.set_footer(text=UIConstants.FOOTER_TEXT)
        return embed

    for match in matches[:DisplayConstants.MAX_EMBED_FIELDS]:
        embed.add_field(
            name=f"`{match.id}` · {match.state.value}",
            value=describe_match(match, player_name),
            inline=False
        )

    embed.set_footer(text=f"{UIConstants.FOOTER_TEXT} | Showing {len(matches)} match(es)")
    return embed


def _record_line(record: PlayerRecord) -> str:
    return f"({record.wins}W/{record.losses}L - {record.win_rate:.1f}%)"


def build_resolution_embed(
    match: Match,
    resolution: Resolution,
    winner_record: PlayerRecord,
    loser_record: PlayerRecord
) -> discord.Embed:
    """
    Build the channel announcement for a freshly resolved match.

    Args:
        match: The completed match
        resolution: Outcome of the pairing
        winner_record: Winner's record including this match
        loser_record: Loser's record including this match

    Returns:
        Formatted Discord embed
    """
    by_name = {match.creator.player_name: match.creator}
    if match.opponent:
        by_name[match.opponent.player_name] = match.opponent
    winner = by_name[resolution.winner]
    loser = by_name[resolution.loser]

    embed = discord.Embed(
        title="⚔️ Match Resolved!",
        description=f"**{resolution.winner}** has won the match!",
        color=UIConstants.SUCCESS_COLOR,
        timestamp=match.resolved_at
    )
    embed.add_field(
        name=f"{UIConstants.TROPHY_EMOJI} Winner",
        value=(
            f"**{resolution.winner}** - {resolution.winner_score:,} bricks\n"
            f"Level {winner.level} {_record_line(winner_record)}"
        ),
        inline=True
    )
    embed.add_field(
        name=f"{UIConstants.RUNNER_UP_EMOJI} Runner-up",
        value=(
            f"**{resolution.loser}** - {resolution.loser_score:,} bricks\n"
            f"Level {loser.level} {_record_line(loser_record)}"
        ),
        inline=True
    )
    embed.add_field(
        name="📊 Match Details",
        value=(
            f"Match Duration: **{round(match.waiting_seconds / 60)} minutes**\n"
            f"Total Bricks: **{resolution.total_score:,}**"
        ),
        inline=False
    )
    embed.set_footer(text=UIConstants.FOOTER_TEXT)
    return embed


def build_stats_embed(stats: MatchmakingStats) -> discord.Embed:
    embed = discord.Embed(
        title="📊 Matchmaking Stats",
        color=UIConstants.DEFAULT_EMBED_COLOR
    )
    embed.add_field(name="Open Lobbies", value=f"{stats.open_lobbies:,}", inline=True)
    embed.add_field(name="Total Matches", value=f"{stats.total_matches:,}", inline=True)
    embed.add_field(name="Active Players", value=f"{stats.active_players:,}", inline=True)
    embed.set_footer(text=UIConstants.FOOTER_TEXT)
    return embed


def build_cancelled_embed(match: Match) -> discord.Embed:
    embed = discord.Embed(
        title="Match Cancelled",
        description=f"Lobby `{match.id}` by **{match.creator.player_name}** is closed.",
        color=UIConstants.CANCELLED_COLOR
    )
    embed.set_footer(text=UIConstants.FOOTER_TEXT)
    return embed


def build_help_embed() -> discord.Embed:
    """Static help text for the prefix commands"""
    prefix = Config.COMMAND_PREFIX
    embed = discord.Embed(
        title="Breakout Matchmaking",
        description=(
            "Submit a score from the game and you are matched against the oldest "
            "open lobby. If nobody is waiting, your score opens a new lobby."
        ),
        color=UIConstants.DEFAULT_EMBED_COLOR
    )
    embed.add_field(
        name="Commands",
        value=(
            f"`{prefix}matches <playerName>` - recent matches of a player\n"
            f"`{prefix}stats` - open lobbies, total matches and active players\n"
            f"`{prefix}cancel <matchId>` - cancel your own waiting lobby\n"
            f"`{prefix}help` - this message"
        ),
        inline=False
    )
    embed.set_footer(text=UIConstants.FOOTER_TEXT)
    return embed
