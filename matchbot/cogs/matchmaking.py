"""
Matchmaking Cog - chat gateway over the matchmaking engine

Prefix commands:
- !matches <playerName>: recent matches of a player
- !stats: open lobbies, total matches and active players
- !cancel <matchId>: cancel one of your own waiting lobbies
- !help: static command overview

Scores are submitted through the HTTP API only. This cog reads and cancels
matches, and announces every resolved match in the configured channel.
"""

import discord
from discord.ext import commands

from matchbot.config import Config
from matchbot.constants import DisplayConstants
from matchbot.data_models.match import SubmitResult
from matchbot.services.rate_limiter import rate_limit
from matchbot.utils.embeds import (
    build_cancelled_embed, build_help_embed, build_match_history_embed,
    build_resolution_embed, build_stats_embed
)
from matchbot.utils.error_embeds import ErrorEmbeds
from matchbot.utils.logger import setup_logger
from matchbot.utils.matchmaking_exceptions import MatchmakingError

logger = setup_logger(__name__)


class WrongChannel(commands.CheckFailure):
    """Command used outside the configured matchmaking channel"""


class MatchmakingCog(commands.Cog):
    """Read, cancel and announce matches from Discord"""

    def __init__(self, bot):
        self.bot = bot
        self.logger = logger

    @property
    def engine(self):
        return self.bot.engine

    async def cog_load(self):
        self.engine.add_resolution_listener(self.announce_resolution)

    async def cog_unload(self):
        self.engine.remove_resolution_listener(self.announce_resolution)

    async def announce_resolution(self, result: SubmitResult):
        """Post a resolved match to the matchmaking channel"""
        if not Config.DISCORD_CHANNEL_ID or not self.bot.is_ready():
            return
        channel = self.bot.get_channel(Config.DISCORD_CHANNEL_ID)
        if channel is None:
            self.logger.warning(f"Announcement channel {Config.DISCORD_CHANNEL_ID} not found")
            return

        resolution = result.resolution
        winner_record = await self.engine.get_player_stats(resolution.winner)
        loser_record = await self.engine.get_player_stats(resolution.loser)
        embed = build_resolution_embed(result.match, resolution, winner_record, loser_record)
        try:
            await channel.send(embed=embed)
        except discord.HTTPException as e:
            self.logger.error(f"Failed to announce match {result.match.id}: {e}")
            return
        self.logger.info(f"Announced match {result.match.id}: {resolution.winner} beat {resolution.loser}")

    def cog_check(self, ctx):
        """Only answer in the configured channel, if one is set"""
        if Config.DISCORD_CHANNEL_ID and ctx.channel.id != Config.DISCORD_CHANNEL_ID:
            raise WrongChannel()
        return True

    async def _send_error(self, ctx, error: MatchmakingError):
        self.logger.info(f"{ctx.command} by {ctx.author} failed: {error}")
        await ctx.send(embed=ErrorEmbeds.from_exception(error))

    @commands.command(name='matches')
    @rate_limit('matches', limit=5, window=60)
    async def matches(self, ctx, *, player_name: str):
        """Show a player's recent matches"""
        try:
            history = await self.engine.get_player_matches(
                player_name, DisplayConstants.MATCH_HISTORY_LIMIT
            )
        except MatchmakingError as e:
            await self._send_error(ctx, e)
            return

        await ctx.send(embed=build_match_history_embed(player_name.strip(), history))

    @commands.command(name='stats')
    @rate_limit('stats', limit=5, window=60)
    async def stats(self, ctx):
        """Show system-wide matchmaking stats"""
        try:
            snapshot = await self.engine.get_stats()
        except MatchmakingError as e:
            await self._send_error(ctx, e)
            return

        await ctx.send(embed=build_stats_embed(snapshot))

    @commands.command(name='cancel')
    @rate_limit('cancel', limit=3, window=60)
    async def cancel(self, ctx, match_id: str):
        """Cancel one of your waiting lobbies"""
        try:
            match = await self.engine.get_match(match_id)

            # Lobbies submitted with this Discord account belong to the author
            # regardless of the in-game name used
            if match.creator.discord_user_id == str(ctx.author.id):
                requesting_player = match.creator.player_name
            else:
                requesting_player = ctx.author.display_name

            cancelled = await self.engine.cancel_match(match_id, requesting_player)
        except MatchmakingError as e:
            await self._send_error(ctx, e)
            return

        self.logger.info(f"Discord user {ctx.author.id} cancelled {match_id}")
        await ctx.send(embed=build_cancelled_embed(cancelled))

    @commands.command(name='help')
    async def show_help(self, ctx):
        """Show available commands"""
        await ctx.send(embed=build_help_embed())


async def setup(bot):
    await bot.add_cog(MatchmakingCog(bot))
