"""
Housekeeping Cog - Background Tasks & Owner Commands

Expires lobbies that waited longer than LOBBY_EXPIRY_MINUTES. The sweep is
off unless that setting is positive.
"""

from datetime import timedelta

from discord.ext import commands, tasks

from matchbot.config import Config
from matchbot.constants import HousekeepingConstants
from matchbot.utils.logger import setup_logger
from matchbot.utils.matchmaking_exceptions import MatchmakingError

logger = setup_logger(__name__)


class HousekeepingCog(commands.Cog):
    """Background maintenance of the lobby queue"""

    def __init__(self, bot):
        self.bot = bot
        self.logger = logger

    @property
    def max_age(self) -> timedelta:
        return timedelta(minutes=Config.LOBBY_EXPIRY_MINUTES)

    async def cog_load(self):
        """Start background tasks once the cog is registered"""
        if Config.LOBBY_EXPIRY_MINUTES > 0:
            self.expire_lobbies.start()
            self.logger.info(f"HousekeepingCog: lobby expiry after {Config.LOBBY_EXPIRY_MINUTES} minutes")
        else:
            self.logger.info("HousekeepingCog: lobby expiry disabled")

    def cog_unload(self):
        """Stop background tasks when cog is unloaded"""
        self.expire_lobbies.cancel()
        self.logger.info("HousekeepingCog: Background tasks stopped")

    @tasks.loop(minutes=HousekeepingConstants.EXPIRY_SWEEP_INTERVAL_MINUTES)
    async def expire_lobbies(self):
        """Cancel lobbies that waited too long"""
        try:
            count = await self.bot.engine.expire_stale_lobbies(self.max_age)
            if count > 0:
                self.logger.info(f"Expired {count} stale lobbies")
        except MatchmakingError as e:
            # Next iteration retries; the loop must survive store outages
            self.logger.error(f"Error in lobby expiry task: {e}", exc_info=True)

    @expire_lobbies.before_loop
    async def before_expire_lobbies(self):
        """Wait for bot to be ready before starting the sweep"""
        await self.bot.wait_until_ready()

    @commands.command(name="expire_lobbies")
    async def manual_expire(self, ctx, minutes: int = None):
        """Manually expire lobbies older than the given minutes (owner only)"""
        if ctx.author.id != Config.OWNER_DISCORD_ID:
            await ctx.send("❌ **Access Denied**\nThis command is restricted to the bot owner.")
            return

        minutes = minutes if minutes is not None else Config.LOBBY_EXPIRY_MINUTES
        if minutes <= 0:
            await ctx.send("❌ Provide a positive age in minutes.")
            return

        try:
            count = await self.bot.engine.expire_stale_lobbies(timedelta(minutes=minutes))
        except MatchmakingError as e:
            self.logger.error(f"Manual expiry error: {e}", exc_info=True)
            await ctx.send(f"❌ Expiry failed: {e.user_message}")
            return

        self.logger.info(f"Manual expiry by {ctx.author.id}: {count} lobbies older than {minutes}m")
        await ctx.send(f"✅ Expired {count} lobbies older than {minutes} minutes.")


async def setup(bot):
    await bot.add_cog(HousekeepingCog(bot))
