import asyncio
import logging
import traceback
from typing import Optional

import discord
import uvicorn
from discord.ext import commands

from matchbot.api import create_app
from matchbot.cogs.matchmaking import WrongChannel
from matchbot.config import Config
from matchbot.operations.matchmaking_engine import MatchmakingEngine
from matchbot.services.rate_limiter import SimpleRateLimiter
from matchbot.store import create_store
from matchbot.utils.error_embeds import ErrorEmbeds
from matchbot.utils.logger import setup_logger


class MatchmakingBot(commands.Bot):
    def __init__(self, engine: MatchmakingEngine):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True

        super().__init__(
            command_prefix=Config.COMMAND_PREFIX,
            intents=intents,
            help_command=None,
            owner_id=Config.OWNER_DISCORD_ID or None
        )

        self.engine: Optional[MatchmakingEngine] = engine
        self.rate_limiter = SimpleRateLimiter()
        self.logger = setup_logger(__name__)

    async def setup_hook(self):
        """Called when the bot is starting up"""
        self.logger.info("Setting up Matchmaking Bot...")
        await self.load_cogs()
        self.logger.info("Matchmaking Bot setup complete!")

    async def load_cogs(self):
        """Load all cogs"""
        cogs_to_load = [
            'matchbot.cogs.matchmaking',
            'matchbot.cogs.housekeeping'
        ]

        for cog in cogs_to_load:
            try:
                await self.load_extension(cog)
                self.logger.info(f"Loaded cog: {cog}")
            except commands.ExtensionError as e:
                self.logger.error(f"Failed to load cog {cog}: {e}", exc_info=True)

    async def on_ready(self):
        """Called when the bot is ready"""
        self.logger.info(f'{self.user} has connected to Discord!')
        self.logger.info(f'Bot is in {len(self.guilds)} guilds')

        await self.change_presence(
            activity=discord.Game(name=f"Breakout | {Config.COMMAND_PREFIX}help")
        )

    async def on_command_error(self, ctx: commands.Context, error: Exception):
        """Global error handler for commands"""
        if isinstance(error, (commands.CommandNotFound, WrongChannel)):
            return

        if isinstance(error, commands.CheckFailure):
            self.logger.info(f"Permission denied for command '{ctx.command.name if ctx.command else 'Unknown'}' by user {ctx.author}")
            await ctx.send(embed=ErrorEmbeds.permission_denied())
            return

        if isinstance(error, commands.MissingRequiredArgument):
            await ctx.send(f"❌ Missing required argument: `{error.param.name}`")
            return

        if isinstance(error, commands.BadArgument):
            await ctx.send(embed=ErrorEmbeds.invalid_input(str(error)))
            return

        if isinstance(error, commands.CommandOnCooldown):
            await ctx.send(f"❌ Command is on cooldown. Try again in {error.retry_after:.2f} seconds.")
            return

        self.logger.error(f"Unexpected error in command {ctx.command}: {error}")
        self.logger.error(''.join(traceback.format_exception(type(error), error, error.__traceback__)))

        embed = discord.Embed(
            title="❌ An error occurred",
            description="An unexpected error occurred while processing your command. The developers have been notified.",
            color=discord.Color.red()
        )
        await ctx.send(embed=embed)


async def main():
    """Main entry point: HTTP API plus, when a token is configured, the Discord bot"""
    Config.validate()
    logger = setup_logger(__name__)

    store = await create_store()
    engine = MatchmakingEngine(store)
    logger.info(f"Matchmaking engine ready on the {Config.STORE_BACKEND} store")

    server = uvicorn.Server(uvicorn.Config(
        create_app(engine),
        host=Config.API_HOST,
        port=Config.API_PORT,
        log_level='debug' if Config.DEBUG else 'info'
    ))

    bot = MatchmakingBot(engine) if Config.bot_enabled() else None
    if bot is None:
        logger.warning("DISCORD_TOKEN not set; running the HTTP API only")

    try:
        if bot:
            await asyncio.gather(server.serve(), bot.start(Config.DISCORD_TOKEN))
        else:
            await server.serve()
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        traceback.print_exc()
    finally:
        if bot and not bot.is_closed():
            await bot.close()
        await store.close()
        logger.info("Matchmaking service stopped")


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
