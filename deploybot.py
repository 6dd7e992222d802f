import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from embeds import create_error_embed
from router import CommandRouter
from settings import ConfigError, Settings, load_settings
from vps_manager import LifecycleController, VpsRegistry

logger = logging.getLogger('vps_bot')


class VpsCommands(commands.Cog):
    """Server-side commands: admin provisioning and the manage pointer."""

    def __init__(self, bot: 'VpsBot'):
        self.bot = bot

    @commands.hybrid_command(name='deploy', description='Deploys a new LXC VPS for a user.')
    @app_commands.describe(
        user="The user to deploy the VPS for",
        ram="RAM in MB",
        disk="Disk space in GB",
        cpu="Number of CPU cores",
    )
    async def deploy(self, ctx, user: discord.User, ram: int, disk: int, cpu: int):
        """Create a VPS for a user (Admin only)"""
        # sending the DM can take a moment
        await ctx.defer(ephemeral=not self.bot.router.is_admin(ctx.author.id))
        embed = await self.bot.router.deploy(ctx.author.id, user, ram, disk, cpu)
        await ctx.send(embed=embed)

    @commands.hybrid_command(name='manage', description='Get instructions to manage your VPS via DM.')
    async def manage(self, ctx):
        """Get VPS management instructions in your DMs"""
        embed = await self.bot.router.manage(ctx.author)
        await ctx.send(embed=embed, ephemeral=True)

    @commands.Cog.listener()
    async def on_command_error(self, ctx, error):
        if isinstance(error, commands.CommandNotFound):
            return
        elif isinstance(error, commands.MissingRequiredArgument):
            await ctx.send(embed=create_error_embed("Missing Argument", f"Usage: `{ctx.prefix}{ctx.command.qualified_name} {ctx.command.signature}`"))
        elif isinstance(error, commands.BadArgument):
            await ctx.send(embed=create_error_embed("Invalid Argument", "Please check your input and try again."))
        elif isinstance(error, commands.CheckFailure):
            pass
        else:
            logger.error(f"[ERROR] executing command {ctx.command}: {error}", exc_info=error)
            await ctx.send(embed=create_error_embed("System Error", "There was an error while executing this command!"))


class VpsBot(commands.Bot):
    def __init__(self, settings: Settings, registry: Optional[VpsRegistry] = None,
                 controller: Optional[LifecycleController] = None):
        intents = discord.Intents.default()
        intents.messages = True
        intents.message_content = True
        intents.dm_messages = True
        super().__init__(
            command_prefix=settings.command_prefix,
            intents=intents,
            help_command=None,
            application_id=int(settings.client_id) if settings.client_id.isdigit() else None,
        )
        self.settings = settings
        self.registry = registry or VpsRegistry(
            id_prefix=settings.vps_id_prefix,
            id_start=settings.vps_id_start,
            ssh_host=settings.ssh_host,
        )
        self.controller = controller or LifecycleController(self.registry, reboot_delay=settings.reboot_delay)
        self.router = CommandRouter(self.registry, self.controller, settings.admin_id, prefix=settings.command_prefix)

    async def setup_hook(self):
        await self.add_cog(VpsCommands(self))
        try:
            if self.settings.guild_id:
                guild = discord.Object(id=self.settings.guild_id)
                self.tree.copy_global_to(guild=guild)
                synced = await self.tree.sync(guild=guild)
            else:
                synced = await self.tree.sync()
            logger.info(f"Successfully reloaded {len(synced)} application (/) commands.")
        except discord.HTTPException as e:
            logger.error(f"ERROR: Could not register commands: {e}")

    async def on_ready(self):
        logger.info(f'✅ Logged in as {self.user}!')
        await self.change_presence(activity=discord.Activity(type=discord.ActivityType.watching, name="LXC Host"))

    async def on_message(self, message: discord.Message):
        if message.author.bot:
            return
        if isinstance(message.channel, discord.DMChannel):
            await self.router.handle_direct_message(message.author, message.content)
            return
        await self.process_commands(message)

    async def close(self):
        self.controller.close()
        await super().close()


def main():
    try:
        settings = load_settings()
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
        logger.error(f"FATAL ERROR: {e}")
        raise SystemExit(f"FATAL ERROR: {e}")

    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO),
                        format='%(asctime)s - %(levelname)s - %(message)s')
    bot = VpsBot(settings)
    bot.run(settings.discord_token, log_handler=None)


if __name__ == "__main__":
    main()
