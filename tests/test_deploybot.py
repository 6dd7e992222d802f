from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
from discord.ext import commands

import deploybot
from settings import ConfigError, Settings
from vps_manager import VpsSpecs


@pytest.fixture
def settings():
    return Settings(discord_token="token", client_id="123456789", admin_id=111, reboot_delay=0.05)


@pytest.fixture
def bot(settings):
    return deploybot.VpsBot(settings)


def make_message(channel_spec, is_bot=False, content="!status"):
    message = MagicMock()
    message.author.bot = is_bot
    message.author.id = 42
    message.content = content
    message.channel = MagicMock(spec=channel_spec)
    return message


def test_bot_wires_manager_from_settings(bot, settings):
    assert bot.command_prefix == "!"
    assert bot.router.registry is bot.registry
    assert bot.router.controller is bot.controller
    assert bot.controller.reboot_delay == 0.05
    assert bot.router.is_admin(111)
    assert not bot.router.is_admin(42)
    assert bot.intents.message_content


async def test_dm_messages_go_to_router(bot):
    bot.router.handle_direct_message = AsyncMock()
    bot.process_commands = AsyncMock()
    message = make_message(discord.DMChannel)

    await bot.on_message(message)

    bot.router.handle_direct_message.assert_awaited_once_with(message.author, "!status")
    bot.process_commands.assert_not_awaited()


async def test_guild_messages_are_processed_as_commands(bot):
    bot.router.handle_direct_message = AsyncMock()
    bot.process_commands = AsyncMock()
    message = make_message(discord.TextChannel, content="!deploy")

    await bot.on_message(message)

    bot.process_commands.assert_awaited_once_with(message)
    bot.router.handle_direct_message.assert_not_awaited()


async def test_bot_messages_are_ignored(bot):
    bot.router.handle_direct_message = AsyncMock()
    bot.process_commands = AsyncMock()

    await bot.on_message(make_message(discord.DMChannel, is_bot=True))

    bot.router.handle_direct_message.assert_not_awaited()
    bot.process_commands.assert_not_awaited()


async def test_close_cancels_pending_reboots(bot, monkeypatch):
    monkeypatch.setattr(commands.Bot, "close", AsyncMock())
    bot.registry.create(42, VpsSpecs(ram_mb=512, disk_gb=10, cpu_cores=1))
    bot.controller.reboot(42)

    await bot.close()

    assert not bot.controller.has_pending(42)


def test_main_exits_on_missing_config(monkeypatch):
    def fail():
        raise ConfigError("Please set: DISCORD_TOKEN")

    monkeypatch.setattr(deploybot, "load_settings", fail)
    run = MagicMock()
    monkeypatch.setattr(deploybot.VpsBot, "run", run)

    with pytest.raises(SystemExit) as exc:
        deploybot.main()

    assert "DISCORD_TOKEN" in str(exc.value.code)
    run.assert_not_called()


def make_ctx(author_id):
    ctx = MagicMock()
    ctx.author.id = author_id
    ctx.author.name = f"user{author_id}"
    ctx.author.send = AsyncMock()
    ctx.defer = AsyncMock()
    ctx.send = AsyncMock()
    ctx.prefix = "!"
    ctx.command.qualified_name = "deploy"
    ctx.command.signature = "<user> <ram> <disk> <cpu>"
    return ctx


def make_target(user_id):
    user = MagicMock()
    user.id = user_id
    user.name = f"user{user_id}"
    user.send = AsyncMock()
    return user


class TestVpsCommands:
    @pytest.fixture
    def cog(self, bot):
        return deploybot.VpsCommands(bot)

    async def test_admin_deploy(self, cog, bot):
        ctx = make_ctx(111)
        target = make_target(42)

        await deploybot.VpsCommands.deploy.callback(cog, ctx, target, 512, 10, 1)

        ctx.defer.assert_awaited_once_with(ephemeral=False)
        embed = ctx.send.await_args.kwargs['embed']
        assert "VPS Deployed" in embed.title
        assert bot.registry.find(42) is not None
        target.send.assert_awaited_once()

    async def test_non_admin_deploy_is_ephemeral_denial(self, cog, bot):
        ctx = make_ctx(42)
        target = make_target(43)

        await deploybot.VpsCommands.deploy.callback(cog, ctx, target, 512, 10, 1)

        ctx.defer.assert_awaited_once_with(ephemeral=True)
        embed = ctx.send.await_args.kwargs['embed']
        assert "Access Denied" in embed.title
        assert len(bot.registry) == 0
        target.send.assert_not_awaited()

    async def test_manage_without_vps(self, cog):
        ctx = make_ctx(42)

        await deploybot.VpsCommands.manage.callback(cog, ctx)

        assert ctx.send.await_args.kwargs['ephemeral'] is True
        assert "No VPS Found" in ctx.send.await_args.kwargs['embed'].title
        ctx.author.send.assert_not_awaited()

    async def test_manage_with_vps(self, cog, bot):
        bot.registry.create(42, VpsSpecs(ram_mb=512, disk_gb=10, cpu_cores=1))
        ctx = make_ctx(42)

        await deploybot.VpsCommands.manage.callback(cog, ctx)

        assert "Check your DMs" in ctx.send.await_args.kwargs['embed'].title
        ctx.author.send.assert_awaited_once()

    async def test_missing_argument_shows_usage(self, cog):
        ctx = make_ctx(111)
        param = MagicMock()
        param.name = "cpu"

        await cog.on_command_error(ctx, commands.MissingRequiredArgument(param))

        embed = ctx.send.await_args.kwargs['embed']
        assert "Missing Argument" in embed.title
        assert "!deploy <user> <ram> <disk> <cpu>" in embed.description

    async def test_unexpected_error_shows_system_error(self, cog):
        ctx = make_ctx(111)

        await cog.on_command_error(ctx, commands.CommandInvokeError(RuntimeError("boom")))

        embed = ctx.send.await_args.kwargs['embed']
        assert "System Error" in embed.title

    async def test_unknown_command_is_silent(self, cog):
        ctx = make_ctx(111)
        await cog.on_command_error(ctx, commands.CommandNotFound('Command "nope" is not found'))
        ctx.send.assert_not_awaited()


class TestBotLifecycle:
    async def test_setup_hook_syncs_globally(self, bot):
        bot.add_cog = AsyncMock()
        bot.tree.sync = AsyncMock(return_value=[])
        bot.tree.copy_global_to = MagicMock()

        await bot.setup_hook()

        assert isinstance(bot.add_cog.await_args.args[0], deploybot.VpsCommands)
        bot.tree.sync.assert_awaited_once_with()
        bot.tree.copy_global_to.assert_not_called()

    async def test_setup_hook_syncs_to_guild(self, settings):
        settings.guild_id = 555
        bot = deploybot.VpsBot(settings)
        bot.add_cog = AsyncMock()
        bot.tree.sync = AsyncMock(return_value=[])
        bot.tree.copy_global_to = MagicMock()

        await bot.setup_hook()

        assert bot.tree.sync.await_args.kwargs['guild'].id == 555
        assert bot.tree.copy_global_to.call_args.kwargs['guild'].id == 555

    async def test_on_ready_sets_presence(self, bot):
        bot.change_presence = AsyncMock()

        await bot.on_ready()

        activity = bot.change_presence.await_args.kwargs['activity']
        assert activity.type == discord.ActivityType.watching
        assert activity.name == "LXC Host"
