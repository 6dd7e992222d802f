"""
Maps Discord requests onto VPS manager operations.

The router never touches the gateway client directly. It is handed the
actor (anything with ``id``, ``name``, ``mention`` and an async ``send``)
and returns or sends embeds, which keeps it usable with test doubles.
"""

import logging
from typing import Optional

import discord

from embeds import (create_embed, create_error_embed, create_help_embed, create_info_embed,
                    create_success_embed, create_vps_ready_embed, create_warning_embed)
from vps_manager import (STATUS_OFFLINE, STATUS_ONLINE, STATUS_REBOOTING, AlreadyExists, DeliveryFailure,
                         InvalidSpecs, LifecycleController, NotFound, Unauthorized, VpsRegistry, VpsSpecs)

logger = logging.getLogger('vps_bot.router')

NO_VPS_MESSAGE = "You do not have a VPS deployed. Please contact an administrator."

STATUS_COLORS = {
    STATUS_ONLINE: 0x00ff88,
    STATUS_OFFLINE: 0xff3366,
    STATUS_REBOOTING: 0xffaa00,
}


async def deliver(destination, **payload):
    """Send ``payload`` to a user or channel, raising DeliveryFailure on transport errors."""
    try:
        return await destination.send(**payload)
    except (discord.Forbidden, discord.HTTPException) as e:
        raise DeliveryFailure(f"Could not deliver message to {getattr(destination, 'name', destination)}: {e}") from e


class CommandRouter:
    def __init__(self, registry: VpsRegistry, controller: LifecycleController, admin_id: int, prefix: str = '!'):
        self.registry = registry
        self.controller = controller
        self.admin_id = admin_id
        self.prefix = prefix
        self._dm_commands = {
            'help': self._cmd_help,
            'status': self._cmd_status,
            'reboot': self._cmd_reboot,
            'shutdown': self._cmd_shutdown,
            'start': self._cmd_start,
            'ssh': self._cmd_ssh,
        }

    def is_admin(self, actor_id) -> bool:
        return str(actor_id) == str(self.admin_id)

    def require_admin(self, actor_id):
        if not self.is_admin(actor_id):
            raise Unauthorized(f"User {actor_id} is not the administrator")

    # Admin channel

    async def deploy(self, actor_id, target, ram, disk, cpu) -> discord.Embed:
        """Provision a VPS for ``target`` and DM them the details. Returns the admin's reply."""
        try:
            self.require_admin(actor_id)
        except Unauthorized as e:
            logger.warning(f"Deploy denied: {e}")
            return create_error_embed("Access Denied", "❌ You are not an admin.")

        try:
            specs = VpsSpecs(ram_mb=ram, disk_gb=disk, cpu_cores=cpu)
        except InvalidSpecs:
            return create_error_embed("Invalid Specs", "RAM, disk and CPU must be positive integers.")

        try:
            vps = self.registry.create(target.id, specs, owner_name=target.name)
        except AlreadyExists as e:
            return create_error_embed("Deploy Failed", f"❌ Error: {e}")

        try:
            await deliver(target, embed=create_vps_ready_embed(vps, self.prefix))
        except DeliveryFailure as e:
            logger.error(f"[ERROR] {e}")
            return create_warning_embed(
                "VPS Deployed",
                f"✅ VPS `{vps.id}` deployed for **{target.name}**, but I could not send them a DM. "
                "Please tell them to check their privacy settings."
            )

        return create_success_embed(
            "VPS Deployed",
            f"✅ Successfully deployed LXC VPS `{vps.id}` for **{target.name}**. They have been notified via DM."
        )

    async def manage(self, actor) -> discord.Embed:
        """Point a user at their DMs for VPS management."""
        vps = self.registry.find(actor.id)
        if not vps:
            return create_info_embed("No VPS Found", NO_VPS_MESSAGE)

        try:
            await deliver(actor, content=(f"Hello! You can manage your VPS (`{vps.id}`) by sending me commands "
                                          f"in this DM. Type `{self.prefix}help` to see what you can do."))
        except DeliveryFailure as e:
            logger.error(f"[ERROR] {e}")
            return create_warning_embed("DM Failed", "I could not DM you. Please enable DMs from server members.")
        return create_success_embed("Check your DMs", "✅ Please check your Direct Messages for VPS management instructions.")

    # Direct messages

    async def handle_direct_message(self, author, content: str) -> Optional[discord.Embed]:
        """Run a DM command. Returns the embed replied with, or None if the message was ignored."""
        args = content.strip().split()
        if not args or not args[0].startswith(self.prefix):
            return None
        command_name = args[0][len(self.prefix):].lower()

        vps = self.registry.find(author.id)
        if not vps:
            embed = create_info_embed("No VPS Found", NO_VPS_MESSAGE)
        else:
            logger.info(f"[USER ACTION] {author.name} ran DM command '{command_name}' on VPS {vps.id}.")
            handler = self._dm_commands.get(command_name)
            if handler is None:
                embed = create_error_embed("Unknown Command",
                                           f"Unknown command. Type `{self.prefix}help` to see available commands.")
            else:
                try:
                    embed = handler(author)
                except NotFound:
                    embed = create_info_embed("No VPS Found", NO_VPS_MESSAGE)

        await self._reply(author, embed)
        return embed

    async def _reply(self, author, embed):
        try:
            await deliver(author, embed=embed)
        except DeliveryFailure as e:
            logger.error(f"[DM ERROR] {e}")

    def _cmd_help(self, author):
        return create_help_embed(self.prefix)

    def _cmd_status(self, author):
        vps = self.registry.find(author.id)
        if vps is None:
            raise NotFound(author.id)
        return create_embed(
            "VPS Status",
            f"Your VPS (`{vps.id}`) status is: **{vps.status.upper()}**",
            STATUS_COLORS.get(vps.status, 0x1a1a1a),
            fields=[
                {"name": "Resources", "value": str(vps.specs)},
                {"name": "Created", "value": vps.created_at.strftime('%Y-%m-%d %H:%M:%S UTC')},
            ],
        )

    def _cmd_reboot(self, author):
        vps = self.controller.reboot(author.id)
        return create_warning_embed("VPS Rebooting",
                                    f"🔄 Your VPS (`{vps.id}`) is now rebooting.\n**Status:** {vps.status.upper()}")

    def _cmd_shutdown(self, author):
        vps = self.controller.shutdown(author.id)
        return create_error_embed("VPS Stopped",
                                  f"🛑 Your VPS (`{vps.id}`) has been shut down.\n**Status:** {vps.status.upper()}")

    def _cmd_start(self, author):
        vps = self.controller.start(author.id)
        return create_success_embed("VPS Started",
                                    f"▶️ Your VPS (`{vps.id}`) has been started.\n**Status:** {vps.status.upper()}")

    def _cmd_ssh(self, author):
        vps = self.registry.find(author.id)
        if vps is None:
            raise NotFound(author.id)
        embed = create_info_embed("🔑 SSH Access", f"SSH connection for VPS `{vps.id}`:")
        embed.add_field(name="Command", value=f"```{vps.access_credential}```", inline=False)
        embed.add_field(name="⚠️ Security", value="Do not share this with anyone.", inline=False)
        return embed
