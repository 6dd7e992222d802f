import discord
from datetime import datetime

FOOTER_TEXT = "LXC Deploy Bot"


# Embed creation functions with black theme
def create_embed(title, description="", color=0x1a1a1a, fields=None):
    """Create a dark-themed embed"""
    embed = discord.Embed(
        title=f"▌ {title}",
        description=description,
        color=color
    )

    if fields:
        for field in fields:
            embed.add_field(
                name=f"▸ {field['name']}",
                value=field["value"],
                inline=field.get("inline", False)
            )

    embed.set_footer(text=f"{FOOTER_TEXT} • {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    return embed

def create_success_embed(title, description=""):
    return create_embed(title, description, color=0x00ff88)

def create_error_embed(title, description=""):
    return create_embed(title, description, color=0xff3366)

def create_info_embed(title, description=""):
    return create_embed(title, description, color=0x00ccff)

def create_warning_embed(title, description=""):
    return create_embed(title, description, color=0xffaa00)


def vps_details_text(vps):
    return (f"**ID:** {vps.id}\n"
            f"**RAM:** {vps.specs.ram_mb}MB\n"
            f"**Disk:** {vps.specs.disk_gb}GB\n"
            f"**CPU:** {vps.specs.cpu_cores} Cores")


def create_vps_ready_embed(vps, prefix="!"):
    """DM sent to a user once their VPS is deployed."""
    embed = create_success_embed("🎉 Your LXC VPS is Ready!", "Your new container has been created and is ready for use.")
    embed.add_field(name="🖥️ VPS Details", value=vps_details_text(vps), inline=False)
    embed.add_field(name="🔑 SSH Access (tmate)",
                    value=f"You can connect instantly using the command below in your terminal:\n```{vps.access_credential}```",
                    inline=False)
    embed.set_footer(text=f"Manage your VPS by sending me commands in this DM! Type {prefix}help")
    return embed


def create_help_embed(prefix="!"):
    commands = [
        ("status", "Check VPS status."),
        ("reboot", "Reboot your VPS."),
        ("shutdown", "Shutdown your VPS."),
        ("start", "Start your VPS."),
        ("ssh", "Show your SSH access info."),
        ("help", "Show this message."),
    ]
    text = "\n".join([f"`{prefix}{cmd}` - {desc}" for cmd, desc in commands])
    return create_info_embed("📚 Available Commands", text)
