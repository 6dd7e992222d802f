"""Bot configuration loaded from the environment (and a .env file if present)."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from vps_manager import DEFAULT_ID_PREFIX, DEFAULT_ID_START, DEFAULT_REBOOT_DELAY, DEFAULT_SSH_HOST

REQUIRED_KEYS = ('DISCORD_TOKEN', 'CLIENT_ID', 'ADMIN_ID')


class ConfigError(Exception):
    """Startup configuration is missing or malformed."""


@dataclass
class Settings:
    discord_token: str
    client_id: str
    admin_id: int
    guild_id: Optional[int] = None
    command_prefix: str = '!'
    reboot_delay: float = DEFAULT_REBOOT_DELAY
    vps_id_prefix: str = DEFAULT_ID_PREFIX
    vps_id_start: int = DEFAULT_ID_START
    ssh_host: str = DEFAULT_SSH_HOST
    log_level: str = 'INFO'


def _parse(env: Mapping[str, str], key: str, cast, default=None):
    raw = env.get(key)
    if raw is None or raw.strip() == '':
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ConfigError(f"{key} has an invalid value: {raw!r}")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from ``environ`` (defaults to os.environ after loading .env).

    Raises ConfigError naming every missing required key.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    missing = [key for key in REQUIRED_KEYS if not (environ.get(key) or '').strip()]
    if missing:
        raise ConfigError(
            f"Your .env file is missing or incomplete. Please set: {', '.join(missing)}"
        )

    settings = Settings(
        discord_token=environ['DISCORD_TOKEN'].strip(),
        client_id=environ['CLIENT_ID'].strip(),
        admin_id=_parse(environ, 'ADMIN_ID', int),
        guild_id=_parse(environ, 'GUILD_ID', int),
        command_prefix=_parse(environ, 'COMMAND_PREFIX', str, '!'),
        reboot_delay=_parse(environ, 'REBOOT_DELAY', float, DEFAULT_REBOOT_DELAY),
        vps_id_prefix=_parse(environ, 'VPS_ID_PREFIX', str, DEFAULT_ID_PREFIX),
        vps_id_start=_parse(environ, 'VPS_ID_START', int, DEFAULT_ID_START),
        ssh_host=_parse(environ, 'SSH_HOST', str, DEFAULT_SSH_HOST),
        log_level=_parse(environ, 'LOG_LEVEL', str, 'INFO').upper(),
    )
    if settings.reboot_delay < 0:
        raise ConfigError("REBOOT_DELAY must not be negative")
    return settings
