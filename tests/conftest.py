"""
Shared fixtures for the bot test suite.
"""

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from router import CommandRouter
from vps_manager import LifecycleController, VpsRegistry

ADMIN_ID = 111
REBOOT_DELAY = 0.05


@pytest.fixture
def registry():
    return VpsRegistry()


@pytest.fixture
def controller(registry):
    controller = LifecycleController(registry, reboot_delay=REBOOT_DELAY)
    yield controller
    controller.close()


@pytest.fixture
def router(registry, controller):
    return CommandRouter(registry, controller, admin_id=ADMIN_ID, prefix='!')


@pytest.fixture
def make_user():
    """Build a fake Discord user whose ``send`` is an AsyncMock."""
    def _make(user_id, name=None, dm_closed=False):
        user = MagicMock()
        user.id = user_id
        user.name = name or f"user{user_id}"
        user.mention = f"<@{user_id}>"
        user.send = AsyncMock()
        if dm_closed:
            response = MagicMock(status=403, reason="Forbidden")
            user.send.side_effect = discord.Forbidden(response, "Cannot send messages to this user")
        return user
    return _make


def sent_embed(user, index=-1):
    """Return the embed passed to the user's ``send`` call."""
    return user.send.await_args_list[index].kwargs['embed']
