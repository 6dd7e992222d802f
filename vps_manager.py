"""
Simulated LXC VPS manager.

Keeps one VPS record per Discord user and drives its status through
start / shutdown / reboot. No real containers are touched; state lives
in memory and resets when the bot restarts.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional

logger = logging.getLogger('vps_bot.manager')

STATUS_OFFLINE = 'offline'
STATUS_ONLINE = 'online'
STATUS_REBOOTING = 'rebooting'

ACTIONS = ('start', 'shutdown', 'reboot')

DEFAULT_ID_PREFIX = 'LXC'
DEFAULT_ID_START = 1000
DEFAULT_SSH_HOST = 'tmate.kexson.host'
DEFAULT_REBOOT_DELAY = 5.0


class VpsError(Exception):
    """Base exception for VPS manager errors."""


class AlreadyExists(VpsError):
    """The owner already has a VPS."""

    def __init__(self, owner_id, vps_id: str):
        self.owner_id = owner_id
        self.vps_id = vps_id
        super().__init__(f"User already has a VPS ({vps_id}).")


class NotFound(VpsError):
    """The owner has no VPS."""

    def __init__(self, owner_id):
        self.owner_id = owner_id
        super().__init__("VPS not found.")


class Unauthorized(VpsError):
    """Actor is not allowed to run the command."""


class DeliveryFailure(VpsError):
    """A reply or notification could not reach the user."""


class InvalidSpecs(VpsError, ValueError):
    pass


class UnknownAction(VpsError, ValueError):
    pass


@dataclass(frozen=True)
class VpsSpecs:
    """Resources allocated to a VPS. Fixed at creation."""
    ram_mb: int
    disk_gb: int
    cpu_cores: int

    def __post_init__(self):
        for name in ('ram_mb', 'disk_gb', 'cpu_cores'):
            value = getattr(self, name)
            # bool is an int subclass, reject it explicitly
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidSpecs(f"{name} must be a positive integer, got {value!r}")

    def __str__(self) -> str:
        return f"{self.ram_mb}MB RAM, {self.disk_gb}GB disk, {self.cpu_cores} CPU"


@dataclass
class VpsRecord:
    """A provisioned (simulated) VPS."""
    id: str
    owner_id: int
    specs: VpsSpecs
    access_credential: str
    owner_name: Optional[str] = None
    status: str = STATUS_OFFLINE
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def owner_label(self) -> str:
        return self.owner_name or str(self.owner_id)


class VpsRegistry:
    """
    In-memory store of VPS records, keyed by owner id.

    Only ``create`` adds records and nothing removes them. Status changes
    belong to LifecycleController.
    """

    def __init__(self, id_prefix: str = DEFAULT_ID_PREFIX, id_start: int = DEFAULT_ID_START,
                 ssh_host: str = DEFAULT_SSH_HOST):
        self._records: Dict[int, VpsRecord] = {}
        self._id_prefix = id_prefix
        self._next_id = id_start
        self._ssh_host = ssh_host

    def create(self, owner_id: int, specs: VpsSpecs, owner_name: Optional[str] = None) -> VpsRecord:
        """Create a VPS for ``owner_id``. Raises AlreadyExists if one is present."""
        existing = self.find(owner_id)
        if existing:
            raise AlreadyExists(owner_id, existing.id)

        vps_id = f"{self._id_prefix}-{self._next_id}"
        self._next_id += 1

        record = VpsRecord(
            id=vps_id,
            owner_id=owner_id,
            specs=specs,
            access_credential=self.build_credential(owner_id, vps_id),
            owner_name=owner_name,
        )
        self._records[owner_id] = record
        logger.info(f"[LXC] Created container {vps_id} for {record.owner_label}.")
        return record

    def find(self, owner_id: int) -> Optional[VpsRecord]:
        return self._records.get(owner_id)

    def build_credential(self, owner_id: int, vps_id: str) -> str:
        return f"ssh {owner_id}-{vps_id}@{self._ssh_host}"

    def __contains__(self, owner_id) -> bool:
        return owner_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[VpsRecord]:
        return iter(list(self._records.values()))


class LifecycleController:
    """
    Applies lifecycle actions to records held by a VpsRegistry.

    ``reboot`` is the only asynchronous transition: the record goes to
    ``rebooting`` at once and a timer on the running event loop flips it
    to ``online`` after ``reboot_delay`` seconds. Any later action for the
    same owner cancels that timer first, so the newest command wins.
    """

    def __init__(self, registry: VpsRegistry, reboot_delay: float = DEFAULT_REBOOT_DELAY):
        self.registry = registry
        self.reboot_delay = reboot_delay
        self._pending: Dict[int, asyncio.TimerHandle] = {}

    def perform_action(self, owner_id: int, action: str) -> VpsRecord:
        """Apply ``action`` to the owner's VPS and return the record."""
        if action not in ACTIONS:
            raise UnknownAction(f"Unknown action '{action}'")

        vps = self.registry.find(owner_id)
        if vps is None:
            raise NotFound(owner_id)

        # reboot needs a running loop; fail before anything is touched
        loop = asyncio.get_running_loop() if action == 'reboot' else None

        logger.info(f"[LXC] Performing action '{action}' on VPS {vps.id} for {vps.owner_label}.")
        self._cancel_pending(owner_id)

        if action == 'start':
            vps.status = STATUS_ONLINE
        elif action == 'shutdown':
            vps.status = STATUS_OFFLINE
        elif action == 'reboot':
            vps.status = STATUS_REBOOTING
            self._pending[owner_id] = loop.call_later(self.reboot_delay, self._finish_reboot, owner_id)
        return vps

    def start(self, owner_id: int) -> VpsRecord:
        return self.perform_action(owner_id, 'start')

    def shutdown(self, owner_id: int) -> VpsRecord:
        return self.perform_action(owner_id, 'shutdown')

    def reboot(self, owner_id: int) -> VpsRecord:
        return self.perform_action(owner_id, 'reboot')

    def has_pending(self, owner_id: int) -> bool:
        return owner_id in self._pending

    def close(self):
        """Cancel every scheduled reboot completion."""
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()

    def _cancel_pending(self, owner_id: int):
        handle = self._pending.pop(owner_id, None)
        if handle is not None:
            handle.cancel()
            logger.debug(f"Cancelled pending reboot for owner {owner_id}")

    def _finish_reboot(self, owner_id: int):
        self._pending.pop(owner_id, None)
        vps = self.registry.find(owner_id)
        if vps is None:
            logger.warning(f"Reboot finished for owner {owner_id} but no VPS exists")
            return
        vps.status = STATUS_ONLINE
        logger.info(f"[LXC] VPS {vps.id} finished rebooting and is online.")
