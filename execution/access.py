"""
Access collaborators — roles, pause switch, and relayed-caller resolution.

These sit in front of the accounting core; the ledger consults them once at
the entry of every public operation and never reasons about identity itself.
"""
import threading
from collections import defaultdict

from loguru import logger

from execution.errors import Paused, Unauthorized

ADMIN  = 'ADMIN'
KEEPER = 'KEEPER'


class RoleRegistry:
    """has_role(account, role) backing store. Only ADMINs grant/revoke."""

    def __init__(self, admin: str, keepers: list[str] | None = None):
        self._roles: dict[str, set[str]] = defaultdict(set)
        self._roles[ADMIN].add(admin)
        for keeper in keepers or []:
            self._roles[KEEPER].add(keeper)

    def has_role(self, account: str, role: str) -> bool:
        return account in self._roles.get(role, set())

    def require(self, account: str, role: str):
        if not self.has_role(account, role):
            raise Unauthorized(f'{account} lacks role {role}')

    def grant(self, caller: str, account: str, role: str):
        self.require(caller, ADMIN)
        self._roles[role].add(account)
        logger.info(f'[ACCESS] {caller} granted {role} to {account}')

    def revoke(self, caller: str, account: str, role: str):
        self.require(caller, ADMIN)
        self._roles[role].discard(account)
        logger.info(f'[ACCESS] {caller} revoked {role} from {account}')


class PauseSwitch:
    """Emergency pause gate for open/close/liquidate."""

    def __init__(self, paused: bool = False):
        self._paused = paused
        self._lock = threading.Lock()

    def is_paused(self) -> bool:
        return self._paused

    def set(self, paused: bool) -> bool:
        """Returns True if the state actually changed."""
        with self._lock:
            changed = self._paused != paused
            self._paused = paused
        return changed

    def require_live(self):
        if self._paused:
            raise Paused('Market is paused')


class TrustedForwarder:
    """
    Meta-transaction sender resolution.
    A call relayed by a registered forwarder that carries an appended sender
    acts as that sender; any other call acts as its raw caller.
    """

    def __init__(self, forwarders: list[str] | None = None):
        self.forwarders = set(forwarders or [])

    def is_trusted(self, caller: str) -> bool:
        return caller in self.forwarders

    def resolve(self, caller: str, relayed_sender: str | None = None) -> str:
        if relayed_sender and self.is_trusted(caller):
            return relayed_sender
        return caller
