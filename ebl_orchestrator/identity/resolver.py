"""
Identity resolver — one capability over two ways of holding keys.

``IdentitySource`` answers "who am I" and "how do I sign" for the
current session. Two variants implement it:

    - ``LocalIdentitySource``: private network. Keys live in the identity
      store; switching roles moves the active pointer.
    - ``ExternalWalletIdentitySource``: public network. The address comes
      from a connected wallet; a role is only a label remembered per
      address, and switching roles changes the label, not the address.

The orchestrator depends on the protocol only. Signers are resolved
from the current pointer on every ``get_signer()`` call and must not be
cached across role switches.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from ebl_orchestrator.chain.keys import format_address
from ebl_orchestrator.chain.signer import (
    SignerFn,
    WalletConnector,
    local_signer,
    wallet_signer,
)
from ebl_orchestrator.errors import NoIdentityError
from ebl_orchestrator.identity.roles import Role
from ebl_orchestrator.identity.store import IdentityStore

logger = logging.getLogger(__name__)


@runtime_checkable
class IdentitySource(Protocol):
    """Who the session acts as, and how it signs."""

    def active_address(self) -> str | None:
        ...

    def active_role(self) -> Role | None:
        ...

    def get_signer(self) -> SignerFn | None:
        """A signer for the active identity, or None when there is none."""
        ...

    def switch_to_role(self, role: Role | str) -> None:
        ...

    async def disconnect(self) -> None:
        ...


class LocalIdentitySource:
    """Private-network identities held in the identity store."""

    def __init__(self, store: IdentityStore) -> None:
        self._store = store

    @property
    def store(self) -> IdentityStore:
        return self._store

    def active_address(self) -> str | None:
        return self._store.get_active().address

    def active_role(self) -> Role | None:
        return self._store.get_active().role

    def get_signer(self) -> SignerFn | None:
        active = self._store.get_active()
        if not active.is_set:
            return None
        identity = self._store.get_identity(active.role)
        if identity is None or identity.address != active.address:
            return None
        keypair = identity.keypair
        if keypair is None:
            return None
        return local_signer(keypair)

    def switch_to_role(self, role: Role | str) -> None:
        """Make ``role`` active immediately.

        Raises:
            NoIdentityError: If ``role`` has no provisioned identity.
        """
        role = Role(role)
        identity = self._store.get_identity(role)
        if identity is None:
            raise NoIdentityError(f"no account provisioned for {role}")
        self._store.set_active(role, identity.address)

    async def disconnect(self) -> None:
        self._store.clear_active()


class ExternalWalletIdentitySource:
    """Public-network identity supplied by an external wallet."""

    def __init__(self, store: IdentityStore, wallet: WalletConnector) -> None:
        self._store = store
        self._wallet = wallet

    @property
    def wallet(self) -> WalletConnector:
        return self._wallet

    def active_address(self) -> str | None:
        return self._wallet.connected_address

    def active_role(self) -> Role | None:
        address = self._wallet.connected_address
        if address is None:
            return None
        return self._store.external_role_label(address)

    def get_signer(self) -> SignerFn | None:
        if self._wallet.connected_address is None:
            return None
        return wallet_signer(self._wallet)

    async def connect(self) -> str:
        address = await self._wallet.connect()
        role = self._store.external_role_label(address)
        logger.debug("wallet connected as %s", format_address(address))
        if role is not None:
            self._store.set_active(role, address)
        return address

    def switch_to_role(self, role: Role | str) -> None:
        """Label the connected address with ``role``.

        Raises:
            NoIdentityError: If no wallet is connected.
        """
        role = Role(role)
        address = self._wallet.connected_address
        if address is None:
            raise NoIdentityError("connect a wallet before choosing a role")
        self._store.set_external_role_label(address, role)
        self._store.set_active(role, address)

    async def disconnect(self) -> None:
        await self._wallet.disconnect()
        self._store.clear_active()
