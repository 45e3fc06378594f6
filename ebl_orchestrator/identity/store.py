"""
Identity store — durable Role → Identity mapping plus the active pointer.

Backed by a ``KeyValueStore``. Keys are namespaced by network mode, then
by role name or address:

    {network}:role_address:{ROLE}     address owned by ROLE
    {network}:role_secret:{ROLE}      hex seed of ROLE (private network)
    {network}:address_role:{ADDR}     reverse index, ADDR → ROLE
    {network}:active_role             active session pointer
    {network}:active_address
    {network}:external_role:{ADDR}    role label for an external address

Invariants:
    - Role → address is injective: assigning an address first removes
      any other role that owned it. Last write wins; no error.
    - The active pointer always names the active role's current address.
      Re-assigning that role's address moves the pointer with it; taking
      the address away clears the pointer.
    - Every write of the pointer publishes a ``RoleChanged`` event.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ebl_orchestrator.chain.keys import LocalKeypair, format_address, is_valid_address
from ebl_orchestrator.events import EventBus, RoleChanged
from ebl_orchestrator.identity.roles import Role, nickname, parse_role
from ebl_orchestrator.kvstore import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """An address, optionally paired with locally held secret material."""

    role: Role
    address: str
    secret: str | None = None

    def __repr__(self) -> str:
        held = "local" if self.secret else "external"
        return f"Identity(role={self.role!s}, address={self.address!r}, {held})"

    @property
    def keypair(self) -> LocalKeypair | None:
        if self.secret is None:
            return None
        return LocalKeypair.from_secret_hex(self.secret)


@dataclass(frozen=True)
class ActivePointer:
    role: Role | None = None
    address: str | None = None

    @property
    def is_set(self) -> bool:
        return self.role is not None and self.address is not None


class IdentityStore:
    """Role → Identity mapping for one network mode.

    Args:
        kv: Persistent key-value backend.
        network: Namespace for every key (the network mode name).
        events: Bus receiving ``RoleChanged`` notifications.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        network: str,
        events: EventBus | None = None,
    ) -> None:
        self._kv = kv
        self._network = str(network)
        self._events = events or EventBus()

    @property
    def network(self) -> str:
        return self._network

    @property
    def events(self) -> EventBus:
        return self._events

    def _key(self, *parts: str) -> str:
        return ":".join((self._network, *parts))

    # -----------------------------------------------------------------
    # Role mappings
    # -----------------------------------------------------------------

    def get_identity(self, role: Role | str) -> Identity | None:
        role = Role(role)
        address = self._kv.get(self._key("role_address", role))
        if not address:
            return None
        return Identity(
            role=role,
            address=address,
            secret=self._kv.get(self._key("role_secret", role)),
        )

    def identities(self) -> dict[Role, Identity]:
        found = {}
        for role in Role:
            identity = self.get_identity(role)
            if identity is not None:
                found[role] = identity
        return found

    def role_for_address(self, address: str) -> Role | None:
        return parse_role(self._kv.get(self._key("address_role", address)))

    def assign_address_to_role(
        self, role: Role | str, address: str, secret: str | None = None
    ) -> None:
        """Map ``role`` to ``address``, evicting any previous owner."""
        self.assign_many([Identity(role=Role(role), address=address, secret=secret)])

    def assign_many(self, identities: Iterable[Identity]) -> None:
        """Commit several role mappings in one write.

        Raises:
            ValueError: On an invalid address, or if two entries share an
                address or a role.
        """
        batch = list(identities)
        addresses = [identity.address for identity in batch]
        roles = [identity.role for identity in batch]
        if len(set(addresses)) != len(addresses):
            raise ValueError("identities in one batch must have distinct addresses")
        if len(set(roles)) != len(roles):
            raise ValueError("identities in one batch must have distinct roles")
        for identity in batch:
            if not is_valid_address(identity.address):
                raise ValueError(f"invalid address for {identity.role}: {identity.address!r}")

        stale: set[str] = set()
        writes: list[tuple[str, str]] = []
        batch_roles = set(roles)
        batch_addresses = set(addresses)

        for identity in batch:
            # Evict whichever role owned this address before.
            for owner in self._owners_of(identity.address):
                if owner not in batch_roles:
                    stale.add(self._key("role_address", owner))
                    stale.add(self._key("role_secret", owner))

            # Drop the reverse entry of the address this role is giving up.
            previous = self._kv.get(self._key("role_address", identity.role))
            if previous and previous not in batch_addresses:
                stale.add(self._key("address_role", previous))

            writes.append((self._key("role_address", identity.role), identity.address))
            writes.append((self._key("address_role", identity.address), identity.role.value))
            if identity.secret is not None:
                writes.append((self._key("role_secret", identity.role), identity.secret))
            else:
                stale.add(self._key("role_secret", identity.role))

        stale.difference_update(key for key, _ in writes)
        self._kv.delete(*sorted(stale))
        self._kv.set_many(writes)

        for identity in batch:
            logger.debug(
                "assigned %s to %s", format_address(identity.address), identity.role
            )
        self._reconcile_active()

    def _owners_of(self, address: str) -> set[Role]:
        """Every role currently mapped to ``address``.

        Scans the forward mappings rather than trusting the reverse index,
        so a lost index entry cannot break injectivity.
        """
        owners = set()
        prefix = self._key("role_address", "")
        for key in self._kv.keys(prefix):
            if self._kv.get(key) == address:
                role = parse_role(key[len(prefix):])
                if role is not None:
                    owners.add(role)
        return owners

    # -----------------------------------------------------------------
    # Active session pointer
    # -----------------------------------------------------------------

    def get_active(self) -> ActivePointer:
        role = parse_role(self._kv.get(self._key("active_role")))
        address = self._kv.get(self._key("active_address"))
        if role is None or not address:
            return ActivePointer()
        return ActivePointer(role=role, address=address)

    def set_active(self, role: Role | str, address: str) -> None:
        """Overwrite the active pointer and notify subscribers."""
        role = Role(role)
        self._kv.set_many(
            [
                (self._key("active_role"), role.value),
                (self._key("active_address"), address),
            ]
        )
        logger.debug("active identity is now %s (%s)", role, format_address(address))
        self._events.publish(RoleChanged(self._network, role, address))

    def clear_active(self) -> None:
        """Unset the active pointer (disconnect)."""
        self._kv.delete(self._key("active_role"), self._key("active_address"))
        self._events.publish(RoleChanged(self._network, None, None))

    def _reconcile_active(self) -> None:
        active = self.get_active()
        if not active.is_set:
            return
        identity = self.get_identity(active.role)
        if identity is None:
            self.clear_active()
        elif identity.address != active.address:
            self.set_active(active.role, identity.address)

    # -----------------------------------------------------------------
    # External wallet role labels
    # -----------------------------------------------------------------

    def external_role_label(self, address: str) -> Role | None:
        return parse_role(self._kv.get(self._key("external_role", address)))

    def set_external_role_label(self, address: str, role: Role | str) -> None:
        self._kv.set(self._key("external_role", address), Role(role).value)

    # -----------------------------------------------------------------
    # Bulk
    # -----------------------------------------------------------------

    def export_accounts(self) -> dict[str, dict[str, str | None]]:
        """Backup view of every account. Contains secrets.

        ``mnemonic`` is the 25-word phrase wallets import; it is None for
        an address held by an external wallet.
        """
        exported: dict[str, dict[str, str | None]] = {}
        for role, identity in self.identities().items():
            keypair = identity.keypair
            exported[role.value] = {
                "address": identity.address,
                "mnemonic": keypair.mnemonic if keypair else None,
                "nickname": nickname(role),
            }
        return exported

    def clear_all(self) -> None:
        """Erase every mapping, label and the active pointer. Irreversible."""
        was_active = self.get_active().is_set
        keys = self._kv.keys(f"{self._network}:")
        self._kv.delete(*keys)
        logger.info("cleared %d identity record(s) for %s", len(keys), self._network)
        if was_active:
            self._events.publish(RoleChanged(self._network, None, None))
