"""
Session context.

Bundles the configuration, identity store and role-change bus for one
network mode, and picks the identity variant that mode needs. Tests and
multiple tabs build independent sessions instead of sharing globals.

The factory methods build the node, daemon, storage and orchestrator
clients from the session's own settings, so a caller only wires the
ledger and, in tests, a transport.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from ebl_orchestrator.chain.algod import AlgodClient
from ebl_orchestrator.chain.client import ChainClient
from ebl_orchestrator.chain.kmd import KmdClient
from ebl_orchestrator.chain.signer import SignerFn, WalletConnector
from ebl_orchestrator.chain.transport import HttpTransport
from ebl_orchestrator.config import NetworkConfig, StorageConfig
from ebl_orchestrator.events import EventBus, RoleChanged
from ebl_orchestrator.identity.resolver import (
    ExternalWalletIdentitySource,
    IdentitySource,
    LocalIdentitySource,
)
from ebl_orchestrator.identity.roles import Role
from ebl_orchestrator.identity.provisioner import AccountProvisioner
from ebl_orchestrator.identity.store import IdentityStore
from ebl_orchestrator.kvstore import KeyValueStore, SqliteKeyValueStore
from ebl_orchestrator.ledger import MarketplaceLedger
from ebl_orchestrator.orchestrator import Transition, TransactionOrchestrator
from ebl_orchestrator.storage import ContentStore, LocalContentStore, PinataContentStore


class Session:
    """Per-network session: who is active and how they sign.

    Args:
        config: Network settings; ``config.network`` selects the variant.
        kv: Persistent backend for identities and labels.
        wallet: External wallet. Required on public networks.
        storage: Pinning settings. Defaults to a local store.
    """

    def __init__(
        self,
        config: NetworkConfig,
        kv: KeyValueStore,
        *,
        wallet: WalletConnector | None = None,
        storage: StorageConfig | None = None,
    ) -> None:
        self.config = config
        self.storage_config = storage or StorageConfig()
        self.events = EventBus()
        self.store = IdentityStore(kv, config.network, self.events)

        if config.network.is_private:
            self.identity: IdentitySource = LocalIdentitySource(self.store)
        else:
            if wallet is None:
                raise ValueError(f"{config.network} sessions need a wallet connector")
            self.identity = ExternalWalletIdentitySource(self.store, wallet)

    @classmethod
    def open(
        cls,
        config: NetworkConfig,
        db_path: str | Path = ":memory:",
        *,
        wallet: WalletConnector | None = None,
        storage: StorageConfig | None = None,
    ) -> Session:
        """Session backed by a SQLite file (or memory)."""
        return cls(config, SqliteKeyValueStore(db_path), wallet=wallet, storage=storage)

    @property
    def is_local(self) -> bool:
        return isinstance(self.identity, LocalIdentitySource)

    def subscribe(self, callback: Callable[[RoleChanged], None]) -> Callable[[], None]:
        """Be told about every role change. Returns an unsubscribe function."""
        return self.events.subscribe(callback)

    def active_address(self) -> str | None:
        return self.identity.active_address()

    def active_role(self) -> Role | None:
        return self.identity.active_role()

    def get_signer(self) -> SignerFn | None:
        return self.identity.get_signer()

    def switch_to_role(self, role: Role | str) -> None:
        self.identity.switch_to_role(role)

    async def disconnect(self) -> None:
        await self.identity.disconnect()

    # -----------------------------------------------------------------
    # Client factories
    # -----------------------------------------------------------------

    def chain_client(self, transport: HttpTransport | None = None) -> AlgodClient:
        """Node client for ``config.algod_url``."""
        return AlgodClient.from_config(self.config, transport)

    def signing_daemon(self, transport: HttpTransport | None = None) -> KmdClient | None:
        """Key daemon client, or None when ``config.kmd_url`` is unset."""
        return KmdClient.from_config(self.config, transport)

    def content_store(self, transport: HttpTransport | None = None) -> ContentStore:
        """Pinning service store when one is configured, else a local one."""
        if self.storage_config.pinning_url:
            return PinataContentStore(self.storage_config, transport)
        return LocalContentStore()

    def provisioner(
        self,
        client: ChainClient | None = None,
        transport: HttpTransport | None = None,
    ) -> AccountProvisioner:
        """Provisioner funding from ``config.faucet_seed``. Private network only."""
        return AccountProvisioner(
            self.store,
            client or self.chain_client(transport),
            self.config,
            daemon=self.signing_daemon(transport),
        )

    def orchestrator(
        self,
        ledger: MarketplaceLedger,
        *,
        client: ChainClient | None = None,
        storage: ContentStore | None = None,
        transport: HttpTransport | None = None,
        on_transition: Transition | None = None,
    ) -> TransactionOrchestrator:
        """Orchestrator signing as this session's active identity."""
        return TransactionOrchestrator(
            self.identity,
            client or self.chain_client(transport),
            storage or self.content_store(transport),
            ledger,
            self.config,
            on_transition=on_transition,
        )
