"""
Account provisioner — funded local identities for the private network.

``provision_all()`` runs four stages over every declared role:

    1. KEY_GENERATION — a fresh keypair per role. No address may collide
       with one already assigned to a role, generated in this batch, or
       owned by the faucet. Any failure aborts before anything is stored.
    2. Commit — every new identity is written in one ``assign_many`` pass.
    3. FUNDING — one payment per address from the faucet, each awaited to
       confirmation and followed by a balance read. Attempted for every
       address; outcomes are recorded per role.
    4. DAEMON_IMPORT — best-effort import into the signing daemon.
       Failures become warnings on the report, never errors.

Calling it again generates new keys and overwrites the mapping. Funds
held by the previous keys become unreachable from this client.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from ebl_orchestrator.chain.client import ChainClient
from ebl_orchestrator.chain.keys import LocalKeypair, format_address
from ebl_orchestrator.chain.kmd import SigningDaemon
from ebl_orchestrator.chain.signer import local_signer
from ebl_orchestrator.chain.tx import payment
from ebl_orchestrator.config import NetworkConfig
from ebl_orchestrator.errors import ProvisioningError, ProvisioningStage
from ebl_orchestrator.identity.roles import ALL_ROLES, Role
from ebl_orchestrator.identity.store import Identity, IdentityStore

logger = logging.getLogger(__name__)

# Attempts per role before a colliding key generator is given up on.
MAX_KEYGEN_ATTEMPTS = 3

FUNDING_NOTE = "eBL account funding"


@dataclass(frozen=True)
class ProvisionedAccount:
    """A generated identity and its funding outcome."""

    role: Role
    address: str
    secret: str = field(repr=False)
    balance: int = 0
    funding_transaction_id: str | None = None

    @property
    def funded(self) -> bool:
        return self.balance > 0


@dataclass(frozen=True)
class ProvisioningReport:
    """Outcome of a provisioning run.

    Attributes:
        accounts: Every generated account, funded or not.
        failures: Role → reason for each role whose funding failed.
        warnings: Best-effort problems (daemon import).
    """

    accounts: dict[Role, ProvisionedAccount]
    failures: dict[Role, str] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()

    @property
    def complete(self) -> bool:
        return not self.failures and all(a.funded for a in self.accounts.values())

    @property
    def usable_roles(self) -> list[Role]:
        return [role for role, account in self.accounts.items() if account.funded]

    def as_mapping(self) -> dict[Role, tuple[str, str]]:
        """Role → (address, secret) for every account."""
        return {role: (a.address, a.secret) for role, a in self.accounts.items()}


class AccountProvisioner:
    """Generates, stores, funds and imports role keys.

    Args:
        store: Identity store for the private network.
        client: Node client used for funding.
        config: Network settings (faucet seed, amount, confirmation bound).
        daemon: Optional signing daemon for best-effort key import.
        roles: Roles provisioned by ``provision_all``.
        keygen: Keypair factory. Injectable for tests.
    """

    def __init__(
        self,
        store: IdentityStore,
        client: ChainClient,
        config: NetworkConfig,
        *,
        daemon: SigningDaemon | None = None,
        roles: Iterable[Role] = ALL_ROLES,
        keygen: Callable[[], LocalKeypair] = LocalKeypair.generate,
    ) -> None:
        if not config.network.is_private:
            raise ValueError(
                f"accounts are provisioned on the private network only, not {config.network}"
            )
        self._store = store
        self._client = client
        self._config = config
        self._daemon = daemon
        self._roles = tuple(roles)
        self._keygen = keygen
        self._faucet = LocalKeypair.from_seed(bytes.fromhex(config.faucet_seed))

    @property
    def faucet_address(self) -> str:
        return self._faucet.address

    async def provision_all(self) -> ProvisioningReport:
        """Provision every configured role.

        Raises:
            ProvisioningError: KEY_GENERATION before anything is stored, or
                FUNDING with the per-role failures and the partial report.
        """
        return await self._provision(self._roles)

    async def provision_role(self, role: Role | str) -> ProvisionedAccount:
        """Regenerate and fund a single role."""
        role = Role(role)
        report = await self._provision([role])
        return report.accounts[role]

    # -----------------------------------------------------------------
    # Stages
    # -----------------------------------------------------------------

    async def _provision(self, roles: Iterable[Role]) -> ProvisioningReport:
        keypairs = self._generate_keys(roles)

        self._store.assign_many(
            Identity(role=role, address=kp.address, secret=kp.secret_hex)
            for role, kp in keypairs.items()
        )
        logger.info("generated %d account(s)", len(keypairs))

        accounts, failures = await self._fund_all(keypairs)
        warnings = await self._import_all(keypairs)

        report = ProvisioningReport(
            accounts=accounts, failures=failures, warnings=tuple(warnings)
        )
        if failures:
            raise ProvisioningError(
                ProvisioningStage.FUNDING,
                {role.value: reason for role, reason in failures.items()},
                report=report,
            )
        return report

    def _generate_keys(self, roles: Iterable[Role]) -> dict[Role, LocalKeypair]:
        taken = {identity.address for identity in self._store.identities().values()}
        taken.add(self._faucet.address)
        keypairs: dict[Role, LocalKeypair] = {}

        for role in roles:
            try:
                keypair = self._fresh_keypair(taken)
            except Exception as exc:
                raise ProvisioningError(
                    ProvisioningStage.KEY_GENERATION, {role.value: str(exc)}
                ) from exc
            taken.add(keypair.address)
            keypairs[role] = keypair
        return keypairs

    def _fresh_keypair(self, taken: set[str]) -> LocalKeypair:
        for _ in range(MAX_KEYGEN_ATTEMPTS):
            keypair = self._keygen()
            if keypair.address not in taken:
                return keypair
        raise ValueError(
            f"no unused address after {MAX_KEYGEN_ATTEMPTS} attempts"
        )

    async def _fund_all(
        self, keypairs: dict[Role, LocalKeypair]
    ) -> tuple[dict[Role, ProvisionedAccount], dict[Role, str]]:
        accounts: dict[Role, ProvisionedAccount] = {}
        failures: dict[Role, str] = {}
        sign = local_signer(self._faucet)

        for role, keypair in keypairs.items():
            account = ProvisionedAccount(
                role=role, address=keypair.address, secret=keypair.secret_hex
            )
            try:
                params = await self._client.get_transaction_params()
                tx = payment(
                    params,
                    sender=self._faucet.address,
                    receiver=keypair.address,
                    amount=self._config.funding_amount,
                    note=FUNDING_NOTE,
                )
                signed = await sign([tx])
                tx_id = await self._client.submit_raw([blob for blob in signed if blob])
                await self._client.wait_for_confirmation(
                    tx_id, self._config.confirmation_rounds
                )
                balance = await self._client.get_account_balance(keypair.address)
                account = ProvisionedAccount(
                    role=role,
                    address=keypair.address,
                    secret=keypair.secret_hex,
                    balance=balance,
                    funding_transaction_id=tx_id,
                )
                if balance <= 0:
                    failures[role] = "balance is zero after funding"
            except Exception as exc:
                failures[role] = str(exc) or type(exc).__name__
            accounts[role] = account

            if role in failures:
                logger.warning(
                    "funding %s (%s) failed: %s",
                    role,
                    format_address(keypair.address),
                    failures[role],
                )
        return accounts, failures

    async def _import_all(self, keypairs: dict[Role, LocalKeypair]) -> list[str]:
        if self._daemon is None:
            return []
        warnings = []
        for role, keypair in keypairs.items():
            try:
                await self._daemon.import_key(keypair)
            except Exception as exc:
                message = f"{ProvisioningStage.DAEMON_IMPORT} failed for {role}: {exc}"
                logger.warning("%s", message)
                warnings.append(message)
        return warnings
