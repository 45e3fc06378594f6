"""
Runtime configuration.

Two frozen records:
    - ``NetworkConfig``: which network, where its node and daemon live,
      which on-chain programs and assets to use, and operational bounds.
    - ``StorageConfig``: where the pinning service lives.

Both load from ``EBL_*`` environment variables via ``from_env``; unset
values fall back to per-network defaults.

Environment:
    EBL_NETWORK              localnet | testnet | mainnet (default localnet)
    EBL_ALGOD_URL            node REST URL
    EBL_ALGOD_TOKEN          node API token
    EBL_KMD_URL              signing daemon URL (localnet only)
    EBL_KMD_TOKEN            signing daemon token
    EBL_KMD_WALLET           daemon wallet name
    EBL_KMD_PASSWORD         daemon wallet password
    EBL_REGISTRY_APP_ID      instrument registry program id
    EBL_MARKETPLACE_APP_ID   marketplace program id
    EBL_USDC_ASSET_ID        stablecoin asset id
    EBL_CONFIRMATION_ROUNDS  confirmation wait bound in rounds
    EBL_FUNDING_AMOUNT       micro-units sent to each provisioned account
    EBL_PINNING_URL          pinning API base URL
    EBL_PINNING_JWT          pinning API bearer token
    EBL_GATEWAY_URL          content gateway base URL
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from ebl_orchestrator.chain.tx import app_address


class NetworkMode(StrEnum):
    LOCALNET = "localnet"
    TESTNET = "testnet"
    MAINNET = "mainnet"

    @property
    def is_private(self) -> bool:
        """True for the network where keys are generated and held locally."""
        return self is NetworkMode.LOCALNET


# Default localnet sandbox token.
_SANDBOX_TOKEN = "a" * 64

_ALGOD_URLS = {
    NetworkMode.LOCALNET: "http://localhost:4001",
    NetworkMode.TESTNET: "https://testnet-api.algonode.cloud",
    NetworkMode.MAINNET: "https://mainnet-api.algonode.cloud",
}

_EXPLORER_URLS = {
    NetworkMode.LOCALNET: "http://localhost:8980/v2/transactions/",
    NetworkMode.TESTNET: "https://testnet.algoexplorer.io/tx/",
    NetworkMode.MAINNET: "https://allo.info/tx/",
}

# (registry, marketplace, usdc) deployed per network.
_DEPLOYMENTS: dict[NetworkMode, tuple[int | None, int | None, int | None]] = {
    NetworkMode.LOCALNET: (None, None, None),
    NetworkMode.TESTNET: (745508602, 745508576, 745508590),
    NetworkMode.MAINNET: (None, None, None),
}

DEFAULT_CONFIRMATION_ROUNDS = 4
DEFAULT_FUNDING_AMOUNT = 100_000_000
DEFAULT_MAX_DOCUMENT_BYTES = 10 * 1024 * 1024

# Publicly known dispenser key of the sandbox network (all-zero seed).
DEFAULT_FAUCET_SEED = "00" * 32


def _optional_int(value: str | None) -> int | None:
    if value is None or value.strip() in ("", "0"):
        return None
    return int(value)


@dataclass(frozen=True)
class NetworkConfig:
    """Network-level settings.

    Attributes:
        network: Active network mode.
        algod_url: Node REST URL.
        algod_token: Node API token.
        kmd_url: Signing daemon URL, or None when there is no daemon.
        kmd_token: Signing daemon token.
        kmd_wallet: Daemon wallet receiving imported keys.
        kmd_password: Password of ``kmd_wallet``.
        registry_app_id: Instrument registry program, None if not deployed.
        marketplace_app_id: Marketplace program, None if not deployed.
        usdc_asset_id: Stablecoin asset, None if not available.
        confirmation_rounds: Rounds to wait for confirmation.
        faucet_seed: Hex seed of the private-network dispenser.
        funding_amount: Micro-units sent to each provisioned account.
        max_document_bytes: Upper bound on submitted document size.
    """

    network: NetworkMode = NetworkMode.LOCALNET
    algod_url: str = _ALGOD_URLS[NetworkMode.LOCALNET]
    algod_token: str = _SANDBOX_TOKEN
    kmd_url: str | None = "http://localhost:4002"
    kmd_token: str = _SANDBOX_TOKEN
    kmd_wallet: str = "unencrypted-default-wallet"
    kmd_password: str = field(default="", repr=False)
    registry_app_id: int | None = None
    marketplace_app_id: int | None = None
    usdc_asset_id: int | None = None
    confirmation_rounds: int = DEFAULT_CONFIRMATION_ROUNDS
    faucet_seed: str = field(default=DEFAULT_FAUCET_SEED, repr=False)
    funding_amount: int = DEFAULT_FUNDING_AMOUNT
    max_document_bytes: int = DEFAULT_MAX_DOCUMENT_BYTES

    def __post_init__(self) -> None:
        if self.confirmation_rounds < 1:
            raise ValueError(
                f"confirmation_rounds must be >= 1, got: {self.confirmation_rounds}"
            )
        if self.funding_amount <= 0:
            raise ValueError(f"funding_amount must be positive, got: {self.funding_amount}")
        if len(bytes.fromhex(self.faucet_seed)) != 32:
            raise ValueError("faucet_seed must be 32 bytes of hex")

    @classmethod
    def for_network(cls, network: NetworkMode | str) -> NetworkConfig:
        """Defaults for ``network`` with no environment overrides."""
        return cls.from_env({"EBL_NETWORK": str(network)})

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> NetworkConfig:
        env = os.environ if environ is None else environ
        network = NetworkMode(env.get("EBL_NETWORK", NetworkMode.LOCALNET).lower())
        registry, marketplace, usdc = _DEPLOYMENTS[network]

        def app_id(name: str, default: int | None) -> int | None:
            return _optional_int(env[name]) if name in env else default

        return cls(
            network=network,
            algod_url=env.get("EBL_ALGOD_URL", _ALGOD_URLS[network]),
            algod_token=env.get(
                "EBL_ALGOD_TOKEN", _SANDBOX_TOKEN if network.is_private else ""
            ),
            kmd_url=env.get(
                "EBL_KMD_URL", "http://localhost:4002" if network.is_private else None
            ),
            kmd_token=env.get("EBL_KMD_TOKEN", _SANDBOX_TOKEN),
            kmd_wallet=env.get("EBL_KMD_WALLET", "unencrypted-default-wallet"),
            kmd_password=env.get("EBL_KMD_PASSWORD", ""),
            registry_app_id=app_id("EBL_REGISTRY_APP_ID", registry),
            marketplace_app_id=app_id("EBL_MARKETPLACE_APP_ID", marketplace),
            usdc_asset_id=app_id("EBL_USDC_ASSET_ID", usdc),
            confirmation_rounds=int(
                env.get("EBL_CONFIRMATION_ROUNDS", DEFAULT_CONFIRMATION_ROUNDS)
            ),
            funding_amount=int(env.get("EBL_FUNDING_AMOUNT", DEFAULT_FUNDING_AMOUNT)),
        )

    @property
    def marketplace_address(self) -> str | None:
        """Escrow address of the marketplace program, if deployed."""
        if self.marketplace_app_id is None:
            return None
        return app_address(self.marketplace_app_id)

    def explorer_url(self, transaction_id: str) -> str:
        """Block explorer link for ``transaction_id`` on this network."""
        return f"{_EXPLORER_URLS[self.network]}{transaction_id}"


@dataclass(frozen=True)
class StorageConfig:
    """Pinning service settings.

    With no ``pinning_url`` configured, content is kept by a local store.
    """

    pinning_url: str | None = None
    pinning_jwt: str = field(default="", repr=False)
    gateway_url: str = "https://gateway.pinata.cloud/ipfs/"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> StorageConfig:
        env = os.environ if environ is None else environ
        return cls(
            pinning_url=env.get("EBL_PINNING_URL") or None,
            pinning_jwt=env.get("EBL_PINNING_JWT", ""),
            gateway_url=env.get("EBL_GATEWAY_URL", "https://gateway.pinata.cloud/ipfs/"),
        )
