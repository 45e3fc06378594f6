"""
Signing daemon (KMD) client.

On a private network, generated role keys are also imported into the
node's key-management daemon so external tooling can sign with them.
Import is best-effort: the provisioner records a failure as a warning
and keeps the account.

Flow per import:
    1. GET  /v1/wallets                  — find the wallet id by name
    2. POST /v1/wallet/init              — obtain a wallet handle token
    3. POST /v1/key/import               — import the 64-byte private key
    4. POST /v1/wallet/release           — always release the handle
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ebl_orchestrator.chain.keys import LocalKeypair, format_address
from ebl_orchestrator.chain.transport import HttpTransport, HttpxTransport

if TYPE_CHECKING:
    from ebl_orchestrator.config import NetworkConfig

logger = logging.getLogger(__name__)

TOKEN_HEADER = "X-KMD-API-Token"


@runtime_checkable
class SigningDaemon(Protocol):
    """Key-management daemon able to hold imported keys."""

    async def import_key(self, keypair: LocalKeypair) -> str:
        """Import ``keypair``; returns the address the daemon reports."""
        ...


class KmdClient:
    """KMD REST client implementing ``SigningDaemon``.

    Args:
        url: Base URL of the daemon (e.g. "http://localhost:4002").
        token: API token sent in the ``X-KMD-API-Token`` header.
        wallet_name: Wallet to import into.
        wallet_password: Password of that wallet.
        transport: Injectable transport. Defaults to HttpxTransport.
    """

    def __init__(
        self,
        url: str,
        token: str = "",
        *,
        wallet_name: str = "unencrypted-default-wallet",
        wallet_password: str = "",
        transport: HttpTransport | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._headers = {TOKEN_HEADER: token} if token else {}
        self._wallet_name = wallet_name
        self._wallet_password = wallet_password
        self._transport = transport or HttpxTransport()

    @classmethod
    def from_config(
        cls, config: NetworkConfig, transport: HttpTransport | None = None
    ) -> KmdClient | None:
        """Daemon client for ``config``, or None when no daemon is configured."""
        if config.kmd_url is None:
            return None
        return cls(
            config.kmd_url,
            config.kmd_token,
            wallet_name=config.kmd_wallet,
            wallet_password=config.kmd_password,
            transport=transport,
        )

    async def _call(self, method: str, path: str, body: dict | None = None) -> dict:
        return await self._transport.request_json(
            method, f"{self._url}{path}", headers=self._headers, json=body
        )

    async def _wallet_id(self) -> str:
        response = await self._call("GET", "/v1/wallets")
        for wallet in response.get("wallets") or []:
            if wallet.get("name") == self._wallet_name:
                return str(wallet["id"])
        raise LookupError(f"wallet not found: {self._wallet_name!r}")

    async def import_key(self, keypair: LocalKeypair) -> str:
        wallet_id = await self._wallet_id()
        init = await self._call(
            "POST",
            "/v1/wallet/init",
            {"wallet_id": wallet_id, "wallet_password": self._wallet_password},
        )
        handle = init["wallet_handle_token"]
        try:
            imported = await self._call(
                "POST",
                "/v1/key/import",
                {"wallet_handle_token": handle, "private_key": keypair.private_key},
            )
        finally:
            await self._call(
                "POST", "/v1/wallet/release", {"wallet_handle_token": handle}
            )

        address = str(imported.get("address") or keypair.address)
        logger.debug("imported %s into daemon wallet", format_address(address))
        return address
