"""
Algod REST client — network implementation of ChainClient.

Translates algod v2 REST responses into TransactionParams, PendingInfo
and Confirmation. Uses an injectable HttpTransport so the HTTP layer can
be swapped for test fakes without changing parsing logic.

Endpoints:
    - GET  /v2/transactions/params
    - POST /v2/transactions                  (signed group, raw body)
    - GET  /v2/transactions/pending/{txid}
    - GET  /v2/status
    - GET  /v2/status/wait-for-block-after/{round}
    - GET  /v2/accounts/{address}

No retry loops beyond the bounded confirmation wait.

A 4xx reply to a submit is the node refusing the group (bad signature,
logic eval error, overspend). It surfaces as ``TransactionRejectedError``
so callers can tell it from an unreachable node. 5xx replies and
transport failures propagate unchanged and classify as CONNECTIVITY.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import httpx

from ebl_orchestrator.chain.client import Confirmation, PendingInfo
from ebl_orchestrator.chain.transport import HttpTransport, HttpxTransport
from ebl_orchestrator.chain.tx import TransactionParams
from ebl_orchestrator.errors import ConfirmationTimeoutError, TransactionRejectedError

if TYPE_CHECKING:
    from ebl_orchestrator.config import NetworkConfig

logger = logging.getLogger(__name__)

TOKEN_HEADER = "X-Algo-API-Token"

# Validity window applied to suggested params (rounds after last-round).
VALIDITY_WINDOW = 1000


class AlgodClient:
    """Algod client implementing the ChainClient protocol.

    Args:
        url: Base URL of the algod REST API (e.g. "http://localhost:4001").
        token: API token sent in the ``X-Algo-API-Token`` header.
        transport: Injectable transport. Defaults to HttpxTransport.
    """

    def __init__(
        self,
        url: str,
        token: str = "",
        transport: HttpTransport | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._headers = {TOKEN_HEADER: token} if token else {}
        self._transport = transport or HttpxTransport()

    @classmethod
    def from_config(
        cls, config: NetworkConfig, transport: HttpTransport | None = None
    ) -> AlgodClient:
        """Client for the node named by ``config.algod_url``."""
        return cls(config.algod_url, config.algod_token, transport=transport)

    @property
    def url(self) -> str:
        return self._url

    async def _get(self, path: str) -> dict[str, Any]:
        return await self._transport.request_json(
            "GET", f"{self._url}{path}", headers=self._headers
        )

    # -----------------------------------------------------------------
    # ChainClient protocol methods
    # -----------------------------------------------------------------

    async def get_transaction_params(self) -> TransactionParams:
        return _parse_params(await self._get("/v2/transactions/params"))

    async def submit_raw(self, signed: Sequence[bytes]) -> str:
        """Submit a signed group as one concatenated body."""
        if not signed:
            raise ValueError("nothing to submit")
        try:
            response = await self._transport.request_json(
                "POST",
                f"{self._url}/v2/transactions",
                headers={**self._headers, "Content-Type": "application/x-binary"},
                content=b"".join(signed),
            )
        except httpx.HTTPStatusError as exc:
            if not exc.response.is_client_error:
                raise
            raise TransactionRejectedError(_error_message(exc.response)) from exc
        tx_id = response.get("txId")
        if not tx_id:
            raise TransactionRejectedError(
                response.get("message") or "no txId in submit response"
            )
        return str(tx_id)

    async def pending_info(self, transaction_id: str) -> PendingInfo:
        return _parse_pending(
            await self._get(f"/v2/transactions/pending/{transaction_id}")
        )

    async def wait_for_confirmation(
        self, transaction_id: str, max_rounds: int
    ) -> Confirmation:
        """Poll round by round until confirmed, rejected, or out of rounds."""
        if max_rounds < 1:
            raise ValueError(f"max_rounds must be >= 1, got: {max_rounds}")

        status = await self._get("/v2/status")
        start_round = int(status.get("last-round", 0)) + 1
        current_round = start_round

        while current_round < start_round + max_rounds:
            info = await self.pending_info(transaction_id)
            if info.confirmed:
                logger.debug(
                    "transaction %s confirmed in round %d",
                    transaction_id,
                    info.confirmed_round,
                )
                return Confirmation(
                    transaction_id=transaction_id,
                    confirmed_round=info.confirmed_round,
                    asset_id=info.asset_id,
                    app_id=info.app_id,
                )
            if info.pool_error:
                raise TransactionRejectedError(info.pool_error, transaction_id)

            await self._get(f"/v2/status/wait-for-block-after/{current_round}")
            current_round += 1

        raise ConfirmationTimeoutError(transaction_id, max_rounds)

    async def get_account_balance(self, address: str) -> int:
        account = await self._get(f"/v2/accounts/{address}")
        return int(account.get("amount", 0))


# =====================================================================
# Response parsing (pure functions, no I/O)
# =====================================================================


def _parse_params(response: dict[str, Any]) -> TransactionParams:
    last_round = int(response["last-round"])
    return TransactionParams(
        fee=int(response.get("fee", 0)),
        first_valid=last_round,
        last_valid=last_round + VALIDITY_WINDOW,
        genesis_id=str(response.get("genesis-id", "")),
        genesis_hash=str(response.get("genesis-hash", "")),
        min_fee=int(response.get("min-fee", 1000)),
    )


def _parse_pending(response: dict[str, Any]) -> PendingInfo:
    asset_id = response.get("asset-index")
    app_id = response.get("application-index")
    return PendingInfo(
        confirmed_round=int(response.get("confirmed-round") or 0),
        pool_error=str(response.get("pool-error") or ""),
        asset_id=int(asset_id) if asset_id else None,
        app_id=int(app_id) if app_id else None,
    )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text or f"HTTP {response.status_code}"
