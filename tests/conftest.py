"""
Shared fakes for identity and orchestration tests.

No network calls anywhere: the chain client, wallet and HTTP transport
are in-process fakes that record what they were asked to do.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from typing import Any

import pytest

from ebl_orchestrator.chain.client import Confirmation, PendingInfo
from ebl_orchestrator.chain.keys import LocalKeypair
from ebl_orchestrator.chain.signer import local_signer
from ebl_orchestrator.chain.tx import (
    Transaction,
    TransactionParams,
    decode_signed,
    transaction_id,
)
from ebl_orchestrator.config import NetworkConfig
from ebl_orchestrator.errors import TransactionRejectedError
from ebl_orchestrator.identity.roles import Role
from ebl_orchestrator.kvstore import SqliteKeyValueStore
from ebl_orchestrator.session import Session

SAMPLE_PARAMS = TransactionParams(
    fee=0,
    first_valid=100,
    last_valid=1100,
    genesis_id="sandnet-v1",
    genesis_hash="SGO1GKSzyE7IEPItTxCByw9x8FmnrCDexi9/cOUJOiI=",
)


def make_keypair(fill: int) -> LocalKeypair:
    """Deterministic keypair from a one-byte fill pattern."""
    return LocalKeypair.from_seed(bytes([fill]) * 32)


# ---------------------------------------------------------------------------
# Fake chain client
# ---------------------------------------------------------------------------


class FakeChainClient:
    """In-process ChainClient: every accepted group confirms in the next round."""

    simulated = True

    def __init__(
        self,
        *,
        submit_should_raise: Exception | None = None,
        confirm_should_raise: Exception | None = None,
        reject_app_calls: bool = False,
        reject_receivers: Collection[str] = (),
        first_asset_id: int = 5000,
    ) -> None:
        self.submit_should_raise = submit_should_raise
        self.confirm_should_raise = confirm_should_raise
        self.reject_app_calls = reject_app_calls
        self.reject_receivers = set(reject_receivers)
        self.round = 10
        self.next_asset_id = first_asset_id
        self.balances: dict[str, int] = {}
        self.submitted: list[list[Transaction]] = []
        self.wait_calls: list[tuple[str, int]] = []
        self._pending: dict[str, PendingInfo] = {}

    async def get_transaction_params(self) -> TransactionParams:
        return SAMPLE_PARAMS

    async def submit_raw(self, signed: Sequence[bytes]) -> str:
        if self.submit_should_raise is not None:
            raise self.submit_should_raise
        group = [decode_signed(blob).transaction for blob in signed]
        if self.reject_app_calls and any(tx.type == "appl" for tx in group):
            raise TransactionRejectedError("logic eval error: assert failed")
        for tx in group:
            if getattr(tx, "receiver", None) in self.reject_receivers:
                raise TransactionRejectedError("receiver rejected")

        self.submitted.append(group)
        self.round += 1
        for tx in group:
            asset_id = None
            if tx.type == "acfg":
                asset_id = self.next_asset_id
                self.next_asset_id += 1
            if tx.type == "pay":
                self.balances[tx.receiver] = self.balances.get(tx.receiver, 0) + tx.amt
            self._pending[transaction_id(tx)] = PendingInfo(
                confirmed_round=self.round, asset_id=asset_id
            )
        return transaction_id(group[0])

    async def pending_info(self, transaction_id: str) -> PendingInfo:
        return self._pending.get(transaction_id, PendingInfo())

    async def wait_for_confirmation(
        self, transaction_id: str, max_rounds: int
    ) -> Confirmation:
        self.wait_calls.append((transaction_id, max_rounds))
        if self.confirm_should_raise is not None:
            raise self.confirm_should_raise
        info = self._pending[transaction_id]
        return Confirmation(
            transaction_id=transaction_id,
            confirmed_round=info.confirmed_round,
            asset_id=info.asset_id,
            app_id=info.app_id,
        )

    async def get_account_balance(self, address: str) -> int:
        return self.balances.get(address, 0)


# ---------------------------------------------------------------------------
# Fake wallet
# ---------------------------------------------------------------------------


class FakeWallet:
    """WalletConnector that signs with a local key once connected."""

    def __init__(self, keypair: LocalKeypair) -> None:
        self._keypair = keypair
        self._connected = False
        self.sign_calls: list[list[int] | None] = []

    @property
    def connected_address(self) -> str | None:
        return self._keypair.address if self._connected else None

    async def connect(self) -> str:
        self._connected = True
        return self._keypair.address

    async def disconnect(self) -> None:
        self._connected = False

    async def sign_transactions(
        self,
        transactions: Sequence[Transaction],
        indices: Collection[int] | None = None,
    ) -> list[bytes | None]:
        self.sign_calls.append(None if indices is None else list(indices))
        return await local_signer(self._keypair)(transactions, indices)


# ---------------------------------------------------------------------------
# Fake HTTP transport
# ---------------------------------------------------------------------------


class FakeTransport:
    """HttpTransport returning canned responses keyed by (method, url).

    A response may be a value, an exception to raise, or a list consumed
    one entry per call.
    """

    def __init__(self, responses: dict[tuple[str, str], Any]) -> None:
        self._responses = dict(responses)
        self.calls: list[dict[str, Any]] = []

    def _next(self, method: str, url: str) -> Any:
        key = (method, url)
        if key not in self._responses:
            raise AssertionError(f"unexpected request: {method} {url}")
        response = self._responses[key]
        if isinstance(response, list):
            response = response.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any = None,
        content: bytes | None = None,
        files: dict[str, tuple[str, bytes, str]] | None = None,
        data: dict[str, str] | None = None,
    ) -> Any:
        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": headers or {},
                "json": json,
                "content": content,
            }
        )
        return self._next(method, url)

    async def request_bytes(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
    ) -> bytes:
        self.calls.append({"method": method, "url": url, "headers": headers or {}})
        return self._next(method, url)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def localnet() -> NetworkConfig:
    return NetworkConfig()


@pytest.fixture
def chain() -> FakeChainClient:
    return FakeChainClient()


@pytest.fixture
def session(localnet: NetworkConfig) -> Session:
    return Session(localnet, SqliteKeyValueStore(":memory:"))


@pytest.fixture
def role_keys(session: Session) -> dict[Role, LocalKeypair]:
    """Assign a deterministic keypair to every role in ``session``."""
    keys = {role: make_keypair(index + 1) for index, role in enumerate(Role)}
    for role, keypair in keys.items():
        session.store.assign_address_to_role(role, keypair.address, keypair.secret_hex)
    return keys
