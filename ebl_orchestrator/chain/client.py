"""
Chain client protocol — the network boundary.

Defines the interface the orchestrator and provisioner depend on, not a
concrete implementation. Keeps business logic free of HTTP calls and
lets tests substitute an in-process fake.

Concrete implementations:
    - AlgodClient (algod REST over an HttpTransport)
    - FakeChainClient (tests)

Methods:
    - get_transaction_params() → TransactionParams
    - submit_raw(signed) → transaction id of the first group member
    - pending_info(txid) → PendingInfo
    - wait_for_confirmation(txid, max_rounds) → Confirmation
    - get_account_balance(address) → int (micro-units)

Transport failures propagate as exceptions; the orchestrator classifies
them as CONNECTIVITY. A definite rejection raises
``TransactionRejectedError``; exceeding the round bound raises
``ConfirmationTimeoutError``.

A client may expose ``simulated = True`` when its confirmations do not
come from a real network. Results built on such a client are tagged.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ebl_orchestrator.chain.tx import TransactionParams


# =========================================================================
# Result types
# =========================================================================


@dataclass(frozen=True)
class PendingInfo:
    """Status of a submitted transaction.

    Attributes:
        confirmed_round: Round the transaction was committed in; 0 while
            still pending.
        pool_error: Non-empty when the node dropped the transaction.
        asset_id: Id of an asset created by this transaction, if any.
        app_id: Id of an application created by this transaction, if any.
    """

    confirmed_round: int = 0
    pool_error: str = ""
    asset_id: int | None = None
    app_id: int | None = None

    @property
    def confirmed(self) -> bool:
        return self.confirmed_round > 0


@dataclass(frozen=True)
class Confirmation:
    """A confirmed transaction."""

    transaction_id: str
    confirmed_round: int
    asset_id: int | None = None
    app_id: int | None = None


# =========================================================================
# Protocol
# =========================================================================


@runtime_checkable
class ChainClient(Protocol):
    """Interface for node operations used by this package."""

    async def get_transaction_params(self) -> TransactionParams:
        ...

    async def submit_raw(self, signed: Sequence[bytes]) -> str:
        """Submit a signed group. Returns the id of its first transaction."""
        ...

    async def pending_info(self, transaction_id: str) -> PendingInfo:
        ...

    async def wait_for_confirmation(
        self, transaction_id: str, max_rounds: int
    ) -> Confirmation:
        ...

    async def get_account_balance(self, address: str) -> int:
        ...


def is_simulated(client: object) -> bool:
    """True when ``client`` declares that it does not talk to a network."""
    return bool(getattr(client, "simulated", False))
