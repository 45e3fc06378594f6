"""
Signer protocol — the secrets boundary.

The orchestrator never sees key material. It hands a list of unsigned
transactions to a ``SignerFn`` and gets back one entry per input
transaction, in order:

    - msgpack ``SignedTxn`` bytes for every index it asked to sign
    - ``None`` for every index it did not select

so a caller can assemble a group signed by several parties and still get
an aligned result array.

Two concrete signers:
    - ``local_signer(keypair)`` — private network, key held in memory.
    - ``wallet_signer(wallet)`` — public network, delegates to an
      external wallet through ``WalletConnector``.

Signers are capabilities, not state: resolve a fresh one immediately
before each use.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from typing import Protocol, runtime_checkable

from ebl_orchestrator.chain.keys import LocalKeypair
from ebl_orchestrator.chain.tx import Transaction, encode_signed

SignedList = list[bytes | None]


@runtime_checkable
class SignerFn(Protocol):
    """Sign selected transactions of a group.

    Args:
        transactions: The full group, in submission order.
        indices: Positions to sign. None means "all".

    Returns:
        A list the same length as ``transactions``; unselected entries
        are None.
    """

    async def __call__(
        self,
        transactions: Sequence[Transaction],
        indices: Collection[int] | None = None,
    ) -> SignedList: ...


@runtime_checkable
class WalletConnector(Protocol):
    """External wallet reachable over some user-mediated channel.

    Trusted for signature correctness, not for timing: every call may
    wait on the user indefinitely or be cancelled.
    """

    @property
    def connected_address(self) -> str | None:
        """Address currently exposed by the wallet, or None."""
        ...

    async def connect(self) -> str:
        """Ask the user to connect; returns the chosen address."""
        ...

    async def disconnect(self) -> None:
        ...

    async def sign_transactions(
        self,
        transactions: Sequence[Transaction],
        indices: Collection[int] | None = None,
    ) -> SignedList:
        ...


def resolve_indices(count: int, indices: Collection[int] | None) -> frozenset[int]:
    """Normalize an index selection against a group of ``count``.

    Raises:
        ValueError: If any index is out of range.
    """
    if indices is None:
        return frozenset(range(count))
    selected = frozenset(indices)
    bad = sorted(i for i in selected if not 0 <= i < count)
    if bad:
        raise ValueError(f"indices out of range for group of {count}: {bad}")
    return selected


def local_signer(keypair: LocalKeypair) -> SignerFn:
    """Signer closed over a locally held keypair."""

    async def sign(
        transactions: Sequence[Transaction],
        indices: Collection[int] | None = None,
    ) -> SignedList:
        selected = resolve_indices(len(transactions), indices)
        signed: SignedList = []
        for index, tx in enumerate(transactions):
            if index not in selected:
                signed.append(None)
                continue
            if tx.sender != keypair.address:
                raise ValueError(
                    f"transaction {index} sender does not match signing key"
                )
            signed.append(encode_signed(tx.sign(keypair.private_key)))
        return signed

    return sign


def wallet_signer(wallet: WalletConnector) -> SignerFn:
    """Signer delegating to an external wallet.

    The wallet's reply is checked for alignment; a wallet that signs an
    index it was not asked to is treated as a protocol error.
    """

    async def sign(
        transactions: Sequence[Transaction],
        indices: Collection[int] | None = None,
    ) -> SignedList:
        selected = resolve_indices(len(transactions), indices)
        result = list(await wallet.sign_transactions(transactions, sorted(selected)))
        if len(result) != len(transactions):
            raise ValueError(
                f"wallet returned {len(result)} entries for {len(transactions)} transactions"
            )
        for index, blob in enumerate(result):
            if index in selected and blob is None:
                raise ValueError(f"wallet did not sign transaction {index}")
            if index not in selected and blob is not None:
                raise ValueError(f"wallet signed unselected transaction {index}")
        return result

    return sign
