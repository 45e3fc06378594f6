"""
Transaction builders.

Each builder returns an unsigned ``algosdk.transaction.Transaction``: a
deterministic "recipe" with no secrets. Network-dependent fields (fee,
validity window, genesis) come from a ``TransactionParams`` fetched once
per operation.

Transaction types:
    - ``pay``  — payment in the network's native micro-units
    - ``axfer`` — asset transfer
    - ``acfg`` — asset creation
    - ``appl`` — application (on-chain program) call, ARC-4 encoded

Groups:
    ``assign_group_id`` returns copies of a list stamped with the same
    group id. The network applies a group all-or-nothing.

Wire format:
    Signed transactions are msgpack ``SignedTxn`` objects, concatenated
    for a group submit. Ids and group ids are computed by the SDK, so
    they are the ones the network reports.
"""

from __future__ import annotations

import base64
import copy
from collections.abc import Sequence
from dataclasses import dataclass

from algosdk import abi, logic, transaction
from algosdk import encoding as algo_encoding
from algosdk.transaction import SignedTransaction, Transaction

from ebl_orchestrator.chain.keys import is_valid_address

MAX_NOTE_BYTES = 1024
MAX_GROUP_SIZE = 16

# Domain-separation prefix the network signs transactions under.
TX_PREFIX = b"TX"


@dataclass(frozen=True)
class TransactionParams:
    """Suggested parameters returned by the node for new transactions."""

    fee: int
    first_valid: int
    last_valid: int
    genesis_id: str
    genesis_hash: str
    min_fee: int = 1000

    def suggested(self) -> transaction.SuggestedParams:
        """SDK params with a flat fee of at least ``min_fee``."""
        return transaction.SuggestedParams(
            fee=max(self.fee, self.min_fee),
            first=self.first_valid,
            last=self.last_valid,
            gh=self.genesis_hash,
            gen=self.genesis_id,
            flat_fee=True,
            min_fee=self.min_fee,
        )


# =========================================================================
# Validation helpers
# =========================================================================


def _require_address(name: str, value: str) -> None:
    if not is_valid_address(value):
        raise ValueError(f"{name} must be a valid address, got: {value!r}")


def _note_bytes(note: str | None) -> bytes | None:
    if note is None:
        return None
    encoded = note.encode("utf-8")
    if len(encoded) > MAX_NOTE_BYTES:
        raise ValueError(f"note exceeds {MAX_NOTE_BYTES} bytes")
    return encoded


def _non_negative(name: str, value: int) -> None:
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got: {value}")


# =========================================================================
# Builders
# =========================================================================


def payment(
    params: TransactionParams,
    *,
    sender: str,
    receiver: str,
    amount: int,
    note: str | None = None,
) -> Transaction:
    """Build a native-currency payment."""
    _require_address("sender", sender)
    _require_address("receiver", receiver)
    _non_negative("amount", amount)
    return transaction.PaymentTxn(
        sender, params.suggested(), receiver, amount, note=_note_bytes(note)
    )


def asset_transfer(
    params: TransactionParams,
    *,
    sender: str,
    receiver: str,
    asset_id: int,
    amount: int,
    note: str | None = None,
) -> Transaction:
    """Build an asset transfer of ``amount`` base units of ``asset_id``."""
    _require_address("sender", sender)
    _require_address("receiver", receiver)
    _non_negative("amount", amount)
    if asset_id <= 0:
        raise ValueError(f"asset_id must be positive, got: {asset_id}")
    return transaction.AssetTransferTxn(
        sender,
        params.suggested(),
        receiver,
        amount,
        asset_id,
        note=_note_bytes(note),
    )


def asset_create(
    params: TransactionParams,
    *,
    sender: str,
    total: int,
    unit_name: str,
    asset_name: str,
    decimals: int = 0,
    url: str | None = None,
    manager: str | None = None,
    reserve: str | None = None,
    freeze: str | None = None,
    note: str | None = None,
) -> Transaction:
    """Build an asset creation. The created id is reported on confirmation."""
    _require_address("sender", sender)
    if total <= 0:
        raise ValueError(f"total must be positive, got: {total}")
    if not unit_name or len(unit_name) > 8:
        raise ValueError(f"unit_name must be 1-8 chars, got: {unit_name!r}")
    if not asset_name or len(asset_name) > 32:
        raise ValueError(f"asset_name must be 1-32 chars, got: {asset_name!r}")
    for role_name, address in (
        ("manager", manager),
        ("reserve", reserve),
        ("freeze", freeze),
    ):
        if address is not None:
            _require_address(role_name, address)

    return transaction.AssetConfigTxn(
        sender,
        params.suggested(),
        total=total,
        default_frozen=False,
        unit_name=unit_name,
        asset_name=asset_name,
        manager=manager,
        reserve=reserve,
        freeze=freeze,
        url=url,
        decimals=decimals,
        strict_empty_address_check=False,
        note=_note_bytes(note),
    )


def encode_method_args(signature: str, args: Sequence[object]) -> list[bytes]:
    """ARC-4 application args: method selector followed by encoded values.

    Raises:
        ValueError: If the signature is malformed or an argument does not
            fit its declared type.
    """
    try:
        method = abi.Method.from_signature(signature)
    except Exception as exc:
        raise ValueError(f"invalid method signature: {signature!r}") from exc
    if len(args) != len(method.args):
        raise ValueError(
            f"{method.name} takes {len(method.args)} args, got {len(args)}"
        )
    encoded = [method.get_selector()]
    for position, (arg, value) in enumerate(zip(method.args, args)):
        if not isinstance(arg.type, abi.ABIType):
            raise ValueError(f"{method.name} arg {position} is not a value type")
        try:
            encoded.append(arg.type.encode(value))
        except Exception as exc:
            raise ValueError(
                f"{method.name} arg {position} does not fit {arg.type}: {value!r}"
            ) from exc
    return encoded


def app_call(
    params: TransactionParams,
    *,
    sender: str,
    app_id: int,
    method: str,
    args: Sequence[object] = (),
    boxes: Sequence[str] = (),
    foreign_assets: Sequence[int] = (),
    note: str | None = None,
) -> Transaction:
    """Build an ARC-4 call to ``method`` (a full signature) on ``app_id``."""
    _require_address("sender", sender)
    if app_id <= 0:
        raise ValueError(f"app_id must be positive, got: {app_id}")
    if not method:
        raise ValueError("method must be non-empty")
    return transaction.ApplicationNoOpTxn(
        sender,
        params.suggested(),
        app_id,
        app_args=encode_method_args(method, args),
        foreign_assets=list(foreign_assets) or None,
        boxes=[(0, name.encode("utf-8")) for name in boxes] or None,
        note=_note_bytes(note),
    )


# =========================================================================
# Ids, groups, signed encoding
# =========================================================================


def bytes_to_sign(tx: Transaction) -> bytes:
    """The exact bytes a signer signs for ``tx``."""
    return TX_PREFIX + base64.b64decode(algo_encoding.msgpack_encode(tx))


def transaction_id(tx: Transaction) -> str:
    """Network transaction id (52 base32 chars)."""
    return tx.get_txid()


def assign_group_id(txns: Sequence[Transaction]) -> list[Transaction]:
    """Return copies of ``txns`` sharing one group id.

    Raises:
        ValueError: If the group is empty, too large, or already grouped.
    """
    if not txns:
        raise ValueError("transaction group must be non-empty")
    if len(txns) > MAX_GROUP_SIZE:
        raise ValueError(f"transaction group exceeds {MAX_GROUP_SIZE} members")
    if any(tx.group for tx in txns):
        raise ValueError("transactions already carry a group id")

    grouped = [copy.deepcopy(tx) for tx in txns]
    return transaction.assign_group_id(grouped)


def group_id_of(txns: Sequence[Transaction]) -> str | None:
    """The shared group id of ``txns`` (base64), or None when ungrouped."""
    ids = {tx.group or None for tx in txns}
    if len(ids) != 1:
        raise ValueError("transactions do not share a group id")
    group = ids.pop()
    return base64.b64encode(group).decode("ascii") if group else None


def encode_signed(signed: SignedTransaction) -> bytes:
    """Serialize a signed transaction as raw msgpack for submission."""
    return base64.b64decode(algo_encoding.msgpack_encode(signed))


def decode_signed(blob: bytes) -> SignedTransaction:
    """Inverse of ``encode_signed``.

    Raises:
        ValueError: If ``blob`` is not a signed transaction.
    """
    decoded = algo_encoding.msgpack_decode(base64.b64encode(blob).decode("ascii"))
    if not isinstance(decoded, SignedTransaction):
        raise ValueError("blob is not a signed transaction")
    return decoded


def app_address(app_id: int) -> str:
    """Escrow address controlled by application ``app_id``."""
    if app_id <= 0:
        raise ValueError(f"app_id must be positive, got: {app_id}")
    return logic.get_application_address(app_id)
