"""
Chain layer: keys, transaction builders, signers and node clients.

Public API:

    Pure layer (no I/O):
        - ``LocalKeypair`` and address helpers (encode, decode, validate).
        - Transaction builders over ``algosdk.transaction``: ``payment``,
          ``asset_transfer``, ``asset_create``, ``app_call`` (ARC-4 args).
        - Grouping and ids: ``assign_group_id``, ``transaction_id``,
          ``app_address``.

    Protocols (for dependency injection):
        - ``ChainClient`` — network boundary (params, submit, confirm).
        - ``SignerFn`` — secrets boundary (aligned signing of a group).
        - ``WalletConnector`` — external wallet.
        - ``SigningDaemon`` — key-management daemon.
        - ``HttpTransport`` — injectable HTTP transport.

    Concrete implementations:
        - ``AlgodClient`` — algod REST client.
        - ``KmdClient`` — KMD REST client.
        - ``HttpxTransport`` — default httpx-based transport.
        - ``local_signer`` / ``wallet_signer``.
"""

from ebl_orchestrator.chain.algod import AlgodClient
from ebl_orchestrator.chain.client import (
    ChainClient,
    Confirmation,
    PendingInfo,
    is_simulated,
)
from ebl_orchestrator.chain.keys import (
    ADDRESS_LENGTH,
    LocalKeypair,
    decode_address,
    encode_address,
    format_address,
    is_valid_address,
    verify_signature,
)
from ebl_orchestrator.chain.kmd import KmdClient, SigningDaemon
from ebl_orchestrator.chain.signer import (
    SignedList,
    SignerFn,
    WalletConnector,
    local_signer,
    wallet_signer,
)
from ebl_orchestrator.chain.transport import HttpTransport, HttpxTransport
from ebl_orchestrator.chain.tx import (
    MAX_GROUP_SIZE,
    MAX_NOTE_BYTES,
    Transaction,
    TransactionParams,
    app_address,
    app_call,
    asset_create,
    asset_transfer,
    assign_group_id,
    bytes_to_sign,
    decode_signed,
    encode_method_args,
    encode_signed,
    group_id_of,
    payment,
    transaction_id,
)

__all__ = [
    "ADDRESS_LENGTH",
    "AlgodClient",
    "ChainClient",
    "Confirmation",
    "HttpTransport",
    "HttpxTransport",
    "KmdClient",
    "LocalKeypair",
    "MAX_GROUP_SIZE",
    "MAX_NOTE_BYTES",
    "PendingInfo",
    "SignedList",
    "SignerFn",
    "SigningDaemon",
    "Transaction",
    "TransactionParams",
    "WalletConnector",
    "app_address",
    "app_call",
    "asset_create",
    "asset_transfer",
    "assign_group_id",
    "bytes_to_sign",
    "decode_address",
    "decode_signed",
    "encode_address",
    "encode_method_args",
    "encode_signed",
    "format_address",
    "group_id_of",
    "is_simulated",
    "is_valid_address",
    "local_signer",
    "payment",
    "transaction_id",
    "verify_signature",
    "wallet_signer",
]
