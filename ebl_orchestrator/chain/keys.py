"""
Ed25519 keypairs and account addresses.

An address is the 32-byte public key followed by a 4-byte checksum
(last four bytes of SHA-512/256 of the key), base32 encoded without
padding: always 58 uppercase characters. Encoding and checksums are
delegated to ``algosdk.encoding`` so addresses match the network's.

``LocalKeypair`` is the private-network identity: the secret seed is
held in process memory and persisted by the identity store. It is a
test/demo convenience, not a custody solution. ``private_key`` and
``mnemonic`` give the seed in the forms the SDK and wallets import.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass

from algosdk import encoding as algo_encoding
from algosdk import mnemonic as algo_mnemonic
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

ADDRESS_LENGTH = 58
_PUBLIC_KEY_BYTES = 32
_SEED_BYTES = 32


def encode_address(public_key: bytes) -> str:
    """Encode a raw 32-byte public key as an account address."""
    if len(public_key) != _PUBLIC_KEY_BYTES:
        raise ValueError(
            f"public key must be {_PUBLIC_KEY_BYTES} bytes, got {len(public_key)}"
        )
    return algo_encoding.encode_address(public_key)


def is_valid_address(address: object) -> bool:
    """True if ``address`` is a well-formed account address."""
    return (
        isinstance(address, str)
        and len(address) == ADDRESS_LENGTH
        and algo_encoding.is_valid_address(address)
    )


def decode_address(address: str) -> bytes:
    """Decode an address to its raw public key.

    Raises:
        ValueError: If the address is malformed or the checksum fails.
    """
    if not is_valid_address(address):
        raise ValueError(f"invalid address: {address!r}")
    return algo_encoding.decode_address(address)


def format_address(address: str | None) -> str:
    """Shorten an address for display and logs (``ABCDEF...UVWXYZ``)."""
    if not address:
        return ""
    return f"{address[:6]}...{address[-6:]}"


def verify_signature(address: str, message: bytes, signature: bytes) -> bool:
    """Check an Ed25519 signature against the key behind ``address``."""
    try:
        public_key = Ed25519PublicKey.from_public_bytes(decode_address(address))
        public_key.verify(signature, message)
    except (ValueError, InvalidSignature):
        return False
    return True


@dataclass(frozen=True)
class LocalKeypair:
    """A locally held Ed25519 keypair.

    Attributes:
        address: Account address derived from the public key.
        secret_hex: Hex-encoded 32-byte private seed. Never log this.
    """

    address: str
    secret_hex: str

    def __repr__(self) -> str:
        return f"LocalKeypair(address={self.address!r})"

    @classmethod
    def generate(cls) -> LocalKeypair:
        return cls.from_seed(Ed25519PrivateKey.generate().private_bytes_raw())

    @classmethod
    def from_seed(cls, seed: bytes) -> LocalKeypair:
        if len(seed) != _SEED_BYTES:
            raise ValueError(f"seed must be {_SEED_BYTES} bytes, got {len(seed)}")
        private_key = Ed25519PrivateKey.from_private_bytes(seed)
        public_key = private_key.public_key().public_bytes(
            Encoding.Raw, PublicFormat.Raw
        )
        return cls(address=encode_address(public_key), secret_hex=seed.hex())

    @classmethod
    def from_secret_hex(cls, secret_hex: str) -> LocalKeypair:
        return cls.from_seed(bytes.fromhex(secret_hex))

    @classmethod
    def from_mnemonic(cls, words: str) -> LocalKeypair:
        """Restore from a 25-word account mnemonic."""
        try:
            private_key = algo_mnemonic.to_private_key(words)
        except Exception as exc:
            raise ValueError("invalid account mnemonic") from exc
        return cls.from_seed(base64.b64decode(private_key)[:_SEED_BYTES])

    @property
    def seed(self) -> bytes:
        return bytes.fromhex(self.secret_hex)

    @property
    def private_key(self) -> str:
        """SDK form: base64 of seed followed by public key (64 bytes)."""
        raw = self.seed + decode_address(self.address)
        return base64.b64encode(raw).decode("ascii")

    @property
    def mnemonic(self) -> str:
        """25-word mnemonic importable by wallets. Never log this."""
        return algo_mnemonic.from_private_key(self.private_key)

    def sign(self, message: bytes) -> bytes:
        """Produce a 64-byte Ed25519 signature over ``message``."""
        return Ed25519PrivateKey.from_private_bytes(self.seed).sign(message)
