"""
Content addresses (CIDs).

Two formats are accepted as fetch keys:
    - CIDv0: base58 multihash, ``Qm`` + 44 chars (46 total)
    - CIDv1: lowercase base32 multibase, ``b`` + 58 chars (59 total)

``compute_cid`` derives the CIDv1 of raw bytes: version 1, ``raw`` codec
(0x55), sha2-256 multihash, base32 lower without padding.
"""

from __future__ import annotations

import base64
import hashlib
import re

CIDV0_PATTERN = re.compile(r"^Qm[1-9A-HJ-NP-Za-km-z]{44}$")
CIDV1_PATTERN = re.compile(r"^b[a-z2-7]{58}$")

# version 1, raw codec, sha2-256, 32-byte digest
_CIDV1_RAW_PREFIX = bytes([0x01, 0x55, 0x12, 0x20])


def sha256_digest(data: bytes) -> str:
    """Compute SHA256 hex digest of bytes."""
    return hashlib.sha256(data).hexdigest()


def is_valid_cid(value: object) -> bool:
    if not isinstance(value, str):
        return False
    return bool(CIDV0_PATTERN.match(value) or CIDV1_PATTERN.match(value))


def validate_cid(value: object) -> str:
    """Return ``value`` if it is a well-formed CID.

    Raises:
        ValueError: Otherwise.
    """
    if not is_valid_cid(value):
        raise ValueError(f"not a valid content address: {value!r}")
    return value  # type: ignore[return-value]


def compute_cid(data: bytes) -> str:
    """CIDv1 (raw, sha2-256) of ``data``."""
    multihash = _CIDV1_RAW_PREFIX + hashlib.sha256(data).digest()
    encoded = base64.b32encode(multihash).decode("ascii").rstrip("=").lower()
    return f"b{encoded}"
