"""
Off-chain content storage protocol.

Documents and instrument metadata are stored off chain and referenced
on chain by content address. The orchestrator depends on this protocol
only.

Concrete implementations:
    - LocalContentStore (memory or filesystem; computes CIDv1 itself)
    - PinataContentStore (Pinata-compatible pinning API over HttpTransport)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class StoredContent:
    """Where stored bytes ended up.

    Attributes:
        cid: Content address.
        size: Stored size in bytes.
        content_type: MIME type given at store time.
        sha256: Hex digest of the stored bytes.
        pinned: True if the backend pinned the content as part of storing.
        metadata: Key-values attached at store time.
    """

    cid: str
    size: int
    content_type: str
    sha256: str
    pinned: bool = False
    metadata: Mapping[str, str] = field(default_factory=dict)


@runtime_checkable
class ContentStore(Protocol):
    async def store(
        self,
        data: bytes,
        content_type: str,
        metadata: Mapping[str, str] | None = None,
    ) -> StoredContent:
        ...

    async def fetch(self, cid: str) -> bytes:
        """Bytes behind ``cid``.

        Raises:
            ValueError: If ``cid`` is not a well-formed content address.
            LookupError: If nothing is stored under it.
        """
        ...

    async def pin(self, cid: str) -> bool:
        """Ask the backend to retain ``cid``. True on success."""
        ...
