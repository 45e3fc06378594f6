"""
Local content store — memory or filesystem, content-addressed.

Used on the private network and in tests. Addresses are real CIDv1 raw
addresses, so anything stored here can later be pinned elsewhere under
the same CID.

Invariants:
    - Content is immutable once stored; storing the same bytes again is
      a no-op returning the same CID.
    - Blobs live under {root}/{cid[-2:]}/{cid}.blob (fanout by the last
      two CID chars; the first chars are a constant multibase prefix).
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path

from ebl_orchestrator.storage.cid import compute_cid, sha256_digest, validate_cid
from ebl_orchestrator.storage.protocol import StoredContent


class LocalContentStore:
    """Content-addressed blob store.

    Args:
        root: Directory for blobs. If None, content is kept in memory.
    """

    def __init__(self, root: str | Path | None = None) -> None:
        self._root = Path(root) if root is not None else None
        self._blobs: dict[str, bytes] = {}
        self._entries: dict[str, StoredContent] = {}
        self._pinned: set[str] = set()

        if self._root is not None:
            self._root.mkdir(parents=True, exist_ok=True)

    def _blob_path(self, cid: str) -> Path | None:
        if self._root is None:
            return None
        return self._root / cid[-2:] / f"{cid}.blob"

    async def store(
        self,
        data: bytes,
        content_type: str,
        metadata: Mapping[str, str] | None = None,
    ) -> StoredContent:
        cid = compute_cid(data)
        entry = StoredContent(
            cid=cid,
            size=len(data),
            content_type=content_type,
            sha256=sha256_digest(data),
            metadata=dict(metadata or {}),
        )

        path = self._blob_path(cid)
        if path is None:
            self._blobs.setdefault(cid, bytes(data))
        elif not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            path.with_suffix(".json").write_text(
                json.dumps(
                    {"content_type": content_type, "metadata": dict(entry.metadata)},
                    sort_keys=True,
                ),
                encoding="utf-8",
            )

        self._entries.setdefault(cid, entry)
        return self._entries[cid]

    async def fetch(self, cid: str) -> bytes:
        validate_cid(cid)
        path = self._blob_path(cid)
        if path is None:
            if cid not in self._blobs:
                raise LookupError(f"content not found: {cid}")
            return self._blobs[cid]
        if not path.exists():
            raise LookupError(f"content not found: {cid}")
        return path.read_bytes()

    async def pin(self, cid: str) -> bool:
        validate_cid(cid)
        if not self.exists(cid):
            return False
        self._pinned.add(cid)
        return True

    def exists(self, cid: str) -> bool:
        path = self._blob_path(cid)
        if path is None:
            return cid in self._blobs
        return path.exists()

    def is_pinned(self, cid: str) -> bool:
        return cid in self._pinned

    def count(self) -> int:
        if self._root is None:
            return len(self._blobs)
        return sum(1 for _ in self._root.glob("*/*.blob"))
