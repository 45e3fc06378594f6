"""
Off-chain content storage.
"""

from ebl_orchestrator.storage.cid import compute_cid, is_valid_cid, validate_cid
from ebl_orchestrator.storage.local import LocalContentStore
from ebl_orchestrator.storage.pinata import PinataContentStore
from ebl_orchestrator.storage.protocol import ContentStore, StoredContent

__all__ = [
    "ContentStore",
    "LocalContentStore",
    "PinataContentStore",
    "StoredContent",
    "compute_cid",
    "is_valid_cid",
    "validate_cid",
]
