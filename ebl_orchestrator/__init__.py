"""
ebl-orchestrator: identity and transaction orchestration for an
electronic Bill of Lading marketplace.

Every operation is tied to:
- an active identity (local role account or external wallet)
- one atomic transaction group
- a confirmation within a bounded number of rounds
- a ledger update made only after that confirmation

Every operation returns a result, success or failure.
"""

__version__ = "0.1.0"

from ebl_orchestrator.config import NetworkConfig, NetworkMode, StorageConfig
from ebl_orchestrator.errors import (
    ErrorKind,
    OrchestrationError,
    ProvisioningError,
    ProvisioningStage,
)
from ebl_orchestrator.events import EventBus, RoleChanged
from ebl_orchestrator.identity import (
    ALL_ROLES,
    AccountProvisioner,
    IdentityStore,
    Role,
)
from ebl_orchestrator.kvstore import KeyValueStore, SqliteKeyValueStore
from ebl_orchestrator.ledger import (
    Currency,
    DocumentType,
    ListingStatus,
    MarketplaceLedger,
)
from ebl_orchestrator.orchestrator import (
    InstrumentDraft,
    OperationTracker,
    TransactionOrchestrator,
)
from ebl_orchestrator.result import OperationError, OperationResult, OperationStatus
from ebl_orchestrator.session import Session

__all__ = [
    "ALL_ROLES",
    "AccountProvisioner",
    "Currency",
    "DocumentType",
    "ErrorKind",
    "EventBus",
    "IdentityStore",
    "InstrumentDraft",
    "KeyValueStore",
    "ListingStatus",
    "MarketplaceLedger",
    "NetworkConfig",
    "NetworkMode",
    "OperationError",
    "OperationResult",
    "OperationStatus",
    "OperationTracker",
    "OrchestrationError",
    "ProvisioningError",
    "ProvisioningStage",
    "Role",
    "RoleChanged",
    "Session",
    "SqliteKeyValueStore",
    "StorageConfig",
    "TransactionOrchestrator",
]
