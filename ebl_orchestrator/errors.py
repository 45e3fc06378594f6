"""
Error taxonomy for identity and orchestration.

Every failure carries a coarse ``ErrorKind`` plus a human-readable
reason, so a presentation layer can show either a generic failure or a
targeted remedy ("reconnect your wallet").

Kinds:
    - VALIDATION: bad or missing input; no network call was made.
    - NO_IDENTITY: no resolvable signer for the active session.
    - PROVISIONING: key generation / funding / daemon import failed.
    - CONNECTIVITY: node or storage unreachable or failing (transport
      errors, 5xx). Nothing was refused; retrying may succeed.
    - CONFIRMATION_TIMEOUT: submitted, not confirmed within the bound.
      Check status before resubmitting.
    - INVALID_STATE: the request conflicts with ledger state (listing
      already sold, buying your own listing, ...).
    - REJECTED: definite rejection by the network (a 4xx reply to a
      submit, or a pool error). Retrying the same group will not help.
    - UNKNOWN: anything unrecognised.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Coarse failure category attached to every failed operation."""

    VALIDATION = "VALIDATION"
    NO_IDENTITY = "NO_IDENTITY"
    PROVISIONING = "PROVISIONING"
    CONNECTIVITY = "CONNECTIVITY"
    CONFIRMATION_TIMEOUT = "CONFIRMATION_TIMEOUT"
    INVALID_STATE = "INVALID_STATE"
    REJECTED = "REJECTED"
    UNKNOWN = "UNKNOWN"


class ProvisioningStage(StrEnum):
    """Stage of account provisioning that failed."""

    KEY_GENERATION = "KEY_GENERATION"
    FUNDING = "FUNDING"
    DAEMON_IMPORT = "DAEMON_IMPORT"


# =========================================================================
# Exceptions
# =========================================================================


class OrchestrationError(Exception):
    """Base class. ``kind`` identifies the category."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ValidationError(OrchestrationError):
    kind = ErrorKind.VALIDATION


class NoIdentityError(OrchestrationError):
    kind = ErrorKind.NO_IDENTITY

    def __init__(self, reason: str = "no identity selected; connect a wallet or choose a role") -> None:
        super().__init__(reason)


class InvalidStateError(OrchestrationError):
    kind = ErrorKind.INVALID_STATE


class ConnectivityError(OrchestrationError):
    kind = ErrorKind.CONNECTIVITY


class ConfirmationTimeoutError(OrchestrationError):
    kind = ErrorKind.CONFIRMATION_TIMEOUT

    def __init__(self, transaction_id: str, rounds: int) -> None:
        super().__init__(
            f"transaction {transaction_id} not confirmed after {rounds} rounds"
        )
        self.transaction_id = transaction_id
        self.rounds = rounds


class TransactionRejectedError(OrchestrationError):
    kind = ErrorKind.REJECTED

    def __init__(self, detail: str, transaction_id: str | None = None) -> None:
        prefix = f"transaction {transaction_id} rejected" if transaction_id else "rejected"
        super().__init__(f"{prefix}: {detail}")
        self.transaction_id = transaction_id
        self.detail = detail


class ProvisioningError(OrchestrationError):
    """Provisioning failed at ``stage``.

    Attributes:
        stage: Which stage failed.
        failures: Role name → reason, one entry per failing role.
        report: Partial ``ProvisioningReport`` when accounts were already
            generated and persisted (FUNDING stage), else None.
    """

    kind = ErrorKind.PROVISIONING

    def __init__(
        self,
        stage: ProvisioningStage,
        failures: dict[str, str],
        report: object | None = None,
    ) -> None:
        roles = ", ".join(sorted(failures)) or "unknown"
        super().__init__(f"{stage} failed for: {roles}")
        self.stage = stage
        self.failures = dict(failures)
        self.report = report


# =========================================================================
# Classification
# =========================================================================


def classify_exception(exc: BaseException) -> ErrorKind:
    """Map any exception to an ``ErrorKind``.

    Domain exceptions carry their own kind, so a node refusal that the
    chain client raised as ``TransactionRejectedError`` stays REJECTED.
    Remaining transport-level failures (httpx errors, socket/OS errors,
    timeouts) are CONNECTIVITY.
    ``ValueError`` raised by builders is VALIDATION.
    """
    if isinstance(exc, OrchestrationError):
        return exc.kind

    import httpx

    if isinstance(exc, (httpx.TransportError, httpx.HTTPStatusError, OSError)):
        return ErrorKind.CONNECTIVITY
    if isinstance(exc, ValueError):
        return ErrorKind.VALIDATION
    return ErrorKind.UNKNOWN
