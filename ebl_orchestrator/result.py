"""
Operation results — the uniform record every orchestrated operation returns.

Failure-first: a result always exists. Expected failures (bad input, no
identity, unreachable node, timeout, rejection, conflicting ledger state)
come back as a FAILED result carrying an ``OperationError`` instead of an
exception, so callers branch on ``status`` rather than catching.

Tags:
    - ``degraded``: an auxiliary step (pinning, an enhanced on-chain
      program) was skipped or replaced by a reduced path. ``warnings``
      says which.
    - ``simulated``: confirmations did not come from a real network.

Invariants:
    - COMPLETE results carry a transaction id, a confirmed round > 0 and
      an explorer link; ``error`` is None.
    - FAILED results carry an ``error``.
    - No secrets, ever.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ebl_orchestrator.errors import ErrorKind


class OperationStatus(StrEnum):
    """States an operation passes through."""

    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    BUILDING = "BUILDING"
    SIGNING = "SIGNING"
    SUBMITTING = "SUBMITTING"
    CONFIRMING = "CONFIRMING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"

    @property
    def terminal(self) -> bool:
        return self in (OperationStatus.COMPLETE, OperationStatus.FAILED)


@dataclass(frozen=True)
class OperationError:
    """Why an operation failed, and in which state."""

    kind: ErrorKind
    reason: str
    failed_in: OperationStatus | None = None

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {"kind": str(self.kind), "reason": self.reason}
        if self.failed_in is not None:
            result["failed_in"] = str(self.failed_in)
        return result


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one orchestrated operation.

    Required:
        operation: Operation name (e.g. "purchase").
        status: COMPLETE or FAILED.

    On success:
        transaction_id: Id of the first transaction of the submitted group.
        confirmed_round: Round the group was committed in.
        explorer_url: Block explorer link for ``transaction_id``.
        payload: Operation-specific domain result.
        group_id: Shared id of a multi-transaction group, if any.

    Always:
        error: Set when FAILED.
        degraded / warnings / simulated: see module docstring.
    """

    operation: str
    status: OperationStatus
    transaction_id: str | None = None
    confirmed_round: int | None = None
    explorer_url: str | None = None
    payload: Mapping[str, Any] = field(default_factory=dict)
    group_id: str | None = None
    error: OperationError | None = None
    degraded: bool = False
    simulated: bool = False
    warnings: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.status is OperationStatus.COMPLETE:
            if not self.transaction_id or not self.confirmed_round:
                raise ValueError("COMPLETE results need a transaction id and round")
            if self.error is not None:
                raise ValueError("COMPLETE results cannot carry an error")
        elif self.status is OperationStatus.FAILED:
            if self.error is None:
                raise ValueError("FAILED results need an error")
        else:
            raise ValueError(f"results are terminal, got status {self.status}")

    @property
    def ok(self) -> bool:
        return self.status is OperationStatus.COMPLETE

    @classmethod
    def failed(
        cls,
        operation: str,
        kind: ErrorKind,
        reason: str,
        *,
        failed_in: OperationStatus | None = None,
        transaction_id: str | None = None,
        group_id: str | None = None,
        warnings: tuple[str, ...] = (),
        simulated: bool = False,
    ) -> OperationResult:
        return cls(
            operation=operation,
            status=OperationStatus.FAILED,
            transaction_id=transaction_id,
            group_id=group_id,
            error=OperationError(kind=kind, reason=reason, failed_in=failed_in),
            warnings=warnings,
            simulated=simulated,
        )

    def to_dict(self) -> dict[str, object]:
        """Plain-dict view. Optional fields are omitted when unset."""
        result: dict[str, object] = {
            "operation": self.operation,
            "status": str(self.status),
            "degraded": self.degraded,
            "simulated": self.simulated,
        }
        if self.transaction_id is not None:
            result["transaction_id"] = self.transaction_id
        if self.confirmed_round is not None:
            result["confirmed_round"] = self.confirmed_round
        if self.explorer_url is not None:
            result["explorer_url"] = self.explorer_url
        if self.group_id is not None:
            result["group_id"] = self.group_id
        if self.payload:
            result["payload"] = dict(self.payload)
        if self.error is not None:
            result["error"] = self.error.to_dict()
        if self.warnings:
            result["warnings"] = list(self.warnings)
        return result
