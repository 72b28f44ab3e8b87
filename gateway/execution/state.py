"""Execution states, the transition table and state snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from gateway.errors import DomainError
from gateway.execution.interfaces import Receipt


class ExecutionStatus(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    AWAITING_APPROVAL = "awaitingApproval"
    APPROVING = "approving"
    PREPARING_EXECUTION = "preparingExecution"
    AWAITING_SIGNATURE = "awaitingSignature"
    PENDING = "pending"
    CONFIRMING = "confirming"
    SUCCESS = "success"
    FAILED = "failed"
    REJECTED = "rejected"


S = ExecutionStatus

VALID_TRANSITIONS: dict[ExecutionStatus, frozenset[ExecutionStatus]] = {
    S.IDLE: frozenset({S.PREPARING}),
    S.PREPARING: frozenset({S.AWAITING_APPROVAL, S.PREPARING_EXECUTION, S.FAILED, S.REJECTED}),
    S.AWAITING_APPROVAL: frozenset({S.APPROVING, S.FAILED, S.REJECTED}),
    S.APPROVING: frozenset({S.PREPARING_EXECUTION, S.FAILED}),
    S.PREPARING_EXECUTION: frozenset({S.AWAITING_SIGNATURE, S.FAILED, S.REJECTED}),
    S.AWAITING_SIGNATURE: frozenset({S.PENDING, S.FAILED, S.REJECTED}),
    S.PENDING: frozenset({S.CONFIRMING, S.FAILED}),
    S.CONFIRMING: frozenset({S.SUCCESS, S.FAILED}),
    S.SUCCESS: frozenset({S.IDLE}),
    # failed -> success only through reconcile() after a confirmation timeout
    S.FAILED: frozenset({S.IDLE, S.SUCCESS}),
    S.REJECTED: frozenset({S.IDLE}),
}

TERMINAL_STATUSES = frozenset({S.SUCCESS, S.FAILED, S.REJECTED})

# Cancellation is only possible before any signature has been requested
CANCELLABLE_STATUSES = frozenset({S.PREPARING, S.PREPARING_EXECUTION})


class InvalidTransitionError(Exception):
    """Raised when an operation is not valid in the current state."""


@dataclass(frozen=True)
class StateTransition:
    """Record of a state transition."""

    from_status: ExecutionStatus
    to_status: ExecutionStatus
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    reason: str = ""


@dataclass(frozen=True)
class ExecutionState:
    """Immutable snapshot of one execution's progress.

    A new snapshot replaces the old one on every transition. The transaction
    hash, once known, is carried into every later snapshot until reset.
    """

    status: ExecutionStatus = ExecutionStatus.IDLE
    transaction_hash: str | None = None
    approval_hash: str | None = None
    gas_limit: int | None = None
    used_fallback_gas: bool = False
    receipt: Receipt | None = None
    error: DomainError | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_in_flight(self) -> bool:
        return self.status is not ExecutionStatus.IDLE and not self.is_terminal

    @property
    def is_cancellable(self) -> bool:
        return self.status in CANCELLABLE_STATUSES


def can_transition(current: ExecutionStatus, target: ExecutionStatus) -> bool:
    return target in VALID_TRANSITIONS[current]


__all__ = [
    "CANCELLABLE_STATUSES",
    "TERMINAL_STATUSES",
    "VALID_TRANSITIONS",
    "ExecutionState",
    "ExecutionStatus",
    "InvalidTransitionError",
    "StateTransition",
    "can_transition",
]
