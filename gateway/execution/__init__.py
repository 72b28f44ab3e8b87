"""Execution orchestrator, its state machine and collaborator contracts."""

from gateway.execution.interfaces import (
    CacheInvalidator,
    ChainReader,
    Receipt,
    ReceiptSource,
    ReceiptStatus,
    TxParams,
    WalletSigner,
)
from gateway.execution.orchestrator import (
    ExecutionOrchestrator,
    create_orchestrator,
    revert_kind_for_route,
    wait_with_timeout,
)
from gateway.execution.state import (
    ExecutionState,
    ExecutionStatus,
    InvalidTransitionError,
    StateTransition,
)

__all__ = [
    "CacheInvalidator",
    "ChainReader",
    "ExecutionOrchestrator",
    "ExecutionState",
    "ExecutionStatus",
    "InvalidTransitionError",
    "Receipt",
    "ReceiptSource",
    "ReceiptStatus",
    "StateTransition",
    "TxParams",
    "WalletSigner",
    "create_orchestrator",
    "revert_kind_for_route",
    "wait_with_timeout",
]
