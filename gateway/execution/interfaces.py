"""Collaborator contracts consumed by the execution orchestrator.

The orchestrator never constructs these; callers pass in implementations
(see ``gateway.execution.web3_client`` for a web3.py-backed one, and the
fakes in ``tests/conftest.py``). Implementations must raise
``gateway.errors.RevertError`` for on-chain reverts and
``gateway.errors.UserRejectedRequestError`` when the wallet owner declines.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Protocol


@dataclass(frozen=True)
class TxParams:
    """A contract call: target, function signature, arguments and value.

    ``function_signature`` is the canonical Solidity form, e.g.
    ``"approve(address,uint256)"``.
    """

    to: str
    function_signature: str
    args: tuple[Any, ...] = ()
    value: int = 0
    gas: int | None = None

    def with_gas(self, gas: int) -> TxParams:
        return replace(self, gas=gas)


class ReceiptStatus(str, Enum):
    SUCCESS = "success"
    REVERTED = "reverted"


@dataclass(frozen=True)
class Receipt:
    """Inclusion receipt for a mined transaction."""

    status: ReceiptStatus
    gas_used: int
    effective_gas_price: int
    block_number: int
    transaction_hash: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is ReceiptStatus.SUCCESS


class ChainReader(Protocol):
    """Read-only chain access: calls, dry-runs and gas estimates."""

    async def read_contract(
        self, address: str, function_signature: str, args: tuple[Any, ...]
    ) -> Any:
        """Call a view function and return its decoded result."""
        ...

    async def simulate(self, tx: TxParams) -> None:
        """Dry-run ``tx``; raise RevertError if it would revert."""
        ...

    async def estimate_gas(self, tx: TxParams) -> int:
        """Gas units ``tx`` is expected to use."""
        ...

    async def current_block_number(self) -> int: ...


class WalletSigner(Protocol):
    """Signs and broadcasts transactions for one account."""

    @property
    def address(self) -> str: ...

    async def write_contract(self, tx: TxParams) -> str:
        """Sign and submit ``tx``; returns the transaction hash."""
        ...


class ReceiptSource(Protocol):
    async def wait_for_receipt(self, tx_hash: str) -> Receipt:
        """Wait (unbounded) for one confirmation of ``tx_hash``."""
        ...


class CacheInvalidator(Protocol):
    """Told that balances, allowances and quotes for an account are stale."""

    def __call__(self, chain_id: int, account: str) -> Any: ...


__all__ = [
    "CacheInvalidator",
    "ChainReader",
    "Receipt",
    "ReceiptSource",
    "ReceiptStatus",
    "TxParams",
    "WalletSigner",
]
