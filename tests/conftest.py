"""Pytest configuration and fixtures.

Provides in-memory fakes for the execution collaborators. Each fake records
its calls so tests can assert on what the orchestrator did (and did not) do.
"""

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from gateway.config import ExecutionConfig
from gateway.execution import ExecutionOrchestrator, Receipt, ReceiptStatus, TxParams
from tests.helpers.constants import CHAIN_ID, ROUTER, USER


class MockChain:
    """ChainReader fake.

    Configure ``allowance``, ``gas_estimate`` and the ``*_error`` attributes;
    ``read_errors`` are raised one per call before reads start succeeding.
    ``on_simulate`` runs inside simulate() (e.g. to call cancel()).
    """

    def __init__(self, allowance: int = 0, gas_estimate: int = 200_000, block_number: int = 100):
        self.allowance = allowance
        self.gas_estimate = gas_estimate
        self.block_number = block_number
        self.simulate_error: BaseException | None = None
        self.estimate_error: BaseException | None = None
        self.read_errors: list[BaseException] = []
        self.on_read: Callable[[], None] | None = None
        self.on_simulate: Callable[[], None] | None = None
        self.calls: list[tuple[str, Any]] = []

    async def read_contract(self, address: str, function_signature: str, args: tuple) -> Any:
        self.calls.append(("read_contract", (address, function_signature, args)))
        if self.on_read is not None:
            self.on_read()
        if self.read_errors:
            raise self.read_errors.pop(0)
        return self.allowance

    async def simulate(self, tx: TxParams) -> None:
        self.calls.append(("simulate", tx))
        if self.on_simulate is not None:
            self.on_simulate()
        if self.simulate_error is not None:
            raise self.simulate_error

    async def estimate_gas(self, tx: TxParams) -> int:
        self.calls.append(("estimate_gas", tx))
        if self.estimate_error is not None:
            raise self.estimate_error
        return self.gas_estimate

    async def current_block_number(self) -> int:
        return self.block_number

    def called(self, name: str) -> list[Any]:
        return [args for call, args in self.calls if call == name]


class MockWallet:
    """WalletSigner fake returning sequential transaction hashes.

    With ``hang`` set the signature request never completes.
    """

    def __init__(self, address: str = USER):
        self._address = address
        self.error: BaseException | None = None
        self.hang = False
        self.sent: list[TxParams] = []

    @property
    def address(self) -> str:
        return self._address

    async def write_contract(self, tx: TxParams) -> str:
        if self.hang:
            await asyncio.sleep(3600)
        if self.error is not None:
            raise self.error
        self.sent.append(tx)
        return "0x" + f"{len(self.sent):064x}"


class MockReceipts:
    """ReceiptSource fake.

    Hashes in ``hang`` never resolve (until removed); ``statuses`` overrides
    the receipt status per hash.
    """

    def __init__(self):
        self.hang: set[str] = set()
        self.hang_all = False
        self.statuses: dict[str, ReceiptStatus] = {}
        self.waited: list[str] = []

    async def wait_for_receipt(self, tx_hash: str) -> Receipt:
        self.waited.append(tx_hash)
        if self.hang_all or tx_hash in self.hang:
            await asyncio.sleep(3600)
        return Receipt(
            status=self.statuses.get(tx_hash, ReceiptStatus.SUCCESS),
            gas_used=150_000,
            effective_gas_price=20 * 10**9,
            block_number=101,
            transaction_hash=tx_hash,
        )


@pytest.fixture
def chain() -> MockChain:
    return MockChain()


@pytest.fixture
def wallet() -> MockWallet:
    return MockWallet()


@pytest.fixture
def receipts() -> MockReceipts:
    return MockReceipts()


@pytest.fixture
def fast_config() -> ExecutionConfig:
    """Config with short timeouts and no retry backoff."""
    return ExecutionConfig(
        tx_timeout_seconds=0.05,
        reconcile_timeout_seconds=0.05,
        retry_initial_delay=0.0,
        retry_max_delay=0.0,
    )


@pytest.fixture
def invalidations() -> list[tuple[int, str]]:
    """Records (chain_id, account) for every cache invalidation."""
    return []


@pytest.fixture
def orchestrator(chain, wallet, receipts, fast_config, invalidations) -> ExecutionOrchestrator:
    return ExecutionOrchestrator(
        chain,
        wallet,
        receipts,
        router_address=ROUTER,
        chain_id=CHAIN_ID,
        on_success=lambda chain_id, account: invalidations.append((chain_id, account)),
        config=fast_config,
    )
