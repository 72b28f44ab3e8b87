"""Transaction lifecycle for one route execution.

The orchestrator drives a single execution through allowance check,
optional approval, dry-run simulation, gas estimation, signature,
submission and bounded-time confirmation. Failures are captured into the
state snapshot instead of being raised to the caller; only misuse of the
state machine (e.g. executing while another execution is in flight)
raises InvalidTransitionError.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from dataclasses import replace

import structlog

from gateway.classifier import classify, is_retryable, log_error
from gateway.config import DEFAULT_EXECUTION_CONFIG, ExecutionConfig
from gateway.constants import (
    ALLOWANCE_SIGNATURE,
    APPROVAL_GAS_FALLBACK,
    APPROVE_SIGNATURE,
    EXECUTE_ROUTE_SIGNATURE,
    EXECUTE_ROUTE_UNWRAP_ETH_SIGNATURE,
)
from gateway.errors import DomainError, ErrorKind
from gateway.execution.interfaces import (
    CacheInvalidator,
    ChainReader,
    Receipt,
    ReceiptSource,
    TxParams,
    WalletSigner,
)
from gateway.execution.state import (
    ExecutionState,
    ExecutionStatus,
    InvalidTransitionError,
    StateTransition,
    can_transition,
)
from gateway.gas import GasEstimator
from gateway.models.request import ExecutionRequest
from gateway.models.route import DecodedRoute, RouteAction
from gateway.models.types import UINT256_MAX, format_address, normalize_address
from gateway.retry import with_retry

logger = structlog.get_logger()

Subscriber = Callable[[ExecutionState], None]


class _Cancelled(Exception):
    """Internal signal raised at a step boundary after cancel()."""


def revert_kind_for_route(route: DecodedRoute) -> ErrorKind:
    """Error code for a reverted execution receipt of ``route``."""
    actions = {hop.action for hop in route.hops}
    if actions == {RouteAction.WRAP}:
        return ErrorKind.WRAP_REVERTED
    if actions == {RouteAction.UNWRAP}:
        return ErrorKind.UNWRAP_REVERTED
    return ErrorKind.SWAP_REVERTED


async def wait_with_timeout(receipts: ReceiptSource, tx_hash: str, timeout: float) -> Receipt:
    """Race the receipt wait against ``timeout`` seconds.

    Raises:
        DomainError: TxTimeout if no receipt arrived in time. The
            transaction may still be mined.
    """
    try:
        return await asyncio.wait_for(receipts.wait_for_receipt(tx_hash), timeout)
    except TimeoutError:
        raise DomainError(
            ErrorKind.TX_TIMEOUT,
            f"No receipt for {tx_hash} after {timeout}s",
            details={"transaction_hash": tx_hash, "timeout_seconds": timeout},
        ) from None


class ExecutionOrchestrator:
    """State machine driving one execution at a time.

    Observers register with ``subscribe`` and receive every new snapshot
    synchronously, in transition order.
    """

    def __init__(
        self,
        chain: ChainReader,
        wallet: WalletSigner,
        receipts: ReceiptSource,
        *,
        router_address: str,
        chain_id: int,
        on_success: CacheInvalidator | None = None,
        config: ExecutionConfig = DEFAULT_EXECUTION_CONFIG,
    ):
        self.chain = chain
        self.wallet = wallet
        self.receipts = receipts
        self.router_address = normalize_address(router_address, validate=True)
        self.chain_id = chain_id
        self.on_success = on_success
        self.config = config
        self.gas = GasEstimator(chain, config)

        self._state = ExecutionState()
        self._history: list[StateTransition] = []
        self._subscribers: list[Subscriber] = []
        self._request: ExecutionRequest | None = None
        self._cancel_requested = False

    # --- Observation ---

    @property
    def state(self) -> ExecutionState:
        return self._state

    @property
    def status(self) -> ExecutionStatus:
        return self._state.status

    @property
    def transaction_hash(self) -> str | None:
        return self._state.transaction_hash

    @property
    def error(self) -> DomainError | None:
        return self._state.error

    @property
    def is_cancellable(self) -> bool:
        return self._state.is_cancellable and not self._cancel_requested

    @property
    def history(self) -> tuple[StateTransition, ...]:
        return tuple(self._history)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for every new snapshot; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, state: ExecutionState) -> None:
        self._state = state
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                logger.exception("execution_subscriber_failed", status=state.status.value)

    def _transition(
        self,
        target: ExecutionStatus,
        reason: str = "",
        base: ExecutionState | None = None,
        **changes,
    ) -> None:
        current = self._state.status
        if not can_transition(current, target):
            raise InvalidTransitionError(
                f"Cannot transition from {current.value} to {target.value}"
            )
        self._history.append(StateTransition(current, target, reason=reason))
        logger.debug("execution_transition", from_status=current.value, to_status=target.value)
        self._publish(replace(base or self._state, status=target, **changes))

    # --- Control ---

    def reset(self) -> None:
        """Return to idle from idle or a terminal state."""
        if self._state.is_in_flight:
            raise InvalidTransitionError(
                f"Cannot reset while {self._state.status.value}; wait for a terminal state"
            )
        self._request = None
        self._cancel_requested = False
        if self._state.status is ExecutionStatus.IDLE:
            return
        self._transition(ExecutionStatus.IDLE, "reset", base=ExecutionState())

    def cancel(self) -> None:
        """Request cooperative cancellation before any signature is requested.

        Takes effect at the next step boundary; the execution then ends in
        ``rejected``. Once a signature has been requested the transaction
        can no longer be abandoned and this raises.
        """
        if not self._state.is_cancellable:
            raise InvalidTransitionError(
                f"Cannot cancel while {self._state.status.value}; "
                "cancellation is only possible before a signature is requested"
            )
        self._cancel_requested = True
        logger.info("execution_cancel_requested", status=self._state.status.value)

    def _checkpoint(self) -> None:
        if self._cancel_requested:
            raise _Cancelled()

    # --- Execution ---

    async def execute(self, request: ExecutionRequest) -> ExecutionState:
        """Run ``request`` to a terminal state and return the final snapshot.

        Raises:
            InvalidTransitionError: Not idle (another execution is in flight
                or a terminal state has not been reset).
            asyncio.CancelledError: The calling task was cancelled. The
                state is moved to a terminal status first, see _abandon.
        """
        if self._state.status is not ExecutionStatus.IDLE:
            raise InvalidTransitionError(
                f"Cannot execute while {self._state.status.value}; reset first"
            )

        self._request = request
        self._cancel_requested = False
        self._history = []
        self._transition(ExecutionStatus.PREPARING)

        try:
            await self._run(request)
        except InvalidTransitionError:
            raise
        except asyncio.CancelledError:
            if self._state.is_in_flight:
                self._abandon()
            raise
        except _Cancelled:
            self._finish_with_error(
                DomainError(
                    ErrorKind.USER_REJECTED,
                    "Execution cancelled before signature",
                    is_user_rejection=True,
                )
            )
        except Exception as e:
            self._finish_with_error(e)
        return self._state

    async def _run(self, request: ExecutionRequest) -> None:
        route = request.decoded_route
        owner = self.wallet.address

        if not request.is_native_input:
            token = format_address(route.token_in)
            allowance = await self._read_allowance(token, owner)
            self._checkpoint()
            if allowance < request.amount_in:
                await self._approve(token, request.amount_in)

        self._checkpoint()
        self._transition(ExecutionStatus.PREPARING_EXECUTION)

        tx = self._build_execute_tx(request)
        await self.chain.simulate(tx)
        self._checkpoint()

        estimate = await self.gas.estimate(tx, route.hops)
        self._checkpoint()

        self._transition(
            ExecutionStatus.AWAITING_SIGNATURE,
            gas_limit=estimate.gas_limit,
            used_fallback_gas=estimate.used_fallback,
        )
        tx_hash = await self.wallet.write_contract(tx.with_gas(estimate.gas_limit))

        self._transition(ExecutionStatus.PENDING, transaction_hash=tx_hash)
        self._transition(ExecutionStatus.CONFIRMING)

        receipt = await wait_with_timeout(self.receipts, tx_hash, self.config.tx_timeout_seconds)
        await self._finish_with_receipt(receipt, route)

    async def _read_allowance(self, token: str, owner: str) -> int:
        async def read() -> int:
            return await self.chain.read_contract(
                token, ALLOWANCE_SIGNATURE, (owner, self.router_address)
            )

        allowance = await with_retry(
            read,
            retries=self.config.read_retries,
            initial_delay=self.config.retry_initial_delay,
            max_delay=self.config.retry_max_delay,
            is_retryable=is_retryable,
            description="allowance",
        )
        return int(allowance)

    async def _approve(self, token: str, amount_in: int) -> None:
        self._transition(ExecutionStatus.AWAITING_APPROVAL)

        amount = UINT256_MAX if self.config.infinite_approval else amount_in
        tx = TxParams(to=token, function_signature=APPROVE_SIGNATURE, args=(self.router_address, amount))
        estimate = await self.gas.estimate(tx, fallback_gas=APPROVAL_GAS_FALLBACK)
        approval_hash = await self.wallet.write_contract(tx.with_gas(estimate.gas_limit))

        self._transition(ExecutionStatus.APPROVING, approval_hash=approval_hash)
        receipt = await wait_with_timeout(
            self.receipts, approval_hash, self.config.tx_timeout_seconds
        )
        if not receipt.succeeded:
            raise DomainError(
                ErrorKind.APPROVAL_REVERTED,
                f"Approval {approval_hash} reverted in block {receipt.block_number}",
                details={"transaction_hash": approval_hash, "token": token},
            )
        logger.info("approval_confirmed", token=token, amount=amount, tx_hash=approval_hash)

    def _build_execute_tx(self, request: ExecutionRequest) -> TxParams:
        signature = (
            EXECUTE_ROUTE_UNWRAP_ETH_SIGNATURE if request.unwrap_to_native else EXECUTE_ROUTE_SIGNATURE
        )
        return TxParams(
            to=self.router_address,
            function_signature=signature,
            args=(
                request.encoded_route,
                request.amount_in,
                request.min_amount_out,
                request.recipient,
                request.deadline,
            ),
            value=request.native_value or 0,
        )

    async def _finish_with_receipt(self, receipt: Receipt, route: DecodedRoute) -> None:
        if receipt.succeeded:
            self._transition(ExecutionStatus.SUCCESS, receipt=receipt, error=None)
            logger.info(
                "execution_succeeded",
                tx_hash=self._state.transaction_hash,
                block=receipt.block_number,
                gas_used=receipt.gas_used,
            )
            await self._invalidate_caches()
            return

        kind = revert_kind_for_route(route)
        raise DomainError(
            kind,
            f"Transaction {self._state.transaction_hash} reverted in block {receipt.block_number}",
            details={"transaction_hash": self._state.transaction_hash},
        )

    def _finish_with_error(self, error: BaseException) -> None:
        domain_error = classify(error)
        current = self._state.status
        target = ExecutionStatus.REJECTED if domain_error.is_user_rejection else ExecutionStatus.FAILED
        if not can_transition(current, target):
            target = ExecutionStatus.FAILED

        if target is ExecutionStatus.REJECTED:
            logger.info("execution_rejected", status=current.value, message=domain_error.message)
        else:
            log_error(
                "execution",
                domain_error,
                status=current.value,
                tx_hash=self._state.transaction_hash,
            )
        self._transition(target, domain_error.code.value, error=domain_error)

    def _abandon(self) -> None:
        """Settle the state when the task running execute() is cancelled.

        Once a transaction hash is known the execution fails with TxTimeout
        and keeps the hash, so reconcile() can still find the receipt. An
        abandoned approval fails the same way. Before that nothing was
        broadcast and the execution counts as rejected.
        """
        state = self._state
        if state.transaction_hash is not None:
            error = DomainError(
                ErrorKind.TX_TIMEOUT,
                f"Stopped waiting for {state.transaction_hash} before confirmation",
                details={"transaction_hash": state.transaction_hash},
            )
        elif state.status is ExecutionStatus.APPROVING:
            error = DomainError(
                ErrorKind.TX_TIMEOUT,
                f"Stopped waiting for approval {state.approval_hash} before confirmation",
                details={"approval_hash": state.approval_hash},
            )
        else:
            error = DomainError(
                ErrorKind.USER_REJECTED,
                "Execution abandoned before any transaction was sent",
                is_user_rejection=True,
            )
        logger.warning("execution_abandoned", status=state.status.value)
        self._finish_with_error(error)

    async def _invalidate_caches(self) -> None:
        if self.on_success is None:
            return
        try:
            result = self.on_success(self.chain_id, self.wallet.address)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning("cache_invalidation_failed", chain_id=self.chain_id, error=str(e))

    # --- Reconciliation ---

    async def reconcile(self) -> ExecutionState:
        """Look for the receipt again after a confirmation timeout.

        Only valid from ``failed`` with a TxTimeout error and a known
        transaction hash. A mined success moves to ``success``; a revert
        replaces the error with the revert code; a second timeout leaves
        the state unchanged.
        """
        state = self._state
        if (
            state.status is not ExecutionStatus.FAILED
            or state.error is None
            or state.error.code is not ErrorKind.TX_TIMEOUT
            or state.transaction_hash is None
        ):
            raise InvalidTransitionError("reconcile() is only valid after a confirmation timeout")

        tx_hash = state.transaction_hash
        try:
            receipt = await wait_with_timeout(
                self.receipts, tx_hash, self.config.reconcile_timeout_seconds
            )
        except DomainError as e:
            logger.info("reconcile_still_pending", tx_hash=tx_hash, code=e.code.value)
            return self._state
        except Exception as e:
            log_error("reconcile", e, tx_hash=tx_hash)
            return self._state

        if receipt.succeeded:
            self._transition(ExecutionStatus.SUCCESS, "reconciled", receipt=receipt, error=None)
            logger.info("execution_reconciled", tx_hash=tx_hash, block=receipt.block_number)
            await self._invalidate_caches()
            return self._state

        route = self._request.decoded_route if self._request is not None else None
        kind = revert_kind_for_route(route) if route is not None else ErrorKind.SWAP_REVERTED
        error = DomainError(
            kind,
            f"Transaction {tx_hash} reverted in block {receipt.block_number}",
            details={"transaction_hash": tx_hash},
        )
        log_error("reconcile", error, tx_hash=tx_hash)
        self._publish(replace(self._state, receipt=receipt, error=error))
        return self._state


def create_orchestrator(
    chain: ChainReader,
    wallet: WalletSigner,
    receipts: ReceiptSource,
    *,
    router_address: str,
    chain_id: int,
    on_success: CacheInvalidator | None = None,
    config: ExecutionConfig | None = None,
) -> ExecutionOrchestrator:
    """Build an orchestrator, reading config from the environment if none is given."""
    return ExecutionOrchestrator(
        chain,
        wallet,
        receipts,
        router_address=router_address,
        chain_id=chain_id,
        on_success=on_success,
        config=config or ExecutionConfig.from_env(),
    )


__all__ = [
    "ExecutionOrchestrator",
    "create_orchestrator",
    "revert_kind_for_route",
    "wait_with_timeout",
]
