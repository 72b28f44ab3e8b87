"""Scenario tests for the execution orchestrator.

Collaborators are the in-memory fakes from conftest; each scenario runs the
orchestrator to a terminal state with asyncio.run and inspects the observed
state sequence and the calls made.
"""

import asyncio

import pytest

from gateway.config import ExecutionConfig
from gateway.constants import (
    ALLOWANCE_SIGNATURE,
    APPROVE_SIGNATURE,
    EXECUTE_ROUTE_SIGNATURE,
    EXECUTE_ROUTE_UNWRAP_ETH_SIGNATURE,
)
from gateway.errors import ErrorKind, RevertError, UserRejectedRequestError
from gateway.execution import (
    ExecutionOrchestrator,
    ExecutionStatus,
    InvalidTransitionError,
    ReceiptStatus,
    create_orchestrator,
)
from gateway.gas import add_gas_buffer, fallback_gas_for_route
from gateway.models.types import UINT256_MAX
from tests.helpers import (
    CHAIN_ID,
    DAI_B,
    ROUTER,
    SDAI_B,
    USER,
    WETH,
    make_request,
    make_single_route,
    make_unwrap_hop,
    make_wrap_hop,
)

S = ExecutionStatus

HAPPY_PATH_WITH_APPROVAL = [
    "idle",
    "preparing",
    "awaitingApproval",
    "approving",
    "preparingExecution",
    "awaitingSignature",
    "pending",
    "confirming",
    "success",
]


def tx_hash(n: int) -> str:
    """Hash the MockWallet returns for its n-th transaction."""
    return "0x" + f"{n:064x}"


def record(orchestrator: ExecutionOrchestrator) -> list[str]:
    statuses = [orchestrator.status.value]
    orchestrator.subscribe(lambda state: statuses.append(state.status.value))
    return statuses


def make_orchestrator(chain, wallet, receipts, **overrides) -> ExecutionOrchestrator:
    config = ExecutionConfig(
        tx_timeout_seconds=0.05,
        reconcile_timeout_seconds=0.05,
        retry_initial_delay=0.0,
        retry_max_delay=0.0,
        **overrides,
    )
    return ExecutionOrchestrator(
        chain, wallet, receipts, router_address=ROUTER, chain_id=CHAIN_ID, config=config
    )


class TestHappyPath:
    """All collaborator calls succeed."""

    def test_state_sequence_with_approval(self, orchestrator, chain, wallet, invalidations):
        """Insufficient allowance goes through approval before execution."""
        statuses = record(orchestrator)
        request = make_request()

        final = asyncio.run(orchestrator.execute(request))

        assert statuses == HAPPY_PATH_WITH_APPROVAL
        assert final.status == S.SUCCESS
        assert final.error is None
        assert final.transaction_hash == tx_hash(2)
        assert final.approval_hash == tx_hash(1)
        assert final.receipt is not None and final.receipt.succeeded

        approve, execute = wallet.sent
        assert approve.to == WETH
        assert approve.function_signature == APPROVE_SIGNATURE
        assert approve.args == (ROUTER, request.amount_in)
        assert execute.function_signature == EXECUTE_ROUTE_SIGNATURE
        assert invalidations == [(CHAIN_ID, USER)]

    def test_sufficient_allowance_skips_approval(self, orchestrator, chain, wallet):
        chain.allowance = 10**30
        statuses = record(orchestrator)

        asyncio.run(orchestrator.execute(make_request()))

        assert statuses == [
            "idle",
            "preparing",
            "preparingExecution",
            "awaitingSignature",
            "pending",
            "confirming",
            "success",
        ]
        assert len(wallet.sent) == 1
        assert chain.called("read_contract") == [(WETH, ALLOWANCE_SIGNATURE, (USER, ROUTER))]

    def test_native_input_skips_allowance(self, orchestrator, chain, wallet):
        request = make_request(native_value=10**18)

        final = asyncio.run(orchestrator.execute(request))

        assert final.status == S.SUCCESS
        assert chain.called("read_contract") == []
        assert wallet.sent[0].value == 10**18

    def test_execute_call_parameters(self, orchestrator, chain, wallet):
        chain.allowance = 10**30
        chain.gas_estimate = 300_000
        request = make_request()

        final = asyncio.run(orchestrator.execute(request))

        (tx,) = wallet.sent
        assert tx.to == ROUTER
        assert tx.args == (
            request.encoded_route,
            request.amount_in,
            request.min_amount_out,
            request.recipient,
            request.deadline,
        )
        assert tx.value == 0
        assert tx.gas == 360_000
        assert final.gas_limit == 360_000
        assert not final.used_fallback_gas
        # Simulation ran with the exact call parameters (before gas was attached)
        (simulated,) = chain.called("simulate")
        assert simulated.with_gas(360_000) == tx

    def test_unwrap_to_native(self, orchestrator, chain, wallet):
        chain.allowance = 10**30
        asyncio.run(orchestrator.execute(make_request(unwrap_to_native=True)))
        assert wallet.sent[0].function_signature == EXECUTE_ROUTE_UNWRAP_ETH_SIGNATURE

    def test_infinite_approval(self, chain, wallet, receipts):
        orchestrator = make_orchestrator(chain, wallet, receipts, infinite_approval=True)
        asyncio.run(orchestrator.execute(make_request()))
        assert wallet.sent[0].args == (ROUTER, UINT256_MAX)

    def test_gas_fallback_on_rpc_failure(self, orchestrator, chain, wallet):
        chain.allowance = 10**30
        chain.estimate_error = ConnectionError("estimate failed")
        request = make_request()

        final = asyncio.run(orchestrator.execute(request))

        expected = add_gas_buffer(fallback_gas_for_route(request.decoded_route.hops))
        assert final.status == S.SUCCESS
        assert final.used_fallback_gas
        assert wallet.sent[0].gas == expected

    def test_allowance_read_retried(self, orchestrator, chain):
        chain.allowance = 10**30
        chain.read_errors = [ConnectionError("connection reset")]

        final = asyncio.run(orchestrator.execute(make_request()))

        assert final.status == S.SUCCESS
        assert len(chain.called("read_contract")) == 2

    def test_history_records_transitions(self, orchestrator, chain):
        chain.allowance = 10**30
        asyncio.run(orchestrator.execute(make_request()))
        history = orchestrator.history
        assert history[0].from_status == S.IDLE
        assert history[0].to_status == S.PREPARING
        assert history[-1].to_status == S.SUCCESS
        assert all(a.to_status == b.from_status for a, b in zip(history, history[1:]))


class TestFailures:
    """Failures are captured into state, never raised."""

    def test_simulation_revert_never_requests_signature(self, orchestrator, chain, wallet):
        chain.allowance = 10**30
        chain.simulate_error = RevertError(error_name="InsufficientOutput")
        statuses = record(orchestrator)

        final = asyncio.run(orchestrator.execute(make_request()))

        assert statuses[-1] == "failed"
        assert "awaitingSignature" not in statuses
        assert wallet.sent == []
        assert final.error.code == ErrorKind.INSUFFICIENT_OUTPUT
        assert final.error.is_retryable

    def test_estimate_revert_fails(self, orchestrator, chain, wallet):
        chain.allowance = 10**30
        chain.estimate_error = RevertError(error_name="Unauthorized")

        final = asyncio.run(orchestrator.execute(make_request()))

        assert final.status == S.FAILED
        assert final.error.code == ErrorKind.UNAUTHORIZED
        assert not final.error.is_retryable
        assert wallet.sent == []

    def test_confirmation_timeout(self, orchestrator, chain, receipts, invalidations):
        """Timeout fails tracking but keeps the hash; the transaction may still land."""
        chain.allowance = 10**30
        receipts.hang_all = True

        final = asyncio.run(orchestrator.execute(make_request()))

        assert final.status == S.FAILED
        assert final.error.code == ErrorKind.TX_TIMEOUT
        assert not final.error.is_retryable
        assert "may still complete" in final.error.user_message
        assert final.transaction_hash == tx_hash(1)
        assert orchestrator.transaction_hash == tx_hash(1)
        assert invalidations == []

    def test_signature_rejected(self, orchestrator, chain, wallet):
        chain.allowance = 10**30
        wallet.error = UserRejectedRequestError()
        statuses = record(orchestrator)

        final = asyncio.run(orchestrator.execute(make_request()))

        assert statuses[-2:] == ["awaitingSignature", "rejected"]
        assert final.error.code == ErrorKind.USER_REJECTED
        assert final.error.is_user_rejection
        assert final.error.is_retryable

    def test_approval_rejected(self, orchestrator, wallet):
        wallet.error = Exception("MetaMask Tx Signature: User denied transaction signature.")
        statuses = record(orchestrator)

        final = asyncio.run(orchestrator.execute(make_request()))

        assert statuses[-2:] == ["awaitingApproval", "rejected"]
        assert final.status == S.REJECTED

    def test_approval_reverted(self, orchestrator, receipts, wallet):
        receipts.statuses[tx_hash(1)] = ReceiptStatus.REVERTED

        final = asyncio.run(orchestrator.execute(make_request()))

        assert final.status == S.FAILED
        assert final.error.code == ErrorKind.APPROVAL_REVERTED
        assert final.approval_hash == tx_hash(1)
        assert len(wallet.sent) == 1

    @pytest.mark.parametrize(
        ("route", "kind"),
        [
            (make_single_route(), ErrorKind.SWAP_REVERTED),
            (make_single_route(make_wrap_hop(DAI_B, SDAI_B)), ErrorKind.WRAP_REVERTED),
            (make_single_route(make_unwrap_hop(SDAI_B, DAI_B)), ErrorKind.UNWRAP_REVERTED),
        ],
        ids=["swap", "wrap", "unwrap"],
    )
    def test_reverted_receipt(self, orchestrator, chain, receipts, route, kind):
        chain.allowance = 10**30
        receipts.statuses[tx_hash(1)] = ReceiptStatus.REVERTED

        final = asyncio.run(orchestrator.execute(make_request(route=route)))

        assert final.status == S.FAILED
        assert final.error.code == kind
        assert final.transaction_hash == tx_hash(1)

    def test_malformed_route_fails_before_any_call(self, orchestrator, chain, wallet):
        final = asyncio.run(orchestrator.execute(make_request(route=b"\x01\x07")))
        assert final.status == S.FAILED
        assert final.error.code == ErrorKind.MALFORMED_ROUTE
        assert chain.calls == []
        assert wallet.sent == []

    def test_failing_cache_invalidation_does_not_change_state(self, chain, wallet, receipts):
        def explode(chain_id, account):
            raise RuntimeError("cache down")

        chain.allowance = 10**30
        orchestrator = ExecutionOrchestrator(
            chain,
            wallet,
            receipts,
            router_address=ROUTER,
            chain_id=CHAIN_ID,
            on_success=explode,
        )
        final = asyncio.run(orchestrator.execute(make_request()))
        assert final.status == S.SUCCESS
        assert final.error is None


class TestSingleFlightAndReset:
    def test_execute_requires_idle(self, orchestrator, chain):
        chain.allowance = 10**30
        asyncio.run(orchestrator.execute(make_request()))
        with pytest.raises(InvalidTransitionError):
            asyncio.run(orchestrator.execute(make_request()))

    def test_reset_from_terminal(self, orchestrator, chain):
        chain.allowance = 10**30
        asyncio.run(orchestrator.execute(make_request()))

        orchestrator.reset()

        assert orchestrator.status == S.IDLE
        assert orchestrator.transaction_hash is None
        assert orchestrator.error is None
        assert asyncio.run(orchestrator.execute(make_request())).status == S.SUCCESS

    def test_reset_from_idle_publishes_nothing(self, orchestrator):
        statuses = record(orchestrator)
        orchestrator.reset()
        assert orchestrator.status == S.IDLE
        assert statuses == ["idle"]
        assert orchestrator.history == ()

    def test_reset_while_in_flight_raises(self, orchestrator, chain):
        chain.allowance = 10**30
        errors: list[Exception] = []

        def try_reset():
            try:
                orchestrator.reset()
            except InvalidTransitionError as e:
                errors.append(e)

        chain.on_simulate = try_reset
        final = asyncio.run(orchestrator.execute(make_request()))

        assert len(errors) == 1
        assert final.status == S.SUCCESS

    def test_concurrent_execute_rejected(self, orchestrator, chain):
        chain.allowance = 10**30

        async def scenario():
            first = asyncio.create_task(orchestrator.execute(make_request()))
            await asyncio.sleep(0)
            with pytest.raises(InvalidTransitionError):
                await orchestrator.execute(make_request())
            return await first

        assert asyncio.run(scenario()).status == S.SUCCESS


class TestCancellation:
    """Cancellation is cooperative and only possible before a signature."""

    def test_cancel_while_preparing(self, orchestrator, chain, wallet):
        chain.allowance = 10**30
        chain.on_read = orchestrator.cancel
        statuses = record(orchestrator)

        final = asyncio.run(orchestrator.execute(make_request()))

        assert statuses == ["idle", "preparing", "rejected"]
        assert final.error.code == ErrorKind.USER_REJECTED
        assert wallet.sent == []

    def test_cancel_while_preparing_execution(self, orchestrator, chain, wallet):
        chain.allowance = 10**30
        flags: list[bool] = []

        def cancel():
            flags.append(orchestrator.is_cancellable)
            orchestrator.cancel()
            flags.append(orchestrator.is_cancellable)

        chain.on_simulate = cancel
        final = asyncio.run(orchestrator.execute(make_request()))

        assert flags == [True, False]
        assert final.status == S.REJECTED
        assert chain.called("estimate_gas") == []
        assert wallet.sent == []

    def test_cancel_after_signature_request_raises(self, orchestrator, chain):
        chain.allowance = 10**30
        errors: list[Exception] = []

        def on_state(state):
            if state.status in (S.AWAITING_SIGNATURE, S.PENDING, S.CONFIRMING):
                assert not orchestrator.is_cancellable
                try:
                    orchestrator.cancel()
                except InvalidTransitionError as e:
                    errors.append(e)

        orchestrator.subscribe(on_state)
        final = asyncio.run(orchestrator.execute(make_request()))

        assert len(errors) == 3
        assert final.status == S.SUCCESS

    def test_cancel_when_idle_raises(self, orchestrator):
        with pytest.raises(InvalidTransitionError):
            orchestrator.cancel()


def cancel_task_at(orchestrator, status: ExecutionStatus) -> None:
    """Run an execution and cancel its task as soon as ``status`` is published."""

    async def scenario():
        task = asyncio.ensure_future(orchestrator.execute(make_request()))

        def on_state(state):
            if state.status is status:
                task.cancel()

        orchestrator.subscribe(on_state)
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())


class TestTaskCancellation:
    """Cancelling the task that runs execute() always leaves a terminal state."""

    def test_cancelled_while_confirming_keeps_hash(self, orchestrator, chain, receipts, wallet):
        chain.allowance = 10**30
        receipts.hang_all = True

        cancel_task_at(orchestrator, S.CONFIRMING)

        assert orchestrator.status == S.FAILED
        assert orchestrator.error.code == ErrorKind.TX_TIMEOUT
        assert orchestrator.transaction_hash == tx_hash(1)
        assert orchestrator.error.details["transaction_hash"] == tx_hash(1)

    def test_reconcile_after_cancelled_confirmation(self, orchestrator, chain, receipts):
        chain.allowance = 10**30
        receipts.hang_all = True
        cancel_task_at(orchestrator, S.CONFIRMING)
        receipts.hang_all = False

        final = asyncio.run(orchestrator.reconcile())

        assert final.status == S.SUCCESS
        assert final.transaction_hash == tx_hash(1)

    def test_cancelled_while_awaiting_signature(self, orchestrator, chain, wallet):
        chain.allowance = 10**30
        wallet.hang = True

        cancel_task_at(orchestrator, S.AWAITING_SIGNATURE)

        assert orchestrator.status == S.REJECTED
        assert orchestrator.error.code == ErrorKind.USER_REJECTED
        assert orchestrator.transaction_hash is None

    def test_cancelled_while_approving(self, orchestrator, receipts):
        receipts.hang_all = True

        cancel_task_at(orchestrator, S.APPROVING)

        assert orchestrator.status == S.FAILED
        assert orchestrator.error.code == ErrorKind.TX_TIMEOUT
        assert orchestrator.error.details["approval_hash"] == tx_hash(1)
        assert orchestrator.transaction_hash is None

    def test_reset_and_execute_after_cancellation(self, orchestrator, chain, wallet):
        chain.allowance = 10**30
        wallet.hang = True
        cancel_task_at(orchestrator, S.AWAITING_SIGNATURE)
        wallet.hang = False

        orchestrator.reset()
        final = asyncio.run(orchestrator.execute(make_request()))

        assert final.status == S.SUCCESS


class TestReconcile:
    """Re-checking a transaction after a confirmation timeout."""

    def timed_out(self, orchestrator, chain, receipts):
        chain.allowance = 10**30
        receipts.hang.add(tx_hash(1))
        final = asyncio.run(orchestrator.execute(make_request()))
        assert final.error.code == ErrorKind.TX_TIMEOUT
        return final

    def test_reconcile_to_success(self, orchestrator, chain, receipts, invalidations):
        self.timed_out(orchestrator, chain, receipts)
        receipts.hang.clear()

        final = asyncio.run(orchestrator.reconcile())

        assert final.status == S.SUCCESS
        assert final.error is None
        assert final.transaction_hash == tx_hash(1)
        assert invalidations == [(CHAIN_ID, USER)]

    def test_reconcile_reverted(self, orchestrator, chain, receipts):
        self.timed_out(orchestrator, chain, receipts)
        receipts.hang.clear()
        receipts.statuses[tx_hash(1)] = ReceiptStatus.REVERTED

        final = asyncio.run(orchestrator.reconcile())

        assert final.status == S.FAILED
        assert final.error.code == ErrorKind.SWAP_REVERTED

    def test_reconcile_still_pending(self, orchestrator, chain, receipts):
        self.timed_out(orchestrator, chain, receipts)

        final = asyncio.run(orchestrator.reconcile())

        assert final.status == S.FAILED
        assert final.error.code == ErrorKind.TX_TIMEOUT

    def test_reconcile_requires_timeout(self, orchestrator, chain):
        chain.allowance = 10**30
        chain.simulate_error = RevertError(error_name="InvalidRoute")
        asyncio.run(orchestrator.execute(make_request()))
        with pytest.raises(InvalidTransitionError):
            asyncio.run(orchestrator.reconcile())


class TestSubscribe:
    def test_unsubscribe(self, orchestrator, chain):
        chain.allowance = 10**30
        seen: list[S] = []
        unsubscribe = orchestrator.subscribe(lambda state: seen.append(state.status))
        unsubscribe()
        asyncio.run(orchestrator.execute(make_request()))
        assert seen == []

    def test_transaction_hash_retained_after_pending(self, orchestrator, chain):
        chain.allowance = 10**30
        hashes: list[tuple[S, str | None]] = []
        orchestrator.subscribe(lambda state: hashes.append((state.status, state.transaction_hash)))

        asyncio.run(orchestrator.execute(make_request()))

        after_pending = hashes[[status for status, _ in hashes].index(S.PENDING) :]
        assert all(h == tx_hash(1) for _, h in after_pending)

    def test_failing_subscriber_does_not_break_execution(self, orchestrator, chain):
        chain.allowance = 10**30

        def broken(state):
            raise RuntimeError("ui crashed")

        orchestrator.subscribe(broken)
        assert asyncio.run(orchestrator.execute(make_request())).status == S.SUCCESS


class TestCreateOrchestrator:
    def test_reads_env_config(self, chain, wallet, receipts, monkeypatch):
        monkeypatch.setenv("GATEWAY_TX_TIMEOUT_SECONDS", "7")
        orchestrator = create_orchestrator(
            chain, wallet, receipts, router_address=ROUTER, chain_id=CHAIN_ID
        )
        assert orchestrator.config.tx_timeout_seconds == 7.0
        assert orchestrator.status == S.IDLE
