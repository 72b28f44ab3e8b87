"""Tests for gas estimation, buffering and the route-aware fallback."""

import asyncio

import pytest

from gateway.config import ExecutionConfig
from gateway.constants import APPROVAL_GAS_FALLBACK
from gateway.errors import RevertError
from gateway.execution.interfaces import TxParams
from gateway.gas import GasEstimator, add_gas_buffer, fallback_gas_for_route
from tests.conftest import MockChain
from tests.helpers import ROUTER, make_bin_hop, make_cl_hop, make_unwrap_hop, make_wrap_hop

TX = TxParams(to=ROUTER, function_signature="executeRoute(bytes,uint256,uint256,address,uint256)")


class TestAddGasBuffer:
    """Buffer is applied with integer math, then clamped."""

    def test_buffer_applied(self):
        assert add_gas_buffer(200_000) == 240_000

    def test_tiny_estimate_hits_floor(self):
        assert add_gas_buffer(10) == 100_000

    def test_huge_estimate_hits_ceiling(self):
        assert add_gas_buffer(10_000_000) == 2_000_000

    def test_custom_buffer(self):
        assert add_gas_buffer(1_000_000, buffer_percent=50) == 1_500_000

    def test_integer_rounding_down(self):
        assert add_gas_buffer(100_001, buffer_percent=20) == 120_001


class TestFallbackGas:
    """Base + per-hop constants + safety margin."""

    def test_single_cl_hop(self):
        assert fallback_gas_for_route([make_cl_hop()]) == 60_000 + 130_000 + 50_000

    def test_no_hops_assumes_single_cl_swap(self):
        assert fallback_gas_for_route(None) == fallback_gas_for_route([make_cl_hop()])
        assert fallback_gas_for_route([]) == fallback_gas_for_route([make_cl_hop()])

    def test_mixed_route(self):
        hops = [make_cl_hop(), make_bin_hop(), make_wrap_hop(), make_unwrap_hop()]
        assert fallback_gas_for_route(hops) == 60_000 + 130_000 + 110_000 + 70_000 + 70_000 + 50_000

    def test_more_hops_never_cost_less(self):
        one = fallback_gas_for_route([make_cl_hop()])
        two = fallback_gas_for_route([make_cl_hop(), make_unwrap_hop()])
        assert two > one


class TestGasEstimator:
    """Live estimate first; fallback only on non-revert failures."""

    def test_live_estimate_is_buffered(self):
        estimator = GasEstimator(MockChain(gas_estimate=300_000))
        estimate = asyncio.run(estimator.estimate(TX))
        assert estimate.gas_limit == 360_000
        assert estimate.raw_estimate == 300_000
        assert not estimate.used_fallback

    def test_live_estimate_clamped(self):
        assert asyncio.run(GasEstimator(MockChain(gas_estimate=10)).estimate(TX)).gas_limit == 100_000
        estimator = GasEstimator(MockChain(gas_estimate=10_000_000))
        assert asyncio.run(estimator.estimate(TX)).gas_limit == 2_000_000

    def test_rpc_failure_uses_route_fallback(self):
        chain = MockChain()
        chain.estimate_error = ConnectionError("rpc down")
        hops = [make_cl_hop(), make_unwrap_hop()]

        estimate = asyncio.run(GasEstimator(chain).estimate(TX, route_hops=hops))

        assert estimate.used_fallback
        assert estimate.raw_estimate == fallback_gas_for_route(hops)
        assert estimate.gas_limit == add_gas_buffer(fallback_gas_for_route(hops))

    def test_explicit_fallback_for_approvals(self):
        chain = MockChain()
        chain.estimate_error = TimeoutError()
        estimate = asyncio.run(GasEstimator(chain).estimate(TX, fallback_gas=APPROVAL_GAS_FALLBACK))
        assert estimate.raw_estimate == APPROVAL_GAS_FALLBACK
        # 60k * 1.2 is below the floor
        assert estimate.gas_limit == 100_000

    def test_revert_propagates(self):
        chain = MockChain()
        chain.estimate_error = RevertError(error_name="InsufficientOutput")
        with pytest.raises(RevertError):
            asyncio.run(GasEstimator(chain).estimate(TX, route_hops=[make_cl_hop()]))

    @pytest.mark.parametrize(
        "error", [TypeError("bad argument"), AttributeError("missing"), NotImplementedError()]
    )
    def test_programming_errors_propagate(self, error):
        chain = MockChain()
        chain.estimate_error = error
        with pytest.raises(type(error)):
            asyncio.run(GasEstimator(chain).estimate(TX, route_hops=[make_cl_hop()]))

    def test_config_bounds(self):
        config = ExecutionConfig(gas_buffer_percent=0, min_gas_limit=50_000, max_gas_limit=500_000)
        estimator = GasEstimator(MockChain(gas_estimate=600_000), config)
        assert asyncio.run(estimator.estimate(TX)).gas_limit == 500_000
