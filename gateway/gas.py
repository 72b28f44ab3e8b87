"""Gas limit estimation with a buffer, clamping and a route-aware fallback."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from gateway.config import DEFAULT_EXECUTION_CONFIG, ExecutionConfig
from gateway.constants import (
    FALLBACK_SAFETY_MARGIN,
    GAS_BUFFER_PERCENT,
    MAX_GAS_LIMIT,
    MIN_GAS_LIMIT,
    ROUTE_BASE_GAS,
    SWAP_BIN_GAS,
    SWAP_CL_GAS,
    UNWRAP_GAS,
    WRAP_GAS,
)
from gateway.errors import RevertError
from gateway.models.route import RouteAction, RouteHop

if TYPE_CHECKING:
    from gateway.execution.interfaces import ChainReader, TxParams

logger = structlog.get_logger()

# Bugs in the caller or the collaborator, never an RPC outage
PROGRAMMING_ERRORS: tuple[type[Exception], ...] = (
    TypeError,
    AttributeError,
    NameError,
    AssertionError,
    NotImplementedError,
)

HOP_GAS_COSTS: dict[RouteAction, int] = {
    RouteAction.SWAP_CL: SWAP_CL_GAS,
    RouteAction.SWAP_BIN: SWAP_BIN_GAS,
    RouteAction.WRAP: WRAP_GAS,
    RouteAction.UNWRAP: UNWRAP_GAS,
}


def add_gas_buffer(
    estimate: int,
    buffer_percent: int = GAS_BUFFER_PERCENT,
    min_gas: int = MIN_GAS_LIMIT,
    max_gas: int = MAX_GAS_LIMIT,
) -> int:
    """Add a percentage buffer (integer math) and clamp to [min_gas, max_gas]."""
    buffered = estimate * (100 + buffer_percent) // 100
    return min(max(buffered, min_gas), max_gas)


def fallback_gas_for_route(hops: Sequence[RouteHop] | None) -> int:
    """Deterministic gas for a route when live estimation is unavailable.

    Base cost plus one constant per hop plus a safety margin. With no hops,
    a single concentrated-liquidity swap is assumed.
    """
    if hops:
        per_hop = sum(HOP_GAS_COSTS[hop.action] for hop in hops)
    else:
        per_hop = HOP_GAS_COSTS[RouteAction.SWAP_CL]
    return ROUTE_BASE_GAS + per_hop + FALLBACK_SAFETY_MARGIN


@dataclass(frozen=True)
class GasEstimate:
    """Final gas limit and how it was obtained.

    Attributes:
        gas_limit: Buffered and clamped limit to send with the transaction
        raw_estimate: Estimate before buffering (live or fallback)
        used_fallback: True if live estimation failed and the fallback applied
    """

    gas_limit: int
    raw_estimate: int
    used_fallback: bool = False


class GasEstimator:
    """Estimates gas through the chain collaborator, falling back on RPC failure."""

    def __init__(self, chain: ChainReader, config: ExecutionConfig = DEFAULT_EXECUTION_CONFIG):
        self.chain = chain
        self.config = config

    def _buffer(self, estimate: int) -> int:
        return add_gas_buffer(
            estimate,
            self.config.gas_buffer_percent,
            self.config.min_gas_limit,
            self.config.max_gas_limit,
        )

    async def estimate(
        self,
        tx: TxParams,
        route_hops: Sequence[RouteHop] | None = None,
        fallback_gas: int | None = None,
    ) -> GasEstimate:
        """Estimate the gas limit for ``tx``.

        Raises:
            RevertError: The estimate call reverted; this is an execution
                failure and is never masked by the fallback.
            TypeError, AttributeError, ...: Programming errors propagate
                unchanged; only I/O failures fall back.
        """
        try:
            raw = await self.chain.estimate_gas(tx)
        except (RevertError, *PROGRAMMING_ERRORS):
            raise
        except Exception as e:
            raw = fallback_gas if fallback_gas is not None else fallback_gas_for_route(route_hops)
            logger.warning(
                "gas_estimate_fallback",
                to=tx.to,
                function=tx.function_signature,
                fallback=raw,
                hops=len(route_hops) if route_hops else 0,
                error=str(e),
            )
            return GasEstimate(gas_limit=self._buffer(raw), raw_estimate=raw, used_fallback=True)

        gas_limit = self._buffer(raw)
        logger.debug("gas_estimated", raw=raw, gas_limit=gas_limit)
        return GasEstimate(gas_limit=gas_limit, raw_estimate=raw)


__all__ = [
    "HOP_GAS_COSTS",
    "PROGRAMMING_ERRORS",
    "GasEstimate",
    "GasEstimator",
    "add_gas_buffer",
    "fallback_gas_for_route",
]
