"""Pydantic model for quotes returned by the smart quoter."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from gateway.constants import (
    BPS_DENOMINATOR,
    PRICE_IMPACT_HIGH_BPS,
    PRICE_IMPACT_LOW_BPS,
    PRICE_IMPACT_MEDIUM_BPS,
    QUOTE_STALE_BLOCKS,
)
from gateway.errors import MalformedRouteError
from gateway.models.route import DecodedRoute, RouteAction, RouteHop
from gateway.models.types import Address, Bytes, Uint256, address_to_bytes, hex_to_bytes


class PriceImpactSeverity(str, Enum):
    """Display bucket for a quote's price impact."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very-high"


class RouteStep(BaseModel):
    """One hop of the quoter's expanded route, with its simulated amounts.

    ``pool_data`` is the same ABI-encoded pool payload the packed route
    carries for this hop.
    """

    action: int = Field(ge=0, le=255)
    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    amount_in: Uint256 = Field(alias="amountIn")
    amount_out: Uint256 = Field(alias="amountOut")
    pool_data: Bytes = Field(alias="poolData")

    model_config = {"populate_by_name": True, "frozen": True}

    def to_hop(self) -> RouteHop:
        """Build a RouteHop with amounts filled in.

        Raises:
            MalformedRouteError: Unknown action code or invalid pool payload
        """
        from gateway.codec import decode_pool_payload

        try:
            action = RouteAction(self.action)
        except ValueError as err:
            raise MalformedRouteError(
                f"Quote step has unknown action code {self.action}",
                details={"action": self.action},
            ) from err

        return RouteHop(
            action=action,
            token_in=address_to_bytes(self.token_in),
            token_out=address_to_bytes(self.token_out),
            pool=decode_pool_payload(action, hex_to_bytes(self.pool_data)),
            amount_in=self.amount_in,
            amount_out=self.amount_out,
        )


class Quote(BaseModel):
    """A quote from the smart quoter. Immutable once received.

    Staleness is advisory: a stale quote is surfaced to the caller but does
    not by itself block execution; the deadline and min-output guards do.
    """

    amount_out: Uint256 = Field(alias="amountOut")
    price_impact_bps: int = Field(default=0, ge=0, alias="priceImpactBps")
    gas_estimate: Uint256 = Field(default=0, alias="gasEstimate")
    quoted_at_timestamp: int = Field(ge=0, alias="quotedAt")
    quoted_at_block: int = Field(ge=0, alias="quotedBlock")
    encoded_route: Bytes = Field(alias="encodedRoute")
    buffer_fee_bps: int = Field(default=0, ge=0, alias="bufferFee")
    is_direct_buffer: bool = Field(default=False, alias="isDirectBuffer")
    is_split: bool = Field(default=False, alias="isSplit")
    split_count: int = Field(default=0, ge=0, alias="splitCount")
    route: list[RouteStep] = Field(default_factory=list, description="Expanded hops with amounts")

    model_config = {"populate_by_name": True, "frozen": True}

    def min_amount_out_at(self, slippage_bps: int) -> int:
        """Minimum acceptable output for a slippage tolerance."""
        return calculate_min_amount_out(self.amount_out, slippage_bps)

    def blocks_since(self, current_block: int) -> int:
        return max(current_block - self.quoted_at_block, 0)

    def is_stale(self, current_block: int, threshold: int = QUOTE_STALE_BLOCKS) -> bool:
        """True once more than ``threshold`` blocks have passed since quoting."""
        return current_block - self.quoted_at_block > threshold

    def decoded_route(self) -> DecodedRoute:
        """Decode the packed route carried by this quote."""
        from gateway.codec import decode_route

        return decode_route(self.encoded_route)

    def expanded_hops(self) -> tuple[RouteHop, ...]:
        """Hops from the expanded ``route`` steps, amounts included."""
        return tuple(step.to_hop() for step in self.route)

    @property
    def price_impact_severity(self) -> PriceImpactSeverity:
        return price_impact_severity(self.price_impact_bps)


def calculate_min_amount_out(amount_out: int, slippage_bps: int) -> int:
    """Apply a slippage tolerance to an output amount (integer math, rounds down)."""
    if not 0 <= slippage_bps <= BPS_DENOMINATOR:
        raise ValueError(f"slippage_bps must be within 0..{BPS_DENOMINATOR}: {slippage_bps}")
    return amount_out * (BPS_DENOMINATOR - slippage_bps) // BPS_DENOMINATOR


def price_impact_severity(bps: int) -> PriceImpactSeverity:
    if bps < PRICE_IMPACT_LOW_BPS:
        return PriceImpactSeverity.LOW
    if bps < PRICE_IMPACT_MEDIUM_BPS:
        return PriceImpactSeverity.MEDIUM
    if bps < PRICE_IMPACT_HIGH_BPS:
        return PriceImpactSeverity.HIGH
    return PriceImpactSeverity.VERY_HIGH


def format_price_impact(bps: int) -> tuple[str, PriceImpactSeverity]:
    """Format price impact for display, e.g. ``("1.25%", MEDIUM)``."""
    if bps < 1:
        value = "<0.01%"
    else:
        value = f"{bps // 100}.{bps % 100:02d}%"
    return value, price_impact_severity(bps)


__all__ = [
    "PriceImpactSeverity",
    "Quote",
    "RouteStep",
    "calculate_min_amount_out",
    "format_price_impact",
    "price_impact_severity",
]
