"""API endpoints for route inspection and quote validation."""

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from gateway.codec import decode_route
from gateway.config import ExecutionConfig
from gateway.guards import assert_valid_slippage, check_quote_freshness, validate_before_execution
from gateway.models.quote import Quote, format_price_impact
from gateway.models.request import ExecutionRequest
from gateway.models.responses import (
    DecodedRouteResponse,
    DecodeRouteResponse,
    PriceImpactResponse,
    ValidateQuoteResponse,
)
from gateway.models.types import Address, Bytes, Uint256

logger = structlog.get_logger()

router = APIRouter()


def get_config() -> ExecutionConfig:
    """Dependency provider for the execution config.

    Override this in tests:
        app.dependency_overrides[get_config] = lambda: ExecutionConfig(...)
    """
    return ExecutionConfig.from_env()


class DecodeRouteRequest(BaseModel):
    encoded_route: Bytes = Field(alias="encodedRoute")

    model_config = {"populate_by_name": True}


class ValidateQuoteRequest(BaseModel):
    """A quote plus the parameters the user is about to execute it with."""

    quote: Quote
    amount_in: Uint256 = Field(alias="amountIn")
    slippage_bps: int = Field(alias="slippageBps")
    recipient: Address
    deadline: Uint256
    current_block: int | None = Field(default=None, ge=0, alias="currentBlock")
    token_in_decimals: int = Field(default=18, ge=0, le=77, alias="tokenInDecimals")
    token_out_decimals: int = Field(default=18, ge=0, le=77, alias="tokenOutDecimals")
    native_value: Uint256 | None = Field(default=None, alias="nativeValue")
    unwrap_to_native: bool = Field(default=False, alias="unwrapToNative")

    model_config = {"populate_by_name": True}


@router.post("/routes/decode", response_model_exclude_none=True)
async def decode(body: DecodeRouteRequest) -> DecodeRouteResponse:
    """Decode a packed route.

    Malformed input is reported as a 422 with the DomainError payload (see
    the exception handler in ``gateway.api.main``).
    """
    route = decode_route(body.encoded_route)
    logger.info("route_decode_request", steps=route.total_steps, is_split=route.is_split)
    return DecodeRouteResponse(
        route=DecodedRouteResponse.from_route(route),
        uses_buffer=route.uses_buffer,
        total_amount_in=route.total_amount_in,
    )


@router.post("/quotes/validate", response_model_exclude_none=True)
async def validate_quote(
    body: ValidateQuoteRequest,
    config: ExecutionConfig = Depends(get_config),
) -> ValidateQuoteResponse:
    """Run the pre-flight guards against a quote.

    Returns the minimum output implied by the slippage tolerance, advisory
    warnings and freshness. Guard failures are reported as a 422 with the
    DomainError payload.
    """
    quote = body.quote
    assert_valid_slippage(body.slippage_bps)
    min_amount_out = quote.min_amount_out_at(body.slippage_bps)

    request = ExecutionRequest(
        route=quote.encoded_route,
        amount_in=body.amount_in,
        min_amount_out=min_amount_out,
        recipient=body.recipient,
        deadline=body.deadline,
        native_value=body.native_value,
        unwrap_to_native=body.unwrap_to_native,
    )
    report = validate_before_execution(
        request,
        token_in_decimals=body.token_in_decimals,
        token_out_decimals=body.token_out_decimals,
        slippage_bps=body.slippage_bps,
    )
    freshness = check_quote_freshness(
        quote, current_block=body.current_block, stale_blocks=config.quote_stale_blocks
    )
    impact, severity = format_price_impact(quote.price_impact_bps)

    return ValidateQuoteResponse(
        min_amount_out=min_amount_out,
        warnings=report.warnings,
        implied_slippage_bps=report.implied_slippage_bps,
        is_stale=freshness.is_stale,
        blocks_old=freshness.blocks_old,
        price_impact=PriceImpactResponse(value=impact, severity=severity.value),
        route=report.route.describe(),
        uses_buffer=report.route.uses_buffer,
    )
