"""Pydantic response models for the HTTP service and the decode CLI.

Route structures and execution snapshots are frozen dataclasses holding
raw bytes and ints. These models are their JSON form: camelCase aliases,
lowercase 0x addresses and uint256 values as decimal strings.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Discriminator, Field, Tag

from gateway.errors import DomainError
from gateway.execution.interfaces import Receipt
from gateway.execution.state import ExecutionState
from gateway.models.route import (
    BinPoolPayload,
    ClPoolPayload,
    DecodedRoute,
    PoolPayload,
    RouteHop,
    SubRoute,
    VaultPayload,
)
from gateway.models.types import Address, Uint256, format_address


class ClPoolResponse(BaseModel):
    """Concentrated-liquidity pool key."""

    type: Literal["CL"] = "CL"
    token0: Address
    token1: Address
    fee: int = Field(description="Fee in hundredths of a bip")
    tick_spacing: int = Field(alias="tickSpacing")
    hooks: Address
    zero_for_one: bool = Field(alias="zeroForOne")

    model_config = {"populate_by_name": True}


class BinPoolResponse(BaseModel):
    """Liquidity-book pool key."""

    type: Literal["BIN"] = "BIN"
    token0: Address
    token1: Address
    bin_step: int = Field(alias="binStep")
    hooks: Address
    swap_for_y: bool = Field(alias="swapForY")

    model_config = {"populate_by_name": True}


class VaultPoolResponse(BaseModel):
    """Vault used by a wrap or unwrap hop."""

    type: Literal["VAULT"] = "VAULT"
    vault: Address
    use_buffer: bool = Field(alias="useBuffer")

    model_config = {"populate_by_name": True}


def _get_pool_type(v: dict[str, Any] | ClPoolResponse | BinPoolResponse | VaultPoolResponse) -> str:
    """Discriminator function for the PoolResponse union type."""
    if isinstance(v, dict):
        return str(v.get("type", "CL"))
    return v.type


PoolResponse = Annotated[
    Annotated[ClPoolResponse, Tag("CL")]
    | Annotated[BinPoolResponse, Tag("BIN")]
    | Annotated[VaultPoolResponse, Tag("VAULT")],
    Discriminator(_get_pool_type),
]


def pool_response(pool: PoolPayload) -> ClPoolResponse | BinPoolResponse | VaultPoolResponse:
    if isinstance(pool, ClPoolPayload):
        return ClPoolResponse(
            token0=format_address(pool.token0),
            token1=format_address(pool.token1),
            fee=pool.fee,
            tick_spacing=pool.tick_spacing,
            hooks=format_address(pool.hooks),
            zero_for_one=pool.zero_for_one,
        )
    if isinstance(pool, BinPoolPayload):
        return BinPoolResponse(
            token0=format_address(pool.token0),
            token1=format_address(pool.token1),
            bin_step=pool.bin_step,
            hooks=format_address(pool.hooks),
            swap_for_y=pool.swap_for_y,
        )
    if isinstance(pool, VaultPayload):
        return VaultPoolResponse(vault=format_address(pool.vault), use_buffer=pool.use_buffer)
    raise TypeError(f"Unknown pool payload: {type(pool).__name__}")


class RouteHopResponse(BaseModel):
    """One hop of a decoded route."""

    action: str = Field(description="Action name, e.g. SWAP_CL")
    action_code: int = Field(alias="actionCode")
    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    pool: PoolResponse
    amount_in: Uint256 | None = Field(default=None, alias="amountIn")
    amount_out: Uint256 | None = Field(default=None, alias="amountOut")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_hop(cls, hop: RouteHop) -> "RouteHopResponse":
        return cls(
            action=hop.action.name,
            action_code=int(hop.action),
            token_in=format_address(hop.token_in),
            token_out=format_address(hop.token_out),
            pool=pool_response(hop.pool),
            amount_in=hop.amount_in,
            amount_out=hop.amount_out,
        )


class SubRouteResponse(BaseModel):
    steps: list[RouteHopResponse]
    amount: Uint256 | None = Field(default=None, description="Split allocation of the input")

    @classmethod
    def from_sub_route(cls, sub: SubRoute) -> "SubRouteResponse":
        return cls(steps=[RouteHopResponse.from_hop(hop) for hop in sub.hops], amount=sub.amount_in)


class DecodedRouteResponse(BaseModel):
    """A decoded route, one entry in ``routes`` per split path."""

    is_split: bool = Field(alias="isSplit")
    routes: list[SubRouteResponse]
    total_steps: int = Field(alias="totalSteps")
    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    description: str

    model_config = {"populate_by_name": True}

    @classmethod
    def from_route(cls, route: DecodedRoute) -> "DecodedRouteResponse":
        return cls(
            is_split=route.is_split,
            routes=[SubRouteResponse.from_sub_route(sub) for sub in route.sub_routes],
            total_steps=route.total_steps,
            token_in=format_address(route.token_in),
            token_out=format_address(route.token_out),
            description=route.describe(),
        )


class DecodeRouteResponse(BaseModel):
    """Response of ``POST /routes/decode``."""

    route: DecodedRouteResponse
    uses_buffer: bool = Field(alias="usesBuffer")
    total_amount_in: Uint256 | None = Field(
        default=None,
        alias="totalAmountIn",
        description="Sum of split allocations; absent for single routes.",
    )

    model_config = {"populate_by_name": True}


class PriceImpactResponse(BaseModel):
    value: str = Field(description="Formatted percentage, e.g. 1.25%")
    severity: str


class ValidateQuoteResponse(BaseModel):
    """Response of ``POST /quotes/validate``."""

    valid: bool = True
    min_amount_out: Uint256 = Field(alias="minAmountOut")
    warnings: list[str] = Field(default_factory=list)
    implied_slippage_bps: int | None = Field(default=None, alias="impliedSlippageBps")
    is_stale: bool = Field(alias="isStale")
    blocks_old: int | None = Field(default=None, alias="blocksOld")
    price_impact: PriceImpactResponse = Field(alias="priceImpact")
    route: str = Field(description="Human-readable route summary")
    uses_buffer: bool = Field(alias="usesBuffer")

    model_config = {"populate_by_name": True}


def _jsonable(value: Any) -> Any:
    if isinstance(value, bytes):
        return "0x" + value.hex()
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, list | tuple):
        return [_jsonable(v) for v in value]
    return value


class ErrorDetail(BaseModel):
    """Serializable form of a DomainError."""

    code: str
    message: str
    user_message: str = Field(alias="userMessage")
    is_user_rejection: bool = Field(alias="isUserRejection")
    is_retryable: bool = Field(alias="isRetryable")
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}

    @classmethod
    def from_error(cls, error: DomainError) -> "ErrorDetail":
        return cls(
            code=error.code.value,
            message=error.message,
            user_message=error.user_message,
            is_user_rejection=error.is_user_rejection,
            is_retryable=error.is_retryable,
            details={key: _jsonable(value) for key, value in error.details.items()},
        )


class ErrorResponse(BaseModel):
    """Body of every DomainError response."""

    error: ErrorDetail

    @classmethod
    def from_error(cls, error: DomainError) -> "ErrorResponse":
        return cls(error=ErrorDetail.from_error(error))


class ReceiptResponse(BaseModel):
    status: str
    gas_used: Uint256 = Field(alias="gasUsed")
    effective_gas_price: Uint256 = Field(alias="effectiveGasPrice")
    block_number: int = Field(alias="blockNumber")
    transaction_hash: str | None = Field(default=None, alias="transactionHash")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_receipt(cls, receipt: Receipt) -> "ReceiptResponse":
        return cls(
            status=receipt.status.value,
            gas_used=receipt.gas_used,
            effective_gas_price=receipt.effective_gas_price,
            block_number=receipt.block_number,
            transaction_hash=receipt.transaction_hash,
        )


class ExecutionStateResponse(BaseModel):
    """Serializable execution snapshot, for observers that forward state."""

    status: str
    transaction_hash: str | None = Field(default=None, alias="transactionHash")
    approval_hash: str | None = Field(default=None, alias="approvalHash")
    gas_limit: Uint256 | None = Field(default=None, alias="gasLimit")
    used_fallback_gas: bool = Field(default=False, alias="usedFallbackGas")
    receipt: ReceiptResponse | None = None
    error: ErrorDetail | None = None

    model_config = {"populate_by_name": True}

    @classmethod
    def from_state(cls, state: ExecutionState) -> "ExecutionStateResponse":
        return cls(
            status=state.status.value,
            transaction_hash=state.transaction_hash,
            approval_hash=state.approval_hash,
            gas_limit=state.gas_limit,
            used_fallback_gas=state.used_fallback_gas,
            receipt=ReceiptResponse.from_receipt(state.receipt) if state.receipt else None,
            error=ErrorDetail.from_error(state.error) if state.error else None,
        )


__all__ = [
    "BinPoolResponse",
    "ClPoolResponse",
    "DecodeRouteResponse",
    "DecodedRouteResponse",
    "ErrorDetail",
    "ErrorResponse",
    "ExecutionStateResponse",
    "PoolResponse",
    "PriceImpactResponse",
    "ReceiptResponse",
    "RouteHopResponse",
    "SubRouteResponse",
    "ValidateQuoteResponse",
    "VaultPoolResponse",
    "pool_response",
]
