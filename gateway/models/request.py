"""Validated input to the execution orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property

from gateway.models.route import DecodedRoute
from gateway.models.types import UINT256_MAX, hex_to_bytes, normalize_address


@dataclass(frozen=True)
class ExecutionRequest:
    """Parameters for one router execution.

    ``route`` may be the already-decoded route or the raw packed bytes (or
    hex) returned by the quoter. Build requests only after the quote guard
    checks have passed (see ``gateway.guards.validate_before_execution``).

    Attributes:
        route: Decoded route, or the packed route as bytes / hex string
        amount_in: Total input amount, in the input token's base units
        min_amount_out: Minimum acceptable output (slippage protection)
        recipient: Address receiving the output tokens
        deadline: Unix timestamp (seconds) after which the router reverts
        native_value: Native currency sent with the call (native input only)
        unwrap_to_native: Unwrap the wrapped native output before delivery
    """

    route: DecodedRoute | bytes | str
    amount_in: int
    min_amount_out: int
    recipient: str
    deadline: int
    native_value: int | None = None
    unwrap_to_native: bool = False

    def __post_init__(self) -> None:
        for name in ("amount_in", "min_amount_out", "deadline"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be int, got {type(value).__name__}")
            if not 0 <= value <= UINT256_MAX:
                raise ValueError(f"{name} out of uint256 range: {value}")
        if self.native_value is not None and not 0 <= self.native_value <= UINT256_MAX:
            raise ValueError(f"native_value out of uint256 range: {self.native_value}")
        object.__setattr__(self, "recipient", normalize_address(self.recipient, validate=True))

    @cached_property
    def decoded_route(self) -> DecodedRoute:
        if isinstance(self.route, DecodedRoute):
            return self.route
        from gateway.codec import decode_route

        return decode_route(self.route)

    @cached_property
    def encoded_route(self) -> bytes:
        if isinstance(self.route, DecodedRoute):
            from gateway.codec import encode_route

            return encode_route(self.route)
        return hex_to_bytes(self.route)

    @property
    def is_native_input(self) -> bool:
        return self.native_value is not None and self.native_value > 0


__all__ = ["ExecutionRequest"]
