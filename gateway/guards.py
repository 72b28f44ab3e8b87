"""Pre-flight guards run before any wallet interaction.

Each ``validate_*`` function returns a ValidationResult; each ``assert_*``
function raises the corresponding DomainError and logs any warning. Nothing
here touches the network.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

import structlog

from gateway.constants import (
    BPS_DENOMINATOR,
    HIGH_SLIPPAGE_WARNING_BPS,
    MAX_DEADLINE_SECONDS,
    MAX_SLIPPAGE_BPS,
    MIN_DEADLINE_SECONDS,
    MIN_OUTPUT_WARNING_RATIO,
    NORMALIZED_DECIMALS,
    QUOTE_STALE_BLOCKS,
)
from gateway.errors import DomainError, ErrorKind, MalformedRouteError
from gateway.models.quote import Quote
from gateway.models.request import ExecutionRequest
from gateway.models.route import DecodedRoute

logger = structlog.get_logger()


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a single guard check.

    Attributes:
        is_valid: False if the check failed
        error: The failure, when is_valid is False
        warning: Advisory message; never blocks execution
        implied_slippage_bps: Slippage implied by min output vs input
            (min-output check only)
    """

    is_valid: bool
    error: DomainError | None = None
    warning: str | None = None
    implied_slippage_bps: int | None = None

    @classmethod
    def ok(cls, warning: str | None = None, **extra: int | None) -> ValidationResult:
        return cls(is_valid=True, warning=warning, **extra)

    @classmethod
    def fail(cls, code: ErrorKind, message: str) -> ValidationResult:
        return cls(is_valid=False, error=DomainError(code, message))

    def raise_for_error(self, event: str) -> None:
        """Raise the failure if any; log the warning otherwise."""
        if self.error is not None:
            raise self.error
        if self.warning:
            logger.warning(event, warning=self.warning)


def _now() -> int:
    return int(time.time())


# --- Amounts ---


def validate_positive_amount(amount: int) -> ValidationResult:
    if amount <= 0:
        return ValidationResult.fail(ErrorKind.ZERO_AMOUNT, f"Amount must be positive, got {amount}")
    return ValidationResult.ok()


def assert_positive_amount(amount: int) -> None:
    validate_positive_amount(amount).raise_for_error("amount_warning")


def assert_sufficient_balance(amount: int, balance: int, symbol: str) -> None:
    """Raise InsufficientBalance when ``amount`` exceeds ``balance``."""
    if amount > balance:
        raise DomainError(
            ErrorKind.INSUFFICIENT_BALANCE,
            f"Insufficient {symbol} balance: need {amount}, have {balance}",
            f"Insufficient {symbol} balance",
            details={"amount": amount, "balance": balance, "symbol": symbol},
        )


# --- Deadlines ---


def validate_deadline(deadline: int, now: int | None = None) -> ValidationResult:
    """Check a deadline lies within [now + 30s, now + 3600s]."""
    now = _now() if now is None else now
    remaining = deadline - now

    if deadline <= now:
        return ValidationResult.fail(
            ErrorKind.DEADLINE_EXPIRED, f"Deadline {deadline} is not after current time {now}"
        )
    if remaining < MIN_DEADLINE_SECONDS:
        return ValidationResult.fail(
            ErrorKind.DEADLINE_TOO_SOON,
            f"Deadline is {remaining}s away, minimum is {MIN_DEADLINE_SECONDS}s",
        )
    if remaining > MAX_DEADLINE_SECONDS:
        return ValidationResult.fail(
            ErrorKind.DEADLINE_TOO_FAR,
            f"Deadline is {remaining}s away, maximum is {MAX_DEADLINE_SECONDS}s",
        )
    return ValidationResult.ok()


def assert_valid_deadline(deadline: int, now: int | None = None) -> None:
    validate_deadline(deadline, now).raise_for_error("deadline_warning")


def create_deadline(seconds_from_now: int, now: int | None = None) -> int:
    """Unix timestamp ``seconds_from_now`` seconds ahead, clamped to the valid window."""
    now = _now() if now is None else now
    seconds = min(max(seconds_from_now, MIN_DEADLINE_SECONDS), MAX_DEADLINE_SECONDS)
    return now + seconds


def is_deadline_valid(deadline: int, now: int | None = None) -> bool:
    return validate_deadline(deadline, now).is_valid


# --- Minimum output ---


def _normalize(amount: int, decimals: int) -> int:
    if decimals < NORMALIZED_DECIMALS:
        return amount * 10 ** (NORMALIZED_DECIMALS - decimals)
    if decimals > NORMALIZED_DECIMALS:
        return amount // 10 ** (decimals - NORMALIZED_DECIMALS)
    return amount


def validate_min_amount_out(
    amount_in: int,
    min_amount_out: int,
    in_decimals: int = NORMALIZED_DECIMALS,
    out_decimals: int = NORMALIZED_DECIMALS,
) -> ValidationResult:
    """Reject a zero minimum output; warn when it looks like very high slippage.

    Both amounts are normalized to 18 decimals before comparing. The 50%
    threshold assumes comparable token values, so falling below it is only a
    warning and never blocks cross-asset swaps.
    """
    if min_amount_out == 0:
        return ValidationResult.fail(
            ErrorKind.ZERO_MIN_OUTPUT, "Minimum output is zero; slippage protection disabled"
        )
    if amount_in == 0:
        return ValidationResult.fail(ErrorKind.ZERO_AMOUNT_IN, "Input amount is zero")

    normalized_in = _normalize(amount_in, in_decimals)
    normalized_min = _normalize(min_amount_out, out_decimals)

    numerator, denominator = MIN_OUTPUT_WARNING_RATIO
    if normalized_in > 0 and normalized_min * denominator < normalized_in * numerator:
        implied = (normalized_in - normalized_min) * BPS_DENOMINATOR // normalized_in
        return ValidationResult.ok(
            warning=(
                f"Minimum output is less than 50% of input value "
                f"({implied / 100:.2f}% implied slippage)"
            ),
            implied_slippage_bps=implied,
        )
    return ValidationResult.ok()


def assert_valid_min_amount_out(
    amount_in: int,
    min_amount_out: int,
    in_decimals: int = NORMALIZED_DECIMALS,
    out_decimals: int = NORMALIZED_DECIMALS,
) -> ValidationResult:
    """Raise on failure; log and return the result (with any warning) otherwise."""
    result = validate_min_amount_out(amount_in, min_amount_out, in_decimals, out_decimals)
    if result.error is not None:
        raise result.error
    if result.warning:
        logger.warning(
            "min_amount_out_low",
            amount_in=amount_in,
            min_amount_out=min_amount_out,
            implied_slippage_bps=result.implied_slippage_bps,
        )
    return result


# --- Slippage ---


def validate_slippage(slippage_bps: int) -> ValidationResult:
    if slippage_bps < 0:
        return ValidationResult.fail(
            ErrorKind.INVALID_SLIPPAGE, f"Slippage cannot be negative: {slippage_bps}"
        )
    if slippage_bps > MAX_SLIPPAGE_BPS:
        return ValidationResult.fail(
            ErrorKind.SLIPPAGE_TOO_HIGH,
            f"Slippage {slippage_bps} bps exceeds maximum {MAX_SLIPPAGE_BPS} bps",
        )
    if slippage_bps >= HIGH_SLIPPAGE_WARNING_BPS:
        return ValidationResult.ok(
            warning=f"High slippage tolerance ({slippage_bps / 100:.2f}%). You may receive less."
        )
    return ValidationResult.ok()


def assert_valid_slippage(slippage_bps: int) -> None:
    validate_slippage(slippage_bps).raise_for_error("slippage_high")


# --- Quote freshness ---


@dataclass(frozen=True)
class QuoteFreshness:
    """Advisory freshness of a quote; never blocks execution by itself."""

    is_stale: bool
    blocks_old: int | None = None
    seconds_old: int | None = None


def check_quote_freshness(
    quote: Quote,
    current_block: int | None = None,
    now: int | None = None,
    max_age_seconds: int | None = None,
    stale_blocks: int = QUOTE_STALE_BLOCKS,
) -> QuoteFreshness:
    """Report how old a quote is by block height and, optionally, wall time."""
    stale = False
    blocks_old = None
    seconds_old = None

    if current_block is not None:
        blocks_old = quote.blocks_since(current_block)
        stale = quote.is_stale(current_block, stale_blocks)

    if max_age_seconds is not None:
        now = _now() if now is None else now
        seconds_old = max(now - quote.quoted_at_timestamp, 0)
        stale = stale or seconds_old > max_age_seconds

    if stale:
        logger.warning("quote_stale", blocks_old=blocks_old, seconds_old=seconds_old)
    return QuoteFreshness(is_stale=stale, blocks_old=blocks_old, seconds_old=seconds_old)


# --- Combined pre-flight ---


@dataclass
class ValidationReport:
    """Everything validate_before_execution learned about a request."""

    route: DecodedRoute
    warnings: list[str] = field(default_factory=list)
    implied_slippage_bps: int | None = None


def validate_before_execution(
    request: ExecutionRequest,
    *,
    token_in_decimals: int = NORMALIZED_DECIMALS,
    token_out_decimals: int = NORMALIZED_DECIMALS,
    slippage_bps: int | None = None,
    now: int | None = None,
) -> ValidationReport:
    """Run every pre-flight check on a request, raising the first failure.

    Raises:
        DomainError: A guard failed, the route is malformed, split
            allocations do not add up to the input amount, or the native
            value does not match the input amount.
    """
    assert_positive_amount(request.amount_in)
    assert_valid_deadline(request.deadline, now)
    min_out = assert_valid_min_amount_out(
        request.amount_in, request.min_amount_out, token_in_decimals, token_out_decimals
    )

    warnings: list[str] = []
    if min_out.warning:
        warnings.append(min_out.warning)

    if slippage_bps is not None:
        slippage = validate_slippage(slippage_bps)
        slippage.raise_for_error("slippage_high")
        if slippage.warning:
            warnings.append(slippage.warning)

    route = request.decoded_route
    total = route.total_amount_in
    if total is not None and total != request.amount_in:
        raise MalformedRouteError(
            f"Split allocations sum to {total}, expected {request.amount_in}",
            details={"allocated": total, "amount_in": request.amount_in},
        )

    if request.native_value is not None and request.native_value != request.amount_in:
        raise DomainError(
            ErrorKind.ETH_MISMATCH,
            f"Native value {request.native_value} does not match input {request.amount_in}",
        )

    logger.debug(
        "preflight_passed",
        steps=route.total_steps,
        is_split=route.is_split,
        warnings=len(warnings),
    )
    return ValidationReport(
        route=route, warnings=warnings, implied_slippage_bps=min_out.implied_slippage_bps
    )


__all__ = [
    "QuoteFreshness",
    "ValidationReport",
    "ValidationResult",
    "assert_positive_amount",
    "assert_sufficient_balance",
    "assert_valid_deadline",
    "assert_valid_min_amount_out",
    "assert_valid_slippage",
    "check_quote_freshness",
    "create_deadline",
    "is_deadline_valid",
    "validate_before_execution",
    "validate_deadline",
    "validate_min_amount_out",
    "validate_positive_amount",
    "validate_slippage",
]
