"""Domain error taxonomy.

Every failure that leaves this package is a DomainError carrying one
ErrorKind from a closed set. Contract reverts map onto the kinds named after
the contract errors; the lookup tables below are the only place those
names, selectors and user messages live.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from eth_utils import function_signature_to_4byte_selector


class ErrorKind(str, Enum):
    """Closed set of domain error codes."""

    # Codec
    MALFORMED_ROUTE = "MalformedRoute"

    # Pre-flight guards
    ZERO_AMOUNT = "ZeroAmount"
    ZERO_AMOUNT_IN = "ZeroAmountIn"
    ZERO_MIN_OUTPUT = "ZeroMinOutput"
    INVALID_SLIPPAGE = "InvalidSlippage"
    SLIPPAGE_TOO_HIGH = "SlippageTooHigh"
    DEADLINE_EXPIRED = "DeadlineExpired"
    DEADLINE_TOO_SOON = "DeadlineTooSoon"
    DEADLINE_TOO_FAR = "DeadlineTooFar"

    # Router contract errors
    AMOUNT_TOO_LARGE = "AmountTooLarge"
    ETH_MISMATCH = "ETHMismatch"
    ENFORCED_PAUSE = "EnforcedPause"
    INCONSISTENT_INPUT_TOKEN = "InconsistentInputToken"
    INCONSISTENT_OUTPUT_TOKEN = "InconsistentOutputToken"
    INSUFFICIENT_OUTPUT = "InsufficientOutput"
    INVALID_ADDRESS = "InvalidAddress"
    INVALID_ROUTE = "InvalidRoute"
    INVALID_SPLIT_ENCODING = "InvalidSplitEncoding"
    INVALID_STEP = "InvalidStep"
    ROUTE_TOO_LONG = "RouteTooLong"
    TRANSFER_FAILED = "TransferFailed"
    UNAUTHORIZED = "Unauthorized"
    WETH_MISMATCH = "WETHMismatch"

    # Quoter contract errors
    NO_ROUTE_FOUND = "NoRouteFound"
    INVALID_TOKEN = "InvalidToken"
    MAX_ROUTING_TOKENS_REACHED = "MaxRoutingTokensReached"
    TOKEN_NOT_FOUND = "TokenNotFound"

    # Buffer / staker contract errors
    ALLOCATION_MISMATCH = "AllocationMismatch"
    GATEWAY_ALREADY_EXISTS = "GatewayAlreadyExists"
    GATEWAY_NOT_FOUND = "GatewayNotFound"
    INSUFFICIENT_BUFFER = "InsufficientBuffer"
    INVALID_ALLOCATION = "InvalidAllocation"
    INVALID_BUFFER_TARGET = "InvalidBufferTarget"
    NOTHING_TO_PUSH = "NothingToPush"
    NOTHING_TO_REFILL = "NothingToRefill"
    POOL_ALREADY_EXISTS = "PoolAlreadyExists"
    POOL_NOT_FOUND = "PoolNotFound"
    ZERO_ADDRESS = "ZeroAddress"

    # Wallet / transaction lifecycle
    USER_REJECTED = "UserRejected"
    TX_TIMEOUT = "TxTimeout"
    APPROVAL_REVERTED = "ApprovalReverted"
    SWAP_REVERTED = "SwapReverted"
    WRAP_REVERTED = "WrapReverted"
    UNWRAP_REVERTED = "UnwrapReverted"

    # Infrastructure
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    NETWORK_ERROR = "NetworkError"
    GAS_PRICE_ERROR = "GasPriceError"
    NONCE_ERROR = "NonceError"

    UNKNOWN_ERROR = "UnknownError"


@dataclass(frozen=True)
class ContractError:
    """A custom error declared by one of the gateway contracts."""

    kind: ErrorKind
    domain: str  # "router" | "quoter" | "staker"

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def signature(self) -> str:
        return f"{self.name}()"

    @property
    def selector(self) -> str:
        """First 4 bytes of keccak256(signature), as 0x-prefixed lowercase hex."""
        return "0x" + function_signature_to_4byte_selector(self.signature).hex()


_CONTRACT_ERROR_LIST: tuple[ContractError, ...] = (
    # Router
    ContractError(ErrorKind.AMOUNT_TOO_LARGE, "router"),
    ContractError(ErrorKind.DEADLINE_EXPIRED, "router"),
    ContractError(ErrorKind.ETH_MISMATCH, "router"),
    ContractError(ErrorKind.ENFORCED_PAUSE, "router"),
    ContractError(ErrorKind.INCONSISTENT_INPUT_TOKEN, "router"),
    ContractError(ErrorKind.INCONSISTENT_OUTPUT_TOKEN, "router"),
    ContractError(ErrorKind.INSUFFICIENT_OUTPUT, "router"),
    ContractError(ErrorKind.INVALID_ADDRESS, "router"),
    ContractError(ErrorKind.INVALID_ROUTE, "router"),
    ContractError(ErrorKind.INVALID_SPLIT_ENCODING, "router"),
    ContractError(ErrorKind.INVALID_STEP, "router"),
    ContractError(ErrorKind.ROUTE_TOO_LONG, "router"),
    ContractError(ErrorKind.TRANSFER_FAILED, "router"),
    ContractError(ErrorKind.UNAUTHORIZED, "router"),
    ContractError(ErrorKind.WETH_MISMATCH, "router"),
    ContractError(ErrorKind.ZERO_AMOUNT, "router"),
    # Quoter
    ContractError(ErrorKind.NO_ROUTE_FOUND, "quoter"),
    ContractError(ErrorKind.INVALID_TOKEN, "quoter"),
    ContractError(ErrorKind.MAX_ROUTING_TOKENS_REACHED, "quoter"),
    ContractError(ErrorKind.TOKEN_NOT_FOUND, "quoter"),
    # Buffer / staker
    ContractError(ErrorKind.ALLOCATION_MISMATCH, "staker"),
    ContractError(ErrorKind.GATEWAY_ALREADY_EXISTS, "staker"),
    ContractError(ErrorKind.GATEWAY_NOT_FOUND, "staker"),
    ContractError(ErrorKind.INSUFFICIENT_BUFFER, "staker"),
    ContractError(ErrorKind.INVALID_ALLOCATION, "staker"),
    ContractError(ErrorKind.INVALID_BUFFER_TARGET, "staker"),
    ContractError(ErrorKind.NOTHING_TO_PUSH, "staker"),
    ContractError(ErrorKind.NOTHING_TO_REFILL, "staker"),
    ContractError(ErrorKind.POOL_ALREADY_EXISTS, "staker"),
    ContractError(ErrorKind.POOL_NOT_FOUND, "staker"),
    ContractError(ErrorKind.ZERO_ADDRESS, "staker"),
)

# name -> contract error
CONTRACT_ERRORS: Mapping[str, ContractError] = MappingProxyType(
    {err.name: err for err in _CONTRACT_ERROR_LIST}
)

# 0x-prefixed selector -> contract error
CONTRACT_ERRORS_BY_SELECTOR: Mapping[str, ContractError] = MappingProxyType(
    {err.selector: err for err in _CONTRACT_ERROR_LIST}
)

# Contract errors that may resolve on a fresh attempt
RETRYABLE_CONTRACT_ERRORS: frozenset[ErrorKind] = frozenset(
    {
        ErrorKind.DEADLINE_EXPIRED,
        ErrorKind.INSUFFICIENT_OUTPUT,
        ErrorKind.INSUFFICIENT_BUFFER,
    }
)

RETRYABLE_KINDS: frozenset[ErrorKind] = RETRYABLE_CONTRACT_ERRORS | {
    ErrorKind.USER_REJECTED,
    ErrorKind.NETWORK_ERROR,
    ErrorKind.GAS_PRICE_ERROR,
    ErrorKind.NONCE_ERROR,
}

USER_MESSAGES: Mapping[ErrorKind, str] = MappingProxyType(
    {
        ErrorKind.MALFORMED_ROUTE: "The quoted route could not be read. Please refresh the quote.",
        ErrorKind.ZERO_AMOUNT: "Please enter a valid amount.",
        ErrorKind.ZERO_AMOUNT_IN: "Please enter an amount to swap.",
        ErrorKind.ZERO_MIN_OUTPUT: (
            "Invalid slippage: minimum output cannot be zero. "
            "This would expose you to unlimited losses."
        ),
        ErrorKind.INVALID_SLIPPAGE: "Slippage tolerance cannot be negative.",
        ErrorKind.SLIPPAGE_TOO_HIGH: (
            "Slippage tolerance cannot exceed 50%. This would expose you to excessive losses."
        ),
        ErrorKind.DEADLINE_EXPIRED: "Transaction deadline has passed. Please try again.",
        ErrorKind.DEADLINE_TOO_SOON: (
            "Transaction deadline is too short. Please increase the deadline."
        ),
        ErrorKind.DEADLINE_TOO_FAR: (
            "Transaction deadline is too far in the future. Maximum is 1 hour."
        ),
        ErrorKind.AMOUNT_TOO_LARGE: "Amount exceeds maximum allowed",
        ErrorKind.ETH_MISMATCH: "ETH amount does not match input",
        ErrorKind.ENFORCED_PAUSE: "Contract is currently paused",
        ErrorKind.INCONSISTENT_INPUT_TOKEN: "Input token mismatch in route",
        ErrorKind.INCONSISTENT_OUTPUT_TOKEN: "Output token mismatch in route",
        ErrorKind.INSUFFICIENT_OUTPUT: (
            "Output amount less than minimum (try increasing slippage)"
        ),
        ErrorKind.INVALID_ADDRESS: "Invalid address provided",
        ErrorKind.INVALID_ROUTE: "Invalid swap route",
        ErrorKind.INVALID_SPLIT_ENCODING: "Split route encoding error",
        ErrorKind.INVALID_STEP: "Invalid step in route",
        ErrorKind.ROUTE_TOO_LONG: "Route exceeds maximum steps",
        ErrorKind.TRANSFER_FAILED: "Token transfer failed",
        ErrorKind.UNAUTHORIZED: "Not authorized to perform this action",
        ErrorKind.WETH_MISMATCH: "WETH address mismatch",
        ErrorKind.NO_ROUTE_FOUND: "No valid route found between tokens",
        ErrorKind.INVALID_TOKEN: "Token is not supported",
        ErrorKind.MAX_ROUTING_TOKENS_REACHED: "Maximum routing tokens exceeded",
        ErrorKind.TOKEN_NOT_FOUND: "Token not found in registry",
        ErrorKind.ALLOCATION_MISMATCH: "Gateway allocation does not sum to 100%",
        ErrorKind.GATEWAY_ALREADY_EXISTS: "Gateway already registered",
        ErrorKind.GATEWAY_NOT_FOUND: "Gateway not found",
        ErrorKind.INSUFFICIENT_BUFFER: "Buffer has insufficient liquidity",
        ErrorKind.INVALID_ALLOCATION: "Invalid allocation percentage",
        ErrorKind.INVALID_BUFFER_TARGET: "Invalid buffer target configuration",
        ErrorKind.NOTHING_TO_PUSH: "No excess buffer to push",
        ErrorKind.NOTHING_TO_REFILL: "Buffer does not need refill",
        ErrorKind.POOL_ALREADY_EXISTS: "Staking pool already exists",
        ErrorKind.POOL_NOT_FOUND: "Staking pool not found",
        ErrorKind.ZERO_ADDRESS: "Address cannot be zero",
        ErrorKind.USER_REJECTED: "Transaction cancelled",
        ErrorKind.TX_TIMEOUT: (
            "Transaction is taking longer than expected. It may still complete - "
            "check your wallet or block explorer."
        ),
        ErrorKind.APPROVAL_REVERTED: "Approval failed",
        ErrorKind.SWAP_REVERTED: "Swap failed on-chain",
        ErrorKind.WRAP_REVERTED: "Wrap failed on-chain",
        ErrorKind.UNWRAP_REVERTED: "Unwrap failed on-chain",
        ErrorKind.INSUFFICIENT_BALANCE: "Insufficient funds for transaction",
        ErrorKind.NETWORK_ERROR: "Network error. Please check your connection.",
        ErrorKind.GAS_PRICE_ERROR: "Gas price too low. Please increase gas.",
        ErrorKind.NONCE_ERROR: "Transaction nonce error. Please try again.",
        ErrorKind.UNKNOWN_ERROR: "An unexpected error occurred",
    }
)


class DomainError(Exception):
    """Classified failure with a technical message and a user-facing one.

    Instances are immutable; the underlying raw error, when there is one,
    is kept as ``__cause__`` and exposed as ``cause``.
    """

    def __init__(
        self,
        code: ErrorKind,
        message: str,
        user_message: str | None = None,
        *,
        is_user_rejection: bool = False,
        is_retryable: bool | None = None,
        details: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        object.__setattr__(self, "_code", code)
        object.__setattr__(self, "_message", message)
        object.__setattr__(self, "_user_message", user_message or USER_MESSAGES[code])
        object.__setattr__(self, "_is_user_rejection", is_user_rejection)
        object.__setattr__(
            self,
            "_is_retryable",
            code in RETRYABLE_KINDS if is_retryable is None else is_retryable,
        )
        object.__setattr__(self, "_details", MappingProxyType(dict(details or {})))
        if cause is not None:
            self.__cause__ = cause

    def __setattr__(self, name: str, value: Any) -> None:
        # Exception machinery sets these while raising / chaining
        if name in ("__cause__", "__context__", "__traceback__", "__suppress_context__", "__notes__"):
            super().__setattr__(name, value)
            return
        raise AttributeError(f"DomainError is immutable (tried to set {name!r})")

    @property
    def code(self) -> ErrorKind:
        return self._code

    @property
    def message(self) -> str:
        return self._message

    @property
    def user_message(self) -> str:
        return self._user_message

    @property
    def is_user_rejection(self) -> bool:
        return self._is_user_rejection

    @property
    def is_retryable(self) -> bool:
        return self._is_retryable

    @property
    def details(self) -> Mapping[str, Any]:
        return self._details

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__

    def __str__(self) -> str:
        return f"[{self._code.value}] {self._message}"

    def __repr__(self) -> str:
        return f"DomainError(code={self._code.value!r}, message={self._message!r})"


class MalformedRouteError(DomainError):
    """Encoded route bytes are inconsistent or unparseable."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorKind.MALFORMED_ROUTE, message, details=details)


class RevertError(Exception):
    """A call or simulation reverted on-chain.

    Collaborators raise this for reverts so that the gas estimator can tell a
    revert (propagate) from a transport failure (fall back), and so the
    classifier can look the error up by name or selector.
    """

    def __init__(
        self,
        message: str = "execution reverted",
        *,
        error_name: str | None = None,
        data: bytes | str | None = None,
        args: tuple[Any, ...] = (),
    ) -> None:
        super().__init__(message)
        self.error_name = error_name
        if isinstance(data, str):
            text = data[2:] if data.startswith(("0x", "0X")) else data
            try:
                data = bytes.fromhex(text)
            except ValueError:
                data = None
        self.data: bytes | None = data
        self.revert_args = tuple(args)

    @property
    def selector(self) -> str | None:
        if self.data is None or len(self.data) < 4:
            return None
        return "0x" + self.data[:4].hex()


class UserRejectedRequestError(Exception):
    """The wallet owner declined to sign."""

    def __init__(self, message: str = "User rejected the request") -> None:
        super().__init__(message)


__all__ = [
    "CONTRACT_ERRORS",
    "CONTRACT_ERRORS_BY_SELECTOR",
    "RETRYABLE_CONTRACT_ERRORS",
    "RETRYABLE_KINDS",
    "USER_MESSAGES",
    "ContractError",
    "DomainError",
    "ErrorKind",
    "MalformedRouteError",
    "RevertError",
    "UserRejectedRequestError",
]
