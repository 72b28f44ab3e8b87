"""Classification of raw failures into domain errors.

This is the single place that decides whether a failure is a user
rejection, a known contract revert, an infrastructure problem, or unknown,
and therefore whether the caller should offer a retry.
"""

from __future__ import annotations

import re
from typing import Any

import structlog

from gateway.errors import (
    CONTRACT_ERRORS,
    CONTRACT_ERRORS_BY_SELECTOR,
    ContractError,
    DomainError,
    ErrorKind,
    RevertError,
    UserRejectedRequestError,
)

logger = structlog.get_logger()

REJECTION_PHRASES = ("user rejected", "user denied", "user cancelled", "user canceled")

# Ordered: first match wins
INFRA_PATTERNS: tuple[tuple[tuple[str, ...], ErrorKind], ...] = (
    (("insufficient funds",), ErrorKind.INSUFFICIENT_BALANCE),
    (("nonce too low", "nonce too high", "invalid nonce", "nonce"), ErrorKind.NONCE_ERROR),
    (("replacement fee too low", "underpriced"), ErrorKind.GAS_PRICE_ERROR),
    (("network", "timeout", "timed out", "connection"), ErrorKind.NETWORK_ERROR),
)

_SELECTOR_RE = re.compile(r"0x[a-fA-F0-9]{8}(?![a-fA-F0-9])")
_REASON_RE = re.compile(r'reason="([^"]+)"')

MAX_DISPLAY_MESSAGE_LENGTH = 100
GENERIC_FAILURE_MESSAGE = "Transaction failed. Please try again."


def classify(error: BaseException | object) -> DomainError:
    """Map any raw failure onto a DomainError.

    Dispatch order: already-classified errors, wallet rejections, builtin
    transport errors, contract reverts (by name, revert-data selector, then
    the text of revert messages), infrastructure message patterns, and
    finally UnknownError.
    """
    if isinstance(error, DomainError):
        return error

    cause = error if isinstance(error, BaseException) else None
    message = _error_message(error)

    if _is_rejection(error, message):
        return DomainError(
            ErrorKind.USER_REJECTED,
            message or "User rejected the request",
            is_user_rejection=True,
            cause=cause,
        )

    if isinstance(error, TimeoutError | ConnectionError):
        return DomainError(ErrorKind.NETWORK_ERROR, message, cause=cause)

    contract_error, revert_args = _match_contract_error(error, message)
    if contract_error is not None:
        details: dict[str, Any] = {"domain": contract_error.domain}
        if revert_args:
            details["args"] = list(revert_args)
        return DomainError(
            contract_error.kind,
            f"Contract reverted: {contract_error.name}",
            details=details,
            cause=cause,
        )

    infra_kind = _match_infra(message)
    if infra_kind is not None:
        return DomainError(infra_kind, message, cause=cause)

    if cause is None:
        return DomainError(ErrorKind.UNKNOWN_ERROR, message or "Unknown error", cause=None)

    return DomainError(
        ErrorKind.UNKNOWN_ERROR,
        message,
        simplify_error_message(message),
        cause=cause,
    )


def _error_message(error: object) -> str:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


def _is_rejection(error: object, message: str) -> bool:
    if isinstance(error, UserRejectedRequestError):
        return True
    lower = message.lower()
    return any(phrase in lower for phrase in REJECTION_PHRASES)


def _match_contract_error(
    error: object, message: str
) -> tuple[ContractError | None, tuple[Any, ...]]:
    """Look a revert up by error name, then selector, then message text.

    The message text is only searched for reverts: a RevertError, or an
    exception whose message mentions a revert.
    """
    if isinstance(error, RevertError):
        if error.error_name and error.error_name in CONTRACT_ERRORS:
            return CONTRACT_ERRORS[error.error_name], error.revert_args
        selector = error.selector
        if selector is not None and selector in CONTRACT_ERRORS_BY_SELECTOR:
            return CONTRACT_ERRORS_BY_SELECTOR[selector], error.revert_args
    elif not isinstance(error, BaseException) or "revert" not in message.lower():
        return None, ()

    for match in _SELECTOR_RE.finditer(message):
        contract_error = CONTRACT_ERRORS_BY_SELECTOR.get(match.group(0).lower())
        if contract_error is not None:
            return contract_error, ()

    for name, contract_error in CONTRACT_ERRORS.items():
        if re.search(rf"\b{name}\b", message):
            return contract_error, ()

    return None, ()


def _match_infra(message: str) -> ErrorKind | None:
    lower = message.lower()
    for phrases, kind in INFRA_PATTERNS:
        if any(phrase in lower for phrase in phrases):
            return kind
    return None


def simplify_error_message(message: str) -> str:
    """Reduce a technical error message to something displayable."""
    lower = message.lower()

    if "execution reverted" in lower:
        reason = _REASON_RE.search(message)
        if reason:
            return reason.group(1)
        return GENERIC_FAILURE_MESSAGE

    if "gas required exceeds" in lower:
        return "Transaction would fail. Check your input amounts."

    if "insufficient allowance" in lower:
        return "Token approval needed"

    if len(message) > MAX_DISPLAY_MESSAGE_LENGTH:
        return GENERIC_FAILURE_MESSAGE

    return message or "An unexpected error occurred"


def is_user_rejection(error: BaseException | object) -> bool:
    return classify(error).is_user_rejection


def is_retryable(error: BaseException | object) -> bool:
    return classify(error).is_retryable


def get_user_message(error: BaseException | object) -> str:
    return classify(error).user_message


def log_error(context: str, error: BaseException | object, **info: Any) -> DomainError:
    """Classify and log a failure with its raw cause; returns the DomainError."""
    domain_error = classify(error)
    cause = domain_error.cause
    logger.error(
        "domain_error",
        context=context,
        code=domain_error.code.value,
        message=domain_error.message,
        user_message=domain_error.user_message,
        retryable=domain_error.is_retryable,
        details=dict(domain_error.details),
        cause=repr(cause) if cause is not None else None,
        **info,
    )
    return domain_error


__all__ = [
    "classify",
    "get_user_message",
    "is_retryable",
    "is_user_rejection",
    "log_error",
    "simplify_error_message",
]
