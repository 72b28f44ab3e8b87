"""Execution configuration."""

import os
from dataclasses import dataclass

from gateway.constants import (
    GAS_BUFFER_PERCENT,
    MAX_GAS_LIMIT,
    MIN_GAS_LIMIT,
    QUOTE_STALE_BLOCKS,
    TX_TIMEOUT_SECONDS,
)


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value is not None else default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value is not None else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class ExecutionConfig:
    """Runtime knobs for the execution orchestrator and gas estimator.

    Attributes:
        tx_timeout_seconds: Bound on each receipt wait (approval and swap)
        reconcile_timeout_seconds: Bound on the receipt wait in reconcile()
        gas_buffer_percent: Percentage added on top of the gas estimate
        min_gas_limit: Lower clamp for the final gas limit
        max_gas_limit: Upper clamp for the final gas limit
        quote_stale_blocks: Block age after which a quote is flagged stale
        infinite_approval: Approve 2^256-1 instead of the exact input amount
        read_retries: Extra attempts for retryable read-only RPC failures
        retry_initial_delay: First backoff delay in seconds
        retry_max_delay: Backoff delay cap in seconds
    """

    tx_timeout_seconds: float = TX_TIMEOUT_SECONDS
    reconcile_timeout_seconds: float = 15.0
    gas_buffer_percent: int = GAS_BUFFER_PERCENT
    min_gas_limit: int = MIN_GAS_LIMIT
    max_gas_limit: int = MAX_GAS_LIMIT
    quote_stale_blocks: int = QUOTE_STALE_BLOCKS
    infinite_approval: bool = False
    read_retries: int = 2
    retry_initial_delay: float = 0.5
    retry_max_delay: float = 5.0

    def __post_init__(self) -> None:
        if self.tx_timeout_seconds <= 0:
            raise ValueError("tx_timeout_seconds must be positive")
        if self.gas_buffer_percent < 0:
            raise ValueError("gas_buffer_percent cannot be negative")
        if self.min_gas_limit > self.max_gas_limit:
            raise ValueError("min_gas_limit cannot exceed max_gas_limit")
        if self.read_retries < 0:
            raise ValueError("read_retries cannot be negative")

    @classmethod
    def from_env(cls) -> "ExecutionConfig":
        """Build a config from GATEWAY_* environment variables.

        - GATEWAY_TX_TIMEOUT_SECONDS (default: 120)
        - GATEWAY_RECONCILE_TIMEOUT_SECONDS (default: 15)
        - GATEWAY_GAS_BUFFER_PERCENT (default: 20)
        - GATEWAY_MIN_GAS_LIMIT / GATEWAY_MAX_GAS_LIMIT
        - GATEWAY_QUOTE_STALE_BLOCKS (default: 3)
        - GATEWAY_INFINITE_APPROVAL (default: false)
        - GATEWAY_READ_RETRIES (default: 2)
        """
        defaults = cls()
        return cls(
            tx_timeout_seconds=_env_float("GATEWAY_TX_TIMEOUT_SECONDS", defaults.tx_timeout_seconds),
            reconcile_timeout_seconds=_env_float(
                "GATEWAY_RECONCILE_TIMEOUT_SECONDS", defaults.reconcile_timeout_seconds
            ),
            gas_buffer_percent=_env_int("GATEWAY_GAS_BUFFER_PERCENT", defaults.gas_buffer_percent),
            min_gas_limit=_env_int("GATEWAY_MIN_GAS_LIMIT", defaults.min_gas_limit),
            max_gas_limit=_env_int("GATEWAY_MAX_GAS_LIMIT", defaults.max_gas_limit),
            quote_stale_blocks=_env_int("GATEWAY_QUOTE_STALE_BLOCKS", defaults.quote_stale_blocks),
            infinite_approval=_env_bool("GATEWAY_INFINITE_APPROVAL", defaults.infinite_approval),
            read_retries=_env_int("GATEWAY_READ_RETRIES", defaults.read_retries),
            retry_initial_delay=_env_float(
                "GATEWAY_RETRY_INITIAL_DELAY", defaults.retry_initial_delay
            ),
            retry_max_delay=_env_float("GATEWAY_RETRY_MAX_DELAY", defaults.retry_max_delay),
        )


# Default configuration instance
DEFAULT_EXECUTION_CONFIG = ExecutionConfig()
