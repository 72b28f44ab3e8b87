"""Protocol constants for gateway route execution.

Centralizes guard bounds, gas parameters and router function signatures.
"""

# Quote freshness: a quote older than this many blocks is flagged stale
QUOTE_STALE_BLOCKS = 3

# Deadline bounds, in seconds from now
MIN_DEADLINE_SECONDS = 30
MAX_DEADLINE_SECONDS = 3600

# Slippage bounds, in basis points
MAX_SLIPPAGE_BPS = 5000  # 50%
HIGH_SLIPPAGE_WARNING_BPS = 1000  # 10%
BPS_DENOMINATOR = 10_000

# Min-output heuristic: warn when min out is below this share of the input
MIN_OUTPUT_WARNING_RATIO = (1, 2)
NORMALIZED_DECIMALS = 18

# Transaction confirmation timeout
TX_TIMEOUT_SECONDS = 120.0

# Gas limit bounds and buffer
GAS_BUFFER_PERCENT = 20
MIN_GAS_LIMIT = 100_000
MAX_GAS_LIMIT = 2_000_000

# Route-aware gas fallback, used only when live estimation is unavailable.
# Per-hop constants are kept above observed costs for each action.
ROUTE_BASE_GAS = 60_000
SWAP_CL_GAS = 130_000
SWAP_BIN_GAS = 110_000
WRAP_GAS = 70_000
UNWRAP_GAS = 70_000
FALLBACK_SAFETY_MARGIN = 50_000
APPROVAL_GAS_FALLBACK = 60_000

# Router / token function signatures
EXECUTE_ROUTE_SIGNATURE = "executeRoute(bytes,uint256,uint256,address,uint256)"
EXECUTE_ROUTE_UNWRAP_ETH_SIGNATURE = "executeRouteUnwrapETH(bytes,uint256,uint256,address,uint256)"
ALLOWANCE_SIGNATURE = "allowance(address,address)"
APPROVE_SIGNATURE = "approve(address,uint256)"

# Price impact severity thresholds (bps, exclusive upper bounds)
PRICE_IMPACT_LOW_BPS = 100
PRICE_IMPACT_MEDIUM_BPS = 300
PRICE_IMPACT_HIGH_BPS = 500
