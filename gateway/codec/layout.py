"""Packed route byte layout.

Single route::

    [hopCount:1]
    per hop: [action:1][tokenIn:20][tokenOut:20][payloadLen:2][payload:payloadLen]

Split route::

    [0x00 0x01][count:1]
    per sub-route: [len:2][single route:len][allocation:32]

All integers are big-endian. Payloads are standard ``abi.encode`` of static
types, so each action has a fixed payload size.
"""

from gateway.models.route import RouteAction

SPLIT_MARKER = b"\x00\x01"

MARKER_SIZE = 2
COUNT_SIZE = 1
ACTION_SIZE = 1
ADDRESS_SIZE = 20
LENGTH_SIZE = 2
AMOUNT_SIZE = 32

MAX_COUNT = 0xFF
MAX_SEGMENT_LENGTH = 0xFFFF

# abi.encode(address token0, address token1, uint24 fee, int24 tickSpacing,
#            address hooks, bool zeroForOne)
CL_PAYLOAD_TYPES = ("address", "address", "uint24", "int24", "address", "bool")

# abi.encode(address token0, address token1, uint16 binStep, address hooks, bool swapForY)
BIN_PAYLOAD_TYPES = ("address", "address", "uint16", "address", "bool")

# abi.encode(address vault, bool useBuffer)
VAULT_PAYLOAD_TYPES = ("address", "bool")

PAYLOAD_TYPES: dict[RouteAction, tuple[str, ...]] = {
    RouteAction.SWAP_CL: CL_PAYLOAD_TYPES,
    RouteAction.SWAP_BIN: BIN_PAYLOAD_TYPES,
    RouteAction.WRAP: VAULT_PAYLOAD_TYPES,
    RouteAction.UNWRAP: VAULT_PAYLOAD_TYPES,
}

# Every payload field is a static type occupying one 32-byte word
PAYLOAD_SIZES: dict[RouteAction, int] = {
    action: 32 * len(types) for action, types in PAYLOAD_TYPES.items()
}

__all__ = [
    "ACTION_SIZE",
    "ADDRESS_SIZE",
    "AMOUNT_SIZE",
    "BIN_PAYLOAD_TYPES",
    "CL_PAYLOAD_TYPES",
    "COUNT_SIZE",
    "LENGTH_SIZE",
    "MARKER_SIZE",
    "MAX_COUNT",
    "MAX_SEGMENT_LENGTH",
    "PAYLOAD_SIZES",
    "PAYLOAD_TYPES",
    "SPLIT_MARKER",
    "VAULT_PAYLOAD_TYPES",
]
