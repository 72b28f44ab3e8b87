"""Shared type definitions for gateway models.

Addresses travel through the codec and the route models as raw 20-byte
values. They are rendered as ``0x``-prefixed lowercase hex only at the
presentation boundary (API responses, logs, transaction parameters).
"""

from typing import Annotated, Any

from pydantic import BeforeValidator, Field, PlainSerializer

# Maximum uint256 value
UINT256_MAX = 2**256 - 1

ADDRESS_LENGTH = 20


def validate_uint256(value: Any) -> int:
    """Validate that a value is a valid uint256 integer.

    Args:
        value: Value to validate (int or decimal string)

    Returns:
        Value as int

    Raises:
        ValueError: If value is not a non-negative integer within uint256 range
    """
    if isinstance(value, bool):
        raise ValueError("Uint256 cannot be a boolean")

    if isinstance(value, str):
        try:
            value = int(value)
        except ValueError as err:
            raise ValueError(f"Uint256 must be a decimal integer string: '{value}'") from err

    if not isinstance(value, int):
        raise ValueError(f"Uint256 must be string or int, got {type(value).__name__}")

    if value < 0:
        raise ValueError(f"Uint256 cannot be negative: {value}")
    if value > UINT256_MAX:
        raise ValueError(f"Uint256 overflow: {value} > 2^256-1")

    return value


# Ethereum address (40 hex chars after 0x prefix)
Address = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]{40}$")]

# 256-bit unsigned integer; accepts int or decimal string, stored as int,
# rendered as a decimal string in JSON
Uint256 = Annotated[
    int,
    BeforeValidator(validate_uint256),
    PlainSerializer(str, return_type=str, when_used="json"),
    Field(description="256-bit unsigned integer"),
]

# Arbitrary hex bytes
Bytes = Annotated[str, Field(pattern=r"^(0x)?([a-fA-F0-9]{2})*$")]


def normalize_address(address: str, *, validate: bool = False) -> str:
    """Normalize an Ethereum address to lowercase.

    Args:
        address: An Ethereum address (with or without 0x prefix)
        validate: If True, raises ValueError for invalid addresses.

    Returns:
        Lowercase address with 0x prefix

    Raises:
        ValueError: If validate=True and address is not a valid Ethereum address
    """
    addr = address.lower()
    if not addr.startswith("0x"):
        addr = "0x" + addr

    if validate and not is_valid_address(addr):
        raise ValueError(f"Invalid address: {address}")

    return addr


def is_valid_address(address: str) -> bool:
    """Check if a string is a valid Ethereum address.

    Args:
        address: String to validate

    Returns:
        True if valid Ethereum address format
    """
    if not isinstance(address, str):
        return False
    if not address.startswith("0x"):
        return False
    if len(address) != 42:
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False


def address_to_bytes(address: str | bytes) -> bytes:
    """Convert a hex address (any case, optional 0x) to its raw 20 bytes.

    Raises:
        ValueError: If the input is not exactly 20 bytes
    """
    if isinstance(address, bytes):
        raw = address
    else:
        raw = bytes.fromhex(normalize_address(address)[2:])
    if len(raw) != ADDRESS_LENGTH:
        raise ValueError(f"Address must be {ADDRESS_LENGTH} bytes, got {len(raw)}")
    return raw


def format_address(raw: bytes) -> str:
    """Render raw address bytes as a lowercase 0x-prefixed string."""
    return "0x" + raw.hex()


def hex_to_bytes(data: str | bytes) -> bytes:
    """Parse a hex string (with or without 0x) into bytes; bytes pass through."""
    if isinstance(data, bytes | bytearray | memoryview):
        return bytes(data)
    text = data[2:] if data[:2] in ("0x", "0X") else data
    return bytes.fromhex(text)
