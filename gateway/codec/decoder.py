"""Decoder for the packed route format returned by the smart quoter."""

from __future__ import annotations

import structlog
from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError

from gateway.errors import MalformedRouteError
from gateway.models.route import (
    BinPoolPayload,
    ClPoolPayload,
    DecodedRoute,
    PoolPayload,
    RouteAction,
    RouteHop,
    SubRoute,
    VaultPayload,
)
from gateway.models.types import address_to_bytes, format_address, hex_to_bytes

from .layout import (
    ACTION_SIZE,
    ADDRESS_SIZE,
    AMOUNT_SIZE,
    COUNT_SIZE,
    LENGTH_SIZE,
    MARKER_SIZE,
    PAYLOAD_SIZES,
    PAYLOAD_TYPES,
    SPLIT_MARKER,
)

logger = structlog.get_logger()


class _Reader:
    """Bounds-checked cursor over a byte string."""

    def __init__(self, data: bytes, context: str) -> None:
        self.data = data
        self.offset = 0
        self.context = context

    @property
    def remaining(self) -> int:
        return len(self.data) - self.offset

    def take(self, size: int, what: str) -> bytes:
        if size > self.remaining:
            raise MalformedRouteError(
                f"{self.context}: truncated {what} at offset {self.offset} "
                f"(need {size} bytes, have {self.remaining})",
                details={"offset": self.offset, "needed": size, "available": self.remaining},
            )
        chunk = self.data[self.offset : self.offset + size]
        self.offset += size
        return chunk

    def uint(self, size: int, what: str) -> int:
        return int.from_bytes(self.take(size, what), "big")

    def expect_end(self) -> None:
        if self.remaining:
            raise MalformedRouteError(
                f"{self.context}: {self.remaining} trailing bytes at offset {self.offset}",
                details={"offset": self.offset, "trailing": self.remaining},
            )


def decode_route(data: bytes | str) -> DecodedRoute:
    """Decode a packed route into a typed, validated route.

    Args:
        data: Raw bytes, or a hex string with or without 0x prefix

    Returns:
        DecodedRoute (single or split)

    Raises:
        MalformedRouteError: On inconsistent lengths, unknown action codes,
            malformed pool payloads, broken hop continuity, or split paths
            that disagree on input/output token
    """
    try:
        raw = hex_to_bytes(data)
    except (ValueError, TypeError) as err:
        raise MalformedRouteError(f"Encoded route is not valid hex: {err}") from err

    if len(raw) >= MARKER_SIZE and raw[:MARKER_SIZE] == SPLIT_MARKER:
        route = _decode_split(raw)
    else:
        reader = _Reader(raw, "route")
        route = DecodedRoute.single(_decode_hops(reader))
        reader.expect_end()

    logger.debug(
        "route_decoded",
        is_split=route.is_split,
        paths=len(route.sub_routes),
        total_steps=route.total_steps,
    )
    return route


def _decode_split(raw: bytes) -> DecodedRoute:
    reader = _Reader(raw, "split route")
    reader.take(MARKER_SIZE, "split marker")
    count = reader.uint(COUNT_SIZE, "path count")
    if count == 0:
        raise MalformedRouteError("split route has no paths")

    sub_routes: list[SubRoute] = []
    for index in range(count):
        length = reader.uint(LENGTH_SIZE, f"path {index} length")
        blob = reader.take(length, f"path {index} body")
        allocation = reader.uint(AMOUNT_SIZE, f"path {index} allocation")

        path_reader = _Reader(blob, f"split path {index}")
        hops = _decode_hops(path_reader)
        path_reader.expect_end()
        sub_routes.append(SubRoute(hops=tuple(hops), amount_in=allocation))

    reader.expect_end()

    first = sub_routes[0]
    for index, sub in enumerate(sub_routes[1:], start=1):
        if sub.token_in != first.token_in or sub.token_out != first.token_out:
            raise MalformedRouteError(
                f"split path {index} trades {format_address(sub.token_in)} -> "
                f"{format_address(sub.token_out)}, expected "
                f"{format_address(first.token_in)} -> {format_address(first.token_out)}",
                details={"path": index},
            )

    return DecodedRoute.split(sub_routes)


def _decode_hops(reader: _Reader) -> list[RouteHop]:
    hop_count = reader.uint(COUNT_SIZE, "hop count")
    if hop_count == 0:
        raise MalformedRouteError(f"{reader.context}: route has no hops")

    hops: list[RouteHop] = []
    for index in range(hop_count):
        hop = _decode_hop(reader, index)
        if hops and hops[-1].token_out != hop.token_in:
            raise MalformedRouteError(
                f"{reader.context}: hop {index} input {format_address(hop.token_in)} "
                f"does not match previous output {format_address(hops[-1].token_out)}",
                details={"hop": index},
            )
        hops.append(hop)
    return hops


def _decode_hop(reader: _Reader, index: int) -> RouteHop:
    code = reader.uint(ACTION_SIZE, f"hop {index} action")
    try:
        action = RouteAction(code)
    except ValueError as err:
        raise MalformedRouteError(
            f"{reader.context}: unknown action code {code} at hop {index}",
            details={"hop": index, "action": code},
        ) from err

    token_in = reader.take(ADDRESS_SIZE, f"hop {index} tokenIn")
    token_out = reader.take(ADDRESS_SIZE, f"hop {index} tokenOut")
    payload_length = reader.uint(LENGTH_SIZE, f"hop {index} payload length")
    payload = reader.take(payload_length, f"hop {index} payload")

    return RouteHop(
        action=action,
        token_in=token_in,
        token_out=token_out,
        pool=decode_pool_payload(action, payload),
    )


def decode_pool_payload(action: RouteAction, payload: bytes) -> PoolPayload:
    """Decode the ABI-encoded pool payload for one hop.

    Raises:
        MalformedRouteError: If the payload size or ABI words are invalid
    """
    expected = PAYLOAD_SIZES[action]
    if len(payload) != expected:
        raise MalformedRouteError(
            f"{action.name} payload must be {expected} bytes, got {len(payload)}",
            details={"action": action.name, "expected": expected, "actual": len(payload)},
        )

    try:
        values = abi_decode(list(PAYLOAD_TYPES[action]), payload)
    except DecodingError as err:
        raise MalformedRouteError(f"{action.name} payload is not valid ABI: {err}") from err

    if action == RouteAction.SWAP_CL:
        token0, token1, fee, tick_spacing, hooks, zero_for_one = values
        return ClPoolPayload(
            token0=address_to_bytes(token0),
            token1=address_to_bytes(token1),
            fee=fee,
            tick_spacing=tick_spacing,
            hooks=address_to_bytes(hooks),
            zero_for_one=zero_for_one,
        )

    if action == RouteAction.SWAP_BIN:
        token0, token1, bin_step, hooks, swap_for_y = values
        return BinPoolPayload(
            token0=address_to_bytes(token0),
            token1=address_to_bytes(token1),
            bin_step=bin_step,
            hooks=address_to_bytes(hooks),
            swap_for_y=swap_for_y,
        )

    vault, use_buffer = values
    return VaultPayload(vault=address_to_bytes(vault), use_buffer=use_buffer)


__all__ = ["decode_pool_payload", "decode_route"]
