"""Encoder for the packed route format.

Routes are produced upstream by the smart quoter; this encoder exists for
tests and tooling and is the exact inverse of ``decode_route``.
"""

from __future__ import annotations

from eth_abi import encode as abi_encode

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
from gateway.models.types import UINT256_MAX

from .layout import (
    AMOUNT_SIZE,
    LENGTH_SIZE,
    MAX_COUNT,
    MAX_SEGMENT_LENGTH,
    PAYLOAD_TYPES,
    SPLIT_MARKER,
)


def encode_route(route: DecodedRoute) -> bytes:
    """Encode a route into its packed byte form.

    Raises:
        ValueError: If the route cannot be represented (too many hops or
            paths, oversized segments, missing split allocations)
    """
    if not route.is_split:
        if len(route.sub_routes) != 1:
            raise ValueError("single route must have exactly one path")
        return encode_hops(route.sub_routes[0].hops)

    if not 0 < len(route.sub_routes) <= MAX_COUNT:
        raise ValueError(f"split route must have 1..{MAX_COUNT} paths")

    parts = [SPLIT_MARKER, bytes([len(route.sub_routes)])]
    for sub in route.sub_routes:
        parts.append(_encode_split_segment(sub))
    return b"".join(parts)


def _encode_split_segment(sub: SubRoute) -> bytes:
    if sub.amount_in is None:
        raise ValueError("split path is missing its input allocation")
    if not 0 <= sub.amount_in <= UINT256_MAX:
        raise ValueError(f"allocation out of uint256 range: {sub.amount_in}")

    body = encode_hops(sub.hops)
    if len(body) > MAX_SEGMENT_LENGTH:
        raise ValueError(f"split path is {len(body)} bytes, max {MAX_SEGMENT_LENGTH}")

    return (
        len(body).to_bytes(LENGTH_SIZE, "big")
        + body
        + sub.amount_in.to_bytes(AMOUNT_SIZE, "big")
    )


def encode_hops(hops: tuple[RouteHop, ...] | list[RouteHop]) -> bytes:
    """Encode a hop sequence as a single route blob."""
    if not 0 < len(hops) <= MAX_COUNT:
        raise ValueError(f"route must have 1..{MAX_COUNT} hops")

    parts = [bytes([len(hops)])]
    for hop in hops:
        payload = encode_pool_payload(hop.action, hop.pool)
        parts.append(
            bytes([int(hop.action)])
            + hop.token_in
            + hop.token_out
            + len(payload).to_bytes(LENGTH_SIZE, "big")
            + payload
        )
    return b"".join(parts)


def encode_pool_payload(action: RouteAction, pool: PoolPayload) -> bytes:
    """ABI-encode the pool payload for one hop."""
    types = list(PAYLOAD_TYPES[action])

    if action == RouteAction.SWAP_CL:
        if not isinstance(pool, ClPoolPayload):
            raise ValueError("SWAP_CL hop requires a ClPoolPayload")
        values: tuple = (
            pool.token0,
            pool.token1,
            pool.fee,
            pool.tick_spacing,
            pool.hooks,
            pool.zero_for_one,
        )
    elif action == RouteAction.SWAP_BIN:
        if not isinstance(pool, BinPoolPayload):
            raise ValueError("SWAP_BIN hop requires a BinPoolPayload")
        values = (pool.token0, pool.token1, pool.bin_step, pool.hooks, pool.swap_for_y)
    else:
        if not isinstance(pool, VaultPayload):
            raise ValueError(f"{action.name} hop requires a VaultPayload")
        values = (pool.vault, pool.use_buffer)

    return abi_encode(types, values)


__all__ = ["encode_hops", "encode_pool_payload", "encode_route"]
