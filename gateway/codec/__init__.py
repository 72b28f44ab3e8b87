"""Packed route codec."""

from gateway.codec.decoder import decode_pool_payload, decode_route
from gateway.codec.encoder import encode_hops, encode_pool_payload, encode_route
from gateway.codec.layout import SPLIT_MARKER

__all__ = [
    "SPLIT_MARKER",
    "decode_pool_payload",
    "decode_route",
    "encode_hops",
    "encode_pool_payload",
    "encode_route",
]
