"""Data models for routes, quotes and execution requests."""

from gateway.models.types import Address, Bytes, Uint256, normalize_address
from gateway.models.route import (
    BinPoolPayload,
    ClPoolPayload,
    DecodedRoute,
    RouteAction,
    RouteHop,
    SubRoute,
    VaultPayload,
)
from gateway.models.quote import PriceImpactSeverity, Quote, RouteStep
from gateway.models.request import ExecutionRequest

__all__ = [
    # Types
    "Address",
    "Bytes",
    "Uint256",
    "normalize_address",
    # Route models
    "BinPoolPayload",
    "ClPoolPayload",
    "DecodedRoute",
    "RouteAction",
    "RouteHop",
    "SubRoute",
    "VaultPayload",
    # Quote / request
    "ExecutionRequest",
    "PriceImpactSeverity",
    "Quote",
    "RouteStep",
]
