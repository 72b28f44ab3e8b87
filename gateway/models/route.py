"""Typed route structures produced by the route codec."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class RouteAction(IntEnum):
    """Action performed by a single hop."""

    SWAP_CL = 0
    SWAP_BIN = 1
    WRAP = 2
    UNWRAP = 3

    @property
    def label(self) -> str:
        return ACTION_LABELS[self]

    @property
    def is_swap(self) -> bool:
        return self in (RouteAction.SWAP_CL, RouteAction.SWAP_BIN)


ACTION_LABELS: dict[RouteAction, str] = {
    RouteAction.SWAP_CL: "CL Swap",
    RouteAction.SWAP_BIN: "Bin Swap",
    RouteAction.WRAP: "Wrap",
    RouteAction.UNWRAP: "Unwrap",
}


@dataclass(frozen=True)
class ClPoolPayload:
    """Concentrated-liquidity pool key plus swap direction."""

    token0: bytes
    token1: bytes
    fee: int  # hundredths of a bip, e.g. 3000 = 0.30%
    tick_spacing: int
    hooks: bytes
    zero_for_one: bool


@dataclass(frozen=True)
class BinPoolPayload:
    """Liquidity-book (bin) pool key plus swap direction."""

    token0: bytes
    token1: bytes
    bin_step: int
    hooks: bytes
    swap_for_y: bool


@dataclass(frozen=True)
class VaultPayload:
    """ERC-4626 vault used by a wrap or unwrap hop."""

    vault: bytes
    use_buffer: bool


PoolPayload = ClPoolPayload | BinPoolPayload | VaultPayload


@dataclass(frozen=True)
class RouteHop:
    """One atomic action in a route.

    Hop amounts are not part of the packed route format; they stay None on
    decoded hops and are only filled from the quoter's expanded steps.
    """

    action: RouteAction
    token_in: bytes
    token_out: bytes
    pool: PoolPayload
    amount_in: int | None = None
    amount_out: int | None = None


@dataclass(frozen=True)
class SubRoute:
    """Ordered hop sequence; carries its input allocation when part of a split."""

    hops: tuple[RouteHop, ...]
    amount_in: int | None = None

    @property
    def token_in(self) -> bytes:
        return self.hops[0].token_in

    @property
    def token_out(self) -> bytes:
        return self.hops[-1].token_out


@dataclass(frozen=True)
class DecodedRoute:
    """A validated execution plan: one sub-route, or several for a split."""

    sub_routes: tuple[SubRoute, ...]
    is_split: bool = False

    @classmethod
    def single(cls, hops: list[RouteHop] | tuple[RouteHop, ...]) -> DecodedRoute:
        return cls(sub_routes=(SubRoute(hops=tuple(hops)),), is_split=False)

    @classmethod
    def split(cls, sub_routes: list[SubRoute] | tuple[SubRoute, ...]) -> DecodedRoute:
        return cls(sub_routes=tuple(sub_routes), is_split=True)

    @property
    def hops(self) -> tuple[RouteHop, ...]:
        """All hops across sub-routes, in encoding order."""
        return tuple(hop for sub in self.sub_routes for hop in sub.hops)

    @property
    def total_steps(self) -> int:
        return sum(len(sub.hops) for sub in self.sub_routes)

    @property
    def token_in(self) -> bytes:
        return self.sub_routes[0].token_in

    @property
    def token_out(self) -> bytes:
        return self.sub_routes[0].token_out

    @property
    def total_amount_in(self) -> int | None:
        """Sum of split allocations (None for single routes)."""
        if not self.is_split:
            return None
        return sum(sub.amount_in or 0 for sub in self.sub_routes)

    @property
    def uses_buffer(self) -> bool:
        return route_uses_buffer(self.hops)

    def describe(self) -> str:
        """Human-readable summary, e.g. ``"2 hops: CL Swap → Unwrap"``."""
        if self.is_split:
            parts = [_describe_hops(sub.hops) for sub in self.sub_routes]
            return f"Split ({len(self.sub_routes)} paths): " + " | ".join(parts)
        return _describe_hops(self.hops)


def _describe_hops(hops: tuple[RouteHop, ...]) -> str:
    if not hops:
        return "No route"
    labels = [hop.action.label for hop in hops]
    if len(labels) == 1:
        return labels[0]
    return f"{len(labels)} hops: " + " → ".join(labels)


def route_uses_buffer(hops: tuple[RouteHop, ...] | list[RouteHop]) -> bool:
    """True if any hop wraps or unwraps vault shares."""
    return any(hop.action in (RouteAction.WRAP, RouteAction.UNWRAP) for hop in hops)


__all__ = [
    "ACTION_LABELS",
    "BinPoolPayload",
    "ClPoolPayload",
    "DecodedRoute",
    "PoolPayload",
    "RouteAction",
    "RouteHop",
    "SubRoute",
    "VaultPayload",
    "route_uses_buffer",
]
