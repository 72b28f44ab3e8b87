"""Test helpers module for shared test utilities.

This module consolidates common test utilities to reduce duplication:
- constants: Token, router and account addresses
- factories: Hop, route, request and quote factory functions
"""

from tests.helpers.constants import (
    CHAIN_ID,
    DAI,
    DAI_B,
    ROUTER,
    SDAI,
    SDAI_B,
    USDC,
    USDC_B,
    USER,
    WETH,
    WETH_B,
    ZERO_B,
)
from tests.helpers.factories import (
    make_bin_hop,
    make_cl_hop,
    make_quote,
    make_request,
    make_single_route,
    make_split_route,
    make_unwrap_hop,
    make_wrap_hop,
)

__all__ = [
    # Constants
    "CHAIN_ID",
    "DAI",
    "DAI_B",
    "ROUTER",
    "SDAI",
    "SDAI_B",
    "USDC",
    "USDC_B",
    "USER",
    "WETH",
    "WETH_B",
    "ZERO_B",
    # Factories
    "make_bin_hop",
    "make_cl_hop",
    "make_quote",
    "make_request",
    "make_single_route",
    "make_split_route",
    "make_unwrap_hop",
    "make_wrap_hop",
]
