#!/usr/bin/env python3
"""Decode a packed gateway route and print it as JSON.

Reads the route as hex from the command line, from a file, or from stdin.

Run with:
    python scripts/decode_route.py 0x02...
    python scripts/decode_route.py --file route.hex
    echo 0x02... | python scripts/decode_route.py -
"""

from __future__ import annotations

import sys
from pathlib import Path

from gateway.codec import decode_route
from gateway.errors import DomainError
from gateway.models.responses import DecodedRouteResponse, ErrorResponse


def read_input(value: str | None, file: Path | None) -> str:
    if file is not None:
        return file.read_text().strip()
    if value is None or value == "-":
        return sys.stdin.read().strip()
    return value.strip()


def main() -> int:
    """Decode the route; exit status 1 if it is malformed."""
    import argparse

    parser = argparse.ArgumentParser(description="Decode a packed gateway route")
    parser.add_argument("route", nargs="?", help="Route as hex (use - for stdin)")
    parser.add_argument("--file", type=Path, help="Read the route hex from a file")
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Print only the one-line route description",
    )
    args = parser.parse_args()

    try:
        route = decode_route(read_input(args.route, args.file))
    except DomainError as e:
        print(ErrorResponse.from_error(e).model_dump_json(by_alias=True, indent=2), file=sys.stderr)
        return 1

    if args.summary:
        print(route.describe())
    else:
        response = DecodedRouteResponse.from_route(route)
        print(response.model_dump_json(by_alias=True, exclude_none=True, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
