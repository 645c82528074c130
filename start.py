"""Simple launcher for one-off gateway tool calls.

Usage:
    python start.py geocode_address '{"address": "Eiffel Tower"}'
    python start.py get_route '{"start_lat": 48.85, "start_lon": 2.35, "end_lat": 48.86, "end_lon": 2.29}'

Without arguments it asks for the tool and its JSON payload. The result
is printed as JSON.
"""

from __future__ import annotations

import json
import sys
from typing import Optional, Sequence

from osm_gateway import OSMGateway, get_config
from osm_gateway.logging_config import configure_logging

TOOLS = (
    "geocode_address",
    "reverse_geocode",
    "get_route",
    "encode_polyline",
    "decode_polyline",
)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)

    if args:
        tool = args[0]
        raw_payload = args[1] if len(args) > 1 else "{}"
    else:
        print("=== OSM gateway launcher ===")
        for index, name in enumerate(TOOLS, start=1):
            print(f"{index}) {name}")
        choice = input("Tool (number or name): ").strip()
        tool = TOOLS[int(choice) - 1] if choice.isdigit() and 0 < int(choice) <= len(TOOLS) else choice
        raw_payload = input("Payload (JSON): ").strip() or "{}"

    if tool not in TOOLS:
        print(f"Unknown tool {tool!r}; choose one of: {', '.join(TOOLS)}", file=sys.stderr)
        return 2

    try:
        payload = json.loads(raw_payload)
    except json.JSONDecodeError as e:
        print(f"Payload is not valid JSON: {e}", file=sys.stderr)
        return 2
    if not isinstance(payload, dict):
        print("Payload must be a JSON object", file=sys.stderr)
        return 2

    config = get_config()
    configure_logging(config.observability)

    with OSMGateway.create(config) as gateway:
        result = getattr(gateway, tool)(payload)

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 1 if "error" in result else 0


if __name__ == "__main__":
    sys.exit(main())
