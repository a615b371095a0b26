#!/usr/bin/env python3
"""
Generate a sample bulk parcel document.

Weights cycle through 0.3 .. 19.3 kg so every default bucket (Mail,
Regular, Heavy) is covered; every 11th and 17th parcel carries a value
well above the default insurance threshold.
"""

import argparse
import sys
from pathlib import Path
from typing import Dict, List

DESTINATIONS = [
    "Berlin", "Munich", "Hamburg", "Frankfurt", "Stuttgart",
    "Cologne", "Dublin", "Lisbon", "Vienna", "Zurich",
]


def make_parcel(i: int) -> Dict[str, str]:
    weight = (i % 20) + 0.3
    value = (i % 30) * 40 + 10
    if i % 11 == 0:
        value = 1500 + i
    if i % 17 == 0:
        value = 2500 + i

    return {
        "TrackingId": f"PCL-{i:03d}",
        "Weight": f"{weight:.2f}",
        "Value": str(value),
        "Destination": DESTINATIONS[i % len(DESTINATIONS)],
    }


def generate(count: int = 100) -> str:
    parcels: List[str] = []
    for i in range(1, count + 1):
        fields = "\n".join(f"    <{key}>{value}</{key}>" for key, value in make_parcel(i).items())
        parcels.append(f"  <Parcel>\n{fields}\n  </Parcel>")
    return '<?xml version="1.0" encoding="UTF-8"?>\n<Container>\n' + "\n".join(parcels) + "\n</Container>\n"


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a sample bulk parcel XML document.")
    parser.add_argument("--count", type=int, default=100, help="Number of parcels to generate")
    parser.add_argument("--output", type=Path, default=None, help="Output path (default: Container_<count>.xml)")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    if args.count < 1:
        print("[generate-parcels] --count must be at least 1", file=sys.stderr)
        return 2

    xml = generate(args.count)
    output = args.output or Path(f"Container_{args.count}.xml")
    output.write_text(xml, encoding="utf-8")
    print(f"[generate-parcels] wrote {output} ({len(xml)} bytes)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
