#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from route_planner.manifest import parse_manifest_csv
from route_planner.plan.builders import ClusterPackTripBuilder, select_trip_builder
from route_planner.plan.compute import compute_routes
from route_planner.runtime import configure_logging
from route_planner.stores import ConfigStore


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compute pickup/dropoff trips for a manifest CSV")
    parser.add_argument("csv", help="Path to the manifest CSV export")
    parser.add_argument("--out", default=None, help="Write RouteData JSON here (default: stdout)")
    parser.add_argument(
        "--no-directions",
        action="store_true",
        help="Pack trips by zip cluster only; no geocoding, directions or optimizer calls",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logger = configure_logging("plan_manifest")

    path = Path(args.csv).expanduser()
    if not path.exists():
        raise SystemExit(f"Manifest CSV not found: {path}")

    rows, errors = parse_manifest_csv(path.read_text(encoding="utf-8-sig"))
    for err in errors:
        logger.warning(err)
    if not rows:
        raise SystemExit("No valid rows found in CSV")
    logger.info("Parsed %d rows (%d errors)", len(rows), len(errors))

    settings = ConfigStore()
    builder = ClusterPackTripBuilder() if args.no_directions else select_trip_builder()
    data = compute_routes(rows, settings.get_config(), settings.get_vehicles(), builder=builder)

    payload = json.dumps(data.model_dump(), indent=2)
    if args.out:
        Path(args.out).write_text(payload, encoding="utf-8")
        logger.info("Wrote %d pickup / %d dropoff trips to %s",
                    len(data.pickup_trips), len(data.dropoff_trips), args.out)
    else:
        sys.stdout.write(payload + "\n")


if __name__ == "__main__":
    main()
