"""Build the compact lookup artifact from raw zip records.

Usage:
    zipfill-build raw-data.json [--out-dir dist]

Raw input is a JSON array of ``{zip_code, city, state, county}`` records.
Writes ``zip-data.json`` (indented), ``zip-data.min.json`` and
``states.json`` into the output directory.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Iterable
from pathlib import Path

from zipfill.lookup.models import Location
from zipfill.lookup.normalize import ZIP_LENGTH
from zipfill.lookup.table import LookupTable
from zipfill.observability.logging import setup_logging

logger = logging.getLogger(__name__)

DATA_FILE = "zip-data.json"
DATA_MIN_FILE = "zip-data.min.json"
STATES_FILE = "states.json"


def build_lookup(records: Iterable[dict]) -> dict[str, list[dict]]:
    """Group records by padded zip, dropping repeated (city, state) pairs."""
    grouped: dict[str, list[Location]] = {}
    for record in records:
        code = str(record["zip_code"]).rjust(ZIP_LENGTH, "0")
        location = Location(city=record["city"], state=record["state"], county=record.get("county") or "")
        grouped.setdefault(code, []).append(location)

    table = LookupTable(grouped.items())
    return {code: [loc.model_dump() for loc in table.get(code)] for code in table}


def build_states(records: Iterable[dict]) -> list[str]:
    return sorted({record["state"] for record in records})


def write_artifacts(raw_path: Path, out_dir: Path) -> dict[str, int]:
    """Build and write all artifacts. Returns summary stats."""
    logger.info("Loading raw data from %s", raw_path)
    records = json.loads(raw_path.read_text(encoding="utf-8"))
    if not isinstance(records, list):
        raise ValueError(f"{raw_path} must contain a JSON array of records")
    logger.info("Loaded %d records", len(records))

    lookup = build_lookup(records)
    states = build_states(records)
    stats = {
        "records": len(records),
        "zips": len(lookup),
        "multi_city": sum(1 for locs in lookup.values() if len(locs) > 1),
        "states": len(states),
    }
    logger.info("Total unique zips: %d", stats["zips"])
    logger.info("Multi-city zips: %d", stats["multi_city"])

    out_dir.mkdir(parents=True, exist_ok=True)
    (out_dir / DATA_FILE).write_text(json.dumps(lookup, indent=2), encoding="utf-8")
    min_path = out_dir / DATA_MIN_FILE
    min_path.write_text(json.dumps(lookup, separators=(",", ":")), encoding="utf-8")
    logger.info("Wrote %s (%.1f KB)", min_path, min_path.stat().st_size / 1024)
    (out_dir / STATES_FILE).write_text(json.dumps(states, indent=2), encoding="utf-8")
    logger.info("Wrote %s (%d states/territories)", STATES_FILE, len(states))
    return stats


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="zipfill-build", description="Build zip lookup artifacts")
    parser.add_argument("raw", type=Path, help="raw JSON array of zip records")
    parser.add_argument("--out-dir", type=Path, default=Path("dist"), help="output directory (default: dist)")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    try:
        write_artifacts(args.raw, args.out_dir)
    except (OSError, ValueError, KeyError) as e:
        logger.error("Build failed: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
