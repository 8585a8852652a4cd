from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from nventory.app import (
    delete_asset,
    get_asset,
    get_asset_observations,
    import_records,
    ingest_observation,
    list_comparison,
    list_sources,
    update_asset,
)
from nventory.config import ConfigurationError, configure_logging
from nventory.domain.comparison import comparison_columns
from nventory.domain.errors import InventoryError
from nventory.domain.sources import SOURCE_DESCRIPTORS, descriptor_for

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType
    from typing import TextIO

log = logging.getLogger(__name__)

_SOURCE_CHOICES = ", ".join(str(name) for name in SOURCE_DESCRIPTORS)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Maintain the canonical asset inventory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Ingest a single observation")
    ingest.add_argument("source", help=f"Reporting source ({_SOURCE_CHOICES})")
    ingest.add_argument(
        "--observed-at",
        required=True,
        help="ISO-8601 timestamp at which the source saw the device",
    )
    ingest.add_argument(
        "--field",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Observed field, repeatable (e.g. --field mac=AA:BB:CC:DD:EE:FF)",
    )
    ingest.add_argument(
        "--asset-id",
        type=int,
        help="Attribute the observation to this asset without matching",
    )

    import_ = subparsers.add_parser("import", help="Ingest a JSON-lines collector export")
    import_.add_argument("path", type=Path, help="File with one JSON record per line")

    asset = subparsers.add_parser("asset", help="Canonical asset administration")
    asset_sub = asset.add_subparsers(dest="asset_command", required=True)
    asset_show = asset_sub.add_parser("show", help="Print an asset")
    asset_show.add_argument("asset_id", type=int)
    asset_show.add_argument(
        "--observations",
        action="store_true",
        help="Include the ledger rows attributed to the asset",
    )
    asset_update = asset_sub.add_parser("update", help="Edit administrative fields")
    asset_update.add_argument("asset_id", type=int)
    asset_update.add_argument(
        "--set",
        dest="assignments",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Field assignment, repeatable (e.g. --set serial_number=SN-1)",
    )
    asset_update.add_argument(
        "--clear",
        action="append",
        default=[],
        metavar="NAME",
        help="Field to reset to empty, repeatable",
    )
    asset_delete = asset_sub.add_parser("delete", help="Delete an asset")
    asset_delete.add_argument("asset_id", type=int)

    compare = subparsers.add_parser("compare", help="Inventory vs. source comparison")
    compare.add_argument("source", help=f"Source to compare against ({_SOURCE_CHOICES})")
    compare.add_argument(
        "--latest-only",
        action="store_true",
        help="Only the most recent observation per asset",
    )
    compare.add_argument(
        "--discrepancies",
        action="store_true",
        help="Only rows where paired fields disagree",
    )
    compare.add_argument("--format", choices=("csv", "json"), default="csv")

    subparsers.add_parser("sources", help="List sources and their freshness")

    return parser.parse_args(list(argv))


def _parse_assignments(values: Sequence[str]) -> dict[str, str]:
    parsed: dict[str, str] = {}
    for item in values:
        name, separator, value = item.partition("=")
        name = name.strip()
        if not separator or not name:
            raise ValueError(f"Expected NAME=VALUE, got {item!r}")
        if name in parsed:
            raise ValueError(f"Field {name!r} given more than once")
        parsed[name] = value
    return parsed


def _write_json(payload: object, stream: TextIO) -> None:
    json.dump(payload, stream, default=str, indent=2)
    stream.write("\n")


def _show_asset(args: argparse.Namespace, stream: TextIO) -> None:
    payload: dict[str, object] = get_asset(args.asset_id).snapshot()
    if args.observations:
        payload["observations"] = [
            {
                "id": observation.id,
                "source": str(observation.source),
                "observed_at": observation.observed_at,
                **{name: getattr(observation, name) for name in observation.OBSERVED_FIELDS},
            }
            for observation in get_asset_observations(args.asset_id)
        ]
    _write_json(payload, stream)


def _compare(args: argparse.Namespace, stream: TextIO) -> int:
    descriptor = descriptor_for(args.source)
    view = list_comparison(descriptor.name, latest_only=args.latest_only)
    rows = view.discrepancies() if args.discrepancies else iter(view)
    written = 0
    if args.format == "json":
        flat_rows = [row.flat(descriptor) for row in rows]
        _write_json(flat_rows, stream)
        return len(flat_rows)
    writer = csv.DictWriter(stream, fieldnames=comparison_columns(descriptor))
    writer.writeheader()
    for row in rows:
        writer.writerow(row.flat(descriptor))
        written += 1
    return written


def _dispatch(args: argparse.Namespace, stream: TextIO) -> None:
    if args.command == "ingest":
        asset_id = ingest_observation(
            args.source,
            _parse_assignments(args.field),
            args.observed_at,
            canonical_asset_id=args.asset_id,
        )
        log.info("Observation attributed to asset %s", asset_id)
        stream.write(f"{asset_id}\n")
    elif args.command == "import":
        result = import_records(args.path)
        log.info("Import finished: ingested=%s, failed=%s", result.ingested, result.failed)
        for line_number, error in result.errors:
            stream.write(f"line {line_number}: {error}\n")
        if result.failed:
            raise SystemExit(1)
    elif args.command == "asset" and args.asset_command == "show":
        _show_asset(args, stream)
    elif args.command == "asset" and args.asset_command == "update":
        changes: dict[str, object] = dict(_parse_assignments(args.assignments))
        for name in args.clear:
            if name in changes:
                raise ValueError(f"Field {name!r} is both set and cleared")
            changes[name] = None
        if not changes:
            raise ValueError("Nothing to update: pass --set or --clear")
        _write_json(update_asset(args.asset_id, changes).snapshot(), stream)
    elif args.command == "asset" and args.asset_command == "delete":
        delete_asset(args.asset_id)
        log.info("Deleted asset %s", args.asset_id)
    elif args.command == "compare":
        written = _compare(args, stream)
        log.debug("Comparison for %s wrote %s rows", args.source, written)
    elif args.command == "sources":
        for entry in list_sources():
            last_update = entry.last_update.isoformat() if entry.last_update else "never"
            stream.write(f"{entry.name}\t{last_update}\t{entry.description or ''}\n")
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None, *, stream: TextIO | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
    output = stream or sys.stdout

    try:
        _dispatch(parsed_args, output)
    except (InventoryError, ConfigurationError, ValueError) as exc:
        log.error("%s", exc)  # noqa: TRY400
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
