"""Command-line interface for gtfs-copier."""

import argparse
import logging
import sys

from gtfs_copier.api import copy_feed, validate
from gtfs_copier.builders.registry import BUILDERS, builder_names
from gtfs_copier.gtfs.models import CopyConfig
from gtfs_copier.version import VERSION


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _bool(value: str) -> bool:
    return value.lower() == "true"


def cmd_copy(args: argparse.Namespace) -> int:
    """Execute copy command."""
    setup_logging(args.verbose)

    builders = builder_names() if args.all_builders else (args.builder or [])
    config = CopyConfig(
        input_path=args.input,
        output_path=args.output,
        feed_version_id=args.feed_version_id,
        batch_size=args.batch_size,
        read_ahead=args.read_ahead,
        interpolate_stop_times=args.interpolate,
        create_missing_shapes=args.create_missing_shapes,
        deduplicate_journey_patterns=args.deduplicate_journey_patterns,
        simplify_shapes=args.simplify_shapes,
        use_basic_route_types=args.use_basic_route_types,
        allow_entity_errors=args.allow_entity_errors,
        allow_reference_errors=args.allow_reference_errors,
        error_limit=args.error_limit,
        builders=builders,
        places_path=args.places,
    )

    try:
        result = copy_feed(args.input, args.output, config)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Copy failed")
        return 1

    if result.write_error is not None:
        print(f"Error: {result.write_error}", file=sys.stderr)
        return 1
    print("\nCopy successful!")
    print(f"Output: {args.output}")
    print(f"Entities: {dict(sorted(result.entity_count.items()))}")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Execute validate command."""
    setup_logging(args.verbose)

    try:
        report = validate(args.input)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Validation failed")
        return 1

    if report.valid:
        print("\nValidation successful!")
        print(f"Stats: {report.stats}")
        if report.warnings:
            print(f"Warnings ({len(report.warnings)}):")
            for warning in report.warnings:
                print(f"  - {warning}")
        return 0
    print(f"\nValidation failed with {len(report.errors)} errors:")
    for error in report.errors:
        print(f"  - {error}")
    return 1


def cmd_builders(args: argparse.Namespace) -> int:
    """List registered builders."""
    for name, (_, description) in BUILDERS.items():
        print(f"{name:16s} {description}")
    return 0


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="gtfs-copier",
        description="Copy GTFS feeds and build derived route and agency entities",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Copy command
    copy_parser = subparsers.add_parser("copy", help="Copy a GTFS feed and run builders")
    copy_parser.add_argument("--input", required=True, help="Path to GTFS directory")
    copy_parser.add_argument(
        "--output", default="./gtfs_out", help="Output directory (default: ./gtfs_out)"
    )
    copy_parser.add_argument(
        "--builder",
        action="append",
        choices=builder_names(),
        help="Builder to run; may be repeated, runs in the given order",
    )
    copy_parser.add_argument(
        "--all-builders", action="store_true", help="Run every registered builder"
    )
    copy_parser.add_argument(
        "--interpolate",
        type=_bool,
        default=True,
        help="Interpolate missing stop times (default: true)",
    )
    copy_parser.add_argument(
        "--create-missing-shapes",
        type=_bool,
        default=False,
        help="Generate shapes for trips without one (default: false)",
    )
    copy_parser.add_argument(
        "--deduplicate-journey-patterns",
        type=_bool,
        default=False,
        help="Write stop times only for the first trip of each journey pattern (default: false)",
    )
    copy_parser.add_argument(
        "--simplify-shapes",
        type=float,
        default=0.0,
        help="Simplify shapes with this tolerance in degrees, e.g. 0.000005 (default: 0, off)",
    )
    copy_parser.add_argument(
        "--use-basic-route-types",
        type=_bool,
        default=False,
        help="Collapse extended route types into basic GTFS values (default: false)",
    )
    copy_parser.add_argument(
        "--allow-entity-errors",
        type=_bool,
        default=False,
        help="Write entities that have validation errors (default: false)",
    )
    copy_parser.add_argument(
        "--allow-reference-errors",
        type=_bool,
        default=False,
        help="Write entities with unresolved references (default: false)",
    )
    copy_parser.add_argument(
        "--feed-version-id", type=int, default=0, help="Feed version id for derived entities"
    )
    copy_parser.add_argument(
        "--batch-size", type=int, default=1000, help="Entities per write batch (default: 1000)"
    )
    copy_parser.add_argument(
        "--read-ahead",
        type=int,
        default=16,
        help="Stop time batches read ahead in the background, 0 disables (default: 16)",
    )
    copy_parser.add_argument(
        "--error-limit",
        type=int,
        default=1000,
        help="Sample errors kept per error group, -1 for no limit (default: 1000)",
    )
    copy_parser.add_argument(
        "--places", default=None, help="CSV of populated places for the agency_place builder"
    )
    copy_parser.add_argument(
        "-v", "--verbose", action="store_true", default=argparse.SUPPRESS, help="Verbose output"
    )
    copy_parser.set_defaults(func=cmd_copy)

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a copy output directory")
    validate_parser.add_argument("--input", required=True, help="Path to output directory")
    validate_parser.set_defaults(func=cmd_validate)

    # Builders command
    builders_parser = subparsers.add_parser("builders", help="List registered builders")
    builders_parser.set_defaults(func=cmd_builders)

    # Parse and execute
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
