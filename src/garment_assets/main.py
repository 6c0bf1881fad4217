"""Main module for the garment-assets CLI."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from botocore.exceptions import BotoCoreError

from . import __version__
from .core import get_logger, set_log_level
from .core.exceptions import ConfigurationError, GarmentAssetsError
from .core.models import AssetStoreSettings, PipelineConfig, ProcessOptions
from .pipeline import process_images_sync


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="garment-assets",
        description="Garment photo ingestion - validate, normalize and upload listing images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ingest two photos of one listing into the default bucket layout
  garment-assets ingest --bucket listing-assets --folder listings/abc123 \\
                        --public-id-prefix abc123 front.jpg back.jpg

  # Use a local S3-compatible endpoint and thread workers
  garment-assets ingest --bucket dev --folder tmp --endpoint-url http://localhost:9000 \\
                        --cpu-pool thread photo.png

  # Show version
  garment-assets version
        """,
    )

    subparsers: argparse._SubParsersAction = parser.add_subparsers(
        dest="command", help="Available commands"
    )

    ingest_parser: argparse.ArgumentParser = subparsers.add_parser(
        "ingest", help="Validate, render and upload photos as asset sets"
    )
    ingest_parser.add_argument("files", nargs="+", help="Photo files to ingest")
    ingest_parser.add_argument(
        "--bucket",
        default=None,
        help="Destination bucket (defaults to GARMENT_ASSETS_BUCKET)",
    )
    ingest_parser.add_argument(
        "--folder", required=True, help="Folder prefix for every asset key"
    )
    ingest_parser.add_argument(
        "--public-id-prefix",
        default=None,
        help="Public ids become PREFIX_0, PREFIX_1, ...; random when omitted",
    )
    ingest_parser.add_argument("--region", default=None, help="Store region")
    ingest_parser.add_argument(
        "--endpoint-url", default=None, help="S3-compatible endpoint URL"
    )
    ingest_parser.add_argument(
        "--public-base-url", default=None, help="Base URL the assets are served from"
    )
    ingest_parser.add_argument(
        "--cpu-pool",
        type=str,
        default="process",
        choices=["process", "thread"],
        help="Executor for image rendering (default: process)",
    )
    ingest_parser.add_argument(
        "--cpu-workers", type=int, default=None, help="Render worker count"
    )
    ingest_parser.add_argument(
        "--max-in-flight",
        type=int,
        default=16,
        help="Maximum concurrent uploads across the run (default: 16)",
    )
    ingest_parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )

    subparsers.add_parser("version", help="Show version information")
    return parser


def _store_settings(args: argparse.Namespace) -> AssetStoreSettings:
    if args.bucket:
        return AssetStoreSettings(
            bucket=args.bucket,
            region=args.region,
            endpoint_url=args.endpoint_url,
            public_base_url=args.public_base_url,
        )
    settings = AssetStoreSettings.from_env()
    overrides = {
        "region": args.region,
        "endpoint_url": args.endpoint_url,
        "public_base_url": args.public_base_url,
    }
    return settings.model_copy(update={k: v for k, v in overrides.items() if v})


def run_ingest_command(args: argparse.Namespace) -> int:
    """Run the ``ingest`` command; returns the process exit code."""
    logger = get_logger("cli")
    if args.debug:
        set_log_level(logging.DEBUG)

    try:
        settings = _store_settings(args)
        config = PipelineConfig(
            cpu_pool=args.cpu_pool,
            cpu_workers=args.cpu_workers,
            max_in_flight_uploads=args.max_in_flight,
        )
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    raw_files: List[bytes] = []
    for name in args.files:
        try:
            raw_files.append(Path(name).read_bytes())
        except OSError as e:
            logger.error(f"Cannot read {name}: {e}")
            return 2

    options = ProcessOptions(folder=args.folder, public_id_prefix=args.public_id_prefix)
    logger.info(f"Ingesting {len(raw_files)} photo(s) into s3://{settings.bucket}/{args.folder}")
    try:
        outcomes = process_images_sync(raw_files, options, settings, config)
    except (GarmentAssetsError, BotoCoreError) as e:
        logger.error(f"Ingest aborted: {e}", exc_info=True)
        return 2

    report = [
        {"file": name, **outcome.model_dump(mode="json")}
        for name, outcome in zip(args.files, outcomes)
    ]
    print(json.dumps(report, indent=2))

    failed = sum(1 for outcome in outcomes if not outcome.success)
    logger.info(f"{len(outcomes) - failed} succeeded, {failed} failed")
    return 1 if failed else 0


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the garment-assets command-line interface."""
    parser = build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.command == "ingest":
        sys.exit(run_ingest_command(args))

    elif args.command == "version":
        print("Garment Assets CLI")
        print(f"Version {__version__}")
        print("Photo validation, normalization and asset set upload")
        sys.exit(0)

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
