"""Live Query Module Entry Point

This module serves as the command-line interface for the geohash tooling of
the live query module: encoding points, measuring distances and printing the
range plan for a circle.
"""

import argparse
import logging
import os
import sys
from typing import Optional

from geolive_core.config import ConfigLoader, DEFAULT_ENVIRONMENT, ENVIRONMENT_VARIABLE
from geolive_core.exceptions import GeoLiveConfigurationError, GeoLiveInvalidArgumentError
from geolive_core.utils import setup_logging
from .geohash import GEOHASH_PRECISION, distance_km, encode_geohash, plan_ranges

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="geolive",
        description="GeoLive Live Query - geohash encoding and radius range planning"
    )
    parser.add_argument(
        "--environment",
        choices=["development", "production"],
        default=os.environ.get(ENVIRONMENT_VARIABLE, DEFAULT_ENVIRONMENT),
        help=f"Environment configuration to use (default: ${ENVIRONMENT_VARIABLE} or {DEFAULT_ENVIRONMENT})"
    )
    parser.add_argument(
        "--config-dir",
        default=None,
        help="Directory holding environment_config.json (default: ./config)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override the log level from the environment configuration"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    encode_parser = subparsers.add_parser("encode", help="Encode a point as a geohash")
    encode_parser.add_argument("latitude", type=float)
    encode_parser.add_argument("longitude", type=float)
    encode_parser.add_argument(
        "--precision", type=int, default=GEOHASH_PRECISION,
        help=f"Geohash length in characters (default: {GEOHASH_PRECISION})"
    )

    distance_parser = subparsers.add_parser("distance", help="Haversine distance in kilometers")
    distance_parser.add_argument("latitude1", type=float)
    distance_parser.add_argument("longitude1", type=float)
    distance_parser.add_argument("latitude2", type=float)
    distance_parser.add_argument("longitude2", type=float)

    plan_parser = subparsers.add_parser("plan", help="Geohash ranges covering a circle")
    plan_parser.add_argument("latitude", type=float)
    plan_parser.add_argument("longitude", type=float)
    plan_parser.add_argument("radius_km", type=float)

    return parser


def _resolve_log_level(parsed_args: argparse.Namespace) -> str:
    if parsed_args.log_level:
        return parsed_args.log_level
    try:
        config_loader = ConfigLoader(parsed_args.config_dir)
        return config_loader.get_logging_config(parsed_args.environment).get("level", "INFO")
    except GeoLiveConfigurationError as e:
        print(f"Configuration unavailable, logging at INFO: {e}", file=sys.stderr)
        return "INFO"


def main(args: Optional[list] = None) -> int:
    """Main entry point for the live query module.

    Args:
        args: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, 2 for invalid arguments)
    """
    parser = _build_parser()
    parsed_args = parser.parse_args(args)

    setup_logging(environment=parsed_args.environment, log_level=_resolve_log_level(parsed_args))
    logger.debug(f"Running '{parsed_args.command}' in {parsed_args.environment} environment")

    try:
        if parsed_args.command == "encode":
            print(encode_geohash((parsed_args.latitude, parsed_args.longitude), parsed_args.precision))
        elif parsed_args.command == "distance":
            distance = distance_km(
                (parsed_args.latitude1, parsed_args.longitude1),
                (parsed_args.latitude2, parsed_args.longitude2)
            )
            print(f"{distance:.6f}")
        elif parsed_args.command == "plan":
            ranges = plan_ranges((parsed_args.latitude, parsed_args.longitude), parsed_args.radius_km)
            for geohash_range in ranges:
                print(f"{geohash_range.start} {geohash_range.end}")
            logger.info(f"Planned {len(ranges)} ranges")
    except GeoLiveInvalidArgumentError as e:
        logger.error(f"Invalid arguments: {e}")
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
