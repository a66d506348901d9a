import argparse
import asyncio
import logging
import sys

import yaml

from telloseek.app_controller import AppController
from telloseek.logging_manager import logging_manager
from telloseek.navigation import AVAILABLE_POLICIES
from telloseek.parameters import Parameters
from telloseek.vehicle_link import VehicleLinkError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='telloseek',
        description="Fly a Tello toward a detected object and land on it.",
    )
    parser.add_argument('--config', help="Path to config.yaml (default: configs/config.yaml or $TELLOSEEK_CONFIG)")
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        type=str.upper, help="Override the configured log level")
    parser.add_argument('--policy', choices=sorted(AVAILABLE_POLICIES),
                        help="Navigation policy (default: Mission.navigation_policy)")
    return parser


def main(argv=None) -> int:
    """
    Entry point for the ``telloseek`` command.
    Loads configuration, sets up logging, then runs the AppController until SIGINT/SIGTERM.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config:
        try:
            Parameters.load_config(args.config)
        except (OSError, yaml.YAMLError) as e:
            parser.error(f"cannot load config {args.config}: {e}")

    level = args.log_level or str(Parameters.LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO),
                        format="%(asctime)s [%(levelname)s] %(message)s")
    logging_manager.summary_interval = float(Parameters.LOG_SUMMARY_INTERVAL)
    logging.info("Starting TelloSeek...")

    try:
        controller = AppController(policy_name=args.policy)
    except (ValueError, ImportError) as e:
        logging.error(f"Startup failed: {e}")
        return 1

    try:
        asyncio.run(controller.run())
    except VehicleLinkError as e:
        logging.error(f"Vehicle link failed: {e}")
        return 1
    except KeyboardInterrupt:
        logging.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
