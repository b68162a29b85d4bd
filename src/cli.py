"""Console entry point for the Rancher service upgrader CLI."""

from __future__ import annotations

import argparse
import logging
from typing import List

from config import UpgraderConfig
from errors import ConfigError
from log_utils import setup_logging
from upgrader import ServiceUpgrader

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description=(
            "Blue/green upgrade of a Rancher service.\n\n"
            "All settings are read from environment variables: RANCHER_URL, "
            "RANCHER_ENV_ID, RANCHER_SERVICE_ID, RANCHER_ACCESS_KEY, "
            "RANCHER_SECRET_KEY, BUILD_TAG, UPGRADE_TEST_CMD, ..."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging (same as VERBOSE=true)",
    )
    return parser


def main(argv: List[str] | None = None) -> int:
    """CLI main for console_scripts entry point."""
    parser = build_parser()
    args = parser.parse_args(args=argv)

    try:
        config = UpgraderConfig.from_env()
    except ConfigError as e:
        setup_logging(verbose=args.verbose, log_file=None)
        logger.error(f"Invalid configuration: {e}")
        return 1

    setup_logging(
        verbose=args.verbose or config.verbose, log_file=config.log_file or None
    )

    result = ServiceUpgrader(config).run()
    return 0 if result.status == "success" else 1
