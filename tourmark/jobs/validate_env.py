"""Report missing environment configuration."""

import argparse
import logging
from pathlib import Path

from tourmark.core.config import validate_env

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Validate tourmark environment variables")
    parser.add_argument("--strict", action="store_true", help="Also warn about unset optional variables")
    parser.add_argument("--check", action="store_true", help="Exit non-zero when validation fails")
    return parser


def main(argv=None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args(argv)

    if not Path(".env").exists():
        logger.warning(".env file not found; relying on the process environment")

    result = validate_env(strict=args.strict)
    for error in result.errors:
        logger.error(error)
    for warning in result.warnings:
        logger.warning(warning)
    if result.is_valid:
        logger.info("Environment validation passed")

    if args.check and not result.is_valid:
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
