"""
Standalone entrypoint for running the bus broker.

Usage:
    python -m fc_bus [OPTIONS]
    flightcheck-broker [OPTIONS]  (after pip install)

Environment Variables:
    HOUSTON_BROKER_HOST: Interface to bind (default: 127.0.0.1)
    HOUSTON_BROKER_PORT: Port to listen on (default: 2000)
"""

import argparse
import logging
import os
import sys

import uvicorn

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Flightcheck bus broker - routes events between services",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=os.environ.get("HOUSTON_BROKER_HOST", "127.0.0.1"),
        help="Interface to bind (default: HOUSTON_BROKER_HOST env or 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("HOUSTON_BROKER_PORT", "2000")),
        help="Port to listen on (default: HOUSTON_BROKER_PORT env or 2000)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )
    return parser.parse_args()


def main() -> int:
    """
    Main entrypoint for the broker.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info(f"Starting bus broker on {args.host}:{args.port}")
    try:
        uvicorn.run(
            "fc_bus.broker:app",
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
        )
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
