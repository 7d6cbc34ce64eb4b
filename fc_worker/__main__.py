"""
Standalone entrypoint for running the flightcheck worker.

Usage:
    python -m fc_worker [OPTIONS]
    flightcheck [OPTIONS]  (after pip install)

Configuration is read from the config file and HOUSTON_* environment
variables (see fc_config.loader). Relevant keys:
    server.url               Bus endpoint (default: http://localhost:2000)
    flightcheck.hooks        Hook tree root (default: ./hooks)
    flightcheck.phase        Phase to run (default: pre)
    flightcheck.timeout      Seconds per hook (default: 300)
    flightcheck.destination  Bus name receiving reports (default: houston)
    flightcheck.policy       isolate or collapse (default: isolate)
    flightcheck.modules      Extra hooks as "package.module:Class" identifiers
    log.level / log.console  Logging level
"""

import argparse
import asyncio
import logging
import signal
import sys

from fc_bus.http import HTTPConnection
from fc_common.errors import FlightcheckError
from fc_config.config import Config
from fc_config.loader import get_config
from fc_hooks.discovery import HookRegistry
from fc_hooks.runner import FailurePolicy, HookRunner

from .orchestrator import Flightcheck
from .settings import resolve_log_level, resolve_policy, resolve_timeout

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://localhost:2000"
BUS_NAME = "flightcheck"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Flightcheck - runs check hooks for every cycle:start on the bus",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Note: Command-line arguments override the config file and environment.

Examples:
  # Run with configuration from ./config.yaml or /etc/houston/config.yaml
  flightcheck

  # Use a custom bus endpoint and hook tree
  flightcheck --server-url http://atc:2000 --hooks /srv/flightcheck/hooks

  # Enable debug logging
  flightcheck --log-level DEBUG
        """,
    )
    parser.add_argument("--config", type=str, default=None, help="Configuration file path")
    parser.add_argument("--server-url", type=str, default=None, help="Bus endpoint address")
    parser.add_argument("--hooks", type=str, default=None, help="Hook tree root")
    parser.add_argument("--phase", type=str, default=None, help="Phase to run")
    parser.add_argument("--timeout", type=float, default=None, help="Seconds per hook")
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: log.console or log.level config, else INFO)",
    )
    return parser.parse_args(argv)


def get_log_level(args: argparse.Namespace, config: Config) -> int:
    """Resolve the logging level from CLI args, then config, then INFO."""
    for value in (args.log_level, config.get("log.console"), config.get("log.level")):
        if value is not None and value != "":
            return resolve_log_level(value)
    return logging.INFO


def get_timeout(args: argparse.Namespace, config: Config) -> float:
    """
    Get the per-hook timeout from CLI args or config.

    Invalid values fall back to the default.
    """
    if args.timeout is not None:
        return resolve_timeout(args.timeout)
    return resolve_timeout(config.get("flightcheck.timeout"))


def get_policy(config: Config) -> FailurePolicy:
    return resolve_policy(config.get("flightcheck.policy"))


def build_worker(
    args: argparse.Namespace, config: Config, connection=None
) -> tuple[Flightcheck, str]:
    """
    Build the orchestrator and resolve the bus endpoint.

    Returns:
        Tuple of (worker, server_url)

    Raises:
        DiscoveryError: If a configured hook module cannot be imported
    """
    server_url = args.server_url or config.get("server.url", DEFAULT_SERVER_URL)
    hooks_root = args.hooks or config.get("flightcheck.hooks", "hooks")
    phase = args.phase or config.get("flightcheck.phase", "pre")

    registry = HookRegistry()
    modules = config.get("flightcheck.modules") or []
    if isinstance(modules, str):
        modules = [m.strip() for m in modules.split(",") if m.strip()]
    registry.load_modules(phase, modules)

    worker = Flightcheck(
        connection=connection or HTTPConnection(BUS_NAME),
        hooks_root=hooks_root,
        phase=phase,
        destination=config.get("flightcheck.destination", "houston"),
        runner=HookRunner(timeout=get_timeout(args, config), policy=get_policy(config)),
        registry=registry,
    )
    return worker, server_url


async def run_worker(args: argparse.Namespace, config: Config) -> None:
    """
    Initialize and run the worker.

    Runs until interrupted by SIGINT or SIGTERM.
    """
    worker, server_url = build_worker(args, config)

    logger.info("Starting flightcheck")
    logger.info(f"  Bus: {server_url}")
    logger.info(f"  Hooks: {worker.hooks_root}")
    logger.info(f"  Phase: {worker.phase}")
    logger.info(f"  Hook timeout: {worker.runner.timeout}s")
    version = config.get("houston.version")
    if version:
        logger.info(f"  Version: {version} ({config.get('houston.commit', 'unknown commit')})")

    # Set up signal handlers for graceful shutdown
    shutdown_event = asyncio.Event()

    def signal_handler(sig: signal.Signals) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {sig.name}, initiating graceful shutdown...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler, sig)

    try:
        await worker.start(server_url)
        await shutdown_event.wait()
    finally:
        await worker.stop()


def main(argv: list[str] | None = None) -> int:
    """
    Main entrypoint for the worker.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)

    try:
        config = get_config(args.config)
    except FlightcheckError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"Fatal error: {e}")
        return 1

    logging.basicConfig(
        level=get_log_level(args, config),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        asyncio.run(run_worker(args, config))
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
