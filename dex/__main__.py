"""
Cross-DEX arbitrage scanner CLI.

Usage:
    python -m dex
    python -m dex --config configs/dex_base.yaml --network arbitrum
    python -m dex --once
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from prometheus_client import start_http_server

import logging_config
from crossdex_arbitrage import __version__

from .config import ConfigError, load_config
from .executor import ScanOnlyExecutor
from .observability import CompositeSink, LoggingSink, PrometheusSink
from .runner import DexRunner


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="python -m dex",
        description="Cross-DEX arbitrage scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scan Base with the bundled catalog
  python -m dex

  # Scan Arbitrum
  python -m dex --network arbitrum

  # Single cycle (for testing/CI)
  python -m dex --once
        """,
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to config YAML file (default: bundled configs/dex_base.yaml)",
    )
    parser.add_argument(
        "--network",
        default=None,
        help="Network to scan (overrides NETWORK and the config file)",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Path to a .env file (default: search from the working directory)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit",
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Stop after this many cycles",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only log cycle summaries, not every pair",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging (every quote and fallback)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser.parse_args(argv)


async def _run(runner: DexRunner, max_cycles: Optional[int]) -> int:
    await runner.connect()
    runner.print_banner()
    metrics = await runner.run(max_cycles=max_cycles)
    return 1 if runner.once and metrics.cycle_errors else 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    if args.debug:
        logging_config.setup_debug()
    else:
        logging_config.setup()

    if args.network:
        os.environ["NETWORK"] = args.network

    try:
        config = load_config(args.config, dotenv_path=args.env_file)
    except ConfigError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return 1

    sinks = [LoggingSink()]
    if args.metrics_port:
        start_http_server(args.metrics_port)
        sinks.append(PrometheusSink())
    sink = CompositeSink(sinks)

    if not config.scan_only:
        logging.getLogger(__name__).warning(
            "SCAN_ONLY=0 but no executor is installed; opportunities are only logged"
        )

    runner = DexRunner(
        config,
        executor=ScanOnlyExecutor(),
        sink=sink,
        once=args.once,
        quiet=args.quiet,
    )

    try:
        return asyncio.run(_run(runner, args.max_cycles))
    except KeyboardInterrupt:
        print("\n\n⏸ Stopped by user")
        return 0
    except Exception as e:
        print(f"❌ Runner failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
