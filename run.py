#!/usr/bin/env python3
"""
Venue Guardian -- pairwise arbitrage monitoring loop.

Each cycle:
  1. Read venue snapshots + current fee level
  2. Detect pairwise price divergences
  3. Score every candidate on six risk factors
  4. Decide EXECUTE / WAIT / SKIP
  5. Execute (simulated or live) and record the outcome
  6. Repeat until the iteration count is reached or a stop signal arrives

Usage:
  python run.py                          # simulated pools, paper execution
  python run.py --iterations 5           # stop after five cycles
  python run.py --mode live              # on-chain execution (needs PRIVATE_KEY)
  python run.py --report                 # serve the dashboard on :8787
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import signal
import sys

from pydantic import ValidationError

from client.advisory import build_advisor
from client.feed import build_feed
from config import Config, ConfigurationError, load_config, validate_config
from executor.engine import build_executor
from monitor.display import print_startup
from monitor.history import RunHistory
from monitor.logger import setup_logging
from pipeline.loop import ArbitrageLoop, LoopSettings

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2

_BANNER = r"""
 __     __                          ____                     _ _
 \ \   / /__ _ __  _   _  ___     / ___|_   _  __ _ _ __ __| (_) __ _ _ __
  \ \ / / _ \ '_ \| | | |/ _ \   | |  _| | | |/ _` | '__/ _` | |/ _` | '_ \
   \ V /  __/ | | | |_| |  __/   | |_| | |_| | (_| | | | (_| | | (_| | | | |
    \_/ \___|_| |_|\__,_|\___|    \____|\__,_|\__,_|_|  \__,_|_|\__,_|_| |_|
"""


def _non_negative_int(value: str) -> int:
    n = int(value)
    if n < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {n}")
    return n


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Pairwise venue arbitrage guardian")
    parser.add_argument("--iterations", type=_non_negative_int, default=None,
                        help="Number of cycles to run (default: until stopped)")
    parser.add_argument("--mode", choices=("simulation", "live"), default=None,
                        help="Override EXECUTION_MODE from the environment")
    parser.add_argument("--json-log", type=str, default=None, help="Path to JSON log file for machine-readable output")
    parser.add_argument("--report", action="store_true", help="Enable the read-only dashboard server")
    parser.add_argument("--report-host", type=str, default="127.0.0.1", help="Dashboard bind address (default: 127.0.0.1)")
    parser.add_argument("--report-port", type=int, default=8787, help="Dashboard server port (default: 8787)")
    return parser.parse_args(argv)


def resolve_config(args: argparse.Namespace) -> Config:
    """Load config from the environment and apply CLI overrides. Raises on invalid values."""
    cfg = load_config()
    if args.mode:
        cfg = cfg.model_copy(update={"execution_mode": args.mode})
    return validate_config(cfg)


def build_loop(cfg: Config, rng: random.Random | None = None) -> ArbitrageLoop:
    """Wire feed, executor, advisor and history into one loop instance."""
    return ArbitrageLoop(
        feed=build_feed(cfg, rng=rng),
        executor=build_executor(cfg, rng=rng),
        settings=LoopSettings.from_config(cfg),
        advisor=build_advisor(cfg),
        history=RunHistory(ledger_path=cfg.ledger_path),
    )


async def run_until_stopped(guardian: ArbitrageLoop, iterations: int | None) -> dict:
    """Run the loop with SIGINT/SIGTERM mapped to a graceful stop."""
    event_loop = asyncio.get_running_loop()

    def handle_signal(signum, frame):
        event_loop.call_soon_threadsafe(guardian.stop)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            event_loop.add_signal_handler(sig, guardian.stop)
        except NotImplementedError:
            signal.signal(sig, handle_signal)

    return await guardian.run(iterations)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        cfg = resolve_config(args)
    except (ConfigurationError, ValidationError) as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR

    log_file_path = setup_logging(cfg.log_level, json_log_file=args.json_log, mode=cfg.execution_mode)
    logger.info(_BANNER.strip("\n"))
    logger.info("  Log file: %s", log_file_path)
    print_startup(cfg, args.iterations)

    try:
        guardian = build_loop(cfg)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR

    if args.report:
        from report.server import start_server
        start_server(guardian.snapshot, host=args.report_host, port=args.report_port)

    asyncio.run(run_until_stopped(guardian, args.iterations))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
