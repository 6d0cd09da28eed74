"""Entry point for the Polymarket auto-claimer."""

import argparse
import asyncio
import logging
import re
import sys
from datetime import datetime
from logging.handlers import MemoryHandler
from pathlib import Path
from typing import Optional, Sequence

import yaml

from auto_claimer.claimer import Claimer
from auto_claimer.config import (
    NETWORK_PROFILES,
    ClaimerConfig,
    build_config,
    load_env,
    read_yaml,
    validate_config,
)
from auto_claimer.models import C_RED, C_RESET
from auto_claimer.scheduler import Scheduler
from auto_claimer.wallet import StartupError, WalletBinding

log = logging.getLogger("ac.bot")

LOG_FORMAT = "%(asctime)s │ %(name)-13s │ %(message)s"


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Redeem resolved winning Polymarket positions")
    parser.add_argument("-d", "--dry-run", action="store_true", help="Preview claims without submitting")
    parser.add_argument("--loop", action="store_true", help="Run forever (default interval 60 minutes)")
    parser.add_argument(
        "--interval",
        metavar="MINUTES",
        default=None,
        help="Minutes between iterations (implies --loop; env LOOP_INTERVAL_MINUTES)",
    )
    parser.add_argument("--env-file", default=None, help="Explicit .env file path")
    parser.add_argument("--config", default=None, help="YAML config file (default: ./config.yaml if present)")
    parser.add_argument("--network", choices=sorted(NETWORK_PROFILES), default=None,
                        help="Network profile (default: mainnet)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "debug", "info", "warning", "error"],
        help="Root log level (default: INFO)",
    )
    return parser.parse_args(argv)


class _StripAnsiFormatter(logging.Formatter):
    """Strip ANSI escape codes for clean log files."""
    _ansi_re = re.compile(r'\033\[[0-9;]*m')

    def format(self, record):
        result = super().format(record)
        return self._ansi_re.sub('', result)


class _ColorFormatter(logging.Formatter):
    """Dim DEBUG lines on the console for visual hierarchy."""
    _DIM = "\033[2m"
    _RESET = "\033[0m"

    def format(self, record):
        result = super().format(record)
        if record.levelno <= logging.DEBUG:
            return f"{self._DIM}{result}{self._RESET}"
        return result


def _setup_logging(level_str: str) -> MemoryHandler:
    """Console logging now; file records are buffered until ``_open_log_file``."""
    level = getattr(logging, level_str.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S")
    root = logging.getLogger()
    root.setLevel(level)

    for h in root.handlers:
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler):
            h.setFormatter(_ColorFormatter(fmt=LOG_FORMAT, datefmt="%H:%M:%S"))

    # Dry/live directory is only known once config is resolved
    buffer = MemoryHandler(capacity=10_000, flushLevel=logging.CRITICAL + 1)
    buffer.setLevel(level)
    root.addHandler(buffer)

    for noisy in ("urllib3", "web3", "requests"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return buffer


def _open_log_file(buffer: MemoryHandler, dry_run: bool) -> Path:
    """Attach the file handler (separate directories for dry and live runs) and flush buffered records."""
    mode = "dry" if dry_run else "live"
    log_dir = Path("logs") / mode
    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_dir / f"auto_claimer_{datetime.now():%Y-%m-%d_%H%M%S}.log"
    fh = logging.FileHandler(path)
    fh.setLevel(buffer.level)
    fh.setFormatter(_StripAnsiFormatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    buffer.setTarget(fh)
    root.removeHandler(buffer)
    buffer.close()
    root.addHandler(fh)
    return path


def _print_banner(cfg: ClaimerConfig) -> None:
    log.info("=" * 48)
    log.info("  Polymarket Auto-Claimer  [%s]", "DRY RUN" if cfg.dry_run else "LIVE")
    log.info("=" * 48)
    log.info("  Network         : %s (chain %d)", cfg.profile.label, cfg.profile.chain_id)
    log.info("  Wallet          : %s", cfg.wallet_address)
    if cfg.loop:
        minutes = cfg.interval_sec / 60
        log.info("  Loop            : every %g minute%s", minutes, "" if minutes == 1 else "s")
    else:
        log.info("  Loop            : single run")
    log.info("  Claim delay     : %gs", cfg.claim_delay_sec)
    log.info("=" * 48)


async def run(cfg: ClaimerConfig, claimer: Claimer) -> int:
    """Run single or loop mode. Returns the process exit code."""
    scheduler = Scheduler(cfg.interval_sec, loop=cfg.loop, jitter_max_sec=cfg.jitter_max_sec)
    # Both modes: a signal never interrupts a claim mid-flight
    scheduler.install_signal_handlers()

    async def _cycle(iteration: int) -> None:
        await claimer.run_cycle(iteration)

    try:
        await scheduler.run(_cycle)
    except StartupError as exc:
        log.error("%sFATAL %s%s", C_RED, exc, C_RESET)
        return 1
    finally:
        claimer.close()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    buffer = _setup_logging(args.log_level)

    env_file = load_env(args.env_file)
    if env_file:
        log.info("ENV loaded from %s", env_file)
    else:
        log.warning("ENV no .env file found │ using existing environment variables")

    try:
        cfg = build_config(
            read_yaml(args.config),
            dry_run=args.dry_run,
            loop=args.loop,
            interval=args.interval,
            network=args.network,
        )
    except (OSError, ValueError, yaml.YAMLError) as exc:
        log.error("%sFATAL cannot load config: %s%s", C_RED, exc, C_RESET)
        _open_log_file(buffer, dry_run=args.dry_run)
        sys.exit(1)

    log_path = _open_log_file(buffer, dry_run=cfg.dry_run)
    log.info("LOG file %s", log_path)

    try:
        validate_config(cfg)
        binding = WalletBinding.connect(cfg)
    except (ValueError, StartupError) as exc:
        log.error("%sFATAL %s%s", C_RED, exc, C_RESET)
        sys.exit(1)

    _print_banner(cfg)
    try:
        code = asyncio.run(run(cfg, Claimer(cfg, binding)))
    except KeyboardInterrupt:
        log.info("SHUTDOWN user interrupt")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
