"""Configuration loading for the auto-claimer.

Merge order: dataclass defaults → config.yaml ``claimer`` section →
environment variables → CLI arguments.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

log = logging.getLogger("ac.config")

NEG_RISK_ADAPTER = "0xd91E80cF2E7be2e162c6513ceD06f1dD0dA35296"
PROXY_WALLET_FACTORY = "0xaB45c5A4B0c941a2F231C04C3f49182e1A254052"

DEFAULT_INTERVAL_MINUTES = 60.0
MIN_INTERVAL_MINUTES = 1.0


@dataclass(frozen=True)
class NetworkProfile:
    name: str
    label: str
    chain_id: int
    ctf_address: str
    usdc_address: str
    data_api_url: str
    neg_risk_adapter: str = NEG_RISK_ADAPTER
    proxy_wallet_factory: str = PROXY_WALLET_FACTORY
    gas_symbol: str = "POL"


NETWORK_PROFILES: dict[str, NetworkProfile] = {
    "mainnet": NetworkProfile(
        name="mainnet",
        label="Polygon Mainnet",
        chain_id=137,
        ctf_address="0x4D97DCd97eC945f40cF65F87097ACe5EA0476045",
        usdc_address="0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
        data_api_url="https://data-api.polymarket.com",
    ),
    "testnet": NetworkProfile(
        name="testnet",
        label="Mumbai Testnet",
        chain_id=80001,
        ctf_address="0x7D8610E9567d2a6C9FBB66a99Fb1438587be9F0E",
        usdc_address="0xe11A86849d99F524cAC3E7A0Ec1241828e332C62",
        data_api_url="https://data-api-testnet.polymarket.com",
        gas_symbol="MATIC",
    ),
}


@dataclass(frozen=True)
class ClaimerConfig:
    network: str = "mainnet"
    dry_run: bool = False
    loop: bool = False
    interval_minutes: Optional[float] = None

    # Data API
    position_limit: int = 500
    http_timeout_sec: float = 30.0

    # Execution
    claim_delay_sec: float = 2.0
    receipt_timeout_sec: float = 120.0
    proxy_gas_limit: int = 500_000
    safe_gas_limit: int = 500_000
    priority_fee_gwei: int = 30

    # Scheduling
    jitter_max_sec: float = 3.0

    # Credentials (from env only, never from YAML)
    private_key: str = field(default="", repr=False)
    rpc_url: str = field(default="", repr=False)
    wallet_address: str = ""

    @property
    def profile(self) -> NetworkProfile:
        return NETWORK_PROFILES[self.network]

    @property
    def interval_sec(self) -> float:
        return (self.interval_minutes or DEFAULT_INTERVAL_MINUTES) * 60.0


def validate_config(cfg: ClaimerConfig) -> None:
    """Validate config values. Raises ValueError with all issues found."""
    errors: list[str] = []

    if cfg.network not in NETWORK_PROFILES:
        errors.append(f"network must be one of {sorted(NETWORK_PROFILES)}, got {cfg.network!r}")
    if not cfg.private_key:
        errors.append("POLYMARKET_PRIVATE_KEY (or PK) is not set")
    if not cfg.rpc_url:
        errors.append("POLYGON_RPC_URL (or RPC_URL) is not set")
    if not cfg.wallet_address:
        errors.append("POLYMARKET_FUNDER_ADDRESS (or POLYMARKET_PROXY_ADDRESS) is not set")
    elif not _looks_like_address(cfg.wallet_address):
        errors.append(f"wallet address is not a 20-byte hex address: {cfg.wallet_address!r}")
    if cfg.interval_minutes is not None and cfg.interval_minutes < MIN_INTERVAL_MINUTES:
        errors.append(f"interval_minutes must be >= {MIN_INTERVAL_MINUTES:g}, got {cfg.interval_minutes}")
    if cfg.position_limit <= 0:
        errors.append(f"position_limit must be > 0, got {cfg.position_limit}")
    if cfg.claim_delay_sec < 0:
        errors.append(f"claim_delay_sec must be >= 0, got {cfg.claim_delay_sec}")
    if cfg.receipt_timeout_sec <= 0:
        errors.append(f"receipt_timeout_sec must be > 0, got {cfg.receipt_timeout_sec}")
    if not (0 <= cfg.jitter_max_sec < 5):
        errors.append(f"jitter_max_sec must be in [0, 5), got {cfg.jitter_max_sec}")
    if cfg.proxy_gas_limit <= 0 or cfg.safe_gas_limit <= 0:
        errors.append("gas limits must be > 0")

    if errors:
        raise ValueError("Config validation failed:\n  " + "\n  ".join(errors))


def _looks_like_address(value: str) -> bool:
    body = value[2:] if value.lower().startswith("0x") else ""
    if len(body) != 40:
        return False
    try:
        int(body, 16)
    except ValueError:
        return False
    return True


def load_claimer_config(raw: dict[str, Any]) -> ClaimerConfig:
    """Load ClaimerConfig from config.yaml's claimer section."""
    section = (raw or {}).get("claimer", {})
    if not section:
        return ClaimerConfig()

    interval = section.get("interval_minutes")
    return ClaimerConfig(
        network=str(section.get("network", "mainnet")),
        dry_run=bool(section.get("dry_run", False)),
        loop=bool(section.get("loop", False)),
        interval_minutes=float(interval) if interval is not None else None,
        position_limit=int(section.get("position_limit", 500)),
        http_timeout_sec=float(section.get("http_timeout_sec", 30.0)),
        claim_delay_sec=float(section.get("claim_delay_sec", 2.0)),
        receipt_timeout_sec=float(section.get("receipt_timeout_sec", 120.0)),
        proxy_gas_limit=int(section.get("proxy_gas_limit", 500_000)),
        safe_gas_limit=int(section.get("safe_gas_limit", 500_000)),
        priority_fee_gwei=int(section.get("priority_fee_gwei", 30)),
        jitter_max_sec=float(section.get("jitter_max_sec", 3.0)),
    )


def read_yaml(path: Optional[str]) -> dict[str, Any]:
    """Read a YAML config file. An explicit path must exist; the default may be absent."""
    if path:
        with open(path) as f:
            return yaml.safe_load(f) or {}
    default = Path("config.yaml")
    if default.exists():
        with open(default) as f:
            return yaml.safe_load(f) or {}
    return {}


def env_file_candidates(explicit: Optional[str] = None, cwd: Optional[Path] = None) -> list[Path]:
    """Ordered .env candidates: --env-file, $ENV_PATH, ../.env, ./.env."""
    cwd = cwd or Path.cwd()
    candidates: list[Path] = []

    def _add(p: Path) -> None:
        if p not in candidates:
            candidates.append(p)

    if explicit:
        p = Path(explicit)
        _add(p if p.is_absolute() else (cwd / p).resolve())
    env_path = os.environ.get("ENV_PATH")
    if env_path:
        p = Path(env_path)
        _add(p if p.is_absolute() else (cwd / p).resolve())
    _add((cwd / ".." / ".env").resolve())
    _add((cwd / ".env").resolve())
    return candidates


def load_env(explicit: Optional[str] = None, cwd: Optional[Path] = None) -> Optional[Path]:
    """Load the first existing .env file without overriding already-set variables."""
    for path in env_file_candidates(explicit, cwd):
        if path.is_file():
            load_dotenv(path, override=False)
            return path
    return None


def _env_first(*names: str) -> str:
    for name in names:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return ""


def _parse_minutes(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        minutes = float(value)
    except (TypeError, ValueError):
        log.warning("CONFIG ignoring non-numeric interval %r", value)
        return None
    if minutes <= 0:
        log.warning("CONFIG ignoring non-positive interval %r", value)
        return None
    return minutes


def resolve_schedule(
    wants_loop: bool,
    interval: Any = None,
    env_interval: Any = None,
) -> tuple[bool, Optional[float]]:
    """Decide loop mode and interval minutes.

    An interval given without ``--loop`` turns loop mode on. ``--loop`` with
    no interval anywhere uses the 60 minute default. Intervals under one
    minute are raised to one.
    """
    minutes = _parse_minutes(interval)
    if minutes is None:
        minutes = _parse_minutes(env_interval)
    if wants_loop and minutes is None:
        minutes = DEFAULT_INTERVAL_MINUTES

    if not wants_loop and minutes is not None:
        log.info("CONFIG interval %gm given without --loop │ enabling loop mode", minutes)

    if minutes is not None and minutes < MIN_INTERVAL_MINUTES:
        log.warning("CONFIG interval < %gm not allowed │ using %gm", MIN_INTERVAL_MINUTES, MIN_INTERVAL_MINUTES)
        minutes = MIN_INTERVAL_MINUTES

    return wants_loop or minutes is not None, minutes


def build_config(
    raw_yaml: dict[str, Any],
    *,
    dry_run: bool = False,
    loop: bool = False,
    interval: Any = None,
    network: Optional[str] = None,
) -> ClaimerConfig:
    """Layer env credentials and CLI flags over the YAML section."""
    base = load_claimer_config(raw_yaml)
    env_interval = os.environ.get("LOOP_INTERVAL_MINUTES") or base.interval_minutes
    loop_mode, minutes = resolve_schedule(loop or base.loop, interval, env_interval)
    return replace(
        base,
        network=network or base.network,
        dry_run=dry_run or base.dry_run,
        loop=loop_mode,
        interval_minutes=minutes,
        private_key=_env_first("POLYMARKET_PRIVATE_KEY", "PK"),
        rpc_url=_env_first("POLYGON_RPC_URL", "RPC_URL"),
        wallet_address=_env_first("POLYMARKET_FUNDER_ADDRESS", "POLYMARKET_PROXY_ADDRESS"),
    )
