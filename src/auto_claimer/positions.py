"""Position fetching and the claimable-position filter."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

import requests

from auto_claimer.models import ONE, ZERO, Position

log = logging.getLogger("ac.positions")

USER_AGENT = "Polymarket-Auto-Claimer/1.0"


@dataclass(frozen=True)
class PositionStats:
    total: int
    redeemable: int
    winning: int
    losing: int


def is_claimable(position: Position) -> bool:
    """A position can be redeemed for collateral only if it won and is still held."""
    return position.redeemable and position.size > ZERO and position.cur_price == ONE


def filter_claimable(positions: Iterable[Position]) -> list[Position]:
    return [p for p in positions if is_claimable(p)]


def summarize(positions: Iterable[Position]) -> PositionStats:
    positions = list(positions)
    return PositionStats(
        total=len(positions),
        redeemable=sum(1 for p in positions if p.redeemable),
        winning=sum(1 for p in positions if p.cur_price == ONE),
        losing=sum(1 for p in positions if p.cur_price == ZERO),
    )


def fetch_positions(
    session: requests.Session,
    api_url: str,
    wallet_address: str,
    limit: int = 500,
    timeout: float = 30.0,
) -> list[Position]:
    """GET /positions for the wallet. Raises on transport errors or a malformed payload.

    Positions live in the proxy wallet, not the signer EOA, so *wallet_address*
    must be the proxy. The API's ``redeemable`` filter is not used; it has been
    seen to drop winning positions.
    """
    resp = session.get(
        f"{api_url.rstrip('/')}/positions",
        params={"user": wallet_address.lower(), "limit": limit},
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        timeout=timeout,
    )
    resp.raise_for_status()
    data = resp.json()
    if not isinstance(data, list):
        raise ValueError(f"expected a list of positions, got {type(data).__name__}")

    positions: list[Position] = []
    for raw in data:
        try:
            positions.append(Position.from_api(raw))
        except ValueError as exc:
            log.warning("POSITION_SKIP malformed record │ %s", exc)
    return positions


def fetch_claimable(
    session: requests.Session,
    api_url: str,
    wallet_address: str,
    limit: int = 500,
    timeout: float = 30.0,
) -> list[Position]:
    """Fetch and filter. Never raises: a failed fetch yields no positions for this cycle."""
    try:
        positions = fetch_positions(session, api_url, wallet_address, limit=limit, timeout=timeout)
    except (requests.RequestException, ValueError) as exc:
        log.error("POSITIONS_FETCH_FAIL │ %s", exc)
        return []

    stats = summarize(positions)
    claimable = filter_claimable(positions)
    log.info(
        "POSITIONS fetched=%d │ redeemable=%d │ winning=%d │ losing=%d │ claimable=%d",
        stats.total, stats.redeemable, stats.winning, stats.losing, len(claimable),
    )
    if stats.total >= limit:
        log.warning("POSITIONS hit the %d result cap │ some positions may be missing", limit)
    return claimable
