"""One claim cycle: initialize once, fetch, claim, report balances."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

import requests

from auto_claimer.balances import get_balances, log_balances
from auto_claimer.config import ClaimerConfig
from auto_claimer.executor import ClaimExecutor
from auto_claimer.models import CycleSummary
from auto_claimer.positions import fetch_claimable
from auto_claimer.wallet import WalletBinding, WalletKind, init_wallet

log = logging.getLogger("ac.claimer")


class Claimer:
    def __init__(
        self,
        cfg: ClaimerConfig,
        binding: WalletBinding,
        session: Optional[requests.Session] = None,
        wallet_init: Callable[[WalletBinding], WalletKind] = init_wallet,
    ) -> None:
        self._cfg = cfg
        self._binding = binding
        self._session = session or requests.Session()
        self._wallet_init = wallet_init
        self._wallet: Optional[WalletKind] = None
        self._executor: Optional[ClaimExecutor] = None

    @property
    def wallet(self) -> Optional[WalletKind]:
        return self._wallet

    async def initialize(self) -> None:
        """Probe the wallet once per process. StartupError propagates."""
        if self._wallet is not None:
            return
        log.info("INIT %s │ wallet=%s │ signer=%s",
                 self._binding.profile.label, self._binding.wallet_address, self._binding.signer_address)
        self._wallet = await asyncio.to_thread(self._wallet_init, self._binding)
        self._executor = ClaimExecutor(self._cfg, self._binding, self._wallet)

    async def run_cycle(self, iteration: int = 1) -> CycleSummary:
        await self.initialize()

        positions = await asyncio.to_thread(
            fetch_claimable,
            self._session,
            self._binding.profile.data_api_url,
            self._binding.wallet_address,
            limit=self._cfg.position_limit,
            timeout=self._cfg.http_timeout_sec,
        )

        if not positions:
            log.info("No positions to claim")
            summary = CycleSummary(dry_run=self._cfg.dry_run)
        else:
            summary = await self._executor.claim_all(positions)

        await self.report_balances()
        return summary

    async def report_balances(self) -> None:
        balances = await asyncio.to_thread(get_balances, self._binding)
        log_balances(self._binding, balances)

    def close(self) -> None:
        self._session.close()
