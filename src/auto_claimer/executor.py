"""Sequential claim execution with per-claim failure isolation."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from auto_claimer.calldata import build_redemption_calldata, redemption_target
from auto_claimer.config import ClaimerConfig
from auto_claimer.models import (
    C_GREEN,
    C_RED,
    C_RESET,
    ClaimOutcome,
    ClaimResult,
    CycleSummary,
    Position,
)
from auto_claimer.redeem import TxSettings, redeem_via_proxy_factory, redeem_via_safe
from auto_claimer.wallet import MultisigWallet, ProxyWallet, WalletBinding, WalletKind

log = logging.getLogger("ac.executor")

DRY_RUN_TX_ID = "DRY_RUN"


class ClaimExecutor:
    """Claims positions one at a time.

    Claims share the signer's nonce sequence, so they are awaited strictly in
    order with ``claim_delay_sec`` between submissions. A failed claim is
    recorded and the batch moves on.
    """

    def __init__(
        self,
        cfg: ClaimerConfig,
        binding: Optional[WalletBinding] = None,
        wallet: Optional[WalletKind] = None,
    ) -> None:
        self._cfg = cfg
        self._binding = binding
        self._wallet = wallet

    @property
    def _settings(self) -> TxSettings:
        gas = self._cfg.safe_gas_limit if isinstance(self._wallet, MultisigWallet) else self._cfg.proxy_gas_limit
        return TxSettings(
            gas=gas,
            priority_fee_gwei=self._cfg.priority_fee_gwei,
            receipt_timeout_sec=self._cfg.receipt_timeout_sec,
        )

    async def claim_position(self, position: Position) -> ClaimResult:
        verb = "DRY_CLAIM" if self._cfg.dry_run else "CLAIM"
        log.info("%s %s │ outcome=%s │ size=%s │ condition=%s │ index=%d │ neg_risk=%s",
                 verb, position.title or position.slug, position.outcome, position.size,
                 position.condition_id, position.outcome_index, position.negative_risk)

        if self._cfg.dry_run:
            log.info("DRY_CLAIM expected payout $%s USDC", position.size)
            return ClaimResult(success=True, outcome=ClaimOutcome.DRY_RUN_SKIPPED, tx_id=DRY_RUN_TX_ID)

        if self._binding is None or self._wallet is None:
            return ClaimResult.failed("wallet not initialized")

        profile = self._binding.profile
        try:
            calldata = build_redemption_calldata(
                position.condition_id,
                position.outcome_index,
                position.negative_risk,
                position.size,
                profile.usdc_address,
            )
        except ValueError as exc:
            log.error("%sCLAIM_ENCODE_FAIL %s │ %s%s", C_RED, position.condition_id, exc, C_RESET)
            return ClaimResult.failed(f"Cannot encode redemption: {exc}")

        target = redemption_target(position.negative_risk, profile)
        log.info("CLAIM_TARGET %s │ %s", "NegRiskAdapter" if position.negative_risk else "CTF", target)

        if isinstance(self._wallet, MultisigWallet):
            return await asyncio.to_thread(
                redeem_via_safe, self._binding, self._wallet, target, calldata, self._settings,
            )
        if isinstance(self._wallet, ProxyWallet):
            return await asyncio.to_thread(
                redeem_via_proxy_factory, self._binding, target, calldata, self._settings,
            )
        raise TypeError(f"unknown wallet kind: {type(self._wallet).__name__}")

    async def claim_all(self, positions: Sequence[Position]) -> CycleSummary:
        summary = CycleSummary(dry_run=self._cfg.dry_run)
        if not positions:
            return summary

        if self._cfg.dry_run:
            log.info("DRY_RUN %d claimable positions │ nothing will be submitted", len(positions))
        else:
            log.info("CLAIM_START %d positions", len(positions))

        for i, position in enumerate(positions):
            try:
                result = await self.claim_position(position)
            except Exception as exc:
                log.exception("%sCLAIM_ERROR %s │ %s%s", C_RED, position.condition_id, exc, C_RESET)
                result = ClaimResult.failed(str(exc) or type(exc).__name__)

            summary.record(position, result)
            if result.success and result.outcome is not ClaimOutcome.DRY_RUN_SKIPPED:
                log.info("%sCLAIM_OK %s │ %s │ tx=%s%s",
                         C_GREEN, position.slug or position.condition_id, result.outcome.value, result.tx_id, C_RESET)
            elif not result.success:
                log.warning("%sCLAIM_FAIL %s │ %s │ %s%s",
                            C_RED, position.slug or position.condition_id, result.outcome.value, result.error, C_RESET)

            if not self._cfg.dry_run and i < len(positions) - 1 and self._cfg.claim_delay_sec > 0:
                await asyncio.sleep(self._cfg.claim_delay_sec)

        log_summary(summary)
        return summary


def log_summary(summary: CycleSummary) -> None:
    log.info("SUMMARY " + "─" * 40)
    if summary.dry_run:
        log.info("SUMMARY [DRY RUN] would claim %d positions │ total value $%.2f USDC",
                 summary.succeeded, summary.face_value)
        return
    log.info("SUMMARY succeeded=%d │ failed=%d │ total=%d │ claimed $%.2f USDC",
             summary.succeeded, summary.failed, summary.attempted, summary.face_value)
