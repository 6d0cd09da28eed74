"""Shared fixtures for auto-claimer tests."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from auto_claimer.config import NETWORK_PROFILES, ClaimerConfig
from auto_claimer.models import Position
from auto_claimer.wallet import WalletBinding

SIGNER = "0x" + "aa" * 20
WALLET = "0x" + "bb" * 20
CONDITION_A = "0x" + "11" * 32
CONDITION_B = "0x" + "22" * 32


def raw_position(**overrides) -> dict:
    raw = {
        "proxyWallet": WALLET,
        "asset": "12345",
        "conditionId": CONDITION_A,
        "size": 12.5,
        "curPrice": 1,
        "redeemable": True,
        "outcome": "Yes",
        "outcomeIndex": 0,
        "title": "Will it rain tomorrow?",
        "slug": "will-it-rain-tomorrow",
        "negativeRisk": False,
    }
    raw.update(overrides)
    return raw


def make_position(**overrides) -> Position:
    fields = dict(
        condition_id=CONDITION_A,
        outcome_index=0,
        size=Decimal("10"),
        cur_price=Decimal("1"),
        redeemable=True,
        negative_risk=False,
        title="Test market",
        outcome="Yes",
        slug="test-market",
    )
    fields.update(overrides)
    return Position(**fields)


@pytest.fixture
def live_cfg() -> ClaimerConfig:
    return ClaimerConfig(
        dry_run=False,
        claim_delay_sec=0,
        private_key="0x" + "11" * 32,
        rpc_url="http://localhost:8545",
        wallet_address=WALLET,
    )


@pytest.fixture
def dry_cfg(live_cfg) -> ClaimerConfig:
    from dataclasses import replace
    return replace(live_cfg, dry_run=True)


@pytest.fixture
def w3() -> MagicMock:
    w3 = MagicMock()
    w3.eth.chain_id = 137
    w3.eth.gas_price = 50_000_000_000
    w3.eth.get_code.return_value = b"\x60\x80\x60\x40"
    w3.eth.get_balance.return_value = 10 ** 18
    w3.eth.get_transaction_count.return_value = 7
    w3.eth.send_raw_transaction.return_value = b"\x01" * 32
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 100, "gasUsed": 90_000}
    w3.eth.contract.return_value.functions.balanceOf.return_value.call.return_value = 0
    return w3


@pytest.fixture
def account() -> MagicMock:
    account = MagicMock()
    account.address = SIGNER
    account.sign_transaction.return_value = MagicMock(raw_transaction=b"\x02")
    account.unsafe_sign_hash.return_value = MagicMock(signature=b"\x03" * 65)
    return account


@pytest.fixture
def binding(w3, account) -> WalletBinding:
    return WalletBinding(
        w3=w3,
        account=account,
        wallet_address=WALLET,
        profile=NETWORK_PROFILES["mainnet"],
    )
