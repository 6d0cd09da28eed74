"""Wallet balance report printed after each cycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from web3 import Web3

from auto_claimer.calldata import CTF_DECIMALS
from auto_claimer.wallet import WalletBinding

log = logging.getLogger("ac.balances")

ERC20_BALANCE_ABI = [
    {
        "name": "balanceOf",
        "type": "function",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    }
]


@dataclass(frozen=True)
class WalletBalances:
    wallet_usdc: Decimal
    signer_gas: Decimal
    wallet_gas: Decimal


def _short(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"


def get_balances(binding: WalletBinding) -> WalletBalances:
    w3 = binding.w3
    usdc = w3.eth.contract(
        address=Web3.to_checksum_address(binding.profile.usdc_address), abi=ERC20_BALANCE_ABI,
    )
    raw_usdc = usdc.functions.balanceOf(binding.wallet_address).call()
    return WalletBalances(
        wallet_usdc=Decimal(raw_usdc) / Decimal(10 ** CTF_DECIMALS),
        signer_gas=Decimal(Web3.from_wei(w3.eth.get_balance(binding.signer_address), "ether")),
        wallet_gas=Decimal(Web3.from_wei(w3.eth.get_balance(binding.wallet_address), "ether")),
    )


def log_balances(binding: WalletBinding, balances: WalletBalances) -> None:
    sym = binding.profile.gas_symbol
    log.info("BALANCES signer %s │ %s=%s (pays gas)",
             _short(binding.signer_address), sym, balances.signer_gas)
    log.info("BALANCES wallet %s │ USDC=%s │ %s=%s (not needed for claims)",
             _short(binding.wallet_address), balances.wallet_usdc, sym, balances.wallet_gas)
