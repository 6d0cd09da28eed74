"""On-chain submission of redemption calls.

Two routes, chosen once at startup by ``wallet.init_wallet``:

* Safe: the signer EOA signs the Safe transaction hash and calls
  ``execTransaction`` on the Safe, which forwards the call to the target.
* Proxy: the signer EOA calls ``ProxyWalletFactory.proxy()``, which forwards
  the call through the user's proxy wallet (the one holding the ERC-1155
  conditional tokens). The EOA pays gas.

Both return a ``ClaimResult``; expected failures never raise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from auto_claimer.models import C_GREEN, C_RED, C_RESET, C_YELLOW, ClaimOutcome, ClaimResult
from auto_claimer.wallet import SAFE_ABI, MultisigWallet, WalletBinding

log = logging.getLogger("ac.redeem")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Safe operation / proxy typeCode for a plain CALL
OP_CALL = 0
PROXY_CALL = 1

PROXY_FACTORY_ABI = [
    {
        "name": "proxy",
        "type": "function",
        "inputs": [
            {
                "name": "calls",
                "type": "tuple[]",
                "components": [
                    {"name": "typeCode", "type": "uint8"},
                    {"name": "to", "type": "address"},
                    {"name": "value", "type": "uint256"},
                    {"name": "data", "type": "bytes"},
                ],
            }
        ],
        "outputs": [{"name": "returnValues", "type": "bytes[]"}],
        "stateMutability": "payable",
    }
]

SUBMIT_ERRORS = (Web3Exception, ValueError, OSError)


@dataclass(frozen=True)
class TxSettings:
    gas: int = 500_000
    priority_fee_gwei: int = 30
    receipt_timeout_sec: float = 120.0


def describe_error(exc: BaseException) -> str:
    """Human-readable reason: decoded revert reason, JSON-RPC message, or the raw text."""
    if isinstance(exc, ContractLogicError):
        message = getattr(exc, "message", None)
        if message:
            return str(message)
    if exc.args and isinstance(exc.args[0], dict):
        message = exc.args[0].get("message")
        if message:
            return str(message)
    return str(exc) or type(exc).__name__


def _fund_hint(binding: WalletBinding) -> str:
    return f"Send {binding.profile.gas_symbol} to {binding.signer_address}"


def _failed(binding: WalletBinding, exc: BaseException, route: str) -> ClaimResult:
    reason = describe_error(exc)
    log.error("%sREDEEM_FAILED route=%s │ %s%s", C_RED, route, reason, C_RESET)
    if "insufficient funds" in reason.lower():
        log.warning("%sREDEEM_HINT %s (0.01-0.1 is enough for gas)%s", C_YELLOW, _fund_hint(binding), C_RESET)
        reason = f"{reason} │ {_fund_hint(binding)}"
    return ClaimResult.failed(reason)


def _fee_fields(w3: Web3, priority_fee_gwei: int) -> dict:
    gas_price = w3.eth.gas_price
    max_fee = gas_price * 2
    priority = min(Web3.to_wei(priority_fee_gwei, "gwei"), max_fee)
    return {"maxFeePerGas": max_fee, "maxPriorityFeePerGas": priority}


def _send_and_wait(binding: WalletBinding, tx: dict, settings: TxSettings, route: str) -> ClaimResult:
    """Sign, broadcast, wait for one confirmation and classify the receipt."""
    w3 = binding.w3
    signed = binding.account.sign_transaction(tx)
    tx_hash = Web3.to_hex(w3.eth.send_raw_transaction(signed.raw_transaction))
    log.info("REDEEM_SENT route=%s │ tx=%s │ waiting for receipt (timeout=%ds)",
             route, tx_hash, settings.receipt_timeout_sec)

    try:
        receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=settings.receipt_timeout_sec)
    except TimeExhausted:
        log.warning("%sREDEEM_UNCONFIRMED route=%s │ tx=%s │ no receipt after %ds%s",
                    C_YELLOW, route, tx_hash, settings.receipt_timeout_sec, C_RESET)
        return ClaimResult(success=True, outcome=ClaimOutcome.RELAYED_UNCONFIRMED, tx_id=tx_hash)
    except SUBMIT_ERRORS as exc:
        # Already broadcast: the chain hash is the only way to trace it
        log.warning("%sREDEEM_UNCONFIRMED route=%s │ tx=%s │ receipt wait failed: %s%s",
                    C_YELLOW, route, tx_hash, describe_error(exc), C_RESET)
        return ClaimResult(success=True, outcome=ClaimOutcome.RELAYED_UNCONFIRMED, tx_id=tx_hash)

    log.info("REDEEM_RECEIPT status=%d │ block=%s │ gasUsed=%s",
             receipt["status"], receipt.get("blockNumber", "?"), receipt.get("gasUsed", "?"))
    if receipt["status"] != 1:
        log.error("%sREDEEM_REVERTED route=%s │ tx=%s%s", C_RED, route, tx_hash, C_RESET)
        return ClaimResult(
            success=False, outcome=ClaimOutcome.REVERTED, tx_id=tx_hash, error="Transaction reverted",
        )

    log.info("%sREDEEM_CONFIRMED route=%s │ tx=%s │ block=%s%s",
             C_GREEN, route, tx_hash, receipt.get("blockNumber", "?"), C_RESET)
    return ClaimResult(success=True, outcome=ClaimOutcome.CONFIRMED, tx_id=tx_hash)


def redeem_via_safe(
    binding: WalletBinding,
    wallet: MultisigWallet,
    target: str,
    calldata: bytes,
    settings: TxSettings = TxSettings(),
) -> ClaimResult:
    """Execute a single CALL to *target* through the Safe, signed by the owner EOA."""
    w3, account = binding.w3, binding.account
    target = Web3.to_checksum_address(target)
    safe = w3.eth.contract(address=Web3.to_checksum_address(wallet.address), abi=SAFE_ABI)
    safe_tx_hash: bytes | None = None

    if wallet.threshold > 1:
        reason = (f"Safe threshold {wallet.threshold} needs {wallet.threshold} owner signatures; "
                  f"only {account.address} signs here")
        log.error("%sREDEEM_SKIP route=safe │ %s%s", C_RED, reason, C_RESET)
        return ClaimResult.failed(reason)

    try:
        safe_nonce = safe.functions.nonce().call()
        safe_tx_hash = safe.functions.getTransactionHash(
            target, 0, calldata, OP_CALL,
            0, 0, 0, ZERO_ADDRESS, ZERO_ADDRESS,
            safe_nonce,
        ).call()
        log.info("SAFE_TX nonce=%d │ safeTxHash=%s │ target=%s",
                 safe_nonce, Web3.to_hex(safe_tx_hash), target)

        # Safe tx hash is already the EIP-712 digest: sign it raw (v = 27/28)
        signature = bytes(account.unsafe_sign_hash(safe_tx_hash).signature)

        exec_tx = safe.functions.execTransaction(
            target, 0, calldata, OP_CALL,
            0, 0, 0, ZERO_ADDRESS, ZERO_ADDRESS,
            signature,
        )
        # eth_call first: a revert raises here with its reason, before any gas is spent
        exec_tx.call({"from": account.address})
        tx = exec_tx.build_transaction({
            "from": account.address,
            "chainId": binding.profile.chain_id,
            "nonce": w3.eth.get_transaction_count(account.address, "pending"),
            "gas": settings.gas,
            **_fee_fields(w3, settings.priority_fee_gwei),
        })
        return _send_and_wait(binding, tx, settings, "safe")
    except SUBMIT_ERRORS as exc:
        failed = _failed(binding, exc, "safe")
        if safe_tx_hash is None:
            return failed
        # No chain tx exists; keep the Safe's own tx hash for tracing
        return ClaimResult.failed(failed.error, tx_id=Web3.to_hex(safe_tx_hash))


def redeem_via_proxy_factory(
    binding: WalletBinding,
    target: str,
    calldata: bytes,
    settings: TxSettings = TxSettings(),
) -> ClaimResult:
    """Forward a CALL to *target* through ProxyWalletFactory.proxy(); the EOA pays gas."""
    w3, account = binding.w3, binding.account
    target = Web3.to_checksum_address(target)

    try:
        balance = w3.eth.get_balance(account.address)
    except SUBMIT_ERRORS as exc:
        return _failed(binding, exc, "proxy")

    log.info("PROXY_GAS eoa=%s │ %s=%s",
             account.address, binding.profile.gas_symbol, Web3.from_wei(balance, "ether"))
    if balance == 0:
        reason = f"No {binding.profile.gas_symbol} for gas fees. {_fund_hint(binding)}"
        log.warning("%sREDEEM_SKIP no gas │ %s (0.01-0.1 is enough)%s", C_YELLOW, _fund_hint(binding), C_RESET)
        return ClaimResult.failed(reason)

    factory = w3.eth.contract(
        address=Web3.to_checksum_address(binding.profile.proxy_wallet_factory),
        abi=PROXY_FACTORY_ABI,
    )
    log.info("REDEEM_VIA_PROXY factory=%s │ wallet=%s │ target=%s",
             binding.profile.proxy_wallet_factory, binding.wallet_address, target)

    try:
        proxy_tx = factory.functions.proxy([(PROXY_CALL, target, 0, calldata)])
        proxy_tx.call({"from": account.address})
        tx = proxy_tx.build_transaction({
            "from": account.address,
            "chainId": binding.profile.chain_id,
            "nonce": w3.eth.get_transaction_count(account.address, "pending"),
            "gas": settings.gas,
            **_fee_fields(w3, settings.priority_fee_gwei),
        })
        return _send_and_wait(binding, tx, settings, "proxy")
    except SUBMIT_ERRORS as exc:
        return _failed(binding, exc, "proxy")
