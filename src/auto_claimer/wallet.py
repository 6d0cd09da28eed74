"""Wallet binding, startup checks and detection of the wallet implementation.

Polymarket users hold positions either in a Gnosis Safe (owned by the signer
EOA) or in a Polymarket proxy wallet driven through the ProxyWalletFactory.
The kind is probed once at startup and returned as a tagged value; the claim
executor matches on it for every claim.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import Web3Exception

from auto_claimer.config import ClaimerConfig, NetworkProfile
from auto_claimer.models import C_GREEN, C_RESET, C_YELLOW

log = logging.getLogger("ac.wallet")

SAFE_ABI = [
    {
        "name": "getOwners",
        "type": "function",
        "inputs": [],
        "outputs": [{"name": "", "type": "address[]"}],
        "stateMutability": "view",
    },
    {
        "name": "getThreshold",
        "type": "function",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
    {
        "name": "nonce",
        "type": "function",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
    {
        "name": "getTransactionHash",
        "type": "function",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "value", "type": "uint256"},
            {"name": "data", "type": "bytes"},
            {"name": "operation", "type": "uint8"},
            {"name": "safeTxGas", "type": "uint256"},
            {"name": "baseGas", "type": "uint256"},
            {"name": "gasPrice", "type": "uint256"},
            {"name": "gasToken", "type": "address"},
            {"name": "refundReceiver", "type": "address"},
            {"name": "_nonce", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bytes32"}],
        "stateMutability": "view",
    },
    {
        "name": "execTransaction",
        "type": "function",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "value", "type": "uint256"},
            {"name": "data", "type": "bytes"},
            {"name": "operation", "type": "uint8"},
            {"name": "safeTxGas", "type": "uint256"},
            {"name": "baseGas", "type": "uint256"},
            {"name": "gasPrice", "type": "uint256"},
            {"name": "gasToken", "type": "address"},
            {"name": "refundReceiver", "type": "address"},
            {"name": "signatures", "type": "bytes"},
        ],
        "outputs": [{"name": "success", "type": "bool"}],
        "stateMutability": "payable",
    },
]


class StartupError(RuntimeError):
    """Misconfiguration detected at startup. Fatal, never retried."""


@dataclass(frozen=True)
class WalletBinding:
    w3: Web3
    account: LocalAccount
    wallet_address: str
    profile: NetworkProfile

    @property
    def signer_address(self) -> str:
        return self.account.address

    @classmethod
    def connect(cls, cfg: ClaimerConfig) -> WalletBinding:
        w3 = Web3(Web3.HTTPProvider(cfg.rpc_url))
        try:
            account = Account.from_key(cfg.private_key)
        except (ValueError, TypeError) as exc:
            raise StartupError(f"Invalid private key: {exc}") from exc
        return cls(
            w3=w3,
            account=account,
            wallet_address=Web3.to_checksum_address(cfg.wallet_address),
            profile=cfg.profile,
        )


@dataclass(frozen=True)
class MultisigWallet:
    """Standard Safe with the signer among its owners."""

    address: str
    owners: tuple[str, ...]
    threshold: int


@dataclass(frozen=True)
class ProxyWallet:
    """Polymarket proxy wallet; the signer EOA pays gas through the factory."""

    address: str
    reason: str = ""


WalletKind = Union[MultisigWallet, ProxyWallet]


@dataclass(frozen=True)
class SafeProbe:
    owners: Optional[tuple[str, ...]] = None
    threshold: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_safe(self) -> bool:
        return self.owners is not None and self.threshold is not None


def _has_code(w3: Web3, address: str) -> bool:
    try:
        code = w3.eth.get_code(Web3.to_checksum_address(address))
    except (Web3Exception, ValueError, OSError) as exc:
        raise StartupError(f"Cannot read contract code at {address}: {exc}") from exc
    return len(code) > 0


def verify_binding(binding: WalletBinding) -> None:
    """Check network identity and contract code. Raises StartupError."""
    w3, profile = binding.w3, binding.profile
    try:
        chain_id = w3.eth.chain_id
    except (Web3Exception, ValueError, OSError) as exc:
        raise StartupError(f"Cannot reach RPC endpoint: {exc}") from exc

    if chain_id != profile.chain_id:
        raise StartupError(f"Wrong network. Expected chain {profile.chain_id}, got {chain_id}")

    if not _has_code(w3, profile.ctf_address):
        raise StartupError(f"CTF contract not found at {profile.ctf_address}")
    if not _has_code(w3, profile.usdc_address):
        raise StartupError(f"USDC contract not found at {profile.usdc_address}")
    if not _has_code(w3, binding.wallet_address):
        raise StartupError(
            f"No contract found at {binding.wallet_address}. "
            "Is this your Polymarket proxy or Safe wallet address?"
        )

    log.info("VERIFY chain=%d (%s) │ contracts ok │ wallet=%s",
             chain_id, profile.label, binding.wallet_address)


def probe_safe(binding: WalletBinding) -> SafeProbe:
    """Read owners and threshold through the Safe ABI.

    A contract-level failure means "not a Safe" and comes back as data. A
    transport failure says nothing about the wallet and raises StartupError.
    """
    safe = binding.w3.eth.contract(address=binding.wallet_address, abi=SAFE_ABI)
    try:
        owners = safe.functions.getOwners().call()
        threshold = safe.functions.getThreshold().call()
    except OSError as exc:
        raise StartupError(f"RPC error while probing Safe at {binding.wallet_address}: {exc}") from exc
    except (Web3Exception, ValueError) as exc:
        return SafeProbe(error=str(exc) or type(exc).__name__)
    return SafeProbe(
        owners=tuple(Web3.to_checksum_address(o) for o in owners),
        threshold=int(threshold),
    )


def select_wallet(binding: WalletBinding, probe: SafeProbe) -> WalletKind:
    signer = Web3.to_checksum_address(binding.signer_address)
    if not probe.is_safe:
        return ProxyWallet(binding.wallet_address, reason=f"not a Safe ({probe.error})")
    if signer not in probe.owners:
        return ProxyWallet(
            binding.wallet_address,
            reason=f"signer {signer} is not an owner of Safe {binding.wallet_address}",
        )
    return MultisigWallet(binding.wallet_address, owners=probe.owners, threshold=probe.threshold)


def init_wallet(binding: WalletBinding) -> WalletKind:
    """Verify the binding and pick the redemption path for the process lifetime."""
    verify_binding(binding)
    wallet = select_wallet(binding, probe_safe(binding))

    if isinstance(wallet, MultisigWallet):
        log.info("%sWALLET Safe detected │ threshold=%d/%d │ signer=%s%s",
                 C_GREEN, wallet.threshold, len(wallet.owners), binding.signer_address, C_RESET)
        if wallet.threshold > 1:
            log.warning("%sWALLET Safe threshold is %d │ claims will be refused until it is 1%s",
                        C_YELLOW, wallet.threshold, C_RESET)
    else:
        log.info("WALLET Safe path unavailable (%s) │ using proxy factory mode", wallet.reason)
        log.info("WALLET signer EOA %s pays gas for claims", binding.signer_address)
    return wallet
