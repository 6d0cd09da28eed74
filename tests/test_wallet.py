"""Tests for startup verification and wallet kind detection."""

from unittest.mock import MagicMock, PropertyMock

import pytest
import requests
from web3 import Web3
from web3.exceptions import ContractLogicError

from auto_claimer.wallet import (
    MultisigWallet,
    ProxyWallet,
    SafeProbe,
    StartupError,
    WalletBinding,
    init_wallet,
    probe_safe,
    select_wallet,
    verify_binding,
)
from conftest import SIGNER, WALLET

OTHER_OWNER = "0x" + "cc" * 20


def _safe_contract(w3, owners=None, threshold=1, exc=None):
    safe = MagicMock()
    if exc is not None:
        safe.functions.getOwners.return_value.call.side_effect = exc
    else:
        safe.functions.getOwners.return_value.call.return_value = owners or [SIGNER]
    safe.functions.getThreshold.return_value.call.return_value = threshold
    w3.eth.contract.return_value = safe
    return safe


class TestVerifyBinding:
    def test_ok(self, binding):
        verify_binding(binding)  # should not raise

    def test_wrong_chain(self, binding, w3):
        w3.eth.chain_id = 1
        with pytest.raises(StartupError, match="Wrong network"):
            verify_binding(binding)

    def test_missing_ctf_code(self, binding, w3):
        w3.eth.get_code.return_value = b""
        with pytest.raises(StartupError, match="CTF contract"):
            verify_binding(binding)

    def test_wallet_without_code(self, binding, w3):
        wallet = Web3.to_checksum_address(WALLET)
        w3.eth.get_code.side_effect = lambda addr: b"" if addr == wallet else b"\x60"
        with pytest.raises(StartupError, match="No contract found"):
            verify_binding(binding)

    def test_rpc_unreachable(self, binding, w3):
        w3.eth = MagicMock()
        type(w3.eth).chain_id = PropertyMock(side_effect=OSError("refused"))
        with pytest.raises(StartupError, match="Cannot reach RPC"):
            verify_binding(binding)

    def test_get_code_transport_error(self, binding, w3):
        w3.eth.get_code.side_effect = requests.ConnectionError("connection reset")
        with pytest.raises(StartupError, match="Cannot read contract code"):
            verify_binding(binding)


class TestProbeSafe:
    def test_transport_error_is_fatal(self, binding, w3):
        _safe_contract(w3, exc=requests.ConnectionError("connection reset"))
        with pytest.raises(StartupError, match="RPC error while probing Safe"):
            probe_safe(binding)

    def test_reads_owners_and_threshold(self, binding, w3):
        _safe_contract(w3, owners=[SIGNER, OTHER_OWNER], threshold=2)
        probe = probe_safe(binding)
        assert probe.is_safe
        assert probe.threshold == 2
        assert probe.owners == (Web3.to_checksum_address(SIGNER), Web3.to_checksum_address(OTHER_OWNER))

    def test_call_failure_is_data(self, binding, w3):
        _safe_contract(w3, exc=ContractLogicError("execution reverted"))
        probe = probe_safe(binding)
        assert not probe.is_safe
        assert "execution reverted" in probe.error


class TestSelectWallet:
    def test_signer_is_owner(self, binding):
        probe = SafeProbe(owners=(Web3.to_checksum_address(SIGNER),), threshold=1)
        wallet = select_wallet(binding, probe)
        assert isinstance(wallet, MultisigWallet)
        assert wallet.threshold == 1

    def test_signer_not_owner(self, binding):
        probe = SafeProbe(owners=(Web3.to_checksum_address(OTHER_OWNER),), threshold=1)
        wallet = select_wallet(binding, probe)
        assert isinstance(wallet, ProxyWallet)
        assert "not an owner" in wallet.reason

    def test_probe_failed(self, binding):
        wallet = select_wallet(binding, SafeProbe(error="revert"))
        assert isinstance(wallet, ProxyWallet)
        assert wallet.address == WALLET

    def test_high_threshold_still_safe(self, binding):
        probe = SafeProbe(owners=(Web3.to_checksum_address(SIGNER), OTHER_OWNER), threshold=2)
        assert isinstance(select_wallet(binding, probe), MultisigWallet)


class TestInitWallet:
    def test_falls_back_to_proxy(self, binding, w3):
        _safe_contract(w3, exc=ContractLogicError("no getOwners"))
        assert isinstance(init_wallet(binding), ProxyWallet)

    def test_detects_safe(self, binding, w3):
        _safe_contract(w3, owners=[SIGNER])
        assert isinstance(init_wallet(binding), MultisigWallet)

    def test_verification_failure_propagates(self, binding, w3):
        w3.eth.chain_id = 80001
        with pytest.raises(StartupError):
            init_wallet(binding)


class TestConnect:
    def test_invalid_key(self, live_cfg):
        from dataclasses import replace
        with pytest.raises(StartupError, match="Invalid private key"):
            WalletBinding.connect(replace(live_cfg, private_key="0x1234"))

    def test_valid_key(self, live_cfg):
        binding = WalletBinding.connect(live_cfg)
        assert binding.wallet_address == Web3.to_checksum_address(WALLET)
        assert binding.profile.chain_id == 137
        assert binding.signer_address.startswith("0x")
