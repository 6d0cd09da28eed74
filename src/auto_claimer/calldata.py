"""Redemption calldata for standard (CTF) and negative-risk (NegRiskAdapter) markets.

Pure encoding, no provider access: the contracts below are unbound and only
used for ``encode_abi``.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal

from web3 import Web3

from auto_claimer.config import NetworkProfile

# CTF tokens and USDC both use 6 decimals on Polygon
CTF_DECIMALS = 6

# Null parent collection ID (top-level conditions)
PARENT_COLLECTION_ID = bytes(32)

REDEEM_ABI = [
    {
        "name": "redeemPositions",
        "type": "function",
        "inputs": [
            {"name": "collateralToken", "type": "address"},
            {"name": "parentCollectionId", "type": "bytes32"},
            {"name": "conditionId", "type": "bytes32"},
            {"name": "indexSets", "type": "uint256[]"},
        ],
        "outputs": [],
    }
]

NEG_RISK_REDEEM_ABI = [
    {
        "name": "redeemPositions",
        "type": "function",
        "inputs": [
            {"name": "_conditionId", "type": "bytes32"},
            {"name": "_amounts", "type": "uint256[]"},
        ],
        "outputs": [],
    }
]

_w3 = Web3()
_ctf = _w3.eth.contract(abi=REDEEM_ABI)
_neg_risk_adapter = _w3.eth.contract(abi=NEG_RISK_REDEEM_ABI)


def condition_bytes(condition_id: str) -> bytes:
    """bytes32 from a 0x-prefixed condition id."""
    try:
        raw = bytes.fromhex(condition_id.removeprefix("0x"))
    except ValueError as exc:
        raise ValueError(f"condition id is not hex: {condition_id!r}") from exc
    if len(raw) != 32:
        raise ValueError(f"condition id must be 32 bytes, got {len(raw)}: {condition_id!r}")
    return raw


def to_base_units(size: Decimal) -> int:
    """Share size to 6-decimal fixed point, rounding down."""
    size = Decimal(str(size))
    if size < 0:
        raise ValueError(f"size must be >= 0, got {size}")
    return int((size * (10 ** CTF_DECIMALS)).to_integral_value(rounding=ROUND_DOWN))


def index_set(outcome_index: int) -> int:
    _check_outcome_index(outcome_index)
    return 1 << outcome_index


def neg_risk_amounts(outcome_index: int, size: Decimal) -> list[int]:
    _check_outcome_index(outcome_index)
    amounts = [0, 0]
    amounts[outcome_index] = to_base_units(size)
    return amounts


def _check_outcome_index(outcome_index: int) -> None:
    if outcome_index not in (0, 1):
        raise ValueError(f"outcome index must be 0 or 1, got {outcome_index!r}")


def build_redemption_calldata(
    condition_id: str,
    outcome_index: int,
    negative_risk: bool,
    size: Decimal,
    collateral_address: str,
) -> bytes:
    """Encode ``redeemPositions`` for the contract that handles this market type.

    Calling the CTF signature on a negative-risk market (or the reverse)
    reverts on-chain.
    """
    cond = condition_bytes(condition_id)
    if negative_risk:
        data = _neg_risk_adapter.encode_abi(
            "redeemPositions", [cond, neg_risk_amounts(outcome_index, size)],
        )
    else:
        data = _ctf.encode_abi("redeemPositions", [
            Web3.to_checksum_address(collateral_address),
            PARENT_COLLECTION_ID,
            cond,
            [index_set(outcome_index)],
        ])
    return bytes.fromhex(data[2:])


def redemption_target(negative_risk: bool, profile: NetworkProfile) -> str:
    address = profile.neg_risk_adapter if negative_risk else profile.ctf_address
    return Web3.to_checksum_address(address)
