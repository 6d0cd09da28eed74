"""Data structures for the auto-claimer."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

ZERO = Decimal("0")
ONE = Decimal("1")

# ANSI colors for log highlights
C_GREEN = "\033[32m"
C_RED = "\033[31m"
C_YELLOW = "\033[33m"
C_RESET = "\033[0m"


def _to_decimal(value: Any, name: str) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValueError(f"{name} missing or not numeric: {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name} not numeric: {value!r}") from exc
    # NaN would raise InvalidOperation later, on the first comparison
    if not result.is_finite():
        raise ValueError(f"{name} not finite: {value!r}")
    return result


@dataclass(frozen=True)
class Position:
    """One market stake held by the wallet, as reported by the data API."""

    condition_id: str
    outcome_index: int
    size: Decimal
    cur_price: Decimal
    redeemable: bool
    negative_risk: bool = False
    title: str = ""
    outcome: str = ""
    slug: str = ""
    asset: str = ""

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> Position:
        """Build from a data-api ``/positions`` record. Raises ValueError on bad records."""
        if not isinstance(raw, dict):
            raise ValueError(f"position record is not an object: {raw!r}")

        condition_id = raw.get("conditionId")
        if not condition_id or not isinstance(condition_id, str):
            raise ValueError(f"conditionId missing: {raw!r}")

        outcome_index = raw.get("outcomeIndex")
        if isinstance(outcome_index, bool) or not isinstance(outcome_index, int):
            raise ValueError(f"outcomeIndex missing or not an integer: {outcome_index!r}")

        return cls(
            condition_id=condition_id,
            outcome_index=outcome_index,
            size=_to_decimal(raw.get("size"), "size"),
            cur_price=_to_decimal(raw.get("curPrice"), "curPrice"),
            redeemable=bool(raw.get("redeemable", False)),
            negative_risk=bool(raw.get("negativeRisk", False)),
            title=raw.get("title") or "",
            outcome=raw.get("outcome") or "",
            slug=raw.get("slug") or "",
            asset=raw.get("asset") or "",
        )


class ClaimOutcome(Enum):
    DRY_RUN_SKIPPED = "DRY_RUN_SKIPPED"
    CONFIRMED = "CONFIRMED"
    REVERTED = "REVERTED"
    RELAYED_UNCONFIRMED = "RELAYED_UNCONFIRMED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class ClaimResult:
    success: bool
    outcome: ClaimOutcome
    tx_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str, tx_id: Optional[str] = None) -> ClaimResult:
        return cls(success=False, outcome=ClaimOutcome.FAILED, tx_id=tx_id, error=error)


@dataclass
class CycleSummary:
    dry_run: bool = False
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    face_value: Decimal = field(default_factory=lambda: ZERO)
    results: list[ClaimResult] = field(default_factory=list)

    def record(self, position: Position, result: ClaimResult) -> None:
        self.attempted += 1
        self.results.append(result)
        if result.success:
            self.succeeded += 1
            self.face_value += position.size
        else:
            self.failed += 1
