"""Tests for position parsing, the claimable filter and fail-soft fetching."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from auto_claimer.models import Position
from auto_claimer.positions import (
    fetch_claimable,
    fetch_positions,
    filter_claimable,
    is_claimable,
    summarize,
)
from conftest import CONDITION_B, WALLET, make_position, raw_position

API = "https://data-api.polymarket.com"


def _session(payload=None, exc=None) -> MagicMock:
    session = MagicMock()
    if exc is not None:
        session.get.side_effect = exc
    else:
        session.get.return_value.json.return_value = payload
    return session


class TestFromApi:
    def test_parses_record(self):
        p = Position.from_api(raw_position(size=12.5, negativeRisk=True, outcomeIndex=1))
        assert p.size == Decimal("12.5")
        assert p.cur_price == Decimal("1")
        assert p.outcome_index == 1
        assert p.negative_risk is True
        assert p.slug == "will-it-rain-tomorrow"

    def test_missing_condition_id(self):
        with pytest.raises(ValueError, match="conditionId"):
            Position.from_api(raw_position(conditionId=None))

    def test_non_numeric_size(self):
        with pytest.raises(ValueError, match="size"):
            Position.from_api(raw_position(size="lots"))

    def test_bool_outcome_index_rejected(self):
        with pytest.raises(ValueError, match="outcomeIndex"):
            Position.from_api(raw_position(outcomeIndex=True))

    @pytest.mark.parametrize("value", ["NaN", float("nan"), "Infinity", float("-inf")])
    def test_non_finite_size_rejected(self, value):
        with pytest.raises(ValueError, match="not finite"):
            Position.from_api(raw_position(size=value))

    def test_float_precision_kept_as_decimal(self):
        p = Position.from_api(raw_position(size=0.1))
        assert p.size == Decimal("0.1")


class TestIsClaimable:
    @pytest.mark.parametrize("redeemable", [True, False])
    @pytest.mark.parametrize("size", ["0", "5"])
    @pytest.mark.parametrize("price", ["0", "0.5", "1"])
    def test_predicate(self, redeemable, size, price):
        p = make_position(redeemable=redeemable, size=Decimal(size), cur_price=Decimal(price))
        expected = redeemable and Decimal(size) > 0 and Decimal(price) == 1
        assert is_claimable(p) is expected

    def test_losing_position_never_claimable(self):
        """curPrice 0 is excluded even when the API flags it redeemable."""
        assert not is_claimable(make_position(cur_price=Decimal("0"), redeemable=True))

    def test_negative_size_excluded(self):
        assert not is_claimable(make_position(size=Decimal("-1")))


class TestFilter:
    def test_filter_keeps_order_and_input(self):
        win_a = make_position(slug="a")
        lose = make_position(slug="b", cur_price=Decimal("0"))
        win_c = make_position(slug="c", condition_id=CONDITION_B)
        positions = [win_a, lose, win_c]

        result = filter_claimable(positions)

        assert [p.slug for p in result] == ["a", "c"]
        assert positions == [win_a, lose, win_c]
        assert result is not positions

    def test_summarize(self):
        stats = summarize([
            make_position(),
            make_position(cur_price=Decimal("0"), redeemable=True),
            make_position(cur_price=Decimal("0.4"), redeemable=False),
        ])
        assert (stats.total, stats.redeemable, stats.winning, stats.losing) == (3, 2, 1, 1)


class TestFetch:
    def test_request_shape(self):
        session = _session([raw_position()])
        mixed_case = "0x" + "Bb" * 20

        positions = fetch_positions(session, API + "/", mixed_case, limit=500)

        assert len(positions) == 1
        args, kwargs = session.get.call_args
        assert args[0] == f"{API}/positions"
        assert kwargs["params"] == {"user": WALLET, "limit": 500}
        assert kwargs["headers"]["Accept"] == "application/json"
        assert kwargs["timeout"] == 30.0

    def test_malformed_records_skipped(self):
        session = _session([raw_position(), {"junk": 1}, raw_position(size=None)])
        assert len(fetch_positions(session, API, WALLET)) == 1

    def test_non_list_payload_raises(self):
        with pytest.raises(ValueError):
            fetch_positions(_session({"error": "bad"}), API, WALLET)

    def test_fetch_claimable_filters(self):
        session = _session([
            raw_position(),
            raw_position(curPrice=0, conditionId=CONDITION_B),
            raw_position(redeemable=False),
        ])
        claimable = fetch_claimable(session, API, WALLET)
        assert len(claimable) == 1
        assert claimable[0].cur_price == 1

    def test_nan_record_skipped_not_fatal(self):
        session = _session([raw_position(), raw_position(size="NaN", conditionId=CONDITION_B),
                            raw_position(curPrice=float("nan"))])
        claimable = fetch_claimable(session, API, WALLET)
        assert len(claimable) == 1
        assert claimable[0].size == Decimal("12.5")

    def test_network_error_fails_soft(self):
        session = _session(exc=requests.ConnectionError("down"))
        assert fetch_claimable(session, API, WALLET) == []

    def test_http_error_fails_soft(self):
        session = _session([])
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError("502")
        assert fetch_claimable(session, API, WALLET) == []

    def test_malformed_payload_fails_soft(self):
        assert fetch_claimable(_session("not json list"), API, WALLET) == []
