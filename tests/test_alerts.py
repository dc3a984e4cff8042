"""
Alert / prediction heuristics.
"""
from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from stockledger.services.alerts import (
    shortage, urgency_score, daily_consumption_estimate, estimated_stockout_days,
    recommended_order_quantity, assess_product, rank_by_urgency,
)

from conftest import fake_entry, utc

NOW = utc(2024, 6, 11)


def product(quantity, reorder_level, sku="SKU-1", price="4.00"):
    return SimpleNamespace(
        id=1, sku=sku, name="Thing", category="Parts",
        quantity=quantity, reorder_level=reorder_level, price=Decimal(price),
    )


class TestUrgency:

    def test_out_of_stock_is_maximum(self):
        assert urgency_score(0, 10) == 100.0
        assert urgency_score(0, 0) == 100.0

    def test_relative_shortfall(self):
        assert urgency_score(5, 10) == 45.0
        assert urgency_score(1, 3) == 60.0

    def test_zero_reorder_level_with_stock(self):
        assert urgency_score(4, 0) == 0.0

    def test_at_or_above_reorder_level(self):
        assert urgency_score(10, 10) == 0.0
        assert urgency_score(25, 10) == 0.0

    @pytest.mark.parametrize("reorder_level", [1, 7, 10, 40])
    def test_monotonic_in_quantity(self, reorder_level):
        scores = [urgency_score(q, reorder_level) for q in range(0, reorder_level + 5)]
        assert scores == sorted(scores, reverse=True)
        assert all(0 <= s <= 100 for s in scores)

    def test_shortage(self):
        assert shortage(3, 10) == 7
        assert shortage(12, 10) == 0


class TestConsumption:

    def test_default_without_history(self):
        estimate = daily_consumption_estimate([], 30, NOW)
        assert estimate.rate == pytest.approx(3.0)
        assert estimate.basis == "reorder_level_default"

    def test_default_has_a_floor_of_one(self):
        assert daily_consumption_estimate([], 4, NOW).rate == 1.0

    def test_history_rate(self):
        history = [
            fake_entry(old=20, new=14, op="sale", created_at=NOW - timedelta(days=1)),
            fake_entry(old=30, new=20, op="sale", created_at=NOW - timedelta(days=4)),
            fake_entry(old=10, new=30, op="purchase", created_at=NOW - timedelta(days=5)),
        ]
        estimate = daily_consumption_estimate(history, 10, NOW)
        assert estimate.basis == "history"
        assert estimate.rate == pytest.approx(16 / 4)

    def test_transfer_in_is_not_consumption(self):
        history = [fake_entry(old=5, new=25, op="transfer", created_at=NOW - timedelta(days=2))]
        assert daily_consumption_estimate(history, 10, NOW).basis == "reorder_level_default"

    def test_single_recent_entry_uses_one_day_floor(self):
        history = [fake_entry(old=9, new=6, op="damage", created_at=NOW - timedelta(hours=3))]
        assert daily_consumption_estimate(history, 10, NOW).rate == 3.0


class TestProjection:

    def test_stockout_days(self):
        assert estimated_stockout_days(0, 2.0) == 0
        assert estimated_stockout_days(7, 2.0) == 3

    def test_stockout_days_needs_positive_rate(self):
        with pytest.raises(ValueError):
            estimated_stockout_days(5, 0)

    def test_recommended_order(self):
        assert recommended_order_quantity(5, 10) == 15
        assert recommended_order_quantity(25, 10) == 0

    def test_assessment(self):
        assessment = assess_product(product(5, 10), [], NOW)

        assert assessment.urgency_score == 45.0
        assert assessment.shortage_amount == 5
        assert assessment.daily_consumption_estimate == 1.0
        assert assessment.estimated_stockout_days == 5
        assert assessment.recommended_order_quantity == 15
        assert assessment.price == 4.0
        assert assessment.confidence == "low"
        assert assessment.is_critical is False
        assert assessment.stockout_date(date(2024, 6, 11)) == date(2024, 6, 16)

    def test_rank_by_urgency_is_stable(self):
        ranked = rank_by_urgency([
            assess_product(product(5, 10, sku="A"), [], NOW),
            assess_product(product(0, 10, sku="B"), [], NOW),
            assess_product(product(5, 10, sku="C"), [], NOW),
        ])
        assert [a.sku for a in ranked] == ["B", "A", "C"]
