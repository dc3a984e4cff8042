"""
Aggregation engine: pure fold, no database.
"""
from datetime import date

import pytest

from stockledger.schemas.reports import TrendDirection
from stockledger.services.aggregation import (
    LedgerAggregation, rank, peak_day, daily_series, compute_trend, consistency_score, ratio,
)

from conftest import fake_entry, utc


@pytest.fixture
def entries():
    return [
        fake_entry(product_id=1, user_id=1, old=0, new=50, op="purchase", created_at=utc(2024, 5, 1, 9)),
        fake_entry(product_id=1, user_id=2, old=50, new=44, op="sale", created_at=utc(2024, 5, 1, 15)),
        fake_entry(product_id=2, user_id=2, old=10, new=7, op="sale", created_at=utc(2024, 5, 2)),
        fake_entry(product_id=2, user_id=1, old=7, new=6, op="damage", created_at=utc(2024, 5, 4)),
        fake_entry(product_id=3, user_id=1, old=4, new=9, op="transfer", created_at=utc(2024, 5, 4, 18)),
    ]


class TestFold:

    def test_groups_sum_to_totals(self, entries):
        aggregation = LedgerAggregation().consume(entries)
        totals = aggregation.totals

        for groups in (aggregation.by_operation, aggregation.by_product, aggregation.by_user, aggregation.by_day):
            assert sum(g.total_movements for g in groups.values()) == totals.total_movements
            assert sum(g.total_increase for g in groups.values()) == totals.total_increase
            assert sum(g.total_decrease for g in groups.values()) == totals.total_decrease
            assert sum(g.net_change for g in groups.values()) == totals.net_change

        assert totals.total_movements == 5
        assert totals.total_increase == 55
        assert totals.total_decrease == 10
        assert totals.net_change == sum(e.new_quantity - e.old_quantity for e in entries)

    def test_group_details(self, entries):
        aggregation = LedgerAggregation().consume(entries)

        product = aggregation.by_product[2]
        assert product.operation_types == ["sale", "damage"]
        assert product.unique_users == 2
        assert product.first_activity == utc(2024, 5, 2)
        assert product.last_activity == utc(2024, 5, 4)

        assert sorted(aggregation.by_day) == [date(2024, 5, 1), date(2024, 5, 2), date(2024, 5, 4)]
        assert aggregation.by_user[1].active_days == 2
        assert aggregation.by_user[1].productivity == 1.5

    def test_enum_operation_types_share_a_key(self):
        from stockledger.schemas.inventory import OperationType

        aggregation = LedgerAggregation().consume([
            fake_entry(op=OperationType.SALE),
            fake_entry(op="sale"),
        ])
        assert list(aggregation.by_operation) == ["sale"]

    def test_naive_timestamps_are_utc(self):
        from datetime import datetime

        aggregation = LedgerAggregation().consume([fake_entry(created_at=datetime(2024, 5, 1, 23, 30))])
        assert list(aggregation.by_day) == [date(2024, 5, 1)]

    def test_budget_checked_while_folding(self):
        class CountingBudget:
            checks = 0

            def check(self):
                self.checks += 1

        budget = CountingBudget()
        LedgerAggregation().consume((fake_entry() for _ in range(1200)), budget)
        assert budget.checks == 2


class TestRanking:

    def test_descending_by_metric(self, entries):
        aggregation = LedgerAggregation().consume(entries)
        ranked = rank(aggregation.by_product.values(), "total_decrease")
        assert [g.key for g in ranked] == [1, 2, 3]

    def test_tie_goes_to_earliest_last_activity(self):
        aggregation = LedgerAggregation().consume([
            fake_entry(product_id=7, created_at=utc(2024, 5, 3)),
            fake_entry(product_id=8, created_at=utc(2024, 5, 2)),
        ])
        assert [g.key for g in rank(aggregation.by_product.values())] == [8, 7]

    def test_full_tie_keeps_first_seen_order(self):
        aggregation = LedgerAggregation().consume([
            fake_entry(product_id=9, created_at=utc(2024, 5, 2)),
            fake_entry(product_id=4, created_at=utc(2024, 5, 2)),
        ])
        assert [g.key for g in rank(aggregation.by_product.values())] == [9, 4]

    def test_limit(self, entries):
        aggregation = LedgerAggregation().consume(entries)
        assert len(rank(aggregation.by_product.values(), limit=2)) == 2

    def test_peak_day_tie_goes_to_earliest_day(self):
        aggregation = LedgerAggregation().consume([
            fake_entry(created_at=utc(2024, 5, 3)),
            fake_entry(created_at=utc(2024, 5, 1)),
        ])
        assert peak_day(aggregation.by_day).key == date(2024, 5, 1)
        assert peak_day({}) is None

    def test_most_active_day(self):
        aggregation = LedgerAggregation().consume([
            fake_entry(created_at=utc(2024, 5, 3)),
            fake_entry(created_at=utc(2024, 5, 3, 14)),
            fake_entry(created_at=utc(2024, 5, 1)),
        ])
        assert aggregation.totals.most_active_day == date(2024, 5, 3)


class TestSeries:

    def test_missing_days_are_zero(self):
        aggregation = LedgerAggregation().consume([
            fake_entry(created_at=utc(2024, 5, 1)),
            fake_entry(created_at=utc(2024, 5, 4)),
        ])
        series = daily_series(aggregation.by_day)
        assert [value for _, value in series] == [1, 0, 0, 1]

    def test_explicit_bounds(self):
        series = daily_series({}, start=date(2024, 5, 1), end=date(2024, 5, 3))
        assert series == [(date(2024, 5, 1), 0), (date(2024, 5, 2), 0), (date(2024, 5, 3), 0)]

    def test_empty(self):
        assert daily_series({}) == []


class TestTrend:

    def test_needs_two_points(self):
        assert compute_trend([]) is None
        assert compute_trend([5]) is None

    def test_short_series_is_stable(self):
        trend = compute_trend([3, 9])
        assert trend.trend_direction == TrendDirection.STABLE
        assert trend.trend_percentage == 0

    def test_sparse_activity_is_stable(self):
        values = [1] + [0] * 18 + [1]
        trend = compute_trend(values)
        assert trend.trend_direction == TrendDirection.STABLE
        assert trend.previous_average == 0

    def test_increasing(self):
        trend = compute_trend([1] * 7 + [10] * 7)
        assert trend.trend_direction == TrendDirection.INCREASING
        assert trend.trend_percentage == 900.0
        assert trend.recent_average == 10

    def test_decreasing(self):
        trend = compute_trend([10] * 7 + [5] * 7)
        assert trend.trend_direction == TrendDirection.DECREASING
        assert trend.trend_percentage == -50.0

    def test_change_within_threshold_is_stable(self):
        trend = compute_trend([100] * 7 + [104] * 7)
        assert trend.trend_direction == TrendDirection.STABLE


class TestScores:

    def test_consistency(self):
        assert consistency_score([4]) == 100.0
        assert consistency_score([3, 3, 3]) == 100.0
        assert consistency_score([0, 10]) == 0.0
        assert consistency_score([5, 15]) == pytest.approx(50.0)

    def test_ratio(self):
        assert ratio(5, 0) == 0.0
        assert ratio(1, 4, 100) == 25.0
