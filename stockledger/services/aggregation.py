"""
Aggregation engine: an incremental fold over ledger entries.
Contract:
- Pure: no database access, no side effects
- Entries are consumed one at a time, so a streamed query never has to be
  materialised
- Groups: operation type, product, user, UTC calendar day
- Ranking ties break on earliest last_activity, then insertion order
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from statistics import mean, pstdev
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from stockledger.schemas.reports import TrendResult, TrendDirection
from stockledger.utils.dates import as_utc

TREND_WINDOW_DAYS = 7
TREND_THRESHOLD_PERCENT = 5.0
BUDGET_CHECK_EVERY = 500

Metric = Union[str, Callable[["GroupStats"], float]]

def operation_key(value: Any) -> str:
    return getattr(value, "value", value)

@dataclass
class GroupStats:
    key: Any
    order: int = 0
    total_movements: int = 0
    total_increase: int = 0
    total_decrease: int = 0
    net_change: int = 0
    products: Set[int] = field(default_factory=set)
    users: Set[int] = field(default_factory=set)
    # insertion-ordered, so operation_types lists types in first-seen order
    operation_counts: Dict[str, int] = field(default_factory=dict)
    day_counts: Dict[date, int] = field(default_factory=dict)
    first_activity: Optional[datetime] = None
    last_activity: Optional[datetime] = None

    def add(self, entry, operation: str, day: date, created_at: datetime) -> None:
        delta = entry.new_quantity - entry.old_quantity
        self.total_movements += 1
        if delta > 0:
            self.total_increase += delta
        else:
            self.total_decrease += -delta
        self.net_change += delta
        self.products.add(entry.product_id)
        self.users.add(entry.user_id)
        self.operation_counts[operation] = self.operation_counts.get(operation, 0) + 1
        self.day_counts[day] = self.day_counts.get(day, 0) + 1
        if self.first_activity is None or created_at < self.first_activity:
            self.first_activity = created_at
        if self.last_activity is None or created_at > self.last_activity:
            self.last_activity = created_at

    @property
    def unique_products(self) -> int:
        return len(self.products)

    @property
    def unique_users(self) -> int:
        return len(self.users)

    @property
    def operation_types(self) -> List[str]:
        return list(self.operation_counts)

    @property
    def active_days(self) -> int:
        return len(self.day_counts)

    @property
    def productivity(self) -> float:
        """Activities per distinct active day"""
        if not self.day_counts:
            return 0.0
        return self.total_movements / len(self.day_counts)

    @property
    def most_active_day(self) -> Optional[date]:
        if not self.day_counts:
            return None
        return min(self.day_counts, key=lambda day: (-self.day_counts[day], day))

class LedgerAggregation:
    """
    Running totals plus per-operation, per-product, per-user and per-day
    groups. Feed entries with add() or consume().
    """

    def __init__(self):
        self.totals = GroupStats(key="all")
        self.by_operation: Dict[str, GroupStats] = {}
        self.by_product: Dict[int, GroupStats] = {}
        self.by_user: Dict[int, GroupStats] = {}
        self.by_day: Dict[date, GroupStats] = {}

    @staticmethod
    def _group(groups: Dict[Any, GroupStats], key: Any) -> GroupStats:
        stats = groups.get(key)
        if stats is None:
            stats = groups[key] = GroupStats(key=key, order=len(groups))
        return stats

    def add(self, entry) -> None:
        created_at = as_utc(entry.created_at)
        day = created_at.date()
        operation = operation_key(entry.operation_type)

        self.totals.add(entry, operation, day, created_at)
        self._group(self.by_operation, operation).add(entry, operation, day, created_at)
        self._group(self.by_product, entry.product_id).add(entry, operation, day, created_at)
        self._group(self.by_user, entry.user_id).add(entry, operation, day, created_at)
        self._group(self.by_day, day).add(entry, operation, day, created_at)

    def consume(self, entries: Iterable, budget=None) -> "LedgerAggregation":
        """Fold an iterable of entries, checking the report budget periodically."""
        for count, entry in enumerate(entries, 1):
            self.add(entry)
            if budget is not None and count % BUDGET_CHECK_EVERY == 0:
                budget.check()
        return self

    def days(self) -> List[GroupStats]:
        """Day groups in calendar order"""
        return [self.by_day[day] for day in sorted(self.by_day)]

def _metric_getter(metric: Metric) -> Callable[[GroupStats], float]:
    if callable(metric):
        return metric
    return lambda stats: getattr(stats, metric)

def rank(groups: Iterable[GroupStats], metric: Metric = "total_movements", limit: Optional[int] = None) -> List[GroupStats]:
    """
    Descending by metric. Ties: earliest last_activity first, then the
    order in which the group was first seen.
    """
    value = _metric_getter(metric)
    ordered = sorted(
        groups,
        key=lambda g: (
            -value(g),
            g.last_activity.timestamp() if g.last_activity else float("inf"),
            g.order,
        ),
    )
    return ordered if limit is None else ordered[:limit]

def peak_day(by_day: Dict[date, GroupStats], metric: Metric = "total_movements") -> Optional[GroupStats]:
    """Day with the highest metric; the earliest day wins a tie."""
    if not by_day:
        return None
    value = _metric_getter(metric)
    return min(by_day.values(), key=lambda g: (-value(g), g.key))

def daily_series(
    by_day: Dict[date, GroupStats],
    metric: Metric = "total_movements",
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[Tuple[date, float]]:
    """
    Metric per calendar day from start to end inclusive, zero on days with no
    entries. Bounds default to the first and last active day.
    """
    if not by_day and (start is None or end is None):
        return []
    value = _metric_getter(metric)
    start = start or min(by_day)
    end = end or max(by_day)

    series = []
    day = start
    while day <= end:
        stats = by_day.get(day)
        series.append((day, value(stats) if stats else 0))
        day += timedelta(days=1)
    return series

def compute_trend(
    values: Sequence[float],
    window: int = TREND_WINDOW_DAYS,
    threshold: float = TREND_THRESHOLD_PERCENT,
) -> Optional[TrendResult]:
    """
    Compare the mean of the last `window` points with the mean of the
    preceding `window` points.
    Returns None for fewer than two points. With no preceding points the
    recent mean is compared with itself (stable). A previous mean of zero
    reports 0%.
    """
    if len(values) < 2:
        return None

    recent = list(values[-window:])
    previous = list(values[-2 * window:-window])

    recent_avg = mean(recent)
    previous_avg = mean(previous) if previous else recent_avg
    change = ((recent_avg - previous_avg) / previous_avg) * 100 if previous_avg > 0 else 0.0

    if change > threshold:
        direction = TrendDirection.INCREASING
    elif change < -threshold:
        direction = TrendDirection.DECREASING
    else:
        direction = TrendDirection.STABLE

    return TrendResult(
        recent_average=round(recent_avg, 2),
        previous_average=round(previous_avg, 2),
        trend_percentage=round(change, 1),
        trend_direction=direction,
    )

def consistency_score(values: Sequence[float]) -> float:
    """100 minus the coefficient of variation (as a percentage), floored at 0."""
    if len(values) < 2:
        return 100.0
    avg = mean(values)
    variation = pstdev(values) / avg if avg > 0 else 0.0
    return max(0.0, 100.0 - variation * 100)

def ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    """numerator / denominator * scale, or 0 when the denominator is not positive"""
    if denominator <= 0:
        return 0.0
    return numerator / denominator * scale
