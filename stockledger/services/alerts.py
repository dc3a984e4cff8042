"""
Alert / prediction engine.
Contract:
- Heuristics only; every prediction is marked low confidence
- Pure functions of product state and recent consuming ledger entries
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
import math
from typing import Iterable, List, Optional

from stockledger.schemas.inventory import CONSUMING_OPERATIONS
from stockledger.utils.dates import days_between, utcnow

URGENCY_OUT_OF_STOCK = 100.0
URGENCY_CAP = 90.0
DEFAULT_CONSUMPTION_FACTOR = 0.1
PREDICTION_CONFIDENCE = "low"
PREDICTION_METHODOLOGY = "Simple linear projection based on recent consumption patterns"
PREDICTION_DISCLAIMER = (
    "Predictions are estimates based on simplified models and should be used as guidelines only"
)

_CONSUMING = {op.value for op in CONSUMING_OPERATIONS}

@dataclass
class ConsumptionEstimate:
    rate: float
    basis: str

def shortage(quantity: int, reorder_level: int) -> int:
    return max(0, reorder_level - quantity)

def urgency_score(quantity: int, reorder_level: int) -> float:
    """
    100 when out of stock, otherwise the relative shortfall scaled to 90.
    A zero reorder level with stock on hand scores 0.
    """
    if quantity == 0:
        return URGENCY_OUT_OF_STOCK
    if reorder_level <= 0:
        return 0.0
    score = min(URGENCY_CAP, (shortage(quantity, reorder_level) / reorder_level) * URGENCY_CAP)
    return round(min(100.0, max(0.0, score)), 1)

def daily_consumption_estimate(
    entries: Iterable,
    reorder_level: int,
    now: Optional[datetime] = None,
) -> ConsumptionEstimate:
    """
    Units consumed per day over the consuming decreases in `entries`
    (sale, damage, transfer out), measured from the oldest one to now with a
    one-day floor. Without history: max(1, reorder_level * 0.1).
    """
    consuming = [
        e for e in entries
        if getattr(e.operation_type, "value", e.operation_type) in _CONSUMING
        and e.new_quantity < e.old_quantity
    ]
    if not consuming:
        return ConsumptionEstimate(
            rate=max(1.0, reorder_level * DEFAULT_CONSUMPTION_FACTOR),
            basis="reorder_level_default",
        )

    total_consumed = sum(e.old_quantity - e.new_quantity for e in consuming)
    oldest = min(e.created_at for e in consuming)
    days = max(1.0, days_between(oldest, now))
    return ConsumptionEstimate(rate=total_consumed / days, basis="history")

def estimated_stockout_days(quantity: int, daily_consumption: float) -> int:
    if quantity == 0:
        return 0
    if daily_consumption <= 0:
        raise ValueError("daily_consumption must be positive")
    return math.floor(quantity / daily_consumption)

def recommended_order_quantity(quantity: int, reorder_level: int) -> int:
    return max(reorder_level * 2 - quantity, 0)

@dataclass
class StockAssessment:
    product_id: int
    sku: str
    name: str
    category: str
    quantity: int
    reorder_level: int
    price: float
    shortage_amount: int
    urgency_score: float
    daily_consumption_estimate: float
    consumption_basis: str
    estimated_stockout_days: int
    recommended_order_quantity: int
    confidence: str = PREDICTION_CONFIDENCE

    @property
    def is_critical(self) -> bool:
        return self.quantity == 0

    def stockout_date(self, today: Optional[date] = None) -> date:
        today = today or utcnow().date()
        return today + timedelta(days=self.estimated_stockout_days)

def assess_product(product, history: Iterable = (), now: Optional[datetime] = None) -> StockAssessment:
    """Score one product from its current state and its recent ledger entries."""
    consumption = daily_consumption_estimate(history, product.reorder_level, now)
    return StockAssessment(
        product_id=product.id,
        sku=product.sku,
        name=product.name,
        category=product.category,
        quantity=product.quantity,
        reorder_level=product.reorder_level,
        price=float(product.price or 0),
        shortage_amount=shortage(product.quantity, product.reorder_level),
        urgency_score=urgency_score(product.quantity, product.reorder_level),
        daily_consumption_estimate=round(consumption.rate, 2),
        consumption_basis=consumption.basis,
        estimated_stockout_days=estimated_stockout_days(product.quantity, consumption.rate),
        recommended_order_quantity=recommended_order_quantity(product.quantity, product.reorder_level),
    )

def rank_by_urgency(assessments: Iterable[StockAssessment]) -> List[StockAssessment]:
    """Most urgent first; equal scores keep their input order."""
    return sorted(assessments, key=lambda a: -a.urgency_score)
